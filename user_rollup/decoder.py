"""Record decoder: one NDJSON log line into a Record."""

import json

from user_rollup.errors import DecodeError
from user_rollup.models import Record, RecordKind


def _normalise_user_id(value) -> str | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return str(value)
    if isinstance(value, str):
        return value
    return None


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def decode_line(line: bytes | str, line_number: int = 0) -> Record:
    """Parse a single log line. Raises DecodeError for anything unusable.

    Expected shape:
        {"user_id": "5", "type": "event", "name": "login", "id": "a"}
        {"user_id": "3", "type": "attributes", "data": {"plan": "gold"}, "timestamp": 10}
    """
    if isinstance(line, bytes):
        try:
            line = line.decode("utf-8")
        except UnicodeDecodeError as e:
            raise DecodeError(f"invalid utf-8: {e}", line_number) from e

    stripped = line.strip()
    if not stripped:
        raise DecodeError("empty line", line_number)

    try:
        obj = json.loads(stripped)
    except json.JSONDecodeError as e:
        raise DecodeError(f"invalid json: {e.msg}", line_number) from e

    if not isinstance(obj, dict):
        raise DecodeError(f"expected a json object, got {type(obj).__name__}", line_number)

    user_id = _normalise_user_id(obj.get("user_id"))
    kind = obj.get("type")
    if not isinstance(kind, str):
        raise DecodeError("missing record type", line_number)

    if kind == RecordKind.EVENT:
        record_id = obj.get("id")
        name = obj.get("name")
        if not isinstance(record_id, str) or not record_id:
            raise DecodeError("event record without id", line_number)
        if not isinstance(name, str):
            raise DecodeError("event record without name", line_number)
        return Record(user_id=user_id, kind=kind, record_id=record_id,
                      event_name=name, line_number=line_number)

    if kind == RecordKind.ATTRIBUTES:
        timestamp = obj.get("timestamp")
        data = obj.get("data", {})
        if not _is_int(timestamp):
            raise DecodeError("attributes record without integer timestamp", line_number)
        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise DecodeError("attributes data must be an object", line_number)
        record_id = obj.get("id")
        return Record(user_id=user_id, kind=kind,
                      record_id=record_id if isinstance(record_id, str) else "",
                      timestamp=timestamp, attributes=data, line_number=line_number)

    # Unknown kinds decode fine; the aggregator ignores them.
    return Record(user_id=user_id, kind=kind, line_number=line_number)
