"""Checkpoint store: persists the aggregate so a run can resume.

File layout (text, UTF-8):

    line 1   records processed
    line 2   byte offset into the log
    rest     JSON: {"dedup_scope": ..., "users": {...}, "seen_ids": [...]}

Writes are atomic (tmp file in the same directory + os.replace), so a crash
mid-save leaves the previous checkpoint intact. A checkpoint that cannot be
parsed is never silently discarded; load() raises CheckpointError instead.
"""

import json
import logging
import os
import re
import tempfile

from user_rollup.aggregator import resolve_user_id
from user_rollup.errors import CheckpointError
from user_rollup.models import Snapshot, UserStat

logger = logging.getLogger(__name__)


_COUNT_PATTERN = re.compile(r"-?[0-9]+")


def _parse_count(line: str, what: str) -> int:
    if not _COUNT_PATTERN.fullmatch(line.strip()):
        raise CheckpointError(f"checkpoint {what} is not an integer: {line!r}")
    value = int(line.strip(), 10)
    if value < 0:
        raise CheckpointError(f"checkpoint {what} is negative: {value}")
    return value


class CheckpointStore:
    def __init__(self, path: str):
        self._path = path

    @property
    def path(self) -> str:
        return self._path

    def exists(self) -> bool:
        return os.path.exists(self._path)

    def load(self, dedup_scope: str = "global") -> Snapshot:
        if not os.path.exists(self._path):
            logger.info("No checkpoint at %s, starting from the beginning", self._path)
            return Snapshot.empty(dedup_scope)

        with open(self._path, "rb") as f:
            raw = f.read()
        try:
            text = raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise CheckpointError(f"checkpoint {self._path} is not valid UTF-8: {e}") from e

        if not text:
            logger.warning("Checkpoint %s is empty, starting from the beginning", self._path)
            return Snapshot.empty(dedup_scope)

        parts = text.split("\n", 2)
        if len(parts) < 3:
            raise CheckpointError(f"checkpoint {self._path} is truncated")
        records = _parse_count(parts[0], "record count")
        offset = _parse_count(parts[1], "byte offset")

        try:
            body = json.loads(parts[2])
        except json.JSONDecodeError as e:
            raise CheckpointError(f"checkpoint {self._path} has invalid JSON: {e}") from e
        if not isinstance(body, dict):
            raise CheckpointError(f"checkpoint {self._path} body must be a JSON object")

        saved_scope = body.get("dedup_scope", "global")
        if saved_scope != dedup_scope:
            raise CheckpointError(
                f"checkpoint was written with dedup scope {saved_scope!r}, "
                f"run requested {dedup_scope!r}; clear the checkpoint to switch"
            )

        raw_users = body.get("users", {})
        raw_seen = body.get("seen_ids", [])
        if not isinstance(raw_users, dict) or not isinstance(raw_seen, list):
            raise CheckpointError(f"checkpoint {self._path} has malformed users or seen_ids")

        users: dict[int, UserStat] = {}
        try:
            for key, value in raw_users.items():
                uid = resolve_user_id(key)
                if uid is None:
                    raise ValueError(f"user id {key!r} is not an integer")
                users[uid] = UserStat.from_dict(value)
        except ValueError as e:
            raise CheckpointError(f"checkpoint {self._path} has a bad user entry: {e}") from e

        if not all(isinstance(s, str) for s in raw_seen):
            raise CheckpointError(f"checkpoint {self._path} has non-string record ids")

        logger.info("Loaded checkpoint from %s: %d records, offset %d, %d users",
                    self._path, records, offset, len(users))
        return Snapshot(records_processed=records, byte_offset=offset, users=users,
                        seen_ids=set(raw_seen), dedup_scope=saved_scope)

    def save(self, snapshot: Snapshot) -> None:
        body = {
            "dedup_scope": snapshot.dedup_scope,
            "users": {str(uid): stat.to_dict() for uid, stat in sorted(snapshot.users.items())},
            "seen_ids": sorted(snapshot.seen_ids),
        }
        data = f"{snapshot.records_processed}\n{snapshot.byte_offset}\n"
        data += json.dumps(body, indent=1, sort_keys=True)

        directory = os.path.dirname(self._path) or "."
        fd, tmp = tempfile.mkstemp(dir=directory, prefix=".checkpoint-")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(data)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp, self._path)
        except Exception:
            if os.path.exists(tmp):
                os.unlink(tmp)
            raise

    def validate_against(self, snapshot: Snapshot, log_size: int) -> None:
        """Reject a checkpoint that points past the end of the log."""
        if snapshot.byte_offset > log_size:
            raise CheckpointError(
                f"checkpoint offset {snapshot.byte_offset} is beyond the end of the log "
                f"({log_size} bytes); the log was truncated or replaced"
            )

    def clear(self) -> bool:
        try:
            os.remove(self._path)
        except FileNotFoundError:
            return False
        logger.info("Cleared checkpoint %s", self._path)
        return True
