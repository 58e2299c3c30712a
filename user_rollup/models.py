"""Record, per-user state, and checkpoint snapshot models."""

from dataclasses import dataclass, field
from typing import Any


class RecordKind:
    EVENT = "event"
    ATTRIBUTES = "attributes"


DEDUP_SCOPES = ("global", "user")


@dataclass(frozen=True)
class Record:
    user_id: str | None       # raw id as found in the log
    kind: str                 # "event", "attributes", or anything else
    record_id: str = ""
    event_name: str = ""
    timestamp: int | None = None
    attributes: dict = field(default_factory=dict)
    line_number: int = 0


@dataclass
class UserStat:
    events: dict[str, int] = field(default_factory=dict)
    attributes: dict[str, Any] = field(default_factory=dict)
    last_attribute_timestamp: int | None = None

    def to_dict(self) -> dict:
        return {
            "events": dict(self.events),
            "attributes": dict(self.attributes),
            "last_attribute_timestamp": self.last_attribute_timestamp,
        }

    @classmethod
    def from_dict(cls, d: dict) -> "UserStat":
        """Rebuild from the checkpoint shape. Raises ValueError on bad shapes."""
        if not isinstance(d, dict):
            raise ValueError(f"user stat must be an object, got {type(d).__name__}")
        events = d.get("events", {})
        attributes = d.get("attributes", {})
        ts = d.get("last_attribute_timestamp")
        if not isinstance(events, dict) or not isinstance(attributes, dict):
            raise ValueError("events and attributes must be objects")
        for name, count in events.items():
            if isinstance(count, bool) or not isinstance(count, int) or count < 0:
                raise ValueError(f"invalid count for event {name!r}: {count!r}")
        if ts is not None and (isinstance(ts, bool) or not isinstance(ts, int)):
            raise ValueError(f"invalid attribute timestamp: {ts!r}")
        return cls(events=dict(events), attributes=dict(attributes),
                   last_attribute_timestamp=ts)


@dataclass
class Snapshot:
    records_processed: int
    byte_offset: int
    users: dict[int, UserStat] = field(default_factory=dict)
    seen_ids: set[str] = field(default_factory=set)
    dedup_scope: str = "global"

    @classmethod
    def empty(cls, dedup_scope: str = "global") -> "Snapshot":
        return cls(records_processed=0, byte_offset=0, dedup_scope=dedup_scope)


@dataclass(frozen=True)
class LogPosition:
    record: Record | None   # None for a malformed line
    offset: int             # absolute byte offset after this line
    line_number: int
