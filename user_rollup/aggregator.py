"""Aggregation engine: folds records into per-user statistics.

`fold` touches only the containers it is given, so it can be exercised
without any file I/O. `Aggregator` owns one run's state and converts it to
and from checkpoint snapshots.
"""

import re
from typing import Iterable

from user_rollup.models import DEDUP_SCOPES, Record, RecordKind, Snapshot, UserStat

_USER_ID_PATTERN = re.compile(r"[+-]?[0-9]+")


class DedupSet:
    """Record ids already counted as events.

    With scope "global" a record id is unique across the whole log. With
    scope "user" the same id may appear once per user.
    """

    def __init__(self, scope: str = "global", seen: Iterable[str] = ()):
        if scope not in DEDUP_SCOPES:
            raise ValueError(f"unknown dedup scope: {scope!r}")
        self.scope = scope
        self._seen: set[str] = set(seen)

    def key(self, user_id: int, record_id: str) -> str:
        if self.scope == "user":
            return f"{user_id}/{record_id}"
        return record_id

    def add(self, key: str) -> None:
        self._seen.add(key)

    def __contains__(self, key: str) -> bool:
        return key in self._seen

    def __len__(self) -> int:
        return len(self._seen)

    def __iter__(self):
        return iter(self._seen)

    def to_list(self) -> list[str]:
        return sorted(self._seen)


def resolve_user_id(raw: str | None) -> int | None:
    """Return the numeric user id, or None if missing or not an integer."""
    if raw is None:
        return None
    raw = raw.strip()
    # ASCII digits only; int() alone would take "1_000" and other scripts' digits.
    if not _USER_ID_PATTERN.fullmatch(raw):
        return None
    return int(raw, 10)


def fold(users: dict[int, UserStat], seen: DedupSet, record: Record) -> dict[int, UserStat]:
    uid = resolve_user_id(record.user_id)
    if uid is None:
        return users

    if record.kind == RecordKind.EVENT:
        key = seen.key(uid, record.record_id)
        if key in seen:
            return users
        stat = users.setdefault(uid, UserStat())
        stat.events[record.event_name] = stat.events.get(record.event_name, 0) + 1
        seen.add(key)

    elif record.kind == RecordKind.ATTRIBUTES:
        stat = users.setdefault(uid, UserStat())
        # Strictly newer only; ties keep the earlier record.
        if stat.last_attribute_timestamp is None or record.timestamp > stat.last_attribute_timestamp:
            stat.attributes = dict(record.attributes)
            stat.last_attribute_timestamp = record.timestamp

    return users


class Aggregator:
    def __init__(self, dedup_scope: str = "global"):
        self.users: dict[int, UserStat] = {}
        self.seen = DedupSet(dedup_scope)

    @property
    def dedup_scope(self) -> str:
        return self.seen.scope

    def apply(self, record: Record) -> None:
        fold(self.users, self.seen, record)

    def sorted_user_ids(self) -> list[int]:
        return sorted(self.users)

    def snapshot(self, records_processed: int, byte_offset: int) -> Snapshot:
        return Snapshot(
            records_processed=records_processed,
            byte_offset=byte_offset,
            users=self.users,
            seen_ids=set(self.seen),
            dedup_scope=self.seen.scope,
        )

    @classmethod
    def from_snapshot(cls, snapshot: Snapshot) -> "Aggregator":
        agg = cls(snapshot.dedup_scope)
        agg.users = snapshot.users
        agg.seen = DedupSet(snapshot.dedup_scope, snapshot.seen_ids)
        return agg
