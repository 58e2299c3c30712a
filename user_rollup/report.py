"""Report formatter: one line per user, attributes then events."""

import json
import os
import tempfile
from typing import Any

from user_rollup.models import UserStat


def format_value(value: Any) -> str:
    if isinstance(value, str):
        return value
    return json.dumps(value, separators=(",", ":"), sort_keys=True)


def format_user_line(user_id: int, stat: UserStat) -> str:
    """Render `<id>,<attr>=<value>,...,<event>=<count>,...` with keys sorted per group."""
    fields = [str(user_id)]
    for name in sorted(stat.attributes):
        fields.append(f"{name}={format_value(stat.attributes[name])}")
    for name in sorted(stat.events):
        fields.append(f"{name}={stat.events[name]}")
    return ",".join(fields)


def render_report(users: dict[int, UserStat], user_ids: list[int]) -> str:
    return "".join(format_user_line(uid, users[uid]) + "\n" for uid in user_ids)


def write_report(path: str, users: dict[int, UserStat], user_ids: list[int]) -> None:
    directory = os.path.dirname(path) or "."
    fd, tmp = tempfile.mkstemp(dir=directory, prefix=".report-")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(render_report(users, user_ids))
        os.replace(tmp, path)
    except Exception:
        if os.path.exists(tmp):
            os.unlink(tmp)
        raise
