"""Shared pytest fixtures for the user-rollup test suite."""

import json

import pytest


def event(user_id, name, record_id) -> str:
    return json.dumps({"user_id": user_id, "type": "event", "name": name, "id": record_id})


def attributes(user_id, data, timestamp) -> str:
    return json.dumps({"user_id": user_id, "type": "attributes", "data": data,
                       "timestamp": timestamp})


@pytest.fixture()
def write_log(tmp_path):
    """Return a helper that writes lines (newline-terminated) to data.log."""
    path = tmp_path / "data.log"

    def _write(lines: list[str], append: bool = False) -> str:
        with open(path, "a" if append else "w", encoding="utf-8", newline="") as f:
            for line in lines:
                f.write(line + "\n")
        return str(path)

    return _write


@pytest.fixture()
def mixed_lines() -> list[str]:
    """A log with duplicates, malformed lines, attribute churn, and odd user ids."""
    lines = []
    for i in range(40):
        uid = str(i % 7 + 1)
        lines.append(event(uid, ["login", "view", "purchase"][i % 3], f"e{i}"))
        if i % 5 == 0:
            lines.append(event(uid, "login", f"e{i}"))   # duplicate id
        if i % 4 == 0:
            lines.append(attributes(uid, {"plan": f"p{i}", "seats": i}, 1000 - i))
        if i % 9 == 0:
            lines.append(attributes(uid, {"plan": f"late{i}"}, 2000 + i))
        if i % 11 == 0:
            lines.append("{not json")
        if i % 13 == 0:
            lines.append(event("", "login", f"anon{i}"))
    lines.append(event("10", "login", "z1"))
    lines.append(event("2", "logout", "z2"))
    return lines
