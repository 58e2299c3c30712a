"""Tests for the report formatter."""

from user_rollup.models import UserStat
from user_rollup.report import format_user_line, format_value, render_report, write_report


class TestFormatValue:
    def test_string_as_is(self):
        assert format_value("gold") == "gold"

    def test_scalars(self):
        assert format_value(5) == "5"
        assert format_value(2.5) == "2.5"
        assert format_value(True) == "true"
        assert format_value(None) == "null"

    def test_nested_is_compact_json(self):
        assert format_value({"b": 1, "a": [1, 2]}) == '{"a":[1,2],"b":1}'


class TestFormatUserLine:
    def test_attributes_before_events_sorted(self):
        stat = UserStat(events={"view": 2, "login": 5},
                        attributes={"plan": "gold", "country": "NZ"})
        assert format_user_line(7, stat) == "7,country=NZ,plan=gold,login=5,view=2"

    def test_events_only(self):
        assert format_user_line(1, UserStat(events={"a": 1})) == "1,a=1"

    def test_no_fields(self):
        assert format_user_line(3, UserStat()) == "3"


class TestRenderReport:
    def test_one_line_per_user_in_given_order(self):
        users = {
            1: UserStat(events={"a": 1}),
            10: UserStat(attributes={"x": "y"}),
            2: UserStat(events={"b": 3}),
        }
        assert render_report(users, [1, 2, 10]) == "1,a=1\n2,b=3\n10,x=y\n"

    def test_empty(self):
        assert render_report({}, []) == ""

    def test_write_report_replaces_existing(self, tmp_path):
        out = tmp_path / "out.log"
        out.write_text("stale\n")
        write_report(str(out), {4: UserStat(events={"a": 1})}, [4])
        assert out.read_text() == "4,a=1\n"
        assert sorted(p.name for p in tmp_path.iterdir()) == ["out.log"]
