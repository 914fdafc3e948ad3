from datetime import datetime, timedelta, timezone

import pytest

from perspective_engine.context import QueryContext
from perspective_engine.rules import (
    FieldRule,
    UnrecognizedRule,
    apply_sorts,
    compile_filter_rule,
    compile_sort_rule,
    evaluate,
    is_status_rule,
    resolve_date_bounds,
)
from perspective_engine.schema import SEQUENTIAL, Action, FilterRule, Perspective, Project, SortRule
from perspective_engine.store import InMemoryStore

NOW = datetime(2025, 1, 6, 12, 0, tzinfo=timezone.utc)


def sample_actions():
    return [
        Action("a", "Write report", position=2, flagged=True, due_date=NOW + timedelta(days=2), tag_ids=["work"]),
        Action("b", "buy milk", position=0, estimated_minutes=10, tag_ids=["errands"]),
        Action("c", "Call Alice", position=1, flagged=True, due_date=NOW - timedelta(days=1), estimated_minutes=30),
        Action("d", "Plan trip", position=3, defer_date=NOW + timedelta(days=5), project_id="p"),
    ]


def make_ctx(actions=None, projects=()):
    store = InMemoryStore(actions=actions or sample_actions(), projects=projects)
    return QueryContext(store, now=NOW)


def run(filter_rules, sort_rules=(), actions=None):
    actions = actions or sample_actions()
    ctx = make_ctx(actions)
    perspective = Perspective("custom", "Custom", filter_rules=list(filter_rules), sort_rules=list(sort_rules))
    return [action.id for action in evaluate(perspective, actions, ctx)], ctx


def test_rules_are_anded():
    result, _ = run([FilterRule("flagged", "eq", True), FilterRule("dueDate", "lte", "today")])
    assert result == ["c"]


def test_unknown_field_is_skipped_and_reported():
    good, _ = run([FilterRule("flagged", "eq", True)])
    mixed, ctx = run([FilterRule("flagged", "eq", True), FilterRule("colour", "eq", "red")])
    assert mixed == good
    assert len(ctx.skipped_rules) == 1
    assert "unknown field" in ctx.skipped_rules[0]["reason"]


def test_unknown_operator_and_bad_value_are_skipped():
    ctx = make_ctx()
    assert isinstance(compile_filter_rule(FilterRule("flagged", "between", 1), ctx), UnrecognizedRule)
    assert isinstance(compile_filter_rule(FilterRule("dueDate", "lte", "someday"), ctx), UnrecognizedRule)
    assert isinstance(compile_filter_rule(FilterRule("status", "eq", "paused"), ctx), UnrecognizedRule)
    assert isinstance(compile_filter_rule("not a rule", ctx), UnrecognizedRule)
    assert len(ctx.skipped_rules) == 4


def test_out_of_range_relative_dates_are_skipped():
    ctx = make_ctx()
    for value in ("9999999d", "9999999w", "-9999999d"):
        assert isinstance(compile_filter_rule(FilterRule("dueDate", "lte", value), ctx), UnrecognizedRule)
    assert len(ctx.skipped_rules) == 3


def test_boolean_rule_without_value_is_skipped():
    result, ctx = run([{"field": "flagged", "operator": "eq"}])
    assert sorted(result) == ["a", "b", "c", "d"]
    assert "expected a boolean" in ctx.skipped_rules[0]["reason"]


def test_is_status_rule():
    assert is_status_rule(FilterRule("status", "eq", "completed"))
    assert is_status_rule({"field": "status", "operator": "neq", "value": "active"})
    assert not is_status_rule(FilterRule("status", "eq", "paused"))
    assert not is_status_rule(FilterRule("status", "bogus", "active"))
    assert not is_status_rule(FilterRule("flagged", "eq", True))
    assert not is_status_rule(["status", "eq", "active"])


def test_plain_dict_rules_are_accepted():
    ctx = make_ctx()
    assert isinstance(compile_filter_rule({"field": "flagged", "operator": "eq", "value": "true"}, ctx), FieldRule)


def test_inbox_rule():
    result, _ = run([FilterRule("isInbox", "eq", True)])
    assert "d" not in result
    result, _ = run([FilterRule("isInbox", "neq", True)])
    assert result == ["d"]


def test_tag_rules():
    assert run([FilterRule("tagId", "eq", "work")])[0] == ["a"]
    assert run([FilterRule("tagId", "neq", "work")])[0] == ["b", "c", "d"]
    assert run([FilterRule("hasTags", "eq", False)])[0] == ["c", "d"]


def test_due_range_with_relative_tokens():
    assert run([FilterRule("dueDate", "lte", "3d")])[0] == ["c", "a"]
    assert run([FilterRule("dueDate", "gte", "today")])[0] == ["a"]
    assert run([FilterRule("dueDate", "isNull")])[0] == ["b", "d"]


def test_unset_defer_date_counts_as_passed():
    assert run([FilterRule("deferDate", "lte", "now")])[0] == ["b", "c", "a"]


def test_title_and_minutes_rules():
    assert run([FilterRule("title", "contains", "MILK")])[0] == ["b"]
    assert run([FilterRule("estimatedMinutes", "lte", 15)])[0] == ["b"]
    assert run([FilterRule("estimatedMinutes", "lte", "lots")])[0] == ["b", "c", "a", "d"]


def test_is_available_rule_applies_sequencing():
    actions = [
        Action("1", "First", position=0, project_id="p"),
        Action("2", "Second", position=1, project_id="p"),
    ]
    ctx = make_ctx(actions, projects=[Project("p", "Project", type=SEQUENTIAL)])
    perspective = Perspective("custom", "Custom", filter_rules=[FilterRule("isAvailable", "eq", True)])
    assert [action.id for action in evaluate(perspective, actions, ctx)] == ["1"]


def test_default_sort_is_position():
    assert run([])[0] == ["b", "c", "a", "d"]


def test_multi_key_sort():
    result, _ = run([], [SortRule("flagged", "desc"), SortRule("title", "asc")])
    assert result == ["c", "a", "b", "d"]


def test_missing_values_sort_last_in_both_directions():
    assert run([], [SortRule("dueDate", "asc")])[0] == ["c", "a", "b", "d"]
    assert run([], [SortRule("dueDate", "desc")])[0] == ["a", "c", "b", "d"]


def test_sort_is_stable_for_equal_keys():
    actions = [Action("x", "Same"), Action("y", "Same"), Action("z", "Same")]
    assert [a.id for a in apply_sorts(actions, [compile_sort_rule(SortRule("title", "desc"), make_ctx())])] == [
        "x",
        "y",
        "z",
    ]


def test_bad_sort_rules_are_skipped():
    ctx = make_ctx()
    assert isinstance(compile_sort_rule(SortRule("mood", "asc"), ctx), UnrecognizedRule)
    assert isinstance(compile_sort_rule(SortRule("title", "sideways"), ctx), UnrecognizedRule)
    result, _ = run([], [SortRule("mood", "asc")])
    assert result == ["b", "c", "a", "d"]


@pytest.mark.parametrize(
    "value, start, end",
    [
        ("now", NOW, NOW),
        ("2025-01-10", datetime(2025, 1, 10, tzinfo=timezone.utc), datetime(2025, 1, 10, 23, 59, 59, 999999, tzinfo=timezone.utc)),
        ("2025-01-10T08:30:00Z", datetime(2025, 1, 10, 8, 30, tzinfo=timezone.utc), datetime(2025, 1, 10, 8, 30, tzinfo=timezone.utc)),
        ("1w", datetime(2025, 1, 13, tzinfo=timezone.utc), datetime(2025, 1, 13, 23, 59, 59, 999999, tzinfo=timezone.utc)),
        ("-1d", datetime(2025, 1, 5, tzinfo=timezone.utc), datetime(2025, 1, 5, 23, 59, 59, 999999, tzinfo=timezone.utc)),
    ],
)
def test_resolve_date_bounds(value, start, end):
    assert resolve_date_bounds(value, make_ctx()) == (start, end)
