"""Declarative filter and sort rules for perspectives.

Every supported ``(field, operator)`` pair is registered in ``_FILTERS`` with a
factory that validates the rule value and returns a predicate. Anything outside
the registry compiles to an ``UnrecognizedRule``, which is logged, reported on
the query context and otherwise ignored.
"""

from __future__ import annotations

import logging
import re
from dataclasses import asdict, dataclass, is_dataclass
from datetime import date, datetime, timedelta
from typing import Any, Callable, Optional, Union

from perspective_engine.clock import end_of_local_day, ensure_aware, start_of_local_day
from perspective_engine.context import QueryContext
from perspective_engine.intervals import add_interval, parse_interval
from perspective_engine.schema import ACTION_STATUSES, Action, Perspective

logger = logging.getLogger(__name__)

Predicate = Callable[[Action, QueryContext], bool]
PredicateFactory = Callable[[Any, QueryContext], Predicate]

_SIGNED_INTERVAL_RE = re.compile(r"^([+-]?)(\d+[dwmy])$")


@dataclass(frozen=True)
class FieldRule:
    """A recognised filter rule bound to its predicate."""

    field: str
    operator: str
    value: Any
    predicate: Predicate

    def matches(self, action: Action, ctx: QueryContext) -> bool:
        return self.predicate(action, ctx)


@dataclass(frozen=True)
class SortKey:
    field: str
    direction: str
    key: Callable[[Action], Any]


@dataclass(frozen=True)
class UnrecognizedRule:
    """A stored rule the engine cannot interpret; evaluation skips it."""

    raw: Any
    reason: str


CompiledFilter = Union[FieldRule, UnrecognizedRule]
CompiledSort = Union[SortKey, UnrecognizedRule]


def _as_mapping(raw: Any) -> dict:
    if is_dataclass(raw) and not isinstance(raw, type):
        return asdict(raw)
    if isinstance(raw, dict):
        return raw
    raise ValueError("rule must be an object")


def _as_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)) and value in (0, 1):
        return bool(value)
    if isinstance(value, str) and value.strip().lower() in ("true", "false"):
        return value.strip().lower() == "true"
    raise ValueError(f"expected a boolean, got {value!r}")


def _as_text(value: Any) -> str:
    if not isinstance(value, str) or not value:
        raise ValueError(f"expected a non-empty string, got {value!r}")
    return value


def _as_number(value: Any) -> float:
    if isinstance(value, bool):
        raise ValueError(f"expected a number, got {value!r}")
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"expected a number, got {value!r}") from exc


def resolve_date_bounds(value: Any, ctx: QueryContext) -> tuple[datetime, datetime]:
    """Resolve a rule value into an inclusive ``(start, end)`` instant range.

    Instants resolve to a zero-width range. Dates and day-relative tokens
    (``today``, ``tomorrow``, ``yesterday``, ``3d``, ``-1w``) cover a whole
    local day. ``now`` is the query instant.
    """

    if isinstance(value, datetime):
        instant = ensure_aware(value)
        return instant, instant
    if isinstance(value, date):
        day = datetime(value.year, value.month, value.day, tzinfo=ctx.tz)
        return start_of_local_day(day, ctx.tz), end_of_local_day(day, ctx.tz)
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"expected a date, got {value!r}")

    text = value.strip()
    token = text.lower()
    if token == "now":
        return ctx.now, ctx.now

    offsets = {"yesterday": -1, "today": 0, "tomorrow": 1}
    if token in offsets:
        anchor = ctx.now + timedelta(days=offsets[token])
        return start_of_local_day(anchor, ctx.tz), end_of_local_day(anchor, ctx.tz)

    match = _SIGNED_INTERVAL_RE.match(token)
    if match:
        interval = parse_interval(match.group(2))
        local_now = ensure_aware(ctx.now).astimezone(ctx.tz)
        if match.group(1) == "-":
            anchor = local_now - (add_interval(local_now, interval) - local_now)
        else:
            anchor = add_interval(local_now, interval)
        return start_of_local_day(anchor, ctx.tz), end_of_local_day(anchor, ctx.tz)

    if len(text) == 10:
        return resolve_date_bounds(date.fromisoformat(text), ctx)
    instant = ensure_aware(datetime.fromisoformat(text.replace("Z", "+00:00")))
    return instant, instant


def _bool_rule(getter: Callable[[Action, QueryContext], bool], negate: bool = False) -> PredicateFactory:
    def factory(value: Any, ctx: QueryContext) -> Predicate:
        expected = _as_bool(value) != negate
        return lambda action, c: getter(action, c) == expected

    return factory


def _equality_rule(getter: Callable[[Action], Any], negate: bool = False, choices=None) -> PredicateFactory:
    def factory(value: Any, ctx: QueryContext) -> Predicate:
        expected = _as_text(value)
        if choices is not None and expected not in choices:
            raise ValueError(f"unsupported value {expected!r}")
        return lambda action, c: (getter(action) == expected) != negate

    return factory


def _null_rule(getter: Callable[[Action], Any], is_null: bool) -> PredicateFactory:
    def factory(value: Any, ctx: QueryContext) -> Predicate:
        return lambda action, c: (getter(action) is None) == is_null

    return factory


def _date_rule(getter: Callable[[Action], Optional[datetime]], operator: str, missing: bool) -> PredicateFactory:
    """Compare a date field; ``missing`` is the answer when the field is unset."""

    def factory(value: Any, ctx: QueryContext) -> Predicate:
        start, end = resolve_date_bounds(value, ctx)
        tests = {
            "lt": lambda instant: instant < start,
            "lte": lambda instant: instant <= end,
            "gt": lambda instant: instant > end,
            "gte": lambda instant: instant >= start,
            "eq": lambda instant: start <= instant <= end,
        }
        test = tests[operator]

        def predicate(action: Action, c: QueryContext) -> bool:
            instant = ensure_aware(getter(action))
            return missing if instant is None else test(instant)

        return predicate

    return factory


def _number_rule(getter: Callable[[Action], Optional[float]], operator: str) -> PredicateFactory:
    tests = {
        "eq": lambda left, right: left == right,
        "neq": lambda left, right: left != right,
        "lt": lambda left, right: left < right,
        "lte": lambda left, right: left <= right,
        "gt": lambda left, right: left > right,
        "gte": lambda left, right: left >= right,
    }

    def factory(value: Any, ctx: QueryContext) -> Predicate:
        expected = _as_number(value)
        test = tests[operator]
        return lambda action, c: getter(action) is not None and test(getter(action), expected)

    return factory


def _tag_rule(has: bool) -> PredicateFactory:
    def factory(value: Any, ctx: QueryContext) -> Predicate:
        tag_id = _as_text(value)
        return lambda action, c: (tag_id in action.tag_ids) == has

    return factory


def _title_rule(operator: str) -> PredicateFactory:
    def factory(value: Any, ctx: QueryContext) -> Predicate:
        needle = _as_text(value).casefold()
        if operator == "contains":
            return lambda action, c: needle in action.title.casefold()
        return lambda action, c: action.title.casefold() == needle

    return factory


def _build_filters() -> dict[tuple[str, str], PredicateFactory]:
    filters: dict[tuple[str, str], PredicateFactory] = {}

    booleans = {
        "isInbox": lambda action, ctx: action.project_id is None,
        "isAvailable": lambda action, ctx: ctx.is_available(action),
        "flagged": lambda action, ctx: action.flagged,
        "hasTags": lambda action, ctx: bool(action.tag_ids),
    }
    for name, getter in booleans.items():
        filters[(name, "eq")] = _bool_rule(getter)
        filters[(name, "neq")] = _bool_rule(getter, negate=True)

    references = {
        "status": (lambda action: action.status, ACTION_STATUSES),
        "projectId": (lambda action: action.project_id, None),
        "parentId": (lambda action: action.parent_id, None),
    }
    for name, (getter, choices) in references.items():
        filters[(name, "eq")] = _equality_rule(getter, choices=choices)
        filters[(name, "neq")] = _equality_rule(getter, negate=True, choices=choices)
        if choices is None:
            filters[(name, "isNull")] = _null_rule(getter, is_null=True)
            filters[(name, "isNotNull")] = _null_rule(getter, is_null=False)

    filters[("tagId", "eq")] = _tag_rule(has=True)
    filters[("tagId", "contains")] = _tag_rule(has=True)
    filters[("tagId", "neq")] = _tag_rule(has=False)

    # An unset defer date counts as already passed
    dates = {
        "dueDate": (lambda action: action.due_date, {}),
        "deferDate": (lambda action: action.defer_date, {"lt": True, "lte": True}),
    }
    for name, (getter, missing) in dates.items():
        for operator in ("lt", "lte", "gt", "gte", "eq"):
            filters[(name, operator)] = _date_rule(getter, operator, missing.get(operator, False))
        filters[(name, "isNull")] = _null_rule(getter, is_null=True)
        filters[(name, "isNotNull")] = _null_rule(getter, is_null=False)

    minutes = lambda action: action.estimated_minutes  # noqa: E731
    for operator in ("eq", "neq", "lt", "lte", "gt", "gte"):
        filters[("estimatedMinutes", operator)] = _number_rule(minutes, operator)
    filters[("estimatedMinutes", "isNull")] = _null_rule(minutes, is_null=True)
    filters[("estimatedMinutes", "isNotNull")] = _null_rule(minutes, is_null=False)

    filters[("title", "eq")] = _title_rule("eq")
    filters[("title", "contains")] = _title_rule("contains")
    return filters


_FILTERS = _build_filters()

FILTER_FIELDS = frozenset(field_name for field_name, _ in _FILTERS)

_SORT_KEYS: dict[str, Callable[[Action], Any]] = {
    "position": lambda action: action.position,
    "title": lambda action: action.title.casefold(),
    "dueDate": lambda action: ensure_aware(action.due_date),
    "deferDate": lambda action: ensure_aware(action.defer_date),
    "flagged": lambda action: action.flagged,
    "estimatedMinutes": lambda action: action.estimated_minutes,
    "status": lambda action: action.status,
    "projectId": lambda action: action.project_id,
}

DEFAULT_SORT = (SortKey("position", "asc", _SORT_KEYS["position"]),)


def is_status_rule(raw: Any) -> bool:
    """True when ``raw`` is a well-formed filter on action status."""

    try:
        rule = _as_mapping(raw)
    except ValueError:
        return False
    operator, value = rule.get("operator"), rule.get("value")
    if rule.get("field") != "status" or not isinstance(operator, str) or ("status", operator) not in _FILTERS:
        return False
    return isinstance(value, str) and value in ACTION_STATUSES


def compile_filter_rule(raw: Any, ctx: QueryContext, source: str = "?") -> CompiledFilter:
    """Compile one stored filter rule, never raising for bad rule data."""

    try:
        rule = _as_mapping(raw)
        field_name, operator = rule.get("field"), rule.get("operator")
        if not isinstance(field_name, str) or not isinstance(operator, str):
            raise ValueError("rule field and operator must be strings")
        factory = _FILTERS.get((field_name, operator))
        if factory is None:
            if field_name not in FILTER_FIELDS:
                raise ValueError(f"unknown field {field_name!r}")
            raise ValueError(f"unsupported operator {operator!r} for field {field_name!r}")
        value = rule.get("value")
        return FieldRule(field_name, operator, value, factory(value, ctx))
    except (ValueError, OverflowError) as exc:
        logger.warning("Skipping filter rule %r on perspective %s: %s", raw, source, exc)
        ctx.report_skipped(source, raw, str(exc))
        return UnrecognizedRule(raw=raw, reason=str(exc))


def compile_sort_rule(raw: Any, ctx: QueryContext, source: str = "?") -> CompiledSort:
    """Compile one stored sort rule, never raising for bad rule data."""

    try:
        rule = _as_mapping(raw)
        field_name = rule.get("field")
        direction = str(rule.get("direction") or "asc").lower()
        if not isinstance(field_name, str):
            raise ValueError("sort field must be a string")
        if field_name not in _SORT_KEYS:
            raise ValueError(f"unknown sort field {field_name!r}")
        if direction not in ("asc", "desc"):
            raise ValueError(f"unknown sort direction {direction!r}")
        return SortKey(field_name, direction, _SORT_KEYS[field_name])
    except ValueError as exc:
        logger.warning("Skipping sort rule %r on perspective %s: %s", raw, source, exc)
        ctx.report_skipped(source, raw, str(exc))
        return UnrecognizedRule(raw=raw, reason=str(exc))


def apply_filters(actions: list[Action], rules: list[CompiledFilter], ctx: QueryContext) -> list[Action]:
    """Keep actions matching every recognised rule."""

    active_rules = [rule for rule in rules if isinstance(rule, FieldRule)]
    return [action for action in actions if all(rule.matches(action, ctx) for rule in active_rules)]


def apply_sorts(actions: list[Action], sorts: list[CompiledSort]) -> list[Action]:
    """Stable multi-key sort; the first key is primary and unset values go last."""

    keys = [sort for sort in sorts if isinstance(sort, SortKey)] or list(DEFAULT_SORT)
    ordered = list(actions)
    for sort in reversed(keys):
        descending = sort.direction == "desc"

        def key(action: Action, getter=sort.key, descending=descending):
            value = getter(action)
            if value is None:
                return (0, 0) if descending else (1, 0)
            return (1, value) if descending else (0, value)

        ordered.sort(key=key, reverse=descending)
    return ordered


def evaluate(perspective: Perspective, candidates: list[Action], ctx: QueryContext) -> list[Action]:
    """Filter ``candidates`` by the perspective's rules, then order them."""

    filters = [compile_filter_rule(rule, ctx, perspective.id) for rule in perspective.filter_rules]
    sorts = [compile_sort_rule(rule, ctx, perspective.id) for rule in perspective.sort_rules]
    return apply_sorts(apply_filters(candidates, filters, ctx), sorts)
