"""JSON adapter that loads an entity snapshot into an in-memory store."""

from __future__ import annotations

import json
from datetime import datetime, time
from typing import Any, Optional

from perspective_engine.clock import ensure_aware
from perspective_engine.schema import (
    ACTION_STATUSES,
    PROJECT_STATUSES,
    PROJECT_TYPES,
    REPEAT_MODES,
    Action,
    FilterRule,
    Perspective,
    Project,
    SortRule,
    Tag,
)
from perspective_engine.store import InMemoryStore

_REQUIRED_ACTION_FIELDS = {"id", "title"}
_REQUIRED_PROJECT_FIELDS = {"id", "name"}
_REQUIRED_TAG_FIELDS = {"id", "name"}
_REQUIRED_PERSPECTIVE_FIELDS = {"id", "name"}


def _require(item: Any, required: set[str], label: str) -> None:
    if not isinstance(item, dict):
        raise ValueError(f"{label}: expected an object")
    missing = sorted(field for field in required if item.get(field) in (None, ""))
    if missing:
        raise ValueError(f"{label}: missing required fields {missing}")


def _instant(item: dict, key: str, label: str) -> Optional[datetime]:
    raw = item.get(key)
    if raw in (None, ""):
        return None
    try:
        return ensure_aware(datetime.fromisoformat(str(raw).replace("Z", "+00:00")))
    except ValueError as exc:
        raise ValueError(f"{label}: malformed {key}") from exc


def _time_of_day(item: dict, key: str, label: str) -> Optional[time]:
    raw = item.get(key)
    if raw in (None, ""):
        return None
    try:
        return time.fromisoformat(str(raw))
    except ValueError as exc:
        raise ValueError(f"{label}: malformed {key}") from exc


def _choice(item: dict, key: str, choices: tuple[str, ...], default: Optional[str], label: str) -> Optional[str]:
    value = item.get(key, default)
    if value is None:
        return None
    value = str(value).strip()
    if value not in choices:
        raise ValueError(f"{label}: invalid {key} '{value}'")
    return value


def _optional_int(item: dict, key: str, label: str) -> Optional[int]:
    raw = item.get(key)
    if raw is None:
        return None
    try:
        return int(raw)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"{label}: invalid {key}") from exc


def _parse_action(item: Any, index: int) -> tuple[Action, list[str]]:
    label = f"Action {index}"
    _require(item, _REQUIRED_ACTION_FIELDS, label)

    action = Action(
        id=str(item["id"]),
        title=str(item["title"]),
        status=_choice(item, "status", ACTION_STATUSES, "active", label),
        position=_optional_int(item, "position", label) or 0,
        due_date=_instant(item, "dueDate", label),
        defer_date=_instant(item, "deferDate", label),
        flagged=bool(item.get("flagged", False)),
        estimated_minutes=_optional_int(item, "estimatedMinutes", label),
        parent_id=item.get("parentId"),
        project_id=item.get("projectId"),
        tag_ids=[str(tag_id) for tag_id in item.get("tagIds", [])],
        note=item.get("note"),
        repeat_mode=_choice(item, "repeatMode", REPEAT_MODES, None, label),
        repeat_interval=item.get("repeatInterval"),
        repeat_end_date=_instant(item, "repeatEndDate", label),
        repeat_end_count=_optional_int(item, "repeatEndCount", label),
        repeat_count=_optional_int(item, "repeatCount", label) or 0,
    )
    return action, [str(blocking_id) for blocking_id in item.get("blockedBy", [])]


def _parse_project(item: Any, index: int) -> Project:
    label = f"Project {index}"
    _require(item, _REQUIRED_PROJECT_FIELDS, label)
    return Project(
        id=str(item["id"]),
        name=str(item["name"]),
        type=_choice(item, "type", PROJECT_TYPES, "parallel", label),
        status=_choice(item, "status", PROJECT_STATUSES, "active", label),
        review_interval=item.get("reviewInterval"),
        next_review_at=_instant(item, "nextReviewAt", label),
        last_reviewed_at=_instant(item, "lastReviewedAt", label),
    )


def _parse_tag(item: Any, index: int) -> Tag:
    label = f"Tag {index}"
    _require(item, _REQUIRED_TAG_FIELDS, label)
    return Tag(
        id=str(item["id"]),
        name=str(item["name"]),
        parent_id=item.get("parentId"),
        available_from=_time_of_day(item, "availableFrom", label),
        available_until=_time_of_day(item, "availableUntil", label),
    )


def _parse_perspective(item: Any, index: int) -> Perspective:
    label = f"Perspective {index}"
    _require(item, _REQUIRED_PERSPECTIVE_FIELDS, label)

    # Rule contents are validated at query time so bad rules degrade gracefully
    filter_rules = [
        FilterRule(field=rule.get("field"), operator=rule.get("operator"), value=rule.get("value"))
        if isinstance(rule, dict)
        else rule
        for rule in item.get("filterRules") or []
    ]
    sort_rules = [
        SortRule(field=rule.get("field"), direction=rule.get("direction") or "asc")
        if isinstance(rule, dict)
        else rule
        for rule in item.get("sortRules") or []
    ]
    return Perspective(
        id=str(item["id"]),
        name=str(item["name"]),
        slug=item.get("slug"),
        is_built_in=bool(item.get("isBuiltIn", False)),
        filter_rules=filter_rules,
        sort_rules=sort_rules,
    )


def _section(payload: dict, key: str) -> list:
    items = payload.get(key, [])
    if not isinstance(items, list):
        raise ValueError(f"'{key}' must be a list of objects")
    return items


def load_snapshot(payload: Any) -> InMemoryStore:
    """Build a store from a decoded snapshot object."""

    if not isinstance(payload, dict):
        raise ValueError("JSON payload must be an object")

    store = InMemoryStore(
        projects=[_parse_project(item, i) for i, item in enumerate(_section(payload, "projects"), start=1)],
        tags=[_parse_tag(item, i) for i, item in enumerate(_section(payload, "tags"), start=1)],
        perspectives=[
            _parse_perspective(item, i) for i, item in enumerate(_section(payload, "perspectives"), start=1)
        ],
    )
    for i, item in enumerate(_section(payload, "actions"), start=1):
        action, blocked_by = _parse_action(item, i)
        store.add_action(action)
        for blocking_id in blocked_by:
            store.block(action.id, blocking_id)
    return store


def parse(file_path: str) -> InMemoryStore:
    """Parse a JSON snapshot file into an in-memory store."""

    with open(file_path, encoding="utf-8") as handle:
        payload = json.load(handle)

    return load_snapshot(payload)
