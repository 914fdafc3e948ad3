"""Availability evaluation for a single action."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, time, timezone, tzinfo
from typing import Optional

from perspective_engine.clock import ensure_aware, local_time_of_day
from perspective_engine.schema import ACTIVE, TERMINAL_STATUSES, Action, Project, Tag


@dataclass
class EvaluationContext:
    """Everything the evaluator needs to know about one action's surroundings.

    ``blocker_statuses`` holds the status of each direct blocking action, with
    ``None`` for a blocking reference that could not be resolved.
    """

    now: datetime
    project: Optional[Project] = None
    tags: list[Tag] = field(default_factory=list)
    blocker_statuses: list[Optional[str]] = field(default_factory=list)
    tz: tzinfo = timezone.utc


def in_window(tag: Tag, moment: time) -> bool:
    """Return True when ``moment`` falls inside the tag's daily window.

    The window includes ``available_from`` and excludes ``available_until``.
    A start later than the end wraps past midnight; equal bounds span the day.
    """

    start, end = tag.available_from, tag.available_until
    if start is None or end is None:
        return True
    if start == end:
        return True
    if start < end:
        return start <= moment < end
    return moment >= start or moment < end


def unavailable_reasons(action: Action, context: EvaluationContext) -> list[str]:
    """Return the names of every gate that keeps ``action`` from being available."""

    reasons: list[str] = []

    if action.status != ACTIVE:
        reasons.append("status")

    # An unresolved project imposes no constraint
    project = context.project
    if action.project_id is not None and project is not None and project.status != ACTIVE:
        reasons.append("project")

    defer_date = ensure_aware(action.defer_date)
    if defer_date is not None and defer_date > ensure_aware(context.now):
        reasons.append("deferred")

    # Direct edges only; the blocking graph is never walked
    if any(status is not None and status not in TERMINAL_STATUSES for status in context.blocker_statuses):
        reasons.append("blocked")

    windows = [tag for tag in context.tags if tag.has_window]
    if windows:
        moment = local_time_of_day(context.now, context.tz)
        if not any(in_window(tag, moment) for tag in windows):
            reasons.append("tag_window")

    return reasons


def is_available(action: Action, context: EvaluationContext) -> bool:
    """Decide whether ``action`` can be worked on at ``context.now``."""

    return not unavailable_reasons(action, context)
