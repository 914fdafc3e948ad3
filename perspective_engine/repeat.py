"""Next-occurrence calculation for repeating actions."""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime
from typing import Optional

from perspective_engine.clock import ensure_aware
from perspective_engine.intervals import add_interval, parse_interval
from perspective_engine.schema import ACTIVE, Action


def next_occurrence(action: Action, completed_at: datetime, new_id: Optional[str] = None) -> Optional[Action]:
    """Build the next instance of a repeating action completed at ``completed_at``.

    ``fixed`` shifts the original dates by the interval. ``defer_another`` and
    ``due_again`` restart from the completion instant and keep the gap between
    the defer and due dates. Returns ``None`` when the action does not repeat or
    its end count or end date has been reached.
    """

    if not action.repeat_mode or not action.repeat_interval:
        return None
    if action.repeat_end_count is not None and action.repeat_count >= action.repeat_end_count:
        return None

    completed_at = ensure_aware(completed_at)
    end_date = ensure_aware(action.repeat_end_date)
    if end_date is not None and completed_at > end_date:
        return None

    interval = parse_interval(action.repeat_interval)
    defer_date = ensure_aware(action.defer_date)
    due_date = ensure_aware(action.due_date)
    new_defer: Optional[datetime] = None
    new_due: Optional[datetime] = None

    if action.repeat_mode == "fixed":
        new_defer = add_interval(defer_date, interval) if defer_date else None
        new_due = add_interval(due_date, interval) if due_date else None
    elif action.repeat_mode == "defer_another":
        new_defer = add_interval(completed_at, interval)
        if defer_date and due_date:
            new_due = new_defer + (due_date - defer_date)
    elif action.repeat_mode == "due_again":
        new_due = add_interval(completed_at, interval)
        if defer_date and due_date:
            new_defer = new_due - (due_date - defer_date)
    else:
        raise ValueError(f"Unknown repeat mode: {action.repeat_mode!r}")

    return replace(
        action,
        id=new_id or f"{action.id}#{action.repeat_count + 1}",
        status=ACTIVE,
        defer_date=new_defer,
        due_date=new_due,
        repeat_count=action.repeat_count + 1,
        tag_ids=list(action.tag_ids),
    )
