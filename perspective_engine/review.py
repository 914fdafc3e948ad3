"""Project review scheduling."""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime, timezone, tzinfo
from typing import TYPE_CHECKING, Optional

from perspective_engine.clock import Clock, end_of_local_day, ensure_aware, utcnow
from perspective_engine.errors import NotFoundError
from perspective_engine.intervals import add_interval, parse_interval
from perspective_engine.schema import ACTIVE, Project

if TYPE_CHECKING:
    from perspective_engine.store import EntityStore

logger = logging.getLogger(__name__)


def is_due_for_review(project: Project, now: datetime, tz: tzinfo = timezone.utc) -> bool:
    """Active projects with an interval whose next review is unset or on/before today."""

    if project.status != ACTIVE or not project.review_interval:
        return False
    next_review = ensure_aware(project.next_review_at)
    return next_review is None or next_review <= end_of_local_day(now, tz)


def next_review_after(project: Project, reviewed_at: datetime) -> Optional[datetime]:
    if not project.review_interval:
        return None
    try:
        interval = parse_interval(project.review_interval)
    except ValueError:
        logger.warning("Project %s has invalid review interval %r", project.id, project.review_interval)
        return None
    return add_interval(ensure_aware(reviewed_at), interval)


def mark_reviewed(project: Project, now: datetime) -> Project:
    """Return a copy of ``project`` reviewed at ``now``."""

    return replace(
        project,
        last_reviewed_at=ensure_aware(now),
        next_review_at=next_review_after(project, now),
    )


def mark_project_reviewed(store: EntityStore, project_id: str, clock: Clock = utcnow) -> Project:
    """Mark a stored project reviewed and persist the new review timestamps."""

    project = store.get_project(project_id)
    if project is None:
        raise NotFoundError("project", project_id)
    reviewed = mark_reviewed(project, clock())
    store.save_project(reviewed)
    logger.info("Project %s reviewed, next review at %s", project_id, reviewed.next_review_at)
    return reviewed
