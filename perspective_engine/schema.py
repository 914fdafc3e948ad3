"""Core data schema for actions, projects, tags and perspectives."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, time
from typing import Any, Optional

ACTIVE = "active"
COMPLETED = "completed"
DROPPED = "dropped"
ON_HOLD = "on_hold"

ACTION_STATUSES = (ACTIVE, COMPLETED, DROPPED)
PROJECT_STATUSES = (ACTIVE, ON_HOLD, COMPLETED, DROPPED)
TERMINAL_STATUSES = frozenset({COMPLETED, DROPPED})

SEQUENTIAL = "sequential"
PARALLEL = "parallel"
SINGLE_ACTION = "single_action"

PROJECT_TYPES = (SEQUENTIAL, PARALLEL, SINGLE_ACTION)

REPEAT_MODES = ("fixed", "defer_another", "due_again")


@dataclass
class Action:
    """A single task, optionally owned by a project and nested under a parent."""

    id: str
    title: str
    status: str = ACTIVE
    position: int = 0
    due_date: Optional[datetime] = None
    defer_date: Optional[datetime] = None
    flagged: bool = False
    estimated_minutes: Optional[int] = None
    parent_id: Optional[str] = None
    project_id: Optional[str] = None
    tag_ids: list[str] = field(default_factory=list)
    note: Optional[str] = None

    repeat_mode: Optional[str] = None
    repeat_interval: Optional[str] = None
    repeat_end_date: Optional[datetime] = None
    repeat_end_count: Optional[int] = None
    repeat_count: int = 0

    @property
    def is_inbox(self) -> bool:
        return self.project_id is None


@dataclass
class Project:
    """A container of actions with a sequencing mode and lifecycle status."""

    id: str
    name: str
    type: str = PARALLEL
    status: str = ACTIVE
    review_interval: Optional[str] = None
    next_review_at: Optional[datetime] = None
    last_reviewed_at: Optional[datetime] = None


@dataclass
class Tag:
    """A label, optionally restricted to a daily time-of-day window."""

    id: str
    name: str
    parent_id: Optional[str] = None
    available_from: Optional[time] = None
    available_until: Optional[time] = None

    @property
    def has_window(self) -> bool:
        return self.available_from is not None and self.available_until is not None


@dataclass
class BlockingEdge:
    """Directed dependency: ``blocked_id`` waits on ``blocking_id``.

    ``blocking_status`` is ``None`` when the blocking action cannot be resolved.
    """

    blocked_id: str
    blocking_id: str
    blocking_status: Optional[str] = None


@dataclass
class FilterRule:
    field: str
    operator: str
    value: Any = None


@dataclass
class SortRule:
    field: str
    direction: str = "asc"


@dataclass
class Perspective:
    """A saved, named filter + sort configuration over actions or projects."""

    id: str
    name: str
    slug: Optional[str] = None
    is_built_in: bool = False
    filter_rules: list[FilterRule] = field(default_factory=list)
    sort_rules: list[SortRule] = field(default_factory=list)
