"""Built-in perspectives and the pipelines every perspective runs through.

Built-ins and custom perspectives share one execution path: a ``Pipeline``
names where candidates come from and which implicit rules run ahead of the
perspective's stored rules.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any

from perspective_engine.rules import is_status_rule
from perspective_engine.schema import ACTIVE, FilterRule, Perspective, SortRule

ACTIONS = "actions"
PROJECT_MEMBERS = "project_members"
PROJECTS = "projects"


@dataclass(frozen=True)
class Pipeline:
    """How candidates are gathered and which implicit stages apply to them."""

    source: str = ACTIONS
    prefilter: dict[str, Any] = field(default_factory=dict)
    stages: tuple[FilterRule, ...] = ()
    default_sort: tuple[SortRule, ...] = ()

    def compose(self, perspective: Perspective) -> Perspective:
        """Return ``perspective`` with the implicit stages and default sort applied."""

        return replace(
            perspective,
            filter_rules=[*self.stages, *perspective.filter_rules],
            sort_rules=list(perspective.sort_rules) or list(self.default_sort),
        )


_IS_ACTIVE = FilterRule("status", "eq", ACTIVE)
_IS_AVAILABLE = FilterRule("isAvailable", "eq", True)

BUILTIN_PIPELINES: dict[str, Pipeline] = {
    "inbox": Pipeline(
        prefilter={"status": ACTIVE, "inbox": True},
        stages=(FilterRule("isInbox", "eq", True), _IS_ACTIVE, _IS_AVAILABLE),
    ),
    "projects": Pipeline(
        source=PROJECT_MEMBERS,
        stages=(FilterRule("isInbox", "eq", False), _IS_ACTIVE, _IS_AVAILABLE),
        default_sort=(SortRule("projectId", "asc"), SortRule("position", "asc")),
    ),
    "tags": Pipeline(
        prefilter={"status": ACTIVE},
        stages=(FilterRule("hasTags", "eq", True), _IS_ACTIVE, _IS_AVAILABLE),
    ),
    "forecast": Pipeline(
        prefilter={"status": ACTIVE},
        stages=(_IS_ACTIVE, FilterRule("dueDate", "lte", "today")),
        default_sort=(SortRule("dueDate", "asc"), SortRule("position", "asc")),
    ),
    "flagged": Pipeline(
        prefilter={"status": ACTIVE, "flagged": True},
        stages=(FilterRule("flagged", "eq", True), _IS_ACTIVE),
    ),
    "review": Pipeline(source=PROJECTS),
    "available": Pipeline(
        prefilter={"status": ACTIVE},
        stages=(_IS_ACTIVE, _IS_AVAILABLE),
    ),
}

_BUILTIN_NAMES = ("Inbox", "Projects", "Tags", "Forecast", "Flagged", "Review", "Available")


def builtin_perspectives() -> list[Perspective]:
    """Seed records for the built-in perspectives, in display order."""

    return [Perspective(id=name.lower(), slug=name.lower(), name=name, is_built_in=True) for name in _BUILTIN_NAMES]


def _has_status_rule(perspective: Perspective) -> bool:
    return any(is_status_rule(rule) for rule in perspective.filter_rules)


def pipeline_for(perspective: Perspective) -> Pipeline:
    """Pick the pipeline for a perspective.

    Custom perspectives only see active actions unless they carry a well-formed
    ``status`` rule of their own.
    """

    if perspective.is_built_in and perspective.id in BUILTIN_PIPELINES:
        return BUILTIN_PIPELINES[perspective.id]
    if _has_status_rule(perspective):
        return Pipeline()
    return Pipeline(prefilter={"status": ACTIVE}, stages=(_IS_ACTIVE,))
