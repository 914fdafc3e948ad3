"""Perspective query entry point used by the API layer."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from perspective_engine.builtins import PROJECT_MEMBERS, PROJECTS, Pipeline, pipeline_for
from perspective_engine.clock import Clock, ensure_aware, utcnow
from perspective_engine.config import Settings, settings as default_settings
from perspective_engine.context import QueryContext
from perspective_engine.errors import NotFoundError
from perspective_engine.review import is_due_for_review
from perspective_engine.rules import evaluate
from perspective_engine.schema import ACTIVE, Action, Perspective, Project
from perspective_engine.sequencing import exposed_actions
from perspective_engine.store import EntityStore

logger = logging.getLogger(__name__)


@dataclass
class PerspectiveResult:
    """Ordered output of one perspective query."""

    perspective: Perspective
    evaluated_at: datetime
    actions: list[Action] = field(default_factory=list)
    projects: list[Project] = field(default_factory=list)
    skipped_rules: list[dict[str, Any]] = field(default_factory=list)


class PerspectiveQuery:
    """Resolve a perspective and run its candidates through the engine.

    Read-only: nothing here writes to the store.
    """

    def __init__(self, store: EntityStore, settings: Optional[Settings] = None, clock: Clock = utcnow):
        self.store = store
        self.settings = settings or default_settings
        self.clock = clock

    def resolve(self, key: str) -> Perspective:
        perspective = self.store.get_perspective(key)
        if perspective is None:
            raise NotFoundError("perspective", key)
        return perspective

    def query(self, key: str) -> PerspectiveResult:
        perspective = self.resolve(key)
        pipeline = pipeline_for(perspective)
        ctx = QueryContext(self.store, now=ensure_aware(self.clock()), tz=self.settings.tz)
        result = PerspectiveResult(perspective=perspective, evaluated_at=ctx.now)

        if pipeline.source == PROJECTS:
            result.projects = self._review_projects(ctx)
        else:
            candidates = self._fetch_candidates(pipeline)
            result.actions = evaluate(pipeline.compose(perspective), candidates, ctx)

        result.skipped_rules = ctx.skipped_rules
        logger.debug(
            "Perspective %s returned %d actions, %d projects at %s",
            perspective.id,
            len(result.actions),
            len(result.projects),
            ctx.now.isoformat(),
        )
        return result

    def get_actions(self, key: str) -> list[Action]:
        return self.query(key).actions

    def get_projects(self, key: str) -> list[Project]:
        return self.query(key).projects

    def _fetch_candidates(self, pipeline: Pipeline) -> list[Action]:
        if pipeline.source == PROJECT_MEMBERS:
            candidates: list[Action] = []
            for project in self.store.list_projects(status=ACTIVE):
                candidates.extend(exposed_actions(project, self.store.list_project_actions(project.id)))
            return candidates
        return self.store.list_actions(**pipeline.prefilter)

    def _review_projects(self, ctx: QueryContext) -> list[Project]:
        due = [p for p in self.store.list_projects(status=ACTIVE) if is_due_for_review(p, ctx.now, ctx.tz)]
        # Never-reviewed projects first, then oldest due date
        return sorted(due, key=lambda p: (p.next_review_at is not None, ensure_aware(p.next_review_at) or ctx.now))
