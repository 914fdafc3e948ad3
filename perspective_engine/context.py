"""Request-scoped evaluation state for one perspective query."""

from __future__ import annotations

import logging
from datetime import datetime, timezone, tzinfo
from typing import TYPE_CHECKING, Any, Optional

from perspective_engine.availability import EvaluationContext, unavailable_reasons
from perspective_engine.sequencing import exposed_actions
from perspective_engine.schema import Action, Project, Tag

if TYPE_CHECKING:
    from perspective_engine.store import EntityStore

logger = logging.getLogger(__name__)


class QueryContext:
    """Caches store lookups and availability by id for the lifetime of one query.

    ``now`` is captured once by the caller and reused for every action so that
    siblings are never judged against different instants. Instances must not be
    shared between queries.
    """

    def __init__(self, store: EntityStore, now: datetime, tz: tzinfo = timezone.utc):
        self.store = store
        self.now = now
        self.tz = tz
        self.skipped_rules: list[dict[str, Any]] = []
        self._projects: dict[str, Optional[Project]] = {}
        self._tags: dict[str, Optional[Tag]] = {}
        self._blockers: dict[str, list[Optional[str]]] = {}
        self._exposed: dict[str, set[str]] = {}
        self._available: dict[str, bool] = {}

    def project_for(self, action: Action) -> Optional[Project]:
        if action.project_id is None:
            return None
        if action.project_id not in self._projects:
            project = self.store.get_project(action.project_id)
            if project is None:
                logger.warning("Action %s references missing project %s", action.id, action.project_id)
            self._projects[action.project_id] = project
        return self._projects[action.project_id]

    def tags_for(self, action: Action) -> list[Tag]:
        tags = []
        for tag_id in action.tag_ids:
            if tag_id not in self._tags:
                tag = self.store.get_tag(tag_id)
                if tag is None:
                    logger.warning("Action %s references missing tag %s", action.id, tag_id)
                self._tags[tag_id] = tag
            if self._tags[tag_id] is not None:
                tags.append(self._tags[tag_id])
        return tags

    def blocker_statuses(self, action: Action) -> list[Optional[str]]:
        if action.id not in self._blockers:
            statuses = []
            for edge in self.store.get_blocking_edges(action.id):
                if edge.blocking_status is None:
                    logger.warning("Action %s is blocked by missing action %s", action.id, edge.blocking_id)
                statuses.append(edge.blocking_status)
            self._blockers[action.id] = statuses
        return self._blockers[action.id]

    def is_exposed(self, action: Action) -> bool:
        """Whether project sequencing lets ``action`` through."""

        project = self.project_for(action)
        if project is None:
            return True
        if project.id not in self._exposed:
            members = self.store.list_project_actions(project.id)
            self._exposed[project.id] = {member.id for member in exposed_actions(project, members)}
        return action.id in self._exposed[project.id]

    def evaluation_context(self, action: Action) -> EvaluationContext:
        return EvaluationContext(
            now=self.now,
            project=self.project_for(action),
            tags=self.tags_for(action),
            blocker_statuses=self.blocker_statuses(action),
            tz=self.tz,
        )

    def is_available(self, action: Action) -> bool:
        """Sequencing first, then the availability gates."""

        if action.id not in self._available:
            self._available[action.id] = self.is_exposed(action) and not unavailable_reasons(
                action, self.evaluation_context(action)
            )
        return self._available[action.id]

    def unavailable_reasons(self, action: Action) -> list[str]:
        reasons = [] if self.is_exposed(action) else ["sequenced"]
        return reasons + unavailable_reasons(action, self.evaluation_context(action))

    def report_skipped(self, source: str, raw: Any, reason: str) -> None:
        self.skipped_rules.append({"perspective": source, "rule": raw, "reason": reason})
