"""Entity store interface and an in-memory implementation."""

from __future__ import annotations

from typing import Iterable, Optional, Protocol

from perspective_engine.builtins import builtin_perspectives
from perspective_engine.schema import Action, BlockingEdge, Perspective, Project, Tag
from perspective_engine.sequencing import order_by_position


class EntityStore(Protocol):
    """What the engine needs from persistence: lookups and simple predicates."""

    def get_perspective(self, key: str) -> Optional[Perspective]: ...

    def list_perspectives(self) -> list[Perspective]: ...

    def get_action(self, action_id: str) -> Optional[Action]: ...

    def list_actions(
        self,
        status: Optional[str] = None,
        inbox: Optional[bool] = None,
        flagged: Optional[bool] = None,
    ) -> list[Action]: ...

    def get_project(self, project_id: str) -> Optional[Project]: ...

    def list_projects(self, status: Optional[str] = None) -> list[Project]: ...

    def list_project_actions(self, project_id: str) -> list[Action]: ...

    def get_blocking_edges(self, action_id: str) -> list[BlockingEdge]: ...

    def get_tag(self, tag_id: str) -> Optional[Tag]: ...

    def save_project(self, project: Project) -> None: ...


class InMemoryStore:
    """Dict-backed store; insertion order is the tie-break for equal positions."""

    def __init__(
        self,
        actions: Iterable[Action] = (),
        projects: Iterable[Project] = (),
        tags: Iterable[Tag] = (),
        perspectives: Iterable[Perspective] = (),
        blocked_by: Optional[dict[str, list[str]]] = None,
        seed_builtins: bool = True,
    ):
        self.actions: dict[str, Action] = {}
        self.projects: dict[str, Project] = {project.id: project for project in projects}
        self.tags: dict[str, Tag] = {tag.id: tag for tag in tags}
        self.perspectives: dict[str, Perspective] = {}
        self.blocked_by: dict[str, list[str]] = {key: list(value) for key, value in (blocked_by or {}).items()}

        for action in actions:
            self.add_action(action)
        if seed_builtins:
            for perspective in builtin_perspectives():
                self.add_perspective(perspective)
        for perspective in perspectives:
            self.add_perspective(perspective)

    def add_action(self, action: Action) -> None:
        self.actions[action.id] = action

    def add_project(self, project: Project) -> None:
        self.projects[project.id] = project

    def add_tag(self, tag: Tag) -> None:
        self.tags[tag.id] = tag

    def add_perspective(self, perspective: Perspective) -> None:
        self.perspectives[perspective.id] = perspective

    def block(self, blocked_id: str, blocking_id: str) -> None:
        self.blocked_by.setdefault(blocked_id, []).append(blocking_id)

    def get_perspective(self, key: str) -> Optional[Perspective]:
        if key in self.perspectives:
            return self.perspectives[key]
        return next((p for p in self.perspectives.values() if p.slug == key), None)

    def list_perspectives(self) -> list[Perspective]:
        return sorted(self.perspectives.values(), key=lambda p: (not p.is_built_in, p.name))

    def get_action(self, action_id: str) -> Optional[Action]:
        return self.actions.get(action_id)

    def list_actions(
        self,
        status: Optional[str] = None,
        inbox: Optional[bool] = None,
        flagged: Optional[bool] = None,
    ) -> list[Action]:
        result = []
        for action in self.actions.values():
            if status is not None and action.status != status:
                continue
            if inbox is not None and action.is_inbox != inbox:
                continue
            if flagged is not None and action.flagged != flagged:
                continue
            result.append(action)
        return result

    def get_project(self, project_id: str) -> Optional[Project]:
        return self.projects.get(project_id)

    def list_projects(self, status: Optional[str] = None) -> list[Project]:
        return [p for p in self.projects.values() if status is None or p.status == status]

    def list_project_actions(self, project_id: str) -> list[Action]:
        return order_by_position([a for a in self.actions.values() if a.project_id == project_id])

    def get_blocking_edges(self, action_id: str) -> list[BlockingEdge]:
        edges = []
        for blocking_id in self.blocked_by.get(action_id, []):
            blocking = self.actions.get(blocking_id)
            edges.append(
                BlockingEdge(
                    blocked_id=action_id,
                    blocking_id=blocking_id,
                    blocking_status=blocking.status if blocking else None,
                )
            )
        return edges

    def get_tag(self, tag_id: str) -> Optional[Tag]:
        return self.tags.get(tag_id)

    def save_project(self, project: Project) -> None:
        self.projects[project.id] = project
