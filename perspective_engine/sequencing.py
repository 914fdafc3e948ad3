"""Project sequencing: which project members are exposed for evaluation."""

from __future__ import annotations

from typing import TYPE_CHECKING

from perspective_engine.errors import NotFoundError
from perspective_engine.schema import ACTIVE, SEQUENTIAL, Action, Project

if TYPE_CHECKING:
    from perspective_engine.store import EntityStore


def order_by_position(actions: list[Action]) -> list[Action]:
    """Sort by position; equal positions keep their incoming (insertion) order."""

    return sorted(actions, key=lambda action: action.position)


def exposed_actions(project: Project, actions: list[Action]) -> list[Action]:
    """Return the members of ``project`` that sequencing lets through.

    Only direct members (no parent action) are sequenced. Subtasks are always
    passed through; they are gated by their own blockers and defer dates.
    """

    ordered = order_by_position(actions)
    if project.type != SEQUENTIAL:
        return ordered

    direct = [action for action in ordered if action.parent_id is None]
    first_active = next((action for action in direct if action.status == ACTIVE), None)
    exposed_ids = {first_active.id} if first_active is not None else set()

    return [action for action in ordered if action.id in exposed_ids or action.parent_id is not None]


def resolve_project_exposure(store: EntityStore, project_id: str) -> list[Action]:
    """Fetch a project's members from ``store`` and resolve its exposed set."""

    project = store.get_project(project_id)
    if project is None:
        raise NotFoundError("project", project_id)
    return exposed_actions(project, store.list_project_actions(project_id))
