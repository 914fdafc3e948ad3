"""HTTP routes for perspective queries and project review."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Request, status
from pydantic import BaseModel

from perspective_engine.clock import utcnow
from perspective_engine.config import Settings
from perspective_engine.errors import NotFoundError
from perspective_engine.orchestrator import PerspectiveQuery
from perspective_engine.review import mark_project_reviewed
from perspective_engine.schema import Action, Project
from perspective_engine.store import EntityStore


class ActionResponse(BaseModel):
    """An action as returned by perspective queries."""

    id: str
    title: str
    status: str
    position: int
    due_date: Optional[datetime] = None
    defer_date: Optional[datetime] = None
    flagged: bool = False
    estimated_minutes: Optional[int] = None
    parent_id: Optional[str] = None
    project_id: Optional[str] = None
    tag_ids: list[str] = []

    @classmethod
    def from_model(cls, action: Action) -> "ActionResponse":
        return cls(
            id=action.id,
            title=action.title,
            status=action.status,
            position=action.position,
            due_date=action.due_date,
            defer_date=action.defer_date,
            flagged=action.flagged,
            estimated_minutes=action.estimated_minutes,
            parent_id=action.parent_id,
            project_id=action.project_id,
            tag_ids=list(action.tag_ids),
        )


class ProjectResponse(BaseModel):
    id: str
    name: str
    type: str
    status: str
    review_interval: Optional[str] = None
    next_review_at: Optional[datetime] = None
    last_reviewed_at: Optional[datetime] = None

    @classmethod
    def from_model(cls, project: Project) -> "ProjectResponse":
        return cls(
            id=project.id,
            name=project.name,
            type=project.type,
            status=project.status,
            review_interval=project.review_interval,
            next_review_at=project.next_review_at,
            last_reviewed_at=project.last_reviewed_at,
        )


router = APIRouter(tags=["perspectives"])


def get_store(request: Request) -> EntityStore:
    return request.app.state.store


def get_query(request: Request) -> PerspectiveQuery:
    return PerspectiveQuery(request.app.state.store, request.app.state.settings, request.app.state.clock)


@router.get("/perspectives/{perspective_id}/actions", status_code=200)
def list_perspective_actions(
    perspective_id: str,
    query: PerspectiveQuery = Depends(get_query),
) -> list[ActionResponse]:
    """Filtered and ordered actions for a perspective."""
    try:
        actions = query.get_actions(perspective_id)
    except NotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    return [ActionResponse.from_model(a) for a in actions]


@router.get("/perspectives/{perspective_id}/projects", status_code=200)
def list_perspective_projects(
    perspective_id: str,
    query: PerspectiveQuery = Depends(get_query),
) -> list[ProjectResponse]:
    """Projects selected by a project-level perspective such as Review."""
    try:
        projects = query.get_projects(perspective_id)
    except NotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    return [ProjectResponse.from_model(p) for p in projects]


@router.post("/projects/{project_id}/review", status_code=200)
def review_project(project_id: str, request: Request, store: EntityStore = Depends(get_store)) -> ProjectResponse:
    """Mark a project reviewed and schedule its next review."""
    try:
        project = mark_project_reviewed(store, project_id, request.app.state.clock)
    except NotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    return ProjectResponse.from_model(project)


def create_app(store: EntityStore, settings: Optional[Settings] = None, clock=utcnow) -> FastAPI:
    """Build an app serving ``store``; ``clock`` is injectable for tests."""

    app = FastAPI(title="perspective-engine")
    app.state.store = store
    app.state.settings = settings or Settings()
    app.state.clock = clock
    app.include_router(router)
    return app
