"""SQLite-backed entity store."""

from __future__ import annotations

import json
import logging
import sqlite3
from dataclasses import asdict, is_dataclass
from datetime import datetime, time
from typing import Any, Optional

from perspective_engine.builtins import builtin_perspectives
from perspective_engine.clock import ensure_aware
from perspective_engine.schema import Action, BlockingEdge, FilterRule, Perspective, Project, SortRule, Tag

logger = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS projects (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    type TEXT NOT NULL DEFAULT 'parallel',
    status TEXT NOT NULL DEFAULT 'active',
    review_interval TEXT,
    next_review_at TEXT,
    last_reviewed_at TEXT
);

CREATE TABLE IF NOT EXISTS tags (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    parent_id TEXT,
    available_from TEXT,
    available_until TEXT
);

CREATE TABLE IF NOT EXISTS actions (
    id TEXT PRIMARY KEY,
    title TEXT NOT NULL,
    status TEXT NOT NULL DEFAULT 'active',
    position INTEGER NOT NULL DEFAULT 0,
    due_date TEXT,
    defer_date TEXT,
    flagged INTEGER NOT NULL DEFAULT 0,
    estimated_minutes INTEGER,
    parent_id TEXT,
    project_id TEXT,
    note TEXT,
    repeat_mode TEXT,
    repeat_interval TEXT,
    repeat_end_date TEXT,
    repeat_end_count INTEGER,
    repeat_count INTEGER NOT NULL DEFAULT 0
);

CREATE INDEX IF NOT EXISTS idx_actions_project ON actions(project_id, position);

CREATE TABLE IF NOT EXISTS action_tags (
    action_id TEXT NOT NULL,
    tag_id TEXT NOT NULL,
    PRIMARY KEY (action_id, tag_id)
);

CREATE TABLE IF NOT EXISTS action_blocks (
    blocked_id TEXT NOT NULL,
    blocking_id TEXT NOT NULL,
    PRIMARY KEY (blocked_id, blocking_id)
);

CREATE TABLE IF NOT EXISTS perspectives (
    id TEXT PRIMARY KEY,
    slug TEXT,
    name TEXT NOT NULL,
    is_built_in INTEGER NOT NULL DEFAULT 0,
    filter_rules TEXT NOT NULL DEFAULT '[]',
    sort_rules TEXT NOT NULL DEFAULT '[]'
);
"""

_ACTION_COLUMNS = (
    "id, title, status, position, due_date, defer_date, flagged, estimated_minutes, parent_id, "
    "project_id, note, repeat_mode, repeat_interval, repeat_end_date, repeat_end_count, repeat_count"
)
_PROJECT_COLUMNS = "id, name, type, status, review_interval, next_review_at, last_reviewed_at"
_TAG_COLUMNS = "id, name, parent_id, available_from, available_until"


def _rule_payload(rule: Any) -> Any:
    return asdict(rule) if is_dataclass(rule) and not isinstance(rule, type) else rule


def _upsert(table: str, columns: str) -> str:
    """INSERT that updates an existing row in place, keeping its rowid."""

    names = [name.strip() for name in columns.split(",")]
    updates = ", ".join(f"{name} = excluded.{name}" for name in names if name != "id")
    placeholders = ", ".join("?" * len(names))
    return f"INSERT INTO {table} ({columns}) VALUES ({placeholders}) ON CONFLICT(id) DO UPDATE SET {updates}"


def _iso(value: Optional[datetime]) -> Optional[str]:
    return ensure_aware(value).isoformat() if value is not None else None


def _instant(value: Optional[str]) -> Optional[datetime]:
    return ensure_aware(datetime.fromisoformat(value)) if value else None


def _time(value: Optional[str]) -> Optional[time]:
    return time.fromisoformat(value) if value else None


class SqliteStore:
    """Entity store over a sqlite3 database file (or ``:memory:``)."""

    def __init__(self, db_path: str = ":memory:", seed_builtins: bool = True):
        self.db_path = db_path
        self.conn = sqlite3.connect(db_path)
        self.conn.row_factory = sqlite3.Row
        self.conn.executescript(SCHEMA)
        if seed_builtins:
            for perspective in builtin_perspectives():
                self.add_perspective(perspective, replace_existing=False)

    def close(self) -> None:
        self.conn.close()

    def __enter__(self) -> "SqliteStore":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    # Writers

    def add_action(self, action: Action) -> None:
        with self.conn:
            self.conn.execute(
                _upsert("actions", _ACTION_COLUMNS),
                (
                    action.id,
                    action.title,
                    action.status,
                    action.position,
                    _iso(action.due_date),
                    _iso(action.defer_date),
                    int(action.flagged),
                    action.estimated_minutes,
                    action.parent_id,
                    action.project_id,
                    action.note,
                    action.repeat_mode,
                    action.repeat_interval,
                    _iso(action.repeat_end_date),
                    action.repeat_end_count,
                    action.repeat_count,
                ),
            )
            self.conn.execute("DELETE FROM action_tags WHERE action_id = ?", (action.id,))
            self.conn.executemany(
                "INSERT OR IGNORE INTO action_tags (action_id, tag_id) VALUES (?, ?)",
                [(action.id, tag_id) for tag_id in action.tag_ids],
            )

    def add_project(self, project: Project) -> None:
        self.save_project(project)

    def add_tag(self, tag: Tag) -> None:
        with self.conn:
            self.conn.execute(
                _upsert("tags", _TAG_COLUMNS),
                (
                    tag.id,
                    tag.name,
                    tag.parent_id,
                    tag.available_from.isoformat() if tag.available_from else None,
                    tag.available_until.isoformat() if tag.available_until else None,
                ),
            )

    def add_perspective(self, perspective: Perspective, replace_existing: bool = True) -> None:
        verb = "INSERT OR REPLACE" if replace_existing else "INSERT OR IGNORE"
        with self.conn:
            self.conn.execute(
                f"{verb} INTO perspectives (id, slug, name, is_built_in, filter_rules, sort_rules) "
                "VALUES (?, ?, ?, ?, ?, ?)",
                (
                    perspective.id,
                    perspective.slug,
                    perspective.name,
                    int(perspective.is_built_in),
                    json.dumps([_rule_payload(rule) for rule in perspective.filter_rules], default=str),
                    json.dumps([_rule_payload(rule) for rule in perspective.sort_rules], default=str),
                ),
            )

    def block(self, blocked_id: str, blocking_id: str) -> None:
        with self.conn:
            self.conn.execute(
                "INSERT OR IGNORE INTO action_blocks (blocked_id, blocking_id) VALUES (?, ?)",
                (blocked_id, blocking_id),
            )

    def save_project(self, project: Project) -> None:
        with self.conn:
            self.conn.execute(
                _upsert("projects", _PROJECT_COLUMNS),
                (
                    project.id,
                    project.name,
                    project.type,
                    project.status,
                    project.review_interval,
                    _iso(project.next_review_at),
                    _iso(project.last_reviewed_at),
                ),
            )

    # Readers

    def _action_from_row(self, row: sqlite3.Row) -> Action:
        tag_rows = self.conn.execute(
            "SELECT tag_id FROM action_tags WHERE action_id = ? ORDER BY rowid", (row["id"],)
        ).fetchall()
        return Action(
            id=row["id"],
            title=row["title"],
            status=row["status"],
            position=row["position"],
            due_date=_instant(row["due_date"]),
            defer_date=_instant(row["defer_date"]),
            flagged=bool(row["flagged"]),
            estimated_minutes=row["estimated_minutes"],
            parent_id=row["parent_id"],
            project_id=row["project_id"],
            tag_ids=[tag_row["tag_id"] for tag_row in tag_rows],
            note=row["note"],
            repeat_mode=row["repeat_mode"],
            repeat_interval=row["repeat_interval"],
            repeat_end_date=_instant(row["repeat_end_date"]),
            repeat_end_count=row["repeat_end_count"],
            repeat_count=row["repeat_count"],
        )

    @staticmethod
    def _project_from_row(row: sqlite3.Row) -> Project:
        return Project(
            id=row["id"],
            name=row["name"],
            type=row["type"],
            status=row["status"],
            review_interval=row["review_interval"],
            next_review_at=_instant(row["next_review_at"]),
            last_reviewed_at=_instant(row["last_reviewed_at"]),
        )

    @staticmethod
    def _perspective_from_row(row: sqlite3.Row) -> Perspective:
        def decode(column: str) -> list:
            try:
                rules = json.loads(row[column] or "[]")
            except json.JSONDecodeError:
                logger.warning("Perspective %s has unreadable %s", row["id"], column)
                return []
            if not isinstance(rules, list):
                logger.warning("Perspective %s has non-list %s", row["id"], column)
                return []
            return rules

        return Perspective(
            id=row["id"],
            slug=row["slug"],
            name=row["name"],
            is_built_in=bool(row["is_built_in"]),
            filter_rules=[
                FilterRule(rule.get("field"), rule.get("operator"), rule.get("value")) if isinstance(rule, dict) else rule
                for rule in decode("filter_rules")
            ],
            sort_rules=[
                SortRule(rule.get("field"), rule.get("direction") or "asc") if isinstance(rule, dict) else rule
                for rule in decode("sort_rules")
            ],
        )

    def get_perspective(self, key: str) -> Optional[Perspective]:
        row = self.conn.execute(
            "SELECT * FROM perspectives WHERE id = ? OR slug = ? ORDER BY id = ? DESC LIMIT 1", (key, key, key)
        ).fetchone()
        return self._perspective_from_row(row) if row else None

    def list_perspectives(self) -> list[Perspective]:
        rows = self.conn.execute("SELECT * FROM perspectives ORDER BY is_built_in DESC, name ASC").fetchall()
        return [self._perspective_from_row(row) for row in rows]

    def get_action(self, action_id: str) -> Optional[Action]:
        row = self.conn.execute(f"SELECT {_ACTION_COLUMNS} FROM actions WHERE id = ?", (action_id,)).fetchone()
        return self._action_from_row(row) if row else None

    def list_actions(
        self,
        status: Optional[str] = None,
        inbox: Optional[bool] = None,
        flagged: Optional[bool] = None,
    ) -> list[Action]:
        clauses, params = [], []
        if status is not None:
            clauses.append("status = ?")
            params.append(status)
        if inbox is not None:
            clauses.append("project_id IS NULL" if inbox else "project_id IS NOT NULL")
        if flagged is not None:
            clauses.append("flagged = ?")
            params.append(int(flagged))
        where = f" WHERE {' AND '.join(clauses)}" if clauses else ""
        rows = self.conn.execute(f"SELECT {_ACTION_COLUMNS} FROM actions{where} ORDER BY rowid", params).fetchall()
        return [self._action_from_row(row) for row in rows]

    def get_project(self, project_id: str) -> Optional[Project]:
        row = self.conn.execute("SELECT * FROM projects WHERE id = ?", (project_id,)).fetchone()
        return self._project_from_row(row) if row else None

    def list_projects(self, status: Optional[str] = None) -> list[Project]:
        if status is None:
            rows = self.conn.execute("SELECT * FROM projects ORDER BY rowid").fetchall()
        else:
            rows = self.conn.execute("SELECT * FROM projects WHERE status = ? ORDER BY rowid", (status,)).fetchall()
        return [self._project_from_row(row) for row in rows]

    def list_project_actions(self, project_id: str) -> list[Action]:
        rows = self.conn.execute(
            f"SELECT {_ACTION_COLUMNS} FROM actions WHERE project_id = ? ORDER BY position ASC, rowid ASC",
            (project_id,),
        ).fetchall()
        return [self._action_from_row(row) for row in rows]

    def get_blocking_edges(self, action_id: str) -> list[BlockingEdge]:
        rows = self.conn.execute(
            "SELECT b.blocking_id, a.status FROM action_blocks b "
            "LEFT JOIN actions a ON a.id = b.blocking_id WHERE b.blocked_id = ? ORDER BY b.rowid",
            (action_id,),
        ).fetchall()
        return [BlockingEdge(blocked_id=action_id, blocking_id=row[0], blocking_status=row[1]) for row in rows]

    def get_tag(self, tag_id: str) -> Optional[Tag]:
        row = self.conn.execute("SELECT * FROM tags WHERE id = ?", (tag_id,)).fetchone()
        if row is None:
            return None
        return Tag(
            id=row["id"],
            name=row["name"],
            parent_id=row["parent_id"],
            available_from=_time(row["available_from"]),
            available_until=_time(row["available_until"]),
        )
