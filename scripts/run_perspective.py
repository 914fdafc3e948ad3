"""Run a perspective query against a JSON snapshot or a sqlite database."""

from __future__ import annotations

import argparse
import json
import sys
from datetime import datetime
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from perspective_engine.adapters import json_adapter
from perspective_engine.api import ActionResponse, ProjectResponse
from perspective_engine.clock import ensure_aware, utcnow
from perspective_engine.config import Settings, configure_logging
from perspective_engine.context import QueryContext
from perspective_engine.orchestrator import PerspectiveQuery
from perspective_engine.sqlite_store import SqliteStore


def _load_store(args, settings: Settings):
    if args.data:
        return json_adapter.parse(args.data)
    return SqliteStore(args.db or settings.DB_PATH)


def _explain(store, action_ids: list[str], now: datetime, settings: Settings) -> dict:
    ctx = QueryContext(store, now=now, tz=settings.tz)
    report = {}
    for action_id in action_ids:
        action = store.get_action(action_id)
        report[action_id] = ctx.unavailable_reasons(action) if action else ["not_found"]
    return report


def main() -> None:
    parser = argparse.ArgumentParser(description="Evaluate a perspective over stored actions")
    parser.add_argument("--data", help="Path to a JSON snapshot")
    parser.add_argument("--db", help="Path to a sqlite database (defaults to PERSPECTIVE_DB_PATH)")
    parser.add_argument("--perspective", default="available", help="Perspective id or slug")
    parser.add_argument("--now", help="Evaluation instant (ISO 8601), defaults to the current time")
    parser.add_argument("--timezone", help="Local timezone for tag windows and day boundaries")
    parser.add_argument("--explain", nargs="*", default=[], metavar="ACTION_ID", help="Report why actions are hidden")
    parser.add_argument("--log-level", default=None)
    args = parser.parse_args()

    configure_logging(args.log_level)
    settings = Settings(timezone_name=args.timezone)
    now = ensure_aware(datetime.fromisoformat(args.now)) if args.now else utcnow()

    store = _load_store(args, settings)
    result = PerspectiveQuery(store, settings, clock=lambda: now).query(args.perspective)

    report = {
        "perspective": result.perspective.id,
        "evaluated_at": result.evaluated_at.isoformat(),
        "actions": [ActionResponse.from_model(a).model_dump(mode="json") for a in result.actions],
        "projects": [ProjectResponse.from_model(p).model_dump(mode="json") for p in result.projects],
        "skipped_rules": result.skipped_rules,
    }
    if args.explain:
        report["explain"] = _explain(store, args.explain, now, settings)
    print(json.dumps(report, indent=2, default=str))


if __name__ == "__main__":
    main()
