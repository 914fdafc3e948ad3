"""Demo script for perspective-engine."""

import sys
from datetime import datetime, timezone
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from perspective_engine.adapters.json_adapter import parse
from perspective_engine.orchestrator import PerspectiveQuery


def main() -> None:
    store = parse("examples/sample_snapshot.json")
    now = datetime(2025, 1, 6, 10, 0, tzinfo=timezone.utc)
    query = PerspectiveQuery(store, clock=lambda: now)
    for perspective in ("inbox", "projects", "forecast", "flagged", "available", "errands-today"):
        titles = [action.title for action in query.get_actions(perspective)]
        print(f"{perspective}:", titles)
    print("review:", [project.name for project in query.get_projects("review")])


if __name__ == "__main__":
    main()
