import pytest

from perspective_engine.schema import PARALLEL, SEQUENTIAL, Action, Project
from perspective_engine.store import InMemoryStore


@pytest.fixture
def mixed_store():
    """One sequential and one parallel project, two active actions each."""
    return InMemoryStore(
        projects=[
            Project("seq-project", "Sequential", type=SEQUENTIAL),
            Project("par-project", "Parallel", type=PARALLEL),
        ],
        actions=[
            Action("1", "Seq first", position=0, project_id="seq-project"),
            Action("2", "Seq second", position=1, project_id="seq-project"),
            Action("3", "Par first", position=0, project_id="par-project"),
            Action("4", "Par second", position=1, project_id="par-project"),
        ],
    )
