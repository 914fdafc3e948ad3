import pytest

from perspective_engine.errors import NotFoundError
from perspective_engine.schema import COMPLETED, DROPPED, PARALLEL, SEQUENTIAL, SINGLE_ACTION, Action, Project
from perspective_engine.sequencing import exposed_actions, order_by_position, resolve_project_exposure
from perspective_engine.store import InMemoryStore


def three_actions(first_status="active"):
    return [
        Action("A", "First", status=first_status, position=0, project_id="p"),
        Action("B", "Second", position=1, project_id="p"),
        Action("C", "Third", position=2, project_id="p"),
    ]


def ids(actions):
    return [action.id for action in actions]


def test_sequential_exposes_first_active_only():
    project = Project("p", "Project", type=SEQUENTIAL)
    assert ids(exposed_actions(project, three_actions())) == ["A"]


def test_sequential_moves_on_when_first_completes():
    project = Project("p", "Project", type=SEQUENTIAL)
    assert ids(exposed_actions(project, three_actions(first_status=COMPLETED))) == ["B"]


def test_sequential_with_nothing_active_exposes_nothing():
    project = Project("p", "Project", type=SEQUENTIAL)
    actions = [Action("A", "First", status=COMPLETED), Action("B", "Second", status=DROPPED, position=1)]
    assert exposed_actions(project, actions) == []


def test_parallel_and_single_action_pass_through():
    for project_type in (PARALLEL, SINGLE_ACTION):
        project = Project("p", "Project", type=project_type)
        assert ids(exposed_actions(project, three_actions())) == ["A", "B", "C"]


def test_positions_decide_order_not_input_order():
    project = Project("p", "Project", type=SEQUENTIAL)
    shuffled = list(reversed(three_actions()))
    assert ids(exposed_actions(project, shuffled)) == ["A"]


def test_equal_positions_keep_insertion_order():
    actions = [Action("late", "Late", position=0), Action("early", "Early", position=0)]
    assert ids(order_by_position(actions)) == ["late", "early"]
    project = Project("p", "Project", type=SEQUENTIAL)
    assert ids(exposed_actions(project, actions)) == ["late"]


def test_subtasks_are_not_sequenced():
    project = Project("p", "Project", type=SEQUENTIAL)
    actions = [
        Action("A", "First", position=0, project_id="p"),
        Action("B", "Second", position=1, project_id="p"),
        Action("A1", "First child", position=0, project_id="p", parent_id="A"),
        Action("B1", "Second child", position=0, project_id="p", parent_id="B"),
    ]
    assert set(ids(exposed_actions(project, actions))) == {"A", "A1", "B1"}


def test_resolve_project_exposure_uses_store():
    store = InMemoryStore(projects=[Project("p", "Project", type=SEQUENTIAL)], actions=three_actions())
    assert ids(resolve_project_exposure(store, "p")) == ["A"]


def test_resolve_unknown_project_raises():
    with pytest.raises(NotFoundError):
        resolve_project_exposure(InMemoryStore(), "nope")
