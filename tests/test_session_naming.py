import allure
import pytest

from crocodile.models import Role
from crocodile.sessions import SessionNames, bare_plan_id, task_leaf

pytestmark = [
    allure.epic("Sessions"),
    allure.feature("Naming"),
]

NAMES = SessionNames()


@pytest.mark.parametrize(
    ("plan_id", "task_id", "expected"),
    [
        ("plan-abc123", "task-abc123.1.2", "croc-worker-abc123-2"),
        ("plan-abc123", "task-abc123.1", "croc-worker-abc123-1"),
        ("plan-abc123", "task-abc123", "croc-worker-abc123-abc123"),
        ("abc123", "def456", "croc-worker-abc123-def456"),
        ("abc123", "abc.1", "croc-worker-abc123-abc.1"),
    ],
)
def test_worker_names(plan_id: str, task_id: str, expected: str) -> None:
    assert NAMES.worker(plan_id, task_id) == expected


def test_foreman_and_reviewer_names() -> None:
    assert NAMES.foreman("abc123") == "croc-foreman-abc123"
    assert NAMES.foreman("plan-abc123") == "croc-foreman-abc123"
    assert NAMES.reviewer("plan-abc123") == "croc-reviewer-abc123"


def test_names_are_deterministic() -> None:
    assert NAMES.worker("plan-x", "task-x.3") == SessionNames().worker("plan-x", "task-x.3")


def test_helpers() -> None:
    assert bare_plan_id("plan-abc") == "abc"
    assert bare_plan_id("abc") == "abc"
    assert task_leaf("task-abc.1.7") == "7"
    assert task_leaf("abc.1") == "abc.1"


def test_for_role_dispatch_and_errors() -> None:
    assert NAMES.for_role(Role.FOREMAN, "plan-a") == "croc-foreman-a"
    assert NAMES.for_role(Role.REVIEWER, "plan-a") == "croc-reviewer-a"
    assert NAMES.for_role(Role.WORKER, "plan-a", "task-a.1") == "croc-worker-a-1"
    with pytest.raises(ValueError, match="task id"):
        NAMES.for_role(Role.WORKER, "plan-a")
    with pytest.raises(ValueError, match="planner"):
        NAMES.for_role(Role.PLANNER, "plan-a")


def test_custom_prefix_and_ownership() -> None:
    names = SessionNames(prefix="proj")

    assert names.foreman("plan-a") == "proj-foreman-a"
    assert names.owns("proj-worker-a-1")
    assert not names.owns("croc-worker-a-1")
    assert not names.owns("project")
