"""Deterministic session names derived from plan and task ids.

Names are generated, never parsed back: the mapping is lossy.
"""

from __future__ import annotations

from dataclasses import dataclass

from crocodile.models import PLAN_ID_PREFIX, TASK_ID_PREFIX, Role

DEFAULT_PREFIX = "croc"


def bare_plan_id(plan_id: str) -> str:
    """Drop a leading ``plan-`` label if present."""

    return plan_id.removeprefix(PLAN_ID_PREFIX)


def task_leaf(task_id: str) -> str:
    """Last dotted segment of a ``task-`` id; other ids pass through unchanged."""

    if not task_id.startswith(TASK_ID_PREFIX):
        return task_id
    return task_id.removeprefix(TASK_ID_PREFIX).rsplit(".", 1)[-1]


@dataclass(frozen=True, slots=True)
class SessionNames:
    """Session name scheme for one naming prefix."""

    prefix: str = DEFAULT_PREFIX

    @property
    def discovery_prefix(self) -> str:
        return f"{self.prefix}-"

    def foreman(self, plan_id: str) -> str:
        return f"{self.prefix}-foreman-{bare_plan_id(plan_id)}"

    def reviewer(self, plan_id: str) -> str:
        return f"{self.prefix}-reviewer-{bare_plan_id(plan_id)}"

    def worker(self, plan_id: str, task_id: str) -> str:
        return f"{self.prefix}-worker-{bare_plan_id(plan_id)}-{task_leaf(task_id)}"

    def for_role(self, role: Role, plan_id: str, task_id: str | None = None) -> str:
        if role == Role.FOREMAN:
            return self.foreman(plan_id)
        if role == Role.REVIEWER:
            return self.reviewer(plan_id)
        if role == Role.WORKER:
            if task_id is None:
                raise ValueError("Worker sessions require a task id.")
            return self.worker(plan_id, task_id)
        raise ValueError(f"Role {role.value!r} does not run in a named session.")

    def owns(self, session_name: str) -> bool:
        return session_name.startswith(self.discovery_prefix)
