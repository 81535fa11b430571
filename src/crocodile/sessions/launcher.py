"""Place role processes into named sessions."""

from __future__ import annotations

import logging
from pathlib import Path

from crocodile.models import Role
from crocodile.sessions.base import SessionSupervisor
from crocodile.sessions.naming import SessionNames

logger = logging.getLogger(__name__)

ROLE_ENV = "CROC_ROLE"
PLAN_ENV = "CROC_PLAN_ID"
SUBTASK_ENV = "CROC_SUBTASK_ID"


class RoleLauncher:
    """Start, address and stop role sessions by plan and task id."""

    def __init__(self, supervisor: SessionSupervisor, names: SessionNames | None = None) -> None:
        self.supervisor = supervisor
        self.names = names or SessionNames()

    def launch(
        self,
        role: Role,
        plan_id: str,
        command: str,
        *,
        task_id: str | None = None,
        cwd: Path | None = None,
    ) -> str:
        """Spawn the session for ``role`` and return its name."""

        name = self.names.for_role(role, plan_id, task_id)
        env = {ROLE_ENV: role.value, PLAN_ENV: plan_id}
        if task_id is not None:
            env[SUBTASK_ENV] = task_id
        self.supervisor.spawn(name, command, cwd=cwd, env=env)
        logger.info("Launched %s session %s", role.value, name)
        return name

    def launch_foreman(self, plan_id: str, command: str, *, cwd: Path | None = None) -> str:
        return self.launch(Role.FOREMAN, plan_id, command, cwd=cwd)

    def launch_worker(
        self,
        plan_id: str,
        task_id: str,
        command: str,
        *,
        worktree: Path | None = None,
    ) -> str:
        return self.launch(Role.WORKER, plan_id, command, task_id=task_id, cwd=worktree)

    def launch_reviewer(self, plan_id: str, command: str, *, cwd: Path | None = None) -> str:
        return self.launch(Role.REVIEWER, plan_id, command, cwd=cwd)

    def message(self, role: Role, plan_id: str, text: str, *, task_id: str | None = None) -> None:
        self.supervisor.send_input(self.names.for_role(role, plan_id, task_id), text)

    def stop(self, role: Role, plan_id: str, *, task_id: str | None = None) -> bool:
        """Kill the role session if it is alive; ``False`` when already gone."""

        name = self.names.for_role(role, plan_id, task_id)
        if not self.supervisor.exists(name):
            return False
        self.supervisor.kill(name)
        return True

    def discover(self) -> list[str]:
        """Every session belonging to this system."""

        return self.supervisor.list_by_prefix(self.names.discovery_prefix)
