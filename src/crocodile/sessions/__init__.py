"""Named execution contexts for role processes."""

from crocodile.sessions.base import SessionSupervisor
from crocodile.sessions.launcher import RoleLauncher
from crocodile.sessions.naming import SessionNames, bare_plan_id, task_leaf
from crocodile.sessions.tmux import TmuxSupervisor

__all__ = [
    "RoleLauncher",
    "SessionNames",
    "SessionSupervisor",
    "TmuxSupervisor",
    "bare_plan_id",
    "task_leaf",
]
