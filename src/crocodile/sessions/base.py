"""Supervisor interface for role execution contexts."""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path
from typing import Protocol


class SessionSupervisor(Protocol):
    """Protocol implemented by session supervisors.

    Every call is synchronous and may raise ``SessionError``. Implementations
    never retry; the caller decides retry policy.
    """

    def spawn(
        self,
        name: str,
        command: str,
        *,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
    ) -> None:
        """Start a detached context running ``command``; fail if ``name`` exists."""

    def exists(self, name: str) -> bool:
        """Whether a context called ``name`` is alive."""

    def send_input(self, name: str, text: str) -> None:
        """Type ``text`` into the context followed by Enter."""

    def capture_output(self, name: str) -> str:
        """Currently visible output buffer."""

    def kill(self, name: str) -> None:
        """Terminate and remove the context."""

    def attach(self, name: str) -> None:
        """Hand the terminal to the context until the user detaches."""

    def list_all(self) -> list[str]:
        """Names of every context the supervisor knows about."""

    def list_by_prefix(self, prefix: str) -> list[str]:
        """Names starting with ``prefix``."""
