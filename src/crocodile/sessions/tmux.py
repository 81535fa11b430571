"""Session supervisor backed by tmux."""

from __future__ import annotations

import logging
import subprocess
from collections.abc import Mapping
from pathlib import Path

from crocodile.errors import SessionError

logger = logging.getLogger(__name__)


class TmuxSupervisor:
    """Drive tmux sessions through its command line."""

    def __init__(self, binary: str = "tmux") -> None:
        self.binary = binary

    def spawn(
        self,
        name: str,
        command: str,
        *,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
    ) -> None:
        logger.debug("Spawning tmux session %s: %s", name, command)
        if self.exists(name):
            raise SessionError(f"Session '{name}' already exists", name)

        args = ["new-session", "-d", "-s", name]
        if cwd is not None:
            args.extend(["-c", str(cwd)])
        for key, value in (env or {}).items():
            args.extend(["-e", f"{key}={value}"])
        args.append(command)
        self._run_checked(args, session=name, action="new-session")
        logger.info("Spawned tmux session %s", name)

    def exists(self, name: str) -> bool:
        result = self._run(["has-session", "-t", _exact(name)], session=name, action="has-session")
        return result.returncode == 0

    def send_input(self, name: str, text: str) -> None:
        logger.debug("Sending input to tmux session %s", name)
        self._run_checked(
            ["send-keys", "-t", _pane(name), "-l", "--", text],
            session=name,
            action="send-keys",
        )
        self._run_checked(
            ["send-keys", "-t", _pane(name), "Enter"],
            session=name,
            action="send-keys",
        )

    def capture_output(self, name: str) -> str:
        result = self._run_checked(
            ["capture-pane", "-t", _pane(name), "-p"],
            session=name,
            action="capture-pane",
        )
        return result.stdout

    def kill(self, name: str) -> None:
        logger.debug("Killing tmux session %s", name)
        self._run_checked(["kill-session", "-t", _exact(name)], session=name, action="kill-session")
        logger.info("Killed tmux session %s", name)

    def attach(self, name: str) -> None:
        logger.info("Attaching to tmux session %s", name)
        try:
            returncode = subprocess.run(  # noqa: S603
                [self.binary, "attach-session", "-t", _exact(name)],
                check=False,
            ).returncode
        except OSError as error:
            raise SessionError(f"Failed to attach: {error}", name) from error
        if returncode != 0:
            raise SessionError(f"tmux attach-session exited with {returncode}", name)

    def list_all(self) -> list[str]:
        result = self._run(["list-sessions", "-F", "#{session_name}"], action="list-sessions")
        if result.returncode != 0:
            # No tmux server running means no sessions.
            logger.debug("tmux list-sessions failed: %s", result.stderr.strip())
            return []
        return [line for line in result.stdout.splitlines() if line]

    def list_by_prefix(self, prefix: str) -> list[str]:
        return [name for name in self.list_all() if name.startswith(prefix)]

    def _run(
        self,
        args: list[str],
        *,
        action: str,
        session: str | None = None,
    ) -> subprocess.CompletedProcess[str]:
        try:
            return subprocess.run(  # noqa: S603
                [self.binary, *args],
                capture_output=True,
                text=True,
                check=False,
            )
        except OSError as error:
            raise SessionError(f"Failed to run tmux {action}: {error}", session) from error

    def _run_checked(
        self,
        args: list[str],
        *,
        action: str,
        session: str | None = None,
    ) -> subprocess.CompletedProcess[str]:
        result = self._run(args, action=action, session=session)
        if result.returncode != 0:
            raise SessionError(f"tmux {action} failed: {result.stderr.strip()}", session)
        return result


def _exact(name: str) -> str:
    # "=" makes tmux match the session name exactly instead of by prefix.
    return f"={name}"


def _pane(name: str) -> str:
    return f"{_exact(name)}:"
