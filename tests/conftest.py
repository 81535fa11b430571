"""Shared test fixtures."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

import pytest

from crocodile.config import Settings
from crocodile.errors import SessionError


@pytest.fixture(autouse=True)
def _clean_croc_env(monkeypatch):
    for name in (
        "CROC_PROJECT_ROOT",
        "CROC_SQLITE_BUSY_TIMEOUT_MS",
        "CROC_MIRROR_MAX_CONNECTIONS",
        "CROC_SESSION_PREFIX",
        "CROC_TMUX_BINARY",
        "CROC_LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture()
def settings(tmp_path: Path) -> Settings:
    """Settings for an initialized project under ``tmp_path``."""

    resolved = Settings(project_root=tmp_path)
    resolved.croc_dir.mkdir()
    return resolved


@dataclass
class FakeSession:
    command: str
    cwd: Path | None
    env: dict[str, str]
    inputs: list[str] = field(default_factory=list)
    output: str = ""


class FakeSupervisor:
    """In-memory supervisor recording every call."""

    def __init__(self) -> None:
        self.sessions: dict[str, FakeSession] = {}
        self.attached: list[str] = []

    def spawn(
        self,
        name: str,
        command: str,
        *,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
    ) -> None:
        if name in self.sessions:
            raise SessionError(f"Session '{name}' already exists", name)
        self.sessions[name] = FakeSession(command=command, cwd=cwd, env=dict(env or {}))

    def exists(self, name: str) -> bool:
        return name in self.sessions

    def send_input(self, name: str, text: str) -> None:
        self._get(name).inputs.append(text)

    def capture_output(self, name: str) -> str:
        return self._get(name).output

    def kill(self, name: str) -> None:
        self._get(name)
        del self.sessions[name]

    def attach(self, name: str) -> None:
        self._get(name)
        self.attached.append(name)

    def list_all(self) -> list[str]:
        return list(self.sessions)

    def list_by_prefix(self, prefix: str) -> list[str]:
        return [name for name in self.sessions if name.startswith(prefix)]

    def _get(self, name: str) -> FakeSession:
        try:
            return self.sessions[name]
        except KeyError:
            raise SessionError("no such session", name) from None


@pytest.fixture()
def fake_supervisor() -> FakeSupervisor:
    return FakeSupervisor()


@pytest.fixture(autouse=True)
def _reset_package_logger():
    yield
    package_logger = logging.getLogger("crocodile")
    for handler in list(package_logger.handlers):
        package_logger.removeHandler(handler)
        handler.close()
    package_logger.setLevel(logging.NOTSET)
