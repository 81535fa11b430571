"""Error kinds surfaced by the orchestration store and session layer."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path


class CrocError(Exception):
    """Base error for crocodile."""


@dataclass(slots=True)
class NotFoundError(CrocError):
    """A specific entity was requested but does not exist."""

    entity_type: str
    id: str

    def __str__(self) -> str:
        return f"Entity not found: {self.entity_type} with id '{self.id}'"


@dataclass(slots=True)
class InvalidConfigError(CrocError):
    """Project is not initialized or structurally wrong."""

    reason: str

    def __str__(self) -> str:
        return f"Invalid configuration: {self.reason}"


@dataclass(slots=True)
class StorageError(CrocError):
    """Append log I/O, lock, encode or decode failure."""

    message: str
    path: Path | None = None

    def __str__(self) -> str:
        if self.path is None:
            return f"Storage error: {self.message}"
        return f"Storage error ({self.path}): {self.message}"


@dataclass(slots=True)
class CacheError(CrocError):
    """Mirror store connection, query or decode failure."""

    message: str

    def __str__(self) -> str:
        return f"Cache error: {self.message}"


@dataclass(slots=True)
class SessionError(CrocError):
    """Session supervisor failure or session name collision."""

    message: str
    session: str | None = None

    def __str__(self) -> str:
        if self.session is None:
            return f"Session error: {self.message}"
        return f"Session error ({self.session}): {self.message}"
