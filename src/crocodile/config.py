"""Runtime configuration for the orchestration store and session layer."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from crocodile.models import EntityKind

CROC_DIR_NAME = ".croc"
CACHE_DB_NAME = "cache.db"

LOG_FILE_NAMES: dict[EntityKind, str] = {
    EntityKind.PLAN: "plans.jsonl",
    EntityKind.TASK: "tasks.jsonl",
    EntityKind.CONTEXT: "context.jsonl",
    EntityKind.EVENT: "events.jsonl",
    EntityKind.REVIEW: "reviews.jsonl",
}

_LOG_LEVELS = {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}


@dataclass(slots=True)
class MirrorSettings:
    """SQLite mirror connection settings."""

    busy_timeout_ms: int = 5_000
    max_connections: int = 5


@dataclass(slots=True)
class SessionSettings:
    """Session supervisor settings."""

    prefix: str = "croc"
    tmux_binary: str = "tmux"


@dataclass(slots=True)
class Settings:
    """Project-scoped settings, built once at the entry point and passed down."""

    project_root: Path = Path(".")
    mirror: MirrorSettings = field(default_factory=MirrorSettings)
    sessions: SessionSettings = field(default_factory=SessionSettings)
    log_level: str | None = None

    @classmethod
    def from_env(cls, project_root: Path | None = None) -> Settings:
        """Load settings from ``CROC_*`` environment variables."""

        root = project_root or Path(os.getenv("CROC_PROJECT_ROOT", "."))
        return cls(
            project_root=root.expanduser().resolve(),
            mirror=MirrorSettings(
                busy_timeout_ms=_env_int("CROC_SQLITE_BUSY_TIMEOUT_MS", 5000),
                max_connections=_env_int("CROC_MIRROR_MAX_CONNECTIONS", 5),
            ),
            sessions=SessionSettings(
                prefix=os.getenv("CROC_SESSION_PREFIX", "croc"),
                tmux_binary=os.getenv("CROC_TMUX_BINARY", "tmux"),
            ),
            log_level=os.getenv("CROC_LOG_LEVEL") or None,
        )

    def validate(self) -> None:
        """Raise configuration error for out-of-range values."""

        if self.mirror.busy_timeout_ms <= 0:
            raise ValueError("CROC_SQLITE_BUSY_TIMEOUT_MS must be > 0.")
        if self.mirror.max_connections <= 0:
            raise ValueError("CROC_MIRROR_MAX_CONNECTIONS must be > 0.")
        prefix = self.sessions.prefix
        if not prefix or "-" in prefix or any(char.isspace() for char in prefix):
            raise ValueError(
                f"CROC_SESSION_PREFIX must be a non-empty word without dashes, got {prefix!r}.",
            )
        if self.log_level is not None and self.log_level.upper() not in _LOG_LEVELS:
            raise ValueError(f"Unsupported CROC_LOG_LEVEL: {self.log_level!r}.")

    @property
    def croc_dir(self) -> Path:
        return self.project_root / CROC_DIR_NAME

    def log_file(self, kind: EntityKind) -> Path:
        return self.croc_dir / LOG_FILE_NAMES[kind]

    @property
    def plans_file(self) -> Path:
        return self.log_file(EntityKind.PLAN)

    @property
    def tasks_file(self) -> Path:
        return self.log_file(EntityKind.TASK)

    @property
    def context_file(self) -> Path:
        return self.log_file(EntityKind.CONTEXT)

    @property
    def events_file(self) -> Path:
        return self.log_file(EntityKind.EVENT)

    @property
    def reviews_file(self) -> Path:
        return self.log_file(EntityKind.REVIEW)

    @property
    def cache_db_path(self) -> Path:
        return self.croc_dir / CACHE_DB_NAME

    @property
    def checkpoints_dir(self) -> Path:
        return self.croc_dir / "checkpoints"

    @property
    def logs_dir(self) -> Path:
        return self.croc_dir / "logs"

    def is_initialized(self) -> bool:
        return self.croc_dir.is_dir()


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError as error:
        raise ValueError(f"{name} must be an integer, got {raw!r}.") from error
