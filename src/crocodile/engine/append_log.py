"""Append-only JSONL log; the authoritative record of every entity."""

from __future__ import annotations

import fcntl
import json
import logging
import os
from collections.abc import Generator
from contextlib import closing
from pathlib import Path
from typing import cast

from crocodile.config import Settings
from crocodile.errors import StorageError
from crocodile.models import (
    ContextItem,
    Entity,
    EntityKind,
    Event,
    Plan,
    Review,
    Task,
    decode_entity,
    kind_of,
)

logger = logging.getLogger(__name__)


class AppendLog:
    """Per-kind JSONL files guarded by an exclusive lock on every append."""

    def __init__(self, settings: Settings) -> None:
        self.settings = settings

    def path_for(self, kind: EntityKind) -> Path:
        return self.settings.log_file(kind)

    def append(self, entity: Entity) -> None:
        """Durably append one record to the entity's own log target."""

        kind = kind_of(entity)
        path = self.path_for(kind)
        try:
            line = json.dumps(entity.to_record(), ensure_ascii=False, separators=(",", ":"))
        except (TypeError, ValueError) as error:
            raise StorageError(f"Failed to encode {kind.label} {entity.id}: {error}", path) from error
        append_line_locked(path, line)
        logger.debug("Appended %s %s to %s", kind.label, entity.id, path)

    def read_all(self, kind: EntityKind) -> list[Entity]:
        """Every record ever appended for ``kind``, oldest first."""

        return [decode_record(kind, path, number, line) for path, number, line in self._lines(kind)]

    def has_records(self, kind: EntityKind) -> bool:
        with closing(self._lines(kind)) as lines:
            return next(lines, None) is not None

    def create_empty(self, kind: EntityKind) -> Path:
        path = self.path_for(kind)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.touch(exist_ok=True)
        except OSError as error:
            raise StorageError(f"Failed to create log target: {error}", path) from error
        return path

    def read_plans(self) -> list[Plan]:
        return cast(list[Plan], self.read_all(EntityKind.PLAN))

    def read_tasks(self) -> list[Task]:
        return cast(list[Task], self.read_all(EntityKind.TASK))

    def read_context(self) -> list[ContextItem]:
        return cast(list[ContextItem], self.read_all(EntityKind.CONTEXT))

    def read_events(self) -> list[Event]:
        return cast(list[Event], self.read_all(EntityKind.EVENT))

    def read_reviews(self) -> list[Review]:
        return cast(list[Review], self.read_all(EntityKind.REVIEW))

    def _lines(self, kind: EntityKind) -> Generator[tuple[Path, int, str], None, None]:
        path = self.path_for(kind)
        if not path.exists():
            return
        try:
            with path.open("rb") as handle:
                for number, raw in enumerate(handle, start=1):
                    try:
                        line = raw.decode("utf-8")
                    except UnicodeDecodeError as error:
                        raise StorageError(
                            f"Invalid {kind.label} record at line {number}: {error}",
                            path,
                        ) from error
                    if not line.strip():
                        continue
                    yield path, number, line
        except OSError as error:
            raise StorageError(f"Failed to read log target: {error}", path) from error


def append_line_locked(path: Path, line: str) -> None:
    """Append ``line`` plus newline under an exclusive ``flock`` on ``path``."""

    payload = (line.rstrip("\n") + "\n").encode("utf-8")
    try:
        handle = path.open("ab")
    except OSError as error:
        raise StorageError(f"Failed to open log target: {error}", path) from error
    with handle:
        try:
            fcntl.flock(handle.fileno(), fcntl.LOCK_EX)
        except OSError as error:
            raise StorageError(f"Failed to lock log target: {error}", path) from error
        try:
            handle.write(payload)
            handle.flush()
            os.fsync(handle.fileno())
        except OSError as error:
            raise StorageError(f"Failed to write log target: {error}", path) from error
        finally:
            fcntl.flock(handle.fileno(), fcntl.LOCK_UN)


def decode_record(kind: EntityKind, path: Path, number: int, line: str) -> Entity:
    try:
        return decode_entity(kind, json.loads(line))
    except (ValueError, TypeError, KeyError) as error:
        raise StorageError(f"Invalid {kind.label} record at line {number}: {error}", path) from error
