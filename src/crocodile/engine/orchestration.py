"""Engine mediating writes to the append log and reads from the mirror."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from types import TracebackType

from crocodile.config import Settings
from crocodile.engine.append_log import AppendLog
from crocodile.engine.mirror import MirrorStore
from crocodile.errors import CacheError, InvalidConfigError, NotFoundError
from crocodile.models import (
    ContextItem,
    Entity,
    EntityKind,
    Event,
    Plan,
    Review,
    Task,
    kind_of,
)

logger = logging.getLogger(__name__)

# Replay order: plans first so a partially replayed mirror still resolves parents.
SYNC_ORDER = (
    EntityKind.PLAN,
    EntityKind.TASK,
    EntityKind.CONTEXT,
    EntityKind.EVENT,
    EntityKind.REVIEW,
)


class CrocEngine:
    """Write-through to the log, read from the mirror.

    Appends hit the log first and the mirror second. If the mirror write
    fails the log still holds the record; the error reaches the caller and
    a later full sync repairs the mirror. On construction the engine runs
    a full sync when the mirror has no plans but the log has some.
    """

    def __init__(
        self,
        settings: Settings,
        *,
        log: AppendLog | None = None,
        mirror: MirrorStore | None = None,
    ) -> None:
        if not settings.is_initialized():
            raise InvalidConfigError(
                f"Crocodile not initialized at {settings.croc_dir}. Run 'croc init' first.",
            )
        self.settings = settings
        self.log = log or AppendLog(settings)
        self.mirror = mirror or MirrorStore(
            settings.cache_db_path,
            busy_timeout_ms=settings.mirror.busy_timeout_ms,
            max_connections=settings.mirror.max_connections,
        )
        try:
            self.mirror.init_schema()
            self.ensure_mirror_synced()
        except Exception:
            self.mirror.close()
            raise

    def close(self) -> None:
        self.mirror.close()

    def __enter__(self) -> CrocEngine:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    def ensure_mirror_synced(self) -> bool:
        """Run a full sync when the mirror is empty but the log is not."""

        if self.mirror.count(EntityKind.PLAN) > 0:
            return False
        if not self.log.has_records(EntityKind.PLAN):
            return False
        logger.debug("Mirror empty but log has plans, syncing")
        self.full_sync()
        return True

    def full_sync(self) -> dict[EntityKind, int]:
        """Clear the mirror and replay every log target oldest-first."""

        logger.info("Running full sync from %s into %s", self.settings.croc_dir, self.mirror.db_path)
        self.mirror.clear_all()
        replayed: dict[EntityKind, int] = {}
        for kind in SYNC_ORDER:
            replayed[kind] = self.mirror.upsert_many(self.log.read_all(kind))
        logger.info(
            "Full sync complete: %s",
            ", ".join(f"{kind.value}={count}" for kind, count in replayed.items()),
        )
        return replayed

    def append(self, entity: Entity) -> None:
        """Persist ``entity`` to the log, then project it into the mirror."""

        self.log.append(entity)
        try:
            self.mirror.upsert(entity)
        except CacheError:
            logger.warning(
                "%s %s is in the log but not the mirror; a full sync will repair it",
                kind_of(entity).label,
                entity.id,
            )
            raise

    def append_plan(self, plan: Plan) -> None:
        self.append(plan)

    def append_task(self, task: Task) -> None:
        self.append(task)

    def append_context(self, item: ContextItem) -> None:
        self.append(item)

    def append_event(self, event: Event) -> None:
        self.append(event)

    def append_review(self, review: Review) -> None:
        self.append(review)

    def get_plan(self, plan_id: str) -> Plan:
        plan = self.mirror.get_plan(plan_id)
        if plan is None:
            raise NotFoundError(EntityKind.PLAN.label, plan_id)
        return plan

    def get_plan_opt(self, plan_id: str) -> Plan | None:
        return self.mirror.get_plan(plan_id)

    def get_task(self, task_id: str) -> Task:
        task = self.mirror.get_task(task_id)
        if task is None:
            raise NotFoundError(EntityKind.TASK.label, task_id)
        return task

    def get_task_opt(self, task_id: str) -> Task | None:
        return self.mirror.get_task(task_id)

    def get_tasks_for_plan(self, plan_id: str) -> list[Task]:
        return self.mirror.get_tasks_for_plan(plan_id)

    def get_context_for_plan(self, plan_id: str) -> list[ContextItem]:
        return self.mirror.get_context_for_plan(plan_id)

    def get_context_for_task(self, subtask_id: str) -> list[ContextItem]:
        return self.mirror.get_context_for_task(subtask_id)

    def get_reviews_for_plan(self, plan_id: str) -> list[Review]:
        return self.mirror.get_reviews_for_plan(plan_id)

    def get_events(
        self,
        *,
        plan_id: str | None = None,
        limit: int | None = None,
        newest_first: bool = False,
    ) -> list[Event]:
        return self.mirror.get_events(plan_id=plan_id, limit=limit, newest_first=newest_first)

    def get_active_plans(self) -> list[Plan]:
        return self.mirror.get_active_plans()

    def get_all_plans(self) -> list[Plan]:
        return self.mirror.get_all_plans()


@contextmanager
def open_engine(settings: Settings) -> Iterator[CrocEngine]:
    engine = CrocEngine(settings)
    try:
        yield engine
    finally:
        engine.close()
