"""Queryable SQLite projection of the append log."""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any, cast

from sqlalchemy import delete as sa_delete
from sqlalchemy import func
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, SQLModel, col, select

from alembic.util import CommandError
from crocodile.engine.alembic_runner import upgrade_head
from crocodile.engine.common import (
    build_sqlite_engine,
    exclusive_lock,
    to_db_datetime,
    to_utc_aware_datetime,
)
from crocodile.engine.tables import ContextItemRow, EventRow, PlanRow, ReviewRow, TaskRow
from crocodile.errors import CacheError
from crocodile.models import (
    ContextItem,
    ContextType,
    Entity,
    EntityKind,
    Event,
    EventType,
    Plan,
    PlanStatus,
    Review,
    ReviewerType,
    ReviewStatus,
    Task,
    TaskStatus,
    TaskType,
    kind_of,
)

logger = logging.getLogger(__name__)

ACTIVE_PLAN_STATUSES = (PlanStatus.APPROVED, PlanStatus.RUNNING)

KIND_TABLES: dict[EntityKind, type[SQLModel]] = {
    EntityKind.PLAN: PlanRow,
    EntityKind.TASK: TaskRow,
    EntityKind.CONTEXT: ContextItemRow,
    EntityKind.EVENT: EventRow,
    EntityKind.REVIEW: ReviewRow,
}


class MirrorStore:
    """Mirror persistence facade backed by SQLModel + SQLite.

    Every entity kind lives in its own table keyed by entity id. Upserts
    overwrite all columns, so replaying the log is idempotent. List and
    JSON fields are stored as JSON text and decoded on read.
    """

    def __init__(
        self,
        db_path: Path,
        *,
        busy_timeout_ms: int = 5_000,
        max_connections: int = 5,
    ) -> None:
        self.db_path = db_path
        self.engine = build_sqlite_engine(
            db_path=db_path,
            busy_timeout_ms=busy_timeout_ms,
            max_connections=max_connections,
        )

    def close(self) -> None:
        """Close underlying DB resources."""

        self.engine.dispose()

    def init_schema(self) -> None:
        """Run schema migrations; concurrent openers take turns on a lock file."""

        lock_path = self.db_path.with_name(f"{self.db_path.name}.lock")
        try:
            with exclusive_lock(lock_path):
                upgrade_head(self.db_path)
        except (SQLAlchemyError, CommandError, OSError) as error:
            raise CacheError(f"Failed to migrate {self.db_path}: {error}") from error

    def upsert(self, entity: Entity) -> None:
        """Insert or fully overwrite one entity by id."""

        kind = kind_of(entity)
        with self._guard(f"upsert {kind.label} {entity.id}"), Session(self.engine) as session:
            _upsert_row(session, _to_row(entity))
            session.commit()

    def upsert_many(self, entities: Iterable[Entity]) -> int:
        """Upsert entities in order within one transaction; later ids win."""

        count = 0
        with self._guard("bulk upsert"), Session(self.engine) as session:
            for entity in entities:
                _upsert_row(session, _to_row(entity))
                count += 1
            session.commit()
        return count

    def upsert_plan(self, plan: Plan) -> None:
        self.upsert(plan)

    def upsert_task(self, task: Task) -> None:
        self.upsert(task)

    def upsert_context(self, item: ContextItem) -> None:
        self.upsert(item)

    def upsert_event(self, event: Event) -> None:
        self.upsert(event)

    def upsert_review(self, review: Review) -> None:
        self.upsert(review)

    def get(self, kind: EntityKind, entity_id: str) -> Entity | None:
        """Fetch one entity by id; ``None`` when absent."""

        table = KIND_TABLES[kind]
        with self._guard(f"get {kind.label} {entity_id}"), Session(self.engine) as session:
            row = session.get(table, entity_id)
            if row is None:
                return None
            return _from_row(kind, row)

    def get_plan(self, plan_id: str) -> Plan | None:
        return cast(Plan | None, self.get(EntityKind.PLAN, plan_id))

    def get_task(self, task_id: str) -> Task | None:
        return cast(Task | None, self.get(EntityKind.TASK, task_id))

    def get_tasks_for_plan(self, plan_id: str) -> list[Task]:
        with self._guard(f"list tasks for {plan_id}"), Session(self.engine) as session:
            rows = session.exec(
                select(TaskRow)
                .where(TaskRow.plan_id == plan_id)
                .order_by(col(TaskRow.created_at).asc(), col(TaskRow.id).asc()),
            ).all()
            return [_task_from_row(row) for row in rows]

    def get_context_for_plan(self, plan_id: str) -> list[ContextItem]:
        with self._guard(f"list context for {plan_id}"), Session(self.engine) as session:
            rows = session.exec(
                select(ContextItemRow)
                .where(ContextItemRow.plan_id == plan_id)
                .order_by(col(ContextItemRow.created_at).asc(), col(ContextItemRow.id).asc()),
            ).all()
            return [_context_from_row(row) for row in rows]

    def get_context_for_task(self, subtask_id: str) -> list[ContextItem]:
        with self._guard(f"list context for {subtask_id}"), Session(self.engine) as session:
            rows = session.exec(
                select(ContextItemRow)
                .where(ContextItemRow.subtask_id == subtask_id)
                .order_by(col(ContextItemRow.created_at).asc(), col(ContextItemRow.id).asc()),
            ).all()
            return [_context_from_row(row) for row in rows]

    def get_reviews_for_plan(self, plan_id: str) -> list[Review]:
        with self._guard(f"list reviews for {plan_id}"), Session(self.engine) as session:
            rows = session.exec(
                select(ReviewRow)
                .where(ReviewRow.plan_id == plan_id)
                .order_by(col(ReviewRow.created_at).asc(), col(ReviewRow.id).asc()),
            ).all()
            return [_review_from_row(row) for row in rows]

    def get_events(
        self,
        *,
        plan_id: str | None = None,
        limit: int | None = None,
        newest_first: bool = False,
    ) -> list[Event]:
        """Audit events oldest first, optionally scoped to one plan.

        With ``newest_first`` the order is reversed, so ``limit`` keeps the latest events.
        """

        statement = select(EventRow)
        if plan_id is not None:
            statement = statement.where(EventRow.plan_id == plan_id)
        if newest_first:
            statement = statement.order_by(col(EventRow.timestamp).desc(), col(EventRow.id).desc())
        else:
            statement = statement.order_by(col(EventRow.timestamp).asc(), col(EventRow.id).asc())
        if limit is not None:
            statement = statement.limit(limit)
        with self._guard("list events"), Session(self.engine) as session:
            return [_event_from_row(row) for row in session.exec(statement).all()]

    def get_active_plans(self) -> list[Plan]:
        """Approved or running plans, newest first."""

        statuses = [status.value for status in ACTIVE_PLAN_STATUSES]
        with self._guard("list active plans"), Session(self.engine) as session:
            rows = session.exec(
                select(PlanRow)
                .where(col(PlanRow.status).in_(statuses))
                .order_by(col(PlanRow.created_at).desc(), col(PlanRow.id).desc()),
            ).all()
            return [_plan_from_row(row) for row in rows]

    def get_all_plans(self) -> list[Plan]:
        with self._guard("list plans"), Session(self.engine) as session:
            rows = session.exec(
                select(PlanRow).order_by(col(PlanRow.created_at).desc(), col(PlanRow.id).desc()),
            ).all()
            return [_plan_from_row(row) for row in rows]

    def count(self, kind: EntityKind) -> int:
        table = KIND_TABLES[kind]
        with self._guard(f"count {kind.label}"), Session(self.engine) as session:
            return int(session.exec(select(func.count()).select_from(table)).one())

    def clear_all(self) -> None:
        """Wipe every entity table."""

        with self._guard("clear mirror"), Session(self.engine) as session:
            for table in KIND_TABLES.values():
                session.exec(sa_delete(table))
            session.commit()
        logger.info("Cleared mirror at %s", self.db_path)

    @contextmanager
    def _guard(self, action: str) -> Iterator[None]:
        try:
            yield
        except SQLAlchemyError as error:
            raise CacheError(f"Failed to {action}: {error}") from error
        except (ValueError, TypeError) as error:
            raise CacheError(f"Failed to decode while trying to {action}: {error}") from error


def _upsert_row(session: Session, row: SQLModel) -> None:
    table = type(row).__table__  # type: ignore[attr-defined]
    values = {column.name: getattr(row, column.name) for column in table.columns}
    statement = sqlite_insert(table).values(**values)
    statement = statement.on_conflict_do_update(
        index_elements=["id"],
        set_={name: statement.excluded[name] for name in values if name != "id"},
    )
    session.exec(statement)  # type: ignore[call-overload]


def _to_row(entity: Entity) -> SQLModel:
    if isinstance(entity, Plan):
        return PlanRow(
            id=entity.id,
            title=entity.title,
            description=entity.description,
            subtasks_preview_json=_dump(entity.subtasks_preview),
            considerations_json=_dump(entity.considerations),
            status=entity.status.value,
            approved_at=(
                to_db_datetime(entity.approved_at) if entity.approved_at is not None else None
            ),
            created_at=to_db_datetime(entity.created_at),
            updated_at=to_db_datetime(entity.updated_at),
        )
    if isinstance(entity, Task):
        return TaskRow(
            id=entity.id,
            plan_id=entity.plan_id,
            parent_id=entity.parent_id,
            task_type=entity.task_type.value,
            title=entity.title,
            description=entity.description,
            status=entity.status.value,
            depends_on_json=_dump(entity.depends_on),
            worktree=entity.worktree,
            assigned_worker=entity.assigned_worker,
            created_at=to_db_datetime(entity.created_at),
            updated_at=to_db_datetime(entity.updated_at),
        )
    if isinstance(entity, ContextItem):
        return ContextItemRow(
            id=entity.id,
            plan_id=entity.plan_id,
            subtask_id=entity.subtask_id,
            item_type=entity.item_type.value,
            content=entity.content,
            source=entity.source,
            reasoning=entity.reasoning,
            alternatives_json=_dump(entity.alternatives) if entity.alternatives is not None else None,
            confidence=entity.confidence,
            created_at=to_db_datetime(entity.created_at),
        )
    if isinstance(entity, Event):
        return EventRow(
            id=entity.id,
            event_type=entity.event_type.value,
            plan_id=entity.plan_id,
            task_id=entity.task_id,
            data_json=_dump(entity.data) if entity.data is not None else None,
            timestamp=to_db_datetime(entity.timestamp),
        )
    return ReviewRow(
        id=entity.id,
        plan_id=entity.plan_id,
        reviewer_type=entity.reviewer_type.value,
        status=entity.status.value,
        notes_json=_dump(entity.notes),
        created_at=to_db_datetime(entity.created_at),
        updated_at=to_db_datetime(entity.updated_at),
    )


def _from_row(kind: EntityKind, row: Any) -> Entity:
    if kind == EntityKind.PLAN:
        return _plan_from_row(row)
    if kind == EntityKind.TASK:
        return _task_from_row(row)
    if kind == EntityKind.CONTEXT:
        return _context_from_row(row)
    if kind == EntityKind.EVENT:
        return _event_from_row(row)
    return _review_from_row(row)


def _plan_from_row(row: PlanRow) -> Plan:
    return Plan(
        id=row.id,
        title=row.title,
        description=row.description,
        subtasks_preview=_load_list(row.subtasks_preview_json),
        considerations=_load_list(row.considerations_json),
        status=PlanStatus(row.status),
        approved_at=(
            to_utc_aware_datetime(row.approved_at) if row.approved_at is not None else None
        ),
        created_at=to_utc_aware_datetime(row.created_at),
        updated_at=to_utc_aware_datetime(row.updated_at),
    )


def _task_from_row(row: TaskRow) -> Task:
    return Task(
        id=row.id,
        plan_id=row.plan_id,
        parent_id=row.parent_id,
        task_type=TaskType(row.task_type),
        title=row.title,
        description=row.description,
        status=TaskStatus(row.status),
        depends_on=_load_list(row.depends_on_json),
        worktree=row.worktree,
        assigned_worker=row.assigned_worker,
        created_at=to_utc_aware_datetime(row.created_at),
        updated_at=to_utc_aware_datetime(row.updated_at),
    )


def _context_from_row(row: ContextItemRow) -> ContextItem:
    return ContextItem(
        id=row.id,
        plan_id=row.plan_id,
        subtask_id=row.subtask_id,
        item_type=ContextType(row.item_type),
        content=row.content,
        source=row.source,
        reasoning=row.reasoning,
        alternatives=(
            _load_list(row.alternatives_json) if row.alternatives_json is not None else None
        ),
        confidence=row.confidence,
        created_at=to_utc_aware_datetime(row.created_at),
    )


def _event_from_row(row: EventRow) -> Event:
    return Event(
        id=row.id,
        event_type=EventType(row.event_type),
        plan_id=row.plan_id,
        task_id=row.task_id,
        data=json.loads(row.data_json) if row.data_json is not None else None,
        timestamp=to_utc_aware_datetime(row.timestamp),
    )


def _review_from_row(row: ReviewRow) -> Review:
    return Review(
        id=row.id,
        plan_id=row.plan_id,
        reviewer_type=ReviewerType(row.reviewer_type),
        status=ReviewStatus(row.status),
        notes=_load_list(row.notes_json),
        created_at=to_utc_aware_datetime(row.created_at),
        updated_at=to_utc_aware_datetime(row.updated_at),
    )


def _dump(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False)


def _load_list(payload: str) -> list[str]:
    value = json.loads(payload)
    if not isinstance(value, list):
        raise ValueError(f"Expected JSON list, got {type(value).__name__}")
    return [str(item) for item in value]
