"""Domain models for plans, tasks, context, events and reviews."""

from __future__ import annotations

import time
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from enum import Enum
from typing import Any
from uuid import uuid4


class EntityKind(str, Enum):
    """Entity types persisted by the store; one log target and table each."""

    PLAN = "plan"
    TASK = "task"
    CONTEXT = "context"
    EVENT = "event"
    REVIEW = "review"

    @property
    def label(self) -> str:
        return _KIND_LABELS[self]


_KIND_LABELS = {
    EntityKind.PLAN: "Plan",
    EntityKind.TASK: "Task",
    EntityKind.CONTEXT: "ContextItem",
    EntityKind.EVENT: "Event",
    EntityKind.REVIEW: "Review",
}


class PlanStatus(str, Enum):
    """Plan lifecycle states."""

    PENDING = "pending"
    APPROVED = "approved"
    RUNNING = "running"
    COMPLETE = "complete"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in {PlanStatus.COMPLETE, PlanStatus.CANCELLED}

    def can_transition_to(self, target: PlanStatus) -> bool:
        return target in _PLAN_TRANSITIONS[self]


_PLAN_TRANSITIONS: dict[PlanStatus, frozenset[PlanStatus]] = {
    PlanStatus.PENDING: frozenset(
        {PlanStatus.APPROVED, PlanStatus.RUNNING, PlanStatus.COMPLETE, PlanStatus.CANCELLED},
    ),
    PlanStatus.APPROVED: frozenset(
        {PlanStatus.RUNNING, PlanStatus.COMPLETE, PlanStatus.CANCELLED},
    ),
    PlanStatus.RUNNING: frozenset({PlanStatus.COMPLETE, PlanStatus.CANCELLED}),
    PlanStatus.COMPLETE: frozenset(),
    PlanStatus.CANCELLED: frozenset(),
}


class TaskType(str, Enum):
    FOREMAN = "foreman"
    SUBTASK = "subtask"


class TaskStatus(str, Enum):
    """Task lifecycle states."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETE = "complete"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in {TaskStatus.COMPLETE, TaskStatus.FAILED}

    def can_transition_to(self, target: TaskStatus) -> bool:
        return target in _TASK_TRANSITIONS[self]


_TASK_TRANSITIONS: dict[TaskStatus, frozenset[TaskStatus]] = {
    TaskStatus.PENDING: frozenset({TaskStatus.RUNNING, TaskStatus.FAILED}),
    TaskStatus.RUNNING: frozenset({TaskStatus.COMPLETE, TaskStatus.FAILED}),
    TaskStatus.COMPLETE: frozenset(),
    TaskStatus.FAILED: frozenset(),
}


class ContextType(str, Enum):
    FACT = "fact"
    DECISION = "decision"


class EventType(str, Enum):
    """Audit event types."""

    INITIALIZED = "initialized"
    PLAN_CREATED = "plan_created"
    PLAN_APPROVED = "plan_approved"
    FOREMAN_SPAWNED = "foreman_spawned"
    WORKER_SPAWNED = "worker_spawned"
    WORKER_PROGRESS = "worker_progress"
    WORKER_COMPLETE = "worker_complete"
    WORKER_FAILED = "worker_failed"
    REVIEW_REQUESTED = "review_requested"
    REVIEW_APPROVED = "review_approved"
    REVIEW_CHANGES_REQUESTED = "review_changes_requested"
    PLAN_COMPLETE = "plan_complete"
    PLAN_CANCELLED = "plan_cancelled"


class ReviewerType(str, Enum):
    AGENT = "agent"
    HUMAN = "human"


class ReviewStatus(str, Enum):
    """Review verdict states."""

    PENDING = "pending"
    APPROVED = "approved"
    CHANGES_REQUESTED = "changes_requested"

    def can_transition_to(self, target: ReviewStatus) -> bool:
        return target in _REVIEW_TRANSITIONS[self]


_REVIEW_TRANSITIONS: dict[ReviewStatus, frozenset[ReviewStatus]] = {
    ReviewStatus.PENDING: frozenset({ReviewStatus.APPROVED, ReviewStatus.CHANGES_REQUESTED}),
    ReviewStatus.APPROVED: frozenset(),
    ReviewStatus.CHANGES_REQUESTED: frozenset({ReviewStatus.PENDING}),
}


class Role(str, Enum):
    """Workflow roles; each active one runs in its own process."""

    PLANNER = "planner"
    FOREMAN = "foreman"
    WORKER = "worker"
    REVIEWER = "reviewer"


PLAN_ID_PREFIX = "plan-"
TASK_ID_PREFIX = "task-"


def utc_now() -> datetime:
    """Current UTC timestamp."""

    return datetime.now(tz=UTC)


def format_timestamp(value: datetime) -> str:
    """Render a timestamp as RFC 3339 UTC with a ``Z`` suffix."""

    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).isoformat().replace("+00:00", "Z")


def parse_timestamp(value: str) -> datetime:
    """Parse an RFC 3339 timestamp into an aware UTC datetime."""

    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=UTC)
    return parsed.astimezone(UTC)


def strip_plan_prefix(plan_id: str) -> str:
    return plan_id.removeprefix(PLAN_ID_PREFIX)


def _millis_id(prefix: str) -> str:
    # Millisecond stamp keeps ids sortable; the suffix keeps same-millisecond ids distinct.
    return f"{prefix}-{time.time_ns() // 1_000_000}-{uuid4().hex[:6]}"


@dataclass(slots=True)
class Plan:
    """Top-level unit of work."""

    id: str
    title: str
    description: str
    subtasks_preview: list[str] = field(default_factory=list)
    considerations: list[str] = field(default_factory=list)
    status: PlanStatus = PlanStatus.PENDING
    approved_at: datetime | None = None
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)

    @classmethod
    def create(
        cls,
        title: str,
        description: str,
        *,
        subtasks_preview: list[str] | None = None,
        considerations: list[str] | None = None,
    ) -> Plan:
        now = utc_now()
        return cls(
            id=cls.generate_id(),
            title=title,
            description=description,
            subtasks_preview=list(subtasks_preview or []),
            considerations=list(considerations or []),
            created_at=now,
            updated_at=now,
        )

    @staticmethod
    def generate_id() -> str:
        return f"{PLAN_ID_PREFIX}{uuid4().hex}"

    def with_status(self, status: PlanStatus, *, now: datetime | None = None) -> Plan:
        """Return a copy moved to ``status``; illegal transitions raise ``ValueError``."""

        if not self.status.can_transition_to(status):
            raise ValueError(
                f"Illegal plan transition for {self.id}: {self.status.value} -> {status.value}",
            )
        moment = now or utc_now()
        approved_at = self.approved_at
        if status == PlanStatus.APPROVED and approved_at is None:
            approved_at = moment
        return replace(self, status=status, approved_at=approved_at, updated_at=moment)

    def to_record(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "subtasks_preview": list(self.subtasks_preview),
            "considerations": list(self.considerations),
            "status": self.status.value,
            "approved_at": _optional_timestamp(self.approved_at),
            "created_at": format_timestamp(self.created_at),
            "updated_at": format_timestamp(self.updated_at),
        }

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> Plan:
        return cls(
            id=_required(record, "id"),
            title=_required(record, "title"),
            description=_required(record, "description"),
            subtasks_preview=_string_list(record.get("subtasks_preview")) or [],
            considerations=_string_list(record.get("considerations")) or [],
            status=PlanStatus(_required(record, "status")),
            approved_at=_optional_parse(record.get("approved_at")),
            created_at=parse_timestamp(_required(record, "created_at")),
            updated_at=parse_timestamp(_required(record, "updated_at")),
        )


@dataclass(slots=True)
class Task:
    """Executable unit of work under a plan.

    ``depends_on`` must stay acyclic and reference tasks of the same plan.
    The store persists whatever it is given; callers own that invariant.
    """

    id: str
    plan_id: str
    task_type: TaskType
    title: str
    parent_id: str | None = None
    description: str | None = None
    status: TaskStatus = TaskStatus.PENDING
    depends_on: list[str] = field(default_factory=list)
    worktree: str | None = None
    assigned_worker: str | None = None
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)

    @classmethod
    def new_foreman(cls, plan_id: str, title: str) -> Task:
        now = utc_now()
        return cls(
            id=cls.foreman_id(plan_id),
            plan_id=plan_id,
            task_type=TaskType.FOREMAN,
            title=title,
            created_at=now,
            updated_at=now,
        )

    @classmethod
    def new_subtask(
        cls,
        plan_id: str,
        parent_id: str,
        subtask_num: int,
        title: str,
        *,
        description: str | None = None,
        depends_on: list[str] | None = None,
    ) -> Task:
        now = utc_now()
        return cls(
            id=f"{parent_id}.{subtask_num}",
            plan_id=plan_id,
            parent_id=parent_id,
            task_type=TaskType.SUBTASK,
            title=title,
            description=description,
            depends_on=list(depends_on or []),
            created_at=now,
            updated_at=now,
        )

    @staticmethod
    def foreman_id(plan_id: str) -> str:
        return f"{TASK_ID_PREFIX}{strip_plan_prefix(plan_id)}"

    def with_status(self, status: TaskStatus, *, now: datetime | None = None) -> Task:
        if not self.status.can_transition_to(status):
            raise ValueError(
                f"Illegal task transition for {self.id}: {self.status.value} -> {status.value}",
            )
        return replace(self, status=status, updated_at=now or utc_now())

    def to_record(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "plan_id": self.plan_id,
            "parent_id": self.parent_id,
            "task_type": self.task_type.value,
            "title": self.title,
            "description": self.description,
            "status": self.status.value,
            "depends_on": list(self.depends_on),
            "worktree": self.worktree,
            "assigned_worker": self.assigned_worker,
            "created_at": format_timestamp(self.created_at),
            "updated_at": format_timestamp(self.updated_at),
        }

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> Task:
        return cls(
            id=_required(record, "id"),
            plan_id=_required(record, "plan_id"),
            parent_id=record.get("parent_id"),
            task_type=TaskType(_required(record, "task_type")),
            title=_required(record, "title"),
            description=record.get("description"),
            status=TaskStatus(_required(record, "status")),
            depends_on=_string_list(record.get("depends_on")) or [],
            worktree=record.get("worktree"),
            assigned_worker=record.get("assigned_worker"),
            created_at=parse_timestamp(_required(record, "created_at")),
            updated_at=parse_timestamp(_required(record, "updated_at")),
        )


@dataclass(slots=True)
class ContextItem:
    """Immutable fact or decision shared across roles."""

    id: str
    plan_id: str
    item_type: ContextType
    content: str
    subtask_id: str | None = None
    source: str | None = None
    reasoning: str | None = None
    alternatives: list[str] | None = None
    confidence: float | None = None
    created_at: datetime = field(default_factory=utc_now)

    def __post_init__(self) -> None:
        if self.confidence is not None and not 0.0 <= self.confidence <= 1.0:
            raise ValueError(f"confidence must be within [0, 1], got {self.confidence}")

    @classmethod
    def fact(
        cls,
        plan_id: str,
        content: str,
        *,
        subtask_id: str | None = None,
        source: str | None = None,
        confidence: float | None = None,
    ) -> ContextItem:
        return cls(
            id=_millis_id("fact"),
            plan_id=plan_id,
            item_type=ContextType.FACT,
            content=content,
            subtask_id=subtask_id,
            source=source,
            confidence=confidence,
        )

    @classmethod
    def decision(
        cls,
        plan_id: str,
        content: str,
        reasoning: str,
        *,
        subtask_id: str | None = None,
        alternatives: list[str] | None = None,
    ) -> ContextItem:
        return cls(
            id=_millis_id("dec"),
            plan_id=plan_id,
            item_type=ContextType.DECISION,
            content=content,
            subtask_id=subtask_id,
            reasoning=reasoning,
            alternatives=list(alternatives) if alternatives is not None else None,
        )

    def to_record(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "plan_id": self.plan_id,
            "subtask_id": self.subtask_id,
            "item_type": self.item_type.value,
            "content": self.content,
            "source": self.source,
            "reasoning": self.reasoning,
            "alternatives": list(self.alternatives) if self.alternatives is not None else None,
            "confidence": self.confidence,
            "created_at": format_timestamp(self.created_at),
        }

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> ContextItem:
        confidence = record.get("confidence")
        return cls(
            id=_required(record, "id"),
            plan_id=_required(record, "plan_id"),
            subtask_id=record.get("subtask_id"),
            item_type=ContextType(_required(record, "item_type")),
            content=_required(record, "content"),
            source=record.get("source"),
            reasoning=record.get("reasoning"),
            alternatives=_string_list(record.get("alternatives")),
            confidence=float(confidence) if confidence is not None else None,
            created_at=parse_timestamp(_required(record, "created_at")),
        )


@dataclass(slots=True)
class Event:
    """Audit record; never read back to drive logic."""

    id: str
    event_type: EventType
    plan_id: str | None = None
    task_id: str | None = None
    data: Any = None
    timestamp: datetime = field(default_factory=utc_now)

    @classmethod
    def create(
        cls,
        event_type: EventType,
        *,
        plan_id: str | None = None,
        task_id: str | None = None,
        data: Any = None,
    ) -> Event:
        return cls(
            id=_millis_id("evt"),
            event_type=event_type,
            plan_id=plan_id,
            task_id=task_id,
            data=data,
        )

    def to_record(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "event_type": self.event_type.value,
            "plan_id": self.plan_id,
            "task_id": self.task_id,
            "data": self.data,
            "timestamp": format_timestamp(self.timestamp),
        }

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> Event:
        return cls(
            id=_required(record, "id"),
            event_type=EventType(_required(record, "event_type")),
            plan_id=record.get("plan_id"),
            task_id=record.get("task_id"),
            data=record.get("data"),
            timestamp=parse_timestamp(_required(record, "timestamp")),
        )


@dataclass(slots=True)
class Review:
    """Approval verdict against a plan."""

    id: str
    plan_id: str
    reviewer_type: ReviewerType
    status: ReviewStatus = ReviewStatus.PENDING
    notes: list[str] = field(default_factory=list)
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)

    @classmethod
    def create(cls, plan_id: str, reviewer_type: ReviewerType) -> Review:
        now = utc_now()
        return cls(
            id=_millis_id("rev"),
            plan_id=plan_id,
            reviewer_type=reviewer_type,
            created_at=now,
            updated_at=now,
        )

    def with_status(
        self,
        status: ReviewStatus,
        *,
        note: str | None = None,
        now: datetime | None = None,
    ) -> Review:
        if not self.status.can_transition_to(status):
            raise ValueError(
                f"Illegal review transition for {self.id}: {self.status.value} -> {status.value}",
            )
        notes = [*self.notes, note] if note else list(self.notes)
        return replace(self, status=status, notes=notes, updated_at=now or utc_now())

    def to_record(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "plan_id": self.plan_id,
            "reviewer_type": self.reviewer_type.value,
            "status": self.status.value,
            "notes": list(self.notes),
            "created_at": format_timestamp(self.created_at),
            "updated_at": format_timestamp(self.updated_at),
        }

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> Review:
        return cls(
            id=_required(record, "id"),
            plan_id=_required(record, "plan_id"),
            reviewer_type=ReviewerType(_required(record, "reviewer_type")),
            status=ReviewStatus(_required(record, "status")),
            notes=_string_list(record.get("notes")) or [],
            created_at=parse_timestamp(_required(record, "created_at")),
            updated_at=parse_timestamp(_required(record, "updated_at")),
        )


Entity = Plan | Task | ContextItem | Event | Review

ENTITY_TYPES: dict[EntityKind, type[Plan | Task | ContextItem | Event | Review]] = {
    EntityKind.PLAN: Plan,
    EntityKind.TASK: Task,
    EntityKind.CONTEXT: ContextItem,
    EntityKind.EVENT: Event,
    EntityKind.REVIEW: Review,
}


def kind_of(entity: Entity) -> EntityKind:
    """Resolve the entity kind for a domain value."""

    for kind, entity_type in ENTITY_TYPES.items():
        if isinstance(entity, entity_type):
            return kind
    raise TypeError(f"Unsupported entity type: {type(entity).__name__}")


def decode_entity(kind: EntityKind, record: dict[str, Any]) -> Entity:
    """Build a typed entity from one decoded JSON record."""

    if not isinstance(record, dict):
        raise ValueError(f"Expected JSON object for {kind.label}, got {type(record).__name__}")
    return ENTITY_TYPES[kind].from_record(record)


def _required(record: dict[str, Any], key: str) -> Any:
    value = record.get(key)
    if value is None:
        raise ValueError(f"Missing required field: {key}")
    return value


def _string_list(value: Any) -> list[str] | None:
    if value is None:
        return None
    if not isinstance(value, list):
        raise ValueError(f"Expected list of strings, got {type(value).__name__}")
    return [str(item) for item in value]


def _optional_timestamp(value: datetime | None) -> str | None:
    return format_timestamp(value) if value is not None else None


def _optional_parse(value: str | None) -> datetime | None:
    return parse_timestamp(value) if value is not None else None
