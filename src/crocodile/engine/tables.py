"""SQLModel ORM tables for the queryable mirror."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Column, DateTime, Float, Index, Text
from sqlmodel import Field, SQLModel


class PlanRow(SQLModel, table=True):
    __tablename__ = "plans"  # type: ignore[bad-override]

    id: str = Field(primary_key=True)
    title: str
    description: str = Field(sa_column=Column(Text, nullable=False))
    subtasks_preview_json: str = Field(sa_column=Column(Text, nullable=False))
    considerations_json: str = Field(sa_column=Column(Text, nullable=False))
    status: str = Field(index=True)
    approved_at: datetime | None = Field(default=None, sa_column=Column(DateTime(timezone=True)))
    created_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))
    updated_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))


class TaskRow(SQLModel, table=True):
    __tablename__ = "tasks"  # type: ignore[bad-override]

    id: str = Field(primary_key=True)
    plan_id: str = Field(index=True)
    parent_id: str | None = None
    task_type: str
    title: str
    description: str | None = Field(default=None, sa_column=Column(Text))
    status: str = Field(index=True)
    depends_on_json: str = Field(sa_column=Column(Text, nullable=False))
    worktree: str | None = None
    assigned_worker: str | None = None
    created_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))
    updated_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))


class ContextItemRow(SQLModel, table=True):
    __tablename__ = "context_items"  # type: ignore[bad-override]

    id: str = Field(primary_key=True)
    plan_id: str = Field(index=True)
    subtask_id: str | None = Field(default=None, index=True)
    item_type: str
    content: str = Field(sa_column=Column(Text, nullable=False))
    source: str | None = None
    reasoning: str | None = Field(default=None, sa_column=Column(Text))
    alternatives_json: str | None = Field(default=None, sa_column=Column(Text))
    confidence: float | None = Field(default=None, sa_column=Column(Float))
    created_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))


class EventRow(SQLModel, table=True):
    __tablename__ = "events"  # type: ignore[bad-override]
    __table_args__ = (Index("idx_events_plan_time", "plan_id", "timestamp"),)

    id: str = Field(primary_key=True)
    event_type: str
    plan_id: str | None = None
    task_id: str | None = None
    data_json: str | None = Field(default=None, sa_column=Column(Text))
    timestamp: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))


class ReviewRow(SQLModel, table=True):
    __tablename__ = "reviews"  # type: ignore[bad-override]

    id: str = Field(primary_key=True)
    plan_id: str = Field(index=True)
    reviewer_type: str
    status: str
    notes_json: str = Field(sa_column=Column(Text, nullable=False))
    created_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))
    updated_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))
