"""
Workout and WorkoutItem models.
"""
import uuid
from sqlalchemy import Column, DateTime, JSON
from sqlmodel import SQLModel, Field, Relationship
from typing import Optional, List
from datetime import datetime

from knowflow.models.enums import WorkoutStatus
from knowflow.utils.datetime_utils import utc_now


class Workout(SQLModel, table=True):
    """Workout table - one scheduled practice session and its serialized plan."""
    __tablename__ = "workout"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    scheduled_for: datetime = Field(sa_column=Column(DateTime, nullable=False, index=True))
    completed_at: Optional[datetime] = Field(default=None, sa_column=Column(DateTime, nullable=True))
    status: str = Field(default=WorkoutStatus.PENDING.value, index=True)  # pending or completed
    payload: dict = Field(default_factory=dict, sa_column=Column(JSON, nullable=False))
    created_at: datetime = Field(default_factory=utc_now, sa_column=Column(DateTime, nullable=False))
    updated_at: datetime = Field(default_factory=utc_now, sa_column=Column(DateTime, nullable=False))

    # Relationships
    items: List["WorkoutItem"] = Relationship(back_populates="workout")


class WorkoutItem(SQLModel, table=True):
    """WorkoutItem table - one card slot inside a workout, keyed by item id."""
    __tablename__ = "workout_item"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    workout_id: uuid.UUID = Field(foreign_key="workout.id", index=True)
    card_id: uuid.UUID = Field(foreign_key="memory_card.id", index=True)
    sequence: int = 0
    phase: str  # quiz, apply, review
    result: Optional[str] = None  # 'pass' or 'fail' once completed
    due_at: Optional[datetime] = Field(default=None, sa_column=Column(DateTime, nullable=True))
    created_at: datetime = Field(default_factory=utc_now, sa_column=Column(DateTime, nullable=False))

    # Relationships
    workout: Workout = Relationship(back_populates="items")
