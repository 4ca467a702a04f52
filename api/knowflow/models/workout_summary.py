"""
WorkoutSummary model.
"""
import uuid
from sqlalchemy import Column, DateTime, JSON
from sqlmodel import SQLModel, Field
from typing import Optional, List
from datetime import datetime

from knowflow.utils.datetime_utils import utc_now


class WorkoutSummary(SQLModel, table=True):
    """WorkoutSummary table - session analytics recorded once per completed workout."""
    __tablename__ = "workout_summary"

    workout_id: uuid.UUID = Field(foreign_key="workout.id", primary_key=True)
    completed_at: datetime = Field(sa_column=Column(DateTime, nullable=False))
    total_items: int = 0
    pass_count: int = 0
    fail_count: int = 0
    pass_rate: float = 0.0
    kv_delta: float = 0.0
    udr: float = 0.0
    recommended_focus: Optional[str] = None
    metrics: dict = Field(default_factory=dict, sa_column=Column(JSON, nullable=False))
    insights: List[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    created_at: datetime = Field(default_factory=utc_now, sa_column=Column(DateTime, nullable=False))
    updated_at: datetime = Field(default_factory=utc_now, sa_column=Column(DateTime, nullable=False))
