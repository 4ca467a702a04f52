"""
Direction model.
"""
import uuid
from sqlalchemy import Column, DateTime
from sqlmodel import SQLModel, Field, Relationship
from typing import Optional, List, TYPE_CHECKING
from datetime import datetime

from knowflow.models.enums import DirectionStage
from knowflow.utils.datetime_utils import utc_now

if TYPE_CHECKING:
    from knowflow.models.memory_card import MemoryCard
    from knowflow.models.skill_point import SkillPoint


class Direction(SQLModel, table=True):
    """Direction table - top-level learning goal cards belong to."""
    __tablename__ = "direction"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    name: str
    stage: str = Field(default=DirectionStage.EXPLORE.value)  # explore, shape, attack, stabilize
    quarterly_goal: Optional[str] = None
    created_at: datetime = Field(default_factory=utc_now, sa_column=Column(DateTime, nullable=False))
    updated_at: datetime = Field(default_factory=utc_now, sa_column=Column(DateTime, nullable=False))

    # Relationships
    skill_points: List["SkillPoint"] = Relationship(back_populates="direction")
    cards: List["MemoryCard"] = Relationship(back_populates="direction")
