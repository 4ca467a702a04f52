"""
SkillPoint model.
"""
import uuid
from sqlalchemy import Column, DateTime
from sqlmodel import SQLModel, Field, Relationship
from typing import Optional, List, TYPE_CHECKING
from datetime import datetime

from knowflow.models.enums import SkillLevel
from knowflow.utils.datetime_utils import utc_now

if TYPE_CHECKING:
    from knowflow.models.direction import Direction
    from knowflow.models.memory_card import MemoryCard


class SkillPoint(SQLModel, table=True):
    """SkillPoint table - finer-grained competency under a direction."""
    __tablename__ = "skill_point"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    direction_id: uuid.UUID = Field(foreign_key="direction.id", index=True)
    name: str
    summary: Optional[str] = None
    level: str = Field(default=SkillLevel.UNKNOWN.value)  # unknown, emerging, working, fluent
    created_at: datetime = Field(default_factory=utc_now, sa_column=Column(DateTime, nullable=False))
    updated_at: datetime = Field(default_factory=utc_now, sa_column=Column(DateTime, nullable=False))

    # Relationships
    direction: "Direction" = Relationship(back_populates="skill_points")
    cards: List["MemoryCard"] = Relationship(back_populates="skill_point")
