"""
MemoryCard model.
"""
import uuid
from sqlalchemy import Column, DateTime
from sqlmodel import SQLModel, Field, Relationship
from typing import Optional, TYPE_CHECKING
from datetime import datetime

from knowflow.models.enums import CardType
from knowflow.utils.datetime_utils import utc_now

if TYPE_CHECKING:
    from knowflow.models.direction import Direction
    from knowflow.models.skill_point import SkillPoint


DEFAULT_STABILITY = 0.1
DEFAULT_RELEVANCE = 0.7
DEFAULT_NOVELTY = 0.5


def _unit(value: float) -> float:
    return max(0.0, min(1.0, value))


def calculate_priority(stability: float, relevance: float, novelty: float) -> float:
    """
    Derive card priority: 0.4*(1-stability) + 0.4*relevance + 0.2*novelty,
    each component clamped to [0, 1].
    """
    return (
        0.4 * _unit(1.0 - stability)
        + 0.4 * _unit(relevance)
        + 0.2 * _unit(novelty)
    )


class MemoryCard(SQLModel, table=True):
    """MemoryCard table - atomic unit of knowledge scheduled into workouts."""
    __tablename__ = "memory_card"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    direction_id: uuid.UUID = Field(foreign_key="direction.id", index=True)
    skill_point_id: Optional[uuid.UUID] = Field(default=None, foreign_key="skill_point.id", index=True)
    title: str
    body: str = ""
    card_type: str = Field(default=CardType.CONCEPT.value)  # fact, concept, procedure, claim
    stability: float = Field(default=DEFAULT_STABILITY)
    relevance: float = Field(default=DEFAULT_RELEVANCE)
    novelty: float = Field(default=DEFAULT_NOVELTY)
    priority: float = Field(
        default_factory=lambda: calculate_priority(DEFAULT_STABILITY, DEFAULT_RELEVANCE, DEFAULT_NOVELTY)
    )
    next_due: Optional[datetime] = Field(default=None, sa_column=Column(DateTime, nullable=True, index=True))
    created_at: datetime = Field(default_factory=utc_now, sa_column=Column(DateTime, nullable=False))
    updated_at: datetime = Field(default_factory=utc_now, sa_column=Column(DateTime, nullable=False))

    # Relationships
    direction: "Direction" = Relationship(back_populates="cards")
    skill_point: Optional["SkillPoint"] = Relationship(back_populates="cards")

    def refresh_priority(self) -> float:
        """Recompute priority from the current stability/relevance/novelty."""
        self.priority = calculate_priority(self.stability, self.relevance, self.novelty)
        return self.priority
