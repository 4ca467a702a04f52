"""Pytest configuration and shared fixtures."""

import os
import uuid
from datetime import datetime, timedelta
from typing import Generator, List, Optional

os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel

from knowflow.core.database import build_engine, get_session
from knowflow.main import app
from knowflow.models import (
    Direction,
    MemoryCard,
    SkillPoint,
    Workout,
    WorkoutItem,
)
from knowflow.models.enums import WorkoutPhase, WorkoutResult, WorkoutStatus

NOW = datetime(2026, 3, 10, 12, 0, 0)


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def engine():
    """Fresh in-memory database per test."""
    engine = build_engine("sqlite://", poolclass=StaticPool)
    SQLModel.metadata.create_all(engine)
    yield engine
    SQLModel.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def session(engine) -> Generator[Session, None, None]:
    with Session(engine) as session:
        yield session


@pytest.fixture
def client(session) -> Generator[TestClient, None, None]:
    """Test client whose requests share the test session."""
    def _get_session_override():
        yield session

    app.dependency_overrides[get_session] = _get_session_override
    yield TestClient(app)
    app.dependency_overrides.clear()


def make_direction(session: Session, name: str = "Backend", stage: str = "explore") -> Direction:
    direction = Direction(name=name, stage=stage, created_at=NOW, updated_at=NOW)
    session.add(direction)
    session.commit()
    session.refresh(direction)
    return direction


def make_skill(
    session: Session,
    direction: Direction,
    name: str = "Query tuning",
    level: str = "unknown",
) -> SkillPoint:
    skill = SkillPoint(direction_id=direction.id, name=name, level=level, created_at=NOW, updated_at=NOW)
    session.add(skill)
    session.commit()
    session.refresh(skill)
    return skill


def build_card(
    direction_id: uuid.UUID,
    title: str = "Card",
    skill_point_id: Optional[uuid.UUID] = None,
    stability: float = 0.1,
    relevance: float = 0.7,
    novelty: float = 0.5,
    next_due: Optional[datetime] = None,
    created_at: datetime = NOW,
) -> MemoryCard:
    """Unsaved card with a priority consistent with its scores."""
    card = MemoryCard(
        direction_id=direction_id,
        skill_point_id=skill_point_id,
        title=title,
        stability=stability,
        relevance=relevance,
        novelty=novelty,
        next_due=next_due,
        created_at=created_at,
        updated_at=created_at,
    )
    card.refresh_priority()
    return card


def make_card(session: Session, direction: Direction, skill: Optional[SkillPoint] = None, **fields) -> MemoryCard:
    card = build_card(direction.id, skill_point_id=skill.id if skill else None, **fields)
    session.add(card)
    session.commit()
    session.refresh(card)
    return card


def record_history(
    session: Session,
    card: MemoryCard,
    results: List[WorkoutResult],
    start: datetime,
    step: timedelta = timedelta(days=1),
) -> None:
    """One completed single-item workout per result, oldest first."""
    for idx, result in enumerate(results):
        completed_at = start + idx * step
        workout = Workout(
            scheduled_for=completed_at,
            completed_at=completed_at,
            status=WorkoutStatus.COMPLETED.value,
            payload={},
            created_at=completed_at,
            updated_at=completed_at,
        )
        session.add(workout)
        session.add(WorkoutItem(
            workout_id=workout.id,
            card_id=card.id,
            sequence=0,
            phase=WorkoutPhase.QUIZ.value,
            result=result.value,
            created_at=completed_at,
        ))
    session.commit()
