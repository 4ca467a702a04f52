from datetime import datetime

from sqlmodel import select

from knowflow.models import Direction, MemoryCard, SkillPoint, Workout, WorkoutSummary
from knowflow.models.memory_card import calculate_priority


def test_rows_with_default_timestamps_commit(session):
    direction = Direction(name="Backend")
    session.add(direction)
    session.commit()
    skill = SkillPoint(direction_id=direction.id, name="Indexing")
    card = MemoryCard(direction_id=direction.id, skill_point_id=skill.id, title="B-tree pages")
    session.add(skill)
    session.add(card)
    session.commit()

    stored = session.exec(select(MemoryCard)).one()

    assert isinstance(stored.created_at, datetime)
    assert stored.created_at.tzinfo is None
    assert stored.updated_at.tzinfo is None
    assert stored.next_due is None
    assert stored.stability == 0.1
    assert stored.priority == calculate_priority(0.1, 0.7, 0.5)
    assert session.get(Direction, direction.id).stage == "explore"
    assert session.get(SkillPoint, skill.id).level == "unknown"


def test_workout_and_summary_keep_naive_utc(session, now):
    workout = Workout(scheduled_for=now, completed_at=now, status="completed", payload={"segments": []})
    session.add(workout)
    session.commit()
    session.add(WorkoutSummary(workout_id=workout.id, completed_at=now))
    session.commit()

    stored = session.get(Workout, workout.id)
    summary = session.get(WorkoutSummary, workout.id)

    assert stored.scheduled_for == now
    assert stored.completed_at == now
    assert stored.created_at.tzinfo is None
    assert summary.completed_at == now
    assert summary.insights == []
