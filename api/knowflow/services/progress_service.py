"""
Progress overview: card totals and seven-day activity.
"""
from datetime import datetime, timedelta
from typing import Optional

from sqlmodel import Session, func, select

from knowflow.models.direction import Direction
from knowflow.models.enums import WorkoutStatus
from knowflow.models.memory_card import MemoryCard
from knowflow.models.workout import Workout
from knowflow.schemas.progress import ProgressActivity, ProgressResponse, ProgressTotals
from knowflow.utils.datetime_utils import day_bounds, to_naive_utc, utc_now


def _count(session: Session, query) -> int:
    return session.exec(query).one() or 0


def get_progress(session: Session, now: Optional[datetime] = None) -> ProgressResponse:
    """
    Compute the progress overview.

    due_today counts cards due before the end of the current UTC day
    (overdue included); overdue counts cards due before now.
    """
    now = to_naive_utc(now) if now else utc_now()
    _, today_end = day_bounds(now)
    seven_days_ago = now - timedelta(days=7)

    total_cards = _count(session, select(func.count(MemoryCard.id)))
    active_directions = _count(session, select(func.count(Direction.id)))
    due_today = _count(
        session,
        select(func.count(MemoryCard.id))
        .where(MemoryCard.next_due.is_not(None))  # type: ignore[union-attr]
        .where(MemoryCard.next_due <= today_end),  # type: ignore[operator]
    )
    overdue = _count(
        session,
        select(func.count(MemoryCard.id))
        .where(MemoryCard.next_due.is_not(None))  # type: ignore[union-attr]
        .where(MemoryCard.next_due < now),  # type: ignore[operator]
    )
    avg_stability = session.exec(select(func.avg(MemoryCard.stability))).one()

    workouts_completed_7d = _count(
        session,
        select(func.count(Workout.id))
        .where(Workout.status == WorkoutStatus.COMPLETED.value)
        .where(Workout.completed_at >= seven_days_ago),  # type: ignore[operator]
    )
    new_cards_7d = _count(
        session,
        select(func.count(MemoryCard.id)).where(MemoryCard.created_at >= seven_days_ago),
    )

    return ProgressResponse(
        totals=ProgressTotals(
            total_cards=total_cards,
            active_directions=active_directions,
            due_today=due_today,
            overdue=overdue,
            avg_stability=float(avg_stability or 0.0),
        ),
        activity=ProgressActivity(
            workouts_completed_7d=workouts_completed_7d,
            new_cards_7d=new_cards_7d,
        ),
    )
