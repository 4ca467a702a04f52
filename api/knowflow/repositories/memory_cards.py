"""
Memory card queries and derived review statistics.
"""
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional

from sqlalchemy import case
from sqlmodel import Session, select

from knowflow.core.exceptions import NotFoundError
from knowflow.models.enums import WorkoutResult, WorkoutStatus
from knowflow.models.memory_card import MemoryCard
from knowflow.models.workout import Workout, WorkoutItem

logger = logging.getLogger(__name__)

RECENT_RESULTS_LIMIT = 8


@dataclass
class CardReviewStats:
    """Review history of one card, rebuilt from completed workouts."""
    last_seen: Optional[datetime] = None
    last_pass_at: Optional[datetime] = None
    last_fail_at: Optional[datetime] = None
    pass_count: int = 0
    fail_count: int = 0
    consecutive_passes: int = 0
    consecutive_fails: int = 0
    recent_results: List[WorkoutResult] = field(default_factory=list)  # newest first

    def total_reviews(self) -> int:
        return self.pass_count + self.fail_count

    def fail_rate(self) -> float:
        total = self.total_reviews()
        if total == 0:
            return 0.0
        return max(0.0, min(1.0, self.fail_count / total))


class MemoryCardRepository:
    """Card access for the scheduler."""

    def __init__(self, session: Session):
        self.session = session

    def list_for_today(self, now: datetime, limit: int) -> List[MemoryCard]:
        """
        Candidate cards for a workout.

        Due or overdue cards (next_due missing or <= now) come first, then
        ascending next_due with missing values first, then priority descending.
        """
        due_first = case(
            (MemoryCard.next_due.is_(None), 0),  # type: ignore[union-attr]
            (MemoryCard.next_due <= now, 0),  # type: ignore[operator]
            else_=1,
        )
        query = (
            select(MemoryCard)
            .order_by(
                due_first,
                MemoryCard.next_due.is_not(None),  # type: ignore[union-attr]
                MemoryCard.next_due.asc(),  # type: ignore[union-attr]
                MemoryCard.priority.desc(),  # type: ignore[attr-defined]
            )
            .limit(limit)
        )
        return list(self.session.exec(query).all())

    def get(self, card_id: uuid.UUID) -> Optional[MemoryCard]:
        return self.session.get(MemoryCard, card_id)

    def get_for_update(self, card_id: uuid.UUID) -> MemoryCard:
        card = self.session.get(MemoryCard, card_id)
        if not card:
            raise NotFoundError(f"Memory card {card_id} not found")
        return card

    def update(self, card: MemoryCard) -> MemoryCard:
        self.session.add(card)
        return card

    def review_stats(self) -> Dict[uuid.UUID, CardReviewStats]:
        """
        Build review statistics for every card with at least one recorded result.

        Only items of completed workouts count. An item's occurrence time is
        the workout's completed_at, falling back to the item's created_at.
        Counts and last-* timestamps cover the full history; recent results
        and streaks cover the newest RECENT_RESULTS_LIMIT results.
        """
        query = (
            select(WorkoutItem.card_id, WorkoutItem.result, Workout.completed_at, WorkoutItem.created_at)
            .join(Workout, WorkoutItem.workout_id == Workout.id)
            .where(WorkoutItem.result.is_not(None))  # type: ignore[union-attr]
            .where(Workout.status == WorkoutStatus.COMPLETED.value)
        )
        rows = self.session.exec(query).all()

        history: Dict[uuid.UUID, List[tuple]] = {}
        for card_id, raw_result, completed_at, created_at in rows:
            occurred_at = completed_at or created_at
            history.setdefault(card_id, []).append((occurred_at, WorkoutResult(raw_result)))

        stats_map: Dict[uuid.UUID, CardReviewStats] = {}
        for card_id, entries in history.items():
            # Stable sort keeps database order for equal timestamps
            entries.sort(key=lambda entry: entry[0], reverse=True)
            stats = CardReviewStats()
            for occurred_at, result in entries:
                if stats.last_seen is None or occurred_at > stats.last_seen:
                    stats.last_seen = occurred_at
                if result == WorkoutResult.PASS:
                    stats.pass_count += 1
                    if stats.last_pass_at is None or occurred_at > stats.last_pass_at:
                        stats.last_pass_at = occurred_at
                else:
                    stats.fail_count += 1
                    if stats.last_fail_at is None or occurred_at > stats.last_fail_at:
                        stats.last_fail_at = occurred_at

            stats.recent_results = [result for _, result in entries[:RECENT_RESULTS_LIMIT]]
            streak_kind = stats.recent_results[0]
            streak = 0
            for result in stats.recent_results:
                if result != streak_kind:
                    break
                streak += 1
            if streak_kind == WorkoutResult.PASS:
                stats.consecutive_passes = streak
            else:
                stats.consecutive_fails = streak

            stats_map[card_id] = stats

        logger.debug(f"Built review stats for {len(stats_map)} cards from {len(rows)} results")
        return stats_map
