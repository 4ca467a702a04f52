"""
Today scheduler.

Two operations over one session:
- get_or_schedule: return today's pending plan, creating it on first call
- complete_workout: apply results, flip the workout to completed and
  record the summary, all in one transaction
"""
import logging
import uuid
from datetime import datetime
from typing import Dict, List, Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from knowflow.core.config import settings
from knowflow.core.exceptions import KnowflowException, StorageError, ValidationError
from knowflow.models.memory_card import MemoryCard
from knowflow.repositories.directions import DirectionRepository
from knowflow.repositories.memory_cards import MemoryCardRepository
from knowflow.repositories.skill_points import SkillPointRepository
from knowflow.repositories.workouts import WorkoutRepository
from knowflow.schemas.workout import (
    TodayWorkoutPlan,
    WorkoutCompletionSummary,
    WorkoutItemResultInput,
)
from knowflow.services.allocation_service import schedule_segments
from knowflow.services.completion_service import (
    CardUpdateOutcome,
    aggregate_outcomes,
    apply_result,
    build_insights,
    recommend_from_outcomes,
    recommend_neglected_direction,
    recommend_skill_gap,
)
from knowflow.services.plan_service import build_plan
from knowflow.services.signal_service import (
    SchedulingContext,
    build_context,
    describe_directions,
    describe_skills,
)
from knowflow.utils.datetime_utils import to_naive_utc, utc_now

logger = logging.getLogger(__name__)


class TodayScheduler:
    """Façade over the scheduling and completion engine."""

    def __init__(self, session: Session, candidate_limit: Optional[int] = None):
        self.session = session
        self.candidate_limit = candidate_limit or settings.candidate_limit
        self.workouts = WorkoutRepository(session)
        self.cards = MemoryCardRepository(session)
        self.directions = DirectionRepository(session)
        self.skill_points = SkillPointRepository(session)

    def _context(self, now: datetime, cards: List[MemoryCard]) -> SchedulingContext:
        return build_context(
            now=now,
            cards=cards,
            stats=self.cards.review_stats(),
            directions=describe_directions(self.directions.list()),
            skills=describe_skills(self.skill_points.list_all()),
        )

    def get_or_schedule(self, now: Optional[datetime] = None) -> Optional[TodayWorkoutPlan]:
        """
        Return today's pending plan, scheduling one if none exists yet.

        Returns None when there are no cards, no candidates, or the allocator
        selects nothing. The plan is inserted in a single commit; if another
        caller stored a plan for today first, that plan is returned instead.
        """
        now = to_naive_utc(now) if now else utc_now()

        try:
            cached = self.workouts.latest_pending_for_day(now)
            if cached:
                logger.info(f"Reusing pending workout {cached.workout_id} for {now.date()}")
                return cached

            if not self.workouts.has_any_cards():
                logger.info("No workout scheduled: there are no memory cards")
                return None

            candidates = self.cards.list_for_today(now, self.candidate_limit)
            if not candidates:
                logger.info("No workout scheduled: no candidate cards")
                return None

            context = self._context(now, candidates)
            allocations = schedule_segments(context)
            if all(not allocation.cards for allocation in allocations):
                logger.info("No workout scheduled: allocator selected no cards")
                return None

            plan = build_plan(now, allocations, context)

            existing = self.workouts.latest_pending_for_day(now)
            if existing:
                logger.info(f"Workout {existing.workout_id} was scheduled concurrently; reusing it")
                return existing

            self.workouts.create_today_workout(plan)
            self.session.commit()
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.error(f"Error scheduling workout for {now.date()}: {str(e)}")
            raise StorageError(f"Failed to schedule workout: {str(e)}") from e

        logger.info(
            f"Scheduled workout {plan.workout_id}: {plan.totals.total_cards} cards "
            f"(quiz {plan.totals.quiz}, apply {plan.totals.apply}, review {plan.totals.review})"
        )
        return plan

    def complete_workout(
        self,
        workout_id: uuid.UUID,
        inputs: Sequence[WorkoutItemResultInput],
        now: Optional[datetime] = None,
    ) -> WorkoutCompletionSummary:
        """
        Apply item results and close the workout.

        Every item id is checked against the workout before anything is
        mutated. Card updates, item results, the stored plan, the status flip
        and the summary commit together; any failure rolls all of them back.

        Raises:
            ValidationError: empty results, unknown or repeated item id,
                or the workout is already completed
            NotFoundError: unknown workout
            StorageError: the database failed mid-way
        """
        if not inputs:
            raise ValidationError("results cannot be empty")

        now = to_naive_utc(now) if now else utc_now()

        try:
            self.workouts.ensure_pending(workout_id)
            item_map = self.workouts.item_card_map(workout_id)

            seen = set()
            for entry in inputs:
                if entry.item_id not in item_map:
                    raise ValidationError(f"unknown workout item {entry.item_id}")
                if entry.item_id in seen:
                    raise ValidationError(f"duplicate workout item {entry.item_id}")
                seen.add(entry.item_id)

            directions = describe_directions(self.directions.list())
            skills = describe_skills(self.skill_points.list_all())

            outcomes: List[CardUpdateOutcome] = []
            payload_updates: Dict[uuid.UUID, dict] = {}
            for entry in inputs:
                card = self.cards.get_for_update(item_map[entry.item_id])
                outcome = apply_result(card, entry.result, now)
                self.cards.update(card)
                self.workouts.record_item_result(entry.item_id, entry.result, outcome.progress.next_due)
                payload_updates[entry.item_id] = outcome.payload_entry()
                outcomes.append(outcome)

            self.workouts.append_result_to_payload(workout_id, payload_updates)
            self.workouts.mark_completed(workout_id, now)

            metrics = aggregate_outcomes(outcomes, directions, skills)
            recommended_focus = recommend_from_outcomes(outcomes)
            if recommended_focus is None:
                context = self._context(now, self.cards.list_for_today(now, self.candidate_limit))
                recommended_focus = recommend_skill_gap(context) or recommend_neglected_direction(context)
            metrics.recommended_focus = recommended_focus

            insights = build_insights(metrics)
            self.workouts.record_summary(workout_id, now, metrics, insights)
            self.session.commit()
        except KnowflowException as e:
            self.session.rollback()
            logger.error(f"Rolled back completion of workout {workout_id}: {type(e).__name__}: {str(e)}")
            raise
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.error(f"Rolled back completion of workout {workout_id}: {str(e)}")
            raise StorageError(f"Failed to complete workout {workout_id}: {str(e)}") from e

        logger.info(
            f"Completed workout {workout_id}: {metrics.pass_count} passed, {metrics.fail_count} failed, "
            f"kv_delta {metrics.kv_delta:+.2f}, udr {metrics.udr:+.2f}"
        )

        return WorkoutCompletionSummary(
            workout_id=workout_id,
            completed_at=now,
            updates=[outcome.progress for outcome in outcomes],
            metrics=metrics,
            insights=insights,
        )
