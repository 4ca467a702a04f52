"""
Workout persistence: plan storage, item results, status transitions and summaries.
"""
import copy
import logging
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import update
from sqlalchemy.orm.attributes import flag_modified
from sqlmodel import Session, select

from knowflow.core.exceptions import ConflictError, InternalError, NotFoundError, ValidationError
from knowflow.models.enums import WorkoutResult, WorkoutStatus
from knowflow.models.memory_card import MemoryCard
from knowflow.models.workout import Workout, WorkoutItem
from knowflow.models.workout_summary import WorkoutSummary
from knowflow.schemas.workout import TodayWorkoutPlan, WorkoutSummaryMetrics
from knowflow.utils.datetime_utils import day_bounds, utc_now

logger = logging.getLogger(__name__)


class WorkoutRepository:
    """Workout store. Writes are staged on the session; callers commit."""

    def __init__(self, session: Session):
        self.session = session

    def latest_pending_for_day(self, day: datetime) -> Optional[TodayWorkoutPlan]:
        start, end = day_bounds(day)
        query = (
            select(Workout)
            .where(Workout.status == WorkoutStatus.PENDING.value)
            .where(Workout.scheduled_for >= start)
            .where(Workout.scheduled_for < end)
            .order_by(Workout.created_at.desc())  # type: ignore[attr-defined]
            .limit(1)
        )
        workout = self.session.exec(query).first()
        if not workout:
            return None

        try:
            return TodayWorkoutPlan.model_validate(workout.payload)
        except PydanticValidationError as e:
            raise InternalError(f"Failed to deserialize payload of workout {workout.id}: {str(e)}")

    def create_today_workout(self, plan: TodayWorkoutPlan) -> Workout:
        """Stage the workout header and one row per plan item."""
        try:
            payload = plan.model_dump(mode="json")
        except (TypeError, ValueError) as e:
            raise InternalError(f"Failed to serialize workout plan {plan.workout_id}: {str(e)}")

        workout = Workout(
            id=plan.workout_id,
            scheduled_for=plan.scheduled_for,
            status=WorkoutStatus.PENDING.value,
            payload=payload,
            created_at=plan.generated_at,
            updated_at=plan.generated_at,
        )
        self.session.add(workout)

        for segment in plan.segments:
            for item in segment.items:
                self.session.add(WorkoutItem(
                    id=item.item_id,
                    workout_id=plan.workout_id,
                    card_id=item.card.id,
                    sequence=item.sequence,
                    phase=segment.phase.value,
                    due_at=item.card.next_due,
                    created_at=plan.generated_at,
                ))

        self.session.flush()
        return workout

    def ensure_pending(self, workout_id: uuid.UUID) -> Workout:
        workout = self.session.get(Workout, workout_id)
        if not workout:
            raise NotFoundError(f"Workout {workout_id} not found")
        if workout.status != WorkoutStatus.PENDING.value:
            raise ValidationError("workout already completed")
        return workout

    def item_card_map(self, workout_id: uuid.UUID) -> Dict[uuid.UUID, uuid.UUID]:
        """Map item id -> card id for every item of the workout."""
        query = select(WorkoutItem.id, WorkoutItem.card_id).where(WorkoutItem.workout_id == workout_id)
        return {item_id: card_id for item_id, card_id in self.session.exec(query).all()}

    def record_item_result(
        self,
        item_id: uuid.UUID,
        result: WorkoutResult,
        next_due: Optional[datetime],
    ) -> None:
        item = self.session.get(WorkoutItem, item_id)
        if not item:
            raise NotFoundError(f"Workout item {item_id} not found")
        item.result = result.value
        item.due_at = next_due
        self.session.add(item)

    def mark_completed(self, workout_id: uuid.UUID, now: datetime) -> None:
        """Flip pending -> completed. Raises ConflictError if the row was not pending."""
        self.session.flush()
        statement = (
            update(Workout)
            .where(Workout.id == workout_id)
            .where(Workout.status == WorkoutStatus.PENDING.value)
            .values(status=WorkoutStatus.COMPLETED.value, completed_at=now, updated_at=now)
        )
        result = self.session.connection().execute(statement)
        if result.rowcount != 1:
            raise ConflictError(f"Workout {workout_id} is no longer pending")

        workout = self.session.get(Workout, workout_id)
        if workout is not None:
            self.session.refresh(workout)

    def append_result_to_payload(
        self,
        workout_id: uuid.UUID,
        payload_updates: Dict[uuid.UUID, Dict[str, Any]],
    ) -> None:
        """Merge per-item outcomes into the stored plan under each item's ``result`` key."""
        workout = self.session.get(Workout, workout_id)
        if not workout:
            raise NotFoundError(f"Workout {workout_id} not found")

        plan = copy.deepcopy(workout.payload)
        if not isinstance(plan, dict):
            raise InternalError(f"Stored plan of workout {workout_id} is not an object")

        updates = {str(item_id): value for item_id, value in payload_updates.items()}
        for segment in plan.get("segments") or []:
            for item in segment.get("items") or []:
                update_value = updates.get(str(item.get("item_id")))
                if update_value is not None:
                    item["result"] = update_value

        workout.payload = plan
        flag_modified(workout, "payload")
        self.session.add(workout)

    def record_summary(
        self,
        workout_id: uuid.UUID,
        completed_at: datetime,
        metrics: WorkoutSummaryMetrics,
        insights: List[str],
    ) -> WorkoutSummary:
        """Insert or overwrite the summary row of a workout."""
        now = utc_now()
        summary = self.session.get(WorkoutSummary, workout_id)
        if not summary:
            summary = WorkoutSummary(workout_id=workout_id, completed_at=completed_at, created_at=completed_at)

        summary.completed_at = completed_at
        summary.total_items = metrics.total_items
        summary.pass_count = metrics.pass_count
        summary.fail_count = metrics.fail_count
        summary.pass_rate = metrics.pass_rate
        summary.kv_delta = metrics.kv_delta
        summary.udr = metrics.udr
        summary.recommended_focus = metrics.recommended_focus
        summary.metrics = metrics.model_dump(mode="json")
        summary.insights = list(insights)
        summary.updated_at = now
        self.session.add(summary)
        return summary

    def has_any_cards(self) -> bool:
        return self.session.exec(select(MemoryCard.id).limit(1)).first() is not None
