"""
Today's workout endpoints.
"""
from fastapi import APIRouter, Depends, status
from sqlmodel import Session
import logging
import uuid

from knowflow.core.database import get_session
from knowflow.schemas.workout import (
    CompleteWorkoutRequest,
    CompleteWorkoutResponse,
    TodayWorkoutResponse,
)
from knowflow.services.today_service import TodayScheduler

logger = logging.getLogger(__name__)

router = APIRouter(tags=["today"])


@router.get("/today", response_model=TodayWorkoutResponse)
async def get_today_workout(session: Session = Depends(get_session)):
    """
    Get today's workout, scheduling it on the first call of the day.

    Returns:
        TodayWorkoutResponse with the plan, or workout=null if there is
        nothing to practice
    """
    plan = TodayScheduler(session).get_or_schedule()
    return TodayWorkoutResponse(workout=plan)


@router.post(
    "/workouts/{workout_id}/done",
    response_model=CompleteWorkoutResponse,
    status_code=status.HTTP_200_OK,
)
async def complete_workout(
    workout_id: uuid.UUID,
    request: CompleteWorkoutRequest,
    session: Session = Depends(get_session),
):
    """
    Record item results and complete a workout.

    Args:
        workout_id: Workout to complete
        request: Per-item pass/fail results

    Returns:
        CompleteWorkoutResponse with the completion summary
    """
    summary = TodayScheduler(session).complete_workout(workout_id, request.results)
    return CompleteWorkoutResponse(summary=summary)
