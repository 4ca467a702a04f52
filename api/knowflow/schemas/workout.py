from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime
import uuid

from knowflow.models.enums import (
    CardType,
    DirectionStage,
    SkillLevel,
    WorkoutPhase,
    WorkoutResult,
)


class MemoryCardSnapshot(BaseModel):
    """Card state embedded in a plan at generation time."""
    id: uuid.UUID
    direction_id: uuid.UUID
    skill_point_id: Optional[uuid.UUID] = None
    title: str
    body: str = ""
    card_type: CardType = CardType.CONCEPT
    stability: float
    relevance: float
    novelty: float
    priority: float
    next_due: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class WorkoutItemOutcome(BaseModel):
    """Result written back into a stored plan item on completion."""
    result: WorkoutResult
    next_due: Optional[datetime] = None
    stability: float
    priority: float


class WorkoutItemPlan(BaseModel):
    """One card slot in a segment."""
    item_id: uuid.UUID
    sequence: int = Field(..., ge=0, description="Position inside the segment")
    card: MemoryCardSnapshot
    result: Optional[WorkoutItemOutcome] = None


class WorkoutSegmentDirectionFocus(BaseModel):
    """Direction share of a segment with qualitative signal tags."""
    direction_id: uuid.UUID
    name: str
    stage: DirectionStage
    count: int
    share: float
    signals: List[str] = Field(default_factory=list)


class WorkoutSegmentSkillFocus(BaseModel):
    """Skill share of a segment with qualitative signal tags."""
    skill_point_id: uuid.UUID
    name: str
    level: SkillLevel
    count: int
    share: float
    signals: List[str] = Field(default_factory=list)


class WorkoutSegmentFocus(BaseModel):
    """Headline, highlight strings and group breakdowns for one segment."""
    headline: str
    highlights: List[str] = Field(default_factory=list)
    direction_breakdown: List[WorkoutSegmentDirectionFocus] = Field(default_factory=list)
    skill_breakdown: List[WorkoutSegmentSkillFocus] = Field(default_factory=list)


class WorkoutSegmentPlan(BaseModel):
    """Ordered items for one phase."""
    phase: WorkoutPhase
    focus: Optional[str] = None
    focus_details: Optional[WorkoutSegmentFocus] = None
    items: List[WorkoutItemPlan] = Field(default_factory=list)


class WorkoutTotals(BaseModel):
    """Per-phase item counts."""
    total_cards: int = 0
    quiz: int = 0
    apply: int = 0
    review: int = 0


class TodayWorkoutPlan(BaseModel):
    """Today's workout plan as persisted in the workout payload."""
    workout_id: uuid.UUID
    scheduled_for: datetime
    generated_at: datetime
    segments: List[WorkoutSegmentPlan] = Field(default_factory=list)
    totals: WorkoutTotals = Field(default_factory=WorkoutTotals)


class WorkoutCardProgress(BaseModel):
    """Card state after a result was applied."""
    card_id: uuid.UUID
    result: WorkoutResult
    stability: float
    priority: float
    next_due: Optional[datetime] = None


class WorkoutSummaryDirectionBreakdown(BaseModel):
    """Session aggregates for one direction."""
    direction_id: uuid.UUID
    name: str
    stage: DirectionStage
    total: int
    pass_count: int
    fail_count: int
    pass_rate: float
    kv_delta: float
    udr: float
    avg_priority: float
    share: float


class WorkoutSummarySkillBreakdown(BaseModel):
    """Session aggregates for one skill point."""
    skill_point_id: uuid.UUID
    name: str
    level: SkillLevel
    total: int
    pass_count: int
    fail_count: int
    pass_rate: float
    kv_delta: float
    udr: float
    avg_priority: float
    share: float


class WorkoutSummaryMetrics(BaseModel):
    """Session-wide completion metrics."""
    total_items: int
    pass_count: int
    fail_count: int
    pass_rate: float
    kv_delta: float = Field(..., ge=-1.5, le=1.5, description="Knowledge velocity delta")
    udr: float = Field(..., ge=-1.0, le=1.0, description="Uncertainty drop rate")
    recommended_focus: Optional[str] = None
    direction_breakdown: List[WorkoutSummaryDirectionBreakdown] = Field(default_factory=list)
    skill_breakdown: List[WorkoutSummarySkillBreakdown] = Field(default_factory=list)


class WorkoutCompletionSummary(BaseModel):
    """Everything returned to the caller after a workout is completed."""
    workout_id: uuid.UUID
    completed_at: datetime
    updates: List[WorkoutCardProgress] = Field(default_factory=list)
    metrics: WorkoutSummaryMetrics
    insights: List[str] = Field(default_factory=list)


class WorkoutItemResultInput(BaseModel):
    """Result reported for a single workout item."""
    item_id: uuid.UUID = Field(..., description="Workout item id from the plan")
    result: WorkoutResult = Field(..., description="'pass' or 'fail'")


class CompleteWorkoutRequest(BaseModel):
    """Request schema for completing a workout."""
    results: List[WorkoutItemResultInput] = Field(default_factory=list, description="Per-item results")


class TodayWorkoutResponse(BaseModel):
    """Response schema for today's workout; workout is null when nothing can be scheduled."""
    workout: Optional[TodayWorkoutPlan] = None


class CompleteWorkoutResponse(BaseModel):
    """Response schema for workout completion."""
    summary: WorkoutCompletionSummary
