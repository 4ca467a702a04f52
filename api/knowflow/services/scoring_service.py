"""
Candidate scorer.

Turns one card, its review stats and its group signals into four phase
fitness scores. Weights are fixed heuristics; every score is clamped to [0, 1].
"""
import uuid
from dataclasses import dataclass
from typing import Dict

from knowflow.models.enums import DirectionStage, WorkoutPhase
from knowflow.models.memory_card import MemoryCard
from knowflow.repositories.memory_cards import CardReviewStats
from knowflow.services.signal_service import (
    DirectionDescriptor,
    SchedulingContext,
    clamp_unit,
    due_urgency,
    fail_streak,
    freshness_score,
    last_fail_pressure,
    pass_momentum,
    UNASSIGNED_DIRECTION,
)


@dataclass(frozen=True)
class StageBias:
    """Small additive nudge per phase from a direction's lifecycle stage."""
    quiz: float = 0.0
    apply: float = 0.0
    review: float = 0.0


STAGE_BIASES = {
    DirectionStage.EXPLORE: StageBias(quiz=0.08, apply=0.04, review=0.02),
    DirectionStage.SHAPE: StageBias(quiz=0.05, apply=0.07, review=0.04),
    DirectionStage.ATTACK: StageBias(quiz=0.02, apply=0.10, review=0.05),
    DirectionStage.STABILIZE: StageBias(quiz=0.03, apply=0.05, review=0.10),
}


def stage_bias(stage: DirectionStage) -> StageBias:
    return STAGE_BIASES[stage]


def stage_bias_for(
    directions: Dict[uuid.UUID, DirectionDescriptor],
    direction_id: uuid.UUID,
) -> StageBias:
    """Stage bias of a card's direction; unknown directions count as explore."""
    return stage_bias(directions.get(direction_id, UNASSIGNED_DIRECTION).stage)


@dataclass(frozen=True)
class SegmentScores:
    quiz: float
    apply: float
    review: float
    composite: float

    def for_phase(self, phase: WorkoutPhase) -> float:
        if phase == WorkoutPhase.QUIZ:
            return self.quiz
        if phase == WorkoutPhase.APPLY:
            return self.apply
        return self.review


def compute_segment_scores(
    card: MemoryCard,
    stats: CardReviewStats,
    context: SchedulingContext,
) -> SegmentScores:
    """
    Score a card for each phase.

    Quiz favours due, unstable and high-priority cards; apply favours relevant
    and novel cards with momentum; review favours failing cards; composite
    blends priority and due-ness for backfill.
    """
    now = context.now
    priority = clamp_unit(card.priority)
    relevance = clamp_unit(card.relevance)
    novelty = clamp_unit(card.novelty)
    stability_gap = clamp_unit(1.0 - card.stability)
    due = due_urgency(card, now)
    freshness = freshness_score(stats, now)
    fail_rate = stats.fail_rate()
    momentum = pass_momentum(stats)
    streak = fail_streak(stats)
    new_bonus = 1.0 if stats.total_reviews() == 0 else 0.0
    recent_fail = last_fail_pressure(stats, now)
    bias = stage_bias_for(context.directions, card.direction_id)
    direction_signal = context.direction_signal(card)
    skill_signal = context.skill_signal(card)

    quiz = clamp_unit(
        0.3 * due
        + 0.25 * stability_gap
        + 0.15 * priority
        + 0.15 * momentum
        + 0.1 * (1.0 - fail_rate)
        + 0.05 * novelty
        + 0.05 * new_bonus
        + bias.quiz
        + 0.08 * direction_signal.quiz_bias()
        + 0.08 * skill_signal.quiz_bias()
        + 0.05 * skill_signal.level_gap()
    )
    apply = clamp_unit(
        0.4 * relevance
        + 0.2 * novelty
        + 0.15 * priority
        + 0.15 * momentum
        + 0.1 * freshness
        - 0.1 * fail_rate
        + bias.apply
        + 0.1 * direction_signal.apply_bias()
        + 0.1 * skill_signal.apply_bias()
        + 0.05 * skill_signal.level_gap()
    )
    review = clamp_unit(
        0.35 * fail_rate
        + 0.25 * streak
        + 0.2 * due
        + 0.1 * recent_fail
        + 0.1 * stability_gap
        + bias.review
        + 0.12 * direction_signal.review_bias()
        + 0.1 * skill_signal.review_bias()
        + 0.04 * skill_signal.level_gap()
    )
    composite = clamp_unit(
        0.35 * priority
        + 0.25 * due
        + 0.15 * relevance
        + 0.1 * streak
        + 0.1 * momentum
        + 0.05 * novelty
        + 0.1 * bias.apply
        + 0.05 * bias.review
        + 0.05 * bias.quiz
        + 0.1 * direction_signal.composite_bias()
        + 0.08 * skill_signal.growth_pressure()
        + 0.05 * skill_signal.level_gap()
    )

    return SegmentScores(quiz=quiz, apply=apply, review=review, composite=composite)


def score_pool(context: SchedulingContext) -> Dict[uuid.UUID, SegmentScores]:
    """Scores for every card in the pool, in pool order."""
    return {
        card.id: compute_segment_scores(card, context.stats_for(card), context)
        for card in context.cards
    }
