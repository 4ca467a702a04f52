"""
Completion engine.

Applies pass/fail outcomes to cards (stability, priority, next due) and
turns a finished session into metrics, a recommended focus and insights.

Memory model:
- Pass: stability + 0.15 (capped at 0.99), next due after
  24h * (1 + stability) * max(1 - relevance/2, 0.3)
- Fail: stability halved (floor 0.05), next due after
  6h * max(1 - relevance/2, 0.25)
"""
import logging
import math
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple, TypeVar

from knowflow.models.enums import SkillLevel, WorkoutResult
from knowflow.models.memory_card import MemoryCard, calculate_priority
from knowflow.schemas.workout import (
    WorkoutCardProgress,
    WorkoutSummaryDirectionBreakdown,
    WorkoutSummaryMetrics,
    WorkoutSummarySkillBreakdown,
)
from knowflow.services.signal_service import (
    DirectionDescriptor,
    SchedulingContext,
    SkillPointDescriptor,
    as_percent,
    direction_descriptor,
    skill_descriptor,
    staleness,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


PASS_STABILITY_BOOST = 0.15
FAIL_STABILITY_PENALTY = 0.5
PASS_BASE_INTERVAL_HOURS = 24.0
FAIL_BASE_INTERVAL_HOURS = 6.0
MAX_STABILITY = 0.99
MIN_STABILITY = 0.05

KV_PASS_WEIGHT = 0.08
KV_FAIL_WEIGHT = 0.06
KV_LIMIT = 1.5
UNCERTAINTY_EPSILON = 1e-6

GROWTH_RECOMMENDATION_THRESHOLD = 0.45
NEGLECT_RECOMMENDATION_THRESHOLD = 0.45
NEGLECTED_CARD_STALENESS = 0.7

SKILL_LEVEL_LABELS = {
    SkillLevel.UNKNOWN: "unassessed",
    SkillLevel.EMERGING: "emerging",
    SkillLevel.WORKING: "working",
    SkillLevel.FLUENT: "fluent",
}


def _unit(value: float) -> float:
    return max(0.0, min(1.0, value))


def _round_minutes(hours: float) -> int:
    # Halves round away from zero
    return int(math.floor(hours * 60.0 + 0.5))


@dataclass
class CardUpdateOutcome:
    """What one applied result did to a card."""
    progress: WorkoutCardProgress
    title: str
    novelty: float
    previous_stability: float
    stability_delta: float
    kv_contribution: float
    direction_id: uuid.UUID
    skill_point_id: Optional[uuid.UUID]

    @property
    def is_pass(self) -> bool:
        return self.progress.result == WorkoutResult.PASS

    def payload_entry(self) -> Dict[str, Any]:
        """Outcome as merged into the stored plan item."""
        return {
            "result": self.progress.result.value,
            "next_due": self.progress.next_due.isoformat() if self.progress.next_due else None,
            "stability": self.progress.stability,
            "priority": self.progress.priority,
        }


def apply_result(card: MemoryCard, result: WorkoutResult, now: datetime) -> CardUpdateOutcome:
    """Mutate card stability, priority and next_due for one result."""
    previous_stability = _unit(card.stability)
    relevance = _unit(card.relevance)
    novelty = _unit(card.novelty)

    if result == WorkoutResult.PASS:
        stability = min(max(previous_stability + PASS_STABILITY_BOOST, 0.0), MAX_STABILITY)
        factor = max(1.0 - 0.5 * relevance, 0.3)
        hours = PASS_BASE_INTERVAL_HOURS * (1.0 + stability) * factor
    else:
        stability = max(previous_stability * FAIL_STABILITY_PENALTY, MIN_STABILITY)
        factor = max(1.0 - 0.5 * relevance, 0.25)
        hours = FAIL_BASE_INTERVAL_HOURS * factor

    next_due = now + timedelta(minutes=_round_minutes(hours))
    priority = calculate_priority(stability, relevance, novelty)

    card.stability = stability
    card.priority = priority
    card.next_due = next_due
    card.updated_at = now

    if result == WorkoutResult.PASS:
        kv_contribution = KV_PASS_WEIGHT * max(priority, 0.0)
    else:
        kv_contribution = -KV_FAIL_WEIGHT * max(1.0 - priority, 0.0)

    logger.debug(
        f"Card {card.id} {result.value}: stability {previous_stability:.3f} -> {stability:.3f}, "
        f"next due {next_due.isoformat()}"
    )

    return CardUpdateOutcome(
        progress=WorkoutCardProgress(
            card_id=card.id,
            result=result,
            stability=stability,
            priority=priority,
            next_due=next_due,
        ),
        title=card.title,
        novelty=novelty,
        previous_stability=previous_stability,
        stability_delta=stability - previous_stability,
        kv_contribution=kv_contribution,
        direction_id=card.direction_id,
        skill_point_id=card.skill_point_id,
    )


def uncertainty_drop_rate(delta: float, before: float, total: int) -> float:
    """Stability gained relative to the uncertainty present before, clamped to [-1, 1]."""
    if before > UNCERTAINTY_EPSILON:
        udr = delta / before
    elif total > 0:
        udr = delta / total
    else:
        udr = 0.0
    return max(-1.0, min(1.0, udr))


@dataclass
class _Aggregate:
    total: int = 0
    pass_count: int = 0
    fail_count: int = 0
    kv_delta: float = 0.0
    uncertainty_before: float = 0.0
    uncertainty_delta: float = 0.0
    priority_sum: float = 0.0

    def add(self, outcome: CardUpdateOutcome) -> None:
        self.total += 1
        self.priority_sum += outcome.progress.priority
        self.uncertainty_before += max(1.0 - outcome.previous_stability, 0.0)
        self.uncertainty_delta += outcome.stability_delta
        self.kv_delta += outcome.kv_contribution
        if outcome.is_pass:
            self.pass_count += 1
        else:
            self.fail_count += 1

    @property
    def pass_rate(self) -> float:
        return self.pass_count / self.total if self.total else 0.0

    @property
    def avg_priority(self) -> float:
        return self.priority_sum / self.total if self.total else 0.0

    @property
    def udr(self) -> float:
        return uncertainty_drop_rate(self.uncertainty_delta, self.uncertainty_before, self.total)

    def share(self, session_total: int) -> float:
        return self.total / session_total if session_total else 0.0


def aggregate_outcomes(
    outcomes: List[CardUpdateOutcome],
    directions: Dict[uuid.UUID, DirectionDescriptor],
    skills: Dict[uuid.UUID, SkillPointDescriptor],
) -> WorkoutSummaryMetrics:
    """Session metrics plus per-direction and per-skill breakdowns (largest share first)."""
    session = _Aggregate()
    by_direction: Dict[uuid.UUID, _Aggregate] = {}
    by_skill: Dict[uuid.UUID, _Aggregate] = {}

    for outcome in outcomes:
        session.add(outcome)
        by_direction.setdefault(outcome.direction_id, _Aggregate()).add(outcome)
        if outcome.skill_point_id is not None:
            by_skill.setdefault(outcome.skill_point_id, _Aggregate()).add(outcome)

    total_items = session.total

    direction_breakdown = []
    for direction_id, data in by_direction.items():
        descriptor = direction_descriptor(directions, direction_id)
        direction_breakdown.append(WorkoutSummaryDirectionBreakdown(
            direction_id=direction_id,
            name=descriptor.name,
            stage=descriptor.stage,
            total=data.total,
            pass_count=data.pass_count,
            fail_count=data.fail_count,
            pass_rate=data.pass_rate,
            kv_delta=data.kv_delta,
            udr=data.udr,
            avg_priority=data.avg_priority,
            share=data.share(total_items),
        ))
    direction_breakdown.sort(key=lambda entry: entry.share, reverse=True)

    skill_breakdown = []
    for skill_id, data in by_skill.items():
        descriptor = skill_descriptor(skills, skill_id)
        skill_breakdown.append(WorkoutSummarySkillBreakdown(
            skill_point_id=skill_id,
            name=descriptor.name,
            level=descriptor.level,
            total=data.total,
            pass_count=data.pass_count,
            fail_count=data.fail_count,
            pass_rate=data.pass_rate,
            kv_delta=data.kv_delta,
            udr=data.udr,
            avg_priority=data.avg_priority,
            share=data.share(total_items),
        ))
    skill_breakdown.sort(key=lambda entry: entry.share, reverse=True)

    return WorkoutSummaryMetrics(
        total_items=total_items,
        pass_count=session.pass_count,
        fail_count=session.fail_count,
        pass_rate=session.pass_rate,
        kv_delta=max(-KV_LIMIT, min(KV_LIMIT, session.kv_delta)),
        udr=session.udr,
        recommended_focus=None,
        direction_breakdown=direction_breakdown,
        skill_breakdown=skill_breakdown,
    )


def _last_max(items: Iterable[T], key: Callable[[T], float]) -> Optional[T]:
    """Maximum by key; among equal keys the last one wins."""
    best = None
    best_key = 0.0
    for item in items:
        value = key(item)
        if best is None or value >= best_key:
            best = item
            best_key = value
    return best


def recommend_from_outcomes(outcomes: List[CardUpdateOutcome]) -> Optional[str]:
    """Re-drill the highest-priority miss, else apply the most novel pass."""
    failed = _last_max(
        (outcome for outcome in outcomes if not outcome.is_pass),
        key=lambda outcome: outcome.progress.priority,
    )
    if failed is not None:
        return (
            f"Re-drill \"{failed.title}\" (priority {as_percent(failed.progress.priority)}%); "
            f"schedule it first tomorrow."
        )

    passed = _last_max(
        (outcome for outcome in outcomes if outcome.is_pass),
        key=lambda outcome: outcome.novelty,
    )
    if passed is not None:
        return (
            f"Try applying \"{passed.title}\" in a real task (novelty {as_percent(passed.novelty)}%) "
            f"while it is fresh."
        )
    return None


def recommend_skill_gap(context: SchedulingContext) -> Optional[str]:
    """Point at the skill under the most growth pressure, if any reaches the threshold."""
    if not context.cards or not context.skill_signals:
        return None

    total_with_skills = sum(1 for card in context.cards if card.skill_point_id is not None)
    if total_with_skills == 0:
        return None

    candidate: Optional[Tuple[uuid.UUID, Any]] = _last_max(
        (
            (skill_id, signal)
            for skill_id, signal in context.skill_signals.items()
            if signal.growth_pressure() >= GROWTH_RECOMMENDATION_THRESHOLD
        ),
        key=lambda entry: entry[1].growth_pressure(),
    )
    if candidate is None:
        return None

    skill_id, signal = candidate
    descriptor = skill_descriptor(context.skills, skill_id)
    return (
        f"Skill \"{descriptor.name}\" ({SKILL_LEVEL_LABELS[descriptor.level]}) growth pressure "
        f"{as_percent(signal.growth_pressure())}%, {signal.count} candidate cards "
        f"({as_percent(signal.share(total_with_skills))}% coverage); "
        f"plan targeted application and review."
    )


def recommend_neglected_direction(context: SchedulingContext) -> Optional[str]:
    """Point at the most neglected direction, with a count of its stale cards when there are any."""
    if not context.cards:
        return None

    neglected_counts: Dict[uuid.UUID, int] = {}
    for card in context.cards:
        if staleness(context.stats.get(card.id), context.now) >= NEGLECTED_CARD_STALENESS:
            neglected_counts[card.direction_id] = neglected_counts.get(card.direction_id, 0) + 1

    candidate = _last_max(
        (
            (direction_id, signal)
            for direction_id, signal in context.direction_signals.items()
            if signal.neglect_pressure >= NEGLECT_RECOMMENDATION_THRESHOLD
        ),
        key=lambda entry: entry[1].neglect_pressure,
    )
    if candidate is None:
        return None

    direction_id, signal = candidate
    descriptor = direction_descriptor(context.directions, direction_id)
    demand = as_percent(signal.neglect_pressure)
    stale_cards = neglected_counts.get(direction_id, 0)
    if stale_cards > 0:
        return (
            f"Direction \"{descriptor.name}\" has {stale_cards} cards untouched for over 5 days "
            f"(wake-up demand {demand}%); schedule a wake-up session tomorrow."
        )
    return (
        f"Direction \"{descriptor.name}\" wake-up demand {demand}%; "
        f"schedule a catch-up session tomorrow."
    )


def build_insights(metrics: WorkoutSummaryMetrics) -> List[str]:
    """Threshold-gated remarks on the session; never empty."""
    insights = []
    if metrics.fail_count > 0:
        insights.append(f"{metrics.fail_count} cards marked for re-drill; shore up the weak spots first.")

    if metrics.pass_rate >= 0.85:
        insights.append("Pass rate is strong; lean into application practice.")
    elif metrics.pass_rate <= 0.6:
        insights.append("Pass rate is low; revisit the fundamentals first.")

    if metrics.kv_delta > 0.2:
        insights.append(f"Knowledge velocity +{metrics.kv_delta:.2f}; keep the momentum.")
    elif metrics.kv_delta < -0.2:
        insights.append(f"Knowledge velocity {metrics.kv_delta:.2f}; try narrowing the practice scope.")

    if metrics.udr > 0.25:
        insights.append(f"Uncertainty drop rate {metrics.udr * 100:+.0f}%; solid consolidation today.")
    elif metrics.udr < -0.1:
        insights.append(f"Uncertainty rose {metrics.udr * 100:+.0f}%; focus on reviewing missed cards.")

    if not insights:
        insights.append("Keep the rhythm; tomorrow's queue will be generated automatically.")
    return insights
