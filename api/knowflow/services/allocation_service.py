"""
Segment allocator.

Splits the candidate pool across the quiz, apply and review phases:
target sizing, per-phase seeding, score-ranked fill and global backfill.
A card is selected into at most one phase.
"""
import logging
import uuid
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Set, Tuple

from knowflow.models.enums import WorkoutPhase
from knowflow.models.memory_card import MemoryCard
from knowflow.services.scoring_service import SegmentScores, score_pool, stage_bias_for
from knowflow.services.signal_service import (
    SchedulingContext,
    clamp_unit,
    due_urgency,
    fail_streak,
    freshness_score,
    last_fail_pressure,
    pass_momentum,
)

logger = logging.getLogger(__name__)


MAX_TODAY_CARDS = 20
QUIZ_TARGET = 5
APPLY_TARGET = 10
REVIEW_TARGET = 5
PHASE_ORDER = (WorkoutPhase.QUIZ, WorkoutPhase.APPLY, WorkoutPhase.REVIEW)

QUIZ_SEED_CAP = 4
APPLY_SEED_CAP = 4
REVIEW_SEED_CAP = 5


@dataclass
class SegmentAllocation:
    """Cards selected for one phase, in selection order."""
    phase: WorkoutPhase
    target: int = 0
    cards: List[MemoryCard] = field(default_factory=list)


def calculate_segment_targets(total_available: int) -> Tuple[int, int, int]:
    """
    Phase sizes for a pool of total_available cards.

    A full pool gets the nominal 5/10/5. Smaller pools are scaled down
    proportionally (floor), the remainder is dealt round-robin from quiz,
    and with three or more cards every phase gets at least one card; the
    largest bucket gives way until the sum fits the pool.
    """
    if total_available <= 0:
        return (0, 0, 0)
    if total_available >= MAX_TODAY_CARDS:
        return (QUIZ_TARGET, APPLY_TARGET, REVIEW_TARGET)

    base = (QUIZ_TARGET, APPLY_TARGET, REVIEW_TARGET)
    targets = [0, 0, 0]
    allocated = 0

    for idx, portion in enumerate(base):
        if allocated >= total_available:
            break
        share = int(portion / MAX_TODAY_CARDS * total_available)
        share = min(share, total_available - allocated)
        targets[idx] = share
        allocated += share

    idx = 0
    while allocated < total_available:
        targets[idx % 3] += 1
        allocated += 1
        idx += 1

    if total_available >= 3:
        targets = [value if value > 0 else 1 for value in targets]

    total = sum(targets)
    while total > total_available:
        largest = max(targets)
        if largest <= 0:
            break
        # Ties resolve to the later phase
        max_idx = len(targets) - 1 - targets[::-1].index(largest)
        targets[max_idx] -= 1
        total -= 1

    return (targets[0], targets[1], targets[2])


def _take_top(
    entries: List[Tuple[MemoryCard, float]],
    limit: int,
    selected: Set[uuid.UUID],
) -> List[MemoryCard]:
    """Highest scores first; equal scores keep pool order."""
    ranked = sorted(entries, key=lambda entry: entry[1], reverse=True)
    picks = []
    for card, _ in ranked:
        if len(picks) >= limit:
            break
        if card.id in selected:
            continue
        selected.add(card.id)
        picks.append(card)
    return picks


def seed_quiz_phase(target: int, context: SchedulingContext, selected: Set[uuid.UUID]) -> List[MemoryCard]:
    """Due, new or neglected cards, ranked by recall urgency."""
    if target <= 0:
        return []

    now = context.now
    entries = []
    for card in context.cards:
        if card.id in selected:
            continue
        stats = context.stats_for(card)
        due = due_urgency(card, now)
        is_new = stats.last_seen is None
        direction_signal = context.direction_signal(card)
        skill_signal = context.skill_signal(card)
        if due < 0.55 and not is_new and direction_signal.neglect_pressure < 0.45:
            continue
        score = (
            0.45 * due
            + 0.25 * clamp_unit(1.0 - card.stability)
            + 0.2 * clamp_unit(card.novelty)
            + (0.1 if is_new else 0.0)
            + stage_bias_for(context.directions, card.direction_id).quiz
            + 0.2 * direction_signal.quiz_bias()
            + 0.12 * direction_signal.neglect_pressure
            + 0.08 * skill_signal.quiz_bias()
            + 0.05 * skill_signal.level_gap()
        )
        entries.append((card, score))

    return _take_top(entries, min(target, QUIZ_SEED_CAP), selected)


def seed_apply_phase(target: int, context: SchedulingContext, selected: Set[uuid.UUID]) -> List[MemoryCard]:
    """Relevant, novel cards with momentum; struggling stale cards are skipped unless the stage favours apply."""
    if target <= 0:
        return []

    now = context.now
    entries = []
    for card in context.cards:
        if card.id in selected:
            continue
        stats = context.stats_for(card)
        momentum = pass_momentum(stats)
        fail_rate = stats.fail_rate()
        bias = stage_bias_for(context.directions, card.direction_id)
        if momentum == 0.0 and fail_rate > 0.4 and card.novelty < 0.6 and bias.apply < 0.08:
            continue
        direction_signal = context.direction_signal(card)
        skill_signal = context.skill_signal(card)
        score = (
            0.35 * card.relevance
            + 0.23 * card.novelty
            + 0.18 * momentum
            + 0.1 * freshness_score(stats, now)
            + 0.1 * (1.0 - fail_rate)
            + bias.apply
            + 0.18 * direction_signal.apply_bias()
            + 0.1 * direction_signal.neglect_pressure
            + 0.1 * skill_signal.apply_bias()
            + 0.06 * skill_signal.level_gap()
        )
        entries.append((card, score))

    return _take_top(entries, min(target, APPLY_SEED_CAP), selected)


def seed_review_phase(target: int, context: SchedulingContext, selected: Set[uuid.UUID]) -> List[MemoryCard]:
    """Reviewed cards with a fail streak or a meaningful fail rate."""
    if target <= 0:
        return []

    now = context.now
    entries = []
    for card in context.cards:
        if card.id in selected:
            continue
        stats = context.stats.get(card.id)
        if stats is None:
            continue
        fail_rate = stats.fail_rate()
        streak = fail_streak(stats)
        if streak == 0.0 and fail_rate < 0.25:
            continue
        direction_signal = context.direction_signal(card)
        skill_signal = context.skill_signal(card)
        score = (
            0.4 * fail_rate
            + 0.3 * streak
            + 0.2 * due_urgency(card, now)
            + 0.1 * last_fail_pressure(stats, now)
            + stage_bias_for(context.directions, card.direction_id).review
            + 0.2 * direction_signal.review_bias()
            + 0.1 * direction_signal.neglect_pressure
            + 0.1 * skill_signal.review_bias()
            + 0.05 * skill_signal.level_gap()
        )
        entries.append((card, score))

    return _take_top(entries, min(target, REVIEW_SEED_CAP), selected)


SEEDERS: Dict[WorkoutPhase, Callable[[int, SchedulingContext, Set[uuid.UUID]], List[MemoryCard]]] = {
    WorkoutPhase.QUIZ: seed_quiz_phase,
    WorkoutPhase.APPLY: seed_apply_phase,
    WorkoutPhase.REVIEW: seed_review_phase,
}


def pick_for_phase(
    phase: WorkoutPhase,
    limit: int,
    scores: Dict[uuid.UUID, SegmentScores],
    context: SchedulingContext,
    selected: Set[uuid.UUID],
) -> List[MemoryCard]:
    """Top unselected cards by phase score plus direction and skill nudges."""
    entries = []
    for card in context.cards:
        direction_signal = context.direction_signals.get(card.direction_id)
        phase_bias = direction_signal.for_phase(phase) if direction_signal else 0.0
        neglect_bias = direction_signal.neglect_pressure if direction_signal else 0.0
        skill_signal = context.skill_signal(card)
        score = (
            scores[card.id].for_phase(phase)
            + 0.12 * phase_bias
            + 0.05 * neglect_bias
            + 0.08 * skill_signal.for_phase(phase)
            + 0.05 * skill_signal.growth_pressure()
        )
        entries.append((card, score))

    return _take_top(entries, limit, selected)


def fill_segment_shortfalls(
    segments: List[SegmentAllocation],
    scores: Dict[uuid.UUID, SegmentScores],
    context: SchedulingContext,
    selected: Set[uuid.UUID],
) -> None:
    """Top up short phases, in phase order, from the best composite leftovers."""
    leftovers = []
    for card in context.cards:
        if card.id in selected:
            continue
        direction_signal = context.direction_signals.get(card.direction_id)
        direction_bias = direction_signal.composite_bias() if direction_signal else 0.0
        neglect_bias = direction_signal.neglect_pressure if direction_signal else 0.0
        score = (
            scores[card.id].composite
            + 0.15 * direction_bias
            + 0.08 * neglect_bias
            + 0.08 * context.skill_signal(card).growth_pressure()
        )
        leftovers.append((card, score))

    remaining = iter(sorted(leftovers, key=lambda entry: entry[1], reverse=True))
    for segment in segments:
        if segment.target <= 0:
            continue
        while len(segment.cards) < segment.target:
            entry: Optional[Tuple[MemoryCard, float]] = next(remaining, None)
            if entry is None:
                return
            card = entry[0]
            if card.id in selected:
                continue
            segment.cards.append(card)
            selected.add(card.id)


def schedule_segments(context: SchedulingContext) -> List[SegmentAllocation]:
    """
    Allocate the pool across the three phases.

    Returns one allocation per phase in quiz/apply/review order (possibly
    empty), or an empty list if the pool is empty.
    """
    if not context.cards:
        return []

    total_pool = min(len(context.cards), MAX_TODAY_CARDS)
    targets = calculate_segment_targets(total_pool)
    scores = score_pool(context)
    selected: Set[uuid.UUID] = set()
    segments: List[SegmentAllocation] = []

    for phase, target in zip(PHASE_ORDER, targets):
        segment = SegmentAllocation(phase=phase, target=target)
        if target > 0:
            segment.cards = SEEDERS[phase](target, context, selected)
            seeded = len(segment.cards)
            if seeded < target:
                segment.cards.extend(pick_for_phase(phase, target - seeded, scores, context, selected))
            logger.debug(
                f"Phase {phase.value}: target {target}, seeded {seeded}, "
                f"filled {len(segment.cards) - seeded}"
            )
        segments.append(segment)

    fill_segment_shortfalls(segments, scores, context, selected)
    return segments
