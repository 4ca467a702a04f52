"""
Plan builder.

Packages allocated segments into a TodayWorkoutPlan with fresh item ids,
per-segment focus summaries and totals.
"""
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from knowflow.models.enums import SkillLevel, WorkoutPhase
from knowflow.models.memory_card import MemoryCard
from knowflow.schemas.workout import (
    MemoryCardSnapshot,
    TodayWorkoutPlan,
    WorkoutItemPlan,
    WorkoutSegmentDirectionFocus,
    WorkoutSegmentFocus,
    WorkoutSegmentPlan,
    WorkoutSegmentSkillFocus,
    WorkoutTotals,
)
from knowflow.services.allocation_service import SegmentAllocation
from knowflow.services.signal_service import (
    SchedulingContext,
    SkillSignal,
    as_percent,
    clamp_unit,
    direction_descriptor,
    due_urgency,
    fail_component,
    last_fail_pressure,
    pass_momentum,
    skill_descriptor,
    staleness,
)

MAX_HIGHLIGHTS = 5
MAX_SIGNAL_TAGS = 3
GROWTH_HIGHLIGHT_THRESHOLD = 55.0

SKILL_LEVEL_TAGS = {
    SkillLevel.UNKNOWN: "mastery not assessed",
    SkillLevel.EMERGING: "just getting started",
    SkillLevel.WORKING: "actively building",
    SkillLevel.FLUENT: "close to fluent",
}


@dataclass
class _FocusCounts:
    due: int = 0
    new: int = 0
    failing: int = 0
    unstable: int = 0
    high_relevance: int = 0
    momentum: int = 0
    neglected: int = 0


def _count_focus(cards: List[MemoryCard], context: SchedulingContext) -> _FocusCounts:
    now = context.now
    counts = _FocusCounts()
    for card in cards:
        if due_urgency(card, now) > 0.6:
            counts.due += 1
        if card.stability < 0.45:
            counts.unstable += 1
        if card.relevance >= 0.65:
            counts.high_relevance += 1

        stats = context.stats.get(card.id)
        if stats is None or stats.total_reviews() == 0:
            counts.new += 1
        if stats is not None:
            if stats.consecutive_fails > 0 or stats.fail_rate() >= 0.4:
                counts.failing += 1
            if stats.consecutive_passes >= 2:
                counts.momentum += 1
        if staleness(stats, now) >= 0.7:
            counts.neglected += 1
    return counts


def _headline(phase: WorkoutPhase, counts: _FocusCounts, total: int) -> str:
    if phase == WorkoutPhase.QUIZ:
        if counts.due and counts.new:
            base = f"{counts.due} due · {counts.new} new"
        elif counts.due:
            base = f"{counts.due} due for review"
        elif counts.new:
            base = f"First pass on {counts.new} new cards"
        else:
            base = f"Consolidate {total} core cards"
        return f"{base}, quick recall check"

    if phase == WorkoutPhase.APPLY:
        if counts.high_relevance and counts.momentum:
            base = f"{counts.high_relevance} high-relevance · {counts.momentum} on a streak"
        elif counts.high_relevance:
            base = f"{counts.high_relevance} high-relevance drills"
        elif counts.momentum:
            base = f"Keep {counts.momentum} cards on a streak"
        else:
            base = f"Apply {total} cards"
        return f"{base}, put them to work in context"

    if counts.failing and counts.unstable:
        base = f"{counts.failing} missed · {counts.unstable} unstable"
    elif counts.failing:
        base = f"Revisit {counts.failing} missed cards"
    elif counts.unstable:
        base = f"Shore up {counts.unstable} unstable cards"
    else:
        base = f"Consolidate {total} cards"
    return f"{base}, close the weak spots"


def _highlights(phase: WorkoutPhase, counts: _FocusCounts) -> List[str]:
    if phase == WorkoutPhase.QUIZ:
        candidates = [
            (counts.due, f"{counts.due} due or overdue"),
            (counts.new, f"{counts.new} first-pass cards"),
            (counts.unstable, f"{counts.unstable} need more stability"),
        ]
    elif phase == WorkoutPhase.APPLY:
        candidates = [
            (counts.high_relevance, f"{counts.high_relevance} high-relevance scenarios"),
            (counts.momentum, f"{counts.momentum} on a pass streak"),
            (counts.new, f"{counts.new} fresh memories to transfer"),
        ]
    else:
        candidates = [
            (counts.failing, f"{counts.failing} recently missed"),
            (counts.unstable, f"{counts.unstable} with stability < 45%"),
            (counts.due, f"{counts.due} already due"),
        ]
    candidates.append((counts.neglected, f"{counts.neglected} not practiced lately"))
    return [text for count, text in candidates if count > 0]


@dataclass
class _GroupBucket:
    count: int = 0
    due: float = 0.0
    new: float = 0.0
    fail: float = 0.0
    unstable: float = 0.0
    momentum: float = 0.0
    recent_fail: float = 0.0
    stale: float = 0.0

    def add(self, card: MemoryCard, context: SchedulingContext) -> None:
        now = context.now
        self.count += 1
        self.due += due_urgency(card, now)
        self.unstable += clamp_unit(1.0 - card.stability)

        stats = context.stats.get(card.id)
        if stats is None:
            self.new += 1.0
            self.stale += 1.0
            return
        if stats.total_reviews() == 0:
            self.new += 1.0
        self.fail += fail_component(stats)
        self.momentum += pass_momentum(stats)
        self.recent_fail += last_fail_pressure(stats, now)
        self.stale += staleness(stats, now)

    def average(self, weight: float) -> float:
        if self.count == 0:
            return 0.0
        return max(0.0, min(1.0, weight / self.count))


def build_direction_breakdown(
    cards: List[MemoryCard],
    context: SchedulingContext,
) -> List[WorkoutSegmentDirectionFocus]:
    """Directions in a segment, largest first, with up to three signal tags each."""
    if not cards:
        return []

    buckets: Dict[uuid.UUID, _GroupBucket] = {}
    for card in cards:
        buckets.setdefault(card.direction_id, _GroupBucket()).add(card, context)

    total = len(cards)
    breakdown = []
    for direction_id, bucket in buckets.items():
        descriptor = direction_descriptor(context.directions, direction_id)
        signals = []

        fail_ratio = bucket.average(bucket.fail)
        if fail_ratio >= 0.45:
            signals.append("high fail pressure")
        elif bucket.fail > 0:
            signals.append("missed cards to review")

        due_ratio = bucket.average(bucket.due)
        if due_ratio >= 0.5:
            signals.append("several cards coming due")
        elif bucket.due > 0:
            signals.append("includes due cards")

        new_ratio = bucket.average(bucket.new)
        if new_ratio >= 0.5:
            signals.append("many new cards waiting")
        elif bucket.new > 0:
            signals.append("some new cards to start")

        if bucket.average(bucket.unstable) >= 0.4:
            signals.append("stability is low overall")

        if bucket.average(bucket.momentum) >= 0.45:
            signals.append("pass streak going")

        if bucket.average(bucket.recent_fail) >= 0.4 and fail_ratio < 0.45:
            signals.append("recent misses need review")

        stale_ratio = bucket.average(bucket.stale)
        if stale_ratio >= 0.5:
            signals.append("direction neglected, needs a wake-up")
        elif stale_ratio >= 0.3:
            signals.append("includes neglected cards")

        breakdown.append(WorkoutSegmentDirectionFocus(
            direction_id=direction_id,
            name=descriptor.name,
            stage=descriptor.stage,
            count=bucket.count,
            share=clamp_unit(bucket.count / total),
            signals=signals[:MAX_SIGNAL_TAGS],
        ))

    breakdown.sort(key=lambda entry: entry.count, reverse=True)
    return breakdown


def build_skill_breakdown(
    cards: List[MemoryCard],
    context: SchedulingContext,
) -> List[WorkoutSegmentSkillFocus]:
    """Skill points in a segment by share of skill-tagged cards, with level and signal tags."""
    buckets: Dict[uuid.UUID, _GroupBucket] = {}
    for card in cards:
        if card.skill_point_id is None:
            continue
        buckets.setdefault(card.skill_point_id, _GroupBucket()).add(card, context)

    total = sum(bucket.count for bucket in buckets.values())
    if total == 0:
        return []

    breakdown = []
    for skill_id, bucket in buckets.items():
        descriptor = skill_descriptor(context.skills, skill_id)
        signals = [SKILL_LEVEL_TAGS[descriptor.level]]

        fail_ratio = bucket.average(bucket.fail)
        if fail_ratio >= 0.45:
            signals.append("high fail pressure")
        elif fail_ratio >= 0.25:
            signals.append("watch for repeated misses")
        if bucket.average(bucket.due) >= 0.5:
            signals.append("several cards coming due")
        if bucket.average(bucket.new) >= 0.4:
            signals.append("many new cards to transfer")
        if bucket.average(bucket.stale) >= 0.45:
            signals.append("skill not practiced lately")
        if bucket.average(bucket.momentum) >= 0.5:
            signals.append("pass streak going")

        breakdown.append(WorkoutSegmentSkillFocus(
            skill_point_id=skill_id,
            name=descriptor.name,
            level=descriptor.level,
            count=bucket.count,
            share=clamp_unit(bucket.count / total),
            signals=signals[:MAX_SIGNAL_TAGS],
        ))

    breakdown.sort(key=lambda entry: (entry.share, entry.count), reverse=True)
    return breakdown


def _growth_candidate(
    cards: List[MemoryCard],
    context: SchedulingContext,
) -> Optional[Tuple[uuid.UUID, SkillSignal]]:
    candidate = None
    for card in cards:
        if card.skill_point_id is None:
            continue
        signal = context.skill_signals.get(card.skill_point_id)
        if signal is None:
            continue
        if candidate is None or signal.growth_pressure() > candidate[1].growth_pressure():
            candidate = (card.skill_point_id, signal)
    return candidate


def derive_focus(
    phase: WorkoutPhase,
    cards: List[MemoryCard],
    context: SchedulingContext,
) -> Optional[WorkoutSegmentFocus]:
    """
    Summarize why a segment holds the cards it does.

    The headline and highlights count due, new, failing, unstable,
    high-relevance, streaking and neglected cards. The primary skill is
    called out first, and a growth note is added for skills under strong
    growth pressure.
    """
    if not cards:
        return None

    counts = _count_focus(cards, context)
    headline = _headline(phase, counts, len(cards))
    highlights = _highlights(phase, counts)

    direction_breakdown = build_direction_breakdown(cards, context)
    skill_breakdown = build_skill_breakdown(cards, context)

    if skill_breakdown:
        primary = skill_breakdown[0]
        share_pct = as_percent(primary.share)
        if not any(primary.name in item for item in highlights):
            highlights.insert(0, f"Skill focus \"{primary.name}\" · {primary.count} cards ({share_pct}%)")

    candidate = _growth_candidate(cards, context)
    if candidate is not None:
        skill_id, signal = candidate
        entry = next((bucket for bucket in skill_breakdown if bucket.skill_point_id == skill_id), None)
        if entry is not None:
            growth = as_percent(signal.growth_pressure())
            already_noted = any(entry.name in item and "growth" in item for item in highlights)
            if growth >= GROWTH_HIGHLIGHT_THRESHOLD and not already_noted:
                highlights.append(
                    f"Skill \"{entry.name}\" growth pressure {growth}%, schedule transfer practice."
                )

    return WorkoutSegmentFocus(
        headline=headline,
        highlights=highlights[:MAX_HIGHLIGHTS],
        direction_breakdown=direction_breakdown,
        skill_breakdown=skill_breakdown,
    )


def build_plan(
    now: datetime,
    allocations: List[SegmentAllocation],
    context: SchedulingContext,
) -> TodayWorkoutPlan:
    """Assemble the plan; empty segments are dropped and sequences restart per segment."""
    totals = WorkoutTotals()
    segments = []

    for allocation in allocations:
        if not allocation.cards:
            continue

        items = [
            WorkoutItemPlan(
                item_id=uuid.uuid4(),
                sequence=idx,
                card=MemoryCardSnapshot.model_validate(card),
            )
            for idx, card in enumerate(allocation.cards)
        ]

        if allocation.phase == WorkoutPhase.QUIZ:
            totals.quiz += len(items)
        elif allocation.phase == WorkoutPhase.APPLY:
            totals.apply += len(items)
        else:
            totals.review += len(items)

        focus = derive_focus(allocation.phase, allocation.cards, context)
        segments.append(WorkoutSegmentPlan(
            phase=allocation.phase,
            focus=focus.headline if focus else None,
            focus_details=focus,
            items=items,
        ))

    totals.total_cards = totals.quiz + totals.apply + totals.review

    return TodayWorkoutPlan(
        workout_id=uuid.uuid4(),
        scheduled_for=now,
        generated_at=now,
        segments=segments,
        totals=totals,
    )
