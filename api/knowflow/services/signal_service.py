"""
Signal analyzer.

Derives per-card review pressures and per-direction / per-skill aggregate
signals from the candidate pool and its review history. Everything here is
pure: signals are rebuilt on every scheduling pass and never persisted.
"""
import math
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Iterable, List, Optional

from knowflow.models.direction import Direction
from knowflow.models.enums import DirectionStage, SkillLevel, WorkoutPhase
from knowflow.models.memory_card import MemoryCard
from knowflow.models.skill_point import SkillPoint
from knowflow.repositories.memory_cards import CardReviewStats
from knowflow.utils.datetime_utils import minutes_between


MINUTES_PER_DAY = 24 * 60
FRESHNESS_WINDOW_MINUTES = 7 * MINUTES_PER_DAY
STALENESS_WINDOW_MINUTES = 5 * MINUTES_PER_DAY
LAST_FAIL_WINDOW_MINUTES = 72 * 60
UNSCHEDULED_DUE_URGENCY = 0.3

LEVEL_GAPS = {
    SkillLevel.UNKNOWN: 0.9,
    SkillLevel.EMERGING: 0.75,
    SkillLevel.WORKING: 0.5,
    SkillLevel.FLUENT: 0.25,
}

_STAGE_VALUES = {stage.value for stage in DirectionStage}
_LEVEL_VALUES = {level.value for level in SkillLevel}

EMPTY_STATS = CardReviewStats()


def clamp_unit(value: float) -> float:
    """Clamp to [0, 1]; NaN and infinities map to 0."""
    if not math.isfinite(value):
        return 0.0
    return max(0.0, min(1.0, value))


def as_percent(value: float) -> int:
    """Fraction to whole percent, halves rounded up."""
    return int(math.floor(value * 100.0 + 0.5))


def parse_stage(value: Optional[str]) -> DirectionStage:
    if value in _STAGE_VALUES:
        return DirectionStage(value)
    return DirectionStage.EXPLORE


def parse_level(value: Optional[str]) -> SkillLevel:
    if value in _LEVEL_VALUES:
        return SkillLevel(value)
    return SkillLevel.UNKNOWN


@dataclass(frozen=True)
class DirectionDescriptor:
    name: str
    stage: DirectionStage = DirectionStage.EXPLORE


@dataclass(frozen=True)
class SkillPointDescriptor:
    name: str
    level: SkillLevel = SkillLevel.UNKNOWN


UNASSIGNED_DIRECTION = DirectionDescriptor(name="Unassigned direction", stage=DirectionStage.EXPLORE)
UNASSIGNED_SKILL = SkillPointDescriptor(name="Unassigned skill", level=SkillLevel.UNKNOWN)


def describe_directions(directions: Iterable[Direction]) -> Dict[uuid.UUID, DirectionDescriptor]:
    return {
        direction.id: DirectionDescriptor(name=direction.name, stage=parse_stage(direction.stage))
        for direction in directions
    }


def describe_skills(skill_points: Iterable[SkillPoint]) -> Dict[uuid.UUID, SkillPointDescriptor]:
    return {
        skill.id: SkillPointDescriptor(name=skill.name, level=parse_level(skill.level))
        for skill in skill_points
    }


def direction_descriptor(
    directions: Dict[uuid.UUID, DirectionDescriptor],
    direction_id: uuid.UUID,
) -> DirectionDescriptor:
    return directions.get(direction_id, UNASSIGNED_DIRECTION)


def skill_descriptor(
    skills: Dict[uuid.UUID, SkillPointDescriptor],
    skill_id: uuid.UUID,
) -> SkillPointDescriptor:
    return skills.get(skill_id, UNASSIGNED_SKILL)


# ---------------------------------------------------------------------------
# Per-card pressures
# ---------------------------------------------------------------------------

def due_urgency(card: MemoryCard, now: datetime) -> float:
    """
    How pressing a card's due date is.

    0.5 exactly at the due time, 1.0 a day or more overdue, 0.0 a day or
    more ahead. Cards without a due date sit at 0.3.
    """
    if card.next_due is None:
        return UNSCHEDULED_DUE_URGENCY
    delta = minutes_between(now, card.next_due)
    return clamp_unit((delta + MINUTES_PER_DAY) / (2 * MINUTES_PER_DAY))


def freshness_score(stats: CardReviewStats, now: datetime) -> float:
    """Time since last seen over a week, raised after a fail and damped during a pass streak."""
    if stats.last_seen is None:
        base = 1.0
    else:
        minutes = minutes_between(now, stats.last_seen)
        base = 0.0 if minutes <= 0 else clamp_unit(minutes / FRESHNESS_WINDOW_MINUTES)

    if stats.consecutive_fails > 0:
        return clamp_unit(base + 0.2)
    if stats.consecutive_passes >= 3:
        return clamp_unit(base * 0.7)
    return base


def staleness_from_last_seen(last_seen: Optional[datetime], now: datetime) -> float:
    if last_seen is None:
        return 1.0
    minutes = minutes_between(now, last_seen)
    if minutes <= 0:
        return 0.0
    return clamp_unit(minutes / STALENESS_WINDOW_MINUTES)


def staleness(stats: Optional[CardReviewStats], now: datetime) -> float:
    """Neglect of a card; cards never practiced are fully stale."""
    if stats is None:
        return 1.0
    return staleness_from_last_seen(stats.last_seen, now)


def last_fail_pressure(stats: CardReviewStats, now: datetime) -> float:
    """1.0 right after a fail, decaying to 0 over 72 hours."""
    if stats.last_fail_at is None:
        return 0.0
    minutes = minutes_between(now, stats.last_fail_at)
    return clamp_unit(1.0 - minutes / LAST_FAIL_WINDOW_MINUTES)


def pass_momentum(stats: CardReviewStats) -> float:
    return clamp_unit(stats.consecutive_passes / 4.0)


def fail_streak(stats: CardReviewStats) -> float:
    return clamp_unit(stats.consecutive_fails / 3.0)


def fail_component(stats: CardReviewStats) -> float:
    return 0.6 * stats.fail_rate() + 0.2 * fail_streak(stats)


# ---------------------------------------------------------------------------
# Group signals
# ---------------------------------------------------------------------------

@dataclass
class DirectionSignal:
    """Mean pressures of the candidate cards in one direction."""
    due_pressure: float = 0.0
    fail_pressure: float = 0.0
    new_pressure: float = 0.0
    unstable_pressure: float = 0.0
    momentum_pressure: float = 0.0
    avg_priority: float = 0.0
    neglect_pressure: float = 0.0

    def quiz_bias(self) -> float:
        return clamp_unit(
            0.45 * self.due_pressure
            + 0.25 * self.new_pressure
            + 0.15 * self.unstable_pressure
            + 0.15 * self.neglect_pressure
        )

    def apply_bias(self) -> float:
        return clamp_unit(
            0.35 * self.momentum_pressure
            + 0.25 * self.avg_priority
            + 0.2 * self.new_pressure
            + 0.1 * self.neglect_pressure
            + 0.2 * max(1.0 - self.fail_pressure, 0.0)
        )

    def review_bias(self) -> float:
        return clamp_unit(
            0.55 * self.fail_pressure
            + 0.2 * self.unstable_pressure
            + 0.15 * self.due_pressure
            + 0.1 * self.neglect_pressure
        )

    def for_phase(self, phase: WorkoutPhase) -> float:
        if phase == WorkoutPhase.QUIZ:
            return self.quiz_bias()
        if phase == WorkoutPhase.APPLY:
            return self.apply_bias()
        return self.review_bias()

    def composite_bias(self) -> float:
        return clamp_unit(
            0.3 * self.due_pressure
            + 0.3 * self.fail_pressure
            + 0.2 * self.avg_priority
            + 0.15 * self.momentum_pressure
            + 0.05 * self.neglect_pressure
        )


@dataclass
class SkillSignal:
    """Mean pressures of the candidate cards tagged with one skill point."""
    level: SkillLevel = SkillLevel.UNKNOWN
    due_pressure: float = 0.0
    fail_pressure: float = 0.0
    new_pressure: float = 0.0
    unstable_pressure: float = 0.0
    momentum_pressure: float = 0.0
    neglect_pressure: float = 0.0
    avg_priority: float = 0.0
    count: int = 0

    def level_gap(self) -> float:
        return LEVEL_GAPS[self.level]

    def quiz_bias(self) -> float:
        return clamp_unit(
            0.4 * self.level_gap()
            + 0.25 * self.due_pressure
            + 0.2 * self.new_pressure
            + 0.1 * self.neglect_pressure
            + 0.05 * self.avg_priority
        )

    def apply_bias(self) -> float:
        return clamp_unit(
            0.4 * self.level_gap()
            + 0.2 * self.new_pressure
            + 0.15 * max(1.0 - self.fail_pressure, 0.0)
            + 0.15 * self.momentum_pressure
            + 0.1 * self.avg_priority
            + 0.1 * max(1.0 - self.neglect_pressure, 0.0)
        )

    def review_bias(self) -> float:
        return clamp_unit(
            0.45 * self.level_gap()
            + 0.3 * self.fail_pressure
            + 0.15 * self.unstable_pressure
            + 0.1 * self.neglect_pressure
        )

    def for_phase(self, phase: WorkoutPhase) -> float:
        if phase == WorkoutPhase.QUIZ:
            return self.quiz_bias()
        if phase == WorkoutPhase.APPLY:
            return self.apply_bias()
        return self.review_bias()

    def growth_pressure(self) -> float:
        return clamp_unit(
            0.5 * self.level_gap()
            + 0.2 * self.fail_pressure
            + 0.2 * self.neglect_pressure
            + 0.1 * self.new_pressure
        )

    def share(self, total: int) -> float:
        if total == 0:
            return 0.0
        return clamp_unit(self.count / total)


@dataclass
class _Accumulator:
    count: int = 0
    due: float = 0.0
    fail: float = 0.0
    new_cards: float = 0.0
    unstable: float = 0.0
    momentum: float = 0.0
    priority: float = 0.0
    stale: float = 0.0

    def mean(self, total: float) -> float:
        if self.count <= 0:
            return 0.0
        return max(0.0, min(1.0, total / self.count))


def _accumulate(
    entry: _Accumulator,
    card: MemoryCard,
    stats: Optional[CardReviewStats],
    now: datetime,
    include_last_fail: bool,
) -> None:
    entry.count += 1
    entry.due += due_urgency(card, now)
    entry.unstable += clamp_unit(1.0 - card.stability)
    entry.priority += clamp_unit(card.priority)

    if stats is None:
        entry.new_cards += 1.0
        entry.stale += 1.0
        return

    if stats.total_reviews() == 0:
        entry.new_cards += 1.0
    entry.fail += fail_component(stats)
    if include_last_fail:
        entry.fail += 0.2 * last_fail_pressure(stats, now)
    entry.momentum += pass_momentum(stats)
    entry.stale += staleness(stats, now)


def analyze_direction_signals(
    cards: Iterable[MemoryCard],
    stats_map: Dict[uuid.UUID, CardReviewStats],
    now: datetime,
) -> Dict[uuid.UUID, DirectionSignal]:
    """Average card pressures per direction. Directions with no candidates are absent."""
    accumulators: Dict[uuid.UUID, _Accumulator] = {}
    for card in cards:
        entry = accumulators.setdefault(card.direction_id, _Accumulator())
        _accumulate(entry, card, stats_map.get(card.id), now, include_last_fail=True)

    return {
        direction_id: DirectionSignal(
            due_pressure=acc.mean(acc.due),
            fail_pressure=acc.mean(acc.fail),
            new_pressure=acc.mean(acc.new_cards),
            unstable_pressure=acc.mean(acc.unstable),
            momentum_pressure=acc.mean(acc.momentum),
            avg_priority=acc.mean(acc.priority),
            neglect_pressure=acc.mean(acc.stale),
        )
        for direction_id, acc in accumulators.items()
    }


def analyze_skill_signals(
    cards: Iterable[MemoryCard],
    stats_map: Dict[uuid.UUID, CardReviewStats],
    now: datetime,
    skills: Dict[uuid.UUID, SkillPointDescriptor],
) -> Dict[uuid.UUID, SkillSignal]:
    """Average card pressures per skill point; cards without a skill are skipped."""
    accumulators: Dict[uuid.UUID, _Accumulator] = {}
    for card in cards:
        if card.skill_point_id is None:
            continue
        entry = accumulators.setdefault(card.skill_point_id, _Accumulator())
        _accumulate(entry, card, stats_map.get(card.id), now, include_last_fail=False)

    return {
        skill_id: SkillSignal(
            level=skill_descriptor(skills, skill_id).level,
            due_pressure=acc.mean(acc.due),
            fail_pressure=acc.mean(acc.fail),
            new_pressure=acc.mean(acc.new_cards),
            unstable_pressure=acc.mean(acc.unstable),
            momentum_pressure=acc.mean(acc.momentum),
            neglect_pressure=acc.mean(acc.stale),
            avg_priority=acc.mean(acc.priority),
            count=acc.count,
        )
        for skill_id, acc in accumulators.items()
    }


@dataclass
class SchedulingContext:
    """Everything one scheduling pass reads, computed once per pass."""
    now: datetime
    cards: List[MemoryCard]
    stats: Dict[uuid.UUID, CardReviewStats]
    directions: Dict[uuid.UUID, DirectionDescriptor]
    skills: Dict[uuid.UUID, SkillPointDescriptor]
    direction_signals: Dict[uuid.UUID, DirectionSignal] = field(default_factory=dict)
    skill_signals: Dict[uuid.UUID, SkillSignal] = field(default_factory=dict)

    def stats_for(self, card: MemoryCard) -> CardReviewStats:
        return self.stats.get(card.id, EMPTY_STATS)

    def direction_signal(self, card: MemoryCard) -> DirectionSignal:
        return self.direction_signals.get(card.direction_id) or DirectionSignal()

    def skill_signal(self, card: MemoryCard) -> SkillSignal:
        if card.skill_point_id is None:
            return SkillSignal()
        return self.skill_signals.get(card.skill_point_id) or SkillSignal()


def build_context(
    now: datetime,
    cards: List[MemoryCard],
    stats: Dict[uuid.UUID, CardReviewStats],
    directions: Dict[uuid.UUID, DirectionDescriptor],
    skills: Dict[uuid.UUID, SkillPointDescriptor],
) -> SchedulingContext:
    """Deduplicate the pool by card id (first occurrence wins) and analyze its signals."""
    unique: Dict[uuid.UUID, MemoryCard] = {}
    for card in cards:
        unique.setdefault(card.id, card)
    pool = list(unique.values())

    return SchedulingContext(
        now=now,
        cards=pool,
        stats=stats,
        directions=directions,
        skills=skills,
        direction_signals=analyze_direction_signals(pool, stats, now),
        skill_signals=analyze_skill_signals(pool, stats, now, skills),
    )
