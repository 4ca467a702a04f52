"""Property-based tests for card update and allocation invariants."""

import math
import uuid
from datetime import timedelta

from hypothesis import given, settings, strategies as st

from conftest import NOW, build_card
from knowflow.models.enums import WorkoutResult
from knowflow.models.memory_card import calculate_priority
from knowflow.services.allocation_service import calculate_segment_targets, schedule_segments
from knowflow.services.completion_service import apply_result
from knowflow.services.signal_service import build_context

unit = st.floats(min_value=0.0, max_value=1.0, allow_nan=False, allow_infinity=False)


@settings(max_examples=100, deadline=None)
@given(stability=unit, relevance=unit, novelty=unit)
def test_priority_is_bounded(stability: float, relevance: float, novelty: float) -> None:
    """
    Property: priority is a finite weighted sum inside [0, 1].
    """
    priority = calculate_priority(stability, relevance, novelty)

    assert math.isfinite(priority)
    assert -1e-9 <= priority <= 1.0 + 1e-9


@settings(max_examples=100, deadline=None)
@given(stability=unit, relevance=unit, novelty=unit, passed=st.booleans())
def test_result_moves_stability_the_right_way(
    stability: float,
    relevance: float,
    novelty: float,
    passed: bool,
) -> None:
    """
    Property: a pass never lowers stability, a fail never raises it (floor aside),
    stability stays in [0.05, 0.99] and the card is always rescheduled into the future.

    Invariants:
    - priority matches the updated stability
    - fail intervals are shorter than pass intervals
    """
    card = build_card(uuid.uuid4(), stability=stability, relevance=relevance, novelty=novelty)
    result = WorkoutResult.PASS if passed else WorkoutResult.FAIL

    outcome = apply_result(card, result, NOW)

    if passed:
        assert card.stability >= min(stability, 0.99)
        assert card.next_due - NOW >= timedelta(hours=7)
    else:
        assert card.stability <= max(stability, 0.05)
        assert card.next_due - NOW <= timedelta(hours=6)
    assert card.next_due > NOW
    assert card.stability <= 0.99
    assert card.stability >= 0.05
    assert card.priority == calculate_priority(card.stability, relevance, novelty)
    assert outcome.progress.next_due == card.next_due


@settings(max_examples=60, deadline=None)
@given(available=st.integers(min_value=0, max_value=200))
def test_targets_never_exceed_pool(available: int) -> None:
    targets = calculate_segment_targets(available)

    assert sum(targets) == min(available, 20)
    assert all(target >= 0 for target in targets)


@settings(max_examples=30, deadline=None)
@given(count=st.integers(min_value=0, max_value=40))
def test_allocation_selects_each_card_at_most_once(count: int) -> None:
    direction_id = uuid.uuid4()
    cards = [build_card(direction_id, title=f"Card {idx}") for idx in range(count)]

    segments = schedule_segments(build_context(NOW, cards, {}, {}, {}))

    ids = [card.id for segment in segments for card in segment.cards]
    assert len(ids) == len(set(ids)) == min(count, 20)
