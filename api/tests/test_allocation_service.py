import uuid
from datetime import timedelta

import pytest

from conftest import NOW, build_card
from knowflow.models.enums import WorkoutPhase, WorkoutResult
from knowflow.repositories.memory_cards import CardReviewStats
from knowflow.services.allocation_service import (
    calculate_segment_targets,
    schedule_segments,
    seed_review_phase,
)
from knowflow.services.signal_service import build_context


@pytest.mark.parametrize(
    "available, expected",
    [
        (0, (0, 0, 0)),
        (1, (1, 0, 0)),
        (2, (1, 1, 0)),
        (3, (1, 1, 1)),
        (10, (3, 5, 2)),
        (20, (5, 10, 5)),
        (45, (5, 10, 5)),
    ],
)
def test_calculate_segment_targets(available, expected):
    assert calculate_segment_targets(available) == expected


@pytest.mark.parametrize("available", range(3, 20))
def test_small_pool_targets_cover_pool_with_every_phase(available):
    targets = calculate_segment_targets(available)
    assert sum(targets) == available
    assert all(target >= 1 for target in targets)


def _pool(count, direction_id=None):
    direction_id = direction_id or uuid.uuid4()
    return [
        build_card(
            direction_id,
            title=f"Card {idx}",
            next_due=NOW + timedelta(hours=idx - count // 2),
            relevance=0.3 + (idx % 7) * 0.1,
            novelty=0.2 + (idx % 5) * 0.15,
        )
        for idx in range(count)
    ]


def test_schedule_segments_empty_pool():
    assert schedule_segments(build_context(NOW, [], {}, {}, {})) == []


def test_full_pool_fills_nominal_targets_without_duplicates():
    context = build_context(NOW, _pool(30), {}, {}, {})

    segments = schedule_segments(context)

    assert [segment.phase for segment in segments] == [
        WorkoutPhase.QUIZ, WorkoutPhase.APPLY, WorkoutPhase.REVIEW,
    ]
    assert [len(segment.cards) for segment in segments] == [5, 10, 5]
    ids = [card.id for segment in segments for card in segment.cards]
    assert len(ids) == len(set(ids)) == 20


def test_three_card_pool_puts_one_card_in_each_phase():
    context = build_context(NOW, _pool(3), {}, {}, {})

    segments = schedule_segments(context)

    assert [len(segment.cards) for segment in segments] == [1, 1, 1]


def test_failing_card_is_seeded_into_review():
    failing = build_card(uuid.uuid4(), title="Failing", novelty=0.3, next_due=NOW + timedelta(days=2))
    fresh = [build_card(uuid.uuid4(), title=f"Fresh {idx}") for idx in range(2)]
    stats = {
        failing.id: CardReviewStats(
            last_seen=NOW - timedelta(hours=1),
            last_fail_at=NOW - timedelta(hours=1),
            fail_count=2,
            consecutive_fails=2,
            recent_results=[WorkoutResult.FAIL] * 2,
        )
    }
    context = build_context(NOW, [failing] + fresh, stats, {}, {})

    segments = schedule_segments(context)

    review = segments[2]
    assert review.phase == WorkoutPhase.REVIEW
    assert [card.id for card in review.cards] == [failing.id]


def test_review_seed_skips_cards_without_history():
    context = build_context(NOW, _pool(5), {}, {}, {})
    assert seed_review_phase(5, context, set()) == []


def test_deterministic_for_same_pool():
    cards = _pool(25)
    first = schedule_segments(build_context(NOW, cards, {}, {}, {}))
    second = schedule_segments(build_context(NOW, cards, {}, {}, {}))

    assert [[c.id for c in s.cards] for s in first] == [[c.id for c in s.cards] for s in second]
