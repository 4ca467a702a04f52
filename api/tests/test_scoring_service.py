import uuid
from datetime import timedelta

import pytest

from conftest import NOW, build_card
from knowflow.models.enums import DirectionStage, WorkoutPhase, WorkoutResult
from knowflow.repositories.memory_cards import CardReviewStats
from knowflow.services.scoring_service import (
    compute_segment_scores,
    score_pool,
    stage_bias,
    stage_bias_for,
)
from knowflow.services.signal_service import DirectionDescriptor, build_context


def _failing_stats() -> CardReviewStats:
    return CardReviewStats(
        last_seen=NOW - timedelta(hours=2),
        last_fail_at=NOW - timedelta(hours=2),
        fail_count=3,
        consecutive_fails=3,
        recent_results=[WorkoutResult.FAIL] * 3,
    )


def test_stage_bias_table():
    assert stage_bias(DirectionStage.ATTACK).apply == pytest.approx(0.10)
    assert stage_bias(DirectionStage.STABILIZE).review == pytest.approx(0.10)
    assert stage_bias(DirectionStage.EXPLORE).quiz == pytest.approx(0.08)


def test_stage_bias_for_unknown_direction_is_explore():
    assert stage_bias_for({}, uuid.uuid4()) == stage_bias(DirectionStage.EXPLORE)


def test_scores_are_clamped_to_unit_interval():
    direction_id = uuid.uuid4()
    cards = [
        build_card(direction_id, next_due=NOW - timedelta(days=3), stability=0.0, relevance=1.0, novelty=1.0),
        build_card(direction_id, next_due=NOW + timedelta(days=3), stability=0.99, relevance=0.0, novelty=0.0),
        build_card(direction_id),
    ]
    stats = {cards[0].id: _failing_stats()}
    directions = {direction_id: DirectionDescriptor(name="Backend", stage=DirectionStage.ATTACK)}
    context = build_context(NOW, cards, stats, directions, {})

    for scores in score_pool(context).values():
        for value in (scores.quiz, scores.apply, scores.review, scores.composite):
            assert 0.0 <= value <= 1.0


def test_failing_card_outranks_new_card_for_review():
    failing = build_card(uuid.uuid4(), title="Failing", next_due=NOW + timedelta(days=2))
    fresh = build_card(uuid.uuid4(), title="Fresh")
    context = build_context(NOW, [failing, fresh], {failing.id: _failing_stats()}, {}, {})

    failing_scores = compute_segment_scores(failing, context.stats_for(failing), context)
    fresh_scores = compute_segment_scores(fresh, context.stats_for(fresh), context)

    assert failing_scores.for_phase(WorkoutPhase.REVIEW) > fresh_scores.for_phase(WorkoutPhase.REVIEW)
    assert failing_scores.review > 0.6


def test_score_pool_covers_every_card():
    direction_id = uuid.uuid4()
    cards = [build_card(direction_id, title=f"Card {idx}") for idx in range(4)]
    context = build_context(NOW, cards, {}, {}, {})

    assert list(score_pool(context)) == [card.id for card in cards]
