import uuid
from datetime import timedelta

import pytest

from conftest import NOW, build_card
from knowflow.models.enums import DirectionStage, SkillLevel, WorkoutResult
from knowflow.schemas.workout import WorkoutSummaryMetrics
from knowflow.services.completion_service import (
    aggregate_outcomes,
    apply_result,
    build_insights,
    recommend_from_outcomes,
    recommend_neglected_direction,
    recommend_skill_gap,
    uncertainty_drop_rate,
)
from knowflow.services.signal_service import (
    DirectionDescriptor,
    SkillPointDescriptor,
    build_context,
)


def _metrics(**overrides) -> WorkoutSummaryMetrics:
    values = dict(total_items=4, pass_count=3, fail_count=1, pass_rate=0.75, kv_delta=0.0, udr=0.0)
    values.update(overrides)
    return WorkoutSummaryMetrics(**values)


def test_pass_raises_stability_and_schedules_a_day_out():
    card = build_card(uuid.uuid4(), stability=0.5, relevance=0.7, novelty=0.3)

    outcome = apply_result(card, WorkoutResult.PASS, NOW)

    assert card.stability == pytest.approx(0.65)
    assert card.priority == pytest.approx(0.48)
    assert card.next_due == NOW + timedelta(minutes=1544)
    assert card.updated_at == NOW
    assert outcome.is_pass
    assert outcome.stability_delta == pytest.approx(0.15)
    assert outcome.kv_contribution == pytest.approx(0.08 * 0.48)


def test_fail_halves_stability_and_schedules_hours_out():
    card = build_card(uuid.uuid4(), stability=0.5, relevance=0.7, novelty=0.3)

    outcome = apply_result(card, WorkoutResult.FAIL, NOW)

    assert card.stability == pytest.approx(0.25)
    assert card.priority == pytest.approx(0.4 * 0.75 + 0.4 * 0.7 + 0.2 * 0.3)
    assert card.next_due == NOW + timedelta(minutes=234)
    assert not outcome.is_pass
    assert outcome.kv_contribution == pytest.approx(-0.06 * (1 - card.priority))


def test_stability_cap_and_floor():
    strong = build_card(uuid.uuid4(), stability=0.95)
    weak = build_card(uuid.uuid4(), stability=0.06)

    apply_result(strong, WorkoutResult.PASS, NOW)
    apply_result(weak, WorkoutResult.FAIL, NOW)

    assert strong.stability == pytest.approx(0.99)
    assert weak.stability == pytest.approx(0.05)


def test_payload_entry_serializes_outcome():
    card = build_card(uuid.uuid4(), stability=0.5)
    entry = apply_result(card, WorkoutResult.PASS, NOW).payload_entry()

    assert entry["result"] == "pass"
    assert entry["next_due"] == card.next_due.isoformat()
    assert entry["stability"] == pytest.approx(card.stability)


def test_uncertainty_drop_rate():
    assert uncertainty_drop_rate(0.1, 0.0, 0) == 0.0
    assert uncertainty_drop_rate(0.2, 0.0, 2) == pytest.approx(0.1)
    assert uncertainty_drop_rate(0.3, 0.6, 1) == pytest.approx(0.5)
    assert uncertainty_drop_rate(-5.0, 1.0, 1) == -1.0


def test_aggregate_outcomes_with_breakdowns():
    direction_a, direction_b = uuid.uuid4(), uuid.uuid4()
    skill_id = uuid.uuid4()
    cards = [
        build_card(direction_a, title="A1", stability=0.5, skill_point_id=skill_id),
        build_card(direction_a, title="A2", stability=0.5),
        build_card(direction_b, title="B1", stability=0.5),
    ]
    outcomes = [
        apply_result(cards[0], WorkoutResult.PASS, NOW),
        apply_result(cards[1], WorkoutResult.FAIL, NOW),
        apply_result(cards[2], WorkoutResult.PASS, NOW),
    ]
    directions = {direction_a: DirectionDescriptor(name="Backend", stage=DirectionStage.SHAPE)}
    skills = {skill_id: SkillPointDescriptor(name="Indexing", level=SkillLevel.EMERGING)}

    metrics = aggregate_outcomes(outcomes, directions, skills)

    assert metrics.total_items == 3
    assert metrics.pass_count == 2
    assert metrics.fail_count == 1
    assert metrics.pass_rate == pytest.approx(2 / 3)
    assert metrics.recommended_focus is None
    # +0.15 + 0.15 - 0.25 over 1.5 uncertainty
    assert metrics.udr == pytest.approx(0.05 / 1.5)

    first, second = metrics.direction_breakdown
    assert first.direction_id == direction_a
    assert first.name == "Backend"
    assert first.share == pytest.approx(2 / 3)
    assert second.name == "Unassigned direction"
    assert second.stage == DirectionStage.EXPLORE

    assert len(metrics.skill_breakdown) == 1
    assert metrics.skill_breakdown[0].name == "Indexing"
    assert metrics.skill_breakdown[0].share == pytest.approx(1 / 3)


def test_aggregate_outcomes_clamps_knowledge_velocity():
    direction_id = uuid.uuid4()
    outcomes = [
        apply_result(build_card(direction_id, stability=0.0, relevance=1.0, novelty=1.0), WorkoutResult.PASS, NOW)
        for _ in range(40)
    ]

    metrics = aggregate_outcomes(outcomes, {}, {})

    assert metrics.kv_delta == 1.5


def test_recommend_redrill_for_highest_priority_miss():
    direction_id = uuid.uuid4()
    low = build_card(direction_id, title="Low", relevance=0.1)
    high = build_card(direction_id, title="High", relevance=0.9)
    outcomes = [
        apply_result(low, WorkoutResult.FAIL, NOW),
        apply_result(high, WorkoutResult.FAIL, NOW),
    ]

    assert recommend_from_outcomes(outcomes).startswith('Re-drill "High"')


def test_recommend_application_for_most_novel_pass():
    direction_id = uuid.uuid4()
    outcomes = [
        apply_result(build_card(direction_id, title="Known", novelty=0.2), WorkoutResult.PASS, NOW),
        apply_result(build_card(direction_id, title="Novel", novelty=0.9), WorkoutResult.PASS, NOW),
    ]

    recommendation = recommend_from_outcomes(outcomes)

    assert recommendation.startswith('Try applying "Novel"')
    assert "novelty 90%" in recommendation


def test_recommend_from_no_outcomes():
    assert recommend_from_outcomes([]) is None


def test_recommend_skill_gap_for_unpracticed_skill():
    direction_id = uuid.uuid4()
    skill_id = uuid.uuid4()
    cards = [build_card(direction_id, skill_point_id=skill_id) for _ in range(2)]
    skills = {skill_id: SkillPointDescriptor(name="Indexing", level=SkillLevel.UNKNOWN)}
    context = build_context(NOW, cards, {}, {}, skills)

    recommendation = recommend_skill_gap(context)

    assert recommendation.startswith('Skill "Indexing" (unassessed) growth pressure 75%')
    assert "2 candidate cards (100% coverage)" in recommendation


def test_recommend_skill_gap_without_skills():
    context = build_context(NOW, [build_card(uuid.uuid4())], {}, {}, {})
    assert recommend_skill_gap(context) is None


def test_recommend_neglected_direction_counts_stale_cards():
    direction_id = uuid.uuid4()
    cards = [build_card(direction_id) for _ in range(3)]
    directions = {direction_id: DirectionDescriptor(name="Backend")}
    context = build_context(NOW, cards, {}, directions, {})

    recommendation = recommend_neglected_direction(context)

    assert recommendation.startswith('Direction "Backend" has 3 cards untouched for over 5 days')
    assert "wake-up demand 100%" in recommendation


def test_recommend_neglected_direction_empty_pool():
    assert recommend_neglected_direction(build_context(NOW, [], {}, {}, {})) is None


def test_insights_fallback_when_nothing_stands_out():
    assert build_insights(_metrics(fail_count=0, pass_count=3, total_items=4, pass_rate=0.75)) == [
        "Keep the rhythm; tomorrow's queue will be generated automatically."
    ]


def test_insights_for_weak_session():
    insights = build_insights(_metrics(pass_count=1, fail_count=3, pass_rate=0.25, kv_delta=-0.3, udr=-0.2))

    assert insights[0] == "3 cards marked for re-drill; shore up the weak spots first."
    assert "Pass rate is low; revisit the fundamentals first." in insights
    assert "Knowledge velocity -0.30; try narrowing the practice scope." in insights
    assert "Uncertainty rose -20%; focus on reviewing missed cards." in insights


def test_insights_for_strong_session():
    insights = build_insights(_metrics(pass_count=4, fail_count=0, pass_rate=1.0, kv_delta=0.32, udr=0.3))

    assert insights == [
        "Pass rate is strong; lean into application practice.",
        "Knowledge velocity +0.32; keep the momentum.",
        "Uncertainty drop rate +30%; solid consolidation today.",
    ]
