import uuid
from datetime import timedelta

from conftest import NOW, build_card
from knowflow.models.enums import SkillLevel, WorkoutPhase, WorkoutResult
from knowflow.repositories.memory_cards import CardReviewStats
from knowflow.services.allocation_service import SegmentAllocation
from knowflow.services.plan_service import (
    build_direction_breakdown,
    build_plan,
    build_skill_breakdown,
    derive_focus,
)
from knowflow.services.signal_service import (
    DirectionDescriptor,
    SkillPointDescriptor,
    build_context,
)


def test_focus_for_new_quiz_cards():
    direction_id = uuid.uuid4()
    cards = [build_card(direction_id, title=f"Card {idx}") for idx in range(2)]
    context = build_context(NOW, cards, {}, {}, {})

    focus = derive_focus(WorkoutPhase.QUIZ, cards, context)

    assert focus.headline == "First pass on 2 new cards, quick recall check"
    assert focus.highlights == [
        "2 first-pass cards",
        "2 need more stability",
        "2 not practiced lately",
    ]
    assert focus.skill_breakdown == []


def test_focus_for_review_of_missed_cards():
    direction_id = uuid.uuid4()
    card = build_card(direction_id, stability=0.3, next_due=NOW - timedelta(days=2))
    stats = {
        card.id: CardReviewStats(
            last_seen=NOW - timedelta(hours=5),
            last_fail_at=NOW - timedelta(hours=5),
            fail_count=1,
            consecutive_fails=1,
            recent_results=[WorkoutResult.FAIL],
        )
    }
    context = build_context(NOW, [card], stats, {}, {})

    focus = derive_focus(WorkoutPhase.REVIEW, [card], context)

    assert focus.headline == "1 missed · 1 unstable, close the weak spots"
    assert focus.highlights == ["1 recently missed", "1 with stability < 45%", "1 already due"]


def test_focus_leads_with_primary_skill_and_growth_note():
    direction_id = uuid.uuid4()
    skill_id = uuid.uuid4()
    cards = [build_card(direction_id, skill_point_id=skill_id) for _ in range(2)]
    skills = {skill_id: SkillPointDescriptor(name="Indexing", level=SkillLevel.UNKNOWN)}
    context = build_context(NOW, cards, {}, {}, skills)

    focus = derive_focus(WorkoutPhase.APPLY, cards, context)

    assert focus.highlights[0] == 'Skill focus "Indexing" · 2 cards (100%)'
    assert focus.highlights[-1] == 'Skill "Indexing" growth pressure 75%, schedule transfer practice.'
    assert len(focus.highlights) <= 5


def test_focus_for_empty_segment():
    assert derive_focus(WorkoutPhase.QUIZ, [], build_context(NOW, [], {}, {}, {})) is None


def test_direction_breakdown_tags_and_order():
    big, small = uuid.uuid4(), uuid.uuid4()
    cards = [build_card(big), build_card(big), build_card(small)]
    directions = {big: DirectionDescriptor(name="Backend")}
    context = build_context(NOW, cards, {}, directions, {})

    breakdown = build_direction_breakdown(cards, context)

    assert [entry.name for entry in breakdown] == ["Backend", "Unassigned direction"]
    assert breakdown[0].count == 2
    assert breakdown[0].signals == [
        "includes due cards",
        "many new cards waiting",
        "stability is low overall",
    ]


def test_skill_breakdown_starts_with_level_tag():
    direction_id = uuid.uuid4()
    skill_id = uuid.uuid4()
    cards = [build_card(direction_id, skill_point_id=skill_id), build_card(direction_id)]
    skills = {skill_id: SkillPointDescriptor(name="Indexing", level=SkillLevel.WORKING)}
    context = build_context(NOW, cards, {}, {}, skills)

    breakdown = build_skill_breakdown(cards, context)

    assert len(breakdown) == 1
    assert breakdown[0].share == 1.0
    assert breakdown[0].signals == [
        "actively building",
        "many new cards to transfer",
        "skill not practiced lately",
    ]


def test_build_plan_drops_empty_segments_and_counts_totals():
    direction_id = uuid.uuid4()
    cards = [build_card(direction_id, title=f"Card {idx}") for idx in range(3)]
    context = build_context(NOW, cards, {}, {}, {})
    allocations = [
        SegmentAllocation(phase=WorkoutPhase.QUIZ, target=2, cards=cards[:2]),
        SegmentAllocation(phase=WorkoutPhase.APPLY, target=0, cards=[]),
        SegmentAllocation(phase=WorkoutPhase.REVIEW, target=1, cards=cards[2:]),
    ]

    plan = build_plan(NOW, allocations, context)

    assert [segment.phase for segment in plan.segments] == [WorkoutPhase.QUIZ, WorkoutPhase.REVIEW]
    assert [item.sequence for item in plan.segments[0].items] == [0, 1]
    assert [item.sequence for item in plan.segments[1].items] == [0]
    assert plan.segments[0].focus == plan.segments[0].focus_details.headline
    assert (plan.totals.total_cards, plan.totals.quiz, plan.totals.apply, plan.totals.review) == (3, 2, 0, 1)
    assert plan.scheduled_for == NOW
    item_ids = [item.item_id for segment in plan.segments for item in segment.items]
    assert len(set(item_ids)) == 3
