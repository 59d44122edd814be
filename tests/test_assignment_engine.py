"""
Tests for AssignmentEngine operator selection.
"""

import pytest

from appealdesk.assignment.domain import ScoringWeights
from appealdesk.config import TicketCategory, TicketPriority
from appealdesk.core import NoEligibleOperatorException

BILLING = TicketCategory.BILLING
NORMAL = TicketPriority.NORMAL


async def test_no_operators_raises(engine):
    with pytest.raises(NoEligibleOperatorException) as exc_info:
        await engine.find_best_operator(BILLING, NORMAL)

    assert exc_info.value.category == BILLING


async def test_only_unavailable_operators_raises(engine, tracker):
    await tracker.set_availability(1, False)
    await tracker.set_availability(2, False)

    with pytest.raises(NoEligibleOperatorException):
        await engine.find_best_operator(BILLING, NORMAL)


async def test_never_picks_unavailable_operator(engine, tracker):
    await tracker.set_expertise(1, BILLING, 5)
    await tracker.set_availability(1, False)
    await tracker.set_availability(2, True)

    best = await engine.find_best_operator(BILLING, TicketPriority.HIGH)

    assert best.operator_id == 2
    assert best.is_available


async def test_prefers_category_expert(engine, tracker):
    await tracker.set_expertise(1, BILLING, 1)
    await tracker.set_expertise(2, BILLING, 4)
    await tracker.set_expertise(3, TicketCategory.DORMITORY, 5)

    best = await engine.find_best_operator(BILLING, NORMAL)

    assert best.operator_id == 2


async def test_load_outweighs_small_expertise_gap(engine, tracker):
    await tracker.set_expertise(1, BILLING, 3)
    await tracker.set_expertise(2, BILLING, 2)
    for _ in range(2):
        await tracker.assign_ticket(1)

    best = await engine.find_best_operator(BILLING, NORMAL)

    assert best.operator_id == 2


async def test_equal_scores_fall_back_to_operator_id(engine, tracker):
    await tracker.set_availability(7, True)
    await tracker.set_availability(3, True)
    await tracker.set_availability(5, True)

    best = await engine.find_best_operator(BILLING, NORMAL)

    assert best.operator_id == 3


async def test_equal_scores_prefer_lower_assignment_priority(engine, tracker, clock):
    # Operator 1 idle for 3 days, operator 2 active yesterday; no recency bonus for either.
    await tracker.set_availability(1, True)
    clock.advance(hours=50)
    await tracker.set_availability(2, True)
    clock.advance(hours=23)

    scores = await engine.rank_operators(BILLING, NORMAL)

    assert scores[0].score == scores[1].score
    assert [s.operator_id for s in scores] == [2, 1]


async def test_rank_operators_sorted_best_first(engine, tracker):
    await tracker.set_expertise(1, BILLING, 1)
    await tracker.set_expertise(2, BILLING, 5)
    await tracker.set_expertise(3, BILLING, 3)

    scores = await engine.rank_operators(BILLING, TicketPriority.HIGH)

    assert [s.operator_id for s in scores] == [2, 3, 1]
    assert scores[0].affinity_bonus == 50


async def test_released_operator_scored_without_the_released_ticket(engine, tracker):
    await tracker.set_availability(1, True)
    await tracker.set_availability(2, True)
    await tracker.assign_ticket(1)

    plain = await engine.rank_operators(BILLING, NORMAL)
    discounted = await engine.rank_operators(BILLING, NORMAL, released_operator_id=1)

    assert plain[0].operator_id == 2
    assert discounted[0].operator_id == 1
    assert discounted[0].load_penalty == 0
    # Engine never mutates stored workloads
    assert (await tracker.get_by_operator(1)).active_ticket_count == 1


async def test_update_weights_changes_ranking(engine, tracker):
    await tracker.set_expertise(1, BILLING, 5)
    await tracker.set_expertise(2, BILLING, 1)
    await tracker.assign_ticket(1)

    assert (await engine.find_best_operator(BILLING, NORMAL)).operator_id == 1

    engine.update_weights(ScoringWeights(expertise_weight=0))

    assert (await engine.find_best_operator(BILLING, NORMAL)).operator_id == 2


async def test_operators_for_category_skips_unavailable(engine, tracker):
    await tracker.set_expertise(1, BILLING, 2)
    await tracker.set_expertise(2, BILLING, 5)
    await tracker.set_availability(2, False)
    await tracker.set_availability(3, True)

    operators = await engine.operators_for_category(BILLING)

    assert [w.operator_id for w in operators] == [1]
