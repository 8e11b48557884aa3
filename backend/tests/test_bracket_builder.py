"""Bracket Builder: shape, byes, wiring, and persisted rows."""
import math
import random

import pytest
from sqlmodel import Session

from beatbattle.models.matchup import MATCHUP_ACTIVE, MATCHUP_COMPLETED, MATCHUP_PENDING
from beatbattle.services.bracket_builder import (
    bracket_slots,
    build_bracket,
    next_power_of_two,
    plan_bracket,
)
from beatbattle.services.errors import ConfigurationError
from beatbattle.services.matchup_graph import feeder_positions, get_bracket_view
from beatbattle.services.tournament_lifecycle import eligible_entrants


def _plan(n, policy="random"):
    return plan_bracket(bracket_slots(list(range(1, n + 1)), policy))


# ---------------------------------------------------------------------------
# Pure planning
# ---------------------------------------------------------------------------


class TestNextPowerOfTwo:

    @pytest.mark.parametrize("n,expected", [(1, 1), (2, 2), (3, 4), (4, 4), (5, 8), (9, 16), (64, 64), (65, 128)])
    def test_values(self, n, expected):
        assert next_power_of_two(n) == expected


class TestPlanShape:

    @pytest.mark.parametrize("n", list(range(2, 34)))
    @pytest.mark.parametrize("policy", ["random", "seeded"])
    def test_rounds_matchups_and_byes(self, n, policy):
        plan = _plan(n, policy)
        size = next_power_of_two(n)

        assert plan.total_rounds == math.ceil(math.log2(n))
        assert plan.bracket_size == size
        assert len(plan.matchups) == size - 1
        for r in range(1, plan.total_rounds + 1):
            assert len([m for m in plan.ordered() if m.round_number == r]) == size >> r
        finals = [m for m in plan.ordered() if m.round_number == plan.total_rounds]
        assert len(finals) == 1
        assert finals[0].next_position is None

        assert plan.bye_count == size - n
        for m in plan.ordered():
            if m.is_bye:
                assert m.round_number == 1
                assert m.status == MATCHUP_COMPLETED
                assert m.winner in (m.side1, m.side2)
                assert (m.side1 is None) != (m.side2 is None)

    @pytest.mark.parametrize("n", [2, 3, 5, 6, 7, 8, 12, 17])
    def test_every_entrant_appears_exactly_once_in_round_one(self, n):
        plan = _plan(n)
        sides = [s for m in plan.ordered() if m.round_number == 1 for s in (m.side1, m.side2) if s is not None]
        assert sorted(sides) == list(range(1, n + 1))

    @pytest.mark.parametrize("n", [2, 4, 6, 11, 16, 23])
    def test_wiring_is_a_tree_reaching_the_final(self, n):
        plan = _plan(n)
        incoming = {}
        for m in plan.ordered():
            if m.round_number < plan.total_rounds:
                assert m.next_position == (m.round_number + 1, (m.slot_index + 1) // 2)
                assert m.next_side == (1 if m.slot_index % 2 else 2)
                incoming.setdefault(m.next_position, []).append(m.next_side)
        for m in plan.ordered():
            if m.round_number > 1:
                assert sorted(incoming[m.position]) == [1, 2]
                f1, f2 = feeder_positions(m.round_number, m.slot_index)
                assert plan.at(*f1).next_side == 1
                assert plan.at(*f2).next_side == 2

    def test_power_of_two_has_no_byes_and_round_one_all_active(self):
        plan = _plan(8)
        assert plan.bye_count == 0
        for m in plan.ordered():
            expected = MATCHUP_ACTIVE if m.round_number == 1 else MATCHUP_PENDING
            assert m.status == expected

    def test_two_entrants_is_a_single_active_final(self):
        plan = _plan(2)
        assert plan.total_rounds == 1
        (final,) = plan.ordered()
        assert final.status == MATCHUP_ACTIVE
        assert (final.side1, final.side2) == (1, 2)

    def test_five_entrants_random_layout(self):
        """N=5: byes for the first three in order; round 2 waits only on the real matchup."""
        plan = _plan(5, "random")
        r1 = [plan.at(1, k) for k in range(1, 5)]
        assert [m.is_bye for m in r1] == [True, True, True, False]
        assert [m.winner for m in r1[:3]] == [1, 2, 3]
        assert (r1[3].side1, r1[3].side2, r1[3].status) == (4, 5, MATCHUP_ACTIVE)

        r2_first, r2_second = plan.at(2, 1), plan.at(2, 2)
        assert (r2_first.side1, r2_first.side2, r2_first.status) == (1, 2, MATCHUP_ACTIVE)
        assert (r2_second.side1, r2_second.side2, r2_second.status) == (3, None, MATCHUP_PENDING)
        assert plan.at(3, 1).status == MATCHUP_PENDING

    def test_five_entrants_seeded_byes_go_to_top_seeds(self):
        plan = _plan(5, "seeded")
        bye_winners = sorted(m.winner for m in plan.ordered() if m.is_bye)
        assert bye_winners == [1, 2, 3]
        real = [m for m in plan.ordered() if m.round_number == 1 and not m.is_bye]
        assert [(m.side1, m.side2) for m in real] == [(4, 5)]

    def test_seeded_power_of_two_pairs_one_against_last(self):
        plan = _plan(8, "seeded")
        assert (plan.at(1, 1).side1, plan.at(1, 1).side2) == (1, 8)
        assert (plan.at(1, 2).side1, plan.at(1, 2).side2) == (4, 5)

    def test_rejects_bad_slot_counts(self):
        with pytest.raises(ConfigurationError):
            plan_bracket([1, 2, 3])
        with pytest.raises(ConfigurationError):
            plan_bracket([1])
        with pytest.raises(ConfigurationError):
            plan_bracket([1, 2, None, None])

    def test_bracket_slots_rejects_single_entrant(self):
        with pytest.raises(ConfigurationError):
            bracket_slots([1], "random")


# ---------------------------------------------------------------------------
# Persisted build
# ---------------------------------------------------------------------------


def test_build_bracket_persists_wired_rows(session: Session, make_tournament):
    tournament = make_tournament(session, 6)
    entrants = eligible_entrants(session, tournament.id)

    view = build_bracket(session, tournament.id, entrants, "seeded", random.Random(0))
    session.commit()

    view = get_bracket_view(session, tournament.id)
    assert len(view) == 7
    assert view.total_rounds == 3
    assert view.bracket_size == 8
    assert len(view.byes()) == 2

    for m in view.ordered():
        if m.round_number < 3:
            target = view.by_id(m.next_matchup_id)
            assert (target.round_number, target.slot_index) == (m.round_number + 1, (m.slot_index + 1) // 2)
        else:
            assert m.next_matchup_id is None
            assert m.next_matchup_side is None

    for bye in view.byes():
        assert bye.votes_side1 == bye.votes_side2 == 0
        assert bye.status == MATCHUP_COMPLETED
        assert bye.completed_at is not None
        target = view.by_id(bye.next_matchup_id)
        placed = target.side1_entrant_id if bye.next_matchup_side == 1 else target.side2_entrant_id
        assert placed == bye.winner_entrant_id


def test_build_bracket_rejects_single_entrant(session: Session, make_tournament):
    tournament = make_tournament(session, 1)
    with pytest.raises(ConfigurationError):
        build_bracket(session, tournament.id, eligible_entrants(session, tournament.id), "random")


def test_bracket_view_feeders_and_display(session: Session, make_tournament):
    tournament = make_tournament(session, 8)
    build_bracket(session, tournament.id, eligible_entrants(session, tournament.id), "seeded")
    session.commit()

    view = get_bracket_view(session, tournament.id)
    final = view.final()
    assert (final.round_number, final.slot_index) == (3, 1)
    assert view.feeders(final) == (view.at(2, 1), view.at(2, 2))
    assert view.feeders(view.at(2, 2)) == (view.at(1, 3), view.at(1, 4))
    assert view.feeders(view.at(1, 1)) == (None, None)

    shown = view.to_dict()
    assert shown["bracket_size"] == 8
    assert shown["status"] == "DRAFT"
    assert {r: len(ms) for r, ms in shown["rounds"].items()} == {1: 4, 2: 2, 3: 1}
    assert [m["slot_index"] for m in shown["rounds"][1]] == [1, 2, 3, 4]
    assert shown["rounds"][3][0]["next_matchup_id"] is None
