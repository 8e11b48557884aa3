"""
Bracket Builder: turns an ordered entrant list into a fully wired single-elimination bracket.

Planning is pure (plan_bracket works on entrant ids only and is unit-testable without a
database); build_bracket persists a plan as Matchup rows inside the caller's transaction.

Shape for N entrants:
- bracket_size = next power of two >= N, total_rounds = log2(bracket_size)
- round r holds bracket_size / 2**r matchups, bracket_size - 1 matchups in total
- bracket_size - N byes. Under "random" the byes go to the first K entrants in shuffle
  order; under "seeded" they fall to the top K seeds through standard seed positions.

Round 1 pairs consecutive slots (slot[2i], slot[2i+1]). Later rounds are empty PENDING
shells from the start so the forward wiring exists before any vote is cast. A bye is
completed at build time and its winner is pushed into the next shell, which opens for
voting as soon as both of its sides are known.
"""
import logging
import random
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from sqlmodel import Session

from beatbattle.models.matchup import MATCHUP_ACTIVE, MATCHUP_COMPLETED, MATCHUP_PENDING, Matchup
from beatbattle.models.tournament import POLICY_SEEDED
from beatbattle.services.errors import ConfigurationError
from beatbattle.services.matchup_graph import (
    BracketView,
    Position,
    feeding_side,
    next_position,
)
from beatbattle.services.seed_ordering import (
    order_entrants,
    standard_seed_positions,
    validate_entrant_count,
    validate_policy,
)

logger = logging.getLogger(__name__)


def next_power_of_two(n: int) -> int:
    if n < 1:
        raise ConfigurationError(f"Entrant count must be positive, got {n}")
    size = 1
    while size < n:
        size *= 2
    return size


def bracket_slots(ordered_ids: Sequence[int], policy: str) -> List[Optional[int]]:
    """
    Lay ordered entrant ids into bracket_size slots; None marks a bye.

    random: the first K entrants each get a bye slot beside them, the rest fill in pairs.
    seeded: entrant i (0-based) takes seed i+1; seeds beyond N are byes.
    """
    n = len(ordered_ids)
    validate_entrant_count(n)
    size = next_power_of_two(n)
    byes = size - n

    if policy == POLICY_SEEDED:
        return [ordered_ids[s - 1] if s <= n else None for s in standard_seed_positions(size)]

    slots: List[Optional[int]] = []
    for i, entrant_id in enumerate(ordered_ids):
        slots.append(entrant_id)
        if i < byes:
            slots.append(None)
    return slots


@dataclass
class PlannedMatchup:
    round_number: int
    slot_index: int
    side1: Optional[int] = None
    side2: Optional[int] = None
    is_bye: bool = False
    winner: Optional[int] = None
    status: str = MATCHUP_PENDING
    next_position: Optional[Position] = None
    next_side: Optional[int] = None

    @property
    def position(self) -> Position:
        return (self.round_number, self.slot_index)


@dataclass
class BracketPlan:
    bracket_size: int
    total_rounds: int
    matchups: Dict[Position, PlannedMatchup] = field(default_factory=dict)

    def at(self, round_number: int, slot_index: int) -> PlannedMatchup:
        return self.matchups[(round_number, slot_index)]

    def ordered(self) -> List[PlannedMatchup]:
        return [self.matchups[p] for p in sorted(self.matchups)]

    @property
    def bye_count(self) -> int:
        return sum(1 for m in self.matchups.values() if m.is_bye)


def plan_bracket(slots: Sequence[Optional[int]]) -> BracketPlan:
    size = len(slots)
    if size < 2 or size & (size - 1):
        raise ConfigurationError(f"Slot count must be a power of two >= 2, got {size}")

    total_rounds = size.bit_length() - 1
    plan = BracketPlan(bracket_size=size, total_rounds=total_rounds)

    for round_number in range(1, total_rounds + 1):
        for slot_index in range(1, (size >> round_number) + 1):
            target = next_position(round_number, slot_index, total_rounds)
            plan.matchups[(round_number, slot_index)] = PlannedMatchup(
                round_number=round_number,
                slot_index=slot_index,
                next_position=target,
                next_side=feeding_side(slot_index) if target else None,
            )

    for m in plan.ordered():
        if m.round_number != 1:
            break
        m.side1 = slots[2 * (m.slot_index - 1)]
        m.side2 = slots[2 * (m.slot_index - 1) + 1]
        if m.side1 is None and m.side2 is None:
            raise ConfigurationError(f"Round 1 slot {m.slot_index} has no entrants")
        if m.side1 is not None and m.side2 is not None:
            m.status = MATCHUP_ACTIVE
        else:
            _settle_bye(plan, m)

    return plan


def _settle_bye(plan: BracketPlan, matchup: PlannedMatchup) -> None:
    matchup.is_bye = True
    matchup.winner = matchup.side1 if matchup.side1 is not None else matchup.side2
    matchup.status = MATCHUP_COMPLETED
    _push_forward(plan, matchup)


def _push_forward(plan: BracketPlan, matchup: PlannedMatchup) -> None:
    if matchup.next_position is None:
        return
    target = plan.matchups[matchup.next_position]
    if matchup.next_side == 1:
        target.side1 = matchup.winner
    else:
        target.side2 = matchup.winner
    if target.side1 is not None and target.side2 is not None:
        target.status = MATCHUP_ACTIVE


def build_bracket(
    session: Session,
    tournament_id: int,
    entrants: Sequence[Any],
    policy: str,
    rng: Optional[random.Random] = None,
) -> BracketView:
    """
    Persist a new bracket for the given entrants. Entrants need an ``id`` (and ``seed``
    for the seeded policy). Caller owns the transaction: rows are flushed, not committed.
    """
    validate_policy(policy)
    validate_entrant_count(len(entrants))

    ordered = order_entrants(entrants, policy, rng)
    plan = plan_bracket(bracket_slots([e.id for e in ordered], policy))
    now = datetime.utcnow()

    rows: Dict[Position, Matchup] = {}
    for pm in plan.ordered():
        row = Matchup(
            tournament_id=tournament_id,
            round_number=pm.round_number,
            slot_index=pm.slot_index,
            side1_entrant_id=pm.side1,
            side2_entrant_id=pm.side2,
            is_bye=pm.is_bye,
            winner_entrant_id=pm.winner,
            status=pm.status,
            next_matchup_side=pm.next_side,
            activated_at=now if pm.status != MATCHUP_PENDING else None,
            completed_at=now if pm.status == MATCHUP_COMPLETED else None,
        )
        session.add(row)
        rows[pm.position] = row
    session.flush()

    for pm in plan.ordered():
        if pm.next_position is not None:
            rows[pm.position].next_matchup_id = rows[pm.next_position].id
            session.add(rows[pm.position])
    session.flush()

    logger.info(
        "Bracket built for tournament %s: %d entrants, size %d, %d rounds, %d byes, %d matchups",
        tournament_id,
        len(entrants),
        plan.bracket_size,
        plan.total_rounds,
        plan.bye_count,
        len(rows),
    )
    return BracketView(tournament_id, list(rows.values()))
