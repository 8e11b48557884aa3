"""
Matchup graph: advancement topology of a single-elimination bracket.

Every matchup has at most one forward edge (next_matchup_id, next_matchup_side); the
final has none. Matchup k of round r feeds side 1 of matchup ceil(k/2) in round r+1
when k is odd, side 2 when k is even. The graph is stored arena-style: rows are keyed
by (round_number, slot_index), never by nested pointers.
"""
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import update
from sqlmodel import Session, select

from beatbattle.models.matchup import MATCHUP_ACTIVE, MATCHUP_PENDING, Matchup
from beatbattle.models.tournament import Tournament
from beatbattle.services.errors import InvalidTransition, NotFound

logger = logging.getLogger(__name__)

Position = Tuple[int, int]


def next_position(round_number: int, slot_index: int, total_rounds: int) -> Optional[Position]:
    """Position fed by the winner of (round_number, slot_index); None for the final."""
    if round_number >= total_rounds:
        return None
    return (round_number + 1, (slot_index + 1) // 2)


def feeding_side(slot_index: int) -> int:
    return 1 if slot_index % 2 == 1 else 2


def feeder_positions(round_number: int, slot_index: int) -> Optional[Tuple[Position, Position]]:
    """The two positions whose winners fill side 1 and side 2 of this matchup."""
    if round_number <= 1:
        return None
    return ((round_number - 1, 2 * slot_index - 1), (round_number - 1, 2 * slot_index))


class BracketView:
    """Read-only arena over one tournament's matchups, indexed by (round, slot)."""

    def __init__(
        self,
        tournament_id: int,
        matchups: List[Matchup],
        status: Optional[str] = None,
        champion_entrant_id: Optional[int] = None,
    ):
        self.tournament_id = tournament_id
        self.status = status
        self.champion_entrant_id = champion_entrant_id
        self._by_position: Dict[Position, Matchup] = {
            (m.round_number, m.slot_index): m for m in matchups
        }
        self._by_id: Dict[int, Matchup] = {m.id: m for m in matchups if m.id is not None}

    def __len__(self) -> int:
        return len(self._by_position)

    @property
    def total_rounds(self) -> int:
        return max((r for r, _ in self._by_position), default=0)

    @property
    def bracket_size(self) -> int:
        return 2 ** self.total_rounds if self._by_position else 0

    def at(self, round_number: int, slot_index: int) -> Optional[Matchup]:
        return self._by_position.get((round_number, slot_index))

    def by_id(self, matchup_id: int) -> Optional[Matchup]:
        return self._by_id.get(matchup_id)

    def ordered(self) -> List[Matchup]:
        return [self._by_position[p] for p in sorted(self._by_position)]

    def rounds(self) -> Dict[int, List[Matchup]]:
        out: Dict[int, List[Matchup]] = {}
        for m in self.ordered():
            out.setdefault(m.round_number, []).append(m)
        return out

    def round(self, round_number: int) -> List[Matchup]:
        return self.rounds().get(round_number, [])

    def final(self) -> Optional[Matchup]:
        return self.at(self.total_rounds, 1)

    def feeders(self, matchup: Matchup) -> Tuple[Optional[Matchup], Optional[Matchup]]:
        positions = feeder_positions(matchup.round_number, matchup.slot_index)
        if positions is None:
            return (None, None)
        return (self.at(*positions[0]), self.at(*positions[1]))

    def byes(self) -> List[Matchup]:
        return [m for m in self.ordered() if m.is_bye]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tournament_id": self.tournament_id,
            "status": self.status,
            "bracket_size": self.bracket_size,
            "total_rounds": self.total_rounds,
            "champion_entrant_id": self.champion_entrant_id,
            "rounds": {
                r: [
                    {
                        "id": m.id,
                        "slot_index": m.slot_index,
                        "side1_entrant_id": m.side1_entrant_id,
                        "side2_entrant_id": m.side2_entrant_id,
                        "is_bye": m.is_bye,
                        "votes_side1": m.votes_side1,
                        "votes_side2": m.votes_side2,
                        "winner_entrant_id": m.winner_entrant_id,
                        "status": m.status,
                        "next_matchup_id": m.next_matchup_id,
                        "next_matchup_side": m.next_matchup_side,
                    }
                    for m in ms
                ]
                for r, ms in self.rounds().items()
            },
        }


def load_matchups(session: Session, tournament_id: int, round_number: Optional[int] = None) -> List[Matchup]:
    stmt = select(Matchup).where(Matchup.tournament_id == tournament_id)
    if round_number is not None:
        stmt = stmt.where(Matchup.round_number == round_number)
    return list(session.exec(stmt.order_by(Matchup.round_number, Matchup.slot_index)).all())


def get_bracket_view(session: Session, tournament_id: int) -> BracketView:
    """Pure query: the full bracket for display. Never mutates."""
    tournament = session.get(Tournament, tournament_id)
    if not tournament:
        raise NotFound(f"Tournament {tournament_id} not found")
    return BracketView(
        tournament_id,
        load_matchups(session, tournament_id),
        status=tournament.status,
        champion_entrant_id=tournament.champion_entrant_id,
    )


def advance_winner(session: Session, matchup: Matchup, winner_entrant_id: int) -> bool:
    """
    Write a resolved matchup's winner into its forward slot and open voting on the
    next matchup once both of its sides are known.

    Runs inside the caller's transaction. Both writes are conditional updates, so a
    sibling resolving concurrently can only complete the pair, never overwrite it.
    Returns True if the next matchup was activated by this call.

    Raises:
        InvalidTransition: the forward slot is already filled or the next matchup left PENDING
    """
    if matchup.next_matchup_id is None:
        return False

    side_column = Matchup.side1_entrant_id if matchup.next_matchup_side == 1 else Matchup.side2_entrant_id
    conn = session.connection()

    written = conn.execute(
        update(Matchup)
        .where(
            Matchup.id == matchup.next_matchup_id,
            Matchup.status == MATCHUP_PENDING,
            side_column.is_(None),
        )
        .values({side_column.key: winner_entrant_id, "version": Matchup.version + 1})
    )
    if written.rowcount != 1:
        raise InvalidTransition(
            f"Side {matchup.next_matchup_side} of matchup {matchup.next_matchup_id} is already filled; "
            f"winner {winner_entrant_id} of matchup {matchup.id} cannot advance"
        )

    activated = conn.execute(
        update(Matchup)
        .where(
            Matchup.id == matchup.next_matchup_id,
            Matchup.status == MATCHUP_PENDING,
            Matchup.side1_entrant_id.is_not(None),
            Matchup.side2_entrant_id.is_not(None),
        )
        .values(status=MATCHUP_ACTIVE, activated_at=datetime.utcnow(), version=Matchup.version + 1)
    )
    if activated.rowcount == 1:
        logger.info("Matchup %s activated: voting open", matchup.next_matchup_id)
        return True
    return False
