"""
Round Resolver: closes a matchup, records its winner and advances it.

Winner policy:
- more votes wins
- equal tallies (including 0-0) are broken uniformly at random by the injected
  random source, and the matchup is flagged tiebreak_applied

Resolution is a compare-and-swap on Matchup.version: the winner is computed from a
snapshot and written only if no vote landed in between. A lost race re-reads and
retries; a matchup that is already COMPLETED is returned as-is, so a tie is never
re-rolled and the forward wiring is written exactly once.
"""
import logging
import random
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Tuple

from sqlalchemy import update
from sqlmodel import Session, select

from beatbattle.models.matchup import MATCHUP_ACTIVE, MATCHUP_COMPLETED, Matchup
from beatbattle.models.tournament import TOURNAMENT_ACTIVE, TOURNAMENT_COMPLETED, Tournament
from beatbattle.services.errors import InvalidTransition, NotActive, NotFound, ResolutionContention
from beatbattle.services.matchup_graph import advance_winner
from beatbattle.settings import settings

logger = logging.getLogger(__name__)


@dataclass
class Resolution:
    matchup_id: int
    winner_entrant_id: int
    next_matchup_id: Optional[int]
    next_matchup_side: Optional[int]
    votes_side1: int
    votes_side2: int
    tiebreak_applied: bool
    already_resolved: bool = False
    next_matchup_activated: bool = False
    tournament_completed: bool = False


def build_rng(seed: Optional[int] = None) -> random.Random:
    """Tie-break source. Seeded for reproducible runs, OS entropy otherwise."""
    if seed is None:
        return random.SystemRandom()
    return random.Random(seed)


def decide_winner(
    votes_side1: int,
    votes_side2: int,
    side1_entrant_id: int,
    side2_entrant_id: int,
    rng: random.Random,
) -> Tuple[int, bool]:
    """Return (winner_entrant_id, tiebreak_applied)."""
    if votes_side1 > votes_side2:
        return side1_entrant_id, False
    if votes_side2 > votes_side1:
        return side2_entrant_id, False
    return rng.choice((side1_entrant_id, side2_entrant_id)), True


def _existing(matchup: Matchup) -> Resolution:
    return Resolution(
        matchup_id=matchup.id,
        winner_entrant_id=matchup.winner_entrant_id,
        next_matchup_id=matchup.next_matchup_id,
        next_matchup_side=matchup.next_matchup_side,
        votes_side1=matchup.votes_side1,
        votes_side2=matchup.votes_side2,
        tiebreak_applied=matchup.tiebreak_applied,
        already_resolved=True,
    )


def resolve_matchup(
    session: Session,
    matchup_id: int,
    rng: random.Random,
    max_attempts: Optional[int] = None,
) -> Resolution:
    """
    Resolve an ACTIVE matchup. Idempotent once COMPLETED.

    Raises:
        NotFound: matchup does not exist
        NotActive: matchup is still PENDING
        ResolutionContention: every CAS attempt lost to a concurrent vote
        InvalidTransition: the winner's forward slot is already taken; nothing is written
    """
    attempts = max_attempts or settings.resolve_max_attempts

    for attempt in range(1, attempts + 1):
        session.expire_all()
        matchup = session.get(Matchup, matchup_id)
        if not matchup:
            raise NotFound(f"Matchup {matchup_id} not found")
        if matchup.status == MATCHUP_COMPLETED:
            return _existing(matchup)
        if matchup.status != MATCHUP_ACTIVE:
            raise NotActive(f"Matchup {matchup_id} is {matchup.status}; it cannot be resolved yet")

        winner, tiebreak = decide_winner(
            matchup.votes_side1,
            matchup.votes_side2,
            matchup.side1_entrant_id,
            matchup.side2_entrant_id,
            rng,
        )
        now = datetime.utcnow()

        claimed = session.connection().execute(
            update(Matchup)
            .where(
                Matchup.id == matchup_id,
                Matchup.status == MATCHUP_ACTIVE,
                Matchup.version == matchup.version,
            )
            .values(
                winner_entrant_id=winner,
                tiebreak_applied=tiebreak,
                status=MATCHUP_COMPLETED,
                completed_at=now,
                version=Matchup.version + 1,
            )
        )
        if claimed.rowcount != 1:
            session.rollback()
            logger.debug("Resolve of matchup %s lost CAS race (attempt %d)", matchup_id, attempt)
            continue

        try:
            activated = advance_winner(session, matchup, winner)
        except InvalidTransition:
            session.rollback()
            raise
        completed = False
        if matchup.next_matchup_id is None:
            completed = _complete_tournament(session, matchup.tournament_id, winner, now)

        resolution = Resolution(
            matchup_id=matchup_id,
            winner_entrant_id=winner,
            next_matchup_id=matchup.next_matchup_id,
            next_matchup_side=matchup.next_matchup_side,
            votes_side1=matchup.votes_side1,
            votes_side2=matchup.votes_side2,
            tiebreak_applied=tiebreak,
            next_matchup_activated=activated,
            tournament_completed=completed,
        )
        session.commit()

        logger.info(
            "Matchup %s resolved: winner %s (%d-%d%s)",
            matchup_id,
            winner,
            resolution.votes_side1,
            resolution.votes_side2,
            ", tie-break" if tiebreak else "",
        )
        return resolution

    raise ResolutionContention(f"Matchup {matchup_id} kept changing; gave up after {attempts} attempts")


def _complete_tournament(session: Session, tournament_id: int, champion_entrant_id: int, now: datetime) -> bool:
    done = session.connection().execute(
        update(Tournament)
        .where(Tournament.id == tournament_id, Tournament.status == TOURNAMENT_ACTIVE)
        .values(
            status=TOURNAMENT_COMPLETED,
            champion_entrant_id=champion_entrant_id,
            completed_at=now,
            updated_at=now,
        )
    )
    if done.rowcount == 1:
        logger.info("Tournament %s completed: champion entrant %s", tournament_id, champion_entrant_id)
        return True
    return False


def resolve_round(session: Session, tournament_id: int, round_number: int, rng: random.Random) -> List[Resolution]:
    """Resolve every ACTIVE matchup in a round, in slot order."""
    tournament = session.get(Tournament, tournament_id)
    if not tournament:
        raise NotFound(f"Tournament {tournament_id} not found")

    matchup_ids = session.exec(
        select(Matchup.id)
        .where(
            Matchup.tournament_id == tournament_id,
            Matchup.round_number == round_number,
            Matchup.status == MATCHUP_ACTIVE,
        )
        .order_by(Matchup.slot_index)
    ).all()
    if not matchup_ids:
        raise NotActive(f"No active matchups in round {round_number} of tournament {tournament_id}")

    return [resolve_matchup(session, matchup_id, rng) for matchup_id in matchup_ids]
