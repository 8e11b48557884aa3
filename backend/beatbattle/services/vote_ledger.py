"""
Vote Ledger: one vote per (voter, matchup), counted exactly once.

The tally increment is a single conditional UPDATE guarded by status and side, and the
Vote insert relies on the (voter_id, matchup_id) unique constraint. Both run in one
transaction: a duplicate insert rolls the increment back with it, so a rejected vote
never changes a tally and concurrent accepted votes never lose an increment.
"""
import logging
from dataclasses import dataclass
from typing import Dict

from sqlalchemy import func, update
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from beatbattle.models.matchup import MATCHUP_ACTIVE, Matchup
from beatbattle.models.vote import Vote
from beatbattle.services.errors import DuplicateVote, NotActive, NotFound, UnknownSide

logger = logging.getLogger(__name__)


@dataclass
class VoteResult:
    vote_id: int
    voter_id: str
    matchup_id: int
    entrant_id: int
    side: int
    votes_side1: int
    votes_side2: int


def cast_vote(session: Session, voter_id: str, matchup_id: int, entrant_id: int) -> VoteResult:
    """
    Record voter_id's vote for entrant_id on matchup_id.

    Raises:
        NotFound: matchup does not exist
        NotActive: matchup is PENDING or COMPLETED (including a resolve that won the race)
        UnknownSide: entrant_id is not one of the matchup's two sides
        DuplicateVote: voter already voted on this matchup
    """
    matchup = session.get(Matchup, matchup_id)
    if not matchup:
        raise NotFound(f"Matchup {matchup_id} not found")
    if matchup.status != MATCHUP_ACTIVE:
        logger.debug("Vote by %s rejected: matchup %s is %s", voter_id, matchup_id, matchup.status)
        raise NotActive(f"Matchup {matchup_id} is {matchup.status}; voting is not open")

    side = matchup.side_of(entrant_id)
    if side is None:
        raise UnknownSide(f"Entrant {entrant_id} is not part of matchup {matchup_id}")

    tally_column = "votes_side1" if side == 1 else "votes_side2"
    side_column = Matchup.side1_entrant_id if side == 1 else Matchup.side2_entrant_id

    incremented = session.connection().execute(
        update(Matchup)
        .where(
            Matchup.id == matchup_id,
            Matchup.status == MATCHUP_ACTIVE,
            side_column == entrant_id,
        )
        .values({tally_column: getattr(Matchup, tally_column) + 1, "version": Matchup.version + 1})
    )
    if incremented.rowcount != 1:
        session.rollback()
        logger.debug("Vote by %s rejected: matchup %s closed before the increment", voter_id, matchup_id)
        raise NotActive(f"Matchup {matchup_id} closed; voting is not open")

    vote = Vote(voter_id=voter_id, matchup_id=matchup_id, entrant_id=entrant_id, side=side)
    try:
        session.add(vote)
        session.flush()
    except IntegrityError:
        session.rollback()
        logger.debug("Duplicate vote by %s on matchup %s rejected", voter_id, matchup_id)
        raise DuplicateVote(f"Voter {voter_id} already voted on matchup {matchup_id}")

    session.commit()
    session.refresh(vote)
    session.refresh(matchup)

    return VoteResult(
        vote_id=vote.id,
        voter_id=voter_id,
        matchup_id=matchup_id,
        entrant_id=entrant_id,
        side=side,
        votes_side1=matchup.votes_side1,
        votes_side2=matchup.votes_side2,
    )


def tally(session: Session, matchup_id: int) -> Dict[int, int]:
    """Recount Vote rows per side. Audits the stored tallies; does not modify them."""
    rows = session.exec(
        select(Vote.side, func.count(Vote.id)).where(Vote.matchup_id == matchup_id).group_by(Vote.side)
    ).all()
    counts = {1: 0, 2: 0}
    for side, count in rows:
        counts[side] = int(count)
    return counts


def has_voted(session: Session, voter_id: str, matchup_id: int) -> bool:
    return (
        session.exec(select(Vote).where(Vote.voter_id == voter_id, Vote.matchup_id == matchup_id)).first()
        is not None
    )
