import random
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Header
from pydantic import BaseModel, ConfigDict
from sqlmodel import Session

from beatbattle.database import get_session
from beatbattle.models.matchup import Matchup
from beatbattle.routes.deps import get_rng, get_voter_id, to_http
from beatbattle.services.errors import BracketError, NotFound
from beatbattle.services.round_resolver import resolve_matchup
from beatbattle.services.vote_ledger import cast_vote, has_voted

router = APIRouter()


class MatchupResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    tournament_id: int
    round_number: int
    slot_index: int
    side1_entrant_id: Optional[int] = None
    side2_entrant_id: Optional[int] = None
    is_bye: bool
    votes_side1: int
    votes_side2: int
    winner_entrant_id: Optional[int] = None
    tiebreak_applied: bool
    status: str
    next_matchup_id: Optional[int] = None
    next_matchup_side: Optional[int] = None
    activated_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None


class MatchupDetailResponse(MatchupResponse):
    has_voted: Optional[bool] = None  # Only when X-Voter-Id is supplied


class VoteRequest(BaseModel):
    entrant_id: int


class VoteResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    vote_id: int
    voter_id: str
    matchup_id: int
    entrant_id: int
    side: int
    votes_side1: int
    votes_side2: int


class ResolutionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    matchup_id: int
    winner_entrant_id: int
    next_matchup_id: Optional[int] = None
    next_matchup_side: Optional[int] = None
    votes_side1: int
    votes_side2: int
    tiebreak_applied: bool
    already_resolved: bool
    next_matchup_activated: bool
    tournament_completed: bool


@router.get("/matchups/{matchup_id}", response_model=MatchupDetailResponse)
def get_matchup(
    matchup_id: int,
    x_voter_id: Optional[str] = Header(default=None, alias="X-Voter-Id"),
    session: Session = Depends(get_session),
):
    matchup = session.get(Matchup, matchup_id)
    if not matchup:
        raise to_http(NotFound(f"Matchup {matchup_id} not found"))
    response = MatchupDetailResponse.model_validate(matchup)
    if x_voter_id:
        response.has_voted = has_voted(session, x_voter_id.strip(), matchup_id)
    return response


@router.post("/matchups/{matchup_id}/votes", response_model=VoteResponse, status_code=201)
def vote_on_matchup(
    matchup_id: int,
    payload: VoteRequest,
    voter_id: str = Depends(get_voter_id),
    session: Session = Depends(get_session),
):
    """
    Cast one vote for an entrant on an active matchup.

    409 MATCHUP_NOT_ACTIVE: voting closed or not yet open
    409 DUPLICATE_VOTE: this voter's vote is already counted
    400 UNKNOWN_SIDE: entrant is not part of the matchup
    """
    try:
        result = cast_vote(session, voter_id, matchup_id, payload.entrant_id)
    except BracketError as exc:
        raise to_http(exc)
    return VoteResponse.model_validate(result)


@router.post("/matchups/{matchup_id}/resolve", response_model=ResolutionResponse)
def resolve(
    matchup_id: int,
    session: Session = Depends(get_session),
    rng: random.Random = Depends(get_rng),
):
    """Close voting and advance the winner. Repeat calls return the recorded result."""
    try:
        resolution = resolve_matchup(session, matchup_id, rng)
    except BracketError as exc:
        raise to_http(exc)
    return ResolutionResponse.model_validate(resolution)
