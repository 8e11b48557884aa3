import random
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, ConfigDict, field_validator
from sqlmodel import Session

from beatbattle.database import get_session
from beatbattle.models.tournament import POLICY_RANDOM
from beatbattle.routes.deps import get_rng, to_http
from beatbattle.routes.matchups import MatchupResponse, ResolutionResponse
from beatbattle.services import tournament_lifecycle
from beatbattle.services.errors import BracketError
from beatbattle.services.matchup_graph import get_bracket_view, load_matchups
from beatbattle.services.round_resolver import resolve_round

router = APIRouter()


class TournamentCreate(BaseModel):
    name: str
    description: Optional[str] = None
    max_entrants: Optional[int] = None
    pairing_policy: str = POLICY_RANDOM

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        if not v or not v.strip():
            raise ValueError("name is required")
        return v.strip()


class TournamentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    description: Optional[str]
    status: str
    pairing_policy: str
    max_entrants: int
    bracket_size: Optional[int] = None
    total_rounds: Optional[int] = None
    champion_entrant_id: Optional[int] = None
    created_at: datetime
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None


class EntrantCreate(BaseModel):
    user_id: str
    name: str
    content_ref: Optional[str] = None
    seed: Optional[int] = None

    @field_validator("seed")
    @classmethod
    def validate_seed(cls, v):
        if v is not None and v < 1:
            raise ValueError("seed must be >= 1")
        return v


class EntrantResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    tournament_id: int
    user_id: str
    name: str
    content_ref: Optional[str] = None
    seed: Optional[int] = None
    created_at: datetime


class StartRequest(BaseModel):
    pairing_policy: Optional[str] = None


class BracketResponse(BaseModel):
    tournament_id: int
    status: Optional[str]
    bracket_size: int
    total_rounds: int
    champion_entrant_id: Optional[int] = None
    matchups: List[MatchupResponse]


def _bracket_response(view) -> BracketResponse:
    return BracketResponse(
        tournament_id=view.tournament_id,
        status=view.status,
        bracket_size=view.bracket_size,
        total_rounds=view.total_rounds,
        champion_entrant_id=view.champion_entrant_id,
        matchups=[MatchupResponse.model_validate(m) for m in view.ordered()],
    )


@router.post("/tournaments", response_model=TournamentResponse, status_code=201)
def create_tournament(payload: TournamentCreate, session: Session = Depends(get_session)):
    """Create a tournament in DRAFT; entrants may register until it starts"""
    try:
        return tournament_lifecycle.create_tournament(
            session,
            name=payload.name,
            description=payload.description,
            max_entrants=payload.max_entrants,
            pairing_policy=payload.pairing_policy,
        )
    except BracketError as exc:
        raise to_http(exc)


@router.get("/tournaments", response_model=List[TournamentResponse])
def list_tournaments(
    status: Optional[str] = Query(default=None),
    session: Session = Depends(get_session),
):
    """List tournaments, optionally filtered by status"""
    return tournament_lifecycle.list_tournaments(session, status=status)


@router.get("/tournaments/{tournament_id}", response_model=TournamentResponse)
def get_tournament(tournament_id: int, session: Session = Depends(get_session)):
    try:
        return tournament_lifecycle.get_tournament(session, tournament_id)
    except BracketError as exc:
        raise to_http(exc)


@router.post("/tournaments/{tournament_id}/entrants", response_model=EntrantResponse, status_code=201)
def register_entrant(tournament_id: int, payload: EntrantCreate, session: Session = Depends(get_session)):
    """Register a submission. DRAFT only; one entrant per user; capacity max_entrants."""
    try:
        return tournament_lifecycle.register_entrant(
            session,
            tournament_id,
            user_id=payload.user_id,
            name=payload.name,
            content_ref=payload.content_ref,
            seed=payload.seed,
        )
    except BracketError as exc:
        raise to_http(exc)


@router.get("/tournaments/{tournament_id}/entrants", response_model=List[EntrantResponse])
def list_entrants(tournament_id: int, session: Session = Depends(get_session)):
    try:
        tournament_lifecycle.get_tournament(session, tournament_id)
    except BracketError as exc:
        raise to_http(exc)
    return tournament_lifecycle.list_entrants(session, tournament_id)


@router.post("/tournaments/{tournament_id}/start", response_model=BracketResponse)
def start_tournament(
    tournament_id: int,
    payload: Optional[StartRequest] = None,
    session: Session = Depends(get_session),
    rng: random.Random = Depends(get_rng),
):
    """Build the bracket from eligible entrants and open round 1 (DRAFT -> ACTIVE)"""
    policy = payload.pairing_policy if payload else None
    try:
        view = tournament_lifecycle.start_tournament(session, tournament_id, rng=rng, pairing_policy=policy)
    except BracketError as exc:
        raise to_http(exc)
    return _bracket_response(view)


@router.get("/tournaments/{tournament_id}/bracket", response_model=BracketResponse)
def get_bracket(tournament_id: int, session: Session = Depends(get_session)):
    """Read-only bracket projection, ordered by (round, slot)"""
    try:
        view = get_bracket_view(session, tournament_id)
    except BracketError as exc:
        raise to_http(exc)
    return _bracket_response(view)


@router.get("/tournaments/{tournament_id}/matchups", response_model=List[MatchupResponse])
def list_matchups(
    tournament_id: int,
    round_number: Optional[int] = Query(default=None, alias="round", ge=1),
    session: Session = Depends(get_session),
):
    try:
        tournament_lifecycle.get_tournament(session, tournament_id)
    except BracketError as exc:
        raise to_http(exc)
    return load_matchups(session, tournament_id, round_number=round_number)


@router.post(
    "/tournaments/{tournament_id}/rounds/{round_number}/resolve",
    response_model=Dict[str, Any],
)
def resolve_tournament_round(
    tournament_id: int,
    round_number: int,
    session: Session = Depends(get_session),
    rng: random.Random = Depends(get_rng),
):
    """Resolve every active matchup in a round (round-close trigger)"""
    if round_number < 1:
        raise HTTPException(status_code=422, detail="round_number must be >= 1")
    try:
        resolutions = resolve_round(session, tournament_id, round_number, rng)
    except BracketError as exc:
        raise to_http(exc)
    return {
        "round_number": round_number,
        "resolved": [ResolutionResponse.model_validate(r).model_dump() for r in resolutions],
        "tournament_completed": any(r.tournament_completed for r in resolutions),
    }
