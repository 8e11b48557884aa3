"""
Tournament progression: DRAFT -> ACTIVE -> COMPLETED.

- DRAFT accepts entrants (one per user, up to max_entrants).
- start_tournament is the one-time DRAFT -> ACTIVE transition: it builds the bracket from
  the eligible entrants (those with submitted content) and opens round 1.
- ACTIVE -> COMPLETED happens in the round resolver when the final matchup resolves.

No transition returns to DRAFT, and entrants are frozen once the bracket exists.
"""
import logging
import random
from datetime import datetime
from typing import List, Optional

from sqlalchemy import func, update
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from beatbattle.models.entrant import Entrant
from beatbattle.models.tournament import POLICY_RANDOM, TOURNAMENT_ACTIVE, TOURNAMENT_DRAFT, Tournament
from beatbattle.services.bracket_builder import build_bracket
from beatbattle.services.errors import ConfigurationError, EntrantRejected, InvalidTransition, NotFound
from beatbattle.services.matchup_graph import BracketView
from beatbattle.services.seed_ordering import MIN_ENTRANTS, validate_entrant_count, validate_policy
from beatbattle.settings import settings

logger = logging.getLogger(__name__)


def create_tournament(
    session: Session,
    name: str,
    description: Optional[str] = None,
    max_entrants: Optional[int] = None,
    pairing_policy: str = POLICY_RANDOM,
) -> Tournament:
    validate_policy(pairing_policy)
    capacity = max_entrants if max_entrants is not None else settings.default_max_entrants
    if capacity < MIN_ENTRANTS:
        raise ConfigurationError(f"max_entrants must be at least {MIN_ENTRANTS}, got {capacity}")

    tournament = Tournament(
        name=name,
        description=description,
        max_entrants=capacity,
        pairing_policy=pairing_policy,
    )
    session.add(tournament)
    session.commit()
    session.refresh(tournament)
    return tournament


def get_tournament(session: Session, tournament_id: int) -> Tournament:
    tournament = session.get(Tournament, tournament_id)
    if not tournament:
        raise NotFound(f"Tournament {tournament_id} not found")
    return tournament


def list_tournaments(session: Session, status: Optional[str] = None) -> List[Tournament]:
    stmt = select(Tournament)
    if status:
        stmt = stmt.where(Tournament.status == status)
    return list(session.exec(stmt.order_by(Tournament.id)).all())


def list_entrants(session: Session, tournament_id: int) -> List[Entrant]:
    return list(
        session.exec(select(Entrant).where(Entrant.tournament_id == tournament_id).order_by(Entrant.id)).all()
    )


def eligible_entrants(session: Session, tournament_id: int) -> List[Entrant]:
    """Entrants with a submitted track; the rest never reach the bracket."""
    return [e for e in list_entrants(session, tournament_id) if e.content_ref and e.content_ref.strip()]


def register_entrant(
    session: Session,
    tournament_id: int,
    user_id: str,
    name: str,
    content_ref: Optional[str] = None,
    seed: Optional[int] = None,
) -> Entrant:
    """
    Register a submission while the tournament is DRAFT.

    The DRAFT check is a conditional UPDATE on the tournament row, so registration is
    serialized against start_tournament's claim and against other registrations; the
    capacity count and the insert run in that same transaction.
    """
    tournament = get_tournament(session, tournament_id)
    if tournament.status != TOURNAMENT_DRAFT:
        raise EntrantRejected(f"Tournament {tournament_id} is {tournament.status}; submissions are closed")

    held = session.connection().execute(
        update(Tournament)
        .where(Tournament.id == tournament_id, Tournament.status == TOURNAMENT_DRAFT)
        .values(updated_at=datetime.utcnow())
    )
    if held.rowcount != 1:
        session.rollback()
        raise EntrantRejected(f"Tournament {tournament_id} started; submissions are closed")

    count = session.exec(select(func.count(Entrant.id)).where(Entrant.tournament_id == tournament_id)).one()
    capacity = tournament.max_entrants
    if count >= capacity:
        session.rollback()
        raise EntrantRejected(f"Tournament {tournament_id} is full ({capacity} entrants)")

    entrant = Entrant(
        tournament_id=tournament_id,
        user_id=user_id,
        name=name,
        content_ref=content_ref,
        seed=seed,
    )
    try:
        session.add(entrant)
        session.commit()
    except IntegrityError:
        session.rollback()
        raise EntrantRejected(f"User {user_id} already has an entrant in tournament {tournament_id}")
    session.refresh(entrant)
    return entrant


def start_tournament(
    session: Session,
    tournament_id: int,
    rng: Optional[random.Random] = None,
    pairing_policy: Optional[str] = None,
) -> BracketView:
    """
    Build the bracket and open round 1. One-time and irreversible.

    Eligible entrants are read after the DRAFT -> ACTIVE claim, so every registration
    that committed before the claim is placed and none can land after it.

    Raises:
        NotFound: tournament does not exist
        InvalidTransition: tournament is not DRAFT (including a concurrent start that won)
        ConfigurationError: fewer than 2 eligible entrants, or unknown pairing policy
    """
    tournament = get_tournament(session, tournament_id)
    if tournament.status != TOURNAMENT_DRAFT:
        raise InvalidTransition(f"Tournament {tournament_id} is {tournament.status}; only DRAFT can start")

    policy = validate_policy(pairing_policy or tournament.pairing_policy)

    now = datetime.utcnow()
    claimed = session.connection().execute(
        update(Tournament)
        .where(Tournament.id == tournament_id, Tournament.status == TOURNAMENT_DRAFT)
        .values(status=TOURNAMENT_ACTIVE, pairing_policy=policy, started_at=now, updated_at=now)
    )
    if claimed.rowcount != 1:
        session.rollback()
        raise InvalidTransition(f"Tournament {tournament_id} was started concurrently")

    entrants = eligible_entrants(session, tournament_id)
    try:
        validate_entrant_count(len(entrants))
    except ConfigurationError:
        session.rollback()
        raise

    view = build_bracket(session, tournament_id, entrants, policy, rng)

    session.connection().execute(
        update(Tournament)
        .where(Tournament.id == tournament_id)
        .values(bracket_size=view.bracket_size, total_rounds=view.total_rounds)
    )
    session.commit()

    logger.info("Tournament %s started with %d eligible entrants (%s pairing)", tournament_id, len(entrants), policy)
    session.refresh(tournament)
    view.status = tournament.status
    return view
