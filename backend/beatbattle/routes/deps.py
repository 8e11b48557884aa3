import random

from fastapi import Header, HTTPException, Request

from beatbattle.services.errors import BracketError


def get_rng(request: Request) -> random.Random:
    """Tie-break random source held by the app; tests override this dependency."""
    return request.app.state.rng


def get_voter_id(x_voter_id: str = Header(..., alias="X-Voter-Id")) -> str:
    """Stable voter id supplied by the identity layer in front of this service."""
    voter_id = x_voter_id.strip()
    if not voter_id:
        raise HTTPException(status_code=401, detail="X-Voter-Id header is required")
    return voter_id


def to_http(exc: BracketError) -> HTTPException:
    return HTTPException(status_code=exc.http_status, detail=exc.detail())
