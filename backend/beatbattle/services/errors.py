"""
Domain errors raised by the bracket engine.

Each error carries a stable machine code and the HTTP status the web adapter maps it to.
Services roll back their session before raising, so a raised error never leaves a
partial write behind.
"""


class BracketError(Exception):
    code = "BRACKET_ERROR"
    http_status = 400

    def __init__(self, message: str = ""):
        super().__init__(message or self.code)
        self.message = message or self.code

    def detail(self) -> str:
        return f"{self.code}: {self.message}"


class ConfigurationError(BracketError):
    """Invalid entrant count or pairing policy at bracket-build time. Do not retry unchanged."""

    code = "CONFIGURATION_ERROR"
    http_status = 422


class NotActive(BracketError):
    """Matchup is not open (pending or already completed). Re-query state."""

    code = "MATCHUP_NOT_ACTIVE"
    http_status = 409


class UnknownSide(BracketError):
    """Vote target is not one of the matchup's populated sides."""

    code = "UNKNOWN_SIDE"
    http_status = 400


class DuplicateVote(BracketError):
    """Voter already has a counted vote on this matchup."""

    code = "DUPLICATE_VOTE"
    http_status = 409


class InvalidTransition(BracketError):
    code = "INVALID_TRANSITION"
    http_status = 409


class EntrantRejected(BracketError):
    code = "ENTRANT_REJECTED"
    http_status = 409


class NotFound(BracketError):
    code = "NOT_FOUND"
    http_status = 404


class ResolutionContention(BracketError):
    """Optimistic resolve lost every compare-and-swap attempt to concurrent votes."""

    code = "RESOLUTION_CONTENTION"
    http_status = 503
