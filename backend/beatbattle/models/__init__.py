from beatbattle.models.entrant import Entrant
from beatbattle.models.matchup import Matchup
from beatbattle.models.tournament import Tournament
from beatbattle.models.vote import Vote

__all__ = [
    "Tournament",
    "Entrant",
    "Matchup",
    "Vote",
]
