from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import UniqueConstraint as SAUniqueConstraint
from sqlmodel import Field, Relationship, SQLModel

if TYPE_CHECKING:
    from beatbattle.models.tournament import Tournament

MATCHUP_PENDING = "PENDING"
MATCHUP_ACTIVE = "ACTIVE"
MATCHUP_COMPLETED = "COMPLETED"


class Matchup(SQLModel, table=True):
    __table_args__ = (
        SAUniqueConstraint("tournament_id", "round_number", "slot_index", name="uq_matchup_round_slot"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    tournament_id: int = Field(foreign_key="tournament.id", index=True)
    round_number: int  # 1..total_rounds
    slot_index: int  # 1-based position within the round

    side1_entrant_id: Optional[int] = Field(default=None, foreign_key="entrant.id")
    side2_entrant_id: Optional[int] = Field(default=None, foreign_key="entrant.id")
    is_bye: bool = Field(default=False)

    votes_side1: int = Field(default=0)
    votes_side2: int = Field(default=0)

    winner_entrant_id: Optional[int] = Field(default=None, foreign_key="entrant.id")
    tiebreak_applied: bool = Field(default=False)  # Winner drawn by the random tie-break
    status: str = Field(default=MATCHUP_PENDING)  # PENDING | ACTIVE | COMPLETED

    # Advancement edge: winner feeds side 1 or 2 of next_matchup_id (null for the final)
    next_matchup_id: Optional[int] = Field(default=None, foreign_key="matchup.id")
    next_matchup_side: Optional[int] = Field(default=None)

    # Optimistic concurrency counter; bumped by every vote and by resolution
    version: int = Field(default=0)

    created_at: datetime = Field(default_factory=datetime.utcnow)
    activated_at: Optional[datetime] = Field(default=None)
    completed_at: Optional[datetime] = Field(default=None)

    tournament: "Tournament" = Relationship(back_populates="matchups")

    def sides(self):
        return (self.side1_entrant_id, self.side2_entrant_id)

    def side_of(self, entrant_id: int) -> Optional[int]:
        """Return 1 or 2 for an entrant on this matchup, None otherwise."""
        if entrant_id is None:
            return None
        if self.side1_entrant_id == entrant_id:
            return 1
        if self.side2_entrant_id == entrant_id:
            return 2
        return None
