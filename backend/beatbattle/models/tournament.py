from datetime import datetime
from typing import TYPE_CHECKING, List, Optional

from sqlmodel import Field, Relationship, SQLModel

if TYPE_CHECKING:
    from beatbattle.models.entrant import Entrant
    from beatbattle.models.matchup import Matchup

TOURNAMENT_DRAFT = "DRAFT"
TOURNAMENT_ACTIVE = "ACTIVE"
TOURNAMENT_COMPLETED = "COMPLETED"

POLICY_RANDOM = "random"
POLICY_SEEDED = "seeded"


class Tournament(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    description: Optional[str] = None
    status: str = Field(default=TOURNAMENT_DRAFT, index=True)  # DRAFT | ACTIVE | COMPLETED
    pairing_policy: str = Field(default=POLICY_RANDOM)  # "random" | "seeded"
    max_entrants: int = Field(default=64)

    # Set once when the bracket is built
    bracket_size: Optional[int] = Field(default=None)
    total_rounds: Optional[int] = Field(default=None)
    champion_entrant_id: Optional[int] = Field(default=None)  # Entrant id of the final winner

    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow, sa_column_kwargs={"onupdate": datetime.utcnow})
    started_at: Optional[datetime] = Field(default=None)
    completed_at: Optional[datetime] = Field(default=None)

    # Relationships
    entrants: List["Entrant"] = Relationship(back_populates="tournament")
    matchups: List["Matchup"] = Relationship(back_populates="tournament")
