from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import UniqueConstraint as SAUniqueConstraint
from sqlmodel import Field, Relationship, SQLModel

if TYPE_CHECKING:
    from beatbattle.models.tournament import Tournament


class Entrant(SQLModel, table=True):
    __table_args__ = (
        # One submission per user per tournament
        SAUniqueConstraint("tournament_id", "user_id", name="uq_entrant_tournament_user"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    tournament_id: int = Field(foreign_key="tournament.id", index=True)
    user_id: str  # Stable id from the identity provider
    name: str  # Display name (artist / track title)
    content_ref: Optional[str] = Field(default=None)  # Submitted track reference; null = not eligible
    seed: Optional[int] = Field(default=None)  # 1-based rank for seeded pairing (1=highest)
    created_at: datetime = Field(default_factory=datetime.utcnow)

    tournament: "Tournament" = Relationship(back_populates="entrants")
