from datetime import datetime
from typing import Optional

from sqlalchemy import UniqueConstraint as SAUniqueConstraint
from sqlmodel import Field, SQLModel


class Vote(SQLModel, table=True):
    __table_args__ = (
        # At most one vote per voter per matchup
        SAUniqueConstraint("voter_id", "matchup_id", name="uq_vote_voter_matchup"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    voter_id: str = Field(index=True)
    matchup_id: int = Field(foreign_key="matchup.id", index=True)
    entrant_id: int = Field(foreign_key="entrant.id")
    side: int  # 1 | 2
    created_at: datetime = Field(default_factory=datetime.utcnow)
