"""Initial migration: create tournament, entrant, matchup, vote tables

Revision ID: 001_initial
Revises:
Create Date: 2026-10-18 00:00:00.000000

"""

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision = "001_initial"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "tournament",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("description", sa.String(), nullable=True),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("pairing_policy", sa.String(), nullable=False),
        sa.Column("max_entrants", sa.Integer(), nullable=False),
        sa.Column("bracket_size", sa.Integer(), nullable=True),
        sa.Column("total_rounds", sa.Integer(), nullable=True),
        sa.Column("champion_entrant_id", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.Column("started_at", sa.DateTime(), nullable=True),
        sa.Column("completed_at", sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_tournament_status", "tournament", ["status"])

    op.create_table(
        "entrant",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("tournament_id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("content_ref", sa.String(), nullable=True),
        sa.Column("seed", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["tournament_id"], ["tournament.id"]),
        sa.UniqueConstraint("tournament_id", "user_id", name="uq_entrant_tournament_user"),
    )
    op.create_index("ix_entrant_tournament_id", "entrant", ["tournament_id"])

    # Matchups reference each other through next_matchup_id (the advancement edge)
    op.create_table(
        "matchup",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("tournament_id", sa.Integer(), nullable=False),
        sa.Column("round_number", sa.Integer(), nullable=False),
        sa.Column("slot_index", sa.Integer(), nullable=False),
        sa.Column("side1_entrant_id", sa.Integer(), nullable=True),
        sa.Column("side2_entrant_id", sa.Integer(), nullable=True),
        sa.Column("is_bye", sa.Boolean(), nullable=False),
        sa.Column("votes_side1", sa.Integer(), nullable=False),
        sa.Column("votes_side2", sa.Integer(), nullable=False),
        sa.Column("winner_entrant_id", sa.Integer(), nullable=True),
        sa.Column("tiebreak_applied", sa.Boolean(), nullable=False),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("next_matchup_id", sa.Integer(), nullable=True),
        sa.Column("next_matchup_side", sa.Integer(), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("activated_at", sa.DateTime(), nullable=True),
        sa.Column("completed_at", sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["tournament_id"], ["tournament.id"]),
        sa.ForeignKeyConstraint(["side1_entrant_id"], ["entrant.id"]),
        sa.ForeignKeyConstraint(["side2_entrant_id"], ["entrant.id"]),
        sa.ForeignKeyConstraint(["winner_entrant_id"], ["entrant.id"]),
        sa.ForeignKeyConstraint(["next_matchup_id"], ["matchup.id"]),
        sa.UniqueConstraint("tournament_id", "round_number", "slot_index", name="uq_matchup_round_slot"),
    )
    op.create_index("ix_matchup_tournament_id", "matchup", ["tournament_id"])

    op.create_table(
        "vote",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("voter_id", sa.String(), nullable=False),
        sa.Column("matchup_id", sa.Integer(), nullable=False),
        sa.Column("entrant_id", sa.Integer(), nullable=False),
        sa.Column("side", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["matchup_id"], ["matchup.id"]),
        sa.ForeignKeyConstraint(["entrant_id"], ["entrant.id"]),
        sa.UniqueConstraint("voter_id", "matchup_id", name="uq_vote_voter_matchup"),
    )
    op.create_index("ix_vote_voter_id", "vote", ["voter_id"])
    op.create_index("ix_vote_matchup_id", "vote", ["matchup_id"])


def downgrade() -> None:
    op.drop_index("ix_vote_matchup_id", table_name="vote")
    op.drop_index("ix_vote_voter_id", table_name="vote")
    op.drop_table("vote")
    op.drop_index("ix_matchup_tournament_id", table_name="matchup")
    op.drop_table("matchup")
    op.drop_index("ix_entrant_tournament_id", table_name="entrant")
    op.drop_table("entrant")
    op.drop_index("ix_tournament_status", table_name="tournament")
    op.drop_table("tournament")
