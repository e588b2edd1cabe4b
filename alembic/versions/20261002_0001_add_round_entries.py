"""Add competition round entries.

Revision ID: 20261002_0001
Revises: 20261001_0001
Create Date: 2026-10-02 10:12:41.000000
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "20261002_0001"
down_revision = "20261001_0001"
branch_labels = None
depends_on = None


qualification_status_enum = postgresql.ENUM(
    "unprocessed",
    "qualified",
    "disqualified",
    name="qualification_status",
    create_type=False,
)


def upgrade() -> None:
    qualification_status_enum.create(op.get_bind(), checkfirst=True)

    op.create_table(
        "competition_round_entries",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("participant_id", sa.BigInteger(), nullable=False),
        sa.Column("round_id", sa.BigInteger(), nullable=False),
        sa.Column("post_id", sa.BigInteger(), nullable=True),
        sa.Column(
            "qualification_status",
            qualification_status_enum,
            nullable=False,
            server_default="unprocessed",
        ),
        sa.Column("visible_in_normal_feed", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("visible_in_competition_feed", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.ForeignKeyConstraint(["participant_id"], ["competition_participants.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["round_id"], ["competition_rounds.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["post_id"], ["posts.id"], ondelete="SET NULL"),
        sa.UniqueConstraint(
            "participant_id",
            "round_id",
            name="uq_competition_round_entries_participant_round",
        ),
    )
    op.create_index(
        "ix_competition_round_entries_participant_id",
        "competition_round_entries",
        ["participant_id"],
        unique=False,
    )
    op.create_index(
        "ix_competition_round_entries_round_id",
        "competition_round_entries",
        ["round_id"],
        unique=False,
    )


def downgrade() -> None:
    op.drop_index("ix_competition_round_entries_round_id", table_name="competition_round_entries")
    op.drop_index("ix_competition_round_entries_participant_id", table_name="competition_round_entries")
    op.drop_table("competition_round_entries")

    qualification_status_enum.drop(op.get_bind(), checkfirst=True)
