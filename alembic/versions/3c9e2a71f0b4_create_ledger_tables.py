"""Create ledger, exchange and lotto tables

Revision ID: 3c9e2a71f0b4
Revises:
Create Date: 2026-10-16 09:12:03.418205

"""
from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = '3c9e2a71f0b4'
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Create users, activities, exchange_requests, lotto_draws, lotto_guesses."""

    # --- users ---
    op.create_table(
        "users",
        sa.Column("id", sa.String(32), primary_key=True),
        sa.Column("username", sa.String(100), nullable=True),
        sa.Column("points", sa.Integer, nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_users_points_desc", "users", ["points"])

    # --- activities ---
    op.create_table(
        "activities",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.String(32), nullable=False),
        sa.Column("username", sa.String(100), nullable=True),
        sa.Column("channel_id", sa.BigInteger, nullable=True),
        sa.Column("kind", sa.String(20), nullable=False),
        sa.Column("reward", sa.Integer, nullable=False, server_default="0"),
        sa.Column("message_id", sa.BigInteger, nullable=True),
        sa.Column("emoji", sa.String(64), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index(
        "ix_activities_user_kind_time", "activities", ["user_id", "kind", "created_at"],
    )
    op.create_index(
        "ix_activities_user_kind_message", "activities", ["user_id", "kind", "message_id"],
    )
    op.create_index("ix_activities_created_at", "activities", ["created_at"])

    # --- exchange_requests ---
    op.create_table(
        "exchange_requests",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.String(32), nullable=False),
        sa.Column("username", sa.String(100), nullable=False),
        sa.Column("wallet_address", sa.String(42), nullable=False),
        sa.Column("item", sa.String(50), nullable=False),
        sa.Column("quantity", sa.Integer, nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="Submitted"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_exchange_requests_status", "exchange_requests", ["status"])
    op.create_index(
        "ix_exchange_requests_user_updated", "exchange_requests", ["user_id", "updated_at"],
    )

    # --- lotto_draws ---
    op.create_table(
        "lotto_draws",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("numbers", sa.JSON, nullable=False),
        sa.Column("year", sa.Integer, nullable=False),
        sa.Column("week_number", sa.Integer, nullable=False),
        sa.Column("drawn_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint("year", "week_number", name="uq_lotto_draws_year_week"),
    )

    # --- lotto_guesses ---
    op.create_table(
        "lotto_guesses",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.String(32), nullable=False),
        sa.Column("username", sa.String(100), nullable=True),
        sa.Column("numbers", sa.JSON, nullable=False),
        sa.Column("year", sa.Integer, nullable=False),
        sa.Column("week_number", sa.Integer, nullable=False),
        sa.Column("matched_count", sa.Integer, nullable=False, server_default="0"),
        sa.Column("any_matched", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("points", sa.Integer, nullable=False, server_default="0"),
        sa.Column("dm_sent", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index(
        "ix_lotto_guesses_user_week", "lotto_guesses", ["user_id", "year", "week_number"],
    )
    op.create_index(
        "ix_lotto_guesses_settlement", "lotto_guesses",
        ["year", "week_number", "any_matched", "dm_sent"],
    )


def downgrade() -> None:
    """Drop every table created above."""
    op.drop_table("lotto_guesses")
    op.drop_table("lotto_draws")
    op.drop_table("exchange_requests")
    op.drop_table("activities")
    op.drop_table("users")
