"""
pointbot.database.models — SQLAlchemy 2.0 Data Models
======================================================

Tables:
- users              — Point balance per Discord member (snowflake string PK)
- activities         — Append-only rewarded/penalized actions (quota + audit)
- exchange_requests  — Point → ticket redemptions and their delivery status
- lotto_draws        — One winning 4-digit sequence per ISO week
- lotto_guesses      — Scored weekly entries and their DM/credit flag
"""

from __future__ import annotations

import enum
from datetime import UTC, datetime

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    DateTime,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def utcnow() -> datetime:
    """Timezone-aware current time in UTC."""
    return datetime.now(UTC)


# ---------------------------------------------------------------------------
# Base
# ---------------------------------------------------------------------------
class Base(DeclarativeBase):
    """Shared base for all pointbot ORM models."""


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class ActivityKind(enum.StrEnum):
    """Every kind of action that moves points."""
    ATTEND = "attend"
    REACT = "react"
    RECEIVE = "receive"
    AWAKEN = "awaken"
    POLL = "poll"
    LOTTO = "lotto"


class ExchangeStatus(enum.StrEnum):
    """Linear lifecycle of a redemption request."""
    SUBMITTED = "Submitted"
    PROCESSING = "Processing"
    COMPLETED = "Completed"


# ---------------------------------------------------------------------------
# UserBalance — one row per member who ever moved points
# ---------------------------------------------------------------------------
class UserBalance(Base):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(32), primary_key=True)
    username: Mapped[str | None] = mapped_column(String(100), default=None)
    points: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    __table_args__ = (
        Index("ix_users_points_desc", "points"),
    )

    def __repr__(self) -> str:
        return f"<UserBalance id={self.id} points={self.points}>"


# ---------------------------------------------------------------------------
# ActivityRecord — immutable journal used for quota counting
# ---------------------------------------------------------------------------
class ActivityRecord(Base):
    __tablename__ = "activities"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(32), nullable=False)
    username: Mapped[str | None] = mapped_column(String(100), default=None)
    channel_id: Mapped[int | None] = mapped_column(BigInteger, default=None)
    kind: Mapped[str] = mapped_column(String(20), nullable=False)
    reward: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    message_id: Mapped[int | None] = mapped_column(BigInteger, default=None)
    emoji: Mapped[str | None] = mapped_column(String(64), default=None)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    __table_args__ = (
        Index("ix_activities_user_kind_time", "user_id", "kind", "created_at"),
        Index("ix_activities_user_kind_message", "user_id", "kind", "message_id"),
        Index("ix_activities_created_at", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<ActivityRecord id={self.id} user={self.user_id} kind={self.kind}>"


# ---------------------------------------------------------------------------
# ExchangeRequest — Submitted → Processing → Completed
# ---------------------------------------------------------------------------
class ExchangeRequest(Base):
    __tablename__ = "exchange_requests"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(32), nullable=False)
    username: Mapped[str] = mapped_column(String(100), nullable=False)
    wallet_address: Mapped[str] = mapped_column(String(42), nullable=False)
    item: Mapped[str] = mapped_column(String(50), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=ExchangeStatus.SUBMITTED.value
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    __table_args__ = (
        Index("ix_exchange_requests_status", "status"),
        Index("ix_exchange_requests_user_updated", "user_id", "updated_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<ExchangeRequest id={self.id} user={self.user_id} "
            f"qty={self.quantity} status={self.status}>"
        )


# ---------------------------------------------------------------------------
# LottoDraw — the weekly winning numbers
# ---------------------------------------------------------------------------
class LottoDraw(Base):
    __tablename__ = "lotto_draws"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    numbers: Mapped[list[int]] = mapped_column(JSON, nullable=False)
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    week_number: Mapped[int] = mapped_column(Integer, nullable=False)
    drawn_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    __table_args__ = (
        UniqueConstraint("year", "week_number", name="uq_lotto_draws_year_week"),
    )

    def __repr__(self) -> str:
        return f"<LottoDraw {self.year}-W{self.week_number:02d} numbers={self.numbers}>"


# ---------------------------------------------------------------------------
# LottoGuess — a scored weekly entry
# ---------------------------------------------------------------------------
class LottoGuess(Base):
    __tablename__ = "lotto_guesses"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(32), nullable=False)
    username: Mapped[str | None] = mapped_column(String(100), default=None)
    numbers: Mapped[list[int]] = mapped_column(JSON, nullable=False)
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    week_number: Mapped[int] = mapped_column(Integer, nullable=False)
    matched_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    any_matched: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    points: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    dm_sent: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    __table_args__ = (
        Index("ix_lotto_guesses_user_week", "user_id", "year", "week_number"),
        Index("ix_lotto_guesses_settlement", "year", "week_number", "any_matched", "dm_sent"),
    )

    def __repr__(self) -> str:
        return (
            f"<LottoGuess id={self.id} user={self.user_id} "
            f"{self.year}-W{self.week_number:02d} matched={self.matched_count}>"
        )
