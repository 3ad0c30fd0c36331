"""
tests/conftest.py — Shared Test Fixtures
=========================================
"""

from __future__ import annotations

import asyncio
from datetime import UTC, date, datetime

import pytest
from sqlalchemy import Engine, create_engine, event
from sqlalchemy.pool import StaticPool

from pointbot.config import BotConfig
from pointbot.database.models import Base

GUILD_ID = 1000
ATTENDANCE_CHANNEL_ID = 2000
LOTTO_CHANNEL_ID = 3000
ANNOUNCEMENT_CHANNEL_ID = 4000
POLL_BOT_ID = 437618149505105920


def run_async(coro):
    """Run an async coroutine in a fresh event loop."""
    return asyncio.run(coro)


def at(*args: int) -> datetime:
    """Shorthand for an aware UTC datetime."""
    return datetime(*args, tzinfo=UTC)


@pytest.fixture
def db_engine() -> Engine:
    """In-memory SQLite engine with all pointbot tables.

    Uses StaticPool so every thread shares the same in-memory database
    (``run_db`` hops to worker threads).
    """
    engine = create_engine(
        "sqlite://",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    return engine


@pytest.fixture
def file_engine(tmp_path) -> Engine:
    """File-backed SQLite engine for tests that need real concurrent connections."""
    engine = create_engine(
        f"sqlite:///{tmp_path / 'pointbot.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )

    # Writers take the lock at BEGIN so they queue on the busy timeout
    # instead of deadlocking on a shared → reserved upgrade.
    @event.listens_for(engine, "connect")
    def _disable_pysqlite_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    Base.metadata.create_all(engine)
    return engine


@pytest.fixture
def bot_config() -> BotConfig:
    return BotConfig(
        environment="development",
        discord_token="test-token",
        database_url="sqlite://",
        guild_id=GUILD_ID,
        attendance_channel_id=ATTENDANCE_CHANNEL_ID,
        lotto_channel_id=LOTTO_CHANNEL_ID,
        announcement_channel_id=ANNOUNCEMENT_CHANNEL_ID,
        poll_bot_id=POLL_BOT_ID,
        launch_date=date(2023, 7, 1),
    )
