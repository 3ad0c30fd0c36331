"""
pointbot.services.ledger_service — Point Balances
==================================================

Every change to a member's balance goes through :func:`apply_delta`, which
issues **one** conditional ``UPDATE ... RETURNING`` so concurrent handlers
never lose each other's increments.  The clamp lives inside the statement:

* ``delta > 0`` and balance already at ``MAX_POINTS`` → unchanged.
* ``delta > 0`` and balance + delta over the cap → set to ``MAX_POINTS``.
* ``delta < 0`` → applied as-is (spenders check the balance first).

A member without a row is inserted with the clamped delta.  If two
handlers race to create the same row, the loser catches the
``IntegrityError`` inside a SAVEPOINT and falls back to the update.
"""

from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy import Engine, case, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from pointbot.constants import LEADERBOARD_SIZE, MAX_POINTS
from pointbot.database.engine import get_session
from pointbot.database.models import UserBalance, utcnow

logger = logging.getLogger(__name__)


def clamp_initial(delta: int) -> int:
    """Balance for a brand-new member after *delta*."""
    return min(delta, MAX_POINTS) if delta > 0 else delta


def _next_points_expr(delta: int):
    if delta > 0:
        return case(
            (UserBalance.points >= MAX_POINTS, UserBalance.points),
            (UserBalance.points + delta > MAX_POINTS, MAX_POINTS),
            else_=UserBalance.points + delta,
        )
    return UserBalance.points + delta


def _update_balance(
    session: Session, user_id: str, username: str | None, delta: int, now: datetime
) -> int | None:
    values: dict = {"points": _next_points_expr(delta), "updated_at": now}
    if username:
        values["username"] = username
    return session.execute(
        update(UserBalance)
        .where(UserBalance.id == user_id)
        .values(**values)
        .returning(UserBalance.points)
        .execution_options(synchronize_session=False)
    ).scalar_one_or_none()


def apply_delta(
    session: Session,
    user_id: str | int,
    username: str | None,
    delta: int,
    now: datetime | None = None,
) -> int:
    """Apply *delta* inside an open *session*; return the new balance.

    The caller owns the transaction, which lets multi-step units (e.g.
    lotto settlement) credit points atomically with their own writes.
    """
    user_id = str(user_id)
    now = now or utcnow()

    new_points = _update_balance(session, user_id, username, delta, now)
    if new_points is not None:
        return new_points

    initial = clamp_initial(delta)
    try:
        with session.begin_nested():   # SAVEPOINT
            session.add(UserBalance(
                id=user_id,
                username=username,
                points=initial,
                created_at=now,
                updated_at=now,
            ))
            session.flush()
    except IntegrityError:
        # Another handler created the row first; apply as a normal update.
        logger.debug("Balance row for %s created concurrently — retrying update", user_id)
        new_points = _update_balance(session, user_id, username, delta, now)
        if new_points is None:
            raise
        return new_points
    return initial


def adjust_points(
    engine: Engine,
    user_id: str | int,
    username: str | None,
    delta: int,
    now: datetime | None = None,
) -> int:
    """Atomically add *delta* to a member's balance (upsert).

    Returns the balance after the adjustment.  A positive delta on a
    balance that is already at the cap is a successful no-op.
    """
    with get_session(engine) as session:
        balance = apply_delta(session, user_id, username, delta, now)
    logger.debug("Points %+d for %s → %d", delta, user_id, balance)
    return balance


def get_points(engine: Engine, user_id: str | int) -> int:
    """Current balance; ``0`` for members who never earned anything."""
    with get_session(engine) as session:
        points = session.scalar(
            select(UserBalance.points).where(UserBalance.id == str(user_id))
        )
    return points or 0


def spend_points(
    engine: Engine,
    user_id: str | int,
    cost: int,
    now: datetime | None = None,
) -> int | None:
    """Debit *cost* only if the balance covers it.

    Uses a guarded ``UPDATE ... WHERE points >= cost`` so the check and the
    debit are one statement.  Returns the remaining balance, or ``None``
    when the balance is insufficient (nothing is debited).
    """
    if cost < 0:
        raise ValueError("cost must be non-negative")
    with get_session(engine) as session:
        return session.execute(
            update(UserBalance)
            .where(UserBalance.id == str(user_id), UserBalance.points >= cost)
            .values(points=UserBalance.points - cost, updated_at=now or utcnow())
            .returning(UserBalance.points)
            .execution_options(synchronize_session=False)
        ).scalar_one_or_none()


def get_leaderboard(engine: Engine, limit: int = LEADERBOARD_SIZE) -> list[dict]:
    """Top members by points (ties broken by who got there first)."""
    with get_session(engine) as session:
        rows = session.execute(
            select(UserBalance.id, UserBalance.username, UserBalance.points)
            .where(UserBalance.points > 0)
            .order_by(UserBalance.points.desc(), UserBalance.updated_at.asc())
            .limit(limit)
        ).all()
    return [
        {"user_id": r.id, "username": r.username, "points": r.points}
        for r in rows
    ]


def get_rank(engine: Engine, user_id: str | int) -> tuple[int, int] | None:
    """Return ``(rank, points)`` or ``None`` if the member has no balance."""
    with get_session(engine) as session:
        points = session.scalar(
            select(UserBalance.points).where(UserBalance.id == str(user_id))
        )
        if points is None:
            return None
        above: int = session.scalar(
            select(func.count(UserBalance.id)).where(UserBalance.points > points)
        ) or 0
    return above + 1, points
