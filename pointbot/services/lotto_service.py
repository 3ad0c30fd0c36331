"""
pointbot.services.lotto_service — Weekly Lottery Store
=======================================================

One draw per ISO week, up to five scored guesses per member per week, and
an idempotent settlement that credits each winning guess exactly once.

Settlement unit (single transaction)::

    UPDATE lotto_guesses SET dm_sent = true WHERE id = :id AND dm_sent = false
    → claimed?  credit points (ledger) + append a ``lotto`` activity row

A re-run finds the guess already claimed and skips it, so points are never
credited twice.  The winner's DM is sent after the commit; a failed DM is
not retried.
"""

from __future__ import annotations

import logging
import random
from collections import Counter
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import Engine, func, select, update
from sqlalchemy.exc import IntegrityError

from pointbot.constants import LOTTO_DIGITS, RECORDS_PAGE_SIZE
from pointbot.database.engine import get_session
from pointbot.database.models import ActivityKind, ActivityRecord, LottoDraw, LottoGuess, utcnow
from pointbot.engine.calendar import iso_week, previous_iso_week
from pointbot.engine.lotto import generate_numbers, score_guess, validate_numbers
from pointbot.engine.quota import get_policy
from pointbot.services.ledger_service import apply_delta

logger = logging.getLogger(__name__)


class DrawNotFoundError(LookupError):
    """No draw exists for the requested ISO week."""

    def __init__(self, year: int, week: int) -> None:
        super().__init__(f"No lotto draw for {year}-W{week:02d}")
        self.year = year
        self.week = week


@dataclass(frozen=True, slots=True)
class Settlement:
    """A winning guess that was just credited."""

    guess_id: int
    user_id: str
    username: str | None
    numbers: list[int]
    matched_count: int
    points: int
    balance: int
    year: int
    week: int


# ---------------------------------------------------------------------------
# Draws
# ---------------------------------------------------------------------------
def upsert_weekly_draw(
    engine: Engine,
    now: datetime | None = None,
    rng: random.Random | None = None,
) -> bool:
    """Ensure the ISO week containing *now* has a draw.

    Returns ``True`` when a new draw was created, ``False`` when one
    already existed (including losing a concurrent insert to the unique
    constraint).
    """
    now = now or utcnow()
    year, week = iso_week(now)
    try:
        with get_session(engine) as session:
            existing = session.scalar(
                select(LottoDraw.id).where(
                    LottoDraw.year == year, LottoDraw.week_number == week
                )
            )
            if existing is not None:
                return False
            numbers = generate_numbers(rng)
            session.add(LottoDraw(numbers=numbers, year=year, week_number=week, drawn_at=now))
    except IntegrityError:
        logger.info("Lotto draw for %d-W%02d was created concurrently", year, week)
        return False

    logger.info("Lotto draw created for %d-W%02d", year, week)
    return True


def get_draw(engine: Engine, year: int, week: int) -> list[int]:
    """Winning numbers for ``(year, week)``; raises :class:`DrawNotFoundError`."""
    with get_session(engine) as session:
        numbers = session.scalar(
            select(LottoDraw.numbers).where(
                LottoDraw.year == year, LottoDraw.week_number == week
            )
        )
    if numbers is None:
        raise DrawNotFoundError(year, week)
    return list(numbers)


# ---------------------------------------------------------------------------
# Guesses
# ---------------------------------------------------------------------------
def record_lotto_guess(
    engine: Engine, guess: LottoGuess, now: datetime | None = None
) -> bool:
    """Insert an already-scored *guess* unless the weekly limit is reached."""
    policy = get_policy(ActivityKind.LOTTO)
    now = now or utcnow()
    with get_session(engine) as session:
        used = session.scalar(
            select(func.count(LottoGuess.id)).where(
                LottoGuess.user_id == guess.user_id,
                LottoGuess.year == guess.year,
                LottoGuess.week_number == guess.week_number,
            )
        ) or 0
        if policy is not None and not policy.allows(used):
            return False
        guess.created_at = guess.created_at or now
        guess.updated_at = now
        session.add(guess)
    return True


def submit_guess(
    engine: Engine,
    user_id: str | int,
    username: str | None,
    numbers: list[int],
    now: datetime | None = None,
) -> LottoGuess | None:
    """Score *numbers* against this week's draw and record the entry.

    Returns the stored guess, or ``None`` when the weekly limit is reached.
    Raises :class:`DrawNotFoundError` (before any write) when the current
    week has no draw, and ``ValueError`` for malformed numbers.
    """
    now = now or utcnow()
    numbers = validate_numbers(numbers)
    year, week = iso_week(now)
    draw = get_draw(engine, year, week)
    matched, points = score_guess(numbers, draw)

    guess = LottoGuess(
        user_id=str(user_id),
        username=username,
        numbers=numbers,
        year=year,
        week_number=week,
        matched_count=matched,
        any_matched=matched > 0,
        points=points,
        dm_sent=False,
    )
    if not record_lotto_guess(engine, guess, now):
        return None
    return guess


def get_user_guesses(
    engine: Engine,
    user_id: str | int,
    year: int,
    week: int,
    limit: int = RECORDS_PAGE_SIZE,
) -> list[dict]:
    """The member's guesses for ``(year, week)`` and the week before it."""
    prev_year, prev_week = previous_iso_week(year, week)
    with get_session(engine) as session:
        rows = session.scalars(
            select(LottoGuess)
            .where(
                LottoGuess.user_id == str(user_id),
                (
                    ((LottoGuess.year == year) & (LottoGuess.week_number == week))
                    | ((LottoGuess.year == prev_year) & (LottoGuess.week_number == prev_week))
                ),
            )
            .order_by(LottoGuess.created_at.desc(), LottoGuess.id.desc())
            .limit(limit)
        ).all()
        return [
            {
                "numbers": list(g.numbers),
                "year": g.year,
                "week": g.week_number,
                "matched_count": g.matched_count,
                "points": g.points,
                "created_at": g.created_at,
            }
            for g in rows
        ]


# ---------------------------------------------------------------------------
# Settlement
# ---------------------------------------------------------------------------
def get_matched_unnotified_guesses(
    engine: Engine, year: int, week: int, only_unnotified: bool = True
) -> list[LottoGuess]:
    """Winning guesses of a week, optionally only those not yet settled."""
    stmt = select(LottoGuess).where(
        LottoGuess.year == year,
        LottoGuess.week_number == week,
        LottoGuess.any_matched.is_(True),
    )
    if only_unnotified:
        stmt = stmt.where(LottoGuess.dm_sent.is_(False))
    with get_session(engine) as session:
        return list(session.scalars(stmt.order_by(LottoGuess.id)).all())


def mark_dm_sent(engine: Engine, guess_id: int, now: datetime | None = None) -> bool:
    """Flip ``dm_sent`` false → true.  ``False`` if it was already set."""
    with get_session(engine) as session:
        result = session.execute(
            update(LottoGuess)
            .where(LottoGuess.id == guess_id, LottoGuess.dm_sent.is_(False))
            .values(dm_sent=True, updated_at=now or utcnow())
            .execution_options(synchronize_session=False)
        )
        return (result.rowcount or 0) == 1


def settle_guess(
    engine: Engine, guess_id: int, now: datetime | None = None
) -> Settlement | None:
    """Claim, credit and journal one winning guess in one transaction.

    Returns ``None`` when the guess was already claimed.
    """
    now = now or utcnow()
    with get_session(engine) as session:
        row = session.execute(
            update(LottoGuess)
            .where(LottoGuess.id == guess_id, LottoGuess.dm_sent.is_(False))
            .values(dm_sent=True, updated_at=now)
            .returning(
                LottoGuess.user_id,
                LottoGuess.username,
                LottoGuess.numbers,
                LottoGuess.matched_count,
                LottoGuess.points,
                LottoGuess.year,
                LottoGuess.week_number,
            )
            .execution_options(synchronize_session=False)
        ).first()
        if row is None:
            return None

        balance = apply_delta(session, row.user_id, row.username, row.points, now)
        session.add(ActivityRecord(
            user_id=row.user_id,
            username=row.username,
            kind=ActivityKind.LOTTO.value,
            reward=row.points,
            created_at=now,
        ))

    logger.info(
        "Lotto %d-W%02d: credited %d points to %s (%d matched)",
        row.year, row.week_number, row.points, row.user_id, row.matched_count,
    )
    return Settlement(
        guess_id=guess_id,
        user_id=row.user_id,
        username=row.username,
        numbers=list(row.numbers),
        matched_count=row.matched_count,
        points=row.points,
        balance=balance,
        year=row.year,
        week=row.week_number,
    )


def settle_week(
    engine: Engine, year: int, week: int, now: datetime | None = None
) -> list[Settlement]:
    """Settle every unclaimed winning guess of ``(year, week)``."""
    settled: list[Settlement] = []
    for guess in get_matched_unnotified_guesses(engine, year, week):
        result = settle_guess(engine, guess.id, now)
        if result is not None:
            settled.append(result)
    logger.info("Lotto %d-W%02d settlement: %d guess(es) credited", year, week, len(settled))
    return settled


def summarize_week(engine: Engine, year: int, week: int) -> dict:
    """Winning numbers plus winner counts by matched digits.

    Raises :class:`DrawNotFoundError` if the week has no draw.
    """
    numbers = get_draw(engine, year, week)
    with get_session(engine) as session:
        rows = session.execute(
            select(LottoGuess.matched_count, func.count(LottoGuess.id))
            .where(LottoGuess.year == year, LottoGuess.week_number == week)
            .group_by(LottoGuess.matched_count)
        ).all()

    by_match = Counter({matched: count for matched, count in rows})
    return {
        "year": year,
        "week": week,
        "numbers": numbers,
        "total_guesses": sum(by_match.values()),
        "winners": {m: by_match.get(m, 0) for m in range(LOTTO_DIGITS, 0, -1)},
    }
