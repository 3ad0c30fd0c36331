"""
pointbot.services.exchange_service — Point → Ticket Redemptions
================================================================

Lifecycle of an :class:`~pointbot.database.models.ExchangeRequest`::

    /exchange ──► Submitted ──(Thu 00:00 UTC)──► Processing ──(Fri 00:00 UTC)──► Completed

The scheduled transitions are global bulk updates: every request in the
source status moves at once, and re-running a transition is a no-op.

Redemption debits first and records second, as two separate statements.
A crash between the two leaves the member debited without a request row;
the log line written after the debit is the trail for manual repair.
"""

from __future__ import annotations

import logging
from datetime import datetime

from eth_utils import is_address, to_checksum_address
from sqlalchemy import Engine, select, update

from pointbot.constants import ITEM_TICKET, MAX_TICKETS_PER_REQUEST, POINTS_PER_TICKET, RECORDS_PAGE_SIZE
from pointbot.database.engine import get_session
from pointbot.database.models import ExchangeRequest, ExchangeStatus, utcnow
from pointbot.engine.calendar import as_utc
from pointbot.services.ledger_service import spend_points

logger = logging.getLogger(__name__)

# Tickets are delivered on Thursday, so no new requests are taken that day
BLACKOUT_WEEKDAY = 3


class InvalidWalletAddress(ValueError):
    """The supplied wallet is not a 20-byte hex address."""


def normalize_wallet_address(address: str) -> str:
    """Return the EIP-55 checksummed form of *address*.

    Accepts all-lowercase, all-uppercase or correctly checksummed input.
    Mixed case with a wrong checksum is rejected.
    """
    candidate = (address or "").strip()
    if not is_address(candidate):
        raise InvalidWalletAddress(f"Invalid wallet address: {address!r}")
    return to_checksum_address(candidate)


def is_exchange_blackout(now: datetime | None = None) -> bool:
    """True on the weekly fulfilment day, when submissions are closed."""
    return as_utc(now or utcnow()).weekday() == BLACKOUT_WEEKDAY


def ticket_cost(quantity: int) -> int:
    return quantity * POINTS_PER_TICKET


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------
def add_exchange_record(
    engine: Engine, record: ExchangeRequest, now: datetime | None = None
) -> ExchangeRequest:
    """Persist a new request in ``Submitted`` state."""
    now = now or utcnow()
    record.status = ExchangeStatus.SUBMITTED.value
    record.created_at = record.created_at or now
    record.updated_at = now
    with get_session(engine) as session:
        session.add(record)
    return record


def redeem_tickets(
    engine: Engine,
    user_id: str | int,
    username: str,
    wallet_address: str,
    quantity: int,
    now: datetime | None = None,
) -> ExchangeRequest | None:
    """Spend points on *quantity* tickets and record the request.

    Returns the new request, or ``None`` when the balance does not cover
    the cost (nothing is debited or recorded).

    Raises
    ------
    InvalidWalletAddress
        If the wallet fails validation.  Checked before any mutation.
    ValueError
        If *quantity* is outside ``1..256``.
    """
    if not 1 <= quantity <= MAX_TICKETS_PER_REQUEST:
        raise ValueError(f"quantity must be between 1 and {MAX_TICKETS_PER_REQUEST}")
    wallet = normalize_wallet_address(wallet_address)
    cost = ticket_cost(quantity)

    remaining = spend_points(engine, user_id, cost, now)
    if remaining is None:
        return None
    logger.info(
        "Exchange debit: %s spent %d points on %d %s(s) → %s",
        user_id, cost, quantity, ITEM_TICKET, wallet,
    )

    return add_exchange_record(
        engine,
        ExchangeRequest(
            user_id=str(user_id),
            username=username,
            wallet_address=wallet,
            item=ITEM_TICKET,
            quantity=quantity,
        ),
        now,
    )


def _advance(engine: Engine, source: ExchangeStatus, target: ExchangeStatus, now: datetime | None) -> int:
    with get_session(engine) as session:
        result = session.execute(
            update(ExchangeRequest)
            .where(ExchangeRequest.status == source.value)
            .values(status=target.value, updated_at=now or utcnow())
            .execution_options(synchronize_session=False)
        )
        count = result.rowcount or 0
    logger.info("Exchange requests %s → %s: %d", source.value, target.value, count)
    return count


def advance_submitted_to_processing(engine: Engine, now: datetime | None = None) -> int:
    """Move every ``Submitted`` request to ``Processing``."""
    return _advance(engine, ExchangeStatus.SUBMITTED, ExchangeStatus.PROCESSING, now)


def advance_processing_to_completed(engine: Engine, now: datetime | None = None) -> int:
    """Move every ``Processing`` request to ``Completed``."""
    return _advance(engine, ExchangeStatus.PROCESSING, ExchangeStatus.COMPLETED, now)


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------
def get_user_records(
    engine: Engine, user_id: str | int, limit: int = RECORDS_PAGE_SIZE
) -> list[dict]:
    """Most recently updated requests first, without internal ids."""
    with get_session(engine) as session:
        rows = session.scalars(
            select(ExchangeRequest)
            .where(ExchangeRequest.user_id == str(user_id))
            .order_by(ExchangeRequest.updated_at.desc(), ExchangeRequest.id.desc())
            .limit(limit)
        ).all()
        return [
            {
                "user_id": r.user_id,
                "username": r.username,
                "wallet_address": r.wallet_address,
                "item": r.item,
                "quantity": r.quantity,
                "status": r.status,
                "created_at": r.created_at,
                "updated_at": r.updated_at,
            }
            for r in rows
        ]
