"""
pointbot.services.activity_service — Activity Rewards & Quotas
===============================================================

Records rewarded actions in the ``activities`` journal, subject to the
per-kind quotas in :mod:`pointbot.engine.quota`, and applies the matching
point change through :mod:`pointbot.services.ledger_service`.

The ``handle_*`` functions hold the reward rules for normalized gateway
events.  They return the feed messages the cog should post, so the rules
can be tested without a Discord connection.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta

from sqlalchemy import Engine, delete, func, select
from sqlalchemy.orm import Session

from pointbot.config import BotConfig
from pointbot.constants import (
    ACTIVITY_RETENTION_WEEKS,
    ATTEND_POINTS,
    BAD_EMOJI,
    BAD_EMOJI_PENALTY,
    POLL_POINTS,
    REACT_POINTS,
    RECEIVE_POINTS,
)
from pointbot.database.engine import get_session
from pointbot.database.models import ActivityKind, ActivityRecord, utcnow
from pointbot.engine.events import PlainMessage, ReactionAdded
from pointbot.engine.quota import get_policy
from pointbot.services.ledger_service import adjust_points, get_points

logger = logging.getLogger(__name__)

# How many rows to delete in each purge batch
BATCH_SIZE = 5_000


# ---------------------------------------------------------------------------
# Quota-guarded writes
# ---------------------------------------------------------------------------
def count_in_window(
    session: Session, user_id: str, kind: ActivityKind, since: datetime
) -> int:
    """Live ``COUNT(*)`` of *kind* activities for *user_id* since *since*."""
    return session.scalar(
        select(func.count(ActivityRecord.id)).where(
            ActivityRecord.user_id == user_id,
            ActivityRecord.kind == kind.value,
            ActivityRecord.created_at >= since,
        )
    ) or 0


def _already_recorded(session: Session, user_id: str, kind: ActivityKind, message_id: int) -> bool:
    return session.scalar(
        select(ActivityRecord.id).where(
            ActivityRecord.user_id == user_id,
            ActivityRecord.kind == kind.value,
            ActivityRecord.message_id == message_id,
        ).limit(1)
    ) is not None


def record_activity(
    engine: Engine, activity: ActivityRecord, now: datetime | None = None
) -> bool:
    """Insert *activity* if its kind's quota allows it.

    Returns ``False`` (and writes nothing) when the daily/weekly limit is
    reached or, for message-deduplicated kinds, when the same message was
    already rewarded.
    """
    now = now or utcnow()
    kind = ActivityKind(activity.kind)
    policy = get_policy(kind)

    with get_session(engine) as session:
        if policy is not None:
            used = count_in_window(session, activity.user_id, kind, policy.window_start(now))
            if not policy.allows(used):
                logger.debug(
                    "Quota reached: %s %s (%d/%d)",
                    activity.user_id, kind.value, used, policy.limit,
                )
                return False
            if (
                policy.dedup_by_message
                and activity.message_id is not None
                and _already_recorded(session, activity.user_id, kind, activity.message_id)
            ):
                return False

        activity.kind = kind.value
        if activity.created_at is None:
            activity.created_at = now
        session.add(activity)
    return True


def _require_kind(activity: ActivityRecord, *allowed: ActivityKind) -> None:
    if ActivityKind(activity.kind) not in allowed:
        raise ValueError(
            f"Expected a {'/'.join(k.value for k in allowed)} activity, got {activity.kind!r}"
        )


def record_poll_activity(
    engine: Engine, activity: ActivityRecord, now: datetime | None = None
) -> bool:
    """Record a poll participation (2 per UTC day, once per poll message)."""
    _require_kind(activity, ActivityKind.POLL)
    return record_activity(engine, activity, now)


def record_reaction_activity(
    engine: Engine, activity: ActivityRecord, now: datetime | None = None
) -> bool:
    """Record a given (React) or received (Receive) reaction."""
    _require_kind(activity, ActivityKind.REACT, ActivityKind.RECEIVE)
    return record_activity(engine, activity, now)


def record_attendance(
    engine: Engine, activity: ActivityRecord, now: datetime | None = None
) -> bool:
    """Record a daily ``!attend`` check-in (once per UTC day)."""
    _require_kind(activity, ActivityKind.ATTEND)
    return record_activity(engine, activity, now)


# ---------------------------------------------------------------------------
# Retention
# ---------------------------------------------------------------------------
def purge_activity_older_than(engine: Engine, cutoff: datetime) -> int:
    """Delete activity rows created before *cutoff*; return how many."""
    deleted = 0
    while True:
        with get_session(engine) as session:
            ids = session.scalars(
                select(ActivityRecord.id)
                .where(ActivityRecord.created_at < cutoff)
                .limit(BATCH_SIZE)
            ).all()
            if not ids:
                break
            result = session.execute(
                delete(ActivityRecord).where(ActivityRecord.id.in_(ids))
            )
            deleted += result.rowcount  # type: ignore[operator]

    logger.info("Activity purge: %d rows older than %s removed", deleted, cutoff.isoformat())
    return deleted


def purge_expired_activity(engine: Engine, now: datetime | None = None) -> int:
    """Apply the activity retention window (5 weeks)."""
    cutoff = (now or utcnow()) - timedelta(weeks=ACTIVITY_RETENTION_WEEKS)
    return purge_activity_older_than(engine, cutoff)


# ---------------------------------------------------------------------------
# Reward rules
# ---------------------------------------------------------------------------
def _message_link(guild_id: int | None, channel_id: int, message_id: int) -> str:
    return f"https://discord.com/channels/{guild_id}/{channel_id}/{message_id}"


def handle_attendance(
    engine: Engine, event: PlainMessage, now: datetime | None = None
) -> tuple[bool, int]:
    """Apply ``!attend``.  Returns ``(rewarded, balance_after)``."""
    activity = ActivityRecord(
        user_id=str(event.user_id),
        username=event.username,
        channel_id=event.channel_id,
        kind=ActivityKind.ATTEND.value,
        reward=ATTEND_POINTS,
        message_id=event.message_id,
    )
    if not record_attendance(engine, activity, now):
        return False, get_points(engine, event.user_id)
    balance = adjust_points(engine, event.user_id, event.username, ATTEND_POINTS, now)
    return True, balance


def handle_poll_reaction(
    engine: Engine, cfg: BotConfig, event: ReactionAdded, now: datetime | None = None
) -> str | None:
    """Reward a reaction on a poll-bot message.  Returns the feed message."""
    if event.guild_id != cfg.guild_id or event.user_is_bot:
        return None
    if event.author_id != cfg.poll_bot_id or event.user_id == cfg.poll_bot_id:
        return None

    activity = ActivityRecord(
        user_id=str(event.user_id),
        username=event.username,
        channel_id=event.channel_id,
        kind=ActivityKind.POLL.value,
        reward=POLL_POINTS,
        message_id=event.message_id,
        emoji=event.emoji,
    )
    if not record_poll_activity(engine, activity, now):
        return None

    adjust_points(engine, event.user_id, event.username, POLL_POINTS, now)
    link = _message_link(event.guild_id, event.channel_id, event.message_id)
    return (
        f"<@{event.user_id}> got {POLL_POINTS} points from participating in the "
        f"[Quiz & Poll]({link}) in <#{event.channel_id}> channel 👏🏻"
    )


def handle_reaction_activity(
    engine: Engine, cfg: BotConfig, event: ReactionAdded, now: datetime | None = None
) -> list[str]:
    """Apply the reaction rules and return the feed messages to post.

    1. A bad emoji costs the reactor 10 points, nothing else happens.
    2. Reactions in the attendance channel, by or on bots, or on one's own
       message earn nothing.
    3. The reactor earns React points (5 per day).
    4. Unless the channel is the announcement channel, the author earns
       Receive points (10 per day).
    """
    if event.guild_id != cfg.guild_id or event.user_is_bot:
        return []

    link = _message_link(event.guild_id, event.channel_id, event.message_id)

    if event.emoji in BAD_EMOJI:
        adjust_points(engine, event.user_id, event.username, BAD_EMOJI_PENALTY, now)
        logger.info("Bad emoji %s from %s — %d points", event.emoji, event.user_id, BAD_EMOJI_PENALTY)
        return [
            f"<@{event.user_id}> lost {-BAD_EMOJI_PENALTY} points for reacting "
            f"{event.emoji} to a [message]({link}) in <#{event.channel_id}>. "
            "Please keep the community friendly 🙏"
        ]

    if (
        event.channel_id == cfg.attendance_channel_id
        or event.author_is_bot
        or event.user_id == event.author_id
    ):
        return []

    messages: list[str] = []

    react = ActivityRecord(
        user_id=str(event.user_id),
        username=event.username,
        channel_id=event.channel_id,
        kind=ActivityKind.REACT.value,
        reward=REACT_POINTS,
        message_id=event.message_id,
        emoji=event.emoji,
    )
    if record_reaction_activity(engine, react, now):
        adjust_points(engine, event.user_id, event.username, REACT_POINTS, now)
        messages.append(
            f"<@{event.user_id}> got {REACT_POINTS} points for reacting {event.emoji} "
            f"to a [message]({link}) in <#{event.channel_id}>"
        )

    if event.channel_id == cfg.announcement_channel_id:
        return messages

    receive = ActivityRecord(
        user_id=str(event.author_id),
        username=event.author_name,
        channel_id=event.channel_id,
        kind=ActivityKind.RECEIVE.value,
        reward=RECEIVE_POINTS,
        message_id=event.message_id,
        emoji=event.emoji,
    )
    if record_reaction_activity(engine, receive, now):
        adjust_points(engine, event.author_id, event.author_name, RECEIVE_POINTS, now)
        messages.append(
            f"<@{event.author_id}> got {RECEIVE_POINTS} points for receiving {event.emoji} "
            f"on a [message]({link}) in <#{event.channel_id}>"
        )

    return messages
