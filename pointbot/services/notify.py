"""
pointbot.services.notify — Outbound Discord messages
=====================================================

Channel resolution and guarded sends shared by cogs and scheduled jobs.
Send failures are logged and reported as ``False``; nothing here retries.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import discord
from discord.abc import Messageable

if TYPE_CHECKING:
    from pointbot.bot.core import PointBot

logger = logging.getLogger(__name__)


def resolve_channel(bot: PointBot, *channel_ids: int | None) -> Messageable | None:
    """First cached, messageable channel among *channel_ids*."""
    for channel_id in channel_ids:
        if not channel_id:
            continue
        ch = bot.get_channel(channel_id)
        if ch is not None and isinstance(ch, Messageable):
            return ch
    return None


async def post(
    channel: Messageable | None,
    content: str | None = None,
    *,
    embed: discord.Embed | None = None,
) -> bool:
    """Send *content* / *embed* to *channel*; ``False`` if it could not."""
    if channel is None:
        return False
    try:
        await channel.send(content=content, embed=embed)
    except discord.HTTPException:
        logger.exception("Failed to send message to channel %s", getattr(channel, "id", "?"))
        return False
    return True


async def post_feed(bot: PointBot, content: str) -> bool:
    """Post a reward notice to the attendance channel."""
    return await post(resolve_channel(bot, bot.cfg.attendance_channel_id), content)


async def send_dm(bot: PointBot, user_id: int | str, content: str) -> bool:
    """DM a member.  Closed DMs and missing users are logged, not raised."""
    try:
        user = bot.get_user(int(user_id)) or await bot.fetch_user(int(user_id))
        await user.send(content)
    except discord.Forbidden:
        logger.warning("DMs closed for user %s", user_id)
        return False
    except discord.HTTPException:
        logger.exception("Failed to DM user %s", user_id)
        return False
    return True
