"""
pointbot.bot.cogs.reactions — Reaction & Poll Points
=====================================================

Listens for ``on_raw_reaction_add`` (raw, so reactions on uncached
messages still count), resolves the reacted-to message's author and
normalizes everything into a :class:`ReactionAdded`.

Routing:
- message authored by the poll bot → poll participation (15 points)
- anything else → React / Receive / bad-emoji rules

Reward notices are posted to the attendance channel.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import discord
from discord.ext import commands

from pointbot.database.engine import run_db
from pointbot.engine.events import ReactionAdded
from pointbot.services.activity_service import handle_poll_reaction, handle_reaction_activity
from pointbot.services.notify import post_feed

if TYPE_CHECKING:
    from pointbot.bot.core import PointBot

logger = logging.getLogger(__name__)


class Reactions(commands.Cog, name="Reactions"):
    """Awards points for giving and receiving reactions."""

    def __init__(self, bot: PointBot) -> None:
        self.bot = bot

    @commands.Cog.listener()
    async def on_raw_reaction_add(self, payload: discord.RawReactionActionEvent) -> None:
        """Fire when any reaction is added, even on uncached messages."""
        try:
            await self._handle_reaction(payload)
        except Exception:
            logger.exception(
                "Error processing reaction on message %s from user %s",
                payload.message_id, payload.user_id,
            )

    async def _fetch_message(self, payload: discord.RawReactionActionEvent) -> discord.Message | None:
        channel = self.bot.get_channel(payload.channel_id)
        try:
            if channel is None:
                channel = await self.bot.fetch_channel(payload.channel_id)
            if not isinstance(channel, discord.abc.Messageable):
                return None
            return await channel.fetch_message(payload.message_id)
        except (discord.NotFound, discord.Forbidden):
            return None

    async def build_event(self, payload: discord.RawReactionActionEvent) -> ReactionAdded | None:
        """Normalize *payload*, or ``None`` for DMs and unreadable messages."""
        if payload.guild_id is None or payload.member is None:
            return None
        message = await self._fetch_message(payload)
        if message is None:
            return None
        return ReactionAdded(
            user_id=payload.user_id,
            username=payload.member.display_name,
            user_is_bot=payload.member.bot,
            guild_id=payload.guild_id,
            channel_id=payload.channel_id,
            message_id=payload.message_id,
            emoji=str(payload.emoji),
            author_id=message.author.id,
            author_name=message.author.display_name,
            author_is_bot=message.author.bot,
        )

    async def _handle_reaction(self, payload: discord.RawReactionActionEvent) -> None:
        # Cheap gates before the message fetch
        if not self.bot.is_home_guild(payload.guild_id):
            return
        if payload.member is None or payload.member.bot:
            return

        event = await self.build_event(payload)
        if event is None:
            return

        cfg = self.bot.cfg
        if event.author_id == cfg.poll_bot_id:
            notice = await run_db(handle_poll_reaction, self.bot.engine, cfg, event)
            notices = [notice] if notice else []
        else:
            notices = await run_db(handle_reaction_activity, self.bot.engine, cfg, event)

        for content in notices:
            await post_feed(self.bot, content)


async def setup(bot: PointBot) -> None:
    await bot.add_cog(Reactions(bot))
