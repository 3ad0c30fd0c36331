"""
pointbot.bot.cogs.points — Attendance & Balance Text Commands
==============================================================

Plain ``!`` commands typed in the attendance channel:

- ``!attend``                 — daily check-in, 50 points once per UTC day
- ``!cp`` / ``!check-points`` — current balance card
- ``!cr`` / ``!check-records``— last 8 exchange requests + balance
- ``!rank``                   — TOP 10 leaderboard
- ``!myrank``                 — your position on the leaderboard

Messages are normalized into :class:`PlainMessage` and routed through the
:data:`TEXT_COMMANDS` dispatch table.  ``/attendance-guideline`` lives here
too since it documents these commands.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import discord
from discord import app_commands
from discord.ext import commands

from pointbot.constants import ATTEND_POINTS
from pointbot.database.engine import run_db
from pointbot.engine.events import PlainMessage
from pointbot.services.activity_service import handle_attendance
from pointbot.services.embeds import (
    attendance_guideline_text,
    build_leaderboard_embed,
    build_points_embed,
    build_records_embed,
)
from pointbot.services.exchange_service import get_user_records
from pointbot.services.ledger_service import get_leaderboard, get_points, get_rank

if TYPE_CHECKING:
    from pointbot.bot.core import PointBot

logger = logging.getLogger(__name__)

# First token of the message → handler method name
TEXT_COMMANDS: dict[str, str] = {
    "!attend": "attend",
    "!cp": "check_points",
    "!check-points": "check_points",
    "!cr": "check_records",
    "!check-records": "check_records",
    "!rank": "rank",
    "!myrank": "my_rank",
}


def to_plain_message(message: discord.Message) -> PlainMessage:
    """Normalize a gateway message."""
    return PlainMessage(
        user_id=message.author.id,
        username=message.author.display_name,
        guild_id=message.guild.id if message.guild else None,
        channel_id=message.channel.id,
        message_id=message.id,
        content=message.content,
        is_bot=message.author.bot,
    )


class Points(commands.Cog, name="Points"):
    """Attendance check-in and balance lookups."""

    def __init__(self, bot: PointBot) -> None:
        self.bot = bot

    @commands.Cog.listener()
    async def on_message(self, message: discord.Message) -> None:
        event = to_plain_message(message)
        if event.is_bot or not self.bot.is_home_guild(event.guild_id):
            return
        handler_name = TEXT_COMMANDS.get(event.command)
        if handler_name is None:
            return

        attendance_channel_id = self.bot.cfg.attendance_channel_id
        if event.channel_id != attendance_channel_id:
            await message.reply(
                f"Please use `{event.command}` in <#{attendance_channel_id}> channel 🙏"
            )
            return

        try:
            await getattr(self, handler_name)(message, event)
        except Exception:
            logger.exception(
                "Error handling %s from user %s", event.command, event.user_id,
            )

    # -------------------------------------------------------------------
    # Handlers
    # -------------------------------------------------------------------
    async def attend(self, message: discord.Message, event: PlainMessage) -> None:
        rewarded, balance = await run_db(handle_attendance, self.bot.engine, event)
        if rewarded:
            await message.reply(
                f"✅ <@{event.user_id}> checked in and got **{ATTEND_POINTS}** points! "
                f"Your balance is now **{balance:,}** points."
            )
        else:
            await message.reply(
                "You have already checked in today 🙌 "
                "Attendance resets at 00:00 (UTC+0), see you tomorrow!"
            )

    async def check_points(self, message: discord.Message, event: PlainMessage) -> None:
        points = await run_db(get_points, self.bot.engine, event.user_id)
        author = message.author
        await message.channel.send(
            embed=build_points_embed(author.display_name, author.display_avatar.url, points)
        )

    async def check_records(self, message: discord.Message, event: PlainMessage) -> None:
        records = await run_db(get_user_records, self.bot.engine, event.user_id)
        if not records:
            await message.reply(
                f"<@{event.user_id}> No Points Exchange Records found. 🔍\n"
                "Please type “/exchange” to exchange your points to items. 🎁"
            )
            return
        points = await run_db(get_points, self.bot.engine, event.user_id)
        author = message.author
        await message.channel.send(
            embed=build_records_embed(
                author.display_name, author.display_avatar.url, records, points,
            )
        )

    async def rank(self, message: discord.Message, event: PlainMessage) -> None:
        rows = await run_db(get_leaderboard, self.bot.engine)
        await message.channel.send(embed=build_leaderboard_embed(rows))

    async def my_rank(self, message: discord.Message, event: PlainMessage) -> None:
        result = await run_db(get_rank, self.bot.engine, event.user_id)
        if result is None:
            await message.reply("You haven't earned any points yet. Type `!attend` to get started! 🚀")
            return
        position, points = result
        await message.reply(
            f"<@{event.user_id}> you are ranked **#{position}** with **{points:,}** points 🏅"
        )

    # -------------------------------------------------------------------
    # /attendance-guideline
    # -------------------------------------------------------------------
    @app_commands.command(
        name="attendance-guideline",
        description="How to earn and use Discord points.",
    )
    async def attendance_guideline(self, interaction: discord.Interaction) -> None:
        if not self.bot.is_home_guild(interaction.guild_id):
            return
        await interaction.response.send_message(attendance_guideline_text(), ephemeral=True)


async def setup(bot: PointBot) -> None:
    await bot.add_cog(Points(bot))
