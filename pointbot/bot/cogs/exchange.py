"""
pointbot.bot.cogs.exchange — /exchange
======================================

Redeem points for tournament tickets (1,000 points each).  Accepted only
in the attendance channel and never on Thursday, when the week's requests
are being fulfilled.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import discord
from discord import app_commands
from discord.ext import commands

from pointbot.constants import MAX_TICKETS_PER_REQUEST, POINTS_PER_TICKET
from pointbot.database.engine import run_db
from pointbot.services.exchange_service import (
    InvalidWalletAddress,
    is_exchange_blackout,
    redeem_tickets,
    ticket_cost,
)
from pointbot.services.ledger_service import get_points
from pointbot.services.notify import post

if TYPE_CHECKING:
    from pointbot.bot.core import PointBot

logger = logging.getLogger(__name__)


class Exchange(commands.Cog, name="Exchange"):
    """Point → ticket redemption."""

    def __init__(self, bot: PointBot) -> None:
        self.bot = bot

    @app_commands.command(
        name="exchange",
        description=f"Exchange {POINTS_PER_TICKET:,} points into 1 Tournament ticket.",
    )
    @app_commands.describe(
        wallet_address="Your wallet address (0x…)",
        number_of_tickets=f"How many tickets (1-{MAX_TICKETS_PER_REQUEST})",
    )
    async def exchange(
        self,
        interaction: discord.Interaction,
        wallet_address: str,
        number_of_tickets: app_commands.Range[int, 1, MAX_TICKETS_PER_REQUEST],
    ) -> None:
        cfg = self.bot.cfg
        if not self.bot.is_home_guild(interaction.guild_id):
            return
        if interaction.channel_id != cfg.attendance_channel_id:
            await interaction.response.send_message(
                f"Please use `/exchange` in <#{cfg.attendance_channel_id}> channel 🙏",
                ephemeral=True,
            )
            return
        if is_exchange_blackout():
            await interaction.response.send_message(
                "Submission of request is only available on Mon-Wed, Fri-Sun.",
                ephemeral=True,
            )
            return

        user = interaction.user
        try:
            request = await run_db(
                redeem_tickets,
                self.bot.engine,
                user.id,
                user.display_name,
                wallet_address,
                number_of_tickets,
            )
        except InvalidWalletAddress:
            await interaction.response.send_message(
                "❌ That doesn't look like a valid wallet address. Please check it and try again.",
                ephemeral=True,
            )
            return
        except Exception:
            logger.exception("Exchange failed for user %s", user.id)
            await interaction.response.send_message(
                "Something went wrong while processing your request. Please try again later.",
                ephemeral=True,
            )
            return

        if request is None:
            points = await run_db(get_points, self.bot.engine, user.id)
            await interaction.response.send_message(
                "Sorry! You do not have enough points to exchange "
                f"{number_of_tickets} ticket(s) ({ticket_cost(number_of_tickets):,} points needed, "
                f"you have {points:,}).",
                ephemeral=True,
            )
            return

        await interaction.response.send_message(
            f"✅ Your request for {request.quantity} ticket(s) to `{request.wallet_address}` "
            "has been submitted. Tickets are sent every Thursday.",
            ephemeral=True,
        )
        await post(
            interaction.channel,
            f"🥳 <@{user.id}> just exchanged {ticket_cost(request.quantity):,} points to "
            f"{request.quantity} Tournament ticket(s)! 🎟️",
        )


async def setup(bot: PointBot) -> None:
    await bot.add_cog(Exchange(bot))
