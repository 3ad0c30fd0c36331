"""
pointbot.bot.cogs.lotto — Weekly Lotto Commands
================================================

- ``/lotto n1 n2 n3 n4``  — enter this week's draw (lotto channel only)
- ``/checklotto``         — your entries for this week and last week
- ``/lotto-guideline``    — rules and prizes
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import discord
from discord import app_commands
from discord.ext import commands

from pointbot.constants import LOTTO_WEEKLY_GUESS_LIMIT
from pointbot.database.engine import run_db
from pointbot.database.models import utcnow
from pointbot.engine.calendar import iso_week
from pointbot.services.embeds import build_lotto_guesses_embed, lotto_guideline_text
from pointbot.services.lotto_service import DrawNotFoundError, get_user_guesses, submit_guess
from pointbot.services.notify import post

if TYPE_CHECKING:
    from pointbot.bot.core import PointBot

logger = logging.getLogger(__name__)

Digit = app_commands.Range[int, 0, 9]


class Lotto(commands.Cog, name="Lotto"):
    """Weekly four-digit lottery."""

    def __init__(self, bot: PointBot) -> None:
        self.bot = bot

    # -------------------------------------------------------------------
    # /lotto
    # -------------------------------------------------------------------
    @app_commands.command(name="lotto", description="Pick 4 single-digit numbers for this week's lotto.")
    @app_commands.describe(
        n1="First digit (0-9)",
        n2="Second digit (0-9)",
        n3="Third digit (0-9)",
        n4="Fourth digit (0-9)",
    )
    async def lotto(
        self,
        interaction: discord.Interaction,
        n1: Digit,
        n2: Digit,
        n3: Digit,
        n4: Digit,
    ) -> None:
        cfg = self.bot.cfg
        if not self.bot.is_home_guild(interaction.guild_id):
            return
        if interaction.channel_id != cfg.lotto_channel_id:
            await interaction.response.send_message(
                f"Please use `/lotto` in <#{cfg.lotto_channel_id}> channel 🍀",
                ephemeral=True,
            )
            return

        numbers = [n1, n2, n3, n4]
        user = interaction.user
        try:
            guess = await run_db(
                submit_guess, self.bot.engine, user.id, user.display_name, numbers,
            )
        except DrawNotFoundError as exc:
            logger.error("Lotto entry rejected: %s", exc)
            await interaction.response.send_message(
                "This week's lotto draw isn't ready yet 🛠️ Please try again later.",
                ephemeral=True,
            )
            return
        except Exception:
            logger.exception("Lotto entry failed for user %s", user.id)
            await interaction.response.send_message(
                "Something went wrong while saving your entry. Please try again later.",
                ephemeral=True,
            )
            return

        if guess is None:
            await interaction.response.send_message(
                f"You have already made {LOTTO_WEEKLY_GUESS_LIMIT} guesses this week 😩 "
                "Please wait until next week to play again 💪🏻",
                ephemeral=True,
            )
            return

        chosen = ", ".join(f"'{n}'" for n in guess.numbers)
        await interaction.response.send_message(
            f"🎟️ You're in! Your numbers for week {guess.week_number}: {chosen}. "
            "Results are announced every Monday 03:00 (UTC+0).",
            ephemeral=True,
        )
        await post(
            interaction.channel,
            f"🎲 The lotto is heating up! <@{user.id}> is in - will you be next? "
            "Check out `/lotto-guideline` and participate! 💰",
        )

    # -------------------------------------------------------------------
    # /checklotto
    # -------------------------------------------------------------------
    @app_commands.command(name="checklotto", description="Check your lotto entries for this week and last week.")
    async def check_lotto(self, interaction: discord.Interaction) -> None:
        if not self.bot.is_home_guild(interaction.guild_id):
            return
        year, week = iso_week(utcnow())
        user = interaction.user
        guesses = await run_db(get_user_guesses, self.bot.engine, user.id, year, week)

        if not guesses:
            await interaction.response.send_message(
                "Sorry, you haven’t joined the Weekly Lotto this week yet 😦\n"
                f"Type **“/lotto”** in <#{self.bot.cfg.lotto_channel_id}> channel to try your luck! 🍀",
                ephemeral=True,
            )
            return

        await interaction.response.send_message(
            embed=build_lotto_guesses_embed(user.display_name, user.display_avatar.url, guesses),
            ephemeral=True,
        )

    # -------------------------------------------------------------------
    # /lotto-guideline
    # -------------------------------------------------------------------
    @app_commands.command(name="lotto-guideline", description="How the Weekly Lotto works.")
    async def lotto_guideline(self, interaction: discord.Interaction) -> None:
        if not self.bot.is_home_guild(interaction.guild_id):
            return
        await interaction.response.send_message(
            lotto_guideline_text(self.bot.cfg.lotto_channel_id), ephemeral=True,
        )


async def setup(bot: PointBot) -> None:
    await bot.add_cog(Lotto(bot))
