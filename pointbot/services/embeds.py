"""
pointbot.services.embeds — Discord embed builders and help texts
=================================================================

All embed construction lives here so cogs and scheduled jobs only need to
supply data — no layout concerns.
"""

from __future__ import annotations

from datetime import datetime

import discord

from pointbot.constants import (
    ATTEND_POINTS,
    COLOR_LOTTO,
    COLOR_POINTS,
    COLOR_RECORDS,
    LOTTO_REWARDS,
    LOTTO_WEEKLY_GUESS_LIMIT,
    MAX_POINTS,
    POINTS_PER_TICKET,
    RANK_BADGES,
    REACT_POINTS,
    RECEIVE_POINTS,
    RECORDS_PAGE_SIZE,
)
from pointbot.database.models import ActivityKind, utcnow
from pointbot.engine.quota import QUOTAS

TIME_FORMAT = "%Y-%m-%d %H:%M"


def _fmt_time(value: datetime | None) -> str:
    return value.strftime(TIME_FORMAT) if value else "—"


def _fmt_numbers(numbers: list[int]) -> str:
    return " ".join(f"`{n}`" for n in numbers)


def _with_owner(embed: discord.Embed, display_name: str, avatar_url: str | None) -> discord.Embed:
    if avatar_url:
        embed.set_thumbnail(url=avatar_url)
    embed.set_footer(text=f"Given to {display_name}", icon_url=avatar_url)
    return embed


# ---------------------------------------------------------------------------
# Points & records
# ---------------------------------------------------------------------------
def build_points_embed(display_name: str, avatar_url: str | None, points: int) -> discord.Embed:
    """The ``!cp`` balance card."""
    embed = discord.Embed(
        title="The Cumulative Points",
        color=discord.Color(COLOR_POINTS),
        timestamp=utcnow(),
    )
    embed.add_field(name="Points", value=f"{points:,}", inline=True)
    return _with_owner(embed, display_name, avatar_url)


def build_records_embed(
    display_name: str,
    avatar_url: str | None,
    records: list[dict],
    points: int,
) -> discord.Embed:
    """The ``!cr`` exchange history: one Item/Status/Time row per request."""
    embed = discord.Embed(
        title=f"{display_name}'s Exchange Records",
        description=(
            "Here is your Exchange Record of Discord Points.\n"
            f"Your current remaining points is **{points:,}**."
        ),
        color=discord.Color(COLOR_RECORDS),
        timestamp=utcnow(),
    )
    for record in records:
        embed.add_field(name="Item", value=f"{record['quantity']} {record['item']}(s) 🎟️", inline=True)
        embed.add_field(name="Status", value=record["status"], inline=True)
        embed.add_field(name="Time (UTC)", value=_fmt_time(record["updated_at"]), inline=True)
    return _with_owner(embed, display_name, avatar_url)


def build_leaderboard_embed(rows: list[dict]) -> discord.Embed:
    """Top balances for ``!rank``."""
    embed = discord.Embed(
        title="🏆 Cumulative Points TOP 10",
        color=discord.Color(COLOR_POINTS),
        timestamp=utcnow(),
    )
    if not rows:
        embed.description = "Nobody has earned points yet. Type `!attend` to be the first!"
        return embed

    lines = []
    for idx, row in enumerate(rows, start=1):
        badge = RANK_BADGES[idx - 1] if idx <= len(RANK_BADGES) else f"`#{idx}`"
        lines.append(f"{badge} <@{row['user_id']}> — **{row['points']:,}** points")
    embed.description = "\n".join(lines)
    return embed


# ---------------------------------------------------------------------------
# Lotto
# ---------------------------------------------------------------------------
def build_lotto_guesses_embed(
    display_name: str, avatar_url: str | None, guesses: list[dict]
) -> discord.Embed:
    """The ``/checklotto`` participation card."""
    embed = discord.Embed(
        description=(
            "Thank you for joining the Weekly Lotto! 🎰\n"
            f"🤗 Below is your participation status for the first **{RECORDS_PAGE_SIZE}** "
            "(if fewer, all) lottos of the current and previous week:"
        ),
        color=discord.Color(COLOR_RECORDS),
        timestamp=utcnow(),
    )
    for guess in guesses:
        embed.add_field(name="Chosen Numbers", value=_fmt_numbers(guess["numbers"]), inline=True)
        embed.add_field(name="Week", value=f"{guess['year']}-W{guess['week']:02d}", inline=True)
        embed.add_field(name="Time (UTC)", value=_fmt_time(guess["created_at"]), inline=True)
    return _with_owner(embed, display_name, avatar_url)


def build_lotto_results_embed(summary: dict) -> discord.Embed:
    """Weekly announcement: winning numbers plus winner counts."""
    embed = discord.Embed(
        title=f"🎰 Weekly Lotto Results — {summary['year']} Week {summary['week']}",
        description=(
            f"The winning numbers are {_fmt_numbers(summary['numbers'])}\n"
            f"Total entries: **{summary['total_guesses']:,}**"
        ),
        color=discord.Color(COLOR_LOTTO),
        timestamp=utcnow(),
    )
    for matched, count in summary["winners"].items():
        label = "matching number" if matched == 1 else "matching numbers"
        embed.add_field(
            name=f"{matched} {label}",
            value=f"{count} winner(s) · {LOTTO_REWARDS[matched]:,} points",
            inline=False,
        )
    embed.set_footer(text="Winners have been notified by DM 📩")
    return embed


def lotto_winner_dm(matched: int, points: int, numbers: list[int], year: int, week: int) -> str:
    return (
        f"🎉 Congratulations! Your Weekly Lotto entry {_fmt_numbers(numbers)} for "
        f"{year} week {week} matched **{matched}** number(s).\n"
        f"**{points:,}** points have been added to your balance 💰"
    )


# ---------------------------------------------------------------------------
# Guidelines
# ---------------------------------------------------------------------------
def lotto_guideline_text(lotto_channel_id: int) -> str:
    prizes = "\n".join(
        f" {m} matching number(s): {LOTTO_REWARDS[m]:,} points" for m in sorted(LOTTO_REWARDS)
    )
    return (
        "**Welcome to the Weekly Lotto!~** 🥳 🎰\n\n"
        "*How to join?* 🤩\n"
        f"1. Go to <#{lotto_channel_id}> channel.\n"
        "2. Type **\"/lotto\"** and enter your 4 choices of single-digit numbers "
        "(i.e., between 0-9), e.g., '1', '5', '4', '7'.\n"
        "3. Once you successfully join the lotto, a confirmation message will be displayed! 📨\n"
        "4. Type **\"/checklotto\"** to check your chosen numbers for the current and previous week.\n\n"
        "*Rules* 🧑🏻‍🏫\n"
        "- Participants need to choose 4 single-digit numbers (i.e., between 0-9).\n"
        "- Both the **integer values** and **position** should match with the winning lotto numbers to win.\n"
        "*Example*: If the winning number is '0', '6', '0', '6'.\n"
        " '1', '0', '6', '9' → 0 matching number\n"
        " '1', '3', '4', '6' → 1 matching number\n"
        " '6', '0', '0', '6' → 2 matching numbers\n"
        " '2', '6', '0', '6' → 3 matching numbers\n"
        " '0', '6', '0', '6' → 4 matching numbers\n\n"
        f"*Prize* 🏆\n{prizes}\n"
        "Winners will be notified by DM. 📩\n\n"
        "*Participation guidelines* 💰\n"
        f"- Maximum {LOTTO_WEEKLY_GUESS_LIMIT} times of participation per week.\n\n"
        "*When will the Weekly Lotto open?* ⏰\n"
        "- The entry period is **Monday 00:00 - Sun 23:59 (UTC+0)**.\n"
        "- The result of the previous week will be announced on **every Monday 03:00 (UTC+0)**"
    )


def attendance_guideline_text() -> str:
    react_limit = QUOTAS[ActivityKind.REACT].limit
    receive_limit = QUOTAS[ActivityKind.RECEIVE].limit
    daily_reaction_max = REACT_POINTS * react_limit + RECEIVE_POINTS * receive_limit
    return (
        "**Here is an introduction of the Discord Bot service** 🤗\n"
        "1. **Discord bot commands** 🗣️\n"
        "    There are 6 types of commands in the attendance channel:\n"
        "    a. `!attend` - Check-in daily.\n"
        "    b. `!cp` - Check your current accumulated points.\n"
        "    c. `!rank` - Check the Cumulative Points TOP 10 Leaderboard.\n"
        "    d. `!myrank` - Check your point ranking.\n"
        f"    e. `/exchange` - Exchange your {POINTS_PER_TICKET:,} Discord points into 1 Tournament ticket.\n"
        "    f. `!cr` - Check your points exchange record.\n\n"
        "2. **How to gain points?** 🧜\n"
        "    a. **Check-in Attendance** 🙋\n"
        f"   - By typing `!attend`, you can earn {ATTEND_POINTS} points per day. "
        "The attendance points per day reset at 00:00 (UTC+0).\n"
        "    b. **Giving / Receiving reaction by emoticons** 👍\n"
        f"   - Leaving an emoticon reaction: {REACT_POINTS} points (max {react_limit} times).\n"
        f"   - Receiving an emoticon reaction: {RECEIVE_POINTS} points (max {receive_limit} times).\n"
        f"   - You can receive up to {daily_reaction_max} points per day for emoticons. "
        "This resets at 00:00 (UTC+0) every day.\n\n"
        "**Maximum score** 🌟\n"
        f"The maximum points are {MAX_POINTS:,}. Once you reach this, you cannot earn points "
        "from any activity."
    )
