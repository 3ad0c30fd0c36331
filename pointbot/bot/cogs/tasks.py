"""
pointbot.bot.cogs.tasks — Scheduled Jobs
=========================================

Registers every recurring job with a :class:`JobScheduler`.  Cron
expressions come from ``cfg.schedules``; each job retries the same
occurrence after its retry delay until it succeeds.

| Job                 | Action                                          |
|---------------------|-------------------------------------------------|
| exchange-processing | Submitted → Processing                          |
| exchange-completed  | Processing → Completed                          |
| activity-purge      | delete activity rows older than 5 weeks         |
| lotto-draw          | create this week's draw (idempotent)            |
| lotto-settlement    | credit last week's winners, DM each one         |
| lotto-announcement  | post last week's results to the lotto channel   |
| uptime-report       | post days since launch                          |

Jobs run in the bot process and call the store through ``run_db()``.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from discord.ext import commands

from pointbot.database.engine import run_db
from pointbot.database.models import utcnow
from pointbot.engine.calendar import days_since, iso_week, previous_iso_week
from pointbot.services.activity_service import purge_expired_activity
from pointbot.services.embeds import build_lotto_results_embed, lotto_winner_dm
from pointbot.services.exchange_service import (
    advance_processing_to_completed,
    advance_submitted_to_processing,
)
from pointbot.services.lotto_service import (
    DrawNotFoundError,
    get_matched_unnotified_guesses,
    settle_guess,
    summarize_week,
    upsert_weekly_draw,
)
from pointbot.services.notify import post, resolve_channel, send_dm
from pointbot.services.scheduler import CronJob, JobScheduler

if TYPE_CHECKING:
    from pointbot.bot.core import PointBot

logger = logging.getLogger(__name__)


def last_week() -> tuple[int, int]:
    return previous_iso_week(*iso_week(utcnow()))


class ScheduledJobs(commands.Cog):
    """Cog owning the cron scheduler."""

    def __init__(self, bot: PointBot) -> None:
        self.bot = bot
        self.scheduler = JobScheduler(self.build_jobs())

    def build_jobs(self) -> list[CronJob]:
        s = self.bot.cfg.schedules
        return [
            CronJob("exchange-processing", s.exchange_processing, self.exchange_processing, 300),
            CronJob("exchange-completed", s.exchange_completed, self.exchange_completed, 300),
            CronJob("activity-purge", s.activity_purge, self.activity_purge, 300),
            CronJob("lotto-draw", s.lotto_draw, self.lotto_draw, 60),
            CronJob("lotto-settlement", s.lotto_settlement, self.lotto_settlement, 60),
            CronJob("lotto-announcement", s.lotto_announcement, self.lotto_announcement, 120),
            CronJob("uptime-report", s.uptime_report, self.uptime_report, 300),
        ]

    async def cog_load(self) -> None:
        await self.scheduler.start()

    async def cog_unload(self) -> None:
        await self.scheduler.stop()

    # -------------------------------------------------------------------
    # Exchange lifecycle
    # -------------------------------------------------------------------
    async def exchange_processing(self) -> None:
        await run_db(advance_submitted_to_processing, self.bot.engine)

    async def exchange_completed(self) -> None:
        await run_db(advance_processing_to_completed, self.bot.engine)

    # -------------------------------------------------------------------
    # Retention
    # -------------------------------------------------------------------
    async def activity_purge(self) -> None:
        await run_db(purge_expired_activity, self.bot.engine)

    # -------------------------------------------------------------------
    # Lotto
    # -------------------------------------------------------------------
    async def lotto_draw(self) -> None:
        await run_db(upsert_weekly_draw, self.bot.engine)

    async def lotto_settlement(self) -> None:
        """Credit last week's winning guesses, DMing each winner as soon as
        their guess is settled.

        Crediting is idempotent; a DM that fails is logged and not resent.
        """
        year, week = last_week()
        guesses = await run_db(get_matched_unnotified_guesses, self.bot.engine, year, week)
        if not guesses:
            return
        await self.bot.wait_until_ready()
        credited = 0
        for guess in guesses:
            s = await run_db(settle_guess, self.bot.engine, guess.id)
            if s is None:
                continue
            credited += 1
            await send_dm(
                self.bot,
                s.user_id,
                lotto_winner_dm(s.matched_count, s.points, s.numbers, s.year, s.week),
            )
        logger.info("Lotto %d-W%02d settlement: %d guess(es) credited", year, week, credited)

    async def lotto_announcement(self) -> None:
        year, week = last_week()
        try:
            summary = await run_db(summarize_week, self.bot.engine, year, week)
        except DrawNotFoundError:
            logger.warning("No draw for %d-W%02d — nothing to announce", year, week)
            return
        await self.bot.wait_until_ready()
        channel = resolve_channel(self.bot, self.bot.cfg.lotto_channel_id)
        if not await post(channel, embed=build_lotto_results_embed(summary)):
            raise RuntimeError(f"Lotto announcement for {year}-W{week:02d} was not delivered")

    # -------------------------------------------------------------------
    # Uptime
    # -------------------------------------------------------------------
    async def uptime_report(self) -> None:
        cfg = self.bot.cfg
        days = days_since(cfg.launch_date, utcnow())
        await self.bot.wait_until_ready()
        channel = resolve_channel(self.bot, cfg.report_channel_id, cfg.attendance_channel_id)
        delivered = await post(
            channel,
            f"🤖 Point Bot has been serving the community for **{days:,}** day(s) "
            f"since {cfg.launch_date.isoformat()}.",
        )
        if not delivered:
            raise RuntimeError("Uptime report was not delivered")


async def setup(bot: PointBot) -> None:
    await bot.add_cog(ScheduledJobs(bot))
