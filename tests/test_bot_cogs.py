"""
tests/test_bot_cogs.py — Cog Routing, Scheduled Jobs & Notification Tests
=========================================================================

Cogs are driven with lightweight mock bots and messages; the store is the
real in-memory SQLite engine.
"""

from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import discord
import pytest
from conftest import ATTENDANCE_CHANNEL_ID, GUILD_ID, LOTTO_CHANNEL_ID, at, run_async
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from pointbot.bot.cogs.exchange import Exchange
from pointbot.bot.cogs.lotto import Lotto
from pointbot.bot.cogs.points import TEXT_COMMANDS, Points, to_plain_message
from pointbot.bot.cogs.reactions import Reactions
from pointbot.bot.cogs.tasks import ScheduledJobs
from pointbot.constants import RANK_BADGES
from pointbot.database.engine import get_session
from pointbot.database.models import ExchangeRequest, ExchangeStatus, LottoDraw
from pointbot.services.embeds import build_leaderboard_embed, build_lotto_results_embed
from pointbot.services.exchange_service import add_exchange_record, get_user_records
from pointbot.services.ledger_service import adjust_points, get_points
from pointbot.services.lotto_service import settle_guess, submit_guess, upsert_weekly_draw
from pointbot.services.notify import post, resolve_channel, send_dm
from pointbot.services.scheduler import CronJob, JobScheduler


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def _make_bot(engine, cfg, channels: dict[int, object] | None = None) -> MagicMock:
    bot = MagicMock()
    bot.engine = engine
    bot.cfg = cfg
    bot.is_home_guild = lambda guild_id: guild_id == cfg.guild_id
    bot.wait_until_ready = AsyncMock()
    bot.get_channel = lambda ch_id: (channels or {}).get(ch_id)
    return bot


def _make_messageable(channel_id: int = 100) -> MagicMock:
    ch = MagicMock(spec=discord.TextChannel)
    ch.id = channel_id
    ch.send = AsyncMock()
    return ch


def _make_message(
    content: str,
    *,
    user_id: int = 1,
    channel_id: int = ATTENDANCE_CHANNEL_ID,
    guild_id: int | None = GUILD_ID,
    is_bot: bool = False,
) -> MagicMock:
    message = MagicMock()
    message.id = 99
    message.content = content
    message.author.id = user_id
    message.author.display_name = "alice"
    message.author.bot = is_bot
    message.author.display_avatar.url = "https://cdn.example/avatar.png"
    message.guild = SimpleNamespace(id=guild_id) if guild_id else None
    message.channel.id = channel_id
    message.channel.send = AsyncMock()
    message.reply = AsyncMock()
    return message


def _http_error(cls, status: int):
    return cls(MagicMock(status=status, reason="error"), "boom")


# ---------------------------------------------------------------------------
# Text commands
# ---------------------------------------------------------------------------
class TestTextCommands:
    def test_aliases_route_to_same_handler(self):
        assert TEXT_COMMANDS["!cp"] == TEXT_COMMANDS["!check-points"] == "check_points"
        assert TEXT_COMMANDS["!cr"] == TEXT_COMMANDS["!check-records"] == "check_records"
        assert all(hasattr(Points, name) for name in TEXT_COMMANDS.values())

    def test_to_plain_message(self):
        event = to_plain_message(_make_message("  !ATTEND please"))
        assert event.command == "!attend"
        assert event.guild_id == GUILD_ID
        assert event.is_bot is False

    def test_attend_awards_once(self, db_engine, bot_config):
        cog = Points(_make_bot(db_engine, bot_config))
        first = _make_message("!attend")
        second = _make_message("!attend")

        run_async(cog.on_message(first))
        run_async(cog.on_message(second))

        assert get_points(db_engine, 1) == 50
        assert "50" in first.reply.await_args.args[0]
        assert "already checked in" in second.reply.await_args.args[0]

    def test_wrong_channel_redirects(self, db_engine, bot_config):
        cog = Points(_make_bot(db_engine, bot_config))
        message = _make_message("!cp", channel_id=12345)
        run_async(cog.on_message(message))

        reply = message.reply.await_args.args[0]
        assert f"<#{ATTENDANCE_CHANNEL_ID}>" in reply
        message.channel.send.assert_not_awaited()

    def test_other_guild_and_bots_ignored(self, db_engine, bot_config):
        cog = Points(_make_bot(db_engine, bot_config))
        foreign = _make_message("!attend", guild_id=1)
        from_bot = _make_message("!attend", is_bot=True)
        run_async(cog.on_message(foreign))
        run_async(cog.on_message(from_bot))

        foreign.reply.assert_not_awaited()
        from_bot.reply.assert_not_awaited()
        assert get_points(db_engine, 1) == 0

    def test_unknown_command_ignored(self, db_engine, bot_config):
        cog = Points(_make_bot(db_engine, bot_config))
        message = _make_message("hello there", channel_id=12345)
        run_async(cog.on_message(message))
        message.reply.assert_not_awaited()

    def test_check_points_sends_card(self, db_engine, bot_config):
        adjust_points(db_engine, 1, "alice", 1_234)
        cog = Points(_make_bot(db_engine, bot_config))
        message = _make_message("!cp")
        run_async(cog.on_message(message))

        embed = message.channel.send.await_args.kwargs["embed"]
        assert embed.fields[0].value == "1,234"

    def test_check_records_without_history(self, db_engine, bot_config):
        cog = Points(_make_bot(db_engine, bot_config))
        message = _make_message("!cr")
        run_async(cog.on_message(message))
        assert "No Points Exchange Records" in message.reply.await_args.args[0]

    def test_my_rank(self, db_engine, bot_config):
        adjust_points(db_engine, 2, "bob", 500)
        adjust_points(db_engine, 1, "alice", 100)
        cog = Points(_make_bot(db_engine, bot_config))
        message = _make_message("!myrank")
        run_async(cog.on_message(message))
        assert "#2" in message.reply.await_args.args[0]

    def test_handler_errors_are_logged_not_raised(self, db_engine, bot_config, caplog):
        cog = Points(_make_bot(db_engine, bot_config))
        with patch("pointbot.bot.cogs.points.run_db", new=AsyncMock(side_effect=RuntimeError("db down"))):
            run_async(cog.on_message(_make_message("!rank")))
        assert "Error handling !rank" in caplog.text


# ---------------------------------------------------------------------------
# Embeds
# ---------------------------------------------------------------------------
class TestEmbeds:
    def test_leaderboard_badges(self):
        rows = [{"user_id": str(i), "username": f"u{i}", "points": 100 - i} for i in range(5)]
        lines = build_leaderboard_embed(rows).description.splitlines()
        assert lines[0].startswith(RANK_BADGES[0])
        assert lines[2].startswith(RANK_BADGES[2])
        assert lines[3].startswith("`#4`")

    def test_empty_leaderboard(self):
        assert "Nobody" in build_leaderboard_embed([]).description

    def test_lotto_results(self):
        summary = {
            "year": 2024, "week": 20, "numbers": [0, 6, 0, 6],
            "total_guesses": 3, "winners": {4: 1, 3: 0, 2: 1, 1: 0},
        }
        embed = build_lotto_results_embed(summary)
        assert "2024 Week 20" in embed.title
        assert [f.name for f in embed.fields] == [
            "4 matching numbers", "3 matching numbers", "2 matching numbers", "1 matching number",
        ]


# ---------------------------------------------------------------------------
# Notifications
# ---------------------------------------------------------------------------
class TestNotify:
    def test_resolve_channel_falls_back(self, db_engine, bot_config):
        ch = _make_messageable(7)
        bot = _make_bot(db_engine, bot_config, channels={7: ch})
        assert resolve_channel(bot, None, 6, 7) is ch
        assert resolve_channel(bot, 6) is None

    def test_post_without_channel(self):
        assert run_async(post(None, "hello")) is False

    def test_post_failure_returns_false(self):
        ch = _make_messageable()
        ch.send.side_effect = _http_error(discord.HTTPException, 500)
        assert run_async(post(ch, "hello")) is False

    def test_dm_closed(self, db_engine, bot_config):
        user = MagicMock()
        user.send = AsyncMock(side_effect=_http_error(discord.Forbidden, 403))
        bot = _make_bot(db_engine, bot_config)
        bot.get_user = MagicMock(return_value=user)
        assert run_async(send_dm(bot, "42", "hi")) is False
        bot.get_user.assert_called_once_with(42)

    def test_dm_delivered(self, db_engine, bot_config):
        user = MagicMock()
        user.send = AsyncMock()
        bot = _make_bot(db_engine, bot_config)
        bot.get_user = MagicMock(return_value=user)
        assert run_async(send_dm(bot, 42, "hi")) is True
        user.send.assert_awaited_once_with("hi")


# ---------------------------------------------------------------------------
# Scheduled jobs
# ---------------------------------------------------------------------------
class TestScheduledJobs:
    def test_all_jobs_registered(self, db_engine, bot_config):
        jobs = ScheduledJobs(_make_bot(db_engine, bot_config)).build_jobs()
        assert [j.name for j in jobs] == [
            "exchange-processing",
            "exchange-completed",
            "activity-purge",
            "lotto-draw",
            "lotto-settlement",
            "lotto-announcement",
            "uptime-report",
        ]
        assert jobs[0].schedule == bot_config.schedules.exchange_processing

    def test_exchange_jobs_advance_status(self, db_engine, bot_config):
        add_exchange_record(
            db_engine,
            ExchangeRequest(
                user_id="1", username="alice",
                wallet_address="0x5aAeb6053F3E94C9b9A09f33669435E7Ef1BeAed",
                item="ticket", quantity=1,
            ),
        )
        cog = ScheduledJobs(_make_bot(db_engine, bot_config))
        run_async(cog.exchange_processing())
        assert get_user_records(db_engine, "1")[0]["status"] == ExchangeStatus.PROCESSING.value
        run_async(cog.exchange_completed())
        assert get_user_records(db_engine, "1")[0]["status"] == ExchangeStatus.COMPLETED.value

    def test_lotto_draw_is_idempotent(self, db_engine, bot_config):
        cog = ScheduledJobs(_make_bot(db_engine, bot_config))
        run_async(cog.lotto_draw())
        run_async(cog.lotto_draw())
        with get_session(db_engine) as session:
            assert session.scalar(select(func.count(LottoDraw.id))) == 1

    def test_settlement_credits_and_dms_winners(self, db_engine, bot_config):
        with get_session(db_engine) as session:
            session.add(LottoDraw(numbers=[0, 6, 0, 6], year=2024, week_number=20))
        submit_guess(db_engine, 1, "alice", [0, 6, 0, 0], at(2024, 5, 15))
        submit_guess(db_engine, 2, "bob", [1, 1, 1, 1], at(2024, 5, 15))

        cog = ScheduledJobs(_make_bot(db_engine, bot_config))
        with (
            patch("pointbot.bot.cogs.tasks.last_week", return_value=(2024, 20)),
            patch("pointbot.bot.cogs.tasks.send_dm", new=AsyncMock(return_value=True)) as dm,
        ):
            run_async(cog.lotto_settlement())
            run_async(cog.lotto_settlement())

        assert get_points(db_engine, 1) == 5_000
        assert get_points(db_engine, 2) == 0
        dm.assert_awaited_once()
        assert dm.await_args.args[1] == "1"

    def test_announcement_posts_results(self, db_engine, bot_config):
        with get_session(db_engine) as session:
            session.add(LottoDraw(numbers=[0, 6, 0, 6], year=2024, week_number=20))
        ch = _make_messageable(LOTTO_CHANNEL_ID)
        cog = ScheduledJobs(_make_bot(db_engine, bot_config, channels={LOTTO_CHANNEL_ID: ch}))
        with patch("pointbot.bot.cogs.tasks.last_week", return_value=(2024, 20)):
            run_async(cog.lotto_announcement())
        assert "2024 Week 20" in ch.send.await_args.kwargs["embed"].title

    def test_announcement_undelivered_raises_for_retry(self, db_engine, bot_config):
        with get_session(db_engine) as session:
            session.add(LottoDraw(numbers=[0, 6, 0, 6], year=2024, week_number=20))
        cog = ScheduledJobs(_make_bot(db_engine, bot_config))
        with patch("pointbot.bot.cogs.tasks.last_week", return_value=(2024, 20)):
            with pytest.raises(RuntimeError):
                run_async(cog.lotto_announcement())

    def test_announcement_without_draw_is_skipped(self, db_engine, bot_config):
        ch = _make_messageable(LOTTO_CHANNEL_ID)
        cog = ScheduledJobs(_make_bot(db_engine, bot_config, channels={LOTTO_CHANNEL_ID: ch}))
        with patch("pointbot.bot.cogs.tasks.last_week", return_value=(2024, 20)):
            run_async(cog.lotto_announcement())
        ch.send.assert_not_awaited()

    def test_uptime_report_falls_back_to_attendance(self, db_engine, bot_config):
        ch = _make_messageable(ATTENDANCE_CHANNEL_ID)
        cog = ScheduledJobs(_make_bot(db_engine, bot_config, channels={ATTENDANCE_CHANNEL_ID: ch}))
        run_async(cog.uptime_report())
        assert "2023-07-01" in ch.send.await_args.kwargs["content"]

    def test_uptime_report_retries_until_delivered(self, db_engine, bot_config):
        ch = _make_messageable(ATTENDANCE_CHANNEL_ID)
        ch.send.side_effect = [_http_error(discord.HTTPException, 500), None]
        cog = ScheduledJobs(_make_bot(db_engine, bot_config, channels={ATTENDANCE_CHANNEL_ID: ch}))
        scheduler = JobScheduler([], sleep=AsyncMock())
        job = CronJob("uptime-report", "0 1 * * *", cog.uptime_report, retry_delay=300)

        assert run_async(scheduler.run_occurrence(job)) == 2
        assert ch.send.await_count == 2

    def test_uptime_report_without_channel_raises(self, db_engine, bot_config):
        cog = ScheduledJobs(_make_bot(db_engine, bot_config))
        with pytest.raises(RuntimeError):
            run_async(cog.uptime_report())

    def test_settlement_failure_mid_batch_still_notifies_credited(self, db_engine, bot_config):
        with get_session(db_engine) as session:
            session.add(LottoDraw(numbers=[0, 6, 0, 6], year=2024, week_number=20))
        submit_guess(db_engine, 1, "alice", [0, 6, 0, 6], at(2024, 5, 15))
        submit_guess(db_engine, 2, "bob", [0, 6, 1, 1], at(2024, 5, 15))

        calls = []

        def flaky_settle(engine, guess_id, now=None):
            calls.append(guess_id)
            if len(calls) == 2:
                raise OperationalError("UPDATE lotto_guesses", {}, Exception("database is locked"))
            return settle_guess(engine, guess_id, now)

        cog = ScheduledJobs(_make_bot(db_engine, bot_config))
        scheduler = JobScheduler([], sleep=AsyncMock())
        job = CronJob("lotto-settlement", "5 0 * * 1", cog.lotto_settlement, retry_delay=60)
        with (
            patch("pointbot.bot.cogs.tasks.last_week", return_value=(2024, 20)),
            patch("pointbot.bot.cogs.tasks.settle_guess", new=flaky_settle),
            patch("pointbot.bot.cogs.tasks.send_dm", new=AsyncMock(return_value=True)) as dm,
        ):
            assert run_async(scheduler.run_occurrence(job)) == 2

        assert sorted(c.args[1] for c in dm.await_args_list) == ["1", "2"]
        assert get_points(db_engine, 1) == 100_000
        assert get_points(db_engine, 2) == 1_000


# ---------------------------------------------------------------------------
# Reactions
# ---------------------------------------------------------------------------
class TestReactionRouting:
    def _payload(self, channel_id: int = 5000):
        payload = MagicMock()
        payload.guild_id = GUILD_ID
        payload.channel_id = channel_id
        payload.message_id = 777
        payload.user_id = 11
        payload.member.display_name = "reactor"
        payload.member.bot = False
        payload.emoji = "🔥"
        return payload

    def _bot(self, db_engine, bot_config, author_id: int, author_is_bot: bool = False):
        target = _make_messageable(5000)
        message = MagicMock()
        message.author.id = author_id
        message.author.display_name = "author"
        message.author.bot = author_is_bot
        target.fetch_message = AsyncMock(return_value=message)
        feed = _make_messageable(ATTENDANCE_CHANNEL_ID)
        bot = _make_bot(
            db_engine, bot_config, channels={5000: target, ATTENDANCE_CHANNEL_ID: feed},
        )
        return bot, feed

    def test_member_message_awards_react_and_receive(self, db_engine, bot_config):
        bot, feed = self._bot(db_engine, bot_config, author_id=22)
        run_async(Reactions(bot).on_raw_reaction_add(self._payload()))

        assert get_points(db_engine, 11) == 3
        assert get_points(db_engine, 22) == 10
        assert feed.send.await_count == 2

    def test_poll_message_awards_poll_points(self, db_engine, bot_config):
        poll_bot = bot_config.poll_bot_id
        bot, feed = self._bot(db_engine, bot_config, author_id=poll_bot, author_is_bot=True)
        run_async(Reactions(bot).on_raw_reaction_add(self._payload()))

        assert get_points(db_engine, 11) == 15
        assert "15 points" in feed.send.await_args.kwargs["content"]


# ---------------------------------------------------------------------------
# Slash commands
# ---------------------------------------------------------------------------
WALLET = "0x5aaeb6053f3e94c9b9a09f33669435e7ef1beaed"


def _make_interaction(channel_id: int, *, guild_id: int = GUILD_ID, user_id: int = 1) -> MagicMock:
    interaction = MagicMock()
    interaction.guild_id = guild_id
    interaction.channel_id = channel_id
    interaction.channel = _make_messageable(channel_id)
    interaction.user.id = user_id
    interaction.user.display_name = "alice"
    interaction.user.display_avatar.url = "https://cdn.example/avatar.png"
    interaction.response.send_message = AsyncMock()
    return interaction


def _reply(interaction: MagicMock) -> str:
    call = interaction.response.send_message.await_args
    assert call.kwargs["ephemeral"] is True
    return call.args[0]


class TestExchangeCommand:
    def _run(self, db_engine, bot_config, interaction, wallet=WALLET, tickets=1, blackout=False):
        cog = Exchange(_make_bot(db_engine, bot_config))
        with patch("pointbot.bot.cogs.exchange.is_exchange_blackout", return_value=blackout):
            run_async(Exchange.exchange.callback(cog, interaction, wallet, tickets))

    def test_wrong_channel(self, db_engine, bot_config):
        interaction = _make_interaction(LOTTO_CHANNEL_ID)
        self._run(db_engine, bot_config, interaction)
        assert f"<#{ATTENDANCE_CHANNEL_ID}>" in _reply(interaction)

    def test_thursday_blackout(self, db_engine, bot_config):
        adjust_points(db_engine, 1, "alice", 5_000)
        interaction = _make_interaction(ATTENDANCE_CHANNEL_ID)
        self._run(db_engine, bot_config, interaction, blackout=True)
        assert "Mon-Wed, Fri-Sun" in _reply(interaction)
        assert get_points(db_engine, 1) == 5_000

    def test_invalid_wallet(self, db_engine, bot_config):
        adjust_points(db_engine, 1, "alice", 5_000)
        interaction = _make_interaction(ATTENDANCE_CHANNEL_ID)
        self._run(db_engine, bot_config, interaction, wallet="0xnope")
        assert "valid wallet address" in _reply(interaction)
        assert get_points(db_engine, 1) == 5_000
        interaction.channel.send.assert_not_awaited()

    def test_insufficient_points(self, db_engine, bot_config):
        interaction = _make_interaction(ATTENDANCE_CHANNEL_ID)
        self._run(db_engine, bot_config, interaction)
        assert "not have enough points" in _reply(interaction)
        assert get_user_records(db_engine, "1") == []

    def test_success_acks_and_celebrates(self, db_engine, bot_config):
        adjust_points(db_engine, 1, "alice", 2_500)
        interaction = _make_interaction(ATTENDANCE_CHANNEL_ID)
        self._run(db_engine, bot_config, interaction, tickets=2)

        assert "submitted" in _reply(interaction)
        assert "2,000 points" in interaction.channel.send.await_args.kwargs["content"]
        assert get_points(db_engine, 1) == 500

    def test_other_guild_ignored(self, db_engine, bot_config):
        interaction = _make_interaction(ATTENDANCE_CHANNEL_ID, guild_id=1)
        self._run(db_engine, bot_config, interaction)
        interaction.response.send_message.assert_not_awaited()


class TestLottoCommands:
    def _lotto(self, db_engine, bot_config, interaction, numbers=(1, 2, 3, 4)):
        cog = Lotto(_make_bot(db_engine, bot_config))
        run_async(Lotto.lotto.callback(cog, interaction, *numbers))

    def test_wrong_channel(self, db_engine, bot_config):
        interaction = _make_interaction(ATTENDANCE_CHANNEL_ID)
        self._lotto(db_engine, bot_config, interaction)
        assert f"<#{LOTTO_CHANNEL_ID}>" in _reply(interaction)

    def test_draw_not_ready(self, db_engine, bot_config):
        interaction = _make_interaction(LOTTO_CHANNEL_ID)
        self._lotto(db_engine, bot_config, interaction)
        assert "isn't ready" in _reply(interaction)
        interaction.channel.send.assert_not_awaited()

    def test_entry_confirmed_and_announced(self, db_engine, bot_config):
        upsert_weekly_draw(db_engine)
        interaction = _make_interaction(LOTTO_CHANNEL_ID)
        self._lotto(db_engine, bot_config, interaction, (7, 0, 0, 7))

        assert "'7', '0', '0', '7'" in _reply(interaction)
        assert "<@1>" in interaction.channel.send.await_args.kwargs["content"]

    def test_weekly_limit_message(self, db_engine, bot_config):
        upsert_weekly_draw(db_engine)
        for _ in range(5):
            self._lotto(db_engine, bot_config, _make_interaction(LOTTO_CHANNEL_ID))
        interaction = _make_interaction(LOTTO_CHANNEL_ID)
        self._lotto(db_engine, bot_config, interaction)
        assert "already made 5 guesses" in _reply(interaction)

    def test_informational_commands_ignore_other_guilds(self, db_engine, bot_config):
        bot = _make_bot(db_engine, bot_config)
        lotto_cog, points_cog = Lotto(bot), Points(bot)
        interactions = [_make_interaction(LOTTO_CHANNEL_ID, guild_id=1) for _ in range(3)]

        run_async(Lotto.check_lotto.callback(lotto_cog, interactions[0]))
        run_async(Lotto.lotto_guideline.callback(lotto_cog, interactions[1]))
        run_async(Points.attendance_guideline.callback(points_cog, interactions[2]))

        for interaction in interactions:
            interaction.response.send_message.assert_not_awaited()

    def test_checklotto_without_entries(self, db_engine, bot_config):
        interaction = _make_interaction(LOTTO_CHANNEL_ID)
        run_async(Lotto.check_lotto.callback(Lotto(_make_bot(db_engine, bot_config)), interaction))
        assert "haven’t joined" in _reply(interaction)
