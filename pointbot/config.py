"""
pointbot.config — YAML Configuration Loader
============================================

``config.yaml`` holds one block per deployment profile (``development`` and
``production``).  The active profile is chosen by the ``APP_ENV``
environment variable and frozen into a :class:`BotConfig` that is handed to
every component at startup.

Usage::

    from pointbot.config import load_config

    cfg = load_config()              # reads ./config.yaml, APP_ENV profile
    print(cfg.guild_id)              # 1054296641651347486
    print(cfg.schedules.lotto_draw)  # "0 0 * * 1"
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path

import yaml

PROFILES = ("development", "production")
DEFAULT_PROFILE = "production"

# EasyPoll — the third-party bot whose poll messages earn participation points
DEFAULT_POLL_BOT_ID = 437618149505105920


# ---------------------------------------------------------------------------
# Cron expressions for the scheduled jobs (UTC, 5-field)
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class ScheduleConfig:
    """Cron expressions for every recurring job."""

    exchange_processing: str = "0 0 * * 4"   # Thursday: tickets are sent
    exchange_completed: str = "0 0 * * 5"    # Friday: mark as delivered
    activity_purge: str = "0 0 1 * *"        # 1st of the month
    lotto_draw: str = "0 0 * * 1"            # Monday 00:00
    lotto_settlement: str = "5 0 * * 1"      # Monday 00:05, prior week
    lotto_announcement: str = "0 3 * * 1"    # Monday 03:00, prior week
    uptime_report: str = "0 1 * * *"


# ---------------------------------------------------------------------------
# Typed settings object
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class BotConfig:
    """Immutable configuration for one deployment profile."""

    environment: str

    # Secrets / infrastructure
    discord_token: str
    database_url: str

    # Discord
    guild_id: int               # The only guild the bot serves
    attendance_channel_id: int  # Points, records, exchange, activity feed
    lotto_channel_id: int       # /lotto entries and weekly results

    # Optional
    report_channel_id: int | None = None        # Uptime report target
    announcement_channel_id: int | None = None  # Reactions here earn no "receive" points
    poll_bot_id: int = DEFAULT_POLL_BOT_ID
    launch_date: date = date(2023, 7, 1)
    schedules: ScheduleConfig = field(default_factory=ScheduleConfig)


def _optional_int(raw: dict, key: str) -> int | None:
    value = raw.get(key)
    return int(value) if value else None


def _parse_date(value: object) -> date:
    # PyYAML already turns unquoted ISO dates into ``date`` objects
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value))


def _parse_schedules(raw: dict | None) -> ScheduleConfig:
    if not raw:
        return ScheduleConfig()
    known = set(ScheduleConfig.__dataclass_fields__)
    unknown = set(raw) - known
    if unknown:
        raise KeyError(f"Unknown schedule(s) in config: {', '.join(sorted(unknown))}")
    return ScheduleConfig(**{k: str(v) for k, v in raw.items()})


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------
def load_config(
    path: str | Path | None = None,
    environment: str | None = None,
) -> BotConfig:
    """Read *path* and return the :class:`BotConfig` for the active profile.

    Parameters
    ----------
    path:
        Filesystem path to the YAML configuration file.  Defaults to
        ``$POINTBOT_CONFIG`` or ``config.yaml`` in the working directory.
    environment:
        Profile name.  Defaults to ``$APP_ENV``; anything other than
        ``development`` selects ``production``.

    ``DISCORD_TOKEN`` and ``DATABASE_URL`` in the environment take
    precedence over the values in the file.

    Raises
    ------
    FileNotFoundError
        If the YAML file doesn't exist.
    KeyError
        If the profile or a required key is missing.
    """
    config_path = Path(path or os.getenv("POINTBOT_CONFIG", "config.yaml"))
    if not config_path.exists():
        raise FileNotFoundError(
            f"Configuration file not found: {config_path.resolve()}\n"
            "Hint: copy config.yaml.example → config.yaml and edit it."
        )

    with open(config_path, encoding="utf-8") as fh:
        raw_file: dict = yaml.safe_load(fh) or {}

    env_name = environment or os.getenv("APP_ENV", DEFAULT_PROFILE)
    if env_name not in PROFILES:
        env_name = DEFAULT_PROFILE
    if env_name not in raw_file:
        raise KeyError(f"Profile '{env_name}' missing from {config_path}")
    raw: dict = raw_file[env_name] or {}

    return BotConfig(
        environment=env_name,
        discord_token=os.getenv("DISCORD_TOKEN") or raw["discord_token"],
        database_url=os.getenv("DATABASE_URL") or raw["database_url"],
        guild_id=int(raw["discord_guild"]),
        attendance_channel_id=int(raw["attendance_channel"]),
        lotto_channel_id=int(raw["lotto_channel"]),
        report_channel_id=_optional_int(raw, "report_channel"),
        announcement_channel_id=_optional_int(raw, "announcement_channel"),
        poll_bot_id=int(raw.get("poll_bot_id") or DEFAULT_POLL_BOT_ID),
        launch_date=(
            _parse_date(raw["launch_date"]) if raw.get("launch_date") else date(2023, 7, 1)
        ),
        schedules=_parse_schedules(raw.get("schedules")),
    )
