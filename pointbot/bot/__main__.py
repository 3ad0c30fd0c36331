"""
pointbot.bot.__main__ — Entry point for ``python -m pointbot.bot``
==================================================================

Wiring:
1. Load .env (secrets).
2. Load config.yaml (profile chosen by ``APP_ENV``).
3. Create the SQLAlchemy engine, check it, and ensure tables exist.
4. Make sure the running ISO week has a lotto draw.
5. Create the PointBot and hand it config + engine.
6. Start the bot (blocking — runs the asyncio event loop).

Run with::

    python -m pointbot.bot      # or the ``pointbot`` console script
"""

from __future__ import annotations

import logging
import sys

from dotenv import load_dotenv

from pointbot.bot.core import PointBot
from pointbot.config import load_config
from pointbot.database.engine import check_connection, create_db_engine, init_db
from pointbot.services.lotto_service import upsert_weekly_draw

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s │ %(levelname)-8s │ %(name)s │ %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger("pointbot")


def main() -> None:
    """Bootstrap and run the bot."""

    # 1. Environment variables (secrets).
    load_dotenv()

    # 2. Configuration.
    try:
        cfg = load_config()
    except (FileNotFoundError, KeyError, ValueError) as exc:
        logger.critical("Invalid configuration: %s", exc)
        sys.exit(1)

    if not cfg.discord_token or cfg.discord_token == "your-discord-bot-token-here":
        logger.critical(
            "DISCORD_TOKEN is not set.  "
            "Copy .env.example → .env and paste your bot token."
        )
        sys.exit(1)
    logger.info("Config loaded — profile: %s, guild: %d", cfg.environment, cfg.guild_id)

    # 3. Database.
    try:
        engine = create_db_engine(cfg.database_url)
        check_connection(engine)
        init_db(engine)
    except Exception:
        logger.critical("Database is unreachable", exc_info=True)
        sys.exit(1)

    # 4. This week's lotto draw (idempotent).
    if upsert_weekly_draw(engine):
        logger.info("Created the lotto draw for the current week")

    # 5. Bot.
    bot = PointBot(cfg=cfg, engine=engine)

    # 6. Run (blocks until Ctrl+C or SIGTERM).
    logger.info("Starting pointbot…")
    try:
        bot.run(cfg.discord_token, log_handler=None)
    except KeyboardInterrupt:
        logger.info("Shutting down gracefully…")


if __name__ == "__main__":
    main()
