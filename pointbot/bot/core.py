"""
pointbot.bot.core — Bot Instance & Cog Loader
==============================================

Defines :class:`PointBot`, a ``commands.Bot`` subclass that:

1. Stores the shared config (``bot.cfg``) and DB engine (``bot.engine``)
   so every Cog can reach them via ``self.bot.cfg`` / ``self.bot.engine``.
2. Loads every Cog listed in :data:`EXTENSIONS`.
3. Syncs the slash-command tree to the configured guild on startup.
4. Serves exactly one guild: any other guild is left on ready and on join.
"""

from __future__ import annotations

import logging

import discord
from discord.ext import commands
from sqlalchemy import Engine

from pointbot.config import BotConfig

logger = logging.getLogger(__name__)

# Cog modules to load on startup
EXTENSIONS: list[str] = [
    "pointbot.bot.cogs.points",
    "pointbot.bot.cogs.reactions",
    "pointbot.bot.cogs.exchange",
    "pointbot.bot.cogs.lotto",
    "pointbot.bot.cogs.tasks",
]


class PointBot(commands.Bot):
    """Custom Bot subclass that carries project-wide state.

    Parameters
    ----------
    cfg:
        The parsed :class:`BotConfig` for the active profile.
    engine:
        A SQLAlchemy :class:`Engine` shared by all cogs and jobs.
    """

    def __init__(self, cfg: BotConfig, engine: Engine) -> None:
        # MESSAGE_CONTENT is privileged and must be enabled in the Developer
        # Portal; the ``!`` text commands need it.
        intents = discord.Intents.default()
        intents.message_content = True
        intents.presences = False

        super().__init__(
            command_prefix=commands.when_mentioned,
            intents=intents,
            help_command=None,
        )

        self.cfg = cfg
        self.engine = engine

    # -----------------------------------------------------------------------
    # Lifecycle hooks
    # -----------------------------------------------------------------------
    async def setup_hook(self) -> None:
        """Load all Cog extensions before connecting.

        A Cog that fails to load is logged and skipped.
        """
        for ext in EXTENSIONS:
            try:
                await self.load_extension(ext)
                logger.info("Loaded extension: %s", ext)
            except Exception as exc:
                logger.error("Failed to load extension %s: %s", ext, exc)

    async def on_ready(self) -> None:
        """Fired when the bot has connected and the cache is populated."""
        assert self.user is not None  # guaranteed after on_ready
        logger.info("Logged in as %s (ID: %s)", self.user.name, self.user.id)

        await self._leave_foreign_guilds()

        guild = discord.Object(id=self.cfg.guild_id)
        self.tree.copy_global_to(guild=guild)
        synced = await self.tree.sync(guild=guild)
        logger.info("Synced %d commands to guild %s", len(synced), self.cfg.guild_id)

    async def on_guild_join(self, guild: discord.Guild) -> None:
        if guild.id != self.cfg.guild_id:
            await self._leave(guild)

    async def close(self) -> None:
        """Graceful shutdown; cogs stop their own background tasks on unload."""
        logger.info("Bot shutting down…")
        await super().close()

    # -----------------------------------------------------------------------
    # Guild filtering
    # -----------------------------------------------------------------------
    def is_home_guild(self, guild_id: int | None) -> bool:
        return guild_id == self.cfg.guild_id

    async def _leave_foreign_guilds(self) -> None:
        for guild in list(self.guilds):
            if guild.id != self.cfg.guild_id:
                await self._leave(guild)

    async def _leave(self, guild: discord.Guild) -> None:
        try:
            await guild.leave()
            logger.warning("Left unauthorized guild %s (ID: %d)", guild.name, guild.id)
        except discord.HTTPException:
            logger.exception("Failed to leave guild %d", guild.id)
