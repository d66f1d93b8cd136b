"""
lobbywatch.bot.core — Bot Instance & Cog Loader
================================================

Defines :class:`LobbywatchBot`, a ``commands.Bot`` subclass that:

1. Stores the shared config (``bot.cfg``) and DB engine (``bot.engine``)
   so every Cog can access them via ``self.bot.cfg`` / ``self.bot.engine``.
2. Loads every Cog listed in :data:`EXTENSIONS`.
3. Syncs the slash-command tree on startup (guild-scoped for dev, global
   for production — controlled by the ``DEV_GUILD_ID`` env var).

The :class:`~lobbywatch.services.lobby_reporter.LobbyReporter` itself is
owned by the reporter cog and published as ``bot.lobby_reporter`` so the
``lobby`` command can bind its replies to lobbies.
"""

from __future__ import annotations

import logging
import os

import discord
from discord.ext import commands
from sqlalchemy import Engine

from lobbywatch.config import LobbywatchConfig
from lobbywatch.services.lobby_reporter import LobbyReporter

logger = logging.getLogger(__name__)

EXTENSIONS: list[str] = [
    "lobbywatch.bot.cogs.reporter",
    "lobbywatch.bot.cogs.lobby",
    "lobbywatch.bot.cogs.tasks",
]


class LobbywatchBot(commands.Bot):
    """Custom Bot subclass that carries project-wide state.

    Parameters
    ----------
    cfg:
        The parsed :class:`LobbywatchConfig` from ``config.yaml``.
    engine:
        A SQLAlchemy :class:`Engine` connected to the lobby store.
    """

    def __init__(self, cfg: LobbywatchConfig, engine: Engine) -> None:
        # Privileged intents (must enable in Developer Portal):
        #   MESSAGE_CONTENT: prefix form of the `lobby` command
        intents = discord.Intents.default()
        intents.message_content = True    # Privileged: prefix commands
        intents.presences = False         # Explicitly disabled: too expensive

        super().__init__(
            command_prefix=commands.when_mentioned_or(cfg.bot_prefix),
            intents=intents,
            description="StarCraft II arcade lobby notifications",
        )

        self.cfg = cfg
        self.engine = engine

        # Set by the reporter cog once its rule cache and ledger are loaded
        self.lobby_reporter: LobbyReporter | None = None

    # -----------------------------------------------------------------------
    # Lifecycle hooks
    # -----------------------------------------------------------------------
    async def setup_hook(self) -> None:
        """Load all Cog extensions.  One broken Cog doesn't stop the others."""
        for ext in EXTENSIONS:
            try:
                await self.load_extension(ext)
                logger.info("Loaded extension: %s", ext)
            except Exception as exc:
                logger.error("Failed to load extension %s: %s", ext, exc)

    async def on_ready(self) -> None:
        """Fired when the bot has connected and the cache is populated."""
        assert self.user is not None  # guaranteed after on_ready
        logger.info(
            "Logged in as %s (ID: %s), guilds=%d",
            self.user.name, self.user.id, len(self.guilds),
        )

        dev_guild_id = os.getenv("DEV_GUILD_ID")
        if dev_guild_id:
            guild = discord.Object(id=int(dev_guild_id))
            self.tree.copy_global_to(guild=guild)
            synced = await self.tree.sync(guild=guild)
            logger.info("Synced %d commands to dev guild %s", len(synced), dev_guild_id)
        else:
            synced = await self.tree.sync()
            logger.info("Synced %d commands globally", len(synced))

    async def close(self) -> None:
        """Graceful shutdown — unloading the reporter cog stops its loop."""
        logger.info("Bot shutting down...")
        await super().close()
