"""
lobbywatch.bot.cogs.reporter — Lobby Reporter Lifecycle
========================================================

Owns the :class:`~lobbywatch.services.lobby_reporter.LobbyReporter`:

- **cog_load** builds it around a :class:`DiscordMessageSurface` and starts
  a background task that waits for the gateway cache, loads rules and
  restores live messages, then runs the tick loop.
- **cog_unload** (also reached through ``bot.close()``) signals shutdown and
  lets the current tick finish.

A crashed loop is logged and stays down until the cog is reloaded.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import timedelta
from typing import TYPE_CHECKING

from discord.ext import commands

from lobbywatch.services.lobby_reporter import LobbyReporter
from lobbywatch.services.message_surface import DiscordMessageSurface

if TYPE_CHECKING:
    from lobbywatch.bot.core import LobbywatchBot

logger = logging.getLogger(__name__)

# How long cog_unload waits for the in-flight tick
SHUTDOWN_TIMEOUT_SECONDS = 15


class Reporter(commands.Cog):
    """Runs the lobby reconciliation loop inside the bot process."""

    def __init__(self, bot: LobbywatchBot) -> None:
        self.bot = bot
        cfg = bot.cfg
        self.reporter = LobbyReporter(
            bot.engine,
            DiscordMessageSurface(bot),
            tick_interval=cfg.tick_interval_seconds,
            grace=timedelta(seconds=cfg.closed_grace_seconds),
            probation=timedelta(minutes=cfg.rule_probation_minutes),
        )
        self._task: asyncio.Task | None = None

    async def cog_load(self) -> None:
        self._task = asyncio.create_task(self._run(), name="lobby-reporter")

    async def cog_unload(self) -> None:
        self.reporter.shutdown()
        self.bot.lobby_reporter = None
        if self._task is None or self._task.done():
            return
        try:
            await asyncio.wait_for(self._task, timeout=SHUTDOWN_TIMEOUT_SECONDS)
        except asyncio.TimeoutError:
            logger.warning(
                "Lobby reporter didn't stop within %ds, cancelled", SHUTDOWN_TIMEOUT_SECONDS
            )

    async def _run(self) -> None:
        # Destination resolution needs the guild cache
        await self.bot.wait_until_ready()
        try:
            await self.reporter.load()
            self.bot.lobby_reporter = self.reporter
            await self.reporter.run()
        except Exception:
            logger.exception("Lobby reporter crashed, tracked=%d", len(self.reporter.tracked))
        finally:
            self.bot.lobby_reporter = None


async def setup(bot: LobbywatchBot) -> None:
    await bot.add_cog(Reporter(bot))
