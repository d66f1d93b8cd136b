"""
lobbywatch.bot.cogs.tasks — Periodic Background Tasks
======================================================

Scheduled jobs that run on ``discord.ext.tasks`` loops:

- **Ledger retention** — daily, removes released lobby messages older than
  ``message_retention_days`` (default 30).

Runs in the bot process via ``run_db()`` so the event loop never blocks.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from discord.ext import commands, tasks

from lobbywatch.database.engine import run_db
from lobbywatch.services.retention_service import prune_completed_messages

if TYPE_CHECKING:
    from lobbywatch.bot.core import LobbywatchBot

logger = logging.getLogger(__name__)


class PeriodicTasks(commands.Cog):
    """Cog for scheduled background maintenance tasks."""

    def __init__(self, bot: LobbywatchBot) -> None:
        self.bot = bot

    async def cog_load(self) -> None:
        self.retention_loop.start()

    async def cog_unload(self) -> None:
        self.retention_loop.cancel()

    # -------------------------------------------------------------------
    # Ledger retention — runs every 24 hours
    # -------------------------------------------------------------------
    @tasks.loop(hours=24)
    async def retention_loop(self):
        """Delete completed lobby messages past the retention window."""
        try:
            deleted = await run_db(
                prune_completed_messages,
                self.bot.engine,
                self.bot.cfg.message_retention_days,
            )
            logger.info("Retention task complete: %d ledger rows deleted", deleted)
        except Exception:
            logger.exception("Retention task failed", extra={"task": "retention"})

    @retention_loop.before_loop
    async def _wait_retention(self):
        await self.bot.wait_until_ready()


async def setup(bot: LobbywatchBot) -> None:
    await bot.add_cog(PeriodicTasks(bot))
