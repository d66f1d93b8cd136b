"""
lobbywatch.bot.cogs.lobby — Lobby Lookup & Invite Commands
===========================================================

Hybrid commands:
- /lobby <query> — find an open lobby and turn the reply into a live post
- /invite — OAuth2 link to add the bot to a server
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

import discord
from discord import app_commands
from discord.ext import commands

from lobbywatch.constants import INVITE_PERMISSIONS
from lobbywatch.database.engine import run_db
from lobbywatch.services.embeds import (
    build_lookup_not_found_embed,
    build_lookup_pending_embed,
    build_query_error_embed,
)
from lobbywatch.services.lobby_query import QUERY_EXAMPLES, parse_query
from lobbywatch.services.lobby_repository import find_lobby_ids

if TYPE_CHECKING:
    from lobbywatch.bot.core import LobbywatchBot

logger = logging.getLogger(__name__)

# Delay between two store polls of a lookup
LOOKUP_POLL_SECONDS = 1.0


class Lobby(commands.Cog, name="Lobby"):
    """Ad-hoc lobby lookups."""

    def __init__(self, bot: LobbywatchBot) -> None:
        self.bot = bot

    # -------------------------------------------------------------------
    # /lobby
    # -------------------------------------------------------------------
    @commands.hybrid_command(  # type: ignore[arg-type]
        name="lobby",
        description="Find a lobby and keep a live message about it.",
    )
    @commands.guild_only()
    @commands.cooldown(5, 60, commands.BucketType.user)
    @app_commands.describe(query="e.g. `map Direct Strike`, `player Name#1234`, `id 2/4/1872443`")
    async def lobby(self, ctx: commands.Context, *, query: str) -> None:
        parsed = parse_query(query)
        if isinstance(parsed, str):
            await ctx.send(embed=build_query_error_embed(parsed, QUERY_EXAMPLES), ephemeral=True)
            return

        reporter = self.bot.lobby_reporter
        if reporter is None:
            await ctx.send(
                "\u23f3 Lobby tracking is still starting up, try again in a moment.",
                ephemeral=True,
            )
            return

        placeholder = await ctx.send(embed=build_lookup_pending_embed(query))
        attempts = self.bot.cfg.lookup_attempts
        for attempt in range(attempts):
            lobby_ids = await run_db(find_lobby_ids, self.bot.engine, parsed)
            if lobby_ids:
                tracked = await reporter.bind_message_with_lobby(placeholder, lobby_ids[0])
                if tracked is not None:
                    logger.info(
                        "Bound lookup %r by user %d to lobby %s after %d attempt(s)",
                        query, ctx.author.id, tracked.lobby.handle, attempt + 1,
                    )
                    return
            await asyncio.sleep(LOOKUP_POLL_SECONDS)

        await placeholder.edit(embed=build_lookup_not_found_embed(query, attempts))

    # -------------------------------------------------------------------
    # /invite
    # -------------------------------------------------------------------
    @commands.hybrid_command(  # type: ignore[arg-type]
        name="invite",
        description="Get a link to add the bot to your server.",
    )
    async def invite(self, ctx: commands.Context) -> None:
        assert self.bot.user is not None
        url = discord.utils.oauth_url(
            self.bot.user.id,
            permissions=discord.Permissions(INVITE_PERMISSIONS),
            scopes=("bot",),
        )
        await ctx.send(url, ephemeral=True)

    # -------------------------------------------------------------------
    # Error replies
    # -------------------------------------------------------------------
    async def cog_command_error(self, ctx: commands.Context, error: Exception) -> None:
        if isinstance(error, commands.CommandOnCooldown):
            await ctx.send(
                f"Slow down, try again in {error.retry_after:.0f}s.", ephemeral=True
            )
        elif isinstance(error, commands.NoPrivateMessage):
            await ctx.send("This command only works in a server.", ephemeral=True)
        elif isinstance(error, commands.MissingRequiredArgument):
            await ctx.send(
                embed=build_query_error_embed("Missing query", QUERY_EXAMPLES), ephemeral=True
            )
        else:
            logger.error("Command %s failed", ctx.command, exc_info=error)


async def setup(bot: LobbywatchBot) -> None:
    await bot.add_cog(Lobby(bot))
