"""
lobbywatch.services.message_surface — Discord Message Gateway
==============================================================

Thin wrapper around a ``discord.Client`` exposing exactly what the lobby
reporter needs: resolve a destination to a sendable channel, then send,
fetch, edit and delete messages in it.

Every raw discord.py / aiohttp failure is re-raised as a
:class:`~lobbywatch.engine.errors.DeliveryError` carrying its classified
kind, so callers never branch on transport exception types.
"""

from __future__ import annotations

import asyncio
import logging

import aiohttp
import discord

from lobbywatch.engine.errors import DeliveryError, DeliveryErrorKind
from lobbywatch.engine.snapshot import Destination, DirectDestination, GuildDestination

logger = logging.getLogger(__name__)

SendableChannel = discord.TextChannel | discord.Thread | discord.DMChannel

_TRANSPORT_ERRORS = (discord.DiscordException, aiohttp.ClientError, asyncio.TimeoutError)


class DiscordMessageSurface:
    """Message Surface Gateway backed by a live ``discord.Client``."""

    def __init__(self, client: discord.Client) -> None:
        self.client = client

    # -------------------------------------------------------------------
    # Destination resolution
    # -------------------------------------------------------------------
    async def resolve(self, destination: Destination) -> SendableChannel | None:
        """Sendable channel for *destination*, or ``None`` when it is gone.

        Raises :class:`DeliveryError` for failures that don't prove the
        destination is gone (network, 5xx).
        """
        match destination:
            case DirectDestination(user_id=user_id):
                return await self._resolve_dm(user_id)
            case GuildDestination(guild_id=guild_id, channel_id=channel_id):
                return self._resolve_guild_channel(guild_id, channel_id)
        raise ValueError(f"unsupported destination {destination!r}")

    async def _resolve_dm(self, user_id: int) -> discord.DMChannel | None:
        try:
            user = self.client.get_user(user_id) or await self.client.fetch_user(user_id)
            return user.dm_channel or await user.create_dm()
        except (discord.NotFound, discord.Forbidden) as exc:
            logger.warning("Couldn't open a DM with user %d: %s", user_id, exc)
            return None
        except _TRANSPORT_ERRORS as exc:
            raise DeliveryError.wrap(exc) from exc

    def _resolve_guild_channel(
        self, guild_id: int, channel_id: int
    ) -> discord.TextChannel | discord.Thread | None:
        guild = self.client.get_guild(guild_id)
        if guild is None:
            logger.warning("Guild %d doesn't exist (or bot was removed)", guild_id)
            return None
        channel = guild.get_channel_or_thread(channel_id)
        if channel is None:
            logger.warning("Channel %d doesn't exist in guild %d", channel_id, guild_id)
            return None
        if not isinstance(channel, (discord.TextChannel, discord.Thread)):
            logger.warning(
                "Channel %d in guild %d has unsupported type %s",
                channel_id, guild_id, channel.type,
            )
            return None
        return channel

    @staticmethod
    def destination_of(channel: discord.abc.Messageable) -> Destination:
        """Destination a message living in *channel* should be recorded under."""
        if isinstance(channel, discord.DMChannel):
            if channel.recipient is None:
                raise ValueError(f"DM channel {channel.id} has no known recipient")
            return DirectDestination(user_id=channel.recipient.id)
        if isinstance(channel, (discord.TextChannel, discord.Thread)):
            return GuildDestination(guild_id=channel.guild.id, channel_id=channel.id)
        raise TypeError(f"unsupported channel type {type(channel).__name__}")

    # -------------------------------------------------------------------
    # Message operations
    # -------------------------------------------------------------------
    async def send(self, channel: SendableChannel, embed: discord.Embed) -> discord.Message:
        try:
            return await channel.send(embed=embed)
        except _TRANSPORT_ERRORS as exc:
            raise DeliveryError.wrap(exc) from exc

    async def fetch(self, channel: SendableChannel, message_id: int) -> discord.Message | None:
        """The message, or ``None`` when it no longer exists."""
        try:
            return await channel.fetch_message(message_id)
        except discord.NotFound:
            return None
        except _TRANSPORT_ERRORS as exc:
            raise DeliveryError.wrap(exc) from exc

    async def edit(self, message: discord.Message, embed: discord.Embed) -> None:
        try:
            await message.edit(content=None, embed=embed)
        except _TRANSPORT_ERRORS as exc:
            raise DeliveryError.wrap(exc) from exc

    async def delete(self, message: discord.Message) -> None:
        try:
            await message.delete()
        except _TRANSPORT_ERRORS as exc:
            raise DeliveryError.wrap(exc) from exc


def is_gone(error: DeliveryError) -> bool:
    """Whether *error* proves the target message can no longer be maintained."""
    return error.kind in (
        DeliveryErrorKind.UNKNOWN_MESSAGE,
        DeliveryErrorKind.UNKNOWN_CHANNEL,
        DeliveryErrorKind.MISSING_ACCESS,
    )
