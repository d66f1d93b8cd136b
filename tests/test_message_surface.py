"""
tests/test_message_surface.py — Discord Message Gateway
========================================================
Mocks ``discord.Client`` and channels; no network.
"""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import discord
import pytest

from conftest import run_async
from lobbywatch.engine.errors import DeliveryError, DeliveryErrorKind, DiscordErrorCode
from lobbywatch.engine.snapshot import DirectDestination, GuildDestination
from lobbywatch.services.message_surface import DiscordMessageSurface, is_gone


def _http_error(cls, status: int, code: int) -> discord.HTTPException:
    response = MagicMock()
    response.status = status
    response.reason = "reason"
    return cls(response, {"code": code, "message": "boom"})


def _text_channel(channel_id: int = 200, guild_id: int = 100) -> MagicMock:
    channel = MagicMock(spec=discord.TextChannel)
    channel.id = channel_id
    channel.guild = MagicMock()
    channel.guild.id = guild_id
    channel.send = AsyncMock()
    channel.fetch_message = AsyncMock()
    return channel


class TestResolve:

    def test_guild_channel(self):
        channel = _text_channel()
        guild = MagicMock()
        guild.get_channel_or_thread.return_value = channel
        client = MagicMock()
        client.get_guild.return_value = guild

        surface = DiscordMessageSurface(client)
        assert run_async(surface.resolve(GuildDestination(100, 200))) is channel
        guild.get_channel_or_thread.assert_called_once_with(200)

    def test_missing_guild_or_channel(self):
        client = MagicMock()
        client.get_guild.return_value = None
        surface = DiscordMessageSurface(client)
        assert run_async(surface.resolve(GuildDestination(100, 200))) is None

        guild = MagicMock()
        guild.get_channel_or_thread.return_value = None
        client.get_guild.return_value = guild
        assert run_async(surface.resolve(GuildDestination(100, 200))) is None

    def test_voice_channel_is_unsupported(self):
        guild = MagicMock()
        guild.get_channel_or_thread.return_value = MagicMock(spec=discord.VoiceChannel)
        client = MagicMock()
        client.get_guild.return_value = guild
        surface = DiscordMessageSurface(client)
        assert run_async(surface.resolve(GuildDestination(100, 200))) is None

    def test_dm_uses_cached_user(self):
        dm = MagicMock(spec=discord.DMChannel)
        user = MagicMock()
        user.dm_channel = dm
        client = MagicMock()
        client.get_user.return_value = user
        surface = DiscordMessageSurface(client)
        assert run_async(surface.resolve(DirectDestination(7))) is dm

    def test_dm_fetches_unknown_user(self):
        dm = MagicMock(spec=discord.DMChannel)
        user = MagicMock()
        user.dm_channel = None
        user.create_dm = AsyncMock(return_value=dm)
        client = MagicMock()
        client.get_user.return_value = None
        client.fetch_user = AsyncMock(return_value=user)
        surface = DiscordMessageSurface(client)
        assert run_async(surface.resolve(DirectDestination(7))) is dm
        client.fetch_user.assert_awaited_once_with(7)

    def test_dm_to_deleted_user_is_gone(self):
        client = MagicMock()
        client.get_user.return_value = None
        client.fetch_user = AsyncMock(
            side_effect=_http_error(discord.NotFound, 404, DiscordErrorCode.UNKNOWN_USER)
        )
        surface = DiscordMessageSurface(client)
        assert run_async(surface.resolve(DirectDestination(7))) is None

    def test_dm_server_error_raises(self):
        client = MagicMock()
        client.get_user.return_value = None
        client.fetch_user = AsyncMock(
            side_effect=_http_error(discord.DiscordServerError, 502, 0)
        )
        surface = DiscordMessageSurface(client)
        with pytest.raises(DeliveryError) as info:
            run_async(surface.resolve(DirectDestination(7)))
        assert info.value.kind is DeliveryErrorKind.TRANSIENT


class TestDestinationOf:

    def test_text_channel(self):
        channel = _text_channel(200, 100)
        assert DiscordMessageSurface.destination_of(channel) == GuildDestination(100, 200)

    def test_dm_channel(self):
        channel = MagicMock(spec=discord.DMChannel)
        channel.recipient = MagicMock()
        channel.recipient.id = 7
        assert DiscordMessageSurface.destination_of(channel) == DirectDestination(7)

    def test_unsupported(self):
        with pytest.raises(TypeError):
            DiscordMessageSurface.destination_of(MagicMock(spec=discord.VoiceChannel))


class TestMessageOperations:

    def test_send_wraps_forbidden(self):
        channel = _text_channel()
        channel.send.side_effect = _http_error(
            discord.Forbidden, 403, DiscordErrorCode.MISSING_PERMISSIONS
        )
        surface = DiscordMessageSurface(MagicMock())
        with pytest.raises(DeliveryError) as info:
            run_async(surface.send(channel, discord.Embed(title="x")))
        assert info.value.kind is DeliveryErrorKind.MISSING_PERMISSIONS

    def test_fetch_missing_message(self):
        channel = _text_channel()
        channel.fetch_message.side_effect = _http_error(
            discord.NotFound, 404, DiscordErrorCode.UNKNOWN_MESSAGE
        )
        surface = DiscordMessageSurface(MagicMock())
        assert run_async(surface.fetch(channel, 1)) is None

    def test_edit_clears_content(self):
        message = MagicMock()
        message.edit = AsyncMock()
        embed = discord.Embed(title="x")
        run_async(DiscordMessageSurface(MagicMock()).edit(message, embed))
        message.edit.assert_awaited_once_with(content=None, embed=embed)


class TestIsGone:

    @pytest.mark.parametrize(
        ("kind", "gone"),
        [
            (DeliveryErrorKind.UNKNOWN_MESSAGE, True),
            (DeliveryErrorKind.UNKNOWN_CHANNEL, True),
            (DeliveryErrorKind.MISSING_ACCESS, True),
            (DeliveryErrorKind.MISSING_PERMISSIONS, False),
            (DeliveryErrorKind.TRANSIENT, False),
        ],
    )
    def test_kinds(self, kind, gone):
        assert is_gone(DeliveryError(kind)) is gone
