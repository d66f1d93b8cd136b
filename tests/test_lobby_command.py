"""
tests/test_lobby_command.py — `lobby` Lookup Command
=====================================================
Calls the command callback directly with a mocked bot and context.
"""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

from conftest import run_async
from lobbywatch.bot.cogs.lobby import Lobby


async def _inline_run_db(func, *args, **kwargs):
    return func(*args, **kwargs)


def _make_bot(reporter=None, attempts: int = 3) -> MagicMock:
    bot = MagicMock()
    bot.lobby_reporter = reporter
    bot.cfg.lookup_attempts = attempts
    bot.engine = MagicMock()
    return bot


def _make_ctx() -> MagicMock:
    ctx = MagicMock()
    ctx.author.id = 42
    ctx.send = AsyncMock(return_value=MagicMock(edit=AsyncMock()))
    return ctx


def _invoke(cog: Lobby, ctx, query: str) -> None:
    run_async(Lobby.lobby.callback(cog, ctx, query=query))


class TestLobbyCommand:

    def test_invalid_query_replies_with_examples(self):
        ctx = _make_ctx()
        _invoke(Lobby(_make_bot(reporter=MagicMock())), ctx, "nonsense")
        embed = ctx.send.await_args.kwargs["embed"]
        assert embed.title == "Invalid query"
        assert ctx.send.await_args.kwargs["ephemeral"] is True

    def test_reporter_not_ready(self):
        ctx = _make_ctx()
        _invoke(Lobby(_make_bot(reporter=None)), ctx, "map Direct Strike")
        assert "starting up" in ctx.send.await_args.args[0]

    def test_binds_first_match(self):
        reporter = MagicMock()
        reporter.bind_message_with_lobby = AsyncMock()
        ctx = _make_ctx()
        finder = MagicMock(side_effect=[[], [17]])

        with patch("lobbywatch.bot.cogs.lobby.run_db", _inline_run_db), \
             patch("lobbywatch.bot.cogs.lobby.find_lobby_ids", finder), \
             patch("lobbywatch.bot.cogs.lobby.asyncio.sleep", AsyncMock()):
            _invoke(Lobby(_make_bot(reporter)), ctx, "map Direct Strike")

        placeholder = ctx.send.return_value
        reporter.bind_message_with_lobby.assert_awaited_once_with(placeholder, 17)
        assert finder.call_count == 2
        placeholder.edit.assert_not_awaited()

    def test_not_found_after_all_attempts(self):
        reporter = MagicMock()
        reporter.bind_message_with_lobby = AsyncMock()
        ctx = _make_ctx()
        finder = MagicMock(return_value=[])

        with patch("lobbywatch.bot.cogs.lobby.run_db", _inline_run_db), \
             patch("lobbywatch.bot.cogs.lobby.find_lobby_ids", finder), \
             patch("lobbywatch.bot.cogs.lobby.asyncio.sleep", AsyncMock()):
            _invoke(Lobby(_make_bot(reporter, attempts=3)), ctx, "player Bob#1234")

        assert finder.call_count == 3
        reporter.bind_message_with_lobby.assert_not_awaited()
        embed = ctx.send.return_value.edit.await_args.kwargs["embed"]
        assert embed.title == "Lobby not found"
