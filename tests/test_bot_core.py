"""
tests/test_bot_core.py — Bot Construction
==========================================
"""

from __future__ import annotations

from unittest.mock import MagicMock

from lobbywatch.bot.core import LobbywatchBot
from lobbywatch.config import LobbywatchConfig


def _make_bot(prefix: str = ".") -> LobbywatchBot:
    return LobbywatchBot(LobbywatchConfig(bot_prefix=prefix, api_port=8000), MagicMock())


class TestIntents:

    def test_message_content_enabled_for_prefix_commands(self):
        assert _make_bot().intents.message_content is True

    def test_presences_disabled(self):
        assert _make_bot().intents.presences is False


class TestState:

    def test_carries_config_and_engine(self):
        bot = _make_bot("!")
        assert bot.cfg.bot_prefix == "!"
        assert bot.engine is not None
        assert bot.lobby_reporter is None
