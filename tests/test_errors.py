"""
tests/test_errors.py — Delivery Error Classification
=====================================================
"""

from __future__ import annotations

import asyncio
from unittest.mock import MagicMock

import aiohttp
import discord
import pytest

from lobbywatch.engine.errors import (
    DeliveryError,
    DeliveryErrorKind,
    DiscordErrorCode,
    classify_delivery_error,
)


def http_error(
    status: int, code: int = 0, cls: type[discord.HTTPException] = discord.HTTPException
) -> discord.HTTPException:
    response = MagicMock()
    response.status = status
    response.reason = "reason"
    return cls(response, {"code": code, "message": "boom"})


class TestClassifyDeliveryError:

    @pytest.mark.parametrize(
        ("code", "kind"),
        [
            (DiscordErrorCode.UNKNOWN_CHANNEL, DeliveryErrorKind.UNKNOWN_CHANNEL),
            (DiscordErrorCode.UNKNOWN_GUILD, DeliveryErrorKind.UNKNOWN_CHANNEL),
            (DiscordErrorCode.UNKNOWN_MESSAGE, DeliveryErrorKind.UNKNOWN_MESSAGE),
            (DiscordErrorCode.MISSING_ACCESS, DeliveryErrorKind.MISSING_ACCESS),
            (DiscordErrorCode.MISSING_PERMISSIONS, DeliveryErrorKind.MISSING_PERMISSIONS),
            (DiscordErrorCode.CANNOT_SEND_MESSAGES_TO_USER, DeliveryErrorKind.MISSING_PERMISSIONS),
        ],
    )
    def test_json_codes(self, code, kind):
        assert classify_delivery_error(http_error(403, code, discord.Forbidden)) is kind

    def test_server_error_is_transient(self):
        assert classify_delivery_error(
            http_error(503, cls=discord.DiscordServerError)
        ) is DeliveryErrorKind.TRANSIENT

    def test_rate_limit_is_transient(self):
        assert classify_delivery_error(http_error(429)) is DeliveryErrorKind.TRANSIENT

    def test_network_errors_are_transient(self):
        assert classify_delivery_error(aiohttp.ClientConnectionError()) is DeliveryErrorKind.TRANSIENT
        assert classify_delivery_error(asyncio.TimeoutError()) is DeliveryErrorKind.TRANSIENT

    def test_unmapped_http_error_is_other(self):
        assert classify_delivery_error(http_error(400, 50035)) is DeliveryErrorKind.OTHER

    def test_foreign_exception_is_other(self):
        assert classify_delivery_error(RuntimeError("x")) is DeliveryErrorKind.OTHER


class TestDeliveryError:

    def test_wrap_keeps_cause_and_kind(self):
        raw = http_error(404, DiscordErrorCode.UNKNOWN_MESSAGE, discord.NotFound)
        error = DeliveryError.wrap(raw)
        assert error.kind is DeliveryErrorKind.UNKNOWN_MESSAGE
        assert error.__cause__ is raw

    def test_wrapping_twice_keeps_kind(self):
        error = DeliveryError(DeliveryErrorKind.MISSING_ACCESS)
        assert DeliveryError.wrap(error).kind is DeliveryErrorKind.MISSING_ACCESS
        assert str(error) == "missing_access"
