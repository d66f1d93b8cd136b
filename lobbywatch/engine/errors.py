"""
lobbywatch.engine.errors — Delivery Error Taxonomy
===================================================

Every failure talking to Discord is mapped onto a closed set of
:class:`DeliveryErrorKind` values by :func:`classify_delivery_error`.  The
reporter only ever branches on the kind, never on raw discord.py exception
types or JSON error codes.

Kinds and what the reporter does with them:

=====================  ===================================================
``UNKNOWN_CHANNEL``    destination gone → disable rule / release message
``UNKNOWN_MESSAGE``    message deleted externally → release message
``MISSING_ACCESS``     access revoked → release message; rule probation
``MISSING_PERMISSIONS`` cannot post → rule probation
``TRANSIENT``          5xx, rate limit, network → retried next tick
``OTHER``              logged, dropped
=====================  ===================================================
"""

from __future__ import annotations

import asyncio
import enum

import aiohttp
import discord

__all__ = [
    "DeliveryErrorKind",
    "DeliveryError",
    "classify_delivery_error",
    "DiscordErrorCode",
]


class DiscordErrorCode(enum.IntEnum):
    """JSON error codes returned by the Discord API that we care about."""
    UNKNOWN_CHANNEL = 10003
    UNKNOWN_GUILD = 10004
    UNKNOWN_MESSAGE = 10008
    UNKNOWN_USER = 10013
    MISSING_ACCESS = 50001
    CANNOT_SEND_MESSAGES_TO_USER = 50007
    MISSING_PERMISSIONS = 50013


class DeliveryErrorKind(enum.StrEnum):
    UNKNOWN_CHANNEL = "unknown_channel"
    UNKNOWN_MESSAGE = "unknown_message"
    MISSING_ACCESS = "missing_access"
    MISSING_PERMISSIONS = "missing_permissions"
    TRANSIENT = "transient"
    OTHER = "other"


_CODE_KINDS: dict[int, DeliveryErrorKind] = {
    DiscordErrorCode.UNKNOWN_CHANNEL: DeliveryErrorKind.UNKNOWN_CHANNEL,
    DiscordErrorCode.UNKNOWN_GUILD: DeliveryErrorKind.UNKNOWN_CHANNEL,
    DiscordErrorCode.UNKNOWN_USER: DeliveryErrorKind.UNKNOWN_CHANNEL,
    DiscordErrorCode.UNKNOWN_MESSAGE: DeliveryErrorKind.UNKNOWN_MESSAGE,
    DiscordErrorCode.MISSING_ACCESS: DeliveryErrorKind.MISSING_ACCESS,
    DiscordErrorCode.CANNOT_SEND_MESSAGES_TO_USER: DeliveryErrorKind.MISSING_PERMISSIONS,
    DiscordErrorCode.MISSING_PERMISSIONS: DeliveryErrorKind.MISSING_PERMISSIONS,
}


class DeliveryError(Exception):
    """A classified failure of a send/edit/fetch/delete call."""

    def __init__(self, kind: DeliveryErrorKind, message: str = "") -> None:
        super().__init__(message or kind.value)
        self.kind = kind

    def __repr__(self) -> str:
        return f"<DeliveryError kind={self.kind.value!r} message={str(self)!r}>"

    @classmethod
    def wrap(cls, exc: BaseException) -> DeliveryError:
        """Build a :class:`DeliveryError` from a raw transport exception."""
        error = cls(classify_delivery_error(exc), str(exc))
        error.__cause__ = exc
        return error


def classify_delivery_error(exc: BaseException) -> DeliveryErrorKind:
    """Map a raw discord.py / aiohttp exception onto the taxonomy.  Pure."""
    if isinstance(exc, DeliveryError):
        return exc.kind
    if isinstance(exc, discord.HTTPException):
        kind = _CODE_KINDS.get(exc.code)
        if kind is not None:
            return kind
        if isinstance(exc, discord.DiscordServerError) or exc.status >= 500 or exc.status == 429:
            return DeliveryErrorKind.TRANSIENT
        return DeliveryErrorKind.OTHER
    if isinstance(exc, (discord.RateLimited, discord.GatewayNotFound)):
        return DeliveryErrorKind.TRANSIENT
    if isinstance(exc, (aiohttp.ClientError, asyncio.TimeoutError)):
        return DeliveryErrorKind.TRANSIENT
    return DeliveryErrorKind.OTHER
