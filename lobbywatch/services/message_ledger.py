"""
lobbywatch.services.message_ledger — Posted-Message Ledger
===========================================================

Durable record of every Discord message the bot maintains for a lobby
(``lobby_messages``).  It is the recovery log: on startup the reporter
reloads every row with ``completed = false`` and resumes editing them.

The reporter only ever inserts rows and flips them to completed; physical
deletion of old completed rows is the job of
:mod:`lobbywatch.services.retention_service`.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime

from sqlalchemy import Engine, select, update
from sqlalchemy.orm import joinedload

from lobbywatch.database.engine import get_session
from lobbywatch.database.models import LobbyMessage
from lobbywatch.engine.rules import SubscriptionRule
from lobbywatch.engine.snapshot import (
    Destination,
    DirectDestination,
    GuildDestination,
    destination_from_ids,
)
from lobbywatch.engine.tracking import PostedMessage

logger = logging.getLogger(__name__)


def destination_columns(destination: Destination) -> dict[str, int | None]:
    """``user_id`` / ``guild_id`` column values for *destination*."""
    match destination:
        case DirectDestination(user_id=user_id):
            return {"user_id": user_id, "guild_id": None}
        case GuildDestination(guild_id=guild_id):
            return {"user_id": None, "guild_id": guild_id}
    raise TypeError(f"unsupported destination {destination!r}")


def insert_posted_message(
    engine: Engine,
    *,
    lobby_id: int,
    rule_id: int | None,
    destination: Destination,
    channel_id: int,
    message_id: int,
) -> int:
    """Record a freshly sent (or manually bound) message; return the row id."""
    with get_session(engine) as session:
        row = LobbyMessage(
            lobby_id=lobby_id,
            rule_id=rule_id,
            channel_id=channel_id,
            message_id=message_id,
            completed=False,
            **destination_columns(destination),
        )
        session.add(row)
        session.flush()
        return row.id


def release_posted_message(engine: Engine, ledger_id: int) -> None:
    """Mark a message as no longer maintained."""
    with get_session(engine) as session:
        session.execute(
            update(LobbyMessage)
            .where(LobbyMessage.id == ledger_id)
            .values(completed=True, updated_at=datetime.now(UTC))
        )


def load_pending_messages(engine: Engine) -> list[PostedMessage]:
    """Every ``completed = false`` row, with its rule when it has one.

    Rules are attached even when they have since been disabled: a message
    keeps following its rule's retirement policy until released.
    """
    with get_session(engine) as session:
        rows = session.scalars(
            select(LobbyMessage)
            .options(joinedload(LobbyMessage.rule))
            .where(LobbyMessage.completed.is_(False))
            .order_by(LobbyMessage.id)
        ).all()
        return [
            PostedMessage(
                id=row.id,
                lobby_id=row.lobby_id,
                destination=destination_from_ids(row.user_id, row.guild_id, row.channel_id),
                channel_id=row.channel_id,
                message_id=row.message_id,
                rule=SubscriptionRule.from_row(row.rule) if row.rule else None,
            )
            for row in rows
        ]
