"""
lobbywatch.services.lobby_repository — Lobby Store Queries
===========================================================

Read access to lobby rows and read/disable access to subscription rules.
Every function is **synchronous** and takes the engine as first argument so
async callers can ship it through :func:`~lobbywatch.database.engine.run_db`.

ORM rows never leave the session: lobbies come back as
:class:`~lobbywatch.engine.snapshot.LobbySnapshot`, rules as
:class:`~lobbywatch.engine.rules.SubscriptionRule`.
"""

from __future__ import annotations

import logging
from collections.abc import Collection

from sqlalchemy import Engine, Select, func, or_, select, update
from sqlalchemy.orm import aliased, joinedload, selectinload

from lobbywatch.database.engine import get_session
from lobbywatch.database.models import (
    GameLobby,
    GameLobbySlot,
    LobbyPlayerJoin,
    LobbyStatus,
    LobbySubscription,
    MapDocument,
    Profile,
)
from lobbywatch.engine.rules import SubscriptionRule
from lobbywatch.engine.snapshot import LobbyFreshness, LobbySnapshot, as_utc
from lobbywatch.services.lobby_query import LobbyQuery, LobbyQueryMethod

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Detailed select — everything a snapshot needs, eagerly loaded
# ---------------------------------------------------------------------------
def detailed_lobby_select() -> Select[tuple[GameLobby]]:
    """``SELECT`` over lobbies with region, map/mod, slots and join history."""
    return select(GameLobby).options(
        joinedload(GameLobby.region),
        joinedload(GameLobby.map_document),
        joinedload(GameLobby.ext_mod_document),
        selectinload(GameLobby.slots).options(
            joinedload(GameLobbySlot.profile),
            joinedload(GameLobbySlot.join_info),
        ),
        selectinload(GameLobby.join_history).joinedload(LobbyPlayerJoin.profile),
    )


# ---------------------------------------------------------------------------
# Lobby reads
# ---------------------------------------------------------------------------
def fetch_lobbies_by_id(engine: Engine, ids: Collection[int]) -> list[LobbySnapshot]:
    """Full detail for every lobby in *ids* (missing ids are skipped)."""
    if not ids:
        return []
    with get_session(engine) as session:
        rows = session.scalars(
            detailed_lobby_select().where(GameLobby.id.in_(list(ids)))
        ).unique().all()
        return [LobbySnapshot.from_row(row) for row in rows]


def fetch_lobby_freshness(engine: Engine, ids: Collection[int]) -> list[LobbyFreshness]:
    """Id, status and the two update timestamps of every lobby in *ids*."""
    if not ids:
        return []
    with get_session(engine) as session:
        rows = session.execute(
            select(
                GameLobby.id,
                GameLobby.status,
                GameLobby.snapshot_updated_at,
                GameLobby.slots_updated_at,
            ).where(GameLobby.id.in_(list(ids)))
        ).all()
        return [
            LobbyFreshness(
                id=row.id,
                status=LobbyStatus(row.status),
                snapshot_updated_at=as_utc(row.snapshot_updated_at),
                slots_updated_at=as_utc(row.slots_updated_at),
            )
            for row in rows
        ]


def fetch_open_lobbies_excluding(
    engine: Engine, ids: Collection[int]
) -> list[LobbySnapshot]:
    """Full detail for every open lobby whose id is not in *ids*."""
    stmt = detailed_lobby_select().where(GameLobby.status == LobbyStatus.OPEN.value)
    if ids:
        stmt = stmt.where(GameLobby.id.not_in(list(ids)))
    with get_session(engine) as session:
        rows = session.scalars(stmt.order_by(GameLobby.id)).unique().all()
        return [LobbySnapshot.from_row(row) for row in rows]


# ---------------------------------------------------------------------------
# Subscription rules
# ---------------------------------------------------------------------------
def fetch_enabled_rules(engine: Engine) -> list[SubscriptionRule]:
    """Every ``enabled = true`` subscription rule."""
    with get_session(engine) as session:
        rows = session.scalars(
            select(LobbySubscription)
            .where(LobbySubscription.enabled.is_(True))
            .order_by(LobbySubscription.id)
        ).all()
        return [SubscriptionRule.from_row(row) for row in rows]


def disable_rule(engine: Engine, rule_id: int) -> None:
    """Flip ``enabled`` off for a rule."""
    with get_session(engine) as session:
        session.execute(
            update(LobbySubscription)
            .where(LobbySubscription.id == rule_id)
            .values(enabled=False)
        )
    logger.info("Disabled subscription rule #%d", rule_id)


# ---------------------------------------------------------------------------
# `lobby` command lookups
# ---------------------------------------------------------------------------
def find_lobby_ids(engine: Engine, query: LobbyQuery, limit: int = 1) -> list[int]:
    """Ids of lobbies matching *query*, newest first.

    Handle lookups match any status; every other method only matches open
    lobbies.
    """
    stmt = select(GameLobby.id)

    if query.method is LobbyQueryMethod.LOBBY_HANDLE:
        stmt = stmt.where(
            GameLobby.region_id == query.region_id,
            GameLobby.bnet_bucket_id == query.bucket_id,
            GameLobby.bnet_record_id == query.record_id,
        )
    else:
        stmt = stmt.where(GameLobby.status == LobbyStatus.OPEN.value)

    if query.method is LobbyQueryMethod.DOCUMENT_LINK:
        map_doc = aliased(MapDocument)
        mod_doc = aliased(MapDocument)
        stmt = (
            stmt.join(map_doc, GameLobby.map_document_id == map_doc.id)
            .outerjoin(mod_doc, GameLobby.ext_mod_document_id == mod_doc.id)
            .where(
                GameLobby.region_id == query.region_id,
                or_(map_doc.bnet_id == query.document_id, mod_doc.bnet_id == query.document_id),
            )
        )
    elif query.method is LobbyQueryMethod.MAP_NAME:
        stmt = stmt.join(
            MapDocument, GameLobby.map_document_id == MapDocument.id
        ).where(func.lower(MapDocument.name) == query.name.lower())
    elif query.method is LobbyQueryMethod.MOD_NAME:
        stmt = stmt.join(
            MapDocument, GameLobby.ext_mod_document_id == MapDocument.id
        ).where(func.lower(MapDocument.name) == query.name.lower())
    elif query.method is LobbyQueryMethod.PLAYER_NAME:
        stmt = stmt.join(GameLobbySlot, GameLobbySlot.lobby_id == GameLobby.id).where(
            GameLobbySlot.name == query.name
        )
    elif query.method is LobbyQueryMethod.PLAYER_BATTLETAG:
        stmt = (
            stmt.join(GameLobbySlot, GameLobbySlot.lobby_id == GameLobby.id)
            .join(Profile, GameLobbySlot.profile_id == Profile.id)
            .where(Profile.name == query.name, Profile.discriminator == query.discriminator)
        )

    stmt = stmt.distinct().order_by(GameLobby.id.desc()).limit(limit)
    with get_session(engine) as session:
        return list(session.scalars(stmt).all())
