"""
lobbywatch.api.routes.lobbies — Lobby details
==============================================
"""

from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from lobbywatch.api.deps import get_session
from lobbywatch.database.models import (
    GameLobby,
    GameLobbySlot,
    LobbyPlayerJoin,
    MapDocument,
    Profile,
)
from lobbywatch.engine.snapshot import as_utc
from lobbywatch.services.lobby_repository import detailed_lobby_select

router = APIRouter(tags=["lobbies"])


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def _iso(value: datetime | None) -> str | None:
    value = as_utc(value)
    return value.isoformat() if value else None


def _document_dict(doc: MapDocument | None) -> dict | None:
    if doc is None:
        return None
    return {
        "region_id": doc.region_id,
        "bnet_id": doc.bnet_id,
        "name": doc.name,
        "is_extension_mod": doc.is_extension_mod,
        "icon_hash": doc.icon_hash,
    }


def _profile_dict(profile: Profile | None) -> dict | None:
    if profile is None:
        return None
    return {
        "region_id": profile.region_id,
        "realm_id": profile.realm_id,
        "profile_id": profile.profile_id,
        "name": profile.name,
        "discriminator": profile.discriminator,
    }


def _join_dict(join: LobbyPlayerJoin | None) -> dict | None:
    if join is None:
        return None
    return {
        "profile": _profile_dict(join.profile),
        "joined_at": _iso(join.joined_at),
        "left_at": _iso(join.left_at),
    }


def _slot_dict(slot: GameLobbySlot) -> dict:
    return {
        "slot_number": slot.slot_number,
        "team": slot.team,
        "kind": slot.kind,
        "name": slot.name,
        "profile": _profile_dict(slot.profile),
        "join_info": _join_dict(slot.join_info),
    }


def _lobby_dict(lobby: GameLobby) -> dict:
    return {
        "id": lobby.id,
        "region_id": lobby.region_id,
        "bnet_bucket_id": lobby.bnet_bucket_id,
        "bnet_record_id": lobby.bnet_record_id,
        "status": lobby.status,
        "created_at": _iso(lobby.created_at),
        "closed_at": _iso(lobby.closed_at),
        "snapshot_updated_at": _iso(lobby.snapshot_updated_at),
        "slots_updated_at": _iso(lobby.slots_updated_at),
        "map_document": _document_dict(lobby.map_document),
        "ext_mod_document": _document_dict(lobby.ext_mod_document),
        "map_variant_index": lobby.map_variant_index,
        "map_variant_mode": lobby.map_variant_mode,
        "lobby_title": lobby.lobby_title,
        "host_name": lobby.host_name,
        "slots_humans_taken": lobby.slots_humans_taken,
        "slots_humans_total": lobby.slots_humans_total,
        "slots": [_slot_dict(s) for s in lobby.slots],
        "join_history": [_join_dict(j) for j in lobby.join_history],
    }


# ---------------------------------------------------------------------------
# GET /lobbies/{region_id}/{bucket_id}/{record_id}
# ---------------------------------------------------------------------------
@router.get("/lobbies/{region_id}/{bucket_id}/{record_id}")
def get_lobby(
    region_id: int,
    bucket_id: int,
    record_id: int,
    session: Session = Depends(get_session),
):
    """Full detail of one lobby, addressed by its Battle.net handle."""
    lobby = session.scalars(
        detailed_lobby_select().where(
            GameLobby.region_id == region_id,
            GameLobby.bnet_bucket_id == bucket_id,
            GameLobby.bnet_record_id == record_id,
        )
    ).unique().first()
    if lobby is None:
        raise HTTPException(status.HTTP_404_NOT_FOUND, "Lobby not found")
    return _lobby_dict(lobby)
