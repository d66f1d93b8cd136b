"""
lobbywatch.engine.snapshot — Immutable Lobby Snapshots & Destinations
======================================================================

A :class:`LobbySnapshot` is the projection of one ``game_lobbies`` row (with
its slots and join history) as of a single fetch.  Snapshots are frozen:
the reporter replaces a tracked lobby's snapshot wholesale on every refresh
and never mutates one field by field.

Destinations are a closed sum type — :class:`DirectDestination` for a user
DM, :class:`GuildDestination` for a guild text channel — so a destination
with neither form set cannot exist past :func:`destination_from_ids`.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime

from lobbywatch.database.models import (
    GameLobby,
    GameLobbySlot,
    LobbyPlayerJoin,
    LobbyStatus,
    SlotKind,
)

__all__ = [
    "DirectDestination",
    "GuildDestination",
    "Destination",
    "destination_from_ids",
    "JoinSnapshot",
    "SlotSnapshot",
    "LobbySnapshot",
    "LobbyFreshness",
    "as_utc",
]


def as_utc(value: datetime | None) -> datetime | None:
    """Return *value* as an aware UTC datetime (SQLite hands back naive ones)."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


# ---------------------------------------------------------------------------
# Destinations
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class DirectDestination:
    """Direct message to a single Discord user."""

    user_id: int


@dataclass(frozen=True, slots=True)
class GuildDestination:
    """Text channel inside a guild."""

    guild_id: int
    channel_id: int


Destination = DirectDestination | GuildDestination


def destination_from_ids(
    user_id: int | None,
    guild_id: int | None,
    channel_id: int | None,
) -> Destination:
    """Build a destination from the nullable id columns of a row.

    Raises
    ------
    ValueError
        If neither ``user_id`` nor ``guild_id`` + ``channel_id`` is set.
    """
    if user_id:
        return DirectDestination(user_id=int(user_id))
    if guild_id and channel_id:
        return GuildDestination(guild_id=int(guild_id), channel_id=int(channel_id))
    raise ValueError(
        f"invalid destination: user_id={user_id!r} guild_id={guild_id!r} "
        f"channel_id={channel_id!r}"
    )


# ---------------------------------------------------------------------------
# Lobby snapshot
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class JoinSnapshot:
    """One join (and optional leave) of a profile."""

    profile_name: str
    profile_discriminator: int
    joined_at: datetime
    left_at: datetime | None = None

    @property
    def full_name(self) -> str:
        return f"{self.profile_name}#{self.profile_discriminator}"

    @classmethod
    def from_row(cls, row: LobbyPlayerJoin) -> JoinSnapshot:
        return cls(
            profile_name=row.profile.name,
            profile_discriminator=row.profile.discriminator,
            joined_at=as_utc(row.joined_at),
            left_at=as_utc(row.left_at),
        )


@dataclass(frozen=True, slots=True)
class SlotSnapshot:
    """One slot of a lobby.  Compared structurally by the render diff."""

    slot_number: int
    team: int
    kind: SlotKind
    name: str | None = None
    profile_name: str | None = None
    profile_discriminator: int | None = None
    joined_at: datetime | None = None

    @property
    def full_name(self) -> str:
        """``name#1234`` when a profile is linked, the bare slot name otherwise."""
        if self.profile_name is not None:
            return f"{self.profile_name}#{self.profile_discriminator}"
        return self.name or ""

    @classmethod
    def from_row(cls, row: GameLobbySlot) -> SlotSnapshot:
        profile = row.profile
        return cls(
            slot_number=row.slot_number,
            team=row.team,
            kind=SlotKind(row.kind),
            name=row.name,
            profile_name=profile.name if profile else None,
            profile_discriminator=profile.discriminator if profile else None,
            joined_at=as_utc(row.join_info.joined_at) if row.join_info else None,
        )


@dataclass(frozen=True, slots=True)
class LobbySnapshot:
    """Everything the reporter and the renderer need to know about a lobby."""

    id: int
    region_id: int
    region_code: str
    bucket_id: int
    record_id: int
    status: LobbyStatus
    created_at: datetime
    closed_at: datetime | None
    snapshot_updated_at: datetime | None
    slots_updated_at: datetime | None
    map_name: str
    map_bnet_id: int
    map_icon_hash: str | None = None
    ext_mod_name: str | None = None
    variant_mode: str = ""
    title: str | None = None
    host_name: str | None = None
    slots_humans_taken: int = 0
    slots_humans_total: int = 0
    slots: tuple[SlotSnapshot, ...] = ()
    join_history: tuple[JoinSnapshot, ...] = ()

    @property
    def handle(self) -> str:
        """Human-readable handle, e.g. ``EU#4/1872443``."""
        return f"{self.region_code}#{self.bucket_id}/{self.record_id}"

    @property
    def is_open(self) -> bool:
        return self.status is LobbyStatus.OPEN

    def get_slots(
        self,
        *,
        kinds: tuple[SlotKind, ...] | None = None,
        teams: tuple[int, ...] | None = None,
    ) -> list[SlotSnapshot]:
        """Slots filtered by kind and/or team, in slot order."""
        return [
            s for s in self.slots
            if (kinds is None or s.kind in kinds)
            and (teams is None or s.team in teams)
        ]

    @property
    def human_slot_count(self) -> int:
        return len(self.get_slots(kinds=(SlotKind.HUMAN,)))

    def leavers(self) -> list[JoinSnapshot]:
        """Join records of players who already left."""
        return [j for j in self.join_history if j.left_at is not None]

    @classmethod
    def from_row(cls, row: GameLobby) -> LobbySnapshot:
        """Project an ORM row.  Must be called while *row* is session-bound."""
        ext_mod = row.ext_mod_document
        return cls(
            id=row.id,
            region_id=row.region_id,
            region_code=row.region.code,
            bucket_id=row.bnet_bucket_id,
            record_id=row.bnet_record_id,
            status=LobbyStatus(row.status),
            created_at=as_utc(row.created_at),
            closed_at=as_utc(row.closed_at),
            snapshot_updated_at=as_utc(row.snapshot_updated_at),
            slots_updated_at=as_utc(row.slots_updated_at),
            map_name=row.map_document.name,
            map_bnet_id=row.map_document.bnet_id,
            map_icon_hash=row.map_document.icon_hash,
            ext_mod_name=ext_mod.name if ext_mod else None,
            variant_mode=row.map_variant_mode or "",
            title=row.lobby_title,
            host_name=row.host_name,
            slots_humans_taken=row.slots_humans_taken or 0,
            slots_humans_total=row.slots_humans_total or 0,
            slots=tuple(SlotSnapshot.from_row(s) for s in row.slots),
            join_history=tuple(JoinSnapshot.from_row(j) for j in row.join_history),
        )


# ---------------------------------------------------------------------------
# Freshness probe
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class LobbyFreshness:
    """Cheap partial fetch used to decide which lobbies need a full refresh."""

    id: int
    status: LobbyStatus
    snapshot_updated_at: datetime | None
    slots_updated_at: datetime | None
