"""
lobbywatch.database.models — SQLAlchemy 2.0 Data Models
========================================================

Tables:
- regions            — Battle.net regions (US, EU, KR, CN)
- map_documents      — Arcade maps and extension mods
- profiles           — Player profiles (name#discriminator)
- game_lobbies       — Lobby rows kept up to date by the ingestion pipeline
- game_lobby_slots   — Fixed-size ordered slot list of a lobby
- lobby_player_joins — Join/leave history of a lobby
- lobby_subscriptions — Discord subscription rules (DM or guild channel)
- lobby_messages     — Ledger of every Discord message posted for a lobby
- stats_periods      — Aggregation windows for map statistics
- stats_period_maps  — Per-map counters for one stats period

The lobby tables are written by the ingestion pipeline; the bot only reads
them.  The bot owns ``lobby_subscriptions.enabled`` and ``lobby_messages``.
"""

from __future__ import annotations

import enum
from datetime import date, datetime

from sqlalchemy import (
    BigInteger,
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    SmallInteger,
    String,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


# ---------------------------------------------------------------------------
# Base
# ---------------------------------------------------------------------------
class Base(DeclarativeBase):
    """Shared base for all lobbywatch ORM models."""


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class LobbyStatus(enum.StrEnum):
    """Lifecycle of a game lobby.  Every status except OPEN is terminal."""
    OPEN = "open"
    STARTED = "started"
    ABANDONED = "abandoned"
    UNKNOWN = "unknown"


class SlotKind(enum.StrEnum):
    """What occupies a lobby slot."""
    OPEN = "open"
    AI = "ai"
    HUMAN = "human"

    @property
    def priority(self) -> int:
        """Display order: humans first, then AI, then open slots."""
        return _SLOT_KIND_PRIORITY[self]


_SLOT_KIND_PRIORITY: dict[SlotKind, int] = {
    SlotKind.HUMAN: 2,
    SlotKind.AI: 1,
    SlotKind.OPEN: 0,
}


# ---------------------------------------------------------------------------
# Regions
# ---------------------------------------------------------------------------
class Region(Base):
    __tablename__ = "regions"

    id: Mapped[int] = mapped_column(SmallInteger, primary_key=True, autoincrement=False)
    code: Mapped[str] = mapped_column(String(4), nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String(32), nullable=False)

    def __repr__(self) -> str:
        return f"<Region id={self.id} code={self.code!r}>"


# ---------------------------------------------------------------------------
# MapDocument — arcade map or extension mod
# ---------------------------------------------------------------------------
class MapDocument(Base):
    __tablename__ = "map_documents"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    region_id: Mapped[int] = mapped_column(
        SmallInteger, ForeignKey("regions.id"), nullable=False
    )
    bnet_id: Mapped[int] = mapped_column(Integer, nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    is_extension_mod: Mapped[bool] = mapped_column(Boolean, default=False)
    icon_hash: Mapped[str | None] = mapped_column(String(64), default=None)

    __table_args__ = (
        UniqueConstraint("region_id", "bnet_id", name="uq_map_documents_region_bnet"),
        Index("ix_map_documents_name", "name"),
    )

    def __repr__(self) -> str:
        return f"<MapDocument id={self.id} name={self.name!r}>"


# ---------------------------------------------------------------------------
# Profile — a Battle.net player profile
# ---------------------------------------------------------------------------
class Profile(Base):
    __tablename__ = "profiles"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    region_id: Mapped[int] = mapped_column(
        SmallInteger, ForeignKey("regions.id"), nullable=False
    )
    realm_id: Mapped[int] = mapped_column(SmallInteger, nullable=False)
    profile_id: Mapped[int] = mapped_column(Integer, nullable=False)
    name: Mapped[str] = mapped_column(String(64), nullable=False)
    discriminator: Mapped[int] = mapped_column(Integer, default=0)

    __table_args__ = (
        UniqueConstraint(
            "region_id", "realm_id", "profile_id", name="uq_profiles_handle",
        ),
        Index("ix_profiles_name", "name", "discriminator"),
    )

    def __repr__(self) -> str:
        return f"<Profile id={self.id} name={self.name!r}#{self.discriminator}>"


# ---------------------------------------------------------------------------
# GameLobby — one public lobby as last seen by the ingestion pipeline
# ---------------------------------------------------------------------------
class GameLobby(Base):
    __tablename__ = "game_lobbies"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    region_id: Mapped[int] = mapped_column(
        SmallInteger, ForeignKey("regions.id"), nullable=False
    )
    bnet_bucket_id: Mapped[int] = mapped_column(Integer, nullable=False)
    bnet_record_id: Mapped[int] = mapped_column(Integer, nullable=False)

    status: Mapped[str] = mapped_column(
        String(16), nullable=False, default=LobbyStatus.OPEN.value
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    closed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=None)
    snapshot_updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), default=None
    )
    slots_updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), default=None
    )

    map_document_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("map_documents.id"), nullable=False
    )
    ext_mod_document_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("map_documents.id"), nullable=True
    )
    map_variant_index: Mapped[int] = mapped_column(SmallInteger, default=0)
    map_variant_mode: Mapped[str] = mapped_column(String(64), default="")

    lobby_title: Mapped[str | None] = mapped_column(String(128), default=None)
    host_name: Mapped[str | None] = mapped_column(String(64), default=None)
    slots_humans_taken: Mapped[int] = mapped_column(SmallInteger, default=0)
    slots_humans_total: Mapped[int] = mapped_column(SmallInteger, default=0)

    # Relationships
    region: Mapped[Region] = relationship()
    map_document: Mapped[MapDocument] = relationship(foreign_keys=[map_document_id])
    ext_mod_document: Mapped[MapDocument | None] = relationship(
        foreign_keys=[ext_mod_document_id]
    )
    slots: Mapped[list[GameLobbySlot]] = relationship(
        back_populates="lobby",
        cascade="all, delete-orphan",
        order_by="GameLobbySlot.slot_number",
    )
    join_history: Mapped[list[LobbyPlayerJoin]] = relationship(
        back_populates="lobby",
        cascade="all, delete-orphan",
        order_by="LobbyPlayerJoin.joined_at",
    )

    __table_args__ = (
        UniqueConstraint(
            "region_id", "bnet_bucket_id", "bnet_record_id",
            name="uq_game_lobbies_handle",
        ),
        Index("ix_game_lobbies_status", "status"),
    )

    def __repr__(self) -> str:
        return (
            f"<GameLobby id={self.id} "
            f"handle={self.region_id}/{self.bnet_bucket_id}/{self.bnet_record_id} "
            f"status={self.status!r}>"
        )


# ---------------------------------------------------------------------------
# LobbyPlayerJoin — one join (and optional leave) of a player
# ---------------------------------------------------------------------------
class LobbyPlayerJoin(Base):
    __tablename__ = "lobby_player_joins"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    lobby_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("game_lobbies.id", ondelete="CASCADE"), nullable=False
    )
    profile_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("profiles.id"), nullable=False
    )
    joined_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    left_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=None)

    lobby: Mapped[GameLobby] = relationship(back_populates="join_history")
    profile: Mapped[Profile] = relationship()

    __table_args__ = (
        Index("ix_lobby_player_joins_lobby", "lobby_id"),
    )

    def __repr__(self) -> str:
        return f"<LobbyPlayerJoin lobby={self.lobby_id} profile={self.profile_id}>"


# ---------------------------------------------------------------------------
# GameLobbySlot — fixed-size ordered slot list
# ---------------------------------------------------------------------------
class GameLobbySlot(Base):
    __tablename__ = "game_lobby_slots"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    lobby_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("game_lobbies.id", ondelete="CASCADE"), nullable=False
    )
    slot_number: Mapped[int] = mapped_column(SmallInteger, nullable=False)
    team: Mapped[int] = mapped_column(SmallInteger, nullable=False)
    kind: Mapped[str] = mapped_column(String(8), nullable=False, default=SlotKind.OPEN.value)
    name: Mapped[str | None] = mapped_column(String(64), default=None)
    profile_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("profiles.id"), nullable=True
    )
    join_info_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("lobby_player_joins.id", ondelete="SET NULL"), nullable=True
    )

    lobby: Mapped[GameLobby] = relationship(back_populates="slots")
    profile: Mapped[Profile | None] = relationship()
    join_info: Mapped[LobbyPlayerJoin | None] = relationship()

    __table_args__ = (
        UniqueConstraint("lobby_id", "slot_number", name="uq_game_lobby_slots_number"),
    )

    def __repr__(self) -> str:
        return f"<GameLobbySlot lobby={self.lobby_id} #{self.slot_number} kind={self.kind!r}>"


# ---------------------------------------------------------------------------
# LobbySubscription — a rule that posts matching lobbies to Discord
# ---------------------------------------------------------------------------
class LobbySubscription(Base):
    """Subscription rule.

    Destination is either a DM (``user_id``) or a guild text channel
    (``guild_id`` + ``channel_id``), never both.
    """
    __tablename__ = "lobby_subscriptions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    enabled: Mapped[bool] = mapped_column(Boolean, default=True)

    user_id: Mapped[int | None] = mapped_column(BigInteger, default=None)
    guild_id: Mapped[int | None] = mapped_column(BigInteger, default=None)
    channel_id: Mapped[int | None] = mapped_column(BigInteger, default=None)

    map_name: Mapped[str] = mapped_column(String(255), nullable=False)
    is_map_name_partial: Mapped[bool] = mapped_column(Boolean, default=False)
    is_map_name_regex: Mapped[bool] = mapped_column(Boolean, default=False)
    variant: Mapped[str | None] = mapped_column(String(64), default=None)
    region_id: Mapped[int | None] = mapped_column(
        SmallInteger, ForeignKey("regions.id"), nullable=True
    )

    time_delay: Mapped[int | None] = mapped_column(Integer, default=None)  # seconds
    human_slots_min: Mapped[int | None] = mapped_column(SmallInteger, default=None)

    delete_message_started: Mapped[bool] = mapped_column(Boolean, default=False)
    delete_message_abandoned: Mapped[bool] = mapped_column(Boolean, default=False)
    show_leavers: Mapped[bool] = mapped_column(Boolean, default=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        CheckConstraint(
            "(user_id IS NOT NULL AND guild_id IS NULL AND channel_id IS NULL) OR "
            "(user_id IS NULL AND guild_id IS NOT NULL AND channel_id IS NOT NULL)",
            name="ck_lobby_subscriptions_destination",
        ),
        Index("ix_lobby_subscriptions_enabled", "enabled"),
    )

    def __repr__(self) -> str:
        return f"<LobbySubscription id={self.id} map={self.map_name!r} enabled={self.enabled}>"


# ---------------------------------------------------------------------------
# LobbyMessage — ledger of posted Discord messages
# ---------------------------------------------------------------------------
class LobbyMessage(Base):
    """One Discord message rendering a lobby.

    ``rule_id`` is NULL for messages bound manually by the ``lobby`` command.
    Rows are created after a successful send and flipped to
    ``completed=True`` once the bot stops maintaining the message.
    """
    __tablename__ = "lobby_messages"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    lobby_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("game_lobbies.id", ondelete="CASCADE"), nullable=False
    )
    rule_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("lobby_subscriptions.id", ondelete="SET NULL"), nullable=True
    )
    user_id: Mapped[int | None] = mapped_column(BigInteger, default=None)
    guild_id: Mapped[int | None] = mapped_column(BigInteger, default=None)
    channel_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    message_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    completed: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    rule: Mapped[LobbySubscription | None] = relationship()

    __table_args__ = (
        Index("ix_lobby_messages_completed", "completed", "updated_at"),
        Index("ix_lobby_messages_lobby", "lobby_id"),
    )

    def __repr__(self) -> str:
        return (
            f"<LobbyMessage id={self.id} lobby={self.lobby_id} "
            f"msg={self.message_id} completed={self.completed}>"
        )


# ---------------------------------------------------------------------------
# Map statistics
# ---------------------------------------------------------------------------
class StatsPeriod(Base):
    __tablename__ = "stats_periods"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    date_from: Mapped[date] = mapped_column(Date, nullable=False)
    length: Mapped[int] = mapped_column(SmallInteger, nullable=False)  # days
    completed: Mapped[bool] = mapped_column(Boolean, default=False)

    __table_args__ = (
        UniqueConstraint("date_from", "length", name="uq_stats_periods_window"),
    )

    def __repr__(self) -> str:
        return f"<StatsPeriod id={self.id} from={self.date_from} len={self.length}>"


class StatsPeriodMap(Base):
    __tablename__ = "stats_period_maps"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    period_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("stats_periods.id", ondelete="CASCADE"), nullable=False
    )
    document_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("map_documents.id", ondelete="CASCADE"), nullable=False
    )
    lobbies_hosted: Mapped[int] = mapped_column(Integer, default=0)
    lobbies_started: Mapped[int] = mapped_column(Integer, default=0)
    participants_total: Mapped[int] = mapped_column(Integer, default=0)
    participants_unique_total: Mapped[int] = mapped_column(Integer, default=0)
    pending_time_average: Mapped[float] = mapped_column(Float, default=0.0)

    period: Mapped[StatsPeriod] = relationship()
    document: Mapped[MapDocument] = relationship()

    __table_args__ = (
        UniqueConstraint("period_id", "document_id", name="uq_stats_period_maps"),
    )

    def __repr__(self) -> str:
        return f"<StatsPeriodMap period={self.period_id} doc={self.document_id}>"
