"""
tests/conftest.py — Shared Test Fixtures
=========================================
"""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime, timedelta

import pytest
from sqlalchemy import BigInteger, Engine, create_engine, update
from sqlalchemy.ext.compiler import compiles
from sqlalchemy.orm import Session
from sqlalchemy.pool import StaticPool

from lobbywatch.database.models import (
    Base,
    GameLobby,
    GameLobbySlot,
    LobbyPlayerJoin,
    LobbyStatus,
    LobbySubscription,
    MapDocument,
    Profile,
    SlotKind,
)
from lobbywatch.database.seed import seed_regions
from lobbywatch.engine.rules import MapNameMode, SubscriptionRule
from lobbywatch.engine.snapshot import GuildDestination, LobbySnapshot, SlotSnapshot

# Fixed wall clock shared by the reporter tests
NOW = datetime(2026, 10, 17, 12, 0, 0, tzinfo=UTC)


# ---------------------------------------------------------------------------
# BigInteger → INTEGER so autoincrement works on SQLite.
# ---------------------------------------------------------------------------
@compiles(BigInteger, "sqlite")
def _compile_bigint_as_integer(type_, compiler, **kw):
    return "INTEGER"


def run_async(coro):
    """Run a coroutine to completion without pytest-asyncio."""
    loop = asyncio.new_event_loop()
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


@pytest.fixture
def db_engine() -> Engine:
    """In-memory SQLite engine with all Lobbywatch tables and regions seeded.

    Uses StaticPool so all threads share the same in-memory database
    (required by ``asyncio.to_thread`` used in ``run_db``).
    """
    engine = create_engine(
        "sqlite://",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    seed_regions(engine)
    return engine


@pytest.fixture
def db_session(db_engine: Engine):
    """Provide a transactional session that rolls back after each test."""
    with Session(db_engine) as session:
        yield session
        session.rollback()


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------
_record_ids = iter(range(1_000, 10_000_000))


def make_map(
    engine: Engine,
    name: str = "Direct Strike",
    *,
    region_id: int = 2,
    bnet_id: int | None = None,
    is_extension_mod: bool = False,
    icon_hash: str | None = "abc123",
) -> int:
    """Return the id of the map document called *name*, creating it if needed."""
    with Session(engine) as session:
        doc = session.query(MapDocument).filter_by(name=name, region_id=region_id).first()
        if doc is None:
            doc = MapDocument(
                region_id=region_id,
                bnet_id=bnet_id if bnet_id is not None else next(_record_ids),
                name=name,
                is_extension_mod=is_extension_mod,
                icon_hash=icon_hash,
            )
            session.add(doc)
            session.commit()
        return doc.id


def make_profile(
    engine: Engine, name: str, discriminator: int = 1234, *, region_id: int = 2
) -> int:
    with Session(engine) as session:
        profile = Profile(
            region_id=region_id,
            realm_id=1,
            profile_id=next(_record_ids),
            name=name,
            discriminator=discriminator,
        )
        session.add(profile)
        session.commit()
        return profile.id


def make_lobby(
    engine: Engine,
    *,
    map_name: str = "Direct Strike",
    ext_mod_name: str | None = None,
    region_id: int = 2,
    bucket_id: int = 4,
    record_id: int | None = None,
    status: str = "open",
    created_at: datetime = NOW,
    closed_at: datetime | None = None,
    variant_mode: str = "",
    title: str | None = None,
    host_name: str | None = None,
    humans: tuple[str, ...] = (),
    open_slots: int = 2,
    team_count: int = 1,
) -> int:
    """Insert a lobby with *humans* in the first slots, then *open_slots* open ones."""
    map_id = make_map(engine, map_name, region_id=region_id)
    mod_id = (
        make_map(engine, ext_mod_name, region_id=region_id, is_extension_mod=True)
        if ext_mod_name else None
    )
    with Session(engine) as session:
        lobby = GameLobby(
            region_id=region_id,
            bnet_bucket_id=bucket_id,
            bnet_record_id=record_id if record_id is not None else next(_record_ids),
            status=status,
            created_at=created_at,
            closed_at=closed_at,
            snapshot_updated_at=created_at,
            slots_updated_at=created_at,
            map_document_id=map_id,
            ext_mod_document_id=mod_id,
            map_variant_mode=variant_mode,
            lobby_title=title,
            host_name=host_name,
            slots_humans_taken=len(humans),
            slots_humans_total=len(humans) + open_slots,
        )
        total = len(humans) + open_slots
        kinds = [SlotKind.HUMAN] * len(humans) + [SlotKind.OPEN] * open_slots
        names = list(humans) + [None] * open_slots
        for number, (kind, name) in enumerate(zip(kinds, names), start=1):
            lobby.slots.append(GameLobbySlot(
                slot_number=number,
                team=(number - 1) * team_count // max(total, 1) + 1,
                kind=kind.value,
                name=name,
            ))
        session.add(lobby)
        session.commit()
        return lobby.id


def update_lobby(engine: Engine, lobby_id: int, **values) -> None:
    with Session(engine) as session:
        session.execute(update(GameLobby).where(GameLobby.id == lobby_id).values(**values))
        session.commit()


def set_slot(
    engine: Engine,
    lobby_id: int,
    slot_number: int,
    *,
    kind: SlotKind,
    name: str | None = None,
    profile_id: int | None = None,
    touched_at: datetime | None = None,
) -> None:
    """Change one slot and bump ``slots_updated_at`` like the ingestion pipeline does."""
    with Session(engine) as session:
        session.execute(
            update(GameLobbySlot)
            .where(GameLobbySlot.lobby_id == lobby_id, GameLobbySlot.slot_number == slot_number)
            .values(kind=kind.value, name=name, profile_id=profile_id)
        )
        lobby = session.get(GameLobby, lobby_id)
        humans = session.query(GameLobbySlot).filter_by(
            lobby_id=lobby_id, kind=SlotKind.HUMAN.value
        ).count()
        lobby.slots_humans_taken = humans
        lobby.slots_updated_at = touched_at or (lobby.slots_updated_at + timedelta(seconds=1))
        session.commit()


def add_join(
    engine: Engine,
    lobby_id: int,
    profile_id: int,
    joined_at: datetime,
    left_at: datetime | None = None,
) -> int:
    with Session(engine) as session:
        join = LobbyPlayerJoin(
            lobby_id=lobby_id, profile_id=profile_id, joined_at=joined_at, left_at=left_at,
        )
        session.add(join)
        session.commit()
        return join.id


def make_rule(
    engine: Engine,
    map_name: str = "Direct Strike",
    *,
    user_id: int | None = None,
    guild_id: int | None = 100,
    channel_id: int | None = 200,
    created_at: datetime = NOW - timedelta(days=1),
    **values,
) -> int:
    """Insert an enabled subscription rule (guild channel 100/200 by default)."""
    if user_id is not None:
        guild_id = channel_id = None
    with Session(engine) as session:
        rule = LobbySubscription(
            map_name=map_name,
            user_id=user_id,
            guild_id=guild_id,
            channel_id=channel_id,
            created_at=created_at,
            **values,
        )
        session.add(rule)
        session.commit()
        return rule.id


@pytest.fixture
def client(db_engine: Engine):
    """FastAPI TestClient wired to the SQLite test engine."""
    from fastapi.testclient import TestClient

    from lobbywatch.api.deps import get_engine
    from lobbywatch.api.main import app

    app.dependency_overrides[get_engine] = lambda: db_engine
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# In-memory snapshots (no database)
# ---------------------------------------------------------------------------
def make_snapshot(**overrides) -> LobbySnapshot:
    """A two-slot open EU lobby of "Direct Strike"; override any field."""
    values = dict(
        id=1,
        region_id=2,
        region_code="EU",
        bucket_id=4,
        record_id=1872443,
        status=LobbyStatus.OPEN,
        created_at=NOW,
        closed_at=None,
        snapshot_updated_at=NOW,
        slots_updated_at=NOW,
        map_name="Direct Strike",
        map_bnet_id=208271,
        map_icon_hash="abc123",
        slots=(
            SlotSnapshot(slot_number=1, team=1, kind=SlotKind.HUMAN, name="Alice"),
            SlotSnapshot(slot_number=2, team=1, kind=SlotKind.OPEN),
        ),
    )
    values.update(overrides)
    return LobbySnapshot(**values)


def make_subscription(rule_id: int = 1, **overrides) -> SubscriptionRule:
    """An enabled guild-channel rule for "Direct Strike" created a day before NOW."""
    values = dict(
        id=rule_id,
        destination=GuildDestination(guild_id=100, channel_id=200),
        map_name="Direct Strike",
        name_mode=MapNameMode.EXACT,
        created_at=NOW - timedelta(days=1),
    )
    values.update(overrides)
    return SubscriptionRule(**values)
