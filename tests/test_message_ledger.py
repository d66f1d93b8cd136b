"""
tests/test_message_ledger.py — Posted-Message Ledger & Retention
=================================================================
"""

from __future__ import annotations

from datetime import timedelta

from sqlalchemy import update
from sqlalchemy.orm import Session

from conftest import NOW, make_lobby, make_rule
from lobbywatch.database.models import LobbyMessage
from lobbywatch.engine.snapshot import DirectDestination, GuildDestination
from lobbywatch.services.lobby_repository import disable_rule
from lobbywatch.services.message_ledger import (
    destination_columns,
    insert_posted_message,
    load_pending_messages,
    release_posted_message,
)
from lobbywatch.services.retention_service import prune_completed_messages


def _insert(engine, lobby_id, rule_id=None, destination=None, message_id=900) -> int:
    return insert_posted_message(
        engine,
        lobby_id=lobby_id,
        rule_id=rule_id,
        destination=destination or GuildDestination(guild_id=100, channel_id=200),
        channel_id=200,
        message_id=message_id,
    )


class TestMessageLedger:

    def test_destination_columns(self):
        assert destination_columns(DirectDestination(5)) == {"user_id": 5, "guild_id": None}
        assert destination_columns(GuildDestination(1, 2)) == {"user_id": None, "guild_id": 1}

    def test_pending_round_trip(self, db_engine):
        lobby_id = make_lobby(db_engine)
        rule_id = make_rule(db_engine)
        ledger_id = _insert(db_engine, lobby_id, rule_id)

        (posted,) = load_pending_messages(db_engine)
        assert posted.id == ledger_id
        assert posted.lobby_id == lobby_id
        assert posted.destination == GuildDestination(guild_id=100, channel_id=200)
        assert posted.rule.id == rule_id

    def test_dm_message_without_rule(self, db_engine):
        lobby_id = make_lobby(db_engine)
        _insert(db_engine, lobby_id, destination=DirectDestination(user_id=77))
        (posted,) = load_pending_messages(db_engine)
        assert posted.rule is None
        assert posted.destination == DirectDestination(user_id=77)

    def test_disabled_rule_still_attached(self, db_engine):
        lobby_id = make_lobby(db_engine)
        rule_id = make_rule(db_engine, delete_message_started=True)
        _insert(db_engine, lobby_id, rule_id)
        disable_rule(db_engine, rule_id)
        (posted,) = load_pending_messages(db_engine)
        assert posted.rule.delete_on_started

    def test_release(self, db_engine):
        lobby_id = make_lobby(db_engine)
        ledger_id = _insert(db_engine, lobby_id)
        release_posted_message(db_engine, ledger_id)
        assert load_pending_messages(db_engine) == []


class TestRetention:

    def _age(self, engine, ledger_id, days):
        with Session(engine) as session:
            session.execute(
                update(LobbyMessage)
                .where(LobbyMessage.id == ledger_id)
                .values(updated_at=NOW - timedelta(days=days))
            )
            session.commit()

    def test_prunes_only_old_completed_rows(self, db_engine):
        lobby_id = make_lobby(db_engine)
        old_done = _insert(db_engine, lobby_id, message_id=1)
        fresh_done = _insert(db_engine, lobby_id, message_id=2)
        old_live = _insert(db_engine, lobby_id, message_id=3)
        release_posted_message(db_engine, old_done)
        release_posted_message(db_engine, fresh_done)
        self._age(db_engine, old_done, 31)
        self._age(db_engine, fresh_done, 29)
        self._age(db_engine, old_live, 31)

        assert prune_completed_messages(db_engine, 30, now=NOW) == 1
        with Session(db_engine) as session:
            remaining = {row.id for row in session.query(LobbyMessage)}
        assert remaining == {fresh_done, old_live}

    def test_zero_days_disables(self, db_engine):
        lobby_id = make_lobby(db_engine)
        ledger_id = _insert(db_engine, lobby_id)
        release_posted_message(db_engine, ledger_id)
        self._age(db_engine, ledger_id, 365)
        assert prune_completed_messages(db_engine, 0, now=NOW) == 0
