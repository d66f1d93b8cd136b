"""
tests/test_api_routes.py — FastAPI Route Integration Tests
============================================================
Read-only lobby details and weekly map statistics, served through the
FastAPI TestClient against the in-memory SQLite store.
"""

from __future__ import annotations

from datetime import date, timedelta

from sqlalchemy.orm import Session

from conftest import NOW, add_join, make_lobby, make_map, make_profile, set_slot
from lobbywatch.database.models import SlotKind, StatsPeriod, StatsPeriodMap
from lobbywatch.services.map_stats import get_map_stats


def _add_period(engine, date_from: date, length: int = 7) -> int:
    with Session(engine) as session:
        period = StatsPeriod(date_from=date_from, length=length, completed=True)
        session.add(period)
        session.commit()
        return period.id


def _add_map_stats(engine, period_id: int, document_id: int, **counters) -> None:
    with Session(engine) as session:
        session.add(StatsPeriodMap(period_id=period_id, document_id=document_id, **counters))
        session.commit()


# ===========================================================================
# Health endpoint
# ===========================================================================
class TestHealthEndpoint:
    def test_health_returns_ok(self, client):
        resp = client.get("/api/health")
        assert resp.status_code == 200
        assert resp.json() == {"status": "ok"}


# ===========================================================================
# Lobby details
# ===========================================================================
class TestLobbyDetails:

    def test_unknown_handle_is_404(self, client):
        resp = client.get("/api/lobbies/2/4/1")
        assert resp.status_code == 404
        assert resp.json()["detail"] == "Lobby not found"

    def test_full_lobby(self, client, db_engine):
        lobby_id = make_lobby(
            db_engine, record_id=1872443, host_name="Bob", ext_mod_name="Scion",
            variant_mode="3v3",
        )
        profile_id = make_profile(db_engine, "Bob", 4321)
        set_slot(db_engine, lobby_id, 1, kind=SlotKind.HUMAN, name="Bob", profile_id=profile_id)
        add_join(db_engine, lobby_id, profile_id, NOW + timedelta(seconds=3))

        resp = client.get("/api/lobbies/2/4/1872443")
        assert resp.status_code == 200
        body = resp.json()
        assert body["id"] == lobby_id
        assert body["status"] == "open"
        assert body["created_at"] == NOW.isoformat()
        assert body["map_document"]["name"] == "Direct Strike"
        assert body["ext_mod_document"]["is_extension_mod"] is True
        assert body["map_variant_mode"] == "3v3"
        assert [s["kind"] for s in body["slots"]] == ["human", "open"]
        assert body["slots"][0]["profile"]["discriminator"] == 4321
        assert body["join_history"][0]["profile"]["name"] == "Bob"
        assert body["join_history"][0]["left_at"] is None


# ===========================================================================
# Map statistics
# ===========================================================================
class TestMapStats:

    def test_weekly_series_with_gaps(self, db_engine, db_session):
        map_id = make_map(db_engine, "Squadron TD", bnet_id=202155)
        first = _add_period(db_engine, date(2026, 9, 28))
        _add_period(db_engine, date(2026, 10, 5))
        _add_period(db_engine, date(2026, 10, 1), length=1)
        _add_map_stats(
            db_engine, first, map_id,
            lobbies_hosted=10, lobbies_started=8, participants_total=60,
            participants_unique_total=40, pending_time_average=95.5,
        )

        stats = get_map_stats(db_session, 2, 202155)
        assert stats["date"] == ["2026-10-04", "2026-10-11"]
        assert stats["lobbies_hosted"] == [10, 0]
        assert stats["pending_time_average"] == [95.5, 0.0]

    def test_other_region_has_only_zeros(self, db_engine, db_session):
        map_id = make_map(db_engine, "Squadron TD", bnet_id=202155)
        period = _add_period(db_engine, date(2026, 9, 28))
        _add_map_stats(db_engine, period, map_id, lobbies_hosted=3)
        assert get_map_stats(db_session, 1, 202155)["lobbies_hosted"] == [0]

    def test_endpoint(self, client, db_engine):
        map_id = make_map(db_engine, "Squadron TD", bnet_id=202155)
        period = _add_period(db_engine, date(2026, 9, 28))
        _add_map_stats(db_engine, period, map_id, lobbies_hosted=3, lobbies_started=2)

        resp = client.get("/api/maps/2/202155/stats")
        assert resp.status_code == 200
        body = resp.json()
        assert body["date"] == ["2026-10-04"]
        assert body["lobbies_started"] == [2]
        assert set(body) == {
            "date", "lobbies_hosted", "lobbies_started", "participants_total",
            "participants_unique_total", "pending_time_average",
        }
