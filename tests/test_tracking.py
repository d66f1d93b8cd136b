"""
tests/test_tracking.py — Tracked Lobby State
=============================================
"""

from __future__ import annotations

from dataclasses import replace
from datetime import timedelta

from conftest import NOW, make_snapshot, make_subscription
from lobbywatch.database.models import LobbyStatus, SlotKind
from lobbywatch.engine.snapshot import GuildDestination, LobbyFreshness, SlotSnapshot
from lobbywatch.engine.tracking import PostedMessage, TrackedLobby, requires_rerender


def _posted(ledger_id: int = 1, lobby_id: int = 1) -> PostedMessage:
    return PostedMessage(
        id=ledger_id,
        lobby_id=lobby_id,
        destination=GuildDestination(guild_id=100, channel_id=200),
        channel_id=200,
        message_id=5000 + ledger_id,
    )


class TestRequiresRerender:

    def test_identical_snapshots(self):
        assert not requires_rerender(make_snapshot(), make_snapshot())

    def test_timestamps_alone_do_not_count(self):
        later = make_snapshot(
            snapshot_updated_at=NOW + timedelta(seconds=5),
            slots_updated_at=NOW + timedelta(seconds=5),
        )
        assert not requires_rerender(make_snapshot(), later)

    def test_slot_change_counts(self):
        lobby = make_snapshot()
        changed = replace(lobby, slots=(
            lobby.slots[0],
            SlotSnapshot(slot_number=2, team=1, kind=SlotKind.HUMAN, name="Bob"),
        ))
        assert requires_rerender(lobby, changed)

    def test_status_change_counts(self):
        assert requires_rerender(make_snapshot(), make_snapshot(status=LobbyStatus.STARTED))

    def test_title_change_counts(self):
        assert requires_rerender(make_snapshot(), make_snapshot(title="2v2 fast"))


class TestTrackedLobby:

    def test_relevance(self):
        tracked = TrackedLobby(make_snapshot())
        assert not tracked.is_relevant
        tracked.candidates[1] = make_subscription(1)
        assert tracked.is_relevant
        tracked.candidates.clear()
        tracked.add_posted(_posted())
        assert tracked.is_relevant

    def test_update_info_replaces_snapshot(self):
        tracked = TrackedLobby(make_snapshot())
        fresh = make_snapshot(title="new")
        assert tracked.update_info(fresh)
        assert tracked.lobby is fresh
        assert not tracked.update_info(make_snapshot(title="new"))

    def test_is_outdated(self):
        tracked = TrackedLobby(make_snapshot())
        same = LobbyFreshness(id=1, status=LobbyStatus.OPEN, snapshot_updated_at=NOW,
                              slots_updated_at=NOW)
        assert not tracked.is_outdated(same)
        assert tracked.is_outdated(replace(same, status=LobbyStatus.STARTED))
        assert tracked.is_outdated(replace(same, slots_updated_at=NOW + timedelta(seconds=1)))
        assert tracked.is_outdated(replace(same, snapshot_updated_at=None))

    def test_closed_status_grace(self):
        tracked = TrackedLobby(make_snapshot())
        assert not tracked.is_closed_status_concluded(NOW + timedelta(hours=1))

        tracked.update_info(make_snapshot(status=LobbyStatus.STARTED, closed_at=NOW))
        grace = timedelta(seconds=30)
        assert not tracked.is_closed_status_concluded(NOW + timedelta(seconds=29), grace)
        assert tracked.is_closed_status_concluded(NOW + timedelta(seconds=30), grace)

    def test_closed_without_timestamp_is_concluded(self):
        tracked = TrackedLobby(make_snapshot(status=LobbyStatus.ABANDONED, closed_at=None))
        assert tracked.is_closed_status_concluded(NOW)

    def test_posted_keyed_by_ledger_id(self):
        tracked = TrackedLobby(make_snapshot())
        first, second = _posted(1), _posted(2)
        tracked.add_posted(first)
        tracked.add_posted(second)
        tracked.discard_posted(first)
        tracked.discard_posted(first)
        assert list(tracked.posted) == [2]
