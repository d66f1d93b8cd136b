"""
lobbywatch.engine.tracking — Tracked Lobby Working State
=========================================================

The reporter keeps one :class:`TrackedLobby` per lobby that is (or recently
was) relevant to at least one Discord channel:

- ``lobby``      — the latest :class:`LobbySnapshot`, replaced wholesale.
- ``candidates`` — rules whose content filters matched but whose gates
  have not been satisfied yet.
- ``posted``     — live :class:`PostedMessage` handles (ledger rows with
  ``completed = false``).

Change detection uses an explicit field projection (:data:`RENDER_FIELDS`)
rather than generic deep equality, so an edit is only issued when something
user-visible changed.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta

from lobbywatch.constants import CLOSED_GRACE_PERIOD
from lobbywatch.database.models import LobbyStatus
from lobbywatch.engine.rules import SubscriptionRule
from lobbywatch.engine.snapshot import Destination, LobbyFreshness, LobbySnapshot

__all__ = [
    "RENDER_FIELDS",
    "PostedMessage",
    "TrackedLobby",
    "requires_rerender",
]

# Fields whose change makes a posted message stale.
RENDER_FIELDS: tuple[str, ...] = (
    "created_at",
    "closed_at",
    "status",
    "title",
    "host_name",
    "slots_humans_taken",
    "slots_humans_total",
    "slots",
)


def requires_rerender(previous: LobbySnapshot, current: LobbySnapshot) -> bool:
    """Whether *current* differs from *previous* in any of :data:`RENDER_FIELDS`.

    ``slots`` is a tuple of frozen dataclasses, so its comparison is a
    structural one over every slot.
    """
    return any(
        getattr(previous, name) != getattr(current, name)
        for name in RENDER_FIELDS
    )


@dataclass(eq=False, slots=True)
class PostedMessage:
    """A live Discord message maintained for a lobby.

    ``id`` is the ledger row id.  ``rule`` is ``None`` for messages bound
    manually by the ``lobby`` command.
    """

    id: int
    lobby_id: int
    destination: Destination
    channel_id: int
    message_id: int
    rule: SubscriptionRule | None = None


class TrackedLobby:
    """Working state of one lobby inside the reporter's table."""

    def __init__(self, lobby: LobbySnapshot) -> None:
        self.lobby = lobby
        self.candidates: dict[int, SubscriptionRule] = {}
        self.posted: dict[int, PostedMessage] = {}

    def __repr__(self) -> str:
        return (
            f"<TrackedLobby id={self.lobby.id} status={self.lobby.status.value!r} "
            f"candidates={len(self.candidates)} posted={len(self.posted)}>"
        )

    @property
    def is_relevant(self) -> bool:
        """Has live posts or pending candidates, i.e. needs status polling."""
        return bool(self.posted or self.candidates)

    def update_info(self, lobby: LobbySnapshot) -> bool:
        """Replace the snapshot; return whether posted messages need an edit."""
        previous = self.lobby
        self.lobby = lobby
        return requires_rerender(previous, lobby)

    def is_outdated(self, probe: LobbyFreshness) -> bool:
        """Whether the freshness probe shows newer data than our snapshot."""
        return (
            self.lobby.status is not probe.status
            or self.lobby.snapshot_updated_at != probe.snapshot_updated_at
            or self.lobby.slots_updated_at != probe.slots_updated_at
        )

    def is_closed_status_concluded(
        self,
        now: datetime,
        grace: timedelta = CLOSED_GRACE_PERIOD,
    ) -> bool:
        """Closed for at least the grace period."""
        if self.lobby.status is LobbyStatus.OPEN:
            return False
        closed_at = self.lobby.closed_at
        if closed_at is None:
            return True
        return now - closed_at >= grace

    def add_posted(self, posted: PostedMessage) -> None:
        self.posted[posted.id] = posted

    def discard_posted(self, posted: PostedMessage) -> None:
        self.posted.pop(posted.id, None)
