"""
lobbywatch.services.lobby_reporter — Lobby Reconciliation Loop
===============================================================

:class:`LobbyReporter` keeps Discord messages in sync with the lobby store.
It owns the tracked-lobby table (``lobby id → TrackedLobby``) and is its
only writer.  Each tick runs, strictly in order:

1. :meth:`~LobbyReporter.update_tracked_lobbies` — probe lobbies that have
   live posts or pending candidates, refetch the outdated ones, edit their
   messages and retire terminal ones.
2. :meth:`~LobbyReporter.sweep_idle_lobbies` — probe lobbies nobody cares
   about and evict those that closed or vanished.
3. :meth:`~LobbyReporter.discover_new_lobbies` — start tracking every open
   lobby not yet in the table and collect the rules whose content filters
   match it as candidates.
4. :meth:`~LobbyReporter.evaluate_candidates` — post each candidate whose
   gates are satisfied.

Within a step, per-lobby work runs concurrently through :meth:`_settle`.
Each coroutine only touches its own lobby's ``candidates`` / ``posted``;
adding and evicting table entries happens in the step itself, after every
sibling has settled.

Delivery failures never abort a tick.  They surface as :class:`DeliveryError`
and are turned into state transitions (message released, rule disabled) or
log lines.  Anything else is a bug and propagates out of :meth:`run`.
"""

from __future__ import annotations

import asyncio
import enum
import logging
from collections.abc import Awaitable, Callable, Iterable
from datetime import UTC, datetime, timedelta
from typing import Any, Protocol

import discord
from sqlalchemy import Engine

from lobbywatch.constants import (
    CLOSED_GRACE_PERIOD,
    RULE_PROBATION_PERIOD,
    TICK_INTERVAL_SECONDS,
)
from lobbywatch.database.engine import run_db
from lobbywatch.database.models import LobbyStatus
from lobbywatch.engine.errors import DeliveryError, DeliveryErrorKind
from lobbywatch.engine.rules import RuleSet, SubscriptionRule
from lobbywatch.engine.snapshot import Destination, LobbySnapshot
from lobbywatch.engine.tracking import PostedMessage, TrackedLobby
from lobbywatch.services.embeds import build_lobby_embed
from lobbywatch.services.lobby_repository import (
    disable_rule,
    fetch_enabled_rules,
    fetch_lobbies_by_id,
    fetch_lobby_freshness,
    fetch_open_lobbies_excluding,
)
from lobbywatch.services.message_ledger import (
    insert_posted_message,
    load_pending_messages,
    release_posted_message,
)
from lobbywatch.services.message_surface import is_gone

logger = logging.getLogger(__name__)

_PERMISSION_KINDS = (DeliveryErrorKind.MISSING_PERMISSIONS, DeliveryErrorKind.MISSING_ACCESS)


class MessageSurface(Protocol):
    """What the reporter needs from Discord (see ``DiscordMessageSurface``)."""

    async def resolve(self, destination: Destination) -> Any | None: ...
    async def send(self, channel: Any, embed: discord.Embed) -> Any: ...
    async def fetch(self, channel: Any, message_id: int) -> Any | None: ...
    async def edit(self, message: Any, embed: discord.Embed) -> None: ...
    async def delete(self, message: Any) -> None: ...
    def destination_of(self, channel: Any) -> Destination: ...


class PostOutcome(enum.StrEnum):
    """Result of trying to post a lobby for a rule."""
    POSTED = "posted"
    # Candidate consumed without a live message
    DROPPED = "dropped"
    # Candidate stays pending (permission failure on a young rule)
    DEFERRED = "deferred"


def _utcnow() -> datetime:
    return datetime.now(UTC)


class LobbyReporter:
    """Reconciles tracked lobbies against their Discord messages."""

    def __init__(
        self,
        engine: Engine,
        surface: MessageSurface,
        *,
        clock: Callable[[], datetime] = _utcnow,
        tick_interval: float = TICK_INTERVAL_SECONDS,
        grace: timedelta = CLOSED_GRACE_PERIOD,
        probation: timedelta = RULE_PROBATION_PERIOD,
    ) -> None:
        self.engine = engine
        self.surface = surface
        self.clock = clock
        self.tick_interval = tick_interval
        self.grace = grace
        self.probation = probation

        self.tracked: dict[int, TrackedLobby] = {}
        self.rules = RuleSet()
        self.running = False
        self._shutdown = asyncio.Event()

    # -------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------
    async def load(self) -> None:
        """Fill the rule cache and resume messages left live by a previous run."""
        await self.reload_subscriptions()
        await self.restore()

    async def reload_subscriptions(self) -> None:
        rules = await run_db(fetch_enabled_rules, self.engine)
        self.rules.replace(rules)
        logger.info("Loaded %d subscription rule(s)", len(self.rules))

    async def restore(self) -> None:
        """Rebuild tracked entries from every ``completed = false`` ledger row."""
        pending = await run_db(load_pending_messages, self.engine)
        if not pending:
            return

        lobbies = await run_db(
            fetch_lobbies_by_id, self.engine, {p.lobby_id for p in pending}
        )
        for lobby in lobbies:
            self.tracked.setdefault(lobby.id, TrackedLobby(lobby))

        orphans: list[PostedMessage] = []
        for posted in pending:
            tracked = self.tracked.get(posted.lobby_id)
            if tracked is None:
                orphans.append(posted)
                continue
            tracked.add_posted(posted)

        for posted in orphans:
            logger.warning(
                "Lobby #%d of message %d no longer exists, releasing it",
                posted.lobby_id, posted.message_id,
            )
            await run_db(release_posted_message, self.engine, posted.id)

        logger.info(
            "Restored %d message(s) across %d lobbies",
            len(pending) - len(orphans), len(lobbies),
        )

    async def run(self) -> None:
        """Tick until :meth:`shutdown` is called."""
        self.running = True
        logger.info("Lobby reporter started (tick every %.1fs)", self.tick_interval)
        try:
            while not self._shutdown.is_set():
                await self.tick()
                try:
                    await asyncio.wait_for(self._shutdown.wait(), timeout=self.tick_interval)
                except asyncio.TimeoutError:
                    pass
        finally:
            self.running = False
            logger.info("Lobby reporter stopped")

    def shutdown(self) -> None:
        """Stop :meth:`run` once the current tick completes."""
        self._shutdown.set()

    async def tick(self) -> None:
        await self.update_tracked_lobbies()
        await self.sweep_idle_lobbies()
        await self.discover_new_lobbies()
        await self.evaluate_candidates()

    # -------------------------------------------------------------------
    # Step 1: refresh tracked lobbies
    # -------------------------------------------------------------------
    async def update_tracked_lobbies(self) -> None:
        relevant = [t for t in self.tracked.values() if t.is_relevant]
        if not relevant:
            return

        probes = {
            p.id: p
            for p in await run_db(
                fetch_lobby_freshness, self.engine, [t.lobby.id for t in relevant]
            )
        }
        now = self.clock()

        outdated: set[int] = set()
        vanished: list[TrackedLobby] = []
        for tracked in relevant:
            probe = probes.get(tracked.lobby.id)
            if probe is None:
                vanished.append(tracked)
            elif tracked.is_outdated(probe) or (
                tracked.posted and tracked.is_closed_status_concluded(now, self.grace)
            ):
                outdated.add(tracked.lobby.id)

        if vanished:
            await self._drop_vanished(vanished)

        logger.debug("Tracked lobbies: relevant=%d outdated=%d", len(relevant), len(outdated))
        if not outdated:
            return

        lobbies = await run_db(fetch_lobbies_by_id, self.engine, outdated)
        refreshed = [
            (self.tracked[lobby.id], lobby) for lobby in lobbies if lobby.id in self.tracked
        ]
        results = await self._settle(
            self._refresh_tracked_lobby(tracked, lobby, now) for tracked, lobby in refreshed
        )
        logger.debug("Edited messages of %d lobbies", sum(1 for r in results if r))

        for tracked, lobby in refreshed:
            if lobby.is_open:
                continue
            # Terminal lobbies are no longer prospected for late rule matches
            tracked.candidates.clear()
            if not tracked.posted:
                self.tracked.pop(lobby.id, None)

    async def _refresh_tracked_lobby(
        self, tracked: TrackedLobby, lobby: LobbySnapshot, now: datetime
    ) -> bool:
        """Swap in the fresh snapshot; edit posts when needed.  Returns whether it did."""
        needs_update = tracked.update_info(lobby)
        if not tracked.posted:
            return False
        if not (needs_update or tracked.is_closed_status_concluded(now, self.grace)):
            return False

        await self.update_lobby_messages(tracked)
        if not tracked.posted:
            logger.info(
                "Stopped tracking %s, candidates=%d",
                lobby.handle, len(tracked.candidates),
            )
        return True

    async def _drop_vanished(self, vanished: list[TrackedLobby]) -> None:
        for tracked in vanished:
            logger.warning(
                "Lobby #%d disappeared from the store, releasing %d message(s)",
                tracked.lobby.id, len(tracked.posted),
            )
        await self._settle(
            self.release_lobby_message(tracked, posted)
            for tracked in vanished
            for posted in list(tracked.posted.values())
        )
        for tracked in vanished:
            self.tracked.pop(tracked.lobby.id, None)

    # -------------------------------------------------------------------
    # Step 2: evict idle lobbies
    # -------------------------------------------------------------------
    async def sweep_idle_lobbies(self) -> None:
        idle = [lobby_id for lobby_id, t in self.tracked.items() if not t.is_relevant]
        if not idle:
            return

        probes = {p.id: p for p in await run_db(fetch_lobby_freshness, self.engine, idle)}
        evicted = 0
        for lobby_id in idle:
            tracked = self.tracked.get(lobby_id)
            # A manual binding may have landed while the probe was running
            if tracked is None or tracked.is_relevant:
                continue
            probe = probes.get(lobby_id)
            if probe is None or probe.status is not LobbyStatus.OPEN:
                del self.tracked[lobby_id]
                evicted += 1
        logger.debug("Idle lobbies: probed=%d evicted=%d", len(idle), evicted)

    # -------------------------------------------------------------------
    # Step 3: discovery
    # -------------------------------------------------------------------
    async def discover_new_lobbies(self) -> None:
        lobbies = await run_db(fetch_open_lobbies_excluding, self.engine, list(self.tracked))
        logger.debug("Newly discovered lobbies: %d", len(lobbies))

        for lobby in lobbies:
            if lobby.id in self.tracked:
                continue
            tracked = TrackedLobby(lobby)
            self.tracked[lobby.id] = tracked
            for rule in self.rules.matching(lobby):
                tracked.candidates[rule.id] = rule

            if tracked.candidates:
                logger.info(
                    "New lobby %s for %r, matching rules=%d",
                    lobby.handle, lobby.map_name, len(tracked.candidates),
                )

    # -------------------------------------------------------------------
    # Step 4: candidates
    # -------------------------------------------------------------------
    async def evaluate_candidates(self) -> None:
        pending = [t for t in self.tracked.values() if t.candidates]
        if not pending:
            return
        logger.debug("Lobbies with pending candidates: %d", len(pending))
        now = self.clock()
        await self._settle(self._evaluate_lobby_candidates(t, now) for t in pending)

    async def _evaluate_lobby_candidates(self, tracked: TrackedLobby, now: datetime) -> None:
        for rule in list(tracked.candidates.values()):
            if rule.id not in self.rules:
                # Disabled since it was matched
                tracked.candidates.pop(rule.id, None)
                continue
            if not rule.gates_satisfied(tracked.lobby, now):
                continue
            outcome = await self.post_subscribed_lobby(tracked, rule)
            if outcome is not PostOutcome.DEFERRED:
                tracked.candidates.pop(rule.id, None)

    # -------------------------------------------------------------------
    # Posting
    # -------------------------------------------------------------------
    async def post_subscribed_lobby(
        self, tracked: TrackedLobby, rule: SubscriptionRule
    ) -> PostOutcome:
        try:
            channel = await self.surface.resolve(rule.destination)
        except DeliveryError as exc:
            logger.error("Couldn't resolve the destination of rule #%d: %s", rule.id, exc)
            return PostOutcome.DROPPED

        if channel is None:
            logger.warning("Destination of rule #%d is gone, disabling it", rule.id)
            await self._disable_rule(rule)
            return PostOutcome.DROPPED
        return await self.post_tracked_lobby(channel, tracked, rule)

    async def post_tracked_lobby(
        self,
        channel: Any,
        tracked: TrackedLobby,
        rule: SubscriptionRule | None = None,
    ) -> PostOutcome:
        lobby = tracked.lobby
        embed = build_lobby_embed(lobby, rule, self.clock())
        try:
            message = await self.surface.send(channel, embed)
        except DeliveryError as exc:
            return await self._handle_post_failure(tracked, rule, exc)

        destination = self.surface.destination_of(channel)
        ledger_id = await run_db(
            insert_posted_message,
            self.engine,
            lobby_id=lobby.id,
            rule_id=rule.id if rule else None,
            destination=destination,
            channel_id=channel.id,
            message_id=message.id,
        )
        tracked.add_posted(PostedMessage(
            id=ledger_id,
            lobby_id=lobby.id,
            destination=destination,
            channel_id=channel.id,
            message_id=message.id,
            rule=rule,
        ))
        return PostOutcome.POSTED

    async def _handle_post_failure(
        self,
        tracked: TrackedLobby,
        rule: SubscriptionRule | None,
        exc: DeliveryError,
    ) -> PostOutcome:
        if rule is not None and exc.kind in _PERMISSION_KINDS:
            logger.error(
                "Failed to send message for lobby #%d, rule #%d: %s",
                tracked.lobby.id, rule.id, exc,
            )
            if rule.age(self.clock()) >= self.probation:
                await self._disable_rule(rule)
                return PostOutcome.DROPPED
            return PostOutcome.DEFERRED

        if rule is not None and exc.kind is DeliveryErrorKind.UNKNOWN_CHANNEL:
            logger.warning("Destination of rule #%d is gone, disabling it", rule.id)
            await self._disable_rule(rule)
            return PostOutcome.DROPPED

        logger.error("Failed to send message for lobby #%d: %r", tracked.lobby.id, exc)
        return PostOutcome.DROPPED

    async def _disable_rule(self, rule: SubscriptionRule) -> None:
        await run_db(disable_rule, self.engine, rule.id)
        self.rules.discard(rule.id)

    # -------------------------------------------------------------------
    # Posted message maintenance
    # -------------------------------------------------------------------
    async def update_lobby_messages(self, tracked: TrackedLobby) -> None:
        await self._settle(
            self.edit_lobby_message(tracked, posted)
            for posted in list(tracked.posted.values())
        )

    async def edit_lobby_message(self, tracked: TrackedLobby, posted: PostedMessage) -> None:
        """Re-render one message, then apply the retirement policy.

        A message whose channel or message can no longer be reached is
        released.  Once the lobby is closed, a rule asking for deletion on
        that status gets the message deleted after the grace period; any
        other message is released and left as-is.  Past the grace period, a
        failed edit is released too unless the failure was transient.
        """
        lobby = tracked.lobby
        now = self.clock()
        embed = build_lobby_embed(lobby, posted.rule, now)
        try:
            channel = await self.surface.resolve(posted.destination)
            if channel is None:
                await self.release_lobby_message(tracked, posted)
                return
            message = await self.surface.fetch(channel, posted.message_id)
            if message is None:
                await self.release_lobby_message(tracked, posted)
                return

            await self.surface.edit(message, embed)

            if lobby.status is LobbyStatus.OPEN:
                return
            if posted.rule is not None and posted.rule.deletes_on(lobby.status):
                if tracked.is_closed_status_concluded(now, self.grace):
                    await self.surface.delete(message)
                    await self.release_lobby_message(tracked, posted)
            else:
                await self.release_lobby_message(tracked, posted)
        except DeliveryError as exc:
            if is_gone(exc):
                await self.release_lobby_message(tracked, posted)
                return
            logger.error(
                "Failed to update message %d for lobby #%d: %r",
                posted.message_id, lobby.id, exc,
            )
            # A concluded lobby is never edited again, so only transient
            # failures are worth another attempt
            if (
                exc.kind is not DeliveryErrorKind.TRANSIENT
                and tracked.is_closed_status_concluded(now, self.grace)
            ):
                await self.release_lobby_message(tracked, posted)

    async def release_lobby_message(self, tracked: TrackedLobby, posted: PostedMessage) -> None:
        """Mark *posted* completed in the ledger and stop maintaining it."""
        await run_db(release_posted_message, self.engine, posted.id)
        tracked.discard_posted(posted)

    async def bind_message_with_lobby(self, message: Any, lobby_id: int) -> TrackedLobby | None:
        """Adopt an existing message (e.g. a command reply) as a live post of a lobby.

        Returns the tracked lobby, or ``None`` when the lobby doesn't exist.
        """
        tracked = self.tracked.get(lobby_id)
        if tracked is None:
            lobbies = await run_db(fetch_lobbies_by_id, self.engine, [lobby_id])
            if not lobbies:
                return None
            tracked = self.tracked.get(lobby_id)
            if tracked is None:
                tracked = TrackedLobby(lobbies[0])
                self.tracked[lobby_id] = tracked

        channel = message.channel
        destination = self.surface.destination_of(channel)
        ledger_id = await run_db(
            insert_posted_message,
            self.engine,
            lobby_id=lobby_id,
            rule_id=None,
            destination=destination,
            channel_id=channel.id,
            message_id=message.id,
        )
        posted = PostedMessage(
            id=ledger_id,
            lobby_id=lobby_id,
            destination=destination,
            channel_id=channel.id,
            message_id=message.id,
        )
        tracked.add_posted(posted)
        await self.edit_lobby_message(tracked, posted)
        return tracked

    # -------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------
    @staticmethod
    async def _settle(coros: Iterable[Awaitable[Any]]) -> list[Any]:
        """Await every coroutine; re-raise the first unexpected exception.

        Siblings always run to completion.  A stray :class:`DeliveryError`
        is logged, anything else propagates once all have settled.
        """
        results = await asyncio.gather(*coros, return_exceptions=True)
        unexpected: BaseException | None = None
        for result in results:
            if isinstance(result, DeliveryError):
                logger.error("Unhandled delivery failure: %r", result)
            elif isinstance(result, BaseException) and unexpected is None:
                unexpected = result
        if unexpected is not None:
            raise unexpected
        return results
