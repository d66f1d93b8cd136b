"""
lobbywatch.engine.rules — Subscription Rules & Matching
========================================================

A :class:`SubscriptionRule` is the in-memory, immutable form of a
``lobby_subscriptions`` row.  Matching happens in two stages:

1. **Content filters** (:meth:`SubscriptionRule.matches`) — map name, variant
   or extension mod, region.  Evaluated once, when a lobby is discovered.
2. **Gates** (:meth:`SubscriptionRule.gates_satisfied`) — minimum elapsed time
   since creation and minimum human headcount.  Re-evaluated every tick
   while the rule is a pending candidate of the lobby.

:class:`RuleSet` caches the enabled rules keyed by id.
"""

from __future__ import annotations

import enum
import logging
import re
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from datetime import datetime, timedelta

from lobbywatch.database.models import LobbyStatus, LobbySubscription
from lobbywatch.engine.snapshot import Destination, LobbySnapshot, as_utc, destination_from_ids

logger = logging.getLogger(__name__)

__all__ = ["MapNameMode", "SubscriptionRule", "RuleSet"]


class MapNameMode(enum.StrEnum):
    """How a rule compares its ``map_name`` with the lobby's map."""
    EXACT = "exact"
    PARTIAL = "partial"
    REGEX = "regex"


@dataclass(frozen=True, slots=True, eq=False)
class SubscriptionRule:
    """Enabled subscription rule.  Identity is the row id."""

    id: int
    destination: Destination
    map_name: str
    name_mode: MapNameMode
    created_at: datetime
    variant: str | None = None
    region_id: int | None = None
    time_delay: int | None = None
    human_slots_min: int | None = None
    delete_on_started: bool = False
    delete_on_abandoned: bool = False
    show_leavers: bool = False
    enabled: bool = True
    pattern: re.Pattern[str] | None = None

    def __eq__(self, other: object) -> bool:
        return isinstance(other, SubscriptionRule) and other.id == self.id

    def __hash__(self) -> int:
        return hash(self.id)

    # -------------------------------------------------------------------
    # Construction
    # -------------------------------------------------------------------
    @classmethod
    def from_row(cls, row: LobbySubscription) -> SubscriptionRule:
        """Build a rule from its ORM row.

        An invalid regex is logged and leaves the rule unable to match.
        A row with no destination raises :class:`ValueError`.
        """
        if row.is_map_name_regex:
            mode = MapNameMode.REGEX
        elif row.is_map_name_partial:
            mode = MapNameMode.PARTIAL
        else:
            mode = MapNameMode.EXACT

        pattern = None
        if mode is MapNameMode.REGEX:
            try:
                pattern = re.compile(row.map_name, re.IGNORECASE)
            except re.error as exc:
                logger.warning(
                    "Rule #%d has an invalid map-name regex %r: %s",
                    row.id, row.map_name, exc,
                )

        return cls(
            id=row.id,
            destination=destination_from_ids(row.user_id, row.guild_id, row.channel_id),
            map_name=row.map_name,
            name_mode=mode,
            created_at=as_utc(row.created_at),
            variant=row.variant or None,
            region_id=row.region_id,
            time_delay=row.time_delay,
            human_slots_min=row.human_slots_min,
            delete_on_started=bool(row.delete_message_started),
            delete_on_abandoned=bool(row.delete_message_abandoned),
            show_leavers=bool(row.show_leavers),
            enabled=bool(row.enabled),
            pattern=pattern,
        )

    # -------------------------------------------------------------------
    # Content filters
    # -------------------------------------------------------------------
    def matches_map_name(self, map_name: str) -> bool:
        if self.name_mode is MapNameMode.REGEX:
            return self.pattern is not None and self.pattern.search(map_name) is not None
        if self.name_mode is MapNameMode.PARTIAL:
            return self.map_name.lower() in map_name.lower()
        return self.map_name.lower() == map_name.lower()

    def matches(self, lobby: LobbySnapshot) -> bool:
        """Map name (per mode) AND variant/mod AND region.  No side effects."""
        if not self.matches_map_name(lobby.map_name):
            return False
        if self.variant and self.variant not in (lobby.variant_mode, lobby.ext_mod_name):
            return False
        if self.region_id and self.region_id != lobby.region_id:
            return False
        return True

    # -------------------------------------------------------------------
    # Gates
    # -------------------------------------------------------------------
    def gates_satisfied(self, lobby: LobbySnapshot, now: datetime) -> bool:
        """Whether a candidate may be posted now.

        Unset (or zero) gates are not configured.  With no configured gate the
        rule posts right away; otherwise satisfying any configured gate is
        enough, so a pending candidate is one whose every configured gate is
        still unmet.
        """
        unmet: list[bool] = []
        if self.time_delay:
            elapsed = (now - lobby.created_at).total_seconds()
            unmet.append(self.time_delay > elapsed)
        if self.human_slots_min:
            unmet.append(self.human_slots_min > lobby.human_slot_count)
        return not unmet or not all(unmet)

    # -------------------------------------------------------------------
    # Retirement policy
    # -------------------------------------------------------------------
    def deletes_on(self, status: LobbyStatus) -> bool:
        """Whether messages of this rule are deleted once *status* is reached."""
        if status is LobbyStatus.STARTED:
            return self.delete_on_started
        if status in (LobbyStatus.ABANDONED, LobbyStatus.UNKNOWN):
            return self.delete_on_abandoned
        return False

    def age(self, now: datetime) -> timedelta:
        return now - self.created_at


class RuleSet:
    """In-memory cache of enabled rules, keyed by rule id.

    Filled by :meth:`replace` at startup; entries only leave through
    :meth:`discard` when the reporter disables a rule.
    """

    def __init__(self, rules: Iterable[SubscriptionRule] = ()) -> None:
        self._rules: dict[int, SubscriptionRule] = {}
        self.replace(rules)

    def replace(self, rules: Iterable[SubscriptionRule]) -> None:
        """Swap the whole cache for *rules* (disabled ones are skipped)."""
        self._rules = {r.id: r for r in rules if r.enabled}

    def get(self, rule_id: int) -> SubscriptionRule | None:
        return self._rules.get(rule_id)

    def discard(self, rule_id: int) -> None:
        self._rules.pop(rule_id, None)

    def matching(self, lobby: LobbySnapshot) -> list[SubscriptionRule]:
        """Every cached rule whose content filters hold for *lobby*."""
        return [r for r in self._rules.values() if r.matches(lobby)]

    def __contains__(self, rule_id: object) -> bool:
        return rule_id in self._rules

    def __iter__(self) -> Iterator[SubscriptionRule]:
        return iter(list(self._rules.values()))

    def __len__(self) -> int:
        return len(self._rules)
