"""
lobbywatch.services.embeds — Lobby embed rendering
===================================================

All embed construction lives here so the reporter and the cogs only need
to supply data.  :func:`build_lobby_embed` is pure: given the same
snapshot, rule and ``now`` it always returns the same embed.
"""

from __future__ import annotations

from datetime import UTC, datetime

import discord

from lobbywatch.constants import (
    KR_REGION_ID,
    MAP_ICON_URL,
    RECENT_LEAVER_WINDOW,
    REGION_ICONS,
    STATUS_COLORS,
    STATUS_EMOJI,
)
from lobbywatch.database.models import LobbyStatus, SlotKind
from lobbywatch.engine.rules import SubscriptionRule
from lobbywatch.engine.snapshot import JoinSnapshot, LobbySnapshot, SlotSnapshot

# Discord rejects field values longer than this
FIELD_VALUE_LIMIT = 1024

ZERO_WIDTH_SPACE = "\u200b"


def format_time_diff(a: datetime, b: datetime) -> str:
    """``mm:ss`` between *b* and *a*, clamped at zero."""
    seconds = max((a - b).total_seconds(), 0.0)
    return f"{int(seconds // 60):02d}:{int(seconds % 60):02d}"


def _by_kind_priority(slots: list[SlotSnapshot]) -> list[SlotSnapshot]:
    return sorted(slots, key=lambda s: s.kind.priority, reverse=True)


def _format_slot_rows(
    lobby: LobbySnapshot,
    slots: list[SlotSnapshot],
    include_team_number: bool = False,
) -> list[str]:
    width = len(str(len(slots)))
    rows: list[str] = []
    for i, slot in enumerate(slots, start=1):
        parts = [f"`{i:0{width}d})"]

        if include_team_number and slot.kind in (SlotKind.HUMAN, SlotKind.AI):
            parts.append(f" T{slot.team}")

        if slot.kind is SlotKind.HUMAN:
            joined_at = slot.joined_at or lobby.slots_updated_at or lobby.created_at
            parts.append(f" {format_time_diff(joined_at, lobby.created_at)}`")
            full_name = slot.full_name
            is_host = lobby.host_name is not None and lobby.host_name in (
                slot.name, full_name,
            )
            # KR names are wrapped in monospace so more of them fit on a line
            if lobby.region_id == KR_REGION_ID:
                full_name = f"`{full_name}`"
                parts.append(f" __{full_name}__ " if is_host else f" {full_name} ")
            else:
                parts.append(f" __**{full_name}**__" if is_host else f" **{full_name}**")
        elif slot.kind is SlotKind.AI:
            parts.append("  AI  `")
        else:
            parts.append(" OPEN `")
        rows.append("".join(parts))
    return rows


def _format_leaver_rows(lobby: LobbySnapshot, leavers: list[JoinSnapshot]) -> str:
    rows = [
        f"`{format_time_diff(j.joined_at, lobby.created_at)} >"
        f" {format_time_diff(j.left_at, lobby.created_at)}`  ~~{j.full_name}~~"
        for j in leavers
    ]
    # Oldest leavers are dropped first
    while len("\n".join(rows)) > FIELD_VALUE_LIMIT:
        rows.pop(0)
    return "\n".join(rows)


def build_lobby_embed(
    lobby: LobbySnapshot,
    rule: SubscriptionRule | None = None,
    now: datetime | None = None,
) -> discord.Embed:
    """Render *lobby* as posted by *rule* (``None`` for manual bindings)."""
    now = now or datetime.now(UTC)
    show_leavers = rule.show_leavers if rule is not None else False
    status = lobby.status

    embed = discord.Embed(
        title=lobby.map_name,
        color=STATUS_COLORS[status.value],
        timestamp=lobby.created_at,
    )
    if lobby.map_icon_hash:
        embed.set_thumbnail(url=MAP_ICON_URL.format(icon_hash=lobby.map_icon_hash))
    embed.set_footer(text=lobby.handle, icon_url=REGION_ICONS.get(lobby.region_id))

    status_text = f"{STATUS_EMOJI[status.value]} __** {status.value.upper()} **__"
    if status is not LobbyStatus.OPEN:
        closed_at = lobby.closed_at or now
        status_text += f" `{format_time_diff(closed_at, lobby.created_at)}`"
    embed.add_field(name="Status", value=status_text, inline=True)

    # --- Slot layout decision (affects the variant field's inline flag) ---
    team_sizes: dict[int, int] = {}
    for slot in lobby.slots:
        team_sizes[slot.team] = team_sizes.get(slot.team, 0) + 1
    teams_number = len(team_sizes)
    active_slots = lobby.get_slots(kinds=(SlotKind.HUMAN, SlotKind.AI))
    show_slots = status in (LobbyStatus.OPEN, LobbyStatus.STARTED) and bool(active_slots)
    use_rich_layout = (
        show_slots
        and teams_number >= 2
        and len(lobby.slots) / teams_number >= 2
        and max(team_sizes.values()) <= 6
    )
    descriptor_inline = not (use_rich_layout and not lobby.title)

    if lobby.ext_mod_name:
        embed.add_field(name="Extension mod", value=lobby.ext_mod_name, inline=descriptor_inline)
    elif lobby.variant_mode.strip():
        embed.add_field(name="Variant", value=lobby.variant_mode, inline=descriptor_inline)

    if lobby.title:
        embed.add_field(name="Title", value=lobby.title, inline=False)

    if use_rich_layout:
        for position, team in enumerate(sorted(team_sizes), start=1):
            team_slots = _by_kind_priority(lobby.get_slots(teams=(team,)))
            embed.add_field(
                name=f"Team {team}",
                value="\n".join(_format_slot_rows(lobby, team_slots)),
                inline=True,
            )
            # Two teams per row
            if position % 2 == 0 and teams_number > position:
                embed.add_field(name=ZERO_WIDTH_SPACE, value=ZERO_WIDTH_SPACE, inline=False)
    elif show_slots:
        rows = _format_slot_rows(
            lobby,
            active_slots,
            include_team_number=teams_number > 1 and max(team_sizes.values()) > 1,
        )
        embed.add_field(
            name=f"Players [{len(active_slots)}/{len(lobby.slots)}]",
            value="\n".join(rows),
            inline=False,
        )

    if show_leavers or status is LobbyStatus.OPEN:
        leavers = lobby.leavers()
        if not show_leavers:
            leavers = [j for j in leavers if now - j.left_at <= RECENT_LEAVER_WINDOW]
        if leavers:
            embed.add_field(
                name=f"Seen players [{len(leavers)}]",
                value=_format_leaver_rows(lobby, leavers),
                inline=False,
            )

    return embed


# ---------------------------------------------------------------------------
# `lobby` command replies
# ---------------------------------------------------------------------------
def build_lookup_pending_embed(query: str) -> discord.Embed:
    """Placeholder posted while the lookup polls the store."""
    return discord.Embed(
        title="\U0001f50e Looking for a lobby...",
        description=f"`{query}`",
        color=discord.Color.light_grey(),
    )


def build_lookup_not_found_embed(query: str, attempts: int) -> discord.Embed:
    return discord.Embed(
        title="Lobby not found",
        description=(
            f"No open lobby matched `{query}` within {attempts} seconds."
        ),
        color=discord.Color.red(),
    )


def build_query_error_embed(error: str, examples: tuple[str, ...]) -> discord.Embed:
    """Invalid ``lobby`` query: the parser's message plus usage examples."""
    embed = discord.Embed(title="Invalid query", description=error, color=discord.Color.red())
    embed.add_field(name="Examples", value="\n".join(examples), inline=False)
    return embed
