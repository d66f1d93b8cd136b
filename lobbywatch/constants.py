"""
lobbywatch.constants — Shared Constants
========================================

Timing windows of the lobby reporter plus presentation tables used by the
embed renderer.  Import from here instead of duplicating in cogs and
services.
"""

from __future__ import annotations

from datetime import timedelta

# ---------------------------------------------------------------------------
# Lobby reporter timing
# ---------------------------------------------------------------------------
TICK_INTERVAL_SECONDS = 1.0

# How long a closed lobby's post stays up before a deleting rule removes it
CLOSED_GRACE_PERIOD = timedelta(seconds=30)

# Rules younger than this survive a permission failure on post
RULE_PROBATION_PERIOD = timedelta(minutes=10)

# Players who left an open lobby stay listed for this long
RECENT_LEAVER_WINDOW = timedelta(seconds=40)

# `lobby` command: store polls (1 s apart) before giving up
LOOKUP_ATTEMPTS = 20

# ---------------------------------------------------------------------------
# Regions
# ---------------------------------------------------------------------------
REGIONS: dict[int, tuple[str, str]] = {
    1: ("US", "Americas"),
    2: ("EU", "Europe"),
    3: ("KR", "Korea"),
    5: ("CN", "China"),
}
"""Each entry maps Battle.net region id → ``(code, name)``."""

KR_REGION_ID = 3

REGION_ICONS: dict[int, str] = {
    1: "https://i.imgur.com/K584M0K.png",
    2: "https://i.imgur.com/G8Vst8Q.png",
    3: "https://i.imgur.com/YbFsB42.png",
}

# ---------------------------------------------------------------------------
# Lobby status presentation (used by the embed renderer)
# ---------------------------------------------------------------------------
STATUS_EMOJI: dict[str, str] = {
    "open": "\u23f3",       # ⏳
    "started": "\u2705",    # ✅
    "abandoned": "\u274c",  # ❌
    "unknown": "\u2753",    # ❓
}

STATUS_COLORS: dict[str, int] = {
    "open": 0xFFAC33,
    "started": 0x77B255,
    "abandoned": 0xDD2E44,
    "unknown": 0xCCD6DD,
}

MAP_ICON_URL = "http://sc2arcade.talv.space/bnet/{icon_hash}.jpg"

# Permissions integer requested by the `invite` command
INVITE_PERMISSIONS = 379968
