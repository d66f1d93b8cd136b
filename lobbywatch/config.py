"""
lobbywatch.config — YAML Configuration Loader
==============================================

Reads ``config.yaml`` for the soft settings of the bot and the API: the
command prefix, the dashboard port and the tuning knobs of the lobby
reporter.  Secrets (``DISCORD_TOKEN``, ``DATABASE_URL``) never live here,
they come from ``.env``.

Usage::

    from lobbywatch.config import load_config

    cfg = load_config()          # reads ./config.yaml by default
    print(cfg.bot_prefix)        # "."
    print(cfg.closed_grace_seconds)  # 30
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import yaml

from lobbywatch.constants import (
    CLOSED_GRACE_PERIOD,
    LOOKUP_ATTEMPTS,
    RULE_PROBATION_PERIOD,
    TICK_INTERVAL_SECONDS,
)


# ---------------------------------------------------------------------------
# Typed settings object
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class LobbywatchConfig:
    """Immutable configuration loaded from ``config.yaml``."""

    # Discord
    bot_prefix: str

    # REST API
    api_port: int

    # Lobby reporter tuning
    tick_interval_seconds: float = TICK_INTERVAL_SECONDS
    closed_grace_seconds: int = int(CLOSED_GRACE_PERIOD.total_seconds())
    rule_probation_minutes: int = int(RULE_PROBATION_PERIOD.total_seconds() // 60)

    # Maintenance
    message_retention_days: int = 30  # 0 disables ledger pruning

    # `lobby` lookup command
    lookup_attempts: int = LOOKUP_ATTEMPTS


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------
def load_config(path: str | Path = "config.yaml") -> LobbywatchConfig:
    """Read *path* and return a :class:`LobbywatchConfig` instance.

    Raises
    ------
    FileNotFoundError
        If the YAML file doesn't exist.
    KeyError
        If a required key is missing from the YAML file.
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(
            f"Configuration file not found: {config_path.resolve()}\n"
            "Hint: copy config.yaml.example → config.yaml and edit it."
        )

    with open(config_path, encoding="utf-8") as fh:
        raw: dict = yaml.safe_load(fh) or {}

    defaults = LobbywatchConfig(bot_prefix="", api_port=0)
    return LobbywatchConfig(
        bot_prefix=str(raw["bot_prefix"]),
        api_port=int(raw["api_port"]),
        tick_interval_seconds=float(
            raw.get("tick_interval_seconds", defaults.tick_interval_seconds)
        ),
        closed_grace_seconds=int(
            raw.get("closed_grace_seconds", defaults.closed_grace_seconds)
        ),
        rule_probation_minutes=int(
            raw.get("rule_probation_minutes", defaults.rule_probation_minutes)
        ),
        message_retention_days=int(
            raw.get("message_retention_days", defaults.message_retention_days)
        ),
        lookup_attempts=int(raw.get("lookup_attempts", defaults.lookup_attempts)),
    )
