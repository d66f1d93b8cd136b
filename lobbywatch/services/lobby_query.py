"""
lobbywatch.services.lobby_query — `lobby` Command Query Parser
===============================================================

Turns the free-text argument of the ``lobby`` command into a structured
:class:`LobbyQuery`.  Parsing never raises: malformed input yields a
user-facing error string instead.

Accepted forms::

    battlenet:://starcraft/map/2/202155
    id 2/4/1872443
    map Ice Baneling Escape - Cold Voyage
    mod Scion Custom Races (Mod)
    player Username
    player Username#1234
"""

from __future__ import annotations

import enum
import re
from dataclasses import dataclass

__all__ = ["LobbyQueryMethod", "LobbyQuery", "parse_query", "QUERY_EXAMPLES"]

_DOCUMENT_LINK_RE = re.compile(r"^battlenet:+//starcraft/map/(\d+)/(\d+)$", re.IGNORECASE)
_METHOD_RE = re.compile(r"^(\w+)\s+(.*)$", re.DOTALL)
_LOBBY_HANDLE_RE = re.compile(r"^(\d+)/(\d+)/(\d+)$")

QUERY_EXAMPLES: tuple[str, ...] = (
    "`lobby battlenet:://starcraft/map/2/202155`",
    "`lobby id 2/4/1872443`",
    "`lobby map Ice Baneling Escape - Cold Voyage`",
    "`lobby mod Scion Custom Races (Mod)`",
    "`lobby player Username`",
    "`lobby player Username#1234`",
)


class LobbyQueryMethod(enum.StrEnum):
    LOBBY_HANDLE = "lobby_handle"
    DOCUMENT_LINK = "document_link"
    MAP_NAME = "map_name"
    MOD_NAME = "mod_name"
    PLAYER_NAME = "player_name"
    PLAYER_BATTLETAG = "player_battletag"


@dataclass(frozen=True, slots=True)
class LobbyQuery:
    """Structured lookup; only the fields relevant to ``method`` are set."""

    method: LobbyQueryMethod
    region_id: int | None = None
    bucket_id: int | None = None
    record_id: int | None = None
    document_id: int | None = None
    name: str | None = None
    discriminator: int | None = None


def parse_query(text: str) -> LobbyQuery | str:
    """Parse *text*; return a :class:`LobbyQuery` or an error message."""
    query = text.strip()

    link = _DOCUMENT_LINK_RE.match(query)
    if link:
        return LobbyQuery(
            method=LobbyQueryMethod.DOCUMENT_LINK,
            region_id=int(link.group(1)),
            document_id=int(link.group(2)),
        )

    matches = _METHOD_RE.match(query)
    if not matches:
        return "Invalid query"

    method_name = matches.group(1).lower()
    param = matches.group(2).strip()
    if not param:
        return "Please specify the argument for a chosen query method"

    if method_name == "id":
        handle = _LOBBY_HANDLE_RE.match(param)
        if not handle:
            return "Lobby id must be in the format of `{regionId}/{bucketId}/{recordId}`"
        return LobbyQuery(
            method=LobbyQueryMethod.LOBBY_HANDLE,
            region_id=int(handle.group(1)),
            bucket_id=int(handle.group(2)),
            record_id=int(handle.group(3)),
        )

    if method_name == "map":
        return LobbyQuery(method=LobbyQueryMethod.MAP_NAME, name=param)

    if method_name == "mod":
        return LobbyQuery(method=LobbyQueryMethod.MOD_NAME, name=param)

    if method_name == "player":
        parts = [p.strip() for p in param.split("#") if p.strip()]
        if len(parts) == 1:
            return LobbyQuery(method=LobbyQueryMethod.PLAYER_NAME, name=parts[0])
        if len(parts) == 2 and parts[1].isdigit():
            return LobbyQuery(
                method=LobbyQueryMethod.PLAYER_BATTLETAG,
                name=parts[0],
                discriminator=int(parts[1]),
            )
        return "Player name must be in the format `Username` or `Username#1234`."

    return "Unknown query method"
