"""
lobbywatch — StarCraft II Lobby Tracking & Discord Notifications
=================================================================
Reads game-lobby rows collected from the Battle.net arcade, keeps Discord
channels subscribed to lobby events (new lobby matching a rule, status
changes, players joining and leaving) and serves the same data through a
read-only REST API.

Package layout::

    lobbywatch/
    ├── config.py          # YAML → typed Python config
    ├── constants.py       # Grace period, probation window, presentation
    ├── database/
    │   ├── engine.py      # SQLAlchemy engine + async helper
    │   ├── models.py      # ORM models (lobbies, slots, subscriptions, …)
    │   └── seed.py        # Region seeder
    ├── engine/
    │   ├── snapshot.py    # Immutable lobby snapshots + destinations
    │   ├── rules.py       # Subscription rules, matcher, rule cache
    │   ├── tracking.py    # TrackedLobby working state + render diff
    │   └── errors.py      # Delivery error taxonomy + classifier
    ├── services/
    │   ├── lobby_repository.py  # Lobby store queries
    │   ├── message_ledger.py    # Posted-message ledger
    │   ├── message_surface.py   # discord.py send/edit/fetch/delete
    │   ├── embeds.py            # Lobby embed rendering
    │   ├── lobby_reporter.py    # The reconciliation loop
    │   ├── lobby_query.py       # `lobby` command query parser
    │   ├── map_stats.py         # Weekly map statistics
    │   └── retention_service.py # Ledger pruning
    ├── bot/
    │   ├── core.py        # Bot subclass, extension loader
    │   └── cogs/          # reporter, lobby lookup, maintenance tasks
    └── api/
        ├── main.py        # FastAPI app
        └── routes/        # /lobbies, /maps
"""

__version__ = "0.1.0"
