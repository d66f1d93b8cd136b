"""
lobbywatch.services.retention_service — Message Ledger Retention
=================================================================

Periodic cleanup of ``lobby_messages`` rows the reporter has released
(``completed = true``).  Live rows are never touched, so restore after a
restart is unaffected.

Runs as a ``discord.ext.tasks`` loop (daily) from the maintenance cog or
can be invoked ad-hoc.  Deletion is batched so the table is never locked
for long.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime, timedelta

from sqlalchemy import Engine, delete, select

from lobbywatch.database.engine import get_session
from lobbywatch.database.models import LobbyMessage

logger = logging.getLogger(__name__)

# How many rows to delete in each batch
BATCH_SIZE = 5_000


def prune_completed_messages(
    engine: Engine,
    retention_days: int = 30,
    now: datetime | None = None,
) -> int:
    """Delete completed ledger rows last updated more than *retention_days* ago.

    Returns the number of rows removed.  ``retention_days <= 0`` disables
    pruning.
    """
    if retention_days <= 0:
        logger.debug("Ledger retention disabled")
        return 0

    cutoff = (now or datetime.now(UTC)) - timedelta(days=retention_days)
    deleted = 0
    while True:
        with get_session(engine) as session:
            ids = session.scalars(
                select(LobbyMessage.id)
                .where(
                    LobbyMessage.completed.is_(True),
                    LobbyMessage.updated_at < cutoff,
                )
                .limit(BATCH_SIZE)
            ).all()
            if not ids:
                break

            result = session.execute(delete(LobbyMessage).where(LobbyMessage.id.in_(ids)))
            deleted += result.rowcount  # type: ignore[operator]

    logger.info(
        "Ledger retention: %d completed message(s) removed (retention_days=%d, cutoff=%s)",
        deleted, retention_days, cutoff.isoformat(),
    )
    return deleted
