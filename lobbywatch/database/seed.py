"""
lobbywatch.database.seed — Region Seeder
=========================================

Battle.net regions are static reference data; every lobby, map document and
profile row points at one.  Seeded on startup so a fresh database renders
region codes immediately.

Idempotent — only inserts regions that don't already exist.
"""

from __future__ import annotations

import logging

from sqlalchemy import Engine, select
from sqlalchemy.orm import Session

from lobbywatch.constants import REGIONS
from lobbywatch.database.models import Region

logger = logging.getLogger(__name__)


def seed_regions(engine: Engine) -> int:
    """Insert missing rows from :data:`~lobbywatch.constants.REGIONS`.

    Returns the number of inserted regions.
    """
    with Session(engine) as session:
        existing = set(session.scalars(select(Region.id)).all())
        inserted = 0
        for region_id, (code, name) in REGIONS.items():
            if region_id in existing:
                continue
            session.add(Region(id=region_id, code=code, name=name))
            inserted += 1

        if inserted:
            session.commit()
            logger.info("Seeded %d regions.", inserted)
        return inserted
