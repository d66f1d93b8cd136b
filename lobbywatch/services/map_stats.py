"""
lobbywatch.services.map_stats — Weekly map statistics
======================================================

Aggregated per-map counters are written by the ingestion pipeline into
``stats_period_maps``, one row per (period, map document).  This module
reads them back as parallel arrays over every weekly period so a chart
can plot them directly.
"""

from __future__ import annotations

from datetime import timedelta

from sqlalchemy import select
from sqlalchemy.orm import Session

from lobbywatch.database.models import MapDocument, StatsPeriod, StatsPeriodMap

WEEKLY_PERIOD_DAYS = 7

STAT_FIELDS: tuple[str, ...] = (
    "lobbies_hosted",
    "lobbies_started",
    "participants_total",
    "participants_unique_total",
    "pending_time_average",
)


def get_map_stats(session: Session, region_id: int, map_id: int) -> dict[str, list]:
    """Weekly stats of Battle.net map *map_id* in *region_id*.

    Returns ``{"date": [...], "lobbies_hosted": [...], ...}`` with one entry
    per weekly period in ascending order.  ``date`` is the period's last
    day; periods without a row for the map contribute zeros.
    """
    periods = session.scalars(
        select(StatsPeriod)
        .where(StatsPeriod.length == WEEKLY_PERIOD_DAYS)
        .order_by(StatsPeriod.date_from)
    ).all()

    rows = session.scalars(
        select(StatsPeriodMap)
        .join(MapDocument, StatsPeriodMap.document_id == MapDocument.id)
        .join(StatsPeriod, StatsPeriodMap.period_id == StatsPeriod.id)
        .where(
            StatsPeriod.length == WEEKLY_PERIOD_DAYS,
            MapDocument.region_id == region_id,
            MapDocument.bnet_id == map_id,
        )
    ).all()
    by_period = {row.period_id: row for row in rows}

    result: dict[str, list] = {"date": [], **{field: [] for field in STAT_FIELDS}}
    for period in periods:
        last_day = period.date_from + timedelta(days=period.length - 1)
        result["date"].append(last_day.isoformat())
        row = by_period.get(period.id)
        for field in STAT_FIELDS:
            value = getattr(row, field) if row is not None else 0
            if field == "pending_time_average":
                value = float(value or 0)
            result[field].append(value)
    return result
