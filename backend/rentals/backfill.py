"""
One-time rewrite of legacy signed-URL media references into stable keys.

Older clients stored the signed URL returned by the upload endpoint instead of
the key. Shared by Alembic revision 0002 and `scripts/backfill_media_keys.py`.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field

import sqlalchemy as sa
from sqlalchemy.engine import Connection

from rentals.media import looks_like_url, normalize_reference


logger = logging.getLogger(__name__)

# Lightweight table definition so migrations don't depend on the ORM model.
properties_table = sa.table(
    "properties",
    sa.column("id", sa.Integer),
    sa.column("photos", sa.JSON),
    sa.column("virtual_tour_url", sa.Text),
)


@dataclass
class BackfillReport:
    rows_scanned: int = 0
    rows_updated: int = 0
    values_rewritten: int = 0
    unrecognized: list[tuple[int, str]] = field(default_factory=list)


def _normalize_one(row_id: int, value: str, report: BackfillReport) -> str:
    if not looks_like_url(value):
        return value
    key = normalize_reference(value)
    if key is None:
        # Left in place; the resolver hands it back unchanged on read.
        report.unrecognized.append((row_id, value))
        return value
    report.values_rewritten += 1
    return key


def normalize_property_media(conn: Connection, *, dry_run: bool = False) -> BackfillReport:
    report = BackfillReport()
    rows = conn.execute(sa.select(properties_table.c.id, properties_table.c.photos, properties_table.c.virtual_tour_url)).all()
    for row_id, photos, tour in rows:
        report.rows_scanned += 1
        new_photos = [_normalize_one(row_id, v, report) for v in (photos or []) if isinstance(v, str)]
        new_tour = _normalize_one(row_id, tour, report) if tour else tour
        if new_photos == list(photos or []) and new_tour == tour:
            continue
        report.rows_updated += 1
        if not dry_run:
            conn.execute(
                sa.update(properties_table)
                .where(properties_table.c.id == row_id)
                .values(photos=new_photos, virtual_tour_url=new_tour)
            )
    logger.info(
        "Media backfill scanned=%s updated=%s rewritten=%s unrecognized=%s dry_run=%s",
        report.rows_scanned,
        report.rows_updated,
        report.values_rewritten,
        len(report.unrecognized),
        dry_run,
    )
    return report
