"""rewrite legacy signed-URL media references to stable keys

Revision ID: 0002_normalize_media_keys
Revises: 0001_initial
Create Date: 2026-02-03
"""

from __future__ import annotations

from alembic import op

from rentals.backfill import normalize_property_media


revision = "0002_normalize_media_keys"
down_revision = "0001_initial"
branch_labels = None
depends_on = None


def upgrade() -> None:
    normalize_property_media(op.get_bind())


def downgrade() -> None:
    # Signed URLs expire; there is nothing meaningful to restore.
    pass
