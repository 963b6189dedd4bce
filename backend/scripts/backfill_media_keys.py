from __future__ import annotations

import argparse
import logging
import os
import sys

from sqlalchemy import create_engine
from sqlalchemy.engine.url import make_url

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from rentals.backfill import normalize_property_media  # noqa: E402
from rentals.config import database_url  # noqa: E402


def _safe_url_for_logs(url: str) -> str:
    try:
        return make_url(url).render_as_string(hide_password=True)
    except Exception:
        # Avoid printing raw value if parsing fails.
        return "<unparsed DATABASE_URL>"


def main() -> int:
    ap = argparse.ArgumentParser(description="Rewrite legacy signed-URL media references in properties to stable keys.")
    ap.add_argument("--database-url", default="", help="SQLAlchemy URL (defaults to env DATABASE_URL or local sqlite).")
    ap.add_argument("--dry-run", action="store_true", help="Report what would change without writing.")
    args = ap.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    url = (args.database_url or "").strip() or database_url()
    print(f"Database: {_safe_url_for_logs(url)}")

    engine = create_engine(url, future=True)
    with engine.begin() as conn:
        report = normalize_property_media(conn, dry_run=args.dry_run)

    print(f"Scanned {report.rows_scanned} properties; {report.rows_updated} need changes; {report.values_rewritten} values rewritten.")
    for row_id, value in report.unrecognized:
        print(f"  unrecognized property_id={row_id}: {value[:120]}")
    if args.dry_run:
        print("Dry run: no changes written.")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
