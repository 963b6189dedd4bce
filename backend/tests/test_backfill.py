import datetime as dt

import sqlalchemy as sa

from rentals.backfill import normalize_property_media, properties_table
from rentals.db import make_engine
from rentals.models import Base


LEGACY = "https://bucket.s3.amazonaws.com/property-images/1/1700000000000-a.jpg?X-Amz-Signature=abc"
TOUR = "https://bucket.s3.amazonaws.com/virtual-tour-videos/1/1700000000002-tour.mp4?X-Amz-Signature=def"
UNKNOWN = "https://elsewhere.example.com/photo.jpg"


def _seed(engine):
    Base.metadata.create_all(engine)
    with engine.begin() as conn:
        conn.execute(sa.text("INSERT INTO users (id, email, name, image, created_at) VALUES (1, 'o@example.com', '', '', '2026-01-01')"))
        conn.execute(
            sa.insert(Base.metadata.tables["properties"]),
            [
                {
                    "id": 1,
                    "title": "Legacy",
                    "price": 1000,
                    "size": 300,
                    "district": "Tai Po",
                    "photos": [LEGACY, "property-images/1/1700000000001-b.jpg", UNKNOWN],
                    "virtual_tour_url": TOUR,
                    "owner_id": 1,
                    "created_at": dt.datetime(2026, 1, 1),
                    "updated_at": dt.datetime(2026, 1, 1),
                },
            ],
        )


def _row(engine):
    with engine.connect() as conn:
        return conn.execute(sa.select(properties_table.c.photos, properties_table.c.virtual_tour_url)).one()


def test_backfill_rewrites_recognized_urls(tmp_path):
    engine = make_engine(f"sqlite:///{tmp_path / 'bf.db'}")
    _seed(engine)

    with engine.begin() as conn:
        report = normalize_property_media(conn)

    photos, tour = _row(engine)
    assert photos == ["property-images/1/1700000000000-a.jpg", "property-images/1/1700000000001-b.jpg", UNKNOWN]
    assert tour == "virtual-tour-videos/1/1700000000002-tour.mp4"
    assert report.rows_updated == 1
    assert report.values_rewritten == 2
    assert report.unrecognized == [(1, UNKNOWN)]


def test_backfill_dry_run_writes_nothing(tmp_path):
    engine = make_engine(f"sqlite:///{tmp_path / 'bf.db'}")
    _seed(engine)

    with engine.begin() as conn:
        report = normalize_property_media(conn, dry_run=True)

    photos, tour = _row(engine)
    assert photos[0] == LEGACY
    assert tour == TOUR
    assert report.rows_updated == 1
