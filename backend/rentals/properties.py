from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from rentals.errors import Forbidden, NotFound, ValidationFailed
from rentals.media import MediaResolver, key_owner_id, normalize_reference
from rentals.models import DISTRICTS, Property, iso, utcnow
from rentals.schemas import PropertyCreateIn, PropertyUpdateIn


logger = logging.getLogger(__name__)


@dataclass
class PropertyFilters:
    district: str | None = None
    min_price: Decimal | None = None
    max_price: Decimal | None = None
    min_size: int | None = None
    max_size: int | None = None


def _normalize_photos(values: list[str], owner_id: int) -> list[str]:
    keys: list[str] = []
    for value in values:
        if not (value or "").strip():
            continue
        key = normalize_reference(value)
        if key is None:
            raise ValidationFailed(["photos"], "Photos must be uploaded media keys")
        if key_owner_id(key) != int(owner_id):
            logger.warning("Rejected foreign photo key user_id=%s key=%s", owner_id, key)
            raise ValidationFailed(["photos"], "Photos must be your own uploads")
        keys.append(key)
    return keys


def _normalize_tour(value: str | None, owner_id: int) -> str | None:
    if not (value or "").strip():
        return None
    key = normalize_reference(value or "")
    if key is None:
        raise ValidationFailed(["virtualTourUrl"], "Virtual tour must be an uploaded media key")
    if key_owner_id(key) != int(owner_id):
        logger.warning("Rejected foreign virtual tour key user_id=%s key=%s", owner_id, key)
        raise ValidationFailed(["virtualTourUrl"], "Virtual tour must be your own upload")
    return key


class PropertyRepository:
    def __init__(self, db: Session) -> None:
        self.db = db

    def list(self, filters: PropertyFilters) -> list[Property]:
        stmt = select(Property)
        # Unknown districts are ignored rather than rejected.
        if filters.district and filters.district in DISTRICTS:
            stmt = stmt.where(Property.district == filters.district)
        if filters.min_price is not None:
            stmt = stmt.where(Property.price >= filters.min_price)
        if filters.max_price is not None:
            stmt = stmt.where(Property.price <= filters.max_price)
        if filters.min_size is not None:
            stmt = stmt.where(Property.size >= int(filters.min_size))
        if filters.max_size is not None:
            stmt = stmt.where(Property.size <= int(filters.max_size))
        stmt = stmt.order_by(Property.created_at.desc(), Property.id.desc())
        return list(self.db.execute(stmt).scalars().all())

    def get(self, property_id: int, *, for_update: bool = False) -> Property:
        stmt = select(Property).where(Property.id == int(property_id))
        if for_update:
            # Row lock where the backend supports it (no-op on SQLite).
            stmt = stmt.with_for_update()
        p = self.db.execute(stmt).scalar_one_or_none()
        if not p:
            raise NotFound("Property not found")
        return p

    def _get_owned(self, property_id: int, owner_id: int, action: str) -> Property:
        p = self.get(property_id, for_update=True)
        if int(p.owner_id) != int(owner_id):
            logger.warning(
                "Unauthorized property %s attempt property_id=%s user_id=%s owner_id=%s",
                action,
                property_id,
                owner_id,
                p.owner_id,
            )
            raise Forbidden(f"Unauthorized to {action} this property")
        return p

    def create(self, owner_id: int, data: PropertyCreateIn) -> Property:
        p = Property(
            owner_id=int(owner_id),
            title=data.title,
            description=data.description,
            price=Decimal(str(data.price)),
            size=int(data.size),
            district=data.district,
            equipment=data.equipment,
            photos=_normalize_photos(data.photos, owner_id),
            virtual_tour_url=_normalize_tour(data.virtual_tour_url, owner_id),
        )
        self.db.add(p)
        self.db.flush()
        logger.info("Property created property_id=%s user_id=%s", p.id, owner_id)
        return p

    def update(self, property_id: int, owner_id: int, data: PropertyUpdateIn) -> Property:
        p = self._get_owned(property_id, owner_id, "update")
        present = data.model_fields_set

        nulls = [f for f in ("title", "price", "size", "district", "photos") if f in present and getattr(data, f) is None]
        if nulls:
            raise ValidationFailed(nulls, "Required fields cannot be null")

        if "title" in present:
            p.title = data.title
        if "description" in present:
            p.description = data.description
        if "price" in present:
            p.price = Decimal(str(data.price))
        if "size" in present:
            p.size = int(data.size)
        if "district" in present:
            p.district = data.district
        if "equipment" in present:
            p.equipment = data.equipment
        if "photos" in present:
            p.photos = _normalize_photos(data.photos or [], owner_id)
        if "virtual_tour_url" in present:
            p.virtual_tour_url = _normalize_tour(data.virtual_tour_url, owner_id)

        p.updated_at = utcnow()
        self.db.add(p)
        self.db.flush()
        logger.info("Property updated property_id=%s user_id=%s fields=%s", p.id, owner_id, sorted(present))
        return p

    def delete(self, property_id: int, owner_id: int) -> list[str]:
        """Delete an owned property; returns the media keys it referenced."""
        p = self._get_owned(property_id, owner_id, "delete")
        keys = list(p.photos or [])
        if p.virtual_tour_url:
            keys.append(p.virtual_tour_url)
        # Chats and messages go with it through ON DELETE CASCADE.
        self.db.delete(p)
        self.db.flush()
        logger.info("Property deleted property_id=%s user_id=%s", property_id, owner_id)
        released = {k for k in (normalize_reference(v) for v in keys) if k}
        shared = released & self._keys_in_use(released)
        if shared:
            logger.info("Keeping media still referenced elsewhere property_id=%s keys=%s", property_id, sorted(shared))
        return sorted(released - shared)

    def _keys_in_use(self, keys: set[str]) -> set[str]:
        """Keys from `keys` that a remaining property still references."""
        if not keys:
            return set()
        # Rows written before ownership checks may point at anyone's keys, and
        # JSON containment is not portable, so every remaining row is scanned.
        stmt = select(Property.photos, Property.virtual_tour_url)
        used: set[str] = set()
        for photos, tour in self.db.execute(stmt):
            for value in [*(photos or []), tour]:
                key = normalize_reference(value) if value else None
                if key in keys:
                    used.add(key)
        return used

    def list_by_owner(self, owner_id: int) -> list[Property]:
        stmt = (
            select(Property)
            .where(Property.owner_id == int(owner_id))
            .order_by(Property.created_at.desc(), Property.id.desc())
        )
        return list(self.db.execute(stmt).scalars().all())


def property_out(p: Property, resolver: MediaResolver) -> dict[str, Any]:
    keys = [k for k in (normalize_reference(v) for v in (p.photos or [])) if k]
    tour_key = normalize_reference(p.virtual_tour_url) if p.virtual_tour_url else None
    return {
        "id": p.id,
        "title": p.title,
        "description": p.description,
        "price": f"{Decimal(p.price):.2f}",
        "size": p.size,
        "district": p.district,
        "equipment": p.equipment,
        "photos": resolver.resolve(p.photos),
        "photoKeys": keys,
        "virtualTourUrl": resolver.resolve_one(p.virtual_tour_url),
        "virtualTourKey": tour_key,
        "ownerId": p.owner_id,
        "createdAt": iso(p.created_at),
        "updatedAt": iso(p.updated_at),
    }
