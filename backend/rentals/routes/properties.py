from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any

from fastapi import APIRouter, Query

from rentals.deps import Ctx, CurrentUser, DbSession
from rentals.properties import PropertyFilters, PropertyRepository, property_out
from rentals.schemas import PropertyCreateIn, PropertyUpdateIn


logger = logging.getLogger(__name__)

router = APIRouter(tags=["properties"])


@router.get("/api/properties")
def list_properties(
    ctx: Ctx,
    db: DbSession,
    district: str | None = Query(default=None),
    min_price: Decimal | None = Query(default=None, alias="minPrice"),
    max_price: Decimal | None = Query(default=None, alias="maxPrice"),
    min_size: int | None = Query(default=None, alias="minSize"),
    max_size: int | None = Query(default=None, alias="maxSize"),
) -> list[dict[str, Any]]:
    filters = PropertyFilters(
        district=district,
        min_price=min_price,
        max_price=max_price,
        min_size=min_size,
        max_size=max_size,
    )
    items = PropertyRepository(db).list(filters)
    logger.info("Properties fetched count=%s filters=%s", len(items), filters)
    return [property_out(p, ctx.resolver) for p in items]


@router.get("/api/properties/{property_id:int}")
def get_property(property_id: int, ctx: Ctx, db: DbSession) -> dict[str, Any]:
    return property_out(PropertyRepository(db).get(property_id), ctx.resolver)


@router.post("/api/properties")
def create_property(data: PropertyCreateIn, me: CurrentUser, ctx: Ctx, db: DbSession) -> dict[str, Any]:
    p = PropertyRepository(db).create(me.id, data)
    return property_out(p, ctx.resolver)


@router.put("/api/properties/{property_id:int}")
def update_property(
    property_id: int,
    data: PropertyUpdateIn,
    me: CurrentUser,
    ctx: Ctx,
    db: DbSession,
) -> dict[str, Any]:
    p = PropertyRepository(db).update(property_id, me.id, data)
    return property_out(p, ctx.resolver)


@router.delete("/api/properties/{property_id:int}")
def delete_property(property_id: int, me: CurrentUser, ctx: Ctx, db: DbSession) -> dict[str, Any]:
    keys = PropertyRepository(db).delete(property_id, me.id)
    # Row must be gone before blobs are touched; a failed commit keeps them.
    db.commit()
    # Best-effort: remove uploaded media.
    for key in keys:
        try:
            ctx.storage.delete(key)
        except Exception:
            logger.exception("Failed to delete media key=%s property_id=%s", key, property_id)
    return {"success": True}


@router.get("/api/my-listings")
def my_listings(me: CurrentUser, ctx: Ctx, db: DbSession) -> list[dict[str, Any]]:
    items = PropertyRepository(db).list_by_owner(me.id)
    logger.info("User listings retrieved user_id=%s count=%s", me.id, len(items))
    return [property_out(p, ctx.resolver) for p in items]
