from __future__ import annotations

from typing import Any

from fastapi import APIRouter, File, UploadFile

from rentals.deps import Ctx, CurrentUser


router = APIRouter(prefix="/api/upload", tags=["upload"])


@router.post("/property-image")
def upload_property_image(
    me: CurrentUser,
    ctx: Ctx,
    image: UploadFile | None = File(default=None),
) -> dict[str, Any]:
    """Store a property photo; returns its stable key (not a URL)."""
    return ctx.upload_gate.upload_image(me.id, image)


@router.post("/virtual-tour-video")
def upload_virtual_tour_video(
    me: CurrentUser,
    ctx: Ctx,
    video: UploadFile | None = File(default=None),
) -> dict[str, Any]:
    return ctx.upload_gate.upload_video(me.id, video)
