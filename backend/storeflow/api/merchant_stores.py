"""Store administration endpoints for merchants."""

import uuid

from fastapi import APIRouter, Depends, File, UploadFile

from storeflow.api.deps import get_store_service
from storeflow.auth import Principal, require_merchant
from storeflow.schemas.common import SuccessResponse, ok
from storeflow.schemas.stores import (
    StoreEnriched,
    StoreOut,
    StoreStatusOut,
    StoreUpdate,
    ToggleStatusRequest,
    UploadOut,
)
from storeflow.services import StoreService

router = APIRouter(prefix="/merchant/stores", tags=["merchant-stores"])


@router.patch("/{store_id}", response_model=SuccessResponse[StoreEnriched])
async def update_store(
    store_id: uuid.UUID,
    data: StoreUpdate,
    principal: Principal = Depends(require_merchant),
    service: StoreService = Depends(get_store_service),
):
    store = await service.update_store(principal.id, store_id, data)
    return ok(store, "Store updated")


@router.get("/{store_id}/status", response_model=SuccessResponse[StoreStatusOut])
async def get_store_status(
    store_id: uuid.UUID,
    principal: Principal = Depends(require_merchant),
    service: StoreService = Depends(get_store_service),
):
    return ok(await service.get_status(principal.id, store_id))


@router.patch("/{store_id}/toggle-status", response_model=SuccessResponse[StoreOut])
async def toggle_store_status(
    store_id: uuid.UUID,
    data: ToggleStatusRequest,
    principal: Principal = Depends(require_merchant),
    service: StoreService = Depends(get_store_service),
):
    store = await service.toggle_status(principal.id, store_id, data.is_active)
    return ok(store, "Store activated" if data.is_active else "Store deactivated")


@router.post("/{store_id}/upload/{category}", response_model=SuccessResponse[UploadOut], status_code=201)
async def upload_store_image(
    store_id: uuid.UUID,
    category: str,
    file: UploadFile = File(...),
    principal: Principal = Depends(require_merchant),
    service: StoreService = Depends(get_store_service),
):
    """Upload the store avatar or banner (``category`` is ``avatar`` or ``banner``)."""
    content = await file.read()
    upload = await service.upload_store_image(
        principal.id, store_id, category, file.filename or "upload", content, file.content_type
    )
    return ok(upload, "File uploaded")
