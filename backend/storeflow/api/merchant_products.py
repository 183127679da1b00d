"""Product management endpoints for merchants."""

import uuid

from fastapi import APIRouter, Depends, File, UploadFile

from storeflow.api.deps import get_product_service
from storeflow.auth import Principal, require_merchant
from storeflow.schemas.common import SuccessResponse, ok
from storeflow.schemas.products import CustomizationInput, CustomizationOut, ProductCreate, ProductEnriched, ProductUpdate
from storeflow.services import ProductService

router = APIRouter(prefix="/merchant/stores/{store_id}/products", tags=["merchant-products"])


@router.post("", response_model=SuccessResponse[ProductEnriched], status_code=201)
async def create_product(
    store_id: uuid.UUID,
    data: ProductCreate,
    principal: Principal = Depends(require_merchant),
    service: ProductService = Depends(get_product_service),
):
    product = await service.create_product(principal.id, store_id, data)
    return ok(product, "Product created")


@router.patch("/{product_id}", response_model=SuccessResponse[ProductEnriched])
async def update_product(
    store_id: uuid.UUID,
    product_id: uuid.UUID,
    data: ProductUpdate,
    principal: Principal = Depends(require_merchant),
    service: ProductService = Depends(get_product_service),
):
    product = await service.update_product(principal.id, store_id, product_id, data)
    return ok(product, "Product updated")


@router.delete("/{product_id}")
async def delete_product(
    store_id: uuid.UUID,
    product_id: uuid.UUID,
    principal: Principal = Depends(require_merchant),
    service: ProductService = Depends(get_product_service),
):
    await service.delete_product(principal.id, store_id, product_id)
    return ok(None, "Product deleted")


@router.patch("/{product_id}/deactivate", response_model=SuccessResponse[ProductEnriched])
async def deactivate_product(
    store_id: uuid.UUID,
    product_id: uuid.UUID,
    principal: Principal = Depends(require_merchant),
    service: ProductService = Depends(get_product_service),
):
    product = await service.deactivate_product(principal.id, store_id, product_id)
    return ok(product, "Product deactivated")


@router.patch("/{product_id}/activate", response_model=SuccessResponse[ProductEnriched])
async def activate_product(
    store_id: uuid.UUID,
    product_id: uuid.UUID,
    principal: Principal = Depends(require_merchant),
    service: ProductService = Depends(get_product_service),
):
    product = await service.activate_product(principal.id, store_id, product_id)
    return ok(product, "Product activated")


@router.post(
    "/{product_id}/customizations",
    response_model=SuccessResponse[CustomizationOut],
    status_code=201,
)
async def add_customization(
    store_id: uuid.UUID,
    product_id: uuid.UUID,
    data: CustomizationInput,
    principal: Principal = Depends(require_merchant),
    service: ProductService = Depends(get_product_service),
):
    customization = await service.add_customization(principal.id, store_id, product_id, data)
    return ok(customization, "Customization added")


@router.delete("/{product_id}/customizations/{customization_id}")
async def remove_customization(
    store_id: uuid.UUID,
    product_id: uuid.UUID,
    customization_id: uuid.UUID,
    principal: Principal = Depends(require_merchant),
    service: ProductService = Depends(get_product_service),
):
    await service.remove_customization(principal.id, store_id, product_id, customization_id)
    return ok(None, "Customization removed")


@router.post("/{product_id}/upload", response_model=SuccessResponse[ProductEnriched], status_code=201)
async def upload_product_image(
    store_id: uuid.UUID,
    product_id: uuid.UUID,
    file: UploadFile = File(...),
    principal: Principal = Depends(require_merchant),
    service: ProductService = Depends(get_product_service),
):
    content = await file.read()
    product = await service.set_product_image(
        principal.id, store_id, product_id, file.filename or "upload", content, file.content_type
    )
    return ok(product, "Image uploaded")
