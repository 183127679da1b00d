"""Public product catalog endpoints."""

import uuid

from fastapi import APIRouter, Depends, Query

from storeflow.api.deps import get_catalog
from storeflow.errors import NotFound
from storeflow.pagination import Pagination, pagination_params
from storeflow.schemas.common import PaginatedData, SuccessResponse, ok, paginated
from storeflow.schemas.products import ProductEnriched
from storeflow.services.catalog import CatalogService, ProductFilters

router = APIRouter(prefix="/products", tags=["products"])


@router.get("", response_model=SuccessResponse[PaginatedData[ProductEnriched]])
async def list_products(
    store_id: uuid.UUID | None = Query(None),
    category: str | None = Query(None),
    is_active: bool | None = Query(None),
    search: str | None = Query(None),
    pagination: Pagination = Depends(pagination_params),
    catalog: CatalogService = Depends(get_catalog),
):
    filters = ProductFilters(store_id=store_id, category=category, is_active=is_active, search=search)
    items, total = await catalog.list_products(filters, pagination)
    return paginated(items, pagination, total)


@router.get("/{product_id}", response_model=SuccessResponse[ProductEnriched])
async def get_product(product_id: uuid.UUID, catalog: CatalogService = Depends(get_catalog)):
    product = await catalog.get_product_by_id(product_id)
    if product is None:
        raise NotFound("Product not found", code="PRODUCT_NOT_FOUND")
    return ok(product)
