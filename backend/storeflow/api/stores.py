"""Public store browsing endpoints."""

import uuid

from fastapi import APIRouter, Depends, Query

from storeflow.api.deps import get_catalog
from storeflow.errors import NotFound
from storeflow.pagination import Pagination, pagination_params
from storeflow.schemas.common import PaginatedData, SuccessResponse, ok, paginated
from storeflow.schemas.products import ProductEnriched
from storeflow.schemas.stores import StoreEnriched, StoreListItem
from storeflow.services.catalog import CatalogService, ProductFilters, StoreFilters

router = APIRouter(prefix="/stores", tags=["stores"])


@router.get("", response_model=SuccessResponse[PaginatedData[StoreListItem]])
async def list_stores(
    category: str | None = Query(None),
    search: str | None = Query(None),
    is_active: bool | None = Query(None),
    pagination: Pagination = Depends(pagination_params),
    catalog: CatalogService = Depends(get_catalog),
):
    filters = StoreFilters(category=category, is_active=is_active, search=search)
    items, total = await catalog.list_stores(filters, pagination)
    return paginated(items, pagination, total)


@router.get("/slug/{slug}", response_model=SuccessResponse[StoreEnriched])
async def get_store_by_slug(slug: str, catalog: CatalogService = Depends(get_catalog)):
    store = await catalog.get_store_by_slug(slug)
    if store is None:
        raise NotFound("Store not found", code="STORE_NOT_FOUND")
    return ok(store)


@router.get("/{store_id}", response_model=SuccessResponse[StoreEnriched])
async def get_store(store_id: uuid.UUID, catalog: CatalogService = Depends(get_catalog)):
    """Store with address, hours, delivery options, active products and status."""
    store = await catalog.get_store_by_id(store_id)
    if store is None:
        raise NotFound("Store not found", code="STORE_NOT_FOUND")
    return ok(store)


@router.get("/{store_id}/categories", response_model=SuccessResponse[list[str]])
async def get_store_categories(store_id: uuid.UUID, catalog: CatalogService = Depends(get_catalog)):
    return ok(await catalog.list_store_categories(store_id))


@router.get("/{store_id}/products", response_model=SuccessResponse[PaginatedData[ProductEnriched]])
async def list_store_products(
    store_id: uuid.UUID,
    category: str | None = Query(None),
    search: str | None = Query(None),
    pagination: Pagination = Depends(pagination_params),
    catalog: CatalogService = Depends(get_catalog),
):
    """Active products of one store, newest first."""
    filters = ProductFilters(store_id=store_id, category=category, is_active=True, search=search)
    items, total = await catalog.list_products(filters, pagination)
    return paginated(items, pagination, total)
