"""Per-request service construction shared by the routers."""

from datetime import date, datetime, time, timezone

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from storeflow.auth import get_auth_client
from storeflow.database import get_db
from storeflow.identity import SupabaseAuthClient
from storeflow.services import (
    AuthService,
    CatalogService,
    OrderService,
    ProductService,
    ProfileService,
    StorageService,
    StoreAccess,
    StoreService,
)


def get_storage() -> StorageService:
    return StorageService.from_settings()


def get_catalog(db: AsyncSession = Depends(get_db)) -> CatalogService:
    return CatalogService(db)


def get_access(db: AsyncSession = Depends(get_db)) -> StoreAccess:
    return StoreAccess(db)


def get_product_service(
    db: AsyncSession = Depends(get_db),
    access: StoreAccess = Depends(get_access),
    catalog: CatalogService = Depends(get_catalog),
    storage: StorageService = Depends(get_storage),
) -> ProductService:
    return ProductService(db, access, catalog, storage)


def get_order_service(
    db: AsyncSession = Depends(get_db),
    access: StoreAccess = Depends(get_access),
    storage: StorageService = Depends(get_storage),
) -> OrderService:
    return OrderService(db, access, storage)


def get_store_service(
    db: AsyncSession = Depends(get_db),
    access: StoreAccess = Depends(get_access),
    catalog: CatalogService = Depends(get_catalog),
    storage: StorageService = Depends(get_storage),
) -> StoreService:
    return StoreService(db, access, catalog, storage)


def get_profile_service(db: AsyncSession = Depends(get_db)) -> ProfileService:
    return ProfileService(db)


def get_auth_service(
    db: AsyncSession = Depends(get_db),
    identity: SupabaseAuthClient = Depends(get_auth_client),
) -> AuthService:
    return AuthService(db, identity)


def day_start(value: date | None) -> datetime | None:
    return datetime.combine(value, time.min, tzinfo=timezone.utc) if value else None


def day_end(value: date | None) -> datetime | None:
    return datetime.combine(value, time.max, tzinfo=timezone.utc) if value else None
