"""Catalog read side: product and store listings with enrichment."""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from storeflow.models import (
    Product,
    ProductCustomization,
    Store,
    StoreDeliveryOption,
    StoreMember,
    product_extra_lists,
)
from storeflow.pagination import Pagination
from storeflow.schemas.products import CustomizationOut, ProductEnriched, ProductOut
from storeflow.schemas.stores import (
    DeliveryOptionOut,
    StoreAddressOut,
    StoreEnriched,
    StoreListItem,
    StoreOut,
    WorkingHoursOut,
)
from storeflow.services.store_hours import compute_store_status, status_out, store_local_now

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ProductFilters:
    store_id: Optional[uuid.UUID] = None
    category: Optional[str] = None
    is_active: Optional[bool] = None
    search: Optional[str] = None


@dataclass(frozen=True, slots=True)
class StoreFilters:
    category: Optional[str] = None
    is_active: Optional[bool] = None
    search: Optional[str] = None


class CatalogService:
    """Read-only queries over products and stores."""

    def __init__(self, session: AsyncSession, clock: Callable[[], datetime] = store_local_now):
        self.session = session
        self.clock = clock

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _product_clauses(filters: ProductFilters) -> list:
        """Predicate shared by the product list and count queries."""
        clauses = [Product.alive(), Store.alive()]
        if filters.store_id is not None:
            clauses.append(Product.store_id == filters.store_id)
        if filters.category:
            clauses.append(Product.category == filters.category)
        if filters.is_active is not None:
            clauses.append(Product.is_active.is_(filters.is_active))
        if filters.search:
            clauses.append(
                or_(
                    Product.name.icontains(filters.search, autoescape=True),
                    Product.description.icontains(filters.search, autoescape=True),
                )
            )
        return clauses

    @staticmethod
    def _store_clauses(filters: StoreFilters) -> list:
        clauses = [Store.alive()]
        if filters.category:
            clauses.append(Store.category == filters.category)
        if filters.is_active is not None:
            clauses.append(Store.is_active.is_(filters.is_active))
        if filters.search:
            clauses.append(
                or_(
                    Store.name.icontains(filters.search, autoescape=True),
                    Store.description.icontains(filters.search, autoescape=True),
                )
            )
        return clauses

    @staticmethod
    def _customizations_count():
        return (
            select(func.count(ProductCustomization.id))
            .where(ProductCustomization.product_id == Product.id, ProductCustomization.alive())
            .correlate(Product)
            .scalar_subquery()
        )

    @staticmethod
    def _extra_lists_count():
        return (
            select(func.count())
            .select_from(product_extra_lists)
            .where(product_extra_lists.c.product_id == Product.id)
            .correlate(Product)
            .scalar_subquery()
        )

    @staticmethod
    def _products_count(active_only: bool = True):
        query = select(func.count(Product.id)).where(Product.store_id == Store.id, Product.alive())
        if active_only:
            query = query.where(Product.is_active.is_(True))
        return query.correlate(Store).scalar_subquery()

    def _enriched_products_query(self):
        return (
            select(
                Product,
                Store.name,
                Store.slug,
                Store.category,
                self._customizations_count(),
                self._extra_lists_count(),
            )
            .join(Store, Store.id == Product.store_id)
        )

    @staticmethod
    def _to_enriched(row) -> ProductEnriched:
        product, store_name, store_slug, store_category, customizations_count, extra_lists_count = row
        return ProductEnriched(
            **ProductOut.model_validate(product).model_dump(),
            store_name=store_name,
            store_slug=store_slug,
            store_category=store_category,
            customizations_count=customizations_count or 0,
            extra_lists_count=extra_lists_count or 0,
        )

    # ------------------------------------------------------------------
    # Products
    # ------------------------------------------------------------------

    async def list_products(
        self, filters: ProductFilters, pagination: Pagination
    ) -> tuple[list[ProductEnriched], int]:
        clauses = self._product_clauses(filters)

        count_result = await self.session.execute(
            select(func.count(Product.id))
            .join(Store, Store.id == Product.store_id)
            .where(*clauses)
        )
        total = count_result.scalar_one()

        result = await self.session.execute(
            self._enriched_products_query()
            .where(*clauses)
            .order_by(Product.created_at.desc(), Product.id)
            .offset(pagination.offset)
            .limit(pagination.limit)
        )
        return [self._to_enriched(row) for row in result.all()], total

    async def get_product_by_id(self, product_id: uuid.UUID) -> ProductEnriched | None:
        result = await self.session.execute(
            self._enriched_products_query().where(
                Product.id == product_id, Product.alive(), Store.alive()
            )
        )
        row = result.one_or_none()
        if row is None:
            return None

        enriched = self._to_enriched(row)
        customizations = await self.session.execute(
            select(ProductCustomization)
            .where(ProductCustomization.product_id == product_id, ProductCustomization.alive())
            .order_by(ProductCustomization.created_at)
        )
        extra_list_ids = await self.session.execute(
            select(product_extra_lists.c.extra_list_id).where(
                product_extra_lists.c.product_id == product_id
            )
        )
        enriched.customizations = [
            CustomizationOut.model_validate(c) for c in customizations.scalars().all()
        ]
        enriched.extra_list_ids = list(extra_list_ids.scalars().all())
        return enriched

    async def list_store_categories(self, store_id: uuid.UUID) -> list[str]:
        result = await self.session.execute(
            select(Product.category)
            .where(
                Product.store_id == store_id,
                Product.alive(),
                Product.is_active.is_(True),
            )
            .distinct()
            .order_by(Product.category)
        )
        return list(result.scalars().all())

    # ------------------------------------------------------------------
    # Stores
    # ------------------------------------------------------------------

    async def list_stores(
        self, filters: StoreFilters, pagination: Pagination
    ) -> tuple[list[StoreListItem], int]:
        clauses = self._store_clauses(filters)

        count_result = await self.session.execute(select(func.count(Store.id)).where(*clauses))
        total = count_result.scalar_one()

        result = await self.session.execute(
            select(Store, self._products_count())
            .where(*clauses)
            .order_by(Store.created_at.desc(), Store.id)
            .offset(pagination.offset)
            .limit(pagination.limit)
        )
        items = [
            StoreListItem(**StoreOut.model_validate(store).model_dump(), products_count=count or 0)
            for store, count in result.all()
        ]
        return items, total

    async def _enriched_store(self, *clauses) -> StoreEnriched | None:
        result = await self.session.execute(
            select(Store)
            .options(selectinload(Store.address), selectinload(Store.working_hours))
            .where(Store.alive(), *clauses)
            .execution_options(populate_existing=True)
        )
        store = result.scalar_one_or_none()
        if store is None:
            return None

        products = await self.session.execute(
            select(Product)
            .where(Product.store_id == store.id, Product.alive(), Product.is_active.is_(True))
            .order_by(Product.category, Product.name)
        )
        options = await self.session.execute(
            select(StoreDeliveryOption).where(
                StoreDeliveryOption.store_id == store.id,
                StoreDeliveryOption.alive(),
                StoreDeliveryOption.is_active.is_(True),
            )
        )
        members = await self.session.execute(
            select(func.count(StoreMember.id)).where(
                StoreMember.store_id == store.id, StoreMember.is_active.is_(True)
            )
        )

        product_rows = [ProductOut.model_validate(p) for p in products.scalars().all()]
        status = compute_store_status(store.is_active, store.working_hours, self.clock())
        return StoreEnriched(
            **StoreOut.model_validate(store).model_dump(),
            address=StoreAddressOut.model_validate(store.address) if store.address else None,
            working_hours=[WorkingHoursOut.model_validate(h) for h in store.working_hours],
            delivery_options=[DeliveryOptionOut.model_validate(o) for o in options.scalars().all()],
            products=product_rows,
            products_count=len(product_rows),
            team_members_count=members.scalar_one(),
            status=status_out(status, store.id),
        )

    async def get_store_by_id(self, store_id: uuid.UUID) -> StoreEnriched | None:
        return await self._enriched_store(Store.id == store_id)

    async def get_store_by_slug(self, slug: str) -> StoreEnriched | None:
        return await self._enriched_store(Store.slug == slug)
