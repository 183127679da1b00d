"""Product lifecycle: create, update, (de)activate, delete and customizations.

Every mutation appends exactly one ``ProductHistory`` row.
"""

import logging
import uuid
from decimal import Decimal
from typing import Any

from sqlalchemy import delete, func, insert, select
from sqlalchemy.ext.asyncio import AsyncSession

from storeflow.database import atomic
from storeflow.errors import NotFound, ValidationFailed
from storeflow.models import (
    ExtraList,
    Order,
    OrderItem,
    OrderItemCustomization,
    Product,
    ProductCategoryPriceLimit,
    ProductCustomization,
    ProductHistory,
    product_extra_lists,
)
from storeflow.models.enums import ChangeType
from storeflow.order_status import non_terminal_values
from storeflow.schemas.products import (
    CustomizationChanges,
    CustomizationInput,
    CustomizationOut,
    ProductCreate,
    ProductEnriched,
    ProductOut,
    ProductUpdate,
)
from storeflow.services.access import StoreAccess
from storeflow.services.catalog import CatalogService
from storeflow.services.storage import StorageService, discard_replaced_file

logger = logging.getLogger(__name__)

# Scalar fields of ProductUpdate that map 1:1 onto Product columns.
_SCALAR_FIELDS = (
    "name",
    "price",
    "family",
    "category",
    "description",
    "cost_price",
    "image_url",
    "custom_category",
    "is_active",
    "preparation_time",
    "nutritional_info",
)


def _column_value(value: Any) -> Any:
    return value.value if hasattr(value, "value") else value


class ProductService:
    def __init__(
        self,
        session: AsyncSession,
        access: StoreAccess,
        catalog: CatalogService,
        storage: StorageService | None = None,
    ):
        self.session = session
        self.access = access
        self.catalog = catalog
        self.storage = storage

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _snapshot(product: Product) -> dict:
        return ProductOut.model_validate(product).model_dump(mode="json")

    def _record(
        self,
        product: Product,
        change_type: ChangeType,
        changed_by: str,
        previous: dict | None = None,
        changed_fields: list[str] | None = None,
    ) -> None:
        self.session.add(
            ProductHistory(
                product_id=product.id,
                change_type=change_type.value,
                previous_data=previous,
                new_data=self._snapshot(product) if change_type != ChangeType.DELETED else None,
                changed_fields=changed_fields,
                changed_by=changed_by,
            )
        )

    async def _load_product(self, store_id: uuid.UUID, product_id: uuid.UUID) -> Product:
        result = await self.session.execute(
            select(Product).where(
                Product.id == product_id, Product.store_id == store_id, Product.alive()
            )
        )
        product = result.scalar_one_or_none()
        if product is None:
            raise NotFound("Product not found", code="PRODUCT_NOT_FOUND")
        return product

    async def _check_price_limit(self, store_id: uuid.UUID, category: str, price: Decimal) -> None:
        result = await self.session.execute(
            select(ProductCategoryPriceLimit).where(
                ProductCategoryPriceLimit.store_id == store_id,
                ProductCategoryPriceLimit.category == category,
            )
        )
        limit = result.scalar_one_or_none()
        if limit is None:
            return
        if limit.min_price is not None and price < limit.min_price:
            raise ValidationFailed.field(
                "price", f"Price for category '{category}' must be at least {limit.min_price}"
            )
        if limit.max_price is not None and price > limit.max_price:
            raise ValidationFailed.field(
                "price", f"Price for category '{category}' must be at most {limit.max_price}"
            )

    async def _check_extra_lists(self, store_id: uuid.UUID, extra_list_ids: list[uuid.UUID]) -> None:
        if not extra_list_ids:
            return
        wanted = set(extra_list_ids)
        result = await self.session.execute(
            select(ExtraList.id).where(
                ExtraList.id.in_(wanted), ExtraList.store_id == store_id, ExtraList.alive()
            )
        )
        found = set(result.scalars().all())
        missing = wanted - found
        if missing:
            raise ValidationFailed.field(
                "extraListIds",
                "Extra lists not found in this store: " + ", ".join(sorted(str(m) for m in missing)),
            )

    async def _current_extra_list_ids(self, product_id: uuid.UUID) -> set[uuid.UUID]:
        result = await self.session.execute(
            select(product_extra_lists.c.extra_list_id).where(
                product_extra_lists.c.product_id == product_id
            )
        )
        return set(result.scalars().all())

    async def _replace_extra_lists(self, product_id: uuid.UUID, extra_list_ids: set[uuid.UUID]) -> None:
        await self.session.execute(
            delete(product_extra_lists).where(product_extra_lists.c.product_id == product_id)
        )
        if extra_list_ids:
            await self.session.execute(
                insert(product_extra_lists),
                [{"product_id": product_id, "extra_list_id": list_id} for list_id in extra_list_ids],
            )

    async def _product_in_open_orders(self, product_id: uuid.UUID) -> bool:
        result = await self.session.execute(
            select(func.count(OrderItem.id))
            .join(Order, Order.id == OrderItem.order_id)
            .where(
                OrderItem.product_id == product_id,
                Order.status.in_(non_terminal_values()),
                Order.alive(),
            )
        )
        return result.scalar_one() > 0

    async def _customization_in_open_orders(self, customization_id: uuid.UUID) -> bool:
        result = await self.session.execute(
            select(func.count(OrderItemCustomization.id))
            .join(OrderItem, OrderItem.id == OrderItemCustomization.order_item_id)
            .join(Order, Order.id == OrderItem.order_id)
            .where(
                OrderItemCustomization.customization_id == customization_id,
                Order.status.in_(non_terminal_values()),
                Order.alive(),
            )
        )
        return result.scalar_one() > 0

    async def _load_customization(
        self, product_id: uuid.UUID, customization_id: uuid.UUID
    ) -> ProductCustomization:
        result = await self.session.execute(
            select(ProductCustomization).where(
                ProductCustomization.id == customization_id,
                ProductCustomization.product_id == product_id,
                ProductCustomization.alive(),
            )
        )
        customization = result.scalar_one_or_none()
        if customization is None:
            raise NotFound("Customization not found", code="CUSTOMIZATION_NOT_FOUND")
        return customization

    @staticmethod
    def _new_customization(product_id: uuid.UUID, data: CustomizationInput) -> ProductCustomization:
        return ProductCustomization(
            product_id=product_id,
            name=data.name,
            customization_type=data.customization_type.value,
            price=data.price,
            selection_type=data.selection_type.value,
            selection_group=data.selection_group,
        )

    async def _apply_customization_changes(
        self, product_id: uuid.UUID, changes: CustomizationChanges
    ) -> bool:
        """Apply remove -> update -> add; returns True when anything changed."""
        changed = False
        for customization_id in changes.remove:
            customization = await self._load_customization(product_id, customization_id)
            if await self._customization_in_open_orders(customization_id):
                raise ValidationFailed.field(
                    "customizations",
                    f"Customization {customization_id} is used by orders in progress",
                )
            customization.soft_delete()
            changed = True

        for item in changes.update:
            customization = await self._load_customization(product_id, item.id)
            customization.name = item.name
            customization.customization_type = item.customization_type.value
            customization.price = item.price
            customization.selection_type = item.selection_type.value
            customization.selection_group = item.selection_group
            changed = True

        for item in changes.add:
            self.session.add(self._new_customization(product_id, item))
            changed = True
        return changed

    async def _enriched(self, product_id: uuid.UUID) -> ProductEnriched:
        enriched = await self.catalog.get_product_by_id(product_id)
        if enriched is None:
            raise NotFound("Product not found", code="PRODUCT_NOT_FOUND")
        return enriched

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def create_product(
        self, auth_user_id: str, store_id: uuid.UUID, data: ProductCreate
    ) -> ProductEnriched:
        await self.access.require_store(auth_user_id, store_id)
        await self._check_price_limit(store_id, data.category, data.price)
        await self._check_extra_lists(store_id, data.extra_list_ids)

        async with atomic(self.session):
            product = Product(
                store_id=store_id,
                name=data.name,
                description=data.description,
                price=data.price,
                cost_price=data.cost_price,
                family=data.family.value,
                category=data.category,
                custom_category=data.custom_category,
                is_active=data.is_active,
                image_url=data.image_url,
                preparation_time=data.preparation_time,
                nutritional_info=data.nutritional_info,
                created_by=auth_user_id,
            )
            self.session.add(product)
            await self.session.flush()

            for item in data.customizations:
                self.session.add(self._new_customization(product.id, item))
            await self._replace_extra_lists(product.id, set(data.extra_list_ids))
            self._record(product, ChangeType.CREATED, auth_user_id)

        logger.info("Product %s created in store %s", product.id, store_id)
        return await self._enriched(product.id)

    async def update_product(
        self, auth_user_id: str, store_id: uuid.UUID, product_id: uuid.UUID, data: ProductUpdate
    ) -> ProductEnriched:
        await self.access.require_store(auth_user_id, store_id)
        product = await self._load_product(store_id, product_id)

        provided = data.model_fields_set
        new_values = {
            name: _column_value(getattr(data, name)) for name in _SCALAR_FIELDS if name in provided
        }
        for name in ("name", "price", "family", "category", "is_active"):
            # Non-nullable columns: an explicit null means "leave unchanged".
            if name in new_values and new_values[name] is None:
                del new_values[name]
        changed_fields = [
            name for name, value in new_values.items() if getattr(product, name) != value
        ]

        if "price" in changed_fields or "category" in changed_fields:
            await self._check_price_limit(
                store_id,
                new_values.get("category", product.category),
                new_values.get("price", product.price),
            )

        extra_list_ids = None
        if data.extra_list_ids is not None:
            await self._check_extra_lists(store_id, data.extra_list_ids)
            extra_list_ids = set(data.extra_list_ids)

        previous = self._snapshot(product)
        async with atomic(self.session):
            for name in changed_fields:
                setattr(product, name, new_values[name])

            if data.customizations is not None:
                if await self._apply_customization_changes(product.id, data.customizations):
                    changed_fields.append("customizations")

            if extra_list_ids is not None and extra_list_ids != await self._current_extra_list_ids(product.id):
                await self._replace_extra_lists(product.id, extra_list_ids)
                changed_fields.append("extra_list_ids")

            await self.session.flush()
            self._record(product, ChangeType.UPDATED, auth_user_id, previous, changed_fields)

        return await self._enriched(product.id)

    async def _set_active(
        self, auth_user_id: str, store_id: uuid.UUID, product_id: uuid.UUID, is_active: bool
    ) -> ProductEnriched:
        await self.access.require_store(auth_user_id, store_id)
        product = await self._load_product(store_id, product_id)
        previous = self._snapshot(product)
        async with atomic(self.session):
            product.is_active = is_active
            await self.session.flush()
            change_type = ChangeType.ACTIVATED if is_active else ChangeType.DEACTIVATED
            self._record(product, change_type, auth_user_id, previous, ["is_active"])
        return await self._enriched(product.id)

    async def deactivate_product(
        self, auth_user_id: str, store_id: uuid.UUID, product_id: uuid.UUID
    ) -> ProductEnriched:
        return await self._set_active(auth_user_id, store_id, product_id, False)

    async def activate_product(
        self, auth_user_id: str, store_id: uuid.UUID, product_id: uuid.UUID
    ) -> ProductEnriched:
        return await self._set_active(auth_user_id, store_id, product_id, True)

    async def delete_product(self, auth_user_id: str, store_id: uuid.UUID, product_id: uuid.UUID) -> None:
        await self.access.require_store(auth_user_id, store_id)
        product = await self._load_product(store_id, product_id)
        if await self._product_in_open_orders(product.id):
            raise ValidationFailed.field(
                "product", "Product cannot be deleted while it is part of orders in progress"
            )

        previous = self._snapshot(product)
        async with atomic(self.session):
            product.soft_delete()
            self._record(product, ChangeType.DELETED, auth_user_id, previous, ["deleted_at"])
        logger.info("Product %s deleted from store %s", product.id, store_id)

    async def add_customization(
        self, auth_user_id: str, store_id: uuid.UUID, product_id: uuid.UUID, data: CustomizationInput
    ) -> CustomizationOut:
        await self.access.require_store(auth_user_id, store_id)
        product = await self._load_product(store_id, product_id)
        previous = self._snapshot(product)
        async with atomic(self.session):
            customization = self._new_customization(product.id, data)
            self.session.add(customization)
            await self.session.flush()
            self._record(product, ChangeType.UPDATED, auth_user_id, previous, ["customizations"])
        return CustomizationOut.model_validate(customization)

    async def remove_customization(
        self,
        auth_user_id: str,
        store_id: uuid.UUID,
        product_id: uuid.UUID,
        customization_id: uuid.UUID,
    ) -> None:
        await self.access.require_store(auth_user_id, store_id)
        product = await self._load_product(store_id, product_id)
        customization = await self._load_customization(product.id, customization_id)
        if await self._customization_in_open_orders(customization.id):
            raise ValidationFailed.field(
                "customization", "Customization cannot be removed while it is part of orders in progress"
            )

        previous = self._snapshot(product)
        async with atomic(self.session):
            customization.soft_delete()
            self._record(product, ChangeType.UPDATED, auth_user_id, previous, ["customizations"])

    async def set_product_image(
        self,
        auth_user_id: str,
        store_id: uuid.UUID,
        product_id: uuid.UUID,
        file_name: str,
        content: bytes,
        content_type: str | None,
    ) -> ProductEnriched:
        if self.storage is None:
            raise RuntimeError("ProductService was built without a storage backend")
        await self.access.require_store(auth_user_id, store_id)
        product = await self._load_product(store_id, product_id)

        stored = await self.storage.upload(
            "products", str(product.id), "primary", file_name, content, content_type
        )
        previous = self._snapshot(product)
        previous_url = product.image_url
        async with atomic(self.session):
            product.image_url = stored.url
            await self.session.flush()
            self._record(product, ChangeType.UPDATED, auth_user_id, previous, ["image_url"])
        await discard_replaced_file(self.storage, previous_url)
        return await self._enriched(product.id)
