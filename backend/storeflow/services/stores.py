"""Merchant-side store administration."""

import logging
import uuid
from datetime import datetime
from typing import Callable

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from storeflow.database import atomic
from storeflow.errors import NotFound, ValidationFailed
from storeflow.models import Store, StoreAddress, WorkingHours
from storeflow.schemas.stores import (
    StoreEnriched,
    StoreOut,
    StoreStatusOut,
    StoreUpdate,
    UploadOut,
    WorkingHoursInput,
)
from storeflow.services.access import StoreAccess
from storeflow.services.catalog import CatalogService
from storeflow.services.storage import StorageService, discard_replaced_file
from storeflow.services.store_hours import compute_store_status, status_out, store_local_now

logger = logging.getLogger(__name__)

_PAYMENT_FLAGS = {
    "credit_card": "accepts_payment_credit_card",
    "debit_card": "accepts_payment_debit_card",
    "pix": "accepts_payment_pix",
    "cash": "accepts_payment_cash",
}

_SETTINGS_COLUMNS = {
    "is_active": "is_active",
    "delivery_time": "delivery_time",
    "min_order_value": "min_order_value",
    "delivery_fee": "delivery_fee",
    "free_delivery_above": "free_delivery_above",
    "delivery_enabled": "fulfillment_delivery_enabled",
    "pickup_enabled": "fulfillment_pickup_enabled",
    "pickup_instructions": "fulfillment_pickup_instructions",
}

IMAGE_COLUMNS = {"avatar": "avatar_url", "banner": "banner_url"}


class StoreService:
    def __init__(
        self,
        session: AsyncSession,
        access: StoreAccess,
        catalog: CatalogService,
        storage: StorageService | None = None,
        clock: Callable[[], datetime] = store_local_now,
    ):
        self.session = session
        self.access = access
        self.catalog = catalog
        self.storage = storage
        self.clock = clock

    async def _enriched(self, store_id: uuid.UUID) -> StoreEnriched:
        enriched = await self.catalog.get_store_by_id(store_id)
        if enriched is None:
            raise NotFound("Store not found", code="STORE_NOT_FOUND")
        return enriched

    async def _upsert_working_hours(self, store_id: uuid.UUID, hours: WorkingHoursInput) -> None:
        """Replace the row of every weekday present in the payload."""
        result = await self.session.execute(
            select(WorkingHours).where(WorkingHours.store_id == store_id)
        )
        existing = {row.day_of_week: row for row in result.scalars().all()}

        for day, entry in hours.by_day_of_week().items():
            closed = bool(entry.closed)
            row = existing.get(day)
            if row is None:
                row = WorkingHours(store_id=store_id, day_of_week=day)
                self.session.add(row)
            row.is_closed = closed
            row.open_time = None if closed else entry.open
            row.close_time = None if closed else entry.close

    async def update_store(
        self, auth_user_id: str, store_id: uuid.UUID, data: StoreUpdate
    ) -> StoreEnriched:
        store = await self.access.require_store(auth_user_id, store_id)
        provided = data.model_fields_set

        async with atomic(self.session):
            if data.name is not None:
                store.name = data.name
            if "description" in provided:
                store.description = data.description
            if data.category is not None:
                store.category = data.category.value
            if "custom_category" in provided:
                store.custom_category = data.custom_category

            if data.address is not None:
                result = await self.session.execute(
                    select(StoreAddress).where(StoreAddress.store_id == store.id)
                )
                address = result.scalar_one_or_none()
                if address is None:
                    address = StoreAddress(store_id=store.id)
                    self.session.add(address)
                for name, value in data.address.model_dump().items():
                    setattr(address, name, value.upper() if name == "state" else value)

            if data.working_hours is not None:
                await self._upsert_working_hours(store.id, data.working_hours)

            if data.settings is not None:
                settings = data.settings
                for field, column in _SETTINGS_COLUMNS.items():
                    if field in settings.model_fields_set:
                        setattr(store, column, getattr(settings, field))
                if settings.accepts_payment is not None:
                    for field, value in settings.accepts_payment.model_dump(exclude_none=True).items():
                        setattr(store, _PAYMENT_FLAGS[field], value)
                if not (store.fulfillment_delivery_enabled or store.fulfillment_pickup_enabled):
                    raise ValidationFailed.field(
                        "settings", "At least one fulfillment method must be enabled"
                    )

            if data.theme is not None:
                for name, value in data.theme.model_dump(exclude_none=True).items():
                    setattr(store, name, value)

        logger.info("Store %s updated by %s", store.id, auth_user_id)
        return await self._enriched(store.id)

    async def toggle_status(self, auth_user_id: str, store_id: uuid.UUID, is_active: bool) -> StoreOut:
        store = await self.access.require_store(auth_user_id, store_id)
        async with atomic(self.session):
            store.is_active = is_active
        logger.info("Store %s is_active=%s", store.id, is_active)
        return StoreOut.model_validate(store)

    async def get_status(self, auth_user_id: str, store_id: uuid.UUID) -> StoreStatusOut:
        store = await self.access.require_store(auth_user_id, store_id)
        result = await self.session.execute(
            select(WorkingHours).where(WorkingHours.store_id == store.id)
        )
        status = compute_store_status(store.is_active, result.scalars().all(), self.clock())
        return status_out(status, store.id)

    async def upload_store_image(
        self,
        auth_user_id: str,
        store_id: uuid.UUID,
        category: str,
        file_name: str,
        content: bytes,
        content_type: str | None,
    ) -> UploadOut:
        if category not in IMAGE_COLUMNS:
            raise ValidationFailed.field("category", "Category must be 'avatar' or 'banner'")
        if self.storage is None:
            raise RuntimeError("StoreService was built without a storage backend")
        store = await self.access.require_store(auth_user_id, store_id)

        column = IMAGE_COLUMNS[category]
        previous_url = getattr(store, column)
        stored = await self.storage.upload("stores", str(store.id), category, file_name, content, content_type)
        async with atomic(self.session):
            setattr(store, column, stored.url)
        await discard_replaced_file(self.storage, previous_url)
        return UploadOut(url=stored.url, path=stored.path)
