"""Store ownership / membership checks for merchant operations."""

import logging
import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from storeflow.errors import Forbidden, NotFound
from storeflow.models import Merchant, Store, StoreMember

logger = logging.getLogger(__name__)


class StoreAccess:
    """Resolves merchants and decides whether they may manage a store."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_merchant(self, auth_user_id: str) -> Merchant | None:
        result = await self.session.execute(
            select(Merchant).where(Merchant.auth_user_id == auth_user_id, Merchant.alive())
        )
        return result.scalar_one_or_none()

    async def can_manage(self, auth_user_id: str, store_id: uuid.UUID) -> bool:
        """True when the merchant owns the store or is an active member of it."""
        merchant = await self.get_merchant(auth_user_id)
        if merchant is None:
            return False

        owner = await self.session.execute(
            select(Store.id).where(
                Store.id == store_id, Store.merchant_id == merchant.id, Store.alive()
            )
        )
        if owner.scalar_one_or_none() is not None:
            return True

        member = await self.session.execute(
            select(StoreMember.id).where(
                StoreMember.store_id == store_id,
                StoreMember.merchant_id == merchant.id,
                StoreMember.is_active.is_(True),
            )
        )
        return member.scalar_one_or_none() is not None

    async def require_store(self, auth_user_id: str, store_id: uuid.UUID) -> Store:
        """Load an alive store the merchant may manage, else NotFound/Forbidden."""
        result = await self.session.execute(
            select(Store).where(Store.id == store_id, Store.alive())
        )
        store = result.scalar_one_or_none()
        if store is None:
            raise NotFound("Store not found", code="STORE_NOT_FOUND")
        if not await self.can_manage(auth_user_id, store_id):
            logger.info("Merchant %s denied access to store %s", auth_user_id, store_id)
            raise Forbidden("You do not have access to this store")
        return store
