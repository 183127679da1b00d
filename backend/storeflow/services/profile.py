"""Customer and merchant profiles, including saved customer addresses."""

import logging
import uuid

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from storeflow.auth import Principal
from storeflow.database import atomic, utcnow
from storeflow.errors import NotFound, ValidationFailed
from storeflow.models import Customer, CustomerAddress, Merchant, Store
from storeflow.schemas.profile import (
    AddressInput,
    AddressOut,
    AddressPatch,
    AddressReplace,
    CustomerProfileOut,
    MerchantProfileOut,
    OwnedStoreOut,
    ProfileUpdate,
)

logger = logging.getLogger(__name__)

_ADDRESS_FIELDS = (
    "label",
    "street",
    "number",
    "neighborhood",
    "city",
    "state",
    "zip_code",
    "complement",
    "reference",
)


class ProfileService:
    def __init__(self, session: AsyncSession):
        self.session = session

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def _customer(self, auth_user_id: str) -> Customer:
        result = await self.session.execute(
            select(Customer).where(Customer.auth_user_id == auth_user_id, Customer.alive())
        )
        customer = result.scalar_one_or_none()
        if customer is None:
            raise NotFound("Customer not found", code="CUSTOMER_NOT_FOUND")
        return customer

    async def _addresses(self, customer_id: uuid.UUID) -> list[CustomerAddress]:
        result = await self.session.execute(
            select(CustomerAddress)
            .where(CustomerAddress.customer_id == customer_id, CustomerAddress.alive())
            .order_by(CustomerAddress.is_default.desc(), CustomerAddress.created_at)
        )
        return list(result.scalars().all())

    async def _customer_profile(self, customer: Customer, email: str | None) -> CustomerProfileOut:
        addresses = await self._addresses(customer.id)
        return CustomerProfileOut(
            id=customer.id,
            email=email,
            name=customer.name,
            phone=customer.phone,
            addresses=[AddressOut.model_validate(a) for a in addresses],
        )

    async def _merchant_profile(self, auth_user_id: str) -> MerchantProfileOut:
        result = await self.session.execute(
            select(Merchant).where(Merchant.auth_user_id == auth_user_id, Merchant.alive())
        )
        merchant = result.scalar_one_or_none()
        if merchant is None:
            raise NotFound("Merchant not found", code="MERCHANT_NOT_FOUND")

        stores = await self.session.execute(
            select(Store)
            .where(Store.merchant_id == merchant.id, Store.alive())
            .order_by(Store.created_at)
        )
        return MerchantProfileOut(
            id=merchant.id,
            email=merchant.email,
            role=merchant.role,
            stores=[OwnedStoreOut.model_validate(s) for s in stores.scalars().all()],
        )

    async def get_profile(self, principal: Principal) -> CustomerProfileOut | MerchantProfileOut:
        if principal.is_merchant:
            return await self._merchant_profile(principal.id)
        customer = await self._customer(principal.id)
        return await self._customer_profile(customer, principal.email)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def _ensure_phone_available(self, customer: Customer, phone: str) -> None:
        result = await self.session.execute(
            select(Customer.id).where(
                Customer.phone == phone, Customer.id != customer.id, Customer.alive()
            )
        )
        if result.first() is not None:
            raise ValidationFailed.field("phone", "Phone number is already in use")

    async def _clear_defaults(self, customer_id: uuid.UUID, keep: uuid.UUID | None = None) -> None:
        stmt = (
            update(CustomerAddress)
            .where(
                CustomerAddress.customer_id == customer_id,
                CustomerAddress.alive(),
                CustomerAddress.is_default.is_(True),
            )
            .values(is_default=False, updated_at=utcnow())
            .execution_options(synchronize_session="fetch")
        )
        if keep is not None:
            stmt = stmt.where(CustomerAddress.id != keep)
        await self.session.execute(stmt)

    async def _address(self, customer_id: uuid.UUID, address_id: uuid.UUID) -> CustomerAddress:
        result = await self.session.execute(
            select(CustomerAddress).where(
                CustomerAddress.id == address_id,
                CustomerAddress.customer_id == customer_id,
                CustomerAddress.alive(),
            )
        )
        address = result.scalar_one_or_none()
        if address is None:
            raise NotFound(f"Address {address_id} not found", code="ADDRESS_NOT_FOUND")
        return address

    async def _add_address(self, customer_id: uuid.UUID, data: AddressInput, make_default: bool) -> None:
        if make_default:
            await self._clear_defaults(customer_id)
        self.session.add(
            CustomerAddress(
                customer_id=customer_id,
                address_type=data.address_type.value,
                is_default=make_default,
                **{name: getattr(data, name) for name in _ADDRESS_FIELDS},
            )
        )
        await self.session.flush()

    async def _replace_addresses(self, customer_id: uuid.UUID, changes: AddressReplace) -> None:
        for address in await self._addresses(customer_id):
            address.soft_delete()
        await self.session.flush()

        default_claimed = False
        for item in changes.items:
            make_default = bool(item.is_default) and not default_claimed
            default_claimed = default_claimed or make_default
            await self._add_address(customer_id, item, make_default)

    async def _patch_addresses(self, customer_id: uuid.UUID, changes: AddressPatch) -> None:
        for address_id in changes.remove:
            address = await self._address(customer_id, address_id)
            address.soft_delete()
        await self.session.flush()

        default_claimed = False
        for item in changes.update:
            address = await self._address(customer_id, item.id)
            for name in _ADDRESS_FIELDS:
                setattr(address, name, getattr(item, name))
            address.address_type = item.address_type.value
            if item.is_default is not None:
                make_default = item.is_default and not default_claimed
                if make_default:
                    await self._clear_defaults(customer_id, keep=address.id)
                    default_claimed = True
                address.is_default = make_default
            await self.session.flush()

        for item in changes.add:
            make_default = bool(item.is_default) and not default_claimed
            default_claimed = default_claimed or make_default
            await self._add_address(customer_id, item, make_default)

    async def update_profile(self, principal: Principal, data: ProfileUpdate) -> CustomerProfileOut:
        """Apply name/phone changes and address operations in one transaction."""
        customer = await self._customer(principal.id)
        if data.phone is not None and data.phone != customer.phone:
            await self._ensure_phone_available(customer, data.phone)

        async with atomic(self.session):
            if data.name is not None:
                customer.name = data.name
            if data.phone is not None:
                customer.phone = data.phone

            if isinstance(data.addresses, AddressReplace):
                await self._replace_addresses(customer.id, data.addresses)
            elif isinstance(data.addresses, AddressPatch):
                await self._patch_addresses(customer.id, data.addresses)

        logger.info("Profile updated for customer %s", customer.id)
        return await self._customer_profile(customer, principal.email)
