"""Signup, login and session flows backed by Supabase Auth."""

import logging
import re
import unicodedata
import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from storeflow.database import atomic
from storeflow.errors import ApiError, BadRequest, Conflict, Forbidden, NotFound, Unauthorized
from storeflow.identity import AuthTokens, IdentityError, SupabaseAuthClient
from storeflow.models import Customer, Merchant, Store, StoreCustomer, StoreMember
from storeflow.models.enums import MerchantRole, PrincipalType
from storeflow.schemas.auth import (
    CustomerLoginRequest,
    CustomerSession,
    CustomerSignupRequest,
    MerchantLoginRequest,
    MerchantSession,
    MerchantSignupRequest,
    SignupResult,
    TokenPair,
)

logger = logging.getLogger(__name__)


class IdentityUnavailable(ApiError):
    status_code = 503
    code = "AUTH_PROVIDER_UNAVAILABLE"
    default_message = "Authentication service is unavailable"


def slugify(value: str) -> str:
    ascii_value = unicodedata.normalize("NFD", value.lower()).encode("ascii", "ignore").decode()
    slug = re.sub(r"[^a-z0-9]+", "-", ascii_value).strip("-")
    return slug or "loja"


def _provider_failure(exc: IdentityError, message: str, code: str) -> ApiError:
    if exc.status_code is not None and exc.status_code >= 500:
        return IdentityUnavailable()
    return Unauthorized(message, code=code, details=exc.message)


class AuthService:
    def __init__(self, session: AsyncSession, identity: SupabaseAuthClient):
        self.session = session
        self.identity = identity

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _sign_in(self, email: str, password: str) -> AuthTokens:
        try:
            return await self.identity.sign_in_with_password(email, password)
        except IdentityError as exc:
            logger.info("Login failed for %s: %s", email, exc.message)
            raise _provider_failure(exc, "Invalid email or password", "INVALID_CREDENTIALS") from exc

    async def _customer_by_auth_id(self, auth_user_id: str) -> Customer | None:
        result = await self.session.execute(
            select(Customer).where(Customer.auth_user_id == auth_user_id, Customer.alive())
        )
        return result.scalar_one_or_none()

    async def _phone_taken(self, phone: str, exclude: uuid.UUID | None = None) -> bool:
        query = select(Customer.id).where(Customer.phone == phone, Customer.alive())
        if exclude is not None:
            query = query.where(Customer.id != exclude)
        result = await self.session.execute(query)
        return result.first() is not None

    async def _require_store(self, store_id: uuid.UUID) -> Store:
        result = await self.session.execute(
            select(Store).where(Store.id == store_id, Store.alive())
        )
        store = result.scalar_one_or_none()
        if store is None:
            raise NotFound("Store not found", code="STORE_NOT_FOUND")
        return store

    async def _unique_slug(self, name: str) -> str:
        base = slugify(name)
        result = await self.session.execute(select(Store.slug).where(Store.slug.startswith(base)))
        taken = set(result.scalars().all())
        if base not in taken:
            return base
        suffix = 2
        while f"{base}-{suffix}" in taken:
            suffix += 1
        return f"{base}-{suffix}"

    async def _identity_for_signup(self, email: str, password: str, metadata: dict) -> str:
        """Create the auth user, or reuse it when the email is already registered."""
        try:
            user = await self.identity.sign_up(email, password, metadata)
        except IdentityError as exc:
            if not exc.already_registered:
                raise _provider_failure(exc, "Could not create account", "SIGNUP_FAILED") from exc
            tokens = await self._sign_in(email, password)
            return str(tokens.user.id)
        if not user.id:
            raise BadRequest("Identity provider did not return a user", code="SIGNUP_FAILED")
        return str(user.id)

    # ------------------------------------------------------------------
    # Customers
    # ------------------------------------------------------------------

    async def customer_signup(self, data: CustomerSignupRequest) -> SignupResult:
        await self._require_store(data.store_id)
        auth_user_id = await self._identity_for_signup(
            data.email,
            data.password,
            {"type": PrincipalType.CUSTOMER.value, "name": data.name, "phone": data.phone},
        )

        customer = await self._customer_by_auth_id(auth_user_id)
        if await self._phone_taken(data.phone, exclude=customer.id if customer else None):
            raise Conflict("Phone number is already registered to another user", code="PHONE_ALREADY_REGISTERED")

        link = None
        if customer is not None:
            result = await self.session.execute(
                select(StoreCustomer).where(
                    StoreCustomer.customer_id == customer.id,
                    StoreCustomer.store_id == data.store_id,
                )
            )
            link = result.scalar_one_or_none()
            if link is not None and link.is_active:
                raise Conflict("This email is already registered in this store", code="ALREADY_REGISTERED")

        async with atomic(self.session):
            if customer is None:
                customer = Customer(
                    id=uuid.uuid4(), auth_user_id=auth_user_id, name=data.name, phone=data.phone
                )
                self.session.add(customer)
            else:
                customer.name = data.name
                customer.phone = data.phone

            if link is None:
                self.session.add(StoreCustomer(customer_id=customer.id, store_id=data.store_id))
            else:
                link.is_active = True

        logger.info("Customer %s registered in store %s", customer.id, data.store_id)
        return SignupResult(user_id=auth_user_id, customer_id=customer.id, store_id=data.store_id)

    async def customer_login(self, data: CustomerLoginRequest) -> CustomerSession:
        tokens = await self._sign_in(data.email, data.password)
        customer = await self._customer_by_auth_id(str(tokens.user.id))
        if customer is None:
            raise NotFound("Customer not found", code="CUSTOMER_NOT_FOUND")

        result = await self.session.execute(
            select(StoreCustomer.id).where(
                StoreCustomer.customer_id == customer.id,
                StoreCustomer.store_id == data.store_id,
                StoreCustomer.is_active.is_(True),
            )
        )
        if result.first() is None:
            raise Forbidden(
                "Customer has no access to this store or the registration is inactive",
                code="STORE_ACCESS_DENIED",
            )

        return CustomerSession(
            token=tokens.access_token,
            refresh_token=tokens.refresh_token,
            expires_in=tokens.expires_in,
            user_id=str(tokens.user.id),
            customer_id=customer.id,
            name=customer.name,
            phone=customer.phone,
            store_id=data.store_id,
        )

    # ------------------------------------------------------------------
    # Merchants
    # ------------------------------------------------------------------

    async def merchant_signup(self, data: MerchantSignupRequest) -> SignupResult:
        try:
            user = await self.identity.sign_up(
                data.email, data.password, {"type": PrincipalType.MERCHANT.value}
            )
        except IdentityError as exc:
            if exc.already_registered:
                raise Conflict("Email is already registered", code="EMAIL_ALREADY_REGISTERED") from exc
            raise _provider_failure(exc, "Could not create account", "SIGNUP_FAILED") from exc
        if not user.id:
            raise BadRequest("Identity provider did not return a user", code="SIGNUP_FAILED")

        slug = await self._unique_slug(data.store_name)
        async with atomic(self.session):
            merchant = Merchant(
                id=uuid.uuid4(),
                auth_user_id=str(user.id),
                email=data.email,
                role=MerchantRole.ADMIN.value,
            )
            store = Store(
                id=uuid.uuid4(),
                merchant_id=merchant.id,
                name=data.store_name,
                slug=slug,
                description=data.store_description,
                category=data.store_category.value,
                custom_category=data.custom_category,
            )
            self.session.add_all([merchant, store])
            self.session.add(
                StoreMember(store_id=store.id, merchant_id=merchant.id, role=MerchantRole.ADMIN.value)
            )

        logger.info("Merchant %s signed up with store %s (%s)", merchant.id, store.id, slug)
        return SignupResult(user_id=str(user.id), merchant_id=merchant.id, store_id=store.id)

    async def merchant_login(self, data: MerchantLoginRequest) -> MerchantSession:
        tokens = await self._sign_in(data.email, data.password)
        result = await self.session.execute(
            select(Merchant).where(Merchant.auth_user_id == str(tokens.user.id), Merchant.alive())
        )
        merchant = result.scalar_one_or_none()
        if merchant is None:
            raise NotFound("Merchant not found", code="MERCHANT_NOT_FOUND")

        stores = await self.session.execute(
            select(Store.id)
            .where(Store.merchant_id == merchant.id, Store.alive())
            .order_by(Store.created_at)
            .limit(1)
        )
        return MerchantSession(
            token=tokens.access_token,
            refresh_token=tokens.refresh_token,
            expires_in=tokens.expires_in,
            user_id=str(tokens.user.id),
            merchant_id=merchant.id,
            email=merchant.email,
            role=merchant.role,
            store_id=stores.scalar_one_or_none(),
        )

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    async def refresh(self, refresh_token: str) -> TokenPair:
        try:
            tokens = await self.identity.refresh_session(refresh_token)
        except IdentityError as exc:
            raise _provider_failure(exc, "Invalid or expired refresh token", "INVALID_REFRESH_TOKEN") from exc
        return TokenPair(
            token=tokens.access_token, refresh_token=tokens.refresh_token, expires_in=tokens.expires_in
        )

    async def logout(self, access_token: str) -> None:
        try:
            await self.identity.sign_out(access_token)
        except IdentityError as exc:
            raise _provider_failure(exc, "Could not end the session", "LOGOUT_FAILED") from exc
