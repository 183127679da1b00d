"""Pytest fixtures for StoreFlow backend tests."""

import os
import uuid
from decimal import Decimal

os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///./test.db"
os.environ["SUPABASE_JWT_SECRET"] = "test-secret"
os.environ["SUPABASE_URL"] = "http://supabase.test"

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from jose import jwt
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from storeflow.api.deps import get_storage
from storeflow.auth import get_auth_client
from storeflow.database import Base, get_db
from storeflow.identity import AuthTokens, IdentityError, VerifiedIdentity
from storeflow.main import app
from storeflow.models import (
    Customer,
    Merchant,
    Product,
    ProductCustomization,
    Store,
    StoreCustomer,
    StoreDeliveryOption,
    StoreMember,
    WorkingHours,
)
from storeflow.services.storage import StorageError, StoredFile, build_object_path, validate_file

TEST_DATABASE_URL = os.environ["DATABASE_URL"]
JWT_SECRET = os.environ["SUPABASE_JWT_SECRET"]

engine = create_async_engine(TEST_DATABASE_URL, echo=False, poolclass=NullPool)
test_session = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


def make_token(user_id: str, user_type: str, **metadata) -> str:
    claims = {"sub": user_id, "email": f"{user_id}@example.com", "user_metadata": {"type": user_type, **metadata}}
    return jwt.encode(claims, JWT_SECRET, algorithm="HS256")


def bearer(user_id: str, user_type: str, **metadata) -> dict[str, str]:
    return {"Authorization": f"Bearer {make_token(user_id, user_type, **metadata)}"}


class FakeStorage:
    """In-memory stand-in for the Supabase Storage bucket."""

    bucket = "store-assets"

    def __init__(self, fail_deletes: bool = False):
        self.objects: dict[str, bytes] = {}
        self.fail_deletes = fail_deletes
        self._uploads = 0

    def public_url(self, path):
        return f"http://storage.test/{self.bucket}/{path}"

    async def upload(self, entity_type, entity_id, category, file_name, content, content_type):
        validate_file(category, content_type, len(content))
        # Same-millisecond uploads would otherwise share a path
        self._uploads += 1
        path = build_object_path(entity_type, str(entity_id), category, file_name, timestamp_ms=self._uploads)
        self.objects[path] = content
        return StoredFile(url=self.public_url(path), path=path, size=len(content), mime_type=content_type or "")

    async def delete(self, path):
        if self.fail_deletes:
            raise StorageError("Failed to remove file", details={"path": path})
        self.objects.pop(path, None)

    def path_from_url(self, url):
        prefix = self.public_url("")
        if url and url.startswith(prefix):
            return url[len(prefix):]
        return None


class FakeAuthClient:
    """Records GoTrue calls and answers from an in-memory user table."""

    def __init__(self):
        self.users: dict[str, dict] = {}

    async def sign_up(self, email, password, metadata):
        if email in self.users:
            raise IdentityError("User already registered", status_code=422)
        user_id = str(uuid.uuid4())
        self.users[email] = {"id": user_id, "password": password, "metadata": metadata}
        return VerifiedIdentity(id=user_id, email=email, user_metadata=metadata)

    async def sign_in_with_password(self, email, password):
        user = self.users.get(email)
        if user is None or user["password"] != password:
            raise IdentityError("Invalid login credentials", status_code=400)
        identity = VerifiedIdentity(id=user["id"], email=email, user_metadata=user["metadata"])
        return AuthTokens(
            access_token=make_token(user["id"], user["metadata"].get("type", "customer")),
            refresh_token=f"refresh-{user['id']}",
            expires_in=3600,
            user=identity,
        )

    async def refresh_session(self, refresh_token):
        if not refresh_token.startswith("refresh-"):
            raise IdentityError("Invalid Refresh Token", status_code=400)
        user_id = refresh_token.removeprefix("refresh-")
        return AuthTokens(
            access_token=make_token(user_id, "customer"),
            refresh_token=f"refresh-{user_id}",
            expires_in=3600,
            user=VerifiedIdentity(id=user_id),
        )

    async def sign_out(self, token):
        return None


@pytest_asyncio.fixture(autouse=True)
async def setup_db():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


async def override_get_db():
    async with test_session() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


app.dependency_overrides[get_db] = override_get_db


@pytest_asyncio.fixture
async def storage() -> FakeStorage:
    fake = FakeStorage()
    app.dependency_overrides[get_storage] = lambda: fake
    yield fake
    app.dependency_overrides.pop(get_storage, None)


@pytest_asyncio.fixture
async def auth_client() -> FakeAuthClient:
    fake = FakeAuthClient()
    app.dependency_overrides[get_auth_client] = lambda: fake
    yield fake
    app.dependency_overrides.pop(get_auth_client, None)


@pytest_asyncio.fixture
async def client(storage):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


@pytest_asyncio.fixture
async def db():
    async with test_session() as session:
        yield session


# ── Sample data ────────────────────────────────────────────────────────────

MERCHANT_AUTH_ID = "merchant-auth-1"
CUSTOMER_AUTH_ID = "customer-auth-1"


@pytest_asyncio.fixture
async def sample_merchant(db: AsyncSession) -> Merchant:
    merchant = Merchant(
        id=uuid.uuid4(),
        auth_user_id=MERCHANT_AUTH_ID,
        email="owner@burger.test",
        role="admin",
    )
    db.add(merchant)
    await db.commit()
    await db.refresh(merchant)
    return merchant


@pytest_asyncio.fixture
async def sample_store(db: AsyncSession, sample_merchant: Merchant) -> Store:
    store = Store(
        id=uuid.uuid4(),
        merchant_id=sample_merchant.id,
        name="Burger House",
        slug="burger-house",
        description="Smash burgers",
        category="hamburgueria",
        is_active=True,
        fulfillment_delivery_enabled=True,
        fulfillment_pickup_enabled=True,
        accepts_payment_cash=False,
        min_order_value=Decimal("20.00"),
        delivery_fee=Decimal("5.00"),
        free_delivery_above=Decimal("100.00"),
    )
    db.add(store)
    db.add(StoreMember(store_id=store.id, merchant_id=sample_merchant.id, role="admin"))
    for day in range(7):
        db.add(WorkingHours(store_id=store.id, day_of_week=day, open_time="10:00", close_time="22:00"))
    await db.commit()
    await db.refresh(store)
    return store


@pytest_asyncio.fixture
async def delivery_option(db: AsyncSession, sample_store: Store) -> StoreDeliveryOption:
    option = StoreDeliveryOption(
        id=uuid.uuid4(),
        store_id=sample_store.id,
        name="Express",
        fee=Decimal("8.00"),
        estimated_minutes=25,
    )
    db.add(option)
    await db.commit()
    await db.refresh(option)
    return option


@pytest_asyncio.fixture
async def sample_product(db: AsyncSession, sample_store: Store) -> Product:
    product = Product(
        id=uuid.uuid4(),
        store_id=sample_store.id,
        name="Classic Burger",
        description="Beef, cheese and pickles",
        price=Decimal("25.00"),
        cost_price=Decimal("9.00"),
        family="finished_product",
        category="burgers",
        is_active=True,
        preparation_time=15,
    )
    db.add(product)
    await db.commit()
    await db.refresh(product)
    return product


@pytest_asyncio.fixture
async def sample_customization(db: AsyncSession, sample_product: Product) -> ProductCustomization:
    customization = ProductCustomization(
        id=uuid.uuid4(),
        product_id=sample_product.id,
        name="Extra bacon",
        customization_type="extra",
        price=Decimal("4.00"),
        selection_type="quantity",
    )
    db.add(customization)
    await db.commit()
    await db.refresh(customization)
    return customization


@pytest_asyncio.fixture
async def sample_customer(db: AsyncSession, sample_store: Store) -> Customer:
    customer = Customer(
        id=uuid.uuid4(),
        auth_user_id=CUSTOMER_AUTH_ID,
        name="Ana Souza",
        phone="11987654321",
    )
    db.add(customer)
    db.add(StoreCustomer(customer_id=customer.id, store_id=sample_store.id))
    await db.commit()
    await db.refresh(customer)
    return customer


@pytest.fixture
def merchant_headers() -> dict[str, str]:
    return bearer(MERCHANT_AUTH_ID, "merchant")


@pytest.fixture
def customer_headers() -> dict[str, str]:
    return bearer(CUSTOMER_AUTH_ID, "customer")
