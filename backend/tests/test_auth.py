"""Tests for principal resolution and the signup/login flows."""

import uuid

import pytest
from jose import jwt
from sqlalchemy import select

from storeflow.auth import extract_bearer_token, resolve_principal
from storeflow.errors import Unauthorized
from storeflow.identity import JwtIdentityVerifier, VerifiedIdentity
from storeflow.models import Merchant, Store, StoreCustomer, StoreMember
from storeflow.services.auth import slugify

from conftest import JWT_SECRET, bearer, make_token

VERIFIER = JwtIdentityVerifier(JWT_SECRET)


# ── Principal resolution ──────────────────────────────────────────────────


def test_extract_bearer_token():
    assert extract_bearer_token("Bearer abc") == "abc"
    assert extract_bearer_token("bearer  abc ") == "abc"

    with pytest.raises(Unauthorized) as exc_info:
        extract_bearer_token(None)
    assert exc_info.value.code == "MISSING_TOKEN"

    with pytest.raises(Unauthorized) as exc_info:
        extract_bearer_token("Basic abc")
    assert exc_info.value.code == "INVALID_TOKEN"


@pytest.mark.asyncio
async def test_resolve_customer():
    principal = await resolve_principal(bearer("u-1", "customer", storeId="s-1")["Authorization"], VERIFIER)
    assert principal.id == "u-1"
    assert principal.is_customer
    assert principal.store_id == "s-1"
    assert principal.email == "u-1@example.com"


@pytest.mark.asyncio
async def test_type_from_app_metadata():
    class Verifier:
        async def get_user(self, token):
            return VerifiedIdentity(id="m-1", app_metadata={"type": "merchant", "role": "manager"})

    principal = await resolve_principal("Bearer anything", Verifier())
    assert principal.is_merchant
    assert principal.role == "manager"


@pytest.mark.asyncio
async def test_bad_signature():
    token = jwt.encode({"sub": "u-1", "user_metadata": {"type": "customer"}}, "wrong", algorithm="HS256")
    with pytest.raises(Unauthorized) as exc_info:
        await resolve_principal(f"Bearer {token}", VERIFIER)
    assert exc_info.value.code == "INVALID_TOKEN"


@pytest.mark.asyncio
@pytest.mark.parametrize("user_type", [None, "admin"])
async def test_missing_or_unknown_type(user_type):
    metadata = {"type": user_type} if user_type else {}
    token = jwt.encode({"sub": "u-1", "user_metadata": metadata}, JWT_SECRET, algorithm="HS256")
    with pytest.raises(Unauthorized) as exc_info:
        await resolve_principal(f"Bearer {token}", VERIFIER)
    assert exc_info.value.code == "INVALID_TOKEN_PAYLOAD"


def test_slugify():
    assert slugify("Açaí do João!") == "acai-do-joao"
    assert slugify("***") == "loja"


# ── Customer flows ────────────────────────────────────────────────────────


def signup_body(store_id, email="ana@burgerhouse.com.br", phone="11955554444"):
    return {
        "email": email,
        "password": "secret123",
        "storeId": str(store_id),
        "name": "Ana Souza",
        "phone": phone,
    }


@pytest.mark.asyncio
async def test_customer_signup_and_login(client, auth_client, sample_store, db):
    response = await client.post("/api/auth/customer/signup", json=signup_body(sample_store.id))
    assert response.status_code == 201
    body = response.json()
    assert body["success"] is True
    assert body["data"]["store_id"] == str(sample_store.id)
    customer_id = body["data"]["customer_id"]

    response = await client.post(
        "/api/auth/customer/login",
        json={"email": "ana@burgerhouse.com.br", "password": "secret123", "storeId": str(sample_store.id)},
    )
    assert response.status_code == 200
    session = response.json()["data"]
    assert session["customer_id"] == customer_id
    assert session["refresh_token"].startswith("refresh-")

    profile = await client.get("/api/auth/profile", headers={"Authorization": f"Bearer {session['token']}"})
    assert profile.status_code == 200
    assert profile.json()["data"]["phone"] == "11955554444"


@pytest.mark.asyncio
async def test_customer_signup_twice_conflicts(client, auth_client, sample_store):
    await client.post("/api/auth/customer/signup", json=signup_body(sample_store.id))
    response = await client.post("/api/auth/customer/signup", json=signup_body(sample_store.id))

    assert response.status_code == 409
    assert response.json()["error"]["code"] == "ALREADY_REGISTERED"


@pytest.mark.asyncio
async def test_customer_signup_phone_taken(client, auth_client, sample_store, sample_customer):
    response = await client.post(
        "/api/auth/customer/signup", json=signup_body(sample_store.id, phone=sample_customer.phone)
    )
    assert response.status_code == 409
    assert response.json()["error"]["code"] == "PHONE_ALREADY_REGISTERED"


@pytest.mark.asyncio
async def test_inactive_registration_is_reactivated(client, auth_client, sample_store, db):
    response = await client.post("/api/auth/customer/signup", json=signup_body(sample_store.id))
    customer_id = response.json()["data"]["customer_id"]

    result = await db.execute(select(StoreCustomer).where(StoreCustomer.store_id == sample_store.id))
    for link in result.scalars().all():
        link.is_active = False
    await db.commit()

    login = await client.post(
        "/api/auth/customer/login",
        json={"email": "ana@burgerhouse.com.br", "password": "secret123", "storeId": str(sample_store.id)},
    )
    assert login.status_code == 403
    assert login.json()["error"]["code"] == "STORE_ACCESS_DENIED"

    response = await client.post("/api/auth/customer/signup", json=signup_body(sample_store.id))
    assert response.status_code == 201
    assert response.json()["data"]["customer_id"] == customer_id


@pytest.mark.asyncio
async def test_customer_login_bad_password(client, auth_client, sample_store):
    await client.post("/api/auth/customer/signup", json=signup_body(sample_store.id))
    response = await client.post(
        "/api/auth/customer/login",
        json={"email": "ana@burgerhouse.com.br", "password": "wrong-one", "storeId": str(sample_store.id)},
    )
    assert response.status_code == 401
    assert response.json()["error"]["code"] == "INVALID_CREDENTIALS"


@pytest.mark.asyncio
async def test_customer_signup_unknown_store(client, auth_client):
    response = await client.post("/api/auth/customer/signup", json=signup_body(uuid.uuid4()))
    assert response.status_code == 404
    assert response.json()["error"]["code"] == "STORE_NOT_FOUND"


@pytest.mark.asyncio
async def test_signup_validation_error(client, auth_client, sample_store):
    body = signup_body(sample_store.id)
    body["password"] = "123"
    response = await client.post("/api/auth/customer/signup", json=body)

    assert response.status_code == 422
    error = response.json()["error"]
    assert error["code"] == "VALIDATION_ERROR"
    assert "password" in error["errors"]


# ── Merchant flows ────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_merchant_signup_creates_store(client, auth_client, sample_store, db):
    response = await client.post(
        "/api/auth/merchant/signup",
        json={
            "email": "chef@burgerhouse.com.br",
            "password": "secret123",
            "storeName": "Burger House",
            "storeCategory": "hamburgueria",
        },
    )
    assert response.status_code == 201
    data = response.json()["data"]

    result = await db.execute(select(Store).where(Store.merchant_id == uuid.UUID(data["merchant_id"])))
    store = result.scalar_one()
    assert store.slug == "burger-house-2"

    merchant = (await db.execute(select(Merchant).where(Merchant.id == store.merchant_id))).scalar_one()
    assert merchant.role == "admin"
    member = (await db.execute(select(StoreMember).where(StoreMember.store_id == store.id))).scalar_one()
    assert member.role == "admin"

    login = await client.post(
        "/api/auth/merchant/login", json={"email": "chef@burgerhouse.com.br", "password": "secret123"}
    )
    assert login.status_code == 200
    assert login.json()["data"]["store_id"] == str(store.id)


@pytest.mark.asyncio
async def test_merchant_signup_duplicate_email(client, auth_client):
    body = {"email": "chef@burgerhouse.com.br", "password": "secret123", "storeName": "Pizza Place"}
    await client.post("/api/auth/merchant/signup", json=body)
    response = await client.post("/api/auth/merchant/signup", json=body)

    assert response.status_code == 409
    assert response.json()["error"]["code"] == "EMAIL_ALREADY_REGISTERED"


# ── Sessions ──────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_refresh_and_logout(client, auth_client):
    response = await client.post("/api/auth/refresh", json={"refreshToken": "refresh-u-9"})
    assert response.status_code == 200
    assert response.json()["data"]["refresh_token"] == "refresh-u-9"

    bad = await client.post("/api/auth/refresh", json={"refreshToken": "nope"})
    assert bad.status_code == 401
    assert bad.json()["error"]["code"] == "INVALID_REFRESH_TOKEN"

    logout = await client.post("/api/auth/logout", headers={"Authorization": f"Bearer {make_token('u-9', 'customer')}"})
    assert logout.status_code == 200
    assert logout.json()["success"] is True


@pytest.mark.asyncio
async def test_profile_requires_token(client):
    response = await client.get("/api/auth/profile")
    assert response.status_code == 401
    assert response.json()["error"]["code"] == "MISSING_TOKEN"
