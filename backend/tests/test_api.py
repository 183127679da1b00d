"""Tests for API endpoints."""

import uuid

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from sqlalchemy.exc import IntegrityError

from storeflow.errors import install_error_handlers
from storeflow.main import content_type_error
from storeflow.models import Customer, Product, ProductCustomization, Store, StoreDeliveryOption

from conftest import bearer

ADDRESS = {
    "street": "Rua das Flores",
    "number": "120",
    "neighborhood": "Centro",
    "city": "Campinas",
    "state": "SP",
    "zip_code": "13010-000",
}


def order_body(store: Store, product: Product, method: str = "delivery", quantity: int = 1) -> dict:
    body = {
        "store_id": str(store.id),
        "fulfillment_method": method,
        "payment_method": "pix",
        "items": [{"product_id": str(product.id), "quantity": quantity}],
    }
    if method == "delivery":
        body["delivery_address"] = ADDRESS
    return body


@pytest.mark.asyncio
async def test_health(client: AsyncClient):
    resp = await client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"


# --- Envelopes ---

@pytest.mark.asyncio
async def test_unknown_route_uses_error_envelope(client: AsyncClient):
    resp = await client.get("/api/nothing-here")
    assert resp.status_code == 404
    body = resp.json()
    assert body["success"] is False
    assert body["error"]["code"] == "NOT_FOUND"
    assert body["error"]["status"] == 404
    assert "timestamp" in body["error"]


@pytest.mark.asyncio
async def test_unsupported_content_type(client: AsyncClient, customer_headers):
    resp = await client.post(
        "/api/orders",
        content="store_id=1",
        headers={**customer_headers, "Content-Type": "text/plain"},
    )
    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "BAD_REQUEST"


@pytest.mark.asyncio
async def test_multipart_only_on_upload_routes(client: AsyncClient, customer_headers):
    resp = await client.post(
        "/api/orders",
        files={"file": ("order.json", b"{}", "application/json")},
        headers=customer_headers,
    )
    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "BAD_REQUEST"


@pytest.mark.parametrize(
    "method,path,content_type,has_body,allowed",
    [
        ("POST", "/api/orders", "application/json", True, True),
        ("POST", "/api/orders", "application/json; charset=utf-8", True, True),
        ("POST", "/api/orders", "multipart/form-data; boundary=x", True, False),
        ("PATCH", "/api/auth/profile", "text/plain", False, False),
        ("POST", "/api/orders", "", True, False),
        ("POST", "/api/stores/s/orders/o/confirm", "", False, True),
        ("POST", "/api/merchant/stores/s/upload/avatar", "multipart/form-data; boundary=x", True, True),
        ("POST", "/api/merchant/stores/s/products/p/upload", "multipart/form-data; boundary=x", True, True),
        ("POST", "/api/stores/s/orders/o/upload/proof", "text/plain", True, False),
        ("GET", "/api/orders", "text/plain", False, True),
    ],
)
def test_content_type_rules(method, path, content_type, has_body, allowed):
    assert (content_type_error(method, path, content_type, has_body) is None) is allowed


@pytest.mark.asyncio
async def test_constraint_violation_is_conflict():
    other_app = FastAPI()
    install_error_handlers(other_app)

    @other_app.post("/dup")
    async def dup():
        raise IntegrityError("INSERT INTO customers", {}, Exception("duplicate key"))

    async with AsyncClient(transport=ASGITransport(app=other_app), base_url="http://test") as c:
        resp = await c.post("/dup")
    assert resp.status_code == 409
    assert resp.json()["error"]["code"] == "CONFLICT"


@pytest.mark.asyncio
async def test_malformed_uuid_is_validation_error(client: AsyncClient):
    resp = await client.get("/api/stores/not-a-uuid")
    assert resp.status_code == 422
    error = resp.json()["error"]
    assert error["code"] == "VALIDATION_ERROR"
    assert "store_id" in error["errors"]


# --- Stores ---

@pytest.mark.asyncio
async def test_list_stores(client: AsyncClient, sample_store: Store, sample_product: Product):
    resp = await client.get("/api/stores", params={"page": "abc", "limit": "500"})
    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    pagination = body["data"]["pagination"]
    assert pagination["page"] == 1
    assert pagination["limit"] == 100
    assert pagination["total"] == 1
    item = body["data"]["items"][0]
    assert item["slug"] == "burger-house"
    assert item["products_count"] == 1


@pytest.mark.asyncio
async def test_list_stores_search(client: AsyncClient, sample_store: Store):
    resp = await client.get("/api/stores", params={"search": "smash"})
    assert resp.json()["data"]["pagination"]["total"] == 1

    resp = await client.get("/api/stores", params={"search": "pizza"})
    assert resp.json()["data"]["items"] == []


@pytest.mark.asyncio
async def test_get_store_by_slug(
    client: AsyncClient,
    sample_store: Store,
    sample_product: Product,
    delivery_option: StoreDeliveryOption,
):
    resp = await client.get("/api/stores/slug/burger-house")
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["id"] == str(sample_store.id)
    assert len(data["working_hours"]) == 7
    assert data["delivery_options"][0]["name"] == "Express"
    assert data["products_count"] == 1
    assert data["team_members_count"] == 1
    assert set(data["status"]) >= {"is_open", "today", "next_opening"}


@pytest.mark.asyncio
async def test_get_store_not_found(client: AsyncClient):
    resp = await client.get(f"/api/stores/{uuid.uuid4()}")
    assert resp.status_code == 404
    assert resp.json()["error"]["code"] == "STORE_NOT_FOUND"


@pytest.mark.asyncio
async def test_store_categories_and_products(client: AsyncClient, sample_store: Store, sample_product: Product, db):
    db.add(Product(
        id=uuid.uuid4(), store_id=sample_store.id, name="Milkshake", price=18, category="drinks", is_active=False,
    ))
    await db.commit()

    resp = await client.get(f"/api/stores/{sample_store.id}/categories")
    assert resp.json()["data"] == ["burgers"]

    resp = await client.get(f"/api/stores/{sample_store.id}/products")
    items = resp.json()["data"]["items"]
    assert [p["name"] for p in items] == ["Classic Burger"]


# --- Products ---

@pytest.mark.asyncio
async def test_list_products_filters(client: AsyncClient, sample_product: Product):
    resp = await client.get("/api/products", params={"search": "pickles"})
    assert resp.json()["data"]["pagination"]["total"] == 1

    resp = await client.get("/api/products", params={"category": "drinks"})
    assert resp.json()["data"]["pagination"]["total"] == 0


@pytest.mark.asyncio
async def test_get_product(client: AsyncClient, sample_customization: ProductCustomization):
    resp = await client.get(f"/api/products/{sample_customization.product_id}")
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["store_name"] == "Burger House"
    assert data["customizations_count"] == 1
    assert data["customizations"][0]["name"] == "Extra bacon"


@pytest.mark.asyncio
async def test_get_product_not_found(client: AsyncClient):
    resp = await client.get(f"/api/products/{uuid.uuid4()}")
    assert resp.status_code == 404
    assert resp.json()["error"]["code"] == "PRODUCT_NOT_FOUND"


# --- Merchant products ---

@pytest.mark.asyncio
async def test_merchant_product_lifecycle(client: AsyncClient, sample_store: Store, merchant_headers):
    base = f"/api/merchant/stores/{sample_store.id}/products"
    resp = await client.post(
        base,
        json={"name": "Chicken Burger", "price": 28, "family": "finished_product", "category": "burgers"},
        headers=merchant_headers,
    )
    assert resp.status_code == 201
    product_id = resp.json()["data"]["id"]

    resp = await client.patch(f"{base}/{product_id}", json={"price": 29.5}, headers=merchant_headers)
    assert resp.status_code == 200
    assert float(resp.json()["data"]["price"]) == 29.5

    resp = await client.patch(f"{base}/{product_id}/deactivate", headers=merchant_headers)
    assert resp.json()["data"]["is_active"] is False

    resp = await client.post(
        f"{base}/{product_id}/customizations",
        json={"name": "Spicy mayo", "customizationType": "sauce"},
        headers=merchant_headers,
    )
    assert resp.status_code == 201
    customization_id = resp.json()["data"]["id"]

    resp = await client.delete(f"{base}/{product_id}/customizations/{customization_id}", headers=merchant_headers)
    assert resp.status_code == 200

    resp = await client.delete(f"{base}/{product_id}", headers=merchant_headers)
    assert resp.status_code == 200
    assert resp.json()["success"] is True

    resp = await client.get(f"/api/products/{product_id}")
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_merchant_routes_reject_customers(client: AsyncClient, sample_store: Store, customer_headers):
    resp = await client.post(
        f"/api/merchant/stores/{sample_store.id}/products",
        json={"name": "x", "price": 1, "family": "addon", "category": "x"},
        headers=customer_headers,
    )
    assert resp.status_code == 403
    assert resp.json()["error"]["code"] == "FORBIDDEN"


@pytest.mark.asyncio
async def test_product_image_upload(client: AsyncClient, sample_product: Product, merchant_headers, storage):
    resp = await client.post(
        f"/api/merchant/stores/{sample_product.store_id}/products/{sample_product.id}/upload",
        files={"file": ("Burger Photo.jpg", b"\xff\xd8\xff", "image/jpeg")},
        headers=merchant_headers,
    )
    assert resp.status_code == 201
    image_url = resp.json()["data"]["image_url"]
    assert image_url.endswith("_burger_photo.jpg")
    assert len(storage.objects) == 1

    resp = await client.post(
        f"/api/merchant/stores/{sample_product.store_id}/products/{sample_product.id}/upload",
        files={"file": ("Burger Photo 2.jpg", b"\xff\xd8\xff", "image/jpeg")},
        headers=merchant_headers,
    )
    assert resp.json()["data"]["image_url"] != image_url
    assert len(storage.objects) == 1


@pytest.mark.asyncio
async def test_upload_rejects_wrong_type(client: AsyncClient, sample_product: Product, merchant_headers):
    resp = await client.post(
        f"/api/merchant/stores/{sample_product.store_id}/products/{sample_product.id}/upload",
        files={"file": ("menu.pdf", b"%PDF", "application/pdf")},
        headers=merchant_headers,
    )
    assert resp.status_code == 422
    assert "file" in resp.json()["error"]["errors"]


# --- Merchant stores ---

@pytest.mark.asyncio
async def test_toggle_store_status(client: AsyncClient, sample_store: Store, merchant_headers):
    resp = await client.patch(
        f"/api/merchant/stores/{sample_store.id}/toggle-status",
        json={"isActive": False},
        headers=merchant_headers,
    )
    assert resp.status_code == 200
    assert resp.json()["data"]["is_active"] is False
    assert resp.json()["message"] == "Store deactivated"

    resp = await client.get(f"/api/merchant/stores/{sample_store.id}/status", headers=merchant_headers)
    assert resp.json()["data"]["is_open"] is False


@pytest.mark.asyncio
async def test_store_avatar_upload(client: AsyncClient, sample_store: Store, merchant_headers):
    resp = await client.post(
        f"/api/merchant/stores/{sample_store.id}/upload/avatar",
        files={"file": ("logo.png", b"\x89PNG", "image/png")},
        headers=merchant_headers,
    )
    assert resp.status_code == 201
    assert resp.json()["data"]["path"].startswith(f"stores/{sample_store.id}/avatar/")


@pytest.mark.asyncio
async def test_store_avatar_replaced(client: AsyncClient, sample_store: Store, merchant_headers, storage):
    url = f"/api/merchant/stores/{sample_store.id}/upload/avatar"
    for name in ("logo.png", "logo-v2.png"):
        resp = await client.post(url, files={"file": (name, b"\x89PNG", "image/png")}, headers=merchant_headers)
        assert resp.status_code == 201

    assert list(storage.objects) == [resp.json()["data"]["path"]]


@pytest.mark.asyncio
async def test_update_store_other_merchant(client: AsyncClient, sample_store: Store):
    resp = await client.patch(
        f"/api/merchant/stores/{sample_store.id}",
        json={"name": "Hijacked"},
        headers=bearer("another-merchant", "merchant"),
    )
    assert resp.status_code == 403


# --- Orders ---

@pytest.mark.asyncio
async def test_order_flow(
    client: AsyncClient,
    sample_store: Store,
    sample_product: Product,
    sample_customer,
    customer_headers,
    merchant_headers,
):
    resp = await client.post("/api/orders", json=order_body(sample_store, sample_product, quantity=2), headers=customer_headers)
    assert resp.status_code == 201
    order = resp.json()["data"]
    assert order["status"] == "pending"
    assert float(order["total_amount"]) == 55.0
    order_id = order["id"]

    resp = await client.get("/api/orders", headers=customer_headers)
    assert resp.json()["data"]["pagination"]["total"] == 1

    store_orders = f"/api/stores/{sample_store.id}/orders"
    resp = await client.get(store_orders, params={"status": "pending"}, headers=merchant_headers)
    assert resp.json()["data"]["items"][0]["customer_name"] == "Ana Souza"

    resp = await client.put(f"{store_orders}/{order_id}", json={"status": "ready"}, headers=merchant_headers)
    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "INVALID_STATUS_TRANSITION"

    resp = await client.post(f"{store_orders}/{order_id}/confirm", headers=merchant_headers)
    assert resp.status_code == 200
    assert resp.json()["data"]["status"] == "confirmed"

    resp = await client.post(f"/api/orders/{order_id}/cancel", json={"reason": "Too slow"}, headers=customer_headers)
    assert resp.status_code == 400

    resp = await client.post(f"/api/orders/{order_id}/confirm-delivery", json={"rating": 4}, headers=customer_headers)
    assert resp.status_code == 200
    assert resp.json()["data"]["status"] == "delivered"
    assert resp.json()["data"]["rating"] == 4

    resp = await client.get(f"/api/orders/{order_id}", headers=merchant_headers)
    assert resp.status_code == 200
    assert len(resp.json()["data"]["items"]) == 1


@pytest.mark.asyncio
async def test_order_business_rule_error(
    client: AsyncClient, sample_store: Store, sample_product: Product, sample_customer, customer_headers
):
    body = order_body(sample_store, sample_product)
    body["payment_method"] = "cash"
    resp = await client.post("/api/orders", json=body, headers=customer_headers)
    assert resp.status_code == 422
    assert resp.json()["error"]["code"] == "PAYMENT_METHOD_NOT_ACCEPTED"


@pytest.mark.asyncio
async def test_delivery_order_needs_address(
    client: AsyncClient, sample_store: Store, sample_product: Product, sample_customer, customer_headers
):
    body = order_body(sample_store, sample_product)
    del body["delivery_address"]
    resp = await client.post("/api/orders", json=body, headers=customer_headers)
    assert resp.status_code == 422
    assert resp.json()["error"]["code"] == "VALIDATION_ERROR"


@pytest.mark.asyncio
async def test_merchant_listing_requires_store_id(client: AsyncClient, sample_store: Store, merchant_headers):
    resp = await client.get("/api/orders", headers=merchant_headers)
    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "STORE_ID_REQUIRED"


@pytest.mark.asyncio
async def test_order_not_visible_to_other_customer(
    client: AsyncClient, sample_store: Store, sample_product: Product, sample_customer, customer_headers, db
):
    db.add(Customer(id=uuid.uuid4(), auth_user_id="customer-auth-2", name="Bruno", phone="11933334444"))
    await db.commit()

    resp = await client.post("/api/orders", json=order_body(sample_store, sample_product, "pickup"), headers=customer_headers)
    order_id = resp.json()["data"]["id"]

    resp = await client.get(f"/api/orders/{order_id}", headers=bearer("customer-auth-2", "customer"))
    assert resp.status_code == 403
    assert resp.json()["error"]["code"] == "ORDER_ACCESS_DENIED"

    resp = await client.get(f"/api/orders/{uuid.uuid4()}", headers=customer_headers)
    assert resp.status_code == 404
    assert resp.json()["error"]["code"] == "ORDER_NOT_FOUND"


@pytest.mark.asyncio
async def test_pickup_out_for_delivery_rejected(
    client: AsyncClient, sample_store: Store, sample_product: Product, sample_customer, customer_headers, merchant_headers
):
    resp = await client.post("/api/orders", json=order_body(sample_store, sample_product, "pickup"), headers=customer_headers)
    order_id = resp.json()["data"]["id"]
    store_orders = f"/api/stores/{sample_store.id}/orders"

    await client.post(f"{store_orders}/{order_id}/confirm", headers=merchant_headers)
    await client.put(f"{store_orders}/{order_id}", json={"status": "preparing"}, headers=merchant_headers)
    await client.put(f"{store_orders}/{order_id}", json={"status": "ready"}, headers=merchant_headers)

    resp = await client.put(f"{store_orders}/{order_id}", json={"status": "out_for_delivery"}, headers=merchant_headers)
    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "OUT_FOR_DELIVERY_REQUIRES_DELIVERY"


@pytest.mark.asyncio
async def test_reject_and_payment_proof(
    client: AsyncClient, sample_store: Store, sample_product: Product, sample_customer, customer_headers, merchant_headers
):
    resp = await client.post("/api/orders", json=order_body(sample_store, sample_product), headers=customer_headers)
    order_id = resp.json()["data"]["id"]
    store_orders = f"/api/stores/{sample_store.id}/orders"

    resp = await client.post(
        f"{store_orders}/{order_id}/upload/proof",
        files={"file": ("receipt.pdf", b"%PDF-1.4", "application/pdf")},
        headers=merchant_headers,
    )
    assert resp.status_code == 201
    assert resp.json()["data"]["payment_proof_url"].endswith("_receipt.pdf")

    resp = await client.post(f"{store_orders}/{order_id}/reject", json={"reason": "Closed early"}, headers=merchant_headers)
    assert resp.status_code == 200
    assert resp.json()["data"]["status"] == "rejected"
    assert resp.json()["data"]["cancellation_reason"] == "Closed early"


# --- Profile ---

@pytest.mark.asyncio
async def test_profile_put_and_patch(client: AsyncClient, sample_customer, customer_headers):
    address = {
        "label": "Home",
        "street": "Rua A",
        "number": "1",
        "neighborhood": "Centro",
        "city": "Campinas",
        "state": "SP",
        "zipCode": "13010000",
        "isDefault": True,
    }
    resp = await client.put("/api/auth/profile", json={"name": "Ana Lima", "addresses": [address]}, headers=customer_headers)
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["name"] == "Ana Lima"
    assert data["addresses"][0]["is_default"] is True

    resp = await client.patch("/api/auth/profile", json={"addresses": [address]}, headers=customer_headers)
    assert resp.status_code == 422

    resp = await client.patch(
        "/api/auth/profile",
        json={"addresses": {"remove": [data["addresses"][0]["id"]]}},
        headers=customer_headers,
    )
    assert resp.status_code == 200
    assert resp.json()["data"]["addresses"] == []


@pytest.mark.asyncio
async def test_merchant_profile(client: AsyncClient, sample_store: Store, merchant_headers):
    resp = await client.get("/api/auth/profile", headers=merchant_headers)
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["type"] == "merchant"
    assert data["stores"][0]["slug"] == "burger-house"

    resp = await client.put("/api/auth/profile", json={"name": "Owner"}, headers=merchant_headers)
    assert resp.status_code == 403
