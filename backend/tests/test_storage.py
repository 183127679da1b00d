"""Tests for storage path building and upload rules."""

import httpx
import pytest

from storeflow.errors import ValidationFailed
from storeflow.services.storage import (
    StorageError,
    StorageService,
    build_object_path,
    sanitize_file_name,
    validate_file,
)


def test_sanitize_file_name():
    assert sanitize_file_name("Foto da Loja (1).PNG") == "foto_da_loja_1"
    assert sanitize_file_name("açaí--especial.jpg") == "acai_especial"


def test_build_object_path():
    path = build_object_path("stores", "abc", "avatar", "Logo Final.PNG", timestamp_ms=1700000000000)
    assert path == "stores/abc/avatar/1700000000000_logo_final.png"


def test_validate_file_size_limit():
    validate_file("avatar", "image/png", 2 * 1024 * 1024)
    with pytest.raises(ValidationFailed) as exc_info:
        validate_file("avatar", "image/png", 2 * 1024 * 1024 + 1)
    assert "file" in exc_info.value.errors


def test_validate_file_type():
    validate_file("proof", "application/pdf", 100)
    with pytest.raises(ValidationFailed):
        validate_file("banner", "application/pdf", 100)
    with pytest.raises(ValidationFailed) as exc_info:
        validate_file("document", "image/png", 100)
    assert "category" in exc_info.value.errors


def test_public_url_round_trip():
    service = StorageService("http://supabase.test/", "key", "store-assets")
    url = service.public_url("stores/1/avatar/x.png")
    assert url == "http://supabase.test/storage/v1/object/public/store-assets/stores/1/avatar/x.png"
    assert service.path_from_url(url) == "stores/1/avatar/x.png"
    assert service.path_from_url("http://elsewhere/x.png") is None


@pytest.mark.asyncio
async def test_upload_failure_raises_storage_error(monkeypatch):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, json={"error": "boom"})

    original = httpx.AsyncClient

    def client_factory(*args, **kwargs):
        return original(*args, transport=httpx.MockTransport(handler), **kwargs)

    monkeypatch.setattr(httpx, "AsyncClient", client_factory)
    service = StorageService("http://supabase.test", "key", "store-assets")
    with pytest.raises(StorageError):
        await service.upload("stores", "1", "avatar", "a.png", b"png", "image/png")


@pytest.mark.asyncio
async def test_upload_success(monkeypatch):
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["upsert"] = request.headers.get("x-upsert")
        return httpx.Response(200, json={"Key": "ok"})

    original = httpx.AsyncClient

    def client_factory(*args, **kwargs):
        return original(*args, transport=httpx.MockTransport(handler), **kwargs)

    monkeypatch.setattr(httpx, "AsyncClient", client_factory)
    service = StorageService("http://supabase.test", "key", "store-assets")
    stored = await service.upload("products", "p1", "primary", "Burger.jpg", b"jpeg", "image/jpeg")

    assert seen["url"].startswith("http://supabase.test/storage/v1/object/store-assets/products/p1/primary/")
    assert seen["upsert"] == "false"
    assert stored.url.endswith("_burger.jpg")
    assert stored.size == 4
