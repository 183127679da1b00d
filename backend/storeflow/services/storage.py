"""Supabase Storage client for store, product and order files."""

import logging
import re
import time
import unicodedata
from dataclasses import dataclass
from typing import Literal

import httpx

from storeflow.config import Settings, get_settings
from storeflow.errors import ApiError, ValidationFailed

logger = logging.getLogger(__name__)

EntityType = Literal["stores", "products", "orders"]
FileCategory = Literal["avatar", "banner", "primary", "gallery", "proof"]

_IMAGE_TYPES = ("image/jpeg", "image/png", "image/webp")
_MB = 1024 * 1024


@dataclass(frozen=True, slots=True)
class CategoryRule:
    max_size_mb: int
    allowed_mime_types: tuple[str, ...]


CATEGORY_RULES: dict[str, CategoryRule] = {
    "avatar": CategoryRule(2, _IMAGE_TYPES),
    "banner": CategoryRule(5, _IMAGE_TYPES),
    "primary": CategoryRule(5, _IMAGE_TYPES),
    "gallery": CategoryRule(5, _IMAGE_TYPES),
    "proof": CategoryRule(10, ("image/jpeg", "image/png", "application/pdf")),
}


@dataclass(frozen=True, slots=True)
class StoredFile:
    url: str
    path: str
    size: int
    mime_type: str


class StorageError(ApiError):
    status_code = 502
    code = "STORAGE_ERROR"
    default_message = "File storage is unavailable"


def sanitize_file_name(file_name: str) -> str:
    """Lowercase ASCII stem with runs of other characters collapsed to ``_``."""
    stem = re.sub(r"\.[^/.]+$", "", file_name)
    ascii_stem = unicodedata.normalize("NFD", stem.lower()).encode("ascii", "ignore").decode()
    cleaned = re.sub(r"[^a-z0-9]", "_", ascii_stem)
    return re.sub(r"_+", "_", cleaned).strip("_")


def build_object_path(
    entity_type: str, entity_id: str, category: str, file_name: str, timestamp_ms: int | None = None
) -> str:
    timestamp_ms = timestamp_ms if timestamp_ms is not None else int(time.time() * 1000)
    extension = file_name.rsplit(".", 1)[-1].lower() if "." in file_name else ""
    return f"{entity_type}/{entity_id}/{category}/{timestamp_ms}_{sanitize_file_name(file_name)}.{extension}"


def validate_file(category: str, content_type: str | None, size: int) -> None:
    rule = CATEGORY_RULES.get(category)
    if rule is None:
        raise ValidationFailed.field("category", f"Unknown file category: {category}")
    if size > rule.max_size_mb * _MB:
        raise ValidationFailed.field("file", f"File too large. Maximum size: {rule.max_size_mb}MB")
    if content_type not in rule.allowed_mime_types:
        raise ValidationFailed.field(
            "file", f"File type not allowed. Accepted types: {', '.join(rule.allowed_mime_types)}"
        )


class StorageService:
    """Uploads to a single Supabase Storage bucket over its REST API."""

    def __init__(self, base_url: str, service_key: str, bucket: str, timeout: float = 10.0):
        self._base_url = base_url.rstrip("/") + "/storage/v1"
        self._service_key = service_key
        self.bucket = bucket
        self._timeout = timeout

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "StorageService":
        settings = settings or get_settings()
        return cls(
            settings.supabase_url,
            settings.supabase_service_role_key,
            settings.storage_bucket,
            settings.http_timeout_seconds,
        )

    def _headers(self, content_type: str | None = None) -> dict[str, str]:
        headers = {
            "apikey": self._service_key,
            "Authorization": f"Bearer {self._service_key}",
        }
        if content_type:
            headers["Content-Type"] = content_type
        return headers

    def public_url(self, path: str) -> str:
        return f"{self._base_url}/object/public/{self.bucket}/{path}"

    async def upload(
        self,
        entity_type: EntityType,
        entity_id: str,
        category: FileCategory,
        file_name: str,
        content: bytes,
        content_type: str | None,
    ) -> StoredFile:
        validate_file(category, content_type, len(content))
        path = build_object_path(entity_type, str(entity_id), category, file_name)

        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await client.post(
                    f"{self._base_url}/object/{self.bucket}/{path}",
                    content=content,
                    headers={**self._headers(content_type), "x-upsert": "false"},
                )
                response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            logger.error("Storage upload failed for %s: %s", path, exc.response.status_code)
            raise StorageError("Failed to upload file", details={"path": path}) from exc
        except httpx.HTTPError as exc:
            logger.error("Storage unreachable while uploading %s: %s", path, exc)
            raise StorageError(details={"path": path}) from exc

        logger.info("Uploaded %s (%d bytes)", path, len(content))
        return StoredFile(url=self.public_url(path), path=path, size=len(content), mime_type=content_type or "")

    async def delete(self, path: str) -> None:
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await client.request(
                    "DELETE",
                    f"{self._base_url}/object/{self.bucket}",
                    json={"prefixes": [path]},
                    headers=self._headers("application/json"),
                )
                response.raise_for_status()
        except httpx.HTTPError as exc:
            logger.error("Storage delete failed for %s: %s", path, exc)
            raise StorageError("Failed to remove file", details={"path": path}) from exc

    def path_from_url(self, url: str | None) -> str | None:
        prefix = f"{self._base_url}/object/public/{self.bucket}/"
        if url and url.startswith(prefix):
            return url[len(prefix):]
        return None


async def discard_replaced_file(storage: StorageService, old_url: str | None) -> None:
    """Remove the object a new upload replaced; failures are logged, not raised."""
    path = storage.path_from_url(old_url)
    if path is None:
        return
    try:
        await storage.delete(path)
    except StorageError:
        logger.warning("Could not remove replaced file %s", path)
