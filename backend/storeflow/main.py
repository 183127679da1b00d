"""StoreFlow API - Main FastAPI application."""

import logging
import re
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from storeflow.api import auth, merchant_products, merchant_stores, orders, products, store_orders, stores
from storeflow.config import get_settings
from storeflow.database import engine
from storeflow.errors import BadRequest, install_error_handlers

logger = logging.getLogger(__name__)

BODY_METHODS = {"POST", "PUT", "PATCH"}
JSON_CONTENT_TYPE = "application/json"
MULTIPART_CONTENT_TYPE = "multipart/form-data"

# .../upload, .../upload/{category}, .../upload/proof
UPLOAD_PATH = re.compile(r"/upload(/[^/]+)?/?$")


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _has_body(request: Request) -> bool:
    length = request.headers.get("content-length")
    if length is not None:
        return length.strip() not in ("", "0")
    return "transfer-encoding" in request.headers


def content_type_error(method: str, path: str, content_type: str, has_body: bool) -> str | None:
    """Return the rejection message for a mutating request, or None if it may proceed.

    Upload routes take multipart or JSON; every other route takes JSON only.
    A request without a body and without a Content-Type header is an action
    call (confirm, logout, activate) and passes.
    """
    if method not in BODY_METHODS:
        return None
    content_type = content_type.lower()
    if not content_type:
        return "Content-Type must be application/json" if has_body else None
    if content_type.startswith(JSON_CONTENT_TYPE):
        return None
    if UPLOAD_PATH.search(path):
        if content_type.startswith(MULTIPART_CONTENT_TYPE):
            return None
        return "Content-Type must be multipart/form-data or application/json"
    return "Content-Type must be application/json"


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting %s", app.title)
    yield
    await engine.dispose()
    logger.info("Stopped %s", app.title)


settings = get_settings()
configure_logging(settings.log_level)

app = FastAPI(
    title=settings.app_name,
    description="Multi-tenant marketplace API: stores, catalog, customers and orders",
    version="1.0.0",
    debug=settings.debug,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

install_error_handlers(app)


@app.middleware("http")
async def require_supported_content_type(request: Request, call_next):
    """Reject unsupported content types before the body is parsed."""
    content_type = request.headers.get("content-type", "")
    message = content_type_error(request.method, request.url.path, content_type, _has_body(request))
    if message is not None:
        error = BadRequest(message)
        logger.info("Rejected %s %s with content-type %r", request.method, request.url.path, content_type)
        return JSONResponse(
            status_code=error.status_code,
            content={"success": False, "error": error.to_dict()},
        )
    return await call_next(request)


# Register API routers
app.include_router(auth.router, prefix="/api")
app.include_router(stores.router, prefix="/api")
app.include_router(products.router, prefix="/api")
app.include_router(merchant_stores.router, prefix="/api")
app.include_router(merchant_products.router, prefix="/api")
app.include_router(orders.router, prefix="/api")
app.include_router(store_orders.router, prefix="/api")


@app.get("/health")
async def health():
    return {"status": "ok"}
