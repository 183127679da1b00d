"""Bearer-token principal resolution and FastAPI auth dependencies."""

import logging
from dataclasses import dataclass

from fastapi import Depends, Request

from storeflow.config import get_settings
from storeflow.errors import Forbidden, Unauthorized
from storeflow.identity import (
    IdentityError,
    IdentityVerifier,
    SupabaseAuthClient,
    build_identity_verifier,
)
from storeflow.models.enums import PrincipalType

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Principal:
    """The authenticated caller of a request."""

    id: str
    type: str
    token: str
    email: str | None = None
    store_id: str | None = None
    role: str | None = None

    @property
    def is_customer(self) -> bool:
        return self.type == PrincipalType.CUSTOMER.value

    @property
    def is_merchant(self) -> bool:
        return self.type == PrincipalType.MERCHANT.value


def extract_bearer_token(authorization: str | None) -> str:
    if not authorization:
        raise Unauthorized("Authorization header is required", code="MISSING_TOKEN")
    scheme, _, token = authorization.partition(" ")
    token = token.strip()
    if scheme.lower() != "bearer" or not token:
        raise Unauthorized("Authorization header must be 'Bearer <token>'", code="INVALID_TOKEN")
    return token


async def resolve_principal(authorization: str | None, verifier: IdentityVerifier) -> Principal:
    """Verify the bearer token and derive the local principal from its metadata."""
    token = extract_bearer_token(authorization)

    try:
        identity = await verifier.get_user(token)
    except IdentityError as exc:
        logger.info("Token rejected by identity provider: %s", exc.message)
        raise Unauthorized("Invalid or expired token", code="INVALID_TOKEN") from exc

    principal_type = identity.claim("type")
    valid_types = {t.value for t in PrincipalType}
    if not identity.id or principal_type not in valid_types:
        raise Unauthorized("Token payload is missing user id or type", code="INVALID_TOKEN_PAYLOAD")

    store_id = identity.claim("storeId") or identity.claim("store_id")
    return Principal(
        id=str(identity.id),
        type=principal_type,
        token=token,
        email=identity.email,
        store_id=str(store_id) if store_id else None,
        role=identity.claim("role"),
    )


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------


def get_identity_verifier() -> IdentityVerifier:
    return build_identity_verifier()


def get_auth_client() -> SupabaseAuthClient:
    return SupabaseAuthClient.from_settings(get_settings())


async def get_current_principal(
    request: Request,
    verifier: IdentityVerifier = Depends(get_identity_verifier),
) -> Principal:
    """Require a valid bearer token and return the caller."""
    return await resolve_principal(request.headers.get("Authorization"), verifier)


async def require_customer(principal: Principal = Depends(get_current_principal)) -> Principal:
    if not principal.is_customer:
        raise Forbidden("Only customers can access this resource")
    return principal


async def require_merchant(principal: Principal = Depends(get_current_principal)) -> Principal:
    if not principal.is_merchant:
        raise Forbidden("Only merchants can access this resource")
    return principal
