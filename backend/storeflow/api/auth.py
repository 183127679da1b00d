"""Authentication and profile endpoints."""

import logging

from fastapi import APIRouter, Depends

from storeflow.api.deps import get_auth_service, get_profile_service
from storeflow.auth import Principal, get_current_principal, require_customer
from storeflow.schemas.auth import (
    CustomerLoginRequest,
    CustomerSession,
    CustomerSignupRequest,
    MerchantLoginRequest,
    MerchantSession,
    MerchantSignupRequest,
    RefreshRequest,
    SignupResult,
    TokenPair,
)
from storeflow.schemas.common import SuccessResponse, ok
from storeflow.schemas.profile import CustomerProfileOut, MerchantProfileOut, ProfilePatch, ProfileUpdate
from storeflow.services import AuthService, ProfileService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/customer/signup", response_model=SuccessResponse[SignupResult], status_code=201)
async def customer_signup(
    data: CustomerSignupRequest,
    service: AuthService = Depends(get_auth_service),
):
    """Register a customer in a store, reusing an existing account if any."""
    result = await service.customer_signup(data)
    return ok(result, "Customer registered")


@router.post("/customer/login", response_model=SuccessResponse[CustomerSession])
async def customer_login(
    data: CustomerLoginRequest,
    service: AuthService = Depends(get_auth_service),
):
    return ok(await service.customer_login(data))


@router.post("/merchant/signup", response_model=SuccessResponse[SignupResult], status_code=201)
async def merchant_signup(
    data: MerchantSignupRequest,
    service: AuthService = Depends(get_auth_service),
):
    """Create the merchant account together with its first store."""
    result = await service.merchant_signup(data)
    return ok(result, "Merchant registered")


@router.post("/merchant/login", response_model=SuccessResponse[MerchantSession])
async def merchant_login(
    data: MerchantLoginRequest,
    service: AuthService = Depends(get_auth_service),
):
    return ok(await service.merchant_login(data))


@router.post("/refresh", response_model=SuccessResponse[TokenPair])
async def refresh(
    data: RefreshRequest,
    service: AuthService = Depends(get_auth_service),
):
    return ok(await service.refresh(data.refresh_token))


@router.post("/logout")
async def logout(
    principal: Principal = Depends(get_current_principal),
    service: AuthService = Depends(get_auth_service),
):
    await service.logout(principal.token)
    return ok(None, "Logged out")


# ── Profile ────────────────────────────────────────────────────────────────


@router.get(
    "/profile",
    response_model=SuccessResponse[CustomerProfileOut | MerchantProfileOut],
)
async def get_profile(
    principal: Principal = Depends(get_current_principal),
    service: ProfileService = Depends(get_profile_service),
):
    return ok(await service.get_profile(principal))


@router.put("/profile", response_model=SuccessResponse[CustomerProfileOut])
async def replace_profile(
    data: ProfileUpdate,
    principal: Principal = Depends(require_customer),
    service: ProfileService = Depends(get_profile_service),
):
    """Update name/phone; ``addresses`` may be a full list or partial ops."""
    return ok(await service.update_profile(principal, data), "Profile updated")


@router.patch("/profile", response_model=SuccessResponse[CustomerProfileOut])
async def patch_profile(
    data: ProfilePatch,
    principal: Principal = Depends(require_customer),
    service: ProfileService = Depends(get_profile_service),
):
    return ok(await service.update_profile(principal, data), "Profile updated")
