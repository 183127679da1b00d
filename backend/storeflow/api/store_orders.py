"""Merchant order management, scoped to one store."""

import uuid
from datetime import date

from fastapi import APIRouter, Depends, File, Query, UploadFile

from storeflow.api.deps import day_end, day_start, get_access, get_order_service
from storeflow.api.orders import order_errors
from storeflow.auth import Principal, require_merchant
from storeflow.pagination import Pagination, pagination_params
from storeflow.schemas.common import PaginatedData, SuccessResponse, ok, paginated
from storeflow.schemas.orders import OrderConfirm, OrderDetail, OrderReject, OrderStatusUpdate, OrderSummary
from storeflow.services import OrderService, StoreAccess
from storeflow.services.orders import OrderListParams

router = APIRouter(prefix="/stores/{store_id}/orders", tags=["store-orders"])


@router.get("", response_model=SuccessResponse[PaginatedData[OrderSummary]])
async def list_store_orders(
    store_id: uuid.UUID,
    status: str | None = Query(None),
    customer_id: uuid.UUID | None = Query(None),
    start_date: date | None = Query(None),
    end_date: date | None = Query(None),
    pagination: Pagination = Depends(pagination_params),
    principal: Principal = Depends(require_merchant),
    service: OrderService = Depends(get_order_service),
    access: StoreAccess = Depends(get_access),
):
    await access.require_store(principal.id, store_id)
    params = OrderListParams(
        customer_id=customer_id,
        store_id=store_id,
        status=status,
        start_date=day_start(start_date),
        end_date=day_end(end_date),
    )
    items, total = await service.list_orders(params, pagination)
    return paginated(items, pagination, total)


@router.put("/{order_id}", response_model=SuccessResponse[OrderDetail])
async def update_order_status(
    store_id: uuid.UUID,
    order_id: uuid.UUID,
    data: OrderStatusUpdate,
    principal: Principal = Depends(require_merchant),
    service: OrderService = Depends(get_order_service),
):
    """Move a confirmed order forward (preparing, ready, out_for_delivery, delivered)."""
    with order_errors():
        order = await service.update_order_status(order_id, principal.id, data, store_id=store_id)
    return ok(order, "Order status updated")


@router.post("/{order_id}/confirm", response_model=SuccessResponse[OrderDetail])
async def confirm_order(
    store_id: uuid.UUID,
    order_id: uuid.UUID,
    data: OrderConfirm | None = None,
    principal: Principal = Depends(require_merchant),
    service: OrderService = Depends(get_order_service),
):
    with order_errors():
        order = await service.confirm_order(order_id, principal.id, data or OrderConfirm(), store_id=store_id)
    return ok(order, "Order confirmed")


@router.post("/{order_id}/reject", response_model=SuccessResponse[OrderDetail])
async def reject_order(
    store_id: uuid.UUID,
    order_id: uuid.UUID,
    data: OrderReject,
    principal: Principal = Depends(require_merchant),
    service: OrderService = Depends(get_order_service),
):
    with order_errors():
        order = await service.reject_order(order_id, principal.id, data, store_id=store_id)
    return ok(order, "Order rejected")


@router.post("/{order_id}/upload/proof", response_model=SuccessResponse[OrderDetail], status_code=201)
async def upload_payment_proof(
    store_id: uuid.UUID,
    order_id: uuid.UUID,
    file: UploadFile = File(...),
    principal: Principal = Depends(require_merchant),
    service: OrderService = Depends(get_order_service),
):
    content = await file.read()
    with order_errors():
        order = await service.attach_payment_proof(
            order_id, principal.id, store_id, file.filename or "proof", content, file.content_type
        )
    return ok(order, "Payment proof uploaded")
