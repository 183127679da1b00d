"""Customer order endpoints."""

import logging
import uuid
from contextlib import contextmanager
from datetime import date

from fastapi import APIRouter, Depends, Query

from storeflow.api.deps import day_end, day_start, get_access, get_order_service
from storeflow.auth import Principal, get_current_principal, require_customer
from storeflow.errors import BadRequest, Forbidden, NotFound
from storeflow.pagination import Pagination, pagination_params
from storeflow.schemas.common import PaginatedData, SuccessResponse, ok, paginated
from storeflow.schemas.orders import DeliveryConfirmation, OrderCancel, OrderCreate, OrderDetail, OrderSummary
from storeflow.services import OrderService, StoreAccess
from storeflow.services.orders import (
    InvalidStatusForDeliveryConfirmation,
    InvalidStatusTransition,
    OrderAccessDenied,
    OrderListParams,
    OrderNotFound,
    OutForDeliveryRequiresDelivery,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/orders", tags=["orders"])


@contextmanager
def order_errors():
    """Translate order workflow failures into API errors."""
    try:
        yield
    except OrderNotFound as exc:
        raise NotFound("Order not found", code="ORDER_NOT_FOUND") from exc
    except OrderAccessDenied as exc:
        raise Forbidden("You do not have access to this order", code="ORDER_ACCESS_DENIED") from exc
    except OutForDeliveryRequiresDelivery as exc:
        raise BadRequest(
            "out_for_delivery is only valid for delivery orders",
            code="OUT_FOR_DELIVERY_REQUIRES_DELIVERY",
        ) from exc
    except InvalidStatusTransition as exc:
        raise BadRequest(str(exc), code="INVALID_STATUS_TRANSITION") from exc
    except InvalidStatusForDeliveryConfirmation as exc:
        raise BadRequest(str(exc), code="INVALID_STATUS_FOR_DELIVERY_CONFIRMATION") from exc


@router.get("", response_model=SuccessResponse[PaginatedData[OrderSummary]])
async def list_orders(
    store_id: uuid.UUID | None = Query(None),
    customer_id: uuid.UUID | None = Query(None),
    status: str | None = Query(None),
    start_date: date | None = Query(None),
    end_date: date | None = Query(None),
    pagination: Pagination = Depends(pagination_params),
    principal: Principal = Depends(get_current_principal),
    service: OrderService = Depends(get_order_service),
    access: StoreAccess = Depends(get_access),
):
    """Customers see their own orders; merchants must name one of their stores."""
    if principal.is_customer:
        customer = await service.get_customer(principal.id)
        customer_id = customer.id
    else:
        if store_id is None:
            raise BadRequest("store_id is required for merchants", code="STORE_ID_REQUIRED")
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


@router.post("", response_model=SuccessResponse[OrderDetail], status_code=201)
async def create_order(
    data: OrderCreate,
    principal: Principal = Depends(require_customer),
    service: OrderService = Depends(get_order_service),
):
    customer = await service.get_customer(principal.id)
    order = await service.create_order(customer.id, data, changed_by=principal.id)
    return ok(order, "Order created")


@router.get("/{order_id}", response_model=SuccessResponse[OrderDetail])
async def get_order(
    order_id: uuid.UUID,
    principal: Principal = Depends(get_current_principal),
    service: OrderService = Depends(get_order_service),
):
    with order_errors():
        order = await service.get_order(order_id, principal)
    return ok(order)


@router.post("/{order_id}/cancel", response_model=SuccessResponse[OrderDetail])
async def cancel_order(
    order_id: uuid.UUID,
    data: OrderCancel | None = None,
    principal: Principal = Depends(require_customer),
    service: OrderService = Depends(get_order_service),
):
    customer = await service.get_customer(principal.id)
    with order_errors():
        order = await service.cancel_order(order_id, customer, data.reason if data else None)
    return ok(order, "Order cancelled")


@router.post("/{order_id}/confirm-delivery", response_model=SuccessResponse[OrderDetail])
async def confirm_delivery(
    order_id: uuid.UUID,
    data: DeliveryConfirmation | None = None,
    principal: Principal = Depends(require_customer),
    service: OrderService = Depends(get_order_service),
):
    customer = await service.get_customer(principal.id)
    with order_errors():
        order = await service.confirm_delivery(order_id, customer, data or DeliveryConfirmation())
    return ok(order, "Delivery confirmed")
