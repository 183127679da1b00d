"""Order placement and the merchant/customer status workflow.

Pricing is always recomputed from the catalog; client-supplied unit prices
are accepted by the schema but never read here.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from storeflow.config import get_settings
from storeflow.database import atomic, utcnow
from storeflow.errors import BusinessRuleViolation, NotFound
from storeflow.models import (
    Customer,
    Order,
    OrderDeliveryAddress,
    OrderItem,
    OrderItemCustomization,
    OrderStatusHistory,
    Product,
    ProductCustomization,
    Store,
    StoreDeliveryOption,
)
from storeflow.models.enums import FulfillmentMethod, OrderStatus
from storeflow.order_status import can_transition, is_terminal
from storeflow.pagination import Pagination
from storeflow.schemas.orders import (
    DeliveryAddressOut,
    DeliveryConfirmation,
    OrderConfirm,
    OrderCreate,
    OrderDetail,
    OrderItemInput,
    OrderItemOut,
    OrderReject,
    OrderStatusUpdate,
    OrderSummary,
)
from storeflow.services.access import StoreAccess
from storeflow.services.storage import StorageService, discard_replaced_file

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


# ---------------------------------------------------------------------------
# Workflow failures (translated to HTTP errors by the routers)
# ---------------------------------------------------------------------------


class OrderNotFound(Exception):
    pass


class OrderAccessDenied(Exception):
    pass


class InvalidStatusTransition(Exception):
    def __init__(self, current: str, target: str):
        self.current = current
        self.target = target
        super().__init__(f"Cannot change order status from '{current}' to '{target}'")


class OutForDeliveryRequiresDelivery(Exception):
    pass


class InvalidStatusForDeliveryConfirmation(Exception):
    def __init__(self, status: str):
        self.status = status
        super().__init__(f"Delivery cannot be confirmed for an order that is '{status}'")


# ---------------------------------------------------------------------------
# Value objects
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class OrderListParams:
    customer_id: Optional[uuid.UUID] = None
    store_id: Optional[uuid.UUID] = None
    status: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None


@dataclass(frozen=True, slots=True)
class PricedCustomization:
    customization: ProductCustomization
    quantity: int

    @property
    def total_price(self) -> Decimal:
        return self.customization.price * self.quantity


@dataclass(frozen=True, slots=True)
class PricedItem:
    product: Product
    quantity: int
    observations: Optional[str]
    customizations: tuple[PricedCustomization, ...]

    @property
    def total_price(self) -> Decimal:
        return self.product.price * self.quantity


def customization_quantity(value: Any) -> int:
    """Numbers are taken as the quantity; ``true``/``"true"`` count as one."""
    if isinstance(value, bool):
        return 1 if value else 0
    if isinstance(value, (int, float)):
        return max(int(value), 0)
    if isinstance(value, str) and value.strip().lower() == "true":
        return 1
    return 0


class OrderService:
    def __init__(
        self,
        session: AsyncSession,
        access: StoreAccess,
        storage: StorageService | None = None,
    ):
        self.session = session
        self.access = access
        self.storage = storage

    # ------------------------------------------------------------------
    # Read projection
    # ------------------------------------------------------------------

    @staticmethod
    def _summary_query():
        items_count = (
            select(func.count(OrderItem.id))
            .where(OrderItem.order_id == Order.id)
            .correlate(Order)
            .scalar_subquery()
        )
        total_items = (
            select(func.coalesce(func.sum(OrderItem.quantity), 0))
            .where(OrderItem.order_id == Order.id)
            .correlate(Order)
            .scalar_subquery()
        )
        return (
            select(Order, Store.name, Store.slug, Customer.name, Customer.phone, items_count, total_items)
            .join(Store, Store.id == Order.store_id)
            .join(Customer, Customer.id == Order.customer_id)
        )

    @staticmethod
    def _summary_fields(row) -> dict:
        order, store_name, store_slug, customer_name, customer_phone, items_count, total_items = row
        return {
            **OrderSummary.model_validate(order).model_dump(
                exclude={"store_name", "store_slug", "customer_name", "customer_phone", "items_count", "total_items"}
            ),
            "store_name": store_name,
            "store_slug": store_slug,
            "customer_name": customer_name,
            "customer_phone": customer_phone,
            "items_count": items_count or 0,
            "total_items": int(total_items or 0),
        }

    @staticmethod
    def _list_clauses(params: OrderListParams) -> list:
        clauses = [Order.alive()]
        if params.customer_id is not None:
            clauses.append(Order.customer_id == params.customer_id)
        if params.store_id is not None:
            clauses.append(Order.store_id == params.store_id)
        if params.status:
            clauses.append(Order.status == params.status)
        if params.start_date is not None:
            clauses.append(Order.created_at >= params.start_date)
        if params.end_date is not None:
            clauses.append(Order.created_at <= params.end_date)
        return clauses

    async def list_orders(
        self, params: OrderListParams, pagination: Pagination
    ) -> tuple[list[OrderSummary], int]:
        clauses = self._list_clauses(params)

        count_result = await self.session.execute(select(func.count(Order.id)).where(*clauses))
        total = count_result.scalar_one()

        result = await self.session.execute(
            self._summary_query()
            .where(*clauses)
            .order_by(Order.created_at.desc(), Order.id)
            .offset(pagination.offset)
            .limit(pagination.limit)
        )
        return [OrderSummary(**self._summary_fields(row)) for row in result.all()], total

    async def get_order_detail(self, order_id: uuid.UUID) -> OrderDetail | None:
        result = await self.session.execute(
            self._summary_query()
            .options(
                selectinload(Order.items).selectinload(OrderItem.customizations),
                selectinload(Order.delivery_address),
            )
            .where(Order.id == order_id, Order.alive())
            .execution_options(populate_existing=True)
        )
        row = result.one_or_none()
        if row is None:
            return None

        order = row[0]
        return OrderDetail(
            **self._summary_fields(row),
            items=[OrderItemOut.model_validate(item) for item in order.items],
            delivery_address=(
                DeliveryAddressOut.model_validate(order.delivery_address)
                if order.delivery_address is not None
                else None
            ),
        )

    async def get_order(self, order_id: uuid.UUID, principal) -> OrderDetail:
        """Order detail for its customer or for a merchant of its store."""
        order = await self._load_order(order_id)
        if principal.is_customer:
            customer = await self.get_customer(principal.id)
            if order.customer_id != customer.id:
                raise OrderAccessDenied()
        elif not await self.access.can_manage(principal.id, order.store_id):
            raise OrderAccessDenied()
        return await self._detail(order.id)

    async def get_customer(self, auth_user_id: str) -> Customer:
        result = await self.session.execute(
            select(Customer).where(Customer.auth_user_id == auth_user_id, Customer.alive())
        )
        customer = result.scalar_one_or_none()
        if customer is None:
            raise NotFound("Customer not found", code="CUSTOMER_NOT_FOUND")
        return customer

    # ------------------------------------------------------------------
    # Placement
    # ------------------------------------------------------------------

    async def _load_products(self, store_id: uuid.UUID, items: list[OrderItemInput]) -> dict[uuid.UUID, Product]:
        wanted = {item.product_id for item in items}
        result = await self.session.execute(
            select(Product).where(Product.id.in_(wanted), Product.alive())
        )
        products = {product.id: product for product in result.scalars().all()}

        if wanted - products.keys():
            raise BusinessRuleViolation(
                "One or more products were not found", code="PRODUCT_UNAVAILABLE"
            )
        for product in products.values():
            if product.store_id != store_id:
                raise BusinessRuleViolation(
                    f"Product {product.id} does not belong to this store", code="PRODUCT_UNAVAILABLE"
                )
            if not product.is_active:
                raise BusinessRuleViolation(
                    f"Product '{product.name}' is not available", code="PRODUCT_UNAVAILABLE"
                )
        return products

    async def _load_customizations(self, items: list[OrderItemInput]) -> dict[uuid.UUID, ProductCustomization]:
        wanted = {c.customization_id for item in items for c in item.customizations}
        if not wanted:
            return {}
        result = await self.session.execute(
            select(ProductCustomization).where(
                ProductCustomization.id.in_(wanted), ProductCustomization.alive()
            )
        )
        return {c.id: c for c in result.scalars().all()}

    @staticmethod
    def _price_items(
        items: list[OrderItemInput],
        products: dict[uuid.UUID, Product],
        customizations: dict[uuid.UUID, ProductCustomization],
    ) -> list[PricedItem]:
        priced = []
        for item in items:
            product = products[item.product_id]
            selected = []
            for choice in item.customizations:
                customization = customizations.get(choice.customization_id)
                if customization is None or customization.product_id != product.id:
                    raise BusinessRuleViolation(
                        f"Customization {choice.customization_id} is not available for '{product.name}'",
                        code="CUSTOMIZATION_UNAVAILABLE",
                    )
                quantity = customization_quantity(choice.value)
                if quantity > 0:
                    selected.append(PricedCustomization(customization, quantity))
            priced.append(PricedItem(product, item.quantity, item.observations, tuple(selected)))
        return priced

    async def _delivery_fee(
        self, store: Store, data: OrderCreate, subtotal: Decimal
    ) -> tuple[Decimal, uuid.UUID | None]:
        if data.fulfillment_method == FulfillmentMethod.PICKUP:
            return ZERO, None

        fee = store.delivery_fee or ZERO
        option_id = None
        if data.delivery_option_id is not None:
            result = await self.session.execute(
                select(StoreDeliveryOption).where(
                    StoreDeliveryOption.id == data.delivery_option_id,
                    StoreDeliveryOption.store_id == store.id,
                    StoreDeliveryOption.is_active.is_(True),
                    StoreDeliveryOption.alive(),
                )
            )
            option = result.scalar_one_or_none()
            if option is None:
                raise BusinessRuleViolation(
                    "Selected delivery option is not available", code="DELIVERY_OPTION_UNAVAILABLE"
                )
            fee, option_id = option.fee, option.id

        if store.free_delivery_above and subtotal >= store.free_delivery_above:
            fee = ZERO
        return fee, option_id

    async def create_order(
        self, customer_id: uuid.UUID, data: OrderCreate, changed_by: str | None = None
    ) -> OrderDetail:
        result = await self.session.execute(
            select(Store).where(Store.id == data.store_id, Store.alive())
        )
        store = result.scalar_one_or_none()
        if store is None:
            raise NotFound("Store not found", code="STORE_NOT_FOUND")
        if not store.is_active:
            raise BusinessRuleViolation("Store is not accepting orders", code="STORE_INACTIVE")

        method = data.fulfillment_method.value
        if not store.fulfillment_enabled(method):
            raise BusinessRuleViolation(
                f"Store does not offer {method}", code="FULFILLMENT_METHOD_UNAVAILABLE"
            )
        payment = data.payment_method.value
        if not store.accepts_payment(payment):
            raise BusinessRuleViolation(
                f"Store does not accept payment via {payment}", code="PAYMENT_METHOD_NOT_ACCEPTED"
            )

        products = await self._load_products(store.id, data.items)
        customizations = await self._load_customizations(data.items)
        priced = self._price_items(data.items, products, customizations)

        subtotal = sum((item.total_price for item in priced), ZERO)
        if store.min_order_value and subtotal < store.min_order_value:
            raise BusinessRuleViolation(
                f"Minimum order value is {store.min_order_value}",
                code="MINIMUM_ORDER_VALUE_NOT_MET",
                details={"subtotal": str(subtotal), "min_order_value": str(store.min_order_value)},
            )
        delivery_fee, option_id = await self._delivery_fee(store, data, subtotal)

        timeout_ms = get_settings().order_transaction_timeout_ms
        async with atomic(self.session, timeout_ms):
            order = Order(
                id=uuid.uuid4(),
                store_id=store.id,
                customer_id=customer_id,
                delivery_option_id=option_id,
                fulfillment_method=method,
                payment_method=payment,
                payment_status="pending",
                status=OrderStatus.PENDING.value,
                subtotal=subtotal,
                delivery_fee=delivery_fee,
                total_amount=subtotal + delivery_fee,
                pickup_slot=data.pickup_slot,
                observations=data.observations,
            )
            self.session.add(order)

            for item in priced:
                order_item = OrderItem(
                    id=uuid.uuid4(),
                    order_id=order.id,
                    product_id=item.product.id,
                    product_name=item.product.name,
                    product_family=item.product.family,
                    quantity=item.quantity,
                    unit_price=item.product.price,
                    unit_cost_price=item.product.cost_price or ZERO,
                    total_price=item.total_price,
                    observations=item.observations,
                )
                self.session.add(order_item)
                for choice in item.customizations:
                    self.session.add(
                        OrderItemCustomization(
                            order_item_id=order_item.id,
                            customization_id=choice.customization.id,
                            customization_name=choice.customization.name,
                            customization_type=choice.customization.customization_type,
                            selection_type=choice.customization.selection_type,
                            quantity=choice.quantity,
                            unit_price=choice.customization.price,
                            total_price=choice.total_price,
                        )
                    )

            if data.fulfillment_method == FulfillmentMethod.DELIVERY and data.delivery_address:
                address = data.delivery_address
                self.session.add(
                    OrderDeliveryAddress(
                        order_id=order.id,
                        street=address.street,
                        number=address.number,
                        neighborhood=address.neighborhood,
                        city=address.city,
                        state=address.state.upper(),
                        zip_code=address.zip_code,
                        complement=address.complement,
                        reference=address.reference,
                    )
                )

            self.session.add(
                OrderStatusHistory(
                    order_id=order.id,
                    from_status=None,
                    to_status=OrderStatus.PENDING.value,
                    changed_by=changed_by,
                )
            )

        logger.info(
            "Order %s placed in store %s: subtotal=%s fee=%s", order.id, store.id, subtotal, delivery_fee
        )
        return await self._detail(order.id)

    # ------------------------------------------------------------------
    # Status workflow
    # ------------------------------------------------------------------

    async def _load_order(self, order_id: uuid.UUID) -> Order:
        result = await self.session.execute(
            select(Order).where(Order.id == order_id, Order.alive())
        )
        order = result.scalar_one_or_none()
        if order is None:
            raise OrderNotFound()
        return order

    async def _detail(self, order_id: uuid.UUID) -> OrderDetail:
        detail = await self.get_order_detail(order_id)
        if detail is None:
            raise OrderNotFound()
        return detail

    async def _merchant_order(
        self, order_id: uuid.UUID, merchant_auth_id: str, store_id: uuid.UUID | None = None
    ) -> Order:
        order = await self._load_order(order_id)
        if store_id is not None and order.store_id != store_id:
            raise OrderNotFound()
        if not await self.access.can_manage(merchant_auth_id, order.store_id):
            raise OrderAccessDenied()
        return order

    async def _customer_order(self, order_id: uuid.UUID, customer_id: uuid.UUID) -> Order:
        order = await self._load_order(order_id)
        if order.customer_id != customer_id:
            raise OrderAccessDenied()
        return order

    def _move(self, order: Order, target: OrderStatus, changed_by: str, notes: str | None = None) -> None:
        if (
            target == OrderStatus.OUT_FOR_DELIVERY
            and order.fulfillment_method != FulfillmentMethod.DELIVERY.value
        ):
            raise OutForDeliveryRequiresDelivery()
        if not can_transition(order.fulfillment_method, order.status, target.value):
            raise InvalidStatusTransition(order.status, target.value)

        self.session.add(
            OrderStatusHistory(
                order_id=order.id,
                from_status=order.status,
                to_status=target.value,
                changed_by=changed_by,
                notes=notes,
            )
        )
        order.status = target.value
        if target == OrderStatus.DELIVERED:
            order.delivered_at = utcnow()

    async def update_order_status(
        self,
        order_id: uuid.UUID,
        merchant_auth_id: str,
        data: OrderStatusUpdate,
        store_id: uuid.UUID | None = None,
    ) -> OrderDetail:
        order = await self._merchant_order(order_id, merchant_auth_id, store_id)
        previous = order.status
        async with atomic(self.session):
            self._move(order, OrderStatus(data.status), merchant_auth_id, data.observations)
            if data.estimated_delivery_time is not None:
                order.estimated_delivery_time = data.estimated_delivery_time
        logger.info("Order %s moved %s -> %s", order.id, previous, data.status)
        return await self._detail(order.id)

    async def confirm_order(
        self,
        order_id: uuid.UUID,
        merchant_auth_id: str,
        data: OrderConfirm,
        store_id: uuid.UUID | None = None,
    ) -> OrderDetail:
        order = await self._merchant_order(order_id, merchant_auth_id, store_id)
        async with atomic(self.session):
            self._move(order, OrderStatus.CONFIRMED, merchant_auth_id, data.observations)
            if data.estimated_delivery_time is not None:
                order.estimated_delivery_time = data.estimated_delivery_time
        return await self._detail(order.id)

    async def reject_order(
        self,
        order_id: uuid.UUID,
        merchant_auth_id: str,
        data: OrderReject,
        store_id: uuid.UUID | None = None,
    ) -> OrderDetail:
        order = await self._merchant_order(order_id, merchant_auth_id, store_id)
        async with atomic(self.session):
            self._move(order, OrderStatus.REJECTED, merchant_auth_id, data.observations or data.reason)
            order.cancellation_reason = data.reason
        logger.info("Order %s rejected: %s", order.id, data.reason)
        return await self._detail(order.id)

    async def cancel_order(
        self, order_id: uuid.UUID, customer: Customer, reason: str | None = None
    ) -> OrderDetail:
        order = await self._customer_order(order_id, customer.id)
        async with atomic(self.session):
            self._move(order, OrderStatus.CANCELLED, customer.auth_user_id, reason)
            order.cancellation_reason = reason
        return await self._detail(order.id)

    async def confirm_delivery(
        self, order_id: uuid.UUID, customer: Customer, data: DeliveryConfirmation
    ) -> OrderDetail:
        """Customer acknowledges receipt; allowed from any non-terminal status."""
        order = await self._customer_order(order_id, customer.id)
        if is_terminal(order.status):
            raise InvalidStatusForDeliveryConfirmation(order.status)

        async with atomic(self.session):
            self.session.add(
                OrderStatusHistory(
                    order_id=order.id,
                    from_status=order.status,
                    to_status=OrderStatus.DELIVERED.value,
                    changed_by=customer.auth_user_id,
                    notes="Delivery confirmed by customer",
                )
            )
            order.status = OrderStatus.DELIVERED.value
            order.delivered_at = utcnow()
            if data.rating is not None:
                order.rating = data.rating
            if data.feedback is not None:
                order.feedback = data.feedback
        return await self._detail(order.id)

    async def attach_payment_proof(
        self,
        order_id: uuid.UUID,
        merchant_auth_id: str,
        store_id: uuid.UUID,
        file_name: str,
        content: bytes,
        content_type: str | None,
    ) -> OrderDetail:
        if self.storage is None:
            raise RuntimeError("OrderService was built without a storage backend")
        order = await self._merchant_order(order_id, merchant_auth_id, store_id)

        stored = await self.storage.upload(
            "orders", str(order.id), "proof", file_name, content, content_type
        )
        previous_url = order.payment_proof_url
        async with atomic(self.session):
            order.payment_proof_url = stored.url
        await discard_replaced_file(self.storage, previous_url)
        return await self._detail(order.id)
