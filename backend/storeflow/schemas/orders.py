"""Order request and response models (snake_case on the wire)."""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, Field, model_validator

from storeflow.models.enums import FulfillmentMethod, PaymentMethod


# --- Requests ---

class OrderItemCustomizationInput(BaseModel):
    customization_id: uuid.UUID
    value: bool | int | float | str


class OrderItemInput(BaseModel):
    product_id: uuid.UUID
    quantity: int = Field(gt=0)
    # Accepted for compatibility; never used for pricing.
    unit_price: Decimal | None = Field(None, ge=0)
    observations: str | None = None
    customizations: list[OrderItemCustomizationInput] = []


class DeliveryAddressInput(BaseModel):
    street: str = Field(min_length=1)
    number: str = Field(min_length=1)
    neighborhood: str = Field(min_length=1)
    city: str = Field(min_length=1)
    state: str = Field(min_length=2, max_length=2)
    zip_code: str = Field(min_length=1)
    complement: str | None = None
    reference: str | None = None


class OrderCreate(BaseModel):
    store_id: uuid.UUID
    delivery_option_id: uuid.UUID | None = None
    fulfillment_method: FulfillmentMethod
    payment_method: PaymentMethod
    items: list[OrderItemInput] = Field(min_length=1)
    delivery_address: DeliveryAddressInput | None = None
    pickup_slot: datetime | None = None
    observations: str | None = None

    @model_validator(mode="after")
    def delivery_needs_address(self) -> "OrderCreate":
        if self.fulfillment_method == FulfillmentMethod.DELIVERY and self.delivery_address is None:
            raise ValueError("delivery_address is required for delivery orders")
        return self


class OrderStatusUpdate(BaseModel):
    status: Literal["preparing", "ready", "out_for_delivery", "delivered"]
    estimated_delivery_time: datetime | None = None
    observations: str | None = None


class OrderConfirm(BaseModel):
    estimated_delivery_time: datetime | None = None
    observations: str | None = None


class OrderReject(BaseModel):
    reason: str = Field(min_length=1, max_length=255)
    observations: str | None = None


class OrderCancel(BaseModel):
    reason: str | None = Field(None, max_length=255)


class DeliveryConfirmation(BaseModel):
    rating: int | None = Field(None, ge=1, le=5)
    feedback: str | None = None


# --- Responses ---

class OrderItemCustomizationOut(BaseModel):
    id: uuid.UUID
    customization_id: uuid.UUID
    customization_name: str
    customization_type: str
    selection_type: str
    quantity: int
    unit_price: Decimal
    total_price: Decimal

    model_config = {"from_attributes": True}


class OrderItemOut(BaseModel):
    id: uuid.UUID
    product_id: uuid.UUID
    product_name: str
    product_family: str
    quantity: int
    unit_price: Decimal
    total_price: Decimal
    observations: str | None
    customizations: list[OrderItemCustomizationOut] = []

    model_config = {"from_attributes": True}


class DeliveryAddressOut(BaseModel):
    street: str
    number: str
    neighborhood: str
    city: str
    state: str
    zip_code: str
    complement: str | None
    reference: str | None

    model_config = {"from_attributes": True}


class OrderSummary(BaseModel):
    id: uuid.UUID
    store_id: uuid.UUID
    customer_id: uuid.UUID
    delivery_option_id: uuid.UUID | None
    fulfillment_method: str
    payment_method: str
    payment_status: str
    status: str
    subtotal: Decimal
    delivery_fee: Decimal
    total_amount: Decimal
    pickup_slot: datetime | None
    estimated_delivery_time: datetime | None
    observations: str | None
    cancellation_reason: str | None
    rating: int | None
    feedback: str | None
    delivered_at: datetime | None
    payment_proof_url: str | None
    created_at: datetime | None
    updated_at: datetime | None
    store_name: str | None = None
    store_slug: str | None = None
    customer_name: str | None = None
    customer_phone: str | None = None
    items_count: int = 0
    total_items: int = 0

    model_config = {"from_attributes": True}


class OrderDetail(OrderSummary):
    items: list[OrderItemOut] = []
    delivery_address: DeliveryAddressOut | None = None
