"""Store request and response models."""

import uuid
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field, model_validator

from storeflow.models.enums import StoreCategory
from storeflow.schemas.common import CamelModel
from storeflow.schemas.products import ProductOut

HH_MM = r"^([0-1][0-9]|2[0-3]):[0-5][0-9]$"
HEX_COLOR = r"^#[0-9A-Fa-f]{6}$"

# Python's weekday() is Monday=0; stored day_of_week is Sunday=0.
WEEKDAY_NAMES = ("sunday", "monday", "tuesday", "wednesday", "thursday", "friday", "saturday")


# --- Requests ---

class StoreAddressInput(CamelModel):
    street: str = Field(min_length=1)
    number: str = Field(min_length=1)
    neighborhood: str = Field(min_length=1)
    city: str = Field(min_length=1)
    state: str = Field(min_length=2, max_length=2)
    zip_code: str = Field(min_length=8, max_length=12)
    complement: str | None = None
    reference: str | None = None


class DayHoursInput(CamelModel):
    open: str | None = Field(None, pattern=HH_MM)
    close: str | None = Field(None, pattern=HH_MM)
    closed: bool | None = None

    @model_validator(mode="after")
    def open_and_close_together(self) -> "DayHoursInput":
        if self.closed:
            return self
        if bool(self.open) != bool(self.close):
            raise ValueError("open and close must be provided together")
        return self

    @property
    def is_empty(self) -> bool:
        return not self.open and not self.close and self.closed is None


class WorkingHoursInput(CamelModel):
    sunday: DayHoursInput | None = None
    monday: DayHoursInput | None = None
    tuesday: DayHoursInput | None = None
    wednesday: DayHoursInput | None = None
    thursday: DayHoursInput | None = None
    friday: DayHoursInput | None = None
    saturday: DayHoursInput | None = None

    def by_day_of_week(self) -> dict[int, DayHoursInput]:
        days = {}
        for day_of_week, name in enumerate(WEEKDAY_NAMES):
            hours = getattr(self, name)
            if hours is not None and not hours.is_empty:
                days[day_of_week] = hours
        return days


class AcceptsPaymentInput(CamelModel):
    credit_card: bool | None = None
    debit_card: bool | None = None
    pix: bool | None = None
    cash: bool | None = None


class StoreSettingsInput(CamelModel):
    is_active: bool | None = None
    delivery_time: str | None = None
    min_order_value: Decimal | None = Field(None, ge=0)
    delivery_fee: Decimal | None = Field(None, ge=0)
    free_delivery_above: Decimal | None = Field(None, ge=0)
    accepts_payment: AcceptsPaymentInput | None = None
    delivery_enabled: bool | None = None
    pickup_enabled: bool | None = None
    pickup_instructions: str | None = None


class ThemeInput(CamelModel):
    primary_color: str | None = Field(None, pattern=HEX_COLOR)
    secondary_color: str | None = Field(None, pattern=HEX_COLOR)
    accent_color: str | None = Field(None, pattern=HEX_COLOR)
    text_color: str | None = Field(None, pattern=HEX_COLOR)


class StoreUpdate(CamelModel):
    name: str | None = Field(None, min_length=2, max_length=100)
    description: str | None = Field(None, max_length=500)
    category: StoreCategory | None = None
    custom_category: str | None = Field(None, max_length=50)
    address: StoreAddressInput | None = None
    working_hours: WorkingHoursInput | None = None
    settings: StoreSettingsInput | None = None
    theme: ThemeInput | None = None


class ToggleStatusRequest(CamelModel):
    is_active: bool


# --- Responses ---

class StoreAddressOut(BaseModel):
    street: str
    number: str
    neighborhood: str
    city: str
    state: str
    zip_code: str
    complement: str | None
    reference: str | None

    model_config = {"from_attributes": True}


class WorkingHoursOut(BaseModel):
    day_of_week: int
    open_time: str | None
    close_time: str | None
    is_closed: bool

    model_config = {"from_attributes": True}


class DeliveryOptionOut(BaseModel):
    id: uuid.UUID
    name: str
    fee: Decimal
    estimated_minutes: int | None

    model_config = {"from_attributes": True}


class NextOpeningOut(BaseModel):
    day_of_week: int
    day_name: str
    open_time: str
    days_ahead: int


class StoreStatusOut(BaseModel):
    store_id: uuid.UUID | None = None
    is_active: bool
    is_open: bool
    today: WorkingHoursOut | None
    next_opening: NextOpeningOut | None


class StoreOut(BaseModel):
    id: uuid.UUID
    merchant_id: uuid.UUID
    name: str
    slug: str
    description: str | None
    category: str
    custom_category: str | None
    avatar_url: str | None
    banner_url: str | None
    is_active: bool
    delivery_time: str | None
    accepts_payment_credit_card: bool
    accepts_payment_debit_card: bool
    accepts_payment_pix: bool
    accepts_payment_cash: bool
    fulfillment_delivery_enabled: bool
    fulfillment_pickup_enabled: bool
    fulfillment_pickup_instructions: str | None
    min_order_value: Decimal
    delivery_fee: Decimal
    free_delivery_above: Decimal | None
    primary_color: str | None
    secondary_color: str | None
    accent_color: str | None
    text_color: str | None
    created_at: datetime | None
    updated_at: datetime | None

    model_config = {"from_attributes": True}


class StoreListItem(StoreOut):
    products_count: int = 0


class StoreEnriched(StoreOut):
    address: StoreAddressOut | None = None
    working_hours: list[WorkingHoursOut] = []
    delivery_options: list[DeliveryOptionOut] = []
    products: list[ProductOut] = []
    products_count: int = 0
    team_members_count: int = 0
    status: StoreStatusOut | None = None


class UploadOut(BaseModel):
    url: str
    path: str
