"""Product request and response models."""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, Field, field_validator

from storeflow.models.enums import CustomizationType, ProductFamily, SelectionType
from storeflow.schemas.common import CamelModel


# --- Requests ---

class CustomizationInput(CamelModel):
    name: str = Field(min_length=1, max_length=100)
    customization_type: CustomizationType
    price: Decimal = Field(Decimal("0"), ge=0)
    selection_type: SelectionType = SelectionType.QUANTITY
    selection_group: str | None = Field(None, max_length=50)


class CustomizationUpdateInput(CustomizationInput):
    id: uuid.UUID


class CustomizationChanges(CamelModel):
    add: list[CustomizationInput] = []
    update: list[CustomizationUpdateInput] = []
    remove: list[uuid.UUID] = []


def _blank_to_none(value: Any) -> Any:
    return None if value == "" else value


class ProductCreate(CamelModel):
    name: str = Field(min_length=1, max_length=200)
    price: Decimal = Field(gt=0)
    family: ProductFamily
    category: str = Field(min_length=1, max_length=100)
    description: str | None = Field(None, max_length=1000)
    cost_price: Decimal = Field(Decimal("0"), ge=0)
    image_url: str | None = Field(None, max_length=500)
    custom_category: str | None = Field(None, max_length=100)
    is_active: bool = True
    preparation_time: int = Field(0, ge=0)
    nutritional_info: dict[str, Any] | None = None
    customizations: list[CustomizationInput] = []
    extra_list_ids: list[uuid.UUID] = []

    @field_validator("image_url", mode="before")
    @classmethod
    def empty_image_url_to_none(cls, value: Any) -> Any:
        return _blank_to_none(value)


class ProductUpdate(CamelModel):
    name: str | None = Field(None, min_length=1, max_length=200)
    price: Decimal | None = Field(None, gt=0)
    family: ProductFamily | None = None
    category: str | None = Field(None, min_length=1, max_length=100)
    description: str | None = Field(None, max_length=1000)
    cost_price: Decimal | None = Field(None, ge=0)
    image_url: str | None = Field(None, max_length=500)
    custom_category: str | None = Field(None, max_length=100)
    is_active: bool | None = None
    preparation_time: int | None = Field(None, ge=0)
    nutritional_info: dict[str, Any] | None = None
    customizations: CustomizationChanges | None = None
    extra_list_ids: list[uuid.UUID] | None = None

    @field_validator("image_url", mode="before")
    @classmethod
    def empty_image_url_to_none(cls, value: Any) -> Any:
        return _blank_to_none(value)


# --- Responses ---

class CustomizationOut(BaseModel):
    id: uuid.UUID
    name: str
    customization_type: str
    price: Decimal
    selection_type: str
    selection_group: str | None

    model_config = {"from_attributes": True}


class ProductOut(BaseModel):
    id: uuid.UUID
    store_id: uuid.UUID
    name: str
    description: str | None
    price: Decimal
    cost_price: Decimal
    family: str
    category: str
    custom_category: str | None
    is_active: bool
    image_url: str | None
    preparation_time: int | None
    nutritional_info: dict[str, Any] | None
    created_at: datetime | None
    updated_at: datetime | None

    model_config = {"from_attributes": True}


class ProductEnriched(ProductOut):
    store_name: str
    store_slug: str
    store_category: str
    customizations_count: int = 0
    extra_lists_count: int = 0
    customizations: list[CustomizationOut] = []
    extra_list_ids: list[uuid.UUID] = []
