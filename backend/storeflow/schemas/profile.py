"""Profile update payloads.

``addresses`` is accepted in two shapes and normalised once, here, into a
tagged union:

* a list (or a legacy object keyed by label) replaces the whole address set
  -> ``AddressReplace(kind="replace")``
* ``{"add": [...], "update": [...], "remove": [...]}`` -> ``AddressPatch(kind="partial")``
"""

import uuid
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from storeflow.models.enums import AddressType
from storeflow.schemas.common import CamelModel

_PARTIAL_KEYS = ("add", "update", "remove")


class AddressInput(CamelModel):
    label: str | None = Field(None, max_length=50)
    address_type: AddressType = AddressType.OTHER
    street: str = Field(min_length=1)
    number: str = Field(min_length=1)
    neighborhood: str = Field(min_length=1)
    city: str = Field(min_length=1)
    state: str = Field(min_length=1)
    zip_code: str = Field(min_length=8, max_length=12)
    complement: str | None = None
    reference: str | None = None
    is_default: bool | None = None


class AddressUpdateInput(AddressInput):
    id: uuid.UUID


class AddressReplace(BaseModel):
    kind: Literal["replace"] = "replace"
    items: list[AddressInput]


class AddressPatch(BaseModel):
    kind: Literal["partial"] = "partial"
    add: list[AddressInput] = []
    update: list[AddressUpdateInput] = []
    remove: list[uuid.UUID] = []


AddressChanges = Annotated[AddressReplace | AddressPatch, Field(discriminator="kind")]


def normalise_addresses(value: Any, allow_replace: bool = True) -> Any:
    if value is None or (isinstance(value, dict) and "kind" in value):
        return value
    if isinstance(value, list):
        if not allow_replace:
            raise ValueError("PATCH requires partial operations: {add, update, remove}")
        return {"kind": "replace", "items": value}
    if isinstance(value, dict):
        if any(key in value for key in _PARTIAL_KEYS):
            return {"kind": "partial", **{k: value[k] for k in _PARTIAL_KEYS if k in value}}
        if not allow_replace:
            raise ValueError("PATCH requires partial operations: {add, update, remove}")
        items = []
        for label, address in value.items():
            if isinstance(address, dict):
                items.append({**address, "label": address.get("label") or label})
            else:
                items.append(address)
        return {"kind": "replace", "items": items}
    return value


class ProfileUpdate(CamelModel):
    """PUT body: accepts both address shapes; unknown keys are ignored."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    name: str | None = Field(None, min_length=2, max_length=100)
    phone: str | None = Field(None, min_length=10, max_length=15)
    addresses: AddressChanges | None = None

    @model_validator(mode="before")
    @classmethod
    def tag_addresses(cls, data: Any) -> Any:
        if isinstance(data, dict) and "addresses" in data:
            data = {**data, "addresses": normalise_addresses(data["addresses"])}
        return data


class ProfilePatch(ProfileUpdate):
    """PATCH body: addresses must use partial operations."""

    @model_validator(mode="before")
    @classmethod
    def tag_addresses(cls, data: Any) -> Any:
        if isinstance(data, dict) and "addresses" in data:
            data = {**data, "addresses": normalise_addresses(data["addresses"], allow_replace=False)}
        return data


# --- Responses ---

class AddressOut(BaseModel):
    id: uuid.UUID
    label: str | None
    address_type: str
    street: str
    number: str
    neighborhood: str
    city: str
    state: str
    zip_code: str
    complement: str | None
    reference: str | None
    is_default: bool

    model_config = {"from_attributes": True}


class OwnedStoreOut(BaseModel):
    id: uuid.UUID
    name: str
    slug: str
    is_active: bool

    model_config = {"from_attributes": True}


class CustomerProfileOut(BaseModel):
    id: uuid.UUID
    type: Literal["customer"] = "customer"
    email: str | None = None
    name: str
    phone: str
    addresses: list[AddressOut]


class MerchantProfileOut(BaseModel):
    id: uuid.UUID
    type: Literal["merchant"] = "merchant"
    email: str
    role: str
    stores: list[OwnedStoreOut]
