"""Tests for customer profile updates and saved addresses."""

import uuid

import pytest
from pydantic import ValidationError
from sqlalchemy.exc import IntegrityError

from storeflow.auth import Principal
from storeflow.database import utcnow
from storeflow.errors import NotFound, ValidationFailed
from storeflow.models import Customer, CustomerAddress
from storeflow.schemas.profile import AddressPatch, AddressReplace, ProfilePatch, ProfileUpdate
from storeflow.services.profile import ProfileService

from conftest import CUSTOMER_AUTH_ID, MERCHANT_AUTH_ID


def address(label, street, is_default=None, **extra):
    body = {
        "label": label,
        "addressType": "home",
        "street": street,
        "number": "10",
        "neighborhood": "Centro",
        "city": "Campinas",
        "state": "SP",
        "zipCode": "13010000",
        **extra,
    }
    if is_default is not None:
        body["isDefault"] = is_default
    return body


CUSTOMER = Principal(id=CUSTOMER_AUTH_ID, type="customer", token="t", email="ana@example.com")


def test_list_means_replace():
    data = ProfileUpdate.model_validate({"addresses": [address("Home", "Rua A")]})
    assert isinstance(data.addresses, AddressReplace)
    assert data.addresses.items[0].street == "Rua A"


def test_legacy_object_keyed_by_label():
    data = ProfileUpdate.model_validate({"addresses": {"Work": address(None, "Av. Paulista")}})
    assert isinstance(data.addresses, AddressReplace)
    assert data.addresses.items[0].label == "Work"


def test_operations_mean_partial():
    data = ProfileUpdate.model_validate({"addresses": {"remove": [str(uuid.uuid4())]}})
    assert isinstance(data.addresses, AddressPatch)
    assert data.addresses.add == []


def test_patch_rejects_replace_shape():
    with pytest.raises(ValidationError):
        ProfilePatch.model_validate({"addresses": [address("Home", "Rua A")]})


def test_unknown_keys_are_ignored():
    data = ProfileUpdate.model_validate({"name": "Ana Lima", "favouriteColor": "blue"})
    assert data.name == "Ana Lima"


@pytest.mark.asyncio
async def test_get_customer_profile(db, sample_customer):
    profile = await ProfileService(db).get_profile(CUSTOMER)
    assert profile.type == "customer"
    assert profile.name == "Ana Souza"
    assert profile.email == "ana@example.com"
    assert profile.addresses == []


@pytest.mark.asyncio
async def test_get_merchant_profile(db, sample_store):
    principal = Principal(id=MERCHANT_AUTH_ID, type="merchant", token="t")
    profile = await ProfileService(db).get_profile(principal)
    assert profile.type == "merchant"
    assert profile.role == "admin"
    assert [s.slug for s in profile.stores] == ["burger-house"]


@pytest.mark.asyncio
async def test_replace_keeps_only_first_default(db, sample_customer):
    data = ProfileUpdate.model_validate({
        "name": "Ana Lima",
        "addresses": [
            address("Home", "Rua A", is_default=True),
            address("Work", "Rua B", is_default=True),
            address("Mom", "Rua C"),
        ],
    })
    profile = await ProfileService(db).update_profile(CUSTOMER, data)

    assert profile.name == "Ana Lima"
    assert len(profile.addresses) == 3
    defaults = [a.label for a in profile.addresses if a.is_default]
    assert defaults == ["Home"]
    assert profile.addresses[0].label == "Home"

    again = await ProfileService(db).update_profile(
        CUSTOMER, ProfileUpdate.model_validate({"addresses": [address("Office", "Rua D")]})
    )
    assert [a.label for a in again.addresses] == ["Office"]


@pytest.mark.asyncio
async def test_partial_operations(db, sample_customer):
    svc = ProfileService(db)
    profile = await svc.update_profile(
        CUSTOMER,
        ProfileUpdate.model_validate({
            "addresses": [address("Home", "Rua A", is_default=True), address("Work", "Rua B")]
        }),
    )
    home = next(a for a in profile.addresses if a.label == "Home")
    work = next(a for a in profile.addresses if a.label == "Work")

    data = ProfilePatch.model_validate({
        "addresses": {
            "remove": [str(home.id)],
            "update": [{**address("Work", "Rua B, fundos", is_default=True), "id": str(work.id)}],
            "add": [address("Gym", "Rua E")],
        }
    })
    profile = await svc.update_profile(CUSTOMER, data)

    assert [a.label for a in profile.addresses] == ["Work", "Gym"]
    assert profile.addresses[0].is_default is True
    assert profile.addresses[0].street == "Rua B, fundos"
    assert profile.addresses[1].is_default is False


@pytest.mark.asyncio
async def test_updated_default_wins_over_added_default(db, sample_customer):
    svc = ProfileService(db)
    profile = await svc.update_profile(
        CUSTOMER,
        ProfileUpdate.model_validate({
            "addresses": [address("Home", "Rua A", is_default=True), address("Work", "Rua B")]
        }),
    )
    work = next(a for a in profile.addresses if a.label == "Work")

    data = ProfilePatch.model_validate({
        "addresses": {
            "add": [address("Gym", "Rua E", is_default=True)],
            "update": [{**address("Work", "Rua B", is_default=True), "id": str(work.id)}],
        }
    })
    profile = await svc.update_profile(CUSTOMER, data)

    defaults = [a for a in profile.addresses if a.is_default]
    assert len(defaults) == 1
    assert defaults[0].id == work.id
    assert len(profile.addresses) == 3


@pytest.mark.asyncio
async def test_adding_default_moves_the_flag(db, sample_customer):
    svc = ProfileService(db)
    await svc.update_profile(
        CUSTOMER, ProfileUpdate.model_validate({"addresses": [address("Home", "Rua A", is_default=True)]})
    )
    profile = await svc.update_profile(
        CUSTOMER,
        ProfilePatch.model_validate({"addresses": {"add": [address("Work", "Rua B", is_default=True)]}}),
    )
    assert [(a.label, a.is_default) for a in profile.addresses] == [("Work", True), ("Home", False)]


@pytest.mark.asyncio
async def test_unknown_address_id(db, sample_customer):
    data = ProfilePatch.model_validate({"addresses": {"remove": [str(uuid.uuid4())]}})
    with pytest.raises(NotFound) as exc_info:
        await ProfileService(db).update_profile(CUSTOMER, data)
    assert exc_info.value.code == "ADDRESS_NOT_FOUND"


@pytest.mark.asyncio
async def test_phone_must_be_unique(db, sample_customer):
    db.add(Customer(id=uuid.uuid4(), auth_user_id="other-customer", name="Bruno", phone="11911112222"))
    await db.commit()

    with pytest.raises(ValidationFailed) as exc_info:
        await ProfileService(db).update_profile(CUSTOMER, ProfileUpdate(phone="11911112222"))
    assert "phone" in exc_info.value.errors


@pytest.mark.asyncio
async def test_keeping_own_phone_is_allowed(db, sample_customer):
    profile = await ProfileService(db).update_profile(CUSTOMER, ProfileUpdate(phone="11987654321"))
    assert profile.phone == "11987654321"


# ── Database constraints ──────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_phone_unique_among_live_customers(db, sample_customer):
    db.add(Customer(id=uuid.uuid4(), auth_user_id="gone", name="Old", phone=sample_customer.phone, deleted_at=utcnow()))
    await db.commit()

    db.add(Customer(id=uuid.uuid4(), auth_user_id="dup", name="Dup", phone=sample_customer.phone))
    with pytest.raises(IntegrityError):
        await db.commit()
    await db.rollback()


@pytest.mark.asyncio
async def test_single_default_address_per_customer(db, sample_customer):
    def row(label, **extra):
        fields = {k: v for k, v in address(label, "Rua A").items() if k not in ("addressType", "zipCode")}
        return CustomerAddress(customer_id=sample_customer.id, zip_code="13010000", **fields, **extra)

    db.add(row("Old", is_default=True, deleted_at=utcnow()))
    db.add(row("Home", is_default=True))
    db.add(row("Work", is_default=False))
    await db.commit()

    db.add(row("Gym", is_default=True))
    with pytest.raises(IntegrityError):
        await db.commit()
    await db.rollback()
