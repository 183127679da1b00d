"""Enumerations shared by models, schemas and services."""

import enum


class MerchantRole(str, enum.Enum):
    ADMIN = "admin"
    MANAGER = "manager"


class StoreCategory(str, enum.Enum):
    HAMBURGUERIA = "hamburgueria"
    PIZZARIA = "pizzaria"
    PASTELARIA = "pastelaria"
    SORVETERIA = "sorveteria"
    CAFETERIA = "cafeteria"
    PADARIA = "padaria"
    COMIDA_BRASILEIRA = "comida_brasileira"
    COMIDA_JAPONESA = "comida_japonesa"
    DOCES = "doces"
    MERCADO = "mercado"
    OUTROS = "outros"


class ProductFamily(str, enum.Enum):
    RAW_MATERIAL = "raw_material"
    FINISHED_PRODUCT = "finished_product"
    ADDON = "addon"


class CustomizationType(str, enum.Enum):
    EXTRA = "extra"
    SAUCE = "sauce"
    BASE = "base"
    PROTEIN = "protein"
    TOPPING = "topping"


class SelectionType(str, enum.Enum):
    QUANTITY = "quantity"
    BOOLEAN = "boolean"


class ChangeType(str, enum.Enum):
    CREATED = "created"
    UPDATED = "updated"
    DEACTIVATED = "deactivated"
    ACTIVATED = "activated"
    DELETED = "deleted"


class AddressType(str, enum.Enum):
    HOME = "home"
    WORK = "work"
    OTHER = "other"


class FulfillmentMethod(str, enum.Enum):
    DELIVERY = "delivery"
    PICKUP = "pickup"


class PaymentMethod(str, enum.Enum):
    CREDIT_CARD = "credit_card"
    DEBIT_CARD = "debit_card"
    PIX = "pix"
    CASH = "cash"


class PaymentStatus(str, enum.Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"


class OrderStatus(str, enum.Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PREPARING = "preparing"
    READY = "ready"
    OUT_FOR_DELIVERY = "out_for_delivery"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    REJECTED = "rejected"


class PrincipalType(str, enum.Enum):
    CUSTOMER = "customer"
    MERCHANT = "merchant"
