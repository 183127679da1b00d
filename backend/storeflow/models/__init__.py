"""SQLAlchemy models."""

from storeflow.models.customer import Customer, CustomerAddress, StoreCustomer
from storeflow.models.merchant import Merchant, StoreMember
from storeflow.models.order import (
    Order,
    OrderDeliveryAddress,
    OrderItem,
    OrderItemCustomization,
    OrderStatusHistory,
)
from storeflow.models.product import (
    ExtraList,
    Product,
    ProductCategoryPriceLimit,
    ProductCustomization,
    ProductHistory,
    product_extra_lists,
)
from storeflow.models.store import Store, StoreAddress, StoreDeliveryOption, WorkingHours

__all__ = [
    "Customer",
    "CustomerAddress",
    "ExtraList",
    "Merchant",
    "Order",
    "OrderDeliveryAddress",
    "OrderItem",
    "OrderItemCustomization",
    "OrderStatusHistory",
    "Product",
    "ProductCategoryPriceLimit",
    "ProductCustomization",
    "ProductHistory",
    "Store",
    "StoreAddress",
    "StoreCustomer",
    "StoreDeliveryOption",
    "StoreMember",
    "WorkingHours",
    "product_extra_lists",
]
