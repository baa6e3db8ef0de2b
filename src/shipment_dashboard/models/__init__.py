from .env_cfg import EnvCfg
from .orders import (
    CanonicalOrder,
    Customer,
    LastUpdate,
    LineItem,
    OrderListing,
    PagedResult,
    Product,
    ShippingAddress,
    SOURCE_API,
    SOURCE_DATABASE,
)
from .tracking import TrackingEvent, TrackingSnapshot

__all__ = [
    "EnvCfg",
    "CanonicalOrder",
    "Customer",
    "LastUpdate",
    "LineItem",
    "OrderListing",
    "PagedResult",
    "Product",
    "ShippingAddress",
    "SOURCE_API",
    "SOURCE_DATABASE",
    "TrackingEvent",
    "TrackingSnapshot",
]
