from __future__ import annotations

import datetime as dt
from dataclasses import asdict, dataclass, field
from decimal import Decimal
from typing import Any, Optional, Tuple, Union

from shipment_dashboard.utils.money import format_amount, sum_totals

PLACEHOLDER = "N/A"

SOURCE_DATABASE = "database"
SOURCE_API = "api"


@dataclass(frozen=True)
class Customer:
    name: str = PLACEHOLDER
    phone: str = PLACEHOLDER
    email: str = PLACEHOLDER


@dataclass(frozen=True)
class Product:
    name: str = ""
    quantity: int = 0


@dataclass(frozen=True)
class ShippingAddress:
    address: str = ""
    city: str = ""
    state: str = ""
    pincode: str = ""


@dataclass(frozen=True)
class LineItem:
    name: str
    quantity: int
    total: Decimal


@dataclass(frozen=True)
class LastUpdate:
    """Most recent tracking event known for an order; empty strings when unknown."""
    timestamp: str = ""
    location: str = ""
    remark: str = ""


@dataclass(frozen=True)
class CanonicalOrder:
    # identity
    id: Union[str, int]               # unique within its source only
    order_id: str
    awb: Optional[str]                # cross-source dedup key once assigned

    # status
    status: str                       # canonical bucket or raw passthrough
    raw_status: str

    customer: Customer = field(default_factory=Customer)
    courier: str = ""
    payment_mode: str = ""
    product: Product = field(default_factory=Product)
    shipping_address: ShippingAddress = field(default_factory=ShippingAddress)
    line_items: Tuple[LineItem, ...] = ()
    created_at: Optional[dt.datetime] = None
    last_update: LastUpdate = field(default_factory=LastUpdate)

    # attached by the reconciler, never persisted
    source: Optional[str] = None

    @property
    def amount(self) -> Decimal:
        return sum_totals(item.total for item in self.line_items)

    @property
    def formatted_amount(self) -> str:
        return format_amount(self.amount)

    @property
    def display_order_id(self) -> str:
        return f"#{self.order_id[:8]}"

    @property
    def dedup_key(self) -> Optional[str]:
        awb = (self.awb or "").strip()
        return awb or None

    def to_dict(self) -> dict[str, Any]:
        out = asdict(self)
        out["created_at"] = self.created_at.isoformat() if self.created_at else None
        out["line_items"] = [
            {"name": li.name, "quantity": li.quantity, "total": str(li.total)}
            for li in self.line_items
        ]
        out["amount"] = str(self.amount)
        out["display_order_id"] = self.display_order_id
        return out


@dataclass(frozen=True)
class PagedResult:
    """One page from a single source, with that source's own pagination metadata."""
    orders: Tuple[CanonicalOrder, ...]
    total_pages: int
    current_page: int
    total: int = 0
    source: Optional[str] = None


@dataclass(frozen=True)
class OrderListing:
    """Merged + filtered + paginated result handed to the order-listing view."""
    orders: Tuple[CanonicalOrder, ...]
    total_count: int
    provenance_counts: dict[str, int]
    page: int = 1
    page_size: Optional[int] = None
    total_pages: int = 1
    degraded_sources: Tuple[str, ...] = ()

    @property
    def degraded(self) -> bool:
        return bool(self.degraded_sources)

    def to_dict(self) -> dict[str, Any]:
        return {
            "orders": [o.to_dict() for o in self.orders],
            "total_count": self.total_count,
            "provenance_counts": dict(self.provenance_counts),
            "page": self.page,
            "page_size": self.page_size,
            "total_pages": self.total_pages,
            "degraded_sources": list(self.degraded_sources),
        }
