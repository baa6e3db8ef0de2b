from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Optional, Tuple

NEWEST_FIRST = "newest-first"
OLDEST_FIRST = "oldest-first"

UNKNOWN_LOCATION = "Unknown location"


@dataclass(frozen=True)
class TrackingEvent:
    timestamp: Optional[str]          # date-only or full instant, as supplied
    location: Optional[str] = None
    status_label: Optional[str] = None
    activity_detail: Optional[str] = None

    @property
    def display_location(self) -> str:
        return self.location or UNKNOWN_LOCATION


@dataclass(frozen=True)
class TrackingSnapshot:
    """
    "Where is this shipment now", built from either an API tracking response or a
    database tracking record. Only presentation-safe fields live here: no client
    credentials, tokens or API keys.
    """
    source: Optional[str] = None      # "api" | "database"
    awb: Optional[str] = None
    order_id: Optional[str] = None
    status: Optional[str] = None      # canonical bucket
    raw_status: Optional[str] = None
    courier: Optional[str] = None
    expected_delivery: Optional[str] = None

    last_update: Optional[str] = None
    last_location: Optional[str] = None
    last_remark: Optional[str] = None

    # denormalized order fields for the tracking page
    customer_name: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    pincode: Optional[str] = None
    product_name: Optional[str] = None
    quantity: Optional[int] = None
    amount: Optional[str] = None
    payment_mode: Optional[str] = None

    client_name: Optional[str] = None
    client_logo: Optional[str] = None

    tracking_history: Tuple[TrackingEvent, ...] = ()
    event_order: Optional[str] = None  # NEWEST_FIRST | OLDEST_FIRST

    @property
    def is_empty(self) -> bool:
        return not self.tracking_history and not (self.awb or self.order_id or self.status)

    @property
    def latest_event(self) -> Optional[TrackingEvent]:
        if not self.tracking_history:
            return None
        if self.event_order == OLDEST_FIRST:
            return self.tracking_history[-1]
        return self.tracking_history[0]

    def to_dict(self) -> dict[str, Any]:
        out = asdict(self)
        out["tracking_history"] = [asdict(e) for e in self.tracking_history]
        return out


EMPTY_SNAPSHOT = TrackingSnapshot()
