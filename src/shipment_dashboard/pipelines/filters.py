from __future__ import annotations

import datetime as dt
from dataclasses import dataclass
from typing import Any, Iterable, List, Mapping, Optional

from shipment_dashboard.models import CanonicalOrder
from shipment_dashboard.rules.status import same_status
from shipment_dashboard.utils.dates import parse_timestamp


@dataclass(frozen=True)
class OrderFilters:
    """Listing filters; every field is optional and blank means "no constraint"."""
    search: Optional[str] = None
    status: Optional[str] = None
    date_from: Optional[Any] = None   # date/datetime/ISO string
    date_to: Optional[Any] = None
    courier: Optional[str] = None
    payment_mode: Optional[str] = None

    @classmethod
    def from_params(cls, params: Mapping[str, Any]) -> "OrderFilters":
        """Accept the listing view's query parameters (camelCase or snake_case)."""
        def pick(*names: str) -> Optional[str]:
            for n in names:
                v = params.get(n)
                if v not in (None, ""):
                    return str(v)
            return None

        return cls(
            search=pick("search"),
            status=pick("status"),
            date_from=pick("dateFrom", "date_from"),
            date_to=pick("dateTo", "date_to"),
            courier=pick("courier"),
            payment_mode=pick("paymentMode", "payment_mode"),
        )

    @property
    def is_empty(self) -> bool:
        return not any((self.search, self.status, self.date_from, self.date_to,
                        self.courier, self.payment_mode))

    def cache_key(self) -> tuple:
        return (self.search, self.status, str(self.date_from or ""), str(self.date_to or ""),
                self.courier, self.payment_mode)


def _contains(haystack: Optional[str], needle: str) -> bool:
    return needle in (haystack or "").casefold()


def _matches_search(order: CanonicalOrder, needle: str) -> bool:
    return any(
        _contains(v, needle)
        for v in (
            order.order_id,
            order.awb,
            order.customer.name,
            order.customer.phone,
            order.customer.email,
        )
    )


def _end_of_day(value: Any) -> Optional[dt.datetime]:
    """A bare date as upper bound includes that whole day."""
    ts = parse_timestamp(value)
    if ts is None:
        return None
    is_date_only = isinstance(value, dt.date) and not isinstance(value, dt.datetime)
    if is_date_only or (isinstance(value, str) and len(value.strip()) == 10):
        return ts + dt.timedelta(days=1) - dt.timedelta(microseconds=1)
    return ts


def matches(order: CanonicalOrder, filters: OrderFilters) -> bool:
    if filters.search:
        if not _matches_search(order, filters.search.strip().casefold()):
            return False
    if filters.status and filters.status.casefold() != "all":
        if not same_status(order.status, filters.status):
            return False
    if filters.courier and filters.courier.casefold() != "all":
        if order.courier.casefold() != filters.courier.casefold():
            return False
    if filters.payment_mode and filters.payment_mode.casefold() != "all":
        if order.payment_mode.casefold() != filters.payment_mode.casefold():
            return False

    start = parse_timestamp(filters.date_from) if filters.date_from else None
    end = _end_of_day(filters.date_to) if filters.date_to else None
    if start is not None or end is not None:
        # an order without a creation date cannot satisfy a date range
        if order.created_at is None:
            return False
        if start is not None and order.created_at < start:
            return False
        if end is not None and order.created_at > end:
            return False
    return True


def apply_filters(orders: Iterable[CanonicalOrder], filters: Optional[OrderFilters]) -> List[CanonicalOrder]:
    """Filter an already-merged collection; order is preserved."""
    if filters is None or filters.is_empty:
        return list(orders)
    return [o for o in orders if matches(o, filters)]
