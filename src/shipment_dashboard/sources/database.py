from __future__ import annotations

import logging
import math
from typing import Any, Dict, List, Mapping, Optional, Tuple

from shipment_dashboard.errors import MalformedRecord, SourceUnavailable, TrackingNotFound
from shipment_dashboard.io.store import OrderStore
from shipment_dashboard.models import (
    SOURCE_DATABASE,
    CanonicalOrder,
    Customer,
    LastUpdate,
    LineItem,
    PagedResult,
    Product,
    ShippingAddress,
    TrackingSnapshot,
)
from shipment_dashboard.models.orders import PLACEHOLDER
from shipment_dashboard.pipelines.tracking import TrackingNormalizer
from shipment_dashboard.rules.status import classify_status
from shipment_dashboard.utils.dates import parse_timestamp
from shipment_dashboard.utils.money import to_decimal


def _text(value: Any) -> str:
    return "" if value is None else str(value).strip()


def _mapping(value: Any) -> Mapping[str, Any]:
    return value if isinstance(value, Mapping) else {}


def _int(value: Any) -> int:
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return 0


def _line_items(row: Mapping[str, Any], product: Product, shipping: Mapping[str, Any]) -> Tuple[LineItem, ...]:
    items = row.get("line_items")
    if isinstance(items, list) and items:
        return tuple(
            LineItem(
                name=_text(li.get("name")),
                quantity=_int(li.get("quantity")),
                total=to_decimal(li.get("total")),
            )
            for li in items
            if isinstance(li, dict)
        )
    # legacy rows carry a single order-level amount
    if shipping.get("amount") not in (None, ""):
        return (LineItem(name=product.name, quantity=product.quantity, total=to_decimal(shipping.get("amount"))),)
    return ()


def record_to_canonical(row: Mapping[str, Any]) -> CanonicalOrder:
    """
    Orders-table row -> CanonicalOrder. Raises MalformedRecord without an
    order_id or when a column holds something no field fallback can read.
    """
    try:
        return _record_to_canonical(row)
    except (AttributeError, TypeError, ValueError) as ex:
        raise MalformedRecord(f"database row {row.get('id')!r} is unreadable: {ex}") from ex


def _record_to_canonical(row: Mapping[str, Any]) -> CanonicalOrder:
    order_id = _text(row.get("order_id"))
    if not order_id:
        raise MalformedRecord(f"database row {row.get('id')!r} has no order_id")

    shipping = _mapping(row.get("shipping_details"))
    product_details = _mapping(row.get("product_details"))
    raw_status = _text(row.get("delivery_status") or row.get("fulfillment_status"))

    product = Product(
        name=_text(product_details.get("product_name")),
        quantity=_int(product_details.get("quantity")),
    )
    return CanonicalOrder(
        id=row.get("id") if row.get("id") is not None else order_id,
        order_id=order_id,
        awb=_text(row.get("awb")) or None,
        status=classify_status(raw_status),
        raw_status=raw_status,
        customer=Customer(
            name=_text(shipping.get("name")) or PLACEHOLDER,
            phone=_text(shipping.get("phone_1")) or PLACEHOLDER,
            email=_text(shipping.get("email")) or PLACEHOLDER,
        ),
        courier=_text(row.get("courier")),
        payment_mode=_text(shipping.get("payment_mode")),
        product=product,
        shipping_address=ShippingAddress(
            address=_text(shipping.get("address")),
            city=_text(shipping.get("city")),
            state=_text(shipping.get("state")),
            pincode=_text(shipping.get("pincode")),
        ),
        line_items=_line_items(row, product, shipping),
        created_at=parse_timestamp(row.get("created_at")),
        last_update=LastUpdate(
            timestamp=_text(row.get("last_timestamp")),
            location=_text(row.get("last_scan_location")),
            remark=_text(row.get("last_remark")),
        ),
    )


def tracking_payload_for(row: Mapping[str, Any], client: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
    """
    Database tracking shape: flat order/tracking/client objects. Only
    presentation-safe client fields (name, logo) are copied.
    """
    shipping = _mapping(row.get("shipping_details"))
    product_details = _mapping(row.get("product_details"))
    client = _mapping(client)
    history = row.get("tracking_history")
    return {
        "order": {
            "order_id": row.get("order_id"),
            "awb": row.get("awb"),
            "customer_name": shipping.get("name"),
            "delivery_address": shipping.get("address"),
            "city": shipping.get("city"),
            "state": shipping.get("state"),
            "pincode": shipping.get("pincode"),
            "amount": shipping.get("amount"),
            "payment_mode": shipping.get("payment_mode"),
            "product_name": product_details.get("product_name"),
            "quantity": product_details.get("quantity"),
            "courier": row.get("courier"),
        },
        "tracking": {
            "status": row.get("delivery_status") or row.get("fulfillment_status"),
            "last_update": row.get("last_timestamp"),
            "last_location": row.get("last_scan_location"),
            "last_remark": row.get("last_remark"),
            "tracking_history": list(history) if isinstance(history, list) else [],
        },
        "client": {
            "name": client.get("client_name"),
            "logo": client.get("logo_url"),
        },
    }


class DatabaseOrderSource:
    """SourceAdapter over the local OrderStore. Authoritative for merges."""

    name = SOURCE_DATABASE

    def __init__(
        self,
        store: OrderStore,
        *,
        client_id: Optional[str] = None,
        normalizer: Optional[TrackingNormalizer] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.store = store
        self.client_id = client_id
        self.normalizer = normalizer or TrackingNormalizer()
        self.logger = logger or logging.getLogger("shipment_dashboard.sources.database")

    def _rows(self) -> List[Dict[str, Any]]:
        try:
            return self.store.all_orders(self.client_id)
        except Exception as ex:
            self.logger.warning("Order store read failed: %s", ex)
            raise SourceUnavailable(self.name, f"store read failed: {ex}", cause=ex) from ex

    def _canonical(self, rows: List[Dict[str, Any]]) -> List[CanonicalOrder]:
        out: List[CanonicalOrder] = []
        for row in rows:
            try:
                out.append(record_to_canonical(row))
            except MalformedRecord as ex:
                self.logger.warning("Dropping database row: %s", ex)
        return out

    def fetch_orders(self, page: int = 1, page_size: int = 20) -> PagedResult:
        orders = self._canonical(self._rows())
        page = max(int(page), 1)
        page_size = max(int(page_size), 1)
        start = (page - 1) * page_size
        return PagedResult(
            orders=tuple(orders[start:start + page_size]),
            total_pages=max(math.ceil(len(orders) / page_size), 1),
            current_page=page,
            total=len(orders),
            source=self.name,
        )

    def fetch_all_orders(self, page_size: int = 100) -> List[CanonicalOrder]:
        # one read; paging the store page by page gains nothing locally
        return self._canonical(self._rows())

    def fetch_tracking(self, awb: str) -> TrackingSnapshot:
        try:
            row = self.store.get_by_awb(awb)
            client = self.store.get_client(row.get("client_id")) if row and row.get("client_id") else None
        except Exception as ex:
            self.logger.warning("Order store lookup failed for AWB %s: %s", awb, ex)
            raise SourceUnavailable(self.name, f"store lookup failed: {ex}", cause=ex) from ex

        if row is None:
            raise TrackingNotFound(awb)
        snapshot = self.normalizer.normalize(tracking_payload_for(row, client))
        if snapshot.is_empty:
            raise TrackingNotFound(awb)
        return snapshot


__all__ = ["DatabaseOrderSource", "record_to_canonical", "tracking_payload_for"]
