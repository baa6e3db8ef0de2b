# src/shipment_dashboard/api/normalize.py
from __future__ import annotations

import datetime as dt
from typing import Any, Dict, List, Mapping, Tuple

from shipment_dashboard.errors import MalformedRecord
from shipment_dashboard.models import (
    CanonicalOrder,
    Customer,
    LineItem,
    Product,
    ShippingAddress,
)
from shipment_dashboard.models.orders import PLACEHOLDER
from shipment_dashboard.rules.status import PENDING, STATUS_VOCABULARY, classify_status
from shipment_dashboard.utils.dates import parse_timestamp
from shipment_dashboard.utils.money import to_decimal


def _first(payload: Mapping[str, Any], *keys: str) -> str:
    """First non-empty value among `keys`, as a stripped string ('' when none)."""
    for k in keys:
        v = payload.get(k)
        if v is None:
            continue
        s = str(v).strip()
        if s:
            return s
    return ""


def _as_int(value: Any, default: int = 0) -> int:
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return default


def _first_shipment(payload: Mapping[str, Any]) -> Mapping[str, Any]:
    shipments = payload.get("shipments")
    if isinstance(shipments, list) and shipments and isinstance(shipments[0], dict):
        return shipments[0]
    if isinstance(shipments, dict):
        return shipments
    return {}


def _line_items_from_products(payload: Mapping[str, Any]) -> Tuple[LineItem, ...]:
    """
    Shiprocket lists products[] with price/quantity (sometimes a per-line total).
    With no product list, fall back to a single line carrying the order total.
    """
    products = payload.get("products") or payload.get("order_items")
    items: List[LineItem] = []
    if isinstance(products, list):
        for p in products:
            if not isinstance(p, dict):
                continue
            qty = _as_int(p.get("quantity") or p.get("units"), 1)
            if p.get("total") not in (None, ""):
                total = to_decimal(p.get("total"))
            else:
                total = to_decimal(p.get("price") or p.get("selling_price")) * qty
            items.append(LineItem(name=_first(p, "name", "title"), quantity=qty, total=total))
    if not items and payload.get("total") not in (None, ""):
        items.append(LineItem(name="", quantity=1, total=to_decimal(payload.get("total"))))
    return tuple(items)


def shiprocket_order_to_canonical(payload: Mapping[str, Any]) -> CanonicalOrder:
    """
    Translate one Shiprocket order into a CanonicalOrder.

    Field names drift between Shiprocket endpoints (awb_code vs shipments[].awb,
    shipping_customer_name vs customer_name), so each field walks an explicit
    fallback chain. Raises MalformedRecord when there is no order id at all.
    """
    if not isinstance(payload, Mapping):
        raise MalformedRecord("shiprocket order is not an object")

    order_id = _first(payload, "order_id", "channel_order_id", "id")
    if not order_id:
        raise MalformedRecord("shiprocket order without any order id")

    shipment = _first_shipment(payload)
    awb = _first(payload, "awb_code", "awb") or _first(shipment, "awb", "awb_code")
    raw_status = _first(payload, "status")

    customer = Customer(
        name=_first(payload, "shipping_customer_name", "customer_name", "billing_customer_name") or PLACEHOLDER,
        phone=_first(payload, "shipping_phone", "customer_phone", "billing_phone") or PLACEHOLDER,
        email=_first(payload, "shipping_email", "customer_email", "billing_email") or PLACEHOLDER,
    )
    address = ShippingAddress(
        address=_first(payload, "shipping_address", "customer_address"),
        city=_first(payload, "shipping_city", "customer_city"),
        state=_first(payload, "shipping_state", "customer_state"),
        pincode=_first(payload, "shipping_pincode", "customer_pincode"),
    )
    items = _line_items_from_products(payload)
    product = Product(
        name=items[0].name if items and items[0].name else f"Order from {_first(payload, 'channel') or 'Shiprocket'}",
        quantity=sum(i.quantity for i in items) or 1,
    )

    return CanonicalOrder(
        id=payload.get("id") if payload.get("id") not in (None, "") else order_id,
        order_id=order_id,
        awb=awb or None,
        status=classify_status(raw_status),
        raw_status=raw_status,
        customer=customer,
        courier=_first(payload, "courier_name", "courier") or _first(shipment, "courier", "courier_name"),
        payment_mode=_first(payload, "payment_method", "payment_mode"),
        product=product,
        shipping_address=address,
        line_items=items,
        created_at=parse_timestamp(_first(payload, "order_date", "created_at")),
    )


def shiprocket_pagination(body: Mapping[str, Any]) -> Tuple[List[Any], int, int, int]:
    """
    Return (orders, total_pages, current_page, total) from either response layout:
      {"data": [...], "meta": {"pagination": {...}}}
      {"data": {"orders": [...], "total_pages": .., "current_page": ..}}
    """
    data = body.get("data")
    if isinstance(data, dict):
        orders = data.get("orders") or []
        pag: Mapping[str, Any] = data
    else:
        orders = data or []
        meta = body.get("meta")
        pag = (meta.get("pagination") if isinstance(meta, dict) else None) or {}
    if not isinstance(orders, list):
        orders = []
    current = _as_int(pag.get("current_page"), 1)
    total_pages = _as_int(pag.get("total_pages"), 1)
    total = _as_int(pag.get("total"), len(orders))
    return orders, max(total_pages, 1), max(current, 1), total


# --- channel payload -> store record ---------------------------------------

def shopify_order_to_record(payload: Mapping[str, Any], *, client_id: str = "", store_id: str = "") -> Dict[str, Any]:
    """Shape a Shopify order like a row of the local orders table."""
    if payload.get("id") in (None, ""):
        raise MalformedRecord("shopify order without id")

    ship = payload.get("shipping_address") or {}
    line_items = [li for li in (payload.get("line_items") or []) if isinstance(li, dict)]
    first = line_items[0] if line_items else {}
    quantity = sum(_as_int(li.get("quantity")) for li in line_items)

    return {
        "client_id": client_id,
        "shopify_store_id": store_id,
        "order_id": str(payload["id"]),
        "fulfillment_status": PENDING,
        "pickup_date": None,
        "shipping_details": {
            "name": ship.get("name") or "",
            "phone_1": ship.get("phone") or "",
            "email": payload.get("email") or "",
            "address": ", ".join(p for p in (ship.get("address1"), ship.get("address2")) if p),
            "pincode": ship.get("zip") or "",
            "city": ship.get("city") or "",
            "state": ship.get("province") or "",
            "shipping_method": "Express",
            "payment_mode": "Prepaid" if payload.get("financial_status") == "paid" else "COD",
            "amount": float(to_decimal(payload.get("total_price"))),
        },
        "product_details": {
            "category": first.get("product_type") or "General",
            "product_name": first.get("title") or "Product",
            "quantity": quantity,
        },
        "line_items": [
            {
                "name": li.get("title") or "",
                "quantity": _as_int(li.get("quantity")),
                "total": str(to_decimal(li.get("price")) * _as_int(li.get("quantity"))),
            }
            for li in line_items
        ],
        "courier": None,
        "awb": None,
        "delivery_status": None,
        "last_scan_location": None,
        "last_timestamp": None,
        "last_remark": None,
        "created_at": payload.get("created_at") or dt.datetime.now(dt.timezone.utc).isoformat(),
    }


def shiprocket_order_to_record(payload: Mapping[str, Any]) -> Dict[str, Any]:
    """Shape a Shiprocket order like a row of the local orders table."""
    order = shiprocket_order_to_canonical(payload)
    # the orders table only holds vocabulary labels
    status = order.status if order.status in STATUS_VOCABULARY else PENDING
    return {
        "client_id": "SHIPROCKET",
        "shopify_store_id": _first(payload, "channel") or "shiprocket",
        "order_id": order.order_id,
        "awb": order.awb,
        "courier": order.courier or None,
        "fulfillment_status": status,
        "delivery_status": status,
        "pickup_date": _first(payload, "pickup_date") or None,
        "shipping_details": {
            "name": order.customer.name,
            "email": order.customer.email,
            "phone_1": order.customer.phone,
            "address": order.shipping_address.address,
            "city": order.shipping_address.city,
            "state": order.shipping_address.state,
            "country": _first(payload, "shipping_country", "customer_country"),
            "pincode": order.shipping_address.pincode,
            "payment_mode": order.payment_mode,
            "shipping_method": "Standard",
            "amount": float(order.amount),
        },
        "product_details": {
            "product_name": order.product.name,
            "category": "Default",
            "quantity": order.product.quantity,
        },
        "line_items": [
            {"name": li.name, "quantity": li.quantity, "total": str(li.total)}
            for li in order.line_items
        ],
        "created_at": (order.created_at or dt.datetime.now(dt.timezone.utc)).isoformat(),
    }

