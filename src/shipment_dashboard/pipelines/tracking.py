# src/shipment_dashboard/pipelines/tracking.py
from __future__ import annotations

import logging
from dataclasses import dataclass, fields, replace
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

from shipment_dashboard.errors import AggregateUnavailable, SourceUnavailable, TrackingNotFound
from shipment_dashboard.models import SOURCE_API, SOURCE_DATABASE, TrackingEvent, TrackingSnapshot
from shipment_dashboard.models.tracking import EMPTY_SNAPSHOT, NEWEST_FIRST, OLDEST_FIRST
from shipment_dashboard.rules.status import classify_status
from shipment_dashboard.utils.money import format_amount


# --- tagged payload variants -------------------------------------------------

@dataclass(frozen=True)
class DatabaseTrackingPayload:
    order: Mapping[str, Any]
    tracking: Mapping[str, Any]
    client: Mapping[str, Any]


@dataclass(frozen=True)
class ApiTrackingPayload:
    order: Mapping[str, Any]
    tracking_data: Mapping[str, Any]


@dataclass(frozen=True)
class UnrecognizedPayload:
    raw: Any


TrackingPayload = Union[DatabaseTrackingPayload, ApiTrackingPayload, UnrecognizedPayload]


def _mapping(value: Any) -> Mapping[str, Any]:
    return value if isinstance(value, Mapping) else {}


def _unwrap(raw: Mapping[str, Any]) -> Mapping[str, Any]:
    """Shiprocket sometimes keys the body by AWB: {"<awb>": {"tracking_data": {...}}}."""
    if len(raw) == 1:
        (only,) = raw.values()
        if isinstance(only, Mapping) and isinstance(only.get("tracking_data"), Mapping):
            return only
    return raw


def parse_tracking_payload(raw: Any) -> TrackingPayload:
    """
    Classify a raw tracking body. Database shape is probed first (a `tracking`
    object), then API shape (a `tracking_data` object); anything else is
    UnrecognizedPayload.
    """
    if not isinstance(raw, Mapping):
        return UnrecognizedPayload(raw)
    body = _unwrap(raw)
    if isinstance(body.get("tracking"), Mapping):
        return DatabaseTrackingPayload(
            order=_mapping(body.get("order")),
            tracking=body["tracking"],
            client=_mapping(body.get("client")),
        )
    if isinstance(body.get("tracking_data"), Mapping):
        return ApiTrackingPayload(
            order=_mapping(body.get("order")),
            tracking_data=body["tracking_data"],
        )
    return UnrecognizedPayload(raw)


# --- field helpers -----------------------------------------------------------

def _opt(value: Any) -> Optional[str]:
    if value is None:
        return None
    s = str(value).strip()
    return s or None


def _first(*values: Any) -> Optional[str]:
    """First non-empty value of an explicit fallback chain."""
    for v in values:
        s = _opt(v)
        if s is not None:
            return s
    return None


def _opt_int(value: Any) -> Optional[int]:
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return None


def _opt_amount(value: Any) -> Optional[str]:
    if value is None or value == "":
        return None
    return format_amount(value)


def _status(raw: Optional[str]) -> Optional[str]:
    return classify_status(raw) if raw else None


# --- normalizer --------------------------------------------------------------

class TrackingNormalizer:
    """Turns either tracking payload shape into one TrackingSnapshot."""

    def __init__(self, logger: Optional[logging.Logger] = None) -> None:
        self.logger = logger or logging.getLogger("shipment_dashboard.pipelines.tracking")

    def normalize(self, raw: Any) -> TrackingSnapshot:
        """Unrecognized payloads yield an empty snapshot, never an exception."""
        payload = parse_tracking_payload(raw)
        if isinstance(payload, DatabaseTrackingPayload):
            return self._from_database(payload)
        if isinstance(payload, ApiTrackingPayload):
            return self._from_api(payload)
        self.logger.debug("Unrecognized tracking payload (type=%s)", type(raw).__name__)
        return EMPTY_SNAPSHOT

    def _from_api(self, p: ApiTrackingPayload) -> TrackingSnapshot:
        td = p.tracking_data
        order = p.order
        tracks = td.get("shipment_track")
        track = _mapping(tracks[0]) if isinstance(tracks, list) and tracks else {}

        events = tuple(
            TrackingEvent(
                timestamp=_opt(a.get("date")),
                location=_opt(a.get("location")),
                status_label=_first(a.get("status"), a.get("sr-status-label")),
                activity_detail=_opt(a.get("activity")),
            )
            for a in (td.get("shipment_track_activities") or [])
            if isinstance(a, Mapping)
        )
        raw_status = _first(track.get("current_status"), order.get("status"))
        newest = events[0] if events else None

        return TrackingSnapshot(
            source=SOURCE_API,
            awb=_first(track.get("awb_code"), order.get("awb"), order.get("awb_code")),
            order_id=_first(order.get("order_id"), order.get("channel_order_id"), track.get("order_id")),
            status=_status(raw_status),
            raw_status=raw_status,
            courier=_first(track.get("courier_name"), order.get("courier_name"), order.get("courier")),
            expected_delivery=_first(track.get("edd"), td.get("etd"), order.get("etd")),
            last_update=newest.timestamp if newest else None,
            last_location=newest.location if newest else None,
            last_remark=newest.activity_detail if newest else None,
            customer_name=_first(order.get("customer_name"), order.get("shipping_customer_name"),
                                 track.get("consignee_name")),
            address=_first(order.get("delivery_address"), order.get("shipping_address")),
            city=_first(order.get("city"), order.get("shipping_city"), track.get("destination")),
            state=_first(order.get("state"), order.get("shipping_state")),
            pincode=_first(order.get("pincode"), order.get("shipping_pincode")),
            product_name=_opt(order.get("product_name")),
            quantity=_opt_int(order.get("quantity")),
            amount=_opt_amount(order.get("amount") if order.get("amount") is not None else order.get("total")),
            payment_mode=_first(order.get("payment_mode"), order.get("payment_method")),
            tracking_history=events,
            event_order=NEWEST_FIRST if events else None,
        )

    def _from_database(self, p: DatabaseTrackingPayload) -> TrackingSnapshot:
        order, tracking, client = p.order, p.tracking, p.client

        events: List[TrackingEvent] = []
        for e in tracking.get("tracking_history") or []:
            if not isinstance(e, Mapping):
                continue
            events.append(TrackingEvent(
                timestamp=_first(e.get("date"), e.get("timestamp")),
                location=_opt(e.get("location")),
                status_label=_first(e.get("status_detail"), e.get("status")),
                activity_detail=_opt(e.get("activity")),
            ))
        raw_status = _opt(tracking.get("status"))

        return TrackingSnapshot(
            source=SOURCE_DATABASE,
            awb=_opt(order.get("awb")),
            order_id=_opt(order.get("order_id")),
            status=_status(raw_status),
            raw_status=raw_status,
            courier=_opt(order.get("courier")),
            expected_delivery=_opt(tracking.get("etd")),
            last_update=_opt(tracking.get("last_update")),
            last_location=_opt(tracking.get("last_location")),
            last_remark=_opt(tracking.get("last_remark")),
            customer_name=_opt(order.get("customer_name")),
            address=_opt(order.get("delivery_address")),
            city=_opt(order.get("city")),
            state=_opt(order.get("state")),
            pincode=_opt(order.get("pincode")),
            product_name=_opt(order.get("product_name")),
            quantity=_opt_int(order.get("quantity")),
            amount=_opt_amount(order.get("amount")),
            payment_mode=_opt(order.get("payment_mode")),
            client_name=_opt(client.get("name")),
            client_logo=_opt(client.get("logo")),
            tracking_history=tuple(events),
            event_order=OLDEST_FIRST if events else None,
        )


# --- lookup across sources ---------------------------------------------------

_TIMELINE_FIELDS = {"source", "tracking_history", "event_order"}


def fill_missing(primary: TrackingSnapshot, secondary: TrackingSnapshot) -> TrackingSnapshot:
    """Copy denormalized fields `primary` lacks from `secondary`; timeline stays primary's."""
    changes: Dict[str, Any] = {}
    for f in fields(TrackingSnapshot):
        if f.name in _TIMELINE_FIELDS:
            continue
        if getattr(primary, f.name) is None and getattr(secondary, f.name) is not None:
            changes[f.name] = getattr(secondary, f.name)
    return replace(primary, **changes) if changes else primary


class TrackingService:
    """
    fetch_tracking(awb) for both the authenticated and the public tracking page.

    The database is asked first. When its record has no event history, the
    live API timeline is used instead, topped up with the database's order
    details. One failing source is tolerated; both failing raises
    AggregateUnavailable. Unknown AWBs and unrecognized payloads raise the same
    TrackingNotFound.
    """

    unavailable_message = "Tracking is temporarily unavailable. Please try again shortly."

    def __init__(self, sources: Sequence[Any], logger: Optional[logging.Logger] = None) -> None:
        self.sources = list(sources)
        self.logger = logger or logging.getLogger("shipment_dashboard.pipelines.tracking")

    def fetch_tracking(self, awb: str) -> TrackingSnapshot:
        key = (awb or "").strip()
        if not key:
            raise TrackingNotFound(awb)

        errors: Dict[str, SourceUnavailable] = {}
        partial: Optional[TrackingSnapshot] = None

        for source in self.sources:
            try:
                snap = source.fetch_tracking(key)
            except TrackingNotFound:
                continue
            except SourceUnavailable as ex:
                self.logger.warning("Tracking source %s unavailable for %s: %s", source.name, key, ex)
                errors[source.name] = ex
                continue
            if snap.is_empty:
                continue
            if snap.awb is None:
                snap = replace(snap, awb=key)
            if snap.tracking_history:
                return fill_missing(snap, partial) if partial is not None else snap
            if partial is None:
                partial = snap

        if partial is not None:
            return partial
        if self.sources and len(errors) == len(self.sources):
            raise AggregateUnavailable(errors, user_message=self.unavailable_message)
        raise TrackingNotFound(key)
