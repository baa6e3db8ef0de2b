from __future__ import annotations

import pytest

from shipment_dashboard.errors import AggregateUnavailable, SourceUnavailable, TrackingNotFound
from shipment_dashboard.models.tracking import EMPTY_SNAPSHOT, NEWEST_FIRST, OLDEST_FIRST
from shipment_dashboard.pipelines.tracking import (
    ApiTrackingPayload,
    DatabaseTrackingPayload,
    TrackingNormalizer,
    TrackingService,
    UnrecognizedPayload,
    parse_tracking_payload,
)
from shipment_dashboard.sources.database import tracking_payload_for


def _api_body():
    return {
        "tracking_data": {
            "track_status": 1,
            "etd": "2024-03-06",
            "shipment_track": [{
                "awb_code": "AWB200",
                "courier_name": "Delhivery",
                "current_status": "Shipment Out for Delivery",
                "edd": "2024-03-05",
                "consignee_name": "Ravi",
                "destination": "Pune",
            }],
            "shipment_track_activities": [
                {"date": "2024-03-04 10:00:00", "status": "OFD", "activity": "Out for delivery", "location": "Pune Hub"},
                {"date": "2024-03-03 08:00:00", "sr-status-label": "IN TRANSIT", "activity": "In transit", "location": ""},
            ],
        }
    }


def _db_row(history=None):
    return {
        "id": 1,
        "order_id": "SO-1",
        "client_id": "C1",
        "awb": "AWB200",
        "courier": "Delhivery",
        "delivery_status": "Out For Delivery",
        "last_timestamp": "2024-03-04 10:00:00",
        "last_scan_location": "Pune Hub",
        "shipping_details": {"name": "Ravi", "city": "Pune", "amount": 499, "payment_mode": "COD"},
        "product_details": {"product_name": "Mug", "quantity": 2},
        "tracking_history": history if history is not None else [
            {"date": "2024-03-03 08:00:00", "status_detail": "IN TRANSIT", "location": "Mumbai"},
            {"date": "2024-03-04 10:00:00", "status": "OFD", "location": "Pune Hub", "activity": "Out for delivery"},
        ],
    }


_CLIENT = {"client_id": "C1", "client_name": "Acme", "logo_url": "https://cdn/acme.png", "api_key": "sk_live_secret"}


def test_parse_is_exhaustive():
    assert isinstance(parse_tracking_payload(_api_body()), ApiTrackingPayload)
    assert isinstance(parse_tracking_payload(tracking_payload_for(_db_row())), DatabaseTrackingPayload)
    assert isinstance(parse_tracking_payload({"foo": 1}), UnrecognizedPayload)
    assert isinstance(parse_tracking_payload("text"), UnrecognizedPayload)


def test_api_payload_normalizes():
    snap = TrackingNormalizer().normalize(_api_body())

    assert snap.source == "api"
    assert snap.awb == "AWB200"
    assert snap.status == "In Transit"
    assert snap.raw_status == "Shipment Out for Delivery"
    assert snap.courier == "Delhivery"
    assert snap.expected_delivery == "2024-03-05"
    assert snap.customer_name == "Ravi"
    assert snap.city == "Pune"
    assert snap.event_order == NEWEST_FIRST
    assert len(snap.tracking_history) == 2
    assert snap.last_location == "Pune Hub"
    assert snap.latest_event.location == "Pune Hub"
    assert snap.tracking_history[1].status_label == "IN TRANSIT"
    assert snap.tracking_history[1].display_location == "Unknown location"


def test_awb_keyed_wrapper_is_unwrapped():
    snap = TrackingNormalizer().normalize({"AWB200": _api_body()})
    assert snap.awb == "AWB200"
    assert len(snap.tracking_history) == 2


def test_database_payload_normalizes_without_secrets():
    snap = TrackingNormalizer().normalize(tracking_payload_for(_db_row(), _CLIENT))

    assert snap.source == "database"
    assert snap.order_id == "SO-1"
    assert snap.status == "In Transit"
    assert snap.amount == "₹499.00"
    assert snap.quantity == 2
    assert snap.client_name == "Acme"
    assert snap.client_logo == "https://cdn/acme.png"
    assert snap.event_order == OLDEST_FIRST
    assert snap.latest_event.location == "Pune Hub"
    assert "sk_live_secret" not in str(snap.to_dict())


def test_round_trip_agrees_on_status_awb_and_events():
    api = TrackingNormalizer().normalize(_api_body())
    db = TrackingNormalizer().normalize(tracking_payload_for(_db_row()))

    assert api.status == db.status
    assert api.awb == db.awb
    assert len(api.tracking_history) == len(db.tracking_history)


@pytest.mark.parametrize("raw", [{"foo": 1}, "text", None, [], {"tracking_data": "nope"}])
def test_unrecognized_payload_is_empty_not_error(raw):
    snap = TrackingNormalizer().normalize(raw)
    assert snap is EMPTY_SNAPSHOT
    assert snap.is_empty


class FakeTrackingSource:
    def __init__(self, name, snapshot=None, fail=False):
        self.name = name
        self.snapshot = snapshot
        self.fail = fail

    def fetch_tracking(self, awb):
        if self.fail:
            raise SourceUnavailable(self.name, "down")
        if self.snapshot is None:
            raise TrackingNotFound(awb)
        return self.snapshot


def _db_snapshot(history=None):
    return TrackingNormalizer().normalize(tracking_payload_for(_db_row(history), _CLIENT))


def _api_snapshot():
    return TrackingNormalizer().normalize(_api_body())


def test_database_timeline_preferred():
    svc = TrackingService([FakeTrackingSource("database", _db_snapshot()), FakeTrackingSource("api", _api_snapshot())])
    assert svc.fetch_tracking("AWB200").source == "database"


def test_api_timeline_used_when_database_has_no_history():
    svc = TrackingService([FakeTrackingSource("database", _db_snapshot(history=[])), FakeTrackingSource("api", _api_snapshot())])

    snap = svc.fetch_tracking("AWB200")

    assert snap.source == "api"
    assert snap.event_order == NEWEST_FIRST
    assert len(snap.tracking_history) == 2
    # order details topped up from the database record
    assert snap.client_name == "Acme"
    assert snap.amount == "₹499.00"


def test_database_record_without_history_still_returned_when_api_down():
    svc = TrackingService([FakeTrackingSource("database", _db_snapshot(history=[])), FakeTrackingSource("api", fail=True)])
    snap = svc.fetch_tracking("AWB200")
    assert snap.source == "database"
    assert snap.tracking_history == ()


def test_one_failing_source_is_tolerated():
    svc = TrackingService([FakeTrackingSource("database", fail=True), FakeTrackingSource("api", _api_snapshot())])
    assert svc.fetch_tracking("AWB200").source == "api"


def test_unknown_awb_is_not_found():
    svc = TrackingService([FakeTrackingSource("database"), FakeTrackingSource("api")])
    with pytest.raises(TrackingNotFound) as e:
        svc.fetch_tracking("NOPE")
    assert e.value.user_message == "Shipment not found"
    with pytest.raises(TrackingNotFound):
        svc.fetch_tracking("   ")


def test_all_sources_down_is_aggregate_unavailable():
    svc = TrackingService([FakeTrackingSource("database", fail=True), FakeTrackingSource("api", fail=True)])
    with pytest.raises(AggregateUnavailable) as e:
        svc.fetch_tracking("AWB200")
    assert e.value.user_message.startswith("Tracking is temporarily unavailable")
