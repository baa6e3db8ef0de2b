from __future__ import annotations

from shipment_dashboard.errors import SourceUnavailable
from shipment_dashboard.io.store import JsonOrderStore
from shipment_dashboard.pipelines.cache import ViewCache
from shipment_dashboard.pipelines.sync import SyncCoordinator
from shipment_dashboard.sources.database import DatabaseOrderSource


class FakeShopify:
    def __init__(self, orders, fail=False):
        self.orders = orders
        self.fail = fail

    def get_unfulfilled_orders(self, limit=250):
        if self.fail:
            raise SourceUnavailable("shopify", "HTTP 401")
        return list(self.orders)


class FakeShiprocket:
    def __init__(self, pages, fail=False, tracking=None, reported_page=None):
        self.pages = pages
        self.fail = fail
        self.tracking = tracking or {}
        self.reported_page = reported_page
        self.requested = []
        self.tracked = []

    def get_orders(self, page=1, per_page=20):
        self.requested.append(page)
        if self.fail:
            raise SourceUnavailable("shiprocket", "network error")
        return {
            "data": self.pages[page - 1],
            "meta": {"pagination": {"total_pages": len(self.pages), "current_page": self.reported_page or page}},
        }

    def track_awb(self, awb):
        self.tracked.append(awb)
        body = self.tracking.get(awb, {})
        if isinstance(body, Exception):
            raise body
        return body


def _shopify_order(oid):
    return {
        "id": oid,
        "financial_status": "paid",
        "total_price": "10.00",
        "shipping_address": {"name": "Asha", "address1": "L1", "zip": "1", "city": "X", "province": "Y"},
        "line_items": [{"title": "Tee", "quantity": 1, "price": "10.00"}],
    }


def _sr_order(oid, awb, status):
    return {"order_id": oid, "awb_code": awb, "status": status, "customer_name": "Ravi", "total": "99"}


def _store(tmp_path):
    return JsonOrderStore(tmp_path / "orders.json")


def test_shopify_sync_creates_missing_orders_once(tmp_path):
    store = _store(tmp_path)
    sync = SyncCoordinator(store, shopify_client=FakeShopify([_shopify_order(1), _shopify_order(2)]))

    first = sync.trigger_sync("shopify")
    second = sync.trigger_sync("shopify")

    assert (first.success, first.created) == (True, 2)
    assert (second.success, second.created) == (True, 0)
    assert {o["order_id"] for o in store.all_orders()} == {"1", "2"}


def test_shiprocket_sync_creates_and_updates_across_pages(tmp_path):
    store = _store(tmp_path)
    store.create_order({"order_id": "SR-1", "awb": "AWB1", "fulfillment_status": "Pending"})
    store.create_order({"order_id": "SR-3", "awb": None, "fulfillment_status": "Pending"})
    client = FakeShiprocket([
        [_sr_order("SR-1", "AWB1", "Delivered"), _sr_order("SR-2", "AWB2", "In Transit")],
        [_sr_order("SR-3", "AWB3", "Shipped"), {"status": "no id"}],
    ])
    sync = SyncCoordinator(store, shiprocket_client=client)

    result = sync.trigger_sync("shiprocket")

    assert result.success
    assert (result.created, result.updated) == (1, 2)
    assert client.requested == [1, 2]
    assert store.get_by_awb("AWB1")["fulfillment_status"] == "Delivered"
    assert store.get_by_awb("AWB2")["order_id"] == "SR-2"
    assert store.get_by_order_id("SR-3")["awb"] == "AWB3"


def test_unchanged_shiprocket_orders_are_not_rewritten(tmp_path):
    store = _store(tmp_path)
    client = FakeShiprocket([[_sr_order("SR-1", "AWB1", "Delivered")]])
    sync = SyncCoordinator(store, shiprocket_client=client)

    sync.trigger_sync("shiprocket")
    again = sync.trigger_sync("shiprocket")

    assert (again.created, again.updated) == (0, 0)


def test_success_marks_dependent_views_stale(tmp_path):
    cache = ViewCache()
    cache.put("orders", ("p1",), "listing")
    cache.put("summary", (), "summary")
    cache.put("tracking", ("AWB1",), "snap")
    sync = SyncCoordinator(_store(tmp_path), shopify_client=FakeShopify([]), cache=cache)

    assert sync.trigger_sync().success

    assert cache.get("orders", ("p1",)) is None
    assert cache.get("summary", ()) is None
    assert cache.get("tracking", ("AWB1",)) == "snap"


def test_failure_keeps_cache_and_reports_message(tmp_path):
    cache = ViewCache()
    cache.put("orders", ("p1",), "listing")
    sync = SyncCoordinator(
        _store(tmp_path),
        shopify_client=FakeShopify([_shopify_order(1)]),
        shiprocket_client=FakeShiprocket([], fail=True),
        cache=cache,
    )

    result = sync.trigger_sync()

    assert result.success is False
    assert "Shiprocket" in result.message
    assert result.created == 1       # shopify half already written
    assert not cache.is_stale("orders")
    assert cache.get("orders", ("p1",)) == "listing"


def test_failure_is_not_retried(tmp_path):
    client = FakeShiprocket([], fail=True)
    SyncCoordinator(_store(tmp_path), shiprocket_client=client).trigger_sync("shiprocket")
    assert client.requested == [1]


def test_unconfigured_and_unknown_scopes(tmp_path):
    sync = SyncCoordinator(_store(tmp_path), shiprocket_client=FakeShiprocket([[]]))

    assert sync.trigger_sync("shopify").message == "Shopify is not configured"
    assert sync.trigger_sync("amazon").success is False
    assert SyncCoordinator(_store(tmp_path)).trigger_sync().message == "No channel is configured for sync"


def test_view_cache_roundtrip():
    cache = ViewCache()
    cache.put("orders", (1,), "a")
    cache.put("orders", (2,), "b")
    assert cache.contains("orders", (1,))
    assert len(cache) == 2

    cache.mark_stale("orders")
    assert cache.is_stale("orders")
    assert cache.get("orders", (2,)) is None
    assert len(cache) == 0
    assert not cache.is_stale("orders")


def _tracking_body(awb):
    return {"tracking_data": {
        "shipment_track": [{"awb_code": awb, "current_status": "Out for Delivery", "courier_name": "Delhivery"}],
        "shipment_track_activities": [
            {"date": "2024-03-02 10:00:00", "status": "OFD", "location": "Pune Hub", "activity": "Out for delivery"},
            {"date": "2024-03-01 09:00:00", "status": "PKD", "location": "Mumbai", "activity": "Picked up"},
        ],
    }}


def test_shiprocket_sync_writes_tracking_back_to_orders(tmp_path):
    store = _store(tmp_path)
    store.create_order({"order_id": "SR-1", "awb": "AWB1", "fulfillment_status": "Pending"})
    store.create_order({"order_id": "SR-2", "awb": "AWB404", "fulfillment_status": "Pending"})
    store.create_order({"order_id": "SR-3", "awb": "AWB9", "fulfillment_status": "Pending"})
    store.create_order({"order_id": "SR-4", "awb": None, "fulfillment_status": "Pending"})
    client = FakeShiprocket([[]], tracking={
        "AWB1": _tracking_body("AWB1"),
        "AWB404": SourceUnavailable("shiprocket", "HTTP 404"),
    })
    sync = SyncCoordinator(store, shiprocket_client=client)

    result = sync.trigger_sync("shiprocket")

    assert result.success
    assert result.tracked == 1
    assert sorted(client.tracked) == ["AWB1", "AWB404", "AWB9"]

    row = store.get_by_awb("AWB1")
    assert row["delivery_status"] == "In Transit"
    assert row["last_scan_location"] == "Pune Hub"
    assert row["last_timestamp"] == "2024-03-02 10:00:00"
    assert row["last_remark"] == "Out for delivery"
    assert row["courier"] == "Delhivery"
    assert [e["location"] for e in row["tracking_history"]] == ["Mumbai", "Pune Hub"]

    assert "last_scan_location" not in store.get_by_awb("AWB404")
    assert "delivery_status" not in store.get_by_awb("AWB9")

    assert sync.trigger_sync("shiprocket").tracked == 0


def test_tracked_scan_shows_up_as_last_update(tmp_path):
    store = _store(tmp_path)
    store.create_order({"order_id": "SR-1", "awb": "AWB1", "fulfillment_status": "Pending"})
    client = FakeShiprocket([[]], tracking={"AWB1": _tracking_body("AWB1")})
    SyncCoordinator(store, shiprocket_client=client).trigger_sync("shiprocket")

    (order,) = DatabaseOrderSource(store).fetch_all_orders()

    assert order.status == "In Transit"
    assert order.last_update.location == "Pune Hub"
    assert order.last_update.timestamp == "2024-03-02 10:00:00"


def test_shopify_rows_stay_when_shiprocket_step_fails(tmp_path):
    store = _store(tmp_path)
    cache = ViewCache()
    cache.put("summary", (), "summary")
    sync = SyncCoordinator(
        store,
        shopify_client=FakeShopify([_shopify_order(7)]),
        shiprocket_client=FakeShiprocket([], fail=True),
        cache=cache,
        store_id="demo-shop",
    )

    result = sync.trigger_sync()

    assert result.success is False
    row = store.get_by_order_id("7")
    assert row is not None
    assert row["shopify_store_id"] == "demo-shop"
    assert cache.get("summary", ()) == "summary"


def test_page_walk_keeps_its_own_counter(tmp_path):
    client = FakeShiprocket(
        [[_sr_order("SR-1", "AWB1", "Pending")], [_sr_order("SR-2", "AWB2", "Pending")]],
        reported_page=1,
    )

    result = SyncCoordinator(_store(tmp_path), shiprocket_client=client).trigger_sync("shiprocket")

    assert result.created == 2
    assert client.requested == [1, 2]


def test_non_finite_shiprocket_total_is_stored_as_zero(tmp_path):
    store = _store(tmp_path)
    order = dict(_sr_order("SR-1", "AWB1", "Pending"), total="Infinity")

    result = SyncCoordinator(store, shiprocket_client=FakeShiprocket([[order]])).trigger_sync("shiprocket")

    assert result.success
    assert store.get_by_awb("AWB1")["shipping_details"]["amount"] == 0.0


def test_view_cache_put_does_not_revalidate_stale_siblings():
    cache = ViewCache()
    cache.put("orders", ("all",), "old-all")
    cache.put("orders", ("search",), "old-search")

    cache.mark_stale("orders")
    cache.put("orders", ("search",), "new-search")

    assert cache.get("orders", ("all",)) is None
    assert cache.get("orders", ("search",)) == "new-search"
