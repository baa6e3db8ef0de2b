from __future__ import annotations

import datetime as dt
from typing import List, Optional

import pytest

from shipment_dashboard.errors import AggregateUnavailable, SourceUnavailable
from shipment_dashboard.models import CanonicalOrder, PagedResult
from shipment_dashboard.pipelines.filters import OrderFilters
from shipment_dashboard.pipelines.reconciler import OrderReconciler, merge_orders, paginate


def _order(order_id: str, awb: Optional[str], status: str = "Pending", day: int = 1) -> CanonicalOrder:
    return CanonicalOrder(
        id=order_id,
        order_id=order_id,
        awb=awb,
        status=status,
        raw_status=status,
        created_at=dt.datetime(2024, 1, day, tzinfo=dt.timezone.utc),
    )


class FakeSource:
    def __init__(self, name: str, orders: List[CanonicalOrder], fail: bool = False):
        self.name = name
        self.orders = orders
        self.fail = fail
        self.calls = 0

    def fetch_all_orders(self, page_size: int = 100):
        self.calls += 1
        if self.fail:
            raise SourceUnavailable(self.name, "down")
        return list(self.orders)

    def fetch_orders(self, page: int = 1, page_size: int = 20):
        if self.fail:
            raise SourceUnavailable(self.name, "down")
        return PagedResult(orders=tuple(self.orders[:page_size]), total_pages=1, current_page=page)


def test_database_wins_on_awb_collision():
    db = [_order("D1", "X", "Delivered")]
    api = [_order("A1", "X", "In Transit"), _order("A2", "Y"), _order("A3", None)]

    merged = merge_orders(db, api)

    assert [o.order_id for o in merged] == ["D1", "A2", "A3"]
    assert [o.source for o in merged] == ["database", "api", "api"]
    assert merged[0].status == "Delivered"


def test_non_empty_awbs_are_unique_after_merge():
    db = [_order("D1", "X"), _order("D2", None)]
    api = [_order("A1", "Y"), _order("A2", "Y"), _order("A3", " X "), _order("A4", None), _order("A5", "")]

    merged = merge_orders(db, api)

    keys = [o.dedup_key for o in merged if o.dedup_key]
    assert len(keys) == len(set(keys))
    # orders without an AWB are never deduplicated
    assert {"D2", "A4", "A5"} <= {o.order_id for o in merged}
    assert "A2" not in {o.order_id for o in merged}


def test_merge_is_idempotent_when_api_mirrors_database():
    db = [_order("D1", "X"), _order("D2", "Y")]
    mirrored = [_order("A1", "X"), _order("A2", "Y")]

    assert merge_orders(db, mirrored) == merge_orders(db, [])


def test_paginate_after_merge():
    orders = [_order(str(i), f"AWB{i}") for i in range(8)]
    page, current, total_pages = paginate(orders, 3, 3)
    assert [o.order_id for o in page] == ["6", "7"]
    assert (current, total_pages) == (3, 3)

    # out-of-range pages clamp; no page size returns everything
    assert paginate(orders, 99, 3)[1] == 3
    assert paginate(orders, 0, 3)[1] == 1
    assert len(paginate(orders, 1, None)[0]) == 8
    assert paginate([], 1, 10) == ([], 1, 1)


def test_list_orders_merges_filters_and_paginates():
    db = FakeSource("database", [_order(f"D{i}", f"AWB{i}", "Delivered") for i in range(5)])
    api = FakeSource("api", [_order("A0", "AWB0"), _order("A9", "AWB9"), _order("A10", "AWB10"), _order("A11", None)])
    rec = OrderReconciler(db, api)

    listing = rec.list_orders(page=2, page_size=4)
    assert listing.total_count == 8
    assert listing.total_pages == 2
    assert len(listing.orders) == 4
    assert listing.provenance_counts == {"database": 5, "api": 3}
    assert not listing.degraded

    pending = rec.list_orders(OrderFilters(status="Pending"))
    assert [o.order_id for o in pending.orders] == ["A9", "A10", "A11"]
    assert pending.provenance_counts == {"database": 0, "api": 3}


def test_api_failure_returns_full_database_collection():
    db_orders = [_order("D1", "X"), _order("D2", "Y")]
    rec = OrderReconciler(FakeSource("database", db_orders), FakeSource("api", [], fail=True))

    listing = rec.list_orders()

    assert [o.order_id for o in listing.orders] == ["D1", "D2"]
    assert listing.degraded_sources == ("api",)


def test_database_failure_returns_api_collection():
    rec = OrderReconciler(FakeSource("database", [], fail=True), FakeSource("api", [_order("A1", "X")]))
    listing = rec.list_orders()
    assert [o.source for o in listing.orders] == ["api"]
    assert listing.degraded_sources == ("database",)


def test_total_failure_raises_aggregate_unavailable():
    rec = OrderReconciler(FakeSource("database", [], fail=True), FakeSource("api", [], fail=True))

    with pytest.raises(AggregateUnavailable) as e:
        rec.list_orders()

    assert set(e.value.errors) == {"database", "api"}
    assert e.value.user_message.startswith("Orders are temporarily unavailable")


def test_unconfigured_api_is_not_a_failure():
    rec = OrderReconciler(FakeSource("database", [_order("D1", "X")]), None)
    listing = rec.list_orders()
    assert listing.total_count == 1
    assert not listing.degraded


def test_fetch_orders_by_source_tags_provenance():
    rec = OrderReconciler(FakeSource("database", [_order("D1", "X")]), FakeSource("api", [_order("A1", "Y")]))

    result = rec.fetch_orders_by_source("api", 1, 20)

    assert result.source == "api"
    assert [o.source for o in result.orders] == ["api"]
    with pytest.raises(ValueError):
        rec.fetch_orders_by_source("warehouse")
