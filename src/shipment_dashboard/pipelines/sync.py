# src/shipment_dashboard/pipelines/sync.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from shipment_dashboard.api.normalize import (
    shiprocket_order_to_record,
    shiprocket_pagination,
    shopify_order_to_record,
)
from shipment_dashboard.errors import MalformedRecord, SourceUnavailable
from shipment_dashboard.models import TrackingSnapshot
from shipment_dashboard.models.tracking import OLDEST_FIRST
from shipment_dashboard.rules.status import STATUS_VOCABULARY
from shipment_dashboard.sources.base import MAX_PAGES

from .cache import ViewCache
from .tracking import TrackingNormalizer

SCOPE_SHOPIFY = "shopify"
SCOPE_SHIPROCKET = "shiprocket"
SYNC_SCOPES = (SCOPE_SHOPIFY, SCOPE_SHIPROCKET)

# cached views that depend on the orders table
DEPENDENT_VIEWS = ("orders", "summary")

_LABELS = {SCOPE_SHOPIFY: "Shopify", SCOPE_SHIPROCKET: "Shiprocket"}


@dataclass(frozen=True)
class SyncResult:
    success: bool
    message: str
    created: int = 0
    updated: int = 0
    tracked: int = 0
    scope: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "message": self.message,
            "created": self.created,
            "updated": self.updated,
            "tracked": self.tracked,
            "scope": self.scope,
        }


def tracking_changes(snapshot: TrackingSnapshot, row: Dict[str, Any]) -> Dict[str, Any]:
    """
    Orders-table columns to rewrite from a tracked snapshot. Blank snapshot
    fields keep the row's current value; delivery_status is only written for
    vocabulary labels.
    """
    candidates: Dict[str, Any] = {
        "last_scan_location": snapshot.last_location,
        "last_timestamp": snapshot.last_update,
        "last_remark": snapshot.last_remark,
    }
    if snapshot.status in STATUS_VOCABULARY:
        candidates["delivery_status"] = snapshot.status
    if snapshot.courier and not row.get("courier"):
        candidates["courier"] = snapshot.courier
    if snapshot.tracking_history:
        events = list(snapshot.tracking_history)
        # the orders table keeps its history oldest first
        if snapshot.event_order != OLDEST_FIRST:
            events.reverse()
        candidates["tracking_history"] = [
            {"date": e.timestamp, "location": e.location, "status": e.status_label, "activity": e.activity_detail}
            for e in events
        ]
    return {k: v for k, v in candidates.items() if v is not None and row.get(k) != v}


class SyncCoordinator:
    """
    Pulls new orders from the sales channel (Shopify) and the shipping
    aggregator (Shiprocket) into the orders store.

    - Shopify: unfulfilled orders are created when their order_id is unknown.
    - Shiprocket: orders are matched by AWB (then order_id); known ones get
      fulfillment_status/awb refreshed, unknown ones are created. Afterwards
      every stored AWB is tracked and its latest scan written back.

    Success marks the dependent cached views stale. Failure leaves the cache
    alone and comes back as SyncResult(success=False) with a message meant
    for a toast; nothing is retried here.
    """

    def __init__(
        self,
        store,
        *,
        shopify_client=None,
        shiprocket_client=None,
        cache: Optional[ViewCache] = None,
        client_id: str = "",
        store_id: str = "",
        page_size: int = 100,
        normalizer: Optional[TrackingNormalizer] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.store = store
        self.shopify_client = shopify_client
        self.shiprocket_client = shiprocket_client
        self.cache = cache
        self.client_id = client_id
        self.store_id = store_id
        self.page_size = page_size
        self.normalizer = normalizer or TrackingNormalizer()
        self.logger = logger or logging.getLogger("shipment_dashboard.pipelines.sync")

    def _clients(self) -> Dict[str, Any]:
        return {SCOPE_SHOPIFY: self.shopify_client, SCOPE_SHIPROCKET: self.shiprocket_client}

    # --- write paths -----------------------------------------------------

    def sync_shopify(self) -> Tuple[int, int]:
        created = 0
        for payload in self.shopify_client.get_unfulfilled_orders():
            try:
                record = shopify_order_to_record(payload, client_id=self.client_id, store_id=self.store_id)
            except MalformedRecord as ex:
                self.logger.warning("Skipping Shopify order: %s", ex)
                continue
            if self.store.get_by_order_id(record["order_id"]) is not None:
                continue
            self.store.create_order(record)
            created += 1
        return created, 0

    def _shiprocket_orders(self) -> List[Any]:
        out: List[Any] = []
        page = 1
        while page <= MAX_PAGES:
            body = self.shiprocket_client.get_orders(page=page, per_page=self.page_size)
            orders, total_pages, _current, _total = shiprocket_pagination(body)
            out.extend(orders)
            if not orders or page >= total_pages:
                break
            page += 1
        return out

    def sync_shiprocket(self) -> Tuple[int, int]:
        created = updated = 0
        for payload in self._shiprocket_orders():
            try:
                record = shiprocket_order_to_record(payload)
            except MalformedRecord as ex:
                self.logger.warning("Skipping Shiprocket order: %s", ex)
                continue

            existing = None
            if record.get("awb"):
                existing = self.store.get_by_awb(record["awb"])
            if existing is None:
                existing = self.store.get_by_order_id(record["order_id"])

            if existing is None:
                self.store.create_order(record)
                created += 1
                continue

            changes = {"fulfillment_status": record["fulfillment_status"]}
            if record.get("awb"):
                changes["awb"] = record["awb"]
            if any(existing.get(k) != v for k, v in changes.items()):
                self.store.update_order(existing["id"], changes)
                updated += 1
        return created, updated

    def refresh_tracking(self) -> int:
        """
        Track every stored AWB through Shiprocket and write the latest scan
        back. Unknown AWBs and per-AWB lookup failures are skipped.
        """
        tracked = 0
        for row in self.store.all_orders(self.client_id or None):
            awb = str(row.get("awb") or "").strip()
            if not awb:
                continue
            try:
                body = self.shiprocket_client.track_awb(awb)
            except SourceUnavailable as ex:
                self.logger.warning("Tracking refresh skipped AWB %s: %s", awb, ex)
                continue
            snapshot = self.normalizer.normalize(body)
            if snapshot.is_empty:
                self.logger.debug("No tracking yet for AWB %s", awb)
                continue
            changes = tracking_changes(snapshot, row)
            if changes:
                self.store.update_order(row["id"], changes)
                tracked += 1
        return tracked

    # --- entry point -----------------------------------------------------

    def trigger_sync(self, scope: Optional[str] = None) -> SyncResult:
        if scope is not None and scope not in SYNC_SCOPES:
            return SyncResult(False, f"Unknown sync scope: {scope}", scope=scope)

        clients = self._clients()
        wanted = [scope] if scope else [s for s in SYNC_SCOPES if clients[s] is not None]
        missing = [s for s in wanted if clients[s] is None]
        if not wanted:
            return SyncResult(False, "No channel is configured for sync", scope=scope)
        if missing:
            return SyncResult(False, f"{_LABELS[missing[0]]} is not configured", scope=scope)

        created = updated = tracked = 0
        runners = {SCOPE_SHOPIFY: self.sync_shopify, SCOPE_SHIPROCKET: self.sync_shiprocket}
        for name in wanted:
            try:
                c, u = runners[name]()
            except SourceUnavailable as ex:
                self.logger.warning("Sync from %s failed: %s", name, ex)
                return SyncResult(
                    False,
                    f"Could not sync from {_LABELS[name]}. Showing the last loaded orders.",
                    created=created,
                    updated=updated,
                    scope=scope,
                )
            created += c
            updated += u
            if name == SCOPE_SHIPROCKET:
                tracked += self.refresh_tracking()

        if self.cache is not None:
            self.cache.mark_stale(*DEPENDENT_VIEWS)
        self.logger.info("Sync complete (scope=%s): created=%d updated=%d tracked=%d",
                         scope or "all", created, updated, tracked)
        return SyncResult(
            True,
            f"Synced {created} new order(s), updated {updated}",
            created=created,
            updated=updated,
            tracked=tracked,
            scope=scope,
        )
