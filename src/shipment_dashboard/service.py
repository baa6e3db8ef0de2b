# src/shipment_dashboard/service.py
from __future__ import annotations

import logging
from typing import Any, Optional

from .io.store import JsonOrderStore, OrderStore
from .models import EnvCfg, OrderListing, PagedResult, TrackingSnapshot
from .pipelines.cache import ViewCache
from .pipelines.filters import OrderFilters
from .pipelines.reconciler import OrderReconciler
from .pipelines.sync import SyncCoordinator, SyncResult
from .pipelines.tracking import TrackingNormalizer, TrackingService
from .reports.summary import OrderSummary, summarize_orders
from .sources.api_source import ApiOrderSource
from .sources.database import DatabaseOrderSource

ORDERS_VIEW = "orders"
SUMMARY_VIEW = "summary"


class ShipmentDashboard:
    """
    Entry point the views (and the CLI) talk to.

    Wires the database/API sources into the reconciler, tracking lookup and
    channel sync, and keeps the last good listing per parameter set in a
    ViewCache. A successful sync marks those cached views stale.
    """

    def __init__(
        self,
        store: OrderStore,
        *,
        shiprocket_client=None,
        shopify_client=None,
        client_id: Optional[str] = None,
        store_id: str = "",
        cache: Optional[ViewCache] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.logger = logger or logging.getLogger("shipment_dashboard.service")
        self.store = store
        self.cache = cache or ViewCache()

        normalizer = TrackingNormalizer()
        self.database = DatabaseOrderSource(store, client_id=client_id, normalizer=normalizer)
        self.api = (
            ApiOrderSource(shiprocket_client, normalizer=normalizer)
            if shiprocket_client is not None
            else None
        )
        self.reconciler = OrderReconciler(self.database, self.api)
        self.tracking = TrackingService([s for s in (self.database, self.api) if s is not None])
        self.sync = SyncCoordinator(
            store,
            shopify_client=shopify_client,
            shiprocket_client=shiprocket_client,
            cache=self.cache,
            client_id=client_id or "",
            store_id=store_id,
            normalizer=normalizer,
        )

    @classmethod
    def from_env(
        cls,
        cfg: EnvCfg,
        *,
        use_api: bool = True,
        db_path: Optional[str] = None,
        logger: Optional[logging.Logger] = None,
    ) -> "ShipmentDashboard":
        """Build the live wiring from configuration; missing credentials just leave a source out."""
        from .api.shiprocket import ShiprocketAuth, ShiprocketClient, ShiprocketConfig
        from .api.shopify import ShopifyClient, ShopifyConfig
        from .api.transport import RequestsTransport

        log = logger or logging.getLogger("shipment_dashboard.service")
        store = JsonOrderStore(db_path or cfg.ORDERS_DB_PATH)

        shiprocket = shopify = None
        if use_api:
            transport = RequestsTransport()
            if cfg.has_shiprocket_creds:
                shiprocket = ShiprocketClient(
                    ShiprocketAuth(cfg.SHIPROCKET_EMAIL, cfg.SHIPROCKET_PASSWORD),
                    ShiprocketConfig(base_url=cfg.SHIPROCKET_BASE_URL),
                    transport=transport,
                )
                log.info("Shiprocket API enabled (base=%s)", cfg.SHIPROCKET_BASE_URL)
            else:
                log.info("Shiprocket credentials not set; database only")
            if cfg.has_shopify_creds:
                shopify = ShopifyClient(
                    ShopifyConfig(cfg.SHOPIFY_STORE, cfg.SHOPIFY_ACCESS_TOKEN, cfg.SHOPIFY_API_VERSION),
                    transport=transport,
                )
        return cls(
            store,
            shiprocket_client=shiprocket,
            shopify_client=shopify,
            store_id=cfg.SHOPIFY_STORE if shopify is not None else "",
            logger=log,
        )

    # --- reads -----------------------------------------------------------

    @staticmethod
    def _params(filters: Optional[OrderFilters], *extra: Any) -> tuple:
        return ((filters.cache_key() if filters is not None else ()),) + extra

    def fetch_orders(
        self,
        filters: Optional[OrderFilters] = None,
        page: int = 1,
        page_size: Optional[int] = None,
        *,
        refresh: bool = False,
    ) -> OrderListing:
        """
        Merged listing. Served from the cache unless `refresh` is set or a sync
        marked it stale. AggregateUnavailable propagates; the cached entry for
        these parameters is left as it was.
        """
        key = self._params(filters, page, page_size)
        if not refresh:
            cached = self.cache.get(ORDERS_VIEW, key)
            if cached is not None:
                return cached
        listing = self.reconciler.list_orders(filters, page=page, page_size=page_size)
        self.cache.put(ORDERS_VIEW, key, listing)
        return listing

    def fetch_orders_by_source(self, source: str, page: int = 1, page_size: int = 20) -> PagedResult:
        return self.reconciler.fetch_orders_by_source(source, page, page_size)

    def fetch_tracking(self, awb: str) -> TrackingSnapshot:
        return self.tracking.fetch_tracking(awb)

    def order_summary(self, filters: Optional[OrderFilters] = None, *, refresh: bool = False) -> OrderSummary:
        key = self._params(filters)
        if not refresh:
            cached = self.cache.get(SUMMARY_VIEW, key)
            if cached is not None:
                return cached
        listing = self.reconciler.list_orders(filters)
        summary = summarize_orders(listing.orders)
        self.cache.put(SUMMARY_VIEW, key, summary)
        return summary

    # --- writes ----------------------------------------------------------

    def trigger_sync(self, scope: Optional[str] = None) -> SyncResult:
        return self.sync.trigger_sync(scope)


__all__ = ["ShipmentDashboard", "ORDERS_VIEW", "SUMMARY_VIEW"]
