from __future__ import annotations

import logging
from typing import Any, List, Optional

from shipment_dashboard.api.normalize import shiprocket_order_to_canonical, shiprocket_pagination
from shipment_dashboard.api.shiprocket import ShiprocketClient
from shipment_dashboard.errors import MalformedRecord, SourceUnavailable, TrackingNotFound
from shipment_dashboard.models import SOURCE_API, CanonicalOrder, PagedResult, TrackingSnapshot
from shipment_dashboard.pipelines.tracking import TrackingNormalizer

from .base import walk_pages


class ApiOrderSource:
    """SourceAdapter over the live Shiprocket API.

    Orders: Shiprocket's paged /orders list, translated record by record
    (records without any order id are dropped). Tracking: /courier/track/awb,
    run through the TrackingNormalizer.
    """

    name = SOURCE_API

    def __init__(
        self,
        client: ShiprocketClient,
        *,
        normalizer: Optional[TrackingNormalizer] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.client = client
        self.normalizer = normalizer or TrackingNormalizer()
        self.logger = logger or logging.getLogger("shipment_dashboard.sources.api")

    def _canonical(self, raw_orders: List[Any]) -> List[CanonicalOrder]:
        out: List[CanonicalOrder] = []
        for raw in raw_orders:
            try:
                out.append(shiprocket_order_to_canonical(raw))
            except MalformedRecord as ex:
                self.logger.warning("Dropping Shiprocket order: %s", ex)
        return out

    def fetch_orders(self, page: int = 1, page_size: int = 20) -> PagedResult:
        body = self.client.get_orders(page=page, per_page=page_size)
        try:
            raw_orders, total_pages, current, total = shiprocket_pagination(body)
        except (AttributeError, TypeError) as ex:
            raise SourceUnavailable(self.name, "malformed orders page", cause=ex) from ex
        return PagedResult(
            orders=tuple(self._canonical(raw_orders)),
            total_pages=total_pages,
            current_page=current,
            total=total,
            source=self.name,
        )

    def fetch_all_orders(self, page_size: int = 100) -> List[CanonicalOrder]:
        # the API's page cursor is unrelated to the database's, so take everything
        return walk_pages(self, page_size)

    def fetch_tracking(self, awb: str) -> TrackingSnapshot:
        body = self.client.track_awb(awb)
        snapshot = self.normalizer.normalize(body)
        if snapshot.is_empty:
            raise TrackingNotFound(awb)
        return snapshot
