# src/shipment_dashboard/pipelines/reconciler.py
from __future__ import annotations

import logging
import math
from collections import Counter
from dataclasses import replace
from typing import Dict, Iterable, List, Optional, Sequence, Set

from shipment_dashboard.errors import AggregateUnavailable, SourceUnavailable
from shipment_dashboard.models import (
    SOURCE_API,
    SOURCE_DATABASE,
    CanonicalOrder,
    OrderListing,
    PagedResult,
)

from .filters import OrderFilters, apply_filters


def _tag(order: CanonicalOrder, source: str) -> CanonicalOrder:
    return order if order.source == source else replace(order, source=source)


def merge_orders(
    database_orders: Sequence[CanonicalOrder],
    api_orders: Sequence[CanonicalOrder],
) -> List[CanonicalOrder]:
    """
    Database-first merge keyed on AWB.

    - every database order is kept, in its original order
    - an API order is appended only when its AWB is empty (no key to dedupe on)
      or no order already in the result carries that AWB
    - provenance ("database"/"api") is attached here
    """
    merged: List[CanonicalOrder] = [_tag(o, SOURCE_DATABASE) for o in database_orders]
    seen: Set[str] = {o.dedup_key for o in merged if o.dedup_key}

    for order in api_orders:
        key = order.dedup_key
        if key is not None:
            if key in seen:
                continue
            seen.add(key)
        merged.append(_tag(order, SOURCE_API))
    return merged


def provenance_counts(orders: Iterable[CanonicalOrder]) -> Dict[str, int]:
    counts = Counter(o.source for o in orders if o.source)
    return {SOURCE_DATABASE: counts.get(SOURCE_DATABASE, 0), SOURCE_API: counts.get(SOURCE_API, 0)}


def paginate(orders: Sequence[CanonicalOrder], page: int, page_size: Optional[int]) -> tuple[List[CanonicalOrder], int, int]:
    """Slice the merged set. Returns (page_orders, page, total_pages)."""
    if not page_size:
        return list(orders), 1, 1
    page_size = max(int(page_size), 1)
    total_pages = max(math.ceil(len(orders) / page_size), 1)
    page = min(max(int(page), 1), total_pages)
    start = (page - 1) * page_size
    return list(orders[start:start + page_size]), page, total_pages


class OrderReconciler:
    """Merges the database and API order collections into one listing."""

    def __init__(
        self,
        database,
        api,
        *,
        fetch_page_size: int = 100,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.database = database
        self.api = api
        self.fetch_page_size = fetch_page_size
        self.logger = logger or logging.getLogger("shipment_dashboard.pipelines.reconciler")

    @property
    def sources(self) -> Dict[str, object]:
        return {SOURCE_DATABASE: self.database, SOURCE_API: self.api}

    def _collect(self, source, errors: Dict[str, SourceUnavailable]) -> List[CanonicalOrder]:
        if source is None:
            return []
        try:
            return list(source.fetch_all_orders(self.fetch_page_size))
        except SourceUnavailable as ex:
            self.logger.warning("Order source %s unavailable, continuing without it: %s", source.name, ex)
            errors[source.name] = ex
            return []

    def list_orders(
        self,
        filters: Optional[OrderFilters] = None,
        page: int = 1,
        page_size: Optional[int] = None,
    ) -> OrderListing:
        """
        Fetch both sources, merge, filter, then paginate the merged set.
        A single failing source degrades silently; both failing raises
        AggregateUnavailable.
        """
        errors: Dict[str, SourceUnavailable] = {}
        configured = [s for s in (self.database, self.api) if s is not None]

        db_orders = self._collect(self.database, errors)
        api_orders = self._collect(self.api, errors)

        if configured and len(errors) == len(configured):
            raise AggregateUnavailable(errors)

        merged = merge_orders(db_orders, api_orders)
        filtered = apply_filters(merged, filters)
        page_orders, page, total_pages = paginate(filtered, page, page_size)

        self.logger.debug(
            "list_orders: database=%d api=%d merged=%d filtered=%d degraded=%s",
            len(db_orders), len(api_orders), len(merged), len(filtered), sorted(errors),
        )
        return OrderListing(
            orders=tuple(page_orders),
            total_count=len(filtered),
            provenance_counts=provenance_counts(filtered),
            page=page,
            page_size=page_size,
            total_pages=total_pages,
            degraded_sources=tuple(sorted(errors)),
        )

    def fetch_orders_by_source(self, source: str, page: int = 1, page_size: int = 20) -> PagedResult:
        """Single-source page, for debugging views. Errors propagate as SourceUnavailable."""
        adapter = self.sources.get(source)
        if adapter is None:
            raise ValueError(f"Unknown or unconfigured order source: {source!r}")
        result = adapter.fetch_orders(page, page_size)
        return replace(result, orders=tuple(_tag(o, source) for o in result.orders), source=source)
