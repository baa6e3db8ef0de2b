from __future__ import annotations

from typing import List, Protocol

from shipment_dashboard.models import CanonicalOrder, PagedResult, TrackingSnapshot

# hard stop for runaway pagination metadata
MAX_PAGES = 500


class OrderSource(Protocol):
    """Capability set the reconciler is polymorphic over.

    Implementations translate their native payloads into canonical shapes and
    raise SourceUnavailable for any transport/parse failure. No cross-source
    logic belongs here.
    """

    name: str

    def fetch_orders(self, page: int = 1, page_size: int = 20) -> PagedResult:
        ...

    def fetch_all_orders(self, page_size: int = 100) -> List[CanonicalOrder]:
        ...

    def fetch_tracking(self, awb: str) -> TrackingSnapshot:
        """Raises TrackingNotFound when this source knows nothing about the AWB."""
        ...


def walk_pages(source: OrderSource, page_size: int = 100) -> List[CanonicalOrder]:
    """Collect every page of `source`, trusting its own total_pages."""
    out: List[CanonicalOrder] = []
    page = 1
    while page <= MAX_PAGES:
        result = source.fetch_orders(page, page_size)
        out.extend(result.orders)
        if not result.orders or page >= result.total_pages:
            break
        page += 1
    return out
