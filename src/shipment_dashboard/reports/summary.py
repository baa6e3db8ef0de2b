from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable

import pandas as pd

from shipment_dashboard.models import SOURCE_API, SOURCE_DATABASE, CanonicalOrder
from shipment_dashboard.rules.status import IN_TRANSIT, PENDING, STATUS_VOCABULARY
from shipment_dashboard.utils.money import format_amount, sum_totals

# statuses that still need operator attention
OPEN_STATUSES = (PENDING, IN_TRANSIT)

_UNASSIGNED_COURIER = "Unassigned"


@dataclass(frozen=True)
class OrderSummary:
    status_counts: Dict[str, int]
    pending_orders: int
    courier_counts: Dict[str, int]
    total: int
    provenance_counts: Dict[str, int] = field(default_factory=dict)
    other_count: int = 0
    total_amount: str = format_amount(0)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status_counts": dict(self.status_counts),
            "pending_orders": self.pending_orders,
            "courier_counts": dict(self.courier_counts),
            "total": self.total,
            "provenance_counts": dict(self.provenance_counts),
            "other_count": self.other_count,
            "total_amount": self.total_amount,
        }


def orders_frame(orders: Iterable[CanonicalOrder]) -> pd.DataFrame:
    """One row per order with the columns the summary aggregates over."""
    rows = [
        {
            "order_id": o.order_id,
            "status": o.status,
            "courier": o.courier or _UNASSIGNED_COURIER,
            "source": o.source or "",
            "amount": o.amount,
        }
        for o in orders
    ]
    return pd.DataFrame(rows, columns=["order_id", "status", "courier", "source", "amount"])


def summarize_orders(orders: Iterable[CanonicalOrder]) -> OrderSummary:
    """
    Dashboard-card counts over an already merged/filtered collection.

    status_counts carries every vocabulary label (zero when absent); statuses
    outside the vocabulary are counted in other_count only.
    """
    df = orders_frame(orders)

    status_counts = (
        df["status"].value_counts()
        .reindex(list(STATUS_VOCABULARY), fill_value=0)
        .astype(int)
        .to_dict()
    )
    other = int((~df["status"].isin(STATUS_VOCABULARY)).sum())

    courier_counts = {
        str(k): int(v)
        for k, v in df["courier"].value_counts().sort_index().items()
    }
    by_source = df["source"].value_counts()
    provenance = {
        SOURCE_DATABASE: int(by_source.get(SOURCE_DATABASE, 0)),
        SOURCE_API: int(by_source.get(SOURCE_API, 0)),
    }
    total_amount = sum_totals(df["amount"].tolist())

    return OrderSummary(
        status_counts={k: int(v) for k, v in status_counts.items()},
        pending_orders=int(sum(status_counts[s] for s in OPEN_STATUSES)),
        courier_counts=courier_counts,
        total=int(len(df)),
        provenance_counts=provenance,
        other_count=other,
        total_amount=format_amount(total_amount),
    )
