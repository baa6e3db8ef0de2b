# src/shipment_dashboard/errors.py
from __future__ import annotations

from typing import Mapping, Optional


class DashboardError(RuntimeError):
    """Base class for reconciliation-layer failures."""


class SourceUnavailable(DashboardError):
    """One order/tracking source failed (network, HTTP status or unparsable body)."""

    def __init__(self, source: str, reason: str = "", *, cause: Optional[BaseException] = None) -> None:
        self.source = source
        self.reason = reason or "source unavailable"
        self.cause = cause
        super().__init__(f"{source}: {self.reason}")


class AggregateUnavailable(DashboardError):
    """Every source failed; callers must show an explicit unavailable state."""

    user_message = "Orders are temporarily unavailable. Please try again shortly."

    def __init__(self, errors: Mapping[str, SourceUnavailable], user_message: Optional[str] = None) -> None:
        self.errors = dict(errors)
        if user_message:
            self.user_message = user_message
        detail = "; ".join(str(e) for e in self.errors.values())
        super().__init__(f"all sources unavailable ({detail})")


class MalformedRecord(DashboardError):
    """A source record is missing a key it cannot be represented without."""


class TrackingNotFound(DashboardError):
    """No tracking information for the AWB (unknown AWB or unrecognized payload)."""

    user_message = "Shipment not found"

    def __init__(self, awb: str) -> None:
        self.awb = awb
        super().__init__(f"{self.user_message}: {awb}")


__all__ = [
    "DashboardError",
    "SourceUnavailable",
    "AggregateUnavailable",
    "MalformedRecord",
    "TrackingNotFound",
]
