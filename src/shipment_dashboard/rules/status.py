# src/shipment_dashboard/rules/status.py
from __future__ import annotations

from typing import Iterable, Optional

# Canonical buckets surfaced to every consumer (badges, filter dropdowns)
DELIVERED = "Delivered"
IN_TRANSIT = "In Transit"
NDR = "NDR"
RTO = "RTO"
LOST = "Lost"
PENDING = "Pending"

STATUS_VOCABULARY: tuple[str, ...] = (DELIVERED, IN_TRANSIT, NDR, RTO, LOST, PENDING)

# -------- Text hints (lowercased) --------
_DELIVERED_HINTS: tuple[str, ...] = ("delivered",)

_TRANSIT_HINTS: tuple[str, ...] = (
    "transit",
    "shipped",
    "pickup",
    "out for delivery",
    # database rows store the legacy "In-Process" label
    "in-process",
    "in process",
)

_RTO_HINTS: tuple[str, ...] = ("rto", "return")

_PENDING_HINTS: tuple[str, ...] = ("pending", "created")

_NDR_HINTS: tuple[str, ...] = ("ndr",)

_LOST_HINTS: tuple[str, ...] = ("lost",)

# Ordered (hints, bucket). First match wins.
STATUS_RULES: tuple[tuple[tuple[str, ...], str], ...] = (
    (_DELIVERED_HINTS, DELIVERED),
    (_TRANSIT_HINTS, IN_TRANSIT),
    (_RTO_HINTS, RTO),
    (_PENDING_HINTS, PENDING),
    (_NDR_HINTS, NDR),
    (_LOST_HINTS, LOST),
)

# -------- Badge colours (sub-cases of a bucket may differ) --------
_BADGE_RULES: tuple[tuple[tuple[str, ...], str], ...] = (
    (_DELIVERED_HINTS, "green"),
    (("out for delivery",), "purple"),
    (("pickup",), "yellow"),
    (_TRANSIT_HINTS, "blue"),
    (_RTO_HINTS, "red"),
    (_PENDING_HINTS, "gray"),
    (_NDR_HINTS, "orange"),
    (_LOST_HINTS, "red"),
)
DEFAULT_BADGE = "gray"


def _any_in(text: str, phrases: Iterable[str]) -> bool:
    t = (text or "").casefold()
    return any(p in t for p in phrases)


def classify_status(text: Optional[str]) -> str:
    """
    Map free-text source status to the canonical bucket.

    Case-insensitive substring match over STATUS_RULES, first match wins.
    Unmatched text is passed through unchanged (the "Other" bucket), so
    classify_status("") == "".
    """
    raw = text or ""
    for hints, bucket in STATUS_RULES:
        if _any_in(raw, hints):
            return bucket
    return raw


def is_other(text: Optional[str]) -> bool:
    """True when the text does not fall into any canonical bucket."""
    return classify_status(text) not in STATUS_VOCABULARY


def badge_for(text: Optional[str]) -> str:
    for hints, colour in _BADGE_RULES:
        if _any_in(text or "", hints):
            return colour
    return DEFAULT_BADGE


def same_status(a: Optional[str], b: Optional[str]) -> bool:
    """Compare two statuses by canonical bucket (filters use this)."""
    return classify_status(a).casefold() == classify_status(b).casefold()


__all__ = [
    "DELIVERED",
    "IN_TRANSIT",
    "NDR",
    "RTO",
    "LOST",
    "PENDING",
    "STATUS_VOCABULARY",
    "STATUS_RULES",
    "classify_status",
    "is_other",
    "badge_for",
    "same_status",
]
