# src/shipment_dashboard/__init__.py
from .pipelines.reconciler import OrderReconciler
from .pipelines.tracking import TrackingNormalizer
from .service import ShipmentDashboard

__all__ = [
    "OrderReconciler",
    "ShipmentDashboard",
    "TrackingNormalizer",
]
