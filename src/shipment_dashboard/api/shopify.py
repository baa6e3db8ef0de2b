from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from shipment_dashboard.errors import SourceUnavailable
from shipment_dashboard.models.env_cfg import DEFAULT_SHOPIFY_API_VERSION

from .transport import RequestsTransport, request_json

SOURCE_NAME = "shopify"


@dataclass
class ShopifyConfig:
    store: str                       # "<shop>" or "<shop>.myshopify.com"
    access_token: str
    api_version: str = DEFAULT_SHOPIFY_API_VERSION

    @property
    def base_url(self) -> str:
        host = self.store if "." in self.store else f"{self.store}.myshopify.com"
        return f"https://{host}/admin/api/{self.api_version}"


class ShopifyClient:
    """Reads orders from the Shopify Admin REST API for the channel sync."""

    def __init__(
        self,
        cfg: ShopifyConfig,
        transport: Optional[RequestsTransport] = None,
        *,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.cfg = cfg
        self.transport = transport or RequestsTransport()
        self.logger = logger or logging.getLogger("shipment_dashboard.api.shopify")

    def _headers(self) -> Dict[str, str]:
        return {
            "X-Shopify-Access-Token": self.cfg.access_token,
            "Content-Type": "application/json",
        }

    def get_unfulfilled_orders(self, limit: int = 250) -> List[Dict[str, Any]]:
        """Open orders that have not been fulfilled yet (the ones we need to ship)."""
        body = request_json(
            self.transport,
            "GET",
            f"{self.cfg.base_url}/orders.json",
            source=SOURCE_NAME,
            headers=self._headers(),
            params={"status": "open", "fulfillment_status": "unfulfilled", "limit": limit},
        )
        if not isinstance(body, dict) or not isinstance(body.get("orders", []), list):
            raise SourceUnavailable(SOURCE_NAME, "malformed orders response")
        orders = body.get("orders") or []
        self.logger.debug("Shopify returned %d unfulfilled orders", len(orders))
        return orders
