from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional

from shipment_dashboard.errors import SourceUnavailable
from shipment_dashboard.models.env_cfg import DEFAULT_SHIPROCKET_BASE_URL

from .transport import RequestsTransport, request_json

SOURCE_NAME = "shiprocket"

# Shiprocket tokens are valid for 10 days
TOKEN_TTL_SECONDS = 10 * 24 * 60 * 60


@dataclass
class ShiprocketConfig:
    base_url: str = DEFAULT_SHIPROCKET_BASE_URL


@dataclass
class ShiprocketAuth:
    email: str
    password: str


class ShiprocketClient:
    """Minimal Shiprocket external API client.

    Responsibilities:
    - authenticate(): POST /auth/login with email/password, cache the bearer
      token until it expires.
    - get_orders(page, per_page): one page of the account's orders.
    - get_order(order_id): a single order.
    - track_awb(awb): raw tracking body for a waybill.

    Every failure (login, network, HTTP status, bad JSON) raises
    SourceUnavailable; nothing is swallowed here.
    """

    def __init__(
        self,
        auth: ShiprocketAuth,
        cfg: Optional[ShiprocketConfig] = None,
        transport: Optional[RequestsTransport] = None,
        *,
        logger: Optional[logging.Logger] = None,
        clock=time.time,
    ) -> None:
        self.auth = auth
        self.cfg = cfg or ShiprocketConfig()
        self.transport = transport or RequestsTransport()
        self._clock = clock
        self._token: Optional[str] = None
        self._token_expires_at: float = 0.0
        self.logger: logging.Logger = logger or logging.getLogger(
            "shipment_dashboard.api.shiprocket"
        )

    def _url(self, path: str) -> str:
        return self.cfg.base_url.rstrip("/") + "/" + path.lstrip("/")

    def authenticate(self) -> str:
        """Return a cached token, logging in again once it has expired."""
        now = self._clock()
        if self._token and now < self._token_expires_at:
            return self._token

        self.logger.debug("Requesting Shiprocket token from %s", self._url("auth/login"))
        try:
            body = request_json(
                self.transport,
                "POST",
                self._url("auth/login"),
                source=SOURCE_NAME,
                headers={"Content-Type": "application/json"},
                json={"email": self.auth.email, "password": self.auth.password},
            )
        except SourceUnavailable:
            self._token = None
            self._token_expires_at = 0.0
            raise

        token = body.get("token") if isinstance(body, dict) else None
        if not token:
            self._token = None
            self._token_expires_at = 0.0
            raise SourceUnavailable(SOURCE_NAME, "authentication failed: no token in response")

        self._token = str(token)
        self._token_expires_at = now + TOKEN_TTL_SECONDS
        self.logger.debug("Shiprocket token acquired")
        return self._token

    def _headers(self) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.authenticate()}",
        }

    def _get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        return request_json(
            self.transport, "GET", self._url(path),
            source=SOURCE_NAME, headers=self._headers(), params=params,
        )

    def get_orders(self, page: int = 1, per_page: int = 20) -> Dict[str, Any]:
        """
        One page of orders. Shape (fields we read):
            {"data": [...orders...], "meta": {"pagination": {"total_pages", "current_page", "total"}}}
        Older responses nest as {"data": {"orders": [...], "total_pages", "current_page"}};
        both are accepted downstream.
        """
        body = self._get("orders", params={"page": page, "per_page": per_page})
        if not isinstance(body, dict):
            raise SourceUnavailable(SOURCE_NAME, "malformed orders response")
        return body

    def get_order(self, order_id: str) -> Dict[str, Any]:
        body = self._get(f"orders/show/{order_id}")
        if not isinstance(body, dict):
            raise SourceUnavailable(SOURCE_NAME, f"malformed order response for {order_id}")
        data = body.get("data")
        return data if isinstance(data, dict) else {}

    def track_awb(self, awb: str) -> Dict[str, Any]:
        body = self._get(f"courier/track/awb/{awb}")
        if not isinstance(body, dict):
            raise SourceUnavailable(SOURCE_NAME, f"malformed tracking response for {awb}")
        return body

    def test_authentication(self) -> bool:
        """Connection check for the channels screen; False instead of raising."""
        self._token = None
        try:
            self.authenticate()
        except SourceUnavailable as ex:
            self.logger.warning("Shiprocket authentication check failed: %s", ex)
            return False
        return True
