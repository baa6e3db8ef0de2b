from __future__ import annotations
from dataclasses import dataclass

DEFAULT_SHIPROCKET_BASE_URL = "https://apiv2.shiprocket.in/v1/external"
DEFAULT_SHOPIFY_API_VERSION = "2024-01"


@dataclass(frozen=True)
class EnvCfg:
    """Minimal shape we need from get_app_env()."""
    SHIPROCKET_EMAIL: str = ""
    SHIPROCKET_PASSWORD: str = ""
    SHIPROCKET_BASE_URL: str = DEFAULT_SHIPROCKET_BASE_URL
    SHOPIFY_STORE: str = ""
    SHOPIFY_ACCESS_TOKEN: str = ""
    SHOPIFY_API_VERSION: str = DEFAULT_SHOPIFY_API_VERSION
    ORDERS_DB_PATH: str = "orders.json"
    REFRESH_INTERVAL_SECONDS: float = 30.0

    @property
    def has_shiprocket_creds(self) -> bool:
        return bool(self.SHIPROCKET_EMAIL and self.SHIPROCKET_PASSWORD)

    @property
    def has_shopify_creds(self) -> bool:
        return bool(self.SHOPIFY_STORE and self.SHOPIFY_ACCESS_TOKEN)
