# src/shipment_dashboard/config/env.py
from __future__ import annotations

import os
from pathlib import Path
from typing import Dict, Optional, Tuple

from shipment_dashboard.models import EnvCfg
from shipment_dashboard.models.env_cfg import (
    DEFAULT_SHIPROCKET_BASE_URL,
    DEFAULT_SHOPIFY_API_VERSION,
)

from dotenv import dotenv_values, find_dotenv, load_dotenv


# --- Public contract ---------------------------------------------------------

class EnvError(RuntimeError):
    """Raised when required environment variables are missing or malformed."""


# Needed to reach the live Shiprocket API; everything else has a default.
REQUIRED_KEYS: Tuple[str, ...] = (
    "SHIPROCKET_EMAIL",
    "SHIPROCKET_PASSWORD",
)


def load_project_dotenv(start: Optional[Path] = None, *, override: bool = False) -> Path:
    """
    Load variables from the nearest `.env` file (searching upward from `start` or CWD).
    Does NOT override existing env vars unless `override=True`.
    Returns the resolved Path to the .env file if found; otherwise Path().
    """
    start_path = Path.cwd() if start is None else Path(start)

    dotenv_str = find_dotenv(filename=".env", usecwd=True)
    dotenv_path = Path(dotenv_str) if dotenv_str else Path()

    # python-dotenv searches from CWD; fall back to walking up from `start`
    if not dotenv_str:
        for p in (start_path, *start_path.parents):
            candidate = p / ".env"
            if candidate.exists():
                dotenv_path = candidate
                break

    if not dotenv_path.exists() or dotenv_path.is_dir():
        return Path()

    load_dotenv(dotenv_path=dotenv_path, override=override)
    return dotenv_path.resolve()


def get_env(name: str, default: Optional[str] = None) -> Optional[str]:
    """Convenience accessor mirroring os.getenv."""
    return os.getenv(name, default)


def get_required_env(name: str) -> str:
    """Fetch a required env var or raise a helpful error."""
    value = os.getenv(name)
    if not value:
        raise EnvError(f"Missing required environment variable: {name}")
    return value


def env(name: str, *, default=None, required: bool = False, cast=None):
    """
    Test-friendly accessor.

    - If `required=True` and var is missing, raise KeyError(name).
    - If `cast` is provided, apply it to the raw string and propagate cast errors.
    - Returns `default` when missing and not required.
    """
    raw = os.getenv(name)
    if raw is None or raw == "":
        if required:
            raise KeyError(name)
        return default

    if cast is not None:
        return cast(raw)
    return raw


# --- Main loader APIs --------------------------------------------------------

def load_env(
    dotenv_path: Optional[Path] = None,
    *,
    override: bool = False,
    required_keys: Tuple[str, ...] = (),
    strict: bool = False,
) -> Dict[str, str]:
    """
    Load env vars from a .env file into the process environment and return a dict
    of key/value pairs found in that file.

    - If `dotenv_path` is provided, load exactly that file.
    - Otherwise, auto-discover the nearest .env via `load_project_dotenv`.
    - If `strict=True` and `required_keys` are provided, ensure they are present
      in `os.environ` after loading; otherwise raise EnvError.
    """
    loaded: Dict[str, str] = {}

    if dotenv_path:
        path = Path(dotenv_path)
        if path.exists():
            load_dotenv(dotenv_path=path, override=override)
            loaded = {k: v for k, v in dotenv_values(path).items() if v is not None}
    else:
        path = load_project_dotenv(override=override)
        if path and path.exists():
            loaded = {k: v for k, v in dotenv_values(path).items() if v is not None}

    if strict and required_keys:
        missing = [k for k in required_keys if not os.getenv(k)]
        if missing:
            raise EnvError(
                f"Missing required environment variable(s): {', '.join(missing)}")

    return loaded


def get_app_env(dotenv_path: Path | str | None = ".env", *, strict: bool = False) -> EnvCfg:
    """
    Load application variables and return a typed config object.

    - `dotenv_path` may be a Path/str pointing to a specific .env file or None to
      auto-discover the nearest one.
    - Existing process env wins over the file (CI/host settings).
    - With `strict=True` the Shiprocket credentials must be present.
    """
    load_env(
        Path(dotenv_path) if dotenv_path else None,
        override=False,
        required_keys=REQUIRED_KEYS,
        strict=strict,
    )

    try:
        interval = env("REFRESH_INTERVAL_SECONDS", default=30.0, cast=float)
    except ValueError as e:
        raise EnvError(f"REFRESH_INTERVAL_SECONDS must be a number: {e}") from e
    if interval <= 0:
        raise EnvError("REFRESH_INTERVAL_SECONDS must be positive")

    return EnvCfg(
        SHIPROCKET_EMAIL=env("SHIPROCKET_EMAIL", default=""),
        SHIPROCKET_PASSWORD=env("SHIPROCKET_PASSWORD", default=""),
        SHIPROCKET_BASE_URL=env("SHIPROCKET_BASE_URL", default=DEFAULT_SHIPROCKET_BASE_URL),
        SHOPIFY_STORE=env("SHOPIFY_STORE", default=""),
        SHOPIFY_ACCESS_TOKEN=env("SHOPIFY_ACCESS_TOKEN", default=""),
        SHOPIFY_API_VERSION=env("SHOPIFY_API_VERSION", default=DEFAULT_SHOPIFY_API_VERSION),
        ORDERS_DB_PATH=env("ORDERS_DB_PATH", default="orders.json"),
        REFRESH_INTERVAL_SECONDS=interval,
    )


__all__ = [
    "EnvError",
    "REQUIRED_KEYS",
    "load_project_dotenv",
    "load_env",
    "get_env",
    "get_required_env",
    "env",
    "get_app_env",
]
