from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from shipment_dashboard.config.logging_config import truncate
from shipment_dashboard.errors import SourceUnavailable

logger = logging.getLogger("shipment_dashboard.api.transport")


class RequestsTransport:
    """Requests session wrapper with retry/backoff.

    Retries on typical transient errors and on specified status codes.
    """

    def __init__(self, timeout: int = 30, max_retries: int = 3, backoff_factor: float = 0.3) -> None:
        self.session = requests.Session()
        self.timeout = timeout

        retry = Retry(
            total=max_retries,
            read=max_retries,
            connect=max_retries,
            backoff_factor=backoff_factor,
            status_forcelist=(429, 500, 502, 503, 504),
            allowed_methods=("GET", "POST"),
            raise_on_status=False,
        )
        adapter = HTTPAdapter(max_retries=retry)
        self.session.mount("https://", adapter)
        self.session.mount("http://", adapter)

    def post(self, url: str, *, headers: Optional[Dict[str, str]] = None, data: Any = None, json: Any = None, params: Optional[Dict[str, Any]] = None):
        return self.session.post(url, headers=headers, data=data, json=json, params=params, timeout=self.timeout)

    def get(self, url: str, *, headers: Optional[Dict[str, str]] = None, params: Optional[Dict[str, Any]] = None):
        return self.session.get(url, headers=headers, params=params, timeout=self.timeout)


def request_json(
    transport,
    method: str,
    url: str,
    *,
    source: str,
    headers: Optional[Dict[str, str]] = None,
    params: Optional[Dict[str, Any]] = None,
    json: Any = None,
) -> Any:
    """
    Perform one HTTP call and return the decoded JSON body.

    Network errors, non-2xx statuses and undecodable bodies all surface as
    SourceUnavailable(source, ...) so callers handle a single failure type.
    """
    try:
        if method.upper() == "POST":
            resp = transport.post(url, headers=headers, json=json, params=params)
        else:
            resp = transport.get(url, headers=headers, params=params)
    except requests.RequestException as ex:
        logger.warning("%s %s failed: %s", method.upper(), url, ex)
        raise SourceUnavailable(source, f"network error: {ex}", cause=ex) from ex

    status = getattr(resp, "status_code", None)
    try:
        resp.raise_for_status()
    except requests.HTTPError as ex:
        logger.warning(
            "%s %s returned status=%s response_body=%s",
            method.upper(), url, status, truncate(getattr(resp, "text", None)),
        )
        raise SourceUnavailable(source, f"HTTP {status}", cause=ex) from ex

    try:
        body = resp.json()
    except ValueError as ex:
        logger.warning("%s %s returned a non-JSON body (status=%s)", method.upper(), url, status)
        raise SourceUnavailable(source, "malformed response body", cause=ex) from ex

    logger.debug("%s %s status=%s", method.upper(), url, status)
    return body
