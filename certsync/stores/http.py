"""
HTTP helpers shared by the REST-based stores.

Stores share one httpx.Client per process; it is created in main.py and
passed to each store's constructor.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx

from ..errors import RemoteTransientError

logger = logging.getLogger(__name__)

USER_AGENT = "certsync/1.0"


def create_http_client(timeout: float = 30.0) -> httpx.Client:
    """Create the process-wide HTTP client for store APIs."""
    return httpx.Client(
        timeout=timeout,
        headers={"User-Agent": USER_AGENT},
    )


def send(
    client: httpx.Client,
    method: str,
    url: str,
    store: str,
    headers: Optional[Dict[str, str]] = None,
    json: Optional[Dict[str, Any]] = None,
    params: Optional[Dict[str, Any]] = None,
) -> httpx.Response:
    """
    Send one request and map transport failures to RemoteTransientError.

    Rate limits and 5xx responses are transient too. Other statuses are
    returned for the store to interpret.
    """
    try:
        response = client.request(method, url, headers=headers, json=json, params=params)
    except httpx.TimeoutException as e:
        logger.error(f"{store} {method} {url} timed out")
        raise RemoteTransientError(f"{store} request timed out", store=store) from e
    except httpx.RequestError as e:
        logger.error(f"{store} {method} {url} failed: {e}")
        raise RemoteTransientError(f"{store} request failed: {e}", store=store) from e

    if response.status_code == 429 or response.status_code >= 500:
        raise RemoteTransientError(
            f"{store} returned {response.status_code}",
            store=store,
            status_code=response.status_code,
        )
    return response


def json_body(response: httpx.Response) -> Dict[str, Any]:
    """Decode a JSON object body, or {} when the body is not JSON."""
    try:
        body = response.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}
