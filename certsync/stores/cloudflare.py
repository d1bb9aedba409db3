"""
Cloudflare Store — Custom SSL certificates on a Cloudflare zone.

Uploads the full chain and private key as a zone custom certificate
through the Cloudflare v4 API.

## Annotations

- <operator>/cloudflare-secret-name: credential secret ("ns/name" or "name")
- <operator>/cloudflare-zone-id: zone to upload into (required)
- <operator>/cloudflare-cert-id: custom certificate id (written back)
- <operator>/cloudflare-bundle-method: optional, ubiquitous|optimal|force

## Credential Secret Fields

- api_key: Global API key
- email: Account email

## Endpoints

    GET   /zones/{zone_id}/custom_certificates
    POST  /zones/{zone_id}/custom_certificates
    PATCH /zones/{zone_id}/custom_certificates/{id}

An update with unchanged material overwrites in place and keeps the id.
Before a create, the zone is searched for a custom certificate with the
same hosts and expiry (one uploaded by an earlier sync whose id was never
written back), and its id is returned instead of uploading a duplicate.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

import httpx

from ..errors import (
    ConfigurationError,
    RemoteAuthError,
    RemoteError,
    RemoteNotFoundError,
    RemoteRejectedError,
    RemoteScopeError,
)
from ..models.secret import Credentials, ParsedCertificate, StoreConfig
from .base import Store
from .http import json_body, send

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://api.cloudflare.com/client/v4"

BUNDLE_METHODS = ("ubiquitous", "optimal", "force")

# Cloudflare error codes
AUTH_ERROR_CODES = {9103, 9106, 9107, 9109, 10000, 10001}
SCOPE_ERROR_CODES = {1001, 7000, 7003}
# Certificate id unknown or invalid; 7003 also covers a bad object id on update
NOT_FOUND_ERROR_CODES = {1002, 1003, 7003}

PAGE_SIZE = 50


class CloudflareStore(Store):
    """Cloudflare zone custom certificates."""

    scope_key = "zone-id"
    credential_fields = ("api_key", "email")

    def __init__(self, http_client: httpx.Client, api_url: str = DEFAULT_API_URL):
        self.http = http_client
        self.api_url = api_url.rstrip("/")

    @property
    def name(self) -> str:
        return "cloudflare"

    def validate_config(self, config: StoreConfig) -> None:
        super().validate_config(config)
        method = config.extra.get("bundle-method")
        if method and method not in BUNDLE_METHODS:
            raise ConfigurationError(
                f"cloudflare-bundle-method must be one of {', '.join(BUNDLE_METHODS)}, "
                f"got {method!r}",
                store=self.name,
            )

    def upsert(
        self,
        scope: str,
        existing_id: str,
        cert: ParsedCertificate,
        credentials: Credentials,
        config: StoreConfig,
    ) -> str:
        payload: Dict[str, Any] = {
            "certificate": cert.full_chain.decode("utf-8"),
            "private_key": cert.private_key.decode("utf-8"),
        }
        if config.extra.get("bundle-method"):
            payload["bundle_method"] = config.extra["bundle-method"]

        headers = {
            "X-Auth-Key": credentials["api_key"],
            "X-Auth-Email": credentials["email"],
            "Content-Type": "application/json",
        }

        base = f"{self.api_url}/zones/{scope}/custom_certificates"
        if existing_id:
            method, url = "PATCH", f"{base}/{existing_id}"
        else:
            adopted = self._find(base, cert, headers)
            if adopted:
                logger.info(
                    f"cloudflare certificate {adopted} in zone {scope} already holds this material"
                )
                return adopted
            method, url = "POST", base

        response = send(self.http, method, url, self.name, headers=headers, json=payload)
        body = json_body(response)

        if response.status_code >= 400 or not body.get("success", False):
            raise self._error(response, body, updating=bool(existing_id))

        cert_id = (body.get("result") or {}).get("id")
        if not cert_id:
            raise RemoteRejectedError(
                "cloudflare response did not include a certificate id",
                store=self.name,
                status_code=response.status_code,
            )
        logger.debug(f"cloudflare {method} zone={scope} id={cert_id}")
        return cert_id

    def _error(self, response: httpx.Response, body: Dict[str, Any], updating: bool) -> RemoteError:
        errors: List[Dict[str, Any]] = body.get("errors") or []
        codes = {e.get("code") for e in errors if isinstance(e, dict)}
        detail = "; ".join(
            f"{e.get('code')}: {e.get('message')}" for e in errors if isinstance(e, dict)
        ) or response.text[:200]
        status = response.status_code
        message = f"cloudflare returned {status}: {detail}"

        if codes & AUTH_ERROR_CODES:
            return RemoteAuthError(message, store=self.name, status_code=status)
        if updating and (status == 404 or codes & NOT_FOUND_ERROR_CODES):
            return RemoteNotFoundError(message, store=self.name, status_code=status)
        if codes & SCOPE_ERROR_CODES:
            return RemoteScopeError(message, store=self.name, status_code=status)
        if status in (401, 403):
            return RemoteAuthError(message, store=self.name, status_code=status)
        if status == 404:
            return RemoteScopeError(message, store=self.name, status_code=status)
        return RemoteRejectedError(message, store=self.name, status_code=status)

    def _find(self, base: str, cert: ParsedCertificate, headers: Dict[str, str]) -> Optional[str]:
        """Id of a zone custom certificate covering the same hosts with the same expiry."""
        hosts = cert.hosts
        not_after = cert.not_after.replace(microsecond=0)
        page, total_pages = 1, 1
        while page <= total_pages:
            params = {"page": page, "per_page": PAGE_SIZE}
            response = send(self.http, "GET", base, self.name, headers=headers, params=params)
            body = json_body(response)
            if response.status_code >= 400 or not body.get("success", False):
                raise self._error(response, body, updating=False)
            for existing in body.get("result") or []:
                if sorted(existing.get("hosts") or []) != hosts:
                    continue
                if _parse_time(existing.get("expires_on")) == not_after:
                    return existing.get("id")
            total_pages = (body.get("result_info") or {}).get("total_pages") or 1
            page += 1
        return None


def _parse_time(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    return parsed.replace(microsecond=0)
