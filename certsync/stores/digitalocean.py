"""
DigitalOcean Store — Custom certificates for load balancers and CDN.

DigitalOcean certificates cannot be modified once uploaded, so this store
issues a new id whenever the certificate changes. Re-running with the
same material is a no-op: the recorded certificate is fetched and, if its
SHA-1 fingerprint matches the leaf, its id is returned unchanged.

Before uploading, the account is searched for a certificate with the same
name or fingerprint. One is found when an earlier sync uploaded it but the
id was never written back, and its id is returned instead of uploading a
duplicate.

Superseded certificates are left in place because load balancers may
still reference them.

## Annotations

- <operator>/digitalocean-secret-name: credential secret ("ns/name" or "name")
- <operator>/digitalocean-cert-name: optional name prefix for new certificates
  (default: <namespace>-<name> of the certificate secret)
- <operator>/digitalocean-cert-id: certificate id (written back)

## Credential Secret Fields

- api_key: Personal access token with certificate write scope
"""

from __future__ import annotations

import logging
import re
from typing import Any, Dict, Optional

import httpx

from ..errors import (
    RemoteAuthError,
    RemoteError,
    RemoteNotFoundError,
    RemoteRejectedError,
)
from ..models.secret import Credentials, ParsedCertificate, StoreConfig
from .base import Store
from .http import json_body, send

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://api.digitalocean.com"
PAGE_SIZE = 200

_NAME_UNSAFE = re.compile(r"[^a-zA-Z0-9.-]+")


class DigitalOceanStore(Store):
    """DigitalOcean custom certificates."""

    scope_key = None
    credential_fields = ("api_key",)

    def __init__(self, http_client: httpx.Client, api_url: str = DEFAULT_API_URL):
        self.http = http_client
        self.api_url = api_url.rstrip("/")

    @property
    def name(self) -> str:
        return "digitalocean"

    def upsert(
        self,
        scope: str,
        existing_id: str,
        cert: ParsedCertificate,
        credentials: Credentials,
        config: StoreConfig,
    ) -> str:
        headers = {
            "Authorization": f"Bearer {credentials['api_key']}",
            "Content-Type": "application/json",
        }
        fingerprint = cert.fingerprint_sha1

        if existing_id:
            current = self._get(existing_id, headers)
            if current.get("sha1_fingerprint", "").lower() == fingerprint:
                logger.debug(f"digitalocean certificate {existing_id} already current")
                return existing_id
            logger.info(
                f"digitalocean certificate {existing_id} is outdated, uploading replacement"
            )

        name = self._certificate_name(fingerprint, config)
        adopted = self._find(name, fingerprint, headers)
        if adopted:
            logger.info(f"digitalocean certificate {adopted} already holds this material")
            return adopted

        return self._create(cert, name, fingerprint, headers)

    def _get(self, cert_id: str, headers: Dict[str, str]) -> Dict[str, Any]:
        url = f"{self.api_url}/v2/certificates/{cert_id}"
        response = send(self.http, "GET", url, self.name, headers=headers)
        body = json_body(response)
        if response.status_code == 404:
            raise RemoteNotFoundError(
                f"digitalocean certificate {cert_id} not found",
                store=self.name,
                status_code=404,
            )
        if response.status_code >= 400:
            raise self._error(response, body)
        return body.get("certificate") or {}

    def _find(self, name: str, fingerprint: str, headers: Dict[str, str]) -> Optional[str]:
        """
        Id of an uploaded certificate with this name or fingerprint.

        Covers a previous sync whose id never made it back to the secret.
        """
        url: Optional[str] = f"{self.api_url}/v2/certificates"
        params: Optional[Dict[str, Any]] = {"per_page": PAGE_SIZE}
        while url:
            response = send(self.http, "GET", url, self.name, headers=headers, params=params)
            body = json_body(response)
            if response.status_code >= 400:
                raise self._error(response, body)
            for certificate in body.get("certificates") or []:
                if certificate.get("name") == name:
                    return certificate.get("id")
                if certificate.get("sha1_fingerprint", "").lower() == fingerprint:
                    return certificate.get("id")
            # The next link already carries the paging query
            url = ((body.get("links") or {}).get("pages") or {}).get("next")
            params = None
        return None

    def _create(
        self,
        cert: ParsedCertificate,
        name: str,
        fingerprint: str,
        headers: Dict[str, str],
    ) -> str:
        payload: Dict[str, Any] = {
            "name": name,
            "type": "custom",
            "private_key": cert.private_key.decode("utf-8"),
            "leaf_certificate": cert.leaf.decode("utf-8"),
        }
        if cert.intermediates:
            payload["certificate_chain"] = cert.intermediates.decode("utf-8")

        url = f"{self.api_url}/v2/certificates"
        response = send(self.http, "POST", url, self.name, headers=headers, json=payload)
        body = json_body(response)
        if response.status_code == 422:
            # Uploaded concurrently under the same name
            adopted = self._find(name, fingerprint, headers)
            if adopted:
                return adopted
        if response.status_code >= 400:
            raise self._error(response, body)

        cert_id = (body.get("certificate") or {}).get("id")
        if not cert_id:
            raise RemoteRejectedError(
                "digitalocean response did not include a certificate id",
                store=self.name,
                status_code=response.status_code,
            )
        return cert_id

    def _certificate_name(self, fingerprint: str, config: StoreConfig) -> str:
        # Names must be unique per account, so the fingerprint is always appended
        base = config.extra.get("cert-name")
        if not base and config.source_name:
            base = f"{config.source_namespace}-{config.source_name}"
        base = _NAME_UNSAFE.sub("-", (base or "certsync").replace("*", "wildcard")).strip("-")
        return f"{base}-{fingerprint[:8]}"

    def _error(self, response: httpx.Response, body: Dict[str, Any]) -> RemoteError:
        status = response.status_code
        message = f"digitalocean returned {status}: {body.get('message') or response.text[:200]}"
        if status in (401, 403):
            return RemoteAuthError(message, store=self.name, status_code=status)
        return RemoteRejectedError(message, store=self.name, status_code=status)
