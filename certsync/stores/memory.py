"""
Memory Store — In-process certificate store.

Keeps uploaded certificates in a dict instead of calling a provider.
Used by tests and by `certsync sync --mock`, where one MemoryStore is
registered under each real store's name with the same credential and
scope requirements.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple
from uuid import uuid4

from ..errors import RemoteNotFoundError, SyncError
from ..models.secret import Credentials, ParsedCertificate, StoreConfig
from .base import Store

logger = logging.getLogger(__name__)


@dataclass
class StoredCertificate:
    """A certificate object held by the memory store."""

    id: str
    scope: str
    full_chain: bytes
    private_key: bytes
    fingerprint: str
    revision: int = 1


class MemoryStore(Store):
    """
    In-memory store.

    A create with material already stored in the same scope returns the
    existing id, like the real stores do. Set `fail_with` to an exception
    to make the next upsert raise it.
    """

    def __init__(
        self,
        store_name: str = "memory",
        credential_fields: Tuple[str, ...] = (),
        scope_key: Optional[str] = None,
        reissue_on_update: bool = False,
    ):
        self._name = store_name
        self.credential_fields = tuple(credential_fields)
        self.scope_key = scope_key
        self.reissue_on_update = reissue_on_update
        self.objects: Dict[str, StoredCertificate] = {}
        self.calls: List[Tuple[str, str, str]] = []
        self.fail_with: Optional[SyncError] = None

    @classmethod
    def like(cls, store: Store) -> "MemoryStore":
        """A memory store with the same name and requirements as `store`."""
        return cls(
            store_name=store.name,
            credential_fields=store.credential_fields,
            scope_key=store.scope_key,
        )

    @property
    def name(self) -> str:
        return self._name

    def upsert(
        self,
        scope: str,
        existing_id: str,
        cert: ParsedCertificate,
        credentials: Credentials,
        config: StoreConfig,
    ) -> str:
        action = "update" if existing_id else "create"
        self.calls.append((action, scope, existing_id))

        if self.fail_with is not None:
            error, self.fail_with = self.fail_with, None
            raise error

        if not existing_id:
            return self._find(scope, cert.fingerprint_sha1) or self._create(scope, cert)

        current = self.objects.get(existing_id)
        if current is None or current.scope != scope:
            raise RemoteNotFoundError(
                f"{self.name} certificate {existing_id} not found", store=self.name
            )

        if self.reissue_on_update and current.fingerprint != cert.fingerprint_sha1:
            return self._create(scope, cert)

        current.full_chain = cert.full_chain
        current.private_key = cert.private_key
        current.fingerprint = cert.fingerprint_sha1
        current.revision += 1
        logger.info(f"[MEMORY:{self.name}] Updated {existing_id} in '{scope}'")
        return existing_id

    def _find(self, scope: str, fingerprint: str) -> Optional[str]:
        for stored in self.objects.values():
            if stored.scope == scope and stored.fingerprint == fingerprint:
                return stored.id
        return None

    def _create(self, scope: str, cert: ParsedCertificate) -> str:
        cert_id = uuid4().hex
        self.objects[cert_id] = StoredCertificate(
            id=cert_id,
            scope=scope,
            full_chain=cert.full_chain,
            private_key=cert.private_key,
            fingerprint=cert.fingerprint_sha1,
        )
        logger.info(f"[MEMORY:{self.name}] Created {cert_id} in '{scope}'")
        return cert_id
