"""
Credential Resolver — Fetch store credentials from a cluster secret.

Credentials are fetched fresh on every sync. Nothing is cached and
nothing is retried; failures propagate to the orchestrator.
"""

from __future__ import annotations

import logging
from typing import Iterable

from ..errors import CredentialFieldMissing, CredentialNotFound
from ..models.secret import Credentials
from ..persistence.secret_store import SecretNotFound, SecretStore

logger = logging.getLogger(__name__)


class CredentialResolver:
    """Resolves the credential secret referenced by a store config."""

    def __init__(self, secret_store: SecretStore):
        self.secret_store = secret_store

    def resolve(
        self,
        namespace: str,
        name: str,
        required_fields: Iterable[str],
        store: str = "",
    ) -> Credentials:
        """
        Fetch `namespace/name` and check it has every required field.

        Raises:
            CredentialNotFound: the secret does not exist
            CredentialFieldMissing: one or more fields are absent or empty
        """
        try:
            data = self.secret_store.get_data(namespace, name)
        except SecretNotFound as e:
            raise CredentialNotFound(namespace, name, store=store) from e

        values = {}
        missing = []
        for field_name in required_fields:
            raw = data.get(field_name)
            value = raw.decode("utf-8").strip() if raw else ""
            if not value:
                missing.append(field_name)
            else:
                values[field_name] = value

        if missing:
            raise CredentialFieldMissing(missing, namespace, name, store=store)

        logger.debug(f"Resolved {store} credentials from {namespace}/{name}")
        return Credentials(store=store, namespace=namespace, name=name, values=values)
