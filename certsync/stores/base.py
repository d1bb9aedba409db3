"""
Store Base Class — Interface for all certificate stores.

A store is an external system that holds certificate objects (a CDN edge,
a load balancer, a secret manager). Each provider implements the same
small contract and is looked up by name in the StoreRegistry; the name is
also the prefix of its annotations on the secret.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional, Tuple

from ..errors import ConfigurationError
from ..models.secret import Credentials, ParsedCertificate, StoreConfig


class Store(ABC):
    """
    Abstract base class for all stores.

    Stores perform a single create-or-update attempt per call and raise
    a RemoteError subclass on failure. They never retry.
    """

    # Annotation suffix that holds the scope (e.g. "zone-id"), or None
    scope_key: Optional[str] = None

    # Fields the credential secret must contain
    credential_fields: Tuple[str, ...] = ()

    @property
    @abstractmethod
    def name(self) -> str:
        """The store identifier (e.g., 'cloudflare')."""
        pass

    def validate_config(self, config: StoreConfig) -> None:
        """
        Check that this store can work with the given config.

        Raises ConfigurationError. The default requires a scope when the
        store declares a scope key.
        """
        if self.scope_key and not config.scope:
            raise ConfigurationError(
                f"{self.name}-{self.scope_key} annotation is required",
                store=self.name,
            )

    @abstractmethod
    def upsert(
        self,
        scope: str,
        existing_id: str,
        cert: ParsedCertificate,
        credentials: Credentials,
        config: StoreConfig,
    ) -> str:
        """
        Create or update the certificate object.

        Creates when `existing_id` is empty, otherwise updates the object
        it names. Returns the store-assigned id, which the caller treats as
        authoritative from then on.

        Raises RemoteNotFoundError when `existing_id` no longer exists.
        """
        pass
