"""
Secret Store — Read and update Kubernetes secrets.

Thin wrapper around kubernetes.client.CoreV1Api. The API client is
created once per process (see `create_core_api`) and handed to
SecretStore, so tests can pass a mock.

## Optimistic Concurrency

Annotation writes are strategic merge patches that carry the secret's
`metadata.resourceVersion`. If another writer updated the secret since we
read it, the API server answers 409 and PersistenceConflictError is
raised. The caller treats that as retryable.
"""

from __future__ import annotations

import base64
import logging
from typing import Any, Dict, Optional

from kubernetes import client, config
from kubernetes.client.rest import ApiException

from ..errors import PersistenceConflictError, SecretStoreError
from ..models.secret import CertificateSecret

logger = logging.getLogger(__name__)


def create_core_api() -> client.CoreV1Api:
    """Load in-cluster config, falling back to kubeconfig."""
    try:
        config.load_incluster_config()
    except config.ConfigException:
        config.load_kube_config()
    return client.CoreV1Api()


class SecretNotFound(SecretStoreError):
    """The requested secret does not exist."""

    code = "secret_not_found"
    retryable = False

    def __init__(self, namespace: str, name: str):
        super().__init__(f"secret {namespace}/{name} not found")
        self.namespace = namespace
        self.name = name


class SecretStore:
    """
    Secret access for the sync protocol.

    Usage:
        store = SecretStore(create_core_api(), field_manager="cert-manager-sync.lestak.sh")
        secret = store.get_certificate_secret("default", "example-tls")
        store.update_annotations(secret)
    """

    def __init__(
        self,
        core_api: Any,
        field_manager: str,
        timeout: Optional[float] = None,
        dry_run: bool = False,
    ):
        self.core_api = core_api
        self.field_manager = field_manager
        self.timeout = timeout
        self.dry_run = dry_run

    def _read(self, namespace: str, name: str) -> Any:
        kwargs: Dict[str, Any] = {}
        if self.timeout:
            kwargs["_request_timeout"] = self.timeout
        try:
            return self.core_api.read_namespaced_secret(name, namespace, **kwargs)
        except ApiException as e:
            if e.status == 404:
                raise SecretNotFound(namespace, name) from e
            raise SecretStoreError(
                f"reading secret {namespace}/{name} failed: {e.status} {e.reason}"
            ) from e

    def get_certificate_secret(self, namespace: str, name: str) -> CertificateSecret:
        """Fetch a secret as a CertificateSecret."""
        return CertificateSecret.from_kube(self._read(namespace, name))

    def get_data(self, namespace: str, name: str) -> Dict[str, bytes]:
        """Fetch a secret's decoded data fields."""
        secret = self._read(namespace, name)
        raw = secret.data or {}
        return {key: base64.b64decode(value) for key, value in raw.items()}

    def update_annotations(self, secret: CertificateSecret) -> CertificateSecret:
        """
        Persist the secret's annotation map.

        Updates `secret.resource_version` in place on success so a later
        write in the same invocation does not conflict with this one.
        """
        if self.dry_run:
            logger.info(f"(dry run) Would persist annotations on {secret.ref}")
            return secret

        metadata: Dict[str, Any] = {"annotations": dict(secret.annotations)}
        if secret.resource_version:
            metadata["resourceVersion"] = secret.resource_version
        body = {"metadata": metadata}

        kwargs: Dict[str, Any] = {"field_manager": self.field_manager}
        if self.timeout:
            kwargs["_request_timeout"] = self.timeout

        try:
            updated = self.core_api.patch_namespaced_secret(
                secret.name,
                secret.namespace,
                body,
                **kwargs,
            )
        except ApiException as e:
            if e.status == 409:
                raise PersistenceConflictError(
                    f"secret {secret.ref} was modified concurrently"
                ) from e
            if e.status == 404:
                raise SecretNotFound(secret.namespace, secret.name) from e
            raise SecretStoreError(
                f"updating secret {secret.ref} failed: {e.status} {e.reason}"
            ) from e

        new_version = getattr(getattr(updated, "metadata", None), "resource_version", None)
        if new_version:
            secret.resource_version = new_version
        logger.debug(f"Persisted annotations on {secret.ref}")
        return secret
