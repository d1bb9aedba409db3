"""
Sync Lifecycle — One reconciliation of a secret against a store.

Each invocation:
1. Extracts the certificate from the secret's TLS data
2. Reads the store config from the secret's annotations
3. Resolves the store credentials from the referenced secret
4. Creates or updates the certificate in the store
5. Writes the store id back to the secret, only if it changed

## Design Principles

- **Stateless**: everything needed is on the secret; nothing is cached
- **Single attempt**: no step is retried; the caller re-invokes on its own
  schedule, guided by `receipt.retryable`
- **Contained**: errors never escape an invocation, they become receipts
- **Independent stores**: one store failing does not stop the others

## Missing Remote Objects

When the recorded id was deleted in the store, the update raises
RemoteNotFoundError. With `settings.recreate_missing` (the default) the
orchestrator creates a new object in the same scope and records its id;
otherwise the failure is reported.

## Usage

    from certsync.engine.sync import SyncOrchestrator

    orchestrator = SyncOrchestrator(secret_store, registry, settings)
    receipt = orchestrator.sync(secret, "cloudflare")

    if receipt.status == "failed" and receipt.retryable:
        requeue(secret)
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

from ..config.loader import SyncSettings
from ..errors import ConfigurationError, RemoteNotFoundError, SyncError
from ..models.receipt import SyncReceipt
from ..models.secret import CertificateSecret, Credentials, ParsedCertificate, StoreConfig
from ..persistence.secret_store import SecretStore
from ..stores.base import Store
from ..stores.registry import StoreRegistry
from .annotations import (
    CERT_ID_SUFFIX,
    annotation_key,
    configured_stores,
    is_sync_enabled,
    read_store_config,
    write_store_id,
)
from .certificate import parse_certificate
from .credentials import CredentialResolver

logger = logging.getLogger(__name__)

ALL_STORES = "*"


class SyncStep(str, Enum):
    """Steps of a sync invocation, in order."""

    LOAD_SECRET = "load_secret"
    EXTRACT_CERTIFICATE = "extract_certificate"
    READ_CONFIG = "read_config"
    RESOLVE_CREDENTIALS = "resolve_credentials"
    UPSERT = "upsert"
    PERSIST = "persist"


class SyncOrchestrator:
    """
    Drives sync invocations.

    The secret store, registry and settings are process-wide and passed
    in explicitly; the orchestrator holds no per-secret state.
    """

    def __init__(
        self,
        secret_store: SecretStore,
        registry: StoreRegistry,
        settings: SyncSettings,
    ):
        self.secret_store = secret_store
        self.registry = registry
        self.settings = settings
        self.resolver = CredentialResolver(secret_store)

    def _log_fields(self, secret: CertificateSecret, store: str, **extra: Any) -> Dict[str, Any]:
        fields = {
            "action": "sync",
            "store": store,
            "secret_namespace": secret.namespace,
            "secret_name": secret.name,
        }
        fields.update(extra)
        return fields

    def sync(self, secret: CertificateSecret, store_name: str) -> SyncReceipt:
        """
        Sync one secret to one store.

        Never raises; failures are returned as failed receipts carrying
        the step they happened in.
        """
        step = SyncStep.EXTRACT_CERTIFICATE
        previous_id = ""
        new_id: Optional[str] = None
        persisted = False

        logger.debug(
            f"Syncing {secret.ref} to {store_name}",
            extra=self._log_fields(secret, store_name),
        )

        try:
            cert = parse_certificate(secret)

            step = SyncStep.READ_CONFIG
            store = self.registry.get(store_name)
            config = read_store_config(
                secret,
                store.name,
                scope_key=store.scope_key,
                operator_name=self.settings.operator_name,
            )
            previous_id = config.store_id
            store.validate_config(config)

            step = SyncStep.RESOLVE_CREDENTIALS
            credentials = self._resolve_credentials(store, config)

            step = SyncStep.UPSERT
            new_id = self._upsert(secret, store, config, cert, credentials)

            if new_id != previous_id:
                step = SyncStep.PERSIST
                persisted = self._persist(secret, store.name, new_id, previous_id)

        except SyncError as e:
            logger.error(
                f"Sync of {secret.ref} to {store_name} failed at {step.value}: {e.message}",
                extra=self._log_fields(
                    secret, store_name, step=step.value, error=e.code
                ),
            )
            return SyncReceipt.from_error(
                store=store_name,
                namespace=secret.namespace,
                name=secret.name,
                step=step.value,
                error=e,
                previous_id=previous_id,
                store_id=new_id,
            )
        except Exception as e:
            logger.exception(
                f"Sync of {secret.ref} to {store_name} crashed at {step.value}: {e}",
                extra=self._log_fields(secret, store_name, step=step.value),
            )
            return SyncReceipt.failed(
                store=store_name,
                namespace=secret.namespace,
                name=secret.name,
                step=step.value,
                error_code="internal_error",
                error_message=str(e),
                retryable=True,
                previous_id=previous_id,
                store_id=new_id,
            )

        logger.info(
            f"Certificate {secret.ref} synced to {store_name}: {new_id}",
            extra=self._log_fields(secret, store_name, store_id=new_id),
        )
        return SyncReceipt.ok(
            store=store_name,
            namespace=secret.namespace,
            name=secret.name,
            store_id=new_id,
            previous_id=previous_id,
            persisted=persisted,
        )

    def _resolve_credentials(self, store: Store, config: StoreConfig) -> Credentials:
        if not config.secret_name:
            raise ConfigurationError(
                f"{store.name}-secret-name annotation is required", store=store.name
            )
        return self.resolver.resolve(
            config.secret_namespace,
            config.secret_name,
            store.credential_fields,
            store=store.name,
        )

    def _upsert(
        self,
        secret: CertificateSecret,
        store: Store,
        config: StoreConfig,
        cert: ParsedCertificate,
        credentials: Credentials,
    ) -> str:
        try:
            return store.upsert(config.scope, config.store_id, cert, credentials, config)
        except RemoteNotFoundError:
            if not config.store_id or not self.settings.recreate_missing:
                raise
            logger.warning(
                f"{store.name} object {config.store_id} for {secret.ref} is gone, creating a new one",
                extra=self._log_fields(secret, store.name, store_id=config.store_id),
            )
            return store.upsert(config.scope, "", cert, credentials, config)

    def _persist(
        self,
        secret: CertificateSecret,
        store_name: str,
        new_id: str,
        previous_id: str,
    ) -> bool:
        operator_name = self.settings.operator_name
        if not write_store_id(secret, store_name, new_id, operator_name):
            return False
        try:
            self.secret_store.update_annotations(secret)
        except SyncError:
            # Keep the in-memory secret in line with what is stored
            key = annotation_key(store_name, CERT_ID_SUFFIX, operator_name)
            if previous_id:
                secret.annotations[key] = previous_id
            else:
                secret.annotations.pop(key, None)
            raise
        return True

    def sync_all(self, secret: CertificateSecret) -> List[SyncReceipt]:
        """
        Sync a secret to every store configured in its annotations.

        Requires the secret to opt in with `<operator>/sync-enabled: "true"`.
        """
        operator_name = self.settings.operator_name
        if not is_sync_enabled(secret, operator_name):
            logger.debug(f"Sync not enabled on {secret.ref}")
            return [
                SyncReceipt.skipped(
                    store=ALL_STORES,
                    namespace=secret.namespace,
                    name=secret.name,
                    reason="sync_disabled",
                )
            ]

        stores = configured_stores(secret, self.registry.names(), operator_name)
        if not stores:
            logger.warning(f"Sync enabled on {secret.ref} but no store is configured")
            return [
                SyncReceipt.skipped(
                    store=ALL_STORES,
                    namespace=secret.namespace,
                    name=secret.name,
                    reason="no_stores_configured",
                )
            ]

        return [self.sync(secret, store_name) for store_name in stores]

    def sync_by_name(
        self,
        namespace: str,
        name: str,
        stores: Optional[Sequence[str]] = None,
    ) -> List[SyncReceipt]:
        """
        Load a secret and sync it.

        With explicit `stores`, each is synced regardless of the opt-in
        annotation; otherwise this behaves like sync_all.
        """
        try:
            secret = self.secret_store.get_certificate_secret(namespace, name)
        except SyncError as e:
            logger.error(
                f"Loading {namespace}/{name} failed: {e.message}",
                extra={
                    "action": "sync",
                    "secret_namespace": namespace,
                    "secret_name": name,
                    "step": SyncStep.LOAD_SECRET.value,
                },
            )
            return [
                SyncReceipt.from_error(
                    store=store_name,
                    namespace=namespace,
                    name=name,
                    step=SyncStep.LOAD_SECRET.value,
                    error=e,
                )
                for store_name in (stores or [ALL_STORES])
            ]

        if stores:
            return [self.sync(secret, store_name) for store_name in stores]
        return self.sync_all(secret)
