"""
Annotation Schema — Store configuration and sync state on the secret.

The certificate secret's annotations are the only persisted state of the
sync protocol. All keys live under the operator name:

    <operator>/sync-enabled          "true" opts the secret in
    <operator>/<store>-secret-name   credential secret, "ns/name" or "name"
    <operator>/<store>-<scope key>   zone/target scope (e.g. cloudflare-zone-id)
    <operator>/<store>-cert-id       store object id recorded after a sync

Only `-cert-id` is ever written, and only when the id changed.

## Usage

    from certsync.engine.annotations import read_store_config, write_store_id

    config = read_store_config(secret, "cloudflare", scope_key="zone-id")
    if new_id != config.store_id:
        if write_store_id(secret, "cloudflare", new_id):
            persist(secret)
"""

from __future__ import annotations

import logging
from typing import Iterable, List, Optional

from ..config.loader import DEFAULT_OPERATOR_NAME
from ..models.secret import CertificateSecret, StoreConfig

logger = logging.getLogger(__name__)

SECRET_NAME_SUFFIX = "secret-name"
CERT_ID_SUFFIX = "cert-id"
SYNC_ENABLED_KEY = "sync-enabled"

# Separator between namespace and name in a credential reference
NAMESPACE_SEPARATOR = "/"


def annotation_key(
    store: str,
    suffix: str,
    operator_name: str = DEFAULT_OPERATOR_NAME,
) -> str:
    """Full annotation key for a store-scoped setting."""
    return f"{operator_name}/{store}-{suffix}"


def store_prefix(store: str, operator_name: str = DEFAULT_OPERATOR_NAME) -> str:
    return f"{operator_name}/{store}-"


def split_secret_ref(ref: str, default_namespace: str) -> tuple:
    """
    Split a credential reference into (namespace, name).

    "ops/tls-creds" -> ("ops", "tls-creds")
    "tls-creds"     -> (default_namespace, "tls-creds")
    """
    ref = ref.strip()
    if NAMESPACE_SEPARATOR in ref:
        namespace, _, name = ref.partition(NAMESPACE_SEPARATOR)
        return namespace.strip() or default_namespace, name.strip()
    return default_namespace, ref


def read_store_config(
    secret: CertificateSecret,
    store: str,
    scope_key: Optional[str] = None,
    operator_name: str = DEFAULT_OPERATOR_NAME,
) -> StoreConfig:
    """
    Read one store's configuration from the secret's annotations.

    Any subset of keys may be absent. A missing credential reference is not
    an error here; it fails when credentials are resolved.
    """
    annotations = secret.annotations or {}
    prefix = store_prefix(store, operator_name)

    raw_ref = annotations.get(prefix + SECRET_NAME_SUFFIX, "")
    namespace, name = split_secret_ref(raw_ref, secret.namespace)

    scope = ""
    if scope_key:
        scope = annotations.get(prefix + scope_key, "").strip()

    store_id = annotations.get(prefix + CERT_ID_SUFFIX, "").strip()

    reserved = {SECRET_NAME_SUFFIX, CERT_ID_SUFFIX}
    if scope_key:
        reserved.add(scope_key)
    extra = {
        key[len(prefix):]: value
        for key, value in annotations.items()
        if key.startswith(prefix) and key[len(prefix):] not in reserved
    }

    return StoreConfig(
        store=store,
        secret_namespace=namespace,
        secret_name=name,
        scope=scope,
        store_id=store_id,
        source_namespace=secret.namespace,
        source_name=secret.name,
        extra=extra,
    )


def write_store_id(
    secret: CertificateSecret,
    store: str,
    new_id: str,
    operator_name: str = DEFAULT_OPERATOR_NAME,
) -> bool:
    """
    Record the store object id on the in-memory secret.

    Returns True when the annotation changed and the secret must be
    persisted, False when the recorded id already matches.
    """
    key = annotation_key(store, CERT_ID_SUFFIX, operator_name)
    if secret.annotations.get(key) == new_id:
        return False
    secret.annotations[key] = new_id
    logger.debug(f"Recorded {key}={new_id} on {secret.ref}")
    return True


def is_sync_enabled(
    secret: CertificateSecret,
    operator_name: str = DEFAULT_OPERATOR_NAME,
) -> bool:
    value = secret.annotations.get(f"{operator_name}/{SYNC_ENABLED_KEY}", "")
    return value.strip().lower() == "true"


def configured_stores(
    secret: CertificateSecret,
    stores: Iterable[str],
    operator_name: str = DEFAULT_OPERATOR_NAME,
) -> List[str]:
    """Stores that have at least one annotation on the secret, sorted."""
    keys = list(secret.annotations)
    found = []
    for store in stores:
        prefix = store_prefix(store, operator_name)
        if any(key.startswith(prefix) for key in keys):
            found.append(store)
    return sorted(found)
