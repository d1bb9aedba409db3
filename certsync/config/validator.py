"""
Configuration Validator — Check a secret's store annotations.

Validates, without any remote call, that a certificate secret carries the
annotations each of its stores needs, and gives guidance for what is
missing.

## Usage

    from certsync.config.validator import ConfigValidator

    validator = ConfigValidator()
    for store, status in validator.validate_secret(secret).items():
        if not status.configured:
            print(f"{store}: Missing {status.missing}")
            print(f"  → {status.guidance}")
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from ..engine.annotations import (
    CERT_ID_SUFFIX,
    SECRET_NAME_SUFFIX,
    annotation_key,
    configured_stores,
    read_store_config,
)
from ..models.secret import CertificateSecret
from ..stores.registry import STORE_TYPES
from .loader import DEFAULT_OPERATOR_NAME

logger = logging.getLogger(__name__)


@dataclass
class ConfigStatus:
    """Status of a store configuration check."""

    store: str
    configured: bool
    missing: List[str] = field(default_factory=list)
    present: List[str] = field(default_factory=list)
    credential_ref: Optional[str] = None
    scope: Optional[str] = None
    store_id: Optional[str] = None
    guidance: Optional[str] = None

    def to_dict(self) -> Dict:
        """Convert to dictionary for logging."""
        return {
            "store": self.store,
            "configured": self.configured,
            "missing": self.missing,
            "credential_ref": self.credential_ref,
            "scope": self.scope,
            "store_id": self.store_id,
            "guidance": self.guidance,
        }


# Annotation hints per store; fields and scope come from the store classes
STORE_GUIDANCE = {
    "cloudflare": {
        "optional": ["bundle-method"],
        "guidance": "Create a secret with api_key and email from https://dash.cloudflare.com/profile/api-tokens",
    },
    "digitalocean": {
        "optional": ["cert-name"],
        "guidance": "Create a secret with api_key from https://cloud.digitalocean.com/account/api/tokens",
    },
}

# Store configuration requirements
STORE_REQUIREMENTS = {
    name: {
        "credential_fields": list(store_type.credential_fields),
        "scope_key": store_type.scope_key,
        "optional": [],
        "guidance": None,
        **STORE_GUIDANCE.get(name, {}),
    }
    for name, store_type in STORE_TYPES.items()
}


class ConfigValidator:
    """
    Validate store annotations on certificate secrets.

    Unknown stores are reported as not configured.
    """

    def __init__(self, operator_name: str = DEFAULT_OPERATOR_NAME):
        self.operator_name = operator_name
        self.requirements = STORE_REQUIREMENTS

    def validate_store(self, secret: CertificateSecret, store: str) -> ConfigStatus:
        """
        Check if a secret is configured for a store.

        Args:
            secret: Certificate secret to check
            store: Name of the store

        Returns:
            ConfigStatus listing present and missing annotation keys
        """
        if store not in self.requirements:
            return ConfigStatus(
                store=store,
                configured=False,
                guidance=f"Unknown store: {store}",
            )

        reqs = self.requirements[store]
        scope_key = reqs.get("scope_key")
        config = read_store_config(secret, store, scope_key, self.operator_name)

        missing = []
        present = []

        name_key = annotation_key(store, SECRET_NAME_SUFFIX, self.operator_name)
        if config.secret_name:
            present.append(name_key)
        else:
            missing.append(name_key)

        if scope_key:
            scope_annotation = annotation_key(store, scope_key, self.operator_name)
            if config.scope:
                present.append(scope_annotation)
            else:
                missing.append(scope_annotation)

        if config.store_id:
            present.append(annotation_key(store, CERT_ID_SUFFIX, self.operator_name))
        for suffix in reqs.get("optional", []):
            if suffix in config.extra:
                present.append(annotation_key(store, suffix, self.operator_name))

        return ConfigStatus(
            store=store,
            configured=not missing,
            missing=missing,
            present=present,
            credential_ref=config.secret_ref if config.secret_name else None,
            scope=config.scope or None,
            store_id=config.store_id or None,
            guidance=reqs.get("guidance") if missing else None,
        )

    def validate_secret(self, secret: CertificateSecret) -> Dict[str, ConfigStatus]:
        """
        Validate every store that has annotations on the secret.

        Returns:
            Dictionary mapping store name to ConfigStatus
        """
        stores = configured_stores(secret, self.requirements, self.operator_name)
        return {store: self.validate_store(secret, store) for store in stores}

    def log_status(self, secret: CertificateSecret) -> None:
        """Log configuration status for every store on the secret."""
        for name, status in self.validate_secret(secret).items():
            if status.configured:
                logger.info(
                    f"✓ {name}: configured for {secret.ref}",
                    extra={"store": name},
                )
            else:
                logger.warning(
                    f"✗ {name}: {secret.ref} missing {', '.join(status.missing)}",
                    extra={"store": name, "missing": status.missing},
                )
