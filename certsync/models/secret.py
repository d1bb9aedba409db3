"""
Secret Models — Pydantic schemas for the sync unit of work.

A CertificateSecret is the in-memory view of a Kubernetes TLS secret.
Everything a store needs is derived from it: the StoreConfig from its
annotations and the ParsedCertificate from its data.
"""

from __future__ import annotations

import base64
import hashlib
from datetime import datetime
from typing import Any, Dict, List, Optional

from cryptography import x509
from cryptography.hazmat.primitives.serialization import Encoding
from cryptography.x509.oid import NameOID
from pydantic import BaseModel, ConfigDict, Field


class CertificateSecret(BaseModel):
    """A certificate-bearing secret."""

    namespace: str
    name: str
    annotations: Dict[str, str] = Field(default_factory=dict)
    data: Dict[str, bytes] = Field(default_factory=dict)
    resource_version: Optional[str] = None

    @property
    def ref(self) -> str:
        return f"{self.namespace}/{self.name}"

    @classmethod
    def from_kube(cls, secret: Any) -> "CertificateSecret":
        """
        Build from a kubernetes.client.V1Secret.

        The API returns data values base64-encoded; they are decoded here
        so the rest of the system only sees raw bytes.
        """
        metadata = secret.metadata
        raw_data = secret.data or {}
        return cls(
            namespace=metadata.namespace,
            name=metadata.name,
            annotations=dict(metadata.annotations or {}),
            data={key: base64.b64decode(value) for key, value in raw_data.items()},
            resource_version=metadata.resource_version,
        )


class StoreConfig(BaseModel):
    """Per-store configuration read from a secret's annotations."""

    store: str
    secret_namespace: str = ""
    secret_name: str = ""
    scope: str = ""
    store_id: str = ""
    # The certificate secret the annotations were read from
    source_namespace: str = ""
    source_name: str = ""
    store_id: str = ""
    # Any other <store>-<suffix> annotation, keyed by suffix
    extra: Dict[str, str] = Field(default_factory=dict)

    @property
    def secret_ref(self) -> str:
        return f"{self.secret_namespace}/{self.secret_name}"

    @property
    def first_sync(self) -> bool:
        return not self.store_id


class Credentials(BaseModel):
    """Resolved credential fields. Never cached or persisted."""

    store: str
    namespace: str
    name: str
    values: Dict[str, str] = Field(default_factory=dict, repr=False)

    def __getitem__(self, key: str) -> str:
        return self.values[key]


class ParsedCertificate(BaseModel):
    """Leaf certificate, intermediates and private key, ready for upload."""

    model_config = ConfigDict(frozen=True)

    leaf: bytes
    intermediates: bytes = b""
    private_key: bytes = Field(repr=False)

    @property
    def full_chain(self) -> bytes:
        return self.leaf + self.intermediates

    def _leaf_cert(self) -> x509.Certificate:
        return x509.load_pem_x509_certificate(self.leaf)

    @property
    def fingerprint_sha1(self) -> str:
        der = self._leaf_cert().public_bytes(Encoding.DER)
        return hashlib.sha1(der).hexdigest()

    @property
    def not_after(self) -> datetime:
        return self._leaf_cert().not_valid_after_utc

    @property
    def common_name(self) -> Optional[str]:
        attrs = self._leaf_cert().subject.get_attributes_for_oid(NameOID.COMMON_NAME)
        if not attrs:
            return None
        return str(attrs[0].value)

    @property
    def hosts(self) -> List[str]:
        """DNS names the leaf covers, sorted. Falls back to the common name."""
        cert = self._leaf_cert()
        try:
            san = cert.extensions.get_extension_for_class(x509.SubjectAlternativeName)
        except x509.ExtensionNotFound:
            names: List[str] = []
        else:
            names = san.value.get_values_for_type(x509.DNSName)
        if not names and self.common_name:
            names = [self.common_name]
        return sorted(set(names))
