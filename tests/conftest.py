"""
Shared fixtures for sync tests.

Provides generated TLS material (root CA, intermediate and leaf), a
certificate secret factory, and an in-memory fake of the Kubernetes
CoreV1Api secret methods with resourceVersion conflict checks.
"""

from __future__ import annotations

import base64
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509.oid import NameOID
from kubernetes.client import V1ObjectMeta, V1Secret
from kubernetes.client.rest import ApiException

from certsync.config.loader import SyncSettings
from certsync.models.secret import CertificateSecret

OP = "cert-manager-sync.lestak.sh"


def _make_cert(common_name, issuer_cert=None, issuer_key=None, is_ca=False):
    key = ec.generate_private_key(ec.SECP256R1())
    subject = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, common_name)])
    issuer = issuer_cert.subject if issuer_cert is not None else subject
    now = datetime.now(timezone.utc)
    cert = (
        x509.CertificateBuilder()
        .subject_name(subject)
        .issuer_name(issuer)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - timedelta(days=1))
        .not_valid_after(now + timedelta(days=90))
        .add_extension(x509.BasicConstraints(ca=is_ca, path_length=None), critical=True)
        .sign(issuer_key or key, hashes.SHA256())
    )
    return cert, key


def _pem(cert) -> bytes:
    return cert.public_bytes(serialization.Encoding.PEM)


def _key_pem(key) -> bytes:
    return key.private_bytes(
        serialization.Encoding.PEM,
        serialization.PrivateFormat.PKCS8,
        serialization.NoEncryption(),
    )


@pytest.fixture(scope="session")
def tls_material() -> Dict[str, bytes]:
    """PEM material: root CA, intermediate, leaf and leaf key."""
    root, root_key = _make_cert("Test Root CA", is_ca=True)
    inter, inter_key = _make_cert("Test Intermediate", root, root_key, is_ca=True)
    leaf, leaf_key = _make_cert("example.com", inter, inter_key)
    other_leaf, other_key = _make_cert("example.com", inter, inter_key)
    return {
        "root": _pem(root),
        "intermediate": _pem(inter),
        "leaf": _pem(leaf),
        "key": _key_pem(leaf_key),
        "other_leaf": _pem(other_leaf),
        "other_key": _key_pem(other_key),
    }


@pytest.fixture
def tls_data(tls_material) -> Dict[str, bytes]:
    """Data fields of a cert-manager style TLS secret."""
    return {
        "tls.crt": tls_material["leaf"] + tls_material["intermediate"],
        "tls.key": tls_material["key"],
        "ca.crt": tls_material["root"],
    }


@pytest.fixture
def make_secret(tls_data):
    """Factory for CertificateSecret objects."""

    def _make(
        annotations: Optional[Dict[str, str]] = None,
        data: Optional[Dict[str, bytes]] = None,
        namespace: str = "default",
        name: str = "example-tls",
        resource_version: Optional[str] = "1",
    ) -> CertificateSecret:
        return CertificateSecret(
            namespace=namespace,
            name=name,
            annotations=dict(annotations or {}),
            data=dict(tls_data if data is None else data),
            resource_version=resource_version,
        )

    return _make


class FakeCoreV1Api:
    """
    In-memory stand-in for the secret methods of kubernetes CoreV1Api.

    Data is stored base64-encoded, like the real API returns it. Patches
    carrying a stale metadata.resourceVersion fail with 409.
    """

    def __init__(self):
        self.secrets: Dict[tuple, V1Secret] = {}
        self.patches: List[dict] = []
        self.reads: List[tuple] = []

    def add_secret(
        self,
        namespace: str,
        name: str,
        data: Dict[str, bytes],
        annotations: Optional[Dict[str, str]] = None,
        resource_version: str = "1",
    ) -> V1Secret:
        secret = V1Secret(
            metadata=V1ObjectMeta(
                name=name,
                namespace=namespace,
                annotations=dict(annotations or {}),
                resource_version=resource_version,
            ),
            data={k: base64.b64encode(v).decode("ascii") for k, v in data.items()},
        )
        self.secrets[(namespace, name)] = secret
        return secret

    def read_namespaced_secret(self, name, namespace, **kwargs):
        self.reads.append((namespace, name))
        secret = self.secrets.get((namespace, name))
        if secret is None:
            raise ApiException(status=404, reason="Not Found")
        return secret

    def patch_namespaced_secret(self, name, namespace, body, **kwargs):
        self.patches.append({"namespace": namespace, "name": name, "body": body, **kwargs})
        secret = self.secrets.get((namespace, name))
        if secret is None:
            raise ApiException(status=404, reason="Not Found")
        metadata = body.get("metadata", {})
        expected = metadata.get("resourceVersion")
        if expected is not None and expected != secret.metadata.resource_version:
            raise ApiException(status=409, reason="Conflict")
        annotations = dict(secret.metadata.annotations or {})
        annotations.update(metadata.get("annotations", {}))
        secret.metadata.annotations = annotations
        secret.metadata.resource_version = str(int(secret.metadata.resource_version) + 1)
        return secret


@pytest.fixture
def core_api() -> FakeCoreV1Api:
    """Fake CoreV1Api with no secrets."""
    return FakeCoreV1Api()


@pytest.fixture
def settings() -> SyncSettings:
    """Default sync settings."""
    return SyncSettings()
