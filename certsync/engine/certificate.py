"""
Certificate Extractor — Parse a secret's TLS data for upload.

Reads the standard kubernetes.io/tls fields:

- tls.crt: leaf certificate, optionally followed by intermediates
- tls.key: private key
- ca.crt: optional CA bundle, appended to the chain when not already present

The private key is passed through verbatim; it is only loaded to check
that it is valid PEM.
"""

from __future__ import annotations

from typing import List

from cryptography import x509
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization

from ..errors import MalformedCertificateError
from ..models.secret import CertificateSecret, ParsedCertificate

CERT_FIELD = "tls.crt"
KEY_FIELD = "tls.key"
CA_FIELD = "ca.crt"


def _load_certs(data: bytes, field_name: str, ref: str) -> List[x509.Certificate]:
    try:
        certs = x509.load_pem_x509_certificates(data)
    except ValueError as e:
        raise MalformedCertificateError(
            f"{field_name} in secret {ref} is not valid PEM: {e}"
        ) from e
    if not certs:
        raise MalformedCertificateError(f"{field_name} in secret {ref} has no certificates")
    return certs


def parse_certificate(secret: CertificateSecret) -> ParsedCertificate:
    """
    Build a ParsedCertificate from the secret's data.

    Raises MalformedCertificateError when tls.crt or tls.key is missing,
    empty, or not valid PEM, or when ca.crt is present but invalid.
    """
    ref = secret.ref
    cert_data = secret.data.get(CERT_FIELD)
    key_data = secret.data.get(KEY_FIELD)

    if not cert_data or not cert_data.strip():
        raise MalformedCertificateError(f"{CERT_FIELD} not found in secret {ref}")
    if not key_data or not key_data.strip():
        raise MalformedCertificateError(f"{KEY_FIELD} not found in secret {ref}")

    chain = _load_certs(cert_data, CERT_FIELD, ref)

    ca_data = secret.data.get(CA_FIELD)
    if ca_data and ca_data.strip():
        seen = {cert.public_bytes(serialization.Encoding.DER) for cert in chain}
        for ca_cert in _load_certs(ca_data, CA_FIELD, ref):
            der = ca_cert.public_bytes(serialization.Encoding.DER)
            if der not in seen:
                chain.append(ca_cert)
                seen.add(der)

    try:
        serialization.load_pem_private_key(key_data, password=None)
    except (ValueError, TypeError, UnsupportedAlgorithm) as e:
        raise MalformedCertificateError(
            f"{KEY_FIELD} in secret {ref} is not a valid unencrypted PEM key"
        ) from e

    leaf = chain[0].public_bytes(serialization.Encoding.PEM)
    intermediates = b"".join(
        cert.public_bytes(serialization.Encoding.PEM) for cert in chain[1:]
    )
    return ParsedCertificate(leaf=leaf, intermediates=intermediates, private_key=key_data)
