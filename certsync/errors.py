"""
Sync Errors — Exception taxonomy for the store synchronization protocol.

Every component raises a subclass of SyncError. The orchestrator catches
them at the invocation boundary and turns them into failed receipts, using
`code` and `retryable` to tell the caller whether a later re-sync may help.

## Retryability

- Terminal until the resource is edited: configuration, credential,
  malformed certificate, remote auth/scope/rejected/not-found
- Safe to retry: remote transient failures, cluster API failures,
  annotation write conflicts
"""

from __future__ import annotations

from typing import Iterable, Optional


class SyncError(Exception):
    """Base class for all sync failures."""

    code = "sync_error"
    retryable = False

    def __init__(self, message: str, *, store: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.store = store


class ConfigurationError(SyncError):
    """Missing or invalid annotation-derived configuration."""

    code = "configuration_error"


class CredentialError(SyncError):
    """The credential secret is missing or incomplete."""

    code = "credential_error"


class CredentialNotFound(CredentialError):
    """The referenced credential secret does not exist."""

    def __init__(self, namespace: str, name: str, *, store: Optional[str] = None):
        super().__init__(f"credential secret {namespace}/{name} not found", store=store)
        self.namespace = namespace
        self.name = name


class CredentialFieldMissing(CredentialError):
    """One or more required fields are absent or empty."""

    def __init__(
        self,
        field_names: Iterable[str],
        namespace: str,
        name: str,
        *,
        store: Optional[str] = None,
    ):
        self.field_names = list(field_names)
        fields = ", ".join(self.field_names)
        super().__init__(
            f"{fields} not found in secret {namespace}/{name}", store=store
        )
        self.namespace = namespace
        self.name = name


class MalformedCertificateError(SyncError):
    """The certificate secret lacks TLS data or it is not valid PEM."""

    code = "malformed_certificate"


class RemoteError(SyncError):
    """Base class for failures reported by an external store."""

    code = "remote_error"

    def __init__(
        self,
        message: str,
        *,
        store: Optional[str] = None,
        status_code: Optional[int] = None,
    ):
        super().__init__(message, store=store)
        self.status_code = status_code


class RemoteAuthError(RemoteError):
    """Bad or expired store credentials."""

    code = "remote_auth"


class RemoteScopeError(RemoteError):
    """The zone or target scope does not exist."""

    code = "remote_scope"


class RemoteRejectedError(RemoteError):
    """The store refused the certificate or key material."""

    code = "remote_rejected"


class RemoteNotFoundError(RemoteError):
    """The object to update no longer exists in the store."""

    code = "remote_not_found"


class RemoteTransientError(RemoteError):
    """Network failure, timeout, rate limit or 5xx."""

    code = "remote_transient"
    retryable = True


class SecretStoreError(SyncError):
    """The cluster secret API failed."""

    code = "secret_store_error"
    retryable = True


class PersistenceConflictError(SecretStoreError):
    """The annotation write lost an optimistic-concurrency race."""

    code = "persistence_conflict"


# Names used by the store backend contract
MalformedCertificateData = MalformedCertificateError
AuthenticationFailed = RemoteAuthError
ScopeNotFound = RemoteScopeError
RemoteRejected = RemoteRejectedError
TransientFailure = RemoteTransientError
NotFound = RemoteNotFoundError
