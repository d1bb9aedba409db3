"""
Receipt Model — Sync invocation results.

Every sync invocation produces a receipt, regardless of success or failure.
Receipts are what crosses the invocation boundary: errors are captured
here instead of propagating to the caller.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Literal, Optional

from pydantic import BaseModel, Field

from ..errors import SyncError


class ErrorDetails(BaseModel):
    """Details about a sync failure."""

    code: str
    message: str
    retryable: bool = False


class SyncReceipt(BaseModel):
    """
    Result of syncing one secret to one store.

    `store_id` is the authoritative remote object id after the sync;
    `persisted` tells whether the annotation write-back happened.
    """

    status: Literal["ok", "skipped", "failed"]
    store: str
    namespace: str
    name: str
    store_id: Optional[str] = None
    previous_id: Optional[str] = None
    persisted: bool = False
    step: Optional[str] = None
    reason: Optional[str] = None
    ts_iso: str = Field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )
    error: Optional[ErrorDetails] = None

    @property
    def secret_ref(self) -> str:
        return f"{self.namespace}/{self.name}"

    @property
    def retryable(self) -> bool:
        return bool(self.error and self.error.retryable)

    @classmethod
    def ok(
        cls,
        store: str,
        namespace: str,
        name: str,
        store_id: str,
        previous_id: Optional[str] = None,
        persisted: bool = False,
    ) -> "SyncReceipt":
        """Create a successful receipt."""
        return cls(
            status="ok",
            store=store,
            namespace=namespace,
            name=name,
            store_id=store_id,
            previous_id=previous_id or None,
            persisted=persisted,
        )

    @classmethod
    def skipped(
        cls,
        store: str,
        namespace: str,
        name: str,
        reason: str,
    ) -> "SyncReceipt":
        """Create a skipped receipt."""
        return cls(
            status="skipped",
            store=store,
            namespace=namespace,
            name=name,
            reason=reason,
        )

    @classmethod
    def failed(
        cls,
        store: str,
        namespace: str,
        name: str,
        step: str,
        error_code: str,
        error_message: str,
        retryable: bool = False,
        previous_id: Optional[str] = None,
        store_id: Optional[str] = None,
    ) -> "SyncReceipt":
        """Create a failed receipt."""
        return cls(
            status="failed",
            store=store,
            namespace=namespace,
            name=name,
            step=step,
            previous_id=previous_id or None,
            store_id=store_id,
            error=ErrorDetails(
                code=error_code,
                message=error_message,
                retryable=retryable,
            ),
        )

    @classmethod
    def from_error(
        cls,
        store: str,
        namespace: str,
        name: str,
        step: str,
        error: SyncError,
        previous_id: Optional[str] = None,
        store_id: Optional[str] = None,
    ) -> "SyncReceipt":
        """Create a failed receipt from a SyncError."""
        return cls.failed(
            store=store,
            namespace=namespace,
            name=name,
            step=step,
            error_code=error.code,
            error_message=error.message,
            retryable=error.retryable,
            previous_id=previous_id,
            store_id=store_id,
        )
