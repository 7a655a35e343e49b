"""
Failure taxonomy for the sync engine.

Event-level errors (authentication, payload, configuration, tenant store) abort a request
before any tenant is touched and are turned into JSON responses by the
handler registered in main.py.  Destination errors are raised per tenant and
caught at the tenant boundary by the orchestrator.
"""
from __future__ import annotations

from typing import Optional


class SyncError(Exception):
    """Base class; carries the HTTP status used when it aborts a request."""

    status_code: int = 500
    error: str = "Internal Server Error"

    def __init__(self, message: str = "") -> None:
        super().__init__(message or self.error)
        self.message = message or self.error


class AuthenticationFailure(SyncError):
    """Signature missing or wrong – permanent, never retried."""

    status_code = 401
    error = "Unauthorized"


class MalformedPayload(SyncError):
    status_code = 400
    error = "Bad Request"


class ConfigurationMissing(SyncError):
    """A secret or credential the operator must supply is not set."""

    status_code = 500
    error = "Configuration Error"


class TenantStoreUnavailable(SyncError):
    """The tenant store could not be queried; no tenant can be resolved."""

    status_code = 503
    error = "Service Unavailable"


class DestinationUnreachable(SyncError):
    """Network failure, 5xx, or the destination is gone / no longer shared."""

    status_code = 502
    error = "Destination Unreachable"

    def __init__(self, destination_id: str, message: str = "") -> None:
        self.destination_id = destination_id
        super().__init__(message or f"Destination {destination_id} is unreachable")


class WriteRejected(SyncError):
    """The destination refused the payload (validation error)."""

    status_code = 422
    error = "Write Rejected"

    def __init__(
        self,
        destination_id: str,
        detail: str,
        status: Optional[int] = None,
    ) -> None:
        self.destination_id = destination_id
        self.detail = detail
        self.status = status
        super().__init__(f"Destination {destination_id} rejected the record: {detail}")
