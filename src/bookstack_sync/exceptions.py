"""Error types raised by the BookStack client and the sync engine.

Remote failures are classified at the HTTP boundary into one subclass of
``BookStackError`` per failure mode, so callers can decide whether a call
is worth retrying.  Local failures (bad paths, cache ordering bugs, an
unusable cache file) derive from ``SyncError``.
"""

from __future__ import annotations

import json
from typing import Any

# ---------------------------------------------------------------------------
# Remote API errors
# ---------------------------------------------------------------------------


class BookStackError(Exception):
    """Base class for errors reported by the BookStack REST API.

    Attributes:
        status_code: HTTP status associated with the failure.
        response: Decoded response payload, when one was available.
    """

    status_code: int = 500

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        response: Any = None,
    ) -> None:
        super().__init__(message)
        if status_code is not None:
            self.status_code = status_code
        self.response = response


class AuthenticationFailed(BookStackError):
    status_code = 401

    def __init__(self) -> None:
        super().__init__(
            "BookStack API authentication failed. Check your token credentials."
        )


class NotFound(BookStackError):
    status_code = 404

    def __init__(self, resource: str, resource_id: int | str) -> None:
        super().__init__(
            f"Resource not found: {resource} with ID {resource_id}"
        )
        self.resource = resource
        self.resource_id = resource_id


class ValidationFailed(BookStackError):
    status_code = 422

    def __init__(self, errors: Any) -> None:
        super().__init__(
            f"Validation failed: {json.dumps(errors, default=str)}",
            response=errors,
        )
        self.errors = errors


class RateLimited(BookStackError):
    status_code = 429

    def __init__(self, retry_after: float | None = None) -> None:
        super().__init__(
            "API rate limit exceeded. Please wait before making more requests."
        )
        self.retry_after = retry_after


class ServerError(BookStackError):
    def __init__(self, status_code: int = 500, body: Any = None) -> None:
        super().__init__(
            f"BookStack server error occurred (HTTP {status_code}).",
            status_code=status_code,
            response=body,
        )
        self.body = body


class ConnectionFailed(BookStackError):
    def __init__(self, url: str) -> None:
        super().__init__(f"Failed to connect to BookStack API at: {url}")
        self.url = url


# ---------------------------------------------------------------------------
# Local sync errors
# ---------------------------------------------------------------------------


class SyncError(Exception):
    """Base class for local failures raised by the sync engine."""

    def __init__(
        self,
        message: str,
        local_path: str | None = None,
        remote_id: int | None = None,
    ) -> None:
        super().__init__(message)
        self.local_path = local_path
        self.remote_id = remote_id


class LocalPathNotFound(SyncError):
    def __init__(self, path: str) -> None:
        super().__init__(f"Local path not found: {path}", local_path=path)


class ParentNotFound(SyncError):
    """A chapter or page was written before its parent was cached."""

    def __init__(
        self, kind: str, parent_kind: str, parent_remote_id: int
    ) -> None:
        super().__init__(
            f"Cannot cache {kind}: parent {parent_kind} with BookStack ID "
            f"{parent_remote_id} is not in the local cache",
            remote_id=parent_remote_id,
        )
        self.kind = kind
        self.parent_kind = parent_kind
        self.parent_remote_id = parent_remote_id


class StoreUnavailable(SyncError):
    def __init__(self, path: str, reason: str = "") -> None:
        message = f"Local cache unavailable: {path}"
        if reason:
            message += f" ({reason})"
        super().__init__(message, local_path=path)
        self.path = path
