"""Error taxonomy shared by the row store, the repositories and the services.

Every failure that reaches an endpoint is a :class:`BackendError`; routers
translate it into an ``HTTPException`` using ``status_code`` and ``message``.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class BackendError(Exception):
    """Base class for failures raised past a repository boundary."""

    message: str
    code: str = "backend_error"
    status_code: int = 500

    def __str__(self) -> str:  # pragma: no cover - human readable message
        return self.message


@dataclass
class BackendUnavailable(BackendError):
    """No backend connection is configured (demo mode)."""

    message: str = "Backend not configured"
    code: str = "backend_unavailable"
    status_code: int = 503


@dataclass
class QueryFailed(BackendError):
    """The backend rejected the query; ``message`` is its verbatim error."""

    message: str = "Unknown error"
    code: str = "query_failed"
    status_code: int = 502


@dataclass
class NotAuthenticated(BackendError):
    message: str = "not-authenticated"
    code: str = "not-authenticated"
    status_code: int = 401


@dataclass
class NotFound(BackendError):
    message: str = "Not found"
    code: str = "not_found"
    status_code: int = 404


@dataclass
class ValidationFailed(BackendError):
    """Payload rejected before any query was sent."""

    message: str = "Invalid payload"
    code: str = "validation_failed"
    status_code: int = 422
