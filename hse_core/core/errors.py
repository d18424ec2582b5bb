"""Domain error taxonomy raised by the zone and work-item services.

Every error is terminal for the calling request: none of them is transient,
so nothing in the core retries on them. HTTP-facing consumers translate them
through `install_error_handling`.
"""

from __future__ import annotations

from fastapi import status


class DomainError(Exception):
    """Base class for errors surfaced to the caller as a rejected request."""

    status_code: int = status.HTTP_400_BAD_REQUEST
    code: str = "domain_error"
    retryable: bool = False

    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail


class ValidationError(DomainError):
    """Malformed input: bad interval, missing field, invalid status value."""

    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    code = "validation_error"


class ConflictError(DomainError):
    """Invariant violation against the current store state."""

    status_code = status.HTTP_409_CONFLICT
    code = "conflict"


class PermissionDeniedError(DomainError):
    """Principal is not authorized for the entity at this moment."""

    status_code = status.HTTP_403_FORBIDDEN
    code = "permission_denied"


class NotFoundError(DomainError):
    """Referenced zone, agent, delegation or work item does not exist."""

    status_code = status.HTTP_404_NOT_FOUND
    code = "not_found"
