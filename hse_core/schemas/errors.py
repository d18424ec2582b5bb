"""Structured error payload schemas used by API responses."""

from __future__ import annotations

from pydantic import Field
from sqlmodel import SQLModel


class ErrorResponse(SQLModel):
    """Standardized error payload returned for rejected requests."""

    detail: str | dict[str, object] | list[object] = Field(
        description="Error payload; a message string for domain errors.",
        examples=[
            "An overlapping delegation already exists for this zone.",
            [{"loc": ["body", "end_at"], "msg": "Field required"}],
        ],
    )
    request_id: str | None = Field(
        default=None,
        description="Request correlation identifier injected by middleware.",
    )
    code: str | None = Field(
        default=None,
        description="Machine-readable error code.",
        examples=["conflict", "validation_error", "permission_denied", "not_found"],
    )
    retryable: bool | None = Field(
        default=None,
        description="Whether a client should retry the same request unchanged.",
    )
