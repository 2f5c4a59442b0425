"""
Response Envelope Schemas
=========================

Every JSON endpoint answers with the same envelope:

    {"success": true, "data": ..., "message": "..."}

Errors use:

    {"success": false, "error": "...", "message": "...", "details": {...}}
"""

from typing import Any, Optional
from pydantic import BaseModel, ConfigDict, Field


class ErrorResponse(BaseModel):
    """Standard error response schema."""

    success: bool = Field(default=False, description="Always false")
    error: str = Field(..., description="Short error label")
    message: str = Field(..., description="Error message")
    details: Optional[dict] = Field(
        default=None,
        description="Additional error details"
    )

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "success": False,
                "error": "Unauthorized access",
                "message": "You can only access your own customers",
                "details": {"reseller_id": "techpro-reseller-001"}
            }
        }
    )


def envelope(data: Any = None, message: str = "", **extra: Any) -> dict:
    """
    Build a success envelope.

    Extra keyword arguments become top-level keys (``scope``, ``resellerId``).
    """
    body = {"success": True, "data": data, "message": message}
    body.update({key: value for key, value in extra.items() if value is not None})
    return body


# Shared OpenAPI error documentation for routers
ERROR_RESPONSES = {
    401: {"model": ErrorResponse, "description": "Not authenticated"},
    403: {"model": ErrorResponse, "description": "Access denied"},
    404: {"model": ErrorResponse, "description": "Not found"},
}
