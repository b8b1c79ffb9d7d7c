"""Canonical error envelope for rights engine responses.

Standardized structure:
{
  "error": {
    "code": "string",
    "message": "string",
    "http_status": 400,
    "gate": "rights | null",
    "resource_kind": "string | null",
    "details": {}
  }
}
"""
from __future__ import annotations

from typing import Any, Dict, Literal, Optional

from fastapi import HTTPException
from pydantic import BaseModel, Field

GateType = Literal["rights", None]


class ErrorDetail(BaseModel):
    """Canonical error detail structure."""
    code: str
    message: str
    http_status: int
    gate: Optional[GateType] = None
    resource_kind: Optional[str] = None
    details: Dict[str, Any] = Field(default_factory=dict)


class ErrorEnvelope(BaseModel):
    """Top-level error envelope returned by all endpoints."""
    error: ErrorDetail


def build_error_envelope(
    code: str,
    message: str,
    status_code: int = 400,
    gate: Optional[GateType] = None,
    resource_kind: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None,
) -> ErrorEnvelope:
    """Construct an ErrorEnvelope (without raising)."""
    return ErrorEnvelope(
        error=ErrorDetail(
            code=code,
            message=message,
            http_status=status_code,
            gate=gate,
            resource_kind=resource_kind,
            details=details or {},
        )
    )


def error_response(
    code: str,
    message: str,
    status_code: int = 400,
    gate: Optional[GateType] = None,
    resource_kind: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None,
) -> HTTPException:
    """Construct and raise a standardized error response.

    Args:
        code: Machine-readable error code (e.g., "rights.download_denied")
        message: Human-readable error message
        status_code: HTTP status code (default 400)
        gate: Gate that blocked the call
        resource_kind: The resource type (asset_rights, download, ...)
        details: Additional context dict
    """
    envelope = build_error_envelope(
        code=code,
        message=message,
        status_code=status_code,
        gate=gate,
        resource_kind=resource_kind,
        details=details,
    )
    raise HTTPException(status_code=status_code, detail=envelope.model_dump(mode="json"))


def not_found_error(resource_kind: str, resource_id: str) -> HTTPException:
    """404 for a missing tenant-scoped resource."""
    return error_response(
        code=f"{resource_kind}.not_found",
        message=f"{resource_kind} {resource_id} not found",
        status_code=404,
        resource_kind=resource_kind,
        details={"id": resource_id},
    )
