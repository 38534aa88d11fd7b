"""
Notedly Backend — Shared Response Schemas
===========================================

What:  Error and health payloads shared by every router.
Who:   Error bodies are built by the global exception handlers in main.py.
"""

from typing import Optional

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """
    Standardized error response format for all API errors.

    A concealed access denial is rendered through this model exactly like a
    genuine not-found, so the two bodies are identical.

    Example:
        {
            "error": "not_found",
            "message": "board with ID '9f2c...' was not found",
            "details": null,
            "request_id": "550e8400-e29b-41d4-a716-446655440000"
        }
    """
    error: str = Field(description="Machine-readable error code")
    message: str = Field(description="Human-readable error description")
    details: Optional[dict] = Field(default=None, description="Additional error context")
    request_id: Optional[str] = Field(default=None, description="Request correlation ID")


class HealthResponse(BaseModel):
    """Health check response: process up, database reachable."""
    status: str = Field(description="Overall service status: healthy, unhealthy")
    version: str = Field(description="Application version")
    database: str = Field(description="Database connectivity: connected, disconnected")
    uptime_seconds: float = Field(description="Seconds since service started")
