"""
SightEd Backend — Shared Response Schemas
===========================================

What:  Error and health payloads shared by every router.
"""

from typing import Any, Optional

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """
    Standardized error body returned by the global exception handlers.

    Example (upstream quota):
        {
            "error": "quota_exceeded",
            "message": "The quota has been exceeded",
            "details": "QUOTA_EXCEEDED",
            "request_id": "1f0c2a9b"
        }
    """
    error: str = Field(description="Machine-readable error code")
    message: str = Field(description="Human-readable error description")
    details: Optional[Any] = Field(default=None, description="Additional error context")
    request_id: Optional[str] = Field(default=None, description="Request correlation ID")


class HealthResponse(BaseModel):
    status: str = Field(description="healthy, degraded or unhealthy")
    timestamp: str = Field(description="Server time (UTC ISO 8601)")
    version: str = Field(description="Application version")
    storage: str = Field(description="Document store status: connected, disconnected")
    gemini: str = Field(description="Gemini API status: available, unavailable, circuit_open")
    uptime_seconds: float = Field(description="Seconds since service started")


class DatabaseStatusResponse(BaseModel):
    backend: str = Field(description="Configured document store: sql or memory")
    dialect: Optional[str] = Field(default=None, description="SQL dialect when backend is sql")
    healthy: bool = Field(description="Whether the store answered a health check")
