"""
Response bodies shared by several routers.
"""

from datetime import datetime
from typing import Any, List, Literal, Optional

from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    """Body of ``GET /health``, polled by the load balancer and uptime checks."""

    status: Literal["healthy", "degraded"]
    version: str
    timestamp: datetime
    database: Literal["connected", "disconnected"]
    environment: str

    model_config = {
        "json_schema_extra": {
            "example": {
                "status": "healthy",
                "version": "1.0.0",
                "timestamp": "2026-01-15T10:30:00Z",
                "database": "connected",
                "environment": "production",
            }
        }
    }


class ErrorResponse(BaseModel):
    """Every non-2xx JSON body. Carries no exception text or secrets."""

    error: str = Field(..., description="Human-readable error message")
    details: Optional[List[Any]] = Field(default=None, description="Field errors, 422 only")


class SuccessResponse(BaseModel):
    success: bool = True
