"""
Pydantic response schemas for the FastAPI soil data service.

The /api/soil body itself is src.data.schema.AggregatedResult.
"""

from typing import Optional
from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """Body of 400/500 responses."""
    error: str
    details: Optional[str] = Field(
        None, description="Traceback text; omitted in production",
    )


class HealthResponse(BaseModel):
    """Health check response."""
    status: str


class ConnectionTestResponse(BaseModel):
    message: str
    timestamp: str
