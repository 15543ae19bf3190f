"""
Canopy Backend: Shared Schema Pieces
=====================================

What:  Base model for every request/response schema, plus the error and
       health payloads shared by all routers.
How:   Field names stay snake_case in Python and are exposed as camelCase on
       the wire (`parentId`, `createdAt`); both spellings are accepted on input.
"""

from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class ErrorResponse(BaseModel):
    """
    What:  Body of every non-2xx response produced by the global handlers.
    Who:   Documented in route `responses=` so OpenAPI shows the error shape.
    """

    error: str = Field(description="Machine-readable error code, e.g. item_not_found")
    message: str = Field(description="Human-readable description")
    details: Optional[Dict[str, Any]] = Field(default=None, description="Debug context (4xx only)")
    request_id: str = Field(default="", description="Request ID for support correlation")


class HealthResponse(BaseModel):
    status: str = Field(description="healthy or unhealthy")
    version: str
    database: str = Field(description="connected or disconnected")
    task_queue: str = Field(description="running or stopped")
    pending_operations: int = Field(description="Bulk operations waiting for a worker")
    uptime_seconds: float
