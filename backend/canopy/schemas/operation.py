"""
Canopy Backend: Bulk Operation Schemas
=======================================

Synchronous bulk runs answer 200 with `BulkResult`; asynchronous ones answer
202 with `BulkAccepted` and are later read back as `OperationResponse`.
"""

import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import Field

from canopy.schemas.common import CamelModel


class BulkDestination(CamelModel):
    parent_id: Optional[uuid.UUID] = Field(
        default=None, description="Destination folder; omitted means the root"
    )


class BulkResult(CamelModel):
    results: Dict[str, Any] = Field(default_factory=dict)
    errors: Dict[str, Dict[str, Any]] = Field(default_factory=dict)


class BulkAccepted(CamelModel):
    operation_id: uuid.UUID
    status: str = "pending"
    target_ids: List[uuid.UUID]


class OperationResponse(CamelModel):
    id: uuid.UUID
    action: str
    status: str
    target_ids: List[str]
    destination_id: Optional[uuid.UUID] = None
    results: Dict[str, Any] = Field(default_factory=dict)
    errors: Dict[str, Dict[str, Any]] = Field(default_factory=dict)
    created_at: datetime
    completed_at: Optional[datetime] = None
