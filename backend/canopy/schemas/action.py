"""Canopy Backend: Action Schemas."""

import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import Field

from canopy.schemas.common import CamelModel


class ActionResponse(CamelModel):
    id: uuid.UUID
    member_id: Optional[uuid.UUID] = None
    item_id: Optional[uuid.UUID] = None
    item_path: Optional[str] = None
    view: str
    type: str
    extra: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime


class ActionListResponse(CamelModel):
    actions: List[ActionResponse]
    total_count: int
