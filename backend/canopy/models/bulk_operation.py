"""
Canopy Backend: Bulk Operation Model
=====================================

What:  Persisted record of an asynchronous move/copy/delete/update request.
How:   Created as `pending` when the request is accepted, flipped to `running`
       by the worker that picks it up and to `completed` once every target has
       been processed. `results` and `errors` are keyed by target id.
Who:   Written by the bulk coordinator and the task queue workers; read by
       GET /api/operations/{id}.

Synchronous runs (few targets) never create a row.
"""

import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import JSON, DateTime, ForeignKey, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from canopy.database import Base
from canopy.models._columns import created_at, uuid_pk

BULK_ACTIONS = ("move", "copy", "delete", "update")
BULK_STATUSES = ("pending", "running", "completed")


class BulkOperation(Base):
    __tablename__ = "bulk_operations"

    id: Mapped[uuid.UUID] = uuid_pk()
    member_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(), ForeignKey("members.id", ondelete="CASCADE"), nullable=False, index=True
    )
    action: Mapped[str] = mapped_column(String(16), nullable=False)
    target_ids: Mapped[List[str]] = mapped_column(JSON, nullable=False, default=list)
    destination_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid(), nullable=True)
    # Fields to write on every target of an update
    changes: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON, nullable=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="pending")
    results: Mapped[Dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    errors: Mapped[Dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    created_at: Mapped[datetime] = created_at()
    completed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    def __repr__(self) -> str:
        return f"<BulkOperation(id={self.id}, action='{self.action}', status='{self.status}')>"
