"""
Canopy Backend: Action Model (audit log)
=========================================

What:  One row per successful mutation (create, update, move, copy, delete,
       like, publish, ...), plus whatever views clients choose to report.
How:   `item_id` is deliberately not a foreign key: actions outlive the items
       they describe, including the delete action itself.

Index on (item_id, created_at) serves the item actions page; the
member_id index serves "my actions" and the bulk delete of them.
"""

import uuid
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import JSON, ForeignKey, Index, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from canopy.database import Base
from canopy.models._columns import created_at, uuid_pk

ACTION_VIEWS = ("builder", "player", "library", "account", "unknown")


class Action(Base):
    __tablename__ = "actions"

    id: Mapped[uuid.UUID] = uuid_pk()
    member_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(), ForeignKey("members.id", ondelete="CASCADE"), nullable=True
    )
    item_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid(), nullable=True)
    item_path: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    view: Mapped[str] = mapped_column(String(32), nullable=False, default="unknown")
    type: Mapped[str] = mapped_column(String(64), nullable=False)
    extra: Mapped[Dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    created_at: Mapped[datetime] = created_at()

    __table_args__ = (
        Index("ix_actions_item_created", "item_id", "created_at"),
        Index("ix_actions_member_id", "member_id"),
    )
