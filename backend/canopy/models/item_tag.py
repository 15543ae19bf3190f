"""
Canopy Backend: Item Tag Model
===============================

Visibility tags, inherited by the whole subtree like memberships:

    public   anyone (signed in or not) can read the item
    hidden   members with only read access do not see the item in listings

Scoped by `item_path` for the same reason as memberships.
"""

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import ForeignKey, Index, String, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from canopy.database import Base
from canopy.models._columns import created_at, uuid_pk

TAG_TYPES = ("public", "hidden")


class ItemTag(Base):
    __tablename__ = "item_tags"

    id: Mapped[uuid.UUID] = uuid_pk()
    type: Mapped[str] = mapped_column(String(32), nullable=False)
    item_path: Mapped[str] = mapped_column(Text, nullable=False)
    creator_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(), ForeignKey("members.id", ondelete="SET NULL"), nullable=True
    )
    created_at: Mapped[datetime] = created_at()

    __table_args__ = (
        UniqueConstraint("item_path", "type", name="uq_item_tags_path_type"),
        Index(
            "ix_item_tags_item_path",
            "item_path",
            postgresql_ops={"item_path": "text_pattern_ops"},
        ),
    )
