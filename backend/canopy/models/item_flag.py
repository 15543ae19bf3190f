"""
Canopy Backend: Item Flag Model
================================

A report raised by a member against an item. A member can flag the same item
once per flag type.
"""

import uuid
from datetime import datetime

from sqlalchemy import ForeignKey, String, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from canopy.database import Base
from canopy.models._columns import created_at, uuid_pk

FLAG_TYPES = (
    "inappropriate-content",
    "hate-speech",
    "fraud-plagiarism",
    "spam",
    "targeted-harassment",
    "false-information",
)


class ItemFlag(Base):
    __tablename__ = "item_flags"

    id: Mapped[uuid.UUID] = uuid_pk()
    type: Mapped[str] = mapped_column(String(64), nullable=False)
    item_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(), ForeignKey("items.id", ondelete="CASCADE"), nullable=False, index=True
    )
    creator_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(), ForeignKey("members.id", ondelete="CASCADE"), nullable=False
    )
    created_at: Mapped[datetime] = created_at()

    __table_args__ = (
        UniqueConstraint("item_id", "creator_id", "type", name="uq_item_flags_item_creator_type"),
    )
