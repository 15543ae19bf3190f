"""Canopy Backend: Item Like Model (one row per member and liked item)."""

import uuid
from datetime import datetime

from sqlalchemy import ForeignKey, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from canopy.database import Base
from canopy.models._columns import created_at, uuid_pk


class ItemLike(Base):
    __tablename__ = "item_likes"

    id: Mapped[uuid.UUID] = uuid_pk()
    item_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(), ForeignKey("items.id", ondelete="CASCADE"), nullable=False, index=True
    )
    creator_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(), ForeignKey("members.id", ondelete="CASCADE"), nullable=False, index=True
    )
    created_at: Mapped[datetime] = created_at()

    __table_args__ = (
        UniqueConstraint("item_id", "creator_id", name="uq_item_likes_item_creator"),
    )
