"""
Canopy Backend: Published Item Model
=====================================

Marks an item (a "collection") as published. Publishing also tags the item
public; unpublishing removes the row and leaves the tag in place.
"""

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import ForeignKey, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from canopy.database import Base
from canopy.models._columns import created_at, uuid_pk


class ItemPublished(Base):
    __tablename__ = "items_published"

    id: Mapped[uuid.UUID] = uuid_pk()
    item_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(), ForeignKey("items.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    creator_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(), ForeignKey("members.id", ondelete="SET NULL"), nullable=True
    )
    created_at: Mapped[datetime] = created_at()
