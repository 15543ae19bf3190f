"""
Canopy Backend: Item Model
===========================

What:  ORM model for the `items` table, the nodes of the content tree.
How:   Position in the tree is a materialized path: the ids of every ancestor
       and of the item itself, root first, joined with "." (see tree/paths.py).
Who:   Read and written by the item service and the mutation planner.

Table Design:
    - path: unique; every subtree query is `path LIKE '<root path>.%'`, served
      by a text_pattern_ops index on PostgreSQL
    - order: float rank among siblings, NULL for root items and for items
      placed "implicitly last"; ranks are spaced by 20 so inserts between two
      siblings take the midpoint without renumbering
    - no parent_id column: the parent is derived from the path

Query Patterns:
    - children:    path LIKE '<p>.%' AND nlevel(path) = nlevel(<p>) + 1
                   (expressed portably as "no further separator after the prefix")
    - descendants: path LIKE '<p>.%'
    - ancestors:   path IN (<every prefix of p>)
"""

import uuid
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import JSON, Float, ForeignKey, Index, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from canopy.database import Base
from canopy.models._columns import created_at, updated_at, uuid_pk

ITEM_TYPES = ("folder", "document", "link", "app", "file")


class Item(Base):
    __tablename__ = "items"

    id: Mapped[uuid.UUID] = uuid_pk()
    name: Mapped[str] = mapped_column(String(500), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    type: Mapped[str] = mapped_column(String(32), nullable=False, default="folder")

    path: Mapped[str] = mapped_column(Text, nullable=False, unique=True)

    # "order" is reserved in SQL; SQLAlchemy quotes it
    order: Mapped[Optional[float]] = mapped_column("order", Float, nullable=True)

    extra: Mapped[Dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    settings: Mapped[Dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    lang: Mapped[str] = mapped_column(String(16), nullable=False, default="en")

    creator_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(), ForeignKey("members.id", ondelete="SET NULL"), nullable=True
    )

    created_at: Mapped[datetime] = created_at()
    updated_at: Mapped[datetime] = updated_at()

    __table_args__ = (
        Index(
            "ix_items_path_pattern",
            "path",
            postgresql_ops={"path": "text_pattern_ops"},
        ),
        Index("ix_items_creator_id", "creator_id"),
    )

    @property
    def is_folder(self) -> bool:
        return self.type == "folder"

    def __repr__(self) -> str:
        return f"<Item(id={self.id}, type='{self.type}', path='{self.path}')>"
