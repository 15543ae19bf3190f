"""
Canopy Backend: Item Membership Model
======================================

What:  An explicit permission grant of one member over an item and all of its
       descendants.
How:   Scoped by `item_path` rather than a foreign key to items, so a move
       rewrites it with the same prefix statement as the items themselves
       (MembershipRepository.rewrite_prefix).

Minimality: for one member, no row lies below another row of that member with
a permission lower than or equal to the ancestor's. Services keep this true
on create, update, move and copy.
"""

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import ForeignKey, Index, String, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from canopy.database import Base
from canopy.models._columns import created_at, updated_at, uuid_pk

PERMISSIONS = ("read", "write", "admin")


class ItemMembership(Base):
    __tablename__ = "item_memberships"

    id: Mapped[uuid.UUID] = uuid_pk()
    member_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(), ForeignKey("members.id", ondelete="CASCADE"), nullable=False
    )
    item_path: Mapped[str] = mapped_column(Text, nullable=False)
    permission: Mapped[str] = mapped_column(String(16), nullable=False)
    creator_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(), ForeignKey("members.id", ondelete="SET NULL"), nullable=True
    )

    created_at: Mapped[datetime] = created_at()
    updated_at: Mapped[datetime] = updated_at()

    __table_args__ = (
        UniqueConstraint("member_id", "item_path", name="uq_item_memberships_member_path"),
        Index(
            "ix_item_memberships_item_path",
            "item_path",
            postgresql_ops={"item_path": "text_pattern_ops"},
        ),
    )

    def __repr__(self) -> str:
        return (
            f"<ItemMembership(member={self.member_id}, path='{self.item_path}', "
            f"permission='{self.permission}')>"
        )
