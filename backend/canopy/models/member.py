"""
Canopy Backend: Member Model
=============================

What:  ORM model for the `members` table: every account that can own, share,
       like or flag items.
Who:   Resolved from the X-Member-Id header on each request; referenced by
       memberships, likes, flags, actions and bulk operations.
"""

import uuid
from datetime import datetime
from typing import Any, Dict

from sqlalchemy import JSON, String
from sqlalchemy.orm import Mapped, mapped_column

from canopy.database import Base
from canopy.models._columns import created_at, updated_at, uuid_pk


class Member(Base):
    __tablename__ = "members"

    id: Mapped[uuid.UUID] = uuid_pk()
    name: Mapped[str] = mapped_column(String(300), nullable=False)

    # Lower-cased before insert; uniqueness is case-insensitive in practice
    email: Mapped[str] = mapped_column(String(150), nullable=False, unique=True)

    type: Mapped[str] = mapped_column(String(32), nullable=False, default="individual")
    extra: Mapped[Dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)

    created_at: Mapped[datetime] = created_at()
    updated_at: Mapped[datetime] = updated_at()

    def __repr__(self) -> str:
        return f"<Member(id={self.id}, email='{self.email}')>"
