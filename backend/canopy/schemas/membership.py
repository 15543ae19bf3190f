"""Canopy Backend: Item Membership Schemas."""

import uuid
from datetime import datetime
from typing import List, Literal, Optional

from pydantic import Field

from canopy.schemas.common import CamelModel

Permission = Literal["read", "write", "admin"]


class MembershipCreate(CamelModel):
    member_id: uuid.UUID
    item_id: uuid.UUID
    permission: Permission


class MembershipUpdate(CamelModel):
    permission: Permission


class MembershipResponse(CamelModel):
    id: uuid.UUID
    member_id: uuid.UUID
    item_path: str
    permission: Permission
    creator_id: Optional[uuid.UUID] = None
    created_at: datetime
    updated_at: datetime
    inherited: bool = Field(
        default=False,
        description="True when the grant sits on an ancestor of the requested item",
    )


class MembershipListResponse(CamelModel):
    item_id: uuid.UUID
    memberships: List[MembershipResponse]
