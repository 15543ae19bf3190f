"""
Canopy Backend: Authorization Service
======================================

What:  Answers "what can this member do on this item" against the store.
How:   Loads the member's memberships on the item's ancestor chain plus the
       visibility tags on that chain, then hands them to the membership
       resolver. Batch variants load everything for a list of items in two
       queries.
Who:   Every service that reads or mutates an item.

Visibility rules:
    - public tag on the item or an ancestor: anyone can read
    - hidden tag on the item or an ancestor: readers without write access
      cannot see it (listings skip it, direct reads are denied)
"""

import logging
import uuid
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple, Type

from sqlalchemy.ext.asyncio import AsyncSession

from canopy.exceptions import (
    MemberCannotAccess,
    MemberCannotAdminItem,
    MemberCannotWriteItem,
    PermissionDenied,
)
from canopy.models.item import Item
from canopy.repositories import ItemTagRepository, MembershipRepository
from canopy.tree import paths
from canopy.tree.resolver import Grant, PermissionLevel, effective_permission, has_at_least

logger = logging.getLogger(__name__)

DENIED: Dict[PermissionLevel, Type[PermissionDenied]] = {
    PermissionLevel.READ: MemberCannotAccess,
    PermissionLevel.WRITE: MemberCannotWriteItem,
    PermissionLevel.ADMIN: MemberCannotAdminItem,
}


@dataclass(frozen=True)
class Access:
    level: Optional[PermissionLevel]
    hidden: bool = False

    @property
    def visible(self) -> bool:
        if self.level is None:
            return False
        return not self.hidden or has_at_least(self.level, PermissionLevel.WRITE)


class AuthorizationService:
    async def resolve(
        self, db: AsyncSession, member_id: Optional[uuid.UUID], item: Item
    ) -> Access:
        grants: List[Grant] = []
        if member_id is not None:
            rows = await MembershipRepository(db).covering(item.path, member_id)
            grants = [Grant.of(m) for m in rows]
        tag_types = {t.type for t in await ItemTagRepository(db).covering(item.path)}
        level = effective_permission(member_id, item.path, grants, public="public" in tag_types)
        return Access(level=level, hidden="hidden" in tag_types)

    async def validate(
        self,
        db: AsyncSession,
        member_id: Optional[uuid.UUID],
        item: Item,
        required: PermissionLevel = PermissionLevel.READ,
        denied: Optional[Type[PermissionDenied]] = None,
    ) -> PermissionLevel:
        """
        Returns the member's effective level on `item`, or raises `denied`
        (default: the Member* error matching `required`).
        """
        access = await self.resolve(db, member_id, item)
        if not has_at_least(access.level, required):
            raise (denied or DENIED[required])(item.id)
        if not access.visible:
            raise MemberCannotAccess(item.id)
        return access.level

    async def resolve_many(
        self, db: AsyncSession, member_id: Optional[uuid.UUID], items: Sequence[Item]
    ) -> Dict[uuid.UUID, Access]:
        if not items:
            return {}
        item_paths = [i.path for i in items]
        grants: List[Grant] = []
        if member_id is not None:
            rows = await MembershipRepository(db).covering_many(item_paths, member_id)
            grants = [Grant.of(m) for m in rows]
        tags = ItemTagRepository(db)
        public_scopes = await tags.tagged_scopes(item_paths, "public")
        hidden_scopes = await tags.tagged_scopes(item_paths, "hidden")

        accesses = {}
        for item in items:
            chain = paths.ancestor_paths(item.path, include_self=True)
            public = any(p in public_scopes for p in chain)
            accesses[item.id] = Access(
                level=effective_permission(member_id, item.path, grants, public=public),
                hidden=any(p in hidden_scopes for p in chain),
            )
        return accesses

    async def visible(
        self, db: AsyncSession, member_id: Optional[uuid.UUID], items: Sequence[Item]
    ) -> List[Tuple[Item, PermissionLevel]]:
        """The subset of `items` the member can see, each with its level, order kept."""
        accesses = await self.resolve_many(db, member_id, items)
        return [
            (item, accesses[item.id].level)
            for item in items
            if accesses[item.id].visible
        ]
