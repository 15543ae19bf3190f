"""
Canopy Backend: Membership Repository
======================================

What:  Queries and writes over `item_memberships`.
How:   Memberships are scoped by item path, so "who has access here" is an
       IN over the ancestor paths and "what is granted below" is a prefix
       filter. Moves call `rewrite_prefix` with the same prefixes as
       ItemRepository.rewrite_subtree.
"""

import uuid
from typing import Iterable, List, Optional, Sequence

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from canopy.models.item_membership import ItemMembership
from canopy.repositories._prefix import in_subtree, rebased
from canopy.tree import paths
from canopy.tree.resolver import Grant


class MembershipRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get(self, membership_id: uuid.UUID) -> Optional[ItemMembership]:
        result = await self.db.execute(
            select(ItemMembership).where(ItemMembership.id == membership_id)
        )
        return result.scalar_one_or_none()

    async def get_exact(self, member_id: uuid.UUID, item_path: str) -> Optional[ItemMembership]:
        result = await self.db.execute(
            select(ItemMembership).where(
                ItemMembership.member_id == member_id,
                ItemMembership.item_path == item_path,
            )
        )
        return result.scalar_one_or_none()

    async def covering(
        self, item_path: str, member_id: Optional[uuid.UUID] = None
    ) -> List[ItemMembership]:
        """Memberships on `item_path` or any of its ancestors."""
        query = select(ItemMembership).where(
            ItemMembership.item_path.in_(paths.ancestor_paths(item_path, include_self=True))
        )
        if member_id is not None:
            query = query.where(ItemMembership.member_id == member_id)
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def covering_many(
        self, item_paths: Iterable[str], member_id: uuid.UUID
    ) -> List[ItemMembership]:
        """Memberships of one member on any ancestor-or-self of any given path."""
        scopes = set()
        for path in item_paths:
            scopes.update(paths.ancestor_paths(path, include_self=True))
        if not scopes:
            return []
        result = await self.db.execute(
            select(ItemMembership).where(
                ItemMembership.member_id == member_id,
                ItemMembership.item_path.in_(scopes),
            )
        )
        return list(result.scalars().all())

    async def in_subtree(
        self, item_path: str, member_id: Optional[uuid.UUID] = None
    ) -> List[ItemMembership]:
        query = select(ItemMembership).where(in_subtree(ItemMembership.item_path, item_path))
        if member_id is not None:
            query = query.where(ItemMembership.member_id == member_id)
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def for_member(
        self, member_id: uuid.UUID, permissions: Optional[Sequence[str]] = None
    ) -> List[ItemMembership]:
        query = select(ItemMembership).where(ItemMembership.member_id == member_id)
        if permissions:
            query = query.where(ItemMembership.permission.in_(list(permissions)))
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def for_move(
        self, source_path: str, destination_parent_path: Optional[str]
    ) -> List[ItemMembership]:
        """
        Every membership move housekeeping needs: on the old ancestors, on the
        new ancestor chain (destination parent included) and inside the subtree.
        """
        scopes = set(paths.ancestor_paths(source_path))
        if destination_parent_path is not None:
            scopes.update(paths.ancestor_paths(destination_parent_path, include_self=True))
        query = select(ItemMembership).where(
            ItemMembership.item_path.in_(scopes)
            | in_subtree(ItemMembership.item_path, source_path)
        )
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def count_admins(self, item_path: str) -> int:
        result = await self.db.execute(
            select(ItemMembership.id).where(
                ItemMembership.item_path == item_path,
                ItemMembership.permission == "admin",
            )
        )
        return len(result.scalars().all())

    # ── Writes ────────────────────────────────────────────────────────────

    def add(self, membership: ItemMembership) -> ItemMembership:
        self.db.add(membership)
        return membership

    async def create_many(
        self, grants: Sequence[Grant], creator_id: Optional[uuid.UUID]
    ) -> List[ItemMembership]:
        rows = [
            ItemMembership(
                member_id=uuid.UUID(g.subject),
                item_path=g.path,
                permission=g.level.value,
                creator_id=creator_id,
            )
            for g in grants
        ]
        self.db.add_all(rows)
        await self.db.flush()
        return rows

    async def delete_many(self, membership_ids: Sequence) -> int:
        ids = [uuid.UUID(str(i)) for i in membership_ids]
        if not ids:
            return 0
        result = await self.db.execute(
            delete(ItemMembership)
            .where(ItemMembership.id.in_(ids))
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    async def rewrite_prefix(self, old_path: str, new_path: str) -> int:
        """Re-scopes every membership on the subtree at `old_path` to `new_path`."""
        result = await self.db.execute(
            update(ItemMembership)
            .where(in_subtree(ItemMembership.item_path, old_path))
            .values(item_path=rebased(ItemMembership.item_path, old_path, new_path))
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    async def delete_by_prefix(self, item_path: str) -> int:
        result = await self.db.execute(
            delete(ItemMembership)
            .where(in_subtree(ItemMembership.item_path, item_path))
            .execution_options(synchronize_session=False)
        )
        return result.rowcount
