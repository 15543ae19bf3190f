"""Canopy Backend: Item Tag Repository (public / hidden visibility tags)."""

import uuid
from typing import Iterable, List, Optional, Set

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from canopy.models.item_tag import ItemTag
from canopy.repositories._prefix import in_subtree, rebased, strictly_below
from canopy.tree import paths


class ItemTagRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_exact(self, item_path: str, tag_type: str) -> Optional[ItemTag]:
        result = await self.db.execute(
            select(ItemTag).where(ItemTag.item_path == item_path, ItemTag.type == tag_type)
        )
        return result.scalar_one_or_none()

    async def covering(self, item_path: str) -> List[ItemTag]:
        """Tags on `item_path` or any ancestor; tags are inherited like grants."""
        result = await self.db.execute(
            select(ItemTag).where(
                ItemTag.item_path.in_(paths.ancestor_paths(item_path, include_self=True))
            )
        )
        return list(result.scalars().all())

    async def tagged_scopes(self, item_paths: Iterable[str], tag_type: str) -> Set[str]:
        """Paths carrying `tag_type` among the ancestors-or-self of the given paths."""
        scopes = set()
        for path in item_paths:
            scopes.update(paths.ancestor_paths(path, include_self=True))
        if not scopes:
            return set()
        result = await self.db.execute(
            select(ItemTag.item_path).where(
                ItemTag.type == tag_type, ItemTag.item_path.in_(scopes)
            )
        )
        return set(result.scalars().all())

    async def below(self, item_path: str, tag_type: str) -> List[ItemTag]:
        result = await self.db.execute(
            select(ItemTag).where(
                ItemTag.type == tag_type, strictly_below(ItemTag.item_path, item_path)
            )
        )
        return list(result.scalars().all())

    def add(self, tag: ItemTag) -> ItemTag:
        self.db.add(tag)
        return tag

    async def delete(self, tag_id: uuid.UUID) -> None:
        await self.db.execute(delete(ItemTag).where(ItemTag.id == tag_id))

    async def rewrite_prefix(self, old_path: str, new_path: str) -> int:
        result = await self.db.execute(
            update(ItemTag)
            .where(in_subtree(ItemTag.item_path, old_path))
            .values(item_path=rebased(ItemTag.item_path, old_path, new_path))
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    async def delete_by_prefix(self, item_path: str) -> int:
        result = await self.db.execute(
            delete(ItemTag)
            .where(in_subtree(ItemTag.item_path, item_path))
            .execution_options(synchronize_session=False)
        )
        return result.rowcount
