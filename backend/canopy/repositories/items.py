"""
Canopy Backend: Item Repository
================================

What:  Every query over the `items` table.
How:   Subtrees are selected with path prefixes; moves rewrite the whole
       subtree with one UPDATE (`rewrite_subtree`).
Who:   ItemService, Mutation Planner, publication and like services.
"""

import logging
import uuid
from typing import Iterable, List, Optional, Sequence, Tuple

from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from canopy.models.item import Item
from canopy.repositories._prefix import direct_children, in_subtree, rebased, strictly_below
from canopy.tree import paths

logger = logging.getLogger(__name__)


class ItemRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    # ── Single Rows ───────────────────────────────────────────────────────

    async def get(self, item_id: uuid.UUID, for_update: bool = False) -> Optional[Item]:
        """
        Fetches one item; `for_update` takes a row lock (SELECT ... FOR UPDATE)
        held until the surrounding transaction ends. SQLite ignores the lock.
        """
        query = select(Item).where(Item.id == item_id)
        if for_update:
            query = query.with_for_update()
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def get_many(self, item_ids: Sequence[uuid.UUID]) -> List[Item]:
        if not item_ids:
            return []
        result = await self.db.execute(select(Item).where(Item.id.in_(list(item_ids))))
        return list(result.scalars().all())

    async def get_by_paths(self, item_paths: Iterable[str]) -> List[Item]:
        wanted = list(item_paths)
        if not wanted:
            return []
        result = await self.db.execute(select(Item).where(Item.path.in_(wanted)))
        return list(result.scalars().all())

    async def get_by_path(self, path: str) -> Optional[Item]:
        result = await self.db.execute(select(Item).where(Item.path == path))
        return result.scalar_one_or_none()

    # ── Tree Queries ──────────────────────────────────────────────────────

    async def ancestors(self, path: str) -> List[Item]:
        """Strict ancestors, root first."""
        items = await self.get_by_paths(paths.ancestor_paths(path))
        return sorted(items, key=lambda i: paths.depth(i.path))

    async def children(
        self,
        parent_path: Optional[str],
        types: Optional[Sequence[str]] = None,
        keywords: Optional[Sequence[str]] = None,
    ) -> List[Item]:
        """
        Direct children ordered by rank (unranked last), then creation date.

        `keywords` match name or description, case-insensitively; every
        keyword must match.
        """
        query = select(Item).where(direct_children(Item.path, parent_path))
        if types:
            query = query.where(Item.type.in_(list(types)))
        for keyword in keywords or []:
            pattern = f"%{keyword.lower()}%"
            query = query.where(
                or_(
                    func.lower(Item.name).like(pattern),
                    func.lower(func.coalesce(Item.description, "")).like(pattern),
                )
            )
        query = query.order_by(
            Item.order.is_(None), Item.order.asc(), Item.created_at.asc()
        )
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def count_children(self, parent_path: str) -> int:
        result = await self.db.execute(
            select(func.count(Item.id)).where(direct_children(Item.path, parent_path))
        )
        return result.scalar() or 0

    async def descendants(self, path: str) -> List[Item]:
        """Every strict descendant, shallowest first."""
        result = await self.db.execute(
            select(Item).where(strictly_below(Item.path, path))
        )
        return sorted(result.scalars().all(), key=lambda i: (paths.depth(i.path), i.path))

    async def subtree(self, path: str) -> List[Item]:
        """The item at `path` and all of its descendants, shallowest first."""
        result = await self.db.execute(select(Item).where(in_subtree(Item.path, path)))
        return sorted(result.scalars().all(), key=lambda i: (paths.depth(i.path), i.path))

    async def count_descendants(self, path: str) -> int:
        result = await self.db.execute(
            select(func.count(Item.id)).where(strictly_below(Item.path, path))
        )
        return result.scalar() or 0

    async def subtree_height(self, path: str) -> int:
        """Number of levels of the subtree rooted at `path` (a leaf has height 1)."""
        result = await self.db.execute(
            select(Item.path).where(strictly_below(Item.path, path))
        )
        base = paths.depth(path)
        deepest = max((paths.depth(p) for p in result.scalars().all()), default=base)
        return deepest - base + 1

    async def sibling_orders(
        self, parent_path: str, exclude_id: Optional[uuid.UUID] = None
    ) -> List[Tuple[uuid.UUID, Optional[float]]]:
        query = select(Item.id, Item.order).where(direct_children(Item.path, parent_path))
        if exclude_id is not None:
            query = query.where(Item.id != exclude_id)
        result = await self.db.execute(query)
        return [(row[0], row[1]) for row in result.all()]

    async def roots(self, root_paths: Iterable[str]) -> List[Item]:
        return [i for i in await self.get_by_paths(root_paths) if paths.parent_path(i.path) is None]

    # ── Writes ────────────────────────────────────────────────────────────

    def add(self, item: Item) -> Item:
        self.db.add(item)
        return item

    async def rewrite_subtree(self, old_path: str, new_path: str) -> int:
        """
        Moves the subtree rooted at `old_path` so that its root lives at
        `new_path`, in one statement. Returns the number of rewritten rows.

        In-session Item objects are not synchronized; callers refresh the
        ones they keep using.
        """
        result = await self.db.execute(
            update(Item)
            .where(in_subtree(Item.path, old_path))
            .values(path=rebased(Item.path, old_path, new_path))
            .execution_options(synchronize_session=False)
        )
        logger.debug("Rewrote %d item path(s) %s → %s", result.rowcount, old_path, new_path)
        return result.rowcount

    async def subtree_ids(self, path: str) -> List[uuid.UUID]:
        result = await self.db.execute(select(Item.id).where(in_subtree(Item.path, path)))
        return list(result.scalars().all())

    async def delete_subtree(self, path: str) -> int:
        result = await self.db.execute(
            delete(Item)
            .where(in_subtree(Item.path, path))
            .execution_options(synchronize_session=False)
        )
        return result.rowcount
