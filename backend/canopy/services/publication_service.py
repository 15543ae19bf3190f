"""
Canopy Backend: Publication Service
====================================

What:  Publishing items as collections and the public collection listings.
How:   Publishing inserts an `items_published` row and makes sure the item is
       tagged public, in the same transaction. Unpublishing removes the row
       only; the public tag stays until an admin removes it.
Who:   Publication routes (/api/collections).

Listings:
    - collections of a member (published items that member created)
    - recent collections (newest publication first)
    - most liked collections (by like count, with `totalLikes`)
    Every listing goes through the authorization service, so a collection
    whose public tag was removed only shows to members who can read it.
"""

import logging
import uuid
from typing import List, Optional, Sequence, Tuple

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from canopy.exceptions import ItemAlreadyPublished, ItemNotFound, ItemPublishedNotFound
from canopy.models.item import Item
from canopy.models.item_like import ItemLike
from canopy.models.item_published import ItemPublished
from canopy.repositories import ItemRepository
from canopy.schemas.item import ItemResponse
from canopy.schemas.social import PublishedItemResponse
from canopy.services.action_service import ActionService
from canopy.services.authorization import AuthorizationService
from canopy.services.tag_service import TagService
from canopy.tree import paths
from canopy.tree.resolver import PermissionLevel

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 10


def _published(row: ItemPublished, item: Item, level, total_likes=None) -> PublishedItemResponse:
    response = PublishedItemResponse.model_validate(row)
    response.item = ItemResponse.of(item, level)
    response.total_likes = total_likes
    return response


class PublicationService:
    def __init__(
        self,
        authorization: AuthorizationService,
        actions: ActionService,
        tags: TagService,
    ):
        self.authorization = authorization
        self.actions = actions
        self.tags = tags

    async def _item(self, db: AsyncSession, item_id: uuid.UUID) -> Item:
        item = await ItemRepository(db).get(item_id)
        if item is None:
            raise ItemNotFound(item_id)
        return item

    async def _row(self, db: AsyncSession, item_id: uuid.UUID) -> Optional[ItemPublished]:
        result = await db.execute(select(ItemPublished).where(ItemPublished.item_id == item_id))
        return result.scalar_one_or_none()

    async def _visible(
        self, db: AsyncSession, actor_id, rows: Sequence[Tuple[ItemPublished, Item]]
    ) -> List[Tuple[ItemPublished, Item, PermissionLevel]]:
        levels = {
            item.id: level
            for item, level in await self.authorization.visible(db, actor_id, [r[1] for r in rows])
        }
        return [(row, item, levels[item.id]) for row, item in rows if item.id in levels]

    # ── Writes ────────────────────────────────────────────────────────────

    async def publish(
        self, db: AsyncSession, actor_id: uuid.UUID, item_id: uuid.UUID
    ) -> PublishedItemResponse:
        """
        Raises:
            ItemNotFound, MemberCannotAdminItem, ItemAlreadyPublished
        """
        item = await self._item(db, item_id)
        level = await self.authorization.validate(db, actor_id, item, PermissionLevel.ADMIN)
        if await self._row(db, item.id) is not None:
            raise ItemAlreadyPublished(item.id)

        row = ItemPublished(item_id=item.id, creator_id=actor_id)
        db.add(row)
        await self.tags.ensure(db, actor_id, item, "public")
        self.actions.post(db, actor_id, item, "publish")
        await db.flush()

        logger.info("Item %s published by %s", item.id, actor_id)
        return _published(row, item, level)

    async def unpublish(
        self, db: AsyncSession, actor_id: uuid.UUID, item_id: uuid.UUID
    ) -> PublishedItemResponse:
        item = await self._item(db, item_id)
        level = await self.authorization.validate(db, actor_id, item, PermissionLevel.ADMIN)
        row = await self._row(db, item.id)
        if row is None:
            raise ItemPublishedNotFound(item.id)

        response = _published(row, item, level)
        await db.delete(row)
        self.actions.post(db, actor_id, item, "unpublish")
        await db.flush()
        return response

    # ── Reads ─────────────────────────────────────────────────────────────

    async def info(
        self, db: AsyncSession, actor_id, item_id: uuid.UUID
    ) -> Optional[PublishedItemResponse]:
        """Publication covering the item: on the item itself or its closest published ancestor."""
        item = await self._item(db, item_id)
        await self.authorization.validate(db, actor_id, item, PermissionLevel.READ)

        result = await db.execute(
            select(ItemPublished, Item)
            .join(Item, Item.id == ItemPublished.item_id)
            .where(Item.path.in_(paths.ancestor_paths(item.path, include_self=True)))
        )
        rows = result.all()
        if not rows:
            return None
        row, published = max(rows, key=lambda r: paths.depth(r[1].path))
        access = await self.authorization.resolve(db, actor_id, published)
        return _published(row, published, access.level)

    async def for_member(
        self, db: AsyncSession, actor_id, member_id: uuid.UUID
    ) -> List[PublishedItemResponse]:
        result = await db.execute(
            select(ItemPublished, Item)
            .join(Item, Item.id == ItemPublished.item_id)
            .where(Item.creator_id == member_id)
            .order_by(ItemPublished.created_at.desc())
        )
        return [_published(*r) for r in await self._visible(db, actor_id, result.all())]

    async def recent(
        self, db: AsyncSession, actor_id, limit: int = DEFAULT_LIMIT
    ) -> List[PublishedItemResponse]:
        result = await db.execute(
            select(ItemPublished, Item)
            .join(Item, Item.id == ItemPublished.item_id)
            .order_by(ItemPublished.created_at.desc())
            .limit(limit)
        )
        return [_published(*r) for r in await self._visible(db, actor_id, result.all())]

    async def most_liked(
        self, db: AsyncSession, actor_id, limit: int = DEFAULT_LIMIT
    ) -> List[PublishedItemResponse]:
        likes = (
            select(ItemLike.item_id, func.count(ItemLike.id).label("total"))
            .group_by(ItemLike.item_id)
            .subquery()
        )
        total = func.coalesce(likes.c.total, 0)
        result = await db.execute(
            select(ItemPublished, Item, total)
            .join(Item, Item.id == ItemPublished.item_id)
            .outerjoin(likes, likes.c.item_id == ItemPublished.item_id)
            .order_by(total.desc(), ItemPublished.created_at.desc())
            .limit(limit)
        )
        rows = result.all()
        totals = {item.id: count for _, item, count in rows}
        visible = await self._visible(db, actor_id, [(row, item) for row, item, _ in rows])
        return [
            _published(row, item, level, total_likes=totals[item.id])
            for row, item, level in visible
        ]
