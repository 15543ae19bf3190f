"""
Canopy Backend: Like Service
=============================

What:  Likes: like and unlike an item, list the likes of an item and the
       items the current member liked.
How:   Liking needs read access. The liked list is filtered through the
       authorization service, so items the member lost access to since
       liking them silently drop out.
Who:   Like routes; the publication service counts likes for "most liked".
"""

import logging
import uuid
from typing import List

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from canopy.exceptions import ItemLikeAlreadyExists, ItemLikeNotFound, ItemNotFound
from canopy.models.item import Item
from canopy.models.item_like import ItemLike
from canopy.repositories import ItemRepository
from canopy.schemas.item import ItemResponse
from canopy.schemas.social import ItemLikeResponse, LikedItemResponse
from canopy.services.action_service import ActionService
from canopy.services.authorization import AuthorizationService
from canopy.tree.resolver import PermissionLevel

logger = logging.getLogger(__name__)


class LikeService:
    def __init__(self, authorization: AuthorizationService, actions: ActionService):
        self.authorization = authorization
        self.actions = actions

    async def _readable(self, db: AsyncSession, actor_id, item_id: uuid.UUID) -> Item:
        item = await ItemRepository(db).get(item_id)
        if item is None:
            raise ItemNotFound(item_id)
        await self.authorization.validate(db, actor_id, item, PermissionLevel.READ)
        return item

    async def _find(self, db: AsyncSession, actor_id: uuid.UUID, item_id: uuid.UUID):
        result = await db.execute(
            select(ItemLike).where(ItemLike.item_id == item_id, ItemLike.creator_id == actor_id)
        )
        return result.scalar_one_or_none()

    async def like(
        self, db: AsyncSession, actor_id: uuid.UUID, item_id: uuid.UUID
    ) -> ItemLikeResponse:
        """
        Raises:
            ItemNotFound, MemberCannotAccess, ItemLikeAlreadyExists
        """
        item = await self._readable(db, actor_id, item_id)
        if await self._find(db, actor_id, item.id) is not None:
            raise ItemLikeAlreadyExists(item.id)

        like = ItemLike(item_id=item.id, creator_id=actor_id)
        db.add(like)
        try:
            await db.flush()
        except IntegrityError:
            raise ItemLikeAlreadyExists(item.id)
        self.actions.post(db, actor_id, item, "like")
        logger.info("Member %s liked %s", actor_id, item.id)
        return ItemLikeResponse.model_validate(like)

    async def unlike(
        self, db: AsyncSession, actor_id: uuid.UUID, item_id: uuid.UUID
    ) -> ItemLikeResponse:
        item = await ItemRepository(db).get(item_id)
        if item is None:
            raise ItemNotFound(item_id)
        like = await self._find(db, actor_id, item.id)
        if like is None:
            raise ItemLikeNotFound(context={"item_id": str(item.id)})

        response = ItemLikeResponse.model_validate(like)
        await db.delete(like)
        self.actions.post(db, actor_id, item, "unlike")
        await db.flush()
        return response

    async def for_item(
        self, db: AsyncSession, actor_id, item_id: uuid.UUID
    ) -> List[ItemLikeResponse]:
        item = await self._readable(db, actor_id, item_id)
        result = await db.execute(
            select(ItemLike).where(ItemLike.item_id == item.id).order_by(ItemLike.created_at.desc())
        )
        return [ItemLikeResponse.model_validate(like) for like in result.scalars().all()]

    async def liked_by(self, db: AsyncSession, actor_id: uuid.UUID) -> List[LikedItemResponse]:
        """Items the member liked and can still see, most recent like first."""
        result = await db.execute(
            select(ItemLike, Item)
            .join(Item, Item.id == ItemLike.item_id)
            .where(ItemLike.creator_id == actor_id)
            .order_by(ItemLike.created_at.desc())
        )
        rows = result.all()
        levels = {
            item.id: level
            for item, level in await self.authorization.visible(db, actor_id, [r[1] for r in rows])
        }
        return [
            LikedItemResponse(
                id=like.id,
                created_at=like.created_at,
                item=ItemResponse.of(item, levels[item.id]),
            )
            for like, item in rows
            if item.id in levels
        ]
