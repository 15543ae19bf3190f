"""
Canopy Backend: Visibility Tag Service
=======================================

What:  Adds and removes the `public` and `hidden` tags of an item.
How:   Tags are inherited by the subtree, so they follow the same minimality
       rule as memberships: a tag already covering the item from above is a
       conflict, and adding a tag drops the same-type tags it now covers.
Who:   Tag routes and the publication service (publishing tags the item public).
"""

import logging
import uuid
from typing import List

from sqlalchemy.ext.asyncio import AsyncSession

from canopy.exceptions import ItemNotFound, ItemTagAlreadyExists, ItemTagNotFound, ValidationError
from canopy.models.item import Item
from canopy.models.item_tag import TAG_TYPES, ItemTag
from canopy.repositories import ItemRepository, ItemTagRepository
from canopy.schemas.social import ItemTagResponse
from canopy.services.action_service import ActionService
from canopy.services.authorization import AuthorizationService
from canopy.tree import paths
from canopy.tree.resolver import PermissionLevel

logger = logging.getLogger(__name__)


def _check_type(tag_type: str) -> str:
    if tag_type not in TAG_TYPES:
        raise ValidationError(
            message=f"Unknown tag type '{tag_type}'. Must be one of: {', '.join(TAG_TYPES)}",
            field="type",
        )
    return tag_type


class TagService:
    def __init__(self, authorization: AuthorizationService, actions: ActionService):
        self.authorization = authorization
        self.actions = actions

    async def _item(self, db: AsyncSession, actor_id: uuid.UUID, item_id: uuid.UUID) -> Item:
        item = await ItemRepository(db).get(item_id)
        if item is None:
            raise ItemNotFound(item_id)
        await self.authorization.validate(db, actor_id, item, PermissionLevel.ADMIN)
        return item

    async def ensure(self, db: AsyncSession, actor_id: uuid.UUID, item: Item, tag_type: str) -> ItemTag:
        """Tags `item` unless the tag already applies to it; no permission check."""
        tags = ItemTagRepository(db)
        covering = [t for t in await tags.covering(item.path) if t.type == tag_type]
        if covering:
            return covering[0]
        return await self._insert(db, actor_id, item, tag_type)

    async def _insert(self, db: AsyncSession, actor_id: uuid.UUID, item: Item, tag_type: str) -> ItemTag:
        tags = ItemTagRepository(db)
        tag = tags.add(ItemTag(type=tag_type, item_path=item.path, creator_id=actor_id))
        await db.flush()

        # Same-type tags further down are now implied by this one
        for redundant in await tags.below(item.path, tag_type):
            await tags.delete(redundant.id)
        return tag

    async def add(
        self, db: AsyncSession, actor_id: uuid.UUID, item_id: uuid.UUID, tag_type: str
    ) -> ItemTagResponse:
        """
        Raises:
            ValidationError, ItemNotFound, MemberCannotAdminItem,
            ItemTagAlreadyExists (on the item or inherited from an ancestor)
        """
        _check_type(tag_type)
        item = await self._item(db, actor_id, item_id)
        if any(t.type == tag_type for t in await ItemTagRepository(db).covering(item.path)):
            raise ItemTagAlreadyExists(item.id, tag_type)

        tag = await self._insert(db, actor_id, item, tag_type)
        self.actions.post(db, actor_id, item, "tag", extra={"type": tag_type})
        logger.info("Item %s tagged %s", item.id, tag_type)
        return ItemTagResponse.model_validate(tag)

    async def remove(
        self, db: AsyncSession, actor_id: uuid.UUID, item_id: uuid.UUID, tag_type: str
    ) -> ItemTagResponse:
        """Removes the tag set on the item itself; inherited tags are removed at their origin."""
        _check_type(tag_type)
        item = await self._item(db, actor_id, item_id)
        tags = ItemTagRepository(db)
        tag = await tags.get_exact(item.path, tag_type)
        if tag is None:
            raise ItemTagNotFound(
                context={"item_id": str(item.id), "type": tag_type},
            )

        response = ItemTagResponse.model_validate(tag)
        await tags.delete(tag.id)
        self.actions.post(db, actor_id, item, "untag", extra={"type": tag_type})
        logger.info("Tag %s removed from %s", tag_type, item.id)
        return response

    async def for_item(
        self, db: AsyncSession, actor_id: uuid.UUID, item_id: uuid.UUID
    ) -> List[ItemTagResponse]:
        """Tags applying to the item, its own and inherited ones, closest first."""
        item = await ItemRepository(db).get(item_id)
        if item is None:
            raise ItemNotFound(item_id)
        await self.authorization.validate(db, actor_id, item, PermissionLevel.READ)
        found = await ItemTagRepository(db).covering(item.path)
        found.sort(key=lambda t: paths.depth(t.item_path), reverse=True)
        return [ItemTagResponse.model_validate(t) for t in found]
