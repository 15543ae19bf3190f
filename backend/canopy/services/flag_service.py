"""Canopy Backend: Flag Service (members reporting items)."""

import logging
import uuid
from typing import List

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from canopy.exceptions import ItemNotFound
from canopy.models.item_flag import FLAG_TYPES, ItemFlag
from canopy.repositories import ItemRepository
from canopy.schemas.social import ItemFlagResponse
from canopy.services.authorization import AuthorizationService
from canopy.tree.resolver import PermissionLevel

logger = logging.getLogger(__name__)


class FlagService:
    def __init__(self, authorization: AuthorizationService):
        self.authorization = authorization

    @staticmethod
    def types() -> List[str]:
        return list(FLAG_TYPES)

    async def flag(
        self, db: AsyncSession, actor_id: uuid.UUID, item_id: uuid.UUID, flag_type: str
    ) -> ItemFlagResponse:
        """
        Flags an item the member can read. Flagging twice with the same type
        returns the existing flag.
        """
        item = await ItemRepository(db).get(item_id)
        if item is None:
            raise ItemNotFound(item_id)
        await self.authorization.validate(db, actor_id, item, PermissionLevel.READ)

        result = await db.execute(
            select(ItemFlag).where(
                ItemFlag.item_id == item.id,
                ItemFlag.creator_id == actor_id,
                ItemFlag.type == flag_type,
            )
        )
        flag = result.scalar_one_or_none()
        if flag is None:
            flag = ItemFlag(type=flag_type, item_id=item.id, creator_id=actor_id)
            db.add(flag)
            await db.flush()
            logger.warning("Item %s flagged as %s by %s", item.id, flag_type, actor_id)
        return ItemFlagResponse.model_validate(flag)
