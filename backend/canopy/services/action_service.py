"""
Canopy Backend: Action Service (audit log)
===========================================

What:  Records one action per successful mutation and serves them back.
How:   `post` only adds the row to the caller's session, so the action
       commits or rolls back together with the mutation it describes.
Who:   Mutation planner, item/like/tag/publication services; action routes.

Reading rules:
    - item actions need read access on the item; admins see every member's
      actions, everybody else only their own
    - a member's own actions are readable and deletable by that member only
"""

import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from canopy.config import Settings
from canopy.exceptions import DatabaseError, ItemNotFound, PermissionDenied, ValidationError
from canopy.models.action import ACTION_VIEWS, Action
from canopy.models.item import Item
from canopy.repositories import ItemRepository
from canopy.schemas.action import ActionListResponse, ActionResponse
from canopy.services.authorization import AuthorizationService
from canopy.tree.resolver import PermissionLevel

logger = logging.getLogger(__name__)

# Default window when the caller gives no start date
DEFAULT_WINDOW = timedelta(days=30)


class ActionService:
    def __init__(self, settings: Settings, authorization: AuthorizationService):
        self.settings = settings
        self.authorization = authorization

    def post(
        self,
        db: AsyncSession,
        member_id: Optional[uuid.UUID],
        item: Optional[Item],
        action_type: str,
        extra: Optional[Dict[str, Any]] = None,
        view: str = "unknown",
    ) -> Action:
        action = Action(
            member_id=member_id,
            item_id=item.id if item is not None else None,
            item_path=item.path if item is not None else None,
            type=action_type,
            view=view if view in ACTION_VIEWS else "unknown",
            extra=extra or {},
        )
        db.add(action)
        logger.debug("Action %s on %s by %s", action_type, action.item_id, member_id)
        return action

    @staticmethod
    def _window(
        start: Optional[datetime], end: Optional[datetime]
    ) -> tuple:
        end = end or datetime.now(timezone.utc)
        start = start or end - DEFAULT_WINDOW
        if start > end:
            raise ValidationError(
                message="startDate must be before endDate",
                field="startDate",
            )
        return start, end

    async def for_item(
        self,
        db: AsyncSession,
        member_id: uuid.UUID,
        item_id: uuid.UUID,
        sample_size: Optional[int] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        view: Optional[str] = None,
    ) -> ActionListResponse:
        """
        Actions on an item and its descendants, newest first.

        Raises:
            ItemNotFound, MemberCannotAccess
        """
        item = await ItemRepository(db).get(item_id)
        if item is None:
            raise ItemNotFound(item_id)
        level = await self.authorization.validate(db, member_id, item, PermissionLevel.READ)
        start, end = self._window(start, end)

        try:
            scope = (Action.item_path == item.path) | Action.item_path.startswith(
                item.path + ".", autoescape=True
            )
            query = select(Action).where(
                scope, Action.created_at >= start, Action.created_at <= end
            )
            if view:
                query = query.where(Action.view == view)
            if level != PermissionLevel.ADMIN:
                query = query.where(Action.member_id == member_id)

            total = (
                await db.execute(select(func.count()).select_from(query.subquery()))
            ).scalar() or 0
            limit = sample_size or self.settings.actions_sample_size
            result = await db.execute(query.order_by(Action.created_at.desc()).limit(limit))
            actions = result.scalars().all()
        except Exception as e:
            logger.error("Database error listing actions of %s: %s", item_id, str(e))
            raise DatabaseError(
                message="Could not retrieve actions. Please try again.",
                context={"item_id": str(item_id)},
            )

        return ActionListResponse(
            actions=[ActionResponse.model_validate(a) for a in actions],
            total_count=total,
        )

    async def for_member(
        self,
        db: AsyncSession,
        member_id: uuid.UUID,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> List[ActionResponse]:
        start, end = self._window(start, end)
        result = await db.execute(
            select(Action)
            .where(
                Action.member_id == member_id,
                Action.created_at >= start,
                Action.created_at <= end,
            )
            .order_by(Action.created_at.desc())
        )
        return [ActionResponse.model_validate(a) for a in result.scalars().all()]

    async def delete_for_member(
        self, db: AsyncSession, actor_id: uuid.UUID, member_id: uuid.UUID
    ) -> int:
        if actor_id != member_id:
            raise PermissionDenied(message="Members can only delete their own actions")
        result = await db.execute(delete(Action).where(Action.member_id == member_id))
        logger.info("Deleted %d action(s) of member %s", result.rowcount, member_id)
        return result.rowcount
