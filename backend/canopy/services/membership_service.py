"""
Canopy Backend: Membership Service
===================================

What:  Sharing: list, grant, change and revoke item memberships.
How:   Every write keeps the minimality invariant. A grant already covered
       by inheritance is refused; a new or raised grant removes the grants
       of the same member below it that it makes redundant (computed by
       `redundant_below`).
Who:   Membership routes.

Rules:
    - granting, changing or revoking needs admin on the item; members may
      always revoke their own membership
    - a permission cannot be set lower than (or equal to) what the member
      inherits from above
    - the last admin membership of a root item cannot be revoked
"""

import logging
import uuid

from sqlalchemy.ext.asyncio import AsyncSession

from canopy.exceptions import (
    CannotDeleteOnlyAdmin,
    InvalidMembership,
    ItemMembershipNotFound,
    ItemNotFound,
    MemberNotFound,
)
from canopy.models.item import Item
from canopy.models.item_membership import ItemMembership
from canopy.models.member import Member
from canopy.repositories import ItemRepository, MembershipRepository
from canopy.schemas.membership import (
    MembershipCreate,
    MembershipListResponse,
    MembershipResponse,
)
from canopy.services.authorization import AuthorizationService
from canopy.tree import paths
from canopy.tree.resolver import Grant, PermissionLevel, inherited_permission, redundant_below

logger = logging.getLogger(__name__)


def _response(membership: ItemMembership, item_path: str) -> MembershipResponse:
    response = MembershipResponse.model_validate(membership)
    response.inherited = membership.item_path != item_path
    return response


class MembershipService:
    def __init__(self, authorization: AuthorizationService):
        self.authorization = authorization

    async def _item_at(self, db: AsyncSession, item_path: str) -> Item:
        item = await ItemRepository(db).get_by_path(item_path)
        if item is None:
            raise ItemNotFound(resource_id=paths.item_id(item_path))
        return item

    async def _get(self, db: AsyncSession, membership_id: uuid.UUID) -> ItemMembership:
        membership = await MembershipRepository(db).get(membership_id)
        if membership is None:
            raise ItemMembershipNotFound(membership_id)
        return membership

    async def _clean_below(self, db: AsyncSession, grant: Grant) -> int:
        repository = MembershipRepository(db)
        below = [
            Grant.of(m)
            for m in await repository.in_subtree(grant.path, uuid.UUID(grant.subject))
        ]
        redundant = redundant_below(grant, below)
        if redundant:
            await repository.delete_many([g.id for g in redundant])
            logger.info(
                "Removed %d redundant membership(s) of %s below %s",
                len(redundant), grant.subject, grant.path,
            )
        return len(redundant)

    # ── Reads ─────────────────────────────────────────────────────────────

    async def for_item(
        self, db: AsyncSession, actor_id: uuid.UUID, item_id: uuid.UUID
    ) -> MembershipListResponse:
        """Memberships on the item and on its ancestors, closest first."""
        item = await ItemRepository(db).get(item_id)
        if item is None:
            raise ItemNotFound(item_id)
        await self.authorization.validate(db, actor_id, item, PermissionLevel.READ)

        rows = await MembershipRepository(db).covering(item.path)
        rows.sort(key=lambda m: paths.depth(m.item_path), reverse=True)
        return MembershipListResponse(
            item_id=item.id,
            memberships=[_response(m, item.path) for m in rows],
        )

    # ── Writes ────────────────────────────────────────────────────────────

    async def create(
        self, db: AsyncSession, actor_id: uuid.UUID, data: MembershipCreate
    ) -> MembershipResponse:
        """
        Raises:
            ItemNotFound, MemberNotFound, MemberCannotAdminItem,
            InvalidMembership (already granted, here or by inheritance)
        """
        repository = MembershipRepository(db)
        item = await ItemRepository(db).get(data.item_id)
        if item is None:
            raise ItemNotFound(data.item_id)
        await self.authorization.validate(db, actor_id, item, PermissionLevel.ADMIN)
        if await db.get(Member, data.member_id) is None:
            raise MemberNotFound(data.member_id)

        level = PermissionLevel.parse(data.permission)
        covering = [Grant.of(m) for m in await repository.covering(item.path, data.member_id)]
        if any(g.path == item.path for g in covering):
            raise InvalidMembership(
                message="Member already has a membership on this item; update it instead",
                context={"item_id": str(item.id), "member_id": str(data.member_id)},
            )
        inherited = inherited_permission(data.member_id, item.path, covering)
        if inherited is not None and inherited >= level:
            raise InvalidMembership(
                message=f"Member already has {inherited.value} access through a parent item",
                context={"item_id": str(item.id), "inherited": inherited.value},
            )

        membership = repository.add(
            ItemMembership(
                member_id=data.member_id,
                item_path=item.path,
                permission=level.value,
                creator_id=actor_id,
            )
        )
        await db.flush()
        await self._clean_below(db, Grant.of(membership))
        logger.info("Shared %s with %s (%s)", item.id, data.member_id, level.value)
        return _response(membership, item.path)

    async def update(
        self,
        db: AsyncSession,
        actor_id: uuid.UUID,
        membership_id: uuid.UUID,
        permission: str,
    ) -> MembershipResponse:
        membership = await self._get(db, membership_id)
        item = await self._item_at(db, membership.item_path)
        await self.authorization.validate(db, actor_id, item, PermissionLevel.ADMIN)

        level = PermissionLevel.parse(permission)
        covering = [
            Grant.of(m)
            for m in await MembershipRepository(db).covering(item.path, membership.member_id)
        ]
        inherited = inherited_permission(membership.member_id, item.path, covering)
        if inherited is not None and level <= inherited:
            raise InvalidMembership(
                message=(
                    f"Permission cannot be {level.value}: member inherits "
                    f"{inherited.value} from a parent item"
                ),
                context={"membership_id": str(membership.id), "inherited": inherited.value},
            )

        membership.permission = level.value
        await db.flush()
        await self._clean_below(db, Grant.of(membership))
        return _response(membership, item.path)

    async def delete(
        self, db: AsyncSession, actor_id: uuid.UUID, membership_id: uuid.UUID
    ) -> MembershipResponse:
        """
        Raises:
            ItemMembershipNotFound, MemberCannotAdminItem, CannotDeleteOnlyAdmin
        """
        repository = MembershipRepository(db)
        membership = await self._get(db, membership_id)
        item = await self._item_at(db, membership.item_path)
        if membership.member_id != actor_id:
            await self.authorization.validate(db, actor_id, item, PermissionLevel.ADMIN)

        is_root = paths.parent_path(item.path) is None
        if (
            is_root
            and membership.permission == PermissionLevel.ADMIN.value
            and await repository.count_admins(item.path) <= 1
        ):
            raise CannotDeleteOnlyAdmin(membership.id)

        response = _response(membership, item.path)
        await repository.delete_many([membership.id])
        logger.info("Membership %s removed from %s", membership.id, item.id)
        return response
