"""
Canopy Backend: Item Service
=============================

What:  Item creation, reads, listings and updates.
How:   Every entry point resolves the caller's permission through the
       AuthorizationService; creation runs the tree invariant checks inside
       the request transaction, with the parent row locked.
Who:   Item routes. Moves, copies, deletes and reorders live in the
       MutationPlanner.

Create Flow (POST /api/items?parentId=&previousItemId=):
    ┌──────────────┐   ┌───────────────────┐   ┌──────────────┐   ┌──────────┐
    │ lock parent  │──▶│ write permission, │──▶│ insert item, │──▶│ action   │
    │ (FOR UPDATE) │   │ folder, depth,    │   │ admin grant  │   │ "create" │
    └──────────────┘   │ child count       │   │ if needed    │   └──────────┘
                       └───────────────────┘   └──────────────┘
"""

import logging
import uuid
from typing import Dict, List, Optional, Sequence, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from canopy.config import Settings
from canopy.exceptions import (
    CanopyError,
    DatabaseError,
    ItemNotFound,
    MemberCannotAccess,
    ValidationError,
)
from canopy.models.item import Item
from canopy.models.item_membership import ItemMembership
from canopy.repositories import ItemRepository, MembershipRepository
from canopy.schemas.item import ItemCreate, ItemResponse, ItemUpdate, ManyItemsResponse
from canopy.services.action_service import ActionService
from canopy.services.authorization import AuthorizationService
from canopy.tree import invariants, ordering, paths
from canopy.tree.resolver import PermissionLevel

logger = logging.getLogger(__name__)


def copy_name(name: str, sibling_names: Sequence[str]) -> str:
    """
    Name for a copy placed among `sibling_names`: unchanged when free,
    otherwise suffixed " (2)", " (3)", ... with the first free counter.
    """
    taken = set(sibling_names)
    if name not in taken:
        return name
    counter = 2
    while f"{name} ({counter})" in taken:
        counter += 1
    return f"{name} ({counter})"


class ItemService:
    def __init__(
        self,
        settings: Settings,
        authorization: AuthorizationService,
        actions: ActionService,
    ):
        self.settings = settings
        self.authorization = authorization
        self.actions = actions

    async def _get(self, db: AsyncSession, item_id: uuid.UUID, for_update: bool = False) -> Item:
        item = await ItemRepository(db).get(item_id, for_update=for_update)
        if item is None:
            raise ItemNotFound(item_id)
        return item

    # ── Create ────────────────────────────────────────────────────────────

    async def create(
        self,
        db: AsyncSession,
        actor_id: uuid.UUID,
        data: ItemCreate,
        parent_id: Optional[uuid.UUID] = None,
        previous_item_id: Optional[uuid.UUID] = None,
    ) -> ItemResponse:
        """
        Creates an item at the root or under `parent_id`.

        Raises:
            ItemNotFound:           parent does not exist
            MemberCannotWriteItem:  actor has less than write on the parent
            ItemNotFolder:          parent is not a folder
            HierarchyTooDeep:       the new item would exceed MAX_TREE_LEVELS
            TooManyChildren:        parent already has MAX_NUMBER_OF_CHILDREN
        """
        items = ItemRepository(db)
        new_id = uuid.uuid4()
        parent: Optional[Item] = None
        parent_level: Optional[PermissionLevel] = None
        order: Optional[float] = None

        if parent_id is not None:
            parent = await self._get(db, parent_id, for_update=True)
            parent_level = await self.authorization.validate(
                db, actor_id, parent, PermissionLevel.WRITE
            )
            invariants.assert_insertable_parent(parent.type)
            invariants.assert_depth_allowed(
                paths.child_path(parent.path, new_id), self.settings.max_tree_levels
            )
            invariants.assert_child_count_allowed(
                parent.path,
                await items.count_children(parent.path),
                self.settings.max_number_of_children,
            )
            siblings = await items.sibling_orders(parent.path)
            if previous_item_id is not None:
                order = ordering.rank_after(siblings, previous_item_id)
            else:
                order = ordering.rank_first(o for _, o in siblings)

        item = items.add(
            Item(
                id=new_id,
                name=data.name,
                description=data.description,
                type=data.type,
                path=paths.child_path(parent.path if parent else None, new_id),
                order=order,
                extra=data.extra,
                settings=data.settings,
                lang=data.lang,
                creator_id=actor_id,
            )
        )

        # The creator administrates what they create, unless inheritance already says so
        if parent_level != PermissionLevel.ADMIN:
            MembershipRepository(db).add(
                ItemMembership(
                    member_id=actor_id,
                    item_path=item.path,
                    permission=PermissionLevel.ADMIN.value,
                    creator_id=actor_id,
                )
            )
        self.actions.post(db, actor_id, item, "create")
        await db.flush()

        logger.info("Item created: %s (%s) under %s", item.id, item.type, parent_id or "root")
        return ItemResponse.of(item, PermissionLevel.ADMIN)

    # ── Reads ─────────────────────────────────────────────────────────────

    async def get(
        self, db: AsyncSession, actor_id: Optional[uuid.UUID], item_id: uuid.UUID
    ) -> ItemResponse:
        item = await self._get(db, item_id)
        level = await self.authorization.validate(db, actor_id, item, PermissionLevel.READ)
        return ItemResponse.of(item, level)

    async def get_many(
        self, db: AsyncSession, actor_id: Optional[uuid.UUID], item_ids: Sequence[uuid.UUID]
    ) -> ManyItemsResponse:
        """Fetches up to MAX_TARGETS_FOR_READ_REQUEST items; failures are reported per id."""
        maximum = self.settings.max_targets_for_read_request
        if len(item_ids) > maximum:
            raise ValidationError(
                message=f"At most {maximum} items can be requested at once",
                field="id",
                context={"requested": len(item_ids), "maximum": maximum},
            )
        unique_ids = list(dict.fromkeys(item_ids))

        found = {i.id: i for i in await ItemRepository(db).get_many(unique_ids)}
        accesses = await self.authorization.resolve_many(db, actor_id, list(found.values()))

        response = ManyItemsResponse()
        for item_id in unique_ids:
            key = str(item_id)
            item = found.get(item_id)
            if item is None:
                response.errors[key] = ItemNotFound(item_id).to_dict()
                continue
            access = accesses[item_id]
            if not access.visible:
                response.errors[key] = MemberCannotAccess(item_id).to_dict()
                continue
            response.data[key] = ItemResponse.of(item, access.level)
        return response

    async def children(
        self,
        db: AsyncSession,
        actor_id: Optional[uuid.UUID],
        item_id: uuid.UUID,
        types: Optional[Sequence[str]] = None,
        keywords: Optional[Sequence[str]] = None,
    ) -> List[ItemResponse]:
        parent = await self._get(db, item_id)
        await self.authorization.validate(db, actor_id, parent, PermissionLevel.READ)
        children = await ItemRepository(db).children(parent.path, types=types, keywords=keywords)
        visible = await self.authorization.visible(db, actor_id, children)
        return [ItemResponse.of(item, level) for item, level in visible]

    async def descendants(
        self, db: AsyncSession, actor_id: Optional[uuid.UUID], item_id: uuid.UUID
    ) -> List[ItemResponse]:
        root = await self._get(db, item_id)
        await self.authorization.validate(db, actor_id, root, PermissionLevel.READ)
        descendants = await ItemRepository(db).descendants(root.path)
        visible = await self.authorization.visible(db, actor_id, descendants)
        visible_paths = {item.path for item, _ in visible}
        # Children of a hidden folder stay out of reach too
        return [
            ItemResponse.of(item, level)
            for item, level in visible
            if all(
                p in visible_paths
                for p in paths.ancestor_paths(item.path)
                if paths.is_strict_descendant(p, root.path)
            )
        ]

    async def parents(
        self, db: AsyncSession, actor_id: Optional[uuid.UUID], item_id: uuid.UUID
    ) -> List[ItemResponse]:
        """Ancestors the caller can see, root first."""
        item = await self._get(db, item_id)
        await self.authorization.validate(db, actor_id, item, PermissionLevel.READ)
        ancestors = await ItemRepository(db).ancestors(item.path)
        visible = await self.authorization.visible(db, actor_id, ancestors)
        return [ItemResponse.of(a, level) for a, level in visible]

    async def own(self, db: AsyncSession, actor_id: uuid.UUID) -> List[ItemResponse]:
        """Items the member created and administrates through their own grant."""
        memberships = await MembershipRepository(db).for_member(
            actor_id, permissions=[PermissionLevel.ADMIN.value]
        )
        items = await ItemRepository(db).get_by_paths(m.item_path for m in memberships)
        owned = [i for i in items if i.creator_id == actor_id]
        owned.sort(key=lambda i: i.created_at, reverse=True)
        return [ItemResponse.of(i, PermissionLevel.ADMIN) for i in owned]

    async def shared_with(
        self,
        db: AsyncSession,
        actor_id: uuid.UUID,
        permissions: Optional[Sequence[str]] = None,
    ) -> List[ItemResponse]:
        """Items other members shared with the caller (top of each grant)."""
        memberships = await MembershipRepository(db).for_member(actor_id, permissions=permissions)
        levels: Dict[str, str] = {m.item_path: m.permission for m in memberships}
        items = await ItemRepository(db).get_by_paths(levels.keys())
        shared = [i for i in items if i.creator_id != actor_id]
        shared.sort(key=lambda i: i.updated_at, reverse=True)
        return [ItemResponse.of(i, levels[i.path]) for i in shared]

    # ── Update ────────────────────────────────────────────────────────────

    async def update(
        self, db: AsyncSession, actor_id: uuid.UUID, item_id: uuid.UUID, data: ItemUpdate
    ) -> ItemResponse:
        item, level = await self.apply_update(db, actor_id, item_id, data)
        return ItemResponse.of(item, level)

    async def apply_update(
        self, db: AsyncSession, actor_id: uuid.UUID, item_id: uuid.UUID, data: ItemUpdate
    ) -> Tuple[Item, PermissionLevel]:
        """
        Writes the fields sent in `data` on the locked item; `extra` and
        `settings` are merged into the stored dicts. Shared by PATCH
        /items/{id} and the bulk update.

        Raises:
            ItemNotFound, MemberCannotAccess, MemberCannotWriteItem
        """
        item = await self._get(db, item_id, for_update=True)
        level = await self.authorization.validate(db, actor_id, item, PermissionLevel.WRITE)

        changes = data.model_dump(exclude_unset=True)
        if not changes:
            return item, level
        try:
            for field, value in changes.items():
                if value is None and field != "description":
                    continue
                if field in ("extra", "settings") and value is not None:
                    value = {**(getattr(item, field) or {}), **value}
                setattr(item, field, value)
            self.actions.post(db, actor_id, item, "update", extra={"fields": sorted(changes)})
            await db.flush()
        except CanopyError:
            raise
        except Exception as e:
            logger.error("Database error updating item %s: %s", item_id, str(e), exc_info=True)
            raise DatabaseError(
                message="Could not update the item. Please try again.",
                context={"item_id": str(item_id)},
            )
        return item, level
