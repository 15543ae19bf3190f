"""
Canopy Backend: Mutation Planner
=================================

What:  Runs one move, copy, delete or reorder of a single item (and its
       subtree) from validation to the last write.
How:   Each run walks a small state machine and logs every transition:

           VALIDATING ──▶ PLANNING ──▶ APPLYING ──▶ DONE
                │             │            │
                └─────────────┴────────────┴──────▶ FAILED

       VALIDATING  load and lock rows, check permissions and tree invariants
       PLANNING    compute everything the writes need (paths, membership
                   delta, ranks, names) without writing anything
       APPLYING    issue the writes on the caller's session

       The caller owns the transaction: a planner error leaves nothing behind
       once the caller rolls back.
Who:   Item routes (reorder) and the BulkOperationCoordinator (move, copy,
       delete, update; one session per target). A bulk update has no subtree
       work: it delegates the field writes to ItemService.apply_update.

Locking:
    The source row and the destination parent row are read with
    SELECT ... FOR UPDATE, so two moves touching the same folder serialize
    on PostgreSQL. Combined with DB_ISOLATION_LEVEL=SERIALIZABLE the depth
    and child-count checks hold under concurrent writers.
"""

import logging
import uuid
from enum import Enum
from typing import Any, Dict, List, Optional

from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession

from canopy.config import Settings
from canopy.exceptions import (
    CannotReorderRootItem,
    ItemNotFound,
    UserCannotAdminItem,
    UserCannotWriteItem,
    ValidationError,
)
from canopy.models.item import Item
from canopy.models.item_flag import ItemFlag
from canopy.models.item_like import ItemLike
from canopy.models.item_published import ItemPublished
from canopy.repositories import ItemRepository, ItemTagRepository, MembershipRepository
from canopy.schemas.item import ItemUpdate
from canopy.services.action_service import ActionService
from canopy.services.authorization import AuthorizationService
from canopy.services.item_service import ItemService, copy_name
from canopy.tree import invariants, ordering, paths
from canopy.tree.resolver import Grant, PermissionLevel, compute_move_housekeeping

logger = logging.getLogger(__name__)


class OperationState(str, Enum):
    VALIDATING = "validating"
    PLANNING = "planning"
    APPLYING = "applying"
    DONE = "done"
    FAILED = "failed"


class PlanRun:
    """
    State tracker of one single-item operation.

    Used as a context manager: leaving the block normally ends in DONE,
    leaving it with an exception ends in FAILED (the exception propagates).
    """

    def __init__(self, action: str, item_id, actor_id):
        self.action = action
        self.item_id = item_id
        self.actor_id = actor_id
        self.state = OperationState.VALIDATING
        self.history: List[OperationState] = [self.state]

    def advance(self, state: OperationState) -> None:
        logger.debug(
            "%s %s by %s: %s → %s",
            self.action, self.item_id, self.actor_id, self.state.value, state.value,
        )
        self.state = state
        self.history.append(state)

    def __enter__(self) -> "PlanRun":
        logger.debug("%s %s by %s: %s", self.action, self.item_id, self.actor_id, self.state.value)
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        if exc is None:
            self.advance(OperationState.DONE)
        else:
            logger.info(
                "%s %s by %s failed while %s: %s",
                self.action, self.item_id, self.actor_id, self.state.value, exc,
            )
            self.advance(OperationState.FAILED)
        return False


class MutationPlanner:
    def __init__(
        self,
        settings: Settings,
        authorization: AuthorizationService,
        actions: ActionService,
        items: ItemService,
    ):
        self.settings = settings
        self.authorization = authorization
        self.actions = actions
        self.items = items

    async def run(
        self,
        action: str,
        db: AsyncSession,
        actor_id: uuid.UUID,
        item_id: uuid.UUID,
        parent_id: Optional[uuid.UUID] = None,
        changes: Optional[Dict[str, Any]] = None,
    ) -> Item:
        """Dispatches one bulk target to move, copy, delete or update."""
        if action == "update":
            data = ItemUpdate.model_validate(changes or {})
            return await self.update(db, actor_id, item_id, data)
        if action == "move":
            return await self.move(db, actor_id, item_id, parent_id)
        if action == "copy":
            return await self.copy(db, actor_id, item_id, parent_id)
        if action == "delete":
            return await self.delete(db, actor_id, item_id)
        raise ValidationError(message=f"Unknown bulk action '{action}'", field="action")

    async def _load(self, db: AsyncSession, item_id: uuid.UUID, for_update: bool = False) -> Item:
        item = await ItemRepository(db).get(item_id, for_update=for_update)
        if item is None:
            raise ItemNotFound(item_id)
        return item

    async def _destination(
        self, db: AsyncSession, actor_id: uuid.UUID, parent_id: Optional[uuid.UUID]
    ) -> Optional[Item]:
        """Locked destination parent after write permission and type checks (None = root)."""
        if parent_id is None:
            return None
        parent = await self._load(db, parent_id, for_update=True)
        await self.authorization.validate(
            db, actor_id, parent, PermissionLevel.WRITE, denied=UserCannotWriteItem
        )
        invariants.assert_insertable_parent(parent.type)
        return parent

    # ── Move ──────────────────────────────────────────────────────────────

    async def move(
        self,
        db: AsyncSession,
        actor_id: uuid.UUID,
        item_id: uuid.UUID,
        parent_id: Optional[uuid.UUID] = None,
    ) -> Item:
        """
        Moves the subtree rooted at `item_id` under `parent_id` (None = root).

        Raises:
            ItemNotFound, UserCannotAdminItem, UserCannotWriteItem,
            InvalidMoveTarget, ItemNotFolder, HierarchyTooDeep,
            TooManyChildren, TooManyDescendants
        """
        items = ItemRepository(db)
        memberships = MembershipRepository(db)

        with PlanRun("move", item_id, actor_id) as run:
            source = await self._load(db, item_id, for_update=True)
            await self.authorization.validate(
                db, actor_id, source, PermissionLevel.ADMIN, denied=UserCannotAdminItem
            )
            parent = await self._destination(db, actor_id, parent_id)
            destination_path = parent.path if parent else None

            invariants.assert_no_cycle_or_no_op(source.path, destination_path)
            invariants.assert_subtree_depth_allowed(
                destination_path,
                await items.subtree_height(source.path),
                self.settings.max_tree_levels,
            )
            if parent is not None:
                invariants.assert_child_count_allowed(
                    parent.path,
                    await items.count_children(parent.path),
                    self.settings.max_number_of_children,
                )
            invariants.assert_descendants_allowed(
                await items.count_descendants(source.path),
                self.settings.max_descendants_for_move,
                item_id=source.id,
            )

            run.advance(OperationState.PLANNING)
            before = source.path
            after = paths.child_path(destination_path, source.id)
            grants = [Grant.of(m) for m in await memberships.for_move(before, destination_path)]
            housekeeping = compute_move_housekeeping(before, after, actor_id, grants)
            new_order = None
            if parent is not None:
                new_order = ordering.rank_last(o for _, o in await items.sibling_orders(parent.path))

            run.advance(OperationState.APPLYING)
            await items.rewrite_subtree(before, after)
            await memberships.rewrite_prefix(before, after)
            await ItemTagRepository(db).rewrite_prefix(before, after)
            await memberships.delete_many([g.id for g in housekeeping.deletes])
            await memberships.create_many(housekeeping.inserts, creator_id=actor_id)

            await db.refresh(source)
            source.order = new_order
            self.actions.post(db, actor_id, source, "move", extra={"from": before, "to": after})
            await db.flush()

        logger.info(
            "Moved %s to %s (%d membership insert(s), %d delete(s))",
            item_id, parent_id or "root", len(housekeeping.inserts), len(housekeeping.deletes),
        )
        return source

    # ── Copy ──────────────────────────────────────────────────────────────

    async def _sibling_names(
        self, db: AsyncSession, actor_id: uuid.UUID, parent: Optional[Item]
    ) -> List[str]:
        items = ItemRepository(db)
        if parent is not None:
            return [c.name for c in await items.children(parent.path)]
        # At the root, "siblings" are the root items the actor has a grant on
        grants = await MembershipRepository(db).for_member(actor_id)
        roots = await items.roots(g.item_path for g in grants)
        return [r.name for r in roots]

    async def copy(
        self,
        db: AsyncSession,
        actor_id: uuid.UUID,
        item_id: uuid.UUID,
        parent_id: Optional[uuid.UUID] = None,
    ) -> Item:
        """
        Duplicates the subtree rooted at `item_id` under `parent_id` and returns
        the new root. The source subtree is left untouched; memberships, tags,
        likes and flags are not copied.

        Raises:
            ItemNotFound, MemberCannotAccess, UserCannotWriteItem,
            ItemNotFolder, HierarchyTooDeep, TooManyChildren, TooManyDescendants
        """
        items = ItemRepository(db)

        with PlanRun("copy", item_id, actor_id) as run:
            source = await self._load(db, item_id)
            await self.authorization.validate(db, actor_id, source, PermissionLevel.READ)
            parent = await self._destination(db, actor_id, parent_id)
            destination_path = parent.path if parent else None

            invariants.assert_subtree_depth_allowed(
                destination_path,
                await items.subtree_height(source.path),
                self.settings.max_tree_levels,
            )
            if parent is not None:
                invariants.assert_child_count_allowed(
                    parent.path,
                    await items.count_children(parent.path),
                    self.settings.max_number_of_children,
                )
            subtree = await items.subtree(source.path)
            invariants.assert_descendants_allowed(
                len(subtree) - 1, self.settings.max_descendants_for_copy, item_id=source.id
            )

            run.advance(OperationState.PLANNING)
            fresh_ids: Dict[str, uuid.UUID] = {str(i.id): uuid.uuid4() for i in subtree}
            source_depth = paths.depth(source.path)
            root_name = copy_name(source.name, await self._sibling_names(db, actor_id, parent))

            copies: List[Item] = []
            for original in subtree:
                relative = paths.decode(original.path)[source_depth - 1:]
                new_path = destination_path
                for segment in relative:
                    new_path = paths.child_path(new_path, fresh_ids[segment])
                is_root = original.id == source.id
                copies.append(
                    Item(
                        id=fresh_ids[str(original.id)],
                        name=root_name if is_root else original.name,
                        description=original.description,
                        type=original.type,
                        path=new_path,
                        order=None if is_root else original.order,
                        extra=dict(original.extra or {}),
                        settings=dict(original.settings or {}),
                        lang=original.lang,
                        creator_id=actor_id,
                    )
                )
            new_root = copies[0]

            inherited = None
            if parent is not None:
                inherited = (await self.authorization.resolve(db, actor_id, parent)).level

            run.advance(OperationState.APPLYING)
            db.add_all(copies)
            if inherited != PermissionLevel.ADMIN:
                await MembershipRepository(db).create_many(
                    [Grant(subject=str(actor_id), path=new_root.path, level=PermissionLevel.ADMIN)],
                    creator_id=actor_id,
                )
            self.actions.post(
                db, actor_id, new_root, "copy", extra={"source": str(source.id)}
            )
            await db.flush()

        logger.info("Copied %s (%d item(s)) to %s", item_id, len(copies), parent_id or "root")
        return new_root

    # ── Delete ────────────────────────────────────────────────────────────

    async def delete(self, db: AsyncSession, actor_id: uuid.UUID, item_id: uuid.UUID) -> Item:
        """
        Deletes the item, its whole subtree and everything scoped to it
        (memberships, tags, likes, flags, publication). Ancestors are untouched.

        Raises:
            ItemNotFound, UserCannotAdminItem, TooManyDescendants
        """
        items = ItemRepository(db)

        with PlanRun("delete", item_id, actor_id) as run:
            item = await self._load(db, item_id, for_update=True)
            await self.authorization.validate(
                db, actor_id, item, PermissionLevel.ADMIN, denied=UserCannotAdminItem
            )
            invariants.assert_descendants_allowed(
                await items.count_descendants(item.path),
                self.settings.max_descendants_for_delete,
                item_id=item.id,
            )

            run.advance(OperationState.PLANNING)
            ids = await items.subtree_ids(item.path)

            run.advance(OperationState.APPLYING)
            for model in (ItemLike, ItemFlag, ItemPublished):
                await db.execute(
                    delete(model)
                    .where(model.item_id.in_(ids))
                    .execution_options(synchronize_session=False)
                )
            await MembershipRepository(db).delete_by_prefix(item.path)
            await ItemTagRepository(db).delete_by_prefix(item.path)
            removed = await items.delete_subtree(item.path)
            self.actions.post(db, actor_id, item, "delete", extra={"items": removed})
            await db.flush()

        logger.info("Deleted %s (%d item(s))", item_id, removed)
        return item

    # ── Update ────────────────────────────────────────────────────────────

    async def update(
        self, db: AsyncSession, actor_id: uuid.UUID, item_id: uuid.UUID, data: ItemUpdate
    ) -> Item:
        with PlanRun("update", item_id, actor_id):
            item, _ = await self.items.apply_update(db, actor_id, item_id, data)
        return item

    # ── Reorder ───────────────────────────────────────────────────────────

    async def reorder(
        self,
        db: AsyncSession,
        actor_id: uuid.UUID,
        item_id: uuid.UUID,
        previous_item_id: Optional[uuid.UUID] = None,
    ) -> Item:
        """
        Places the item right after sibling `previous_item_id`, or first when
        none is given. Concurrent reorders are last-write-wins.

        Raises:
            ItemNotFound, CannotReorderRootItem, MemberCannotWriteItem
        """
        items = ItemRepository(db)

        with PlanRun("reorder", item_id, actor_id) as run:
            item = await self._load(db, item_id, for_update=True)
            parent_path = paths.parent_path(item.path)
            if parent_path is None:
                raise CannotReorderRootItem(item.id)
            parent = await items.get_by_path(parent_path)
            if parent is None:
                raise ItemNotFound(resource_id=parent_path)
            await self.authorization.validate(db, actor_id, parent, PermissionLevel.WRITE)

            run.advance(OperationState.PLANNING)
            siblings = await items.sibling_orders(parent_path, exclude_id=item.id)
            new_order = ordering.rank_after(siblings, previous_item_id)

            run.advance(OperationState.APPLYING)
            item.order = new_order
            self.actions.post(db, actor_id, item, "reorder", extra={"order": new_order})
            await db.flush()

        return item
