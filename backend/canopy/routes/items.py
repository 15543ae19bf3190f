"""
Canopy Backend: Item Route Handlers
====================================

What:  Item creation, reads and listings, updates, reorder, and the bulk
       move / copy / delete / update endpoints.
How:   Single-item handlers run on the request session. Bulk handlers go
       through the BulkOperationCoordinator, which opens one session per
       target; they answer 200 with per-id outcomes for small requests and
       202 with an operation id otherwise.
"""

import logging
import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from canopy.context import AppContext
from canopy.dependencies import current_member, get_context, get_session, optional_member
from canopy.schemas.common import ErrorResponse
from canopy.schemas.item import (
    ItemCreate,
    ItemReorder,
    ItemResponse,
    ItemUpdate,
    ManyItemsResponse,
)
from canopy.schemas.operation import BulkAccepted, BulkDestination, BulkResult

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Items"])

ERRORS = {
    400: {"description": "Invalid input or tree limit reached", "model": ErrorResponse},
    401: {"description": "No calling member", "model": ErrorResponse},
    403: {"description": "Insufficient permission", "model": ErrorResponse},
    404: {"description": "Item not found", "model": ErrorResponse},
}

BULK_RESPONSES = {
    200: {"description": "Per-id outcomes of a small request", "model": BulkResult},
    202: {"description": "Accepted; poll GET /api/operations/{id}", "model": BulkAccepted},
    400: ERRORS[400],
    401: ERRORS[401],
}


def _bulk_response(response: Response, outcome):
    if isinstance(outcome, BulkAccepted):
        response.status_code = status.HTTP_202_ACCEPTED
    return outcome


# ── Create ────────────────────────────────────────────────────────────────

@router.post(
    "/items",
    response_model=ItemResponse,
    status_code=status.HTTP_201_CREATED,
    responses=ERRORS,
    summary="Create an item at the root or inside a folder",
)
async def create_item(
    data: ItemCreate,
    parent_id: Optional[uuid.UUID] = Query(default=None, alias="parentId"),
    previous_item_id: Optional[uuid.UUID] = Query(
        default=None,
        alias="previousItemId",
        description="Sibling the new item is placed after; omitted places it first",
    ),
    member_id: uuid.UUID = Depends(current_member),
    db: AsyncSession = Depends(get_session),
    ctx: AppContext = Depends(get_context),
) -> ItemResponse:
    return await ctx.items.create(db, member_id, data, parent_id, previous_item_id)


# ── Bulk (registered before /items/{item_id}) ─────────────────────────────

@router.post(
    "/items/move",
    response_model=None,
    responses=BULK_RESPONSES,
    summary="Move items under a folder or to the root",
)
async def move_items(
    response: Response,
    ids: List[uuid.UUID] = Query(alias="id"),
    destination: Optional[BulkDestination] = None,
    member_id: uuid.UUID = Depends(current_member),
    ctx: AppContext = Depends(get_context),
):
    parent_id = destination.parent_id if destination else None
    outcome = await ctx.bulk.submit("move", member_id, ids, parent_id)
    return _bulk_response(response, outcome)


@router.post(
    "/items/copy",
    response_model=None,
    responses=BULK_RESPONSES,
    summary="Copy items under a folder or to the root",
)
async def copy_items(
    response: Response,
    ids: List[uuid.UUID] = Query(alias="id"),
    destination: Optional[BulkDestination] = None,
    member_id: uuid.UUID = Depends(current_member),
    ctx: AppContext = Depends(get_context),
):
    parent_id = destination.parent_id if destination else None
    outcome = await ctx.bulk.submit("copy", member_id, ids, parent_id)
    return _bulk_response(response, outcome)


@router.delete(
    "/items",
    response_model=None,
    responses=BULK_RESPONSES,
    summary="Delete items with their whole subtree",
)
async def delete_items(
    response: Response,
    ids: List[uuid.UUID] = Query(alias="id"),
    member_id: uuid.UUID = Depends(current_member),
    ctx: AppContext = Depends(get_context),
):
    outcome = await ctx.bulk.submit("delete", member_id, ids)
    return _bulk_response(response, outcome)


@router.patch(
    "/items",
    response_model=None,
    responses=BULK_RESPONSES,
    summary="Apply the same field changes to several items",
)
async def update_items(
    response: Response,
    data: ItemUpdate,
    ids: List[uuid.UUID] = Query(alias="id"),
    member_id: uuid.UUID = Depends(current_member),
    ctx: AppContext = Depends(get_context),
):
    changes = data.model_dump(exclude_unset=True)
    outcome = await ctx.bulk.submit("update", member_id, ids, changes=changes)
    return _bulk_response(response, outcome)


# ── Listings ──────────────────────────────────────────────────────────────

@router.get(
    "/items/many",
    response_model=ManyItemsResponse,
    summary="Get several items by id",
    description="Ids that cannot be returned are reported under `errors` instead of failing the call.",
)
async def get_many_items(
    ids: List[uuid.UUID] = Query(alias="id"),
    member_id: Optional[uuid.UUID] = Depends(optional_member),
    db: AsyncSession = Depends(get_session),
    ctx: AppContext = Depends(get_context),
) -> ManyItemsResponse:
    return await ctx.items.get_many(db, member_id, ids)


@router.get(
    "/items/own",
    response_model=List[ItemResponse],
    summary="Items the calling member created and administrates",
)
async def own_items(
    member_id: uuid.UUID = Depends(current_member),
    db: AsyncSession = Depends(get_session),
    ctx: AppContext = Depends(get_context),
) -> List[ItemResponse]:
    return await ctx.items.own(db, member_id)


@router.get(
    "/items/shared-with",
    response_model=List[ItemResponse],
    summary="Items other members shared with the calling member",
)
async def shared_items(
    permission: Optional[List[str]] = Query(default=None),
    member_id: uuid.UUID = Depends(current_member),
    db: AsyncSession = Depends(get_session),
    ctx: AppContext = Depends(get_context),
) -> List[ItemResponse]:
    return await ctx.items.shared_with(db, member_id, permissions=permission)


# ── Single Item ───────────────────────────────────────────────────────────

@router.get(
    "/items/{item_id}",
    response_model=ItemResponse,
    responses=ERRORS,
    summary="Get an item",
)
async def get_item(
    item_id: uuid.UUID,
    member_id: Optional[uuid.UUID] = Depends(optional_member),
    db: AsyncSession = Depends(get_session),
    ctx: AppContext = Depends(get_context),
) -> ItemResponse:
    return await ctx.items.get(db, member_id, item_id)


@router.get(
    "/items/{item_id}/children",
    response_model=List[ItemResponse],
    responses=ERRORS,
    summary="Direct children of a folder, in sibling order",
)
async def get_children(
    item_id: uuid.UUID,
    types: Optional[List[str]] = Query(default=None),
    keywords: Optional[List[str]] = Query(default=None),
    member_id: Optional[uuid.UUID] = Depends(optional_member),
    db: AsyncSession = Depends(get_session),
    ctx: AppContext = Depends(get_context),
) -> List[ItemResponse]:
    return await ctx.items.children(db, member_id, item_id, types=types, keywords=keywords)


@router.get(
    "/items/{item_id}/descendants",
    response_model=List[ItemResponse],
    responses=ERRORS,
    summary="Every visible item below an item",
)
async def get_descendants(
    item_id: uuid.UUID,
    member_id: Optional[uuid.UUID] = Depends(optional_member),
    db: AsyncSession = Depends(get_session),
    ctx: AppContext = Depends(get_context),
) -> List[ItemResponse]:
    return await ctx.items.descendants(db, member_id, item_id)


@router.get(
    "/items/{item_id}/parents",
    response_model=List[ItemResponse],
    responses=ERRORS,
    summary="Visible ancestors of an item, root first",
)
async def get_parents(
    item_id: uuid.UUID,
    member_id: Optional[uuid.UUID] = Depends(optional_member),
    db: AsyncSession = Depends(get_session),
    ctx: AppContext = Depends(get_context),
) -> List[ItemResponse]:
    return await ctx.items.parents(db, member_id, item_id)


@router.patch(
    "/items/{item_id}",
    response_model=ItemResponse,
    responses=ERRORS,
    summary="Update name, description, settings, lang or extra",
)
async def update_item(
    item_id: uuid.UUID,
    data: ItemUpdate,
    member_id: uuid.UUID = Depends(current_member),
    db: AsyncSession = Depends(get_session),
    ctx: AppContext = Depends(get_context),
) -> ItemResponse:
    return await ctx.items.update(db, member_id, item_id, data)


@router.patch(
    "/items/{item_id}/reorder",
    response_model=ItemResponse,
    responses=ERRORS,
    summary="Place an item after a sibling, or first",
)
async def reorder_item(
    item_id: uuid.UUID,
    data: ItemReorder,
    member_id: uuid.UUID = Depends(current_member),
    db: AsyncSession = Depends(get_session),
    ctx: AppContext = Depends(get_context),
) -> ItemResponse:
    item = await ctx.planner.reorder(db, member_id, item_id, data.previous_item_id)
    return ItemResponse.of(item)
