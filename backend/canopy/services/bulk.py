"""
Canopy Backend: Bulk Operation Coordinator
===========================================

What:  Fans a move/copy/delete/update request over many item ids.
How:   Validates the id list before anything touches the store, then either
       runs every target right away (small requests, answer carries the
       per-id outcomes) or persists a `bulk_operations` row and hands the
       work to the task queue (answer is 202 with the operation id).
Who:   Item routes (POST /items/move, POST /items/copy, DELETE /items,
       PATCH /items) and the task queue workers (`process`).

Isolation:
    Every target runs in its own session and transaction, opened from the
    session factory. A failing target is rolled back alone and reported in
    `errors`; the others commit independently.

Request Size:
    ┌──────────────────────┬──────────────────────────────────────────────┐
    │ ids > MAX_TARGETS_FOR│ 400 ValidationError, store untouched         │
    │ _MODIFY_REQUEST      │                                              │
    ├──────────────────────┼──────────────────────────────────────────────┤
    │ ids < ..._W_RESPONSE │ synchronous: 200 {results, errors}           │
    ├──────────────────────┼──────────────────────────────────────────────┤
    │ otherwise            │ asynchronous: 202 {operationId}, poll        │
    │                      │ GET /api/operations/{id}                     │
    └──────────────────────┴──────────────────────────────────────────────┘
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence, Union

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from canopy.config import Settings
from canopy.exceptions import CanopyError, OperationNotFound, PermissionDenied, ValidationError
from canopy.models.bulk_operation import BULK_ACTIONS, BulkOperation
from canopy.schemas.item import ItemResponse
from canopy.schemas.operation import BulkAccepted, BulkResult, OperationResponse
from canopy.services.planner import MutationPlanner
from canopy.services.task_queue import BulkJob, BulkTaskQueue

logger = logging.getLogger(__name__)


class BulkOperationCoordinator:
    def __init__(
        self,
        settings: Settings,
        planner: MutationPlanner,
        session_factory: async_sessionmaker[AsyncSession],
        queue: BulkTaskQueue,
    ):
        self.settings = settings
        self.planner = planner
        self.session_factory = session_factory
        self.queue = queue

    def validate_targets(self, target_ids: Sequence[uuid.UUID]) -> List[uuid.UUID]:
        """
        Enforces the request limits on the ids as sent, then collapses
        duplicates (first occurrence wins).
        """
        if not target_ids:
            raise ValidationError(message="At least one item id is required", field="id")
        maximum = self.settings.max_targets_for_modify_request
        if len(target_ids) > maximum:
            raise ValidationError(
                message=f"At most {maximum} items can be modified in one request",
                field="id",
                context={"requested": len(target_ids), "maximum": maximum},
            )
        return list(dict.fromkeys(target_ids))

    # ── Entry Point ───────────────────────────────────────────────────────

    async def submit(
        self,
        action: str,
        actor_id: uuid.UUID,
        target_ids: Sequence[uuid.UUID],
        destination_id: Optional[uuid.UUID] = None,
        changes: Optional[Dict[str, Any]] = None,
    ) -> Union[BulkResult, BulkAccepted]:
        if action not in BULK_ACTIONS:
            raise ValidationError(message=f"Unknown bulk action '{action}'", field="action")
        targets = self.validate_targets(target_ids)

        if len(targets) < self.settings.max_targets_for_modify_request_w_response:
            return await self.execute(action, actor_id, targets, destination_id, changes)

        async with self.session_factory() as db:
            async with db.begin():
                operation = BulkOperation(
                    member_id=actor_id,
                    action=action,
                    target_ids=[str(t) for t in targets],
                    destination_id=destination_id,
                    changes=changes,
                    status="pending",
                )
                db.add(operation)
        await self.queue.enqueue(
            BulkJob(
                operation_id=operation.id,
                member_id=actor_id,
                action=action,
                target_ids=tuple(targets),
                destination_id=destination_id,
                changes=changes,
            )
        )
        return BulkAccepted(operation_id=operation.id, status="pending", target_ids=targets)

    # ── Execution ─────────────────────────────────────────────────────────

    async def execute(
        self,
        action: str,
        actor_id: uuid.UUID,
        targets: Sequence[uuid.UUID],
        destination_id: Optional[uuid.UUID] = None,
        changes: Optional[Dict[str, Any]] = None,
    ) -> BulkResult:
        """Runs every target in its own transaction and collects the outcomes by id."""
        outcome = BulkResult()
        for target in targets:
            key = str(target)
            try:
                async with self.session_factory() as db:
                    async with db.begin():
                        item = await self.planner.run(
                            action, db, actor_id, target, destination_id, changes
                        )
                outcome.results[key] = ItemResponse.of(item).model_dump(mode="json", by_alias=True)
            except CanopyError as e:
                outcome.errors[key] = e.to_dict()
            except Exception as e:
                logger.error("%s of %s failed unexpectedly: %s", action, target, str(e), exc_info=True)
                outcome.errors[key] = {
                    "error": "server_error",
                    "message": "An unexpected error occurred",
                    "details": {},
                }

        logger.info(
            "Bulk %s by %s: %d succeeded, %d failed",
            action, actor_id, len(outcome.results), len(outcome.errors),
        )
        return outcome

    async def process(self, job: BulkJob) -> None:
        """Task queue handler: runs a persisted operation and records its outcome."""
        async with self.session_factory() as db:
            async with db.begin():
                operation = await db.get(BulkOperation, job.operation_id)
                if operation is None:
                    logger.warning("Bulk operation %s vanished before it ran", job.operation_id)
                    return
                operation.status = "running"

        outcome = await self.execute(
            job.action, job.member_id, job.target_ids, job.destination_id, job.changes
        )

        async with self.session_factory() as db:
            async with db.begin():
                operation = await db.get(BulkOperation, job.operation_id)
                if operation is None:
                    return
                operation.status = "completed"
                operation.results = outcome.results
                operation.errors = outcome.errors
                operation.completed_at = datetime.now(timezone.utc)

    # ── Status ────────────────────────────────────────────────────────────

    async def status(
        self, db: AsyncSession, actor_id: uuid.UUID, operation_id: uuid.UUID
    ) -> OperationResponse:
        operation = await db.get(BulkOperation, operation_id)
        if operation is None:
            raise OperationNotFound(operation_id)
        if operation.member_id != actor_id:
            raise PermissionDenied(message="Only the member who started an operation can read it")
        return OperationResponse.model_validate(operation)
