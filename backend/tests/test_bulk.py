"""
Canopy Backend: Bulk Operation Tests
=====================================

What we test:
    ✅ oversized requests are rejected before any session is opened
    ✅ repeated ids count against the limit, then collapse; empty requests are rejected
    ✅ per-target isolation: a missing id in the middle fails alone
    ✅ large requests are persisted, queued, processed and pollable
    ✅ operation status is private to the member who started it
    ✅ bulk update writes the same fields on every target, queued or not
    ✅ task queue workers survive failing jobs and drain on stop
"""

import asyncio
import logging
import uuid
from unittest.mock import MagicMock

import pytest

from canopy.exceptions import OperationNotFound, PermissionDenied, ValidationError
from canopy.models.bulk_operation import BulkOperation
from canopy.schemas.operation import BulkAccepted, BulkResult
from canopy.services.bulk import BulkOperationCoordinator
from canopy.services.task_queue import BulkJob, BulkTaskQueue
from conftest import transaction


def job(action="delete", targets=()):
    return BulkJob(
        operation_id=uuid.uuid4(),
        member_id=uuid.uuid4(),
        action=action,
        target_ids=tuple(targets),
    )


class TestValidateTargets:
    def _coordinator(self, settings):
        session_factory = MagicMock()
        coordinator = BulkOperationCoordinator(
            settings, MagicMock(), session_factory, BulkTaskQueue(worker_count=1)
        )
        return coordinator, session_factory

    @pytest.mark.asyncio
    async def test_oversized_request_never_touches_the_store(self, test_settings):
        coordinator, session_factory = self._coordinator(test_settings)
        ids = [uuid.uuid4() for _ in range(test_settings.max_targets_for_modify_request + 1)]

        with pytest.raises(ValidationError) as exc_info:
            await coordinator.submit("delete", uuid.uuid4(), ids)

        assert exc_info.value.context["maximum"] == test_settings.max_targets_for_modify_request
        session_factory.assert_not_called()
        assert coordinator.queue.pending == 0

    def test_duplicates_collapse_in_order(self, test_settings):
        coordinator, _ = self._coordinator(test_settings)
        a, b = uuid.uuid4(), uuid.uuid4()
        assert coordinator.validate_targets([a, b, a, a]) == [a, b]

    @pytest.mark.asyncio
    async def test_repeated_ids_count_against_the_limit(self, test_settings):
        coordinator, session_factory = self._coordinator(test_settings)
        a = uuid.uuid4()
        many = [a] * (test_settings.max_targets_for_modify_request + 1)

        with pytest.raises(ValidationError) as exc_info:
            await coordinator.submit("delete", uuid.uuid4(), many)

        assert exc_info.value.context["requested"] == len(many)
        session_factory.assert_not_called()

    def test_repeated_ids_at_the_limit_collapse(self, test_settings):
        coordinator, _ = self._coordinator(test_settings)
        a = uuid.uuid4()
        at_limit = [a] * test_settings.max_targets_for_modify_request
        assert coordinator.validate_targets(at_limit) == [a]

    def test_empty_request_is_rejected(self, test_settings):
        coordinator, _ = self._coordinator(test_settings)
        with pytest.raises(ValidationError):
            coordinator.validate_targets([])

    @pytest.mark.asyncio
    async def test_unknown_action_is_rejected(self, test_settings):
        coordinator, session_factory = self._coordinator(test_settings)
        with pytest.raises(ValidationError):
            await coordinator.submit("rename", uuid.uuid4(), [uuid.uuid4()])
        session_factory.assert_not_called()


class TestExecute:
    @pytest.mark.asyncio
    async def test_missing_target_fails_alone(self, context, seed):
        owner = await seed.member("owner")
        x = await seed.item(owner, "X")
        z = await seed.item(owner, "Z")
        y = await seed.item(owner, "Y")
        missing = uuid.uuid4()

        outcome = await context.bulk.execute("move", owner, [x.id, missing, z.id], y.id)

        assert set(outcome.results) == {str(x.id), str(z.id)}
        assert outcome.errors[str(missing)]["error"] == "item_not_found"
        assert outcome.results[str(x.id)]["path"] == f"{y.path}.{x.id}"
        async with transaction(context) as db:
            children = await context.items.children(db, owner, y.id)
        assert {c.id for c in children} == {x.id, z.id}

    @pytest.mark.asyncio
    async def test_small_request_answers_synchronously(self, context, seed):
        owner = await seed.member("owner")
        x = await seed.item(owner, "X")

        outcome = await context.bulk.submit("delete", owner, [x.id])

        assert isinstance(outcome, BulkResult)
        assert list(outcome.results) == [str(x.id)]
        assert outcome.errors == {}

    @pytest.mark.asyncio
    async def test_failures_are_reported_per_target(self, context, seed):
        owner = await seed.member("owner")
        other = await seed.member("other")
        mine = await seed.item(owner, "mine")
        theirs = await seed.item(other, "theirs")

        outcome = await context.bulk.execute("delete", owner, [mine.id, theirs.id])

        assert list(outcome.results) == [str(mine.id)]
        assert outcome.errors[str(theirs.id)]["error"] == "user_cannot_admin_item"


class TestAsynchronousOperations:
    @pytest.mark.asyncio
    async def test_large_request_is_queued_then_completed(self, context, seed):
        owner = await seed.member("owner")
        items = [await seed.item(owner, f"item {n}") for n in range(3)]
        ids = [i.id for i in items]

        accepted = await context.bulk.submit("delete", owner, ids)

        assert isinstance(accepted, BulkAccepted)
        assert accepted.target_ids == ids
        assert context.task_queue.pending == 1
        async with transaction(context) as db:
            pending = await context.bulk.status(db, owner, accepted.operation_id)
        assert pending.status == "pending"
        assert pending.target_ids == [str(i) for i in ids]

        await context.bulk.process(
            BulkJob(
                operation_id=accepted.operation_id,
                member_id=owner,
                action="delete",
                target_ids=tuple(ids),
            )
        )

        async with transaction(context) as db:
            done = await context.bulk.status(db, owner, accepted.operation_id)
        assert done.status == "completed"
        assert set(done.results) == {str(i) for i in ids}
        assert done.errors == {}
        assert done.completed_at is not None

    @pytest.mark.asyncio
    async def test_status_is_private(self, context, seed):
        owner = await seed.member("owner")
        other = await seed.member("other")
        items = [await seed.item(owner, f"item {n}") for n in range(3)]
        accepted = await context.bulk.submit("delete", owner, [i.id for i in items])

        async with transaction(context) as db:
            with pytest.raises(PermissionDenied):
                await context.bulk.status(db, other, accepted.operation_id)
            with pytest.raises(OperationNotFound):
                await context.bulk.status(db, owner, uuid.uuid4())

    @pytest.mark.asyncio
    async def test_process_ignores_unknown_operation(self, context):
        await context.bulk.process(job())


class TestTaskQueue:
    @pytest.mark.asyncio
    async def test_jobs_run_and_queue_drains_on_stop(self):
        seen = []

        async def handler(j):
            seen.append(j.operation_id)

        queue = BulkTaskQueue(worker_count=2, shutdown_timeout=1.0)
        await queue.start(handler)
        jobs = [job() for _ in range(3)]
        for j in jobs:
            await queue.enqueue(j)
        await queue.stop()

        assert sorted(seen) == sorted(j.operation_id for j in jobs)
        assert not queue.is_running

    @pytest.mark.asyncio
    async def test_failing_job_does_not_kill_the_worker(self, caplog):
        seen = []

        async def handler(j):
            if j.action == "move":
                raise RuntimeError("boom")
            seen.append(j.operation_id)

        queue = BulkTaskQueue(worker_count=1, shutdown_timeout=1.0)
        await queue.start(handler)
        survivor = job("delete")
        with caplog.at_level(logging.ERROR, logger="canopy.services.task_queue"):
            await queue.enqueue(job("move"))
            await queue.enqueue(survivor)
            await queue.stop()

        assert seen == [survivor.operation_id]
        assert "crashed" in caplog.text

    @pytest.mark.asyncio
    async def test_stop_gives_up_after_timeout(self, caplog):
        async def slow(j):
            await asyncio.sleep(10)

        queue = BulkTaskQueue(worker_count=1, shutdown_timeout=0.05)
        await queue.start(slow)
        stuck = job()
        with caplog.at_level(logging.WARNING, logger="canopy.services.task_queue"):
            await queue.enqueue(job())
            await queue.enqueue(stuck)
            await queue.stop()

        assert str(stuck.operation_id) in caplog.text
        assert not queue.is_running

    @pytest.mark.asyncio
    async def test_stop_without_start_is_a_no_op(self):
        await BulkTaskQueue().stop()


class TestBulkUpdate:
    @pytest.mark.asyncio
    async def test_small_update_writes_every_target(self, context, seed):
        owner = await seed.member("owner")
        reader = await seed.member("reader")
        mine = await seed.item(owner, "mine")
        shared = await seed.item(reader, "shared")
        await seed.share(reader, owner, shared.id, "read")

        outcome = await context.bulk.submit(
            "update", owner, [mine.id, shared.id], changes={"description": "tidied"}
        )

        assert isinstance(outcome, BulkResult)
        assert outcome.results[str(mine.id)]["description"] == "tidied"
        assert outcome.errors[str(shared.id)]["error"] == "member_cannot_write_item"
        async with transaction(context) as db:
            untouched = await context.items.get(db, owner, shared.id)
        assert untouched.description is None

    @pytest.mark.asyncio
    async def test_update_merges_settings(self, context, seed):
        owner = await seed.member("owner")
        item = await seed.item(owner, "X")
        async with transaction(context) as db:
            await context.planner.run(
                "update", db, owner, item.id, changes={"settings": {"showChat": True}}
            )
        async with transaction(context) as db:
            await context.planner.run(
                "update", db, owner, item.id, changes={"settings": {"layout": "grid"}}
            )

        async with transaction(context) as db:
            updated = await context.items.get(db, owner, item.id)
        assert updated.settings == {"showChat": True, "layout": "grid"}

    @pytest.mark.asyncio
    async def test_large_update_is_queued_with_its_changes(self, context, seed):
        owner = await seed.member("owner")
        items = [await seed.item(owner, f"item {n}") for n in range(3)]
        ids = [i.id for i in items]

        accepted = await context.bulk.submit("update", owner, ids, changes={"lang": "fr"})
        assert isinstance(accepted, BulkAccepted)
        async with transaction(context) as db:
            stored = await db.get(BulkOperation, accepted.operation_id)
            assert stored.changes == {"lang": "fr"}

        await context.bulk.process(
            BulkJob(
                operation_id=accepted.operation_id,
                member_id=owner,
                action="update",
                target_ids=tuple(ids),
                changes={"lang": "fr"},
            )
        )

        async with transaction(context) as db:
            done = await context.bulk.status(db, owner, accepted.operation_id)
            langs = [(await context.items.get(db, owner, i)).lang for i in ids]
        assert done.status == "completed"
        assert done.errors == {}
        assert langs == ["fr", "fr", "fr"]
