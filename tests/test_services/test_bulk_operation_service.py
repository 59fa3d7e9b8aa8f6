"""
Tests for the bulk operation state machine.
"""

import pytest

from app.core.exceptions import (
    BulkOperationNotFoundException,
    InvalidStateTransitionException,
    ValidationException,
)
from app.models.bulk_operation import BulkOperationStatus, BulkOperationType
from app.schemas.bulk_operation import BulkOperationCreate
from app.schemas.tag import TagCreate
from app.services.bulk_operations import BulkOperationService, can_transition

Status = BulkOperationStatus


@pytest.fixture
def bulk_service(db_session, cache, test_settings) -> BulkOperationService:
    return BulkOperationService(db_session, cache, test_settings)


async def make_tags(tag_service, ctx, *names):
    return [await tag_service.create_tag(ctx, TagCreate(name=name)) for name in names]


def request(op_type, tags, **options) -> BulkOperationCreate:
    return BulkOperationCreate(
        type=op_type,
        tag_uuids=[t if isinstance(t, str) else t.uuid for t in tags],
        options=options,
    )


class TestTransitions:
    def test_allowed(self):
        assert can_transition(Status.PENDING, Status.RUNNING)
        assert can_transition(Status.RUNNING, Status.PAUSED)
        assert can_transition(Status.RUNNING, Status.COMPLETED)
        assert can_transition(Status.RUNNING, Status.FAILED)
        assert can_transition(Status.PAUSED, Status.RUNNING)
        assert can_transition(Status.FAILED, Status.RUNNING)

    def test_forbidden(self):
        assert not can_transition(Status.PENDING, Status.PAUSED)
        assert not can_transition(Status.PENDING, Status.COMPLETED)
        assert not can_transition(Status.COMPLETED, Status.RUNNING)
        assert not can_transition(Status.PAUSED, Status.COMPLETED)


class TestCreate:
    @pytest.mark.asyncio
    async def test_created_pending(self, bulk_service, tag_service, tenant):
        tags = await make_tags(tag_service, tenant, "A", "B")

        op = await bulk_service.create(tenant, request(BulkOperationType.FEATURE, tags), created_by="u1")

        assert op.status == Status.PENDING
        assert op.total_items == 2
        assert op.pending_item_ids == [t.uuid for t in tags]
        assert op.progress == 0
        assert op.tenant_id == 7

    @pytest.mark.asyncio
    async def test_duplicate_items_collapsed(self, bulk_service, tenant):
        op = await bulk_service.create(tenant, request(BulkOperationType.FEATURE, ["x", "x", "y"]))

        assert op.item_ids == ["x", "y"]

    @pytest.mark.asyncio
    async def test_item_limit(self, bulk_service, tenant):
        ids = [f"tag-{i}" for i in range(11)]

        with pytest.raises(ValidationException) as exc_info:
            await bulk_service.create(tenant, request(BulkOperationType.ACTIVATE, ids))
        assert exc_info.value.details["maxItems"] == 10

    @pytest.mark.asyncio
    async def test_required_options(self, bulk_service, tenant):
        with pytest.raises(ValidationException) as exc_info:
            await bulk_service.create(tenant, request(BulkOperationType.SET_CATEGORY, ["x"]))
        assert exc_info.value.details["missing"] == ["category"]

        with pytest.raises(ValidationException):
            await bulk_service.create(tenant, request(BulkOperationType.MERGE, ["x"]))

    @pytest.mark.asyncio
    async def test_merge_target_not_among_items(self, bulk_service, tenant):
        with pytest.raises(ValidationException):
            await bulk_service.create(
                tenant, request(BulkOperationType.MERGE, ["x", "y"], targetUuid="y")
            )

    @pytest.mark.asyncio
    async def test_unknown_options_dropped(self, bulk_service, tenant):
        op = await bulk_service.create(
            tenant, request(BulkOperationType.DELETE, ["x"], soft=True, extra="ignored")
        )

        assert op.options == {"soft": True}

    @pytest.mark.asyncio
    async def test_category_too_long(self, bulk_service, tenant):
        with pytest.raises(ValidationException) as exc_info:
            await bulk_service.create(
                tenant, request(BulkOperationType.SET_CATEGORY, ["x"], category="x" * 150)
            )
        assert exc_info.value.details["maxLength"] == 100


class TestRun:
    @pytest.mark.asyncio
    async def test_run_to_completion(self, bulk_service, tag_service, tenant):
        tags = await make_tags(tag_service, tenant, "A", "B", "C")
        op = await bulk_service.create(tenant, request(BulkOperationType.DEACTIVATE, tags))

        op = await bulk_service.run(op.id)

        assert op.status == Status.COMPLETED
        assert op.processed_items == 3
        assert op.failed_items == 0
        assert op.progress == 100
        assert op.started_at is not None
        assert op.completed_at is not None
        for tag in tags:
            assert (await tag_service.get_tag(tenant, tag.uuid)).is_active is False

    @pytest.mark.asyncio
    async def test_max_items_pauses_and_resumes(self, bulk_service, tag_service, tenant):
        tags = await make_tags(tag_service, tenant, "A", "B", "C")
        op = await bulk_service.create(tenant, request(BulkOperationType.FEATURE, tags))

        op = await bulk_service.run(op.id, max_items=1)

        assert op.status == Status.PAUSED
        assert op.processed_items == 1
        assert op.pending_item_ids == [tags[1].uuid, tags[2].uuid]
        assert op.progress == 33

        op = await bulk_service.run(op.id)

        assert op.status == Status.COMPLETED
        assert op.processed_items == 3

    @pytest.mark.asyncio
    async def test_run_completed_rejected(self, bulk_service, tag_service, tenant):
        tags = await make_tags(tag_service, tenant, "A")
        op = await bulk_service.create(tenant, request(BulkOperationType.FEATURE, tags))
        await bulk_service.run(op.id)

        with pytest.raises(InvalidStateTransitionException):
            await bulk_service.run(op.id)

    @pytest.mark.asyncio
    async def test_item_failures_fail_operation(self, bulk_service, tag_service, tenant):
        tags = await make_tags(tag_service, tenant, "A", "B", "C")
        await tag_service.attach(tenant, "profile", "p-1", [tags[1].uuid])
        op = await bulk_service.create(
            tenant, request(BulkOperationType.DELETE, tags + ["missing-uuid"])
        )

        op = await bulk_service.run(op.id)

        assert op.status == Status.FAILED
        assert op.processed_items == 4
        assert op.failed_items == 2
        assert op.failed_item_ids == [tags[1].uuid, "missing-uuid"]
        assert [e["error"] for e in op.errors] == ["tag_in_use", "tag_not_found"]

    @pytest.mark.asyncio
    async def test_retry_reprocesses_failed_subset(self, bulk_service, tag_service, tenant):
        tags = await make_tags(tag_service, tenant, "A", "B")
        await tag_service.attach(tenant, "profile", "p-1", [tags[1].uuid])
        op = await bulk_service.create(tenant, request(BulkOperationType.DELETE, tags))
        op = await bulk_service.run(op.id)
        assert op.status == Status.FAILED

        await tag_service.detach(tenant, "profile", "p-1", [tags[1].uuid])
        op = await bulk_service.retry(op.id)

        assert op.status == Status.COMPLETED
        assert op.processed_items == 2
        assert op.failed_items == 0
        assert op.failed_item_ids == []
        assert op.warnings == ["Retrying 1 failed items"]

    @pytest.mark.asyncio
    async def test_retry_requires_failed(self, bulk_service, tenant):
        op = await bulk_service.create(tenant, request(BulkOperationType.FEATURE, ["x"]))

        with pytest.raises(InvalidStateTransitionException):
            await bulk_service.retry(op.id)

    @pytest.mark.asyncio
    async def test_invalid_item_update_recorded(self, bulk_service, tag_service, db_session, tenant):
        tags = await make_tags(tag_service, tenant, "A")
        op = await bulk_service.create(
            tenant, request(BulkOperationType.SET_CATEGORY, tags, category="skills")
        )
        op.options = {"category": "x" * 150}
        await db_session.flush()

        op = await bulk_service.run(op.id)

        assert op.status == Status.FAILED
        assert op.failed_item_ids == [tags[0].uuid]
        assert op.errors[0]["itemId"] == tags[0].uuid
        assert op.errors[0]["error"] == "validation_failed"

    @pytest.mark.asyncio
    async def test_unexpected_error_fails_operation(self, bulk_service, tag_service, tenant, monkeypatch):
        tags = await make_tags(tag_service, tenant, "A", "B", "C")
        op = await bulk_service.create(tenant, request(BulkOperationType.FEATURE, tags))

        async def broken_update(*args, **kwargs):
            raise RuntimeError("connection reset")

        monkeypatch.setattr(bulk_service.tags, "update_tag", broken_update)

        with pytest.raises(RuntimeError):
            await bulk_service.run(op.id)

        op = await bulk_service.get(op.id)
        assert op.status == Status.FAILED
        assert op.failed_item_ids == [tags[0].uuid, tags[1].uuid]
        assert op.pending_item_ids == [tags[2].uuid]
        assert {e["error"] for e in op.errors} == {"internal_error"}

        monkeypatch.undo()
        op = await bulk_service.retry(op.id)

        assert op.status == Status.COMPLETED
        assert op.processed_items == 3
        for tag in tags:
            assert (await tag_service.get_tag(tenant, tag.uuid)).is_featured is True


class TestOperationTypes:
    @pytest.mark.asyncio
    async def test_set_category(self, bulk_service, tag_service, tenant):
        tags = await make_tags(tag_service, tenant, "A", "B")
        op = await bulk_service.create(
            tenant, request(BulkOperationType.SET_CATEGORY, tags, category="skills")
        )

        await bulk_service.run(op.id)

        for tag in tags:
            assert (await tag_service.get_tag(tenant, tag.uuid)).category == "skills"

    @pytest.mark.asyncio
    async def test_move(self, bulk_service, tag_service, tenant):
        parent, a, b = await make_tags(tag_service, tenant, "Parent", "A", "B")
        op = await bulk_service.create(
            tenant, request(BulkOperationType.MOVE, [a, b], parentUuid=parent.uuid)
        )

        op = await bulk_service.run(op.id)

        assert op.status == Status.COMPLETED
        assert (await tag_service.get_tag(tenant, a.uuid)).parent_id == parent.id

    @pytest.mark.asyncio
    async def test_merge(self, bulk_service, tag_service, tenant):
        target, a, b = await make_tags(tag_service, tenant, "Target", "A", "B")
        await tag_service.attach(tenant, "profile", "p-1", [a.uuid])
        await tag_service.attach(tenant, "profile", "p-2", [b.uuid])
        op = await bulk_service.create(
            tenant, request(BulkOperationType.MERGE, [a, b], targetUuid=target.uuid)
        )

        op = await bulk_service.run(op.id)

        assert op.status == Status.COMPLETED
        assert (await tag_service.get_tag(tenant, target.uuid)).usage_count == 2

    @pytest.mark.asyncio
    async def test_soft_delete(self, bulk_service, tag_service, tenant):
        tags = await make_tags(tag_service, tenant, "A")
        await tag_service.attach(tenant, "profile", "p-1", [tags[0].uuid])
        op = await bulk_service.create(tenant, request(BulkOperationType.DELETE, tags, soft=True))

        op = await bulk_service.run(op.id)

        assert op.status == Status.COMPLETED
        assert (await tag_service.get_tag(tenant, tags[0].uuid)).is_active is False


class TestPauseAndLookup:
    @pytest.mark.asyncio
    async def test_pause_running(self, bulk_service, db_session, tenant):
        op = await bulk_service.create(tenant, request(BulkOperationType.FEATURE, ["x"]))
        op.status = Status.RUNNING
        await db_session.flush()

        op = await bulk_service.pause(op.id)

        assert op.status == Status.PAUSED

    @pytest.mark.asyncio
    async def test_pause_pending_rejected(self, bulk_service, tenant):
        op = await bulk_service.create(tenant, request(BulkOperationType.FEATURE, ["x"]))

        with pytest.raises(InvalidStateTransitionException) as exc_info:
            await bulk_service.pause(op.id)
        assert exc_info.value.details == {"current": "pending", "target": "paused"}

    @pytest.mark.asyncio
    async def test_get_unknown(self, bulk_service):
        with pytest.raises(BulkOperationNotFoundException):
            await bulk_service.get("does-not-exist")

    @pytest.mark.asyncio
    async def test_list_by_scope_and_status(self, bulk_service, tag_service, tenant, platform):
        tags = await make_tags(tag_service, tenant, "A")
        done = await bulk_service.create(tenant, request(BulkOperationType.FEATURE, tags))
        await bulk_service.run(done.id)
        await bulk_service.create(tenant, request(BulkOperationType.FEATURE, ["x"]))
        await bulk_service.create(platform, request(BulkOperationType.FEATURE, ["y"]))

        assert len(await bulk_service.list_operations()) == 3
        assert len(await bulk_service.list_operations(tenant)) == 2
        assert len(await bulk_service.list_operations(platform)) == 1
        completed = await bulk_service.list_operations(tenant, Status.COMPLETED)
        assert [op.id for op in completed] == [done.id]
