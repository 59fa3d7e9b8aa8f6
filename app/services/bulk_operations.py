"""
Bulk operation service - Server-side state machine for batch tag actions.

Progress is checkpointed after every batch so a run can be paused from
another request, resumed later, and retried over its failed items only.
"""

import logging
from collections.abc import Sequence
from typing import Any
from uuid import uuid4

from pydantic import ValidationError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.cache.invalidation import commit_and_invalidate, discard_invalidations
from app.cache.read_through import ReadThroughCache
from app.config import Settings, get_settings
from app.core.exceptions import (
    BulkOperationNotFoundException,
    InvalidStateTransitionException,
    TaxonomyAPIException,
    ValidationException,
)
from app.models.bulk_operation import BulkOperation, BulkOperationStatus, BulkOperationType
from app.models.tag import utc_now
from app.schemas.bulk_operation import BulkOperationCreate
from app.schemas.tag import CATEGORY_MAX_LENGTH, TagUpdate
from app.services.inheritance import ScopeContext
from app.services.tag_service import TagService

logger = logging.getLogger(__name__)

Status = BulkOperationStatus

TRANSITIONS: dict[BulkOperationStatus, frozenset[BulkOperationStatus]] = {
    Status.PENDING: frozenset({Status.RUNNING}),
    Status.RUNNING: frozenset({Status.COMPLETED, Status.FAILED, Status.PAUSED}),
    Status.PAUSED: frozenset({Status.RUNNING}),
    Status.FAILED: frozenset({Status.RUNNING}),
    Status.COMPLETED: frozenset(),
}

# Option keys each operation type requires
REQUIRED_OPTIONS: dict[BulkOperationType, tuple[str, ...]] = {
    BulkOperationType.SET_CATEGORY: ("category",),
    BulkOperationType.MOVE: ("parentUuid",),
    BulkOperationType.MERGE: ("targetUuid",),
}
OPTIONAL_OPTIONS: dict[BulkOperationType, tuple[str, ...]] = {
    BulkOperationType.DELETE: ("soft",),
}

FLAG_UPDATES: dict[BulkOperationType, dict[str, bool]] = {
    BulkOperationType.ACTIVATE: {"is_active": True},
    BulkOperationType.DEACTIVATE: {"is_active": False},
    BulkOperationType.FEATURE: {"is_featured": True},
    BulkOperationType.UNFEATURE: {"is_featured": False},
}


def can_transition(current: BulkOperationStatus, target: BulkOperationStatus) -> bool:
    return target in TRANSITIONS[current]


def ensure_transition(current: BulkOperationStatus, target: BulkOperationStatus) -> None:
    """
    Raises:
        InvalidStateTransitionException: If `current -> target` is not allowed
    """
    if not can_transition(current, target):
        raise InvalidStateTransitionException(current.value, target.value)


class BulkOperationService:
    """Service class for bulk tag operations."""

    def __init__(
        self,
        db: AsyncSession,
        cache: ReadThroughCache | None = None,
        settings: Settings | None = None,
    ):
        self.db = db
        self.settings = settings or get_settings()
        self.tags = TagService(db, cache, self.settings)

    async def create(
        self,
        ctx: ScopeContext,
        data: BulkOperationCreate,
        created_by: str | None = None,
    ) -> BulkOperation:
        """
        Register a bulk operation in the pending state.

        Args:
            ctx: Scope the targeted tags belong to
            data: Operation type, tag UUIDs and type-specific options
            created_by: User ID of the requester

        Raises:
            ValidationException: Empty or oversized item set, or missing options
        """
        item_ids = list(dict.fromkeys(u.strip() for u in data.tag_uuids if u and u.strip()))
        if not item_ids:
            raise ValidationException("Bulk operation requires at least one tag")

        max_items = self.settings.BULK_OPERATION_MAX_ITEMS
        if len(item_ids) > max_items:
            raise ValidationException(
                f"Bulk operation is limited to {max_items} tags",
                details={"maxItems": max_items, "requested": len(item_ids)},
            )

        options = self._validate_options(data.type, data.options, item_ids)

        operation = BulkOperation(
            id=str(uuid4()),
            type=data.type,
            status=Status.PENDING,
            scope=ctx.scope,
            tenant_id=ctx.tenant_id,
            item_ids=item_ids,
            pending_item_ids=list(item_ids),
            failed_item_ids=[],
            total_items=len(item_ids),
            processed_items=0,
            failed_items=0,
            errors=[],
            warnings=[],
            options=options,
            created_by=created_by,
            created_at=utc_now(),
        )
        self.db.add(operation)
        await self.db.flush()

        logger.info(
            "Bulk operation created: %s type=%s items=%d scope=%s by %s",
            operation.id, data.type.value, len(item_ids), ctx.cache_scope, created_by,
        )
        return operation

    def _validate_options(
        self,
        op_type: BulkOperationType,
        options: dict[str, Any],
        item_ids: Sequence[str],
    ) -> dict[str, Any]:
        missing = [key for key in REQUIRED_OPTIONS.get(op_type, ()) if key not in options]
        if missing:
            raise ValidationException(
                f"Operation '{op_type.value}' requires options: {', '.join(missing)}",
                details={"missing": missing},
            )

        if op_type == BulkOperationType.MERGE:
            target = options["targetUuid"]
            if not isinstance(target, str) or not target:
                raise ValidationException("targetUuid must be a tag UUID")
            if target in item_ids:
                raise ValidationException("Merge target cannot be one of the merged tags")

        if op_type == BulkOperationType.SET_CATEGORY:
            category = options["category"]
            if category is not None and not isinstance(category, str):
                raise ValidationException("category must be a string or null")
            if category is not None and len(category) > CATEGORY_MAX_LENGTH:
                raise ValidationException(
                    f"category must be at most {CATEGORY_MAX_LENGTH} characters",
                    details={"field": "category", "maxLength": CATEGORY_MAX_LENGTH},
                )

        allowed = REQUIRED_OPTIONS.get(op_type, ()) + OPTIONAL_OPTIONS.get(op_type, ())
        return {key: options[key] for key in allowed if key in options}

    async def get(self, operation_id: str) -> BulkOperation:
        """
        Raises:
            BulkOperationNotFoundException: If the operation does not exist
        """
        result = await self.db.execute(
            select(BulkOperation).where(BulkOperation.id == operation_id)
        )
        operation = result.scalar_one_or_none()
        if operation is None:
            raise BulkOperationNotFoundException(operation_id)
        return operation

    async def list_operations(
        self,
        ctx: ScopeContext | None = None,
        status: BulkOperationStatus | None = None,
    ) -> Sequence[BulkOperation]:
        """List operations, newest first, optionally limited to one scope."""
        query = select(BulkOperation)
        if ctx is not None:
            query = query.where(BulkOperation.scope == ctx.scope)
            if ctx.tenant_id is None:
                query = query.where(BulkOperation.tenant_id.is_(None))
            else:
                query = query.where(BulkOperation.tenant_id == ctx.tenant_id)
        if status is not None:
            query = query.where(BulkOperation.status == status)
        query = query.order_by(BulkOperation.created_at.desc())

        result = await self.db.execute(query)
        return result.scalars().all()

    async def pause(self, operation_id: str) -> BulkOperation:
        """Request a running operation to stop after its current batch."""
        operation = await self.get(operation_id)
        ensure_transition(operation.status, Status.PAUSED)
        operation.status = Status.PAUSED
        await self.db.flush()
        logger.info("Bulk operation paused: %s", operation.id)
        return operation

    async def retry(self, operation_id: str, max_items: int | None = None) -> BulkOperation:
        """Re-run only the items of a failed operation that failed."""
        operation = await self.get(operation_id)
        if operation.status != Status.FAILED:
            raise InvalidStateTransitionException(operation.status.value, Status.RUNNING.value)
        return await self.run(operation_id, max_items=max_items)

    async def run(self, operation_id: str, max_items: int | None = None) -> BulkOperation:
        """
        Process pending items in batches.

        A failed operation is retried over its failed subset. The run stops
        early when another request pauses the operation or when `max_items`
        items have been attempted, leaving the operation paused.

        Args:
            operation_id: Operation to run
            max_items: Optional cap on items attempted by this call

        Returns:
            The operation in its state after this run
        """
        operation = await self.get(operation_id)
        ensure_transition(operation.status, Status.RUNNING)

        if operation.status == Status.FAILED:
            self._requeue_failed(operation)

        operation.status = Status.RUNNING
        operation.completed_at = None
        if operation.started_at is None:
            operation.started_at = utc_now()
        await commit_and_invalidate(self.db)

        logger.info(
            "Bulk operation running: %s (%d pending)",
            operation.id, len(operation.pending_item_ids),
        )

        ctx = ScopeContext(operation.scope, operation.tenant_id)
        batch_size = max(1, self.settings.BULK_OPERATION_BATCH_SIZE)
        attempted = 0
        batch: list[str] = []

        try:
            while operation.pending_item_ids:
                budget = batch_size
                if max_items is not None:
                    budget = min(budget, max_items - attempted)
                    if budget <= 0:
                        break

                batch = operation.pending_item_ids[:budget]
                failed_ids, errors = await self._process_batch(ctx, operation, batch)

                # JSON columns are reassigned so the change is tracked
                operation.pending_item_ids = operation.pending_item_ids[len(batch):]
                operation.failed_item_ids = operation.failed_item_ids + failed_ids
                operation.errors = operation.errors + errors
                operation.processed_items += len(batch)
                operation.failed_items += len(failed_ids)
                attempted += len(batch)

                await commit_and_invalidate(self.db)
                batch = []
                await self.db.refresh(operation, attribute_names=["status"])
                if operation.status != Status.RUNNING:
                    logger.info(
                        "Bulk operation %s stopped externally as %s after %d items",
                        operation.id, operation.status.value, attempted,
                    )
                    return operation
        except Exception:
            logger.exception("Bulk operation %s aborted", operation_id)
            await self._abort(operation_id, batch)
            raise

        if operation.pending_item_ids:
            operation.status = Status.PAUSED
        else:
            operation.status = Status.FAILED if operation.failed_item_ids else Status.COMPLETED
            operation.completed_at = utc_now()
        await self.db.flush()

        logger.info(
            "Bulk operation %s: %s (%d/%d processed, %d failed)",
            operation.id, operation.status.value, operation.processed_items,
            operation.total_items, operation.failed_items,
        )
        return operation

    def _requeue_failed(self, operation: BulkOperation) -> None:
        retried = list(operation.failed_item_ids)
        operation.pending_item_ids = operation.pending_item_ids + retried
        operation.failed_item_ids = []
        operation.errors = []
        operation.processed_items -= operation.failed_items
        operation.failed_items = 0
        operation.warnings = operation.warnings + [f"Retrying {len(retried)} failed items"]

    async def _process_batch(
        self,
        ctx: ScopeContext,
        operation: BulkOperation,
        batch: Sequence[str],
    ) -> tuple[list[str], list[dict[str, str]]]:
        failed_ids: list[str] = []
        errors: list[dict[str, str]] = []
        for tag_uuid in batch:
            try:
                await self._apply(ctx, operation, tag_uuid)
            except TaxonomyAPIException as e:
                logger.warning(
                    "Bulk operation %s item %s failed: %s", operation.id, tag_uuid, e.message
                )
                failed_ids.append(tag_uuid)
                errors.append({"itemId": tag_uuid, "error": e.error, "message": e.message})
            except ValidationError as e:
                message = "; ".join(err["msg"] for err in e.errors())
                logger.warning(
                    "Bulk operation %s item %s rejected: %s", operation.id, tag_uuid, message
                )
                failed_ids.append(tag_uuid)
                errors.append({"itemId": tag_uuid, "error": "validation_failed", "message": message})
        return failed_ids, errors

    async def _abort(self, operation_id: str, batch: Sequence[str]) -> None:
        """
        Record an unexpected error so the operation does not stay running.

        The interrupted batch is rolled back and its items are marked failed,
        which makes them eligible for retry.
        """
        await self.db.rollback()
        discard_invalidations(self.db)

        operation = await self.get(operation_id)
        interrupted = [item for item in batch if item in operation.pending_item_ids]
        operation.pending_item_ids = [
            item for item in operation.pending_item_ids if item not in interrupted
        ]
        operation.failed_item_ids = operation.failed_item_ids + interrupted
        operation.errors = operation.errors + [
            {
                "itemId": item,
                "error": "internal_error",
                "message": "Batch aborted by an unexpected error",
            }
            for item in interrupted
        ]
        operation.processed_items += len(interrupted)
        operation.failed_items += len(interrupted)
        if can_transition(operation.status, Status.FAILED):
            operation.status = Status.FAILED
            operation.completed_at = utc_now()
        await self.db.commit()

    async def _apply(self, ctx: ScopeContext, operation: BulkOperation, tag_uuid: str) -> None:
        op_type = operation.type
        options = operation.options or {}

        if op_type in FLAG_UPDATES:
            await self.tags.update_tag(ctx, tag_uuid, TagUpdate(**FLAG_UPDATES[op_type]))
        elif op_type == BulkOperationType.SET_CATEGORY:
            await self.tags.update_tag(ctx, tag_uuid, TagUpdate(category=options.get("category")))
        elif op_type == BulkOperationType.MOVE:
            await self.tags.move_tag(ctx, tag_uuid, options.get("parentUuid"))
        elif op_type == BulkOperationType.MERGE:
            await self.tags.merge_into(ctx, tag_uuid, options["targetUuid"])
        elif op_type == BulkOperationType.DELETE:
            await self.tags.delete_tag(ctx, tag_uuid, soft=bool(options.get("soft", False)))
        else:
            raise ValidationException(f"Unsupported bulk operation type: {op_type}")
