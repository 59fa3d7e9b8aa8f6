"""
Bulk operation endpoints.
Operations are created pending, then driven with run/pause/retry.
"""

from fastapi import APIRouter, Query, status

from app.auth.dependencies import CurrentUser
from app.auth.permissions import check_scope_access, is_platform_admin
from app.core.exceptions import ForbiddenException, ValidationException
from app.dependencies import Cache, DbSession
from app.models.bulk_operation import BulkOperation, BulkOperationStatus
from app.models.tag import TagScope
from app.schemas.bulk_operation import (
    BulkOperationCreate,
    BulkOperationListResponse,
    BulkOperationResponse,
)
from app.services.bulk_operations import BulkOperationService
from app.services.inheritance import ScopeContext

router = APIRouter()


def _scope_of(operation: BulkOperation) -> ScopeContext:
    return ScopeContext(operation.scope, operation.tenant_id)


@router.post("", response_model=BulkOperationResponse, status_code=status.HTTP_202_ACCEPTED)
async def create_bulk_operation(
    data: BulkOperationCreate,
    db: DbSession,
    cache: Cache,
    user: CurrentUser,
):
    """
    Register a bulk operation over tags of one scope.

    The operation starts `pending`; call `/run` to process it.
    """
    if data.scope == TagScope.PLATFORM:
        if data.tenant_id is not None:
            raise ValidationException("tenantId must be omitted for platform operations")
        ctx = ScopeContext.platform()
    else:
        if data.tenant_id is None:
            raise ValidationException("tenantId is required for tenant operations")
        ctx = ScopeContext.tenant(data.tenant_id)

    check_scope_access(user, ctx, write=True)

    service = BulkOperationService(db, cache)
    operation = await service.create(ctx, data, created_by=user.get("user_id"))
    return BulkOperationResponse.model_validate(operation)


@router.get("", response_model=BulkOperationListResponse)
async def list_bulk_operations(
    db: DbSession,
    user: CurrentUser,
    scope: TagScope | None = Query(default=None, description="Limit to one scope"),
    tenantId: int | None = Query(default=None, ge=1, description="Tenant for tenant-scope operations"),
    status_filter: BulkOperationStatus | None = Query(default=None, alias="status", description="Filter by status"),
):
    """
    List bulk operations, newest first.

    Non-admin callers only see their own tenant's operations.
    """
    ctx: ScopeContext | None
    if tenantId is not None:
        ctx = ScopeContext.tenant(tenantId)
        check_scope_access(user, ctx)
    elif scope == TagScope.PLATFORM:
        check_scope_access(user, ScopeContext.platform())
        ctx = ScopeContext.platform()
    elif is_platform_admin(user):
        ctx = None
    elif user.get("tenant_id") is not None:
        ctx = ScopeContext.tenant(user["tenant_id"])
        check_scope_access(user, ctx)
    else:
        raise ForbiddenException("A tenant is required to list bulk operations")

    operations = await BulkOperationService(db).list_operations(ctx, status=status_filter)
    if ctx is None and scope is not None:
        operations = [op for op in operations if op.scope == scope]

    return BulkOperationListResponse(
        items=[BulkOperationResponse.model_validate(op) for op in operations],
        total=len(operations),
    )


@router.get("/{operation_id}", response_model=BulkOperationResponse)
async def get_bulk_operation(
    operation_id: str,
    db: DbSession,
    user: CurrentUser,
):
    """Progress snapshot of a bulk operation."""
    operation = await BulkOperationService(db).get(operation_id)
    check_scope_access(user, _scope_of(operation))
    return BulkOperationResponse.model_validate(operation)


@router.post("/{operation_id}/run", response_model=BulkOperationResponse)
async def run_bulk_operation(
    operation_id: str,
    db: DbSession,
    cache: Cache,
    user: CurrentUser,
    maxItems: int | None = Query(default=None, ge=1, description="Stop (paused) after this many items"),
):
    """
    Start or resume a bulk operation.

    Items are processed in batches. The operation ends `completed` when
    every item succeeded, `failed` when some did, or `paused` when
    `maxItems` was reached or it was paused from another request.
    """
    service = BulkOperationService(db, cache)
    operation = await service.get(operation_id)
    check_scope_access(user, _scope_of(operation), write=True)

    operation = await service.run(operation_id, max_items=maxItems)
    return BulkOperationResponse.model_validate(operation)


@router.post("/{operation_id}/pause", response_model=BulkOperationResponse)
async def pause_bulk_operation(
    operation_id: str,
    db: DbSession,
    user: CurrentUser,
):
    """Pause a running operation after its current batch."""
    service = BulkOperationService(db)
    operation = await service.get(operation_id)
    check_scope_access(user, _scope_of(operation), write=True)

    operation = await service.pause(operation_id)
    return BulkOperationResponse.model_validate(operation)


@router.post("/{operation_id}/retry", response_model=BulkOperationResponse)
async def retry_bulk_operation(
    operation_id: str,
    db: DbSession,
    cache: Cache,
    user: CurrentUser,
    maxItems: int | None = Query(default=None, ge=1, description="Stop (paused) after this many items"),
):
    """Re-run only the failed items of a failed operation."""
    service = BulkOperationService(db, cache)
    operation = await service.get(operation_id)
    check_scope_access(user, _scope_of(operation), write=True)

    operation = await service.retry(operation_id, max_items=maxItems)
    return BulkOperationResponse.model_validate(operation)
