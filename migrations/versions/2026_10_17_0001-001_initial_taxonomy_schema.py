"""Initial tag taxonomy schema

Adds:
- tags (platform/tenant scoped, adjacency-list hierarchy)
- entity_tags (tag attachments to external entities)
- tag_inheritances (tenant opt-in to platform tags)
- bulk_operations (resumable batch jobs)
- workflow_executions (orchestrator submissions)

Revision ID: 001
Revises: None
Create Date: 2026-10-17

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

tag_scope = sa.Enum("PLATFORM", "TENANT", name="tagscope")
bulk_operation_type = sa.Enum(
    "ACTIVATE", "DEACTIVATE", "FEATURE", "UNFEATURE", "SET_CATEGORY", "MOVE", "MERGE", "DELETE",
    name="bulkoperationtype",
)
bulk_operation_status = sa.Enum(
    "PENDING", "RUNNING", "COMPLETED", "FAILED", "PAUSED",
    name="bulkoperationstatus",
)
workflow_execution_status = sa.Enum(
    "RUNNING", "COMPLETED", "FAILED", "CANCELLED", "TERMINATED",
    name="workflowexecutionstatus",
)


def upgrade() -> None:
    # --- Tags ---
    op.create_table(
        "tags",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, comment="Surrogate key used for relational joins"),
        sa.Column("uuid", sa.String(36), nullable=False, comment="Stable public identifier"),
        sa.Column("name", sa.String(100), nullable=False, comment="Display label (non-empty)"),
        sa.Column("slug", sa.String(120), nullable=False, comment="URL-safe identifier, unique within scope"),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("category", sa.String(100), nullable=True, comment="Free-text classifier"),
        sa.Column("usage_count", sa.Integer(), nullable=False, server_default="0", comment="Number of entity associations (denormalized)"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("is_system", sa.Boolean(), nullable=False, server_default=sa.false(), comment="Protected tags cannot be edited or deleted"),
        sa.Column("is_featured", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("scope", tag_scope, nullable=False),
        sa.Column("tenant_id", sa.Integer(), nullable=True, comment="Owning tenant, present iff scope is tenant"),
        sa.Column("parent_id", sa.Integer(), sa.ForeignKey("tags.id"), nullable=True, comment="Parent tag; NULL for roots"),
        sa.Column("created_by", sa.String(255), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_tags_uuid", "tags", ["uuid"], unique=True)
    op.create_index("ix_tags_slug", "tags", ["slug"])
    op.create_index("ix_tags_category", "tags", ["category"])
    op.create_index("ix_tags_scope", "tags", ["scope"])
    op.create_index("ix_tags_tenant_id", "tags", ["tenant_id"])
    op.create_index("ix_tags_parent_id", "tags", ["parent_id"])
    op.create_index("ix_tags_scope_tenant_slug", "tags", ["scope", "tenant_id", "slug"], unique=True)

    # Platform slugs: tenant_id is NULL there, so the composite index above never collides
    bind = op.get_bind()
    if bind.dialect.name == "postgresql":
        op.execute(
            "CREATE UNIQUE INDEX ix_tags_platform_slug ON tags (slug) WHERE tenant_id IS NULL"
        )

    # --- Entity tags ---
    op.create_table(
        "entity_tags",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("tag_id", sa.Integer(), sa.ForeignKey("tags.id", ondelete="CASCADE"), nullable=False),
        sa.Column("entity_type", sa.String(100), nullable=False),
        sa.Column("entity_id", sa.String(100), nullable=False),
        sa.Column("tenant_id", sa.Integer(), nullable=True),
        sa.Column("added_by", sa.String(255), nullable=True),
        sa.Column("added_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("tag_id", "entity_type", "entity_id", name="uq_entity_tags_tag_entity"),
    )
    op.create_index("ix_entity_tags_tag_id", "entity_tags", ["tag_id"])
    op.create_index("ix_entity_tags_tenant_id", "entity_tags", ["tenant_id"])
    op.create_index("ix_entity_tags_entity", "entity_tags", ["entity_type", "entity_id"])

    # --- Inheritance markers ---
    op.create_table(
        "tag_inheritances",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("source_tag_id", sa.Integer(), sa.ForeignKey("tags.id", ondelete="CASCADE"), nullable=False),
        sa.Column("target_scope", sa.String(20), nullable=False, server_default="tenant"),
        sa.Column("target_tenant_id", sa.Integer(), nullable=False),
        sa.Column("inherited_by", sa.String(255), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint(
            "source_tag_id", "target_scope", "target_tenant_id",
            name="uq_tag_inheritances_source_target",
        ),
    )
    op.create_index("ix_tag_inheritances_source_tag_id", "tag_inheritances", ["source_tag_id"])
    op.create_index("ix_tag_inheritances_target_tenant_id", "tag_inheritances", ["target_tenant_id"])

    # --- Bulk operations ---
    op.create_table(
        "bulk_operations",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("type", bulk_operation_type, nullable=False),
        sa.Column("status", bulk_operation_status, nullable=False),
        sa.Column("scope", tag_scope, nullable=False),
        sa.Column("tenant_id", sa.Integer(), nullable=True),
        sa.Column("item_ids", sa.JSON(), nullable=False),
        sa.Column("pending_item_ids", sa.JSON(), nullable=False),
        sa.Column("failed_item_ids", sa.JSON(), nullable=False),
        sa.Column("total_items", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("processed_items", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("failed_items", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("errors", sa.JSON(), nullable=False),
        sa.Column("warnings", sa.JSON(), nullable=False),
        sa.Column("options", sa.JSON(), nullable=False),
        sa.Column("created_by", sa.String(255), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_bulk_operations_status", "bulk_operations", ["status"])
    op.create_index("ix_bulk_operations_tenant_id", "bulk_operations", ["tenant_id"])

    # --- Workflow executions ---
    op.create_table(
        "workflow_executions",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("workflow_type", sa.String(100), nullable=False),
        sa.Column("tenant_id", sa.Integer(), nullable=False),
        sa.Column("status", workflow_execution_status, nullable=False),
        sa.Column("input", sa.JSON(), nullable=False),
        sa.Column("orchestrator_workflow_id", sa.String(255), nullable=True),
        sa.Column("orchestrator_run_id", sa.String(255), nullable=True),
        sa.Column("error", sa.Text(), nullable=True),
        sa.Column("started_by", sa.String(255), nullable=True),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_workflow_executions_workflow_type", "workflow_executions", ["workflow_type"])
    op.create_index("ix_workflow_executions_tenant_id", "workflow_executions", ["tenant_id"])
    op.create_index("ix_workflow_executions_status", "workflow_executions", ["status"])


def downgrade() -> None:
    op.drop_table("workflow_executions")
    op.drop_table("bulk_operations")
    op.drop_table("tag_inheritances")
    op.drop_table("entity_tags")

    bind = op.get_bind()
    if bind.dialect.name == "postgresql":
        op.execute("DROP INDEX IF EXISTS ix_tags_platform_slug")
    op.drop_table("tags")

    if bind.dialect.name == "postgresql":
        workflow_execution_status.drop(bind, checkfirst=True)
        bulk_operation_status.drop(bind, checkfirst=True)
        bulk_operation_type.drop(bind, checkfirst=True)
        tag_scope.drop(bind, checkfirst=True)
