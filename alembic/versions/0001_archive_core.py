"""archive core tables

Revision ID: 0001_archive_core
Revises:
Create Date: 2026-10-17
"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa

revision = "0001_archive_core"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "departments",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("type", sa.String(length=32), nullable=False, server_default=sa.text("'college'")),
        sa.Column("parent_id", sa.Integer(), sa.ForeignKey("departments.id", ondelete="SET NULL"), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
    )
    op.create_index("ix_departments_parent", "departments", ["parent_id"])
    op.create_index("ix_departments_type", "departments", ["type"])

    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("username", sa.String(length=64), nullable=False, unique=True),
        sa.Column("display_name", sa.String(length=255), nullable=False, server_default=sa.text("''")),
        sa.Column("password_hash", sa.String(length=256), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
    )

    op.create_table(
        "user_department_assignments",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("department_id", sa.Integer(), sa.ForeignKey("departments.id", ondelete="CASCADE"), nullable=False),
        sa.UniqueConstraint("user_id", "department_id", name="uq_user_department"),
    )
    op.create_index("ix_user_department_department", "user_department_assignments", ["department_id"])

    op.create_table(
        "storage_locations",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("room", sa.String(length=64), nullable=True),
        sa.Column("cabinet", sa.String(length=64), nullable=True),
        sa.Column("layer", sa.String(length=64), nullable=True),
        sa.Column("box", sa.String(length=64), nullable=True),
        sa.Column("folder", sa.String(length=64), nullable=True),
    )

    op.create_table(
        "files",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("file_name", sa.String(length=255), nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("department_id", sa.Integer(), sa.ForeignKey("departments.id", ondelete="SET NULL"), nullable=True),
        sa.Column("sub_department_id", sa.Integer(), sa.ForeignKey("departments.id", ondelete="SET NULL"), nullable=True),
        sa.Column("location_id", sa.Integer(), sa.ForeignKey("storage_locations.id", ondelete="SET NULL"), nullable=True),
        sa.Column("copy_type", sa.String(length=16), nullable=False, server_default=sa.text("'soft'")),
        sa.Column("file_status", sa.String(length=16), nullable=False, server_default=sa.text("'active'")),
        sa.Column("uploaded_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
    )
    op.create_index("ix_files_owner", "files", ["user_id"])
    op.create_index("ix_files_department", "files", ["department_id", "copy_type", "file_status"])

    op.create_table(
        "transactions",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("file_id", sa.Integer(), sa.ForeignKey("files.id", ondelete="SET NULL"), nullable=True),
        sa.Column(
            "users_department_id",
            sa.Integer(),
            sa.ForeignKey("user_department_assignments.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("counterparty_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("transaction_type", sa.String(length=32), nullable=False),
        sa.Column("transaction_status", sa.String(length=16), nullable=False),
        sa.Column("action_kind", sa.String(length=32), nullable=True),
        sa.Column("correlation_id", sa.String(length=64), nullable=True),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("transaction_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("status_changed_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index(
        "ix_transactions_user_type_status",
        "transactions",
        ["user_id", "transaction_type", "transaction_status"],
    )
    op.create_index("ix_transactions_file_time", "transactions", ["file_id", "transaction_time"])
    op.create_index("ix_transactions_correlation", "transactions", ["correlation_id"])
    op.create_index("ix_transactions_time", "transactions", ["transaction_time"])


def downgrade():
    op.drop_index("ix_transactions_time", table_name="transactions")
    op.drop_index("ix_transactions_correlation", table_name="transactions")
    op.drop_index("ix_transactions_file_time", table_name="transactions")
    op.drop_index("ix_transactions_user_type_status", table_name="transactions")
    op.drop_table("transactions")

    op.drop_index("ix_files_department", table_name="files")
    op.drop_index("ix_files_owner", table_name="files")
    op.drop_table("files")

    op.drop_table("storage_locations")

    op.drop_index("ix_user_department_department", table_name="user_department_assignments")
    op.drop_table("user_department_assignments")

    op.drop_table("users")

    op.drop_index("ix_departments_type", table_name="departments")
    op.drop_index("ix_departments_parent", table_name="departments")
    op.drop_table("departments")
