"""initial schema: employees, categories, sub categories, audit events

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect


# revision identifiers, used by Alembic.
revision: str = "0001_initial_schema"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _actor_columns(prefix: str) -> list[sa.Column]:
    return [
        sa.Column(f"{prefix}_id", sa.Integer(), nullable=True),
        sa.Column(f"{prefix}_role", sa.String(length=32), nullable=True),
        sa.Column(f"{prefix}_email", sa.String(length=320), nullable=True),
    ]


def _audited_columns() -> list[sa.Column]:
    return [
        *_actor_columns("created_by"),
        *_actor_columns("updated_by"),
        sa.Column("updated_by_at", sa.DateTime(timezone=False), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=False), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=False), nullable=False),
    ]


def upgrade() -> None:
    """Upgrade schema."""
    existing_tables = set(inspect(op.get_bind()).get_table_names())

    if "employees" not in existing_tables:
        op.create_table(
            "employees",
            sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
            sa.Column("employer_id", sa.String(length=20), nullable=False, unique=True),
            sa.Column("name", sa.String(length=50), nullable=False),
            sa.Column("email", sa.String(length=320), nullable=False, unique=True),
            sa.Column("password_hash", sa.String(length=255), nullable=True),
            sa.Column("phone", sa.String(length=18), nullable=True),
            sa.Column("secondary_phone_number", sa.String(length=18), nullable=True),
            sa.Column("address", sa.String(length=200), nullable=True),
            sa.Column("position", sa.String(length=128), nullable=True),
            sa.Column("role", sa.String(length=32), nullable=False, server_default="undefined"),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("profile_picture_path", sa.String(length=512), nullable=True),
            sa.Column("profile_picture_original_name", sa.String(length=255), nullable=True),
            sa.Column("profile_picture_server_name", sa.String(length=255), nullable=True),
            sa.Column("otp", sa.String(length=6), nullable=True),
            sa.Column("otp_expires_at", sa.DateTime(timezone=False), nullable=True),
            sa.Column("change_password_expires_at", sa.DateTime(timezone=False), nullable=True),
            sa.Column("is_forgot_password_verified", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("last_login_at", sa.DateTime(timezone=False), nullable=True),
            *_actor_columns("created_by"),
            sa.Column("created_at", sa.DateTime(timezone=False), nullable=False),
            sa.Column("updated_at", sa.DateTime(timezone=False), nullable=False),
        )
        op.create_index("idx_employees_role", "employees", ["role"])
        op.create_index("idx_employees_is_active", "employees", ["is_active"])

    if "categories" not in existing_tables:
        op.create_table(
            "categories",
            sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
            sa.Column("category_id", sa.String(length=50), nullable=False, unique=True),
            sa.Column("category_name", sa.String(length=100), nullable=False),
            sa.Column("is_displayed", sa.Boolean(), nullable=False, server_default=sa.true()),
            *_audited_columns(),
        )
        op.create_index("idx_categories_name", "categories", ["category_name"])
        op.create_index("idx_categories_is_displayed", "categories", ["is_displayed"])

    if "sub_categories" not in existing_tables:
        op.create_table(
            "sub_categories",
            sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
            sa.Column("sub_category_id", sa.String(length=50), nullable=False, unique=True),
            sa.Column("sub_category_name", sa.String(length=100), nullable=False),
            sa.Column("is_displayed", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column(
                "parent_id",
                sa.Integer(),
                sa.ForeignKey("categories.id", ondelete="CASCADE"),
                nullable=False,
            ),
            *_audited_columns(),
        )
        op.create_index("idx_sub_categories_parent", "sub_categories", ["parent_id"])
        op.create_index("idx_sub_categories_is_displayed", "sub_categories", ["is_displayed"])

    if "audit_events" not in existing_tables:
        op.create_table(
            "audit_events",
            sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
            sa.Column("created_at", sa.DateTime(timezone=False), nullable=False),
            sa.Column("request_id", sa.String(length=64), nullable=True),
            sa.Column(
                "actor_employee_id",
                sa.Integer(),
                sa.ForeignKey("employees.id", ondelete="SET NULL"),
                nullable=True,
            ),
            sa.Column("actor_email", sa.String(length=320), nullable=True),
            sa.Column("actor_role", sa.String(length=32), nullable=True),
            sa.Column("action", sa.String(length=128), nullable=False),
            sa.Column("entity_type", sa.String(length=128), nullable=True),
            sa.Column("entity_id", sa.String(length=128), nullable=True),
            sa.Column("metadata_json", sa.Text(), nullable=True),
            sa.Column("client_ip", sa.String(length=64), nullable=True),
        )
        op.create_index("idx_audit_events_action", "audit_events", ["action"])


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_table("audit_events")
    op.drop_table("sub_categories")
    op.drop_table("categories")
    op.drop_table("employees")
