"""add service catalog (categories, types), service price, staff assignments

Revision ID: b4d8f2a6c913
Revises: a7c3e91d2f10
Create Date: 2026-10-06

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect


# revision identifiers, used by Alembic.
revision: str = "b4d8f2a6c913"
down_revision: Union[str, Sequence[str], None] = "a7c3e91d2f10"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    bind = op.get_bind()
    insp = inspect(bind)
    existing_tables = set(insp.get_table_names())

    def _has_column(table: str, column: str) -> bool:
        try:
            return any(c.get("name") == column for c in insp.get_columns(table))
        except Exception:
            return False

    def _has_index(table: str, name: str) -> bool:
        try:
            return any(ix.get("name") == name for ix in insp.get_indexes(table))
        except Exception:
            return False

    if "service_categories" not in existing_tables:
        op.create_table(
            "service_categories",
            sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
            sa.Column("name", sa.Text(), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column(
                "created_at",
                sa.DateTime(timezone=False),
                nullable=False,
                server_default=sa.func.current_timestamp(),
            ),
            sa.UniqueConstraint("name", name="uq_service_categories_name"),
        )
        existing_tables.add("service_categories")

    if "service_types" not in existing_tables:
        op.create_table(
            "service_types",
            sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
            sa.Column("category_id", sa.Integer(), nullable=True),
            sa.Column("name", sa.Text(), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("price", sa.Numeric(10, 2), nullable=False, server_default="0"),
            sa.Column("duration_minutes", sa.Integer(), nullable=False, server_default="30"),
            sa.Column(
                "created_at",
                sa.DateTime(timezone=False),
                nullable=False,
                server_default=sa.func.current_timestamp(),
            ),
            sa.ForeignKeyConstraint(["category_id"], ["service_categories.id"], ondelete="RESTRICT"),
        )
        existing_tables.add("service_types")

    if "staff_service_assignments" not in existing_tables:
        op.create_table(
            "staff_service_assignments",
            sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
            sa.Column("staff_id", sa.Integer(), nullable=False),
            sa.Column("service_type_id", sa.Integer(), nullable=False),
            sa.Column(
                "created_at",
                sa.DateTime(timezone=False),
                nullable=False,
                server_default=sa.func.current_timestamp(),
            ),
            sa.ForeignKeyConstraint(["staff_id"], ["staff_members.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["service_type_id"], ["service_types.id"], ondelete="CASCADE"),
            sa.UniqueConstraint("staff_id", "service_type_id", name="uq_staff_service_assignment"),
        )
        existing_tables.add("staff_service_assignments")

    # services predates the catalog; batch mode so SQLite can add the FK.
    if "services" in existing_tables:
        need_price = not _has_column("services", "price")
        need_type = not _has_column("services", "service_type_id")
        if need_price or need_type:
            with op.batch_alter_table("services") as batch:
                if need_price:
                    batch.add_column(sa.Column("price", sa.Numeric(10, 2), nullable=False, server_default="0"))
                if need_type:
                    batch.add_column(sa.Column("service_type_id", sa.Integer(), nullable=True))
                    batch.create_foreign_key(
                        "fk_services_service_type_id",
                        "service_types",
                        ["service_type_id"],
                        ["id"],
                        ondelete="RESTRICT",
                    )

    insp = inspect(op.get_bind())
    for table, idx_name, cols in (
        ("service_types", "idx_service_types_category_id", ["category_id"]),
        ("service_types", "idx_service_types_name", ["name"]),
        ("services", "idx_services_service_type_id", ["service_type_id"]),
        ("staff_service_assignments", "idx_staff_service_assignments_staff_id", ["staff_id"]),
        ("staff_service_assignments", "idx_staff_service_assignments_service_type_id", ["service_type_id"]),
    ):
        if not _has_index(table, idx_name):
            op.create_index(idx_name, table, cols)


def downgrade() -> None:
    op.drop_index("idx_staff_service_assignments_service_type_id", table_name="staff_service_assignments")
    op.drop_index("idx_staff_service_assignments_staff_id", table_name="staff_service_assignments")
    op.drop_table("staff_service_assignments")

    op.drop_index("idx_services_service_type_id", table_name="services")
    with op.batch_alter_table("services") as batch:
        batch.drop_constraint("fk_services_service_type_id", type_="foreignkey")
        batch.drop_column("service_type_id")
        batch.drop_column("price")

    op.drop_index("idx_service_types_name", table_name="service_types")
    op.drop_index("idx_service_types_category_id", table_name="service_types")
    op.drop_table("service_types")
    op.drop_table("service_categories")
