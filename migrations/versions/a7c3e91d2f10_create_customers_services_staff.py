"""create customers, services, service images, staff, audit events

Revision ID: a7c3e91d2f10
Revises:
Create Date: 2026-09-28

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect


# revision identifiers, used by Alembic.
revision: str = "a7c3e91d2f10"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    bind = op.get_bind()
    insp = inspect(bind)
    existing_tables = set(insp.get_table_names())

    def _has_index(table: str, name: str) -> bool:
        try:
            return any(ix.get("name") == name for ix in insp.get_indexes(table))
        except Exception:
            return False

    if "customers" not in existing_tables:
        op.create_table(
            "customers",
            sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
            sa.Column("name", sa.Text(), nullable=False),
            sa.Column("phone", sa.Text(), nullable=False),
            sa.Column("birthdate", sa.Date(), nullable=True),
            sa.Column("address", sa.Text(), nullable=True),
            sa.Column("notes", sa.Text(), nullable=True),
            sa.Column(
                "created_at",
                sa.DateTime(timezone=False),
                nullable=False,
                server_default=sa.func.current_timestamp(),
            ),
        )
        existing_tables.add("customers")

    if "services" not in existing_tables:
        op.create_table(
            "services",
            sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
            sa.Column("customer_id", sa.Integer(), nullable=False),
            sa.Column("service_name", sa.Text(), nullable=False),
            sa.Column("staff_name", sa.Text(), nullable=True),
            sa.Column("notes", sa.Text(), nullable=True),
            sa.Column(
                "service_date",
                sa.DateTime(timezone=False),
                nullable=False,
                server_default=sa.func.current_timestamp(),
            ),
            sa.Column(
                "created_at",
                sa.DateTime(timezone=False),
                nullable=False,
                server_default=sa.func.current_timestamp(),
            ),
            sa.ForeignKeyConstraint(["customer_id"], ["customers.id"], ondelete="CASCADE"),
        )
        existing_tables.add("services")

    if "service_images" not in existing_tables:
        op.create_table(
            "service_images",
            sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
            sa.Column("service_id", sa.Integer(), nullable=False),
            sa.Column("image_url", sa.Text(), nullable=False),
            sa.Column("storage_key", sa.Text(), nullable=True),
            sa.Column("content_type", sa.Text(), nullable=True),
            sa.Column(
                "created_at",
                sa.DateTime(timezone=False),
                nullable=False,
                server_default=sa.func.current_timestamp(),
            ),
            sa.ForeignKeyConstraint(["service_id"], ["services.id"], ondelete="CASCADE"),
        )
        existing_tables.add("service_images")

    if "staff_members" not in existing_tables:
        op.create_table(
            "staff_members",
            sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
            sa.Column("name", sa.Text(), nullable=False),
            sa.Column("role", sa.Text(), nullable=False),
            sa.Column("phone", sa.Text(), nullable=True),
            sa.Column("email", sa.Text(), nullable=True),
            sa.Column("photo_url", sa.Text(), nullable=True),
            sa.Column("notes", sa.Text(), nullable=True),
            sa.Column(
                "created_at",
                sa.DateTime(timezone=False),
                nullable=False,
                server_default=sa.func.current_timestamp(),
            ),
        )
        existing_tables.add("staff_members")

    if "audit_events" not in existing_tables:
        op.create_table(
            "audit_events",
            sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
            sa.Column(
                "created_at",
                sa.DateTime(timezone=False),
                nullable=False,
                server_default=sa.func.current_timestamp(),
            ),
            sa.Column("request_id", sa.String(64), nullable=True),
            sa.Column("client_ip", sa.String(64), nullable=True),
            sa.Column("action", sa.String(128), nullable=False),
            sa.Column("entity_type", sa.String(128), nullable=True),
            sa.Column("entity_id", sa.String(128), nullable=True),
            sa.Column("reason", sa.String(512), nullable=True),
            sa.Column("metadata_json", sa.Text(), nullable=True),
        )
        existing_tables.add("audit_events")

    insp = inspect(op.get_bind())
    for table, idx_name, cols in (
        ("customers", "idx_customers_name", ["name"]),
        ("customers", "idx_customers_phone", ["phone"]),
        ("customers", "idx_customers_created_at", ["created_at"]),
        ("services", "idx_services_customer_id", ["customer_id", "service_date"]),
        ("services", "idx_services_service_date", ["service_date"]),
        ("service_images", "idx_service_images_service_id", ["service_id"]),
        ("staff_members", "idx_staff_members_name", ["name"]),
        ("audit_events", "idx_audit_events_entity", ["entity_type", "entity_id"]),
    ):
        if not _has_index(table, idx_name):
            op.create_index(idx_name, table, cols)


def downgrade() -> None:
    op.drop_index("idx_audit_events_entity", table_name="audit_events")
    op.drop_table("audit_events")

    op.drop_index("idx_staff_members_name", table_name="staff_members")
    op.drop_table("staff_members")

    op.drop_index("idx_service_images_service_id", table_name="service_images")
    op.drop_table("service_images")

    op.drop_index("idx_services_service_date", table_name="services")
    op.drop_index("idx_services_customer_id", table_name="services")
    op.drop_table("services")

    op.drop_index("idx_customers_created_at", table_name="customers")
    op.drop_index("idx_customers_phone", table_name="customers")
    op.drop_index("idx_customers_name", table_name="customers")
    op.drop_table("customers")
