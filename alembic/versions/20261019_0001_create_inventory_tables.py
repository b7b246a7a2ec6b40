"""create inventory tables

Revision ID: 20261019_0001
Revises:
Create Date: 2026-10-19 09:00:00.000000
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "20261019_0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _table_exists(inspector: sa.Inspector, table_name: str) -> bool:
    return table_name in inspector.get_table_names()


def _index_exists(inspector: sa.Inspector, table_name: str, index_name: str) -> bool:
    return index_name in {index["name"] for index in inspector.get_indexes(table_name)}


def upgrade() -> None:
    bind = op.get_bind()
    inspector = sa.inspect(bind)

    if not _table_exists(inspector, "inventories"):
        op.create_table(
            "inventories",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("inventory_code", sa.String(length=40), nullable=False),
            sa.Column("crop_id", sa.String(length=36), nullable=False),
            sa.Column("farmer_user_id", sa.String(length=36), nullable=True),
            sa.Column("buyer_user_id", sa.String(length=36), nullable=True),
            sa.Column("facility_type", sa.String(length=30), nullable=False),
            sa.Column("facility_name", sa.String(length=120), nullable=True),
            sa.Column("storage_location", sa.String(length=255), nullable=False),
            sa.Column("storage_capacity", sa.Numeric(14, 3), nullable=True),
            sa.Column("current_quantity", sa.Numeric(14, 3), nullable=False),
            sa.Column("reserved_quantity", sa.Numeric(14, 3), nullable=False, server_default="0"),
            sa.Column("available_quantity", sa.Numeric(14, 3), nullable=False),
            sa.Column("unit", sa.String(length=20), nullable=False, server_default="KG"),
            sa.Column("minimum_stock_level", sa.Numeric(14, 3), nullable=True),
            sa.Column("maximum_stock_level", sa.Numeric(14, 3), nullable=True),
            sa.Column("status", sa.String(length=20), nullable=False, server_default="AVAILABLE"),
            sa.Column("quality_grade", sa.String(length=30), nullable=False),
            sa.Column("quality_tests", sa.Text(), nullable=True),
            sa.Column("pest_status", sa.String(length=30), nullable=False, server_default="PEST_FREE"),
            sa.Column("treatment_applied", sa.String(length=255), nullable=True),
            sa.Column("moisture_content", sa.Numeric(6, 2), nullable=True),
            sa.Column("loss_percentage", sa.Numeric(7, 2), nullable=False, server_default="0"),
            sa.Column("loss_value", sa.Numeric(14, 2), nullable=False, server_default="0"),
            sa.Column("loss_reasons", sa.String(length=255), nullable=True),
            sa.Column("market_value_per_unit", sa.Numeric(12, 2), nullable=True),
            sa.Column("total_market_value", sa.Numeric(14, 2), nullable=True),
            sa.Column("purchase_price_per_unit", sa.Numeric(12, 2), nullable=True),
            sa.Column("profit_margin", sa.Numeric(9, 2), nullable=True),
            sa.Column("organic_certified", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("fair_trade_certified", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("local_sourcing", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("harvest_date", sa.Date(), nullable=True),
            sa.Column("storage_date", sa.Date(), nullable=False),
            sa.Column("expected_shelf_life_days", sa.Integer(), nullable=True),
            sa.Column("expiry_date", sa.Date(), nullable=True),
            sa.Column("last_movement_date", sa.DateTime(timezone=True), nullable=True),
            sa.Column("condition_assessment", sa.Date(), nullable=True),
            sa.Column("next_inspection_date", sa.Date(), nullable=True),
            sa.Column("pest_inspection_date", sa.Date(), nullable=True),
            sa.Column("version_id", sa.Integer(), nullable=False, server_default="1"),
            sa.Column(
                "created_at",
                sa.DateTime(timezone=True),
                nullable=False,
                server_default=sa.func.now(),
            ),
            sa.Column(
                "updated_at",
                sa.DateTime(timezone=True),
                nullable=False,
                server_default=sa.func.now(),
            ),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("inventory_code", name="uq_inventories_inventory_code"),
        )

    inspector = sa.inspect(bind)
    if _table_exists(inspector, "inventories"):
        if not _index_exists(inspector, "inventories", "ix_inventories_crop_id"):
            op.create_index("ix_inventories_crop_id", "inventories", ["crop_id"], unique=False)
        if not _index_exists(inspector, "inventories", "ix_inventories_farmer_user_id"):
            op.create_index("ix_inventories_farmer_user_id", "inventories", ["farmer_user_id"], unique=False)
        if not _index_exists(inspector, "inventories", "ix_inventories_buyer_user_id"):
            op.create_index("ix_inventories_buyer_user_id", "inventories", ["buyer_user_id"], unique=False)
        if not _index_exists(inspector, "inventories", "ix_inventories_status_expiry_date"):
            op.create_index(
                "ix_inventories_status_expiry_date",
                "inventories",
                ["status", "expiry_date"],
                unique=False,
            )
        if not _index_exists(inspector, "inventories", "ix_inventories_crop_status"):
            op.create_index(
                "ix_inventories_crop_status",
                "inventories",
                ["crop_id", "status"],
                unique=False,
            )

    inspector = sa.inspect(bind)
    if not _table_exists(inspector, "inventory_movements"):
        op.create_table(
            "inventory_movements",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("inventory_id", sa.String(length=36), nullable=False),
            sa.Column("sequence", sa.Integer(), nullable=False),
            sa.Column("event_kind", sa.String(length=30), nullable=False),
            sa.Column("detail", sa.String(length=500), nullable=False),
            sa.Column("quantity_delta", sa.Numeric(14, 3), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
            sa.ForeignKeyConstraint(["inventory_id"], ["inventories.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint(
                "inventory_id",
                "sequence",
                name="uq_inventory_movements_inventory_sequence",
            ),
        )

    inspector = sa.inspect(bind)
    if _table_exists(inspector, "inventory_movements"):
        if not _index_exists(inspector, "inventory_movements", "ix_inventory_movements_inventory_id"):
            op.create_index(
                "ix_inventory_movements_inventory_id",
                "inventory_movements",
                ["inventory_id"],
                unique=False,
            )
        if not _index_exists(inspector, "inventory_movements", "ix_inventory_movements_inventory_created_at"):
            op.create_index(
                "ix_inventory_movements_inventory_created_at",
                "inventory_movements",
                ["inventory_id", "created_at"],
                unique=False,
            )


def downgrade() -> None:
    bind = op.get_bind()
    inspector = sa.inspect(bind)

    if _table_exists(inspector, "inventory_movements"):
        for index_name in (
            "ix_inventory_movements_inventory_created_at",
            "ix_inventory_movements_inventory_id",
        ):
            if _index_exists(inspector, "inventory_movements", index_name):
                op.drop_index(index_name, table_name="inventory_movements")
        op.drop_table("inventory_movements")

    inspector = sa.inspect(bind)
    if _table_exists(inspector, "inventories"):
        for index_name in (
            "ix_inventories_crop_status",
            "ix_inventories_status_expiry_date",
            "ix_inventories_buyer_user_id",
            "ix_inventories_farmer_user_id",
            "ix_inventories_crop_id",
        ):
            if _index_exists(inspector, "inventories", index_name):
                op.drop_index(index_name, table_name="inventories")
        op.drop_table("inventories")
