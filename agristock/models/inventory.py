from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    Enum as SAEnum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from agristock.db.base import Base
from agristock.models.enums import FacilityType, InventoryStatus, MovementKind, PestStatus


def _enum_column(enum_cls, length: int = 30) -> SAEnum:
    # Persist the member value, never the Python name.
    return SAEnum(
        enum_cls,
        native_enum=False,
        length=length,
        validate_strings=True,
        values_callable=lambda members: [member.value for member in members],
    )


class Inventory(Base):
    """
    One stored lot of a crop. available_quantity is always current_quantity - reserved_quantity.
    """
    __tablename__ = "inventories"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    inventory_code: Mapped[str] = mapped_column(String(40), nullable=False)

    crop_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    farmer_user_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True, index=True)
    buyer_user_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True, index=True)
    facility_type: Mapped[FacilityType] = mapped_column(_enum_column(FacilityType), nullable=False)
    facility_name: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)
    storage_location: Mapped[str] = mapped_column(String(255), nullable=False)
    storage_capacity: Mapped[Optional[Decimal]] = mapped_column(Numeric(14, 3), nullable=True)

    current_quantity: Mapped[Decimal] = mapped_column(Numeric(14, 3), nullable=False)
    reserved_quantity: Mapped[Decimal] = mapped_column(Numeric(14, 3), nullable=False, default=Decimal("0"))
    available_quantity: Mapped[Decimal] = mapped_column(Numeric(14, 3), nullable=False)
    unit: Mapped[str] = mapped_column(String(20), nullable=False, default="KG", server_default="KG")
    minimum_stock_level: Mapped[Optional[Decimal]] = mapped_column(Numeric(14, 3), nullable=True)
    maximum_stock_level: Mapped[Optional[Decimal]] = mapped_column(Numeric(14, 3), nullable=True)

    status: Mapped[InventoryStatus] = mapped_column(
        _enum_column(InventoryStatus, length=20),
        nullable=False,
        default=InventoryStatus.AVAILABLE,
    )

    quality_grade: Mapped[str] = mapped_column(String(30), nullable=False)
    quality_tests: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    pest_status: Mapped[PestStatus] = mapped_column(
        _enum_column(PestStatus),
        nullable=False,
        default=PestStatus.PEST_FREE,
    )
    treatment_applied: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    moisture_content: Mapped[Optional[Decimal]] = mapped_column(Numeric(6, 2), nullable=True)
    loss_percentage: Mapped[Decimal] = mapped_column(Numeric(7, 2), nullable=False, default=Decimal("0"))
    loss_value: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=Decimal("0"))
    loss_reasons: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    market_value_per_unit: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)
    total_market_value: Mapped[Optional[Decimal]] = mapped_column(Numeric(14, 2), nullable=True)
    purchase_price_per_unit: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)
    profit_margin: Mapped[Optional[Decimal]] = mapped_column(Numeric(9, 2), nullable=True)

    organic_certified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="0")
    fair_trade_certified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="0")
    local_sourcing: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default="1")

    harvest_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    storage_date: Mapped[date] = mapped_column(Date, nullable=False)
    expected_shelf_life_days: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    expiry_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    last_movement_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    condition_assessment: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    next_inspection_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    pest_inspection_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)

    version_id: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
    )

    movements: Mapped[list["InventoryMovement"]] = relationship(
        back_populates="inventory",
        order_by="InventoryMovement.sequence",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    __mapper_args__ = {"version_id_col": version_id}

    __table_args__ = (
        UniqueConstraint("inventory_code", name="uq_inventories_inventory_code"),
        Index("ix_inventories_status_expiry_date", "status", "expiry_date"),
        Index("ix_inventories_crop_status", "crop_id", "status"),
    )


class InventoryMovement(Base):
    """
    Append-only audit trail. One row per status, location or quantity affecting event.
    """
    __tablename__ = "inventory_movements"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    inventory_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("inventories.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)
    event_kind: Mapped[MovementKind] = mapped_column(_enum_column(MovementKind), nullable=False)
    detail: Mapped[str] = mapped_column(String(500), nullable=False)
    quantity_delta: Mapped[Optional[Decimal]] = mapped_column(Numeric(14, 3), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    inventory: Mapped[Inventory] = relationship(back_populates="movements")

    __table_args__ = (
        UniqueConstraint("inventory_id", "sequence", name="uq_inventory_movements_inventory_sequence"),
        Index("ix_inventory_movements_inventory_created_at", "inventory_id", "created_at"),
    )
