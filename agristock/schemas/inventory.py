from datetime import date, datetime
from decimal import Decimal
from typing import Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, model_validator

from agristock.models.enums import FacilityType, InventoryStatus, MovementKind, PestStatus
from agristock.schemas.common import PaginationMeta


class InventoryCreate(BaseModel):
    inventory_code: str | None = Field(default=None, min_length=3, max_length=40)
    crop_id: str = Field(min_length=1, max_length=36)
    farmer_user_id: str | None = Field(default=None, max_length=36)
    facility_type: FacilityType
    facility_name: str | None = Field(default=None, max_length=120)
    storage_location: str = Field(min_length=1, max_length=255)
    storage_capacity: Decimal | None = Field(default=None, ge=0)
    current_quantity: Decimal = Field(gt=0)
    unit: str | None = Field(default=None, max_length=20)
    minimum_stock_level: Decimal | None = Field(default=None, ge=0)
    maximum_stock_level: Decimal | None = Field(default=None, ge=0)
    quality_grade: str = Field(min_length=1, max_length=30)
    moisture_content: Decimal | None = Field(default=None, ge=0, le=100)
    market_value_per_unit: Decimal | None = Field(default=None, ge=0)
    purchase_price_per_unit: Decimal | None = Field(default=None, ge=0)
    harvest_date: date | None = None
    storage_date: date | None = None
    expected_shelf_life_days: int | None = Field(default=None, ge=0)
    expiry_date: date | None = None
    next_inspection_date: date | None = None
    organic_certified: bool = False
    fair_trade_certified: bool = False
    local_sourcing: bool = True

    @model_validator(mode="after")
    def validate_stock_levels(self) -> "InventoryCreate":
        if (
            self.minimum_stock_level is not None
            and self.maximum_stock_level is not None
            and self.maximum_stock_level < self.minimum_stock_level
        ):
            raise ValueError("maximum_stock_level cannot be below minimum_stock_level")
        return self

    model_config = ConfigDict(
        str_strip_whitespace=True,
        extra="ignore",
        json_schema_extra={
            "example": {
                "crop_id": "crop-maize",
                "farmer_user_id": "farmer-id-here",
                "facility_type": "WAREHOUSE",
                "storage_location": "Musanze Central Warehouse, Bay 4",
                "storage_capacity": 5000,
                "current_quantity": 1200,
                "minimum_stock_level": 300,
                "quality_grade": "A",
                "moisture_content": 12.5,
                "market_value_per_unit": 450,
                "purchase_price_per_unit": 380,
                "expected_shelf_life_days": 180,
            }
        },
    )


class InventoryUpdate(BaseModel):
    """
    Field patch. Unknown keys are ignored; every recognised key is validated before anything is applied.
    """

    current_quantity: Decimal | None = Field(default=None, ge=0)
    reserved_quantity: Decimal | None = Field(default=None, ge=0)
    status: InventoryStatus | None = None
    quality_grade: str | None = Field(default=None, min_length=1, max_length=30)
    pest_status: PestStatus | None = None
    moisture_content: Decimal | None = Field(default=None, ge=0, le=100)
    loss_percentage: Decimal | None = Field(default=None, ge=0, le=100)
    market_value_per_unit: Decimal | None = Field(default=None, ge=0)
    purchase_price_per_unit: Decimal | None = Field(default=None, ge=0)
    storage_location: str | None = Field(default=None, min_length=1, max_length=255)
    facility_type: FacilityType | None = None
    facility_name: str | None = Field(default=None, max_length=120)
    storage_capacity: Decimal | None = Field(default=None, ge=0)
    farmer_user_id: str | None = Field(default=None, max_length=36)
    unit: str | None = Field(default=None, min_length=1, max_length=20)
    minimum_stock_level: Decimal | None = Field(default=None, ge=0)
    maximum_stock_level: Decimal | None = Field(default=None, ge=0)
    expiry_date: date | None = None
    next_inspection_date: date | None = None

    model_config = ConfigDict(str_strip_whitespace=True, extra="ignore")


class InventoryFilter(BaseModel):
    crop_id: str | None = None
    farmer_user_id: str | None = None
    buyer_user_id: str | None = None
    facility_type: FacilityType | None = None
    status: InventoryStatus | None = None
    quality_grade: str | None = None
    min_quantity: Decimal | None = Field(default=None, ge=0)
    max_quantity: Decimal | None = Field(default=None, ge=0)
    keyword: str | None = Field(default=None, max_length=100)

    @model_validator(mode="after")
    def validate_quantity_range(self) -> "InventoryFilter":
        if (
            self.min_quantity is not None
            and self.max_quantity is not None
            and self.min_quantity > self.max_quantity
        ):
            raise ValueError("min_quantity cannot exceed max_quantity")
        return self

    model_config = ConfigDict(str_strip_whitespace=True, extra="ignore")


class MovementEntryOut(BaseModel):
    sequence: int
    created_at: datetime
    event_kind: MovementKind
    detail: str
    quantity_delta: Decimal | None = None

    model_config = ConfigDict(from_attributes=True)


class InventoryOut(BaseModel):
    id: str
    inventory_code: str
    crop_id: str
    farmer_user_id: str | None = None
    buyer_user_id: str | None = None
    facility_type: FacilityType
    facility_name: str | None = None
    storage_location: str
    storage_capacity: Decimal | None = None

    current_quantity: Decimal
    reserved_quantity: Decimal
    available_quantity: Decimal
    unit: str
    minimum_stock_level: Decimal | None = None
    maximum_stock_level: Decimal | None = None

    status: InventoryStatus
    quality_grade: str
    quality_tests: str | None = None
    pest_status: PestStatus
    treatment_applied: str | None = None
    moisture_content: Decimal | None = None
    loss_percentage: Decimal
    loss_value: Decimal
    loss_reasons: str | None = None

    market_value_per_unit: Decimal | None = None
    total_market_value: Decimal | None = None
    purchase_price_per_unit: Decimal | None = None
    profit_margin: Decimal | None = None

    organic_certified: bool = False
    fair_trade_certified: bool = False
    local_sourcing: bool = True

    harvest_date: date | None = None
    storage_date: date
    expected_shelf_life_days: int | None = None
    expiry_date: date | None = None
    last_movement_date: datetime | None = None
    condition_assessment: date | None = None
    next_inspection_date: date | None = None
    pest_inspection_date: date | None = None

    version_id: int
    created_at: datetime | None = None
    updated_at: datetime | None = None
    movement_history: list[MovementEntryOut] = Field(
        default_factory=list,
        validation_alias=AliasChoices("movement_history", "movements"),
    )

    model_config = ConfigDict(from_attributes=True)

    @property
    def is_sustainable(self) -> bool:
        return self.organic_certified or self.fair_trade_certified or self.local_sourcing

    def days_in_storage(self, today: date) -> int:
        return (today - self.storage_date).days


class InventoryListOut(BaseModel):
    items: list[InventoryOut]
    pagination: PaginationMeta


class InventoryStatisticsOut(BaseModel):
    total_items: int
    available_items: int
    reserved_items: int
    sold_items: int
    expired_items: int
    damaged_items: int
    high_value_items: int
    sustainable_items: int
    low_stock_items: int
    items_expiring_soon: int
    items_with_pest_issues: int
    total_value: Decimal
    total_quantity: Decimal
    total_loss_value: Decimal
    average_storage_days: float
    storage_utilization: Decimal
    count_by_facility_type: dict[str, int]
    count_by_quality_grade: dict[str, int]
    generated_at: datetime

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "total_items": 12,
                "available_items": 8,
                "reserved_items": 2,
                "sold_items": 1,
                "expired_items": 0,
                "damaged_items": 1,
                "high_value_items": 3,
                "sustainable_items": 11,
                "low_stock_items": 2,
                "items_expiring_soon": 1,
                "items_with_pest_issues": 1,
                "total_value": "540000.00",
                "total_quantity": "7300.000",
                "total_loss_value": "1200.00",
                "average_storage_days": 41.5,
                "storage_utilization": "62.4100",
                "count_by_facility_type": {"WAREHOUSE": 7, "SILO": 5},
                "count_by_quality_grade": {"A": 6, "B": 4, "C": 2},
                "generated_at": "2026-02-16T10:00:00Z",
            }
        }
    )


AlertType = Literal["EXPIRING_SOON", "LOW_STOCK", "HIGH_LOSS", "PEST_DETECTED", "QUALITY_DEGRADING"]
AlertSeverity = Literal["LOW", "MEDIUM", "HIGH", "CRITICAL"]
AlertCategory = Literal["EXPIRY", "QUANTITY", "VALUE", "PEST", "QUALITY"]


class InventoryAlertOut(BaseModel):
    alert_id: str
    inventory_id: str
    inventory_code: str
    crop_id: str
    alert_type: AlertType
    severity: AlertSeverity
    category: AlertCategory
    message: str
    recommended_action: str
    details: dict[str, str | int | float | None] = Field(default_factory=dict)
    created_at: datetime

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "alert_id": "ALERT-LOW_STOCK-0b6f7c1e-5a43-4c3b-9d3e-2f0d4bfb7d11",
                "inventory_id": "0b6f7c1e-5a43-4c3b-9d3e-2f0d4bfb7d11",
                "inventory_code": "STOCK260216K4Q9ZP2",
                "crop_id": "crop-maize",
                "alert_type": "LOW_STOCK",
                "severity": "MEDIUM",
                "category": "QUANTITY",
                "message": "Stock level is below minimum threshold",
                "recommended_action": "Reorder stock or adjust minimum levels",
                "details": {"available_quantity": 120.0, "minimum_stock_level": 300.0},
                "created_at": "2026-02-16T10:00:00Z",
            }
        }
    )
