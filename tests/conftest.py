import os
from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

os.environ.setdefault("DATABASE_URL", "sqlite://")

import agristock.models  # noqa: F401
from agristock.db.base import Base
from agristock.db.session import build_session_factory
from agristock.main import create_services
from agristock.schemas.inventory import InventoryOut

TODAY = date(2026, 3, 10)


def lot_payload(**overrides) -> dict:
    payload = {
        "crop_id": "crop-maize",
        "farmer_user_id": "farmer-1",
        "facility_type": "WAREHOUSE",
        "storage_location": "Musanze Central Warehouse",
        "storage_capacity": "1000",
        "current_quantity": "50",
        "minimum_stock_level": "10",
        "quality_grade": "A",
        "market_value_per_unit": "400",
        "purchase_price_per_unit": "320",
        "storage_date": TODAY.isoformat(),
    }
    payload.update(overrides)
    return payload


def snapshot(**overrides) -> InventoryOut:
    """Build a detached record for the pure read-path functions."""
    current = Decimal(str(overrides.pop("current_quantity", "100")))
    reserved = Decimal(str(overrides.pop("reserved_quantity", "0")))
    data = {
        "id": "inv-1",
        "inventory_code": "STOCK-1",
        "crop_id": "crop-maize",
        "facility_type": "WAREHOUSE",
        "storage_location": "Bay 1",
        "current_quantity": current,
        "reserved_quantity": reserved,
        "available_quantity": current - reserved,
        "unit": "KG",
        "status": "AVAILABLE",
        "quality_grade": "A",
        "pest_status": "PEST_FREE",
        "loss_percentage": Decimal("0"),
        "loss_value": Decimal("0"),
        "storage_date": TODAY,
        "version_id": 1,
    }
    data.update(overrides)
    return InventoryOut.model_validate(data)


@pytest.fixture()
def session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    factory = build_session_factory(engine)

    yield factory

    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture()
def services(session_factory):
    return create_services(session_factory)


@pytest.fixture()
def make_lot(services):
    def _make(**overrides) -> InventoryOut:
        return services.inventory.create(lot_payload(**overrides), today=TODAY)

    return _make
