from dataclasses import dataclass

from sqlalchemy import text
from sqlalchemy.orm import sessionmaker

from agristock.core.config import Settings, settings
from agristock.core.observability import log_event, setup_observability
from agristock.db.inventory_store import SqlInventoryStore
from agristock.services.inventory_service import InventoryService
from agristock.services.prediction_service import PredictionService
from agristock.services.reservation_service import ReservationManager


@dataclass
class InventoryServices:
    store: SqlInventoryStore
    inventory: InventoryService
    reservations: ReservationManager
    predictions: PredictionService


def create_services(
    session_factory: sessionmaker | None = None,
    config: Settings = settings,
) -> InventoryServices:
    setup_observability()
    if session_factory is None:
        from agristock.db.session import SessionLocal

        session_factory = SessionLocal

    store = SqlInventoryStore(session_factory, config)
    services = InventoryServices(
        store=store,
        inventory=InventoryService(store, config),
        reservations=ReservationManager(store, config),
        predictions=PredictionService(store, config),
    )
    log_event("app.services_ready", app=config.app_name, env=config.env)
    return services


def ready(session_factory: sessionmaker) -> dict:
    try:
        with session_factory() as db:
            db.execute(text("SELECT 1"))
    except Exception:
        return {"ok": False}
    return {"ok": True}
