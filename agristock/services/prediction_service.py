from collections import defaultdict
from collections.abc import Callable, Sequence
from datetime import date, timedelta
from decimal import Decimal, ROUND_HALF_UP

from sqlalchemy.exc import SQLAlchemyError

from agristock.core.config import Settings, settings
from agristock.core.money import MONEY_QUANT, ZERO_QUANTITY, floor_div, to_decimal
from agristock.core.observability import log_event, log_exception, operation_scope
from agristock.db.inventory_store import InventoryStore
from agristock.schemas.forecast import (
    CropPredictionsOut,
    InventoryPredictionsOut,
    SeasonalPatternOut,
    StockoutRiskOut,
)
from agristock.schemas.inventory import InventoryAlertOut, InventoryOut, InventoryStatisticsOut
from agristock.services import alert_service, food_security_service, forecast_service
from agristock.services.movement_log import utcnow


def stockout_risk(total_stock: Decimal, daily_rate: Decimal, today: date) -> StockoutRiskOut:
    if daily_rate <= 0:
        return StockoutRiskOut(days_until_stockout=None, stockout_date=None, risk_level="LOW")
    days = floor_div(total_stock, daily_rate)
    if days < 30:
        risk = "HIGH"
    elif days < 60:
        risk = "MEDIUM"
    else:
        risk = "LOW"
    return StockoutRiskOut(
        days_until_stockout=days,
        stockout_date=today + timedelta(days=days),
        risk_level=risk,
    )


def optimal_restock_date(risk: StockoutRiskOut, today: date, lead_days: int) -> date | None:
    if risk.days_until_stockout is None:
        return None
    return today + timedelta(days=max(0, risk.days_until_stockout - lead_days))


def seasonal_pattern(records: Sequence[InventoryOut]) -> SeasonalPatternOut:
    by_month: dict[int, list[Decimal]] = defaultdict(list)
    for record in records:
        if record.storage_date is not None:
            by_month[record.storage_date.month].append(to_decimal(record.current_quantity))

    averages = {
        month: (sum(values, ZERO_QUANTITY) / Decimal(len(values))).quantize(MONEY_QUANT, rounding=ROUND_HALF_UP)
        for month, values in sorted(by_month.items())
    }
    if not averages:
        return SeasonalPatternOut(monthly_average={}, peak_month=None, low_month=None)
    return SeasonalPatternOut(
        monthly_average=averages,
        peak_month=max(averages, key=lambda month: (averages[month], -month)),
        low_month=min(averages, key=lambda month: (averages[month], month)),
    )


class PredictionService:
    """
    Dashboard read path. Works on a point-in-time snapshot of the store; a
    storage failure is logged and reported as an empty record set so every
    section still renders, zeroed.
    """

    def __init__(self, store: InventoryStore, config: Settings = settings):
        self._store = store
        self._config = config

    def _load(self, section: str, fetch: Callable[[], list[InventoryOut]]) -> list[InventoryOut]:
        try:
            return fetch()
        except SQLAlchemyError as exc:
            log_exception("inventory.read_path_degraded", exc, section=section)
            return []

    def get_inventory_predictions(self, *, today: date | None = None) -> InventoryPredictionsOut:
        today = today or date.today()
        with operation_scope():
            records = self._load("inventory_predictions", self._store.snapshot)
            total_stock = forecast_service.total_available_stock(records)
            daily_rate = forecast_service.historical_daily_consumption(records, today)
            coverage = forecast_service.coverage_from(total_stock, daily_rate)

            predictions = InventoryPredictionsOut(
                generated_at=utcnow(),
                as_of=today,
                stock_coverage=coverage,
                consumption_forecasts=forecast_service.consumption_forecast_from(daily_rate, today, self._config),
                deficit_analysis=forecast_service.deficit_from(total_stock, daily_rate, today),
                capacity_utilization=forecast_service.capacity_utilization(records),
                inventory_trends=forecast_service.inventory_trends(records),
                food_security_score=food_security_service.food_security_score(
                    records, coverage.coverage_days, self._config
                ),
                restock_recommendations=food_security_service.restock_recommendations(records),
            )
            log_event(
                "inventory.predictions_generated",
                records=len(records),
                coverage_days=coverage.coverage_days,
                adequacy_level=coverage.adequacy_level,
            )
        return predictions

    def get_crop_specific_predictions(self, crop_id: str, *, today: date | None = None) -> CropPredictionsOut:
        today = today or date.today()
        with operation_scope():
            records = self._load("crop_predictions", lambda: self._store.find_by_crop(crop_id))
            total_stock = forecast_service.total_available_stock(records)
            daily_rate = forecast_service.historical_daily_consumption(records, today)
            risk = stockout_risk(total_stock, daily_rate, today)
            result = CropPredictionsOut(
                crop_id=crop_id,
                as_of=today,
                current_stock=total_stock,
                average_daily_consumption=daily_rate,
                stockout_risk=risk,
                optimal_restock_date=optimal_restock_date(risk, today, self._config.restock_lead_days),
                seasonal_pattern=seasonal_pattern(records),
            )
            log_event(
                "inventory.crop_predictions_generated",
                crop_id=crop_id,
                records=len(records),
                risk_level=risk.risk_level,
            )
        return result

    def get_alerts(self, *, today: date | None = None) -> list[InventoryAlertOut]:
        today = today or date.today()
        records = self._load("alerts", self._store.snapshot)
        return alert_service.generate_alerts(records, today=today, config=self._config)

    def get_statistics(self, *, today: date | None = None) -> InventoryStatisticsOut:
        today = today or date.today()
        records = self._load("statistics", self._store.snapshot)
        return alert_service.inventory_statistics(records, today=today, config=self._config)
