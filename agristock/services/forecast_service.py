from __future__ import annotations

from collections import defaultdict
from collections.abc import Sequence
from datetime import date, timedelta
from decimal import Decimal, ROUND_HALF_UP

from agristock.core.config import Settings, settings
from agristock.core.money import (
    RATE_QUANT,
    ZERO_QUANTITY,
    floor_div,
    percentage,
    to_decimal,
)
from agristock.schemas.forecast import (
    CapacityUtilizationOut,
    ConsumptionForecastOut,
    DeficitAnalysisOut,
    FacilityUtilizationOut,
    InventoryTrendsOut,
    MonthlyProjectionOut,
    MonthlyStockOut,
    StockCoverageOut,
)
from agristock.schemas.inventory import InventoryOut

PROJECTION_MONTHS = 6
DAYS_PER_MONTH = 30
FORECAST_HORIZONS = {
    "next_7_days": 7,
    "next_30_days": 30,
    "next_90_days": 90,
    "next_quarter": 90,
    "next_year": 365,
}


def _rate(value: Decimal) -> Decimal:
    return value.quantize(RATE_QUANT, rounding=ROUND_HALF_UP)


def total_available_stock(records: Sequence[InventoryOut]) -> Decimal:
    return sum((to_decimal(r.available_quantity) for r in records), ZERO_QUANTITY)


def record_daily_rate(record: InventoryOut, today: date) -> Decimal | None:
    """Per-record consumption rate, or None when the record carries no usable history."""
    if record.storage_date is None or record.last_movement_date is None:
        return None
    days = (today - record.storage_date).days
    if days <= 0:
        return None
    initial = to_decimal(record.current_quantity) + to_decimal(record.reserved_quantity)
    consumed = initial - to_decimal(record.available_quantity)
    return _rate(consumed / Decimal(days))


def historical_daily_consumption(records: Sequence[InventoryOut], today: date) -> Decimal:
    """
    Unweighted mean of every eligible record's daily rate.

    Older and smaller lots count as much as recent large ones; see DESIGN.md
    for why this is kept as-is.
    """
    rates = [rate for rate in (record_daily_rate(r, today) for r in records) if rate is not None]
    if not rates:
        return ZERO_QUANTITY
    return _rate(sum(rates, ZERO_QUANTITY) / Decimal(len(rates)))


def adequacy_level(coverage_days: int) -> str:
    if coverage_days < 7:
        return "CRITICAL"
    if coverage_days < 30:
        return "LOW"
    if coverage_days < 90:
        return "MODERATE"
    return "ADEQUATE"


def coverage_from(total_stock: Decimal, daily_rate: Decimal) -> StockCoverageOut:
    days = floor_div(to_decimal(total_stock), to_decimal(daily_rate)) if daily_rate > 0 else 0
    return StockCoverageOut(
        total_available_stock=total_stock,
        daily_consumption_rate=daily_rate,
        coverage_days=days,
        coverage_weeks=days // 7,
        coverage_months=days // DAYS_PER_MONTH,
        adequacy_level=adequacy_level(days),
    )


def stock_coverage(records: Sequence[InventoryOut], today: date) -> StockCoverageOut:
    return coverage_from(total_available_stock(records), historical_daily_consumption(records, today))


def seasonal_factor(month: int, config: Settings = settings) -> float:
    return config.seasonal_adjustment_factors[month]


def consumption_forecast_from(daily_rate: Decimal, today: date, config: Settings = settings) -> ConsumptionForecastOut:
    factor = seasonal_factor(today.month, config)
    horizons = {name: daily_rate * days for name, days in FORECAST_HORIZONS.items()}
    return ConsumptionForecastOut(
        daily_rate=daily_rate,
        seasonal_factor=factor,
        seasonally_adjusted_daily=_rate(daily_rate * Decimal(str(factor))),
        **horizons,
    )


def consumption_forecasts(
    records: Sequence[InventoryOut],
    today: date,
    config: Settings = settings,
) -> ConsumptionForecastOut:
    return consumption_forecast_from(historical_daily_consumption(records, today), today, config)


def stockout_date(total_stock: Decimal, daily_rate: Decimal, today: date) -> date | None:
    if daily_rate <= 0:
        return None
    return today + timedelta(days=floor_div(total_stock, daily_rate))


def deficit_from(total_stock: Decimal, daily_rate: Decimal, today: date) -> DeficitAnalysisOut:
    monthly_need = daily_rate * DAYS_PER_MONTH
    shortfall = monthly_need - total_stock
    current_deficit = max(ZERO_QUANTITY, shortfall)

    projections = []
    for month in range(1, PROJECTION_MONTHS + 1):
        projected = total_stock - daily_rate * DAYS_PER_MONTH * month
        projections.append(
            MonthlyProjectionOut(
                month=month,
                projected_stock=projected,
                deficit=max(ZERO_QUANTITY, -projected),
            )
        )

    return DeficitAnalysisOut(
        monthly_need=monthly_need,
        current_stock=total_stock,
        current_deficit=current_deficit,
        deficit_percentage=percentage(total_stock, monthly_need),
        critical_level=shortfall > 0,
        projections=projections,
        estimated_stockout_date=stockout_date(total_stock, daily_rate, today),
    )


def deficit_analysis(records: Sequence[InventoryOut], today: date) -> DeficitAnalysisOut:
    return deficit_from(total_available_stock(records), historical_daily_consumption(records, today), today)


def capacity_status(utilization_percentage: Decimal) -> str:
    if utilization_percentage > 90:
        return "CRITICAL"
    if utilization_percentage > 75:
        return "HIGH"
    if utilization_percentage > 50:
        return "OPTIMAL"
    return "LOW"


def _capacity_totals(records: Sequence[InventoryOut]) -> tuple[Decimal, Decimal]:
    capacity = sum(
        (to_decimal(r.storage_capacity) for r in records if r.storage_capacity is not None),
        ZERO_QUANTITY,
    )
    used = sum((to_decimal(r.current_quantity) for r in records), ZERO_QUANTITY)
    return used, capacity


def capacity_utilization(records: Sequence[InventoryOut]) -> CapacityUtilizationOut:
    used, capacity = _capacity_totals(records)
    utilization = percentage(used, capacity)

    grouped: dict[str, list[InventoryOut]] = defaultdict(list)
    for record in records:
        grouped[record.facility_type.value].append(record)

    by_facility = []
    for facility_type in sorted(grouped):
        facility_used, facility_capacity = _capacity_totals(grouped[facility_type])
        facility_utilization = percentage(facility_used, facility_capacity)
        by_facility.append(
            FacilityUtilizationOut(
                facility_type=facility_type,
                used_capacity=facility_used,
                total_capacity=facility_capacity,
                utilization_percentage=facility_utilization,
                status=capacity_status(facility_utilization),
            )
        )

    return CapacityUtilizationOut(
        used_capacity=used,
        total_capacity=capacity,
        utilization_percentage=utilization,
        status=capacity_status(utilization),
        available_capacity=capacity - used,
        by_facility_type=by_facility,
    )


def monthly_totals(records: Sequence[InventoryOut]) -> dict[str, Decimal]:
    totals: dict[str, Decimal] = defaultdict(lambda: ZERO_QUANTITY)
    for record in records:
        if record.storage_date is None:
            continue
        totals[f"{record.storage_date:%Y-%m}"] += to_decimal(record.current_quantity)
    return dict(sorted(totals.items()))


def trend_direction(values: list[Decimal]) -> str:
    if len(values) < 2:
        return "STABLE"
    first, last = values[0], values[-1]
    if last > first * Decimal("1.1"):
        return "INCREASING"
    if last < first * Decimal("0.9"):
        return "DECREASING"
    return "STABLE"


def growth_rate(values: list[Decimal]) -> Decimal:
    if len(values) < 2 or values[0] == 0:
        return ZERO_QUANTITY
    return percentage(values[-1] - values[0], values[0])


def inventory_trends(records: Sequence[InventoryOut]) -> InventoryTrendsOut:
    totals = monthly_totals(records)
    values = list(totals.values())
    return InventoryTrendsOut(
        monthly_totals=[MonthlyStockOut(month=month, total_quantity=qty) for month, qty in totals.items()],
        trend_direction=trend_direction(values),
        growth_rate=growth_rate(values),
    )
