from datetime import timedelta
from decimal import Decimal

from sqlalchemy.exc import SQLAlchemyError

from agristock.main import ready
from agristock.services.prediction_service import PredictionService

from conftest import TODAY


def _stock_with_history(services, make_lot):
    maize = make_lot(
        current_quantity="100",
        storage_date=(TODAY - timedelta(days=10)).isoformat(),
    )
    services.reservations.mark_sold(maize.id, Decimal("20"), Decimal("450"))
    services.reservations.reserve(maize.id, Decimal("20"), "buyer-1")
    beans = make_lot(crop_id="crop-beans", current_quantity="50")
    return maize, beans


def test_inventory_predictions_from_stored_lots(services, make_lot):
    _stock_with_history(services, make_lot)

    predictions = services.predictions.get_inventory_predictions(today=TODAY)

    coverage = predictions.stock_coverage
    assert coverage.total_available_stock == Decimal("110")
    assert coverage.daily_consumption_rate == Decimal("4.00")
    assert coverage.coverage_days == 27
    assert coverage.adequacy_level == "LOW"

    deficit = predictions.deficit_analysis
    assert deficit.monthly_need == Decimal("120")
    assert deficit.current_deficit == Decimal("10")
    assert deficit.critical_level is True
    assert deficit.estimated_stockout_date == TODAY + timedelta(days=27)

    assert predictions.consumption_forecasts.seasonal_factor == 0.8
    assert predictions.food_security_score.crop_diversity == 2
    assert predictions.restock_recommendations == []
    assert predictions.as_of == TODAY


def test_crop_predictions(services, make_lot):
    _stock_with_history(services, make_lot)

    result = services.predictions.get_crop_specific_predictions("crop-maize", today=TODAY)

    assert result.current_stock == Decimal("60")
    assert result.average_daily_consumption == Decimal("4.00")
    assert result.stockout_risk.days_until_stockout == 15
    assert result.stockout_risk.risk_level == "HIGH"
    assert result.stockout_risk.stockout_date == TODAY + timedelta(days=15)
    assert result.optimal_restock_date == TODAY
    assert result.seasonal_pattern.monthly_average == {2: Decimal("80.00")}


def test_crop_predictions_for_unknown_crop(services):
    result = services.predictions.get_crop_specific_predictions("crop-none", today=TODAY)

    assert result.current_stock == Decimal("0")
    assert result.stockout_risk.risk_level == "LOW"
    assert result.optimal_restock_date is None
    assert result.seasonal_pattern.peak_month is None


def test_alerts_and_statistics_read_from_store(services, make_lot):
    make_lot(current_quantity="8", minimum_stock_level="10")
    make_lot(crop_id="crop-beans", current_quantity="40")

    alerts = services.predictions.get_alerts(today=TODAY)
    stats = services.predictions.get_statistics(today=TODAY)

    assert [a.alert_type for a in alerts] == ["LOW_STOCK"]
    assert stats.total_items == 2
    assert stats.low_stock_items == 1


class UnavailableStore:
    def snapshot(self):
        raise SQLAlchemyError("database unavailable")

    def find_by_crop(self, crop_id):
        raise SQLAlchemyError("database unavailable")


def test_read_path_degrades_to_zeroed_output():
    predictions = PredictionService(UnavailableStore())

    result = predictions.get_inventory_predictions(today=TODAY)
    assert result.stock_coverage.total_available_stock == Decimal("0")
    assert result.stock_coverage.coverage_days == 0
    assert result.stock_coverage.adequacy_level == "CRITICAL"
    assert result.capacity_utilization.utilization_percentage == Decimal("0")
    assert result.restock_recommendations == []

    crop = predictions.get_crop_specific_predictions("crop-maize", today=TODAY)
    assert crop.current_stock == Decimal("0")
    assert crop.stockout_risk.days_until_stockout is None

    assert predictions.get_alerts(today=TODAY) == []
    assert predictions.get_statistics(today=TODAY).total_items == 0


def test_ready_probe(session_factory):
    assert ready(session_factory) == {"ok": True}
