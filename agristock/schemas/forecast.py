from datetime import date, datetime
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

AdequacyLevel = Literal["CRITICAL", "LOW", "MODERATE", "ADEQUATE"]
UtilizationStatus = Literal["CRITICAL", "HIGH", "OPTIMAL", "LOW"]
TrendDirection = Literal["INCREASING", "DECREASING", "STABLE"]
FoodSecurityRating = Literal["EXCELLENT", "GOOD", "MODERATE", "POOR", "CRITICAL"]
RestockPriority = Literal["CRITICAL", "HIGH", "MEDIUM", "LOW"]
RestockUrgency = Literal["IMMEDIATE", "URGENT", "SOON", "PLANNED"]
StockoutRisk = Literal["HIGH", "MEDIUM", "LOW"]


class StockCoverageOut(BaseModel):
    total_available_stock: Decimal
    daily_consumption_rate: Decimal
    coverage_days: int
    coverage_weeks: int
    coverage_months: int
    adequacy_level: AdequacyLevel


class ConsumptionForecastOut(BaseModel):
    daily_rate: Decimal
    next_7_days: Decimal
    next_30_days: Decimal
    next_90_days: Decimal
    next_quarter: Decimal
    next_year: Decimal
    seasonal_factor: float
    seasonally_adjusted_daily: Decimal


class MonthlyProjectionOut(BaseModel):
    month: int = Field(ge=1, le=6)
    projected_stock: Decimal
    deficit: Decimal


class DeficitAnalysisOut(BaseModel):
    monthly_need: Decimal
    current_stock: Decimal
    current_deficit: Decimal
    deficit_percentage: Decimal
    critical_level: bool
    projections: list[MonthlyProjectionOut]
    estimated_stockout_date: date | None = None


class FacilityUtilizationOut(BaseModel):
    facility_type: str
    used_capacity: Decimal
    total_capacity: Decimal
    utilization_percentage: Decimal
    status: UtilizationStatus


class CapacityUtilizationOut(BaseModel):
    used_capacity: Decimal
    total_capacity: Decimal
    utilization_percentage: Decimal
    status: UtilizationStatus
    available_capacity: Decimal
    by_facility_type: list[FacilityUtilizationOut]


class MonthlyStockOut(BaseModel):
    month: str
    total_quantity: Decimal


class InventoryTrendsOut(BaseModel):
    monthly_totals: list[MonthlyStockOut]
    trend_direction: TrendDirection
    growth_rate: Decimal


class FoodSecurityScoreOut(BaseModel):
    overall_score: int = Field(ge=0, le=100)
    diversity_score: int = Field(ge=0, le=100)
    adequacy_score: int = Field(ge=0, le=100)
    quality_score: int = Field(ge=0, le=100)
    accessibility_score: int = Field(ge=0, le=100)
    rating: FoodSecurityRating
    crop_diversity: int
    recommendations: list[str]

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "overall_score": 55,
                "diversity_score": 40,
                "adequacy_score": 40,
                "quality_score": 75,
                "accessibility_score": 66,
                "rating": "MODERATE",
                "crop_diversity": 4,
                "recommendations": [
                    "Improve storage capacity utilization",
                    "Enhance quality control measures",
                    "Consider seasonal adjustments in inventory planning",
                    "Optimize stock rotation practices",
                ],
            }
        }
    )


class RestockRecommendationOut(BaseModel):
    crop_id: str
    current_stock: Decimal
    minimum_stock: Decimal
    recommended_restock: Decimal
    stock_ratio: Decimal
    deficit_percentage: Decimal
    priority: RestockPriority
    urgency: RestockUrgency


class InventoryPredictionsOut(BaseModel):
    """Dashboard payload keyed by forecasting section."""

    generated_at: datetime
    as_of: date
    stock_coverage: StockCoverageOut
    consumption_forecasts: ConsumptionForecastOut
    deficit_analysis: DeficitAnalysisOut
    capacity_utilization: CapacityUtilizationOut
    inventory_trends: InventoryTrendsOut
    food_security_score: FoodSecurityScoreOut
    restock_recommendations: list[RestockRecommendationOut]


class StockoutRiskOut(BaseModel):
    days_until_stockout: int | None = None
    stockout_date: date | None = None
    risk_level: StockoutRisk


class SeasonalPatternOut(BaseModel):
    monthly_average: dict[int, Decimal]
    peak_month: int | None = None
    low_month: int | None = None


class CropPredictionsOut(BaseModel):
    crop_id: str
    as_of: date
    current_stock: Decimal
    average_daily_consumption: Decimal
    stockout_risk: StockoutRiskOut
    optimal_restock_date: date | None = None
    seasonal_pattern: SeasonalPatternOut
