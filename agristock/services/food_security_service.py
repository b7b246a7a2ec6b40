from collections import defaultdict
from collections.abc import Sequence
from decimal import Decimal

from agristock.core.config import Settings, settings
from agristock.core.money import ZERO_QUANTITY, percentage, ratio, to_decimal
from agristock.models.enums import InventoryStatus
from agristock.schemas.forecast import FoodSecurityScoreOut, RestockRecommendationOut
from agristock.schemas.inventory import InventoryOut

PRIORITY_RANK = {"CRITICAL": 3, "HIGH": 2, "MEDIUM": 1, "LOW": 0}


def normalize_grade(grade: str | None) -> str:
    cleaned = (grade or "").strip().upper()
    if cleaned.startswith("GRADE "):
        cleaned = cleaned[len("GRADE "):].strip()
    return cleaned


def diversity_score(records: Sequence[InventoryOut]) -> int:
    crops = len({r.crop_id for r in records})
    if crops >= 10:
        return 100
    if crops >= 7:
        return 80
    if crops >= 5:
        return 60
    if crops >= 3:
        return 40
    return 20


def adequacy_score(coverage_days: int) -> int:
    if coverage_days >= 180:
        return 100
    if coverage_days >= 90:
        return 80
    if coverage_days >= 60:
        return 60
    if coverage_days >= 30:
        return 40
    return 20


def quality_score(records: Sequence[InventoryOut], config: Settings = settings) -> int:
    if not records:
        return 0
    good_grades = {normalize_grade(g) for g in config.good_quality_grades}
    good = sum(1 for r in records if normalize_grade(r.quality_grade) in good_grades)
    return good * 100 // len(records)


def accessibility_score(records: Sequence[InventoryOut]) -> int:
    if not records:
        return 0
    available = sum(1 for r in records if r.status == InventoryStatus.AVAILABLE)
    return available * 100 // len(records)


def food_security_rating(score: int) -> str:
    if score >= 80:
        return "EXCELLENT"
    if score >= 60:
        return "GOOD"
    if score >= 40:
        return "MODERATE"
    if score >= 20:
        return "POOR"
    return "CRITICAL"


def security_recommendations(score: int) -> list[str]:
    recs: list[str] = []
    if score < 40:
        recs.append("Urgent: Increase crop diversity to improve food security")
        recs.append("Critical: Immediate restocking required for essential crops")
    if score < 60:
        recs.append("Improve storage capacity utilization")
        recs.append("Enhance quality control measures")
    if score < 80:
        recs.append("Consider seasonal adjustments in inventory planning")
        recs.append("Optimize stock rotation practices")
    return recs


def food_security_score(
    records: Sequence[InventoryOut],
    coverage_days: int,
    config: Settings = settings,
) -> FoodSecurityScoreOut:
    diversity = diversity_score(records)
    adequacy = adequacy_score(coverage_days)
    quality = quality_score(records, config)
    accessibility = accessibility_score(records)
    overall = (diversity + adequacy + quality + accessibility) // 4
    return FoodSecurityScoreOut(
        overall_score=overall,
        diversity_score=diversity,
        adequacy_score=adequacy,
        quality_score=quality,
        accessibility_score=accessibility,
        rating=food_security_rating(overall),
        crop_diversity=len({r.crop_id for r in records}),
        recommendations=security_recommendations(overall),
    )


def restock_priority(current: Decimal, minimum: Decimal) -> str:
    if minimum == 0:
        return "LOW"
    stock_ratio = ratio(current, minimum)
    if stock_ratio < Decimal("0.25"):
        return "CRITICAL"
    if stock_ratio < Decimal("0.5"):
        return "HIGH"
    if stock_ratio < Decimal("0.75"):
        return "MEDIUM"
    return "LOW"


def restock_urgency(current: Decimal, minimum: Decimal) -> str:
    if minimum == 0:
        return "PLANNED"
    deficit_pct = percentage(minimum - current, minimum)
    if deficit_pct > 75:
        return "IMMEDIATE"
    if deficit_pct > 50:
        return "URGENT"
    if deficit_pct > 25:
        return "SOON"
    return "PLANNED"


def restock_recommendations(records: Sequence[InventoryOut]) -> list[RestockRecommendationOut]:
    """
    One recommendation per crop whose available stock is below the highest
    minimum stock level set on any of its lots. Most severe first, then the
    largest restock.
    """
    by_crop: dict[str, list[InventoryOut]] = defaultdict(list)
    for record in records:
        by_crop[record.crop_id].append(record)

    recommendations = []
    for crop_id, lots in by_crop.items():
        total_stock = sum((to_decimal(r.available_quantity) for r in lots), ZERO_QUANTITY)
        minimum = max(
            (to_decimal(r.minimum_stock_level) for r in lots if r.minimum_stock_level is not None),
            default=ZERO_QUANTITY,
        )
        if total_stock >= minimum:
            continue
        recommendations.append(
            RestockRecommendationOut(
                crop_id=crop_id,
                current_stock=total_stock,
                minimum_stock=minimum,
                recommended_restock=minimum - total_stock,
                stock_ratio=ratio(total_stock, minimum),
                deficit_percentage=percentage(minimum - total_stock, minimum),
                priority=restock_priority(total_stock, minimum),
                urgency=restock_urgency(total_stock, minimum),
            )
        )

    recommendations.sort(
        key=lambda rec: (-PRIORITY_RANK[rec.priority], -rec.recommended_restock, rec.crop_id)
    )
    return recommendations
