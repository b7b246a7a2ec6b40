from collections import Counter
from collections.abc import Sequence
from datetime import date, datetime, timedelta
from decimal import Decimal

from agristock.core.config import Settings, settings
from agristock.core.id_utils import generate_alert_id
from agristock.core.money import ZERO_MONEY, ZERO_QUANTITY, percentage, to_decimal, to_money
from agristock.models.enums import InventoryStatus, PestStatus
from agristock.schemas.inventory import InventoryAlertOut, InventoryOut, InventoryStatisticsOut
from agristock.services.movement_log import utcnow


def _alert(
    record: InventoryOut,
    *,
    alert_type: str,
    severity: str,
    category: str,
    message: str,
    action: str,
    details: dict,
    now: datetime,
) -> InventoryAlertOut:
    return InventoryAlertOut(
        alert_id=generate_alert_id(alert_type, record.id),
        inventory_id=record.id,
        inventory_code=record.inventory_code,
        crop_id=record.crop_id,
        alert_type=alert_type,
        severity=severity,
        category=category,
        message=message,
        recommended_action=action,
        details=details,
        created_at=now,
    )


def is_expiring_soon(record: InventoryOut, today: date, config: Settings = settings) -> bool:
    return (
        record.status == InventoryStatus.AVAILABLE
        and record.expiry_date is not None
        and record.expiry_date <= today + timedelta(days=config.expiry_alert_days)
    )


def is_low_stock(record: InventoryOut) -> bool:
    return (
        record.minimum_stock_level is not None
        and to_decimal(record.available_quantity) <= to_decimal(record.minimum_stock_level)
    )


def has_high_loss(record: InventoryOut, config: Settings = settings) -> bool:
    threshold = Decimal(str(config.high_loss_threshold_percentage))
    return to_decimal(record.loss_percentage) > threshold


def needs_inspection(record: InventoryOut, today: date) -> bool:
    return record.next_inspection_date is not None and record.next_inspection_date <= today


def generate_alerts(
    records: Sequence[InventoryOut],
    *,
    today: date,
    config: Settings = settings,
    now: datetime | None = None,
) -> list[InventoryAlertOut]:
    """
    Grouped by category in a fixed order: expiry, low stock, loss, pests,
    inspection. A record matching several categories gets one alert in each.
    """
    now = now or utcnow()
    alerts: list[InventoryAlertOut] = []

    for record in records:
        if is_expiring_soon(record, today, config):
            alerts.append(
                _alert(
                    record,
                    alert_type="EXPIRING_SOON",
                    severity="HIGH",
                    category="EXPIRY",
                    message=f"Expires on {record.expiry_date.isoformat()}",
                    action="Consider immediate sale or processing",
                    details={"days_until_expiry": (record.expiry_date - today).days},
                    now=now,
                )
            )

    for record in records:
        if is_low_stock(record):
            alerts.append(
                _alert(
                    record,
                    alert_type="LOW_STOCK",
                    severity="MEDIUM",
                    category="QUANTITY",
                    message=f"Current: {record.available_quantity}, Min: {record.minimum_stock_level}",
                    action="Reorder stock or adjust minimum levels",
                    details={
                        "available_quantity": float(record.available_quantity),
                        "minimum_stock_level": float(record.minimum_stock_level),
                    },
                    now=now,
                )
            )

    for record in records:
        if has_high_loss(record, config):
            alerts.append(
                _alert(
                    record,
                    alert_type="HIGH_LOSS",
                    severity="HIGH",
                    category="VALUE",
                    message=f"Loss: {record.loss_percentage}%",
                    action="Investigate loss causes and implement preventive measures",
                    details={"loss_value": float(to_money(record.loss_value))},
                    now=now,
                )
            )

    for record in records:
        if record.pest_status.requires_treatment:
            alerts.append(
                _alert(
                    record,
                    alert_type="PEST_DETECTED",
                    severity="CRITICAL" if record.pest_status == PestStatus.MAJOR_INFESTATION else "HIGH",
                    category="PEST",
                    message=f"Pest status: {record.pest_status.display_name}",
                    action="Apply appropriate pest treatment immediately",
                    details={
                        "last_inspection": (
                            record.pest_inspection_date.isoformat() if record.pest_inspection_date else None
                        )
                    },
                    now=now,
                )
            )

    for record in records:
        if needs_inspection(record, today):
            alerts.append(
                _alert(
                    record,
                    alert_type="QUALITY_DEGRADING",
                    severity="MEDIUM",
                    category="QUALITY",
                    message=f"Inspection due: {record.next_inspection_date.isoformat()}",
                    action="Schedule quality inspection",
                    details={"days_overdue": (today - record.next_inspection_date).days},
                    now=now,
                )
            )

    return alerts


def inventory_statistics(
    records: Sequence[InventoryOut],
    *,
    today: date,
    config: Settings = settings,
    now: datetime | None = None,
) -> InventoryStatisticsOut:
    statuses = Counter(r.status for r in records)
    available = [r for r in records if r.status == InventoryStatus.AVAILABLE]
    high_value_threshold = Decimal(str(config.high_value_threshold))

    total_value = sum((to_decimal(r.total_market_value) for r in available), ZERO_MONEY)
    total_quantity = sum((to_decimal(r.current_quantity) for r in available), ZERO_QUANTITY)
    total_loss = sum((to_decimal(r.loss_value) for r in records), ZERO_MONEY)
    storage_days = [r.days_in_storage(today) for r in records]
    average_days = round(sum(storage_days) / len(storage_days), 2) if storage_days else 0.0

    capacity = sum(
        (to_decimal(r.storage_capacity) for r in records if r.storage_capacity is not None),
        ZERO_QUANTITY,
    )
    used = sum((to_decimal(r.current_quantity) for r in records), ZERO_QUANTITY)

    return InventoryStatisticsOut(
        total_items=len(records),
        available_items=statuses[InventoryStatus.AVAILABLE],
        reserved_items=statuses[InventoryStatus.RESERVED],
        sold_items=statuses[InventoryStatus.SOLD],
        expired_items=statuses[InventoryStatus.EXPIRED],
        damaged_items=statuses[InventoryStatus.DAMAGED],
        high_value_items=sum(
            1
            for r in records
            if r.total_market_value is not None and to_decimal(r.total_market_value) >= high_value_threshold
        ),
        sustainable_items=sum(1 for r in records if r.is_sustainable),
        low_stock_items=sum(1 for r in records if is_low_stock(r)),
        items_expiring_soon=sum(1 for r in records if is_expiring_soon(r, today, config)),
        items_with_pest_issues=sum(1 for r in records if r.pest_status.requires_treatment),
        total_value=to_money(total_value),
        total_quantity=total_quantity,
        total_loss_value=to_money(total_loss),
        average_storage_days=average_days,
        storage_utilization=percentage(used, capacity),
        count_by_facility_type=dict(sorted(Counter(r.facility_type.value for r in records).items())),
        count_by_quality_grade=dict(sorted(Counter(r.quality_grade for r in records).items())),
        generated_at=now or utcnow(),
    )
