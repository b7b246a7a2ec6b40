import logging
import uuid
from collections.abc import Callable, Iterable
from datetime import date, timedelta
from decimal import Decimal
from typing import Any

from pydantic import ValidationError

from agristock.core.config import Settings, settings
from agristock.core.errors import InvalidState, InventoryError, ValidationFailed
from agristock.core.id_utils import generate_inventory_code
from agristock.core.money import HUNDRED, to_decimal, to_money
from agristock.core.observability import log_event, operation_scope
from agristock.db.inventory_store import InventoryStore
from agristock.models.enums import InventoryStatus, MovementKind, PestStatus
from agristock.models.inventory import Inventory
from agristock.schemas.common import BulkFailureOut, BulkOperationOut, ValidationIssueOut
from agristock.schemas.inventory import (
    InventoryCreate,
    InventoryFilter,
    InventoryListOut,
    InventoryOut,
    InventoryUpdate,
)
from agristock.services.movement_log import append_movement, utcnow
from agristock.services.status_machine import apply_transition, settle_status

QUANTITY_FIELDS = {"current_quantity", "reserved_quantity"}
# A patch may not null these out.
REQUIRED_FIELDS = {
    "current_quantity",
    "reserved_quantity",
    "status",
    "quality_grade",
    "pest_status",
    "loss_percentage",
    "storage_location",
    "facility_type",
    "unit",
}


def refresh_derived_fields(record: Inventory) -> None:
    current = to_decimal(record.current_quantity)
    reserved = to_decimal(record.reserved_quantity)
    record.current_quantity = current
    record.reserved_quantity = reserved
    record.available_quantity = current - reserved

    market_value = record.market_value_per_unit
    if market_value is None:
        record.total_market_value = None
    else:
        record.total_market_value = to_money(to_decimal(market_value) * current)

    purchase_price = record.purchase_price_per_unit
    if market_value is not None and purchase_price is not None and purchase_price > 0:
        record.profit_margin = to_money(
            (to_decimal(market_value) - to_decimal(purchase_price)) / to_decimal(purchase_price) * HUNDRED
        )
    else:
        record.profit_margin = None


def ensure_quantities_mutable(record: Inventory) -> None:
    status = InventoryStatus(record.status)
    if status.is_terminal:
        raise InvalidState(f"Cannot change quantities of inventory in {status.value} status")


def ensure_deletable(record: Inventory) -> None:
    status = InventoryStatus(record.status)
    if status.is_locked:
        raise InvalidState(f"Cannot delete inventory in {status.value} status")


def run_mutation(
    store: InventoryStore,
    event: str,
    inventory_id: str,
    fn: Callable[[Inventory], None],
    **fields: Any,
) -> InventoryOut:
    with operation_scope():
        try:
            out = store.mutate(inventory_id, fn)
        except InventoryError as exc:
            log_event(
                f"{event}.rejected",
                level=logging.WARNING,
                inventory_id=inventory_id,
                error_kind=exc.kind.value,
                error=exc.message,
                **fields,
            )
            raise
        log_event(
            event,
            inventory_id=inventory_id,
            status=out.status.value,
            version_id=out.version_id,
            **fields,
        )
        return out


def _validated(model_cls, payload):
    if isinstance(payload, model_cls):
        return payload
    try:
        return model_cls.model_validate(payload)
    except ValidationError as exc:
        raise ValidationFailed.from_pydantic(exc) from exc


class InventoryService:
    def __init__(self, store: InventoryStore, config: Settings = settings):
        self._store = store
        self._config = config

    # Reads

    def get(self, inventory_id: str) -> InventoryOut:
        return self._store.get(inventory_id)

    def get_by_code(self, inventory_code: str) -> InventoryOut:
        return self._store.get_by_code(inventory_code)

    def find_by_crop(self, crop_id: str) -> list[InventoryOut]:
        return self._store.find_by_crop(crop_id)

    def find_by_farmer(self, farmer_user_id: str) -> list[InventoryOut]:
        return self._store.find_by_farmer(farmer_user_id)

    def find_by_status(self, status: InventoryStatus) -> list[InventoryOut]:
        return self._store.find_by_status(status)

    def search(
        self,
        filters: InventoryFilter | dict | None = None,
        *,
        limit: int = 50,
        offset: int = 0,
    ) -> InventoryListOut:
        parsed = _validated(InventoryFilter, filters or {})
        issues: list[ValidationIssueOut] = []
        if limit < 1 or limit > 200:
            issues.append(ValidationIssueOut(field="limit", message="limit must be between 1 and 200"))
        if offset < 0:
            issues.append(ValidationIssueOut(field="offset", message="offset cannot be negative"))
        if issues:
            raise ValidationFailed(issues)
        return self._store.find(parsed, limit=limit, offset=offset)

    def search_by_keyword(self, keyword: str, *, limit: int = 50, offset: int = 0) -> InventoryListOut:
        return self.search({"keyword": keyword}, limit=limit, offset=offset)

    # Writes

    def create(self, payload: InventoryCreate | dict, *, today: date | None = None) -> InventoryOut:
        data = _validated(InventoryCreate, payload)
        today = today or date.today()

        storage_date = data.storage_date or today
        expiry_date = data.expiry_date
        if expiry_date is None and data.expected_shelf_life_days is not None:
            expiry_date = storage_date + timedelta(days=data.expected_shelf_life_days)

        issues: list[ValidationIssueOut] = []
        if expiry_date is not None and expiry_date < storage_date:
            issues.append(
                ValidationIssueOut(field="expiry_date", message="expiry_date cannot precede storage_date")
            )
        if data.harvest_date is not None and data.harvest_date > storage_date:
            issues.append(
                ValidationIssueOut(field="harvest_date", message="harvest_date cannot follow storage_date")
            )
        if issues:
            raise ValidationFailed(issues)

        now = utcnow()
        record = Inventory(
            id=str(uuid.uuid4()),
            inventory_code=data.inventory_code or generate_inventory_code(now),
            crop_id=data.crop_id,
            farmer_user_id=data.farmer_user_id,
            facility_type=data.facility_type,
            facility_name=data.facility_name,
            storage_location=data.storage_location,
            storage_capacity=data.storage_capacity,
            current_quantity=data.current_quantity,
            reserved_quantity=Decimal("0"),
            unit=data.unit or self._config.default_unit,
            minimum_stock_level=data.minimum_stock_level,
            maximum_stock_level=data.maximum_stock_level,
            status=InventoryStatus.AVAILABLE,
            quality_grade=data.quality_grade,
            pest_status=PestStatus.PEST_FREE,
            moisture_content=data.moisture_content,
            loss_percentage=Decimal("0"),
            loss_value=Decimal("0"),
            market_value_per_unit=data.market_value_per_unit,
            purchase_price_per_unit=data.purchase_price_per_unit,
            organic_certified=data.organic_certified,
            fair_trade_certified=data.fair_trade_certified,
            local_sourcing=data.local_sourcing,
            harvest_date=data.harvest_date,
            storage_date=storage_date,
            expected_shelf_life_days=data.expected_shelf_life_days,
            expiry_date=expiry_date,
            next_inspection_date=data.next_inspection_date
            or storage_date + timedelta(days=self._config.inspection_interval_days),
            created_at=now,
            updated_at=now,
        )
        refresh_derived_fields(record)
        append_movement(
            record,
            kind=MovementKind.CREATED,
            detail=f"Created with {record.current_quantity} {record.unit} at {record.storage_location}",
            quantity_delta=record.current_quantity,
            at=now,
        )

        with operation_scope():
            try:
                out = self._store.insert(record)
            except InventoryError as exc:
                log_event(
                    "inventory.create.rejected",
                    level=logging.WARNING,
                    inventory_code=record.inventory_code,
                    error_kind=exc.kind.value,
                    error=exc.message,
                )
                raise
            log_event(
                "inventory.created",
                inventory_id=out.id,
                inventory_code=out.inventory_code,
                crop_id=out.crop_id,
                quantity=out.current_quantity,
            )
        return out

    def update(self, inventory_id: str, payload: InventoryUpdate | dict) -> InventoryOut:
        """Full update: fields left as None keep their stored value."""
        data = _validated(InventoryUpdate, payload)
        changes = data.model_dump(exclude_none=True)
        return self._apply(inventory_id, changes)

    def patch(self, inventory_id: str, fields: dict[str, Any]) -> InventoryOut:
        """
        Sparse patch. Unknown keys are ignored and every recognised key is
        validated before anything is written; all violations are reported together.
        """
        data = _validated(InventoryUpdate, fields)
        changes = data.model_dump(exclude_unset=True)
        issues = [
            ValidationIssueOut(field=key, message="Field cannot be null", type="null_not_allowed")
            for key, value in changes.items()
            if value is None and key in REQUIRED_FIELDS
        ]
        if issues:
            raise ValidationFailed(issues)
        return self._apply(inventory_id, changes)

    def _apply(self, inventory_id: str, changes: dict[str, Any]) -> InventoryOut:
        if not changes:
            return self._store.get(inventory_id)

        def mutation(record: Inventory) -> None:
            now = utcnow()
            quantity_changes = QUANTITY_FIELDS & changes.keys()
            if quantity_changes:
                ensure_quantities_mutable(record)

            current = to_decimal(changes.get("current_quantity", record.current_quantity))
            reserved = to_decimal(changes.get("reserved_quantity", record.reserved_quantity))
            minimum = changes.get("minimum_stock_level", record.minimum_stock_level)
            maximum = changes.get("maximum_stock_level", record.maximum_stock_level)
            issues: list[ValidationIssueOut] = []
            if reserved > current:
                issues.append(
                    ValidationIssueOut(
                        field="reserved_quantity",
                        message="reserved_quantity cannot exceed current_quantity",
                    )
                )
            if minimum is not None and maximum is not None and maximum < minimum:
                issues.append(
                    ValidationIssueOut(
                        field="maximum_stock_level",
                        message="maximum_stock_level cannot be below minimum_stock_level",
                    )
                )
            if issues:
                raise ValidationFailed(issues)

            target_status = changes.get("status")
            if target_status is not None:
                settle_status(record, InventoryStatus(target_status), reason="field update", at=now)

            before = to_decimal(record.current_quantity)
            for key, value in changes.items():
                if key in {"status", "loss_percentage"}:
                    continue
                setattr(record, key, value)
            refresh_derived_fields(record)

            if "loss_percentage" in changes:
                record.loss_percentage = changes["loss_percentage"]
                record.loss_value = to_money(
                    to_decimal(record.total_market_value) * to_decimal(record.loss_percentage) / HUNDRED
                )

            if record.pest_status == PestStatus.MAJOR_INFESTATION and record.status == InventoryStatus.AVAILABLE:
                apply_transition(record, InventoryStatus.DAMAGED, reason="major pest infestation", at=now)

            delta = record.current_quantity - before
            append_movement(
                record,
                kind=MovementKind.UPDATED,
                detail="Updated fields: " + ", ".join(sorted(changes)),
                quantity_delta=delta if delta else None,
                at=now,
            )
            if delta:
                record.last_movement_date = now

        return run_mutation(self._store, "inventory.updated", inventory_id, mutation, fields=sorted(changes))

    def change_status(
        self,
        inventory_id: str,
        status: InventoryStatus,
        reason: str | None = None,
    ) -> InventoryOut:
        target = InventoryStatus(status)

        def mutation(record: Inventory) -> None:
            apply_transition(record, target, reason=reason, at=utcnow())

        return run_mutation(
            self._store,
            "inventory.status_changed",
            inventory_id,
            mutation,
            target_status=target.value,
        )

    def bulk_update_status(self, inventory_ids: Iterable[str], status: InventoryStatus) -> BulkOperationOut:
        succeeded: list[str] = []
        failed: list[BulkFailureOut] = []
        for inventory_id in inventory_ids:
            try:
                self.change_status(inventory_id, status, reason="bulk update")
            except InventoryError as exc:
                failed.append(BulkFailureOut(id=inventory_id, error=exc.to_error_out()))
            else:
                succeeded.append(inventory_id)
        log_event(
            "inventory.bulk_status_update",
            target_status=InventoryStatus(status).value,
            succeeded=len(succeeded),
            failed=len(failed),
        )
        return BulkOperationOut(succeeded=succeeded, failed=failed)

    def delete(self, inventory_id: str) -> None:
        with operation_scope():
            try:
                self._store.delete(inventory_id, ensure_deletable)
            except InventoryError as exc:
                log_event(
                    "inventory.delete.rejected",
                    level=logging.WARNING,
                    inventory_id=inventory_id,
                    error_kind=exc.kind.value,
                    error=exc.message,
                )
                raise
            log_event("inventory.deleted", inventory_id=inventory_id)

    def bulk_delete(self, inventory_ids: Iterable[str]) -> BulkOperationOut:
        with operation_scope():
            result = self._store.delete_many(list(inventory_ids), ensure_deletable)
            log_event(
                "inventory.bulk_deleted",
                succeeded=len(result.succeeded),
                failed=len(result.failed),
            )
        return result

    def adjust_quantity(self, inventory_id: str, delta: Decimal, reason: str) -> InventoryOut:
        delta = to_decimal(delta)
        if delta == 0:
            raise ValidationFailed.single("delta", "Adjustment must be non-zero")

        def mutation(record: Inventory) -> None:
            ensure_quantities_mutable(record)
            new_current = to_decimal(record.current_quantity) + delta
            if new_current < 0:
                raise ValidationFailed.single("delta", "Adjustment would make current_quantity negative")
            if new_current < to_decimal(record.reserved_quantity):
                raise ValidationFailed.single(
                    "delta", "Adjustment would leave current_quantity below reserved_quantity"
                )
            now = utcnow()
            record.current_quantity = new_current
            refresh_derived_fields(record)
            record.last_movement_date = now
            append_movement(
                record,
                kind=MovementKind.QUANTITY_ADJUSTED,
                detail=f"Adjusted by {delta}: {reason}",
                quantity_delta=delta,
                at=now,
            )

        return run_mutation(self._store, "inventory.quantity_adjusted", inventory_id, mutation, delta=delta)

    def update_quality_assessment(
        self,
        inventory_id: str,
        quality_grade: str,
        moisture_content: Decimal | None = None,
        quality_tests: str | None = None,
        *,
        today: date | None = None,
    ) -> InventoryOut:
        grade = (quality_grade or "").strip()
        issues: list[ValidationIssueOut] = []
        if not grade:
            issues.append(ValidationIssueOut(field="quality_grade", message="quality_grade is required"))
        if moisture_content is not None and not (0 <= to_decimal(moisture_content) <= 100):
            issues.append(
                ValidationIssueOut(field="moisture_content", message="moisture_content must be between 0 and 100")
            )
        if issues:
            raise ValidationFailed(issues)
        today = today or date.today()

        def mutation(record: Inventory) -> None:
            record.quality_grade = grade
            if moisture_content is not None:
                record.moisture_content = to_decimal(moisture_content)
            if quality_tests is not None:
                record.quality_tests = quality_tests
            record.condition_assessment = today
            record.next_inspection_date = today + timedelta(days=self._config.inspection_interval_days)
            append_movement(
                record,
                kind=MovementKind.QUALITY_ASSESSMENT,
                detail=f"Quality assessed as {grade}",
            )

        return run_mutation(
            self._store,
            "inventory.quality_assessed",
            inventory_id,
            mutation,
            quality_grade=grade,
        )

    def process_expired_inventory(self, *, today: date | None = None) -> BulkOperationOut:
        today = today or date.today()
        expired_ids = [
            item.id
            for item in self._store.find_by_status(InventoryStatus.AVAILABLE)
            if item.expiry_date is not None and item.expiry_date < today
        ]
        succeeded: list[str] = []
        failed: list[BulkFailureOut] = []
        for inventory_id in expired_ids:
            try:
                self.change_status(inventory_id, InventoryStatus.EXPIRED, reason="expiry date passed")
            except InventoryError as exc:
                failed.append(BulkFailureOut(id=inventory_id, error=exc.to_error_out()))
            else:
                succeeded.append(inventory_id)
        log_event(
            "inventory.expired_processed",
            as_of=today,
            succeeded=len(succeeded),
            failed=len(failed),
        )
        return BulkOperationOut(succeeded=succeeded, failed=failed)
