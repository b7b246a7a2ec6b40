from datetime import date
from decimal import Decimal

from agristock.core.config import Settings, settings
from agristock.core.errors import InsufficientQuantity, InvalidRelease, InvalidState, ValidationFailed
from agristock.core.money import HUNDRED, ZERO_QUANTITY, percentage, to_decimal, to_money
from agristock.db.inventory_store import InventoryStore
from agristock.models.enums import FacilityType, InventoryStatus, MovementKind, PestStatus
from agristock.models.inventory import Inventory
from agristock.schemas.inventory import InventoryOut
from agristock.services.inventory_service import (
    ensure_quantities_mutable,
    refresh_derived_fields,
    run_mutation,
)
from agristock.services.movement_log import append_movement, utcnow
from agristock.services.status_machine import apply_transition, settle_status


def _positive(field: str, value: Decimal | int | float | str) -> Decimal:
    amount = to_decimal(value)
    if amount <= 0:
        raise ValidationFailed.single(field, f"{field} must be greater than 0")
    return amount


class ReservationManager:
    """
    Quantity-changing operations on a single lot.

    Each operation runs as one store mutation: the record is read, checked and
    rewritten under a version check, so two concurrent reservations can never
    both pass against the same available quantity.
    """

    def __init__(self, store: InventoryStore, config: Settings = settings):
        self._store = store
        self._config = config

    def reserve(self, inventory_id: str, quantity: Decimal, buyer_user_id: str) -> InventoryOut:
        amount = _positive("quantity", quantity)
        if not buyer_user_id or not buyer_user_id.strip():
            raise ValidationFailed.single("buyer_user_id", "buyer_user_id is required")

        def mutation(record: Inventory) -> None:
            if record.status != InventoryStatus.AVAILABLE:
                raise InvalidState(f"Inventory is not available for reservation: {record.status.value}")
            available = to_decimal(record.available_quantity)
            if amount > available:
                raise InsufficientQuantity(
                    f"Insufficient available quantity. Available: {available}, Requested: {amount}"
                )
            now = utcnow()
            record.reserved_quantity = to_decimal(record.reserved_quantity) + amount
            record.buyer_user_id = buyer_user_id.strip()
            refresh_derived_fields(record)
            append_movement(
                record,
                kind=MovementKind.RESERVED,
                detail=f"Reserved {amount} {record.unit} for buyer {record.buyer_user_id}",
                quantity_delta=-amount,
                at=now,
            )
            if record.reserved_quantity == record.current_quantity:
                apply_transition(record, InventoryStatus.RESERVED, reason="fully reserved", at=now)

        return run_mutation(
            self._store,
            "inventory.reserved",
            inventory_id,
            mutation,
            quantity=amount,
            buyer_user_id=buyer_user_id,
        )

    def release(self, inventory_id: str, quantity: Decimal) -> InventoryOut:
        amount = _positive("quantity", quantity)

        def mutation(record: Inventory) -> None:
            ensure_quantities_mutable(record)
            reserved = to_decimal(record.reserved_quantity)
            if amount > reserved:
                raise InvalidRelease(
                    f"Cannot release more than reserved quantity. Reserved: {reserved}, Requested: {amount}"
                )
            now = utcnow()
            record.reserved_quantity = reserved - amount
            refresh_derived_fields(record)
            append_movement(
                record,
                kind=MovementKind.RELEASED,
                detail=f"Released {amount} {record.unit} from reservation",
                quantity_delta=amount,
                at=now,
            )
            if record.reserved_quantity == 0:
                record.buyer_user_id = None
                if record.status == InventoryStatus.RESERVED:
                    apply_transition(record, InventoryStatus.AVAILABLE, reason="reservation released", at=now)

        return run_mutation(self._store, "inventory.released", inventory_id, mutation, quantity=amount)

    def mark_sold(self, inventory_id: str, quantity: Decimal, price: Decimal) -> InventoryOut:
        amount = _positive("quantity", quantity)
        unit_price = to_decimal(price)
        if unit_price < 0:
            raise ValidationFailed.single("price", "price cannot be negative")

        def mutation(record: Inventory) -> None:
            ensure_quantities_mutable(record)
            status = InventoryStatus(record.status)
            if not status.is_sellable:
                raise InvalidState(f"Inventory cannot be sold from {status.value} status")
            current = to_decimal(record.current_quantity)
            if amount > current:
                raise InsufficientQuantity(
                    f"Cannot sell more than current quantity. Current: {current}, Requested: {amount}"
                )
            now = utcnow()
            record.market_value_per_unit = unit_price
            if amount == current:
                record.current_quantity = ZERO_QUANTITY
                record.reserved_quantity = ZERO_QUANTITY
                refresh_derived_fields(record)
                # A full sale closes the lot from either sellable state.
                record.status = InventoryStatus.SOLD
            else:
                remaining = current - amount
                record.current_quantity = remaining
                record.reserved_quantity = min(to_decimal(record.reserved_quantity), remaining)
                refresh_derived_fields(record)
            if record.reserved_quantity == 0:
                record.buyer_user_id = None
            record.last_movement_date = now
            append_movement(
                record,
                kind=MovementKind.SOLD,
                detail=f"Sold {amount} {record.unit} at {to_money(unit_price)} per unit",
                quantity_delta=-amount,
                at=now,
            )

        return run_mutation(
            self._store,
            "inventory.sold",
            inventory_id,
            mutation,
            quantity=amount,
            price=unit_price,
        )

    def record_loss(self, inventory_id: str, loss_quantity: Decimal, reason: str) -> InventoryOut:
        amount = _positive("loss_quantity", loss_quantity)
        reason = (reason or "").strip()
        if not reason:
            raise ValidationFailed.single("reason", "reason is required")

        def mutation(record: Inventory) -> None:
            ensure_quantities_mutable(record)
            before = to_decimal(record.current_quantity)
            if amount > before:
                raise InsufficientQuantity(
                    f"Loss cannot exceed current quantity. Current: {before}, Loss: {amount}"
                )
            now = utcnow()
            value_before = to_decimal(record.total_market_value)
            loss_pct = percentage(amount, before)

            record.current_quantity = before - amount
            record.reserved_quantity = min(to_decimal(record.reserved_quantity), record.current_quantity)
            record.loss_percentage = loss_pct
            record.loss_value = to_money(value_before * loss_pct / HUNDRED)
            record.loss_reasons = reason[:255]
            refresh_derived_fields(record)
            if record.reserved_quantity == 0:
                record.buyer_user_id = None
            record.last_movement_date = now
            append_movement(
                record,
                kind=MovementKind.LOSS_RECORDED,
                detail=f"Loss of {amount} {record.unit} ({loss_pct}%): {reason}",
                quantity_delta=-amount,
                at=now,
            )

        return run_mutation(self._store, "inventory.loss_recorded", inventory_id, mutation, quantity=amount)

    def update_pest_inspection(
        self,
        inventory_id: str,
        pest_status: PestStatus,
        treatment: str | None = None,
        *,
        today: date | None = None,
    ) -> InventoryOut:
        pest_status = PestStatus(pest_status)
        today = today or date.today()

        def mutation(record: Inventory) -> None:
            now = utcnow()
            record.pest_status = pest_status
            record.pest_inspection_date = today
            if treatment:
                record.treatment_applied = treatment[:255]
            detail = f"Pest inspection: {pest_status.display_name}"
            if treatment:
                detail = f"{detail}; treatment: {treatment}"
            append_movement(record, kind=MovementKind.PEST_INSPECTION, detail=detail, at=now)
            if pest_status == PestStatus.MAJOR_INFESTATION and record.status == InventoryStatus.AVAILABLE:
                apply_transition(record, InventoryStatus.DAMAGED, reason="major pest infestation", at=now)

        return run_mutation(
            self._store,
            "inventory.pest_inspected",
            inventory_id,
            mutation,
            pest_status=pest_status.value,
        )

    def transfer(
        self,
        inventory_id: str,
        new_location: str,
        new_facility_type: FacilityType,
        reason: str | None = None,
    ) -> InventoryOut:
        location = (new_location or "").strip()
        if not location:
            raise ValidationFailed.single("new_location", "new_location is required")
        facility = FacilityType(new_facility_type)

        def mutation(record: Inventory) -> None:
            now = utcnow()
            old_location = record.storage_location
            old_facility = FacilityType(record.facility_type)
            apply_transition(record, InventoryStatus.IN_TRANSIT, reason="transfer started", at=now)
            record.storage_location = location
            record.facility_type = facility
            record.last_movement_date = now
            detail = (
                f"Transfer from {old_location} ({old_facility.value}) "
                f"to {location} ({facility.value})"
            )
            if reason:
                detail = f"{detail}: {reason}"
            append_movement(record, kind=MovementKind.TRANSFER_STARTED, detail=detail, at=now)

        return run_mutation(
            self._store,
            "inventory.transfer_started",
            inventory_id,
            mutation,
            new_location=location,
            new_facility_type=facility.value,
        )

    def complete_transfer(self, inventory_id: str) -> InventoryOut:
        def mutation(record: Inventory) -> None:
            if record.status != InventoryStatus.IN_TRANSIT:
                raise InvalidState(f"Inventory is not in transit: {record.status.value}")
            now = utcnow()
            settle_status(record, InventoryStatus.AVAILABLE, reason="transfer completed", at=now)
            record.last_movement_date = now
            append_movement(
                record,
                kind=MovementKind.TRANSFER_COMPLETED,
                detail=f"Transfer completed at {record.storage_location}",
                at=now,
            )

        return run_mutation(self._store, "inventory.transfer_completed", inventory_id, mutation)
