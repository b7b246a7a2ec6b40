from decimal import Decimal

import pytest

from agristock.core.errors import InsufficientQuantity, InvalidRelease, InvalidState, ValidationFailed
from agristock.models.enums import FacilityType, InventoryStatus, MovementKind, PestStatus

from conftest import TODAY


def _assert_quantities_consistent(lot):
    assert lot.available_quantity == lot.current_quantity - lot.reserved_quantity
    assert lot.reserved_quantity >= 0
    assert lot.reserved_quantity <= lot.current_quantity


def test_full_reservation_moves_lot_to_reserved(services, make_lot):
    lot = make_lot(current_quantity="50")

    reserved = services.reservations.reserve(lot.id, Decimal("50"), "buyerX")

    assert reserved.available_quantity == 0
    assert reserved.reserved_quantity == Decimal("50")
    assert reserved.status == InventoryStatus.RESERVED
    assert reserved.buyer_user_id == "buyerX"
    _assert_quantities_consistent(reserved)


def test_release_of_full_reservation_restores_lot(services, make_lot):
    lot = make_lot(current_quantity="50")
    services.reservations.reserve(lot.id, Decimal("50"), "buyerX")

    released = services.reservations.release(lot.id, Decimal("50"))

    assert released.reserved_quantity == 0
    assert released.status == InventoryStatus.AVAILABLE
    assert released.buyer_user_id is None
    assert released.current_quantity == lot.current_quantity
    assert released.available_quantity == lot.available_quantity
    kinds = [entry.event_kind for entry in released.movement_history]
    assert kinds[-2:] == [MovementKind.RELEASED, MovementKind.STATUS_CHANGED]


def test_partial_reservation_keeps_lot_available(services, make_lot):
    lot = make_lot(current_quantity="50")

    reserved = services.reservations.reserve(lot.id, Decimal("20"), "buyer-1")

    assert reserved.status == InventoryStatus.AVAILABLE
    assert reserved.available_quantity == Decimal("30")
    _assert_quantities_consistent(reserved)

    restored = services.reservations.release(lot.id, Decimal("20"))
    assert restored.status == InventoryStatus.AVAILABLE
    assert restored.reserved_quantity == 0
    assert restored.buyer_user_id is None


def test_oversell_is_rejected_and_leaves_quantities(services, make_lot):
    lot = make_lot(current_quantity="50")
    services.reservations.reserve(lot.id, Decimal("30"), "buyer-1")

    with pytest.raises(InsufficientQuantity):
        services.reservations.reserve(lot.id, Decimal("21"), "buyer-2")

    after = services.inventory.get(lot.id)
    assert after.reserved_quantity == Decimal("30")
    assert after.available_quantity == Decimal("20")
    assert after.buyer_user_id == "buyer-1"


def test_reserve_requires_available_status(services, make_lot):
    lot = make_lot()
    services.inventory.change_status(lot.id, InventoryStatus.DAMAGED)

    with pytest.raises(InvalidState):
        services.reservations.reserve(lot.id, Decimal("1"), "buyer-1")


def test_reserve_validates_arguments(services, make_lot):
    lot = make_lot()

    with pytest.raises(ValidationFailed):
        services.reservations.reserve(lot.id, Decimal("0"), "buyer-1")
    with pytest.raises(ValidationFailed):
        services.reservations.reserve(lot.id, Decimal("5"), "  ")


def test_release_more_than_reserved_fails(services, make_lot):
    lot = make_lot()
    services.reservations.reserve(lot.id, Decimal("10"), "buyer-1")

    with pytest.raises(InvalidRelease):
        services.reservations.release(lot.id, Decimal("11"))

    assert services.inventory.get(lot.id).reserved_quantity == Decimal("10")


def test_full_sale_zeroes_quantities(services, make_lot):
    lot = make_lot(current_quantity="50")
    services.reservations.reserve(lot.id, Decimal("50"), "buyer-1")

    sold = services.reservations.mark_sold(lot.id, Decimal("50"), Decimal("450"))

    assert sold.status == InventoryStatus.SOLD
    assert sold.current_quantity == 0
    assert sold.reserved_quantity == 0
    assert sold.available_quantity == 0
    assert sold.market_value_per_unit == Decimal("450")
    assert sold.movement_history[-1].event_kind == MovementKind.SOLD
    assert sold.last_movement_date is not None


def test_partial_sale_only_decrements_current(services, make_lot):
    lot = make_lot(current_quantity="50")
    services.reservations.reserve(lot.id, Decimal("10"), "buyer-1")

    sold = services.reservations.mark_sold(lot.id, Decimal("15"), Decimal("420"))

    assert sold.status == InventoryStatus.AVAILABLE
    assert sold.current_quantity == Decimal("35")
    assert sold.reserved_quantity == Decimal("10")
    assert sold.total_market_value == Decimal("14700.00")
    _assert_quantities_consistent(sold)


def test_sale_beyond_current_fails(services, make_lot):
    lot = make_lot(current_quantity="50")

    with pytest.raises(InsufficientQuantity):
        services.reservations.mark_sold(lot.id, Decimal("51"), Decimal("400"))


def test_sold_lot_rejects_every_quantity_operation(services, make_lot):
    lot = make_lot(current_quantity="50")
    services.reservations.mark_sold(lot.id, Decimal("50"), Decimal("400"))

    with pytest.raises(InvalidState):
        services.reservations.mark_sold(lot.id, Decimal("1"), Decimal("400"))
    with pytest.raises(InvalidState):
        services.reservations.record_loss(lot.id, Decimal("1"), "rodents")
    with pytest.raises(InvalidState):
        services.inventory.adjust_quantity(lot.id, Decimal("5"), "recount")


def test_release_rejected_once_reserved_lot_is_sold(services, make_lot):
    lot = make_lot(current_quantity="50")
    services.reservations.reserve(lot.id, Decimal("50"), "buyerX")
    sold = services.inventory.change_status(lot.id, InventoryStatus.SOLD)

    with pytest.raises(InvalidState):
        services.reservations.release(lot.id, Decimal("50"))

    after = services.inventory.get(lot.id)
    assert after.status == InventoryStatus.SOLD
    assert after.reserved_quantity == Decimal("50")
    assert after.available_quantity == Decimal("0")
    assert after.version_id == sold.version_id


def test_record_loss_updates_percentage_and_value(services, make_lot):
    lot = make_lot(current_quantity="50", market_value_per_unit="400")

    damaged = services.reservations.record_loss(lot.id, Decimal("10"), "moisture damage")

    assert damaged.current_quantity == Decimal("40")
    assert damaged.loss_percentage == Decimal("20")
    assert damaged.loss_value == Decimal("4000.00")
    assert damaged.loss_reasons == "moisture damage"
    assert damaged.status == InventoryStatus.AVAILABLE
    assert damaged.total_market_value == Decimal("16000.00")
    _assert_quantities_consistent(damaged)


def test_record_loss_trims_reservation(services, make_lot):
    lot = make_lot(current_quantity="50")
    services.reservations.reserve(lot.id, Decimal("45"), "buyer-1")

    after = services.reservations.record_loss(lot.id, Decimal("10"), "spillage")

    assert after.current_quantity == Decimal("40")
    assert after.reserved_quantity == Decimal("40")
    _assert_quantities_consistent(after)


def test_loss_beyond_current_fails(services, make_lot):
    lot = make_lot(current_quantity="50")

    with pytest.raises(InsufficientQuantity):
        services.reservations.record_loss(lot.id, Decimal("60"), "fire")


def test_major_infestation_damages_available_lot(services, make_lot):
    lot = make_lot()

    inspected = services.reservations.update_pest_inspection(
        lot.id, PestStatus.MAJOR_INFESTATION, "fumigation", today=TODAY
    )

    assert inspected.status == InventoryStatus.DAMAGED
    assert inspected.pest_status == PestStatus.MAJOR_INFESTATION
    assert inspected.pest_inspection_date == TODAY
    assert inspected.treatment_applied == "fumigation"


def test_minor_infestation_keeps_status(services, make_lot):
    lot = make_lot()

    inspected = services.reservations.update_pest_inspection(lot.id, PestStatus.MINOR_INFESTATION, None)

    assert inspected.status == InventoryStatus.AVAILABLE
    assert inspected.movement_history[-1].event_kind == MovementKind.PEST_INSPECTION


def test_major_infestation_on_reserved_lot_does_not_force_transition(services, make_lot):
    lot = make_lot(current_quantity="50")
    services.reservations.reserve(lot.id, Decimal("50"), "buyer-1")

    inspected = services.reservations.update_pest_inspection(lot.id, PestStatus.MAJOR_INFESTATION)

    assert inspected.status == InventoryStatus.RESERVED


def test_transfer_and_complete(services, make_lot):
    lot = make_lot(storage_location="Farm store", facility_type="FARM_STORAGE")

    moving = services.reservations.transfer(lot.id, "Kigali Cold Hub", FacilityType.COLD_STORAGE, "buyer pickup")

    assert moving.status == InventoryStatus.IN_TRANSIT
    assert moving.storage_location == "Kigali Cold Hub"
    assert moving.facility_type == FacilityType.COLD_STORAGE
    assert moving.last_movement_date is not None
    detail = moving.movement_history[-1].detail
    assert "Farm store (FARM_STORAGE)" in detail
    assert "Kigali Cold Hub (COLD_STORAGE)" in detail
    assert "buyer pickup" in detail

    arrived = services.reservations.complete_transfer(lot.id)
    assert arrived.status == InventoryStatus.AVAILABLE
    assert arrived.movement_history[-1].event_kind == MovementKind.TRANSFER_COMPLETED


def test_complete_transfer_requires_in_transit(services, make_lot):
    lot = make_lot()

    with pytest.raises(InvalidState):
        services.reservations.complete_transfer(lot.id)


def test_movement_history_is_append_only(services, make_lot):
    lot = make_lot(current_quantity="50")
    services.reservations.reserve(lot.id, Decimal("20"), "buyer-1")
    services.reservations.release(lot.id, Decimal("20"))
    final = services.reservations.record_loss(lot.id, Decimal("5"), "pests")

    sequences = [entry.sequence for entry in final.movement_history]
    assert sequences == list(range(1, len(sequences) + 1))
    assert [entry.event_kind for entry in final.movement_history] == [
        MovementKind.CREATED,
        MovementKind.RESERVED,
        MovementKind.RELEASED,
        MovementKind.LOSS_RECORDED,
    ]
    assert final.movement_history[0].detail == lot.movement_history[0].detail
