from datetime import timedelta
from decimal import Decimal

import pytest

from agristock.core.errors import DuplicateCode, InvalidState, NotFound, ValidationFailed
from agristock.models.enums import FacilityType, InventoryStatus, MovementKind, PestStatus
from agristock.schemas.inventory import InventoryFilter

from conftest import TODAY, lot_payload


def test_create_fills_defaults_and_derived_fields(make_lot):
    lot = make_lot(inventory_code="MAIZE-001", expected_shelf_life_days=90)

    assert lot.inventory_code == "MAIZE-001"
    assert lot.status == InventoryStatus.AVAILABLE
    assert lot.pest_status == PestStatus.PEST_FREE
    assert lot.reserved_quantity == 0
    assert lot.available_quantity == Decimal("50")
    assert lot.loss_percentage == 0
    assert lot.loss_value == 0
    assert lot.unit == "KG"
    assert lot.storage_date == TODAY
    assert lot.expiry_date == TODAY + timedelta(days=90)
    assert lot.next_inspection_date == TODAY + timedelta(days=30)
    assert lot.total_market_value == Decimal("20000.00")
    assert lot.profit_margin == Decimal("25.00")
    assert lot.version_id == 1
    assert [entry.event_kind for entry in lot.movement_history] == [MovementKind.CREATED]


def test_create_generates_inventory_code_when_missing(services):
    lot = services.inventory.create(lot_payload(), today=TODAY)

    assert lot.inventory_code.startswith("STOCK")
    assert services.inventory.get_by_code(lot.inventory_code).id == lot.id


def test_create_rejects_duplicate_code(make_lot):
    make_lot(inventory_code="MAIZE-001")

    with pytest.raises(DuplicateCode) as exc_info:
        make_lot(inventory_code="MAIZE-001")

    assert exc_info.value.to_error_out().code == "duplicate_code"


def test_create_aggregates_every_validation_issue(services):
    payload = lot_payload(current_quantity="0", quality_grade="")
    payload.pop("crop_id")
    payload.pop("storage_location")

    with pytest.raises(ValidationFailed) as exc_info:
        services.inventory.create(payload, today=TODAY)

    fields = {issue.field for issue in exc_info.value.issues}
    assert {"crop_id", "storage_location", "current_quantity", "quality_grade"} <= fields
    assert services.inventory.search().pagination.total == 0


def test_create_rejects_expiry_before_storage(services):
    payload = lot_payload(expiry_date=(TODAY - timedelta(days=1)).isoformat())

    with pytest.raises(ValidationFailed) as exc_info:
        services.inventory.create(payload, today=TODAY)

    assert [issue.field for issue in exc_info.value.issues] == ["expiry_date"]


def test_get_unknown_id_raises_not_found(services):
    with pytest.raises(NotFound):
        services.inventory.get("does-not-exist")
    with pytest.raises(NotFound):
        services.inventory.get_by_code("NOPE")


def test_lookups_by_crop_farmer_and_status(services, make_lot):
    maize = make_lot(crop_id="crop-maize", farmer_user_id="farmer-1")
    beans = make_lot(crop_id="crop-beans", farmer_user_id="farmer-2")
    services.inventory.change_status(beans.id, InventoryStatus.DAMAGED)

    assert [r.id for r in services.inventory.find_by_crop("crop-maize")] == [maize.id]
    assert [r.id for r in services.inventory.find_by_farmer("farmer-2")] == [beans.id]
    assert [r.id for r in services.inventory.find_by_status(InventoryStatus.DAMAGED)] == [beans.id]


def test_search_filters_and_paginates(services, make_lot):
    make_lot(crop_id="crop-maize", storage_location="Huye Silo 2", facility_type="SILO")
    make_lot(crop_id="crop-maize", current_quantity="500")
    make_lot(crop_id="crop-beans", quality_grade="C")

    silo = services.inventory.search({"facility_type": "SILO"})
    assert silo.pagination.total == 1
    assert silo.items[0].facility_type == FacilityType.SILO

    large = services.inventory.search(InventoryFilter(min_quantity=Decimal("100")))
    assert [item.current_quantity for item in large.items] == [Decimal("500")]

    page = services.inventory.search({"crop_id": "crop-maize"}, limit=1, offset=0)
    assert page.pagination.total == 2
    assert page.pagination.count == 1
    assert page.pagination.has_next is True

    by_keyword = services.inventory.search_by_keyword("huye")
    assert by_keyword.pagination.total == 1


def test_search_rejects_inverted_quantity_range(services):
    with pytest.raises(ValidationFailed):
        services.inventory.search({"min_quantity": "10", "max_quantity": "5"})


def test_patch_ignores_unknown_fields_and_recomputes_derived(services, make_lot):
    lot = make_lot()

    patched = services.inventory.patch(
        lot.id,
        {"current_quantity": "80", "market_value_per_unit": "500", "colour": "yellow"},
    )

    assert patched.current_quantity == Decimal("80")
    assert patched.available_quantity == Decimal("80")
    assert patched.total_market_value == Decimal("40000.00")
    assert patched.version_id == lot.version_id + 1
    assert patched.movement_history[-1].event_kind == MovementKind.UPDATED
    assert patched.movement_history[-1].quantity_delta == Decimal("30")


def test_patch_reports_all_invalid_fields_and_writes_nothing(services, make_lot):
    lot = make_lot()

    with pytest.raises(ValidationFailed) as exc_info:
        services.inventory.patch(
            lot.id,
            {"current_quantity": "-1", "moisture_content": "140", "quality_grade": None},
        )

    fields = {issue.field for issue in exc_info.value.issues}
    assert {"current_quantity", "moisture_content"} <= fields
    assert services.inventory.get(lot.id).version_id == lot.version_id


def test_patch_rejects_null_for_required_field(services, make_lot):
    lot = make_lot()

    with pytest.raises(ValidationFailed) as exc_info:
        services.inventory.patch(lot.id, {"storage_location": None})

    assert exc_info.value.issues[0].type == "null_not_allowed"


def test_update_rejects_reserved_above_current(services, make_lot):
    lot = make_lot()

    with pytest.raises(ValidationFailed):
        services.inventory.update(lot.id, {"current_quantity": "10", "reserved_quantity": "20"})

    assert services.inventory.get(lot.id).current_quantity == Decimal("50")


def test_update_routes_status_through_state_machine(services, make_lot):
    lot = make_lot()
    services.inventory.change_status(lot.id, InventoryStatus.EXPIRED)

    with pytest.raises(InvalidState):
        services.inventory.update(lot.id, {"status": "AVAILABLE"})

    damaged = services.inventory.update(make_lot().id, {"status": "DAMAGED", "quality_grade": "C"})
    assert damaged.status == InventoryStatus.DAMAGED
    assert damaged.quality_grade == "C"


def test_update_rejects_quantity_change_on_sold_record(services, make_lot):
    lot = make_lot()
    services.reservations.mark_sold(lot.id, Decimal("50"), Decimal("450"))

    with pytest.raises(InvalidState):
        services.inventory.update(lot.id, {"current_quantity": "5"})


def test_patch_major_infestation_marks_available_lot_damaged(services, make_lot):
    lot = make_lot()

    patched = services.inventory.patch(lot.id, {"pest_status": "MAJOR_INFESTATION"})

    assert patched.pest_status == PestStatus.MAJOR_INFESTATION
    assert patched.status == InventoryStatus.DAMAGED
    assert any(
        entry.event_kind == MovementKind.STATUS_CHANGED and "major pest infestation" in entry.detail
        for entry in patched.movement_history
    )


def test_patch_minor_infestation_keeps_lot_available(services, make_lot):
    lot = make_lot()

    patched = services.inventory.patch(lot.id, {"pest_status": "MINOR_INFESTATION"})

    assert patched.status == InventoryStatus.AVAILABLE


def test_update_loss_percentage_recomputes_loss_value(services, make_lot):
    lot = make_lot()

    updated = services.inventory.update(lot.id, {"loss_percentage": "10"})

    assert updated.loss_value == Decimal("2000.00")


def test_delete_removes_record_and_its_movements(services, make_lot):
    lot = make_lot()

    services.inventory.delete(lot.id)

    with pytest.raises(NotFound):
        services.inventory.get(lot.id)


@pytest.mark.parametrize("locked", [InventoryStatus.RESERVED, InventoryStatus.IN_TRANSIT])
def test_delete_rejected_while_locked(services, make_lot, locked):
    lot = make_lot()
    services.inventory.change_status(lot.id, locked)

    with pytest.raises(InvalidState):
        services.inventory.delete(lot.id)

    assert services.inventory.get(lot.id).status == locked


def test_bulk_delete_collects_successes(services, make_lot):
    free = make_lot()
    held = make_lot()
    services.reservations.reserve(held.id, Decimal("50"), "buyer-1")

    result = services.inventory.bulk_delete([free.id, held.id, "ghost"])

    assert result.succeeded == [free.id]
    assert {f.id: f.error.code for f in result.failed} == {held.id: "invalid_state", "ghost": "not_found"}


def test_adjust_quantity(services, make_lot):
    lot = make_lot()

    grown = services.inventory.adjust_quantity(lot.id, Decimal("5"), "recount")
    assert grown.current_quantity == Decimal("55")
    assert grown.last_movement_date is not None
    assert grown.movement_history[-1].event_kind == MovementKind.QUANTITY_ADJUSTED

    services.reservations.reserve(lot.id, Decimal("40"), "buyer-1")
    with pytest.raises(ValidationFailed):
        services.inventory.adjust_quantity(lot.id, Decimal("-20"), "spillage")
    with pytest.raises(ValidationFailed):
        services.inventory.adjust_quantity(lot.id, Decimal("0"), "noop")


def test_update_quality_assessment_schedules_next_inspection(services, make_lot):
    lot = make_lot()

    assessed = services.inventory.update_quality_assessment(
        lot.id, "B", Decimal("13.5"), "aflatoxin: negative", today=TODAY
    )

    assert assessed.quality_grade == "B"
    assert assessed.moisture_content == Decimal("13.5")
    assert assessed.condition_assessment == TODAY
    assert assessed.next_inspection_date == TODAY + timedelta(days=30)
    assert assessed.movement_history[-1].event_kind == MovementKind.QUALITY_ASSESSMENT


def test_process_expired_inventory_moves_only_lapsed_available_lots(services, make_lot):
    lapsed = make_lot(expiry_date=(TODAY + timedelta(days=2)).isoformat())
    fresh = make_lot(expiry_date=(TODAY + timedelta(days=60)).isoformat())
    held = make_lot(expiry_date=(TODAY + timedelta(days=2)).isoformat())
    services.reservations.reserve(held.id, Decimal("50"), "buyer-1")

    result = services.inventory.process_expired_inventory(today=TODAY + timedelta(days=3))

    assert result.succeeded == [lapsed.id]
    assert services.inventory.get(lapsed.id).status == InventoryStatus.EXPIRED
    assert services.inventory.get(fresh.id).status == InventoryStatus.AVAILABLE
    assert services.inventory.get(held.id).status == InventoryStatus.RESERVED


def test_store_insert_rejects_existing_code(services, make_lot):
    lot = make_lot(inventory_code="MAIZE-002")
    duplicate = services.store.get(lot.id)

    with pytest.raises(DuplicateCode):
        services.inventory.create(lot_payload(inventory_code=duplicate.inventory_code), today=TODAY)

    assert services.inventory.search_by_keyword("MAIZE-002").pagination.total == 1
