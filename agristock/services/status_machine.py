from datetime import datetime

from agristock.core.errors import InvalidTransition
from agristock.models.enums import InventoryStatus, MovementKind
from agristock.models.inventory import Inventory
from agristock.services.movement_log import append_movement

ALLOWED_STATUS_TRANSITIONS: dict[InventoryStatus, frozenset[InventoryStatus]] = {
    InventoryStatus.AVAILABLE: frozenset(
        {
            InventoryStatus.RESERVED,
            InventoryStatus.IN_TRANSIT,
            InventoryStatus.DAMAGED,
            InventoryStatus.EXPIRED,
        }
    ),
    InventoryStatus.RESERVED: frozenset(
        {InventoryStatus.AVAILABLE, InventoryStatus.SOLD, InventoryStatus.IN_TRANSIT}
    ),
    InventoryStatus.IN_TRANSIT: frozenset({InventoryStatus.AVAILABLE, InventoryStatus.DAMAGED}),
    InventoryStatus.DAMAGED: frozenset({InventoryStatus.DISPOSED, InventoryStatus.AVAILABLE}),
    InventoryStatus.EXPIRED: frozenset({InventoryStatus.DISPOSED}),
    InventoryStatus.SOLD: frozenset(),
    InventoryStatus.DISPOSED: frozenset(),
}


def allowed_targets(current: InventoryStatus) -> frozenset[InventoryStatus]:
    return ALLOWED_STATUS_TRANSITIONS.get(current, frozenset())


def can_transition(current: InventoryStatus, target: InventoryStatus) -> bool:
    return target in allowed_targets(current)


def ensure_transition_allowed(current: InventoryStatus, target: InventoryStatus) -> None:
    if not can_transition(current, target):
        raise InvalidTransition(current, target)


def apply_transition(
    record: Inventory,
    target: InventoryStatus,
    *,
    reason: str | None = None,
    at: datetime | None = None,
) -> None:
    """
    Move record to target, logging the change.

    Raises InvalidTransition without touching the record when the edge is not in
    ALLOWED_STATUS_TRANSITIONS.
    """
    current = InventoryStatus(record.status)
    ensure_transition_allowed(current, target)
    record.status = target
    detail = f"Status changed from {current.value} to {target.value}"
    if reason:
        detail = f"{detail}: {reason}"
    append_movement(record, kind=MovementKind.STATUS_CHANGED, detail=detail, at=at)


def settle_status(
    record: Inventory,
    target: InventoryStatus,
    *,
    reason: str | None = None,
    at: datetime | None = None,
) -> bool:
    """Like apply_transition, but a record already in target is left alone. Returns True on change."""
    if record.status == target:
        return False
    apply_transition(record, target, reason=reason, at=at)
    return True
