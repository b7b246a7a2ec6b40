from datetime import datetime, timezone
from decimal import Decimal
import uuid

from agristock.models.enums import MovementKind
from agristock.models.inventory import Inventory, InventoryMovement

MAX_DETAIL_LENGTH = 500


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def next_sequence(record: Inventory) -> int:
    if not record.movements:
        return 1
    return max(entry.sequence for entry in record.movements) + 1


def append_movement(
    record: Inventory,
    *,
    kind: MovementKind,
    detail: str,
    quantity_delta: Decimal | None = None,
    at: datetime | None = None,
) -> InventoryMovement:
    """Entries are only ever appended; nothing rewrites or removes them."""
    entry = InventoryMovement(
        id=str(uuid.uuid4()),
        sequence=next_sequence(record),
        event_kind=kind,
        detail=detail[:MAX_DETAIL_LENGTH],
        quantity_delta=quantity_delta,
        created_at=at or utcnow(),
    )
    record.movements.append(entry)
    return entry
