from enum import Enum


class InventoryStatus(str, Enum):
    AVAILABLE = "AVAILABLE"
    RESERVED = "RESERVED"
    IN_TRANSIT = "IN_TRANSIT"
    DAMAGED = "DAMAGED"
    EXPIRED = "EXPIRED"
    SOLD = "SOLD"
    DISPOSED = "DISPOSED"

    @property
    def is_terminal(self) -> bool:
        return self in {InventoryStatus.SOLD, InventoryStatus.DISPOSED}

    @property
    def is_sellable(self) -> bool:
        return self in {InventoryStatus.AVAILABLE, InventoryStatus.RESERVED}

    @property
    def is_locked(self) -> bool:
        """Locked records cannot be deleted."""
        return self in {InventoryStatus.RESERVED, InventoryStatus.IN_TRANSIT}


class PestStatus(str, Enum):
    PEST_FREE = "PEST_FREE"
    MINOR_INFESTATION = "MINOR_INFESTATION"
    MAJOR_INFESTATION = "MAJOR_INFESTATION"

    @property
    def display_name(self) -> str:
        return self.value.replace("_", " ").title()

    @property
    def requires_treatment(self) -> bool:
        return self is not PestStatus.PEST_FREE


class FacilityType(str, Enum):
    FARM_STORAGE = "FARM_STORAGE"
    WAREHOUSE = "WAREHOUSE"
    SILO = "SILO"
    COLD_STORAGE = "COLD_STORAGE"
    PROCESSING_PLANT = "PROCESSING_PLANT"
    RETAIL_STORE = "RETAIL_STORE"


class MovementKind(str, Enum):
    CREATED = "CREATED"
    UPDATED = "UPDATED"
    STATUS_CHANGED = "STATUS_CHANGED"
    RESERVED = "RESERVED"
    RELEASED = "RELEASED"
    SOLD = "SOLD"
    LOSS_RECORDED = "LOSS_RECORDED"
    QUANTITY_ADJUSTED = "QUANTITY_ADJUSTED"
    TRANSFER_STARTED = "TRANSFER_STARTED"
    TRANSFER_COMPLETED = "TRANSFER_COMPLETED"
    PEST_INSPECTION = "PEST_INSPECTION"
    QUALITY_ASSESSMENT = "QUALITY_ASSESSMENT"
