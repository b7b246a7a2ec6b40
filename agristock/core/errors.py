from enum import Enum
from typing import Any

from pydantic import ValidationError

from agristock.schemas.common import ErrorOut, ValidationIssueOut


class ErrorKind(str, Enum):
    NOT_FOUND = "not_found"
    DUPLICATE_CODE = "duplicate_code"
    INVALID_STATE = "invalid_state"
    INVALID_TRANSITION = "invalid_transition"
    INSUFFICIENT_QUANTITY = "insufficient_quantity"
    INVALID_RELEASE = "invalid_release"
    VALIDATION_FAILED = "validation_failed"
    CONCURRENT_MODIFICATION = "concurrent_modification"


class InventoryError(Exception):
    """Base for every typed failure surfaced by the inventory core."""

    kind: ErrorKind = ErrorKind.INVALID_STATE

    def __init__(self, message: str, *, details: list[ValidationIssueOut] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_error_out(self) -> ErrorOut:
        return ErrorOut(code=self.kind.value, message=self.message, details=self.details)


class NotFound(InventoryError):
    kind = ErrorKind.NOT_FOUND


class DuplicateCode(InventoryError):
    kind = ErrorKind.DUPLICATE_CODE

    def __init__(self, inventory_code: str):
        super().__init__(f"Inventory code already exists: {inventory_code}")
        self.inventory_code = inventory_code


class InvalidState(InventoryError):
    kind = ErrorKind.INVALID_STATE


class InvalidTransition(InvalidState):
    kind = ErrorKind.INVALID_TRANSITION

    def __init__(self, from_status: Any, to_status: Any):
        from_value = getattr(from_status, "value", from_status)
        to_value = getattr(to_status, "value", to_status)
        super().__init__(f"Invalid status transition from {from_value} to {to_value}")
        self.from_status = from_status
        self.to_status = to_status


class InsufficientQuantity(InventoryError):
    kind = ErrorKind.INSUFFICIENT_QUANTITY


class InvalidRelease(InventoryError):
    kind = ErrorKind.INVALID_RELEASE


class ConcurrentModification(InventoryError):
    kind = ErrorKind.CONCURRENT_MODIFICATION


class ValidationFailed(InventoryError):
    kind = ErrorKind.VALIDATION_FAILED

    def __init__(self, issues: list[ValidationIssueOut], message: str = "Validation failed"):
        summary = "; ".join(f"{issue.field}: {issue.message}" for issue in issues)
        super().__init__(f"{message}: {summary}" if summary else message, details=issues)
        self.issues = issues

    @classmethod
    def from_pydantic(cls, exc: ValidationError) -> "ValidationFailed":
        issues = []
        for err in exc.errors():
            location = [str(part) for part in err.get("loc", [])]
            issues.append(
                ValidationIssueOut(
                    field=".".join(location) if location else "body",
                    message=err.get("msg", "Invalid value"),
                    type=err.get("type"),
                )
            )
        return cls(issues)

    @classmethod
    def single(cls, field: str, message: str, type_: str = "value_error") -> "ValidationFailed":
        return cls([ValidationIssueOut(field=field, message=message, type=type_)])
