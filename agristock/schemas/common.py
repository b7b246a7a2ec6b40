from pydantic import BaseModel, ConfigDict


class PaginationMeta(BaseModel):
    total: int
    limit: int
    offset: int
    count: int
    has_next: bool

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "total": 42,
                "limit": 10,
                "offset": 0,
                "count": 10,
                "has_next": True,
            }
        }
    )


class ValidationIssueOut(BaseModel):
    field: str
    message: str
    type: str | None = None


class ErrorOut(BaseModel):
    code: str
    message: str
    details: list[ValidationIssueOut] | None = None

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "code": "insufficient_quantity",
                "message": "Insufficient available quantity. Available: 20, Requested: 30",
                "details": None,
            }
        }
    )


class BulkFailureOut(BaseModel):
    id: str
    error: ErrorOut


class BulkOperationOut(BaseModel):
    succeeded: list[str]
    failed: list[BulkFailureOut]

    @property
    def all_succeeded(self) -> bool:
        return not self.failed
