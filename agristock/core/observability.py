import json
import logging
import traceback
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any
from uuid import uuid4

from agristock.core.config import settings

operation_id_ctx: ContextVar[str] = ContextVar("operation_id", default="-")
logger = logging.getLogger("agristock")


def setup_observability() -> None:
    if logger.handlers:
        return
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(handler)
    logger.setLevel(getattr(logging, settings.log_level, logging.INFO))
    logger.propagate = False


def get_operation_id() -> str:
    return operation_id_ctx.get()


@contextmanager
def operation_scope(operation_id: str | None = None) -> Iterator[str]:
    current = operation_id_ctx.get()
    if current != "-" and operation_id is None:
        # Nested calls share the outer operation id.
        yield current
        return
    value = operation_id or str(uuid4())
    token = operation_id_ctx.set(value)
    try:
        yield value
    finally:
        operation_id_ctx.reset(token)


def _jsonable(value: Any) -> Any:
    if isinstance(value, (str, int, float, bool)) or value is None:
        return value
    if isinstance(value, (list, tuple, set)):
        return [_jsonable(item) for item in value]
    if isinstance(value, dict):
        return {str(key): _jsonable(item) for key, item in value.items()}
    return str(value)


def log_event(event: str, *, level: int = logging.INFO, **fields: Any) -> None:
    payload = {"event": event, "operation_id": get_operation_id()}
    payload.update({key: _jsonable(value) for key, value in fields.items()})
    logger.log(level, json.dumps(payload))


def log_exception(event: str, exc: BaseException, **fields: Any) -> None:
    log_event(
        event,
        level=logging.ERROR,
        error=str(exc),
        error_type=type(exc).__name__,
        traceback=traceback.format_exc(limit=10),
        **fields,
    )
