from datetime import datetime, timezone
import logging
from collections.abc import Callable, Iterable
from typing import Protocol, TypeVar

from sqlalchemy import Select, func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from agristock.core.config import Settings, settings
from agristock.core.errors import ConcurrentModification, DuplicateCode, InventoryError, NotFound
from agristock.core.observability import log_event
from agristock.models.enums import InventoryStatus
from agristock.models.inventory import Inventory
from agristock.schemas.common import BulkFailureOut, BulkOperationOut, PaginationMeta
from agristock.schemas.inventory import InventoryFilter, InventoryListOut, InventoryOut


T = TypeVar("T")

Mutation = Callable[[Inventory], None]
DeleteGuard = Callable[[Inventory], None]


class InventoryStore(Protocol):
    def get(self, inventory_id: str) -> InventoryOut: ...

    def get_by_code(self, inventory_code: str) -> InventoryOut: ...

    def find(self, filters: InventoryFilter, *, limit: int = 50, offset: int = 0) -> InventoryListOut: ...

    def find_by_crop(self, crop_id: str) -> list[InventoryOut]: ...

    def find_by_farmer(self, farmer_user_id: str) -> list[InventoryOut]: ...

    def find_by_status(self, status: InventoryStatus) -> list[InventoryOut]: ...

    def snapshot(self) -> list[InventoryOut]: ...

    def insert(self, record: Inventory) -> InventoryOut: ...

    def mutate(self, inventory_id: str, fn: Mutation) -> InventoryOut: ...

    def delete(self, inventory_id: str, guard: DeleteGuard | None = None) -> None: ...

    def delete_many(self, inventory_ids: Iterable[str], guard: DeleteGuard | None = None) -> BulkOperationOut: ...


def to_inventory_out(record: Inventory) -> InventoryOut:
    return InventoryOut.model_validate(record)


def _apply_filters(stmt: Select, filters: InventoryFilter) -> Select:
    if filters.crop_id:
        stmt = stmt.where(Inventory.crop_id == filters.crop_id)
    if filters.farmer_user_id:
        stmt = stmt.where(Inventory.farmer_user_id == filters.farmer_user_id)
    if filters.buyer_user_id:
        stmt = stmt.where(Inventory.buyer_user_id == filters.buyer_user_id)
    if filters.facility_type is not None:
        stmt = stmt.where(Inventory.facility_type == filters.facility_type)
    if filters.status is not None:
        stmt = stmt.where(Inventory.status == filters.status)
    if filters.quality_grade:
        stmt = stmt.where(func.upper(Inventory.quality_grade) == filters.quality_grade.upper())
    if filters.min_quantity is not None:
        stmt = stmt.where(Inventory.current_quantity >= filters.min_quantity)
    if filters.max_quantity is not None:
        stmt = stmt.where(Inventory.current_quantity <= filters.max_quantity)
    if filters.keyword:
        pattern = f"%{filters.keyword.lower()}%"
        stmt = stmt.where(
            or_(
                func.lower(Inventory.inventory_code).like(pattern),
                func.lower(Inventory.storage_location).like(pattern),
                func.lower(Inventory.crop_id).like(pattern),
                func.lower(Inventory.quality_grade).like(pattern),
            )
        )
    return stmt


class SqlInventoryStore:
    """
    SQLAlchemy-backed InventoryStore.

    Every call runs in its own session. Writes are checked against
    Inventory.version_id; a stale write is rolled back and the whole
    read-validate-write is re-run on fresh state, up to
    optimistic_lock_max_retries attempts.
    """

    def __init__(self, session_factory: sessionmaker, config: Settings = settings):
        self._session_factory = session_factory
        self._config = config

    def _read(self, work: Callable[[Session], T]) -> T:
        db = self._session_factory()
        try:
            return work(db)
        finally:
            db.close()

    def _write(self, inventory_id: str, work: Callable[[Session, Inventory], T]) -> T:
        attempts = self._config.optimistic_lock_max_retries
        for attempt in range(1, attempts + 1):
            db = self._session_factory()
            try:
                record = db.get(Inventory, inventory_id)
                if record is None:
                    raise NotFound(f"Inventory not found: {inventory_id}")
                result = work(db, record)
                db.commit()
                return result
            except StaleDataError:
                db.rollback()
                log_event(
                    "inventory.optimistic_lock_retry",
                    level=logging.WARNING,
                    inventory_id=inventory_id,
                    attempt=attempt,
                    max_attempts=attempts,
                )
            except Exception:
                db.rollback()
                raise
            finally:
                db.close()

        raise ConcurrentModification(
            f"Inventory {inventory_id} was modified concurrently; gave up after {attempts} attempts"
        )

    def get(self, inventory_id: str) -> InventoryOut:
        def work(db: Session) -> InventoryOut:
            record = db.get(Inventory, inventory_id)
            if record is None:
                raise NotFound(f"Inventory not found: {inventory_id}")
            return to_inventory_out(record)

        return self._read(work)

    def get_by_code(self, inventory_code: str) -> InventoryOut:
        def work(db: Session) -> InventoryOut:
            record = db.execute(
                select(Inventory).where(Inventory.inventory_code == inventory_code)
            ).scalar_one_or_none()
            if record is None:
                raise NotFound(f"Inventory not found with code: {inventory_code}")
            return to_inventory_out(record)

        return self._read(work)

    def find(self, filters: InventoryFilter, *, limit: int = 50, offset: int = 0) -> InventoryListOut:
        def work(db: Session) -> InventoryListOut:
            stmt = _apply_filters(select(Inventory), filters)
            total = int(
                db.execute(select(func.count()).select_from(stmt.order_by(None).subquery())).scalar_one()
            )
            rows = db.execute(
                stmt.order_by(Inventory.created_at.desc(), Inventory.id).offset(offset).limit(limit)
            ).scalars().all()
            items = [to_inventory_out(row) for row in rows]
            return InventoryListOut(
                items=items,
                pagination=PaginationMeta(
                    total=total,
                    limit=limit,
                    offset=offset,
                    count=len(items),
                    has_next=offset + len(items) < total,
                ),
            )

        return self._read(work)

    def _list(self, *criteria) -> list[InventoryOut]:
        def work(db: Session) -> list[InventoryOut]:
            stmt = select(Inventory).order_by(Inventory.storage_date, Inventory.id)
            if criteria:
                stmt = stmt.where(*criteria)
            return [to_inventory_out(row) for row in db.execute(stmt).scalars().all()]

        return self._read(work)

    def find_by_crop(self, crop_id: str) -> list[InventoryOut]:
        return self._list(Inventory.crop_id == crop_id)

    def find_by_farmer(self, farmer_user_id: str) -> list[InventoryOut]:
        return self._list(Inventory.farmer_user_id == farmer_user_id)

    def find_by_status(self, status: InventoryStatus) -> list[InventoryOut]:
        return self._list(Inventory.status == status)

    def snapshot(self) -> list[InventoryOut]:
        return self._list()

    def insert(self, record: Inventory) -> InventoryOut:
        db = self._session_factory()
        try:
            exists = db.execute(
                select(Inventory.id).where(Inventory.inventory_code == record.inventory_code)
            ).first()
            if exists is not None:
                raise DuplicateCode(record.inventory_code)
            db.add(record)
            db.flush()
            out = to_inventory_out(record)
            db.commit()
            return out
        except IntegrityError as exc:
            db.rollback()
            if "inventory_code" in str(exc.orig):
                raise DuplicateCode(record.inventory_code) from exc
            raise
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def mutate(self, inventory_id: str, fn: Mutation) -> InventoryOut:
        def work(db: Session, record: Inventory) -> InventoryOut:
            fn(record)
            # Always bump updated_at so every mutation issues a versioned UPDATE.
            record.updated_at = datetime.now(timezone.utc)
            db.flush()
            return to_inventory_out(record)

        return self._write(inventory_id, work)

    def delete(self, inventory_id: str, guard: DeleteGuard | None = None) -> None:
        def work(db: Session, record: Inventory) -> None:
            if guard is not None:
                guard(record)
            db.delete(record)
            db.flush()

        self._write(inventory_id, work)

    def delete_many(self, inventory_ids: Iterable[str], guard: DeleteGuard | None = None) -> BulkOperationOut:
        succeeded: list[str] = []
        failed: list[BulkFailureOut] = []
        for inventory_id in inventory_ids:
            try:
                self.delete(inventory_id, guard)
            except InventoryError as exc:
                failed.append(BulkFailureOut(id=inventory_id, error=exc.to_error_out()))
            else:
                succeeded.append(inventory_id)
        return BulkOperationOut(succeeded=succeeded, failed=failed)
