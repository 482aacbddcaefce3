"""Inventory ledger: stock and price mutations with an audit entry per change.

Every mutation follows the same sequence inside one transaction: load the
record, validate the change against the current state, write the new state,
write the audit entry. Mutations on the same material are serialized by a
per-material lock within the process and by the record's version column
across processes.
"""

import contextlib
import logging
import threading
import uuid
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import date
from decimal import ROUND_HALF_UP, Decimal

from sqlalchemy import BigInteger, or_, type_coerce
from sqlalchemy.exc import DataError, DBAPIError, IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from inventory_ledger.config import settings
from inventory_ledger.exceptions import (
    AlreadyExists,
    ConcurrencyConflict,
    FieldError,
    InsufficientStock,
    LedgerError,
    NotFound,
    StoreUnavailable,
)
from inventory_ledger.models.inventory import CENT, Inventory, InventoryStatus, to_cents, utcnow
from inventory_ledger.models.inventory_log import OperationType
from inventory_ledger.models.material import Category, Material
from inventory_ledger.schemas.inventory import (
    BatchAdjust,
    BatchInbound,
    BatchItemResult,
    BatchOutbound,
    BatchResultOut,
    InventoryAdjust,
    InventoryInbound,
    InventoryListOut,
    InventoryListQuery,
    InventoryOut,
    InventoryOutbound,
    InventoryUpdate,
    ShelveResultOut,
    StockChangeOut,
)
from inventory_ledger.schemas.inventory_log import InventoryLogListOut, InventoryLogQuery, PurgeResultOut
from inventory_ledger.services import audit_service
from inventory_ledger.services.auth_service import SYSTEM_OPERATOR, Operator
from inventory_ledger.services.material_service import MaterialInfo, lookup_material
from inventory_ledger.services.validation import (
    MAX_STOCK,
    AdjustType,
    InventorySortField,
    SortOrder,
    ensure_valid,
    validate_adjust,
    validate_batch,
    validate_inbound,
    validate_list_query,
    validate_outbound,
    validate_shelve,
    validate_update,
)

logger = logging.getLogger(__name__)

PRICE_POLICIES = ("weighted_average", "last_price")


class MaterialLocks:
    """One lock per material id, shared by every ledger in the process."""

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: dict[str, threading.Lock] = {}

    def get(self, material_id: str) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(material_id)
            if lock is None:
                lock = self._locks[material_id] = threading.Lock()
            return lock


material_locks = MaterialLocks()


@dataclass
class StockChange:
    """What one mutation did to a record; becomes exactly one audit entry."""

    operation_type: OperationType
    before_value: object
    after_value: object
    before_stock: int
    after_stock: int
    remark: str | None = None


def quantize_price(value) -> Decimal:
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


def inbound_price(current_price: Decimal, current_stock: int, unit_price: Decimal, quantity: int, policy: str) -> Decimal:
    """Price after receiving `quantity` units at `unit_price`.

    weighted_average: (price*stock + unit_price*quantity) / (stock + quantity)
    last_price: unit_price
    """
    if policy == "last_price":
        return quantize_price(unit_price)
    total = Decimal(current_price) * current_stock + Decimal(unit_price) * quantity
    return quantize_price(total / (current_stock + quantity))


def ensure_stock_fits(after: int) -> int:
    if after > MAX_STOCK:
        ensure_valid([FieldError("quantity", f"would raise stock above {MAX_STOCK}")])
    return after


def adjusted_stock(material_id: str, current: int, adjust_type: str, quantity: int) -> int:
    if adjust_type == AdjustType.ADD:
        return ensure_stock_fits(current + quantity)
    if adjust_type == AdjustType.SUBTRACT:
        if quantity > current:
            raise InsufficientStock(material_id, current, quantity)
        return current - quantity
    return quantity


def _remark(*parts: str | None) -> str | None:
    text = "; ".join(p for p in parts if p)
    return text or None


def _inventory_out(record: Inventory, material: MaterialInfo | None) -> InventoryOut:
    return InventoryOut(
        inventory_id=record.inventory_id,
        material_id=record.material_id,
        material_name=material.name if material else "",
        category_id=material.category_id if material else "",
        category_name=material.category_name if material else "",
        price=quantize_price(record.price),
        stock=record.stock,
        status=record.status_value,
        created_at=record.created_at,
        updated_at=record.updated_at,
    )


class InventoryLedger:
    """Applies adjust/inbound/outbound and direct edits to inventory records.

    Collaborators are passed in so tests can substitute them:
    ``session_factory`` opens a Session per unit of work, ``audit_writer``
    adds an audit row to that Session, ``material_lookup`` labels records.
    """

    def __init__(
        self,
        session_factory,
        *,
        audit_writer=audit_service.record_inventory_change,
        material_lookup=lookup_material,
        max_retries: int | None = None,
        price_policy: str | None = None,
        locks: MaterialLocks | None = None,
    ):
        self._session_factory = session_factory
        self._audit_writer = audit_writer
        self._material_lookup = material_lookup
        self.max_retries = settings.LEDGER_MAX_RETRIES if max_retries is None else max_retries
        if self.max_retries < 1:
            raise ValueError(f"max_retries must be at least 1, got {self.max_retries}")
        self.price_policy = price_policy or settings.INBOUND_PRICE_POLICY
        if self.price_policy not in PRICE_POLICIES:
            raise ValueError(f"Unknown inbound price policy '{self.price_policy}'")
        self._locks = locks or material_locks

    # --- Unit of work ---

    @contextmanager
    def _session_scope(self):
        db: Session = self._session_factory()
        try:
            yield db
            db.commit()
        except (IntegrityError, DataError):
            # Only operational failures of the store map to StoreUnavailable
            db.rollback()
            raise
        except DBAPIError as exc:
            db.rollback()
            raise StoreUnavailable(f"Inventory store unavailable: {exc.orig}") from exc
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def _retrying(self, description: str, lock, work):
        for attempt in range(1, self.max_retries + 1):
            with lock:
                try:
                    return work()
                except StaleDataError:
                    logger.warning(
                        "Version conflict during %s (attempt %d/%d)", description, attempt, self.max_retries
                    )
        raise ConcurrencyConflict(f"{description} conflicted with concurrent updates {self.max_retries} times")

    def _load_for_update(self, db: Session, material_id: str) -> Inventory:
        record = (
            db.query(Inventory)
            .filter(Inventory.material_id == material_id)
            .with_for_update()
            .populate_existing()
            .first()
        )
        if not record:
            raise NotFound(f"No inventory record for material {material_id}")
        return record

    def _mutate(
        self,
        material_id: str,
        mutate,
        operator: Operator,
        *,
        operation_date: date | None = None,
        batch_id: str | None = None,
    ) -> tuple[InventoryOut, list[tuple[StockChange, str]]]:
        """Run `mutate(record) -> list[StockChange]` and audit each change atomically."""

        def work():
            with self._session_scope() as db:
                record = self._load_for_update(db, material_id)
                changes = mutate(record)
                if not changes:
                    return _inventory_out(record, self._material_lookup(db, material_id)), []
                record.updated_at = utcnow()
                db.flush()

                material = self._material_lookup(db, material_id)
                written = []
                for change in changes:
                    try:
                        log = self._audit_writer(
                            db,
                            operator=operator,
                            material_id=material_id,
                            material_name=material.name if material else "",
                            operation_type=change.operation_type,
                            before_value=change.before_value,
                            after_value=change.after_value,
                            remark=change.remark,
                            operation_date=operation_date,
                            batch_id=batch_id,
                        )
                    except StaleDataError:
                        raise
                    except Exception:
                        logger.error(
                            "Audit write failed for material %s; rolling back %s",
                            material_id, change.operation_type.value,
                        )
                        raise
                    written.append((change, log.log_id))
                out = _inventory_out(record, material)

            for change, log_id in written:
                logger.info(
                    "%s material=%s stock %d -> %d by %s (log %s)",
                    change.operation_type.value, material_id, change.before_stock, change.after_stock,
                    operator.operator_name, log_id,
                )
            return out, written

        return self._retrying(f"mutation of material {material_id}", self._locks.get(material_id), work)

    def _single_change(self, material_id, mutate, operator, operation_date, batch_id) -> StockChangeOut:
        out, written = self._mutate(material_id, mutate, operator, operation_date=operation_date, batch_id=batch_id)
        change, log_id = written[0]
        return StockChangeOut(
            **out.model_dump(),
            before_stock=change.before_stock,
            after_stock=change.after_stock,
            log_id=log_id,
        )

    # --- Record lifecycle ---

    def create_inventory(self, material_id: str) -> InventoryOut:
        if not isinstance(material_id, str) or not material_id.strip():
            ensure_valid([FieldError("materialId", "must be a non-empty string")])
        with self._session_scope() as db:
            if db.query(Inventory).filter(Inventory.material_id == material_id).first():
                raise AlreadyExists(f"Inventory record for material {material_id} already exists")
            now = utcnow()
            record = Inventory(
                material_id=material_id,
                price=Decimal("0.00"),
                stock=0,
                status=InventoryStatus.OFF_SHELF,
                created_at=now,
                updated_at=now,
            )
            db.add(record)
            try:
                db.flush()
            except IntegrityError as exc:
                raise AlreadyExists(f"Inventory record for material {material_id} already exists") from exc
            out = _inventory_out(record, self._material_lookup(db, material_id))
        logger.info("Created inventory record %s for material %s", out.inventory_id, material_id)
        return out

    def get_inventory(self, material_id: str) -> InventoryOut:
        with self._session_scope() as db:
            record = db.query(Inventory).filter(Inventory.material_id == material_id).first()
            if not record:
                raise NotFound(f"No inventory record for material {material_id}")
            return _inventory_out(record, self._material_lookup(db, material_id))

    # --- Stock mutations ---

    def adjust(
        self, data: InventoryAdjust, operator: Operator = SYSTEM_OPERATOR, *, batch_id: str | None = None
    ) -> StockChangeOut:
        ensure_valid(validate_adjust(data))

        def mutate(record: Inventory) -> list[StockChange]:
            before = record.stock
            after = adjusted_stock(record.material_id, before, data.adjust_type, data.quantity)
            record.stock = after
            return [StockChange(
                operation_type=OperationType.UPDATE_STOCK,
                before_value=before,
                after_value=after,
                before_stock=before,
                after_stock=after,
                remark=_remark(f"{data.adjust_type} {data.quantity}", data.reason, data.notes),
            )]

        return self._single_change(data.material_id, mutate, operator, data.operation_date, batch_id)

    def inbound(
        self, data: InventoryInbound, operator: Operator = SYSTEM_OPERATOR, *, batch_id: str | None = None
    ) -> StockChangeOut:
        ensure_valid(validate_inbound(data))

        def mutate(record: Inventory) -> list[StockChange]:
            before_stock = record.stock
            before_price = quantize_price(record.price)
            after_price = before_price
            if data.unit_price is not None:
                after_price = inbound_price(
                    before_price, before_stock, Decimal(str(data.unit_price)), data.quantity, self.price_policy
                )
            record.stock = ensure_stock_fits(before_stock + data.quantity)
            record.price = after_price
            return [StockChange(
                operation_type=OperationType.INBOUND,
                before_value={"stock": before_stock, "price": before_price},
                after_value={"stock": record.stock, "price": after_price},
                before_stock=before_stock,
                after_stock=record.stock,
                remark=_remark(
                    data.reason,
                    f"supplier: {data.supplier}" if data.supplier else None,
                    f"unitPrice: {quantize_price(data.unit_price)}" if data.unit_price is not None else None,
                    data.notes,
                ),
            )]

        return self._single_change(data.material_id, mutate, operator, data.operation_date, batch_id)

    def outbound(
        self, data: InventoryOutbound, operator: Operator = SYSTEM_OPERATOR, *, batch_id: str | None = None
    ) -> StockChangeOut:
        ensure_valid(validate_outbound(data))

        def mutate(record: Inventory) -> list[StockChange]:
            before = record.stock
            if data.quantity > before:
                raise InsufficientStock(record.material_id, before, data.quantity)
            record.stock = before - data.quantity
            return [StockChange(
                operation_type=OperationType.OUTBOUND,
                before_value=before,
                after_value=record.stock,
                before_stock=before,
                after_stock=record.stock,
                remark=_remark(
                    data.reason,
                    f"customer: {data.customer}" if data.customer else None,
                    data.notes,
                ),
            )]

        return self._single_change(data.material_id, mutate, operator, data.operation_date, batch_id)

    def update_inventory(
        self, inventory_id: str, data: InventoryUpdate, operator: Operator = SYSTEM_OPERATOR
    ) -> InventoryOut:
        """Direct edit of price and/or stock; one audit entry per field that changed."""
        ensure_valid(validate_update(data))
        with self._session_scope() as db:
            record = db.query(Inventory).filter(Inventory.inventory_id == inventory_id).first()
            if not record:
                raise NotFound(f"Inventory record {inventory_id} not found")
            material_id = record.material_id

        def mutate(record: Inventory) -> list[StockChange]:
            changes = []
            if data.price is not None:
                before_price = quantize_price(record.price)
                new_price = quantize_price(data.price)
                if new_price != before_price:
                    record.price = new_price
                    changes.append(StockChange(
                        operation_type=OperationType.UPDATE_PRICE,
                        before_value=before_price,
                        after_value=new_price,
                        before_stock=record.stock,
                        after_stock=record.stock,
                    ))
            if data.stock is not None and data.stock != record.stock:
                before = record.stock
                record.stock = data.stock
                changes.append(StockChange(
                    operation_type=OperationType.UPDATE_STOCK,
                    before_value=before,
                    after_value=data.stock,
                    before_stock=before,
                    after_stock=data.stock,
                ))
            return changes

        out, _ = self._mutate(material_id, mutate, operator)
        return out

    # --- Batches ---

    def _run_batch(self, items: list, run_one, operator: Operator, *, batch_notes, operation_date, field) -> BatchResultOut:
        """Best-effort: each item commits or fails on its own; no rollback across items."""
        ensure_valid(validate_batch(items, batch_notes, field))
        batch_id = f"BATCH-{uuid.uuid4().hex[:12].upper()}"
        success: list[BatchItemResult] = []
        failed: list[BatchItemResult] = []

        for item in items:
            defaults = {}
            if item.notes is None and batch_notes:
                defaults["notes"] = batch_notes
            if item.operation_date is None and operation_date:
                defaults["operation_date"] = operation_date
            if defaults:
                item = item.model_copy(update=defaults)
            try:
                result = run_one(item, operator, batch_id=batch_id)
            except LedgerError as exc:
                failed.append(BatchItemResult(
                    material_id=item.material_id, quantity=item.quantity, code=exc.code, message=exc.message,
                ))
                continue
            success.append(BatchItemResult(
                material_id=item.material_id,
                log_id=result.log_id,
                before_stock=result.before_stock,
                after_stock=result.after_stock,
                quantity=item.quantity,
            ))

        logger.info("Batch %s: %d succeeded, %d failed", batch_id, len(success), len(failed))
        return BatchResultOut(
            batch_id=batch_id,
            success_count=len(success),
            failed_count=len(failed),
            success_list=success,
            failed_list=failed,
        )

    def batch_adjust(self, data: BatchAdjust, operator: Operator = SYSTEM_OPERATOR) -> BatchResultOut:
        return self._run_batch(
            data.adjustments, self.adjust, operator,
            batch_notes=data.batch_notes, operation_date=data.operation_date, field="adjustments",
        )

    def batch_inbound(self, data: BatchInbound, operator: Operator = SYSTEM_OPERATOR) -> BatchResultOut:
        return self._run_batch(
            data.operations, self.inbound, operator,
            batch_notes=data.batch_notes, operation_date=data.operation_date, field="operations",
        )

    def batch_outbound(self, data: BatchOutbound, operator: Operator = SYSTEM_OPERATOR) -> BatchResultOut:
        return self._run_batch(
            data.operations, self.outbound, operator,
            batch_notes=data.batch_notes, operation_date=data.operation_date, field="operations",
        )

    # --- Shelf status ---

    def set_status(self, inventory_ids: list[str], status: InventoryStatus) -> ShelveResultOut:
        """Shelve or unshelve records. Stock is untouched and no audit entry is written."""
        ensure_valid(validate_shelve(inventory_ids))
        wanted = set(inventory_ids)

        def work():
            with self._session_scope() as db:
                records = db.query(Inventory).filter(Inventory.inventory_id.in_(wanted)).all()
                missing = wanted - {r.inventory_id for r in records}
                if missing:
                    raise NotFound(f"Inventory records not found: {', '.join(sorted(missing))}")
                now = utcnow()
                for record in records:
                    record.status = status
                    record.updated_at = now
                db.flush()
                return ShelveResultOut(updated=len(records), status=status.value)

        return self._retrying(f"status change to {status.value}", contextlib.nullcontext(), work)

    def shelve(self, inventory_ids: list[str]) -> ShelveResultOut:
        return self.set_status(inventory_ids, InventoryStatus.ON_SHELF)

    def unshelve(self, inventory_ids: list[str]) -> ShelveResultOut:
        return self.set_status(inventory_ids, InventoryStatus.OFF_SHELF)

    # --- Queries ---

    def list_inventory(self, query: InventoryListQuery) -> InventoryListOut:
        ensure_valid(validate_list_query(query))
        with self._session_scope() as db:
            q = (
                db.query(Inventory, Material, Category.name)
                .outerjoin(Material, Material.material_id == Inventory.material_id)
                .outerjoin(Category, Category.category_id == Material.category_id)
            )
            if query.keyword:
                like = f"%{query.keyword}%"
                q = q.filter(or_(Material.name.ilike(like), Inventory.material_id.ilike(like)))
            if query.category_id:
                q = q.filter(Material.category_id == query.category_id)
            if query.status:
                q = q.filter(Inventory.status == InventoryStatus(query.status))
            if query.stock_min is not None:
                q = q.filter(Inventory.stock >= query.stock_min)
            if query.stock_max is not None:
                q = q.filter(Inventory.stock <= query.stock_max)
            # Stock value in cents: price_cents * stock
            stock_value = type_coerce(Inventory.price, BigInteger) * Inventory.stock
            if query.value_min is not None:
                q = q.filter(stock_value >= to_cents(query.value_min))
            if query.value_max is not None:
                q = q.filter(stock_value <= to_cents(query.value_max))

            sort_columns = {
                InventorySortField.MATERIAL_NAME.value: Material.name,
                InventorySortField.STOCK.value: Inventory.stock,
                InventorySortField.STOCK_VALUE.value: stock_value,
                InventorySortField.CREATED_AT.value: Inventory.created_at,
                InventorySortField.UPDATED_AT.value: Inventory.updated_at,
            }
            column = sort_columns[query.sort_by or InventorySortField.CREATED_AT.value]
            direction = column.asc() if query.sort_order == SortOrder.ASC.value else column.desc()

            total = q.count()
            rows = (
                q.order_by(direction, Inventory.inventory_id)
                .offset((query.page - 1) * query.page_size)
                .limit(query.page_size)
                .all()
            )
            items = []
            for record, material, category_name in rows:
                info = None
                if material:
                    info = MaterialInfo(
                        material_id=material.material_id,
                        name=material.name,
                        category_id=material.category_id or "",
                        category_name=category_name or "",
                    )
                items.append(_inventory_out(record, info))
        return InventoryListOut(items=items, total=total, page=query.page, page_size=query.page_size)

    def list_logs(self, query: InventoryLogQuery) -> InventoryLogListOut:
        with self._session_scope() as db:
            return audit_service.list_inventory_logs(db, query)

    def purge_logs(self, older_than_days: int | None = None) -> PurgeResultOut:
        days = settings.INVENTORY_LOG_RETENTION_DAYS if older_than_days is None else older_than_days
        with self._session_scope() as db:
            deleted, cutoff = audit_service.purge_inventory_logs(db, days)
        return PurgeResultOut(deleted=deleted, cutoff=cutoff)
