"""Construction, storage and querying of inventory audit entries."""

import json
import logging
from datetime import date, datetime, time, timedelta
from decimal import Decimal

from sqlalchemy.orm import Session

from inventory_ledger.exceptions import FieldError
from inventory_ledger.models.inventory import utcnow
from inventory_ledger.models.inventory_log import InventoryLog, OperationType
from inventory_ledger.schemas.inventory_log import InventoryLogListOut, InventoryLogOut, InventoryLogQuery
from inventory_ledger.services.auth_service import Operator
from inventory_ledger.services.validation import ensure_valid, validate_log_query

logger = logging.getLogger(__name__)


def _json_default(value):
    if isinstance(value, Decimal):
        return str(value)
    raise TypeError(f"Cannot serialize {type(value).__name__}")


def serialize_value(value) -> str:
    """Snapshot a before/after value as JSON text. Decimals become strings."""
    return json.dumps(value, default=_json_default, ensure_ascii=False, sort_keys=True)


def build_inventory_log(
    *,
    operator: Operator,
    material_id: str,
    material_name: str,
    operation_type: OperationType,
    before_value,
    after_value,
    remark: str | None = None,
    operation_date: date | None = None,
    batch_id: str | None = None,
) -> InventoryLog:
    return InventoryLog(
        operator_id=operator.operator_id,
        operator_name=operator.operator_name,
        material_id=material_id,
        material_name=material_name,
        operation_type=operation_type,
        before_value=serialize_value(before_value),
        after_value=serialize_value(after_value),
        remark=remark,
        operation_date=operation_date or utcnow().date(),
        batch_id=batch_id,
        created_at=utcnow(),
    )


def record_inventory_change(db: Session, **fields) -> InventoryLog:
    """Add one audit entry to the caller's transaction.

    Does NOT commit: the entry must land in the same transaction as the
    inventory change it describes.
    """
    log = build_inventory_log(**fields)
    db.add(log)
    db.flush()
    return log


def to_log_out(log: InventoryLog) -> InventoryLogOut:
    return InventoryLogOut(
        log_id=log.log_id,
        operator_id=log.operator_id,
        operator_name=log.operator_name,
        material_id=log.material_id,
        material_name=log.material_name,
        operation_type=OperationType(log.operation_type).value,
        before_value=log.before_value,
        after_value=log.after_value,
        remark=log.remark,
        operation_date=log.operation_date,
        batch_id=log.batch_id,
        created_at=log.created_at,
    )


def list_inventory_logs(db: Session, query: InventoryLogQuery) -> InventoryLogListOut:
    ensure_valid(validate_log_query(query))

    q = db.query(InventoryLog)
    if query.operator_name:
        q = q.filter(InventoryLog.operator_name.ilike(f"%{query.operator_name}%"))
    if query.material_name:
        q = q.filter(InventoryLog.material_name.ilike(f"%{query.material_name}%"))
    if query.material_id:
        q = q.filter(InventoryLog.material_id == query.material_id)
    if query.operation_type:
        q = q.filter(InventoryLog.operation_type == OperationType(query.operation_type))
    if query.start_date:
        q = q.filter(InventoryLog.created_at >= datetime.combine(query.start_date, time.min))
    if query.end_date:
        # endDate covers the whole day
        q = q.filter(InventoryLog.created_at <= datetime.combine(query.end_date, time.max))

    total = q.count()
    logs = (
        q.order_by(InventoryLog.created_at.desc(), InventoryLog.log_id)
        .offset((query.page - 1) * query.page_size)
        .limit(query.page_size)
        .all()
    )
    return InventoryLogListOut(
        items=[to_log_out(log) for log in logs],
        total=total,
        page=query.page,
        page_size=query.page_size,
    )


def purge_inventory_logs(db: Session, older_than_days: int) -> tuple[int, datetime]:
    """Delete audit entries created before the retention cutoff. Commits."""
    if isinstance(older_than_days, bool) or not isinstance(older_than_days, int) or older_than_days < 1:
        ensure_valid([FieldError("olderThanDays", "must be an integer >= 1")])
    cutoff = utcnow() - timedelta(days=older_than_days)
    deleted = (
        db.query(InventoryLog)
        .filter(InventoryLog.created_at < cutoff)
        .delete(synchronize_session=False)
    )
    db.commit()
    logger.info("Purged %d inventory log entries older than %s", deleted, cutoff.isoformat())
    return deleted, cutoff
