"""Input checks for ledger operations.

Every function returns a list of FieldError and never touches the store; an
empty list means the input is acceptable.
"""

from datetime import date
from decimal import Decimal, InvalidOperation
from enum import Enum

from inventory_ledger.config import settings
from inventory_ledger.exceptions import FieldError, ValidationError
from inventory_ledger.models.inventory import InventoryStatus
from inventory_ledger.models.inventory_log import OperationType
from inventory_ledger.schemas.inventory import (
    InventoryAdjust,
    InventoryInbound,
    InventoryListQuery,
    InventoryOutbound,
    InventoryUpdate,
)
from inventory_ledger.schemas.inventory_log import InventoryLogQuery

# Upper bound of the 32-bit integer stock column on every supported store
MAX_STOCK = 2**31 - 1
MAX_PRICE = Decimal("9999999999.99")
MAX_VALUE = Decimal("999999999999999.99")

REASON_MAX_LENGTH = 50
NOTES_MAX_LENGTH = 500
PARTY_MAX_LENGTH = 50


class AdjustType(str, Enum):
    ADD = "add"
    SUBTRACT = "subtract"
    SET = "set"


class InboundReason(str, Enum):
    PURCHASE = "采购"
    RETURN = "退货"
    TRANSFER = "调拨"
    STOCKTAKE_GAIN = "盘盈"
    OTHER = "其他"


class OutboundReason(str, Enum):
    SALE = "销售"
    LOSS = "损耗"
    TRANSFER = "调拨"
    STOCKTAKE_LOSS = "盘亏"
    OTHER = "其他"


class InventorySortField(str, Enum):
    MATERIAL_NAME = "materialName"
    STOCK = "stock"
    STOCK_VALUE = "stockValue"
    CREATED_AT = "createdAt"
    UPDATED_AT = "updatedAt"


class SortOrder(str, Enum):
    ASC = "asc"
    DESC = "desc"


def _values(enum_cls: type[Enum]) -> list[str]:
    return [e.value for e in enum_cls]


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _check_material_id(material_id, errors: list[FieldError]) -> None:
    if not isinstance(material_id, str) or not material_id.strip():
        errors.append(FieldError("materialId", "must be a non-empty string"))


def _check_quantity(quantity, errors: list[FieldError]) -> None:
    if not _is_int(quantity):
        errors.append(FieldError("quantity", "must be an integer"))
    elif quantity < 1:
        errors.append(FieldError("quantity", "must be greater than 0"))
    elif quantity > MAX_STOCK:
        errors.append(FieldError("quantity", f"must be at most {MAX_STOCK}"))


def _check_optional_text(field: str, value, max_length: int, errors: list[FieldError]) -> None:
    if value is None:
        return
    if not isinstance(value, str):
        errors.append(FieldError(field, "must be a string"))
    elif len(value) > max_length:
        errors.append(FieldError(field, f"must be at most {max_length} characters"))


def _check_choice(field: str, value, enum_cls: type[Enum], errors: list[FieldError]) -> None:
    allowed = _values(enum_cls)
    if value not in allowed:
        errors.append(FieldError(field, f"must be one of: {', '.join(allowed)}"))


def _check_operation_date(value, errors: list[FieldError]) -> None:
    if value is not None and not isinstance(value, date):
        errors.append(FieldError("operationDate", "must be a date"))


def _check_money(field: str, value, errors: list[FieldError]) -> None:
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError):
        errors.append(FieldError(field, "must be a decimal number"))
        return
    if not amount.is_finite():
        errors.append(FieldError(field, "must be a decimal number"))
    elif amount < 0:
        errors.append(FieldError(field, "must not be negative"))
    elif amount > MAX_PRICE:
        errors.append(FieldError(field, f"must be at most {MAX_PRICE}"))
    elif amount.as_tuple().exponent < -2:
        errors.append(FieldError(field, "must have at most 2 decimal places"))


def validate_adjust(data: InventoryAdjust) -> list[FieldError]:
    errors: list[FieldError] = []
    _check_material_id(data.material_id, errors)
    _check_choice("adjustType", data.adjust_type, AdjustType, errors)
    _check_quantity(data.quantity, errors)
    if not isinstance(data.reason, str) or not data.reason.strip():
        errors.append(FieldError("reason", "must not be empty"))
    elif len(data.reason) > REASON_MAX_LENGTH:
        errors.append(FieldError("reason", f"must be at most {REASON_MAX_LENGTH} characters"))
    _check_optional_text("notes", data.notes, NOTES_MAX_LENGTH, errors)
    _check_operation_date(data.operation_date, errors)
    return errors


def validate_inbound(data: InventoryInbound) -> list[FieldError]:
    errors: list[FieldError] = []
    _check_material_id(data.material_id, errors)
    _check_quantity(data.quantity, errors)
    if data.unit_price is not None:
        _check_money("unitPrice", data.unit_price, errors)
    _check_optional_text("supplier", data.supplier, PARTY_MAX_LENGTH, errors)
    _check_choice("reason", data.reason, InboundReason, errors)
    _check_optional_text("notes", data.notes, NOTES_MAX_LENGTH, errors)
    _check_operation_date(data.operation_date, errors)
    return errors


def validate_outbound(data: InventoryOutbound) -> list[FieldError]:
    errors: list[FieldError] = []
    _check_material_id(data.material_id, errors)
    _check_quantity(data.quantity, errors)
    _check_optional_text("customer", data.customer, PARTY_MAX_LENGTH, errors)
    _check_choice("reason", data.reason, OutboundReason, errors)
    _check_optional_text("notes", data.notes, NOTES_MAX_LENGTH, errors)
    _check_operation_date(data.operation_date, errors)
    return errors


def validate_update(data: InventoryUpdate) -> list[FieldError]:
    errors: list[FieldError] = []
    if data.price is None and data.stock is None:
        errors.append(FieldError("price", "either price or stock must be given"))
    if data.price is not None:
        _check_money("price", data.price, errors)
    if data.stock is not None:
        if not _is_int(data.stock):
            errors.append(FieldError("stock", "must be an integer"))
        elif data.stock < 0:
            errors.append(FieldError("stock", "must not be negative"))
        elif data.stock > MAX_STOCK:
            errors.append(FieldError("stock", f"must be at most {MAX_STOCK}"))
    return errors


def validate_batch(items: list, batch_notes: str | None, field: str) -> list[FieldError]:
    errors: list[FieldError] = []
    if not items:
        errors.append(FieldError(field, "must contain at least 1 item"))
    elif len(items) > settings.BATCH_MAX_ITEMS:
        errors.append(FieldError(field, f"must contain at most {settings.BATCH_MAX_ITEMS} items"))
    _check_optional_text("batchNotes", batch_notes, NOTES_MAX_LENGTH, errors)
    return errors


def validate_shelve(inventory_ids: list[str]) -> list[FieldError]:
    if not inventory_ids:
        return [FieldError("inventoryIds", "must contain at least 1 id")]
    if any(not isinstance(i, str) or not i for i in inventory_ids):
        return [FieldError("inventoryIds", "must contain non-empty strings")]
    return []


def _check_pagination(page, page_size, errors: list[FieldError]) -> None:
    if not _is_int(page) or not 1 <= page <= MAX_STOCK:
        errors.append(FieldError("page", "must be an integer >= 1"))
    if not _is_int(page_size) or not 1 <= page_size <= settings.MAX_PAGE_SIZE:
        errors.append(FieldError("pageSize", f"must be between 1 and {settings.MAX_PAGE_SIZE}"))


def _check_range(min_field: str, low, max_field: str, high, limit, errors: list[FieldError]) -> None:
    for field, value in ((min_field, low), (max_field, high)):
        if value is None:
            continue
        if value < 0:
            errors.append(FieldError(field, "must not be negative"))
        elif value > limit:
            errors.append(FieldError(field, f"must be at most {limit}"))
    if low is not None and high is not None and low > high:
        errors.append(FieldError(min_field, f"must not exceed {max_field}"))


def validate_list_query(query: InventoryListQuery) -> list[FieldError]:
    errors: list[FieldError] = []
    _check_pagination(query.page, query.page_size, errors)
    if query.status is not None:
        _check_choice("status", query.status, InventoryStatus, errors)
    _check_range("stockMin", query.stock_min, "stockMax", query.stock_max, MAX_STOCK, errors)
    _check_range("valueMin", query.value_min, "valueMax", query.value_max, MAX_VALUE, errors)
    if query.sort_by is not None:
        _check_choice("sortBy", query.sort_by, InventorySortField, errors)
    _check_choice("sortOrder", query.sort_order, SortOrder, errors)
    return errors


def validate_log_query(query: InventoryLogQuery) -> list[FieldError]:
    errors: list[FieldError] = []
    _check_pagination(query.page, query.page_size, errors)
    if query.operation_type is not None:
        _check_choice("operationType", query.operation_type, OperationType, errors)
    if query.start_date and query.end_date and query.start_date > query.end_date:
        errors.append(FieldError("startDate", "must not be after endDate"))
    return errors



def ensure_valid(errors: list[FieldError]) -> None:
    if errors:
        raise ValidationError(errors)
