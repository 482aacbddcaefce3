from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, Field, StrictInt
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Snake_case in Python, camelCase on the wire."""

    model_config = {"alias_generator": to_camel, "populate_by_name": True, "from_attributes": True}


# --- Requests ---

class InventoryCreate(CamelModel):
    material_id: str


class InventoryAdjust(CamelModel):
    material_id: str
    adjust_type: str  # add, subtract, set
    quantity: StrictInt
    reason: str
    notes: str | None = None
    operation_date: date | None = None


class InventoryInbound(CamelModel):
    material_id: str
    quantity: StrictInt
    unit_price: Decimal | None = None
    supplier: str | None = None
    reason: str  # 采购, 退货, 调拨, 盘盈, 其他
    notes: str | None = None
    operation_date: date | None = None


class InventoryOutbound(CamelModel):
    material_id: str
    quantity: StrictInt
    customer: str | None = None
    reason: str  # 销售, 损耗, 调拨, 盘亏, 其他
    notes: str | None = None
    operation_date: date | None = None


class BatchAdjust(CamelModel):
    adjustments: list[InventoryAdjust]
    batch_notes: str | None = None
    operation_date: date | None = None


class BatchInbound(CamelModel):
    operations: list[InventoryInbound]
    batch_notes: str | None = None
    operation_date: date | None = None


class BatchOutbound(CamelModel):
    operations: list[InventoryOutbound]
    batch_notes: str | None = None
    operation_date: date | None = None


class InventoryUpdate(CamelModel):
    price: Decimal | None = None
    stock: StrictInt | None = None


class ShelveRequest(CamelModel):
    inventory_ids: list[str]


class InventoryListQuery(CamelModel):
    page: int = 1
    page_size: int = 20
    keyword: str | None = None
    category_id: str | None = None
    status: str | None = None
    stock_min: int | None = None
    stock_max: int | None = None
    value_min: Decimal | None = None
    value_max: Decimal | None = None
    sort_by: str | None = None  # materialName, stock, stockValue, createdAt, updatedAt
    sort_order: str = "desc"


# --- Responses ---

class InventoryOut(CamelModel):
    inventory_id: str
    material_id: str
    material_name: str = ""
    category_id: str = ""
    category_name: str = ""
    price: Decimal
    stock: int
    status: str
    created_at: datetime | None = None
    updated_at: datetime | None = None


class InventoryListOut(CamelModel):
    items: list[InventoryOut] = Field(alias="list")
    total: int
    page: int
    page_size: int


class StockChangeOut(InventoryOut):
    """Record summary returned by adjust, inbound and outbound."""

    before_stock: int
    after_stock: int
    log_id: str


class BatchItemResult(CamelModel):
    material_id: str
    log_id: str | None = None
    before_stock: int | None = None
    after_stock: int | None = None
    quantity: int | None = None
    code: str | None = None
    message: str | None = None


class BatchResultOut(CamelModel):
    batch_id: str
    success_count: int
    failed_count: int
    success_list: list[BatchItemResult] = []
    failed_list: list[BatchItemResult] = []


class ShelveResultOut(CamelModel):
    updated: int
    status: str
