from datetime import date, datetime

from pydantic import Field

from inventory_ledger.schemas.inventory import CamelModel


class InventoryLogOut(CamelModel):
    log_id: str
    operator_id: str
    operator_name: str
    material_id: str
    material_name: str
    operation_type: str
    before_value: str
    after_value: str
    remark: str | None = None
    operation_date: date | None = None
    batch_id: str | None = None
    created_at: datetime


class InventoryLogListOut(CamelModel):
    items: list[InventoryLogOut] = Field(alias="list")
    total: int
    page: int
    page_size: int


class InventoryLogQuery(CamelModel):
    page: int = 1
    page_size: int = 10
    operator_name: str | None = None
    material_name: str | None = None
    material_id: str | None = None
    operation_type: str | None = None
    start_date: date | None = None
    end_date: date | None = None


class PurgeRequest(CamelModel):
    older_than_days: int | None = None


class PurgeResultOut(CamelModel):
    deleted: int
    cutoff: datetime
