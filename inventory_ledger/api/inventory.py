from decimal import Decimal

from fastapi import APIRouter, Depends, Query

from inventory_ledger.api.auth import get_current_user, get_operator
from inventory_ledger.database import SessionLocal
from inventory_ledger.schemas.inventory import (
    BatchAdjust,
    BatchInbound,
    BatchOutbound,
    BatchResultOut,
    InventoryAdjust,
    InventoryCreate,
    InventoryInbound,
    InventoryListOut,
    InventoryListQuery,
    InventoryOut,
    InventoryOutbound,
    InventoryUpdate,
    ShelveRequest,
    ShelveResultOut,
    StockChangeOut,
)
from inventory_ledger.services.auth_service import Operator
from inventory_ledger.services.inventory_service import InventoryLedger

router = APIRouter(prefix="/inventory", tags=["Inventory"])


def get_ledger() -> InventoryLedger:
    return InventoryLedger(SessionLocal)


@router.get("", response_model=InventoryListOut)
def list_inventory(
    page: int = 1,
    page_size: int = Query(20, alias="pageSize"),
    keyword: str | None = None,
    category_id: str | None = Query(None, alias="categoryId"),
    status: str | None = None,
    stock_min: int | None = Query(None, alias="stockMin"),
    stock_max: int | None = Query(None, alias="stockMax"),
    value_min: Decimal | None = Query(None, alias="valueMin"),
    value_max: Decimal | None = Query(None, alias="valueMax"),
    sort_by: str | None = Query(None, alias="sortBy"),
    sort_order: str = Query("desc", alias="sortOrder"),
    ledger: InventoryLedger = Depends(get_ledger),
):
    query = InventoryListQuery(
        page=page,
        page_size=page_size,
        keyword=keyword,
        category_id=category_id,
        status=status or None,
        stock_min=stock_min,
        stock_max=stock_max,
        value_min=value_min,
        value_max=value_max,
        sort_by=sort_by or None,
        sort_order=sort_order,
    )
    return ledger.list_inventory(query)


@router.post("", response_model=InventoryOut, status_code=201, dependencies=[Depends(get_current_user)])
def create_inventory(data: InventoryCreate, ledger: InventoryLedger = Depends(get_ledger)):
    return ledger.create_inventory(data.material_id)


@router.post("/adjust", response_model=StockChangeOut)
def adjust(
    data: InventoryAdjust,
    ledger: InventoryLedger = Depends(get_ledger),
    operator: Operator = Depends(get_operator),
):
    return ledger.adjust(data, operator)


@router.post("/inbound", response_model=StockChangeOut)
def inbound(
    data: InventoryInbound,
    ledger: InventoryLedger = Depends(get_ledger),
    operator: Operator = Depends(get_operator),
):
    return ledger.inbound(data, operator)


@router.post("/outbound", response_model=StockChangeOut)
def outbound(
    data: InventoryOutbound,
    ledger: InventoryLedger = Depends(get_ledger),
    operator: Operator = Depends(get_operator),
):
    return ledger.outbound(data, operator)


@router.post("/batch/adjust", response_model=BatchResultOut)
def batch_adjust(
    data: BatchAdjust,
    ledger: InventoryLedger = Depends(get_ledger),
    operator: Operator = Depends(get_operator),
):
    return ledger.batch_adjust(data, operator)


@router.post("/batch/inbound", response_model=BatchResultOut)
def batch_inbound(
    data: BatchInbound,
    ledger: InventoryLedger = Depends(get_ledger),
    operator: Operator = Depends(get_operator),
):
    return ledger.batch_inbound(data, operator)


@router.post("/batch/outbound", response_model=BatchResultOut)
def batch_outbound(
    data: BatchOutbound,
    ledger: InventoryLedger = Depends(get_ledger),
    operator: Operator = Depends(get_operator),
):
    return ledger.batch_outbound(data, operator)


@router.post("/shelve", response_model=ShelveResultOut, dependencies=[Depends(get_current_user)])
def shelve(data: ShelveRequest, ledger: InventoryLedger = Depends(get_ledger)):
    return ledger.shelve(data.inventory_ids)


@router.post("/unshelve", response_model=ShelveResultOut, dependencies=[Depends(get_current_user)])
def unshelve(data: ShelveRequest, ledger: InventoryLedger = Depends(get_ledger)):
    return ledger.unshelve(data.inventory_ids)


# Same path template, different keys: reads address a record by materialId,
# edits by inventoryId.
@router.get("/{material_id}", response_model=InventoryOut)
def get_inventory(material_id: str, ledger: InventoryLedger = Depends(get_ledger)):
    return ledger.get_inventory(material_id)


@router.patch("/{inventory_id}", response_model=InventoryOut)
def update_inventory(
    inventory_id: str,
    data: InventoryUpdate,
    ledger: InventoryLedger = Depends(get_ledger),
    operator: Operator = Depends(get_operator),
):
    return ledger.update_inventory(inventory_id, data, operator)
