from datetime import date

from fastapi import APIRouter, Depends, Query

from inventory_ledger.api.auth import require_admin
from inventory_ledger.api.inventory import get_ledger
from inventory_ledger.models.user import User
from inventory_ledger.schemas.inventory_log import (
    InventoryLogListOut,
    InventoryLogQuery,
    PurgeRequest,
    PurgeResultOut,
)
from inventory_ledger.services.inventory_service import InventoryLedger

router = APIRouter(prefix="/inventory-logs", tags=["Inventory Logs"])


@router.get("", response_model=InventoryLogListOut)
def list_inventory_logs(
    page: int = 1,
    page_size: int = Query(10, alias="pageSize"),
    operator_name: str | None = Query(None, alias="operatorName"),
    material_name: str | None = Query(None, alias="materialName"),
    material_id: str | None = Query(None, alias="materialId"),
    operation_type: str | None = Query(None, alias="operationType"),
    start_date: date | None = Query(None, alias="startDate"),
    end_date: date | None = Query(None, alias="endDate"),
    ledger: InventoryLedger = Depends(get_ledger),
):
    query = InventoryLogQuery(
        page=page,
        page_size=page_size,
        operator_name=operator_name,
        material_name=material_name,
        material_id=material_id or None,
        operation_type=operation_type or None,
        start_date=start_date,
        end_date=end_date,
    )
    return ledger.list_logs(query)


@router.post("/purge", response_model=PurgeResultOut)
def purge_inventory_logs(
    data: PurgeRequest,
    ledger: InventoryLedger = Depends(get_ledger),
    admin: User = Depends(require_admin),
):
    return ledger.purge_logs(data.older_than_days)
