import uuid
from datetime import date, datetime
from enum import Enum as PyEnum

from sqlalchemy import Date, DateTime, Enum, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from inventory_ledger.database import Base
from inventory_ledger.models.inventory import utcnow


class OperationType(str, PyEnum):
    UPDATE_STOCK = "update_stock"
    UPDATE_PRICE = "update_price"
    INBOUND = "inbound"
    OUTBOUND = "outbound"


class InventoryLog(Base):
    """Append-only audit trail: one row per successful inventory mutation.

    Rows are never updated. They outlive the inventory record they describe,
    so material_id is not a foreign key.
    """

    __tablename__ = "inventory_logs"

    log_id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    operator_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
    operator_name: Mapped[str] = mapped_column(String, nullable=False)
    material_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
    material_name: Mapped[str] = mapped_column(String, nullable=False, default="")
    operation_type: Mapped[str] = mapped_column(
        Enum(OperationType, values_callable=lambda x: [e.value for e in x]),
        nullable=False,
    )
    before_value: Mapped[str] = mapped_column(Text, nullable=False)
    after_value: Mapped[str] = mapped_column(Text, nullable=False)
    remark: Mapped[str | None] = mapped_column(Text, nullable=True)
    operation_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    batch_id: Mapped[str | None] = mapped_column(String, nullable=True, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, index=True)

    __table_args__ = (
        Index("ix_inventory_logs_material_created", "material_id", "created_at"),
    )
