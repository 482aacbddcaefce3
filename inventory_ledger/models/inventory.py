import uuid
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum as PyEnum

from sqlalchemy import BigInteger, CheckConstraint, DateTime, Enum, Integer, String
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.types import TypeDecorator

from inventory_ledger.database import Base

CENT = Decimal("0.01")


def utcnow() -> datetime:
    """Naive UTC timestamp; stored columns carry no timezone."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_cents(value) -> int:
    return int(Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP) * 100)


class Money(TypeDecorator):
    """Two-place Decimal amount, persisted as integer cents on every dialect."""

    impl = BigInteger
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        return to_cents(value)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return (Decimal(value) / 100).quantize(CENT)


class InventoryStatus(str, PyEnum):
    ON_SHELF = "on_shelf"
    OFF_SHELF = "off_shelf"


class Inventory(Base):
    """Current stock, price and shelf status of one material."""

    __tablename__ = "inventories"

    inventory_id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    material_id: Mapped[str] = mapped_column(String, unique=True, index=True, nullable=False)
    price: Mapped[Decimal] = mapped_column("price_cents", Money, nullable=False, default=Decimal("0.00"))
    stock: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    status: Mapped[str] = mapped_column(
        Enum(InventoryStatus, values_callable=lambda x: [e.value for e in x]),
        default=InventoryStatus.OFF_SHELF,
        index=True,
    )
    version_id: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    # Concurrent writers from another session fail with StaleDataError
    __mapper_args__ = {"version_id_col": version_id}

    __table_args__ = (
        CheckConstraint("stock >= 0", name="ck_inventory_stock_non_negative"),
        CheckConstraint("price_cents >= 0", name="ck_inventory_price_non_negative"),
    )

    @property
    def status_value(self) -> str:
        return InventoryStatus(self.status).value
