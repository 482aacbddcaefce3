from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from inventory_ledger.database import Base


class Category(Base):
    __tablename__ = "categories"

    category_id: Mapped[str] = mapped_column(String, primary_key=True)
    name: Mapped[str] = mapped_column(String, nullable=False)


class Material(Base):
    """Read-only view of the material catalogue, used to label inventory rows."""

    __tablename__ = "materials"

    material_id: Mapped[str] = mapped_column(String, primary_key=True)
    name: Mapped[str] = mapped_column(String, nullable=False, index=True)
    category_id: Mapped[str] = mapped_column(String, default="", index=True)
