from dataclasses import dataclass

from sqlalchemy.orm import Session

from inventory_ledger.models.material import Category, Material


@dataclass(frozen=True)
class MaterialInfo:
    material_id: str
    name: str
    category_id: str = ""
    category_name: str = ""


def lookup_material(db: Session, material_id: str) -> MaterialInfo | None:
    """Name and category of a material, or None when the catalogue has no entry.

    Only used to label inventory rows and audit entries; a missing material
    never blocks a stock mutation.
    """
    row = (
        db.query(Material, Category.name)
        .outerjoin(Category, Category.category_id == Material.category_id)
        .filter(Material.material_id == material_id)
        .first()
    )
    if not row:
        return None
    material, category_name = row
    return MaterialInfo(
        material_id=material.material_id,
        name=material.name,
        category_id=material.category_id or "",
        category_name=category_name or "",
    )
