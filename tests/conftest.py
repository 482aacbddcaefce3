"""Shared test fixtures.

Every test gets its own SQLite file database under tmp_path, so ledgers that
open several sessions (including from worker threads) see the same data and
tests never pollute each other.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session, sessionmaker

from inventory_ledger.api.auth import get_current_user
from inventory_ledger.api.inventory import get_ledger
from inventory_ledger.database import get_db, init_db, make_engine
from inventory_ledger.main import app
from inventory_ledger.models.inventory import Inventory, InventoryStatus, utcnow
from inventory_ledger.models.material import Category, Material
from inventory_ledger.models.user import User
from inventory_ledger.services.auth_service import Operator, hash_password
from inventory_ledger.services.inventory_service import InventoryLedger, MaterialLocks


# ─── Database ────────────────────────────────────────────────────────────────


@pytest.fixture()
def engine(tmp_path):
    eng = make_engine(f"sqlite:///{tmp_path / 'ledger.db'}")
    init_db(eng)
    yield eng
    eng.dispose()


@pytest.fixture()
def session_factory(engine) -> sessionmaker:
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture()
def db(session_factory) -> Generator[Session, None, None]:
    session = session_factory()
    yield session
    session.close()


@pytest.fixture()
def ledger(session_factory) -> InventoryLedger:
    return InventoryLedger(session_factory, locks=MaterialLocks())


@pytest.fixture()
def operator() -> Operator:
    return Operator(operator_id="u-1", operator_name="Alice")


# ─── Catalogue & inventory seed data ─────────────────────────────────────────


@pytest.fixture()
def catalogue(db: Session) -> dict[str, Material]:
    db.add_all([
        Category(category_id="C001", name="宝石类"),
        Category(category_id="C002", name="金属配件"),
    ])
    materials = {
        "M001": Material(material_id="M001", name="红玛瑙", category_id="C001"),
        "M002": Material(material_id="M002", name="白水晶", category_id="C001"),
        "M003": Material(material_id="M003", name="银扣", category_id="C002"),
    }
    db.add_all(materials.values())
    db.commit()
    return materials


def seed_inventory(
    db: Session,
    material_id: str,
    stock: int = 0,
    price: str = "0.00",
    status: InventoryStatus = InventoryStatus.OFF_SHELF,
    created_at: datetime | None = None,
) -> Inventory:
    now = created_at or utcnow()
    record = Inventory(
        material_id=material_id,
        stock=stock,
        price=Decimal(price),
        status=status,
        created_at=now,
        updated_at=now,
    )
    db.add(record)
    db.commit()
    db.refresh(record)
    return record


@pytest.fixture()
def stocked(db: Session, catalogue) -> Inventory:
    """M001 with 100 units at 10.00."""
    return seed_inventory(db, "M001", stock=100, price="10.00")


# ─── HTTP ────────────────────────────────────────────────────────────────────


@pytest.fixture()
def admin_user(db: Session) -> User:
    user = User(
        username="test_admin",
        display_name="Test Admin",
        password_hash=hash_password("pass"),
        role="admin",
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture()
def client(db: Session, ledger: InventoryLedger, admin_user: User) -> Generator[TestClient, None, None]:
    """TestClient wired to the per-test database, authenticated as admin."""

    def _override_get_db() -> Generator[Session, None, None]:
        yield db

    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_ledger] = lambda: ledger
    app.dependency_overrides[get_current_user] = lambda: admin_user
    yield TestClient(app)
    app.dependency_overrides.clear()
