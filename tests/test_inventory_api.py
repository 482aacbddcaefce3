"""HTTP surface: camelCase payloads, error codes, auth."""

from __future__ import annotations

from datetime import datetime

import pytest
from fastapi.testclient import TestClient

from conftest import seed_inventory
from inventory_ledger.api.auth import get_current_user
from inventory_ledger.exceptions import AlreadyExists, ValidationError
from inventory_ledger.main import app
from inventory_ledger.models.inventory import InventoryStatus
from inventory_ledger.models.user import User
from inventory_ledger.services.auth_service import (
    Operator,
    create_user,
    ensure_default_admin,
    hash_password,
    operator_for,
)

API = "/api/v1"


class TestInventoryEndpoints:
    def test_list_shape_and_filters(self, client, db, catalogue) -> None:
        seed_inventory(db, "M001", stock=100, price="10.00", status=InventoryStatus.ON_SHELF)
        seed_inventory(db, "M002", stock=5)
        seed_inventory(db, "M003", stock=0)

        body = client.get(f"{API}/inventory", params={"pageSize": 2}).json()
        assert body["total"] == 3
        assert len(body["list"]) == 2
        assert body["pageSize"] == 2

        body = client.get(f"{API}/inventory", params={"categoryId": "C001", "stockMin": 1}).json()
        assert {i["materialId"] for i in body["list"]} == {"M001", "M002"}
        first = next(i for i in body["list"] if i["materialId"] == "M001")
        assert first["materialName"] == "红玛瑙"
        assert first["categoryName"] == "宝石类"
        assert first["status"] == "on_shelf"

        body = client.get(f"{API}/inventory", params={"keyword": "银"}).json()
        assert [i["materialId"] for i in body["list"]] == ["M003"]

    def test_status_filter(self, client, db, catalogue) -> None:
        seed_inventory(db, "M001", stock=1, status=InventoryStatus.ON_SHELF)
        seed_inventory(db, "M002", stock=1)

        body = client.get(f"{API}/inventory", params={"status": "on_shelf"}).json()
        assert [i["materialId"] for i in body["list"]] == ["M001"]
        body = client.get(f"{API}/inventory", params={"status": "off_shelf"}).json()
        assert [i["materialId"] for i in body["list"]] == ["M002"]

    def test_keyword_matches_material_id(self, client, db, catalogue) -> None:
        seed_inventory(db, "M001")
        seed_inventory(db, "M002")

        body = client.get(f"{API}/inventory", params={"keyword": "m002"}).json()
        assert [i["materialId"] for i in body["list"]] == ["M002"]

    def test_equal_created_at_ordered_by_inventory_id_across_pages(self, client, db, catalogue) -> None:
        same_moment = datetime(2025, 6, 1, 9, 30)
        records = [seed_inventory(db, m, created_at=same_moment) for m in ("M001", "M002", "M003")]
        expected = sorted(r.inventory_id for r in records)

        seen = []
        for page in (1, 2, 3):
            body = client.get(f"{API}/inventory", params={"page": page, "pageSize": 1}).json()
            seen += [i["inventoryId"] for i in body["list"]]
        assert seen == expected

    def test_sort_and_value_params(self, client, db, catalogue) -> None:
        seed_inventory(db, "M001", stock=10, price="3.00")
        seed_inventory(db, "M002", stock=2, price="50.00")

        body = client.get(f"{API}/inventory", params={"sortBy": "stockValue", "sortOrder": "desc"}).json()
        assert [i["materialId"] for i in body["list"]] == ["M002", "M001"]
        body = client.get(f"{API}/inventory", params={"valueMax": "50"}).json()
        assert [i["materialId"] for i in body["list"]] == ["M001"]
        assert client.get(f"{API}/inventory", params={"sortBy": "colour"}).status_code == 422

    def test_boolean_quantity_rejected(self, client, stocked) -> None:
        resp = client.post(
            f"{API}/inventory/adjust",
            json={"materialId": "M001", "adjustType": "add", "quantity": True, "reason": "盘点"},
        )
        assert resp.status_code == 422

        resp = client.post(f"{API}/inventory/outbound", json={"materialId": "M001", "quantity": True, "reason": "销售"})
        assert resp.status_code == 422

        resp = client.patch(f"{API}/inventory/{stocked.inventory_id}", json={"stock": True})
        assert resp.status_code == 422

        assert client.get(f"{API}/inventory/M001").json()["stock"] == 100
        assert client.get(f"{API}/inventory-logs").json()["total"] == 0

    def test_get_is_keyed_by_material_and_patch_by_record(self, client, stocked) -> None:
        assert client.get(f"{API}/inventory/{stocked.inventory_id}").status_code == 404
        assert client.patch(f"{API}/inventory/M001", json={"stock": 1}).status_code == 404
        assert client.patch(f"{API}/inventory/{stocked.inventory_id}", json={"stock": 1}).json()["materialId"] == "M001"

    def test_list_rejects_bad_page_size(self, client) -> None:
        resp = client.get(f"{API}/inventory", params={"pageSize": 500})
        assert resp.status_code == 422
        assert resp.json()["code"] == "VALIDATION_ERROR"
        assert resp.json()["errors"][0]["field"] == "pageSize"

    def test_create_then_duplicate(self, client, catalogue) -> None:
        resp = client.post(f"{API}/inventory", json={"materialId": "M002"})
        assert resp.status_code == 201
        assert resp.json()["stock"] == 0
        assert resp.json()["status"] == "off_shelf"

        resp = client.post(f"{API}/inventory", json={"materialId": "M002"})
        assert resp.status_code == 409
        assert resp.json()["code"] == "ALREADY_EXISTS"

    def test_adjust_returns_before_and_after(self, client, stocked) -> None:
        resp = client.post(
            f"{API}/inventory/adjust",
            json={"materialId": "M001", "adjustType": "subtract", "quantity": 30, "reason": "盘点"},
        )
        assert resp.status_code == 200
        body = resp.json()
        assert body["beforeStock"] == 100
        assert body["afterStock"] == 70
        assert body["logId"]

    def test_outbound_insufficient_is_409(self, client, stocked) -> None:
        resp = client.post(
            f"{API}/inventory/outbound", json={"materialId": "M001", "quantity": 101, "reason": "销售"}
        )
        assert resp.status_code == 409
        assert resp.json()["code"] == "INSUFFICIENT_STOCK"
        assert client.get(f"{API}/inventory/M001").json()["stock"] == 100

    def test_inbound_unknown_material_is_404(self, client, catalogue) -> None:
        resp = client.post(f"{API}/inventory/inbound", json={"materialId": "M404", "quantity": 1, "reason": "采购"})
        assert resp.status_code == 404
        assert resp.json()["code"] == "NOT_FOUND"

    def test_inbound_bad_reason_is_422(self, client, stocked) -> None:
        resp = client.post(f"{API}/inventory/inbound", json={"materialId": "M001", "quantity": 1, "reason": "销售"})
        assert resp.status_code == 422
        assert resp.json()["errors"] == [{"field": "reason", "message": "must be one of: 采购, 退货, 调拨, 盘盈, 其他"}]

    def test_inbound_price_serialized_as_string(self, client, stocked) -> None:
        resp = client.post(
            f"{API}/inventory/inbound",
            json={"materialId": "M001", "quantity": 100, "unitPrice": "2.00", "reason": "采购"},
        )
        assert resp.json()["price"] == "6.00"

    def test_patch_price(self, client, stocked) -> None:
        resp = client.patch(f"{API}/inventory/{stocked.inventory_id}", json={"price": "12.50"})
        assert resp.status_code == 200
        assert resp.json()["price"] == "12.50"

        logs = client.get(f"{API}/inventory-logs").json()["list"]
        assert logs[0]["operationType"] == "update_price"
        assert logs[0]["beforeValue"] == '"10.00"'
        assert logs[0]["afterValue"] == '"12.50"'

    def test_shelve_and_unshelve(self, client, stocked) -> None:
        resp = client.post(f"{API}/inventory/shelve", json={"inventoryIds": [stocked.inventory_id]})
        assert resp.json() == {"updated": 1, "status": "on_shelf"}
        assert client.get(f"{API}/inventory/M001").json()["status"] == "on_shelf"

        client.post(f"{API}/inventory/unshelve", json={"inventoryIds": [stocked.inventory_id]})
        assert client.get(f"{API}/inventory/M001").json()["status"] == "off_shelf"
        assert client.get(f"{API}/inventory-logs").json()["total"] == 0

    def test_shelve_unknown_id_is_404(self, client, stocked) -> None:
        resp = client.post(f"{API}/inventory/shelve", json={"inventoryIds": [stocked.inventory_id, "nope"]})
        assert resp.status_code == 404
        assert client.get(f"{API}/inventory/M001").json()["status"] == "off_shelf"

    def test_batch_outbound(self, client, stocked) -> None:
        resp = client.post(
            f"{API}/inventory/batch/outbound",
            json={"operations": [
                {"materialId": "M001", "quantity": 40, "reason": "销售"},
                {"materialId": "M001", "quantity": 80, "reason": "销售"},
            ]},
        )
        body = resp.json()
        assert body["successCount"] == 1
        assert body["failedCount"] == 1
        assert body["failedList"][0]["code"] == "INSUFFICIENT_STOCK"


class TestInventoryLogEndpoints:
    def test_logs_record_the_operator(self, client, stocked) -> None:
        client.post(
            f"{API}/inventory/outbound",
            json={"materialId": "M001", "quantity": 1, "reason": "销售", "customer": "ACME"},
        )
        body = client.get(f"{API}/inventory-logs", params={"operatorName": "test"}).json()
        assert body["total"] == 1
        entry = body["list"][0]
        assert entry["operatorName"] == "Test Admin"
        assert entry["materialName"] == "红玛瑙"
        assert entry["remark"] == "销售; customer: ACME"

    def test_purge_as_admin(self, client, stocked) -> None:
        resp = client.post(f"{API}/inventory-logs/purge", json={"olderThanDays": 30})
        assert resp.status_code == 200
        assert resp.json()["deleted"] == 0

    def test_purge_forbidden_for_staff(self, client, db) -> None:
        staff = User(username="clerk", display_name="Clerk", password_hash=hash_password("pw"), role="staff")
        db.add(staff)
        db.commit()
        app.dependency_overrides[get_current_user] = lambda: staff

        resp = client.post(f"{API}/inventory-logs/purge", json={})
        assert resp.status_code == 403


class TestAuth:
    def test_mutations_require_login(self, client, stocked) -> None:
        del app.dependency_overrides[get_current_user]
        resp = client.post(
            f"{API}/inventory/adjust",
            json={"materialId": "M001", "adjustType": "add", "quantity": 1, "reason": "盘点"},
        )
        assert resp.status_code == 401

    def test_record_management_requires_login(self, client, stocked) -> None:
        del app.dependency_overrides[get_current_user]
        assert client.post(f"{API}/inventory", json={"materialId": "M002"}).status_code == 401
        assert client.post(f"{API}/inventory/shelve", json={"inventoryIds": [stocked.inventory_id]}).status_code == 401
        assert client.post(f"{API}/inventory/unshelve", json={"inventoryIds": [stocked.inventory_id]}).status_code == 401

    def test_login_sets_cookie_and_identifies_operator(self, client, stocked) -> None:
        del app.dependency_overrides[get_current_user]
        resp = client.post(f"{API}/auth/login", json={"username": "test_admin", "password": "pass"})
        assert resp.status_code == 200
        assert "token" in resp.cookies

        me = client.get(f"{API}/auth/me")
        assert me.json()["username"] == "test_admin"

        client.post(
            f"{API}/inventory/adjust",
            json={"materialId": "M001", "adjustType": "add", "quantity": 1, "reason": "盘点"},
        )
        entry = client.get(f"{API}/inventory-logs").json()["list"][0]
        assert entry["operatorName"] == "Test Admin"

    def test_bearer_token_identifies_operator(self, client, stocked) -> None:
        token = client.post(f"{API}/auth/login", json={"username": "test_admin", "password": "pass"}).json()["token"]
        del app.dependency_overrides[get_current_user]
        client.cookies.clear()

        resp = client.get(f"{API}/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert resp.status_code == 200
        assert resp.json()["displayName"] == "Test Admin"

        resp = client.get(f"{API}/auth/me", headers={"Authorization": "Bearer not-a-jwt"})
        assert resp.status_code == 401

    def test_wrong_password(self, client) -> None:
        resp = client.post(f"{API}/auth/login", json={"username": "test_admin", "password": "nope"})
        assert resp.status_code == 401


class TestUsers:
    def test_default_admin_created_once(self, db) -> None:
        ensure_default_admin(db)
        ensure_default_admin(db)
        users = db.query(User).all()
        assert [(u.username, u.is_admin) for u in users] == [("admin", True)]

    def test_duplicate_username(self, db, admin_user) -> None:
        with pytest.raises(AlreadyExists):
            create_user(db, "test_admin", "pw")

    def test_unknown_role(self, db) -> None:
        with pytest.raises(ValidationError):
            create_user(db, "someone", "pw", role="owner")

    def test_operator_falls_back_to_username(self, db) -> None:
        user = create_user(db, "bob", "pw", display_name="")
        assert operator_for(user).operator_name == "bob"
        user.display_name = ""
        assert operator_for(user) == Operator(operator_id=user.id, operator_name="bob")

    def test_health(self) -> None:
        assert TestClient(app).get("/health").json() == {"status": "ok"}
