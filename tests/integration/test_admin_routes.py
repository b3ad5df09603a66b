"""Integration tests for the permission-gated admin API."""

from datetime import datetime

import pytest

from petshop.core.permissions import permission_cache
from tests.factories import create_category, create_order, create_product, create_role, create_user


@pytest.fixture
def admin(run, login):
    user = run(create_user, "admin@example.com", role="ADMIN", roles=["admin"])
    login("admin@example.com")
    return user


# =============================================================================
# Guards
# =============================================================================


class TestGuards:
    def test_anonymous_gets_401(self, client):
        response = client.get("/api/admin/categories")
        assert response.status_code == 401
        assert response.json() == {"error": "UNAUTHENTICATED", "code": "UNAUTHENTICATED"}

    def test_missing_permission_gets_403(self, client, run, login):
        run(create_user, "viewer@example.com", roles=["viewer"])
        login("viewer@example.com")

        assert client.get("/api/admin/categories").status_code == 200
        response = client.get("/api/admin/orders")
        assert response.status_code == 403
        assert response.json()["code"] == "FORBIDDEN"

    def test_admin_access_passes_every_check(self, client, run, login):
        run(create_role, "super", ["admin:access"])
        run(create_user, "super@example.com", roles=["super"])
        login("super@example.com")

        assert client.get("/api/admin/audit").status_code == 200
        assert client.get("/api/admin/users").status_code == 200


# =============================================================================
# Categories and products
# =============================================================================


class TestCatalogAdmin:
    def test_create_category_derives_slug_and_audits(self, client, admin):
        response = client.post("/api/admin/categories", json={"name": "Higiene Canina"})

        assert response.status_code == 201
        assert response.json()["slug"] == "higiene-canina"

        audit = client.get("/api/admin/audit").json()["items"]
        assert audit[0]["action"] == "category.create"
        assert audit[0]["user_email"] == "admin@example.com"
        assert audit[0]["metadata"] == {"name": "Higiene Canina"}

    def test_duplicate_slug(self, client, run, admin):
        run(create_category, "Alimento")
        response = client.post("/api/admin/categories", json={"name": "Alimento"})
        assert response.status_code == 409
        assert response.json()["code"] == "SLUG_TAKEN"

    def test_non_ascii_name_gets_generated_slug(self, client, run, admin):
        response = client.post("/api/admin/categories", json={"name": "猫粮"})

        assert response.status_code == 201
        category = response.json()
        assert category["name"] == "猫粮"
        assert category["slug"].startswith("category-")

        renamed = client.put(f"/api/admin/categories/{category['id']}", json={"name": "狗粮"})
        assert renamed.status_code == 200
        assert renamed.json()["slug"] == category["slug"]

        product = client.post(
            "/api/admin/products",
            json={"name": "冻干鸡肉", "price": "12.00", "category_id": category["id"]},
        )
        assert product.status_code == 201
        assert product.json()["slug"].startswith("product-")

    def test_list_and_search_limits_are_clamped(self, client, run, admin):
        cat = run(create_category, "Alimento")
        run(create_product, cat.id, "Croquetas")

        assert client.get("/api/admin/categories", params={"limit": 500}).json()["limit"] == 200
        assert client.get("/api/admin/products", params={"limit": 0}).json()["limit"] == 1
        assert client.get("/api/admin/users", params={"limit": 999}).json()["limit"] == 200

        categories = client.get("/api/admin/categories/search", params={"q": "ali", "limit": 500})
        assert categories.status_code == 200
        assert [c["slug"] for c in categories.json()["items"]] == ["alimento"]

        products = client.get("/api/admin/products/search", params={"q": "cro", "limit": -3})
        assert products.status_code == 200
        assert [p["name"] for p in products.json()["items"]] == ["Croquetas"]

    def test_delete_non_empty_category_is_refused(self, client, run, admin):
        cat = run(create_category, "Alimento")
        run(create_product, cat.id)

        response = client.delete(f"/api/admin/categories/{cat.id}")

        assert response.status_code == 400
        assert response.json()["code"] == "CATEGORY_NOT_EMPTY"

    def test_category_list_counts_products(self, client, run, admin):
        cat = run(create_category, "Alimento")
        run(create_product, cat.id, "A")
        run(create_product, cat.id, "B")
        items = client.get("/api/admin/categories").json()["items"]
        assert items[0]["products_count"] == 2

    def test_product_lifecycle(self, client, run, admin, upload_root):
        cat = run(create_category, "Juguetes")
        image = upload_root / "items" / "old.png"
        image.parent.mkdir(parents=True)
        image.write_bytes(b"png")

        created = client.post(
            "/api/admin/products",
            json={"name": "Pelota XL", "price": "7.90", "category_id": cat.id, "image_url": "/items/old.png"},
        )
        assert created.status_code == 201
        product = created.json()
        assert product["slug"] == "pelota-xl"
        assert product["category"]["name"] == "Juguetes"

        updated = client.put(f"/api/admin/products/{product['id']}", json={"price": "8.50", "active": False})
        assert updated.json()["price"] == pytest.approx(8.5)
        assert updated.json()["active"] is False

        assert client.delete(f"/api/admin/products/{product['id']}").json() == {"ok": True}
        assert not image.exists()
        assert client.get(f"/api/admin/products/{product['id']}").status_code == 404

    @pytest.mark.parametrize(
        "payload",
        [
            {"name": "Sin precio", "category_id": 1},
            {"name": "Precio cero", "price": "0", "category_id": 1},
            {"price": "1.00", "category_id": 1},
        ],
    )
    def test_product_validation(self, client, admin, payload):
        response = client.post("/api/admin/products", json=payload)
        assert response.status_code == 422
        assert response.json()["code"] == "VALIDATION"

    def test_product_requires_existing_category(self, client, admin):
        response = client.post("/api/admin/products", json={"name": "X", "price": "1.00", "category_id": 999})
        assert response.status_code == 400
        assert response.json()["code"] == "INVALID_CATEGORY"


# =============================================================================
# Orders
# =============================================================================


class TestOrderAdmin:
    @pytest.fixture
    def order(self, run):
        cat = run(create_category, "Alimento")
        product = run(create_product, cat.id, price="9.99")
        return run(create_order, [(product, 2)], email="cliente@example.com")

    def test_list_and_search(self, client, admin, order):
        body = client.get("/api/admin/orders", params={"q": "cliente@"}).json()
        assert body["total"] == 1
        assert body["orders"][0]["id"] == order.id

        by_id = client.get("/api/admin/orders", params={"q": str(order.id)}).json()
        assert by_id["orders"][0]["total"] == pytest.approx(19.98)

    def test_page_size_is_clamped(self, client, admin, order):
        response = client.get("/api/admin/orders", params={"limit": 500})

        assert response.status_code == 200
        assert response.json()["page_size"] == 100
        assert client.get("/api/admin/orders", params={"limit": 0}).json()["page_size"] == 1

    def test_status_update_is_audited(self, client, admin, order):
        response = client.patch(f"/api/admin/orders/{order.id}", json={"status": "paid"})

        assert response.json() == {"ok": True, "unchanged": False, "from": "PENDING", "to": "PAID"}
        entry = client.get("/api/admin/audit").json()["items"][0]
        assert entry["action"] == "order.status.update"
        assert entry["entity_id"] == str(order.id)
        assert entry["metadata"] == {"from": "PENDING", "to": "PAID"}

    def test_unchanged_status(self, client, admin, order):
        response = client.put(f"/api/admin/orders/{order.id}", json={"status": "PENDING"})
        assert response.json() == {"ok": True, "unchanged": True}

    def test_invalid_status(self, client, admin, order):
        response = client.patch(f"/api/admin/orders/{order.id}", json={"status": "LOST"})
        assert response.status_code == 400
        assert response.json()["code"] == "INVALID_STATUS"

    def test_missing_order(self, client, admin):
        assert client.patch("/api/admin/orders/999", json={"status": "PAID"}).status_code == 404


# =============================================================================
# Users, roles and permissions
# =============================================================================


class TestRbacAdmin:
    def test_assign_role_takes_effect_immediately(self, client, run, admin):
        target = run(create_user, "staff@example.com")
        roles = {r["name"]: r for r in client.get("/api/admin/roles").json()}

        permission_cache.set(target.id, [])

        response = client.post(f"/api/admin/roles/{roles['support']['id']}/assign", json={"user_id": target.id})

        assert response.json() == {"ok": True}
        assert permission_cache.get(target.id) is None
        detail = client.get("/api/admin/roles/support").json()
        assert target.id in detail["users"]

    def test_revoke_role(self, client, run, admin):
        target = run(create_user, "staff@example.com", roles=["viewer"])
        viewer = client.get("/api/admin/roles/viewer").json()
        permission_cache.set(target.id, ["product:read"])

        response = client.delete(f"/api/admin/roles/{viewer['id']}/users/{target.id}")

        assert response.status_code == 200
        assert permission_cache.get(target.id) is None
        assert target.id not in client.get(f"/api/admin/roles/{viewer['id']}").json()["users"]

    def test_create_role_defaults_label_and_rejects_duplicates(self, client, admin):
        created = client.post("/api/admin/roles", json={"name": "Editor", "permissions": ["product:update"]})
        assert created.status_code == 201
        assert created.json()["label"] == "EDITOR"
        assert created.json()["permissions"] == ["product:update"]

        duplicate = client.post("/api/admin/roles", json={"name": "editor"})
        assert duplicate.status_code == 409
        assert duplicate.json()["code"] == "ROLE_EXISTS"

    def test_unknown_permission_is_rejected(self, client, admin):
        response = client.post("/api/admin/roles", json={"name": "x", "permissions": ["nope:nope"]})
        assert response.status_code == 400

    def test_role_update_invalidates_everyone(self, client, run, admin):
        role = run(create_role, "catalog", ["product:read"])
        permission_cache.set(12345, ["product:read"])

        response = client.put(f"/api/admin/roles/{role.id}", json={"permissions": ["product:read", "product:update"]})

        assert response.json()["permissions"] == ["product:read", "product:update"]
        assert permission_cache.get(12345) is None

    def test_role_changes_are_audited(self, client, admin):
        client.post("/api/admin/roles", json={"name": "temp"})
        actions = [e["action"] for e in client.get("/api/admin/audit").json()["items"]]
        assert actions[0] == "role.create"

    def test_update_user_replaces_roles(self, client, run, admin):
        target = run(create_user, "staff@example.com", roles=["viewer"])
        roles = {r["name"]: r["id"] for r in client.get("/api/admin/roles").json()}
        permission_cache.set(target.id, ["product:read"])

        response = client.put(f"/api/admin/users/{target.id}", json={"role_ids": [roles["support"]]})

        assert response.json()["role_ids"] == [roles["support"]]
        assert permission_cache.get(target.id) is None

    def test_create_user_duplicate_email(self, client, admin):
        first = client.post("/api/admin/users", json={"email": "new@example.com", "name": "New"})
        assert first.status_code == 201
        second = client.post("/api/admin/users", json={"email": "new@example.com"})
        assert second.status_code == 409
        assert second.json()["code"] == "EMAIL_TAKEN"

    def test_user_search(self, client, run, admin):
        run(create_user, "maria@example.com", name="Maria")
        items = client.get("/api/admin/users/search", params={"q": "mari"}).json()["items"]
        assert [u["email"] for u in items] == ["maria@example.com"]

    def test_permission_catalogue_and_invalidate(self, client, admin):
        keys = [p["key"] for p in client.get("/api/admin/permissions").json()]
        assert "audit:read" in keys and "admin:access" in keys

        assert client.post("/api/admin/permissions/invalidate", json={"user_id": 5}).json() == {
            "ok": True, "scope": "single",
        }
        assert client.post("/api/admin/permissions/invalidate", json={}).json()["scope"] == "all"


# =============================================================================
# Audit log
# =============================================================================


class TestAuditLog:
    def test_cursor_pagination_and_query(self, client, admin):
        for name in ["Uno", "Dos", "Tres"]:
            client.post("/api/admin/categories", json={"name": name})

        first = client.get("/api/admin/audit", params={"limit": 2}).json()
        assert len(first["items"]) == 2
        assert first["next_cursor"] == first["items"][-1]["id"]

        second = client.get("/api/admin/audit", params={"limit": 2, "cursor": first["next_cursor"]}).json()
        assert len(second["items"]) == 1
        assert second["next_cursor"] is None

        ids = [e["id"] for e in first["items"] + second["items"]]
        assert ids == sorted(ids, reverse=True)

        by_email = client.get("/api/admin/audit", params={"q": "ADMIN@EXAMPLE"}).json()
        assert len(by_email["items"]) == 3
