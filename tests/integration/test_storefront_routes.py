"""Integration tests for the public catalogue, cart and checkout routes."""

from datetime import datetime, timedelta

import pytest

from petshop.schemas.cart import CartItem
from petshop.services.cart import dump_cart
from tests.factories import create_category, create_order, create_product, create_user

VALID_CHECKOUT = {
    "customer": "Ana Perez",
    "email": "ana@example.com",
    "phone": "+56 9 1234 5678",
    "address": "Av. Siempre Viva 742",
}


@pytest.fixture
def catalog(run):
    """Two active categories, one inactive, and a handful of products."""
    base = datetime(2024, 1, 1)
    food = run(create_category, "Alimento")
    toys = run(create_category, "Juguetes")
    run(create_category, "Archivados", active=False)
    products = {
        "croquetas": run(create_product, food.id, "Croquetas", price="20.00",
                         description="Alimento seco para perro", created_at=base),
        "snack": run(create_product, food.id, "Snack Dental", price="5.50", created_at=base + timedelta(days=1)),
        "pelota": run(create_product, toys.id, "Pelota", price="3.00",
                      description="Juguete de caucho", created_at=base + timedelta(days=2)),
        "oculto": run(create_product, toys.id, "Oculto", price="1.00", active=False),
    }
    return {"food": food, "toys": toys, "products": products}


# =============================================================================
# Catalogue
# =============================================================================


class TestCatalogue:
    def test_categories_are_active_and_sorted(self, client, catalog):
        names = [c["name"] for c in client.get("/api/categories").json()["categories"]]
        assert names == ["Alimento", "Juguetes"]

    def test_products_default_sort_is_newest_first(self, client, catalog):
        body = client.get("/api/products").json()
        assert [p["name"] for p in body["items"]] == ["Pelota", "Snack Dental", "Croquetas"]
        assert body["total"] == 3
        assert body["total_pages"] == 1

    @pytest.mark.parametrize(
        "sort, expected",
        [
            ("price_asc", ["Pelota", "Snack Dental", "Croquetas"]),
            ("price_desc", ["Croquetas", "Snack Dental", "Pelota"]),
            ("name", ["Croquetas", "Pelota", "Snack Dental"]),
        ],
    )
    def test_sorting(self, client, catalog, sort, expected):
        items = client.get("/api/products", params={"sort": sort}).json()["items"]
        assert [p["name"] for p in items] == expected

    def test_filter_by_category_slug_and_id(self, client, catalog):
        by_slug = client.get("/api/products", params={"cat": "juguetes"}).json()
        by_id = client.get("/api/products", params={"cat": str(catalog["toys"].id)}).json()
        assert [p["name"] for p in by_slug["items"]] == ["Pelota"]
        assert by_id["items"] == by_slug["items"]

    def test_query_needs_two_characters(self, client, catalog):
        assert client.get("/api/products", params={"q": "c"}).json()["total"] == 3
        assert [p["name"] for p in client.get("/api/products", params={"q": "caucho"}).json()["items"]] == ["Pelota"]

    def test_per_is_clamped(self, client, catalog):
        body = client.get("/api/products", params={"per": 0}).json()
        assert body["per"] == 1
        assert body["total_pages"] == 3
        assert client.get("/api/products", params={"per": 500}).json()["per"] == 60

    def test_product_detail_by_slug_and_id(self, client, catalog):
        pelota = catalog["products"]["pelota"]
        by_slug = client.get("/api/products/pelota")
        by_id = client.get(f"/api/products/{pelota.id}")

        assert by_slug.status_code == 200
        assert by_slug.json()["category"]["slug"] == "juguetes"
        assert by_slug.headers["cache-control"] == "public, s-maxage=300, stale-while-revalidate=60"
        assert by_id.json()["id"] == pelota.id

    def test_inactive_product_is_hidden(self, client, catalog):
        response = client.get("/api/products/oculto")
        assert response.status_code == 404
        assert response.json()["code"] == "NOT_FOUND"

    def test_numeric_slug_is_found_when_no_id_matches(self, client, run, catalog):
        edition = run(create_category, "Edicion 2024", slug="2024")
        run(create_product, edition.id, "Calendario", slug="9999")

        detail = client.get("/api/products/9999")
        assert detail.status_code == 200
        assert detail.json()["name"] == "Calendario"

        listed = client.get("/api/products", params={"cat": "2024"}).json()
        assert [p["name"] for p in listed["items"]] == ["Calendario"]

    def test_search(self, client, catalog):
        assert client.get("/api/search", params={"q": "a"}).json() == {"items": []}
        names = [p["name"] for p in client.get("/api/search", params={"q": "perro"}).json()["items"]]
        assert names == ["Croquetas"]

    def test_contact(self, client):
        ok = client.post("/api/contact", json={"name": "Ana", "email": "ana@example.com", "message": "Hola, tienen stock?"})
        assert ok.status_code == 201
        assert ok.json() == {"ok": True}

        bad = client.post("/api/contact", json={"name": "A", "email": "x", "message": "corto"})
        assert bad.status_code == 422
        assert set(bad.json()["fields"]) == {"name", "email", "message"}


# =============================================================================
# Cart
# =============================================================================


class TestCart:
    def test_empty_cart(self, client):
        assert client.get("/api/cart").json() == {"items": [], "enriched": [], "subtotal": 0}

    def test_add_update_remove(self, client, catalog):
        croquetas = catalog["products"]["croquetas"]
        pelota = catalog["products"]["pelota"]

        client.post("/api/cart", json={"product_id": croquetas.id, "qty": 2})
        cart = client.post("/api/cart", json={"product_id": pelota.id}).json()
        assert cart["subtotal"] == pytest.approx(43.0)
        assert [line["qty"] for line in cart["enriched"]] == [2, 1]

        cart = client.put("/api/cart", json={"product_id": pelota.id, "qty": 4}).json()
        assert cart["subtotal"] == pytest.approx(52.0)

        cart = client.request("DELETE", "/api/cart", json={"product_id": croquetas.id}).json()
        assert [line["product_id"] for line in cart["items"]] == [pelota.id]
        assert client.get("/api/cart").json()["subtotal"] == pytest.approx(12.0)

    def test_add_unknown_product(self, client):
        response = client.post("/api/cart", json={"product_id": 999, "qty": 1})
        assert response.status_code == 404

    def test_inactive_product_can_be_added(self, client, catalog):
        oculto = catalog["products"]["oculto"]

        response = client.post("/api/cart", json={"product_id": oculto.id, "qty": 1})

        assert response.status_code == 200
        assert [line["product_id"] for line in response.json()["enriched"]] == [oculto.id]

    def test_update_product_not_in_cart(self, client, catalog):
        response = client.put("/api/cart", json={"product_id": catalog["products"]["pelota"].id, "qty": 1})
        assert response.status_code == 404
        assert response.json()["code"] == "NOT_IN_CART"

    def test_line_is_clamped_and_total_limited(self, client, catalog):
        croquetas = catalog["products"]["croquetas"]
        pelota = catalog["products"]["pelota"]
        snack = catalog["products"]["snack"]

        cart = client.post("/api/cart", json={"product_id": croquetas.id, "qty": 80}).json()
        assert cart["items"][0]["qty"] == 50
        client.post("/api/cart", json={"product_id": pelota.id, "qty": 50})

        response = client.post("/api/cart", json={"product_id": snack.id, "qty": 1})
        assert response.status_code == 400
        assert response.json()["code"] == "CART_LIMIT"

    def test_deleted_products_drop_out(self, client, catalog):
        client.cookies.set("cart", dump_cart([
            CartItem(product_id=catalog["products"]["pelota"].id, qty=1),
            CartItem(product_id=12345, qty=3),
        ]))
        cart = client.get("/api/cart").json()
        assert len(cart["items"]) == 2
        assert len(cart["enriched"]) == 1
        assert cart["subtotal"] == pytest.approx(3.0)


# =============================================================================
# Checkout and my orders
# =============================================================================


class TestCheckout:
    def test_validation_errors_are_field_keyed(self, client):
        response = client.post("/api/orders", json={"customer": "A", "email": "bad", "phone": "abc", "address": ""})
        assert response.status_code == 422
        assert set(response.json()["fields"]) == {"customer", "email", "phone", "address"}

    def test_empty_cart(self, client):
        response = client.post("/api/orders", json=VALID_CHECKOUT)
        assert response.status_code == 400
        assert response.json()["code"] == "CART_EMPTY"

    def test_no_valid_items(self, client):
        client.cookies.set("cart", dump_cart([CartItem(product_id=777, qty=1)]))
        response = client.post("/api/orders", json=VALID_CHECKOUT)
        assert response.status_code == 400
        assert response.json()["code"] == "NO_VALID_ITEMS"

    def test_creates_order_snapshot_and_clears_cart(self, client, catalog):
        croquetas = catalog["products"]["croquetas"]
        snack = catalog["products"]["snack"]
        client.post("/api/cart", json={"product_id": croquetas.id, "qty": 2})
        client.post("/api/cart", json={"product_id": snack.id, "qty": 3})

        response = client.post("/api/orders", json=VALID_CHECKOUT)

        assert response.status_code == 201
        order = response.json()
        assert order["status"] == "PENDING"
        assert order["subtotal"] == pytest.approx(56.5)
        assert order["total"] == order["subtotal"]
        assert order["subtotal"] == pytest.approx(sum(i["unit_price"] * i["qty"] for i in order["items"]))
        assert order["user_id"] is None
        assert {i["slug"] for i in order["items"]} == {"croquetas", "snack-dental"}
        assert client.get("/api/cart").json()["items"] == []

    def test_logged_in_checkout_is_listed_in_mine(self, client, run, login, catalog):
        run(create_user, "cliente@example.com")
        login("cliente@example.com")
        client.post("/api/cart", json={"product_id": catalog["products"]["pelota"].id, "qty": 2})
        order_id = client.post("/api/orders", json=VALID_CHECKOUT).json()["id"]

        mine = client.get("/api/orders/mine").json()
        assert mine["total"] == 1
        assert mine["items"][0]["id"] == order_id
        assert mine["items"][0]["items_count"] == 2

        detail = client.get(f"/api/orders/mine/{order_id}")
        assert detail.status_code == 200
        assert detail.json()["items"][0]["total"] == pytest.approx(6.0)


class TestMyOrders:
    def test_requires_session(self, client):
        response = client.get("/api/orders/mine")
        assert response.status_code == 401
        assert response.json()["code"] == "UNAUTHENTICATED"

    def test_only_own_orders_and_status_filter(self, client, run, login, catalog):
        me = run(create_user, "me@example.com")
        other = run(create_user, "other@example.com")
        pelota = catalog["products"]["pelota"]
        run(create_order, [(pelota, 1)], user_id=me.id, status="PAID")
        run(create_order, [(pelota, 1)], user_id=me.id)
        foreign = run(create_order, [(pelota, 1)], user_id=other.id)
        login("me@example.com")

        assert client.get("/api/orders/mine").json()["total"] == 2
        paid = client.get("/api/orders/mine", params={"status": "paid"}).json()
        assert [o["status"] for o in paid["items"]] == ["PAID"]
        assert client.get(f"/api/orders/mine/{foreign.id}").status_code == 404

    def test_per_is_clamped(self, client, run, login):
        run(create_user, "me@example.com")
        login("me@example.com")
        assert client.get("/api/orders/mine", params={"per": 1000}).json()["per"] == 100
