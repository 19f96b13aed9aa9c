from decimal import Decimal

import pytest
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken

from catalog.models import Category, Ingredient, Product, RecipeItem
from orders.services.orders import create_order, submit_pending_takeaway, update_order_items
from stock.models import Lot
from stock.services.ledger import compute_stock, deduct, record_purchase
from .factories import (
    CategoryFactory,
    DiningTableFactory,
    IngredientFactory,
    ProductFactory,
    RecipeItemFactory,
    UserFactory,
)


def _auth_client(user):
    client = APIClient()
    token = RefreshToken.for_user(user).access_token
    client.credentials(HTTP_AUTHORIZATION=f"Bearer {token}")
    return client


@pytest.mark.django_db
def test_create_ingredient_with_opening_purchase():
    client = _auth_client(UserFactory())
    res = client.post(
        "/api/inventory/ingredients/",
        {
            "name": "Mozzarella",
            "unit": "kg",
            "minimum_stock": "2",
            "initial_quantity": "5",
            "initial_total_price": "40",
        },
        format="json",
    )
    assert res.status_code == 201
    assert Decimal(res.data["stock_quantity"]) == Decimal("5")
    assert Decimal(res.data["average_cost"]) == Decimal("8")
    assert res.data["below_minimum_since"] is None
    assert "initial_quantity" not in res.data

    lots = client.get(f"/api/inventory/ingredients/{res.data['id']}/lots/")
    assert lots.status_code == 200
    assert len(lots.data["lots"]) == 1
    assert Decimal(lots.data["lots"][0]["unit_cost"]) == Decimal("8")


@pytest.mark.django_db
def test_ingredient_cached_fields_are_read_only():
    ingredient = IngredientFactory()
    client = _auth_client(UserFactory())
    res = client.patch(
        f"/api/inventory/ingredients/{ingredient.id}/",
        {"stock_quantity": "100", "name": "Basilic"},
        format="json",
    )
    assert res.status_code == 200
    assert res.data["name"] == "Basilic"
    assert Decimal(res.data["stock_quantity"]) == Decimal("0")
    assert Lot.objects.count() == 0


@pytest.mark.django_db
def test_purchase_endpoint_and_low_stock():
    ingredient = IngredientFactory(name="Farine", minimum_stock="3")
    client = _auth_client(UserFactory())

    res = client.post(
        f"/api/inventory/ingredients/{ingredient.id}/purchases/",
        {"quantity": "4", "total_price": "6"},
        format="json",
    )
    assert res.status_code == 201
    assert res.data["lot_id"] is not None
    assert len(client.get(f"/api/inventory/ingredients/{ingredient.id}/purchases/").data) == 1
    assert client.get("/api/inventory/low-stock/").data == []

    deduct(ingredient.id, "2")
    low = client.get("/api/inventory/low-stock/").data
    assert [row["name"] for row in low] == ["Farine"]
    assert low[0]["below_minimum_since"] is not None

    # relever le seuil recalcule l'alerte
    res = client.patch(
        f"/api/inventory/ingredients/{ingredient.id}/", {"minimum_stock": "1"}, format="json"
    )
    assert res.data["below_minimum_since"] is None

    res = client.post(
        f"/api/inventory/ingredients/{ingredient.id}/purchases/",
        {"quantity": "0", "total_price": "6"},
        format="json",
    )
    assert res.status_code == 400


@pytest.mark.django_db
def test_unknown_ingredient_returns_404():
    client = _auth_client(UserFactory())
    assert client.get("/api/inventory/ingredients/999999/").status_code == 404
    res = client.get("/api/inventory/ingredients/999999/lots/")
    assert res.status_code == 404
    assert res.data["code"] == "not_found"


@pytest.mark.django_db
def test_catalog_product_recipe_status_and_availability():
    client = _auth_client(UserFactory())
    category = CategoryFactory(name="Pizzas")
    cheese = IngredientFactory(name="Fromage", minimum_stock="1")
    client.post(
        f"/api/inventory/ingredients/{cheese.id}/purchases/",
        {"quantity": "1", "total_price": "10"},
        format="json",
    )

    res = client.post(
        "/api/catalog/products/",
        {"name": "Margherita", "price": "11.00", "category": category.id},
        format="json",
    )
    assert res.status_code == 201
    product_id = res.data["id"]
    assert res.data["status"] == "available"

    res = client.put(
        f"/api/catalog/products/{product_id}/recipe/",
        {"items": [{"ingredient_id": cheese.id, "quantity": "0.25"}]},
        format="json",
    )
    assert res.status_code == 200
    assert res.data["recipe"][0]["ingredient_name"] == "Fromage"
    assert RecipeItem.objects.filter(product_id=product_id).count() == 1

    res = client.get(f"/api/catalog/products/{product_id}/availability/")
    assert res.data["available_count"] == 4
    assert [row["name"] for row in res.data["low_stock"]] == ["Fromage"]

    res = client.put(
        f"/api/catalog/products/{product_id}/recipe/",
        {"items": [{"ingredient_id": 999999, "quantity": "1"}]},
        format="json",
    )
    assert res.status_code == 400
    assert res.data["code"] == "invalid_argument"
    assert RecipeItem.objects.filter(product_id=product_id).count() == 1

    res = client.post(
        f"/api/catalog/products/{product_id}/status/",
        {"status": "temporarily_unavailable"},
        format="json",
    )
    assert res.status_code == 200
    assert res.data["status"] == "temporarily_unavailable"
    res = client.post(f"/api/catalog/products/{product_id}/status/", {"status": "gone"}, format="json")
    assert res.status_code == 400


@pytest.mark.django_db
def test_catalog_categories_and_listing():
    client = _auth_client(UserFactory())
    res = client.post("/api/catalog/categories/", {"name": "Boissons Chaudes"}, format="json")
    assert res.status_code == 201
    assert res.data["slug"] == "boissons-chaudes"

    ProductFactory(name="Café", category=Category.objects.get(id=res.data["id"]))
    ProductFactory(name="Thé", status="indefinitely_unavailable")
    listing = client.get("/api/catalog/products/", {"status": "available", "with_availability": "1"})
    assert [p["name"] for p in listing.data] == ["Café"]
    assert listing.data[0]["availability"]["available_count"] is None


@pytest.mark.django_db
def test_recipe_is_locked_while_open_orders_hold_the_product():
    cheese = IngredientFactory(name="Fromage")
    record_purchase(cheese.id, "8", "80")
    pizza = ProductFactory(name="Pizza")
    RecipeItemFactory(product=pizza, ingredient=cheese, quantity="0.1")
    order = create_order(DiningTableFactory().id, 2)
    update_order_items(order.id, [{"product_id": pizza.id, "quantity": 2}])
    assert compute_stock(cheese.id) == Decimal("7.8")

    client = _auth_client(UserFactory())
    recipe_url = f"/api/catalog/products/{pizza.id}/recipe/"
    res = client.put(
        recipe_url, {"items": [{"ingredient_id": cheese.id, "quantity": "0.5"}]}, format="json"
    )
    assert res.status_code == 409
    assert res.data["code"] == "precondition_failed"
    assert res.data["items"] == [order.id]
    assert RecipeItem.objects.get(product=pizza).quantity == Decimal("0.1")

    # retirer l'article restitue exactement ce qui avait été réservé
    update_order_items(order.id, [])
    assert compute_stock(cheese.id) == Decimal("8")

    res = client.put(
        recipe_url, {"items": [{"ingredient_id": cheese.id, "quantity": "0.5"}]}, format="json"
    )
    assert res.status_code == 200
    assert RecipeItem.objects.get(product=pizza).quantity == Decimal("0.5")


@pytest.mark.django_db
def test_recipe_is_locked_by_pending_takeaway():
    cheese = IngredientFactory()
    record_purchase(cheese.id, "8", "80")
    pizza = ProductFactory()
    RecipeItemFactory(product=pizza, ingredient=cheese, quantity="0.1")
    order = submit_pending_takeaway([{"product_id": pizza.id, "quantity": 1}], {"customer_name": "Awa"})

    client = _auth_client(UserFactory())
    res = client.put(
        f"/api/catalog/products/{pizza.id}/recipe/", {"items": []}, format="json"
    )
    assert res.status_code == 409
    assert res.data["items"] == [order.id]


@pytest.mark.django_db
def test_delete_ingredient():
    client = _auth_client(UserFactory())
    used = IngredientFactory(name="Fromage")
    pizza = ProductFactory()
    RecipeItemFactory(product=pizza, ingredient=used)

    res = client.delete(f"/api/inventory/ingredients/{used.id}/")
    assert res.status_code == 409
    assert res.data["code"] == "precondition_failed"
    assert res.data["items"] == [pizza.id]
    assert Ingredient.objects.filter(id=used.id).exists()

    unused = IngredientFactory(name="Sel")
    record_purchase(unused.id, "2", "1")
    assert client.delete(f"/api/inventory/ingredients/{unused.id}/").status_code == 204
    assert not Ingredient.objects.filter(id=unused.id).exists()
    assert Lot.objects.filter(ingredient_id=unused.id).count() == 0
    assert client.delete(f"/api/inventory/ingredients/{unused.id}/").status_code == 404


@pytest.mark.django_db
def test_delete_product():
    client = _auth_client(UserFactory())
    ordered = ProductFactory()
    order = create_order(DiningTableFactory().id, 1)
    update_order_items(order.id, [{"product_id": ordered.id, "quantity": 1}])

    res = client.delete(f"/api/catalog/products/{ordered.id}/")
    assert res.status_code == 409
    assert res.data["items"] == [order.id]
    assert Product.objects.filter(id=ordered.id).exists()

    idle = ProductFactory()
    RecipeItemFactory(product=idle)
    assert client.delete(f"/api/catalog/products/{idle.id}/").status_code == 204
    assert not Product.objects.filter(id=idle.id).exists()
    assert RecipeItem.objects.filter(product_id=idle.id).count() == 0


@pytest.mark.django_db
def test_delete_category_keeps_its_products():
    client = _auth_client(UserFactory())
    category = CategoryFactory(name="Desserts")
    tart = ProductFactory(category=category)

    res = client.patch(f"/api/catalog/categories/{category.id}/", {"name": "Douceurs"}, format="json")
    assert res.status_code == 200
    assert res.data["name"] == "Douceurs"

    assert client.delete(f"/api/catalog/categories/{category.id}/").status_code == 204
    tart.refresh_from_db()
    assert tart.category_id is None
    assert client.get(f"/api/catalog/categories/{category.id}/").status_code == 404
