from datetime import timedelta
from decimal import Decimal

import pytest
from django.utils import timezone
from prometheus_client import REGISTRY

from catalog.models import Ingredient
from orders.services.orders import create_order
from stock.models import Lot, Purchase, StockMovement
from stock.services.ledger import (
    apply_deltas,
    compute_average_cost,
    compute_product_availability,
    compute_stock,
    deduct,
    get_lot_detail,
    low_stock_ingredients,
    record_purchase,
    restock,
)
from utils.errors import InvalidArgumentError, NotFoundError, PreconditionFailedError
from .factories import IngredientFactory, ProductFactory, RecipeItemFactory


def _two_lots(ingredient):
    """Lots 5 @ 10 puis 5 @ 20."""
    t1 = timezone.now() - timedelta(days=2)
    t2 = timezone.now() - timedelta(days=1)
    first = record_purchase(ingredient.id, "5", "50", purchased_at=t1).lot
    second = record_purchase(ingredient.id, "5", "100", purchased_at=t2).lot
    return first, second


def _sample(name):
    return REGISTRY.get_sample_value(name) or 0


@pytest.mark.django_db
def test_record_purchase_creates_lot_and_updates_cache():
    ingredient = IngredientFactory()
    purchase = record_purchase(ingredient.id, "4", "10")

    assert Purchase.objects.filter(ingredient=ingredient).count() == 1
    assert purchase.lot.initial_quantity == Decimal("4")
    assert purchase.lot.remaining_quantity == Decimal("4")
    assert purchase.lot.unit_cost == Decimal("2.5")
    ingredient.refresh_from_db()
    assert ingredient.stock_quantity == Decimal("4")
    assert ingredient.average_cost == Decimal("2.5")
    assert StockMovement.objects.filter(ingredient=ingredient, kind="purchase").count() == 1


@pytest.mark.django_db
@pytest.mark.parametrize("quantity,total", [("0", "10"), ("-1", "10"), ("2", "-1")])
def test_record_purchase_rejects_invalid_values(quantity, total):
    ingredient = IngredientFactory()
    with pytest.raises(InvalidArgumentError):
        record_purchase(ingredient.id, quantity, total)
    assert Lot.objects.count() == 0


@pytest.mark.django_db
def test_fifo_deduct_consumes_oldest_lot_first():
    ingredient = IngredientFactory()
    first, second = _two_lots(ingredient)

    deduct(ingredient.id, "7")

    first.refresh_from_db()
    second.refresh_from_db()
    assert first.remaining_quantity == Decimal("0")
    assert second.remaining_quantity == Decimal("3")
    assert compute_stock(ingredient.id) == Decimal("3")
    assert compute_average_cost(ingredient.id) == Decimal("20")
    ingredient.refresh_from_db()
    assert ingredient.stock_quantity == Decimal("3")
    assert ingredient.average_cost == Decimal("20")


@pytest.mark.django_db
def test_restock_refills_most_recent_lot_first():
    ingredient = IngredientFactory()
    first, second = _two_lots(ingredient)
    deduct(ingredient.id, "7")

    restock(ingredient.id, "1")
    first.refresh_from_db()
    second.refresh_from_db()
    assert second.remaining_quantity == Decimal("4")
    assert first.remaining_quantity == Decimal("0")

    restock(ingredient.id, "6")
    first.refresh_from_db()
    second.refresh_from_db()
    assert second.remaining_quantity == Decimal("5")
    assert first.remaining_quantity == Decimal("5")
    assert compute_stock(ingredient.id) == Decimal("10")
    assert compute_average_cost(ingredient.id) == Decimal("15")


@pytest.mark.django_db
def test_restock_remainder_goes_to_oldest_lot():
    ingredient = IngredientFactory()
    first, second = _two_lots(ingredient)

    restock(ingredient.id, "2")

    first.refresh_from_db()
    second.refresh_from_db()
    assert second.remaining_quantity == Decimal("5")
    assert first.remaining_quantity == Decimal("7")
    assert first.initial_quantity == Decimal("7")
    assert compute_stock(ingredient.id) == Decimal("12")


@pytest.mark.django_db
def test_restock_without_lots_opens_lot_at_last_average_cost():
    ingredient = IngredientFactory()
    Ingredient.objects.filter(id=ingredient.id).update(average_cost=Decimal("3.5"))

    restock(ingredient.id, "2")

    ingredient, lots = get_lot_detail(ingredient.id)
    assert len(lots) == 1
    assert lots[0].remaining_quantity == Decimal("2")
    assert lots[0].unit_cost == Decimal("3.5")
    assert ingredient.stock_quantity == Decimal("2")


@pytest.mark.django_db
def test_oversell_drains_lots_and_records_shortfall():
    ingredient = IngredientFactory()
    record_purchase(ingredient.id, "5", "50")
    before = _sample("restocore_ledger_oversells_total")

    deduct(ingredient.id, "8")

    assert compute_stock(ingredient.id) == Decimal("0")
    assert Lot.objects.filter(ingredient=ingredient, remaining_quantity__lt=0).count() == 0
    movement = StockMovement.objects.get(ingredient=ingredient, kind="order_commit")
    assert movement.quantity == Decimal("-8")
    assert movement.shortfall == Decimal("3")
    assert _sample("restocore_ledger_oversells_total") == before + 1
    # le dernier coût moyen survit à la rupture
    assert compute_average_cost(ingredient.id) == Decimal("10")


@pytest.mark.django_db
def test_oversell_rejected_when_disabled(settings):
    settings.LEDGER_ALLOW_OVERSELL = False
    ingredient = IngredientFactory()
    purchase = record_purchase(ingredient.id, "5", "50")

    with pytest.raises(PreconditionFailedError) as exc:
        deduct(ingredient.id, "8")

    assert Decimal(exc.value.items[0]["available"]) == Decimal("5")
    purchase.lot.refresh_from_db()
    assert purchase.lot.remaining_quantity == Decimal("5")
    assert StockMovement.objects.filter(kind="order_commit").count() == 0


@pytest.mark.django_db
def test_negative_quantity_and_unknown_ingredient():
    ingredient = IngredientFactory()
    with pytest.raises(InvalidArgumentError):
        deduct(ingredient.id, "-1")
    with pytest.raises(InvalidArgumentError):
        restock(ingredient.id, "-1")
    with pytest.raises(NotFoundError):
        deduct(999999, "1")
    with pytest.raises(NotFoundError):
        compute_stock(999999)


@pytest.mark.django_db
def test_zero_deduct_is_a_noop():
    ingredient = IngredientFactory()
    record_purchase(ingredient.id, "5", "50")
    deduct(ingredient.id, "0")
    assert compute_stock(ingredient.id) == Decimal("5")
    assert StockMovement.objects.filter(kind="order_commit").count() == 0


@pytest.mark.django_db
def test_below_minimum_since_set_once_and_cleared():
    ingredient = IngredientFactory(minimum_stock="5")
    record_purchase(ingredient.id, "10", "10")
    ingredient.refresh_from_db()
    assert ingredient.below_minimum_since is None

    deduct(ingredient.id, "5")
    ingredient.refresh_from_db()
    first_seen = ingredient.below_minimum_since
    assert first_seen is not None

    deduct(ingredient.id, "1")
    ingredient.refresh_from_db()
    assert ingredient.below_minimum_since == first_seen

    record_purchase(ingredient.id, "10", "10")
    ingredient.refresh_from_db()
    assert ingredient.below_minimum_since is None


@pytest.mark.django_db
def test_apply_deltas_skips_unknown_ingredients():
    ingredient = IngredientFactory()
    other = IngredientFactory()
    record_purchase(ingredient.id, "5", "5")
    record_purchase(other.id, "5", "5")
    before = _sample("restocore_ledger_skipped_ingredients_total")

    apply_deltas({ingredient.id: Decimal("2"), other.id: Decimal("-1"), 999999: Decimal("1")})

    assert compute_stock(ingredient.id) == Decimal("3")
    assert compute_stock(other.id) == Decimal("6")
    assert _sample("restocore_ledger_skipped_ingredients_total") == before + 1


@pytest.mark.django_db
def test_apply_deltas_unknown_ingredient_rolls_back_when_strict(settings):
    settings.LEDGER_SKIP_UNKNOWN_INGREDIENTS = False
    ingredient = IngredientFactory()
    record_purchase(ingredient.id, "5", "5")

    with pytest.raises(NotFoundError):
        apply_deltas({ingredient.id: Decimal("2"), 999999: Decimal("1")})

    assert compute_stock(ingredient.id) == Decimal("5")


@pytest.mark.django_db
def test_low_stock_and_product_availability():
    cheese = IngredientFactory(name="Fromage", minimum_stock="1")
    dough = IngredientFactory(name="Pâte", minimum_stock="0")
    record_purchase(cheese.id, "1", "10")
    record_purchase(dough.id, "10", "5")
    pizza = ProductFactory(name="Pizza")
    RecipeItemFactory(product=pizza, ingredient=cheese, quantity="0.3")
    RecipeItemFactory(product=pizza, ingredient=dough, quantity="1")

    low = list(low_stock_ingredients())
    assert [i.name for i in low] == ["Fromage"]

    availability = compute_product_availability(pizza)
    assert availability["available_count"] == 3
    assert [row["name"] for row in availability["low_stock"]] == ["Fromage"]

    assert compute_product_availability(ProductFactory())["available_count"] is None


@pytest.mark.django_db
def test_order_release_absorbs_its_shortfall_first():
    ingredient = IngredientFactory()
    record_purchase(ingredient.id, "5", "50")
    order = create_order("takeaway", 1)

    apply_deltas({ingredient.id: Decimal("8")}, order=order)
    assert compute_stock(ingredient.id) == Decimal("0")

    record_purchase(ingredient.id, "10", "100")
    apply_deltas({ingredient.id: Decimal("-8")}, order=order)

    # 5 réellement sortis reviennent, les 3 vendus à découvert non
    assert compute_stock(ingredient.id) == Decimal("15")
    release = StockMovement.objects.get(ingredient=ingredient, kind="order_release")
    assert release.quantity == Decimal("8")
    assert release.shortfall == Decimal("3")


@pytest.mark.django_db
def test_shortfall_of_another_order_is_not_absorbed():
    ingredient = IngredientFactory()
    record_purchase(ingredient.id, "5", "50")
    oversold = create_order("takeaway", 1)
    other = create_order("takeaway", 1)

    apply_deltas({ingredient.id: Decimal("8")}, order=oversold)
    record_purchase(ingredient.id, "2", "20")
    apply_deltas({ingredient.id: Decimal("2")}, order=other)
    apply_deltas({ingredient.id: Decimal("-2")}, order=other)

    assert compute_stock(ingredient.id) == Decimal("2")
