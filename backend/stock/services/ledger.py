# backend/stock/services/ledger.py
"""
Registre de stock par lots.

Seul ce module écrit les lots et les champs dérivés de l'ingrédient
(stock_quantity, average_cost, below_minimum_since). Chaque appel prend le
verrou de ligne de l'ingrédient, les mutations sont donc sérialisées par
ingrédient.
"""
import logging
from decimal import ROUND_FLOOR, Decimal

from django.conf import settings
from django.db import transaction
from django.db.models import F, Q, Sum
from django.utils import timezone

from catalog.models import Ingredient
from restocore.metrics import track_oversell, track_skipped_ingredient
from utils.errors import InvalidArgumentError, NotFoundError, PreconditionFailedError

from ..models import Lot, Purchase, StockMovement

LOGGER = logging.getLogger(__name__)

ZERO = Decimal("0")
QTY_STEP = Decimal("0.001")
COST_STEP = Decimal("0.0001")


def _to_decimal(value) -> Decimal:
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value))
    except (ArithmeticError, ValueError, TypeError):
        raise InvalidArgumentError("Quantité invalide.", items=[str(value)])


def _check_quantity(quantity) -> Decimal:
    quantity = _to_decimal(quantity)
    if quantity < 0:
        raise InvalidArgumentError("La quantité doit être positive.", items=[str(quantity)])
    return quantity.quantize(QTY_STEP)


def _lock_ingredient(ingredient_id) -> Ingredient:
    ingredient = Ingredient.objects.select_for_update().filter(id=ingredient_id).first()
    if not ingredient:
        raise NotFoundError("Ingrédient introuvable.", items=[ingredient_id])
    return ingredient


def _get_ingredient(ingredient_id) -> Ingredient:
    ingredient = Ingredient.objects.filter(id=ingredient_id).first()
    if not ingredient:
        raise NotFoundError("Ingrédient introuvable.", items=[ingredient_id])
    return ingredient


def _weighted_average(lots):
    stock = ZERO
    value = ZERO
    for lot in lots:
        if lot.remaining_quantity > 0:
            stock += lot.remaining_quantity
            value += lot.remaining_quantity * lot.unit_cost
    if stock <= 0:
        return None
    return (value / stock).quantize(COST_STEP)


def _refresh_cached(ingredient: Ingredient):
    """Recalcule stock, coût moyen et seuil minimum depuis les lots."""
    lots = list(Lot.objects.filter(ingredient=ingredient))
    stock = sum((lot.remaining_quantity for lot in lots), ZERO)
    average = _weighted_average(lots)

    ingredient.stock_quantity = stock
    if average is not None:
        ingredient.average_cost = average
    # sinon on garde le dernier coût moyen connu (rupture de stock)

    if stock <= ingredient.minimum_stock:
        if ingredient.below_minimum_since is None:
            ingredient.below_minimum_since = timezone.now()
    else:
        ingredient.below_minimum_since = None

    ingredient.save(
        update_fields=["stock_quantity", "average_cost", "below_minimum_since", "updated_at"]
    )
    return ingredient


def _deduct_locked(ingredient: Ingredient, quantity: Decimal, order=None):
    if quantity == 0:
        return ingredient

    lots = list(
        Lot.objects.select_for_update()
        .filter(ingredient=ingredient, remaining_quantity__gt=0)
        .order_by("purchased_at", "id")
    )
    available = sum((lot.remaining_quantity for lot in lots), ZERO)
    shortfall = max(quantity - available, ZERO)

    if shortfall > 0 and not settings.LEDGER_ALLOW_OVERSELL:
        raise PreconditionFailedError(
            "Stock insuffisant.",
            items=[
                {
                    "id": ingredient.id,
                    "name": ingredient.name,
                    "needed": str(quantity),
                    "available": str(available),
                }
            ],
        )

    left = quantity
    for lot in lots:
        if left <= 0:
            break
        taken = min(lot.remaining_quantity, left)
        lot.remaining_quantity -= taken
        lot.save(update_fields=["remaining_quantity"])
        left -= taken

    if shortfall > 0:
        LOGGER.warning(
            "Oversell on ingredient %s (%s): needed %s, available %s, short %s",
            ingredient.id,
            ingredient.name,
            quantity,
            available,
            shortfall,
        )
        track_oversell()

    StockMovement.objects.create(
        ingredient=ingredient,
        kind="order_commit",
        quantity=-quantity,
        shortfall=shortfall,
        order=order,
    )
    return _refresh_cached(ingredient)


def _outstanding_shortfall(ingredient: Ingredient, order) -> Decimal:
    """Manque vendu à découvert par cette commande et pas encore restitué."""
    if order is None or order.pk is None:
        return ZERO
    totals = StockMovement.objects.filter(ingredient=ingredient, order=order).aggregate(
        owed=Sum("shortfall", filter=Q(kind="order_commit")),
        absorbed=Sum("shortfall", filter=Q(kind="order_release")),
    )
    return max((totals["owed"] or ZERO) - (totals["absorbed"] or ZERO), ZERO)


def _restock_locked(ingredient: Ingredient, quantity: Decimal, order=None):
    if quantity == 0:
        return ingredient

    # la part jamais sortie des lots (vente à découvert) n'y retourne pas
    absorbed = min(quantity, _outstanding_shortfall(ingredient, order))
    if absorbed > 0:
        LOGGER.info(
            "Release on ingredient %s for order %s absorbs %s of earlier shortfall",
            ingredient.id,
            order.id,
            absorbed,
        )
    back = quantity - absorbed

    lots = list(
        Lot.objects.select_for_update()
        .filter(ingredient=ingredient)
        .order_by("-purchased_at", "-id")
    )

    if back > 0 and not lots:
        # aucun lot: on en ouvre un au dernier coût moyen connu
        Lot.objects.create(
            ingredient=ingredient,
            initial_quantity=back,
            remaining_quantity=back,
            unit_cost=ingredient.average_cost,
        )
    elif back > 0:
        left = back
        touched = {}
        for lot in lots:
            if left <= 0:
                break
            headroom = lot.initial_quantity - lot.remaining_quantity
            if headroom <= 0:
                continue
            put = min(headroom, left)
            lot.remaining_quantity += put
            left -= put
            touched[lot.id] = lot

        if left > 0:
            # tous les lots sont pleins: le reliquat va au plus ancien
            oldest = lots[-1]
            oldest.remaining_quantity += left
            oldest.initial_quantity += left
            touched[oldest.id] = oldest

        for lot in touched.values():
            lot.save(update_fields=["initial_quantity", "remaining_quantity"])

    StockMovement.objects.create(
        ingredient=ingredient,
        kind="order_release",
        quantity=quantity,
        shortfall=absorbed,
        order=order,
    )
    return _refresh_cached(ingredient)


def compute_stock(ingredient_id) -> Decimal:
    ingredient = _get_ingredient(ingredient_id)
    return sum(
        Lot.objects.filter(ingredient=ingredient).values_list("remaining_quantity", flat=True),
        ZERO,
    )


def compute_average_cost(ingredient_id) -> Decimal:
    ingredient = _get_ingredient(ingredient_id)
    average = _weighted_average(Lot.objects.filter(ingredient=ingredient, remaining_quantity__gt=0))
    if average is None:
        return ingredient.average_cost or ZERO
    return average


def deduct(ingredient_id, quantity, order=None):
    """
    Consomme `quantity` en FIFO (lot le plus ancien d'abord).
    Vente à découvert: si LEDGER_ALLOW_OVERSELL, les lots tombent à 0 et le manque
    est journalisé; sinon PreconditionFailedError sans effet.
    """
    quantity = _check_quantity(quantity)
    with transaction.atomic():
        ingredient = _lock_ingredient(ingredient_id)
        return _deduct_locked(ingredient, quantity, order=order)


def restock(ingredient_id, quantity, order=None):
    """
    Restitue `quantity`: lot le plus récent d'abord jusqu'à sa quantité initiale,
    puis le suivant; le reliquat va au lot le plus ancien.
    Pour une commande, le manque vendu à découvert est absorbé avant tout retour en lot.
    """
    quantity = _check_quantity(quantity)
    with transaction.atomic():
        ingredient = _lock_ingredient(ingredient_id)
        return _restock_locked(ingredient, quantity, order=order)


def record_purchase(ingredient_id, quantity, total_price, purchased_at=None):
    quantity = _to_decimal(quantity)
    total_price = _to_decimal(total_price)
    if quantity <= 0:
        raise InvalidArgumentError("La quantité achetée doit être supérieure à 0.")
    if total_price < 0:
        raise InvalidArgumentError("Le prix total ne peut pas être négatif.")
    quantity = quantity.quantize(QTY_STEP)
    purchased_at = purchased_at or timezone.now()

    with transaction.atomic():
        ingredient = _lock_ingredient(ingredient_id)
        lot = Lot.objects.create(
            ingredient=ingredient,
            initial_quantity=quantity,
            remaining_quantity=quantity,
            unit_cost=(total_price / quantity).quantize(COST_STEP),
            purchased_at=purchased_at,
        )
        purchase = Purchase.objects.create(
            ingredient=ingredient,
            lot=lot,
            quantity=quantity,
            total_price=total_price,
            purchased_at=purchased_at,
        )
        StockMovement.objects.create(ingredient=ingredient, kind="purchase", quantity=quantity)
        _refresh_cached(ingredient)

    LOGGER.info(
        "Purchase recorded for ingredient %s: %s at %s", ingredient.id, quantity, total_price
    )
    return purchase


def refresh_ingredient(ingredient_id):
    """Recalcule les champs dérivés (ex: après changement du seuil minimum)."""
    with transaction.atomic():
        ingredient = _lock_ingredient(ingredient_id)
        return _refresh_cached(ingredient)


def apply_deltas(deltas, order=None):
    """
    Applique un dictionnaire {ingredient_id: delta}. delta > 0 consomme, delta < 0 restitue.
    Les ingrédients sont verrouillés par id croissant. Un ingrédient inconnu est
    journalisé puis ignoré (LEDGER_SKIP_UNKNOWN_INGREDIENTS), sinon NotFoundError.
    """
    wanted = sorted(pid for pid, delta in deltas.items() if delta)
    if not wanted:
        return

    with transaction.atomic():
        ingredients = {
            ingredient.id: ingredient
            for ingredient in Ingredient.objects.select_for_update()
            .filter(id__in=wanted)
            .order_by("id")
        }
        for ingredient_id in wanted:
            ingredient = ingredients.get(ingredient_id)
            if ingredient is None:
                if not settings.LEDGER_SKIP_UNKNOWN_INGREDIENTS:
                    raise NotFoundError("Ingrédient introuvable.", items=[ingredient_id])
                LOGGER.warning(
                    "Skipping unknown ingredient %s (delta %s, order %s)",
                    ingredient_id,
                    deltas[ingredient_id],
                    getattr(order, "id", None),
                )
                track_skipped_ingredient()
                continue

            delta = _to_decimal(deltas[ingredient_id]).quantize(QTY_STEP)
            if delta > 0:
                _deduct_locked(ingredient, delta, order=order)
            elif delta < 0:
                _restock_locked(ingredient, -delta, order=order)


def get_lot_detail(ingredient_id):
    ingredient = _get_ingredient(ingredient_id)
    lots = list(Lot.objects.filter(ingredient=ingredient).order_by("purchased_at", "id"))
    return ingredient, lots


def list_ingredients_with_stock():
    return Ingredient.objects.order_by("name")


def low_stock_ingredients():
    return Ingredient.objects.filter(stock_quantity__lte=F("minimum_stock")).order_by(
        "below_minimum_since", "name"
    )


def _floor_div(stock: Decimal, needed: Decimal) -> int:
    if needed <= 0 or stock <= 0:
        return 0
    return int((stock / needed).to_integral_value(rounding=ROUND_FLOOR))


def compute_product_availability(product):
    """
    Nombre d'unités réalisables avec le stock actuel et ingrédients sous le seuil.
    Un produit sans recette n'est pas limité par le stock (available_count = None).
    """
    recipe_items = list(product.recipe_items.select_related("ingredient"))
    if not recipe_items:
        return {"available_count": None, "ingredients": [], "low_stock": []}

    ingredients = []
    low_stock = []
    possible_counts = []
    for item in recipe_items:
        ingredient = item.ingredient
        possible = _floor_div(ingredient.stock_quantity, item.quantity)
        possible_counts.append(possible)
        row = {
            "ingredient_id": ingredient.id,
            "name": ingredient.name,
            "unit": ingredient.unit,
            "needed": str(item.quantity),
            "stock": str(ingredient.stock_quantity),
            "minimum_stock": str(ingredient.minimum_stock),
            "possible": possible,
        }
        ingredients.append(row)
        if ingredient.is_below_minimum:
            low_stock.append(row)

    return {
        "available_count": min(possible_counts),
        "ingredients": ingredients,
        "low_stock": low_stock,
    }
