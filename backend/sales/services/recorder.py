# backend/sales/services/recorder.py
import logging
from decimal import Decimal

from django.db import transaction
from django.utils import timezone

from orders.services.expander import load_recipes
from stock.services.ledger import compute_average_cost
from utils.errors import NotFoundError

from ..models import Sale

LOGGER = logging.getLogger(__name__)

ZERO = Decimal("0")
COST_STEP = Decimal("0.0001")
MONEY_STEP = Decimal("0.01")


def _stamp_implicit_service(order, now):
    """Une commande finalisée sans service acquitté est considérée servie maintenant."""
    if order.served_at is None:
        order.served_at = now
        return True
    return False


def _unit_cost(item, recipes, cost_cache):
    excluded = set(item.excluded_ingredient_ids or [])
    total = ZERO
    for ingredient_id, per_unit in recipes.get(item.product_id, ()):
        if ingredient_id in excluded:
            continue
        if ingredient_id not in cost_cache:
            try:
                cost_cache[ingredient_id] = compute_average_cost(ingredient_id)
            except NotFoundError:
                LOGGER.warning(
                    "Unknown ingredient %s in recipe of product %s, costed at 0",
                    ingredient_id,
                    item.product_id,
                )
                cost_cache[ingredient_id] = ZERO
        total += cost_cache[ingredient_id] * per_unit
    return total.quantize(COST_STEP)


def record_sales(order):
    """
    Écrit une vente par article au coût moyen du moment puis passe la commande
    en `finalized`. Sans effet si elle l'est déjà.
    L'appelant tient le verrou de la commande.
    """
    if order.status == "finalized":
        return []

    with transaction.atomic():
        now = timezone.now()
        implicit = _stamp_implicit_service(order, now)
        if implicit:
            LOGGER.info("Order %s finalized without service acknowledgement", order.id)

        items = list(order.items.select_related("product").order_by("position", "id"))
        recipes = load_recipes(item.product_id for item in items)
        table_name = order.origin_label
        cost_cache = {}

        sales = []
        for item in items:
            unit_cost = _unit_cost(item, recipes, cost_cache)
            cost_total = (unit_cost * item.quantity).quantize(COST_STEP)
            revenue = (item.unit_price * item.quantity).quantize(MONEY_STEP)
            sales.append(
                Sale(
                    order=order,
                    order_item=item,
                    product=item.product,
                    product_name=item.product.name,
                    quantity=item.quantity,
                    sold_at=now,
                    unit_cost=unit_cost,
                    cost_total=cost_total,
                    unit_price=item.unit_price,
                    revenue=revenue,
                    profit=revenue - cost_total,
                    table_name=table_name,
                    sent_at=item.sent_at or order.first_sent_at,
                    served_at=order.served_at,
                )
            )
        Sale.objects.bulk_create(sales)

        order.status = "finalized"
        order.finalized_at = now
        order.version += 1
        order.save(update_fields=["status", "finalized_at", "served_at", "version", "updated_at"])

    return sales


def list_sales(start=None, end=None, product_id=None):
    qs = Sale.objects.select_related("product")
    if start:
        qs = qs.filter(sold_at__gte=start)
    if end:
        qs = qs.filter(sold_at__lt=end)
    if product_id:
        qs = qs.filter(product_id=product_id)
    return qs.order_by("sold_at", "id")
