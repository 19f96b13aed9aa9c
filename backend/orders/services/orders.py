# backend/orders/services/orders.py
import logging

from django.conf import settings
from django.db import transaction
from django.db.utils import OperationalError
from django.utils import timezone

from catalog.models import Product
from restocore.metrics import track_order_conflict, track_order_finalized
from sales.services.recorder import record_sales
from stock.services.ledger import apply_deltas
from utils.errors import (
    ConflictError,
    InvalidArgumentError,
    NotFoundError,
    PreconditionFailedError,
)

from ..models import DiningTable, Order, OrderItem
from .expander import collect_requirements, diff_requirements, expand_requirements, load_recipes

LOGGER = logging.getLogger(__name__)

EDITABLE_KITCHEN_STATUSES = {None, "served"}
CUSTOMER_FIELDS = ("customer_name", "customer_address", "payment_method", "receipt_reference")


def is_takeaway_origin(origin) -> bool:
    return str(origin) == settings.TAKEAWAY_ORIGIN


def _lock_order(order_id, operation):
    try:
        order = Order.objects.select_for_update().filter(id=order_id).first()
    except OperationalError as exc:
        # lock_timeout dépassé: le client relit puis réessaie
        LOGGER.warning("Lock timeout on order %s during %s", order_id, operation)
        track_order_conflict(operation)
        raise ConflictError() from exc
    if not order:
        raise NotFoundError("Commande introuvable.", items=[order_id])
    return order


def _check_version(order, expected_version, operation):
    if expected_version is None or order.version == expected_version:
        return
    LOGGER.info(
        "Stale version on order %s during %s: expected %s, current %s",
        order.id,
        operation,
        expected_version,
        order.version,
    )
    track_order_conflict(operation)
    raise ConflictError(items=[{"id": order.id, "version": order.version}])


def _touch(order, fields=()):
    order.version += 1
    order.save(update_fields=[*fields, "version", "updated_at"])
    return order


def _parse_guest_count(value):
    try:
        guest_count = int(value)
    except (TypeError, ValueError):
        raise InvalidArgumentError("Nombre de couverts invalide.")
    if guest_count < 1:
        raise InvalidArgumentError("Il faut au moins un couvert.")
    return guest_count


def _normalize_items(items):
    """Valide la forme du payload et normalise chaque article."""
    if not isinstance(items, (list, tuple)):
        raise InvalidArgumentError("La liste d'articles est invalide.")

    rows = []
    seen_ids = set()
    for raw in items:
        if not isinstance(raw, dict):
            raise InvalidArgumentError("Article invalide.", items=[raw])
        item_id = raw.get("id")
        if item_id is not None:
            if item_id in seen_ids:
                raise InvalidArgumentError("Article en double.", items=[item_id])
            seen_ids.add(item_id)

        product_id = raw.get("product_id")
        if isinstance(product_id, bool) or not isinstance(product_id, int):
            raise InvalidArgumentError("Produit invalide.", items=[raw])

        quantity = raw.get("quantity", 1)
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
            raise InvalidArgumentError("La quantité doit être un entier supérieur à 0.", items=[raw])

        try:
            exclusions = sorted({int(x) for x in raw.get("excluded_ingredient_ids") or []})
        except (TypeError, ValueError):
            raise InvalidArgumentError("Exclusions invalides.", items=[raw])

        rows.append(
            {
                "id": item_id,
                "product_id": product_id,
                "quantity": quantity,
                "excluded_ingredient_ids": exclusions,
                "comment": (raw.get("comment") or "").strip(),
            }
        )
    return rows


def _lock_products(product_ids):
    """Une recette ne peut pas changer pendant qu'on ajoute ce produit à une commande."""
    return list(
        Product.objects.select_for_update()
        .filter(id__in=sorted(set(product_ids)))
        .order_by("id")
    )


def _check_products(rows, recipes, fresh_product_ids):
    """
    Produits existants, disponibles pour les articles ajoutés ou changés,
    exclusions limitées aux ingrédients de la recette.
    """
    product_ids = {row["product_id"] for row in rows}
    products = Product.objects.in_bulk([pid for pid in product_ids if pid is not None])

    missing = sorted({str(pid) for pid in product_ids if pid not in products})
    if missing:
        raise InvalidArgumentError("Produit introuvable.", items=missing)

    unavailable = [
        {"id": pid, "name": products[pid].name, "status": products[pid].status}
        for pid in sorted(fresh_product_ids)
        if not products[pid].is_available
    ]
    if unavailable:
        raise PreconditionFailedError("Produit indisponible.", items=unavailable)

    for row in rows:
        recipe_ids = {ingredient_id for ingredient_id, _ in recipes.get(row["product_id"], ())}
        extra = [iid for iid in row["excluded_ingredient_ids"] if iid not in recipe_ids]
        if extra:
            raise InvalidArgumentError(
                "Exclusion hors recette.", items=[{"product_id": row["product_id"], "ingredients": extra}]
            )
    return products


def _same_item(item, row):
    return (
        item.product_id == row["product_id"]
        and item.quantity == row["quantity"]
        and sorted(item.excluded_ingredient_ids or []) == row["excluded_ingredient_ids"]
        and (item.comment or "") == row["comment"]
    )


def _order_items(order):
    return list(order.items.order_by("position", "id"))


def _mark_items_sent(order, now):
    return order.items.filter(status="new").update(status="sent", sent_at=now)


def _load_order(order_id):
    order = (
        Order.objects.filter(id=order_id)
        .select_related("table")
        .prefetch_related("items__product")
        .first()
    )
    if not order:
        raise NotFoundError("Commande introuvable.", items=[order_id])
    return order


def get_order(order_id):
    return _load_order(order_id)


def get_orders_by_origin(origin, include_finalized=False):
    qs = Order.objects.select_related("table").prefetch_related("items__product")
    if is_takeaway_origin(origin):
        qs = qs.filter(is_takeaway=True)
    else:
        try:
            table_id = int(origin)
        except (TypeError, ValueError):
            raise InvalidArgumentError("Origine invalide.", items=[origin])
        qs = qs.filter(table_id=table_id)
    if not include_finalized:
        qs = qs.exclude(status="finalized")
    return qs.order_by("-created_at", "-id")


def create_order(origin, guest_count=1):
    guest_count = _parse_guest_count(guest_count)

    if is_takeaway_origin(origin):
        order = Order.objects.create(is_takeaway=True, guest_count=guest_count)
        LOGGER.info("Takeaway order %s created", order.id)
        return order

    try:
        table_id = int(origin)
    except (TypeError, ValueError):
        raise InvalidArgumentError("Origine invalide.", items=[origin])

    with transaction.atomic():
        table = DiningTable.objects.select_for_update().filter(id=table_id, is_active=True).first()
        if not table:
            raise NotFoundError("Table introuvable.", items=[table_id])
        if Order.objects.filter(table=table, status="active").exists():
            raise PreconditionFailedError("Table déjà occupée.", items=[table.id])
        order = Order.objects.create(table=table, guest_count=guest_count)

    LOGGER.info("Order %s created on table %s", order.id, table.id)
    return order


def update_order_items(order_id, items, expected_version=None):
    """
    Remplace la liste d'articles. Les articles envoyés doivent rester présents et
    inchangés. Seule la différence de besoins en ingrédients passe par le stock,
    dans la même transaction que l'écriture des articles.
    """
    rows = _normalize_items(items)

    with transaction.atomic():
        order = _lock_order(order_id, "update_items")
        _check_version(order, expected_version, "update_items")
        if order.status != "active":
            raise PreconditionFailedError("Commande non modifiable.")
        if order.kitchen_status not in EDITABLE_KITCHEN_STATUSES:
            raise PreconditionFailedError("Commande en cours de préparation.")

        current = _order_items(order)
        current_by_id = {item.id: item for item in current}

        unknown = [row["id"] for row in rows if row["id"] is not None and row["id"] not in current_by_id]
        if unknown:
            raise InvalidArgumentError("Article inconnu pour cette commande.", items=unknown)

        rows_by_id = {row["id"]: row for row in rows if row["id"] is not None}
        for item in current:
            if item.status != "sent":
                continue
            row = rows_by_id.get(item.id)
            if row is None or not _same_item(item, row):
                raise PreconditionFailedError(
                    "Un article déjà envoyé en cuisine ne peut être ni modifié ni retiré.",
                    items=[item.id],
                )

        fresh_product_ids = {
            row["product_id"]
            for row in rows
            if row["id"] is None or current_by_id[row["id"]].product_id != row["product_id"]
        }
        _lock_products(fresh_product_ids)
        recipes = load_recipes({row["product_id"] for row in rows} | {i.product_id for i in current})
        products = _check_products(rows, recipes, fresh_product_ids)

        old_needs = expand_requirements(current, recipes)
        new_needs = expand_requirements(rows, recipes)
        deltas = diff_requirements(old_needs, new_needs)
        apply_deltas(deltas, order=order)

        kept_ids = set()
        for position, row in enumerate(rows):
            item = current_by_id.get(row["id"]) if row["id"] is not None else None
            if item is None:
                OrderItem.objects.create(
                    order=order,
                    product=products[row["product_id"]],
                    quantity=row["quantity"],
                    excluded_ingredient_ids=row["excluded_ingredient_ids"],
                    comment=row["comment"],
                    unit_price=products[row["product_id"]].price,
                    position=position,
                )
                continue

            kept_ids.add(item.id)
            if item.status == "sent":
                if item.position != position:
                    item.position = position
                    item.save(update_fields=["position"])
                continue
            if item.product_id != row["product_id"]:
                item.unit_price = products[row["product_id"]].price
            item.product_id = row["product_id"]
            item.quantity = row["quantity"]
            item.excluded_ingredient_ids = row["excluded_ingredient_ids"]
            item.comment = row["comment"]
            item.position = position
            item.save(
                update_fields=[
                    "product",
                    "quantity",
                    "excluded_ingredient_ids",
                    "comment",
                    "unit_price",
                    "position",
                ]
            )

        removed = [item.id for item in current if item.id not in kept_ids]
        if removed:
            OrderItem.objects.filter(id__in=removed).delete()

        _touch(order)

    LOGGER.info("Order %s items updated (%s ledger deltas)", order.id, len(deltas))
    return _load_order(order.id)


def update_guest_count(order_id, guest_count, expected_version=None):
    guest_count = _parse_guest_count(guest_count)
    with transaction.atomic():
        order = _lock_order(order_id, "update_guests")
        _check_version(order, expected_version, "update_guests")
        if order.status == "finalized":
            raise PreconditionFailedError("Commande déjà finalisée.")
        order.guest_count = guest_count
        _touch(order, ["guest_count"])
    return order


def send_to_kitchen(order_id):
    with transaction.atomic():
        order = _lock_order(order_id, "send")
        if order.status != "active":
            raise PreconditionFailedError("Commande non active.")
        if not order.items.filter(status="new").exists():
            raise PreconditionFailedError("Aucun nouvel article à envoyer.")

        now = timezone.now()
        sent = _mark_items_sent(order, now)
        order.kitchen_status = "received"
        if order.first_sent_at is None:
            order.first_sent_at = now
        order.last_sent_at = now
        _touch(order, ["kitchen_status", "first_sent_at", "last_sent_at"])

    LOGGER.info("Order %s sent to kitchen (%s items)", order.id, sent)
    return order


def mark_ready(order_id):
    with transaction.atomic():
        order = _lock_order(order_id, "ready")
        if order.status != "active" or order.kitchen_status != "received":
            raise PreconditionFailedError("Commande non reçue en cuisine.")
        order.kitchen_status = "ready"
        order.ready_at = timezone.now()
        _touch(order, ["kitchen_status", "ready_at"])
    return order


def acknowledge_served(order_id):
    with transaction.atomic():
        order = _lock_order(order_id, "served")
        if order.status != "active" or order.kitchen_status != "ready":
            raise PreconditionFailedError("Commande non prête.")
        order.kitchen_status = "served"
        if order.served_at is None:
            order.served_at = timezone.now()
        _touch(order, ["kitchen_status", "served_at"])
    return order


def mark_paid(order_id):
    with transaction.atomic():
        order = _lock_order(order_id, "paid")
        if order.payment_status == "paid":
            return order
        order.payment_status = "paid"
        order.paid_at = timezone.now()
        _touch(order, ["payment_status", "paid_at"])
    LOGGER.info("Order %s marked paid", order.id)
    return order


def finalize_order(order_id):
    """Idempotent: une commande déjà finalisée est renvoyée sans nouvelle vente."""
    with transaction.atomic():
        order = _lock_order(order_id, "finalize")
        if order.status == "finalized":
            return order
        if order.status != "active":
            raise PreconditionFailedError("Commande non active.")
        items = _order_items(order)
        if not items:
            raise PreconditionFailedError("Commande vide.")
        pending = [item.id for item in items if item.status == "new"]
        if pending:
            raise PreconditionFailedError("Des articles n'ont pas été envoyés en cuisine.", items=pending)
        if order.kitchen_status == "ready":
            raise PreconditionFailedError("Commande prête mais pas encore servie.")

        sales = record_sales(order)

    track_order_finalized(order.origin, len(sales))
    LOGGER.info("Order %s finalized (%s sales)", order.id, len(sales))
    return order


def cancel_unpaid(order_id):
    with transaction.atomic():
        order = _lock_order(order_id, "cancel_unpaid")
        if order.status != "active":
            raise PreconditionFailedError("Commande non active.")
        if order.payment_status != "unpaid":
            raise PreconditionFailedError("Commande déjà payée.")
        items = _order_items(order)
        if any(item.status == "sent" for item in items):
            raise PreconditionFailedError("Des articles ont déjà été envoyés en cuisine.")

        needs = collect_requirements(items)
        apply_deltas({iid: -qty for iid, qty in needs.items()}, order=order)
        order.delete()

    LOGGER.info("Unpaid order %s cancelled, %s ingredients restocked", order_id, len(needs))
    return order_id


def cancel_empty(order_id):
    with transaction.atomic():
        order = _lock_order(order_id, "cancel_empty")
        if order.status != "active":
            raise PreconditionFailedError("Commande non active.")
        if order.items.exists():
            raise PreconditionFailedError("La commande contient des articles.")
        order.delete()
    LOGGER.info("Empty order %s cancelled", order_id)
    return order_id


def submit_pending_takeaway(items, customer_info=None):
    """Commande client à valider: le stock est consommé dès la soumission."""
    rows = _normalize_items(items)
    if not rows:
        raise InvalidArgumentError("Ajoutez au moins un article.")
    if any(row["id"] is not None for row in rows):
        raise InvalidArgumentError("Un nouvel article ne peut pas avoir d'identifiant.")
    customer_info = customer_info or {}

    with transaction.atomic():
        _lock_products(row["product_id"] for row in rows)
        recipes = load_recipes(row["product_id"] for row in rows)
        products = _check_products(rows, recipes, {row["product_id"] for row in rows})

        order = Order.objects.create(
            is_takeaway=True,
            status="pending_validation",
            **{field: (customer_info.get(field) or "").strip() for field in CUSTOMER_FIELDS},
        )
        OrderItem.objects.bulk_create(
            [
                OrderItem(
                    order=order,
                    product=products[row["product_id"]],
                    quantity=row["quantity"],
                    excluded_ingredient_ids=row["excluded_ingredient_ids"],
                    comment=row["comment"],
                    unit_price=products[row["product_id"]].price,
                    position=position,
                )
                for position, row in enumerate(rows)
            ]
        )
        apply_deltas(expand_requirements(rows, recipes), order=order)

    LOGGER.info("Takeaway order %s submitted for validation", order.id)
    return _load_order(order.id)


def validate_takeaway(order_id):
    with transaction.atomic():
        order = _lock_order(order_id, "validate")
        if order.status != "pending_validation":
            raise PreconditionFailedError("Commande déjà traitée.")
        now = timezone.now()
        _mark_items_sent(order, now)
        order.status = "active"
        order.kitchen_status = "received"
        order.first_sent_at = order.first_sent_at or now
        order.last_sent_at = now
        _touch(order, ["status", "kitchen_status", "first_sent_at", "last_sent_at"])
    LOGGER.info("Takeaway order %s validated", order.id)
    return order


def reject_takeaway(order_id):
    with transaction.atomic():
        order = _lock_order(order_id, "reject")
        if order.status != "pending_validation":
            raise PreconditionFailedError("Commande déjà traitée.")
        needs = collect_requirements(_order_items(order))
        apply_deltas({iid: -qty for iid, qty in needs.items()}, order=order)
        order.delete()
    LOGGER.info("Takeaway order %s rejected, stock restored", order_id)
    return order_id


def _listing():
    return Order.objects.select_related("table").prefetch_related("items__product")


def kitchen_queue():
    return _listing().filter(status="active", kitchen_status__in=["received", "ready"]).order_by(
        "last_sent_at", "id"
    )


def ready_takeaway_orders():
    return _listing().filter(is_takeaway=True, status="active", kitchen_status="ready").order_by(
        "ready_at", "id"
    )


def pending_takeaway_orders():
    return _listing().filter(status="pending_validation").order_by("created_at", "id")


def active_orders():
    return _listing().filter(status__in=["active", "pending_validation"]).order_by("created_at", "id")
