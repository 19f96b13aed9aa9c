# backend/orders/services/expander.py
"""
Expansion des articles de commande en besoins d'ingrédients.

`expand_requirements` est pur: il ne lit que les articles et les recettes
qu'on lui passe. Un article est un dict ou un objet exposant `product_id`,
`quantity` et `excluded_ingredient_ids`.
"""
from decimal import Decimal

from catalog.models import RecipeItem

ZERO = Decimal("0")


def _read(item, name, default=None):
    if isinstance(item, dict):
        return item.get(name, default)
    return getattr(item, name, default)


def expand_requirements(items, recipes):
    """
    items: articles de commande.
    recipes: {product_id: [(ingredient_id, quantité pour une unité), ...]}.
    Retourne {ingredient_id: quantité totale}.
    """
    requirements = {}
    for item in items:
        quantity = Decimal(_read(item, "quantity", 0) or 0)
        if quantity <= 0:
            continue
        excluded = set(_read(item, "excluded_ingredient_ids") or [])
        for ingredient_id, per_unit in recipes.get(_read(item, "product_id"), ()):
            if ingredient_id in excluded:
                continue
            requirements[ingredient_id] = requirements.get(ingredient_id, ZERO) + per_unit * quantity
    return requirements


def load_recipes(product_ids):
    recipes = {}
    rows = (
        RecipeItem.objects.filter(product_id__in=set(product_ids))
        .order_by("product_id", "position", "id")
        .values_list("product_id", "ingredient_id", "quantity")
    )
    for product_id, ingredient_id, quantity in rows:
        recipes.setdefault(product_id, []).append((ingredient_id, quantity))
    return recipes


def collect_requirements(items, recipes=None):
    items = list(items)
    if recipes is None:
        recipes = load_recipes(_read(item, "product_id") for item in items)
    return expand_requirements(items, recipes)


def diff_requirements(old, new):
    """Deltas signés non nuls: positif = à consommer, négatif = à restituer."""
    deltas = {}
    for ingredient_id in set(old) | set(new):
        delta = new.get(ingredient_id, ZERO) - old.get(ingredient_id, ZERO)
        if delta != 0:
            deltas[ingredient_id] = delta
    return deltas
