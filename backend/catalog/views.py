from django.db import transaction
from django.db.models import ProtectedError
from rest_framework import permissions, status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response

from accounts.permissions import ProductPermission
from orders.models import Order, OrderItem
from stock.services.ledger import compute_product_availability
from utils.errors import InvalidArgumentError, PreconditionFailedError

from .models import Category, Ingredient, Product, RecipeItem
from .serializers import (
    CategorySerializer,
    ProductSerializer,
    ProductStatusSerializer,
    RecipeItemSerializer,
)


def _get_product(product_id):
    return Product.objects.filter(id=product_id).prefetch_related("recipe_items__ingredient").first()


@api_view(["GET", "POST"])
@permission_classes([permissions.IsAuthenticated, ProductPermission])
def catalog_categories(request):
    if request.method == "POST":
        serializer = CategorySerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        category = serializer.save()
        return Response(CategorySerializer(category).data, status=status.HTTP_201_CREATED)

    return Response(CategorySerializer(Category.objects.order_by("name"), many=True).data)


@api_view(["GET", "PATCH", "DELETE"])
@permission_classes([permissions.IsAuthenticated, ProductPermission])
def catalog_category_detail(request, category_id: int):
    category = Category.objects.filter(id=category_id).first()
    if not category:
        return Response({"detail": "Catégorie introuvable."}, status=status.HTTP_404_NOT_FOUND)

    if request.method == "DELETE":
        # les produits de la catégorie restent, sans catégorie
        category.delete()
        return Response(status=status.HTTP_204_NO_CONTENT)

    if request.method == "PATCH":
        serializer = CategorySerializer(category, data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        serializer.save()
        return Response(serializer.data)

    return Response(CategorySerializer(category).data)


@api_view(["GET", "POST"])
@permission_classes([permissions.IsAuthenticated, ProductPermission])
def catalog_products(request):
    if request.method == "POST":
        serializer = ProductSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        product = serializer.save()
        return Response(ProductSerializer(product).data, status=status.HTTP_201_CREATED)

    qs = Product.objects.select_related("category").prefetch_related("recipe_items__ingredient")
    category_id = request.query_params.get("category")
    if category_id:
        qs = qs.filter(category_id=category_id)
    product_status = request.query_params.get("status")
    if product_status:
        qs = qs.filter(status=product_status)

    products = list(qs.order_by("name"))
    data = ProductSerializer(products, many=True).data
    if request.query_params.get("with_availability") == "1":
        for idx, product in enumerate(products):
            data[idx]["availability"] = compute_product_availability(product)
    return Response(data)


@api_view(["GET", "PATCH", "DELETE"])
@permission_classes([permissions.IsAuthenticated, ProductPermission])
def catalog_product_detail(request, product_id: int):
    product = _get_product(product_id)
    if not product:
        return Response({"detail": "Produit introuvable."}, status=status.HTTP_404_NOT_FOUND)

    if request.method == "DELETE":
        try:
            product.delete()
        except ProtectedError as exc:
            raise PreconditionFailedError(
                "Produit présent dans des commandes ou des ventes.",
                items=sorted({obj.order_id for obj in exc.protected_objects}),
            )
        return Response(status=status.HTTP_204_NO_CONTENT)

    if request.method == "PATCH":
        serializer = ProductSerializer(product, data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        serializer.save()
        return Response(serializer.data)

    return Response(ProductSerializer(product).data)


@api_view(["GET", "PUT"])
@permission_classes([permissions.IsAuthenticated, ProductPermission])
def catalog_product_recipe(request, product_id: int):
    product = _get_product(product_id)
    if not product:
        return Response({"detail": "Produit introuvable."}, status=status.HTTP_404_NOT_FOUND)

    if request.method == "GET":
        return Response(RecipeItemSerializer(product.recipe_items.all(), many=True).data)

    items_payload = request.data.get("items") if isinstance(request.data, dict) else request.data
    serializer = RecipeItemSerializer(data=items_payload or [], many=True)
    serializer.is_valid(raise_exception=True)

    ingredient_ids = [row["ingredient_id"] for row in serializer.validated_data]
    duplicates = sorted({iid for iid in ingredient_ids if ingredient_ids.count(iid) > 1})
    if duplicates:
        raise InvalidArgumentError("Ingrédient en double dans la recette.", items=duplicates)

    ingredient_map = Ingredient.objects.in_bulk(ingredient_ids)
    missing = [iid for iid in ingredient_ids if iid not in ingredient_map]
    if missing:
        raise InvalidArgumentError("Ingrédient introuvable.", items=missing)

    with transaction.atomic():
        # les commandes ouvertes ont réservé le stock avec la recette actuelle
        Product.objects.select_for_update().filter(id=product.id).first()
        open_orders = sorted(
            set(
                OrderItem.objects.filter(
                    product=product, order__status__in=Order.OPEN_STATUSES
                ).values_list("order_id", flat=True)
            )
        )
        if open_orders:
            raise PreconditionFailedError(
                "Recette non modifiable: des commandes en cours contiennent ce produit.",
                items=open_orders,
            )

        RecipeItem.objects.filter(product=product).delete()
        RecipeItem.objects.bulk_create(
            [
                RecipeItem(
                    product=product,
                    ingredient=ingredient_map[row["ingredient_id"]],
                    quantity=row["quantity"],
                    position=idx,
                )
                for idx, row in enumerate(serializer.validated_data)
            ]
        )

    product = _get_product(product.id)
    return Response(ProductSerializer(product).data)


@api_view(["POST"])
@permission_classes([permissions.IsAuthenticated, ProductPermission])
def catalog_product_status(request, product_id: int):
    product = _get_product(product_id)
    if not product:
        return Response({"detail": "Produit introuvable."}, status=status.HTTP_404_NOT_FOUND)

    serializer = ProductStatusSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    product.status = serializer.validated_data["status"]
    product.save(update_fields=["status", "updated_at"])
    return Response(ProductSerializer(product).data)


@api_view(["GET"])
@permission_classes([permissions.IsAuthenticated, ProductPermission])
def catalog_product_availability(request, product_id: int):
    product = _get_product(product_id)
    if not product:
        return Response({"detail": "Produit introuvable."}, status=status.HTTP_404_NOT_FOUND)
    return Response(compute_product_availability(product))
