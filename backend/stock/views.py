from django.db import transaction
from django.db.models import ProtectedError
from rest_framework import permissions, status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response

from accounts.permissions import IngredientPermission
from catalog.models import Ingredient
from utils.errors import PreconditionFailedError

from .models import Purchase
from .serializers import (
    IngredientSerializer,
    LotSerializer,
    PurchaseInputSerializer,
    PurchaseSerializer,
)
from .services.ledger import (
    get_lot_detail,
    list_ingredients_with_stock,
    low_stock_ingredients,
    record_purchase,
    refresh_ingredient,
)


def _get_ingredient(ingredient_id):
    return Ingredient.objects.filter(id=ingredient_id).first()


@api_view(["GET", "POST"])
@permission_classes([permissions.IsAuthenticated, IngredientPermission])
def inventory_ingredients(request):
    if request.method == "POST":
        serializer = IngredientSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        quantity = serializer.validated_data.pop("initial_quantity", None)
        total_price = serializer.validated_data.pop("initial_total_price", None)
        with transaction.atomic():
            ingredient = serializer.save()
            if quantity:
                record_purchase(ingredient.id, quantity, total_price or 0)
            ingredient = refresh_ingredient(ingredient.id)
        return Response(IngredientSerializer(ingredient).data, status=status.HTTP_201_CREATED)

    return Response(IngredientSerializer(list_ingredients_with_stock(), many=True).data)


@api_view(["GET", "PATCH", "DELETE"])
@permission_classes([permissions.IsAuthenticated, IngredientPermission])
def inventory_ingredient_detail(request, ingredient_id: int):
    ingredient = _get_ingredient(ingredient_id)
    if not ingredient:
        return Response({"detail": "Ingrédient introuvable."}, status=status.HTTP_404_NOT_FOUND)

    if request.method == "DELETE":
        try:
            ingredient.delete()
        except ProtectedError as exc:
            raise PreconditionFailedError(
                "Ingrédient utilisé dans des recettes.",
                items=sorted({item.product_id for item in exc.protected_objects}),
            )
        return Response(status=status.HTTP_204_NO_CONTENT)

    if request.method == "PATCH":
        serializer = IngredientSerializer(ingredient, data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        serializer.validated_data.pop("initial_quantity", None)
        serializer.validated_data.pop("initial_total_price", None)
        with transaction.atomic():
            serializer.save()
            # le seuil a pu changer
            ingredient = refresh_ingredient(ingredient.id)
        return Response(IngredientSerializer(ingredient).data)

    return Response(IngredientSerializer(ingredient).data)


@api_view(["GET", "POST"])
@permission_classes([permissions.IsAuthenticated, IngredientPermission])
def inventory_ingredient_purchases(request, ingredient_id: int):
    ingredient = _get_ingredient(ingredient_id)
    if not ingredient:
        return Response({"detail": "Ingrédient introuvable."}, status=status.HTTP_404_NOT_FOUND)

    if request.method == "POST":
        serializer = PurchaseInputSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        purchase = record_purchase(
            ingredient.id,
            serializer.validated_data["quantity"],
            serializer.validated_data["total_price"],
            purchased_at=serializer.validated_data.get("purchased_at"),
        )
        return Response(PurchaseSerializer(purchase).data, status=status.HTTP_201_CREATED)

    qs = Purchase.objects.filter(ingredient=ingredient).order_by("-purchased_at", "-id")
    return Response(PurchaseSerializer(qs, many=True).data)


@api_view(["GET"])
@permission_classes([permissions.IsAuthenticated, IngredientPermission])
def inventory_ingredient_lots(request, ingredient_id: int):
    ingredient, lots = get_lot_detail(ingredient_id)
    return Response(
        {
            "ingredient": IngredientSerializer(ingredient).data,
            "lots": LotSerializer(lots, many=True).data,
        }
    )


@api_view(["GET"])
@permission_classes([permissions.IsAuthenticated, IngredientPermission])
def inventory_low_stock(request):
    return Response(IngredientSerializer(low_stock_ingredients(), many=True).data)
