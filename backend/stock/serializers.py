from rest_framework import serializers

from catalog.models import Ingredient

from .models import Lot, Purchase


class IngredientSerializer(serializers.ModelSerializer):
    is_below_minimum = serializers.BooleanField(read_only=True)
    # achat d'ouverture optionnel à la création
    initial_quantity = serializers.DecimalField(
        max_digits=12, decimal_places=3, required=False, write_only=True
    )
    initial_total_price = serializers.DecimalField(
        max_digits=12, decimal_places=2, required=False, write_only=True
    )

    class Meta:
        model = Ingredient
        fields = [
            "id",
            "name",
            "unit",
            "minimum_stock",
            "stock_quantity",
            "average_cost",
            "below_minimum_since",
            "is_below_minimum",
            "initial_quantity",
            "initial_total_price",
            "created_at",
            "updated_at",
        ]
        read_only_fields = [
            "id",
            "stock_quantity",
            "average_cost",
            "below_minimum_since",
            "created_at",
            "updated_at",
        ]

    def validate_minimum_stock(self, value):
        if value < 0:
            raise serializers.ValidationError("Le stock minimum ne peut pas être négatif.")
        return value

    def validate(self, attrs):
        quantity = attrs.get("initial_quantity")
        total = attrs.get("initial_total_price")
        if quantity is not None and quantity <= 0:
            raise serializers.ValidationError(
                {"initial_quantity": "La quantité doit être supérieure à 0."}
            )
        if total is not None and quantity is None:
            raise serializers.ValidationError(
                {"initial_quantity": "Quantité requise avec un prix d'achat."}
            )
        if total is not None and total < 0:
            raise serializers.ValidationError(
                {"initial_total_price": "Le prix ne peut pas être négatif."}
            )
        return attrs


class LotSerializer(serializers.ModelSerializer):
    class Meta:
        model = Lot
        fields = ["id", "initial_quantity", "remaining_quantity", "unit_cost", "purchased_at"]


class PurchaseInputSerializer(serializers.Serializer):
    quantity = serializers.DecimalField(max_digits=12, decimal_places=3)
    total_price = serializers.DecimalField(max_digits=12, decimal_places=2)
    purchased_at = serializers.DateTimeField(required=False)

    def validate_quantity(self, value):
        if value <= 0:
            raise serializers.ValidationError("La quantité doit être supérieure à 0.")
        return value

    def validate_total_price(self, value):
        if value < 0:
            raise serializers.ValidationError("Le prix ne peut pas être négatif.")
        return value


class PurchaseSerializer(serializers.ModelSerializer):
    class Meta:
        model = Purchase
        fields = ["id", "ingredient_id", "lot_id", "quantity", "total_price", "purchased_at"]
