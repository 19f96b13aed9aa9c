from rest_framework import serializers

from .models import Category, Product, RecipeItem


class CategorySerializer(serializers.ModelSerializer):
    class Meta:
        model = Category
        fields = ["id", "name", "slug", "created_at"]
        read_only_fields = ["id", "slug", "created_at"]


class RecipeItemSerializer(serializers.ModelSerializer):
    ingredient_id = serializers.IntegerField()
    ingredient_name = serializers.CharField(source="ingredient.name", read_only=True)
    unit = serializers.CharField(source="ingredient.unit", read_only=True)

    class Meta:
        model = RecipeItem
        fields = ["ingredient_id", "ingredient_name", "unit", "quantity", "position"]
        read_only_fields = ["position"]

    def validate_quantity(self, value):
        if value <= 0:
            raise serializers.ValidationError("La quantité doit être supérieure à 0.")
        return value


class ProductSerializer(serializers.ModelSerializer):
    category = serializers.PrimaryKeyRelatedField(
        queryset=Category.objects.all(), allow_null=True, required=False
    )
    recipe = RecipeItemSerializer(source="recipe_items", many=True, read_only=True)

    class Meta:
        model = Product
        fields = ["id", "name", "price", "category", "status", "recipe", "created_at", "updated_at"]
        read_only_fields = ["id", "created_at", "updated_at"]

    def validate_price(self, value):
        if value < 0:
            raise serializers.ValidationError("Le prix ne peut pas être négatif.")
        return value


class ProductStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=[code for code, _ in Product.STATUS_CHOICES])
