from decimal import Decimal

from rest_framework import serializers

from .models import DiningTable, Order, OrderItem


class DiningTableSerializer(serializers.ModelSerializer):
    is_occupied = serializers.SerializerMethodField()

    class Meta:
        model = DiningTable
        fields = ["id", "name", "capacity", "is_active", "is_occupied", "created_at"]
        read_only_fields = ["id", "created_at"]

    def validate_capacity(self, value):
        if value < 1:
            raise serializers.ValidationError("La capacité doit être supérieure à 0.")
        return value

    def get_is_occupied(self, obj):
        return obj.orders.filter(status="active").exists()


class OrderItemInputSerializer(serializers.Serializer):
    id = serializers.IntegerField(required=False, allow_null=True)
    product_id = serializers.IntegerField()
    quantity = serializers.IntegerField(min_value=1, default=1)
    excluded_ingredient_ids = serializers.ListField(
        child=serializers.IntegerField(), required=False, default=list
    )
    comment = serializers.CharField(required=False, allow_blank=True, default="", max_length=255)


class OrderCreateSerializer(serializers.Serializer):
    # id de table, ou le marqueur "à emporter"
    origin = serializers.CharField(max_length=40)
    guest_count = serializers.IntegerField(min_value=1, default=1)


class OrderItemsUpdateSerializer(serializers.Serializer):
    items = OrderItemInputSerializer(many=True)
    version = serializers.IntegerField(required=False, allow_null=True)


class GuestCountSerializer(serializers.Serializer):
    guest_count = serializers.IntegerField(min_value=1)
    version = serializers.IntegerField(required=False, allow_null=True)


class TakeawaySubmitSerializer(serializers.Serializer):
    items = OrderItemInputSerializer(many=True)
    customer_name = serializers.CharField(max_length=140)
    customer_address = serializers.CharField(max_length=255, required=False, allow_blank=True, default="")
    payment_method = serializers.CharField(max_length=40, required=False, allow_blank=True, default="")
    # référence opaque du justificatif de paiement
    receipt_reference = serializers.CharField(max_length=255, required=False, allow_blank=True, default="")

    def validate_items(self, value):
        if not value:
            raise serializers.ValidationError("Ajoutez au moins un article.")
        if any(row.get("id") is not None for row in value):
            raise serializers.ValidationError("Un nouvel article ne peut pas avoir d'identifiant.")
        return value


class OrderItemSerializer(serializers.ModelSerializer):
    product_name = serializers.CharField(source="product.name", read_only=True)

    class Meta:
        model = OrderItem
        fields = [
            "id",
            "product_id",
            "product_name",
            "quantity",
            "excluded_ingredient_ids",
            "comment",
            "status",
            "sent_at",
            "unit_price",
            "position",
        ]


class OrderSerializer(serializers.ModelSerializer):
    origin = serializers.CharField(read_only=True)
    table = serializers.SerializerMethodField()
    items = OrderItemSerializer(many=True, read_only=True)
    total_amount = serializers.SerializerMethodField()

    class Meta:
        model = Order
        fields = [
            "id",
            "origin",
            "table",
            "is_takeaway",
            "status",
            "payment_status",
            "kitchen_status",
            "guest_count",
            "version",
            "created_at",
            "first_sent_at",
            "last_sent_at",
            "ready_at",
            "served_at",
            "paid_at",
            "finalized_at",
            "customer_name",
            "customer_address",
            "payment_method",
            "receipt_reference",
            "items",
            "total_amount",
        ]

    def get_table(self, obj):
        if not obj.table_id:
            return None
        return {"id": obj.table_id, "name": obj.table.name}

    def get_total_amount(self, obj):
        total = sum((item.unit_price * item.quantity for item in obj.items.all()), Decimal("0"))
        return str(total)
