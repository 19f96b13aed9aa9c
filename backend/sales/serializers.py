from rest_framework import serializers

from .models import Sale


class SaleSerializer(serializers.ModelSerializer):
    class Meta:
        model = Sale
        fields = [
            "id",
            "order_id",
            "order_item_id",
            "product_id",
            "product_name",
            "quantity",
            "sold_at",
            "unit_cost",
            "cost_total",
            "unit_price",
            "revenue",
            "profit",
            "table_name",
            "sent_at",
            "served_at",
        ]
        read_only_fields = fields


class SaleFilterSerializer(serializers.Serializer):
    start = serializers.DateTimeField(required=False)
    end = serializers.DateTimeField(required=False)
    product = serializers.IntegerField(required=False)

    def validate(self, attrs):
        start, end = attrs.get("start"), attrs.get("end")
        if start and end and end <= start:
            raise serializers.ValidationError({"end": "La fin doit être après le début."})
        return attrs
