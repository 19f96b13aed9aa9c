from django.contrib import admin

from .models import DiningTable, Order, OrderItem


class OrderItemInline(admin.TabularInline):
    model = OrderItem
    extra = 0
    can_delete = False
    readonly_fields = (
        "product",
        "quantity",
        "excluded_ingredient_ids",
        "comment",
        "status",
        "sent_at",
        "unit_price",
        "position",
    )


@admin.register(DiningTable)
class DiningTableAdmin(admin.ModelAdmin):
    list_display = ("id", "name", "capacity", "is_active")
    list_filter = ("is_active",)


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    list_display = ("id", "table", "is_takeaway", "status", "payment_status", "kitchen_status", "created_at")
    list_filter = ("status", "payment_status", "kitchen_status", "is_takeaway")
    inlines = [OrderItemInline]
