from django.contrib import admin

from .models import Lot, Purchase, StockMovement


class ReadOnlyLedgerAdmin(admin.ModelAdmin):
    """Les lots et mouvements ne s'écrivent que via stock.services.ledger."""

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(Lot)
class LotAdmin(ReadOnlyLedgerAdmin):
    list_display = ("id", "ingredient", "initial_quantity", "remaining_quantity", "unit_cost", "purchased_at")
    list_filter = ("ingredient",)


@admin.register(Purchase)
class PurchaseAdmin(ReadOnlyLedgerAdmin):
    list_display = ("id", "ingredient", "quantity", "total_price", "purchased_at")


@admin.register(StockMovement)
class StockMovementAdmin(ReadOnlyLedgerAdmin):
    list_display = ("id", "ingredient", "kind", "quantity", "shortfall", "order", "created_at")
    list_filter = ("kind",)
