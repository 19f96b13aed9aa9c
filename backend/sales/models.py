from django.db import models
from django.utils import timezone

from catalog.models import Product
from orders.models import Order, OrderItem
from utils.errors import PreconditionFailedError

IMMUTABLE_DETAIL = "Une vente enregistrée ne peut être ni modifiée ni supprimée."


class SaleQuerySet(models.QuerySet):
    def update(self, **kwargs):
        raise PreconditionFailedError(IMMUTABLE_DETAIL)

    def delete(self):
        raise PreconditionFailedError(IMMUTABLE_DETAIL)


class Sale(models.Model):
    """Ligne du journal des ventes, écrite une fois à la finalisation."""

    order = models.ForeignKey(Order, on_delete=models.PROTECT, related_name="sales")
    order_item = models.OneToOneField(OrderItem, on_delete=models.PROTECT, related_name="sale")
    product = models.ForeignKey(Product, on_delete=models.PROTECT, related_name="sales")
    product_name = models.CharField(max_length=140)
    quantity = models.PositiveIntegerField()
    sold_at = models.DateTimeField(default=timezone.now)

    unit_cost = models.DecimalField(max_digits=12, decimal_places=4)
    cost_total = models.DecimalField(max_digits=14, decimal_places=4)
    unit_price = models.DecimalField(max_digits=12, decimal_places=2)
    revenue = models.DecimalField(max_digits=14, decimal_places=2)
    profit = models.DecimalField(max_digits=14, decimal_places=4)

    table_name = models.CharField(max_length=80, blank=True, default="")
    sent_at = models.DateTimeField(null=True, blank=True)
    served_at = models.DateTimeField(null=True, blank=True)

    objects = SaleQuerySet.as_manager()

    class Meta:
        ordering = ["sold_at", "id"]
        indexes = [
            models.Index(fields=["sold_at"], name="sales_sold_at_idx"),
            models.Index(fields=["product", "sold_at"], name="sales_product_idx"),
        ]

    def __str__(self):
        return f"Vente #{self.id} {self.product_name} x{self.quantity}"

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise PreconditionFailedError(IMMUTABLE_DETAIL)
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise PreconditionFailedError(IMMUTABLE_DETAIL)
