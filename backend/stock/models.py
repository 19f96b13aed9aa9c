from django.db import models
from django.db.models import F, Q
from django.utils import timezone

from catalog.models import Ingredient


class Lot(models.Model):
    ingredient = models.ForeignKey(Ingredient, on_delete=models.CASCADE, related_name="lots")
    initial_quantity = models.DecimalField(max_digits=12, decimal_places=3)
    remaining_quantity = models.DecimalField(max_digits=12, decimal_places=3)
    unit_cost = models.DecimalField(max_digits=12, decimal_places=4, default=0)
    purchased_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ["purchased_at", "id"]
        indexes = [
            models.Index(fields=["ingredient", "purchased_at"], name="stock_lot_fifo_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=Q(remaining_quantity__gte=0), name="lot_remaining_non_negative"
            ),
            models.CheckConstraint(
                condition=Q(remaining_quantity__lte=F("initial_quantity")),
                name="lot_remaining_lte_initial",
            ),
        ]

    def __str__(self):
        return f"Lot #{self.id} {self.ingredient_id} {self.remaining_quantity}/{self.initial_quantity}"


class Purchase(models.Model):
    ingredient = models.ForeignKey(Ingredient, on_delete=models.CASCADE, related_name="purchases")
    lot = models.OneToOneField(
        Lot, on_delete=models.SET_NULL, null=True, blank=True, related_name="purchase"
    )
    quantity = models.DecimalField(max_digits=12, decimal_places=3)
    total_price = models.DecimalField(max_digits=12, decimal_places=2)
    purchased_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ["-purchased_at", "-id"]

    def __str__(self):
        return f"Achat {self.ingredient_id} x{self.quantity}"


class StockMovement(models.Model):
    KIND_CHOICES = (
        ("order_commit", "Consommation commande"),
        ("order_release", "Restitution commande"),
        ("purchase", "Achat"),
    )

    ingredient = models.ForeignKey(Ingredient, on_delete=models.CASCADE, related_name="movements")
    kind = models.CharField(max_length=20, choices=KIND_CHOICES)
    # signé: négatif = sortie de stock
    quantity = models.DecimalField(max_digits=12, decimal_places=3)
    # commit: quantité vendue qu'aucun lot ne couvrait; release: part de ce manque absorbée
    shortfall = models.DecimalField(max_digits=12, decimal_places=3, default=0)
    order = models.ForeignKey(
        "orders.Order",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="stock_movements",
    )
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        indexes = [
            models.Index(fields=["ingredient", "created_at"], name="stock_move_ingredient_idx"),
        ]

    def __str__(self):
        return f"{self.kind} {self.ingredient_id} {self.quantity}"
