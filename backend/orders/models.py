from django.conf import settings
from django.db import models
from django.db.models import Q
from django.utils import timezone

from catalog.models import Product


class DiningTable(models.Model):
    name = models.CharField(max_length=80, unique=True)
    capacity = models.PositiveIntegerField(default=4)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ["name"]

    def __str__(self):
        return self.name


class Order(models.Model):
    STATUS_CHOICES = [
        ("pending_validation", "En attente de validation"),
        ("active", "En cours"),
        ("finalized", "Finalisée"),
    ]
    # statuts qui retiennent du stock
    OPEN_STATUSES = ("pending_validation", "active")
    PAYMENT_CHOICES = [
        ("unpaid", "Non payée"),
        ("paid", "Payée"),
    ]
    KITCHEN_CHOICES = [
        ("received", "Reçue en cuisine"),
        ("ready", "Prête"),
        ("served", "Servie"),
    ]

    # table vide = commande à emporter
    table = models.ForeignKey(
        DiningTable, on_delete=models.PROTECT, null=True, blank=True, related_name="orders"
    )
    is_takeaway = models.BooleanField(default=False)

    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default="active")
    payment_status = models.CharField(max_length=10, choices=PAYMENT_CHOICES, default="unpaid")
    kitchen_status = models.CharField(
        max_length=10, choices=KITCHEN_CHOICES, null=True, blank=True
    )
    guest_count = models.PositiveIntegerField(default=1)

    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(auto_now=True)
    first_sent_at = models.DateTimeField(null=True, blank=True)
    last_sent_at = models.DateTimeField(null=True, blank=True)
    ready_at = models.DateTimeField(null=True, blank=True)
    served_at = models.DateTimeField(null=True, blank=True)
    paid_at = models.DateTimeField(null=True, blank=True)
    finalized_at = models.DateTimeField(null=True, blank=True)

    # verrou optimiste: incrémenté à chaque mutation
    version = models.PositiveIntegerField(default=1)

    customer_name = models.CharField(max_length=140, blank=True, default="")
    customer_address = models.CharField(max_length=255, blank=True, default="")
    payment_method = models.CharField(max_length=40, blank=True, default="")
    receipt_reference = models.CharField(max_length=255, blank=True, default="")

    class Meta:
        indexes = [
            models.Index(fields=["status", "kitchen_status"], name="orders_status_kitchen_idx"),
            models.Index(fields=["table", "status"], name="orders_table_status_idx"),
            models.Index(fields=["created_at"], name="orders_created_idx"),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["table"],
                condition=Q(status="active"),
                name="uniq_active_order_per_table",
            ),
            models.CheckConstraint(
                condition=Q(is_takeaway=True, table__isnull=True)
                | Q(is_takeaway=False, table__isnull=False),
                name="order_origin_table_or_takeaway",
            ),
        ]

    def __str__(self):
        return f"Commande #{self.id}"

    @property
    def origin(self):
        if self.is_takeaway:
            return settings.TAKEAWAY_ORIGIN
        return str(self.table_id)

    @property
    def origin_label(self):
        if self.is_takeaway:
            return "À emporter"
        return self.table.name if self.table_id else ""


class OrderItem(models.Model):
    STATUS_CHOICES = [
        ("new", "Nouveau"),
        ("sent", "Envoyé en cuisine"),
    ]

    order = models.ForeignKey(Order, on_delete=models.CASCADE, related_name="items")
    product = models.ForeignKey(Product, on_delete=models.PROTECT, related_name="order_items")
    quantity = models.PositiveIntegerField(default=1)
    excluded_ingredient_ids = models.JSONField(default=list, blank=True)
    comment = models.CharField(max_length=255, blank=True, default="")
    status = models.CharField(max_length=10, choices=STATUS_CHOICES, default="new")
    sent_at = models.DateTimeField(null=True, blank=True)
    # prix figé à l'ajout de l'article
    unit_price = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    position = models.PositiveIntegerField(default=0)

    class Meta:
        ordering = ["position", "id"]
        indexes = [
            models.Index(fields=["order", "status"], name="orders_item_status_idx"),
        ]

    def __str__(self):
        return f"{self.product_id} x{self.quantity}"
