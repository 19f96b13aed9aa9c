from django.db import models
from django.utils import timezone
from django.utils.text import slugify


class Category(models.Model):
    name = models.CharField(max_length=150)
    slug = models.SlugField(max_length=160, unique=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["name"]

    def save(self, *args, **kwargs):
        if not self.slug:
            self.slug = slugify(self.name)[:160]
        super().save(*args, **kwargs)

    def __str__(self):
        return self.name


class Ingredient(models.Model):
    UNIT_CHOICES = (
        ("kg", "Kilogramme"),
        ("L", "Litre"),
        ("unit", "Unité"),
    )

    name = models.CharField(max_length=140)
    unit = models.CharField(max_length=10, choices=UNIT_CHOICES, default="unit")
    minimum_stock = models.DecimalField(max_digits=12, decimal_places=3, default=0)

    # Valeurs dérivées des lots, écrites uniquement par stock.services.ledger.
    stock_quantity = models.DecimalField(max_digits=12, decimal_places=3, default=0)
    average_cost = models.DecimalField(max_digits=12, decimal_places=4, default=0)
    below_minimum_since = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["name"]
        indexes = [
            models.Index(fields=["name"], name="catalog_ingredient_name_idx"),
        ]

    def __str__(self):
        return f"{self.name} ({self.unit})"

    @property
    def is_below_minimum(self):
        return self.stock_quantity <= self.minimum_stock


class Product(models.Model):
    STATUS_CHOICES = (
        ("available", "Disponible"),
        ("temporarily_unavailable", "Indisponible temporairement"),
        ("indefinitely_unavailable", "Indisponible"),
    )

    name = models.CharField(max_length=140)
    price = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    category = models.ForeignKey(
        Category, on_delete=models.SET_NULL, null=True, blank=True, related_name="products"
    )
    status = models.CharField(max_length=30, choices=STATUS_CHOICES, default="available")

    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["name"]
        indexes = [
            models.Index(fields=["status"], name="catalog_product_status_idx"),
        ]

    def __str__(self):
        return self.name

    @property
    def is_available(self):
        return self.status == "available"


class RecipeItem(models.Model):
    product = models.ForeignKey(Product, on_delete=models.CASCADE, related_name="recipe_items")
    ingredient = models.ForeignKey(
        Ingredient, on_delete=models.PROTECT, related_name="recipe_items"
    )
    # quantité pour une unité de produit, dans l'unité de l'ingrédient
    quantity = models.DecimalField(max_digits=12, decimal_places=3)
    position = models.PositiveIntegerField(default=0)

    class Meta:
        ordering = ["position", "id"]
        constraints = [
            models.UniqueConstraint(
                fields=["product", "ingredient"], name="uniq_recipe_ingredient"
            )
        ]

    def __str__(self):
        return f"{self.product_id} -> {self.ingredient_id} x{self.quantity}"
