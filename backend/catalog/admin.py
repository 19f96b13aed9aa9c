from django.contrib import admin

from .models import Category, Ingredient, Product, RecipeItem


class RecipeItemInline(admin.TabularInline):
    model = RecipeItem
    extra = 0


@admin.register(Category)
class CategoryAdmin(admin.ModelAdmin):
    list_display = ("id", "name", "slug")
    search_fields = ("name",)


@admin.register(Ingredient)
class IngredientAdmin(admin.ModelAdmin):
    list_display = ("id", "name", "unit", "stock_quantity", "minimum_stock", "average_cost")
    search_fields = ("name",)
    readonly_fields = ("stock_quantity", "average_cost", "below_minimum_since")


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = ("id", "name", "price", "category", "status")
    list_filter = ("status", "category")
    search_fields = ("name",)
    inlines = [RecipeItemInline]
