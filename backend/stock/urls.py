from django.urls import path

from . import views

urlpatterns = [
    path("ingredients/", views.inventory_ingredients, name="inventory_ingredients"),
    path(
        "ingredients/<int:ingredient_id>/",
        views.inventory_ingredient_detail,
        name="inventory_ingredient_detail",
    ),
    path(
        "ingredients/<int:ingredient_id>/purchases/",
        views.inventory_ingredient_purchases,
        name="inventory_ingredient_purchases",
    ),
    path(
        "ingredients/<int:ingredient_id>/lots/",
        views.inventory_ingredient_lots,
        name="inventory_ingredient_lots",
    ),
    path("low-stock/", views.inventory_low_stock, name="inventory_low_stock"),
]
