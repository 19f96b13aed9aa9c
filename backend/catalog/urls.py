from django.urls import path

from . import views

urlpatterns = [
    path("categories/", views.catalog_categories, name="catalog_categories"),
    path(
        "categories/<int:category_id>/",
        views.catalog_category_detail,
        name="catalog_category_detail",
    ),
    path("products/", views.catalog_products, name="catalog_products"),
    path("products/<int:product_id>/", views.catalog_product_detail, name="catalog_product_detail"),
    path(
        "products/<int:product_id>/recipe/",
        views.catalog_product_recipe,
        name="catalog_product_recipe",
    ),
    path(
        "products/<int:product_id>/status/",
        views.catalog_product_status,
        name="catalog_product_status",
    ),
    path(
        "products/<int:product_id>/availability/",
        views.catalog_product_availability,
        name="catalog_product_availability",
    ),
]
