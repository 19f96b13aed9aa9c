from django.urls import path

from . import views

urlpatterns = [
    path("tables/", views.tables, name="tables"),
    path("tables/<int:table_id>/", views.table_detail, name="table_detail"),
    path("orders/", views.orders, name="orders"),
    path("orders/active/", views.active_orders, name="orders_active"),
    path("orders/kitchen/", views.kitchen_queue, name="orders_kitchen"),
    path("orders/takeaway/", views.takeaway_submit, name="takeaway_submit"),
    path("orders/takeaway/pending/", views.takeaway_pending, name="takeaway_pending"),
    path("orders/takeaway/ready/", views.takeaway_ready, name="takeaway_ready"),
    path("orders/<int:order_id>/", views.order_detail, name="order_detail"),
    path("orders/<int:order_id>/items/", views.order_items, name="order_items"),
    path("orders/<int:order_id>/guests/", views.order_guests, name="order_guests"),
    path("orders/<int:order_id>/send/", views.order_send, name="order_send"),
    path("orders/<int:order_id>/ready/", views.order_ready, name="order_ready"),
    path("orders/<int:order_id>/served/", views.order_served, name="order_served"),
    path("orders/<int:order_id>/paid/", views.order_paid, name="order_paid"),
    path("orders/<int:order_id>/finalize/", views.order_finalize, name="order_finalize"),
    path("orders/<int:order_id>/cancel-unpaid/", views.order_cancel_unpaid, name="order_cancel_unpaid"),
    path("orders/<int:order_id>/cancel-empty/", views.order_cancel_empty, name="order_cancel_empty"),
    path("orders/<int:order_id>/validate/", views.takeaway_validate, name="takeaway_validate"),
    path("orders/<int:order_id>/reject/", views.takeaway_reject, name="takeaway_reject"),
]
