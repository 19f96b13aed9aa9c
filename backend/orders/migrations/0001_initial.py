import django.db.models.deletion
import django.utils.timezone
from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        ("catalog", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="DiningTable",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=80, unique=True)),
                ("capacity", models.PositiveIntegerField(default=4)),
                ("is_active", models.BooleanField(default=True)),
                ("created_at", models.DateTimeField(default=django.utils.timezone.now)),
            ],
            options={"ordering": ["name"]},
        ),
        migrations.CreateModel(
            name="Order",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("is_takeaway", models.BooleanField(default=False)),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("pending_validation", "En attente de validation"),
                            ("active", "En cours"),
                            ("finalized", "Finalisée"),
                        ],
                        default="active",
                        max_length=20,
                    ),
                ),
                (
                    "payment_status",
                    models.CharField(
                        choices=[("unpaid", "Non payée"), ("paid", "Payée")],
                        default="unpaid",
                        max_length=10,
                    ),
                ),
                (
                    "kitchen_status",
                    models.CharField(
                        blank=True,
                        choices=[("received", "Reçue en cuisine"), ("ready", "Prête"), ("served", "Servie")],
                        max_length=10,
                        null=True,
                    ),
                ),
                ("guest_count", models.PositiveIntegerField(default=1)),
                ("created_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("first_sent_at", models.DateTimeField(blank=True, null=True)),
                ("last_sent_at", models.DateTimeField(blank=True, null=True)),
                ("ready_at", models.DateTimeField(blank=True, null=True)),
                ("served_at", models.DateTimeField(blank=True, null=True)),
                ("paid_at", models.DateTimeField(blank=True, null=True)),
                ("finalized_at", models.DateTimeField(blank=True, null=True)),
                ("version", models.PositiveIntegerField(default=1)),
                ("customer_name", models.CharField(blank=True, default="", max_length=140)),
                ("customer_address", models.CharField(blank=True, default="", max_length=255)),
                ("payment_method", models.CharField(blank=True, default="", max_length=40)),
                ("receipt_reference", models.CharField(blank=True, default="", max_length=255)),
                (
                    "table",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="orders",
                        to="orders.diningtable",
                    ),
                ),
            ],
            options={
                "indexes": [
                    models.Index(fields=["status", "kitchen_status"], name="orders_status_kitchen_idx"),
                    models.Index(fields=["table", "status"], name="orders_table_status_idx"),
                    models.Index(fields=["created_at"], name="orders_created_idx"),
                ],
                "constraints": [
                    models.UniqueConstraint(
                        condition=models.Q(status="active"),
                        fields=("table",),
                        name="uniq_active_order_per_table",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(is_takeaway=True, table__isnull=True)
                        | models.Q(is_takeaway=False, table__isnull=False),
                        name="order_origin_table_or_takeaway",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="OrderItem",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("quantity", models.PositiveIntegerField(default=1)),
                ("excluded_ingredient_ids", models.JSONField(blank=True, default=list)),
                ("comment", models.CharField(blank=True, default="", max_length=255)),
                (
                    "status",
                    models.CharField(
                        choices=[("new", "Nouveau"), ("sent", "Envoyé en cuisine")],
                        default="new",
                        max_length=10,
                    ),
                ),
                ("sent_at", models.DateTimeField(blank=True, null=True)),
                ("unit_price", models.DecimalField(decimal_places=2, default=0, max_digits=12)),
                ("position", models.PositiveIntegerField(default=0)),
                (
                    "order",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="items",
                        to="orders.order",
                    ),
                ),
                (
                    "product",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="order_items",
                        to="catalog.product",
                    ),
                ),
            ],
            options={
                "ordering": ["position", "id"],
                "indexes": [models.Index(fields=["order", "status"], name="orders_item_status_idx")],
            },
        ),
    ]
