import django.db.models.deletion
import django.utils.timezone
from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        ("catalog", "0001_initial"),
        ("orders", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="Sale",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("product_name", models.CharField(max_length=140)),
                ("quantity", models.PositiveIntegerField()),
                ("sold_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("unit_cost", models.DecimalField(decimal_places=4, max_digits=12)),
                ("cost_total", models.DecimalField(decimal_places=4, max_digits=14)),
                ("unit_price", models.DecimalField(decimal_places=2, max_digits=12)),
                ("revenue", models.DecimalField(decimal_places=2, max_digits=14)),
                ("profit", models.DecimalField(decimal_places=4, max_digits=14)),
                ("table_name", models.CharField(blank=True, default="", max_length=80)),
                ("sent_at", models.DateTimeField(blank=True, null=True)),
                ("served_at", models.DateTimeField(blank=True, null=True)),
                (
                    "order",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="sales",
                        to="orders.order",
                    ),
                ),
                (
                    "order_item",
                    models.OneToOneField(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="sale",
                        to="orders.orderitem",
                    ),
                ),
                (
                    "product",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="sales",
                        to="catalog.product",
                    ),
                ),
            ],
            options={
                "ordering": ["sold_at", "id"],
                "indexes": [
                    models.Index(fields=["sold_at"], name="sales_sold_at_idx"),
                    models.Index(fields=["product", "sold_at"], name="sales_product_idx"),
                ],
            },
        ),
    ]
