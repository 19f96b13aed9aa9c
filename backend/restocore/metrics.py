from django.http import HttpResponse
from prometheus_client import CONTENT_TYPE_LATEST, Counter, generate_latest

ORDERS_FINALIZED = Counter(
    "restocore_orders_finalized_total",
    "Orders finalized",
    ["origin"],
)
SALES_RECORDED = Counter(
    "restocore_sales_recorded_total",
    "Sale rows written at finalization",
)
LEDGER_OVERSELLS = Counter(
    "restocore_ledger_oversells_total",
    "Deductions that exceeded the remaining lot stock",
)
LEDGER_SKIPPED_INGREDIENTS = Counter(
    "restocore_ledger_skipped_ingredients_total",
    "Ledger deltas skipped because the ingredient is unknown",
)
ORDER_CONFLICTS = Counter(
    "restocore_order_conflicts_total",
    "Order mutations rejected by a concurrent change",
    ["operation"],
)


def metrics_view(request):
    payload = generate_latest()
    return HttpResponse(payload, content_type=CONTENT_TYPE_LATEST)


def track_order_finalized(origin, sales_count):
    ORDERS_FINALIZED.labels(origin=origin or "unknown").inc()
    if sales_count:
        SALES_RECORDED.inc(sales_count)


def track_oversell():
    LEDGER_OVERSELLS.inc()


def track_skipped_ingredient():
    LEDGER_SKIPPED_INGREDIENTS.inc()


def track_order_conflict(operation):
    ORDER_CONFLICTS.labels(operation=operation or "unknown").inc()
