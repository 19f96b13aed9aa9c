from django.db.models import ProtectedError
from rest_framework import permissions, status
from rest_framework.decorators import api_view, permission_classes, throttle_classes
from rest_framework.response import Response
from rest_framework.throttling import AnonRateThrottle

from accounts.permissions import (
    KitchenPermission,
    OrderPermission,
    TablePermission,
    TakeawayPermission,
)
from utils.errors import PreconditionFailedError

from .models import DiningTable
from .serializers import (
    DiningTableSerializer,
    GuestCountSerializer,
    OrderCreateSerializer,
    OrderItemsUpdateSerializer,
    OrderSerializer,
    TakeawaySubmitSerializer,
)
from .services import orders as order_service


class TakeawaySubmitThrottle(AnonRateThrottle):
    scope = "takeaway_submit"


def _order_response(order, http_status=status.HTTP_200_OK):
    order = order_service.get_order(order.id)
    return Response(OrderSerializer(order).data, status=http_status)


@api_view(["GET", "POST"])
@permission_classes([permissions.IsAuthenticated, TablePermission])
def tables(request):
    if request.method == "POST":
        serializer = DiningTableSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        table = serializer.save()
        return Response(DiningTableSerializer(table).data, status=status.HTTP_201_CREATED)

    qs = DiningTable.objects.order_by("name")
    if request.query_params.get("active") == "1":
        qs = qs.filter(is_active=True)
    return Response(DiningTableSerializer(qs, many=True).data)


@api_view(["PATCH", "DELETE"])
@permission_classes([permissions.IsAuthenticated, TablePermission])
def table_detail(request, table_id: int):
    table = DiningTable.objects.filter(id=table_id).first()
    if not table:
        return Response({"detail": "Table introuvable."}, status=status.HTTP_404_NOT_FOUND)

    if request.method == "DELETE":
        try:
            table.delete()
        except ProtectedError as exc:
            raise PreconditionFailedError(
                "Table liée à des commandes, désactivez-la.",
                items=sorted(order.id for order in exc.protected_objects),
            )
        return Response(status=status.HTTP_204_NO_CONTENT)

    serializer = DiningTableSerializer(table, data=request.data, partial=True)
    serializer.is_valid(raise_exception=True)
    serializer.save()
    return Response(serializer.data)


@api_view(["GET", "POST"])
@permission_classes([permissions.IsAuthenticated, OrderPermission])
def orders(request):
    if request.method == "POST":
        serializer = OrderCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        order = order_service.create_order(
            serializer.validated_data["origin"],
            serializer.validated_data["guest_count"],
        )
        return _order_response(order, status.HTTP_201_CREATED)

    origin = request.query_params.get("origin")
    if not origin:
        return Response({"detail": "Paramètre origin requis."}, status=status.HTTP_400_BAD_REQUEST)
    include_finalized = request.query_params.get("include_finalized") == "1"
    qs = order_service.get_orders_by_origin(origin, include_finalized=include_finalized)
    return Response(OrderSerializer(qs, many=True).data)


@api_view(["GET"])
@permission_classes([permissions.IsAuthenticated, OrderPermission])
def order_detail(request, order_id: int):
    order = order_service.get_order(order_id)
    return Response(OrderSerializer(order).data)


@api_view(["PUT"])
@permission_classes([permissions.IsAuthenticated, OrderPermission])
def order_items(request, order_id: int):
    serializer = OrderItemsUpdateSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    order = order_service.update_order_items(
        order_id,
        serializer.validated_data["items"],
        expected_version=serializer.validated_data.get("version"),
    )
    return Response(OrderSerializer(order).data)


@api_view(["PATCH"])
@permission_classes([permissions.IsAuthenticated, OrderPermission])
def order_guests(request, order_id: int):
    serializer = GuestCountSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    order = order_service.update_guest_count(
        order_id,
        serializer.validated_data["guest_count"],
        expected_version=serializer.validated_data.get("version"),
    )
    return _order_response(order)


@api_view(["POST"])
@permission_classes([permissions.IsAuthenticated, OrderPermission])
def order_send(request, order_id: int):
    return _order_response(order_service.send_to_kitchen(order_id))


@api_view(["POST"])
@permission_classes([permissions.IsAuthenticated, KitchenPermission])
def order_ready(request, order_id: int):
    return _order_response(order_service.mark_ready(order_id))


@api_view(["POST"])
@permission_classes([permissions.IsAuthenticated, OrderPermission])
def order_served(request, order_id: int):
    return _order_response(order_service.acknowledge_served(order_id))


@api_view(["POST"])
@permission_classes([permissions.IsAuthenticated, OrderPermission])
def order_paid(request, order_id: int):
    return _order_response(order_service.mark_paid(order_id))


@api_view(["POST"])
@permission_classes([permissions.IsAuthenticated, OrderPermission])
def order_finalize(request, order_id: int):
    return _order_response(order_service.finalize_order(order_id))


@api_view(["POST"])
@permission_classes([permissions.IsAuthenticated, OrderPermission])
def order_cancel_unpaid(request, order_id: int):
    order_service.cancel_unpaid(order_id)
    return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(["POST"])
@permission_classes([permissions.IsAuthenticated, OrderPermission])
def order_cancel_empty(request, order_id: int):
    order_service.cancel_empty(order_id)
    return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(["POST"])
@permission_classes([permissions.AllowAny])
@throttle_classes([TakeawaySubmitThrottle])
def takeaway_submit(request):
    serializer = TakeawaySubmitSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data
    order = order_service.submit_pending_takeaway(
        data["items"],
        {field: data.get(field, "") for field in order_service.CUSTOMER_FIELDS},
    )
    return Response(OrderSerializer(order).data, status=status.HTTP_201_CREATED)


@api_view(["POST"])
@permission_classes([permissions.IsAuthenticated, TakeawayPermission])
def takeaway_validate(request, order_id: int):
    return _order_response(order_service.validate_takeaway(order_id))


@api_view(["POST"])
@permission_classes([permissions.IsAuthenticated, TakeawayPermission])
def takeaway_reject(request, order_id: int):
    order_service.reject_takeaway(order_id)
    return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(["GET"])
@permission_classes([permissions.IsAuthenticated, TakeawayPermission])
def takeaway_pending(request):
    return Response(OrderSerializer(order_service.pending_takeaway_orders(), many=True).data)


@api_view(["GET"])
@permission_classes([permissions.IsAuthenticated, TakeawayPermission])
def takeaway_ready(request):
    return Response(OrderSerializer(order_service.ready_takeaway_orders(), many=True).data)


@api_view(["GET"])
@permission_classes([permissions.IsAuthenticated, KitchenPermission])
def kitchen_queue(request):
    return Response(OrderSerializer(order_service.kitchen_queue(), many=True).data)


@api_view(["GET"])
@permission_classes([permissions.IsAuthenticated, OrderPermission])
def active_orders(request):
    return Response(OrderSerializer(order_service.active_orders(), many=True).data)
