from rest_framework import permissions
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response

from accounts.permissions import SalesPermission

from .serializers import SaleFilterSerializer, SaleSerializer
from .services.recorder import list_sales


@api_view(["GET"])
@permission_classes([permissions.IsAuthenticated, SalesPermission])
def sales_list(request):
    filters = SaleFilterSerializer(data=request.query_params)
    filters.is_valid(raise_exception=True)
    qs = list_sales(
        start=filters.validated_data.get("start"),
        end=filters.validated_data.get("end"),
        product_id=filters.validated_data.get("product"),
    )
    return Response(SaleSerializer(qs, many=True).data)
