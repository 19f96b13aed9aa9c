from rest_framework import permissions

from .utils import LEVEL_RANK, get_permission_level


class RolePermission(permissions.BasePermission):
    """
    Allow access based on the role permission level for `resource`.
    Safe methods need "readonly", writes need "editor".
    """

    resource = None

    def has_permission(self, request, view):
        level = get_permission_level(request, self.resource)
        needed = "readonly" if request.method in permissions.SAFE_METHODS else "editor"
        return LEVEL_RANK.get(level, 0) >= LEVEL_RANK[needed]


class OrderPermission(RolePermission):
    resource = "orders"


class TablePermission(RolePermission):
    resource = "tables"


class KitchenPermission(RolePermission):
    resource = "kitchen"


class TakeawayPermission(RolePermission):
    resource = "takeaway"


class IngredientPermission(RolePermission):
    resource = "ingredients"


class ProductPermission(RolePermission):
    resource = "products"


class SalesPermission(RolePermission):
    resource = "sales"
