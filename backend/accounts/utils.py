from accounts.models import RESOURCES, UserProfile

LEVEL_RANK = {"none": 0, "readonly": 1, "editor": 2}

# Une ressource hérite du niveau le plus élevé parmi ses alias
# (un accès "tables" ou "sales" ouvre aussi les commandes).
RESOURCE_ALIASES = {
    "orders": ("orders", "tables", "sales"),
}


def resolve_permission_level(permissions, keys):
    level = "none"
    if not isinstance(permissions, dict):
        return level
    for key in keys:
        value = permissions.get(key)
        if value == "editor":
            return "editor"
        if value == "readonly":
            level = "readonly"
    return level


def normalize_permissions(permissions):
    normalized = dict(permissions) if isinstance(permissions, dict) else {}
    for resource, _label in RESOURCES:
        keys = RESOURCE_ALIASES.get(resource, (resource,))
        normalized[resource] = resolve_permission_level(normalized, keys)
    return normalized


def get_user_role(request):
    user = getattr(request, "user", None)
    if not user or not user.is_authenticated:
        return None
    profile = UserProfile.objects.filter(user=user).select_related("role").first()
    if not profile:
        return None
    return profile.role


def get_permission_level(request, resource):
    user = getattr(request, "user", None)
    if not user or not user.is_authenticated:
        return "none"
    if user.is_superuser:
        return "editor"
    role = get_user_role(request)
    if role is None:
        return "none"
    return normalize_permissions(role.permissions).get(resource, "none")
