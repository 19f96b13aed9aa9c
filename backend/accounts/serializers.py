from django.contrib.auth import get_user_model
from rest_framework import serializers

from .models import RESOURCES, Role
from .utils import normalize_permissions

User = get_user_model()


class RoleSerializer(serializers.ModelSerializer):
    class Meta:
        model = Role
        fields = ["id", "code", "name", "permissions"]


class MeSerializer(serializers.ModelSerializer):
    role = serializers.SerializerMethodField()
    permissions = serializers.SerializerMethodField()

    class Meta:
        model = User
        fields = ["id", "username", "email", "is_superuser", "role", "permissions"]

    def _role(self, obj):
        profile = getattr(obj, "profile", None)
        return profile.role if profile else None

    def get_role(self, obj):
        role = self._role(obj)
        return RoleSerializer(role).data if role else None

    def get_permissions(self, obj):
        if obj.is_superuser:
            return {code: "editor" for code, _ in RESOURCES}
        role = self._role(obj)
        return normalize_permissions(role.permissions if role else {})
