from django.conf import settings
from django.db import models
from django.utils import timezone

PERMISSION_LEVELS = (
    ("editor", "Éditeur"),
    ("readonly", "Lecture seule"),
    ("none", "Aucun accès"),
)

RESOURCES = (
    ("orders", "Commandes"),
    ("tables", "Tables"),
    ("kitchen", "Cuisine"),
    ("takeaway", "À emporter"),
    ("ingredients", "Ingrédients"),
    ("products", "Produits"),
    ("sales", "Ventes"),
)


def default_role_permissions():
    return {code: "none" for code, _ in RESOURCES}


class Role(models.Model):
    """
    Niveau d'accès par ressource: {"orders": "editor", "ingredients": "readonly", ...}.
    Une clé absente vaut "none".
    """

    code = models.SlugField(max_length=50, unique=True)
    name = models.CharField(max_length=100)
    permissions = models.JSONField(default=default_role_permissions, blank=True)
    created_at = models.DateTimeField(default=timezone.now)

    def __str__(self):
        return self.name


class UserProfile(models.Model):
    user = models.OneToOneField(
        settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="profile"
    )
    role = models.ForeignKey(
        Role, on_delete=models.SET_NULL, null=True, blank=True, related_name="profiles"
    )
    created_at = models.DateTimeField(default=timezone.now)

    def __str__(self):
        return f"{self.user} ({self.role.code if self.role_id else 'sans rôle'})"
