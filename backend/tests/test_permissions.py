import pytest
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken

from accounts.models import RESOURCES
from accounts.utils import normalize_permissions
from .factories import DiningTableFactory, IngredientFactory, RoleFactory, UserFactory


def _auth_client(user):
    client = APIClient()
    token = RefreshToken.for_user(user).access_token
    client.credentials(HTTP_AUTHORIZATION=f"Bearer {token}")
    return client


def _role(**levels):
    permissions = {code: "none" for code, _ in RESOURCES}
    permissions.update(levels)
    return RoleFactory(permissions=permissions)


def test_normalize_permissions_resolves_aliases():
    normalized = normalize_permissions({"tables": "editor", "sales": "readonly"})
    assert normalized["orders"] == "editor"
    assert normalized["kitchen"] == "none"

    normalized = normalize_permissions({"sales": "readonly"})
    assert normalized["orders"] == "readonly"
    assert normalize_permissions(None)["orders"] == "none"


@pytest.mark.django_db
def test_readonly_role_reads_but_cannot_write():
    client = _auth_client(UserFactory(profile=_role(ingredients="readonly")))

    assert client.get("/api/inventory/ingredients/").status_code == 200
    res = client.post(
        "/api/inventory/ingredients/", {"name": "Sel", "unit": "kg"}, format="json"
    )
    assert res.status_code == 403


@pytest.mark.django_db
def test_none_level_is_forbidden():
    client = _auth_client(UserFactory(profile=_role(ingredients="editor")))
    assert client.get("/api/sales/").status_code == 403
    assert client.get("/api/orders/kitchen/").status_code == 403


@pytest.mark.django_db
def test_tables_editor_can_open_orders():
    table = DiningTableFactory()
    client = _auth_client(UserFactory(profile=_role(tables="editor")))

    res = client.post("/api/orders/", {"origin": str(table.id)}, format="json")
    assert res.status_code == 201


@pytest.mark.django_db
def test_sales_readonly_can_list_orders_only():
    table = DiningTableFactory()
    client = _auth_client(UserFactory(profile=_role(sales="readonly")))

    assert client.get("/api/orders/", {"origin": str(table.id)}).status_code == 200
    assert client.post("/api/orders/", {"origin": str(table.id)}, format="json").status_code == 403


@pytest.mark.django_db
def test_superuser_has_every_permission():
    user = UserFactory(profile=_role(), is_superuser=True)
    client = _auth_client(user)

    assert client.post(
        "/api/inventory/ingredients/", {"name": "Sel", "unit": "kg"}, format="json"
    ).status_code == 201
    me = client.get("/api/auth/me/").data
    assert all(level == "editor" for level in me["permissions"].values())


@pytest.mark.django_db
def test_me_returns_role_and_permissions():
    role = _role(kitchen="editor", sales="readonly")
    client = _auth_client(UserFactory(profile=role))

    res = client.get("/api/auth/me/")
    assert res.status_code == 200
    assert res.data["role"]["code"] == role.code
    assert res.data["permissions"]["kitchen"] == "editor"
    assert res.data["permissions"]["orders"] == "readonly"
    assert res.data["permissions"]["products"] == "none"


@pytest.mark.django_db
def test_anonymous_requests_are_rejected():
    IngredientFactory()
    client = APIClient()
    assert client.get("/api/inventory/ingredients/").status_code == 401
    assert client.get("/api/auth/me/").status_code == 401


@pytest.mark.django_db
def test_token_obtain_and_use():
    user = UserFactory(username="caisse")
    client = APIClient()

    res = client.post(
        "/api/auth/token/", {"username": "caisse", "password": "password123"}, format="json"
    )
    assert res.status_code == 200
    assert "access" in res.data and "refresh" in res.data

    client.credentials(HTTP_AUTHORIZATION=f"Bearer {res.data['access']}")
    assert client.get("/api/auth/me/").data["id"] == user.id

    res = client.post("/api/auth/token/", {"username": "caisse", "password": "faux"}, format="json")
    assert res.status_code == 401
