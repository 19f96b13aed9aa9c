import factory
from django.contrib.auth import get_user_model

from accounts.models import RESOURCES, Role, UserProfile
from catalog.models import Category, Ingredient, Product, RecipeItem
from orders.models import DiningTable

User = get_user_model()


class RoleFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = Role

    code = factory.Sequence(lambda n: f"role-{n}")
    name = factory.Sequence(lambda n: f"Rôle {n}")
    permissions = factory.LazyFunction(lambda: {code: "editor" for code, _ in RESOURCES})


class UserFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = User
        skip_postgeneration_save = True

    username = factory.Sequence(lambda n: f"user{n}")
    email = factory.LazyAttribute(lambda o: f"{o.username}@example.com")
    password = factory.PostGenerationMethodCall("set_password", "password123")

    @factory.post_generation
    def profile(self, create, extracted, **kwargs):
        if not create:
            return
        role = extracted or RoleFactory()
        UserProfile.objects.create(user=self, role=role)
        self.save()


class CategoryFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = Category

    name = factory.Sequence(lambda n: f"Catégorie {n}")


class IngredientFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = Ingredient

    name = factory.Sequence(lambda n: f"Ingrédient {n}")
    unit = "kg"
    minimum_stock = "0"


class ProductFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = Product

    name = factory.Sequence(lambda n: f"Plat {n}")
    price = "10.00"
    category = factory.SubFactory(CategoryFactory)
    status = "available"


class RecipeItemFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = RecipeItem

    product = factory.SubFactory(ProductFactory)
    ingredient = factory.SubFactory(IngredientFactory)
    quantity = "1"
    position = factory.Sequence(lambda n: n)


class DiningTableFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = DiningTable

    name = factory.Sequence(lambda n: f"Table {n}")
    capacity = 4
    is_active = True
