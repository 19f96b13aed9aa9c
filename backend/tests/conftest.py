import pytest
from django.core.cache import cache


@pytest.fixture(autouse=True)
def _clear_throttle_cache():
    # les compteurs de throttling vivent dans le cache local
    cache.clear()
    yield
    cache.clear()
