import pytest
from django.core.cache import cache


@pytest.fixture(autouse=True)
def clear_cache():
    # locmem cache outlives the per-test transaction rollback
    cache.clear()
    yield
    cache.clear()
