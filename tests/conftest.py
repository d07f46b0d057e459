import os

os.environ.setdefault("SUPABASE_URL", "https://cafe-test.supabase.co")
os.environ.setdefault("SUPABASE_KEY", "test-anon-key")
os.environ.setdefault("SUPABASE_SERVICE_KEY", "test-service-key")
os.environ.setdefault("KITCHEN_API_KEY", "kitchen-test-key")
os.environ.setdefault("ADMIN_API_KEY", "admin-test-key")

import pytest  # noqa: E402

from cafe.controllers.kitchen import KitchenView  # noqa: E402
from cafe.core.session import SessionRegistry  # noqa: E402

from fakes import FakeChangeFeed, FakeOrderStore, FakeRedis  # noqa: E402


@pytest.fixture
def feed():
    return FakeChangeFeed()


@pytest.fixture
def store(feed):
    store = FakeOrderStore(feed)
    store.add_menu_item("latte", "Latte", 18000)
    store.add_menu_item("croissant", "Croissant", 9550)
    store.add_menu_item("cold-brew", "Cold Brew", 22000, available=False)
    return store


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def registry(fake_redis):
    return SessionRegistry(client=fake_redis)


@pytest.fixture
def kitchen_view(store, feed):
    return KitchenView(store, feed)


@pytest.fixture
def app(store, feed, registry, kitchen_view):
    from cafe.api import deps
    from cafe.core.rate_limiter import order_limiter
    from cafe.main import app

    app.dependency_overrides[deps.get_order_store] = lambda: store
    app.dependency_overrides[deps.get_change_feed] = lambda: feed
    app.dependency_overrides[deps.get_session_registry] = lambda: registry
    app.dependency_overrides[order_limiter] = lambda: 0
    app.state.kitchen_view = kitchen_view
    yield app
    app.dependency_overrides.clear()
    app.state.kitchen_view = None
