import pytest
from sqlmodel import SQLModel, create_engine

from storefront.core.config import Settings
from storefront.models import shareable_cart as _shareable_cart_models  # noqa: F401
from storefront.models import storage as _storage_models  # noqa: F401
from storefront.repositories.storage_repo import KeyValueStore
from storefront.schemas.cart import CartLine
from storefront.schemas.favourite import FavouriteItem
from storefront.schemas.product import ProductRef
from storefront.services.cart_service import CartService
from storefront.services.favourites_service import FavouritesService
from storefront.services.persistence import PersistentStore
from storefront.services.stock_lookup import MockStockLookup


@pytest.fixture
def settings():
    return Settings(_env_file=None)


@pytest.fixture
def engine(tmp_path):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'storage.db'}",
        connect_args={"check_same_thread": False},
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def kv(engine, settings):
    return KeyValueStore(engine, "device-1", settings.STORAGE_QUOTA_BYTES)


@pytest.fixture
def stock_lookup():
    return MockStockLookup()


@pytest.fixture
def cart_store(kv, settings):
    return PersistentStore(kv, settings.CART_COLLECTION, "guest", CartLine)


@pytest.fixture
def cart(cart_store, settings):
    return CartService(cart_store, settings)


@pytest.fixture
def favourites_store(kv, settings):
    return PersistentStore(kv, settings.FAVOURITES_COLLECTION, "guest", FavouriteItem)


@pytest.fixture
def favourites(favourites_store, stock_lookup, settings):
    return FavouritesService(favourites_store, stock_lookup, settings)


@pytest.fixture
def make_product():
    def _make(product_id="7", name="Glass Cleaner 750ml", price=18.75, **extra) -> ProductRef:
        return ProductRef(id=product_id, name=name, price=price, **extra)

    return _make
