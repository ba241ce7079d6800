"""
Pytest configuration and fixtures.
"""
import os
import sys
from typing import Generator
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Add the parent directory to the path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from app.cache import CacheStore
from app.catalog_models import ProductPage
from app.config import Settings
from app.context import CatalogContext, get_catalog_context
from app.database import Base
from app.main import app
from app.preloader import ImagePreloader
from app.storage import DurableStorage


# Create in-memory SQLite database for testing
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

SITE_URL = "https://shop.test"
API_OM = "https://api-om.test"
API_SA = "https://api-sa.test"
API_DEFAULT = "https://api-default.test"

SAMPLE_PRODUCTS = [
    {
        "id": 1,
        "slug": "ethiopia-guji",
        "name": "Ethiopia Guji",
        "nameAr": "إثيوبيا غوجي",
        "description": "Floral and bright",
        "descriptionAr": "زهري ومشرق",
        "tastingNotes": "Jasmine, peach",
        "tastingNotesAr": "ياسمين، خوخ",
        "minPrice": 6.5,
        "isActive": True,
        "isFeatured": True,
        "categoryId": 10,
        "category": {"id": 10, "slug": "filter", "name": "Filter", "nameAr": "فلتر"},
    },
    {
        "id": 2,
        "slug": "house-espresso",
        "name": "House Espresso",
        "nameAr": "",
        "price": 4.0,
        "isActive": True,
        "categoryId": 11,
        "categoryName": "Espresso",
        "categoryNameAr": "إسبريسو",
        "mainImagePath": "/images/products/house.webp",
    },
    {
        "id": 3,
        "slug": "retired-blend",
        "name": "Retired Blend",
        "price": 3.0,
        "isActive": False,
    },
]

SAMPLE_PRODUCT_DETAILS = {
    1: {
        "id": 1,
        "variants": [
            {"id": 100, "price": 7.0, "discountPrice": None, "isDefault": False},
            {"id": 101, "price": 6.5, "discountPrice": 5.9, "isDefault": True},
        ],
        "images": [
            {"imagePath": "/images/products/guji-2.webp", "isMain": False},
            {"imagePath": "/images/products/guji.webp", "isMain": True},
        ],
    },
}

SAMPLE_CATEGORIES = [
    {
        "id": 2,
        "slug": "filter",
        "name": "Filter",
        "nameAr": "فلتر",
        "isDisplayedOnHomepage": False,
        "displayOrder": 1,
        "imagePath": "/images/categories/filter.webp",
    },
    {
        "id": 1,
        "slug": "espresso",
        "name": "Espresso",
        "nameAr": "إسبريسو",
        "isDisplayedOnHomepage": True,
        "displayOrder": 0,
    },
]


class FakeClock:
    """Controllable epoch-milliseconds clock."""

    def __init__(self, now: int = 1_700_000_000_000):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int):
        self.now += ms


class FlakySessionFactory:
    """Session factory that can simulate the database going away."""

    def __init__(self, factory):
        self.factory = factory
        self.down = False

    def __call__(self):
        if self.down:
            raise OperationalError("SELECT 1", {}, Exception("database is unreachable"))
        return self.factory()


def make_settings(**overrides) -> Settings:
    values = dict(
        api_base_url_om=API_OM,
        api_base_url_sa=API_SA,
        default_api_base_url=API_DEFAULT,
        active_region="om",
        site_url=SITE_URL,
        preload_images_enabled=False,
    )
    values.update(overrides)
    return Settings(_env_file=None, **values)


def make_catalog_client(products=None, details=None, categories=None) -> MagicMock:
    """Mock CatalogClient serving the given raw records."""
    products = SAMPLE_PRODUCTS if products is None else products
    details = SAMPLE_PRODUCT_DETAILS if details is None else details
    categories = SAMPLE_CATEGORIES if categories is None else categories

    async def get_product(product_id):
        return details.get(product_id)

    mock_client = MagicMock()
    mock_client.get_products = AsyncMock(
        return_value=ProductPage(items=products, total_count=len(products))
    )
    mock_client.get_product = AsyncMock(side_effect=get_product)
    mock_client.get_categories = AsyncMock(return_value=categories)
    return mock_client


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture(scope="function")
def storage() -> Generator[DurableStorage, None, None]:
    """Durable storage over a fresh in-memory database."""
    Base.metadata.create_all(bind=engine)
    try:
        yield DurableStorage(TestingSessionLocal)
    finally:
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def cache(storage: DurableStorage, clock: FakeClock) -> CacheStore:
    return CacheStore(storage, clock=clock)


@pytest.fixture
def mock_catalog_client() -> MagicMock:
    return make_catalog_client()


@pytest.fixture
def context(settings, storage, cache, mock_catalog_client) -> CatalogContext:
    """Catalog context wired to the mock API; image warming disabled."""
    return CatalogContext(
        settings,
        storage,
        cache=cache,
        client=mock_catalog_client,
        preloader=ImagePreloader(storage, enabled=False),
    )


@pytest.fixture(scope="function")
def client(context: CatalogContext) -> Generator[TestClient, None, None]:
    """Test client whose lifespan and routes share the test context."""
    app.dependency_overrides[get_catalog_context] = lambda: context

    with patch("app.main.get_catalog_context", return_value=context), \
            patch("app.main.create_tables"):
        with TestClient(app) as test_client:
            yield test_client

    app.dependency_overrides.clear()


@pytest.fixture
def flaky_sessions(storage: DurableStorage) -> FlakySessionFactory:
    """Session factory over the test database with a switchable outage."""
    return FlakySessionFactory(TestingSessionLocal)
