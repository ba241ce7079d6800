"""
Integration tests for the /catalog endpoints.
"""
from fastapi.testclient import TestClient

from app.context import products_cache_key


class TestCatalogRead:
    """Snapshot endpoints after the startup load."""

    def test_state_after_startup(self, client: TestClient):
        """Test state after startup."""
        data = client.get("/catalog/state").json()
        assert data == {
            "language": "en",
            "direction": "ltr",
            "loading": False,
            "error": None,
            "product_count": 2,
            "category_count": 1,
            "all_category_count": 2,
        }

    def test_document(self, client: TestClient):
        """Test the document attributes after startup."""
        assert client.get("/catalog/document").json() == {"lang": "en", "dir": "ltr"}

    def test_products(self, client: TestClient):
        """Test listing normalized products."""
        response = client.get("/catalog/products")
        assert response.status_code == 200
        products = response.json()
        assert [p["id"] for p in products] == ["1", "2"]
        assert products[0]["price"] == 5.9
        assert products[0]["category"] == "Filter"

    def test_categories_scopes(self, client: TestClient):
        """Test categories scopes."""
        homepage = client.get("/catalog/categories").json()
        all_categories = client.get("/catalog/categories", params={"scope": "all"}).json()
        assert [c["slug"] for c in homepage] == ["espresso"]
        assert [c["slug"] for c in all_categories] == ["espresso", "filter"]

    def test_invalid_scope(self, client: TestClient):
        """Test invalid scope."""
        response = client.get("/catalog/categories", params={"scope": "featured"})
        assert response.status_code == 422


class TestLanguageEndpoints:
    def test_toggle(self, client: TestClient):
        """Test toggling the language through the API."""
        response = client.post("/catalog/language/toggle")
        assert response.status_code == 200
        assert response.json()["language"] == "ar"
        assert response.json()["direction"] == "rtl"

        assert client.get("/catalog/document").json() == {"lang": "ar", "dir": "rtl"}
        assert client.get("/catalog/products").json()[0]["name"] == "إثيوبيا غوجي"

    def test_set_language(self, client: TestClient, storage):
        """Test set language."""
        response = client.put("/catalog/language", json={"language": "ar"})
        assert response.status_code == 200
        assert storage.get_item("spirithub-language") == "ar"

    def test_set_unsupported_language(self, client: TestClient):
        """Test set unsupported language."""
        response = client.put("/catalog/language", json={"language": "fr"})
        assert response.status_code == 400
        assert "fr" in response.json()["detail"]


class TestRefreshAndCache:
    def test_refresh_bypasses_cache(self, client: TestClient, mock_catalog_client):
        """Test refresh bypasses cache."""
        response = client.post("/catalog/refresh")
        assert response.status_code == 200
        assert mock_catalog_client.get_products.await_count == 2

    def test_clear_cache(self, client: TestClient, mock_catalog_client):
        """Test clearing the cache through the API."""
        response = client.post("/catalog/cache/clear")
        assert response.status_code == 200
        data = response.json()
        assert data["cleared"] == 3
        assert data["state"]["product_count"] == 2
        assert mock_catalog_client.get_categories.await_count == 2

    def test_cache_age(self, client: TestClient, clock):
        """Test reading the age of a cache entry."""
        clock.advance(5 * 60_000)
        response = client.get("/catalog/cache/age", params={"key": products_cache_key("en")})
        assert response.json() == {"key": products_cache_key("en"), "age_minutes": 5}

    def test_cache_age_missing_entry(self, client: TestClient):
        """Test cache age missing entry."""
        response = client.get("/catalog/cache/age", params={"key": "spirithub_cache_nothing"})
        assert response.json()["age_minutes"] is None

    def test_cache_age_rejects_foreign_keys(self, client: TestClient):
        """Test cache age rejects foreign keys."""
        response = client.get("/catalog/cache/age", params={"key": "spirithub-language"})
        assert response.status_code == 400


class TestCachedImages:
    def test_image_cached_lookup(self, client: TestClient, context):
        """Test image cached lookup."""
        url = "https://api-om.test/images/products/house.webp"
        assert client.get("/catalog/images/cached", params={"url": url}).json()["cached"] is False

        context.preloader.mark_images_cached([url])
        assert client.get("/catalog/images/cached", params={"url": url}).json() == {"url": url, "cached": True}
