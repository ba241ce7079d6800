"""SpiritHub catalog API client - public endpoints, no user authentication."""
from typing import Any, Optional

import httpx

from app.catalog_models import ProductPage
from app.config import Settings
from app.images import resolve_api_base


class CatalogAPIError(Exception):
    """Raised when the catalog API cannot be reached or answers with an error."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


def unwrap_envelope(payload: Any) -> Any:
    """Strip the ``{success, data}`` wrapper the backend puts around results."""
    if isinstance(payload, dict) and "success" in payload and "data" in payload:
        return payload["data"]
    return payload


class CatalogClient:
    """Client for the storefront product and category endpoints."""

    def __init__(
        self,
        settings: Settings,
        region: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.settings = settings
        self.base_url = resolve_api_base(region, settings)
        self.timeout = settings.http_timeout
        self.headers = {
            "User-Agent": settings.user_agent,
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        self._transport = transport

    async def _get(self, path: str, params: Optional[dict] = None, allow_missing: bool = False) -> Any:
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            try:
                response = await client.get(
                    f"{self.base_url}{path}",
                    headers=self.headers,
                    params=params,
                )
            except httpx.HTTPError as e:
                raise CatalogAPIError(f"Request to {path} failed: {e}") from e

            if allow_missing and response.status_code == 404:
                return None

            try:
                response.raise_for_status()
            except httpx.HTTPStatusError as e:
                raise CatalogAPIError(
                    f"Catalog API error {response.status_code} for {path}",
                    status_code=response.status_code,
                ) from e

            return response.json()

    async def get_products(
        self,
        page: int = 1,
        page_size: int = 20,
        include_inactive: bool = False,
    ) -> ProductPage:
        """
        Get one page of the product list.

        Args:
            page: Page number (1-indexed)
            page_size: Products per page
            include_inactive: Include deactivated products

        Returns:
            ProductPage with raw product records
        """
        params = {
            "page": page,
            "pageSize": page_size,
            "includeInactive": str(include_inactive).lower(),
        }
        data = await self._get("/api/Products", params=params)
        return self._parse_product_page(data, page, page_size)

    async def get_product(self, product_id: Any) -> Optional[dict]:
        """
        Get a single product with its variants and images.

        Returns:
            Raw product record or None if not found
        """
        data = await self._get(f"/api/Products/{product_id}", allow_missing=True)
        if data is None:
            return None
        product = unwrap_envelope(data)
        return product if isinstance(product, dict) else None

    async def get_categories(self, include_inactive: bool = False) -> list[dict]:
        """Get the flat list of categories."""
        data = await self._get(
            "/api/Categories",
            params={"includeInactive": str(include_inactive).lower()},
        )
        categories = unwrap_envelope(data)
        if isinstance(categories, dict):
            categories = categories.get("items") or []
        return [c for c in categories or [] if isinstance(c, dict)]

    def _parse_product_page(self, data: Any, page: int, page_size: int) -> ProductPage:
        """Accept a bare list, ``{success, data, pagination}`` or ``{items, totalCount}``."""
        if isinstance(data, list):
            items = data
            pagination: dict = {}
            total_count = len(items)
        elif isinstance(data, dict):
            inner = data.get("data")
            if isinstance(inner, dict):
                # {data: {items, totalCount}}
                data = inner
                inner = None
            items = inner if isinstance(inner, list) else data.get("items") or []
            pagination = data.get("pagination") or {}
            total_count = pagination.get("totalCount", data.get("totalCount", len(items)))
        else:
            items, pagination, total_count = [], {}, 0

        return ProductPage(
            items=[item for item in items if isinstance(item, dict)],
            total_count=total_count or 0,
            total_pages=pagination.get("totalPages") or 1,
            current_page=pagination.get("currentPage") or page,
            page_size=pagination.get("pageSize") or page_size,
        )


# Singleton getter
_catalog_client: Optional[CatalogClient] = None


def get_catalog_client(settings: Settings) -> CatalogClient:
    """Get or create catalog client singleton."""
    global _catalog_client
    if _catalog_client is None:
        _catalog_client = CatalogClient(settings)
    return _catalog_client
