"""Models for the storefront catalog."""
from typing import Any, Optional
from pydantic import BaseModel


class NormalizedProduct(BaseModel):
    """Localized product view-model served to the storefront UI."""
    id: str
    slug: Optional[str] = None
    name: str
    name_ar: Optional[str] = None
    description: str = ""
    description_ar: Optional[str] = None
    tasting_notes: str = ""
    tasting_notes_ar: Optional[str] = None
    price: float = 0
    image: str
    category_id: Optional[str] = None
    category_slug: Optional[str] = None
    category: str = ""
    featured: bool = False
    is_active: Optional[bool] = None
    is_orderable: bool = False
    is_limited: Optional[bool] = None
    is_premium: Optional[bool] = None


class NormalizedCategory(BaseModel):
    """Localized category view-model."""
    id: str
    slug: Optional[str] = None
    name: str
    description: str = ""
    image: str
    display_order: Optional[int] = None


class ProductPage(BaseModel):
    """One page of the raw product list endpoint."""
    items: list[dict[str, Any]] = []
    total_count: int = 0
    total_pages: int = 1
    current_page: int = 1
    page_size: int = 20


class DocumentSettings(BaseModel):
    """Presentation attributes derived from the active language."""
    lang: str = "en"
    dir: str = "ltr"


class CatalogState(BaseModel):
    """Snapshot of the catalog context for clients."""
    language: str
    direction: str
    loading: bool
    error: Optional[str] = None
    product_count: int
    category_count: int
    all_category_count: int


class LanguageRequest(BaseModel):
    language: str


class CacheClearResponse(BaseModel):
    cleared: int
    state: CatalogState
