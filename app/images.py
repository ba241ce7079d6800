"""
Image URL helpers.

Turns the path-like values the catalog API returns into absolute URLs.
Relative paths are served by the API origin of the active region; fallback
images ship with the storefront itself and resolve against ``site_url``.
"""
from typing import Any, Optional

from app.config import Settings, get_settings

DEFAULT_FALLBACK_IMAGE = "/images/slides/slide1.webp"
DEFAULT_PRODUCT_IMAGE = "/images/products/default-product.webp"
DEFAULT_CATEGORY_IMAGE = "/images/categories/default-category.webp"

FALLBACK_MARKER = "data-fallback-applied"

# Fields probed on the ``mainImage`` object, in priority order.
MAIN_IMAGE_FIELDS = ("imagePath", "url", "path")

# Flat fields probed on the product record itself, in priority order.
PRODUCT_IMAGE_FIELDS = (
    "mainImagePath",
    "mainImageUrl",
    "imagePath",
    "imageUrl",
    "image",
    "thumbnailPath",
    "thumbnailUrl",
)

# Fields probed on each gallery item under ``images``.
GALLERY_IMAGE_FIELDS = ("imagePath", "url", "path")


def _is_blank(value: Any) -> bool:
    return not isinstance(value, str) or not value.strip()


def resolve_api_base(region: Optional[str] = None, settings: Optional[Settings] = None) -> str:
    """Pick the API origin for a region, falling back to the default origin."""
    settings = settings or get_settings()
    region = region or settings.active_region
    origins = {
        "om": settings.api_base_url_om,
        "sa": settings.api_base_url_sa,
    }
    base = origins.get((region or "").lower()) or settings.default_api_base_url
    return base.rstrip("/")


def _join(base: str, path: str) -> str:
    return f"{base.rstrip('/')}/{path.lstrip('/')}"


def get_image_url(
    path: Optional[str],
    fallback_path: str = DEFAULT_FALLBACK_IMAGE,
    region: Optional[str] = None,
    settings: Optional[Settings] = None,
) -> str:
    """
    Build an absolute image URL.

    Args:
        path: Image path from the API, e.g. ``/images/categories/coffee.webp``
        fallback_path: Storefront asset used when ``path`` is empty
        region: Region whose API origin serves relative paths

    Returns:
        Absolute URL
    """
    settings = settings or get_settings()

    if _is_blank(path):
        if fallback_path.startswith(("http://", "https://")):
            return fallback_path
        return _join(settings.site_url, fallback_path)

    path = path.strip()
    if path.startswith(("http://", "https://")):
        return path

    return _join(resolve_api_base(region, settings), path)


def get_product_image_url(path: Optional[str], **kwargs) -> str:
    return get_image_url(path, DEFAULT_PRODUCT_IMAGE, **kwargs)


def get_category_image_url(path: Optional[str], **kwargs) -> str:
    return get_image_url(path, DEFAULT_CATEGORY_IMAGE, **kwargs)


def _first_field(record: Any, fields: tuple) -> Optional[str]:
    if not isinstance(record, dict):
        return None
    for field in fields:
        value = record.get(field)
        if not _is_blank(value):
            return value.strip()
    return None


def _gallery_path(item: Any) -> Optional[str]:
    if isinstance(item, str):
        return None if _is_blank(item) else item.strip()
    return _first_field(item, GALLERY_IMAGE_FIELDS)


def _candidate_paths(product: dict) -> list[str]:
    """Every image path on a raw product, best candidate first."""
    candidates: list[Optional[str]] = []

    main_image = product.get("mainImage")
    candidates.extend(_first_field(main_image, (f,)) for f in MAIN_IMAGE_FIELDS)
    candidates.extend(_first_field(product, (f,)) for f in PRODUCT_IMAGE_FIELDS)

    gallery = product.get("images")
    if isinstance(gallery, list):
        flagged = [item for item in gallery if isinstance(item, dict) and item.get("isMain")]
        candidates.extend(_gallery_path(item) for item in flagged)
        candidates.extend(_gallery_path(item) for item in gallery)

    seen: list[str] = []
    for path in candidates:
        if path and path not in seen:
            seen.append(path)
    return seen


def resolve_product_image_path(product: Optional[dict]) -> Optional[str]:
    """Return the single best image path on a raw product record."""
    if not isinstance(product, dict):
        return None
    paths = _candidate_paths(product)
    return paths[0] if paths else None


def resolve_product_image_urls(product: Optional[dict], **kwargs) -> list[str]:
    """Return all distinct image URLs for a product, primary first."""
    paths = _candidate_paths(product) if isinstance(product, dict) else []
    urls: list[str] = []
    for path in paths:
        url = get_product_image_url(path, **kwargs)
        if url not in urls:
            urls.append(url)
    if not urls:
        urls.append(get_product_image_url(None, **kwargs))
    return urls


class ImageElement:
    """Minimal stand-in for a rendered ``<img>``: a source plus attributes."""

    def __init__(self, src: str = "", attributes: Optional[dict] = None):
        self.src = src
        self.attributes = attributes or {}


def handle_image_error(element: ImageElement, fallback_url: str = DEFAULT_FALLBACK_IMAGE, **kwargs) -> bool:
    """
    Swap a broken image for its fallback, at most once per element.

    Returns True when the source was replaced.
    """
    if element.attributes.get(FALLBACK_MARKER):
        return False
    element.attributes[FALLBACK_MARKER] = "true"

    resolved = get_image_url(None, fallback_url, **kwargs)
    if element.src == resolved:
        return False
    element.src = resolved
    return True
