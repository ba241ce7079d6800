"""
Normalization of raw catalog API records into storefront view-models.

The list endpoint gives a cheap baseline per product; a per-product detail
fetch adds variants and images when it succeeds. A failed detail fetch is not
an error: the baseline record is normalized instead.
"""
import asyncio
import logging
from typing import Any, Optional

from app.catalog_models import NormalizedCategory, NormalizedProduct
from app.config import Settings
from app.images import get_category_image_url, get_product_image_url, resolve_product_image_path

logger = logging.getLogger(__name__)

ARABIC = "ar"
ENGLISH = "en"

FLAT_PRICE_FIELDS = ("minPrice", "price")


def pick_localized(en: Optional[str], ar: Optional[str], language: str) -> str:
    """
    Select the English or Arabic variant of a field.

    Arabic wins only in Arabic mode and when non-empty. Otherwise English,
    falling back to Arabic so a missing translation never renders blank.
    """
    if language == ARABIC and ar:
        return ar
    return en or ar or ""


def _number(value: Any) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return float(value)


def _flag(record: dict, name: str) -> Optional[bool]:
    # The API is inconsistent about camelCase vs PascalCase for flags.
    for key in (name, name[0].upper() + name[1:]):
        value = record.get(key)
        if isinstance(value, bool):
            return value
    return None


class EnrichmentResult:
    """Outcome of enriching one product with its detail record."""

    def __init__(self, record: dict, enriched: bool, error: Optional[str] = None):
        self.record = record
        self.enriched = enriched
        self.error = error

    @property
    def fallback_used(self) -> bool:
        return not self.enriched


async def enrich_product(client, baseline: dict) -> EnrichmentResult:
    """Fetch the detail record for a product, keeping the baseline on failure."""
    product_id = baseline.get("id")
    try:
        detail = await client.get_product(product_id)
    except Exception as e:
        logger.debug("Detail fetch failed for product %s, using list record: %s", product_id, e)
        return EnrichmentResult(baseline, enriched=False, error=str(e))

    if not detail:
        return EnrichmentResult(baseline, enriched=False, error="not found")

    merged = dict(baseline)
    merged.update({k: v for k, v in detail.items() if v is not None})
    return EnrichmentResult(merged, enriched=True)


def resolve_price(record: dict, baseline: Optional[dict] = None) -> float:
    """
    Resolve the display price of a product.

    Order: default (else first) variant's discount price, then its regular
    price; flat ``minPrice``/``price`` on the record; the same fields on the
    baseline; 0.
    """
    variants = [v for v in record.get("variants") or [] if isinstance(v, dict)]
    if variants:
        variant = next((v for v in variants if v.get("isDefault")), variants[0])
        discount = _number(variant.get("discountPrice"))
        if discount is not None and discount > 0:
            return discount
        price = _number(variant.get("price"))
        if price is not None:
            return price

    for source in (record, baseline or {}):
        for field in FLAT_PRICE_FIELDS:
            value = _number(source.get(field))
            if value is not None:
                return value
    return 0.0


def resolve_category(record: dict, language: str) -> tuple[Optional[str], Optional[str], str]:
    """Return ``(category_id, category_slug, localized_category_name)``."""
    nested = record.get("category")
    if isinstance(nested, str):
        nested = {"name": nested}
    elif not isinstance(nested, dict):
        nested = {}

    name = pick_localized(
        nested.get("name") or record.get("categoryName"),
        nested.get("nameAr") or record.get("categoryNameAr"),
        language,
    )

    raw_id = record.get("categoryId")
    if raw_id is None or isinstance(raw_id, bool):
        raw_id = nested.get("id")
    category_id = str(raw_id) if raw_id is not None and raw_id != "" else None

    slug = nested.get("slug") or record.get("categorySlug") or None
    return category_id, slug, name


def normalize_product(
    record: dict,
    language: str,
    baseline: Optional[dict] = None,
    settings: Optional[Settings] = None,
) -> NormalizedProduct:
    """Map one (ideally detail-enriched) raw product to the view-model."""
    price = resolve_price(record, baseline)
    category_id, category_slug, category_name = resolve_category(record, language)
    image_path = resolve_product_image_path(record)

    return NormalizedProduct(
        id=str(record["id"]),
        slug=record.get("slug"),
        name=pick_localized(record.get("name"), record.get("nameAr"), language),
        name_ar=record.get("nameAr"),
        description=pick_localized(record.get("description"), record.get("descriptionAr"), language),
        description_ar=record.get("descriptionAr"),
        tasting_notes=pick_localized(record.get("tastingNotes"), record.get("tastingNotesAr"), language),
        tasting_notes_ar=record.get("tastingNotesAr"),
        price=price,
        image=get_product_image_url(image_path, settings=settings),
        category_id=category_id,
        category_slug=category_slug,
        category=category_name,
        featured=bool(record.get("isFeatured")),
        is_active=record.get("isActive") if isinstance(record.get("isActive"), bool) else None,
        is_orderable=price > 0,
        is_limited=_flag(record, "isLimited"),
        is_premium=_flag(record, "isPremium"),
    )


async def normalize_products(
    client,
    items: list[dict],
    language: str,
    settings: Optional[Settings] = None,
) -> list[NormalizedProduct]:
    """
    Enrich and normalize a product list.

    Detail fetches run concurrently; the output keeps the list order.
    Inactive products are dropped.
    """
    baselines = [
        p for p in items
        if isinstance(p, dict) and p.get("id") is not None and p.get("isActive") is not False
    ]
    results = await asyncio.gather(*(enrich_product(client, p) for p in baselines))

    products: list[NormalizedProduct] = []
    fallbacks = 0
    for baseline, result in zip(baselines, results):
        if result.fallback_used:
            fallbacks += 1
        if result.record.get("isActive") is False:
            continue
        products.append(normalize_product(result.record, language, baseline=baseline, settings=settings))

    if fallbacks:
        logger.info("Normalized %d products, %d without detail data", len(products), fallbacks)
    return products


def normalize_category(record: dict, language: str, settings: Optional[Settings] = None) -> NormalizedCategory:
    display_order = _number(record.get("displayOrder"))
    return NormalizedCategory(
        id=str(record["id"]),
        slug=record.get("slug"),
        name=pick_localized(record.get("name"), record.get("nameAr"), language),
        description=pick_localized(record.get("description"), record.get("descriptionAr"), language),
        image=get_category_image_url(record.get("imagePath"), settings=settings),
        display_order=int(display_order) if display_order is not None and display_order.is_integer() else None,
    )


def _display_order(record: dict) -> float:
    value = _number(record.get("displayOrder"))
    return value if value is not None else 0


def normalize_categories(
    items: list[dict],
    language: str,
    settings: Optional[Settings] = None,
) -> tuple[list[NormalizedCategory], list[NormalizedCategory]]:
    """
    Normalize categories.

    Returns:
        ``(homepage_categories, all_categories)``, both sorted by display order
    """
    records = sorted(
        (c for c in items if isinstance(c, dict) and c.get("id") is not None),
        key=_display_order,
    )
    all_categories = [normalize_category(c, language, settings) for c in records]
    homepage = [
        category
        for category, record in zip(all_categories, records)
        if record.get("isDisplayedOnHomepage")
    ]
    return homepage, all_categories
