"""Sitemap and product feed generation from the normalized catalog."""
import csv
import io
from datetime import date
from typing import Iterable, Optional
from xml.sax.saxutils import escape

from app.catalog_models import NormalizedCategory, NormalizedProduct

# (path, changefreq, priority)
STATIC_PAGES = [
    ("/", "daily", "1.0"),
    ("/products", "daily", "0.9"),
    ("/about", "monthly", "0.7"),
    ("/contact", "monthly", "0.6"),
    ("/faq", "monthly", "0.5"),
    ("/shop", "daily", "0.8"),
    ("/privacy", "yearly", "0.3"),
    ("/terms", "yearly", "0.3"),
    ("/delivery", "monthly", "0.4"),
    ("/refund", "monthly", "0.4"),
    ("/loyalty", "monthly", "0.5"),
]

FEED_COLUMNS = [
    "id",
    "title",
    "description",
    "link",
    "image_link",
    "price",
    "availability",
    "brand",
    "product_type",
]

CURRENCY_BY_REGION = {"om": "OMR", "sa": "SAR"}


def currency_for_region(region: Optional[str]) -> str:
    return CURRENCY_BY_REGION.get((region or "").lower(), "OMR")


def _url_entry(loc: str, lastmod: str, changefreq: str, priority: str) -> str:
    return (
        "  <url>\n"
        f"    <loc>{escape(loc)}</loc>\n"
        f"    <lastmod>{lastmod}</lastmod>\n"
        f"    <changefreq>{changefreq}</changefreq>\n"
        f"    <priority>{priority}</priority>\n"
        "  </url>\n"
    )


def build_sitemap(
    site_url: str,
    products: Iterable[NormalizedProduct],
    categories: Iterable[NormalizedCategory],
    today: Optional[date] = None,
) -> str:
    """
    Build sitemap.xml for static pages, category listings and product pages.

    Entries without a slug are skipped.
    """
    site_url = site_url.rstrip("/")
    lastmod = (today or date.today()).isoformat()

    parts = [
        '<?xml version="1.0" encoding="UTF-8"?>\n',
        '<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">\n',
    ]
    for path, changefreq, priority in STATIC_PAGES:
        parts.append(_url_entry(site_url + path, lastmod, changefreq, priority))

    for category in categories:
        if category.slug:
            parts.append(_url_entry(f"{site_url}/products?category={category.slug}", lastmod, "weekly", "0.8"))

    for product in products:
        if product.slug:
            parts.append(_url_entry(f"{site_url}/products/{product.slug}", lastmod, "weekly", "0.7"))

    parts.append("</urlset>\n")
    return "".join(parts)


def build_product_feed(
    site_url: str,
    products: Iterable[NormalizedProduct],
    currency: str = "OMR",
    brand: str = "SpiritHub",
) -> str:
    """Build a CSV product feed for catalogs and marketplaces."""
    site_url = site_url.rstrip("/")
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(FEED_COLUMNS)

    for product in products:
        link = f"{site_url}/products/{product.slug or product.id}"
        writer.writerow([
            product.id,
            product.name,
            product.description,
            link,
            product.image,
            f"{product.price:.3f} {currency}",
            "in stock" if product.is_orderable else "out of stock",
            brand,
            product.category,
        ])

    return buffer.getvalue()
