"""Routes serving SEO artifacts built from the catalog snapshot."""
from fastapi import APIRouter, Depends
from fastapi.responses import Response

from app.context import CatalogContext, get_catalog_context
from app.seo import build_product_feed, build_sitemap, currency_for_region

router = APIRouter(prefix="/seo", tags=["seo"])


@router.get("/sitemap.xml")
async def sitemap(context: CatalogContext = Depends(get_catalog_context)):
    xml = build_sitemap(context.settings.site_url, context.products, context.all_categories)
    return Response(content=xml, media_type="application/xml")


@router.get("/product-feed.csv")
async def product_feed(context: CatalogContext = Depends(get_catalog_context)):
    settings = context.settings
    csv_text = build_product_feed(
        settings.site_url,
        context.products,
        currency=currency_for_region(settings.active_region),
    )
    return Response(
        content=csv_text,
        media_type="text/csv",
        headers={"Content-Disposition": 'attachment; filename="product-feed.csv"'},
    )
