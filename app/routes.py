from fastapi import APIRouter, Depends, HTTPException, Query

from app.cache import CACHE_PREFIX
from app.catalog_models import (
    CacheClearResponse,
    CatalogState,
    DocumentSettings,
    LanguageRequest,
    NormalizedCategory,
    NormalizedProduct,
)
from app.context import CatalogContext, get_catalog_context

router = APIRouter(prefix="/catalog", tags=["catalog"])


@router.get("/state", response_model=CatalogState)
async def get_state(context: CatalogContext = Depends(get_catalog_context)):
    """Language, loading and error status plus snapshot sizes."""
    return context.state()


@router.get("/document", response_model=DocumentSettings)
async def get_document_settings(context: CatalogContext = Depends(get_catalog_context)):
    """Text direction and language attributes for the page shell."""
    return context.document


@router.get("/products", response_model=list[NormalizedProduct])
async def list_products(context: CatalogContext = Depends(get_catalog_context)):
    """Normalized products for the active language."""
    return context.products


@router.get("/categories", response_model=list[NormalizedCategory])
async def list_categories(
    scope: str = Query("homepage", pattern="^(homepage|all)$", description="homepage or all"),
    context: CatalogContext = Depends(get_catalog_context),
):
    """Homepage categories by default; scope=all returns the full sorted list."""
    if scope == "all":
        return context.all_categories
    return context.categories


@router.post("/language/toggle", response_model=CatalogState)
async def toggle_language(context: CatalogContext = Depends(get_catalog_context)):
    """Switch between English and Arabic and load that catalog."""
    await context.toggle_language()
    return context.state()


@router.put("/language", response_model=CatalogState)
async def set_language(request: LanguageRequest, context: CatalogContext = Depends(get_catalog_context)):
    try:
        await context.set_language(request.language)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return context.state()


@router.post("/refresh", response_model=CatalogState)
async def refresh(context: CatalogContext = Depends(get_catalog_context)):
    """Reload products and categories from the API, bypassing the cache."""
    await context.load(force=True)
    return context.state()


@router.post("/cache/clear", response_model=CacheClearResponse)
async def clear_cache(context: CatalogContext = Depends(get_catalog_context)):
    """Clear cached catalog data and refetch it."""
    cleared = await context.clear_cache()
    return CacheClearResponse(cleared=cleared, state=context.state())


@router.get("/cache/age")
async def get_cache_age(
    key: str = Query(..., min_length=1, description="Cache key"),
    context: CatalogContext = Depends(get_catalog_context),
):
    """Age in minutes of a cache entry, or null if absent."""
    if not key.startswith(CACHE_PREFIX):
        raise HTTPException(status_code=400, detail=f"Cache keys start with {CACHE_PREFIX}")
    return {"key": key, "age_minutes": context.cache.get_cache_age(key)}


@router.get("/images/cached")
async def is_image_cached(
    url: str = Query(..., min_length=1),
    context: CatalogContext = Depends(get_catalog_context),
):
    """Whether an image URL has been warmed at least once."""
    return {"url": url, "cached": context.preloader.is_image_cached(url)}
