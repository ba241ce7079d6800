import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.config import get_settings
from app.context import CatalogContext, get_catalog_context
from app.database import create_tables
from app.routes import router as catalog_router
from app.seo_routes import router as seo_router

logger = logging.getLogger(__name__)


def configure_logging(level: str = "INFO"):
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create storage tables, load the catalog and start revalidation."""
    configure_logging(get_settings().log_level)
    create_tables()
    context = get_catalog_context()
    await context.start()
    try:
        yield
    finally:
        await context.stop()

app = FastAPI(
    title="SpiritHub Storefront Catalog API",
    description="Cached, localized catalog data for the SpiritHub storefront",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(catalog_router)
app.include_router(seo_router)


@app.get("/health")
async def health_check(context: CatalogContext = Depends(get_catalog_context)):
    checks = {"storage": "healthy"}

    try:
        context.storage.ping()
    except Exception as e:
        logger.error("Health check failed: storage unreachable: %s", e)
        checks["storage"] = "unhealthy"

    overall = "healthy" if all(v == "healthy" for v in checks.values()) else "unhealthy"
    status_code = 200 if overall == "healthy" else 503

    return JSONResponse(
        content={"status": overall, "checks": checks, "catalog_error": context.error},
        status_code=status_code,
    )
