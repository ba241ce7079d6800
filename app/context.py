"""
Process-wide catalog context.

Owns the active language, the normalized product/category snapshots and the
fetch lifecycle: serve from cache when fresh, otherwise fetch, normalize,
write back and warm images in the background. A periodic task re-fetches
whatever the cache reports as expired while the last snapshot keeps being
served.
"""
import asyncio
import logging
from typing import Optional

from pydantic import ValidationError

from app.cache import CACHE_PREFIX, CacheStore
from app.catalog_client import CatalogClient, get_catalog_client
from app.catalog_models import CatalogState, DocumentSettings, NormalizedCategory, NormalizedProduct
from app.config import Settings, get_settings
from app.images import DEFAULT_PRODUCT_IMAGE
from app.normalizer import ARABIC, ENGLISH, normalize_categories, normalize_products
from app.preloader import ImagePreloader
from app.storage import DurableStorage

logger = logging.getLogger(__name__)

LANGUAGE_KEY = "spirithub-language"
SUPPORTED_LANGUAGES = (ENGLISH, ARABIC)

PRODUCTS = "products"
CATEGORIES = "categories"


def products_cache_key(language: str) -> str:
    return f"{CACHE_PREFIX}products_{language}"


def categories_cache_key(language: str) -> str:
    return f"{CACHE_PREFIX}categories_{language}"


def all_categories_cache_key(language: str) -> str:
    return f"{CACHE_PREFIX}all_categories_{language}"


def text_direction(language: str) -> str:
    return "rtl" if language == ARABIC else "ltr"


def _is_placeholder_image(url: Optional[str]) -> bool:
    return not url or DEFAULT_PRODUCT_IMAGE in url


class CatalogContext:
    """Single source of truth for language and catalog data."""

    def __init__(
        self,
        settings: Settings,
        storage: DurableStorage,
        cache: Optional[CacheStore] = None,
        client: Optional[CatalogClient] = None,
        preloader: Optional[ImagePreloader] = None,
    ):
        self.settings = settings
        self.storage = storage
        self.cache = cache or CacheStore(storage)
        self.client = client or get_catalog_client(settings)
        self.preloader = preloader or ImagePreloader(
            storage,
            timeout=settings.preload_timeout_seconds,
            concurrency=settings.preload_concurrency,
            enabled=settings.preload_images_enabled,
            user_agent=settings.user_agent,
        )

        saved = storage.get_item(LANGUAGE_KEY)
        if saved in SUPPORTED_LANGUAGES:
            self.language = saved
        elif settings.default_language in SUPPORTED_LANGUAGES:
            self.language = settings.default_language
        else:
            self.language = ENGLISH
        self.document = DocumentSettings(lang=self.language, dir=text_direction(self.language))

        self.products: list[NormalizedProduct] = []
        self.categories: list[NormalizedCategory] = []
        self.all_categories: list[NormalizedCategory] = []
        self._errors: dict[str, Optional[str]] = {PRODUCTS: None, CATEGORIES: None}

        self._pending = 0
        self._generations = {PRODUCTS: 0, CATEGORIES: 0}
        self._background_tasks: set[asyncio.Task] = set()
        self._revalidate_task: Optional[asyncio.Task] = None

    @property
    def loading(self) -> bool:
        return self._pending > 0

    @property
    def error(self) -> Optional[str]:
        """Most recent list-fetch failure, products first."""
        return self._errors[PRODUCTS] or self._errors[CATEGORIES]

    @property
    def direction(self) -> str:
        return self.document.dir

    def state(self) -> CatalogState:
        return CatalogState(
            language=self.language,
            direction=self.direction,
            loading=self.loading,
            error=self.error,
            product_count=len(self.products),
            category_count=len(self.categories),
            all_category_count=len(self.all_categories),
        )

    def _begin_loading(self):
        self._pending += 1

    def _end_loading(self):
        self._pending = max(0, self._pending - 1)

    def _next_generation(self, domain: str) -> int:
        self._generations[domain] += 1
        return self._generations[domain]

    def _is_current(self, domain: str, generation: int) -> bool:
        return self._generations[domain] == generation

    # Language

    async def set_language(self, language: str) -> None:
        """Switch language, persist it and load that language's catalog."""
        if language not in SUPPORTED_LANGUAGES:
            raise ValueError(f"Unsupported language: {language}")
        self.language = language
        self.storage.set_item(LANGUAGE_KEY, language)
        self.document = DocumentSettings(lang=language, dir=text_direction(language))
        await self.load()

    async def toggle_language(self) -> str:
        await self.set_language(ENGLISH if self.language == ARABIC else ARABIC)
        return self.language

    # Fetching

    async def load(self, force: bool = False) -> None:
        await asyncio.gather(
            self.fetch_products(force=force),
            self.fetch_categories(force=force),
        )

    def _cached_models(self, key: str, model):
        cached = self.cache.get(key)
        if cached is None:
            return None
        try:
            return [model.model_validate(item) for item in cached]
        except (TypeError, ValidationError) as e:
            logger.warning("Discarding malformed cache entry %s: %s", key, e)
            self.cache.remove(key)
            return None

    async def fetch_products(self, force: bool = False, background: bool = False) -> None:
        language = self.language
        key = products_cache_key(language)
        generation = self._next_generation(PRODUCTS)

        if not force:
            cached = self._cached_models(key, NormalizedProduct)
            if cached is not None:
                self.products = cached
                self._errors[PRODUCTS] = None
                return

        # Matched by id only; images and flags do not depend on language.
        previous = {p.id: p for p in self.products}
        if not background:
            self._begin_loading()
        self._errors[PRODUCTS] = None

        try:
            page = await self.client.get_products(
                page=1,
                page_size=self.settings.products_page_size,
                include_inactive=False,
            )
            products = await normalize_products(self.client, page.items, language, self.settings)
            products = [self._carry_over(p, previous.get(p.id)) for p in products]

            if not self._is_current(PRODUCTS, generation):
                logger.info("Discarding superseded products fetch (%s)", language)
                return

            self.products = products
            self.cache.set(key, [p.model_dump() for p in products], self.settings.cache_duration_ms)
            self._warm_images([p.image for p in products], self.settings.max_product_images_to_preload)
        except Exception:
            logger.exception("Error fetching products")
            if self._is_current(PRODUCTS, generation):
                self._errors[PRODUCTS] = "Failed to fetch products"
                if not background:
                    self.products = []
        finally:
            if not background:
                self._end_loading()

    @staticmethod
    def _carry_over(product: NormalizedProduct, previous: Optional[NormalizedProduct]) -> NormalizedProduct:
        """Keep a known real image and flags when the fresh record lacks them."""
        if previous is None:
            return product
        updates = {}
        if _is_placeholder_image(product.image) and not _is_placeholder_image(previous.image):
            updates["image"] = previous.image
        if product.is_limited is None and previous.is_limited is not None:
            updates["is_limited"] = previous.is_limited
        if product.is_premium is None and previous.is_premium is not None:
            updates["is_premium"] = previous.is_premium
        return product.model_copy(update=updates) if updates else product

    async def fetch_categories(self, force: bool = False, background: bool = False) -> None:
        language = self.language
        key = categories_cache_key(language)
        all_key = all_categories_cache_key(language)
        generation = self._next_generation(CATEGORIES)

        if not force:
            cached = self._cached_models(key, NormalizedCategory)
            cached_all = self._cached_models(all_key, NormalizedCategory)
            if cached is not None and cached_all is not None:
                self.categories = cached
                self.all_categories = cached_all
                self._errors[CATEGORIES] = None
                return

        if not background:
            self._begin_loading()
        self._errors[CATEGORIES] = None

        try:
            raw = await self.client.get_categories(include_inactive=False)
            homepage, all_categories = normalize_categories(raw, language, self.settings)

            if not self._is_current(CATEGORIES, generation):
                logger.info("Discarding superseded categories fetch (%s)", language)
                return

            self.categories = homepage
            self.all_categories = all_categories
            duration = self.settings.cache_duration_ms
            self.cache.set(key, [c.model_dump() for c in homepage], duration)
            self.cache.set(all_key, [c.model_dump() for c in all_categories], duration)
            self._warm_images([c.image for c in all_categories], self.settings.max_category_images_to_preload)
        except Exception:
            logger.exception("Error fetching categories")
            if self._is_current(CATEGORIES, generation):
                self._errors[CATEGORIES] = "Failed to fetch categories"
                if not background:
                    self.categories = []
                    self.all_categories = []
        finally:
            if not background:
                self._end_loading()

    # Background work

    def _warm_images(self, urls: list[str], limit: int) -> None:
        if not self.preloader.enabled or limit <= 0:
            return
        task = asyncio.create_task(self._warm_quietly(urls, limit))
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)

    async def _warm_quietly(self, urls: list[str], limit: int) -> None:
        try:
            await self.preloader.warm(urls, limit)
        except Exception as e:
            logger.debug("Image warming aborted: %s", e)

    async def revalidate(self) -> None:
        """Re-fetch, without touching ``loading``, every domain whose cache expired."""
        jobs = []
        if self.cache.is_expired(products_cache_key(self.language)):
            jobs.append(self.fetch_products(background=True))
        if (
            self.cache.is_expired(categories_cache_key(self.language))
            or self.cache.is_expired(all_categories_cache_key(self.language))
        ):
            jobs.append(self.fetch_categories(background=True))
        if jobs:
            logger.info("Revalidating %d expired catalog domain(s)", len(jobs))
            await asyncio.gather(*jobs)

    async def _revalidate_loop(self) -> None:
        while True:
            await asyncio.sleep(self.settings.revalidate_interval_seconds)
            try:
                await self.revalidate()
            except Exception:
                logger.exception("Background revalidation failed")

    async def start(self) -> None:
        """Initial load plus the periodic revalidation task."""
        await self.load()
        if self._revalidate_task is None:
            self._revalidate_task = asyncio.create_task(self._revalidate_loop())

    async def stop(self) -> None:
        tasks = list(self._background_tasks)
        if self._revalidate_task is not None:
            tasks.append(self._revalidate_task)
            self._revalidate_task = None
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._background_tasks.clear()

    async def clear_cache(self) -> int:
        """Drop every cached catalog entry and reload both domains."""
        removed = self.cache.clear()
        await self.load(force=True)
        return removed


_context: Optional[CatalogContext] = None


def get_catalog_context() -> CatalogContext:
    """Get or create the catalog context singleton."""
    global _context
    if _context is None:
        _context = CatalogContext(get_settings(), DurableStorage())
    return _context
