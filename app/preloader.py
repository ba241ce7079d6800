"""Best-effort image warming with bounded concurrency."""
import asyncio
import logging
from typing import Iterable, Optional

import httpx

from app.storage import DurableStorage

logger = logging.getLogger(__name__)

CACHED_IMAGES_KEY = "spirithub_cached_images"
CHUNK_SIZE = 4
CHUNK_PAUSE_SECONDS = 0.1


class ImagePreloader:
    """
    Warms image URLs ahead of rendering.

    Failures are logged and dropped: warming never affects correctness. URLs
    that loaded at least once are remembered in durable storage as a hint for
    the UI.
    """

    def __init__(
        self,
        storage: DurableStorage,
        timeout: float = 8.0,
        concurrency: int = 2,
        enabled: bool = True,
        user_agent: str = "SpiritHubStorefront/1.0",
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.storage = storage
        self.timeout = timeout
        self.concurrency = concurrency
        self.enabled = enabled
        self.headers = {"User-Agent": user_agent, "Accept": "image/*"}
        self._transport = transport

    async def _load(self, url: str) -> None:
        async with httpx.AsyncClient(transport=self._transport, follow_redirects=True) as client:
            response = await client.get(url, headers=self.headers)
            response.raise_for_status()

    async def preload_image(self, url: str, timeout: Optional[float] = None) -> None:
        """Load one image; raises on HTTP error, transport error or timeout."""
        timeout = self.timeout if timeout is None else timeout
        try:
            await asyncio.wait_for(self._load(url), timeout=timeout)
        except asyncio.TimeoutError:
            raise TimeoutError(f"Timed out loading image: {url}") from None

    async def preload_images(self, urls: list[str], concurrency: Optional[int] = None) -> list[str]:
        """
        Attempt every URL using a fixed pool of workers.

        Returns the URLs that loaded successfully, in input order.
        """
        concurrency = max(1, concurrency or self.concurrency)
        urls = list(urls)
        loaded = [False] * len(urls)
        cursor = 0

        async def worker():
            nonlocal cursor
            while cursor < len(urls):
                index = cursor
                cursor += 1
                try:
                    await self.preload_image(urls[index])
                    loaded[index] = True
                except Exception as e:
                    logger.debug("Image preload failed for %s: %s", urls[index], e)

        await asyncio.gather(*(worker() for _ in range(min(concurrency, len(urls)))))
        return [url for url, ok in zip(urls, loaded) if ok]

    def mark_images_cached(self, urls: Iterable[str]) -> None:
        try:
            cached = self.get_cached_images()
            cached.update(urls)
            self.storage.set_json(CACHED_IMAGES_KEY, sorted(cached))
        except Exception as e:
            logger.error("Error marking images as cached: %s", e)

    def get_cached_images(self) -> set[str]:
        try:
            data = self.storage.get_json(CACHED_IMAGES_KEY)
            return set(data) if isinstance(data, list) else set()
        except Exception:
            return set()

    def is_image_cached(self, url: str) -> bool:
        return url in self.get_cached_images()

    async def warm(self, urls: Iterable[str], limit: int) -> list[str]:
        """
        Warm up to ``limit`` not-yet-warmed URLs in small sequential chunks.

        Returns the URLs that were warmed by this call.
        """
        if not self.enabled:
            return []

        unique: list[str] = []
        for url in urls:
            if url and url not in unique:
                unique.append(url)
        cached = self.get_cached_images()
        candidates = [url for url in unique if url not in cached][:limit]

        warmed: list[str] = []
        for start in range(0, len(candidates), CHUNK_SIZE):
            chunk = candidates[start:start + CHUNK_SIZE]
            loaded = await self.preload_images(chunk)
            if loaded:
                self.mark_images_cached(loaded)
                warmed.extend(loaded)
            await asyncio.sleep(CHUNK_PAUSE_SECONDS)
        return warmed
