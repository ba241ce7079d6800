from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    api_base_url_om: str = "https://api.spirithubcafe.com"
    api_base_url_sa: str = "https://api.spirithubcafe.com"
    default_api_base_url: str = "https://spirithubapi.sbc.om"
    active_region: str = "om"
    site_url: str = "https://spirithubcafe.com"
    user_agent: str = "SpiritHubStorefront/1.0"
    http_timeout: float = 30.0

    default_language: str = "en"
    cache_duration_ms: int = 60 * 60 * 1000
    revalidate_interval_seconds: float = 60 * 60
    products_page_size: int = 100

    preload_images_enabled: bool = True
    preload_timeout_seconds: float = 8.0
    preload_concurrency: int = 2
    max_product_images_to_preload: int = 12
    max_category_images_to_preload: int = 8

    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


@lru_cache
def get_settings() -> Settings:
    return Settings()
