import os
from dataclasses import dataclass
from functools import lru_cache

import redis
from dotenv import load_dotenv

load_dotenv()

STORAGE_BACKENDS = ("none", "file", "redis")


def _env_bool(key: str, default: str) -> bool:
    return os.getenv(key, default).lower() in ("true", "1", "yes")


@dataclass(frozen=True)
class Settings:
    """Application settings loaded from environment variables."""

    # Upstream providers
    rawg_api_key: str = os.getenv("RAWG_API_KEY", "")
    rawg_base_url: str = os.getenv("RAWG_BASE_URL", "https://api.rawg.io/api")
    igdb_client_id: str = os.getenv("IGDB_CLIENT_ID", "")
    igdb_access_token: str = os.getenv("IGDB_ACCESS_TOKEN", "")
    igdb_base_url: str = os.getenv("IGDB_BASE_URL", "https://api.igdb.com/v4")
    upstream_timeout: float = float(os.getenv("UPSTREAM_TIMEOUT", "8.0"))

    # Entity cache
    entity_cache_capacity: int = int(os.getenv("ENTITY_CACHE_CAPACITY", "500"))
    entity_cache_ttl: float = float(os.getenv("ENTITY_CACHE_TTL", "3600"))
    entity_cache_max_retries: int = int(os.getenv("ENTITY_CACHE_MAX_RETRIES", "3"))
    entity_cache_sweep_interval: float = float(os.getenv("ENTITY_CACHE_SWEEP_INTERVAL", "300"))

    # Persistence
    cache_storage: str = os.getenv("CACHE_STORAGE", "none").lower()
    cache_storage_path: str = os.getenv("CACHE_STORAGE_PATH", ".game_cache.json")
    cache_storage_key: str = os.getenv("CACHE_STORAGE_KEY", "game_cache:entities")
    redis_url: str = os.getenv("REDIS_URL", "redis://localhost:6379")
    redis_password: str | None = os.getenv("REDIS_PASSWORD")

    # Search
    search_debounce_seconds: float = float(os.getenv("SEARCH_DEBOUNCE_SECONDS", "0.3"))
    search_min_query_length: int = int(os.getenv("SEARCH_MIN_QUERY_LENGTH", "2"))
    search_page_size: int = int(os.getenv("SEARCH_PAGE_SIZE", "20"))
    search_strategy: str = os.getenv("SEARCH_STRATEGY", "combined")
    search_source: str = os.getenv("SEARCH_SOURCE", "auto")
    suggestion_strategy: str = os.getenv("SUGGESTION_STRATEGY", "rawg_first")
    result_cache_ttl: float = float(os.getenv("RESULT_CACHE_TTL", "300"))
    result_cache_max_entries: int = int(os.getenv("RESULT_CACHE_MAX_ENTRIES", "100"))

    # Connectivity
    connectivity_ttl: float = float(os.getenv("CONNECTIVITY_TTL", "120"))
    connectivity_timeout: float = float(os.getenv("CONNECTIVITY_TIMEOUT", "3.0"))

    # Listing feeds
    feed_limit: int = int(os.getenv("FEED_LIMIT", "12"))
    feed_poll_interval: float = float(os.getenv("FEED_POLL_INTERVAL", "300"))
    feed_polling: bool = _env_bool("FEED_POLLING", "false")
    feed_max_backoff: int = int(os.getenv("FEED_MAX_BACKOFF", "8"))

    # API
    api_host: str = os.getenv("API_HOST", "0.0.0.0")
    api_port: int = int(os.getenv("API_PORT", "8000"))
    api_reload: bool = _env_bool("API_RELOAD", "false")
    log_level: str = os.getenv("LOG_LEVEL", "INFO").upper()

    def __post_init__(self) -> None:
        """Validate settings after initialization."""
        if self.entity_cache_capacity < 1:
            raise ValueError("ENTITY_CACHE_CAPACITY must be at least 1")

        if self.entity_cache_max_retries < 1:
            raise ValueError("ENTITY_CACHE_MAX_RETRIES must be at least 1")

        if self.upstream_timeout <= 0:
            raise ValueError("UPSTREAM_TIMEOUT must be positive")

        if self.search_page_size < 1 or self.search_min_query_length < 0:
            raise ValueError("SEARCH_PAGE_SIZE must be >= 1 and SEARCH_MIN_QUERY_LENGTH >= 0")

        if self.cache_storage not in STORAGE_BACKENDS:
            raise ValueError(
                f"CACHE_STORAGE must be one of {list(STORAGE_BACKENDS)}, got {self.cache_storage!r}"
            )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Global settings instance
settings = get_settings()


def get_redis_client() -> redis.Redis:
    """Create a Redis client instance."""
    return redis.from_url(
        settings.redis_url,
        password=settings.redis_password,
        decode_responses=True,
    )
