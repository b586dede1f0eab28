"""Application configuration."""
from functools import lru_cache

from pydantic import model_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Environment
    environment: str = "development"
    log_level: str = "INFO"

    # Side-effect target API
    side_effect_api_base_url: str = "http://localhost:4000/api/v2"
    side_effect_api_token: str = ""  # Service token used by the watcher
    side_effect_timeout_seconds: float = 10.0
    throw_on_critical_failure: bool = False

    # Chain query (Koios)
    chain_query_base_url: str = "https://preprod.koios.rest/api/v1"
    chain_query_api_key: str = ""
    chain_query_timeout_seconds: float = 10.0
    chain_query_retry_attempts: int = 3
    chain_query_retry_min_wait_seconds: float = 1.0
    chain_query_retry_max_wait_seconds: float = 10.0

    # Confirmation watcher
    watcher_enabled: bool = True
    watcher_poll_interval_seconds: float = 30.0
    watcher_batch_size: int = 20
    watcher_max_concurrency: int = 5

    # Pending transaction store
    pending_max_retries: int = 3
    pending_max_confirmation_attempts: int = 10
    pending_not_found_timeout_seconds: int = 3600  # Cardano TTL max
    pending_store_backend: str = "sql"  # sql, json or memory
    pending_store_path: str = "pending_transactions.json"

    # Database (durable backend for the pending store)
    database_url: str = "sqlite+aiosqlite:///./tx_lifecycle.db"

    @model_validator(mode='after')
    def normalize_urls(self):
        """Strip whitespace and trailing slashes from configured URLs."""
        self.database_url = self.database_url.strip()
        self.side_effect_api_base_url = self.side_effect_api_base_url.strip().rstrip("/")
        self.chain_query_base_url = self.chain_query_base_url.strip().rstrip("/")

        # Convert postgresql:// to postgresql+asyncpg:// for async driver
        if self.database_url.startswith("postgresql://"):
            self.database_url = self.database_url.replace("postgresql://", "postgresql+asyncpg://", 1)

        if self.pending_store_backend not in ("sql", "json", "memory"):
            raise ValueError(
                f"Unknown pending_store_backend '{self.pending_store_backend}'"
            )
        return self

    class Config:
        env_file = ".env"
        extra = "ignore"
        case_sensitive = False


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    import logging
    logger = logging.getLogger(__name__)

    settings = Settings()

    logger.info(
        f"Settings loaded - side effects: {settings.side_effect_api_base_url}, "
        f"chain query: {settings.chain_query_base_url}, "
        f"store backend: {settings.pending_store_backend}"
    )

    return settings
