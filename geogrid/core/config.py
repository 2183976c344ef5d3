"""Application configuration helpers."""

import logging
import os
from dataclasses import dataclass
from functools import lru_cache

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

RANK_PROVIDERS = ("dataforseo", "serpapi")


class ConfigError(RuntimeError):
    """Raised when mandatory configuration is missing."""


@dataclass(frozen=True)
class Settings:
    rank_provider: str = "dataforseo"
    dataforseo_login: str = ""
    dataforseo_password: str = ""
    serpapi_api_key: str = ""
    database_url: str = ""
    worker_port: int = 9000
    default_grid_size: int = 5
    default_radius_km: float = 5.0
    default_shape: str = "circular"
    lookup_timeout_seconds: float = 60.0
    task_timeout_seconds: float = 20.0


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Load settings from environment variables with sensible defaults."""
    load_dotenv()

    rank_provider = os.getenv("RANK_PROVIDER", "dataforseo").strip().lower()
    dataforseo_login = os.getenv("DATAFORSEO_LOGIN", "")
    dataforseo_password = os.getenv("DATAFORSEO_PASSWORD", "")
    serpapi_api_key = os.getenv("SERPAPI_API_KEY", "")
    database_url = os.getenv("DATABASE_URL", "")
    worker_port = int(os.getenv("WORKER_PORT", "9000"))
    default_grid_size = int(os.getenv("GRID_DEFAULT_SIZE", "5"))
    default_radius_km = float(os.getenv("GRID_DEFAULT_RADIUS_KM", "5"))
    default_shape = os.getenv("GRID_DEFAULT_SHAPE", "circular").strip().lower()
    lookup_timeout_seconds = float(os.getenv("LOOKUP_TIMEOUT_SECONDS", "60"))
    task_timeout_seconds = float(os.getenv("DATAFORSEO_TASK_TIMEOUT_SECONDS", "20"))

    if rank_provider not in RANK_PROVIDERS:
        logger.warning("Unknown RANK_PROVIDER=%s; falling back to dataforseo.", rank_provider)
        rank_provider = "dataforseo"
    if rank_provider == "dataforseo" and not (dataforseo_login and dataforseo_password):
        logger.warning("DATAFORSEO_LOGIN/DATAFORSEO_PASSWORD are not configured; ranking lookups will fail.")
    if rank_provider == "serpapi" and not serpapi_api_key:
        logger.warning("SERPAPI_API_KEY is not configured; ranking lookups will fail.")
    if not database_url:
        logger.warning("DATABASE_URL is not set; grid runs cannot be persisted.")

    return Settings(
        rank_provider=rank_provider,
        dataforseo_login=dataforseo_login,
        dataforseo_password=dataforseo_password,
        serpapi_api_key=serpapi_api_key,
        database_url=database_url,
        worker_port=worker_port,
        default_grid_size=default_grid_size,
        default_radius_km=default_radius_km,
        default_shape=default_shape,
        lookup_timeout_seconds=lookup_timeout_seconds,
        task_timeout_seconds=task_timeout_seconds,
    )
