"""
Configuration - environment-driven settings.

Values come from environment variables; a .env file in the working
directory is loaded first when present.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from storefront.logging import resolve_level

STORAGE_BACKENDS = ("memory", "file", "redis")

DEFAULT_API_URL = "http://localhost:3000/api/"
DEFAULT_STORAGE_PATH = "~/.storefront/storage.json"
DEFAULT_NAMESPACE = "storefront:"
DEFAULT_HTTP_TIMEOUT = 10.0
DEFAULT_PRODUCT_CACHE_TTL = 300.0  # 5 minutes


@dataclass(frozen=True)
class Settings:
    """Runtime settings for the storefront state layer."""
    api_url: str = DEFAULT_API_URL
    storage_backend: str = "memory"
    storage_path: Path = Path(DEFAULT_STORAGE_PATH).expanduser()
    storage_namespace: str = DEFAULT_NAMESPACE
    redis_url: str = ""
    redis_token: str = ""
    http_timeout: float = DEFAULT_HTTP_TIMEOUT
    product_cache_ttl: float = DEFAULT_PRODUCT_CACHE_TTL
    log_level: Optional[str] = None

    def endpoint(self, path: str) -> str:
        """Join a relative API path onto the base URL."""
        return f"{self.api_url.rstrip('/')}/{path.lstrip('/')}"


def _positive_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}") from None
    if value <= 0:
        raise ValueError(f"{name} must be positive, got {raw!r}")
    return value


def load_settings(env_file: Optional[Path] = None) -> Settings:
    """
    Build Settings from the environment.

    Args:
        env_file: Optional .env path (defaults to ./.env if it exists)

    Raises:
        ValueError: If a variable holds an invalid value
    """
    env_path = env_file or Path.cwd() / ".env"
    if env_path.exists():
        load_dotenv(env_path)

    backend = os.environ.get("STOREFRONT_STORAGE", "file").strip().lower()
    if backend not in STORAGE_BACKENDS:
        raise ValueError(
            f"STOREFRONT_STORAGE must be one of {', '.join(STORAGE_BACKENDS)}, got {backend!r}"
        )

    # Console logging stays off unless a level is configured
    log_level = os.environ.get("STOREFRONT_LOG_LEVEL") or os.environ.get("LOG_LEVEL")
    if log_level:
        log_level = log_level.strip().upper()
        resolve_level(log_level)

    return Settings(
        api_url=os.environ.get("STOREFRONT_API_URL", DEFAULT_API_URL),
        storage_backend=backend,
        storage_path=Path(os.environ.get("STOREFRONT_STORAGE_PATH", DEFAULT_STORAGE_PATH)).expanduser(),
        storage_namespace=os.environ.get("STOREFRONT_STORAGE_NAMESPACE", DEFAULT_NAMESPACE),
        redis_url=os.environ.get("UPSTASH_REDIS_REST_URL", ""),
        redis_token=os.environ.get("UPSTASH_REDIS_REST_TOKEN", ""),
        http_timeout=_positive_float("STOREFRONT_HTTP_TIMEOUT", DEFAULT_HTTP_TIMEOUT),
        product_cache_ttl=_positive_float("STOREFRONT_PRODUCT_CACHE_TTL", DEFAULT_PRODUCT_CACHE_TTL),
        log_level=log_level or None,
    )
