"""Runtime configuration read from environment variables."""
import os
from dataclasses import dataclass
from typing import Mapping, Optional

# Catalog freshness defaults (seconds)
DEFAULT_CATALOG_TTL = 300.0  # 5 minutes
DEFAULT_REFRESH_INTERVAL = 60.0  # 1 minute
DEFAULT_HTTP_TIMEOUT = 10.0
DEFAULT_CATALOG_API_URL = "http://localhost:5000/api"


def _read_seconds(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number of seconds, got {raw!r}")
    if value <= 0:
        raise ValueError(f"{name} must be positive, got {raw!r}")
    return value


@dataclass(frozen=True)
class Settings:
    """Settings for the catalog cache, refresh timers and cart persistence."""
    catalog_api_url: str = DEFAULT_CATALOG_API_URL
    catalog_ttl: float = DEFAULT_CATALOG_TTL
    refresh_interval: float = DEFAULT_REFRESH_INTERVAL
    http_timeout: float = DEFAULT_HTTP_TIMEOUT
    redis_url: str = ""
    redis_token: str = ""

    @property
    def persistence_enabled(self) -> bool:
        """Cart persistence needs both Upstash credentials."""
        return bool(self.redis_url and self.redis_token)

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "Settings":
        """
        Build settings from environment variables.

        Args:
            env: Mapping to read from (defaults to os.environ)

        Raises:
            ValueError: if a numeric variable is malformed or not positive
        """
        if env is None:
            env = os.environ
        return cls(
            catalog_api_url=env.get("CATALOG_API_URL", DEFAULT_CATALOG_API_URL).rstrip("/"),
            catalog_ttl=_read_seconds(env, "CATALOG_TTL_SECONDS", DEFAULT_CATALOG_TTL),
            refresh_interval=_read_seconds(
                env, "CATALOG_REFRESH_INTERVAL_SECONDS", DEFAULT_REFRESH_INTERVAL
            ),
            http_timeout=_read_seconds(env, "CATALOG_HTTP_TIMEOUT_SECONDS", DEFAULT_HTTP_TIMEOUT),
            redis_url=env.get("UPSTASH_REDIS_REST_URL", ""),
            redis_token=env.get("UPSTASH_REDIS_REST_TOKEN", ""),
        )
