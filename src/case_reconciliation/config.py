from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Mapping, Optional

logger = logging.getLogger(__name__)


def _env_float(env: Mapping[str, str], key: str, default: float) -> float:
    raw = env.get(key)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning("Ignoring invalid %s=%r; using %s", key, raw, default)
        return default


def _env_int(env: Mapping[str, str], key: str, default: Optional[int]) -> Optional[int]:
    raw = env.get(key)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("Ignoring invalid %s=%r; using %s", key, raw, default)
        return default


@dataclass(frozen=True)
class Settings:
    primary_store_url: str = ""
    primary_store_api_key: str = ""
    primary_store_endpoint: str = "get-invoices.php"
    primary_store_timeout: float = 10.0
    secondary_store_timeout: float = 10.0
    secondary_cache_ttl: float = 60.0
    fetch_limit: Optional[int] = None
    log_level: str = "INFO"

    @property
    def primary_configured(self) -> bool:
        return bool(self.primary_store_url and self.primary_store_api_key)

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "Settings":
        env = os.environ if env is None else env
        return cls(
            primary_store_url=env.get("PRIMARY_STORE_URL", ""),
            primary_store_api_key=env.get("PRIMARY_STORE_API_KEY", ""),
            primary_store_endpoint=env.get("PRIMARY_STORE_ENDPOINT", "get-invoices.php"),
            primary_store_timeout=_env_float(env, "PRIMARY_STORE_TIMEOUT", 10.0),
            secondary_store_timeout=_env_float(env, "SECONDARY_STORE_TIMEOUT", 10.0),
            secondary_cache_ttl=_env_float(env, "SECONDARY_CACHE_TTL", 60.0),
            fetch_limit=_env_int(env, "FETCH_LIMIT", None),
            log_level=env.get("LOG_LEVEL", "INFO").upper(),
        )
