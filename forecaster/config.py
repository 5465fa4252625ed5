"""
Coin Forecast - Runtime configuration
=====================================

Setările se citesc din mediu (sau din `.env`):

    FORECAST_API_BASE_URL   upstream coin API (chart / price / id endpoints)
    FORECAST_HTTP_TIMEOUT   timeout per upstream request, in seconds
    FORECAST_CACHE_TTL      TTL of cached forecasts, in seconds
    FORECAST_REDIS_URL      redis://... ; empty keeps the in-process cache
    FORECAST_SEED           fixed seed for the synthesis RNG (tests / replays)
    FORECAST_LOG_LEVEL      logging level name
"""

import logging
import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

load_dotenv()


def _int_env(name: str, default: Optional[int]) -> Optional[int]:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _float_env(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return float(value)
    except ValueError:
        return default


@dataclass
class Settings:
    """Configurație serviciu"""
    api_base_url: str = "http://localhost:3000/api"
    http_timeout: float = 10.0
    cache_ttl: int = 24 * 60 * 60     # 24h, same as the public endpoint
    redis_url: str = ""
    seed: Optional[int] = None        # None = unseeded production randomness
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            api_base_url=os.getenv("FORECAST_API_BASE_URL", cls.api_base_url).rstrip("/"),
            http_timeout=_float_env("FORECAST_HTTP_TIMEOUT", cls.http_timeout),
            cache_ttl=_int_env("FORECAST_CACHE_TTL", cls.cache_ttl),
            redis_url=os.getenv("FORECAST_REDIS_URL", "").strip(),
            seed=_int_env("FORECAST_SEED", None),
            log_level=os.getenv("FORECAST_LOG_LEVEL", cls.log_level).upper(),
        )


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get or create settings singleton"""
    global _settings
    if _settings is None:
        _settings = Settings.from_env()
    return _settings


def configure_logging(level: Optional[str] = None):
    logging.basicConfig(
        level=getattr(logging, (level or get_settings().log_level), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
