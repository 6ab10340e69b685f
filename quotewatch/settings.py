# quotewatch/settings.py
from __future__ import annotations

import os
from dataclasses import dataclass

from dotenv import find_dotenv, load_dotenv

DEFAULT_BASE_URL = "https://finnhub.io/api/v1"


@dataclass(frozen=True)
class Settings:
    """Process configuration, read once from the environment (and `.env` if present)."""

    finnhub_api_key: str | None = None
    finnhub_base_url: str = DEFAULT_BASE_URL
    fetch_timeout_sec: float = 10.0
    host: str = "0.0.0.0"
    port: int = 3000
    log_level: str = "INFO"


def load_settings() -> Settings:
    load_dotenv(find_dotenv(usecwd=True))
    # Empty string counts as missing so a blank .env entry still fails loudly at fetch time
    api_key = os.getenv("FINNHUB_API_KEY") or None
    return Settings(
        finnhub_api_key=api_key,
        finnhub_base_url=os.getenv("QW_FINNHUB_BASE_URL", DEFAULT_BASE_URL).rstrip("/"),
        fetch_timeout_sec=float(os.getenv("QW_FETCH_TIMEOUT_SEC", "10")),
        host=os.getenv("QW_HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "3000")),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
    )
