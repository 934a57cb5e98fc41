"""Runtime configuration loaded from the environment (and a .env file if present)."""

import os

from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


# API key expected in the x-api-key header; falls back to a local development key
API_KEY: str = os.getenv("DATESAFE_API_KEY", "datesafe-local-dev-key")

LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()

# Upper bound on one provider (photo / conversation / profile) per request
PROVIDER_TIMEOUT_SECONDS: float = float(os.getenv("PROVIDER_TIMEOUT_SECONDS", "30"))

# Upper bound on a single network call (profile fetch, reverse search, WHOIS)
FETCH_TIMEOUT_SECONDS: float = float(os.getenv("FETCH_TIMEOUT_SECONDS", "15"))

MAX_WORKERS: int = int(os.getenv("MAX_WORKERS", "8"))

# Reverse image search endpoint; unset means the signal is unavailable
REVERSE_SEARCH_URL: str = os.getenv("REVERSE_SEARCH_URL", "")
REVERSE_SEARCH_API_KEY: str = os.getenv("REVERSE_SEARCH_API_KEY", "")

# Photo references are resolved inside this directory; anything outside it is rejected
PHOTO_ROOT: str = os.getenv("PHOTO_ROOT", "photos")

# Pattern registry override; empty means the packaged data/patterns.json
PATTERN_REGISTRY_PATH: str = os.getenv("PATTERN_REGISTRY_PATH", "")

CACHE_ENABLED: bool = _env_bool("CACHE_ENABLED", True)
CACHE_MAX_ENTRIES: int = int(os.getenv("CACHE_MAX_ENTRIES", "256"))
CACHE_TTL_SECONDS: int = int(os.getenv("CACHE_TTL_SECONDS", "3600"))

PROFILE_USER_AGENT: str = os.getenv(
    "PROFILE_USER_AGENT",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36",
)

# Directory for exported reports; empty means reports are only returned, not written
REPORT_EXPORT_DIR: str = os.getenv("REPORT_EXPORT_DIR", "")

HOST: str = os.getenv("HOST", "0.0.0.0")
PORT: int = int(os.getenv("PORT", "8000"))
