import os
from dataclasses import dataclass
from typing import Optional


def _parse_cors_origins(raw: str) -> list[str]:
    origins = [origin.strip() for origin in raw.split(",") if origin.strip()]
    return origins or ["*"]


OPENAI_API_KEY = os.getenv("OPENAI_API_KEY")
CORS_ORIGINS = _parse_cors_origins(os.getenv("CORS_ORIGINS", "*"))
ALLOW_ALL_ORIGINS = CORS_ORIGINS == ["*"]

# Values shipped in .env.example files; treated the same as a missing key.
PLACEHOLDER_API_KEYS = frozenset({
    "YOUR_OPENAI_API_KEY_HERE",
    "YOUR_GEMINI_API_KEY_HERE",
})

# -----------------------------------
# Vision model configuration
# -----------------------------------

# MENU_VISION_MODEL: OpenAI vision model used for menu extraction
# Expected values: "gpt-4o-mini" (default) or "gpt-4o"
MENU_VISION_MODEL = os.getenv("MENU_VISION_MODEL", "gpt-4o-mini")

# MENU_VISION_MAX_TOKENS: long menus produce long JSON arrays
MENU_VISION_MAX_TOKENS = int(os.getenv("MENU_VISION_MAX_TOKENS", "4096"))

# -----------------------------------
# Currency conversion configuration
# -----------------------------------

# TARGET_CURRENCY: currency all menu prices are converted into
TARGET_CURRENCY = os.getenv("TARGET_CURRENCY", "KRW").upper()

# EXCHANGE_RATE_API_URL: base URL, the source currency code is appended
EXCHANGE_RATE_API_URL = os.getenv(
    "EXCHANGE_RATE_API_URL", "https://api.exchangerate-api.com/v4/latest"
).rstrip("/")

EXCHANGE_RATE_TIMEOUT_S = float(os.getenv("EXCHANGE_RATE_TIMEOUT_S", "5"))

# RATE_LOOKUP_CONCURRENCY: cap on simultaneous rate requests per menu
RATE_LOOKUP_CONCURRENCY = int(os.getenv("RATE_LOOKUP_CONCURRENCY", "8"))

# -----------------------------------
# Session store configuration
# -----------------------------------

# MAX_SESSIONS: oldest idle sessions are dropped beyond this count
MAX_SESSIONS = int(os.getenv("MAX_SESSIONS", "500"))

# SESSION_TTL_S: sessions untouched for this long are dropped (0 = never)
SESSION_TTL_S = float(os.getenv("SESSION_TTL_S", "3600"))


def is_valid_api_key(api_key: Optional[str]) -> bool:
    if not api_key or not api_key.strip():
        return False
    return api_key.strip() not in PLACEHOLDER_API_KEYS


@dataclass(frozen=True)
class ExtractorConfig:
    """Settings handed to MenuExtractor at startup."""

    api_key: Optional[str]
    model: str = "gpt-4o-mini"
    max_tokens: int = 4096

    @property
    def has_valid_api_key(self) -> bool:
        return is_valid_api_key(self.api_key)


def load_extractor_config() -> ExtractorConfig:
    model = (MENU_VISION_MODEL or "gpt-4o-mini").strip() or "gpt-4o-mini"
    return ExtractorConfig(
        api_key=OPENAI_API_KEY,
        model=model,
        max_tokens=MENU_VISION_MAX_TOKENS,
    )
