import logging
from functools import lru_cache

from openai import OpenAI

from menu_lens.config import is_valid_api_key
from menu_lens.errors import ConfigurationError

logger = logging.getLogger(__name__)


@lru_cache
def get_openai_client(api_key: str) -> OpenAI:
    if not is_valid_api_key(api_key):
        raise ConfigurationError("OPENAI_API_KEY is not set")
    logger.info("Initializing OpenAI client")
    return OpenAI(api_key=api_key)
