"""Single-call OpenAI vision service for menu extraction and translation."""

import base64
import logging
from typing import Any, Callable, List, Optional

import openai
from pydantic import ValidationError

from menu_lens.config import ExtractorConfig
from menu_lens.errors import AnalysisFormatError, AnalysisNetworkError, ConfigurationError
from menu_lens.openai_client import get_openai_client
from menu_lens.prompts import MENU_PROMPT, SYSTEM_PROMPT
from menu_lens.schemas import MenuImage, MenuItem
from menu_lens.utils import extract_json_array

logger = logging.getLogger(__name__)


def _to_menu_items(raw_items: List[Any]) -> List[MenuItem]:
    """Validate parsed model output field by field into MenuItem objects."""
    items = []
    for index, raw in enumerate(raw_items):
        if not isinstance(raw, dict):
            raise AnalysisFormatError(
                f"Menu item #{index} is {type(raw).__name__}, expected an object"
            )
        try:
            items.append(MenuItem.model_validate(raw))
        except ValidationError as e:
            raise AnalysisFormatError(f"Menu item #{index} is invalid: {e}") from e
    return items


class MenuExtractor:
    """
    Reads a menu photo with a vision model and returns translated menu items.

    One ``analyze`` call issues exactly one chat completion request and never
    retries; retrying is the caller's decision.
    """

    def __init__(self, config: ExtractorConfig, client_factory: Optional[Callable[[str], Any]] = None):
        self.config = config
        self._client_factory = client_factory or get_openai_client

    def _client(self):
        return self._client_factory(self.config.api_key)

    def analyze(self, image: MenuImage) -> List[MenuItem]:
        if not self.config.has_valid_api_key:
            raise ConfigurationError("OPENAI_API_KEY is missing or a placeholder")

        b64_img = base64.b64encode(image.data).decode("utf-8")
        messages = [
            {"role": "system", "content": SYSTEM_PROMPT},
            {
                "role": "user",
                "content": [
                    {"type": "text", "text": MENU_PROMPT},
                    {
                        "type": "image_url",
                        "image_url": {"url": f"data:{image.content_type};base64,{b64_img}"},
                    },
                ],
            },
        ]

        logger.info(
            "Sending %.1fkb menu image (%s) to model=%s",
            len(b64_img) / 1024,
            image.content_type,
            self.config.model,
        )

        try:
            response = self._client().chat.completions.create(
                model=self.config.model,
                messages=messages,
                max_tokens=self.config.max_tokens,
                temperature=0,
            )
        except openai.APIError as e:
            logger.error("Menu analysis via OpenAI failed: %s", e)
            raise AnalysisNetworkError(f"Vision request failed: {e}") from e

        if not response.choices:
            raise AnalysisFormatError("Vision response has no choices")

        result_text = response.choices[0].message.content or ""
        logger.info("Vision response received, length: %s", len(result_text))
        logger.debug("Vision raw response: %s", result_text)

        try:
            raw_items = extract_json_array(result_text)
        except ValueError as e:
            logger.error("Vision response is not a JSON array: %s", e)
            raise AnalysisFormatError(str(e)) from e

        items = _to_menu_items(raw_items)
        logger.info("Parsed %s menu items", len(items))
        return items
