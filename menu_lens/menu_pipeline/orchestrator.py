import asyncio
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from menu_lens.config import RATE_LOOKUP_CONCURRENCY, TARGET_CURRENCY
from menu_lens.currency import ExchangeRateResolver, format_price
from menu_lens.errors import ConfigurationError, MenuLensError, UNEXPECTED_MESSAGE
from menu_lens.menu_vision import MenuExtractor
from menu_lens.schemas import MenuImage, MenuItem
from menu_lens.menu_pipeline.normalization import normalize_prices

logger = logging.getLogger(__name__)


class PipelineState(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    SUCCESS = "success"
    ERROR = "error"


def render_item(item: MenuItem, target_currency: str) -> Dict[str, Any]:
    """Wire form of an item plus a display string for its converted price."""
    data = item.to_dict()
    if item.converted_price is not None:
        data["convertedPriceText"] = format_price(item.converted_price, target_currency)
    return data


@dataclass
class AnalysisSession:
    last_input_image: Optional[MenuImage] = None
    items: List[MenuItem] = field(default_factory=list)
    is_loading: bool = False
    error: Optional[str] = None
    # Bumped on reset so the upload widget drops its own preview.
    upload_key: int = 0
    state: PipelineState = PipelineState.IDLE
    target_currency: str = TARGET_CURRENCY

    def snapshot(self) -> Dict[str, Any]:
        return {
            "state": self.state.value,
            "items": [render_item(item, self.target_currency) for item in self.items],
            "error": self.error,
            "isLoading": self.is_loading,
            "uploadKey": self.upload_key,
            "hasImage": self.last_input_image is not None,
        }


class MenuAnalysisPipeline:
    """
    Per-session controller: extraction → price normalization.

    idle ──select_image──▶ loading ──▶ success | error
    success | error ──retry──▶ loading
    any ──reset──▶ idle

    Only one run per session may be loading at a time; analysis requests
    arriving meanwhile are ignored. A run that finishes after reset (or
    after the image was cleared) does not touch the session.
    """

    def __init__(
        self,
        extractor: MenuExtractor,
        resolver: ExchangeRateResolver,
        target_currency: str = TARGET_CURRENCY,
        max_concurrency: int = RATE_LOOKUP_CONCURRENCY,
    ):
        self.extractor = extractor
        self.resolver = resolver
        self.target_currency = target_currency
        self.max_concurrency = max_concurrency
        self.session = AnalysisSession(target_currency=target_currency)
        self._generation = 0

    async def select_image(self, image: Optional[MenuImage]) -> AnalysisSession:
        session = self.session

        if image is None:
            logger.info("[PIPELINE] Image cleared")
            self._generation += 1
            session.last_input_image = None
            session.items = []
            session.error = None
            session.is_loading = False
            session.state = PipelineState.IDLE
            return session

        if session.is_loading:
            logger.warning("[PIPELINE] Analysis already running, ignoring new image")
            return session

        session.last_input_image = image
        return await self._run(image)

    async def retry(self) -> AnalysisSession:
        session = self.session
        if session.last_input_image is None:
            logger.info("[PIPELINE] Retry requested without a previous image, nothing to do")
            return session
        if session.is_loading:
            logger.warning("[PIPELINE] Analysis already running, ignoring retry")
            return session
        return await self._run(session.last_input_image)

    def reset(self) -> AnalysisSession:
        session = self.session
        self._generation += 1
        session.last_input_image = None
        session.items = []
        session.error = None
        session.is_loading = False
        session.state = PipelineState.IDLE
        session.upload_key += 1
        logger.info("[PIPELINE] Session reset, upload_key=%s", session.upload_key)
        return session

    def _fail(self, message: str) -> None:
        session = self.session
        session.items = []
        session.error = message
        session.state = PipelineState.ERROR

    async def _run(self, image: MenuImage) -> AnalysisSession:
        session = self.session

        if not self.extractor.config.has_valid_api_key:
            logger.error("[PIPELINE] Vision API key is not configured")
            self._fail(ConfigurationError.user_message)
            return session

        self._generation += 1
        generation = self._generation
        session.is_loading = True
        session.error = None
        session.state = PipelineState.LOADING

        total_start = time.time()
        logger.info(
            "[PIPELINE] Starting menu analysis for %s (%.1fkb)",
            image.filename or "<upload>",
            image.size_kb,
        )

        try:
            # STEP 1 — VISION EXTRACTION
            vision_start = time.time()
            items = await asyncio.to_thread(self.extractor.analyze, image)
            vision_time = time.time() - vision_start
            logger.info(
                "[PIPELINE] Step 1: Extraction completed in %sms, found %s items",
                round(vision_time * 1000, 2),
                len(items),
            )

            # STEP 2 — PRICE NORMALIZATION
            normalize_start = time.time()
            items = await normalize_prices(
                items,
                self.resolver,
                target_currency=self.target_currency,
                max_concurrency=self.max_concurrency,
            )
            normalize_time = time.time() - normalize_start
            logger.info(
                "[PIPELINE] Step 2: Normalization completed in %sms",
                round(normalize_time * 1000, 2),
            )
        except MenuLensError as e:
            logger.error("[PIPELINE] Menu analysis failed: %s", e)
            if generation == self._generation:
                self._fail(e.user_message)
                session.is_loading = False
            return session
        except Exception:
            logger.exception("[PIPELINE] Unexpected error in menu analysis")
            if generation == self._generation:
                self._fail(UNEXPECTED_MESSAGE)
                session.is_loading = False
            return session

        if generation != self._generation:
            logger.info("[PIPELINE] Session was reset during analysis, discarding result")
            return session

        session.items = items
        session.error = None
        session.state = PipelineState.SUCCESS
        session.is_loading = False
        logger.info(
            "[PIPELINE] Menu analysis completed successfully, total time: %sms",
            round((time.time() - total_start) * 1000, 2),
        )
        return session
