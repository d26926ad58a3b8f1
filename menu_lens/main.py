"""Main FastAPI application."""

import asyncio
import logging
import sys
import time
import uuid
from collections import OrderedDict
from functools import lru_cache
from typing import Dict

from fastapi import Depends, FastAPI, File, HTTPException, UploadFile
from fastapi.middleware.cors import CORSMiddleware

from menu_lens.config import (
    ALLOW_ALL_ORIGINS,
    CORS_ORIGINS,
    MAX_SESSIONS,
    RATE_LOOKUP_CONCURRENCY,
    SESSION_TTL_S,
    TARGET_CURRENCY,
    load_extractor_config,
)
from menu_lens.currency import ExchangeRateResolver
from menu_lens.errors import (
    UNEXPECTED_MESSAGE,
    AnalysisFormatError,
    AnalysisNetworkError,
    ConfigurationError,
)
from menu_lens.menu_pipeline.normalization import normalize_prices
from menu_lens.menu_pipeline.orchestrator import MenuAnalysisPipeline, render_item
from menu_lens.menu_vision import MenuExtractor
from menu_lens.schemas import MenuImage

# -----------------------------------
# App setup
# -----------------------------------

app = FastAPI(title="Menu Lens")

logging.basicConfig(
    level=logging.INFO,
    stream=sys.stdout,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=not ALLOW_ALL_ORIGINS,
    allow_methods=["*"],
    allow_headers=["*"],
)

SUPPORTED_CONTENT_TYPES = {"image/jpeg", "image/png", "image/webp", "image/heic"}

# In-memory only; sessions disappear with the process.
# Ordered by last access, oldest first.
_sessions: "OrderedDict[str, MenuAnalysisPipeline]" = OrderedDict()
_last_seen: Dict[str, float] = {}


@lru_cache
def get_extractor() -> MenuExtractor:
    return MenuExtractor(load_extractor_config())


@lru_cache
def get_resolver() -> ExchangeRateResolver:
    return ExchangeRateResolver()


async def _read_upload(image: UploadFile) -> MenuImage:
    if image.content_type not in SUPPORTED_CONTENT_TYPES:
        raise HTTPException(422, "Unsupported format (use jpeg/png/webp/heic)")
    data = await image.read()
    if not data:
        raise HTTPException(422, "Image file is empty")
    return MenuImage(data=data, content_type=image.content_type, filename=image.filename)


def _drop_session(session_id: str) -> None:
    _sessions.pop(session_id, None)
    _last_seen.pop(session_id, None)


def _evict_sessions() -> None:
    """Drop sessions idle longer than SESSION_TTL_S, then the oldest beyond MAX_SESSIONS."""
    now = time.monotonic()
    if SESSION_TTL_S > 0:
        expired = [sid for sid, seen in _last_seen.items() if now - seen > SESSION_TTL_S]
        for sid in expired:
            logging.info("Evicting idle session %s", sid)
            _drop_session(sid)
    while len(_sessions) > MAX_SESSIONS:
        sid = next(iter(_sessions))
        logging.info("Evicting session %s (limit %s reached)", sid, MAX_SESSIONS)
        _drop_session(sid)


def _get_pipeline(session_id: str) -> MenuAnalysisPipeline:
    _evict_sessions()
    pipeline = _sessions.get(session_id)
    if pipeline is None:
        raise HTTPException(404, f"Unknown session: {session_id}")
    _sessions.move_to_end(session_id)
    _last_seen[session_id] = time.monotonic()
    return pipeline


# -----------------------------------
# Tech endpoints
# -----------------------------------

@app.get("/health")
def health():
    return {"status": "ok"}


# -----------------------------------
# /analyze — one-shot, stateless
# -----------------------------------

@app.post("/analyze")
async def analyze_menu(
    image: UploadFile = File(None),
    extractor: MenuExtractor = Depends(get_extractor),
    resolver: ExchangeRateResolver = Depends(get_resolver),
):
    if not image:
        raise HTTPException(422, "Image field is required")

    menu_image = await _read_upload(image)

    total_start = time.time()
    logging.info(f"[PIPELINE] Starting /analyze endpoint for file: {image.filename}")

    try:
        vision_start = time.time()
        items = await asyncio.to_thread(extractor.analyze, menu_image)
        vision_time = time.time() - vision_start

        normalize_start = time.time()
        items = await normalize_prices(
            items,
            resolver,
            target_currency=TARGET_CURRENCY,
            max_concurrency=RATE_LOOKUP_CONCURRENCY,
        )
        normalize_time = time.time() - normalize_start
    except ConfigurationError as e:
        logging.error("Configuration error in /analyze: %s", e)
        raise HTTPException(500, e.user_message)
    except AnalysisNetworkError as e:
        logging.error("Vision service error in /analyze: %s", e)
        raise HTTPException(502, e.user_message)
    except AnalysisFormatError as e:
        logging.error("Invalid vision response in /analyze: %s", e)
        raise HTTPException(422, e.user_message)
    except Exception:
        logging.exception("Error in /analyze")
        raise HTTPException(500, UNEXPECTED_MESSAGE)

    total_time = time.time() - total_start
    processing_times = {
        "vision_ms": round(vision_time * 1000, 2),
        "normalize_ms": round(normalize_time * 1000, 2),
        "total_ms": round(total_time * 1000, 2),
    }
    logging.info("[PIPELINE] /analyze timings_ms=%s", processing_times)

    return {
        "items": [render_item(item, TARGET_CURRENCY) for item in items],
        "target_currency": TARGET_CURRENCY,
        "processing_times": processing_times,
    }


# -----------------------------------
# /sessions — stateful upload / retry / reset
# -----------------------------------

@app.post("/sessions")
def create_session(
    extractor: MenuExtractor = Depends(get_extractor),
    resolver: ExchangeRateResolver = Depends(get_resolver),
):
    session_id = uuid.uuid4().hex
    pipeline = MenuAnalysisPipeline(extractor, resolver)
    _sessions[session_id] = pipeline
    _last_seen[session_id] = time.monotonic()
    _evict_sessions()
    logging.info("Created session %s", session_id)
    return {"session_id": session_id, **pipeline.session.snapshot()}


@app.get("/sessions/{session_id}")
def get_session(session_id: str):
    pipeline = _get_pipeline(session_id)
    return {"session_id": session_id, **pipeline.session.snapshot()}


@app.post("/sessions/{session_id}/image")
async def upload_session_image(session_id: str, image: UploadFile = File(None)):
    pipeline = _get_pipeline(session_id)
    menu_image = await _read_upload(image) if image else None
    session = await pipeline.select_image(menu_image)
    return {"session_id": session_id, **session.snapshot()}


@app.post("/sessions/{session_id}/retry")
async def retry_session(session_id: str):
    pipeline = _get_pipeline(session_id)
    session = await pipeline.retry()
    return {"session_id": session_id, **session.snapshot()}


@app.post("/sessions/{session_id}/reset")
def reset_session(session_id: str):
    pipeline = _get_pipeline(session_id)
    session = pipeline.reset()
    return {"session_id": session_id, **session.snapshot()}


@app.delete("/sessions/{session_id}")
def delete_session(session_id: str):
    _get_pipeline(session_id)
    _drop_session(session_id)
    return {"status": "deleted"}
