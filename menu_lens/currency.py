"""Exchange rate lookups for menu price conversion."""

import logging
import math
from typing import Dict, Optional

import requests

from menu_lens.config import (
    EXCHANGE_RATE_API_URL,
    EXCHANGE_RATE_TIMEOUT_S,
    TARGET_CURRENCY,
)
from menu_lens.errors import RateLookupFailure

logger = logging.getLogger(__name__)

# Approximate KRW value of one unit of each currency.
# Used only when the live rate service cannot be reached.
FALLBACK_KRW_RATES: Dict[str, float] = {
    "USD": 1300,
    "EUR": 1400,
    "JPY": 9,
    "CNY": 180,
    "KRW": 1,
}


class ExchangeRateResolver:
    """
    Resolve the multiplier converting one unit of ``source`` into ``target``.

    Live rates come from an exchangerate-api.com compatible service
    (``GET {base_url}/{SOURCE}`` -> ``{"rates": {"KRW": 1342.1, ...}}``).
    Any failure of that call falls back to FALLBACK_KRW_RATES; codes missing
    from the table resolve to None. ``rate`` never raises for these cases.
    """

    def __init__(
        self,
        base_url: str = EXCHANGE_RATE_API_URL,
        timeout: float = EXCHANGE_RATE_TIMEOUT_S,
        fallback_rates: Optional[Dict[str, float]] = None,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.fallback_rates = dict(fallback_rates or FALLBACK_KRW_RATES)
        self.session = session or requests.Session()

    def rate(self, source: str, target: str = TARGET_CURRENCY) -> Optional[float]:
        source = (source or "").strip().upper()
        target = (target or "").strip().upper()
        if not source or not target:
            return None

        if source == target:
            return 1.0

        try:
            return self._fetch_live_rate(source, target)
        except RateLookupFailure as e:
            logger.warning(
                "[CURRENCY] Live rate %s->%s unavailable, using fallback: %s",
                source,
                target,
                e,
            )
            return self._fallback_rate(source, target)

    def _fetch_live_rate(self, source: str, target: str) -> float:
        url = f"{self.base_url}/{source}"
        try:
            response = self.session.get(url, timeout=self.timeout)
            response.raise_for_status()
            data = response.json()
        except (requests.RequestException, ValueError) as e:
            raise RateLookupFailure(f"request to {url} failed: {e}") from e

        rates = data.get("rates") if isinstance(data, dict) else None
        if not isinstance(rates, dict):
            raise RateLookupFailure(f"no 'rates' mapping in response from {url}")

        value = rates.get(target)
        if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
            raise RateLookupFailure(f"no usable {target} rate for base {source}")

        logger.info("[CURRENCY] Live rate %s->%s = %s", source, target, value)
        return float(value)

    def _fallback_rate(self, source: str, target: str) -> Optional[float]:
        source_krw = self.fallback_rates.get(source)
        target_krw = self.fallback_rates.get(target)
        if source_krw is None or target_krw is None:
            logger.warning(
                "[CURRENCY] No fallback rate for %s->%s, price stays unconverted",
                source,
                target,
            )
            return None
        return source_krw / target_krw


def format_krw(amount: float) -> str:
    """Format an amount as Korean won, e.g. 15000 -> '₩15,000'."""
    return f"₩{int(math.floor(amount + 0.5)):,}"


def format_price(amount: float, currency: str) -> str:
    if currency.upper() == "KRW":
        return format_krw(amount)
    return f"{amount:,} {currency.upper()}"
