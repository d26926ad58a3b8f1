import asyncio
import logging
import math
from typing import Dict, List, Optional, Sequence

from menu_lens.config import RATE_LOOKUP_CONCURRENCY, TARGET_CURRENCY
from menu_lens.currency import ExchangeRateResolver
from menu_lens.schemas import MenuItem

logger = logging.getLogger(__name__)


def convert_price(price: float, rate: float) -> int:
    """price * rate rounded half-up to a whole unit of the target currency."""
    amount = price * rate
    if not math.isfinite(amount):
        raise ValueError(f"converted amount is not finite: {price} * {rate}")
    return int(math.floor(amount + 0.5))


async def _lookup_rates(
    currencies: Sequence[str],
    resolver: ExchangeRateResolver,
    target_currency: str,
    max_concurrency: int,
) -> Dict[str, Optional[float]]:
    semaphore = asyncio.Semaphore(max(1, max_concurrency))

    async def _lookup(currency: str) -> Optional[float]:
        async with semaphore:
            return await asyncio.to_thread(resolver.rate, currency, target_currency)

    results = await asyncio.gather(
        *(_lookup(c) for c in currencies),
        return_exceptions=True,
    )

    rates: Dict[str, Optional[float]] = {}
    for currency, result in zip(currencies, results):
        if isinstance(result, BaseException):
            logger.warning(
                "[NORMALIZE] Rate lookup %s->%s raised %r, prices left unconverted",
                currency,
                target_currency,
                result,
            )
            rates[currency] = None
        else:
            rates[currency] = result
    return rates


async def normalize_prices(
    items: Sequence[MenuItem],
    resolver: ExchangeRateResolver,
    target_currency: str = TARGET_CURRENCY,
    max_concurrency: int = RATE_LOOKUP_CONCURRENCY,
) -> List[MenuItem]:
    """
    Attach ``converted_price`` to every item that has both price and currency.

    Returns a new list of the same length and order. Each distinct currency
    is looked up once per call; lookups run concurrently in worker threads.
    Items whose rate cannot be resolved are returned unchanged.
    """
    currencies = list(dict.fromkeys(item.currency for item in items if item.has_price))
    if not currencies:
        return list(items)

    logger.info(
        "[NORMALIZE] Converting %s items in %s to %s",
        sum(1 for item in items if item.has_price),
        currencies,
        target_currency,
    )
    rates = await _lookup_rates(currencies, resolver, target_currency, max_concurrency)

    normalized = []
    for item in items:
        rate = rates.get(item.currency) if item.has_price else None
        if rate is None:
            if item.has_price:
                logger.warning("[NORMALIZE] Conversion failed for item %r", item.name)
            normalized.append(item)
            continue
        try:
            converted = convert_price(item.price, rate)
        except (OverflowError, ValueError) as e:
            logger.warning("[NORMALIZE] Conversion failed for item %r: %s", item.name, e)
            normalized.append(item)
            continue
        normalized.append(item.model_copy(update={"converted_price": converted}))
    return normalized
