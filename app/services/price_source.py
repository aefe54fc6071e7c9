"""
Stock price source with a deterministic simulated fallback.

Quotes come from the Yahoo Finance API published on RapidAPI. Requests are
batched (25 symbols per call by default) and guarded by a rolling 24-hour
quota. Any batch that cannot be served (quota exhausted, timeout, HTTP
error, malformed body, symbol missing from the response) is answered with
simulated quotes instead, so callers never see an upstream failure.
"""

import logging
import math
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Callable, Dict, Iterable, List, Optional

import httpx

from app.core.metrics import QUOTE_API_CALLS, SIMULATED_QUOTES
from app.services.market_clock import utcnow
from app.services.quote_quota import MemoryQuoteQuota, QuoteQuota

logger = logging.getLogger(__name__)

STOCK_NAMES: Dict[str, str] = {
    "RELIANCE": "Reliance Industries Ltd",
    "TCS": "Tata Consultancy Services Ltd",
    "INFY": "Infosys Ltd",
    "HDFCBANK": "HDFC Bank Ltd",
    "ICICIBANK": "ICICI Bank Ltd",
    "HINDUNILVR": "Hindustan Unilever Ltd",
    "ITC": "ITC Ltd",
    "SBIN": "State Bank of India",
    "BHARTIARTL": "Bharti Airtel Ltd",
    "KOTAKBANK": "Kotak Mahindra Bank Ltd",
    "LT": "Larsen & Toubro Ltd",
    "AXISBANK": "Axis Bank Ltd",
    "ASIANPAINT": "Asian Paints Ltd",
    "MARUTI": "Maruti Suzuki India Ltd",
    "TITAN": "Titan Company Ltd",
    "NESTLEIND": "Nestle India Ltd",
    "ULTRACEMCO": "UltraTech Cement Ltd",
    "WIPRO": "Wipro Ltd",
    "ONGC": "Oil & Natural Gas Corporation Ltd",
    "TATAMOTORS": "Tata Motors Ltd",
    "HCLTECH": "HCL Technologies Ltd",
    "LTIM": "LTIMindtree Ltd",
    "BAJAJFINSV": "Bajaj Finserv Ltd",
    "BAJAJ-AUTO": "Bajaj Auto Ltd",
    "JSWSTEEL": "JSW Steel Ltd",
    "TECHM": "Tech Mahindra Ltd",
    "COALINDIA": "Coal India Ltd",
    "SUNPHARMA": "Sun Pharmaceutical Industries Ltd",
}

POPULAR_INDIAN_STOCKS: List[str] = list(STOCK_NAMES)


@dataclass
class Quote:
    """A single stock quote. ``close`` is the previous close."""
    symbol: str
    name: str
    price: float
    change: float
    change_percent: float
    volume: Optional[int] = None
    high: Optional[float] = None
    low: Optional[float] = None
    open: Optional[float] = None
    close: Optional[float] = None
    date: Optional[str] = None
    simulated: bool = False

    def to_dict(self) -> dict:
        return asdict(self)


def clean_symbol(symbol: str) -> str:
    """Strip exchange prefixes/suffixes: ``NSE:TCS`` and ``TCS.NS`` both give ``TCS``."""
    cleaned = symbol.strip().upper()
    for prefix in ("NSE:", "BSE:"):
        if cleaned.startswith(prefix):
            cleaned = cleaned[len(prefix):]
    for suffix in (".NS", ".BO"):
        if cleaned.endswith(suffix):
            cleaned = cleaned[: -len(suffix)]
    return cleaned


def provider_symbol(symbol: str, market: str = "NSE") -> str:
    cleaned = clean_symbol(symbol)
    if market.upper() == "NSE":
        return f"{cleaned}.NS"
    if market.upper() == "BSE":
        return f"{cleaned}.BO"
    return cleaned


def symbol_hash(value: str) -> int:
    """32-bit signed polynomial string hash (h = 31*h + c)."""
    h = 0
    for ch in value:
        h = (31 * h + ord(ch)) & 0xFFFFFFFF
    if h >= 0x80000000:
        h -= 0x100000000
    return h


def simulate_quote(symbol: str, market: str = "NSE", now: Optional[datetime] = None,
                   reason: str = "fallback") -> Quote:
    """
    Build a plausible quote from a hash of the symbol.

    The same symbol always lands in the same price band (100-5000); the
    hour of the day adds a +/-2% drift so values move between ticks.
    """
    now = now or utcnow()
    cleaned = clean_symbol(symbol)
    h = symbol_hash(cleaned)
    a = abs(h)

    base_price = a % 4900 + 100
    hour = int(now.timestamp() // 3600) % 24
    drift = math.sin(hour) * 0.02
    variation = (a % 100) / 1000 - 0.05
    price = base_price * (1 + drift + variation)

    change_percent = (a % 200 - 100) / 1000
    previous_close = price / (1 + change_percent / 100)
    change = price - previous_close

    open_price = price * (1 + (abs(math.fmod(h, 50)) - 25) / 10000)
    spread = abs(math.fmod(h, 30)) / 10000
    high = max(open_price, price) * (1 + spread)
    low = min(open_price, price) * (1 - spread)
    volume = a % 49000000 + 1000000

    logger.info(f"[Simulated] Using simulated data for {cleaned} ({reason})")
    SIMULATED_QUOTES.labels(reason=reason).inc()

    return Quote(
        symbol=cleaned,
        name=STOCK_NAMES.get(cleaned, cleaned),
        price=round(price, 2),
        change=round(change, 2),
        change_percent=round(change_percent, 2),
        volume=volume,
        high=round(high, 2),
        low=round(low, 2),
        open=round(open_price, 2),
        close=round(previous_close, 2),
        date=now.date().isoformat(),
        simulated=True,
    )


def _dedupe(symbols: Iterable[str]) -> List[str]:
    seen = set()
    ordered = []
    for symbol in symbols:
        if symbol not in seen:
            seen.add(symbol)
            ordered.append(symbol)
    return ordered


class PriceSource:
    """Interface for quote providers."""

    async def get_quotes(self, symbols: Iterable[str], market: str = "NSE") -> List[Quote]:
        raise NotImplementedError

    async def get_quote(self, symbol: str, market: str = "NSE") -> Quote:
        quotes = await self.get_quotes([symbol], market)
        return quotes[0]

    async def aclose(self) -> None:
        return None


class SimulatedPriceSource(PriceSource):
    """Always answers with simulated quotes (offline and development use)."""

    def __init__(self, now_fn: Callable[[], datetime] = utcnow):
        self._now = now_fn

    async def get_quotes(self, symbols: Iterable[str], market: str = "NSE") -> List[Quote]:
        now = self._now()
        return [simulate_quote(s, market, now, reason="simulated source") for s in _dedupe(symbols)]


class YahooFinancePriceSource(PriceSource):
    """Batched Yahoo Finance (RapidAPI) client with per-batch fallback."""

    QUOTE_PATH = "/api/market/get-quote"

    def __init__(
        self,
        api_key: Optional[str],
        base_url: str = "https://yahoo-finance166.p.rapidapi.com",
        api_host: str = "yahoo-finance166.p.rapidapi.com",
        quota: Optional[QuoteQuota] = None,
        batch_size: int = 25,
        single_timeout: float = 10.0,
        batch_timeout: float = 15.0,
        client: Optional[httpx.AsyncClient] = None,
        now_fn: Callable[[], datetime] = utcnow,
    ):
        if batch_size < 1:
            raise ValueError("batch_size must be positive")
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.api_host = api_host
        self.quota = quota or MemoryQuoteQuota()
        self.batch_size = batch_size
        self.single_timeout = single_timeout
        self.batch_timeout = batch_timeout
        self._client = client
        self._owns_client = client is None
        self._now = now_fn

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient()
        return self._client

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def get_quotes(self, symbols: Iterable[str], market: str = "NSE") -> List[Quote]:
        """
        Fetch quotes for ``symbols``.

        Args:
            symbols: Symbols to quote; duplicates are collapsed
            market: Exchange code used to build provider symbols

        Returns:
            One quote per distinct symbol, in request order
        """
        requested = _dedupe(symbols)
        if not requested:
            return []

        now = self._now()
        if not self.api_key:
            return [simulate_quote(s, market, now, reason="no API key configured") for s in requested]

        quotes: List[Quote] = []
        for start in range(0, len(requested), self.batch_size):
            batch = requested[start:start + self.batch_size]
            if not await self.quota.can_make_call():
                logger.warning(f"Quote API daily quota exhausted, simulating {len(batch)} symbols")
                QUOTE_API_CALLS.labels(status="quota_exhausted").inc()
                quotes.extend(simulate_quote(s, market, now, reason="rate limit reached") for s in batch)
                continue
            quotes.extend(await self._fetch_batch(batch, market, now))
        return quotes

    async def _fetch_batch(self, batch: List[str], market: str, now: datetime) -> List[Quote]:
        by_provider = {provider_symbol(s, market): s for s in batch}
        timeout = self.single_timeout if len(batch) == 1 else self.batch_timeout
        headers = {
            "x-rapidapi-key": self.api_key,
            "x-rapidapi-host": self.api_host,
        }

        await self.quota.record_call()
        try:
            response = await self._get_client().get(
                f"{self.base_url}{self.QUOTE_PATH}",
                params={"symbols": ",".join(by_provider)},
                headers=headers,
                timeout=timeout,
            )
            response.raise_for_status()
            results = self._extract_results(response.json())
        except httpx.TimeoutException:
            logger.warning(f"Quote API timed out after {timeout}s for {len(batch)} symbols")
            QUOTE_API_CALLS.labels(status="timeout").inc()
            return [simulate_quote(s, market, now, reason="timeout") for s in batch]
        except httpx.HTTPError as e:
            logger.warning(f"Quote API request failed: {e}")
            QUOTE_API_CALLS.labels(status="error").inc()
            return [simulate_quote(s, market, now, reason="API error") for s in batch]
        except ValueError as e:
            logger.warning(f"Quote API returned an unusable body: {e}")
            QUOTE_API_CALLS.labels(status="malformed").inc()
            return [simulate_quote(s, market, now, reason="invalid response") for s in batch]

        QUOTE_API_CALLS.labels(status="ok").inc()

        found: Dict[str, dict] = {}
        for item in results:
            if isinstance(item, dict) and item.get("symbol"):
                found[str(item["symbol"]).upper()] = item

        quotes = []
        for provider_sym, requested_sym in by_provider.items():
            item = found.get(provider_sym.upper())
            quote = self._parse_item(item, now) if item else None
            if quote is None:
                quote = simulate_quote(requested_sym, market, now, reason="missing from response")
            quotes.append(quote)
        return quotes

    @staticmethod
    def _extract_results(body) -> list:
        if not isinstance(body, dict):
            raise ValueError("response body is not an object")
        if body.get("error"):
            raise ValueError(f"provider error: {body['error']}")
        if isinstance(body.get("quoteResponse"), dict):
            container = body["quoteResponse"]
            if container.get("error"):
                raise ValueError(f"provider error: {container['error']}")
            results = container.get("result")
        elif isinstance(body.get("data"), dict):
            results = body["data"].get("data")
        elif isinstance(body.get("data"), list):
            results = body["data"]
        else:
            raise ValueError("response has neither quoteResponse nor data")
        if not results:
            raise ValueError("empty result set")
        return results

    @staticmethod
    def _parse_item(item: dict, now: datetime) -> Optional[Quote]:
        price = item.get("regularMarketPrice")
        if price is None:
            return None
        cleaned = clean_symbol(str(item["symbol"]))
        market_time = item.get("regularMarketTime")
        if isinstance(market_time, (int, float)):
            quote_date = datetime.fromtimestamp(market_time, tz=timezone.utc).date().isoformat()
        else:
            quote_date = now.date().isoformat()
        return Quote(
            symbol=cleaned,
            name=item.get("longName") or item.get("shortName") or STOCK_NAMES.get(cleaned, cleaned),
            price=float(price),
            change=float(item.get("regularMarketChange") or 0),
            change_percent=float(item.get("regularMarketChangePercent") or 0),
            volume=item.get("regularMarketVolume"),
            high=item.get("regularMarketDayHigh"),
            low=item.get("regularMarketDayLow"),
            open=item.get("regularMarketOpen"),
            close=item.get("regularMarketPreviousClose"),
            date=quote_date,
            simulated=False,
        )


def build_price_source(settings, quota: Optional[QuoteQuota] = None) -> PriceSource:
    """Create the configured price source from application settings."""
    if settings.quote_provider == "simulated":
        return SimulatedPriceSource()
    return YahooFinancePriceSource(
        api_key=settings.quote_api_key,
        base_url=settings.quote_api_base_url,
        api_host=settings.quote_api_host,
        quota=quota or MemoryQuoteQuota(max_calls=settings.quote_daily_quota),
        batch_size=settings.quote_batch_size,
        single_timeout=settings.quote_single_timeout_seconds,
        batch_timeout=settings.quote_batch_timeout_seconds,
    )
