"""
ScanFlow — Keepa API Client

Fetches price history and stats for a book by ISBN and converts the Keepa
product payload into a ProductSnapshot for the evaluation engine.

history=1 is required: the Amazon 1P stockout analysis walks the raw csv
price history, not just the stats block.
"""

from __future__ import annotations

from typing import Any

import httpx
import structlog
from pydantic import BaseModel, Field, ValidationError

from src.config import settings
from src.engine.snapshot import Channel, ProductSnapshot, parse_series
from src.utils.isbn import clean_isbn, validate_isbn

logger = structlog.get_logger(__name__)


class KeepaRateLimitError(RuntimeError):
    """Keepa refused the request because the token bucket is empty."""


# ---------------------------------------------------------------------------
# Pydantic Response Models
# ---------------------------------------------------------------------------


class KeepaError(BaseModel):
    type: str | None = None
    message: str = ""


class KeepaProductResponse(BaseModel):
    """Envelope of a /product response. Products stay raw for parse_product."""

    tokens_left: int | None = Field(default=None, alias="tokensLeft")
    tokens_consumed: int | None = Field(default=None, alias="tokensConsumed")
    refill_in: int | None = Field(default=None, alias="refillIn")
    products: list[dict[str, Any]] | None = None
    error: KeepaError | None = None


# ---------------------------------------------------------------------------
# Payload parsing
# ---------------------------------------------------------------------------


def _positive_int(value: Any) -> int | None:
    if isinstance(value, int) and not isinstance(value, bool) and value > 0:
        return value
    return None


def _stat_values(values: Any) -> dict[Channel, int]:
    if not isinstance(values, list):
        return {}
    stats: dict[Channel, int] = {}
    for channel in Channel:
        if channel < len(values):
            value = _positive_int(values[channel])
            if value is not None:
                stats[channel] = value
    return stats


def parse_product(raw: dict[str, Any]) -> ProductSnapshot:
    """
    Convert a raw Keepa product into a ProductSnapshot.

    Malformed csv channels and stats entries are dropped rather than raising.
    """
    csv = raw.get("csv")
    if not isinstance(csv, list):
        csv = []
    series = {}
    for channel in Channel:
        flat = csv[channel] if channel < len(csv) else None
        samples = parse_series(flat)
        if samples:
            series[channel] = samples

    stats = raw.get("stats")
    if not isinstance(stats, dict):
        stats = {}
    snapshot = ProductSnapshot(
        asin=raw.get("asin") or "",
        title=raw.get("title"),
        series=series,
        avg180=_stat_values(stats.get("avg")),
        avg90=_stat_values(stats.get("avg90")),
        sales_rank_drops_90=_positive_int(stats.get("salesRankDrops90")) or 0,
        item_weight=_positive_int(raw.get("itemWeight")),
        package_weight=_positive_int(raw.get("packageWeight")),
        binding=raw.get("binding") or None,
    )

    logger.debug(
        "keepa_product_parsed",
        asin=snapshot.asin,
        channels=sorted(channel.name for channel in series),
        sales_rank_drops_90=snapshot.sales_rank_drops_90,
    )
    return snapshot


# ---------------------------------------------------------------------------
# API Client
# ---------------------------------------------------------------------------


class KeepaClient:
    """
    Async client for the Keepa product API.

    Usage:
        async with KeepaClient() as client:
            snapshot = await client.fetch_product("9780131103627")
    """

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        domain: int | None = None,
        stats_days: int | None = None,
    ):
        self._api_key = api_key if api_key is not None else settings.KEEPA_API_KEY
        self._base_url = base_url or settings.KEEPA_BASE_URL
        self._domain = domain or settings.KEEPA_DOMAIN
        self._stats_days = stats_days or settings.KEEPA_STATS_DAYS
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> KeepaClient:
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            headers={"Accept": "application/json"},
            timeout=30.0,
        )
        return self

    async def __aexit__(self, *args: Any) -> None:
        if self._client:
            await self._client.aclose()

    async def fetch_product(self, isbn: str) -> ProductSnapshot | None:
        """
        Fetch the snapshot for one ISBN.

        Returns:
            ProductSnapshot, or None when the ISBN is invalid, the key is
            missing, the response is not a readable Keepa payload, or Keepa
            has no product for it.

        Raises:
            KeepaRateLimitError: On HTTP 429 or an error payload with an empty
                token bucket. Callers stop issuing lookups.
        """
        assert self._client is not None, "Client not initialized. Use 'async with'."

        code = clean_isbn(isbn)
        validation = validate_isbn(code)
        if not validation.valid:
            logger.warning("keepa_invalid_isbn", isbn=isbn, error=validation.error)
            return None

        if not self._api_key:
            logger.error("keepa_api_key_missing", isbn=code)
            return None

        params = {
            "key": self._api_key,
            "domain": self._domain,
            "code": code,
            "stats": self._stats_days,
            "history": 1,
            "offers": 20,
        }

        try:
            response = await self._client.get("/product", params=params)
        except httpx.RequestError as e:
            logger.error("keepa_request_error", isbn=code, error=str(e))
            return None

        if response.status_code == 429:
            logger.warning("keepa_rate_limited", isbn=code)
            raise KeepaRateLimitError(f"Keepa rate limit reached while fetching {code}")

        if response.status_code >= 400:
            logger.error("keepa_http_error", isbn=code, status_code=response.status_code)
            return None

        try:
            envelope = KeepaProductResponse.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            logger.error("keepa_invalid_payload", isbn=code, error=str(e))
            return None

        if envelope.error is not None:
            if envelope.tokens_left is not None and envelope.tokens_left <= 0:
                logger.warning("keepa_tokens_exhausted", isbn=code, tokens_left=envelope.tokens_left)
                raise KeepaRateLimitError(f"Keepa token bucket empty while fetching {code}")
            logger.error("keepa_api_error", isbn=code, message=envelope.error.message)
            return None

        logger.info(
            "keepa_fetch_complete",
            isbn=code,
            tokens_left=envelope.tokens_left,
            products=len(envelope.products or []),
        )

        if not envelope.products:
            logger.warning("keepa_no_product", isbn=code)
            return None

        try:
            return parse_product(envelope.products[0])
        except ValidationError as e:
            logger.error("keepa_invalid_payload", isbn=code, error=str(e))
            return None
