"""
Model price table resolution.

Prices come from the first tier that yields a usable table:
remote LiteLLM list -> user cache file -> bundled file -> DEFAULT_PRICES.
Every failure along the way is logged and falls through; loading never raises.
"""

import asyncio
import json
import re

import httpx

from ccem.observability.logger import Diagnostics, get_logger
from ccem.usage.files import read_json, write_json_atomic
from ccem.usage.models import ModelPrice, TokenUsage

log = get_logger("usage.prices")

# Per-token USD rates, last-resort table
DEFAULT_PRICES = {
    "claude-opus-4-5": ModelPrice(
        input_cost_per_token=5e-6,
        output_cost_per_token=25e-6,
        cache_read_input_token_cost=0.5e-6,
        cache_creation_input_token_cost=6.25e-6,
    ),
    "claude-sonnet-4-5": ModelPrice(
        input_cost_per_token=3e-6,
        output_cost_per_token=15e-6,
        cache_read_input_token_cost=0.3e-6,
        cache_creation_input_token_cost=3.75e-6,
    ),
    "claude-haiku-4-5": ModelPrice(
        input_cost_per_token=1e-6,
        output_cost_per_token=5e-6,
        cache_read_input_token_cost=0.1e-6,
        cache_creation_input_token_cost=1.25e-6,
    ),
}

FAMILY_DEFAULTS = (
    ("opus", "claude-opus-4-5"),
    ("sonnet", "claude-sonnet-4-5"),
    ("haiku", "claude-haiku-4-5"),
)
FALLBACK_MODEL = "claude-sonnet-4-5"

_DATE_SUFFIX_RE = re.compile(r"-20\d{6}.*$")
_VENDOR_VERSION_RE = re.compile(r"-v\d+:\d+$")
_VENDOR_PREFIX_RE = re.compile(r"^(anthropic\.|vertex_ai/)")
_AT_SUFFIX_RE = re.compile(r"@.*$")


def normalize_model_name(model: str) -> str:
    """Strip date, vendor-version, vendor-prefix and ``@`` decorations."""
    normalized = _DATE_SUFFIX_RE.sub("", model)
    normalized = _VENDOR_VERSION_RE.sub("", normalized)
    normalized = _VENDOR_PREFIX_RE.sub("", normalized)
    return _AT_SUFFIX_RE.sub("", normalized)


def _is_rate(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and value > 0


def _optional_rate(value) -> float | None:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    return None


def filter_prices(data) -> dict[str, ModelPrice]:
    """Keep entries carrying both input and output rates, reshaped as ModelPrice."""
    prices: dict[str, ModelPrice] = {}
    if not isinstance(data, dict):
        return prices
    for key, value in data.items():
        if not isinstance(value, dict):
            continue
        if not (_is_rate(value.get("input_cost_per_token")) and _is_rate(value.get("output_cost_per_token"))):
            continue
        prices[key] = ModelPrice(
            input_cost_per_token=float(value["input_cost_per_token"]),
            output_cost_per_token=float(value["output_cost_per_token"]),
            cache_read_input_token_cost=_optional_rate(value.get("cache_read_input_token_cost")),
            cache_creation_input_token_cost=_optional_rate(value.get("cache_creation_input_token_cost")),
        )
    return prices


def dump_prices(prices: dict[str, ModelPrice]) -> dict:
    return {key: price.model_dump(exclude_none=True) for key, price in prices.items()}


def get_model_price(model: str, prices: dict[str, ModelPrice]) -> ModelPrice:
    """Resolve a price for ``model``; always returns one."""
    if model in prices:
        return prices[model]

    normalized = normalize_model_name(model)
    if normalized in prices:
        return prices[normalized]

    # First hit in table order wins
    for key, value in prices.items():
        if normalized in key or normalize_model_name(key) in normalized:
            return value

    for family, default_key in FAMILY_DEFAULTS:
        if family in model:
            return DEFAULT_PRICES[default_key]

    return DEFAULT_PRICES[FALLBACK_MODEL]


def calculate_cost(usage: TokenUsage, price: ModelPrice) -> float:
    return (
        usage.input_tokens * price.input_cost_per_token
        + usage.output_tokens * price.output_cost_per_token
        + usage.cache_read_tokens * (price.cache_read_input_token_cost or 0)
        + usage.cache_creation_tokens * (price.cache_creation_input_token_cost or 0)
    )


class PriceResolver:
    """Loads the price table once and keeps it for the resolver's lifetime."""

    def __init__(
        self,
        prices_path: str,
        bundled_path: str | None,
        url: str,
        timeout: float = 1.0,
        transport: httpx.AsyncBaseTransport | None = None,
        diagnostic=None,
    ):
        self.prices_path = prices_path
        self.bundled_path = bundled_path
        self.url = url
        self.timeout = timeout
        self.transport = transport
        self.diag = Diagnostics(log, diagnostic)
        self.source: str | None = None
        self._prices: dict[str, ModelPrice] | None = None
        self._lock = asyncio.Lock()

    @classmethod
    def from_settings(cls, settings, **kwargs) -> "PriceResolver":
        return cls(
            prices_path=settings.prices_path,
            bundled_path=settings.bundled_prices_path,
            url=settings.prices_url,
            timeout=settings.price_fetch_timeout_seconds,
            **kwargs,
        )

    @property
    def loaded(self) -> bool:
        return self._prices is not None

    async def load(self) -> dict[str, ModelPrice]:
        if self._prices is not None:
            return self._prices
        async with self._lock:
            if self._prices is None:
                self._prices = await self._resolve()
        return self._prices

    async def get_price(self, model: str) -> ModelPrice:
        return get_model_price(model, await self.load())

    async def _resolve(self) -> dict[str, ModelPrice]:
        prices = await self._fetch_remote()
        if prices:
            await asyncio.to_thread(self._persist, prices)
            return self._settle("remote", prices)

        prices = await asyncio.to_thread(self._read_file, self.prices_path, "user_cache")
        if prices:
            return self._settle("user_cache", prices)

        if self.bundled_path:
            prices = await asyncio.to_thread(self._read_file, self.bundled_path, "bundled")
            if prices:
                return self._settle("bundled", prices)

        return self._settle("default", dict(DEFAULT_PRICES))

    def _settle(self, source: str, prices: dict[str, ModelPrice]) -> dict[str, ModelPrice]:
        self.source = source
        self.diag.report("prices_loaded", source=source, models=len(prices))
        return prices

    async def _fetch_remote(self) -> dict[str, ModelPrice] | None:
        try:
            async with httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout),
                follow_redirects=True,
                transport=self.transport,
            ) as client:
                response = await client.get(self.url)
            if response.status_code != 200:
                self.diag.report("prices_remote_unavailable", level="warning", status=response.status_code)
                return None
            return filter_prices(response.json())
        except (httpx.HTTPError, json.JSONDecodeError, ValueError) as e:
            self.diag.report("prices_remote_unavailable", level="warning", error=str(e))
            return None

    def _read_file(self, path: str, tier: str) -> dict[str, ModelPrice] | None:
        try:
            return filter_prices(read_json(path))
        except FileNotFoundError:
            self.diag.report("prices_file_missing", level="debug", tier=tier, path=path)
        except (OSError, json.JSONDecodeError, ValueError) as e:
            self.diag.report("prices_file_unreadable", level="warning", tier=tier, path=path, error=str(e))
        return None

    def _persist(self, prices: dict[str, ModelPrice]):
        try:
            write_json_atomic(self.prices_path, dump_prices(prices))
        except OSError as e:
            self.diag.report("prices_save_failed", level="warning", path=self.prices_path, error=str(e))
