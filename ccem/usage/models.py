from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

# Bump when the persisted cache layout changes; readers drop mismatched caches whole.
CACHE_VERSION = 1

# Model name recorded for log records that omit one.
UNKNOWN_MODEL = "unknown"


def to_iso_z(dt: datetime) -> str:
    """Format as UTC ``YYYY-MM-DDTHH:MM:SS.mmmZ``."""
    dt = dt.astimezone(timezone.utc)
    return dt.strftime("%Y-%m-%dT%H:%M:%S.") + f"{dt.microsecond // 1000:03d}Z"


def utc_now_iso() -> str:
    return to_iso_z(datetime.now(timezone.utc))


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class TokenUsage(CamelModel):
    input_tokens: int = 0
    output_tokens: int = 0
    cache_read_tokens: int = 0
    cache_creation_tokens: int = 0


class TokenUsageWithCost(TokenUsage):
    cost: float = 0.0

    def __add__(self, other: "TokenUsageWithCost") -> "TokenUsageWithCost":
        return TokenUsageWithCost(
            input_tokens=self.input_tokens + other.input_tokens,
            output_tokens=self.output_tokens + other.output_tokens,
            cache_read_tokens=self.cache_read_tokens + other.cache_read_tokens,
            cache_creation_tokens=self.cache_creation_tokens + other.cache_creation_tokens,
            cost=self.cost + other.cost,
        )


class ModelPrice(BaseModel):
    input_cost_per_token: float
    output_cost_per_token: float
    cache_read_input_token_cost: float | None = None
    cache_creation_input_token_cost: float | None = None


class FileStatsEntry(CamelModel):
    timestamp: str
    model: str
    usage: TokenUsageWithCost


class FileStats(CamelModel):
    entries: list[FileStatsEntry] = Field(default_factory=list)


class FileMeta(CamelModel):
    mtime: float
    size: int


class CachedFile(CamelModel):
    meta: FileMeta
    stats: FileStats


class UsageCache(CamelModel):
    version: int = CACHE_VERSION
    files: dict[str, CachedFile] = Field(default_factory=dict)
    last_updated: str = Field(default_factory=utc_now_iso)


class UsageStats(CamelModel):
    today: TokenUsageWithCost = Field(default_factory=TokenUsageWithCost)
    week: TokenUsageWithCost = Field(default_factory=TokenUsageWithCost)
    month: TokenUsageWithCost = Field(default_factory=TokenUsageWithCost)
    total: TokenUsageWithCost = Field(default_factory=TokenUsageWithCost)
    daily_history: dict[str, TokenUsageWithCost] = Field(default_factory=dict)
    by_model: dict[str, TokenUsageWithCost] = Field(default_factory=dict)
    last_updated: str = Field(default_factory=utc_now_iso)


class UsageHistory(CamelModel):
    daily: dict[str, TokenUsageWithCost] = Field(default_factory=dict)
    by_model: dict[str, TokenUsageWithCost] = Field(default_factory=dict)
