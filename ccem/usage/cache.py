import json

from pydantic import ValidationError

from ccem.observability.logger import Diagnostics, get_logger
from ccem.usage.files import read_json, write_json_atomic
from ccem.usage.models import CACHE_VERSION, UsageCache

log = get_logger("usage.cache")


class UsageCacheStore:
    """Persisted per-file parse results (``usage-cache.json``)."""

    def __init__(self, path: str, diagnostic=None):
        self.path = path
        self.diag = Diagnostics(log, diagnostic)

    def load(self) -> UsageCache | None:
        """Return the cache, or None when missing, unreadable or from another version."""
        try:
            data = read_json(self.path)
        except FileNotFoundError:
            return None
        except (OSError, json.JSONDecodeError, ValueError) as e:
            self.diag.report("usage_cache_unreadable", level="warning", path=self.path, error=str(e))
            return None

        if not isinstance(data, dict) or data.get("version") != CACHE_VERSION:
            version = data.get("version") if isinstance(data, dict) else None
            self.diag.report("usage_cache_version_mismatch", version=version, expected=CACHE_VERSION)
            return None

        try:
            return UsageCache.model_validate(data)
        except ValidationError as e:
            self.diag.report("usage_cache_invalid", level="warning", path=self.path, error=str(e))
            return None

    def save(self, cache: UsageCache) -> bool:
        try:
            write_json_atomic(self.path, cache.model_dump(mode="json", by_alias=True))
        except (OSError, TypeError, ValueError) as e:
            self.diag.report("usage_cache_save_failed", level="warning", path=self.path, error=str(e))
            return False
        log.debug("usage_cache_saved", path=self.path, files=len(cache.files))
        return True
