import json

from ccem.usage.cache import UsageCacheStore
from ccem.usage.models import (
    CACHE_VERSION,
    CachedFile,
    FileMeta,
    FileStats,
    FileStatsEntry,
    TokenUsageWithCost,
    UsageCache,
)


def sample_cache() -> UsageCache:
    entry = FileStatsEntry(
        timestamp="2024-01-15T10:00:00Z",
        model="claude-sonnet-4-5",
        usage=TokenUsageWithCost(input_tokens=10, output_tokens=5, cost=0.5),
    )
    return UsageCache(
        files={
            "/logs/a.jsonl": CachedFile(
                meta=FileMeta(mtime=1705312800123.456, size=42),
                stats=FileStats(entries=[entry]),
            )
        }
    )


class TestUsageCacheStore:
    def test_missing_file(self, data_dir):
        assert UsageCacheStore(str(data_dir / "usage-cache.json")).load() is None

    def test_save_and_load(self, data_dir):
        store = UsageCacheStore(str(data_dir / "usage-cache.json"))
        assert store.save(sample_cache()) is True

        loaded = store.load()
        cached = loaded.files["/logs/a.jsonl"]
        assert cached.meta.mtime == 1705312800123.456
        assert cached.stats.entries[0].usage.cost == 0.5

    def test_on_disk_layout_is_camel_case(self, data_dir):
        path = data_dir / "usage-cache.json"
        UsageCacheStore(str(path)).save(sample_cache())

        data = json.loads(path.read_text())
        assert data["version"] == CACHE_VERSION
        assert "lastUpdated" in data
        usage = data["files"]["/logs/a.jsonl"]["stats"]["entries"][0]["usage"]
        assert usage == {
            "inputTokens": 10,
            "outputTokens": 5,
            "cacheReadTokens": 0,
            "cacheCreationTokens": 0,
            "cost": 0.5,
        }

    def test_version_mismatch_discards_whole_cache(self, data_dir):
        path = data_dir / "usage-cache.json"
        data = sample_cache().model_dump(mode="json", by_alias=True)
        data["version"] = CACHE_VERSION + 1
        path.write_text(json.dumps(data))

        events = []
        store = UsageCacheStore(str(path), diagnostic=lambda event, fields: events.append(event))
        assert store.load() is None
        assert events == ["usage_cache_version_mismatch"]

    def test_corrupt_file(self, data_dir):
        path = data_dir / "usage-cache.json"
        path.write_text("{\"version\": 1, \"files\": ")
        assert UsageCacheStore(str(path)).load() is None

    def test_save_failure_is_not_fatal(self, data_dir):
        # A directory where the cache file should go makes the rename fail
        target = data_dir / "usage-cache.json"
        target.mkdir()
        store = UsageCacheStore(str(target))

        assert store.save(sample_cache()) is False
        assert [p.name for p in data_dir.iterdir()] == ["usage-cache.json"]
