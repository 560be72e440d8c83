"""
Incremental usage pass.

Each pass lists the session logs, reuses the cached parse of every file whose
(mtime, size) fingerprint is unchanged, re-parses the rest with bounded
concurrency, rewrites the cache with exactly the files seen, and aggregates.
"""

import asyncio
import os
from datetime import datetime

from ccem.observability.logger import Diagnostics, get_logger
from ccem.usage.aggregator import aggregate
from ccem.usage.cache import UsageCacheStore
from ccem.usage.errors import CancelToken
from ccem.usage.models import CachedFile, FileMeta, ModelPrice, UsageCache, UsageStats
from ccem.usage.parser import parse_log_file
from ccem.usage.prices import PriceResolver
from ccem.usage.scanner import list_log_files

log = get_logger("usage.engine")

DEFAULT_CONCURRENCY = 5


def file_meta(path: str) -> FileMeta | None:
    try:
        st = os.stat(path)
    except OSError:
        return None
    return FileMeta(mtime=st.st_mtime_ns / 1_000_000, size=st.st_size)


class UsageEngine:
    """Computes UsageStats from session logs, backed by the incremental cache."""

    def __init__(
        self,
        projects_dir: str,
        resolver: PriceResolver,
        store: UsageCacheStore,
        concurrency: int = DEFAULT_CONCURRENCY,
        parser=parse_log_file,
        diagnostic=None,
    ):
        self.projects_dir = projects_dir
        self.resolver = resolver
        self.store = store
        self.concurrency = max(1, concurrency)
        self.parser = parser
        self.diag = Diagnostics(log, diagnostic)
        self.parse_count = 0
        self._active: CancelToken | None = None

    @classmethod
    def from_settings(cls, settings, diagnostic=None, transport=None) -> "UsageEngine":
        return cls(
            projects_dir=settings.projects_path,
            resolver=PriceResolver.from_settings(settings, transport=transport, diagnostic=diagnostic),
            store=UsageCacheStore(settings.cache_path, diagnostic=diagnostic),
            concurrency=settings.parse_concurrency,
            diagnostic=diagnostic,
        )

    async def compute_snapshot(self, cancel: CancelToken | None = None, now: datetime | None = None) -> UsageStats:
        """Run a full incremental pass.

        Raises UsageAborted if ``cancel`` fires; the persisted cache is then
        left exactly as it was.
        """
        cancel = cancel or CancelToken()
        cancel.raise_if_cancelled()

        prices = await self.resolver.load()
        cancel.raise_if_cancelled()

        files = await asyncio.to_thread(list_log_files, self.projects_dir)
        cancel.raise_if_cancelled()

        previous = await asyncio.to_thread(self.store.load)
        cached_files = previous.files if previous else {}

        semaphore = asyncio.Semaphore(self.concurrency)
        tasks = [
            asyncio.create_task(self._process_file(path, cached_files.get(path), prices, semaphore, cancel))
            for path in files
        ]
        results = await self._gather(tasks)
        cancel.raise_if_cancelled()

        new_cache = UsageCache()
        entries = []
        reused = 0
        for result in results:
            if result is None:
                continue
            path, cached, was_reused = result
            new_cache.files[path] = cached
            entries.extend(cached.stats.entries)
            reused += was_reused

        saved = await asyncio.to_thread(self.store.save, new_cache)
        log.info(
            "usage_pass_complete",
            files=len(files),
            visited=len(new_cache.files),
            reused=reused,
            parsed=len(new_cache.files) - reused,
            entries=len(entries),
            cache_saved=saved,
            price_source=self.resolver.source,
        )
        return aggregate(entries, now)

    def snapshot_from_cache(self, now: datetime | None = None) -> UsageStats | None:
        """Aggregate the persisted cache without touching any log file.

        Returns None when there is no usable cache.
        """
        cache = self.store.load()
        if cache is None:
            return None
        entries = [entry for cached in cache.files.values() for entry in cached.stats.entries]
        return aggregate(entries, now)

    async def cached_snapshot(self, now: datetime | None = None) -> UsageStats | None:
        """snapshot_from_cache off the event loop, for async callers."""
        return await asyncio.to_thread(self.snapshot_from_cache, now)

    async def refresh(self, now: datetime | None = None) -> UsageStats:
        """Start a new pass, superseding (aborting) any pass still in flight."""
        self.cancel_active()
        token = CancelToken()
        self._active = token
        try:
            return await self.compute_snapshot(token, now=now)
        finally:
            if self._active is token:
                self._active = None

    def cancel_active(self) -> bool:
        if self._active is None:
            return False
        self._active.cancel()
        self._active = None
        log.info("usage_pass_superseded")
        return True

    async def _process_file(
        self,
        path: str,
        cached: CachedFile | None,
        prices: dict[str, ModelPrice],
        semaphore: asyncio.Semaphore,
        cancel: CancelToken,
    ) -> tuple[str, CachedFile, bool] | None:
        async with semaphore:
            cancel.raise_if_cancelled()

            meta = file_meta(path)
            if meta is None:
                self.diag.report("log_file_meta_unavailable", level="warning", path=path)
                return None

            if cached is not None and cached.meta.mtime == meta.mtime and cached.meta.size == meta.size:
                return path, CachedFile(meta=meta, stats=cached.stats), True

            stats = await self.parser(path, prices, cancel)
            self.parse_count += 1
            cancel.raise_if_cancelled()
            return path, CachedFile(meta=meta, stats=stats), False

    @staticmethod
    async def _gather(tasks: list[asyncio.Task]) -> list:
        try:
            return await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise
