import asyncio
import json

from ccem.observability.logger import get_logger
from ccem.usage.errors import CancelToken
from ccem.usage.models import (
    UNKNOWN_MODEL,
    FileStats,
    FileStatsEntry,
    ModelPrice,
    TokenUsage,
    TokenUsageWithCost,
    utc_now_iso,
)
from ccem.usage.prices import calculate_cost, get_model_price

log = get_logger("usage.parser")

CANCEL_CHECK_LINES = 100
YIELD_EVERY_LINES = 1000

# Failures that discard a single line. Infinity counts overflow int(), and
# deeply nested arrays exhaust the decoder's recursion limit.
PARSE_ERRORS = (ValueError, TypeError, AttributeError, OverflowError, RecursionError)


def _count(raw: dict, field: str) -> int:
    return int(raw.get(field) or 0)


def parse_record(line: str, prices: dict[str, ModelPrice]) -> FileStatsEntry | None:
    """Turn one log line into an entry.

    Returns None for records that carry no assistant usage. Raises one of
    PARSE_ERRORS for malformed records.
    """
    record = json.loads(line)
    if not isinstance(record, dict) or record.get("type") != "assistant":
        return None
    message = record.get("message")
    if not isinstance(message, dict):
        return None
    raw = message.get("usage")
    # An empty usage object is still a usage record, with zero counts
    if not isinstance(raw, dict):
        return None

    usage = TokenUsage(
        input_tokens=_count(raw, "input_tokens"),
        output_tokens=_count(raw, "output_tokens"),
        cache_read_tokens=_count(raw, "cache_read_input_tokens"),
        cache_creation_tokens=_count(raw, "cache_creation_input_tokens"),
    )
    model = message.get("model") or UNKNOWN_MODEL
    cost = calculate_cost(usage, get_model_price(model, prices))

    return FileStatsEntry(
        timestamp=record.get("timestamp") or utc_now_iso(),
        model=model,
        usage=TokenUsageWithCost(**usage.model_dump(), cost=cost),
    )


async def parse_log_file(
    path: str,
    prices: dict[str, ModelPrice],
    cancel: CancelToken | None = None,
) -> FileStats:
    """Parse a JSONL session log into entries, in file order.

    Bad lines are skipped one at a time. Yields to the loop periodically so one
    huge file does not starve concurrent parses.
    """
    entries: list[FileStatsEntry] = []
    skipped = 0
    try:
        with open(path, "r", encoding="utf-8", errors="replace") as f:
            for line_no, line in enumerate(f, 1):
                if line_no % CANCEL_CHECK_LINES == 0:
                    if cancel is not None:
                        cancel.raise_if_cancelled()
                    if line_no % YIELD_EVERY_LINES == 0:
                        await asyncio.sleep(0)

                if not line.strip():
                    continue
                try:
                    entry = parse_record(line, prices)
                except PARSE_ERRORS:
                    skipped += 1
                    continue
                if entry is not None:
                    entries.append(entry)
    except OSError as e:
        log.warning("log_file_unreadable", path=path, error=str(e))

    if skipped:
        log.debug("log_lines_skipped", path=path, skipped=skipped)
    return FileStats(entries=entries)
