"""
Rollups over parsed usage entries.

Window starts (today, week, month) are taken in the timezone of the reference
time ``now``; pass an explicit aware ``now`` for deterministic results.
Weeks start on Sunday.
"""

from datetime import date, datetime, timedelta
from typing import Iterable

from ccem.usage.models import (
    FileStatsEntry,
    TokenUsageWithCost,
    UsageHistory,
    UsageStats,
    to_iso_z,
)
from ccem.usage.prices import normalize_model_name


def _reference_time(now: datetime | None) -> datetime:
    if now is None:
        return datetime.now().astimezone()
    if now.tzinfo is None:
        return now.astimezone()
    return now


def parse_timestamp(timestamp: str, tz) -> datetime | None:
    try:
        dt = datetime.fromisoformat(timestamp.replace("Z", "+00:00"))
    except (ValueError, AttributeError):
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=tz)
    return dt


def window_starts(now: datetime) -> tuple[datetime, datetime, datetime]:
    """Start of today, of the current Sunday-based week and of the month."""
    today = now.replace(hour=0, minute=0, second=0, microsecond=0)
    week = today - timedelta(days=(today.weekday() + 1) % 7)
    month = today.replace(day=1)
    return today, week, month


def aggregate(entries: Iterable[FileStatsEntry], now: datetime | None = None) -> UsageStats:
    now = _reference_time(now)
    today_start, week_start, month_start = window_starts(now)

    stats = UsageStats(last_updated=to_iso_z(now))
    for entry in entries:
        usage = entry.usage
        stats.total = stats.total + usage

        date_key = entry.timestamp[:10]
        stats.daily_history[date_key] = stats.daily_history.get(date_key, TokenUsageWithCost()) + usage

        model_key = normalize_model_name(entry.model)
        stats.by_model[model_key] = stats.by_model.get(model_key, TokenUsageWithCost()) + usage

        entry_time = parse_timestamp(entry.timestamp, now.tzinfo)
        if entry_time is None:
            continue
        if entry_time >= today_start:
            stats.today = stats.today + usage
        if entry_time >= week_start:
            stats.week = stats.week + usage
        if entry_time >= month_start:
            stats.month = stats.month + usage

    return stats


def usage_history(stats: UsageStats, start_date: str | None = None, end_date: str | None = None) -> UsageHistory:
    """Daily history limited to an inclusive ``YYYY-MM-DD`` range."""
    daily = {
        day: usage
        for day, usage in sorted(stats.daily_history.items())
        if (start_date is None or day >= start_date) and (end_date is None or day <= end_date)
    }
    return UsageHistory(daily=daily, by_model=dict(stats.by_model))


def usage_streak(daily_history: dict[str, TokenUsageWithCost], today: date) -> int:
    """Consecutive days with recorded usage, counting back from ``today``."""
    streak = 0
    day = today
    while day.isoformat() in daily_history:
        streak += 1
        day -= timedelta(days=1)
    return streak
