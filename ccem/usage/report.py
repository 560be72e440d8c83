"""
Text renderings of UsageStats: the one-line status summary, the calendar
heatmap and the detail report (text, markdown or json).
"""

import calendar
import json
import math
from datetime import date, datetime, timedelta

from ccem.usage.formatting import format_cost, format_tokens, get_total_tokens
from ccem.usage.models import TokenUsageWithCost, UsageStats

NARROW_WIDTH = 70
RULE = "─" * 60
HEATMAP_LEVELS = " ░▒▓█"
DAY_LABELS = ["Mon", "", "Wed", "", "Fri", "", "Sun"]


def render_usage_line(stats: UsageStats | None, loading: bool = False, width: int = 80) -> str:
    if loading:
        return " Usage: Loading..."
    if stats is None:
        return " Usage: No data"

    periods = [("Today", stats.today), ("Week", stats.week), ("Total", stats.total)]
    if width < NARROW_WIDTH:
        return " Usage: " + " | ".join(
            f"{label} {format_tokens(get_total_tokens(usage))}" for label, usage in periods
        )
    return " Usage: " + "  |  ".join(
        f"{label} {format_tokens(get_total_tokens(usage)):>6} ({format_cost(usage.cost)})"
        for label, usage in periods
    )


def _period_rows(stats: UsageStats) -> list[tuple[str, TokenUsageWithCost]]:
    return [
        ("Today", stats.today),
        ("This Week", stats.week),
        ("This Month", stats.month),
        ("All Time", stats.total),
    ]


def _models_by_cost(stats: UsageStats) -> list[tuple[str, TokenUsageWithCost]]:
    return sorted(stats.by_model.items(), key=lambda item: item[1].cost, reverse=True)


def _display_time(iso: str) -> str:
    try:
        dt = datetime.fromisoformat(iso.replace("Z", "+00:00"))
    except ValueError:
        return iso
    return dt.astimezone().strftime("%Y-%m-%d %H:%M:%S")


def _table(headers: list[str], rows: list[list[str]], indent: str = "  ") -> list[str]:
    widths = [len(h) for h in headers]
    for row in rows:
        for i, cell in enumerate(row):
            widths[i] = max(widths[i], len(cell))

    def fmt(cells: list[str]) -> str:
        # First column is a label, the rest are numbers
        parts = [cells[0].ljust(widths[0])] + [c.rjust(widths[i]) for i, c in enumerate(cells) if i > 0]
        return indent + "  ".join(parts).rstrip()

    return [fmt(headers)] + [fmt(row) for row in rows]


def render_usage_detail(stats: UsageStats, fmt: str = "text") -> str:
    if fmt == "json":
        output = {
            "periods": {
                label: {**usage.model_dump(by_alias=True), "totalTokens": get_total_tokens(usage)}
                for label, usage in _period_rows(stats)
            },
            "byModel": [
                {"model": model, "totalTokens": get_total_tokens(usage), "cost": usage.cost}
                for model, usage in _models_by_cost(stats)
            ],
            "lastUpdated": stats.last_updated,
        }
        return json.dumps(output, indent=2)

    if fmt == "markdown":
        lines = [
            "# Token Usage Statistics",
            "",
            "| Period | Input | Output | Cache Read | Cost |",
            "|---|---:|---:|---:|---:|",
        ]
        for label, usage in _period_rows(stats):
            lines.append(
                f"| {label} | {format_tokens(usage.input_tokens)} | {format_tokens(usage.output_tokens)} "
                f"| {format_tokens(usage.cache_read_tokens)} | {format_cost(usage.cost)} |"
            )
        models = _models_by_cost(stats)
        if models:
            lines += ["", "## By Model", "", "| Model | Tokens | Cost |", "|---|---:|---:|"]
            for model, usage in models:
                lines.append(f"| {model} | {format_tokens(get_total_tokens(usage))} | {format_cost(usage.cost)} |")
        lines += ["", f"_Last updated: {_display_time(stats.last_updated)}_"]
        return "\n".join(lines)

    # text format (default)
    lines = ["", "  Token Usage Statistics", RULE]
    lines += _table(
        ["Period", "Input", "Output", "Cache Read", "Cost"],
        [
            [
                label,
                format_tokens(usage.input_tokens),
                format_tokens(usage.output_tokens),
                format_tokens(usage.cache_read_tokens),
                format_cost(usage.cost),
            ]
            for label, usage in _period_rows(stats)
        ],
    )

    models = _models_by_cost(stats)
    if models:
        lines += ["", RULE, "  By Model", ""]
        lines += _table(
            ["Model", "Tokens", "Cost"],
            [[model, format_tokens(get_total_tokens(usage)), format_cost(usage.cost)] for model, usage in models],
        )

    lines += ["", RULE, f"  Last updated: {_display_time(stats.last_updated)}"]
    return "\n".join(lines)


def _months_back(day: date, months: int) -> date:
    index = day.year * 12 + day.month - 1 - months
    year, month = divmod(index, 12)
    month += 1
    return date(year, month, min(day.day, calendar.monthrange(year, month)[1]))


def render_calendar_heatmap(stats: UsageStats, months: int = 6, today: date | None = None) -> str:
    """Daily token totals as a grid: one column per week, Monday to Sunday rows.

    Starts on the Monday on or before ``today`` minus ``months``. Each used day
    is shaded on a 1-4 scale relative to the busiest day shown; days after
    ``today`` are left blank.
    """
    today = today or datetime.now().astimezone().date()
    start = _months_back(today, months)
    start -= timedelta(days=start.weekday())
    weeks = (today - start).days // 7 + 1
    days = [start + timedelta(days=i) for i in range(weeks * 7)]

    tokens = {}
    for day in days:
        if day > today:
            break
        usage = stats.daily_history.get(day.isoformat())
        if usage is not None:
            tokens[day] = get_total_tokens(usage)
    max_tokens = max(tokens.values(), default=0)

    # A month label takes two week columns
    header = "     "
    last_month = None
    week = 0
    while week < weeks:
        first = days[week * 7]
        if first.month != last_month:
            header += calendar.month_abbr[first.month].ljust(4)
            last_month = first.month
            week += 2
        else:
            header += "  "
            week += 1
    lines = [header.rstrip()]

    for weekday, label in enumerate(DAY_LABELS):
        cells = []
        for week in range(weeks):
            day = days[week * 7 + weekday]
            count = tokens.get(day, 0)
            if day > today:
                cells.append(" ")
            elif count > 0 and max_tokens > 0:
                cells.append(HEATMAP_LEVELS[math.ceil(count / max_tokens * 4)])
            else:
                cells.append("·")
        lines.append((label.ljust(4) + " " + " ".join(cells)).rstrip())

    lines += ["", "     Less · " + " ".join(HEATMAP_LEVELS[1:]) + "  More"]
    return "\n".join(lines)
