import os
import tempfile

# Must be set before any ccem imports that use settings
_TMP_ROOT = tempfile.mkdtemp()
os.environ["CCEM_DATA_DIR"] = os.path.join(_TMP_ROOT, "ccem")
os.environ["CCEM_CLAUDE_PROJECTS_DIR"] = os.path.join(_TMP_ROOT, "projects")
os.environ["CCEM_PRICES_URL"] = "https://prices.invalid/model_prices.json"

import json
from datetime import datetime, timezone

import httpx
import pytest
from ccem.usage.cache import UsageCacheStore
from ccem.usage.engine import UsageEngine
from ccem.usage.parser import parse_log_file
from ccem.usage.prices import PriceResolver

# Wednesday; the week started Sunday 2024-01-14
NOW = datetime(2024, 1, 17, 12, 0, tzinfo=timezone.utc)

PRICE_TABLE = {
    "claude-sonnet-4-5": {"input_cost_per_token": 3e-6, "output_cost_per_token": 15e-6},
    "claude-opus-4-5": {
        "input_cost_per_token": 5e-6,
        "output_cost_per_token": 25e-6,
        "cache_read_input_token_cost": 0.5e-6,
        "cache_creation_input_token_cost": 6.25e-6,
    },
}


def assistant_record(
    timestamp="2024-01-15T10:00:00Z",
    model="claude-sonnet-4-5-20250929",
    input_tokens=1000,
    output_tokens=500,
    cache_read=0,
    cache_creation=0,
):
    return {
        "type": "assistant",
        "timestamp": timestamp,
        "message": {
            "model": model,
            "usage": {
                "input_tokens": input_tokens,
                "output_tokens": output_tokens,
                "cache_read_input_tokens": cache_read,
                "cache_creation_input_tokens": cache_creation,
            },
        },
    }


def price_transport(table=None, status_code=200):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status_code, json=table if table is not None else PRICE_TABLE)

    return httpx.MockTransport(handler)


class CountingParser:
    """Wraps parse_log_file and records which files were parsed."""

    def __init__(self):
        self.calls: list[str] = []

    async def __call__(self, path, prices, cancel=None):
        self.calls.append(path)
        return await parse_log_file(path, prices, cancel)


@pytest.fixture
def projects_dir(tmp_path):
    path = tmp_path / "projects"
    path.mkdir()
    return path


@pytest.fixture
def data_dir(tmp_path):
    path = tmp_path / "data"
    path.mkdir()
    return path


@pytest.fixture
def write_log(projects_dir):
    """Write a session log; records may be dicts or raw lines."""

    def _write(project: str, name: str, records: list) -> str:
        project_path = projects_dir / project
        project_path.mkdir(exist_ok=True)
        file_path = project_path / name
        lines = [r if isinstance(r, str) else json.dumps(r) for r in records]
        file_path.write_text("\n".join(lines) + "\n", encoding="utf-8")
        return str(file_path)

    return _write


@pytest.fixture
def make_resolver(data_dir):
    def _make(transport=None, bundled_path=None, diagnostic=None):
        return PriceResolver(
            prices_path=str(data_dir / "model-prices.json"),
            bundled_path=bundled_path,
            url="https://prices.test/model_prices.json",
            timeout=1.0,
            transport=transport if transport is not None else price_transport(),
            diagnostic=diagnostic,
        )

    return _make


@pytest.fixture
def make_engine(projects_dir, data_dir, make_resolver):
    def _make(parser=parse_log_file, concurrency=5, diagnostic=None):
        return UsageEngine(
            projects_dir=str(projects_dir),
            resolver=make_resolver(),
            store=UsageCacheStore(str(data_dir / "usage-cache.json")),
            concurrency=concurrency,
            parser=parser,
            diagnostic=diagnostic,
        )

    return _make
