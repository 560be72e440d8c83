from datetime import datetime

from fastapi import APIRouter, HTTPException

from ccem.api.schemas import PriceLookup, StreakResponse
from ccem.observability.logger import get_logger
from ccem.usage.aggregator import usage_history, usage_streak
from ccem.usage.errors import UsageAborted
from ccem.usage.models import UsageHistory, UsageStats
from ccem.usage.prices import get_model_price, normalize_model_name

log = get_logger("api")

router = APIRouter(prefix="/api")


def get_app_state():
    """Get shared app state, set during startup."""
    from ccem.main import app_state
    return app_state


def get_engine():
    state = get_app_state()
    engine = state.get("engine")
    if engine is None:
        raise HTTPException(status_code=503, detail="Usage engine not initialized")
    return engine


async def _latest_stats() -> UsageStats:
    """Cached snapshot when there is one, otherwise a full pass."""
    engine = get_engine()
    stats = await engine.cached_snapshot()
    if stats is not None:
        return stats
    try:
        return await engine.refresh()
    except UsageAborted:
        raise HTTPException(status_code=409, detail="Usage pass was superseded")


@router.get("/usage/stats", response_model=UsageStats)
async def get_usage_stats(cached: bool = False):
    engine = get_engine()
    if cached:
        stats = await engine.cached_snapshot()
        if stats is None:
            raise HTTPException(status_code=404, detail="Usage cache not found")
        return stats
    try:
        return await engine.refresh()
    except UsageAborted:
        raise HTTPException(status_code=409, detail="Usage pass was superseded")


@router.post("/usage/refresh", response_model=UsageStats)
async def refresh_usage():
    engine = get_engine()
    try:
        stats = await engine.refresh()
    except UsageAborted:
        raise HTTPException(status_code=409, detail="Usage pass was superseded")
    log.info("usage_refreshed", total_cost=round(stats.total.cost, 4))
    return stats


@router.get("/usage/history", response_model=UsageHistory)
async def get_usage_history(start_date: str | None = None, end_date: str | None = None):
    stats = await _latest_stats()
    return usage_history(stats, start_date=start_date, end_date=end_date)


@router.get("/usage/streak", response_model=StreakResponse)
async def get_usage_streak():
    stats = await _latest_stats()
    today = datetime.now().astimezone().date()
    return StreakResponse(days=usage_streak(stats.daily_history, today), today=today.isoformat())


@router.get("/usage/prices/{model}", response_model=PriceLookup)
async def get_price(model: str):
    resolver = get_engine().resolver
    prices = await resolver.load()
    return PriceLookup(
        model=model,
        normalized=normalize_model_name(model),
        price=get_model_price(model, prices),
        source=resolver.source,
    )
