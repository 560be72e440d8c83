import asyncio
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from ccem.api.routes import router as api_router
from ccem.config import settings
from ccem.observability.logger import get_logger, setup_logging
from ccem.usage.engine import UsageEngine
from ccem.usage.errors import UsageAborted

setup_logging(settings.log_level, settings.log_json)
log = get_logger("main")

# Shared application state, accessed by API routes
app_state = {}


@asynccontextmanager
async def lifespan(app: FastAPI):
    log.info("ccem_starting", data_dir=settings.data_path, projects_dir=settings.projects_path)
    os.makedirs(settings.data_path, exist_ok=True)

    engine = UsageEngine.from_settings(settings)
    app_state["engine"] = engine

    # Warm the cache in the background; requests meanwhile see the last cached snapshot
    refresh_task = asyncio.create_task(_initial_refresh(engine))
    app_state["refresh_task"] = refresh_task

    log.info("ccem_ready")

    yield

    log.info("ccem_shutting_down")
    engine.cancel_active()
    refresh_task.cancel()
    app_state.clear()


async def _initial_refresh(engine: UsageEngine):
    try:
        stats = await engine.refresh()
        log.info("initial_refresh_complete", total_cost=round(stats.total.cost, 4))
    except UsageAborted:
        log.info("initial_refresh_superseded")


app = FastAPI(title="ccem usage", version="0.1.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router)
