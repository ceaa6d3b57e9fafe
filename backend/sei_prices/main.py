import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from sei_prices.config import settings
from sei_prices.constants import DEFAULT_TOKENS
from sei_prices.database import init_db
from sei_prices.exceptions import AppError
from sei_prices.price_feeds import (
    CoinGeckoPriceFeed,
    FallbackChain,
    PythPriceFeed,
    SubstreamsPriceFeed,
)
from sei_prices.routers import prices_router, system_router, tokens_router
from sei_prices.routers.dependencies import get_orchestrator, get_price_store
from sei_prices.services.ingestion_orchestrator import IngestionOrchestrator
from sei_prices.services.pipeline_health import PipelineHealth
from sei_prices.services.price_store import PriceStore
from sei_prices.services.snapshot_rollup import SnapshotRollupService
from sei_prices.services.staleness_monitor import StalenessMonitor
from sei_prices.services.token_discovery_service import TokenDiscoveryService

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="SEI Price Service")

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.get_cors_origins_list(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Shared state: one store, one health owner
price_store = PriceStore()
pipeline_health = PipelineHealth()

# Sources: substreams first, then Pyth REST with CoinGecko as per-cycle rescue
substreams_feed = SubstreamsPriceFeed(
    endpoint=settings.substreams_endpoint,
    manifest_path=settings.substreams_manifest_path,
    api_token=settings.substreams_api_token,
    start_block=settings.substreams_start_block,
    binary=settings.substreams_binary,
    idle_timeout=settings.substreams_idle_timeout_seconds,
    probe_timeout=settings.fetch_timeout_seconds,
    health=pipeline_health,
)
rest_chain = FallbackChain([
    PythPriceFeed(
        base_url=settings.pyth_hermes_url,
        timeout=settings.fetch_timeout_seconds,
        health=pipeline_health,
    ),
    CoinGeckoPriceFeed(
        base_url=settings.coingecko_url,
        timeout=settings.fetch_timeout_seconds,
        health=pipeline_health,
    ),
])

ingestion_orchestrator = IngestionOrchestrator(
    store=price_store,
    streaming=substreams_feed,
    chain=rest_chain,
    health=pipeline_health,
    poll_interval_seconds=settings.poll_interval_seconds,
    restart_delay_seconds=settings.streaming_restart_delay_seconds,
)
staleness_monitor = StalenessMonitor(
    store=price_store,
    health=pipeline_health,
    check_interval_seconds=settings.staleness_check_interval_seconds,
    threshold_seconds=settings.staleness_threshold_seconds,
)
snapshot_rollup = SnapshotRollupService(
    store=price_store,
    interval_seconds=settings.snapshot_interval_seconds,
)
token_discovery = TokenDiscoveryService(
    store=price_store,
    interval_seconds=settings.discover_tokens_interval_seconds,
)

app.dependency_overrides[get_price_store] = lambda: price_store
app.dependency_overrides[get_orchestrator] = lambda: ingestion_orchestrator

app.include_router(tokens_router.router)
app.include_router(prices_router.router)
app.include_router(system_router.router)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


# Startup/Shutdown events
@app.on_event("startup")
async def startup_event():
    logger.info("Initializing database...")
    await init_db()
    await price_store.seed_tokens(DEFAULT_TOKENS)

    await ingestion_orchestrator.start()
    await staleness_monitor.start()
    await snapshot_rollup.start()
    await token_discovery.start()
    logger.info("All services initialized successfully")


@app.on_event("shutdown")
async def shutdown_event():
    logger.info("Stopping services...")
    await ingestion_orchestrator.stop()
    await staleness_monitor.stop()
    await snapshot_rollup.stop()
    await token_discovery.stop()
    logger.info("Services stopped - shutdown complete")


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=settings.port)
