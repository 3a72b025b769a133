import newrelic.agent
from cabfare.core.config import get_settings

settings = get_settings()
newrelic.agent.initialize(settings.new_relic_config_file, settings.app_env)

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
import time
import logging

from cabfare.core.errors import ConfigurationError, ValidationError
from cabfare.routers import fares
from cabfare.services.tariff_loader import get_tariff_table

logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting up — loading tariff configuration...")
    table = get_tariff_table()
    logger.info(f"Tariffs ready: {table.tariff_config_id} v{table.tariff_config_version}")
    yield
    logger.info("Shutting down...")


app = FastAPI(
    title="Cabfare Estimates API",
    description="Taxi fare estimates from time-of-day tariffs, vehicle class and route metrics.",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


# ─── Latency tracking middleware ──────────────────────────────────────────────
@app.middleware("http")
async def add_latency_header(request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    latency_ms = (time.perf_counter() - start) * 1000
    response.headers["X-Response-Time-Ms"] = f"{latency_ms:.2f}"
    if latency_ms > 500:
        logger.warning(f"SLOW REQUEST: {request.method} {request.url.path} — {latency_ms:.0f}ms")
    return response


# ─── Error mapping ────────────────────────────────────────────────────────────
@app.exception_handler(ValidationError)
async def fare_validation_error(request: Request, exc: ValidationError):
    return JSONResponse(status_code=422, content={"detail": exc.reason, "field": exc.field})


@app.exception_handler(ConfigurationError)
async def tariff_configuration_error(request: Request, exc: ConfigurationError):
    logger.exception(f"Tariff configuration failure on {request.url.path}: {exc.detail}", exc_info=exc)
    newrelic.agent.notice_error(error=(type(exc), exc, exc.__traceback__))
    return JSONResponse(status_code=500, content={"detail": "Unable to calculate fare right now"})


# ─── Routers ──────────────────────────────────────────────────────────────────
app.include_router(fares.router)


@app.get("/health")
async def health():
    return {"status": "ok", "service": "Cabfare Estimates"}
