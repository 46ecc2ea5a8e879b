import logging
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from fastapi.staticfiles import StaticFiles
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address

from settings import get_settings
from src.arrivals.models import ArrivalsResponse
from src.arrivals.projector import project
from src.config.loader import ConfigError, load_config
from src.config.models import AppConfig, ConfigResponse
from src.middleware import RequestLoggingMiddleware
from src.monitoring import get_metrics
from src.refresh.cache import SnapshotCache
from src.refresh.clock import make_clock
from src.refresh.scheduler import IntervalPacer, RefreshScheduler
from src.stopmonitor.client import StopMonitoringClient

settings = get_settings()
PROJECT_ROOT = Path(__file__).resolve().parent
STATIC_DIR = PROJECT_ROOT / settings.static_dir

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(levelname)s %(name)s %(message)s",
)
logger = logging.getLogger(__name__)

limiter = Limiter(key_func=get_remote_address, default_limits=[settings.rate_limit])
local_now = make_clock(settings.timezone)


def resolve_config_path(path: str) -> Path:
    p = Path(path)
    return p if p.is_absolute() else PROJECT_ROOT / p


def read_config() -> AppConfig:
    try:
        return load_config(resolve_config_path(settings.config_path))
    except ConfigError as e:
        logger.error("telemetry config_error error=%s", str(e))
        raise


@asynccontextmanager
async def lifespan(app: FastAPI):
    config: AppConfig | None = getattr(app.state, "config", None) or read_config()
    app.state.config = config
    app.state.cache = SnapshotCache()
    app.state.stop_client = StopMonitoringClient(api_key=config.api_key)
    app.state.refresher = RefreshScheduler(
        config,
        app.state.stop_client,
        app.state.cache,
        pacer=IntervalPacer(settings.pacing_seconds),
        clock=local_now,
        all_failed_policy=settings.all_failed_policy,
    )
    logger.info("telemetry startup stops=%s directions=%s", len(config.stops), config.direction_count())
    # First cycle runs before we serve; requests during it would see "Loading..."
    app.state.refresher.start()
    yield
    app.state.refresher.shutdown()
    app.state.stop_client.close()


app = FastAPI(title=settings.app_name, debug=settings.debug, lifespan=lifespan)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


@app.exception_handler(Exception)
def unhandled_exception_handler(request: Request, exc: Exception):
    """Return consistent JSON error for unhandled exceptions (500). Skip validation/HTTP errors."""
    from fastapi.exceptions import RequestValidationError
    if isinstance(exc, (HTTPException, RequestValidationError)):
        raise exc
    logger.exception("telemetry unhandled_exception path=%s", request.url.path)
    return JSONResponse(
        status_code=500,
        content={"detail": "An unexpected error occurred. Please try again later."},
    )


# Order: last added = innermost. RequestLogging runs first (outermost), then CORS, then rate limiting.
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in settings.cors_origins.split(",") if o.strip()],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(SlowAPIMiddleware)


def _cache(request: Request) -> SnapshotCache:
    cache: SnapshotCache | None = getattr(request.app.state, "cache", None)
    if cache is None:
        raise HTTPException(status_code=503, detail="Arrivals cache not initialised yet.")
    return cache


@app.get("/favicon.ico", include_in_schema=False)
@limiter.exempt
def favicon(request: Request):
    """Return 204 so browser favicon requests don't log 404."""
    return Response(status_code=204)


@app.get("/health")
@limiter.exempt
def health(request: Request):
    return {"status": "ok"}


@app.get("/metrics")
@limiter.exempt
def metrics(request: Request):
    """Request counts, refresh-cycle counts and uptime."""
    return get_metrics()


@app.get("/api/arrivals", response_model=ArrivalsResponse, response_model_exclude_none=True)
def get_arrivals(request: Request):
    """Latest cached arrivals with minutes recomputed against the current time."""
    snapshot = _cache(request).read()
    return project(snapshot, local_now())


@app.get("/api/config", response_model=ConfigResponse)
def get_config(request: Request):
    """Configured stops and UI refresh interval. The 511 API key is never included."""
    config: AppConfig | None = getattr(request.app.state, "config", None)
    if config is None:
        raise HTTPException(status_code=503, detail="Configuration not loaded.")
    return ConfigResponse(stops=config.stops, refresh_interval=config.refresh_interval)


if STATIC_DIR.is_dir():
    app.mount("/", StaticFiles(directory=STATIC_DIR, html=True), name="static")


if __name__ == "__main__":
    import uvicorn

    app.state.config = read_config()
    uvicorn.run(app, host=settings.host, port=settings.port or app.state.config.port)
