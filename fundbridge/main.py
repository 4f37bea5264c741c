import logging
import time
from contextlib import asynccontextmanager

import sentry_sdk
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.logging import LoggingIntegration

from fundbridge.api.deps import map_error_code
from fundbridge.api.routes import analyses, billing, fund_requests, governance, health, investors
from fundbridge.config import settings
from fundbridge.core.database import init_database
from fundbridge.services.errors import FundBridgeError

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper()),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

LOCAL_HOSTS = ["localhost", "127.0.0.1", "testserver"]


def _init_sentry() -> None:
    if not settings.sentry_dsn:
        return
    sentry_sdk.init(
        dsn=settings.sentry_dsn,
        integrations=[FastApiIntegration(), LoggingIntegration(level=logging.INFO)],
        traces_sample_rate=0.1,
        environment=settings.environment,
        release=f"{settings.app_name}@{settings.app_version}",
    )
    logger.info("sentry.initialized", extra={"environment": settings.environment})


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(
        "app.starting",
        extra={"app": settings.app_name, "version": settings.app_version},
    )
    _init_sentry()
    init_database()
    yield
    logger.info("app.stopped", extra={"app": settings.app_name})


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Startup viability scoring, fund request lifecycle and funding analytics",
    lifespan=lifespan,
    debug=settings.debug,
)

if settings.cors_origins:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

app.add_middleware(
    TrustedHostMiddleware,
    allowed_hosts=["*"] if settings.debug else LOCAL_HOSTS,
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    started = time.perf_counter()
    response = await call_next(request)
    logger.info(
        "http.request",
        extra={
            "method": request.method,
            "path": request.url.path,
            "status_code": response.status_code,
            "duration_ms": round((time.perf_counter() - started) * 1000, 2),
        },
    )
    return response


@app.exception_handler(FundBridgeError)
async def handle_service_error(request: Request, exc: FundBridgeError) -> JSONResponse:
    """Service errors that escape a route still get their mapped status."""
    logger.error(
        "http.unhandled_service_error",
        extra={"path": request.url.path, "code": exc.code},
    )
    return JSONResponse(
        status_code=map_error_code(exc.code),
        content={"detail": str(exc), "code": exc.code},
    )


app.include_router(health.router, prefix="/health", tags=["health"])
app.include_router(analyses.router, prefix="/api", tags=["analyses"])
app.include_router(fund_requests.router, prefix="/api", tags=["fund-requests"])
app.include_router(governance.router, prefix="/api/governance", tags=["governance"])
app.include_router(investors.router, prefix="/api/investors", tags=["investors"])
app.include_router(billing.router, prefix="/api/billing", tags=["billing"])


@app.get("/")
async def root():
    return {
        "service": settings.app_name,
        "version": settings.app_version,
        "environment": settings.environment,
    }
