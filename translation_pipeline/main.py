import structlog
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from translation_pipeline import __version__
from translation_pipeline.api import translate
from translation_pipeline.config import get_settings
from translation_pipeline.logging_config import configure_logging
from translation_pipeline.services.translation_service import (
    create_translation_service,
    get_translation_service,
    set_translation_service,
    shutdown_translation_service,
)

# Configure structured logging
configure_logging()
logger = structlog.get_logger(__name__)

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: open the cache store and schedule the expiry sweep
    service = await create_translation_service(settings)
    await service.start()
    set_translation_service(service)
    logger.info(
        "Translation service started",
        store=service.cache.backend.name,
        provider=service.queue.provider.name,
    )

    yield

    # Shutdown: settle queued requests, stop the sweep, release connections
    await shutdown_translation_service()
    logger.info("Shutting down...")


app = FastAPI(
    title="Translation Pipeline API",
    description="Batched, cached and rate-limited translation of storefront content",
    version=__version__,
    lifespan=lifespan,
    docs_url=None if settings.app_env == "production" else "/docs",
    redoc_url=None if settings.app_env == "production" else "/redoc",
    openapi_url=None if settings.app_env == "production" else "/openapi.json",
)

# Prometheus metrics
if settings.prometheus_enabled:
    from prometheus_fastapi_instrumentator import Instrumentator

    Instrumentator(
        should_group_status_codes=True,
        should_ignore_untemplated=True,
        excluded_handlers=["/health", "/metrics"],
    ).instrument(app).expose(app, endpoint="/metrics", include_in_schema=False)

cors_origins = [
    settings.frontend_url,
    "http://localhost:5173",
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "DELETE"],
    allow_headers=["Content-Type", "Authorization"],
)

app.include_router(translate.router, prefix="/api/translate", tags=["translate"])


@app.get("/")
async def root():
    if settings.app_env == "production":
        return {"status": "ok"}
    return {
        "message": "Translation Pipeline API",
        "version": __version__,
        "docs": "/docs",
    }


@app.get("/health")
async def health():
    """Health check that verifies the translation cache store answers."""
    try:
        service = await get_translation_service()
        entries = await service.cache.backend.count()
        return {
            "status": "healthy",
            "cache_store": service.cache.backend.name,
            "cache_entries": entries,
            "queue": service.queue.state.value,
        }
    except Exception as e:
        logger.warning(f"Health check failed: {type(e).__name__}: {e}")
        return JSONResponse(
            status_code=503,
            content={"status": "unhealthy", "cache_store": "unavailable"},
        )
