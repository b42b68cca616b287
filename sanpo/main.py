import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse

from sanpo.api.v1.router import api_router
from sanpo.core.config import settings
from sanpo.core.logging import configure_logging
from sanpo.pipeline import PipelineOrchestrator

logger = logging.getLogger(__name__)

PROVIDER_KEYS = {
    "anthropic": "ANTHROPIC_API_KEY",
    "openai": "OPENAI_API_KEY",
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the orchestrator on startup, drain background runs on shutdown"""
    configure_logging("sanpo", settings.LOG_LEVEL)
    logger.info(
        f"Starting {settings.PROJECT_NAME} {settings.VERSION} "
        f"({settings.ENVIRONMENT}, {settings.LLM_PROVIDER}/{settings.LLM_MODEL})"
    )

    key_name = PROVIDER_KEYS[settings.LLM_PROVIDER]
    if not getattr(settings, key_name):
        logger.warning(f"{key_name} is not set; place extraction and scene explanation will fail")

    # Tests install their own orchestrator before startup
    if getattr(app.state, "orchestrator", None) is None:
        app.state.orchestrator = PipelineOrchestrator()

    yield

    logger.info("Waiting for background pipeline runs...")
    await app.state.orchestrator.wait_idle()


app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.VERSION,
    openapi_url=f"{settings.API_V1_STR}/openapi.json",
    default_response_class=ORJSONResponse,
    lifespan=lifespan,
)


@app.middleware("http")
async def time_requests(request: Request, call_next):
    started = time.perf_counter()
    response = await call_next(request)
    elapsed = time.perf_counter() - started

    response.headers["X-Process-Time"] = f"{elapsed:.3f}"
    logger.info(f"{request.method} {request.url.path} → {response.status_code} in {elapsed:.2f}s")
    return response


app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
)

app.include_router(api_router, prefix=settings.API_V1_STR)


@app.get("/health")
async def health_check(request: Request):
    run = request.app.state.orchestrator.current_run
    return {
        "status": "healthy",
        "version": settings.VERSION,
        "pipeline_state": run.state.value,
    }


@app.get("/")
async def root():
    return {
        "name": settings.PROJECT_NAME,
        "version": settings.VERSION,
        "route": f"{settings.API_V1_STR}/route",
        "docs": "/docs",
    }
