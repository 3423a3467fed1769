"""
Kube Actuator - K8s Executor Main Application
=============================================

FastAPI application executing horizontal scaling actions in the
cluster it runs in.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator
import uuid

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from shared.utils.http_client import ServiceClientConfig
from shared.utils.logging import setup_logging, get_logger, set_correlation_id
from shared.utils.retry import RetryConfig

from src.config import get_settings
from src.api.routes import router as api_router


settings = get_settings()

setup_logging(
    service_name=settings.service_name,
    log_level=settings.log_level,
    json_output=settings.log_json
)

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """Application lifespan manager."""
    logger.info(
        f"Starting {settings.service_name} v{settings.service_version}",
        extra={
            "version": settings.service_version,
            "scale_delta": settings.scale_delta,
            "strict_owner_match": settings.strict_owner_match
        }
    )

    from src.core import (
        K8sClient,
        ClusterObjectResolver,
        ReplicaMutator,
        PodBroker,
        NodeBindingPlacement,
        ActionStore,
        HorizontalScaler,
        PodWatcher,
        ActionReporter,
    )

    k8s = K8sClient()
    broker = PodBroker()
    resolver = ClusterObjectResolver(k8s, strict_owner_match=settings.strict_owner_match)
    store = ActionStore(max_records=settings.action_history_limit)

    app.state.broker = broker
    app.state.store = store
    app.state.scaler = HorizontalScaler(
        resolver=resolver,
        mutator=ReplicaMutator(k8s, resolver),
        broker=broker,
        placement=NodeBindingPlacement(k8s),
        store=store,
        scale_delta=settings.scale_delta,
        timeout_seconds=settings.scale_out_timeout_seconds,
    )

    watcher = PodWatcher(
        k8s,
        broker,
        namespace=settings.watch_namespace,
        scheduler_name=settings.watch_scheduler_name,
    )
    watcher.start()
    app.state.watcher = watcher

    app.state.reporter = None
    if settings.action_report_url:
        app.state.reporter = ActionReporter(
            settings.action_report_url,
            client_config=ServiceClientConfig(
                username=settings.action_report_username,
                password=settings.action_report_password,
                verify_tls=settings.action_report_verify_tls,
            ),
            retry_config=RetryConfig(
                max_attempts=settings.report_max_attempts,
                base_delay=settings.report_base_delay,
            ),
        )
        logger.info(f"Reporting action results to {settings.action_report_url}")

    yield

    logger.info("Shutting down K8s Executor...")
    watcher.stop()
    broker.close()
    if app.state.reporter is not None:
        await app.state.reporter.close()


app = FastAPI(
    title="Kube Actuator - K8s Executor",
    description="Horizontal scaling action execution",
    version=settings.service_version,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def correlation_id_middleware(request: Request, call_next):
    correlation_id = request.headers.get("X-Correlation-ID")
    if not correlation_id:
        correlation_id = str(uuid.uuid4())

    set_correlation_id(correlation_id)
    response = await call_next(request)
    response.headers["X-Correlation-ID"] = correlation_id

    return response


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"error": "internal_server_error", "message": str(exc) if settings.debug else "An error occurred"}
    )


@app.get("/health", tags=["health"])
async def health_check():
    return {
        "status": "healthy",
        "service": settings.service_name,
        "version": settings.service_version
    }


@app.get("/ready", tags=["health"])
async def readiness_check(request: Request):
    watcher = request.app.state.watcher
    store = request.app.state.store
    return {
        "status": "ready" if watcher.is_running else "degraded",
        "service": settings.service_name,
        "pod_watcher": watcher.is_running,
        "active_actions": store.active_count(),
        "pending_rendezvous": request.app.state.broker.subscriber_count()
    }


app.include_router(api_router, prefix="/api/v1")


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("src.main:app", host=settings.host, port=settings.port, reload=settings.debug)
