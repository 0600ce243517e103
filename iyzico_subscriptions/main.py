"""FastAPI application entry point and lifecycle management."""

import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.responses import JSONResponse

from iyzico_subscriptions.config import Config, get_config
from iyzico_subscriptions.logging_config import configure_logging, get_logger
from iyzico_subscriptions.middleware import RequestLoggingMiddleware
from iyzico_subscriptions.models import HealthResponse
from iyzico_subscriptions.repositories.user_store import InMemoryUserStore, UserStore, load_seed_users
from iyzico_subscriptions.services.clock import Clock
from iyzico_subscriptions.services.expiry_sweep import ExpirySweep, SweepScheduler
from iyzico_subscriptions.services.notifier import NotificationService, Notifier, build_notifier
from iyzico_subscriptions.services.subscription_service import SubscriptionService

__version__ = "2.0.0"

logger = get_logger(__name__)


def _seed_store(store: UserStore, config: Config) -> None:
    """Load seed users into the store if a seed file is configured."""
    path = config.seed_users_path
    if path is None:
        return
    users = load_seed_users(path)
    for user in users:
        if store.find_by_email(user.email) is None:
            store.add(user)
    logger.info("seed_users_loaded", path=str(path), count=len(users))


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan context manager.

    Starts the expiry sweep scheduler on startup and stops it on shutdown.
    """
    logger.info("service_starting", version=__version__)

    scheduler: Optional[SweepScheduler] = app.state.sweep_scheduler
    try:
        if scheduler is not None:
            scheduler.start()
        else:
            logger.info("sweep_scheduler_disabled")

        logger.info("service_started", status="ready")
        yield
    finally:
        logger.info("service_shutting_down")
        if scheduler is not None:
            scheduler.stop()
        logger.info("service_stopped")


def create_app(
        config: Optional[Config] = None,
        store: Optional[UserStore] = None,
        notifier: Optional[Notifier] = None,
        clock: Optional[Clock] = None,
        enable_scheduler: Optional[bool] = None,
) -> FastAPI:
    """Create and configure FastAPI application.

    Args:
        config: Configuration (defaults to the global instance)
        store: User store (defaults to a seeded in-memory store)
        notifier: Email notifier (defaults to the one selected by settings)
        clock: Clock shared by the service and the sweep
        enable_scheduler: Override sweep.enabled from settings

    Returns:
        Configured FastAPI application instance
    """
    config = config or get_config()
    settings = config.settings

    configure_logging(
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        json_format=os.getenv("LOG_FORMAT", "json").lower() == "json",
        service_name=settings.service_name,
    )

    if store is None:
        store = InMemoryUserStore()
        _seed_store(store, config)

    clock = clock or Clock()
    notifications = NotificationService(
        notifier or build_notifier(config),
        notifier_settings=settings.notifier,
        links=settings.links,
    )
    subscription_service = SubscriptionService(
        store=store,
        notifications=notifications,
        clock=clock,
        max_write_attempts=settings.webhook.max_write_attempts,
    )
    sweep = ExpirySweep(
        store=store,
        service=subscription_service,
        batch_size=settings.sweep.batch_size,
        clock=clock,
    )

    run_scheduler = settings.sweep.enabled if enable_scheduler is None else enable_scheduler
    scheduler = None
    if run_scheduler:
        scheduler = SweepScheduler(
            sweep,
            run_at=settings.sweep.run_at_time,
            timezone=settings.sweep.timezone,
        )

    if not config.iyzico_secret_key:
        logger.error("iyzico_secret_key_missing", message="Webhook requests will be rejected")

    app = FastAPI(
        title="iyzico Subscriptions",
        description="Subscription lifecycle driven by iyzico webhooks and a daily expiry sweep",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    app.state.config = config
    app.state.store = store
    app.state.clock = clock
    app.state.subscription_service = subscription_service
    app.state.expiry_sweep = sweep
    app.state.sweep_scheduler = scheduler

    include_request_details = os.getenv("LOG_REQUEST_DETAILS", "true").lower() == "true"
    app.add_middleware(RequestLoggingMiddleware, include_request_details=include_request_details)

    from iyzico_subscriptions.api.webhook import router as webhook_router

    app.include_router(webhook_router)

    @app.get("/api/health", response_model=HealthResponse)
    async def health() -> HealthResponse:
        """Health check endpoint."""
        return HealthResponse(
            status="ok",
            timestamp=clock.now().isoformat(),
            version=__version__,
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request, exc: Exception) -> JSONResponse:
        """Handle uncaught exceptions."""
        logger.error(
            "unhandled_exception",
            error=str(exc),
            error_type=type(exc).__name__,
            path=request.url.path,
            exc_info=True,
        )
        return JSONResponse(
            status_code=500,
            content={"success": False, "error": "Internal server error"},
        )

    logger.info("app_created", endpoints=len(app.routes))
    return app
