"""Rent Notifier API.

FastAPI application exposing the scheduler trigger and the settings UI
backend:
- GET /cron/daily, GET /cron/monthly: Scheduler ticks (Bearer CRON_SECRET)
- POST /notifications/*: Manual sends
- GET /history: Paginated delivery history
- GET/PUT /config/*: Transport, recipient, notification and billing settings
- GET /status: Notifier readiness
- GET /health: Service health check

Security features:
- API key authentication for management endpoints
- Shared-secret bearer authentication for cron endpoints
- Sanitized error responses

Author: Odiseo
Version: 3.0.0
"""

from __future__ import annotations

import secrets
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Annotated

from fastapi import Body, Depends, FastAPI, HTTPException, Query, Request, status
from fastapi.responses import JSONResponse
from fastapi.security import APIKeyHeader, HTTPAuthorizationCredentials, HTTPBearer

from rent_notifier.api.schemas import (
    ErrorResponse,
    HealthResponse,
    HistoryResponse,
    MonthlyBillRequest,
    ProvidersResponse,
    RecipientRequest,
    RecipientResponse,
    SystemNotificationRequest,
)
from rent_notifier.config import NotifierConfig, get_settings
from rent_notifier.core.exceptions import (
    ConfigurationInvalidError,
    ConfigurationMissingError,
    NotifierError,
    RecordNotFoundError,
)
from rent_notifier.core.logger import get_logger, setup_logging
from rent_notifier.database.factory import Storage
from rent_notifier.models.notification import HistoryPage
from rent_notifier.models.providers import MAIL_PROVIDERS, detect_provider
from rent_notifier.models.results import ActionResult, DailyTickResult, MonthlyTickResult, ServiceStatus
from rent_notifier.models.settings import (
    BillingCycleConfig,
    NotificationConfig,
    TransportConfig,
    TransportConfigView,
)
from rent_notifier.scheduler.tick import NotificationScheduler, create_scheduler

logger = get_logger(__name__)


# =============================================================================
# Application State (Dependency Injection)
# =============================================================================
@dataclass
class AppState:
    """Application state container for dependency injection."""

    config: NotifierConfig
    storage: Storage | None = None
    scheduler: NotificationScheduler | None = None


app_state: AppState | None = None


def get_config() -> NotifierConfig:
    """Dependency: Get application configuration."""
    if not app_state or not app_state.config:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Service not initialized",
        )
    return app_state.config


def get_storage() -> Storage:
    """Dependency: Get the storage backend."""
    if not app_state or not app_state.storage:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Service not initialized",
        )
    return app_state.storage


def get_scheduler() -> NotificationScheduler:
    """Dependency: Get the notification scheduler."""
    if not app_state or not app_state.scheduler:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Service not initialized",
        )
    return app_state.scheduler


# =============================================================================
# Authentication
# =============================================================================
API_KEY_HEADER = APIKeyHeader(name="X-API-Key", auto_error=False)
CRON_BEARER = HTTPBearer(auto_error=False)


async def verify_api_key(
    api_key: Annotated[str | None, Depends(API_KEY_HEADER)],
    config: Annotated[NotifierConfig, Depends(get_config)],
) -> bool:
    """Verify API key if authentication is enabled.

    Returns True if:
    - API_KEY is not configured (auth disabled)
    - API_KEY matches the provided key
    """
    configured_key = config.API_KEY

    if not configured_key:
        return True

    if not api_key:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="API key required",
            headers={"WWW-Authenticate": "ApiKey"},
        )

    if not secrets.compare_digest(api_key.encode(), configured_key.encode()):
        logger.warning("Invalid API key attempt")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid API key",
            headers={"WWW-Authenticate": "ApiKey"},
        )

    return True


async def verify_cron_secret(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(CRON_BEARER)],
    config: Annotated[NotifierConfig, Depends(get_config)],
) -> bool:
    """Require "Authorization: Bearer <CRON_SECRET>".

    An unset CRON_SECRET rejects every call rather than allowing them.
    """
    if (
        not config.CRON_SECRET
        or credentials is None
        or not secrets.compare_digest(credentials.credentials.encode(), config.CRON_SECRET.encode())
    ):
        logger.warning("Unauthorized cron trigger attempt")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return True


# =============================================================================
# Module-level Configuration
# =============================================================================
_config = get_settings()


# =============================================================================
# Lifespan Context Manager
# =============================================================================
@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown."""
    global app_state

    app_state = AppState(config=_config)

    setup_logging(
        log_level=_config.LOG_LEVEL,
        enable_file=_config.LOG_TO_FILE,
        log_dir=_config.LOG_DIR,
        max_size_mb=_config.LOG_MAX_SIZE_MB,
        backup_count=_config.LOG_BACKUP_COUNT,
        settings=_config,
    )

    try:
        app_state.scheduler, app_state.storage = create_scheduler(_config)
        logger.info(f"Storage ready: {_config.STORAGE_BACKEND}")
    except Exception as e:
        logger.error(f"Failed to start API: {e}")
        raise

    yield  # Application runs here

    logger.info(f"Shutting down {_config.SERVICE_NAME}...")
    if app_state.scheduler:
        app_state.scheduler.close()
    if app_state.storage:
        app_state.storage.close()
    logger.info(f"{_config.SERVICE_NAME} stopped")


# =============================================================================
# Error Mapping
# =============================================================================
async def notifier_error_handler(request: Request, exc: NotifierError) -> JSONResponse:
    """Map domain errors onto HTTP status codes.

    Messages of configuration errors are safe to show; anything else is
    logged and sanitized.
    """
    if isinstance(exc, ConfigurationInvalidError):
        code = status.HTTP_400_BAD_REQUEST
    elif isinstance(exc, ConfigurationMissingError):
        code = status.HTTP_409_CONFLICT
    elif isinstance(exc, RecordNotFoundError):
        code = status.HTTP_404_NOT_FOUND
    else:
        logger.error(f"{request.method} {request.url.path} failed: {exc}", exc_info=exc)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": "Internal server error"},
        )

    logger.info(f"{request.method} {request.url.path} -> {code}: {exc}")
    return JSONResponse(status_code=code, content={"detail": str(exc)})


def _internal_error(action: str, error: Exception) -> HTTPException:
    """Log the full error server-side and return a sanitized 500."""
    logger.error(f"Failed to {action}: {error}", exc_info=True)
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=f"Failed to {action}",
    )


# =============================================================================
# FastAPI Application
# =============================================================================
def create_app() -> FastAPI:
    """Create and configure FastAPI application."""
    application = FastAPI(
        title=_config.SERVICE_NAME,
        description="Rent and utility notification scheduling and delivery service",
        version=_config.SERVICE_VERSION,
        lifespan=lifespan,
    )
    application.add_exception_handler(NotifierError, notifier_error_handler)

    return application


app = create_app()

_ERRORS = {
    400: {"model": ErrorResponse, "description": "Invalid configuration value"},
    401: {"model": ErrorResponse, "description": "Unauthorized"},
    409: {"model": ErrorResponse, "description": "Configuration missing"},
    500: {"model": ErrorResponse, "description": "Server error"},
}


# =============================================================================
# Scheduler Trigger
# =============================================================================
@app.get("/cron/daily", response_model=DailyTickResult, responses=_ERRORS)
def cron_daily(
    scheduler: Annotated[NotificationScheduler, Depends(get_scheduler)],
    _auth: Annotated[bool, Depends(verify_cron_secret)],
) -> DailyTickResult | JSONResponse:
    """Run the daily tick (payment and overdue reminders)."""
    result = scheduler.run_daily()
    if not result.success:
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=result.model_dump(mode="json", by_alias=True),
        )
    return result


@app.get("/cron/monthly", response_model=MonthlyTickResult, responses=_ERRORS)
def cron_monthly(
    scheduler: Annotated[NotificationScheduler, Depends(get_scheduler)],
    _auth: Annotated[bool, Depends(verify_cron_secret)],
) -> MonthlyTickResult | JSONResponse:
    """Run the monthly tick (previous month's statement)."""
    result = scheduler.run_monthly()
    if not result.success:
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=result.model_dump(mode="json", by_alias=True),
        )
    return result


# =============================================================================
# Manual Sends
# =============================================================================
@app.post("/notifications/payment-reminder", response_model=ActionResult, responses=_ERRORS)
def send_payment_reminder(
    scheduler: Annotated[NotificationScheduler, Depends(get_scheduler)],
    _auth: Annotated[bool, Depends(verify_api_key)],
) -> ActionResult:
    """Send a payment reminder now, if a due date lies ahead."""
    return scheduler.send_payment_reminder_now()


@app.post("/notifications/test", response_model=ActionResult, responses=_ERRORS)
def send_test_message(
    scheduler: Annotated[NotificationScheduler, Depends(get_scheduler)],
    _auth: Annotated[bool, Depends(verify_api_key)],
) -> ActionResult:
    """Verify the stored transport and send a test message."""
    return scheduler.send_test_message_now()


@app.post("/notifications/system", response_model=ActionResult, responses=_ERRORS)
def send_system_notification(
    request: SystemNotificationRequest,
    scheduler: Annotated[NotificationScheduler, Depends(get_scheduler)],
    _auth: Annotated[bool, Depends(verify_api_key)],
) -> ActionResult:
    """Send a free-form system notification."""
    return scheduler.send_system_notification(request.message, request.details)


@app.post(
    "/notifications/monthly-bill",
    response_model=ActionResult,
    responses={**_ERRORS, 404: {"model": ErrorResponse, "description": "No billing record"}},
)
def send_monthly_bill(
    scheduler: Annotated[NotificationScheduler, Depends(get_scheduler)],
    _auth: Annotated[bool, Depends(verify_api_key)],
    request: Annotated[MonthlyBillRequest | None, Body()] = None,
) -> ActionResult:
    """Send the statement for a month (default: previous month)."""
    return scheduler.send_monthly_bill_now(request.year_month if request else None)


# =============================================================================
# History
# =============================================================================
@app.get("/history", response_model=HistoryResponse, responses=_ERRORS)
def get_history(
    storage: Annotated[Storage, Depends(get_storage)],
    _auth: Annotated[bool, Depends(verify_api_key)],
    page: int = 1,
    page_size: Annotated[int, Query(alias="pageSize")] = 20,
) -> HistoryResponse:
    """Delivery history, newest first."""
    history: HistoryPage = storage.ledger.query(page=page, page_size=page_size)
    return HistoryResponse.from_page(history)


# =============================================================================
# Configuration
# =============================================================================
@app.get("/config/transport", response_model=TransportConfigView | None, responses=_ERRORS)
def get_transport_config(
    storage: Annotated[Storage, Depends(get_storage)],
    _auth: Annotated[bool, Depends(verify_api_key)],
) -> TransportConfigView | None:
    """Stored transport settings without the secret (null when unset)."""
    config = storage.settings_store.get_transport_config()
    return config.to_view() if config else None


@app.put("/config/transport", response_model=TransportConfigView, responses=_ERRORS)
def update_transport_config(
    config: TransportConfig,
    scheduler: Annotated[NotificationScheduler, Depends(get_scheduler)],
    _auth: Annotated[bool, Depends(verify_api_key)],
) -> TransportConfigView:
    """Replace the transport settings and drop the cached connection."""
    return scheduler.engine.update_config(config).to_view()


@app.post("/config/transport/test", response_model=ActionResult, responses=_ERRORS)
def test_transport_config(
    scheduler: Annotated[NotificationScheduler, Depends(get_scheduler)],
    _auth: Annotated[bool, Depends(verify_api_key)],
    config: Annotated[TransportConfig | None, Body()] = None,
) -> ActionResult:
    """Check a candidate config (or the stored one) can authenticate."""
    try:
        ok = scheduler.engine.test_connection(config)
    except Exception as e:
        raise _internal_error("test transport settings", e) from None

    if ok:
        return ActionResult(success=True, message="Connection test succeeded")
    return ActionResult(success=False, message="Connection test failed, check the settings")


@app.get("/config/notifications", response_model=NotificationConfig, responses=_ERRORS)
def get_notification_config(
    storage: Annotated[Storage, Depends(get_storage)],
    _auth: Annotated[bool, Depends(verify_api_key)],
) -> NotificationConfig:
    """Notification toggles (defaults are stored on first read)."""
    return storage.settings_store.get_or_create_notification_config()


@app.put("/config/notifications", response_model=NotificationConfig, responses=_ERRORS)
def update_notification_config(
    config: NotificationConfig,
    storage: Annotated[Storage, Depends(get_storage)],
    _auth: Annotated[bool, Depends(verify_api_key)],
) -> NotificationConfig:
    return storage.settings_store.save_notification_config(config)


@app.get("/config/recipient", response_model=RecipientResponse, responses=_ERRORS)
def get_recipient(
    storage: Annotated[Storage, Depends(get_storage)],
    _auth: Annotated[bool, Depends(verify_api_key)],
) -> RecipientResponse:
    recipient = storage.settings_store.get_recipient()
    return RecipientResponse(email=recipient.email if recipient else None)


@app.put("/config/recipient", response_model=RecipientResponse, responses=_ERRORS)
def update_recipient(
    request: RecipientRequest,
    storage: Annotated[Storage, Depends(get_storage)],
    _auth: Annotated[bool, Depends(verify_api_key)],
) -> RecipientResponse:
    """Store the recipient address (400 when malformed)."""
    recipient = storage.settings_store.save_recipient(request.email.strip())
    return RecipientResponse(email=recipient.email)


@app.get("/config/billing-cycle", response_model=BillingCycleConfig | None, responses=_ERRORS)
def get_billing_cycle(
    storage: Annotated[Storage, Depends(get_storage)],
    _auth: Annotated[bool, Depends(verify_api_key)],
) -> BillingCycleConfig | None:
    return storage.settings_store.get_billing_cycle()


@app.put("/config/billing-cycle", response_model=BillingCycleConfig, responses=_ERRORS)
def update_billing_cycle(
    config: BillingCycleConfig,
    storage: Annotated[Storage, Depends(get_storage)],
    _auth: Annotated[bool, Depends(verify_api_key)],
) -> BillingCycleConfig:
    return storage.settings_store.save_billing_cycle(config)


@app.get("/config/providers", response_model=ProvidersResponse)
async def get_providers(email: str | None = None) -> ProvidersResponse:
    """SMTP presets, plus the one matching ?email= if any."""
    return ProvidersResponse(
        providers=list(MAIL_PROVIDERS.values()),
        detected=detect_provider(email) if email else None,
    )


# =============================================================================
# Status & Health
# =============================================================================
@app.get("/status", response_model=ServiceStatus, responses=_ERRORS)
def get_status(
    scheduler: Annotated[NotificationScheduler, Depends(get_scheduler)],
    _auth: Annotated[bool, Depends(verify_api_key)],
) -> ServiceStatus:
    """Notifier readiness: settings present, transport reachable, history counts."""
    return scheduler.status()


@app.get(
    "/health",
    response_model=HealthResponse,
    responses={503: {"model": ErrorResponse, "description": "Service unhealthy"}},
)
def health_check(
    storage: Annotated[Storage, Depends(get_storage)],
    config: Annotated[NotifierConfig, Depends(get_config)],
) -> HealthResponse | JSONResponse:
    """Check service health.

    No authentication required - used by load balancers and monitoring.
    """
    db_status = "error"
    transport_status = "not_configured"

    try:
        if storage.health_check():
            db_status = "ok"
    except Exception as e:
        logger.warning(f"Database health check failed: {e}")

    try:
        if storage.settings_store.get_transport_config() is not None:
            transport_status = "configured"
    except Exception as e:
        logger.warning(f"Transport config lookup failed: {e}")

    overall_status = "ok" if db_status == "ok" else "degraded"

    response = HealthResponse(
        status=overall_status,
        db=db_status,
        transport=transport_status,
        version=config.SERVICE_VERSION,
    )

    if overall_status != "ok":
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content=response.model_dump(mode="json", by_alias=True),
        )

    return response


# =============================================================================
# Entry Point
# =============================================================================
def run():
    """Run the API server."""
    import uvicorn

    logger.info(f"Starting {_config.SERVICE_NAME} on {_config.API_HOST}:{_config.API_PORT}")
    uvicorn.run(
        "rent_notifier.api.main:app",
        host=_config.API_HOST,
        port=_config.API_PORT,
        reload=False,
    )


if __name__ == "__main__":
    run()
