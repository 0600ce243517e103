"""iyzico subscription webhook.

Implements:
- POST /api/iyzico-webhook - apply a provider subscription event

Every code path returns a WebhookResponse; no exception reaches the provider.
Status codes: 200 handled (including ignored event types), 400 invalid
payload, 404 unknown user, 500 configuration or store failure.
"""

import asyncio
import json
from typing import Any

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from iyzico_subscriptions.config import Config, ConfigurationError
from iyzico_subscriptions.logging_config import bind_context, get_logger, mask_email
from iyzico_subscriptions.models import EventKind, SubscriptionEvent, WebhookResponse
from iyzico_subscriptions.repositories.user_store import StoreError, UserNotFoundError
from iyzico_subscriptions.services.event_normalizer import ValidationError, normalize_event
from iyzico_subscriptions.services.subscription_service import SubscriptionService, TransitionOutcome

logger = get_logger(__name__)
router = APIRouter(tags=["Webhooks"], prefix="/api")


def _respond(status_code: int, response: WebhookResponse) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=response.model_dump(exclude_none=True))


def _error(status_code: int, message: str) -> JSONResponse:
    return _respond(status_code, WebhookResponse(success=False, error=message))


def _success_response(outcome: TransitionOutcome) -> WebhookResponse:
    record = outcome.record
    kind = outcome.event_kind

    if kind in (EventKind.STARTED, EventKind.RENEWED):
        return WebhookResponse(
            success=True,
            message="Subscription activated",
            data={
                "email": record.email,
                "package": record.package_name,
                "endDate": record.subscription_end_date.isoformat() if record.subscription_end_date else None,
            },
        )
    if kind == EventKind.CANCELLED:
        if not outcome.changed:
            return WebhookResponse(success=True, message="No active subscription to cancel")
        return WebhookResponse(success=True, message="Subscription cancelled")
    return WebhookResponse(success=True, message="Subscription expired")


def handle_webhook_payload(
        payload: Any,
        config: Config,
        service: SubscriptionService,
) -> tuple[int, WebhookResponse]:
    """Process a decoded webhook body.

    Steps: check the provider secret is configured, normalize the event,
    dispatch it to the subscription service and map the outcome.

    Returns:
        Tuple of (HTTP status code, response body)
    """
    try:
        config.require_iyzico_secret_key()
    except ConfigurationError as e:
        logger.error("webhook_configuration_error", error=str(e))
        return 500, WebhookResponse(success=False, error="Server configuration error")

    try:
        event: SubscriptionEvent = normalize_event(payload)
    except ValidationError as e:
        logger.warning("webhook_invalid_payload", error=str(e))
        return 400, WebhookResponse(success=False, error=str(e))

    bind_context(
        event_type=event.raw_event_type,
        reference_code=event.reference_code,
        customer_email=mask_email(event.customer_email),
    )
    logger.info(
        "webhook_event_received",
        event_kind=event.kind.value,
        status=payload.get("status"),
        paid_price=payload.get("paidPrice"),
    )

    if event.kind == EventKind.UNKNOWN:
        logger.info("webhook_event_ignored", event_type=event.raw_event_type)
        return 200, WebhookResponse(success=True, message="Event ignored")

    try:
        outcome = service.process_event(event)
    except UserNotFoundError:
        logger.warning("webhook_user_not_found")
        return 404, WebhookResponse(success=False, error="User not found")
    except StoreError as e:
        logger.error("webhook_store_error", error=str(e), exc_info=True)
        return 500, WebhookResponse(success=False, error="Database error")
    except Exception as e:
        logger.error(
            "webhook_processing_error",
            error=str(e),
            error_type=type(e).__name__,
            exc_info=True,
        )
        return 500, WebhookResponse(success=False, error="Processing error")

    return 200, _success_response(outcome)


@router.post(
    "/iyzico-webhook",
    response_model=WebhookResponse,
    summary="iyzico subscription webhook",
)
async def iyzico_webhook(request: Request) -> JSONResponse:
    """Receive an iyzico subscription event.

    Handles:
    - subscription.started / subscription.renewed: activate the plan
    - subscription.cancelled: keep access until the end date
    - subscription.expired / subscription.payment.failed: drop to Free
    - anything else: acknowledged and ignored

    Returns:
        JSON ``{success, message|error, data?}``
    """
    logger.info("iyzico_webhook_received")

    try:
        body = await request.body()
        payload = json.loads(body.decode("utf-8")) if body else None
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        logger.warning("webhook_invalid_json", error=str(e))
        return _error(400, "Invalid JSON payload")

    try:
        config: Config = request.app.state.config
        service: SubscriptionService = request.app.state.subscription_service
        status_code, response = await asyncio.to_thread(handle_webhook_payload, payload, config, service)
    except Exception as e:
        logger.error(
            "webhook_unhandled_error",
            error=str(e),
            error_type=type(e).__name__,
            exc_info=True,
        )
        return _error(500, "Internal server error")

    return _respond(status_code, response)
