"""Webhook API for receiving Alertmanager notifications."""

import logging

from fastapi import APIRouter, HTTPException, Request, status
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from alertfiles.config import get_settings
from alertfiles.models.alert import WebhookMessage
from alertfiles.services.debounce import DebounceQueue

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1", tags=["webhook"])


def get_queue(request: Request) -> DebounceQueue:
    """Get the debounce queue created by the application lifespan."""
    queue = getattr(request.app.state, "queue", None)
    if queue is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Receiver is not ready",
        )
    return queue


@router.post("/receiver")
async def receive_webhook(request: Request) -> JSONResponse:
    """Receive an Alertmanager webhook and queue the enabled alerts.

    Only alerts carrying the enabled label are queued. The response does not
    depend on the outcome of the later reconciliation.
    """
    logger.info("Request received")
    queue = get_queue(request)

    # Parse payload
    try:
        payload = await request.json()
    except ValueError as e:
        logger.error(f"Failed to read webhook body from {request.client.host if request.client else 'unknown'}: {e}")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid JSON payload: {e}",
        )

    try:
        message = WebhookMessage.model_validate(payload)
    except ValidationError as e:
        logger.error(f"Failed to parse webhook message: {e}")
        logger.debug(f"Webhook message: {payload}")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid webhook message",
        )

    settings = getattr(request.app.state, "settings", None) or get_settings()
    enabled_label = settings.enabled_label
    enqueued = 0
    for alert in message.alerts:
        if enabled_label not in alert.labels:
            logger.error(f"The required label {enabled_label} is not set on alert {alert.name}")
            continue

        logger.info(f"Handling webhook for alert {alert.name}")
        if queue.enqueue(alert, message) is not None:
            enqueued += 1

    return JSONResponse(
        status_code=status.HTTP_200_OK,
        content={
            "status": "ok",
            "received": len(message.alerts),
            "enqueued": enqueued,
        },
    )
