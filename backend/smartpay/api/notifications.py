"""
Notification Webhook Endpoint

Receives the processor's asynchronous push notifications. The body only
carries an authentication reference; order results are pulled and applied
before responding.
"""
from fastapi import APIRouter, Depends
from typing import Dict, Any
import logging

from ..models.notifications import Notification
from ..services.notification_service import NotificationService
from .dependencies import get_notification_service

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/notifications")
def receive_notification_endpoint(
    notification: Notification,
    service: NotificationService = Depends(get_notification_service)
) -> Dict[str, Any]:
    """
    Handle a processor push notification.

    Request Body:
        {
            "authentication": str,
            "expiry": str,
            "eventName": "merchant.order.status.changed",
            "poiId": str,
            "signature": str
        }

    Returns:
        {
            "outcome": "processed" | "ignored",
            "pages": int,
            "updated_payment_ids": List[str]
        }

    Errors:
        403 smartpay:signature:invalid
        404 smartpay:results:unknown_order_ids (resolved payments were updated)
    """
    logger.info(f"Received notification: {notification.event_name}")

    result = service.handle(notification)

    response: Dict[str, Any] = {"outcome": result.outcome.value}

    if result.report is not None:
        response["pages"] = result.report.pages
        response["updated_payment_ids"] = result.report.updated_payment_ids

    return response
