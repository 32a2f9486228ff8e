"""
Notification and Return Handling

Verifies inbound processor messages before acting on them:
- Push notification: bad signature is a protocol violation, nothing is
  recorded; only the status-changed event triggers reconciliation
- Browser return: parameters are always recorded as an audit note on the
  payment (forensic value), but only a valid signature updates the status
"""
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Mapping, Optional

from ..exceptions import SignatureInvalidError
from ..models.notifications import Notification, ReturnParameters
from .payment_store import Payment, PaymentStatus
from .reconciliation_service import OrderResultReconciler, ReconciliationReport
from .signature_service import SignatureService
from .statuses import transform

logger = logging.getLogger(__name__)


def verify_notification(notification: Notification, signature_service: SignatureService) -> bool:
    return signature_service.verify(notification)


def verify_return(parameters: ReturnParameters, signature_service: SignatureService) -> bool:
    return signature_service.verify(parameters)


class NotificationOutcome(str, Enum):
    PROCESSED = "processed"
    IGNORED = "ignored"


class ReturnOutcome(str, Enum):
    UPDATED = "updated"
    NOT_APPLICABLE = "not_applicable"


@dataclass
class NotificationResult:
    outcome: NotificationOutcome
    report: Optional[ReconciliationReport] = None


@dataclass
class ReturnResult:
    outcome: ReturnOutcome
    status: Optional[PaymentStatus] = None


class NotificationService:
    """
    Entry point for processor callbacks.

    Args:
        signature_service: Verifies notifications and return parameters
        reconciler: Pulls order results for status-changed notifications
    """

    def __init__(self, signature_service: SignatureService, reconciler: OrderResultReconciler):
        self.signature_service = signature_service
        self.reconciler = reconciler

    def handle(self, notification: Notification) -> NotificationResult:
        """
        Handle a push notification.

        Returns:
            PROCESSED with the reconciliation report, or IGNORED for events
            other than merchant.order.status.changed

        Raises:
            SignatureInvalidError: Notification signature does not match
            UnknownOrderIdsError, PaginationLimitExceededError: From the pull
        """
        if not verify_notification(notification, self.signature_service):
            logger.warning(
                f"Rejected notification with invalid signature (event={notification.event_name})"
            )
            raise SignatureInvalidError(
                "Signature on notification message does not match.",
                {"event_name": notification.event_name}
            )

        if not notification.is_status_changed:
            logger.info(f"Ignoring notification event {notification.event_name}")
            return NotificationResult(outcome=NotificationOutcome.IGNORED)

        if notification.is_expired():
            logger.warning(f"Notification expired at {notification.expiry}, pulling results anyway")

        report = self.reconciler.reconcile(notification.authentication)

        return NotificationResult(outcome=NotificationOutcome.PROCESSED, report=report)

    def handle_return(self, query: Mapping[str, str], payment: Payment) -> ReturnResult:
        """
        Handle the browser redirect back from the hosted payment page.

        Args:
            query: Query string parameters of the return request
            payment: Local payment the return URL belongs to

        Returns:
            NOT_APPLICABLE when order_id or status is absent,
            UPDATED when the status was applied

        Raises:
            SignatureInvalidError: Signature missing or invalid, or the
                parameters belong to another order; the attempt is still
                recorded on the payment
        """
        parameters = ReturnParameters.from_query(query)

        if parameters is None:
            return ReturnResult(outcome=ReturnOutcome.NOT_APPLICABLE)

        if parameters.signature is None:
            signature_state = "missing"
        elif verify_return(parameters, self.signature_service):
            signature_state = "valid"
        else:
            signature_state = "invalid"

        # Merchant order ID is the local payment ID
        order_matches = parameters.order_id == payment.id

        note = (
            f"OmniKassa 2.0 return URL requested: order_id={parameters.order_id}, "
            f"status={parameters.status}, signature={signature_state}"
        )
        if not order_matches:
            note += f", order mismatch (payment {payment.id})"

        payment.add_note(note)
        payment.save()

        if signature_state != "valid":
            logger.warning(f"Return for payment {payment.id} carries a {signature_state} signature")
            raise SignatureInvalidError(
                "Signature on return parameters does not match.",
                {"order_id": parameters.order_id, "signature": signature_state}
            )

        if not order_matches:
            logger.warning(
                f"Return for order {parameters.order_id} replayed on payment {payment.id}"
            )
            raise SignatureInvalidError(
                "Return parameters belong to another order.",
                {"order_id": parameters.order_id, "payment_id": payment.id}
            )

        status = transform(parameters.status)

        if status is not None:
            payment.set_status(status)
            payment.save()
            logger.info(f"Payment {payment.id} status set to {status.value} from return")

        return ReturnResult(outcome=ReturnOutcome.UPDATED, status=status)
