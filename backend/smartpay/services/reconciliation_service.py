"""
Order Result Reconciliation

Pulls the processor's authoritative order-result feed after a
status-changed notification and applies it to local payments.

Delivery semantics:
- Pages and rows are applied strictly in processor order
- A page with a bad signature stops the whole pull before any of its rows
- Unresolvable order IDs do not stop the pull; they are raised together
  once every page is done, after resolved rows were saved
- Updates write absolute statuses, so re-delivery is harmless
"""
import json
import logging
from dataclasses import dataclass, field
from typing import List, Optional

from ..exceptions import PaginationLimitExceededError, SignatureInvalidError, UnknownOrderIdsError
from ..models.results import OrderResult
from .payment_store import Payment, PaymentStatus, PaymentStore
from .processor_client import ProcessorClient
from .signature_service import SignatureService
from .statuses import transform
from .token_cache import AccessTokenCache

logger = logging.getLogger(__name__)


@dataclass
class ReconciliationReport:
    """Outcome of one reconciliation pull."""
    pages: int = 0
    updated_payment_ids: List[str] = field(default_factory=list)
    unknown_order_ids: List[str] = field(default_factory=list)


class OrderResultReconciler:
    """
    Paginated order result pull.

    Args:
        client: Processor API client
        token_cache: Access token cache for the authenticated pull
        signature_service: Verifies every page before it is applied
        store: Local payment lookup
        slug_prefix: Prefix of the payment slug, `<prefix>-<processor order id>`
        max_pages: Ceiling on pages per pull
    """

    def __init__(
        self,
        client: ProcessorClient,
        token_cache: AccessTokenCache,
        signature_service: SignatureService,
        store: PaymentStore,
        slug_prefix: str = "omnikassa-2",
        max_pages: int = 100
    ):
        self.client = client
        self.token_cache = token_cache
        self.signature_service = signature_service
        self.store = store
        self.slug_prefix = slug_prefix
        self.max_pages = max_pages

    def slug_for(self, omnikassa_order_id: str) -> str:
        return f"{self.slug_prefix}-{omnikassa_order_id}"

    def reconcile(self, authentication: str) -> ReconciliationReport:
        """
        Pull and apply every order result page for a notification.

        Args:
            authentication: Authentication reference from the notification

        Returns:
            ReconciliationReport when every result was matched

        Raises:
            SignatureInvalidError: A page failed verification
            PaginationLimitExceededError: More than max_pages pages reported
            UnknownOrderIdsError: Some results had no local payment; all
                other results have been applied and saved
        """
        report = ReconciliationReport()
        page = 1

        while True:
            access_token = self.token_cache.ensure_valid()

            order_results = self.client.get_order_results(authentication, access_token, page)

            if not self.signature_service.verify(order_results):
                logger.warning(f"Order results page {page} failed signature verification")
                raise SignatureInvalidError(
                    "Signature on order results is invalid.",
                    {"page": page, "applied_payment_ids": list(report.updated_payment_ids)}
                )

            report.pages += 1

            for order_result in order_results.order_results:
                payment = self._resolve(order_result.omnikassa_order_id)

                if payment is None:
                    logger.warning(
                        f"No payment found for order result {order_result.omnikassa_order_id}"
                    )
                    if order_result.omnikassa_order_id not in report.unknown_order_ids:
                        report.unknown_order_ids.append(order_result.omnikassa_order_id)
                    continue

                self.apply(payment, order_result)
                report.updated_payment_ids.append(payment.id)

            if not order_results.more_order_results_available:
                break

            if report.pages >= self.max_pages:
                logger.error(f"Order results still report more pages after {report.pages} pages")
                raise PaginationLimitExceededError(self.max_pages)

            page += 1

        logger.info(
            f"Reconciled {len(report.updated_payment_ids)} order results "
            f"over {report.pages} pages, {len(report.unknown_order_ids)} unknown"
        )

        if report.unknown_order_ids:
            raise UnknownOrderIdsError(report.unknown_order_ids, report)

        return report

    def _resolve(self, omnikassa_order_id: str) -> Optional[Payment]:
        payment = self.store.find_payment_by_slug(self.slug_for(omnikassa_order_id))

        if payment is not None:
            return payment

        # Payments announced by older releases stored the processor order ID
        # as their transaction ID.
        return self.store.find_payment_by_transaction_id(omnikassa_order_id)

    def apply(self, payment: Payment, order_result: OrderResult) -> None:
        """
        Apply one order result to a payment and save it.

        Unmapped processor statuses leave the local status untouched. The
        transaction ID is only adopted once, from the first successful
        transaction of a completed order.
        """
        status = transform(order_result.order_status)

        if status is not None:
            payment.set_status(status)
            logger.info(f"Payment {payment.id} status set to {status.value} ({order_result.order_status})")

        if status == PaymentStatus.SUCCESS and not payment.transaction_id:
            transaction = order_result.first_successful_transaction()

            if transaction is not None:
                payment.set_transaction_id(transaction.id)

        payment.add_note(
            "OmniKassa 2.0 order result: "
            + json.dumps(order_result.model_dump(by_alias=True, mode="json"), sort_keys=True)
        )

        payment.save()
