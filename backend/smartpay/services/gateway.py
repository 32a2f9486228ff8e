"""
Gateway

Checkout entry point: announces signed orders and refunds transactions.
"""
import logging
import uuid
from typing import Optional

from ..exceptions import SmartPayError
from .payment_store import Payment
from .processor_client import ProcessorClient
from .signature_service import SignatureService
from .token_cache import AccessTokenCache
from ..models.money import Money
from ..models.order import Order
from ..models.responses import RefundRequest, RefundResponse

logger = logging.getLogger(__name__)


class Gateway:
    """
    Processor gateway.

    Args:
        client: Processor API client
        token_cache: Access token cache gating authenticated calls
        signature_service: Signs outbound orders
        slug_prefix: Prefix of the slug recorded on announced payments
    """

    def __init__(
        self,
        client: ProcessorClient,
        token_cache: AccessTokenCache,
        signature_service: SignatureService,
        slug_prefix: str = "omnikassa-2"
    ):
        self.client = client
        self.token_cache = token_cache
        self.signature_service = signature_service
        self.slug_prefix = slug_prefix

    def start(self, payment: Payment, order: Order) -> str:
        """
        Announce an order for a payment.

        Args:
            payment: Local payment being started
            order: Validated order payload, unsigned

        Returns:
            URL of the hosted payment page to redirect the payer to

        Raises:
            SmartPayError: Token refresh or announcement failed; the failure
                is noted on the payment, which stays open without a slug
        """
        signed_order = order.sign(self.signature_service)

        try:
            access_token = self.token_cache.ensure_valid()
            announcement = self.client.announce_order(signed_order, access_token)
        except SmartPayError as e:
            logger.error(f"Announcement of payment {payment.id} failed: {e.error_code}")
            payment.add_note(
                f"OmniKassa 2.0 order announcement failed: {e.error_code} - {e.message}"
            )
            payment.save()
            raise

        payment.set_slug(f"{self.slug_prefix}-{announcement.omnikassa_order_id}")
        payment.add_note(
            f"OmniKassa 2.0 order announced: merchantOrderId={signed_order.merchant_order_id}, "
            f"omnikassaOrderId={announcement.omnikassa_order_id}"
        )
        payment.save()

        logger.info(f"Payment {payment.id} started, redirecting to hosted payment page")

        return announcement.redirect_url

    def refund(
        self,
        transaction_id: str,
        amount: Money,
        description: Optional[str] = None,
        vat_category: Optional[str] = None
    ) -> RefundResponse:
        """
        Refund (part of) a settled transaction.

        Each call gets its own request ID, so a retried refund is a new refund.
        """
        refund = RefundRequest(amount=amount, description=description, vat_category=vat_category)

        access_token = self.token_cache.ensure_valid()

        return self.client.refund(transaction_id, refund, access_token, request_id=str(uuid.uuid4()))
