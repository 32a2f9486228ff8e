"""
Processor REST Client

Thin synchronous client for the processor API. Every call is a suspension
point; deadlines are configured on the httpx.Client by the caller.

Endpoints:
- POST gateway/authentication                      -> access token
- POST order/server/api/order                      -> order announcement
- GET  order/server/api/order/results              -> signed order result page
- POST order/server/api/v2/refund/transactions/... -> refund
"""
import logging
import uuid
from typing import Any, Dict, Optional

import httpx
from pydantic import ValidationError

from ..config import settings
from ..exceptions import ProcessorError
from ..models.order import Order
from ..models.responses import (
    AccessToken,
    OrderAnnouncementResponse,
    ProcessorErrorResponse,
    RefundRequest,
    RefundResponse,
)
from ..models.results import OrderResults

logger = logging.getLogger(__name__)


AUTHENTICATION_PATH = "gateway/authentication"
ORDER_ANNOUNCE_PATH = "order/server/api/order"
ORDER_RESULTS_PATH = "order/server/api/order/results"
REFUND_PATH = "order/server/api/v2/refund/transactions/{transaction_id}/refunds"


class ProcessorClient:
    """
    Processor API client.

    Args:
        http_client: httpx.Client with base_url set to the processor API
        refresh_token: Long-lived refresh token from the processor dashboard
    """

    def __init__(self, http_client: httpx.Client, refresh_token: str):
        self._http = http_client
        self._refresh_token = refresh_token

    # ========================================================================
    # Transport
    # ========================================================================

    def _request(
        self,
        method: str,
        path: str,
        bearer: str,
        json: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None
    ) -> Dict[str, Any]:
        request_headers = {"Authorization": f"Bearer {bearer}"}
        if headers:
            request_headers.update(headers)

        logger.debug(f"Processor request: {method} {path}")

        try:
            response = self._http.request(
                method,
                path,
                json=json,
                params=params,
                headers=request_headers
            )
        except httpx.TimeoutException as e:
            logger.error(f"Processor request timed out: {method} {path}: {e}")
            raise ProcessorError(f"Processor request timed out: {method} {path}") from e
        except httpx.HTTPError as e:
            logger.error(f"Processor request failed: {method} {path}: {e}")
            raise ProcessorError(f"Could not reach processor: {e}") from e

        try:
            data = response.json()
        except ValueError as e:
            raise ProcessorError(
                f"Processor returned a non-JSON response ({response.status_code})",
                details={"status_code": response.status_code}
            ) from e

        if isinstance(data, dict) and "errorCode" in data:
            error = ProcessorErrorResponse.model_validate(data)
            logger.warning(
                f"Processor error on {method} {path}: {error.error_code} - {error.error_message}"
            )
            raise ProcessorError(
                error.error_message or f"Processor error {error.error_code}",
                processor_code=error.error_code,
                details={
                    "status_code": response.status_code,
                    "consumer_message": error.consumer_message,
                }
            )

        if response.is_error:
            raise ProcessorError(
                f"Processor responded with HTTP {response.status_code}",
                details={"status_code": response.status_code}
            )

        if not isinstance(data, dict):
            raise ProcessorError("Processor response is not a JSON object")

        return data

    @staticmethod
    def _parse(model, data: Dict[str, Any], what: str):
        try:
            return model.model_validate(data)
        except ValidationError as e:
            raise ProcessorError(
                f"Processor returned an unexpected {what} response",
                details={"errors": e.errors(include_url=False)}
            ) from e

    # ========================================================================
    # Endpoints
    # ========================================================================

    def get_access_token(self) -> AccessToken:
        """Exchange the refresh token for a short-lived access token."""
        data = self._request("POST", AUTHENTICATION_PATH, bearer=self._refresh_token)

        return self._parse(AccessToken, data, "authentication")

    def announce_order(self, order: Order, access_token: str) -> OrderAnnouncementResponse:
        """
        Announce a signed order.

        Returns:
            Processor order ID and the hosted payment page URL
        """
        data = self._request("POST", ORDER_ANNOUNCE_PATH, bearer=access_token, json=order.to_payload())

        announcement = self._parse(OrderAnnouncementResponse, data, "order announcement")

        logger.info(
            f"Announced order {order.merchant_order_id} as {announcement.omnikassa_order_id}"
        )

        return announcement

    def get_order_results(self, authentication: str, access_token: str, page: int = 1) -> OrderResults:
        """
        Fetch one page of order results for a notification.

        The page is returned unverified; callers check its signature.
        """
        data = self._request(
            "GET",
            ORDER_RESULTS_PATH,
            bearer=access_token,
            params={"page": page, "authentication": authentication}
        )

        return self._parse(OrderResults, data, "order results")

    def refund(
        self,
        transaction_id: str,
        refund: RefundRequest,
        access_token: str,
        request_id: Optional[str] = None
    ) -> RefundResponse:
        """
        Refund (part of) a transaction.

        The request ID makes the call safe to retry: the processor executes a
        refund once per request ID.
        """
        request_id = request_id or str(uuid.uuid4())

        data = self._request(
            "POST",
            REFUND_PATH.format(transaction_id=transaction_id),
            bearer=access_token,
            json=refund.to_payload(),
            headers={"request-id": request_id}
        )

        response = self._parse(RefundResponse, data, "refund")

        logger.info(f"Refund {response.id} created for transaction {transaction_id}")

        return response


def create_http_client(transport: Optional[httpx.BaseTransport] = None) -> httpx.Client:
    """httpx.Client for the configured processor environment."""
    return httpx.Client(
        base_url=settings.base_url,
        timeout=httpx.Timeout(settings.http_timeout_seconds),
        headers={"Accept": "application/json"},
        transport=transport
    )
