"""
Mock Payment Processor

Simulates the processor REST API in-process as an httpx transport, for
demo mode and tests. Signs order result pages and notifications with the
same signing key as the webshop, like the real processor.

Mock Behavior:
- Refresh token must match, access tokens expire after `token_lifetime`
- Announced orders get a random processor order ID
- Order results are queued per authentication reference, one list per page
- Refunds are idempotent per request ID
"""
import json
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional, Set, Tuple

import httpx

from ..models.notifications import STATUS_CHANGED_EVENT, Notification, ReturnParameters
from ..models.results import OrderResults
from ..services.signature_service import SignatureService


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _timestamp(value: datetime) -> str:
    # Processor style: 2016-11-24T17:30:00.000+0000
    return value.strftime("%Y-%m-%dT%H:%M:%S.000%z")


def _error(status_code: int, error_code: int, message: str) -> httpx.Response:
    return httpx.Response(
        status_code,
        json={"errorCode": error_code, "errorMessage": message, "consumerMessage": None}
    )


class FakeProcessor:
    """
    In-process processor.

    Args:
        signature_service: Signs result pages and notifications
        refresh_token: Refresh token the token endpoint accepts
        token_lifetime: Lifetime of issued access tokens
        clock: Returns the current aware datetime
    """

    def __init__(
        self,
        signature_service: SignatureService,
        refresh_token: str = "demo-refresh-token",
        token_lifetime: timedelta = timedelta(hours=1),
        clock: Callable[[], datetime] = _utcnow
    ):
        self.signature_service = signature_service
        self.refresh_token = refresh_token
        self.token_lifetime = token_lifetime
        self.clock = clock

        self.access_tokens: Dict[str, datetime] = {}
        self.orders: Dict[str, Dict[str, Any]] = {}
        self.result_pages: Dict[str, List[List[Dict[str, Any]]]] = {}
        self.tampered_pages: Set[Tuple[str, int]] = set()
        self.always_more_results = False
        self.refunds: Dict[str, Dict[str, Any]] = {}
        self.calls: List[Tuple[str, str]] = []

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    # ========================================================================
    # Scenario Helpers
    # ========================================================================

    def order_result(
        self,
        omnikassa_order_id: str,
        order_status: str = "COMPLETED",
        transaction_status: Optional[str] = "SUCCESS",
        merchant_order_id: Optional[str] = None,
        amount: int = 1000,
        currency: str = "EUR",
        transaction_id: Optional[str] = None
    ) -> Dict[str, Any]:
        """Build one order result row in processor JSON."""
        order = self.orders.get(omnikassa_order_id, {})
        now = _timestamp(self.clock())
        money = {"currency": currency, "amount": amount}

        transactions = []
        if transaction_status is not None:
            transactions.append({
                "id": transaction_id or str(uuid.uuid4()),
                "paymentBrand": order.get("paymentBrand", "IDEAL"),
                "type": "PAYMENT",
                "status": transaction_status,
                "amount": money,
                "confirmedAmount": money if transaction_status == "SUCCESS" else None,
                "startTime": now,
                "lastUpdateTime": now,
            })

        return {
            "merchantOrderId": merchant_order_id or order.get("merchantOrderId", omnikassa_order_id),
            "omnikassaOrderId": omnikassa_order_id,
            "poiId": "2004",
            "orderStatus": order_status,
            "orderStatusDateTime": now,
            "errorCode": "",
            "paidAmount": money if order_status == "COMPLETED" else {"currency": currency, "amount": 0},
            "totalAmount": money,
            "transactions": transactions,
        }

    def queue_results(self, pages: List[List[Dict[str, Any]]], authentication: Optional[str] = None) -> str:
        """
        Queue order result pages behind a new authentication reference.

        Returns:
            Authentication reference to put in the notification
        """
        authentication = authentication or f"auth-{uuid.uuid4().hex}"
        self.result_pages[authentication] = pages
        return authentication

    def tamper_page(self, authentication: str, page: int) -> None:
        """Serve the given page with a signature that does not match."""
        self.tampered_pages.add((authentication, page))

    def notification(self, authentication: str, event_name: str = STATUS_CHANGED_EVENT) -> Notification:
        """Signed push notification for an authentication reference."""
        notification = Notification(
            authentication=authentication,
            expiry=_timestamp(self.clock() + timedelta(minutes=5)),
            event_name=event_name,
            poi_id="2004",
        )
        return notification.sign(self.signature_service)

    def return_query(self, order_id: str, status: str = "COMPLETED") -> Dict[str, str]:
        """Signed query parameters of the browser return redirect."""
        parameters = ReturnParameters(order_id=order_id, status=status)
        return {
            "order_id": order_id,
            "status": status,
            "signature": self.signature_service.sign(parameters),
        }

    # ========================================================================
    # Request Handling
    # ========================================================================

    def handle(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        self.calls.append((request.method, path))

        bearer = request.headers.get("Authorization", "").removeprefix("Bearer ").strip()

        if request.method == "POST" and path.endswith("/gateway/authentication"):
            return self._authenticate(bearer)

        if not self._is_valid_access_token(bearer):
            return _error(401, 5001, "Authentication failed")

        if request.method == "POST" and path.endswith("/order/server/api/order"):
            return self._announce(json.loads(request.content))

        if request.method == "GET" and path.endswith("/order/server/api/order/results"):
            return self._results(
                request.url.params.get("authentication", ""),
                int(request.url.params.get("page", "1"))
            )

        if request.method == "POST" and "/refund/transactions/" in path and path.endswith("/refunds"):
            transaction_id = path.split("/refund/transactions/")[1].split("/")[0]
            return self._refund(
                transaction_id,
                request.headers.get("request-id", ""),
                json.loads(request.content)
            )

        return _error(404, 4040, f"Unknown endpoint {request.method} {path}")

    def _is_valid_access_token(self, token: str) -> bool:
        valid_until = self.access_tokens.get(token)
        return valid_until is not None and valid_until > self.clock()

    def _authenticate(self, bearer: str) -> httpx.Response:
        if bearer != self.refresh_token:
            return _error(401, 5001, "Invalid refresh token")

        token = f"access-{uuid.uuid4().hex}"
        valid_until = self.clock() + self.token_lifetime
        self.access_tokens[token] = valid_until

        return httpx.Response(200, json={
            "token": token,
            "validUntil": _timestamp(valid_until),
            "durationInMillis": int(self.token_lifetime.total_seconds() * 1000),
        })

    def _announce(self, payload: Dict[str, Any]) -> httpx.Response:
        signature = payload.get("signature", "")
        if len(signature) != self.signature_service.signature_length:
            return _error(422, 5001, "Invalid or missing signature")

        omnikassa_order_id = str(uuid.uuid4())
        self.orders[omnikassa_order_id] = payload

        return httpx.Response(201, json={
            "omnikassaOrderId": omnikassa_order_id,
            "redirectUrl": f"https://betalen.rabobank.nl/omnikassa/payment-brand?token={omnikassa_order_id}",
        })

    def _results(self, authentication: str, page: int) -> httpx.Response:
        pages = self.result_pages.get(authentication)

        if pages is None:
            return _error(401, 5001, "Unknown notification authentication")

        rows = pages[page - 1] if 0 < page <= len(pages) else []
        more = self.always_more_results or page < len(pages)

        body = {
            "moreOrderResultsAvailable": more,
            "orderResults": rows,
        }
        body["signature"] = self.signature_service.sign(OrderResults.model_validate(body))

        if (authentication, page) in self.tampered_pages:
            body["signature"] = "0" * len(body["signature"])

        return httpx.Response(200, json=body)

    def _refund(self, transaction_id: str, request_id: str, payload: Dict[str, Any]) -> httpx.Response:
        if not request_id:
            return _error(400, 4000, "Missing request-id header")

        if request_id not in self.refunds:
            self.refunds[request_id] = {
                "refundId": str(uuid.uuid4()),
                "refundTransactionId": str(uuid.uuid4()),
                "createdAt": _timestamp(self.clock()),
                "status": "PENDING",
                "transactionId": transaction_id,
                "money": payload.get("money"),
            }

        refund = self.refunds[request_id]

        return httpx.Response(201, json={
            "refundId": refund["refundId"],
            "refundTransactionId": refund["refundTransactionId"],
            "createdAt": refund["createdAt"],
            "status": refund["status"],
        })
