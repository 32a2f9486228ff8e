"""
Smart Pay Exception Hierarchy

Namespaced error codes for every protocol violation the integration can
surface. Expected non-actions (ignored events, absent return parameters)
are reported as result values, never as exceptions.
"""
from typing import Optional, Dict, Any, List


class SmartPayError(Exception):
    """
    Base exception for all processor integration errors.

    Every error carries a namespaced code so API responses and logs stay
    machine readable.
    """

    status_code = 400

    def __init__(
        self,
        error_code: str,
        message: str,
        details: Optional[Dict[str, Any]] = None
    ):
        self.error_code = error_code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to API error response format."""
        return {
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details
        }


class InvalidFieldFormatError(SmartPayError, ValueError):
    """
    Outbound field does not match its processor format (AN / ANS).

    Examples:
    - Description longer than 35 characters
    - Markup embedded in a display field
    """

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__("smartpay:order:invalid_field", message, details)


class SignatureInvalidError(SmartPayError):
    """
    Signature verification failed.

    Examples:
    - Notification signed with another key
    - Order results page tampered with in transit
    - Browser return parameters edited by the payer
    """

    status_code = 403

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__("smartpay:signature:invalid", message, details)


class UnknownOrderIdsError(SmartPayError):
    """
    One or more order results could not be matched to a local payment.

    Raised once, after every page has been processed. Payments that were
    matched have already been saved; `report` describes them.
    """

    status_code = 404

    def __init__(self, order_ids: List[str], report: Any = None):
        self.order_ids = list(order_ids)
        self.report = report
        super().__init__(
            "smartpay:results:unknown_order_ids",
            f"Could not find payments for order IDs: {', '.join(self.order_ids)}",
            {"order_ids": self.order_ids}
        )


class PaginationLimitExceededError(SmartPayError):
    """
    Processor kept reporting more results beyond the configured page ceiling.
    """

    status_code = 502

    def __init__(self, max_pages: int):
        self.max_pages = max_pages
        super().__init__(
            "smartpay:results:pagination_limit",
            f"Order results still reported more pages after {max_pages} pages",
            {"max_pages": max_pages}
        )


class TokenRefreshError(SmartPayError):
    """
    Access token could not be refreshed with the refresh token.
    """

    status_code = 502

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__("smartpay:token:refresh_failed", message, details)


class ProcessorError(SmartPayError):
    """
    Processor returned an error response or could not be reached.

    Examples:
    - errorCode 5001 "Invalid signature" on order announcement
    - Connection timeout
    """

    status_code = 502

    def __init__(
        self,
        message: str,
        processor_code: Optional[Any] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        self.processor_code = processor_code
        details = dict(details or {})
        if processor_code is not None:
            details["processor_code"] = processor_code
        super().__init__("smartpay:processor:error", message, details)


class ConfigurationError(SmartPayError):
    """
    Integration is not configured correctly.

    Example:
    - Signing key is not valid base64
    """

    status_code = 500

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__("smartpay:config:invalid", message, details)
