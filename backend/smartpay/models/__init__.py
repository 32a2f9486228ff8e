"""
Models package for the Smart Pay integration.

Exports signable messages, order payload models and processor responses.
"""
from .message import SignableMessage
from .money import Money
from .order import Address, CustomerInformation, Order, OrderItem
from .results import OrderResult, OrderResults, Transaction
from .notifications import STATUS_CHANGED_EVENT, Notification, ReturnParameters
from .responses import (
    AccessToken,
    OrderAnnouncementResponse,
    ProcessorErrorResponse,
    RefundRequest,
    RefundResponse,
)

__all__ = [
    "SignableMessage",
    "Money",
    "Address",
    "CustomerInformation",
    "Order",
    "OrderItem",
    "OrderResult",
    "OrderResults",
    "Transaction",
    "STATUS_CHANGED_EVENT",
    "Notification",
    "ReturnParameters",
    "AccessToken",
    "OrderAnnouncementResponse",
    "ProcessorErrorResponse",
    "RefundRequest",
    "RefundResponse",
]
