"""
Processor status mapping.
"""
from typing import Dict, Optional

from .payment_store import PaymentStatus


# Order status (order results and browser return) -> local status
ORDER_STATUSES: Dict[str, PaymentStatus] = {
    "CANCELLED": PaymentStatus.CANCELLED,
    "COMPLETED": PaymentStatus.SUCCESS,
    "EXPIRED": PaymentStatus.EXPIRED,
    "IN_PROGRESS": PaymentStatus.OPEN,
}

COMPLETED = "COMPLETED"


def transform(status: Optional[str]) -> Optional[PaymentStatus]:
    """Local status for a processor order status, None when unmapped."""
    if status is None:
        return None
    return ORDER_STATUSES.get(status.upper())
