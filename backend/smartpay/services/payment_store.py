"""
Payment Store Interface

The integration never persists anything itself. It resolves local payment
records and emits "update payment record" intents through these protocols;
the webshop (or `smartpay.db`) supplies the implementation.
"""
from enum import Enum
from typing import Optional, Protocol


class PaymentStatus(str, Enum):
    """Local payment status."""

    OPEN = "open"
    SUCCESS = "success"
    CANCELLED = "cancelled"
    EXPIRED = "expired"
    FAILURE = "failure"


class Payment(Protocol):
    """Local payment record."""

    @property
    def id(self) -> str: ...

    @property
    def status(self) -> Optional[PaymentStatus]: ...

    @property
    def transaction_id(self) -> Optional[str]: ...

    def set_status(self, status: PaymentStatus) -> None: ...

    def set_transaction_id(self, transaction_id: str) -> None: ...

    def set_slug(self, slug: str) -> None: ...

    def add_note(self, text: str) -> None: ...

    def save(self) -> None: ...


class PaymentStore(Protocol):
    """Lookup of local payment records."""

    def get_payment(self, payment_id: str) -> Optional[Payment]: ...

    def find_payment_by_slug(self, slug: str) -> Optional[Payment]: ...

    def find_payment_by_transaction_id(self, transaction_id: str) -> Optional[Payment]: ...
