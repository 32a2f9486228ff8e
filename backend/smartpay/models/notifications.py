"""
Pydantic Notification Models

Inbound messages from the processor:
- Notification: asynchronous push, carries only an authentication reference
- ReturnParameters: synchronous browser redirect back to the webshop
"""
from datetime import datetime, timezone
from typing import List, Mapping, Optional
from dateutil import parser
from pydantic import Field

from .message import SignableMessage


STATUS_CHANGED_EVENT = "merchant.order.status.changed"


class Notification(SignableMessage):
    """
    Push notification.

    The result rows themselves are not part of the notification, they are
    pulled with the `authentication` reference.
    """

    authentication: str
    expiry: str = ""
    event_name: str = Field(alias="eventName")
    poi_id: str = Field("", alias="poiId")

    model_config = {
        "frozen": True,
        "populate_by_name": True,
        "coerce_numbers_to_str": True,
    }

    @property
    def is_status_changed(self) -> bool:
        return self.event_name == STATUS_CHANGED_EVENT

    @property
    def expires_at(self) -> Optional[datetime]:
        if not self.expiry:
            return None
        try:
            return parser.isoparse(self.expiry)
        except ValueError:
            return None

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        expires_at = self.expires_at
        if expires_at is None:
            return False
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)
        return expires_at <= (now or datetime.now(timezone.utc))

    def signature_fields(self) -> List[str]:
        return [
            self.authentication,
            self.expiry,
            self.event_name,
            self.poi_id,
        ]


class ReturnParameters(SignableMessage):
    """Query parameters of the browser redirect after payment."""

    order_id: str
    status: str

    model_config = {
        "frozen": True
    }

    @classmethod
    def from_query(cls, query: Mapping[str, str]) -> Optional["ReturnParameters"]:
        """
        Extract return parameters from a query string mapping.

        Returns:
            ReturnParameters, or None when order_id or status is absent.
            A missing signature is kept as None so the attempt is still
            verified (and fails).
        """
        order_id = query.get("order_id")
        status = query.get("status")

        if not order_id or not status:
            return None

        return cls(order_id=order_id, status=status, signature=query.get("signature") or None)

    def signature_fields(self) -> List[str]:
        return [self.order_id, self.status]
