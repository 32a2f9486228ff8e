"""
Pydantic Processor Response Models

Unsigned responses of the processor REST API.
"""
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from dateutil import parser
from pydantic import AliasChoices, BaseModel, Field, field_validator

from .data_helper import validate_null_or_an
from .money import Money
from .order import VatCategory


class AccessToken(BaseModel):
    """Bearer token with its absolute expiry."""

    token: str
    valid_until: datetime = Field(alias="validUntil")

    model_config = {
        "frozen": True,
        "populate_by_name": True,
    }

    @field_validator("valid_until", mode="before")
    @classmethod
    def parse_valid_until(cls, v):
        """Processor sends offsets like `+0000`, parse with dateutil."""
        if isinstance(v, str):
            v = parser.isoparse(v)
        if isinstance(v, datetime) and v.tzinfo is None:
            v = v.replace(tzinfo=timezone.utc)
        return v

    def is_valid(self, now: Optional[datetime] = None) -> bool:
        return self.valid_until > (now or datetime.now(timezone.utc))


class OrderAnnouncementResponse(BaseModel):
    """Processor reply to an order announcement."""

    omnikassa_order_id: str = Field(alias="omnikassaOrderId")
    redirect_url: str = Field(alias="redirectUrl")

    model_config = {
        "frozen": True,
        "populate_by_name": True,
    }


class ProcessorErrorResponse(BaseModel):
    """Error body returned by the processor on any failed call."""

    error_code: str = Field(alias="errorCode")
    error_message: Optional[str] = Field(None, alias="errorMessage")
    consumer_message: Optional[str] = Field(None, alias="consumerMessage")

    model_config = {
        "populate_by_name": True,
        "coerce_numbers_to_str": True,
    }


class RefundRequest(BaseModel):
    """Refund of (part of) a settled transaction."""

    amount: Money
    description: Optional[str] = None
    vat_category: Optional[VatCategory] = None

    model_config = {
        "frozen": True,
        "extra": "forbid"
    }

    @field_validator("description")
    @classmethod
    def validate_description(cls, v: Optional[str]) -> Optional[str]:
        validate_null_or_an(v, 50, "Refund.description")
        return v

    def to_payload(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"money": self.amount.to_payload()}

        if self.description is not None:
            data["description"] = self.description

        if self.vat_category is not None:
            data["vatCategory"] = self.vat_category

        return data


class RefundResponse(BaseModel):
    """Processor reply to a refund request."""

    id: str = Field(validation_alias=AliasChoices("id", "refundId"))
    transaction_id: str = Field(validation_alias=AliasChoices("transactionId", "refundTransactionId"))
    status: Optional[str] = None
    created_at: Optional[str] = Field(None, validation_alias=AliasChoices("createdAt", "created_at"))

    model_config = {
        "frozen": True,
        "coerce_numbers_to_str": True,
    }
