"""
Pydantic Order Result Models

Processor-reported order status records, pulled page by page after a
status-changed notification. Values that take part in the signature are
kept as the raw strings the processor sent.
"""
from typing import List, Optional
from pydantic import BaseModel, Field

from .message import SignableMessage
from .money import Money


_RESPONSE_CONFIG = {
    "frozen": True,
    "populate_by_name": True,
    "coerce_numbers_to_str": True,
}


def _text(value: Optional[str]) -> str:
    return "" if value is None else value


class Transaction(BaseModel):
    """Single payment attempt inside an order result."""

    id: str
    payment_brand: str = Field("", alias="paymentBrand")
    type: str = ""
    status: str
    amount: Money
    confirmed_amount: Optional[Money] = Field(None, alias="confirmedAmount")
    start_time: str = Field("", alias="startTime")
    last_update_time: str = Field("", alias="lastUpdateTime")

    model_config = _RESPONSE_CONFIG

    @property
    def is_successful(self) -> bool:
        return self.status == "SUCCESS"

    def signature_fields(self) -> List[str]:
        fields = [
            self.id,
            self.payment_brand,
            self.type,
            self.status,
        ]

        fields.extend(self.amount.signature_fields())

        if self.confirmed_amount is None:
            fields.append("")
        else:
            fields.extend(self.confirmed_amount.signature_fields())

        fields.append(self.start_time)
        fields.append(self.last_update_time)

        return fields


class OrderResult(BaseModel):
    """Status of one announced order."""

    merchant_order_id: str = Field(alias="merchantOrderId")
    omnikassa_order_id: str = Field(alias="omnikassaOrderId")
    poi_id: str = Field("", alias="poiId")
    order_status: str = Field(alias="orderStatus")
    order_status_date_time: str = Field("", alias="orderStatusDateTime")
    error_code: Optional[str] = Field(None, alias="errorCode")
    paid_amount: Money = Field(alias="paidAmount")
    total_amount: Money = Field(alias="totalAmount")
    transactions: List[Transaction] = Field(default_factory=list)

    model_config = _RESPONSE_CONFIG

    def first_successful_transaction(self) -> Optional[Transaction]:
        for transaction in self.transactions:
            if transaction.is_successful:
                return transaction
        return None

    def signature_fields(self) -> List[str]:
        fields = [
            self.merchant_order_id,
            self.omnikassa_order_id,
            self.poi_id,
            self.order_status,
            self.order_status_date_time,
            _text(self.error_code),
        ]

        fields.extend(self.paid_amount.signature_fields())
        fields.extend(self.total_amount.signature_fields())

        for transaction in self.transactions:
            fields.extend(transaction.signature_fields())

        return fields


class OrderResults(SignableMessage):
    """One signed page of order results."""

    more_order_results_available: bool = Field(alias="moreOrderResultsAvailable")
    order_results: List[OrderResult] = Field(default_factory=list, alias="orderResults")

    model_config = _RESPONSE_CONFIG

    def signature_fields(self) -> List[str]:
        fields = ["true" if self.more_order_results_available else "false"]

        for order_result in self.order_results:
            fields.extend(order_result.signature_fields())

        return fields

    def to_payload(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)
