"""
Pydantic Order Models

Order announcement payload with processor format constraints.

Constraints are checked when a model is constructed, so an invalid order
can never be signed or sent. Models are frozen: an order is built once per
checkout attempt and never mutated after signing.
"""
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Literal, Optional
from urllib.parse import urlparse

from pydantic import BaseModel, Field, ValidationInfo, field_validator, model_validator

from .data_helper import sanitize_an, validate_an, validate_ans, validate_null_or_an
from .message import SignableMessage
from .money import Money


# ============================================================================
# Enumerations
# ============================================================================

PaymentBrand = Literal[
    "IDEAL",
    "AFTERPAY",
    "PAYPAL",
    "MASTERCARD",
    "VISA",
    "BANCONTACT",
    "MAESTRO",
    "V_PAY",
    "CARDS",
    "SOFORT",
]

PaymentBrandForce = Literal["FORCE_ONCE", "FORCE_ALWAYS"]

ProductCategory = Literal["PHYSICAL", "DIGITAL"]

# 1 = high, 2 = low, 3 = zero, 4 = none
VatCategory = Literal["1", "2", "3", "4"]

Gender = Literal["M", "F"]

# Top level domains the hosted payment page refuses as return target
REJECTED_TLDS = {
    "example",
    "home",
    "internal",
    "invalid",
    "lan",
    "local",
    "localdomain",
    "localhost",
    "test",
}


def _atom(value: datetime) -> str:
    return value.isoformat(timespec="seconds")


def _text(value: Optional[Any]) -> str:
    return "" if value is None else str(value)


# ============================================================================
# Address
# ============================================================================

_ADDRESS_LENGTHS = {
    "first_name": 50,
    "middle_name": 20,
    "last_name": 50,
    "street": 100,
    "house_number": 100,
    "house_number_addition": 6,
    "postal_code": 10,
    "city": 40,
}


class Address(BaseModel):
    """Shipping or billing address."""

    first_name: Optional[str] = None
    middle_name: Optional[str] = None
    last_name: str
    street: str
    house_number: Optional[str] = None
    house_number_addition: Optional[str] = None
    postal_code: str
    city: str
    country_code: str = Field(pattern="^[A-Z]{2}$")

    model_config = {
        "frozen": True,
        "extra": "forbid"
    }

    @field_validator(*_ADDRESS_LENGTHS.keys())
    @classmethod
    def validate_format(cls, v: Optional[str], info: ValidationInfo) -> Optional[str]:
        validate_null_or_an(v, _ADDRESS_LENGTHS[info.field_name], f"Address.{info.field_name}")
        return v

    def signature_fields(self) -> List[str]:
        return [
            _text(self.first_name),
            _text(self.middle_name),
            self.last_name,
            self.street,
            _text(self.house_number),
            _text(self.house_number_addition),
            self.postal_code,
            self.city,
            self.country_code,
        ]

    def to_payload(self) -> Dict[str, Any]:
        data = {
            "firstName": self.first_name,
            "middleName": self.middle_name,
            "lastName": self.last_name,
            "street": self.street,
            "houseNumber": self.house_number,
            "houseNumberAddition": self.house_number_addition,
            "postalCode": self.postal_code,
            "city": self.city,
            "countryCode": self.country_code,
        }
        return {key: value for key, value in data.items() if value is not None}


# ============================================================================
# Customer Information
# ============================================================================

_CUSTOMER_LENGTHS = {
    "email_address": 45,
    "initials": 256,
    "telephone_number": 31,
}


class CustomerInformation(BaseModel):
    """Consumer details, required by some brands (e.g. AFTERPAY)."""

    email_address: Optional[str] = None
    date_of_birth: Optional[date] = None
    gender: Optional[Gender] = None
    initials: Optional[str] = None
    telephone_number: Optional[str] = None

    model_config = {
        "frozen": True,
        "extra": "forbid"
    }

    @field_validator(*_CUSTOMER_LENGTHS.keys())
    @classmethod
    def validate_format(cls, v: Optional[str], info: ValidationInfo) -> Optional[str]:
        validate_null_or_an(v, _CUSTOMER_LENGTHS[info.field_name], f"CustomerInformation.{info.field_name}")
        return v

    @property
    def formatted_date_of_birth(self) -> Optional[str]:
        """Date of birth in the processor's DD-MM-YYYY format."""
        if self.date_of_birth is None:
            return None
        return self.date_of_birth.strftime("%d-%m-%Y")

    def signature_fields(self) -> List[str]:
        return [
            _text(self.email_address),
            _text(self.formatted_date_of_birth),
            _text(self.gender),
            _text(self.initials),
            _text(self.telephone_number),
        ]

    def to_payload(self) -> Dict[str, Any]:
        data = {
            "emailAddress": self.email_address,
            "dateOfBirth": self.formatted_date_of_birth,
            "gender": self.gender,
            "initials": self.initials,
            "telephoneNumber": self.telephone_number,
        }
        return {key: value for key, value in data.items() if value is not None}


# ============================================================================
# Order Item
# ============================================================================

_ITEM_LENGTHS = {
    "id": 25,
    "name": 50,
    "description": 100,
}


class OrderItem(BaseModel):
    """
    Individual order line.

    Amount is the tax-inclusive unit price. Tax is tracked separately and
    only sent when known.
    """

    name: str
    quantity: int = Field(gt=0)
    amount: Money
    category: ProductCategory
    id: Optional[str] = None
    description: Optional[str] = None
    tax: Optional[Money] = None
    vat_category: Optional[VatCategory] = None

    model_config = {
        "frozen": True,
        "extra": "forbid"
    }

    @field_validator(*_ITEM_LENGTHS.keys())
    @classmethod
    def validate_format(cls, v: Optional[str], info: ValidationInfo) -> Optional[str]:
        validate_null_or_an(v, _ITEM_LENGTHS[info.field_name], f"OrderItem.{info.field_name}")
        return v

    def signature_fields(self) -> List[str]:
        fields = []

        if self.id is not None:
            fields.append(self.id)

        fields.append(self.name)
        fields.append(_text(self.description))
        fields.append(str(self.quantity))
        fields.extend(self.amount.signature_fields())

        if self.tax is None:
            fields.append("")
        else:
            fields.extend(self.tax.signature_fields())

        fields.append(self.category)

        if self.vat_category is not None:
            fields.append(self.vat_category)

        return fields

    def to_payload(self) -> Dict[str, Any]:
        data = {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "quantity": self.quantity,
            "amount": self.amount.to_payload(),
            "tax": self.tax.to_payload() if self.tax is not None else None,
            "category": self.category,
            "vatCategory": self.vat_category,
        }
        return {key: value for key, value in data.items() if value is not None}


# ============================================================================
# Order
# ============================================================================

class Order(SignableMessage):
    """
    Order announcement.

    The timestamp doubles as replay protection: the processor refuses
    announcements with a stale timestamp.
    """

    merchant_order_id: str
    amount: Money
    merchant_return_url: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    description: Optional[str] = None
    language: Optional[str] = None
    order_items: Optional[List[OrderItem]] = None
    shipping_detail: Optional[Address] = None
    billing_detail: Optional[Address] = None
    customer_information: Optional[CustomerInformation] = None
    payment_brand: Optional[PaymentBrand] = None
    payment_brand_force: Optional[PaymentBrandForce] = None
    payment_brand_meta_data: Optional[Dict[str, Any]] = None

    model_config = {
        "frozen": True,
        "extra": "forbid"
    }

    @field_validator("timestamp")
    @classmethod
    def timestamp_aware(cls, v: datetime) -> datetime:
        """Naive timestamps are taken as UTC."""
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v

    @field_validator("merchant_order_id")
    @classmethod
    def validate_merchant_order_id(cls, v: str) -> str:
        validate_ans(v, 24, "Order.merchantOrderId")
        return v

    @field_validator("merchant_return_url")
    @classmethod
    def validate_merchant_return_url(cls, v: str) -> str:
        validate_an(v, 1024, "Order.merchantReturnURL")

        parsed = urlparse(v.strip())
        if parsed.scheme not in ("http", "https") or not parsed.hostname:
            raise ValueError(f"Field `Order.merchantReturnURL` value \"{v}\" is not an absolute URL.")

        labels = parsed.hostname.rstrip(".").split(".")
        tld = labels[-1].lower()
        if len(labels) < 2 or tld in REJECTED_TLDS or tld.isdigit():
            raise ValueError(
                f"Field `Order.merchantReturnURL` host \"{parsed.hostname}\" is not accepted by the processor."
            )

        return v

    @field_validator("description")
    @classmethod
    def validate_description(cls, v: Optional[str]) -> Optional[str]:
        validate_null_or_an(v, 35, "Order.description")
        return v

    @field_validator("language")
    @classmethod
    def validate_language(cls, v: Optional[str]) -> Optional[str]:
        validate_null_or_an(v, 2, "Order.language")
        return v

    @model_validator(mode="before")
    @classmethod
    def default_item_descriptions(cls, data: Any) -> Any:
        """
        Items must carry a description when a payment brand is enforced,
        otherwise the processor rejects the payment. Fall back to the name.
        """
        if not isinstance(data, dict) or not data.get("payment_brand") or not data.get("order_items"):
            return data

        items = []
        for item in data["order_items"]:
            if isinstance(item, OrderItem):
                if item.description is None:
                    item = item.model_copy(update={"description": sanitize_an(item.name, 100)})
            elif isinstance(item, dict) and item.get("description") is None and isinstance(item.get("name"), str):
                item = {**item, "description": sanitize_an(item["name"], 100)}
            items.append(item)

        return {**data, "order_items": items}

    @model_validator(mode="after")
    def validate_payment_brand_force(self):
        """Force mode only makes sense together with a payment brand."""
        if self.payment_brand_force is not None and self.payment_brand is None:
            raise ValueError("Order.paymentBrandForce requires Order.paymentBrand")
        return self

    def signature_fields(self) -> List[str]:
        fields = [
            _atom(self.timestamp),
            self.merchant_order_id,
        ]

        fields.extend(self.amount.signature_fields())

        fields.append(_text(self.language))
        fields.append(_text(self.description))
        fields.append(self.merchant_return_url)

        if self.order_items is not None:
            for item in self.order_items:
                fields.extend(item.signature_fields())

        if self.shipping_detail is not None:
            fields.extend(self.shipping_detail.signature_fields())

        if self.payment_brand is not None:
            fields.append(self.payment_brand)

        if self.payment_brand_force is not None:
            fields.append(self.payment_brand_force)

        if self.customer_information is not None:
            fields.extend(self.customer_information.signature_fields())

        if self.billing_detail is not None:
            fields.extend(self.billing_detail.signature_fields())

        return fields

    def to_payload(self) -> Dict[str, Any]:
        """JSON body for the order announcement endpoint."""
        data: Dict[str, Any] = {
            "timestamp": _atom(self.timestamp),
            "merchantOrderId": self.merchant_order_id,
        }

        if self.description is not None:
            data["description"] = self.description

        if self.order_items is not None:
            data["orderItems"] = [item.to_payload() for item in self.order_items]

        data["amount"] = self.amount.to_payload()

        if self.shipping_detail is not None:
            data["shippingDetail"] = self.shipping_detail.to_payload()

        if self.billing_detail is not None:
            data["billingDetail"] = self.billing_detail.to_payload()

        if self.customer_information is not None:
            data["customerInformation"] = self.customer_information.to_payload()

        if self.language is not None:
            data["language"] = self.language

        data["merchantReturnURL"] = self.merchant_return_url

        if self.payment_brand is not None:
            data["paymentBrand"] = self.payment_brand

        if self.payment_brand_force is not None:
            data["paymentBrandForce"] = self.payment_brand_force

        if self.payment_brand_meta_data is not None:
            data["paymentBrandMetaData"] = self.payment_brand_meta_data

        if self.signature is not None:
            data["signature"] = self.signature

        return data
