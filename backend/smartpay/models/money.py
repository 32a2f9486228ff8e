"""
Pydantic Money Model

Amounts travel as integers in the currency's minor unit (cents for EUR).
"""
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Union
from pydantic import BaseModel, Field


# ISO 4217 currencies without the default of two decimals
CURRENCY_EXPONENTS = {
    "BIF": 0, "CLP": 0, "DJF": 0, "GNF": 0, "ISK": 0, "JPY": 0, "KMF": 0,
    "KRW": 0, "PYG": 0, "RWF": 0, "UGX": 0, "VND": 0, "VUV": 0, "XAF": 0,
    "XOF": 0, "XPF": 0,
    "BHD": 3, "IQD": 3, "JOD": 3, "KWD": 3, "LYD": 3, "OMR": 3, "TND": 3,
}


def minor_unit_exponent(currency: str) -> int:
    """Number of decimals in the minor unit of a currency."""
    return CURRENCY_EXPONENTS.get(currency.upper(), 2)


class Money(BaseModel):
    """
    Currency amount in minor units.

    Example:
        Money(currency="EUR", amount=22500) is EUR 225.00
    """

    currency: str = Field(pattern="^[A-Z]{3}$")
    amount: int

    model_config = {
        "frozen": True
    }

    @classmethod
    def from_decimal(cls, currency: str, value: Union[Decimal, str, int, float]) -> "Money":
        """
        Convert a major-unit amount to minor units, rounding half up.

        Floats go through `str()` so 0.1 + 0.2 style noise does not leak
        into the minor-unit count.
        """
        currency = currency.upper()
        decimal_value = Decimal(str(value)) if isinstance(value, float) else Decimal(value)
        exponent = minor_unit_exponent(currency)

        minor_units = (decimal_value * (Decimal(10) ** exponent)).quantize(
            Decimal(1), rounding=ROUND_HALF_UP
        )

        return cls(currency=currency, amount=int(minor_units))

    def to_decimal(self) -> Decimal:
        """Major-unit value of this amount."""
        return Decimal(self.amount).scaleb(-minor_unit_exponent(self.currency))

    def signature_fields(self) -> List[str]:
        return [self.currency, str(self.amount)]

    def to_payload(self) -> dict:
        return {"currency": self.currency, "amount": self.amount}
