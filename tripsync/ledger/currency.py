"""Exchange rates and conversion to the home currency (THB)."""
from typing import Any

from pydantic import BaseModel, field_validator

from tripsync.models.base import HOME_CURRENCY, coerce_amount, coerce_currency

DEFAULT_USD_RATE = 32.33
DEFAULT_JPY_RATE = 0.21


class Rates(BaseModel):
    """Multipliers from each foreign currency to THB."""
    USD: float = DEFAULT_USD_RATE
    JPY: float = DEFAULT_JPY_RATE

    @field_validator("USD", "JPY", mode="before")
    @classmethod
    def _normalize_rate(cls, value: Any) -> float:
        return coerce_amount(value)

    def multiplier(self, currency: str) -> float:
        """THB per unit of ``currency``. A zero rate falls back to the default."""
        currency = coerce_currency(currency)
        if currency == "USD":
            return self.USD or DEFAULT_USD_RATE
        if currency == "JPY":
            return self.JPY or DEFAULT_JPY_RATE
        return 1.0


def to_thb(amount: float, currency: str, rates: Rates) -> float:
    return amount * rates.multiplier(currency)


def convert(amount: float, from_currency: str, to_currency: str, rates: Rates) -> float:
    """Convert between any two supported currencies via THB."""
    thb = to_thb(amount, from_currency, rates)
    if coerce_currency(to_currency) == HOME_CURRENCY:
        return thb
    return thb / rates.multiplier(to_currency)
