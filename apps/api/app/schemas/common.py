"""Shared request/response primitives."""

from decimal import Decimal
from typing import Annotated

from pydantic import BaseModel, Field, StringConstraints

# Wallet addresses are compared case-insensitively everywhere, so they are
# normalised once at the API boundary.
WalletAddress = Annotated[
    str,
    StringConstraints(strip_whitespace=True, to_lower=True, min_length=1, max_length=128),
]

CurrencyCode = Annotated[
    str,
    StringConstraints(strip_whitespace=True, to_upper=True, min_length=2, max_length=16),
]

PositiveAmount = Annotated[Decimal, Field(gt=0, max_digits=38, decimal_places=18)]


class CurrencyTotal(BaseModel):
    currency: str
    amount: Decimal
