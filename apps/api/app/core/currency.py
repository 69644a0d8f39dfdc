"""Currency minimum units and rounding for computed amounts."""

from decimal import ROUND_HALF_EVEN, Context, Decimal, localcontext

# Exponent of the smallest indivisible unit per currency (wei for ETH, cents for USD).
MINOR_UNIT_EXPONENTS: dict[str, int] = {
    "USD": 2,
    "EUR": 2,
    "GBP": 2,
    "USDC": 6,
    "USDT": 6,
    "SOL": 9,
    "ETH": 18,
    "MATIC": 18,
    "BASE_ETH": 18,
}
DEFAULT_MINOR_UNIT_EXPONENT = 2

# Wide enough for NUMERIC(38, 18) operands multiplied by a unit count
_MONEY_CONTEXT = Context(prec=80, rounding=ROUND_HALF_EVEN)


def minor_unit(currency: str) -> Decimal:
    """Smallest representable amount of ``currency``, e.g. Decimal("0.01") for USD."""
    exponent = MINOR_UNIT_EXPONENTS.get(currency.upper(), DEFAULT_MINOR_UNIT_EXPONENT)
    return Decimal(1).scaleb(-exponent)


def round_amount(amount: Decimal, currency: str) -> Decimal:
    """Banker's rounding (half-to-even) to the currency's minimum unit."""
    return amount.quantize(minor_unit(currency), context=_MONEY_CONTEXT)


def prorate(amount: Decimal, numerator: int, denominator: int, currency: str) -> Decimal:
    """``amount * numerator / denominator`` rounded once, to the currency unit."""
    with localcontext(_MONEY_CONTEXT):
        exact = amount * numerator / denominator
    return round_amount(exact, currency)


def percent_of(amount: Decimal, percent: int, currency: str) -> Decimal:
    return prorate(amount, percent, 100, currency)


def fits_minor_unit(amount: Decimal, currency: str) -> bool:
    """True when ``amount`` needs no rounding in ``currency``; 10.005 USD does not fit."""
    return round_amount(amount, currency) == amount
