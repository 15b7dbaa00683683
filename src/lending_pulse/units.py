"""Fixed-point conversions from chain-native integers to presentation decimals.

Every input stays a Python ``int`` until the final step; only the result is
turned into a ``Decimal``, so the integer part is never routed through a
binary float.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Context, Decimal, getcontext

from .constants import RAY, SECONDS_PER_YEAR, USDC_DECIMALS, WAD

TWO_PLACES = Decimal("0.01")


def _wide_context(integer_digits: int) -> Context:
    # Room for every integer digit plus the default fractional precision.
    return Context(
        prec=getcontext().prec + max(integer_digits, 0), rounding=ROUND_HALF_UP
    )


def round_pct(value: Decimal | int | float) -> Decimal:
    """Round to two decimal places, halves away from zero."""
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(
        TWO_PLACES,
        rounding=ROUND_HALF_UP,
        context=_wide_context(value.adjusted() + 1),
    )


def _scaled_ratio(numerator: int, scale: int) -> Decimal:
    """Divide ``numerator`` by ``scale`` as quotient plus fractional remainder."""
    quotient, remainder = divmod(numerator, scale)
    ctx = _wide_context(len(str(abs(quotient))))
    return ctx.add(Decimal(quotient), ctx.divide(Decimal(remainder), Decimal(scale)))


def ray_to_percent(raw: int) -> Decimal:
    """Convert a RAY-scaled (1e27) rate to a percentage.

    Example:
        >>> ray_to_percent(32_500_000_000_000_000_000_000_000)
        Decimal('3.25')
    """
    return round_pct(_scaled_ratio(raw * 100, RAY))


def wad_rate_to_annual_percent(raw_per_second: int) -> Decimal:
    """Annualize a WAD-scaled (1e18) per-second rate into a percentage."""
    return round_pct(_scaled_ratio(raw_per_second * SECONDS_PER_YEAR * 100, WAD))


def token_amount(raw: int, decimals: int = USDC_DECIMALS) -> Decimal:
    """Convert base units into a token amount without losing precision."""
    return Decimal(raw).scaleb(-decimals, context=_wide_context(len(str(abs(raw)))))


def utilization_from_amounts(borrowed: int, supplied: int) -> Decimal:
    """Borrowed over supplied as a percentage; zero when nothing is supplied."""
    if supplied <= 0:
        return round_pct(0)
    return round_pct(_scaled_ratio(borrowed * 100, supplied))


def utilization_from_wad(raw: int) -> Decimal:
    """Convert a WAD-scaled utilization ratio into a percentage."""
    return round_pct(_scaled_ratio(raw * 100, WAD))


def percent_to_ray(pct: Decimal | int | float | str) -> int:
    """Encode a percentage as a RAY-scaled rate (truncating toward zero)."""
    return int(Decimal(str(pct)) * RAY / 100)
