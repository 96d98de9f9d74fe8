"""
Token amount helpers.

Raw on-chain balances are unbounded integers (18-decimal assets overflow a
double long before they stop being realistic), so scaling is done with
Python ints. Floats only appear in the degraded path and in display strings.
"""

import logging
import math
from decimal import Decimal, InvalidOperation
from typing import Union

logger = logging.getLogger(__name__)


def normalize_raw_amount(raw: str) -> str:
    """Return a hex-prefixed raw amount as a base-10 string.

    Values without a ``0x`` prefix are returned untouched, as are prefixed
    values that do not parse as hex.
    """
    if raw[:2] in ("0x", "0X"):
        try:
            return str(int(raw, 16))
        except ValueError:
            logger.debug("Unparsable hex amount %r left as-is", raw)
    return raw


def format_amount(raw: str, decimals: int, precision: int = 4) -> str:
    """Scale a raw integer amount by ``10**decimals`` into a fixed-point string.

    The fraction is rounded half-up to ``precision`` digits (``1.99999`` at
    four digits becomes ``"2.0"``) and trailing zeros are dropped, keeping at
    least one fractional digit (``"1.0"``). Zero renders as ``"0"``.

    Malformed input falls back to float division; if that is not a finite
    non-negative number either the result is ``"0"``.
    """
    try:
        amount = int(raw, 10)
        if amount < 0:
            raise ValueError(f"negative amount {raw!r}")
        if amount == 0:
            return "0"

        factor = 10 ** decimals
        whole, remainder = divmod(amount, factor)
        digits, rest = divmod(remainder * 10 ** precision, factor)
        if 2 * rest >= factor:
            digits += 1
        if digits == 10 ** precision:
            whole, digits = whole + 1, 0
        frac = str(digits).zfill(precision).rstrip("0") or "0"
        return f"{whole}.{frac}"
    except (TypeError, ValueError) as exc:
        logger.warning(
            "Falling back to float scaling for amount %r (decimals=%s): %s",
            raw,
            decimals,
            exc,
        )
        return _format_amount_float(raw, decimals, precision)


def _format_amount_float(raw: str, decimals: int, precision: int) -> str:
    try:
        value = float(raw) / 10 ** decimals
    except (TypeError, ValueError, OverflowError):
        return "0"
    if not math.isfinite(value) or value < 0:
        return "0"
    return f"{value:.{precision}f}"


def format_display(
    value: Union[str, int, float, Decimal],
    max_fraction_digits: int = 6,
    min_fraction_digits: int = 0,
) -> str:
    """Group a number for presentation, e.g. ``1234.5 -> "1,234.5"``.

    Never use the result for arithmetic.
    """
    try:
        if isinstance(value, str):
            number = Decimal(value.replace(",", "").strip())
        else:
            number = Decimal(str(value))
    except (InvalidOperation, ValueError):
        return str(value)
    if not number.is_finite():
        return str(value)

    text = f"{number:,.{max_fraction_digits}f}"
    if max_fraction_digits > min_fraction_digits and "." in text:
        whole, frac = text.split(".")
        frac = frac.rstrip("0")
        if len(frac) < min_fraction_digits:
            frac = frac.ljust(min_fraction_digits, "0")
        text = f"{whole}.{frac}" if frac else whole
    if text.startswith("-") and Decimal(text.replace(",", "")) == 0:
        text = text[1:]
    return text
