"""Shared constants and small helpers for token lifecycle tracking."""

import math
from datetime import datetime, timezone
from decimal import Decimal


def utc_now() -> datetime:
    """Get current UTC time as timezone-aware datetime."""
    return datetime.now(timezone.utc)


def format_number(value: float) -> str:
    """Render a number like JavaScript ``Number.prototype.toString``.

    ``500.0`` renders as ``500``, ``1e-7`` as ``1e-7`` and ``1e21`` as ``1e+21``.
    Plain notation is used while the decimal exponent lies in ``[-7, 21)``.
    """
    if isinstance(value, bool):
        return str(int(value))
    if isinstance(value, int) and abs(value) < 10**21:
        return str(value)
    value = float(value)
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "Infinity" if value > 0 else "-Infinity"
    if value == 0:
        return "0"
    sign = "-" if value < 0 else ""
    # repr gives the shortest round-tripping digits, as JS does.
    _, digit_tuple, exponent = Decimal(repr(abs(value))).as_tuple()
    digits = "".join(str(digit) for digit in digit_tuple).rstrip("0")
    exponent += len(digit_tuple) - len(digits)
    k = len(digits)
    n = exponent + k
    if k <= n <= 21:
        body = digits + "0" * (n - k)
    elif 0 < n <= 21:
        body = f"{digits[:n]}.{digits[n:]}"
    elif -6 < n <= 0:
        body = "0." + "0" * -n + digits
    else:
        mantissa = digits if k == 1 else f"{digits[0]}.{digits[1:]}"
        body = f"{mantissa}e{'+' if n - 1 > 0 else '-'}{abs(n - 1)}"
    return sign + body


# Rug pull heuristic: drawdown from the first recorded price.
RUG_PULL_DRAWDOWN = -0.90

# Identical (token, type) alerts inside this window are suppressed.
ALERT_DEDUP_WINDOW_SECONDS = 10 * 60

__all__ = [
    "utc_now",
    "format_number",
    "RUG_PULL_DRAWDOWN",
    "ALERT_DEDUP_WINDOW_SECONDS",
]
