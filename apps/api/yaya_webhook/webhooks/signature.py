"""Canonical serialization and HMAC signing for YaYa webhook payloads."""

import hashlib
import hmac
import math
from decimal import Decimal
from typing import Any

from yaya_webhook.webhooks.payload import SIGNED_FIELDS, TransactionPayload


# Outside [1e-6, 1e21) numbers render in exponent form ("1e-7", "1e+21").
_PLAIN_MIN = 1e-6
_PLAIN_MAX = 1e21


def _render_float(value: float) -> str:
    """Render a float with the shortest round-trip digits, JavaScript style."""
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "Infinity" if value > 0 else "-Infinity"
    if value == 0:
        return "0"

    digits = repr(value)
    if _PLAIN_MIN <= abs(value) < _PLAIN_MAX:
        number = Decimal(digits)
        if value.is_integer():
            number = number.to_integral_value()
        return format(number, "f")

    mantissa, _, exponent = digits.partition("e")
    power = int(exponent)
    return f"{mantissa}e{'+' if power >= 0 else '-'}{abs(power)}"


def render_value(value: Any) -> str:
    """Render a field the way the provider does before signing.

    Integral numbers never carry a decimal point, so ``100.0`` signs as ``100``.
    """
    if isinstance(value, float):
        return _render_float(value)
    return str(value)


def canonical_payload(payload: TransactionPayload) -> str:
    """Concatenate the signed fields in their fixed order, with no separators."""
    return "".join(render_value(getattr(payload, name)) for name in SIGNED_FIELDS)


def compute_signature(payload: TransactionPayload, secret: str) -> str:
    """Compute the lowercase hex HMAC-SHA256 of the canonical payload."""
    return hmac.new(
        secret.encode("utf-8"),
        canonical_payload(payload).encode("utf-8"),
        hashlib.sha256,
    ).hexdigest()


def signatures_match(expected: str, received: str) -> bool:
    """Constant-time comparison of two signatures."""
    return hmac.compare_digest(expected.encode("utf-8"), received.encode("utf-8"))
