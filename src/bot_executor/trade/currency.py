"""Currency-code encoding and wire-amount sanitization."""

from __future__ import annotations

import math
import re
from decimal import ROUND_DOWN, Context, Decimal

from xrpl.utils import xrp_to_drops

CURRENCY_HEX_LENGTH = 40
XRP_DECIMALS = Decimal("0.000001")
TOKEN_DECIMALS = Decimal("1e-15")
TOKEN_SIGNIFICANT_DIGITS = 15

_TRAILING_ZEROS = re.compile(r"\.?0+$")
_WIDE_CONTEXT = Context(prec=60)


def encode_currency_code(code: str) -> str:
    """Codes of up to 3 characters pass through, longer ones become 40-char hex."""
    if len(code) <= 3:
        return code
    return code.encode("utf-8").hex().upper().ljust(CURRENCY_HEX_LENGTH, "0")


def sanitize_xrp(amount: float) -> str:
    """Truncate an XRP amount to whole drops (6 decimals), never rounding up."""
    value = Decimal(repr(float(amount))).quantize(
        XRP_DECIMALS, rounding=ROUND_DOWN, context=_WIDE_CONTEXT
    )
    return format(value.normalize(context=_WIDE_CONTEXT), "f")


def xrp_to_wire(amount: float) -> str:
    """Integral drops string for an XRP payment field."""
    return xrp_to_drops(Decimal(sanitize_xrp(amount)))


def sanitize_token(amount: float) -> str:
    """At most 15 fractional and 15 significant digits, truncated.

    Issued-currency values carry at most 16 significant digits on the wire.
    Trailing zeros are dropped, "0" when empty.
    """
    if not math.isfinite(amount):
        return "0"
    value = Decimal(repr(float(amount)))
    if value.is_zero():
        return "0"
    exponent = max(TOKEN_DECIMALS.adjusted(), value.adjusted() - TOKEN_SIGNIFICANT_DIGITS + 1)
    value = value.quantize(
        Decimal(1).scaleb(exponent), rounding=ROUND_DOWN, context=_WIDE_CONTEXT
    )
    text = format(value, "f")
    if "." in text:
        text = _TRAILING_ZEROS.sub("", text)
    return text or "0"
