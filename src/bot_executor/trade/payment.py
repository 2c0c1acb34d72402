"""Slippage-bounded AMM swap expressed as a self-payment."""

from __future__ import annotations

from typing import TYPE_CHECKING

from xrpl.models.amounts import IssuedCurrencyAmount
from xrpl.models.transactions import Payment

from bot_executor.trade.currency import sanitize_token, xrp_to_wire
from bot_executor.trade.direction import BUY

if TYPE_CHECKING:
    from bot_executor.models.bot import TargetToken


def slippage_multiplier(slippage: float) -> float:
    return 1 + slippage / 100


def token_amount(token: TargetToken, value: float) -> IssuedCurrencyAmount:
    return IssuedCurrencyAmount(
        currency=token.currency_hex,
        issuer=token.issuer_address,
        value=sanitize_token(value),
    )


def build_swap_payment(
    direction: str,
    address: str,
    token: TargetToken,
    xrp_amount: float,
    estimated_token_amount: float,
    slippage: float,
) -> Payment:
    """
    BUY:  deliver estimated/m tokens, spend at most xrp_amount*m XRP.
    SELL: deliver xrp_amount/m XRP, spend at most estimated*m tokens.
    """
    m = slippage_multiplier(slippage)

    if direction == BUY:
        amount = token_amount(token, estimated_token_amount / m)
        send_max = xrp_to_wire(xrp_amount * m)
    else:
        amount = xrp_to_wire(xrp_amount / m)
        send_max = token_amount(token, estimated_token_amount * m)

    return Payment(
        account=address,
        destination=address,
        amount=amount,
        send_max=send_max,
    )
