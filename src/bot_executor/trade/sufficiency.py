"""Pre-submission balance checks (slippage and reserve aware)."""

from __future__ import annotations

import structlog
from pydantic import BaseModel

from bot_executor.trade.direction import BUY
from bot_executor.trade.errors import ErrorCode

logger = structlog.get_logger()


class SufficiencyResult(BaseModel):
    valid: bool
    error_code: ErrorCode | None = None
    error_message: str | None = None
    required: float = 0.0
    available: float = 0.0


class SufficiencyValidator:
    """
    BUY:  balance - reserve >= xrp_amount * (1 + slippage/100) + fee_margin
    SELL: token_balance    >= estimated_tokens * (1 + slippage/100)
    """

    def __init__(self, reserve_xrp: float = 10.0, fee_margin_xrp: float = 1.0) -> None:
        self.reserve_xrp = reserve_xrp
        self.fee_margin_xrp = fee_margin_xrp

    def check(
        self,
        direction: str,
        xrp_amount: float,
        estimated_token_amount: float,
        slippage: float,
        xrp_balance: float,
        token_balance: float = 0.0,
        token_name: str = "tokens",
    ) -> SufficiencyResult:
        multiplier = 1 + slippage / 100
        if direction == BUY:
            return self._check_xrp(xrp_amount * multiplier + self.fee_margin_xrp, xrp_balance)
        return self._check_token(estimated_token_amount * multiplier, token_balance, token_name)

    def _check_xrp(self, required: float, xrp_balance: float) -> SufficiencyResult:
        available = xrp_balance - self.reserve_xrp
        if available < required:
            logger.warning("insufficient_xrp", required=required, available=available)
            return SufficiencyResult(
                valid=False,
                error_code=ErrorCode.INSUFFICIENT_NATIVE_ASSET,
                error_message=f"Insufficient XRP (need {required:.2f}, have {available:.2f})",
                required=required,
                available=available,
            )
        return SufficiencyResult(valid=True, required=required, available=available)

    def _check_token(self, required: float, token_balance: float, token_name: str) -> SufficiencyResult:
        if token_balance < required:
            logger.warning(
                "insufficient_token", token=token_name, required=required, available=token_balance
            )
            return SufficiencyResult(
                valid=False,
                error_code=ErrorCode.INSUFFICIENT_TOKEN,
                error_message=(
                    f"Insufficient {token_name} (need {required:.4f}, have {token_balance:.4f})"
                ),
                required=required,
                available=token_balance,
            )
        return SufficiencyResult(valid=True, required=required, available=token_balance)
