"""Single-bot trade attempt: pool -> decide -> validate -> submit -> record."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Callable

import structlog
from pydantic import BaseModel

from bot_executor.models.trade import BotRunResult, TradeRecord
from bot_executor.trade.direction import BUY, DirectionPolicy
from bot_executor.trade.errors import (
    ErrorCode,
    TransactionFailedError,
    classify_failure,
)
from bot_executor.trade.ledger_client import SUCCESS_RESULT, LedgerClient, derive_wallet
from bot_executor.trade.payment import build_swap_payment
from bot_executor.trade.sufficiency import SufficiencyResult, SufficiencyValidator

if TYPE_CHECKING:
    from xrpl.wallet import Wallet

    from bot_executor.config import Settings
    from bot_executor.db.repository import BotRepository
    from bot_executor.models.bot import TradeJob

logger = structlog.get_logger()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def delivered_token_amount(result: dict, fallback: float) -> float:
    """Token amount actually delivered according to transaction metadata."""
    delivered = result.get("meta", {}).get("delivered_amount")
    if isinstance(delivered, dict) and delivered.get("value") is not None:
        return float(delivered["value"])
    return fallback


class _Attempt(BaseModel):
    direction: str
    xrp_amount: float
    estimated_token_amount: float
    price: float
    check: SufficiencyResult
    tx: dict = {}


class BotExecutor:
    """Runs one trade attempt for one bot and writes the outcome back."""

    def __init__(
        self,
        settings: Settings,
        bot_repo: BotRepository,
        direction_policy: DirectionPolicy | None = None,
        validator: SufficiencyValidator | None = None,
        client_factory: Callable[[str], LedgerClient] | None = None,
        wallet_factory: Callable[[str], Wallet] = derive_wallet,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.settings = settings
        self.bot_repo = bot_repo
        self.direction_policy = direction_policy or DirectionPolicy()
        self.validator = validator or SufficiencyValidator(
            reserve_xrp=settings.RESERVE_XRP,
            fee_margin_xrp=settings.FEE_MARGIN_XRP,
        )
        self.client_factory = client_factory or self._default_client
        self.wallet_factory = wallet_factory
        self.clock = clock

    def _default_client(self, url: str) -> LedgerClient:
        return LedgerClient(
            url,
            request_timeout=self.settings.REQUEST_TIMEOUT_SECONDS,
            submit_timeout=self.settings.SUBMIT_TIMEOUT_SECONDS,
        )

    async def execute(self, job: TradeJob) -> BotRunResult:
        """Full attempt for one bot.

        Ledger failures are classified and written back as bot errors;
        persistence failures propagate to the caller.
        """
        bot, wallet = job.bot, job.wallet
        await self.bot_repo.mark_attempt(bot.id, self.clock())

        try:
            signer = self.wallet_factory(wallet.seed.get_secret_value())
        except Exception:
            logger.error("wallet_seed_invalid", bot_id=bot.id, bot_name=bot.name)
            return await self._fail_without_count(job, ErrorCode.CONFIG_ERROR, "Invalid wallet seed")

        if signer.classic_address != wallet.address:
            logger.error(
                "wallet_address_mismatch", bot_id=bot.id, bot_name=bot.name, stored=wallet.address
            )
            return await self._fail_without_count(
                job, ErrorCode.ADDRESS_MISMATCH, "Wallet address mismatch"
            )

        client = self.client_factory(self.settings.ledger_url(wallet.network))
        try:
            attempt = await self._attempt(job, client, signer)
        except Exception as e:
            return await self._fail_counted(job, e)
        finally:
            await client.disconnect()

        if attempt is None:
            return BotRunResult(
                bot_id=bot.id,
                bot_name=bot.name,
                status="skipped",
                error_code=ErrorCode.NO_POOL_DATA.value,
                error=f"No pool data for {job.token.display_name}",
            )
        if not attempt.check.valid:
            return await self._fail_without_count(
                job, attempt.check.error_code, attempt.check.error_message, attempt.direction
            )

        token_amount = (
            delivered_token_amount(attempt.tx, attempt.estimated_token_amount)
            if attempt.direction == BUY
            else attempt.estimated_token_amount
        )
        return await self._record_success(
            job,
            attempt.direction,
            attempt.xrp_amount,
            token_amount,
            attempt.price,
            attempt.tx.get("hash", ""),
        )

    async def _attempt(
        self, job: TradeJob, client: LedgerClient, signer: Wallet
    ) -> _Attempt | None:
        """Ledger side of the attempt. None when the pair has no usable pool."""
        bot, token, wallet = job.bot, job.token, job.wallet
        await client.connect()

        pool = await client.get_pool_snapshot(token.currency_hex, token.issuer_address)
        if pool is None:
            logger.info("no_pool_data", bot_id=bot.id, token=token.display_name)
            return None

        xrp_balance = await client.get_xrp_balance(wallet.address)

        direction = self.direction_policy.decide(bot)
        xrp_amount = self.direction_policy.trade_size(bot)
        estimated_token_amount = xrp_amount / pool.price

        token_balance = 0.0
        if direction != BUY:
            token_balance = await client.get_token_balance(
                wallet.address, token.currency_hex, token.issuer_address
            )

        attempt = _Attempt(
            direction=direction,
            xrp_amount=xrp_amount,
            estimated_token_amount=estimated_token_amount,
            price=pool.price,
            check=self.validator.check(
                direction,
                xrp_amount,
                estimated_token_amount,
                bot.slippage,
                xrp_balance,
                token_balance,
                token_name=token.display_name,
            ),
        )
        if not attempt.check.valid:
            return attempt

        payment = build_swap_payment(
            direction, wallet.address, token, xrp_amount, estimated_token_amount, bot.slippage
        )
        logger.info(
            "submitting_trade",
            bot_id=bot.id,
            direction=direction,
            xrp_amount=xrp_amount,
            estimated_tokens=estimated_token_amount,
            price=pool.price,
        )
        attempt.tx = await client.submit_payment(payment, signer)

        tx_result = attempt.tx.get("meta", {}).get("TransactionResult")
        if tx_result != SUCCESS_RESULT:
            raise TransactionFailedError(str(tx_result))
        return attempt

    async def _record_success(
        self,
        job: TradeJob,
        direction: str,
        xrp_amount: float,
        token_amount: float,
        price: float,
        tx_hash: str,
    ) -> BotRunResult:
        bot = job.bot
        now = self.clock()
        record = TradeRecord(
            bot_id=bot.id,
            trade_type=direction,
            token_amount=token_amount,
            xrp_amount=xrp_amount,
            price=price,
            tx_hash=tx_hash,
            created_at=now,
        )
        await self.bot_repo.record_success(
            record,
            executed_at=now,
            next_trade_time=now + timedelta(minutes=bot.interval),
        )
        logger.info(
            "trade_executed",
            bot_id=bot.id,
            bot_name=bot.name,
            direction=direction,
            token_amount=round(token_amount, 4),
            token=job.token.display_name,
            xrp_amount=xrp_amount,
            tx_hash=tx_hash,
        )
        return BotRunResult(
            bot_id=bot.id,
            bot_name=bot.name,
            status="success",
            direction=direction,
            tx_hash=tx_hash,
        )

    async def _fail_without_count(
        self,
        job: TradeJob,
        code: ErrorCode,
        message: str,
        direction: str | None = None,
    ) -> BotRunResult:
        """Pre-submission failures that need operator attention: pause, keep counters."""
        await self.bot_repo.record_failure(
            job.bot.id, message, self.clock(), pause=True, count_failure=False
        )
        return BotRunResult(
            bot_id=job.bot.id,
            bot_name=job.bot.name,
            status="failed",
            error_code=code.value,
            error=message,
            direction=direction,
        )

    async def _fail_counted(self, job: TradeJob, exc: Exception) -> BotRunResult:
        bot = job.bot
        failure = classify_failure(exc, bot.slippage, self.settings.SLIPPAGE_PAUSE_THRESHOLD)
        logger.error(
            "trade_error",
            bot_id=bot.id,
            bot_name=bot.name,
            code=failure.code.value,
            error=str(exc),
            paused=failure.pause,
        )

        now = self.clock()
        next_trade_time = None
        if self.settings.RESCHEDULE_ON_FAILURE and not failure.pause:
            next_trade_time = now + timedelta(minutes=bot.interval)

        await self.bot_repo.record_failure(
            bot.id,
            failure.message,
            now,
            pause=failure.pause,
            count_failure=True,
            next_trade_time=next_trade_time,
        )
        return BotRunResult(
            bot_id=bot.id,
            bot_name=bot.name,
            status="failed",
            error_code=failure.code.value,
            error=failure.message,
        )
