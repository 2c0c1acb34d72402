"""DB repository: bot selection, trade journaling and counter updates."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING

import structlog
from sqlalchemy import func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from bot_executor.db.models import BotTradeORM, TokenORM, TradingBotORM, WalletORM
from bot_executor.models.bot import STATUS_PAUSED, STATUS_RUNNING
from bot_executor.trade.direction import BUY

if TYPE_CHECKING:
    from bot_executor.models.trade import TradeRecord

logger = structlog.get_logger()


def _columns(orm) -> dict:
    """Plain column dict for an ORM row."""
    return {column.key: getattr(orm, column.key) for column in orm.__table__.columns}


def _increment(column, delta: float | int):
    """SQL-side `coalesce(column, 0) + delta` so concurrent passes cannot lose updates."""
    if isinstance(delta, float):
        delta = Decimal(repr(delta))
    return func.coalesce(column, 0) + delta


class BotRepository:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self.session_factory = session_factory

    async def get_due_bots(self, due_before: datetime) -> list[dict]:
        """Running bots whose next_trade_time is unset or at/before `due_before`.

        Each row is `{"bot": {...}, "token": {...} | None, "wallet": {...} | None}`;
        token and wallet are outer-joined so a bot with a dangling reference is
        still returned and can be reported.
        """
        async with self.session_factory() as session:
            stmt = (
                select(TradingBotORM, TokenORM, WalletORM)
                .outerjoin(TokenORM, TokenORM.id == TradingBotORM.token_id)
                .outerjoin(WalletORM, WalletORM.address == TradingBotORM.wallet_address)
                .where(TradingBotORM.status == STATUS_RUNNING)
                .where(
                    or_(
                        TradingBotORM.next_trade_time.is_(None),
                        TradingBotORM.next_trade_time <= due_before,
                    )
                )
            )
            result = await session.execute(stmt)
            return [
                {
                    "bot": _columns(bot),
                    "token": _columns(token) if token is not None else None,
                    "wallet": _columns(wallet) if wallet is not None else None,
                }
                for bot, token, wallet in result.all()
            ]

    async def mark_attempt(self, bot_id: str, at: datetime) -> None:
        async with self.session_factory() as session:
            await session.execute(
                update(TradingBotORM)
                .where(TradingBotORM.id == bot_id)
                .values(last_execution_attempt=at)
            )
            await session.commit()

    async def record_success(
        self, record: TradeRecord, executed_at: datetime, next_trade_time: datetime
    ) -> None:
        """Insert the trade and apply counter deltas in one transaction."""
        is_buy = record.trade_type == BUY
        xrp_spent = record.xrp_amount if is_buy else 0.0
        xrp_received = 0.0 if is_buy else record.xrp_amount
        tokens_earned = record.token_amount if is_buy else 0.0
        tokens_spent = 0.0 if is_buy else record.token_amount

        async with self.session_factory() as session:
            session.add(BotTradeORM(**record.model_dump()))
            await session.execute(
                update(TradingBotORM)
                .where(TradingBotORM.id == record.bot_id)
                .values(
                    total_trades=_increment(TradingBotORM.total_trades, 1),
                    successful_trades=_increment(TradingBotORM.successful_trades, 1),
                    total_xrp_spent=_increment(TradingBotORM.total_xrp_spent, xrp_spent),
                    total_xrp_received=_increment(TradingBotORM.total_xrp_received, xrp_received),
                    total_tokens_earned=_increment(TradingBotORM.total_tokens_earned, tokens_earned),
                    total_tokens_spent=_increment(TradingBotORM.total_tokens_spent, tokens_spent),
                    net_profit=(
                        _increment(TradingBotORM.total_xrp_received, xrp_received)
                        - _increment(TradingBotORM.total_xrp_spent, xrp_spent)
                    ),
                    last_trade_time=executed_at,
                    next_trade_time=next_trade_time,
                    last_error=None,
                    last_error_at=None,
                )
            )
            await session.commit()
            logger.info(
                "bot_trade_recorded",
                bot_id=record.bot_id,
                trade_type=record.trade_type,
                tx_hash=record.tx_hash,
            )

    async def record_failure(
        self,
        bot_id: str,
        message: str,
        at: datetime,
        *,
        pause: bool = False,
        count_failure: bool = True,
        next_trade_time: datetime | None = None,
    ) -> None:
        """Store the error, optionally bumping failed_trades, pausing or rescheduling."""
        values: dict = {"last_error": message, "last_error_at": at}
        if count_failure:
            values["failed_trades"] = _increment(TradingBotORM.failed_trades, 1)
        if pause:
            values["status"] = STATUS_PAUSED
        if next_trade_time is not None:
            values["next_trade_time"] = next_trade_time

        async with self.session_factory() as session:
            await session.execute(
                update(TradingBotORM).where(TradingBotORM.id == bot_id).values(**values)
            )
            await session.commit()
            logger.info(
                "bot_failure_recorded",
                bot_id=bot_id,
                error=message,
                paused=pause,
                counted=count_failure,
            )
