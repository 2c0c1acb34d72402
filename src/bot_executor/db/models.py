"""SQLAlchemy ORM models for the dashboard tables the executor reads and writes."""

from datetime import datetime

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


class TokenORM(Base):
    __tablename__ = "tokens"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    currency_code: Mapped[str] = mapped_column(String(40), nullable=False)
    issuer_address: Mapped[str] = mapped_column(String(64), nullable=False)
    token_name: Mapped[str | None] = mapped_column(String(100))


class WalletORM(Base):
    __tablename__ = "wallets"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    address: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    seed: Mapped[str | None] = mapped_column(Text)
    network: Mapped[str | None] = mapped_column(String(20), default="mainnet")


class TradingBotORM(Base):
    __tablename__ = "trading_bots"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    wallet_address: Mapped[str] = mapped_column(
        String(64), ForeignKey("wallets.address"), nullable=False
    )
    token_id: Mapped[str] = mapped_column(String(36), ForeignKey("tokens.id"), nullable=False)
    status: Mapped[str] = mapped_column(
        String(10),
        CheckConstraint("status IN ('running', 'paused', 'stopped')"),
        default="stopped",
    )
    strategy: Mapped[str | None] = mapped_column(String(30))
    interval: Mapped[int] = mapped_column(Integer, nullable=False)
    min_amount: Mapped[float] = mapped_column(Numeric(20, 6), nullable=False)
    max_amount: Mapped[float] = mapped_column(Numeric(20, 6), nullable=False)
    slippage: Mapped[float] = mapped_column(Numeric(6, 2), default=1.0)
    trade_mode: Mapped[float | None] = mapped_column(Numeric(5, 2), default=50)
    last_trade_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    next_trade_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    last_execution_attempt: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    total_trades: Mapped[int | None] = mapped_column(Integer, default=0)
    successful_trades: Mapped[int | None] = mapped_column(Integer, default=0)
    failed_trades: Mapped[int | None] = mapped_column(Integer, default=0)
    total_xrp_spent: Mapped[float | None] = mapped_column(Numeric(30, 6), default=0)
    total_xrp_received: Mapped[float | None] = mapped_column(Numeric(30, 6), default=0)
    total_tokens_earned: Mapped[float | None] = mapped_column(Numeric(40, 15), default=0)
    total_tokens_spent: Mapped[float | None] = mapped_column(Numeric(40, 15), default=0)
    net_profit: Mapped[float | None] = mapped_column(Numeric(30, 6), default=0)

    last_error: Mapped[str | None] = mapped_column(Text)
    last_error_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    __table_args__ = (
        Index("idx_trading_bots_status", "status"),
        Index("idx_trading_bots_next_trade", "next_trade_time"),
    )


class BotTradeORM(Base):
    __tablename__ = "bot_trades"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    bot_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("trading_bots.id"), nullable=False
    )
    trade_type: Mapped[str] = mapped_column(
        String(4),
        CheckConstraint("trade_type IN ('BUY', 'SELL')"),
        nullable=False,
    )
    token_amount: Mapped[float] = mapped_column(Numeric(40, 15), nullable=False)
    xrp_amount: Mapped[float] = mapped_column(Numeric(30, 6), nullable=False)
    price: Mapped[float] = mapped_column(Numeric(30, 15), nullable=False)
    tx_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    status: Mapped[str] = mapped_column(String(10), default="success")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        Index("idx_bot_trades_bot", "bot_id"),
        Index("idx_bot_trades_created", created_at.desc()),
    )
