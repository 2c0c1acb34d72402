"""BotConfig, TargetToken, SigningWallet, TradeJob Pydantic models."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field, SecretStr, field_validator, model_validator

from bot_executor.trade.currency import encode_currency_code

STATUS_RUNNING = "running"
STATUS_PAUSED = "paused"
STATUS_STOPPED = "stopped"

STRATEGY_ACCUMULATE = "accumulate"
STRATEGY_DISTRIBUTE = "distribute"

DEFAULT_TRADE_MODE = 50.0


class BotConfig(BaseModel):
    id: str
    name: str = ""
    wallet_address: str
    token_id: str
    status: str = STATUS_RUNNING  # running, paused, stopped
    strategy: str = ""  # accumulate, distribute, anything else = custom
    interval: int = Field(gt=0)  # minutes
    min_amount: float = Field(gt=0)
    max_amount: float = Field(gt=0)
    slippage: float = Field(default=1.0, ge=0)  # percent
    trade_mode: float = Field(default=DEFAULT_TRADE_MODE, ge=0, le=100)
    last_trade_time: datetime | None = None
    next_trade_time: datetime | None = None
    last_execution_attempt: datetime | None = None

    total_trades: int = 0
    successful_trades: int = 0
    failed_trades: int = 0
    total_xrp_spent: float = 0.0
    total_xrp_received: float = 0.0
    total_tokens_earned: float = 0.0
    total_tokens_spent: float = 0.0
    net_profit: float = 0.0

    last_error: str | None = None
    last_error_at: datetime | None = None

    @field_validator("trade_mode", mode="before")
    @classmethod
    def _default_trade_mode(cls, value):
        return DEFAULT_TRADE_MODE if value is None else value

    @field_validator(
        "total_trades",
        "successful_trades",
        "failed_trades",
        "total_xrp_spent",
        "total_xrp_received",
        "total_tokens_earned",
        "total_tokens_spent",
        "net_profit",
        mode="before",
    )
    @classmethod
    def _null_counter_is_zero(cls, value):
        return 0 if value is None else value

    @model_validator(mode="after")
    def _check_amount_range(self) -> BotConfig:
        if self.min_amount > self.max_amount:
            raise ValueError(
                f"min_amount ({self.min_amount}) must not exceed max_amount ({self.max_amount})"
            )
        return self


class TargetToken(BaseModel):
    id: str
    currency_code: str = Field(min_length=1)
    issuer_address: str = Field(min_length=1)
    token_name: str = ""

    @field_validator("currency_code")
    @classmethod
    def _fits_currency_field(cls, value: str) -> str:
        if len(value) > 3 and len(value.encode("utf-8")) > 20:
            raise ValueError(f"currency_code '{value}' is longer than 20 bytes")
        return value

    @field_validator("issuer_address")
    @classmethod
    def _classic_address(cls, value: str) -> str:
        if not value.startswith("r"):
            raise ValueError(f"issuer_address '{value}' is not a classic address")
        return value

    @property
    def currency_hex(self) -> str:
        return encode_currency_code(self.currency_code)

    @property
    def display_name(self) -> str:
        return self.token_name or self.currency_code


class SigningWallet(BaseModel):
    address: str = Field(min_length=1)
    seed: SecretStr
    network: str = "mainnet"  # mainnet, testnet

    @field_validator("seed")
    @classmethod
    def _seed_present(cls, value: SecretStr) -> SecretStr:
        if not value.get_secret_value().strip():
            raise ValueError("wallet seed is empty")
        return value

    @field_validator("network", mode="before")
    @classmethod
    def _default_network(cls, value):
        return value or "mainnet"


class TradeJob(BaseModel):
    """One bot joined with the token it trades and the wallet that signs."""

    bot: BotConfig
    token: TargetToken
    wallet: SigningWallet

    @classmethod
    def from_row(cls, row: dict) -> TradeJob:
        """Build from a `{"bot", "token", "wallet"}` row; raises ValueError on bad config."""
        if row.get("token") is None:
            raise ValueError("token row is missing")
        if row.get("wallet") is None:
            raise ValueError("wallet row is missing")
        return cls.model_validate(row)
