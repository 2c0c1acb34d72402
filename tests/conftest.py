"""Fixtures for bot executor tests."""

from __future__ import annotations

from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from bot_executor.config import Settings
from bot_executor.models.bot import BotConfig, TradeJob
from bot_executor.models.pool import PoolSnapshot

WALLET_ADDRESS = "rHb9CJAWyB4rj91VRWn96DkukG4bwdtyTh"
ISSUER_ADDRESS = "rwCsCz93A1svS6Yv8hFqUeKLdTLhBpvqGD"
MINT_HEX = "4D494E5400000000000000000000000000000000"


# --- Row helpers ---


def _make_bot_row(**overrides) -> dict:
    row = {
        "id": "bot-1",
        "name": "Mint Accumulator",
        "wallet_address": WALLET_ADDRESS,
        "token_id": "tok-1",
        "status": "running",
        "strategy": "accumulate",
        "interval": 15,
        "min_amount": 1.0,
        "max_amount": 2.0,
        "slippage": 10.0,
        "trade_mode": 50,
        "last_trade_time": None,
        "next_trade_time": None,
        "total_trades": 3,
        "successful_trades": 2,
        "failed_trades": 1,
    }
    row.update(overrides)
    return row


def _make_token_row(**overrides) -> dict:
    row = {
        "id": "tok-1",
        "currency_code": "MINT",
        "issuer_address": ISSUER_ADDRESS,
        "token_name": "MagicMint",
    }
    row.update(overrides)
    return row


def _make_wallet_row(**overrides) -> dict:
    row = {
        "id": "wal-1",
        "address": WALLET_ADDRESS,
        "seed": "sEdTM1uX8pu2do5XvTnutH6HsouMaM2",
        "network": "mainnet",
    }
    row.update(overrides)
    return row


def _make_row(bot: dict | None = None, token: dict | None = None, wallet: dict | None = None) -> dict:
    return {
        "bot": _make_bot_row() if bot is None else bot,
        "token": _make_token_row() if token is None else token,
        "wallet": _make_wallet_row() if wallet is None else wallet,
    }


# --- Factory fixtures ---


@pytest.fixture
def make_bot_row():
    return _make_bot_row


@pytest.fixture
def make_token_row():
    return _make_token_row


@pytest.fixture
def make_wallet_row():
    return _make_wallet_row


@pytest.fixture
def make_row():
    return _make_row


@pytest.fixture
def make_bot():
    def _factory(**overrides) -> BotConfig:
        return BotConfig.model_validate(_make_bot_row(**overrides))

    return _factory


@pytest.fixture
def make_job():
    def _factory(token: dict | None = None, wallet: dict | None = None, **bot_overrides) -> TradeJob:
        return TradeJob.from_row(_make_row(bot=_make_bot_row(**bot_overrides), token=token, wallet=wallet))

    return _factory


# --- Shared fixtures ---


@pytest.fixture
def now() -> datetime:
    return datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def settings() -> Settings:
    return Settings()


@pytest.fixture
def pool() -> PoolSnapshot:
    # 1000 XRP against 2,000,000 MINT: 0.0005 XRP per token
    return PoolSnapshot(xrp_reserve=1000.0, token_reserve=2_000_000.0)


@pytest.fixture
def mock_bot_repo() -> AsyncMock:
    repo = AsyncMock()
    repo.get_due_bots = AsyncMock(return_value=[])
    repo.mark_attempt = AsyncMock()
    repo.record_success = AsyncMock()
    repo.record_failure = AsyncMock()
    return repo


@pytest.fixture
def mock_ledger_client(pool: PoolSnapshot) -> AsyncMock:
    client = AsyncMock()
    client.connect = AsyncMock()
    client.disconnect = AsyncMock()
    client.get_pool_snapshot = AsyncMock(return_value=pool)
    client.get_xrp_balance = AsyncMock(return_value=100.0)
    client.get_token_balance = AsyncMock(return_value=1_000_000.0)
    client.submit_payment = AsyncMock(
        return_value={
            "hash": "E3FE6EA3D48F0C2B639448020EA4F03D4F4F8FFDB243A852A0F59177921B4879",
            "meta": {
                "TransactionResult": "tesSUCCESS",
                "delivered_amount": {
                    "currency": MINT_HEX,
                    "issuer": ISSUER_ADDRESS,
                    "value": "2750",
                },
            },
        }
    )
    return client


@pytest.fixture
def mock_signer() -> MagicMock:
    return MagicMock(classic_address=WALLET_ADDRESS)
