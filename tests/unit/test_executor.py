"""Unit tests for BotExecutor (ledger client and repository mocked)."""

from __future__ import annotations

import random
from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest
from xrpl.asyncio.transaction import XRPLReliableSubmissionException
from xrpl.core.binarycodec import encode
from xrpl.models.transactions import Payment

from bot_executor.config import Settings
from bot_executor.models.trade import TradeRecord
from bot_executor.trade.currency import xrp_to_wire
from bot_executor.trade.direction import BUY, SELL, DirectionPolicy
from bot_executor.trade.errors import ErrorCode
from bot_executor.trade.executor import BotExecutor, delivered_token_amount


def _policy(direction: str, size: float = 1.5) -> MagicMock:
    policy = MagicMock(spec=DirectionPolicy)
    policy.decide = MagicMock(return_value=direction)
    policy.trade_size = MagicMock(return_value=size)
    return policy


@pytest.fixture
def client_factory(mock_ledger_client: AsyncMock) -> MagicMock:
    return MagicMock(return_value=mock_ledger_client)


@pytest.fixture
def make_executor(settings, mock_bot_repo, client_factory, mock_signer, now):
    def _factory(policy=None, settings_override: Settings | None = None, signer=None) -> BotExecutor:
        return BotExecutor(
            settings=settings_override or settings,
            bot_repo=mock_bot_repo,
            direction_policy=policy or _policy(BUY),
            client_factory=client_factory,
            wallet_factory=MagicMock(return_value=signer or mock_signer),
            clock=lambda: now,
        )

    return _factory


# --- Successful trades ---


class TestBuy:
    async def test_records_trade_and_reschedules(
        self, make_executor, make_job, mock_bot_repo, mock_ledger_client, now
    ) -> None:
        job = make_job(interval=15)
        result = await make_executor(_policy(BUY, 1.5)).execute(job)

        assert result.status == "success"
        assert result.direction == BUY
        mock_bot_repo.mark_attempt.assert_awaited_once_with("bot-1", now)
        mock_bot_repo.record_success.assert_awaited_once()
        record: TradeRecord = mock_bot_repo.record_success.call_args[0][0]
        assert record.trade_type == BUY
        assert record.xrp_amount == 1.5
        assert record.token_amount == 2750.0  # delivered_amount from metadata
        assert record.price == pytest.approx(0.0005)
        assert record.tx_hash.startswith("E3FE6EA3")
        kwargs = mock_bot_repo.record_success.call_args.kwargs
        assert kwargs["executed_at"] == now
        assert kwargs["next_trade_time"] == now + timedelta(minutes=15)
        mock_bot_repo.record_failure.assert_not_called()
        mock_ledger_client.disconnect.assert_awaited_once()

    async def test_submits_slippage_bounded_payment(
        self, make_executor, make_job, mock_ledger_client
    ) -> None:
        await make_executor(_policy(BUY, 1.5)).execute(make_job(slippage=10.0))

        payment = mock_ledger_client.submit_payment.call_args[0][0]
        assert isinstance(payment, Payment)
        assert payment.account == payment.destination == "rHb9CJAWyB4rj91VRWn96DkukG4bwdtyTh"
        assert payment.send_max == xrp_to_wire(1.5 * 1.1)
        assert float(payment.amount.value) == pytest.approx(1.5 / 0.0005 / 1.1, rel=1e-9)

    async def test_buy_does_not_query_token_balance(
        self, make_executor, make_job, mock_ledger_client
    ) -> None:
        await make_executor(_policy(BUY)).execute(make_job())
        mock_ledger_client.get_token_balance.assert_not_called()

    async def test_estimate_used_without_delivered_amount(
        self, make_executor, make_job, mock_bot_repo, mock_ledger_client
    ) -> None:
        mock_ledger_client.submit_payment.return_value = {
            "hash": "ABC",
            "meta": {"TransactionResult": "tesSUCCESS"},
        }
        await make_executor(_policy(BUY, 1.0)).execute(make_job())
        record = mock_bot_repo.record_success.call_args[0][0]
        assert record.token_amount == pytest.approx(2000.0)


class TestSell:
    async def test_covered_sell_records_estimate(
        self, make_executor, make_job, mock_bot_repo, mock_ledger_client, pool
    ) -> None:
        estimated = 2.0 / pool.price
        mock_ledger_client.get_token_balance.return_value = estimated * (1 + 50.0 / 100)

        result = await make_executor(_policy(SELL, 2.0)).execute(make_job(slippage=50.0))

        assert result.status == "success"
        record = mock_bot_repo.record_success.call_args[0][0]
        assert record.trade_type == SELL
        assert record.xrp_amount == 2.0
        assert record.token_amount == estimated
        payment = mock_ledger_client.submit_payment.call_args[0][0]
        assert payment.amount == xrp_to_wire(2.0 / 1.5)

    async def test_uncovered_sell_pauses_without_submitting(
        self, make_executor, make_job, mock_bot_repo, mock_ledger_client, now
    ) -> None:
        mock_ledger_client.get_token_balance.return_value = 10.0

        result = await make_executor(_policy(SELL, 2.0)).execute(make_job())

        assert result.status == "failed"
        assert result.error_code == ErrorCode.INSUFFICIENT_TOKEN.value
        assert result.error.startswith("Insufficient MagicMint")
        mock_ledger_client.submit_payment.assert_not_called()
        mock_bot_repo.record_success.assert_not_called()
        mock_bot_repo.record_failure.assert_awaited_once_with(
            "bot-1", result.error, now, pause=True, count_failure=False
        )


class TestSeededRun:
    async def test_accumulate_bot_with_seeded_rng(
        self, make_executor, make_job, mock_bot_repo
    ) -> None:
        policy = DirectionPolicy(rng=random.Random(42))
        result = await make_executor(policy).execute(make_job(strategy="accumulate"))

        assert result.status == "success"
        record = mock_bot_repo.record_success.call_args[0][0]
        assert 1.0 <= record.xrp_amount <= 2.0


class TestLedgerReads:
    async def test_xrp_balance_is_read_before_direction(
        self, make_executor, make_job, mock_ledger_client
    ) -> None:
        policy = _policy(BUY)
        seen = []
        policy.decide.side_effect = lambda bot: seen.append(
            mock_ledger_client.get_xrp_balance.await_count
        ) or BUY

        await make_executor(policy).execute(make_job())

        assert seen == [1]

    @pytest.mark.parametrize("direction", [BUY, SELL])
    async def test_fractional_size_payment_encodes(
        self, make_executor, make_job, mock_bot_repo, mock_ledger_client, direction
    ) -> None:
        mock_ledger_client.get_token_balance.return_value = 1_000_000.0

        async def submit(payment, signer):
            encode({**payment.to_xrpl(), "Sequence": 1, "Fee": "12"})
            return {"hash": "ABC", "meta": {"TransactionResult": "tesSUCCESS"}}

        mock_ledger_client.submit_payment.side_effect = submit

        result = await make_executor(_policy(direction, 1 + 1 / 137)).execute(
            make_job(slippage=1.0)
        )

        assert result.status == "success"
        mock_bot_repo.record_failure.assert_not_called()


# --- Pre-submission failures ---


class TestPreSubmission:
    async def test_insufficient_xrp_pauses(
        self, make_executor, make_job, mock_bot_repo, mock_ledger_client
    ) -> None:
        mock_ledger_client.get_xrp_balance.return_value = 5.0

        result = await make_executor(_policy(BUY)).execute(make_job())

        assert result.error_code == ErrorCode.INSUFFICIENT_NATIVE_ASSET.value
        mock_ledger_client.submit_payment.assert_not_called()
        kwargs = mock_bot_repo.record_failure.call_args.kwargs
        assert kwargs == {"pause": True, "count_failure": False}

    async def test_no_pool_skips_without_write_back(
        self, make_executor, make_job, mock_bot_repo, mock_ledger_client
    ) -> None:
        mock_ledger_client.get_pool_snapshot.return_value = None

        result = await make_executor().execute(make_job())

        assert result.status == "skipped"
        assert result.error_code == ErrorCode.NO_POOL_DATA.value
        assert result.error == "No pool data for MagicMint"
        mock_bot_repo.record_failure.assert_not_called()
        mock_bot_repo.record_success.assert_not_called()
        mock_ledger_client.disconnect.assert_awaited_once()

    async def test_address_mismatch_never_connects(
        self, make_executor, make_job, mock_bot_repo, client_factory, now
    ) -> None:
        other = MagicMock(classic_address="rPT1Sjq2YGrBMTttX4GZHjKu9dyfzbpAYe")

        result = await make_executor(signer=other).execute(make_job())

        assert result.status == "failed"
        assert result.error_code == ErrorCode.ADDRESS_MISMATCH.value
        client_factory.assert_not_called()
        mock_bot_repo.record_success.assert_not_called()
        mock_bot_repo.record_failure.assert_awaited_once_with(
            "bot-1", "Wallet address mismatch", now, pause=True, count_failure=False
        )

    async def test_invalid_seed_pauses(
        self, settings, make_job, mock_bot_repo, client_factory, now
    ) -> None:
        executor = BotExecutor(
            settings=settings,
            bot_repo=mock_bot_repo,
            client_factory=client_factory,
            wallet_factory=MagicMock(side_effect=ValueError("bad seed")),
            clock=lambda: now,
        )

        result = await executor.execute(make_job())

        assert result.error_code == ErrorCode.CONFIG_ERROR.value
        client_factory.assert_not_called()
        mock_bot_repo.record_failure.assert_awaited_once_with(
            "bot-1", "Invalid wallet seed", now, pause=True, count_failure=False
        )


# --- Submission failures ---


class TestSubmissionFailures:
    async def test_path_partial_below_threshold_keeps_running(
        self, make_executor, make_job, mock_bot_repo, mock_ledger_client, now
    ) -> None:
        mock_ledger_client.submit_payment.side_effect = XRPLReliableSubmissionException(
            "Transaction failed: tecPATH_PARTIAL"
        )

        result = await make_executor().execute(make_job(slippage=10.0))

        assert result.error_code == ErrorCode.SLIPPAGE_REJECTED.value
        assert result.error == "Slippage too low (10%)"
        mock_bot_repo.record_failure.assert_awaited_once_with(
            "bot-1",
            "Slippage too low (10%)",
            now,
            pause=False,
            count_failure=True,
            next_trade_time=None,
        )
        mock_bot_repo.record_success.assert_not_called()

    async def test_path_partial_at_high_slippage_pauses(
        self, make_executor, make_job, mock_bot_repo, mock_ledger_client
    ) -> None:
        mock_ledger_client.submit_payment.side_effect = XRPLReliableSubmissionException(
            "Transaction failed: tecPATH_PARTIAL"
        )
        mock_ledger_client.get_xrp_balance.return_value = 1000.0

        await make_executor().execute(make_job(slippage=30.0))

        kwargs = mock_bot_repo.record_failure.call_args.kwargs
        assert kwargs["pause"] is True
        assert kwargs["count_failure"] is True

    async def test_non_success_result_is_a_failure(
        self, make_executor, make_job, mock_bot_repo, mock_ledger_client
    ) -> None:
        mock_ledger_client.submit_payment.return_value = {
            "hash": "ABC",
            "meta": {"TransactionResult": "tecPATH_DRY"},
        }

        result = await make_executor().execute(make_job())

        assert result.error_code == ErrorCode.TRANSACTION_FAILED.value
        assert result.error == "Transaction failed: tecPATH_DRY"
        mock_bot_repo.record_success.assert_not_called()

    async def test_unfunded_pauses(
        self, make_executor, make_job, mock_bot_repo, mock_ledger_client
    ) -> None:
        mock_ledger_client.submit_payment.side_effect = XRPLReliableSubmissionException(
            "Transaction failed: tecUNFUNDED_PAYMENT"
        )

        result = await make_executor().execute(make_job())

        assert result.error == "Insufficient funds"
        assert mock_bot_repo.record_failure.call_args.kwargs["pause"] is True

    async def test_timeout_counts_failure_and_disconnects(
        self, make_executor, make_job, mock_bot_repo, mock_ledger_client
    ) -> None:
        mock_ledger_client.get_pool_snapshot.side_effect = TimeoutError()

        result = await make_executor().execute(make_job())

        assert result.error_code == ErrorCode.TRANSPORT_OR_TIMEOUT.value
        kwargs = mock_bot_repo.record_failure.call_args.kwargs
        assert kwargs["pause"] is False
        assert kwargs["count_failure"] is True
        mock_ledger_client.disconnect.assert_awaited_once()

    async def test_reschedule_on_failure(
        self, make_executor, make_job, mock_bot_repo, mock_ledger_client, now
    ) -> None:
        mock_ledger_client.connect.side_effect = ConnectionRefusedError()

        await make_executor(settings_override=Settings(RESCHEDULE_ON_FAILURE=True)).execute(
            make_job(interval=30)
        )

        kwargs = mock_bot_repo.record_failure.call_args.kwargs
        assert kwargs["next_trade_time"] == now + timedelta(minutes=30)

    async def test_paused_bot_is_not_rescheduled(
        self, make_executor, make_job, mock_bot_repo, mock_ledger_client
    ) -> None:
        mock_ledger_client.submit_payment.side_effect = XRPLReliableSubmissionException(
            "Transaction failed: tecUNFUNDED_PAYMENT"
        )

        await make_executor(settings_override=Settings(RESCHEDULE_ON_FAILURE=True)).execute(
            make_job()
        )

        assert mock_bot_repo.record_failure.call_args.kwargs["next_trade_time"] is None


# --- Persistence and routing ---


class TestPersistence:
    async def test_repository_error_propagates(
        self, make_executor, make_job, mock_bot_repo
    ) -> None:
        mock_bot_repo.record_success.side_effect = RuntimeError("database unavailable")

        with pytest.raises(RuntimeError, match="database unavailable"):
            await make_executor().execute(make_job())
        mock_bot_repo.record_failure.assert_not_called()

    async def test_testnet_wallet_uses_testnet_node(
        self, make_executor, make_wallet_row, make_job, client_factory, settings
    ) -> None:
        job = make_job(wallet=make_wallet_row(network="testnet"))
        await make_executor().execute(job)
        client_factory.assert_called_once_with(settings.XRPL_TESTNET_URL)

    async def test_mainnet_wallet_uses_mainnet_node(
        self, make_executor, make_job, client_factory, settings
    ) -> None:
        await make_executor().execute(make_job())
        client_factory.assert_called_once_with(settings.XRPL_MAINNET_URL)


class TestDeliveredTokenAmount:
    def test_reads_issued_amount(self) -> None:
        result = {"meta": {"delivered_amount": {"currency": "USD", "issuer": "r", "value": "12.5"}}}
        assert delivered_token_amount(result, 1.0) == 12.5

    def test_falls_back_for_drops_or_missing(self) -> None:
        assert delivered_token_amount({"meta": {"delivered_amount": "1000"}}, 3.0) == 3.0
        assert delivered_token_amount({}, 3.0) == 3.0
