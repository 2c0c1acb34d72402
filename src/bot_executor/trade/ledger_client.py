"""XRPL websocket RPC wrapper (xrpl-py SDK)."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import structlog
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential
from xrpl.asyncio.clients import AsyncWebsocketClient
from xrpl.asyncio.transaction import submit_and_wait
from xrpl.models.currencies import XRP, IssuedCurrency
from xrpl.models.requests import AccountInfo, AccountLines, AMMInfo
from xrpl.utils import drops_to_xrp
from xrpl.wallet import Wallet

from bot_executor.models.pool import PoolSnapshot
from bot_executor.trade.errors import LedgerError

if TYPE_CHECKING:
    from xrpl.models.requests.request import Request
    from xrpl.models.transactions import Payment

logger = structlog.get_logger()

SUCCESS_RESULT = "tesSUCCESS"

# RPC error codes that describe ledger state rather than a transport problem.
_STATE_ERRORS = {"actNotFound", "actMalformed", "invalidParams"}


def derive_wallet(seed: str) -> Wallet:
    """Signing keypair for a family seed."""
    return Wallet.from_seed(seed)


class LedgerClient:
    """One websocket connection to a ledger node, opened per trade attempt.

    Read queries are bounded by `request_timeout` and retried on transport
    errors; payment submission is bounded by `submit_timeout` and is never
    retried.
    """

    def __init__(
        self,
        url: str,
        request_timeout: float = 15.0,
        submit_timeout: float = 60.0,
    ) -> None:
        self.url = url
        self.request_timeout = request_timeout
        self.submit_timeout = submit_timeout
        self._client: AsyncWebsocketClient | None = None

    def _create_ws_client(self) -> AsyncWebsocketClient:
        """Separated for testability."""
        return AsyncWebsocketClient(self.url)

    @property
    def connected(self) -> bool:
        return self._client is not None and self._client.is_open()

    async def connect(self) -> None:
        self._client = self._create_ws_client()
        await asyncio.wait_for(self._client.open(), timeout=self.request_timeout)
        logger.debug("ledger_connected", url=self.url)

    async def disconnect(self) -> None:
        if self._client is None:
            return
        try:
            await self._client.close()
        except Exception:
            logger.warning("ledger_disconnect_error", url=self.url)
        finally:
            self._client = None

    # --- Queries ---

    async def get_pool_snapshot(self, currency_hex: str, issuer: str) -> PoolSnapshot | None:
        """AMM reserves for the XRP/token pair, or None if no usable pool exists."""
        try:
            result = await self._request(
                AMMInfo(asset=XRP(), asset2=IssuedCurrency(currency=currency_hex, issuer=issuer))
            )
        except LedgerError as e:
            logger.info("amm_info_unavailable", currency=currency_hex, issuer=issuer, error=str(e))
            return None

        amm = result.get("amm")
        if not amm:
            return None

        xrp_reserve = token_reserve = None
        for side in (amm.get("amount"), amm.get("amount2")):
            if isinstance(side, str):
                xrp_reserve = float(drops_to_xrp(side))
            elif isinstance(side, dict):
                token_reserve = float(side.get("value", 0))

        if not xrp_reserve or not token_reserve:
            return None
        return PoolSnapshot(xrp_reserve=xrp_reserve, token_reserve=token_reserve)

    async def get_xrp_balance(self, address: str) -> float:
        """Validated XRP balance in whole XRP."""
        result = await self._request(AccountInfo(account=address, ledger_index="validated"))
        return float(drops_to_xrp(result["account_data"]["Balance"]))

    async def get_token_balance(self, address: str, currency_hex: str, issuer: str) -> float:
        """Trust-line balance towards `issuer`, 0 when no line exists."""
        result = await self._request(
            AccountLines(account=address, peer=issuer, ledger_index="validated")
        )
        for line in result.get("lines", []):
            if line.get("currency") == currency_hex and line.get("account") == issuer:
                return float(line.get("balance", 0))
        return 0.0

    # --- Submission ---

    async def submit_payment(self, payment: Payment, wallet: Wallet) -> dict:
        """Autofill, sign, submit and wait for the validated result."""
        client = self._require_client()
        response = await asyncio.wait_for(
            submit_and_wait(payment, client, wallet),
            timeout=self.submit_timeout,
        )
        return response.result

    # --- Internals ---

    def _require_client(self) -> AsyncWebsocketClient:
        if self._client is None:
            raise LedgerError(f"Not connected to {self.url}")
        return self._client

    @retry(
        retry=retry_if_exception_type((TimeoutError, ConnectionError)),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.5, min=0.5, max=4),
        reraise=True,
    )
    async def _request(self, request: Request) -> dict:
        """Send one RPC request; raises LedgerError on an error response."""
        client = self._require_client()
        response = await asyncio.wait_for(client.request(request), timeout=self.request_timeout)
        if not response.is_successful():
            error = response.result.get("error", "unknown_error")
            if error not in _STATE_ERRORS:
                logger.warning("ledger_request_failed", method=request.method.value, error=error)
            raise LedgerError(f"{request.method.value} failed: {error}")
        return response.result
