"""Trade error taxonomy and failure classification."""

from __future__ import annotations

import enum
import re

from pydantic import BaseModel
from xrpl.constants import XRPLException
from xrpl.core.binarycodec.exceptions import XRPLBinaryCodecException
from xrpl.models.exceptions import XRPLModelException

SLIPPAGE_RESULT = "tecPATH_PARTIAL"
UNFUNDED_RESULT_PREFIX = "tecUNFUNDED"
ACCOUNT_NOT_FOUND = "actNotFound"

_RESULT_CODE = re.compile(r"\bte[a-z][A-Z_]+\b")


class ErrorCode(enum.Enum):
    NO_POOL_DATA = "NoPoolData"
    INSUFFICIENT_NATIVE_ASSET = "InsufficientNativeAsset"
    INSUFFICIENT_TOKEN = "InsufficientToken"
    SLIPPAGE_REJECTED = "SlippageRejected"
    UNFUNDED = "Unfunded"
    ADDRESS_MISMATCH = "AddressMismatch"
    TRANSPORT_OR_TIMEOUT = "TransportOrTimeout"
    TRANSACTION_FAILED = "TransactionFailed"
    CONFIG_ERROR = "ConfigError"
    TRADE_FAILED = "TradeFailed"


class LedgerError(Exception):
    """A ledger RPC returned an error response or could not be reached."""


class TransactionFailedError(Exception):
    """The payment validated with an engine result other than tesSUCCESS."""

    def __init__(self, result_code: str) -> None:
        super().__init__(f"Transaction failed: {result_code}")
        self.result_code = result_code


class FailureClassification(BaseModel):
    code: ErrorCode
    message: str
    pause: bool = False


def extract_result_code(message: str) -> str | None:
    match = _RESULT_CODE.search(message)
    return match.group(0) if match else None


def classify_failure(
    exc: BaseException, slippage: float, pause_threshold: float = 25.0
) -> FailureClassification:
    """Map an exception raised during a trade attempt to its error code.

    Slippage rejections pause only once the configured tolerance is already at
    or above `pause_threshold`; unfunded accounts always pause. Everything
    else leaves the bot running so the next pass retries.
    """
    message = str(exc)

    if SLIPPAGE_RESULT in message:
        return FailureClassification(
            code=ErrorCode.SLIPPAGE_REJECTED,
            message=f"Slippage too low ({slippage:g}%)",
            pause=slippage >= pause_threshold,
        )
    if UNFUNDED_RESULT_PREFIX in message or ACCOUNT_NOT_FOUND in message:
        return FailureClassification(
            code=ErrorCode.UNFUNDED, message="Insufficient funds", pause=True
        )
    # Raised while building or encoding the transaction locally; nothing was sent.
    if isinstance(exc, (XRPLBinaryCodecException, XRPLModelException)):
        return FailureClassification(code=ErrorCode.TRADE_FAILED, message="Trade failed")
    if isinstance(exc, TimeoutError):
        return FailureClassification(
            code=ErrorCode.TRANSPORT_OR_TIMEOUT, message="Ledger request timed out"
        )

    result_code = exc.result_code if isinstance(exc, TransactionFailedError) else None
    if result_code is None and isinstance(exc, XRPLException):
        result_code = extract_result_code(message)
    if result_code is not None:
        return FailureClassification(
            code=ErrorCode.TRANSACTION_FAILED, message=f"Transaction failed: {result_code}"
        )

    if isinstance(exc, (LedgerError, XRPLException, ConnectionError, OSError)):
        return FailureClassification(
            code=ErrorCode.TRANSPORT_OR_TIMEOUT, message="Ledger connection failed"
        )
    return FailureClassification(code=ErrorCode.TRADE_FAILED, message="Trade failed")
