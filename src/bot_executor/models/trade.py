"""TradeRecord, BotRunResult, PassSummary Pydantic models."""

from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class TradeRecord(BaseModel):
    bot_id: str
    trade_type: str  # BUY, SELL
    token_amount: float
    xrp_amount: float
    price: float
    tx_hash: str
    status: str = "success"
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class BotRunResult(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    bot_id: str
    bot_name: str = ""
    status: str  # success, skipped, failed, error
    error_code: str | None = None
    error: str | None = None
    direction: str | None = None
    tx_hash: str | None = None


class PassSummary(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    success: bool = True
    message: str | None = None
    executed: int = 0
    total: int = 0
    results: list[BotRunResult] = []
    checked_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def from_results(cls, results: list[BotRunResult], checked_at: datetime) -> "PassSummary":
        return cls(
            executed=sum(1 for r in results if r.status == "success"),
            total=len(results),
            results=results,
            checked_at=checked_at,
        )

    def to_response(self) -> dict:
        """camelCase JSON body, omitting unset optional fields."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
