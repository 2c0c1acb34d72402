"""PoolSnapshot Pydantic model."""

from datetime import datetime, timezone

from pydantic import BaseModel, Field


class PoolSnapshot(BaseModel):
    xrp_reserve: float  # whole XRP, not drops
    token_reserve: float
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def price(self) -> float:
        """Spot price in XRP per token."""
        return self.xrp_reserve / self.token_reserve
