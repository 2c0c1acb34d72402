"""BUY/SELL decision for a single attempt."""

from __future__ import annotations

import random
from typing import TYPE_CHECKING

from bot_executor.models.bot import STRATEGY_ACCUMULATE, STRATEGY_DISTRIBUTE

if TYPE_CHECKING:
    from bot_executor.models.bot import BotConfig

BUY = "BUY"
SELL = "SELL"

ACCUMULATE_BUY_PCT = 75.0
DISTRIBUTE_BUY_PCT = 25.0


class DirectionPolicy:
    """
    Probabilistic direction choice:
    | Strategy    | P(BUY)          |
    |-------------|-----------------|
    | accumulate  | 75%             |
    | distribute  | 25%             |
    | other       | trade_mode %    |

    Holdings are not consulted; a SELL with nothing to sell is caught by
    SufficiencyValidator.
    """

    def __init__(self, rng: random.Random | None = None) -> None:
        self.rng = rng or random.Random()

    def buy_probability(self, bot: BotConfig) -> float:
        if bot.strategy == STRATEGY_ACCUMULATE:
            return ACCUMULATE_BUY_PCT
        if bot.strategy == STRATEGY_DISTRIBUTE:
            return DISTRIBUTE_BUY_PCT
        return bot.trade_mode

    def decide(self, bot: BotConfig) -> str:
        r = self.rng.random() * 100
        return BUY if r < self.buy_probability(bot) else SELL

    def trade_size(self, bot: BotConfig) -> float:
        """XRP amount drawn uniformly from [min_amount, max_amount]."""
        return self.rng.uniform(bot.min_amount, bot.max_amount)
