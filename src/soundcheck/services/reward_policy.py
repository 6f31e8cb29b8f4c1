"""
SoundCheck Reward Policies
How many credits a rater earns for one accepted rating
"""

import math
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from ..core.config import get_settings
from ..database.models import TransactionType
from .credit_ledger import CreditLedger


@dataclass
class RewardContext:
    """State visible to a policy after the rating and counters were written"""
    ledger: CreditLedger
    rater_id: str
    track_id: str
    snippet_seconds: Optional[float]
    rating_progress: int


class RewardPolicy(ABC):
    """Pluggable reward rule applied inside the rating transaction"""

    # Whether the rater's rating_progress counter advances with each rating
    uses_progress: bool = False

    @abstractmethod
    async def compute_reward(self, context: RewardContext) -> int:
        """Apply the reward and return the credits granted"""

    def display_progress(self, rating_progress: int) -> int:
        return rating_progress


class MilestoneRewardPolicy(RewardPolicy):
    """Fixed credit every N ratings, consumed by a guarded compare-and-reset"""

    uses_progress = True

    def __init__(self, ratings_per_credit: int = 5, credits: int = 1):
        if ratings_per_credit <= 0 or credits <= 0:
            raise ValueError("Milestone reward needs positive thresholds")
        self.ratings_per_credit = ratings_per_credit
        self.credits = credits

    async def compute_reward(self, context: RewardContext) -> int:
        if context.rating_progress < self.ratings_per_credit:
            return 0

        new_balance = await context.ledger.profiles.reset_progress_and_award(
            context.rater_id, self.ratings_per_credit, self.credits
        )
        if new_balance is None:
            # Another request already consumed this progress bar
            return 0

        await context.ledger.record(
            context.rater_id,
            self.credits,
            TransactionType.RATING_REWARD,
            new_balance,
            context.track_id
        )
        return self.credits

    def display_progress(self, rating_progress: int) -> int:
        return max(0, min(rating_progress, self.ratings_per_credit - 1))


class DurationRewardPolicy(RewardPolicy):
    """Credits proportional to the length of the rated snippet"""

    def __init__(self, seconds_per_credit: float = 30.0):
        if seconds_per_credit <= 0:
            raise ValueError("seconds_per_credit must be positive")
        self.seconds_per_credit = seconds_per_credit

    def credits_for(self, snippet_seconds: Optional[float]) -> int:
        if not snippet_seconds or snippet_seconds <= 0:
            return 1
        return max(1, math.ceil(snippet_seconds / self.seconds_per_credit))

    async def compute_reward(self, context: RewardContext) -> int:
        amount = self.credits_for(context.snippet_seconds)
        await context.ledger.award(
            context.rater_id,
            amount,
            TransactionType.RATING_REWARD,
            context.track_id
        )
        return amount


def get_reward_policy(settings=None) -> RewardPolicy:
    """Build the policy named by REWARD_POLICY"""
    settings = settings or get_settings()
    if settings.REWARD_POLICY == "duration":
        return DurationRewardPolicy(settings.REWARD_SECONDS_PER_CREDIT)
    return MilestoneRewardPolicy(
        settings.RATINGS_PER_CREDIT,
        settings.MILESTONE_REWARD_CREDITS
    )
