"""
In-memory AI usage quotas per user
"""
import logging
import math
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Optional

from futuresync.config import AI_QUOTAS, TOKEN_COSTS

logger = logging.getLogger(__name__)

@dataclass
class UserQuota:
    monthly_tokens_used: int = 0
    monthly_api_calls: int = 0
    daily_api_calls: int = 0
    last_reset_date: Optional[datetime] = None

@dataclass
class QuotaCheck:
    allowed: bool
    reason: Optional[str] = None
    remaining_daily: Optional[int] = None
    remaining_monthly: Optional[int] = None

def calculate_cost(model: str, tokens: int) -> float:
    """Estimated USD cost, assuming a 70/30 input/output split"""
    costs = TOKEN_COSTS.get(model)
    if not costs:
        return 0
    input_tokens = math.floor(tokens * 0.7)
    output_tokens = tokens - input_tokens
    return input_tokens * costs["input"] + output_tokens * costs["output"]

class AIUsageTracker:
    """
    Per-user AI call and token counters, kept in process memory.
    Counters are lost on restart and are not shared between workers.
    """

    def __init__(self):
        self.quotas: Dict[str, UserQuota] = {}
        self.daily_usage: Dict[str, int] = {}

    def reset_usage(self) -> None:
        self.quotas.clear()
        self.daily_usage.clear()

    @staticmethod
    def _daily_key(user_id: str, now: datetime) -> str:
        return f"{user_id}_{now.strftime('%Y-%m-%d')}"

    def _drop_past_days(self, user_id: str) -> None:
        prefix = f"{user_id}_"
        for key in [k for k in self.daily_usage if k.startswith(prefix)]:
            del self.daily_usage[key]

    def check_ai_quota(self, user_id: str, plan: str = "free", now: Optional[datetime] = None) -> QuotaCheck:
        now = now or datetime.utcnow()
        try:
            limits = AI_QUOTAS.get(plan, AI_QUOTAS["free"])

            quota = self.quotas.get(user_id)
            if quota is None:
                quota = UserQuota(last_reset_date=now)
                self.quotas[user_id] = quota

            last = quota.last_reset_date or now
            months_elapsed = (now.year * 12 + now.month) - (last.year * 12 + last.month)
            if months_elapsed >= 1:
                quota.monthly_tokens_used = 0
                quota.monthly_api_calls = 0
                quota.last_reset_date = now

            daily_key = self._daily_key(user_id, now)
            if daily_key not in self.daily_usage:
                self._drop_past_days(user_id)
                self.daily_usage[daily_key] = 0
                quota.daily_api_calls = 0

            if quota.daily_api_calls >= limits["daily_api_calls"]:
                return QuotaCheck(
                    allowed=False,
                    reason=f"Daily AI limit reached ({limits['daily_api_calls']} calls). Try again tomorrow.",
                    remaining_daily=0,
                    remaining_monthly=max(0, limits["monthly_api_calls"] - quota.monthly_api_calls),
                )

            if quota.monthly_api_calls >= limits["monthly_api_calls"]:
                return QuotaCheck(
                    allowed=False,
                    reason=f"Monthly AI limit reached ({limits['monthly_api_calls']} calls). Upgrade plan or wait for next month.",
                    remaining_daily=max(0, limits["daily_api_calls"] - quota.daily_api_calls),
                    remaining_monthly=0,
                )

            if quota.monthly_tokens_used >= limits["monthly_tokens"]:
                return QuotaCheck(
                    allowed=False,
                    reason=f"Monthly token limit reached ({limits['monthly_tokens']} tokens). Upgrade plan or wait for next month.",
                    remaining_daily=max(0, limits["daily_api_calls"] - quota.daily_api_calls),
                    remaining_monthly=max(0, limits["monthly_api_calls"] - quota.monthly_api_calls),
                )

            return QuotaCheck(
                allowed=True,
                remaining_daily=limits["daily_api_calls"] - quota.daily_api_calls,
                remaining_monthly=limits["monthly_api_calls"] - quota.monthly_api_calls,
            )
        except Exception as e:
            # Fail open
            logger.error(f"Error checking AI quota for user {user_id}: {e}", exc_info=True)
            return QuotaCheck(allowed=True)

    def track_ai_usage(
        self,
        user_id: str,
        endpoint: str,
        model: str,
        tokens_used: int,
        success: bool,
        cached: bool = False,
        now: Optional[datetime] = None
    ) -> None:
        now = now or datetime.utcnow()
        try:
            quota = self.quotas.get(user_id)
            if quota is not None:
                quota.monthly_tokens_used += tokens_used
                quota.monthly_api_calls += 1
                quota.daily_api_calls += 1

                daily_key = self._daily_key(user_id, now)
                self.daily_usage[daily_key] = self.daily_usage.get(daily_key, 0) + 1

            logger.info(
                f"AI usage user={user_id} endpoint={endpoint} model={model} tokens={tokens_used} "
                f"success={success} cached={cached} cost=${calculate_cost(model, tokens_used):.6f}"
            )
        except Exception as e:
            logger.error(f"Error tracking AI usage for user {user_id}: {e}", exc_info=True)

    def get_ai_usage_stats(self, user_id: str) -> Dict:
        quota = self.quotas.get(user_id)
        if quota is None:
            return {
                "dailyApiCalls": 0,
                "monthlyApiCalls": 0,
                "monthlyTokensUsed": 0,
                "estimatedMonthlyCost": 0,
                "quotaStatus": "healthy",
            }

        limits = AI_QUOTAS["free"]
        monthly_pct = quota.monthly_api_calls / limits["monthly_api_calls"]
        token_pct = quota.monthly_tokens_used / limits["monthly_tokens"]
        highest = max(monthly_pct, token_pct)

        status = "healthy"
        if highest > 0.95:
            status = "critical"
        elif highest > 0.8:
            status = "warning"

        return {
            "dailyApiCalls": quota.daily_api_calls,
            "monthlyApiCalls": quota.monthly_api_calls,
            "monthlyTokensUsed": quota.monthly_tokens_used,
            "estimatedMonthlyCost": calculate_cost("gpt-4o-mini", quota.monthly_tokens_used),
            "quotaStatus": status,
        }

usage_tracker = AIUsageTracker()
