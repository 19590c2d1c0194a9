"""
quickai/features/quota/gate.py

Usage-quota and plan gate.

check_quota is a pure predicate over (plan, free_usage); it never touches
the identity store. Every free-tier action costs exactly one unit no matter
which provider serves it, against a flat limit with no decay and no reset.

The read of free_usage, the provider call and the increment are not atomic,
so two concurrent requests from a user at limit - 1 can both be allowed.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional
import logging

from quickai.core.config import settings
from quickai.core.errors import LimitReachedError, PlanRequiredError
from quickai.models.user import Plan, UserAccount

logger = logging.getLogger("quickai")

DEFAULT_FREE_USAGE_LIMIT = 10

LIMIT_REACHED_MESSAGE = "Limit reached. Upgrade to continue."
PLAN_REQUIRED_MESSAGE = "This feature is for premium users only."


class QuotaStatus(str, Enum):
    ALLOW = "ALLOW"
    DENY = "DENY"


class DenyReason(str, Enum):
    LIMIT_REACHED = "LimitReached"
    PLAN_REQUIRED = "PlanRequired"


@dataclass(frozen=True)
class QuotaDecision:
    status: QuotaStatus
    reason: Optional[DenyReason] = None
    plan: Plan = Plan.FREE
    free_usage: int = 0
    limit: int = DEFAULT_FREE_USAGE_LIMIT

    @property
    def allowed(self) -> bool:
        return self.status is QuotaStatus.ALLOW


def _resolve_limit(limit: Optional[int]) -> int:
    if limit is not None:
        return limit
    return getattr(settings, "FREE_USAGE_LIMIT", DEFAULT_FREE_USAGE_LIMIT)


def check_quota(
    plan: Plan,
    free_usage: int,
    *,
    cost: int = 1,
    premium_only: bool = False,
    limit: Optional[int] = None,
) -> QuotaDecision:
    """
    Decide whether a request may proceed.

    Args:
        plan: Caller's subscription plan
        free_usage: Quota-consuming actions taken so far
        cost: Units the request would consume (always 1 today)
        premium_only: Feature is reserved for the premium plan
        limit: Free-tier limit override (defaults to FREE_USAGE_LIMIT)

    Returns:
        QuotaDecision; ALLOW always for premium, DENY(PlanRequired) for
        premium-only features on other plans, DENY(LimitReached) when the
        request would take free usage past the limit.
    """
    plan = Plan.parse(plan)
    effective_limit = _resolve_limit(limit)
    common = dict(plan=plan, free_usage=free_usage, limit=effective_limit)

    if plan is Plan.PREMIUM:
        return QuotaDecision(status=QuotaStatus.ALLOW, **common)

    if premium_only:
        return QuotaDecision(status=QuotaStatus.DENY, reason=DenyReason.PLAN_REQUIRED, **common)

    if free_usage + cost > effective_limit:
        return QuotaDecision(status=QuotaStatus.DENY, reason=DenyReason.LIMIT_REACHED, **common)

    return QuotaDecision(status=QuotaStatus.ALLOW, **common)


def enforce_quota(
    account: UserAccount,
    *,
    operation: str,
    premium_only: bool = False,
    cost: int = 1,
    limit: Optional[int] = None,
) -> QuotaDecision:
    """Run check_quota for an account and raise on DENY."""
    decision = check_quota(
        account.plan,
        account.free_usage,
        cost=cost,
        premium_only=premium_only,
        limit=limit,
    )
    if decision.allowed:
        return decision

    logger.warning(
        f"quota.deny {operation}: {decision.reason.value}",
        extra={
            "user_id": account.user_id,
            "operation": operation,
            "plan": decision.plan.value,
            "free_usage": decision.free_usage,
        },
    )
    if decision.reason is DenyReason.PLAN_REQUIRED:
        raise PlanRequiredError(PLAN_REQUIRED_MESSAGE)
    raise LimitReachedError(LIMIT_REACHED_MESSAGE)
