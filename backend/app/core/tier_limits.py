"""
Tier configuration for the quota system.
Defines monthly per-tool limits for every plan.
"""

from enum import Enum
from typing import Dict, Optional
from dataclasses import dataclass


class PlanCode(str, Enum):
    FREE = "FREE"
    PLUS = "PLUS"
    PRO = "PRO"
    ULTRA = "ULTRA"
    ADMIN = "ADMIN"


class ToolType(str, Enum):
    PERFORMANCE = "performance"
    BUILD = "build"
    IMAGE = "image"


@dataclass(frozen=True)
class TierLimits:
    """Monthly limits for a plan (None = unlimited)."""
    performance: Optional[int]
    build: Optional[int]
    image: Optional[int]

    def for_tool(self, tool: ToolType) -> Optional[int]:
        return getattr(self, ToolType(tool).value)


# Tier configuration
# - FREE: default for every new account
# - PLUS / PRO / ULTRA: Stripe subscriptions or promotions
# - ADMIN: staff accounts, never metered
TIER_LIMITS: Dict[PlanCode, TierLimits] = {
    PlanCode.FREE: TierLimits(performance=1, build=1, image=3),
    PlanCode.PLUS: TierLimits(performance=10, build=10, image=25),
    PlanCode.PRO: TierLimits(performance=15, build=15, image=60),
    PlanCode.ULTRA: TierLimits(performance=25, build=25, image=100),
    PlanCode.ADMIN: TierLimits(performance=None, build=None, image=None),
}

# Anonymous visitors get one try per tool
ANONYMOUS_LIMIT = 1
ANONYMOUS_PLAN = "ANONYMOUS"

# Usage counters roll over this many days after reset_date
USAGE_PERIOD_DAYS = 30

PAID_PLANS = (PlanCode.PLUS, PlanCode.PRO, PlanCode.ULTRA)

# Column holding each tool's counter on the users table
USAGE_COLUMNS: Dict[ToolType, str] = {
    ToolType.PERFORMANCE: "perf_used",
    ToolType.BUILD: "build_used",
    ToolType.IMAGE: "image_used",
}

TOOL_LABELS: Dict[ToolType, str] = {
    ToolType.PERFORMANCE: "performance calculations",
    ToolType.BUILD: "build plans",
    ToolType.IMAGE: "image generations",
}


def normalize_plan(plan_code: Optional[str]) -> PlanCode:
    """Map a stored plan code to PlanCode, treating unknown values as FREE."""
    if isinstance(plan_code, PlanCode):
        return plan_code
    try:
        return PlanCode(str(plan_code).upper())
    except ValueError:
        return PlanCode.FREE


def get_tier_limits(plan_code: Optional[str]) -> TierLimits:
    """Get limits for a given tier."""
    return TIER_LIMITS[normalize_plan(plan_code)]


def get_plan_limit(plan_code: Optional[str], tool: ToolType) -> Optional[int]:
    """Monthly limit of ``tool`` on ``plan_code`` (None = unlimited)."""
    return get_tier_limits(plan_code).for_tool(tool)


def is_within_limit(used: int, limit: Optional[int]) -> bool:
    """Admission rule shared by every gate: admit iff used < limit."""
    return limit is None or used < limit


def quota_message(tool: ToolType, used: int, limit: int) -> str:
    return (
        f"You've used {used}/{limit} {TOOL_LABELS[ToolType(tool)]} this month. "
        "Upgrade to continue."
    )


def anonymous_quota_message(tool: ToolType) -> str:
    return (
        f"You've used your free {TOOL_LABELS[ToolType(tool)][:-1]}. "
        "Create a free account to keep going."
    )
