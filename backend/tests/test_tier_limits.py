"""
Tests for the plan limit table and the admission rule.
"""
import pytest

from app.core.tier_limits import (
    PlanCode,
    ToolType,
    TIER_LIMITS,
    anonymous_quota_message,
    get_plan_limit,
    is_within_limit,
    normalize_plan,
    quota_message,
)


@pytest.mark.parametrize("plan, expected", [
    (PlanCode.FREE, (1, 1, 3)),
    (PlanCode.PLUS, (10, 10, 25)),
    (PlanCode.PRO, (15, 15, 60)),
    (PlanCode.ULTRA, (25, 25, 100)),
])
def test_plan_limits(plan, expected):
    limits = TIER_LIMITS[plan]
    assert (limits.performance, limits.build, limits.image) == expected


def test_admin_is_unlimited():
    for tool in ToolType:
        assert get_plan_limit(PlanCode.ADMIN, tool) is None
        assert is_within_limit(10_000, get_plan_limit(PlanCode.ADMIN, tool))


@pytest.mark.parametrize("plan", [PlanCode.FREE, PlanCode.PLUS, PlanCode.PRO, PlanCode.ULTRA])
@pytest.mark.parametrize("tool", list(ToolType))
def test_admit_below_limit_deny_at_limit(plan, tool):
    limit = get_plan_limit(plan, tool)
    assert is_within_limit(limit - 1, limit)
    assert not is_within_limit(limit, limit)
    assert not is_within_limit(limit + 1, limit)


def test_unknown_plan_is_treated_as_free():
    assert normalize_plan("GOLD") == PlanCode.FREE
    assert normalize_plan(None) == PlanCode.FREE
    assert normalize_plan("pro") == PlanCode.PRO


@pytest.mark.parametrize("plan", list(PlanCode))
def test_normalize_plan_keeps_enum_members(plan):
    assert normalize_plan(plan) is plan
    assert get_plan_limit(plan, ToolType.BUILD) == TIER_LIMITS[plan].build


def test_quota_messages():
    assert quota_message(ToolType.BUILD, 1, 1) == (
        "You've used 1/1 build plans this month. Upgrade to continue."
    )
    assert "free image generation" in anonymous_quota_message(ToolType.IMAGE)
