"""
Quota gate for metered AI tools.

A metered action reserves one unit of quota before it runs and gives it back
if it fails, so only successful actions are counted and concurrent requests
cannot overrun a plan limit:

    async with quota_service.metered(context, ToolType.BUILD):
        plan = await build_plan_service.generate(spec)
"""
import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, Optional

from ..core.dependencies import RequestContext
from ..core.errors import QuotaExceededError
from ..core.tier_limits import (
    ANONYMOUS_LIMIT,
    ANONYMOUS_PLAN,
    ToolType,
    anonymous_quota_message,
    get_tier_limits,
    is_within_limit,
    normalize_plan,
    quota_message,
)
from ..schemas.quota import QuotaDecision, QuotaOverview, ToolQuota
from .anonymous_usage import anonymous_usage
from .entitlement_service import entitlement_service, parse_timestamp

logger = logging.getLogger(__name__)


def _remaining(used: int, limit: Optional[int]) -> Optional[int]:
    if limit is None:
        return None
    return max(limit - used, 0)


class QuotaService:
    """Evaluates and meters per-tool usage for users and anonymous visitors."""

    async def check(self, context: RequestContext, tool: ToolType) -> QuotaDecision:
        """Evaluate the gate without consuming anything."""
        tool = ToolType(tool)

        if context.is_authenticated:
            user = entitlement_service.get_or_create_user(context.email)
            plan = normalize_plan(user.get("plan_code"))
            limit = get_tier_limits(plan).for_tool(tool)
            used = getattr(entitlement_service.usage_of(user), tool.value)
            allowed = is_within_limit(used, limit)
            return QuotaDecision(
                allowed=allowed,
                tool_type=tool,
                plan=plan.value,
                used=used,
                limit=limit,
                remaining=_remaining(used, limit),
                message=None if allowed else quota_message(tool, used, limit),
            )

        usage = await anonymous_usage.get_usage(context.fingerprint)
        used = usage[tool.value]
        allowed = is_within_limit(used, ANONYMOUS_LIMIT)
        return QuotaDecision(
            allowed=allowed,
            tool_type=tool,
            plan=ANONYMOUS_PLAN,
            used=used,
            limit=ANONYMOUS_LIMIT,
            remaining=_remaining(used, ANONYMOUS_LIMIT),
            message=None if allowed else anonymous_quota_message(tool),
        )

    async def reserve(self, context: RequestContext, tool: ToolType) -> QuotaDecision:
        """
        Take one unit of quota.

        Raises:
            QuotaExceededError: the caller has no quota left for ``tool``
        """
        tool = ToolType(tool)

        if context.is_authenticated:
            reservation = entitlement_service.consume(context.email, tool)
            if not reservation.admitted:
                logger.info(
                    f"Quota denied for {context.email}: {tool.value} "
                    f"{reservation.used}/{reservation.limit} on {reservation.plan}"
                )
                raise QuotaExceededError(
                    plan=reservation.plan,
                    used=reservation.used,
                    limit=reservation.limit,
                    tool=tool.value,
                    message=quota_message(tool, reservation.used, reservation.limit),
                )
            return QuotaDecision(
                allowed=True,
                tool_type=tool,
                plan=reservation.plan,
                used=reservation.used,
                limit=reservation.limit,
                remaining=_remaining(reservation.used, reservation.limit),
            )

        admitted, used = await anonymous_usage.try_consume(context.fingerprint, tool)
        if not admitted:
            raise QuotaExceededError(
                plan=ANONYMOUS_PLAN,
                used=used,
                limit=ANONYMOUS_LIMIT,
                tool=tool.value,
                message=anonymous_quota_message(tool),
            )
        return QuotaDecision(
            allowed=True,
            tool_type=tool,
            plan=ANONYMOUS_PLAN,
            used=used,
            limit=ANONYMOUS_LIMIT,
            remaining=_remaining(used, ANONYMOUS_LIMIT),
        )

    async def release(self, context: RequestContext, tool: ToolType) -> None:
        """Give back a reserved unit after the metered action failed."""
        try:
            if context.is_authenticated:
                entitlement_service.release(context.email, tool)
            else:
                await anonymous_usage.release(context.fingerprint, tool)
        except Exception as e:
            # The original failure is what the caller needs to see
            logger.error(f"Failed to release {ToolType(tool).value} quota for {context.email or context.fingerprint}: {e}")

    @asynccontextmanager
    async def metered(self, context: RequestContext, tool: ToolType) -> AsyncIterator[QuotaDecision]:
        """
        Reserve quota for the body of the ``async with`` block; release it if
        the block raises or is cancelled (client disconnects included).
        """
        decision = await self.reserve(context, tool)
        try:
            yield decision
        except BaseException:
            await asyncio.shield(self.release(context, tool))
            raise

    async def overview(self, context: RequestContext) -> QuotaOverview:
        """Usage, limits and remaining allowance for every tool."""
        tools: Dict[str, ToolQuota] = {}

        if context.is_authenticated:
            user = entitlement_service.get_or_create_user(context.email)
            plan = normalize_plan(user.get("plan_code"))
            limits = get_tier_limits(plan)
            usage = entitlement_service.usage_of(user)
            for tool in ToolType:
                used = getattr(usage, tool.value)
                limit = limits.for_tool(tool)
                tools[tool.value] = ToolQuota(used=used, limit=limit, remaining=_remaining(used, limit))
            return QuotaOverview(
                plan=plan.value,
                anonymous=False,
                tools=tools,
                reset_date=parse_timestamp(user.get("reset_date")),
                plan_renews_at=parse_timestamp(user.get("plan_renews_at")),
            )

        usage = await anonymous_usage.get_usage(context.fingerprint)
        for tool in ToolType:
            used = usage[tool.value]
            tools[tool.value] = ToolQuota(
                used=used,
                limit=ANONYMOUS_LIMIT,
                remaining=_remaining(used, ANONYMOUS_LIMIT),
            )
        return QuotaOverview(plan=ANONYMOUS_PLAN, anonymous=True, tools=tools)


# Global service instance
quota_service = QuotaService()
