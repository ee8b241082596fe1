"""
Entitlement store: plan tier and monthly usage counters per user.

Counters are only incremented through ``consume_tool_quota``, a SQL function
that performs the limit check and the increment as one conditional UPDATE,
so concurrent requests can never push a counter past the plan limit.
"""
import calendar
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from ..core.errors import NotFoundError
from ..core.supabase_client import supabase_client
from ..core.tier_limits import (
    PlanCode,
    ToolType,
    USAGE_COLUMNS,
    USAGE_PERIOD_DAYS,
    get_plan_limit,
    normalize_plan,
)
from ..schemas.auth import UsageCounters, UserResponse

logger = logging.getLogger(__name__)


@dataclass
class Reservation:
    """Result of an attempt to reserve one unit of a tool's quota."""
    admitted: bool
    plan: str
    used: int
    limit: Optional[int]


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse a Postgres/ISO timestamp as returned by PostgREST."""
    if value is None or isinstance(value, datetime):
        return value
    text = str(value).replace("Z", "+00:00")
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        logger.warning(f"Unparseable timestamp from database: {value!r}")
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def add_months(moment: datetime, months: int) -> datetime:
    """Same day-of-month ``months`` later, clamped to the month's last day."""
    index = moment.month - 1 + months
    year, month = moment.year + index // 12, index % 12 + 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


def _first_row(data: Any) -> Optional[Dict[str, Any]]:
    if isinstance(data, list):
        return data[0] if data else None
    if isinstance(data, dict):
        return data
    return None


class EntitlementService:
    """Reads and updates the ``users`` table."""

    def __init__(self):
        self._supabase = None

    @property
    def supabase(self):
        if self._supabase is None:
            self._supabase = supabase_client.service_client
        return self._supabase

    @supabase.setter
    def supabase(self, client):
        self._supabase = client

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def get_user(self, email: str) -> Optional[Dict[str, Any]]:
        """Fetch a user row, rolling the monthly counters over when due."""
        result = (
            self.supabase.table("users")
            .select("*")
            .eq("email", email.lower())
            .limit(1)
            .execute()
        )
        user = _first_row(result.data)
        if user is None:
            return None
        return self.apply_rollover(user)

    def get_or_create_user(self, email: str, plan: PlanCode = PlanCode.FREE) -> Dict[str, Any]:
        """Return the user row, inserting it with ``plan`` if it does not exist."""
        email = email.lower()
        user = self.get_user(email)
        if user is not None:
            return user

        now = datetime.now(timezone.utc).isoformat()
        self.supabase.table("users").upsert(
            {
                "email": email,
                "plan_code": PlanCode(plan).value,
                "perf_used": 0,
                "build_used": 0,
                "image_used": 0,
                "reset_date": now,
            },
            on_conflict="email",
            ignore_duplicates=True,
        ).execute()
        logger.info(f"Created user {email} on plan {PlanCode(plan).value}")

        user = self.get_user(email)
        if user is None:
            raise RuntimeError(f"User row for {email} missing after insert")
        return user

    def list_users(self, limit: int = 50, offset: int = 0) -> List[Dict[str, Any]]:
        result = (
            self.supabase.table("users")
            .select("*")
            .order("created_at", desc=True)
            .range(offset, offset + limit - 1)
            .execute()
        )
        return result.data or []

    # ------------------------------------------------------------------
    # Monthly rollover
    # ------------------------------------------------------------------

    def apply_rollover(self, user: Dict[str, Any]) -> Dict[str, Any]:
        """
        Zero the usage counters when ``reset_date`` is more than a period old.

        The update is conditional on ``reset_date`` still being stale, so two
        requests racing through here reset the counters once.
        """
        reset_date = parse_timestamp(user.get("reset_date"))
        now = datetime.now(timezone.utc)
        cutoff = now - timedelta(days=USAGE_PERIOD_DAYS)
        if reset_date is not None and reset_date > cutoff:
            return user

        result = (
            self.supabase.table("users")
            .update({"perf_used": 0, "build_used": 0, "image_used": 0, "reset_date": now.isoformat()})
            .eq("email", user["email"])
            .lte("reset_date", cutoff.isoformat())
            .execute()
        )
        refreshed = _first_row(result.data)
        if refreshed is not None:
            logger.info(f"Rolled over monthly usage for {user['email']}")
            return refreshed
        return user

    # ------------------------------------------------------------------
    # Metering
    # ------------------------------------------------------------------

    def consume(self, email: str, tool: ToolType) -> Reservation:
        """
        Atomically reserve one unit of ``tool`` for ``email``.

        The limit is derived from the plan read beforehand; the SQL function
        refuses the increment if the plan changed in between, in which case
        the read is repeated once with the new plan.
        """
        tool = ToolType(tool)
        user = self.get_or_create_user(email)

        for _ in range(2):
            plan = normalize_plan(user.get("plan_code"))
            limit = get_plan_limit(plan, tool)
            result = self.supabase.rpc(
                "consume_tool_quota",
                {
                    "p_email": email.lower(),
                    "p_tool": tool.value,
                    "p_plan": plan.value,
                    "p_limit": limit,
                },
            ).execute()
            row = _first_row(result.data) or {}

            admitted = bool(row.get("admitted"))
            used = int(row.get("used") or 0)
            current_plan = row.get("plan_code") or plan.value

            if admitted or normalize_plan(current_plan) == plan:
                return Reservation(admitted=admitted, plan=plan.value, used=used, limit=limit)

            logger.info(f"Plan for {email} changed to {current_plan} during reservation, retrying")
            user = self.get_user(email) or user

        plan = normalize_plan(user.get("plan_code"))
        return Reservation(admitted=False, plan=plan.value, used=used, limit=get_plan_limit(plan, tool))

    def release(self, email: str, tool: ToolType) -> None:
        """Give back a unit reserved by :meth:`consume` (never below zero)."""
        self.supabase.rpc(
            "release_tool_quota",
            {"p_email": email.lower(), "p_tool": ToolType(tool).value},
        ).execute()

    # ------------------------------------------------------------------
    # Plan management
    # ------------------------------------------------------------------

    def set_plan(
        self,
        email: str,
        plan: PlanCode,
        renews_at: Optional[datetime] = None,
        reset_usage: bool = False,
        stripe_customer_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        update: Dict[str, Any] = {
            "plan_code": PlanCode(plan).value,
            "plan_renews_at": renews_at.isoformat() if renews_at else None,
        }
        if reset_usage:
            update.update({
                "perf_used": 0,
                "build_used": 0,
                "image_used": 0,
                "reset_date": datetime.now(timezone.utc).isoformat(),
            })
        if stripe_customer_id:
            update["stripe_customer_id"] = stripe_customer_id

        result = self.supabase.table("users").update(update).eq("email", email.lower()).execute()
        row = _first_row(result.data)
        if row is None:
            raise NotFoundError(f"User {email} not found")

        logger.info(f"Plan for {email} set to {PlanCode(plan).value}")
        return row

    def set_plan_by_customer(
        self,
        stripe_customer_id: str,
        plan: PlanCode,
        renews_at: Optional[datetime] = None,
    ) -> Optional[Dict[str, Any]]:
        result = (
            self.supabase.table("users")
            .update({
                "plan_code": PlanCode(plan).value,
                "plan_renews_at": renews_at.isoformat() if renews_at else None,
            })
            .eq("stripe_customer_id", stripe_customer_id)
            .execute()
        )
        return _first_row(result.data)

    def set_stripe_customer(self, email: str, stripe_customer_id: str) -> None:
        self.supabase.table("users").update(
            {"stripe_customer_id": stripe_customer_id}
        ).eq("email", email.lower()).execute()

    # ------------------------------------------------------------------
    # Presentation
    # ------------------------------------------------------------------

    @staticmethod
    def usage_of(user: Dict[str, Any]) -> UsageCounters:
        return UsageCounters(
            performance=int(user.get(USAGE_COLUMNS[ToolType.PERFORMANCE]) or 0),
            build=int(user.get(USAGE_COLUMNS[ToolType.BUILD]) or 0),
            image=int(user.get(USAGE_COLUMNS[ToolType.IMAGE]) or 0),
        )

    def to_user_response(self, user: Dict[str, Any]) -> UserResponse:
        return UserResponse(
            id=str(user["id"]) if user.get("id") else None,
            email=user["email"],
            plan_code=normalize_plan(user.get("plan_code")).value,
            usage=self.usage_of(user),
            reset_date=parse_timestamp(user.get("reset_date")),
            plan_renews_at=parse_timestamp(user.get("plan_renews_at")),
            has_billing_account=bool(user.get("stripe_customer_id")),
            created_at=parse_timestamp(user.get("created_at")),
        )


# Global service instance
entitlement_service = EntitlementService()
