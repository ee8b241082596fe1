"""
Promotion codes that upgrade a user's plan for a year.

Redemption runs in the ``redeem_promotion`` SQL function, which bumps the
usage counter only while it is below ``max_uses``, records the redemption
(one per user) and upgrades the plan in a single transaction.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from ..core.errors import ValidationError
from ..core.supabase_client import supabase_client
from ..core.tier_limits import normalize_plan
from ..schemas.promotions import PromotionAvailability, RedeemPromotionResponse
from .entitlement_service import parse_timestamp

logger = logging.getLogger(__name__)


def normalize_code(code: str) -> str:
    return code.strip().upper()


class PromotionService:

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

    def get_promotion(self, code: str) -> Optional[Dict[str, Any]]:
        result = (
            self.supabase.table("promotions")
            .select("*")
            .eq("code", normalize_code(code))
            .limit(1)
            .execute()
        )
        return result.data[0] if result.data else None

    def check(self, code: str) -> PromotionAvailability:
        promotion = self.get_promotion(code)
        if promotion is None:
            return PromotionAvailability(available=False, reason="Promotion not found")
        if not promotion.get("active"):
            return PromotionAvailability(available=False, reason="Promotion is no longer active")

        expires_at = parse_timestamp(promotion.get("expires_at"))
        if expires_at and datetime.now(timezone.utc) > expires_at:
            return PromotionAvailability(available=False, reason="Promotion has expired")

        remaining = int(promotion["max_uses"]) - int(promotion.get("used_count") or 0)
        if remaining <= 0:
            return PromotionAvailability(available=False, reason="Promotion limit reached")

        return PromotionAvailability(
            available=True,
            remaining=remaining,
            plan_code=normalize_plan(promotion.get("plan_code")).value,
        )

    def redeem(self, email: str, code: str) -> RedeemPromotionResponse:
        """
        Raises:
            ValidationError: the promotion cannot be redeemed by this user
        """
        result = self.supabase.rpc(
            "redeem_promotion",
            {"p_code": normalize_code(code), "p_email": email.lower()},
        ).execute()
        rows = result.data or []
        row = rows[0] if isinstance(rows, list) and rows else (rows or {})

        if not row.get("success"):
            reason = row.get("reason") or "Failed to redeem promotion"
            logger.info(f"Promotion {normalize_code(code)} refused for {email}: {reason}")
            raise ValidationError(reason)

        plan = normalize_plan(row.get("plan_code")).value
        logger.info(f"Promotion {normalize_code(code)} redeemed by {email} ({plan})")
        return RedeemPromotionResponse(
            message=f"Congratulations! You've been upgraded to {plan} plan!",
            plan_code=plan,
        )


promotion_service = PromotionService()
