"""
Pydantic schemas for quota endpoints.
"""
from datetime import datetime
from typing import Dict, Optional
from pydantic import Field

from .base import CamelModel
from ..core.tier_limits import ToolType


class QuotaDecision(CamelModel):
    """Outcome of evaluating the quota gate for one tool."""
    allowed: bool
    tool_type: ToolType
    plan: str
    used: int
    limit: Optional[int] = Field(None, description="None means unlimited")
    remaining: Optional[int] = None
    message: Optional[str] = None


class ToolQuota(CamelModel):
    used: int
    limit: Optional[int] = None
    remaining: Optional[int] = None


class QuotaOverview(CamelModel):
    """Per-tool usage for the caller."""
    plan: str
    anonymous: bool
    tools: Dict[str, ToolQuota]
    reset_date: Optional[datetime] = None
    plan_renews_at: Optional[datetime] = None


class QuotaCheckRequest(CamelModel):
    tool_type: ToolType
