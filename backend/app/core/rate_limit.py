"""
Per-IP rate limiting (slowapi) for the AI tools, login codes and the public
gallery. Limits come from settings and can be switched off entirely.
"""
from slowapi import Limiter
from slowapi.util import get_remote_address

from .config import settings

limiter = Limiter(key_func=get_remote_address, enabled=settings.rate_limit_enabled)
