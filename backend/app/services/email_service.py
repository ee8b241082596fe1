"""
Transactional email through the Resend HTTP API.
"""
import logging

import httpx

from ..core.config import settings
from ..core.errors import ConfigurationError, UpstreamError

logger = logging.getLogger(__name__)


def login_email_html(code: str, magic_link: str) -> str:
    minutes = settings.magic_link_expire_minutes
    return f"""
<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
  <h1 style="color: #1f2937;">Sign in to TunedUp</h1>
  <p style="color: #4b5563; font-size: 16px;">Your sign-in code is:</p>
  <p style="font-size: 32px; font-weight: bold; letter-spacing: 6px; text-align: center;">{code}</p>
  <p style="color: #4b5563; font-size: 16px;">Or click the button below to sign in directly:</p>
  <div style="text-align: center; margin: 32px 0;">
    <a href="{magic_link}"
       style="background-color: #3b82f6; color: white; padding: 12px 24px; text-decoration: none; border-radius: 6px; display: inline-block; font-weight: bold;">
      Sign In to TunedUp
    </a>
  </div>
  <p style="color: #6b7280; font-size: 14px;">This code and link expire in {minutes} minutes.</p>
  <p style="color: #6b7280; font-size: 14px;">If you didn't request this, you can safely ignore this email.</p>
</div>
""".strip()


class EmailService:
    def __init__(self):
        self.api_url = settings.resend_api_url
        self.from_address = settings.email_from

    async def send_email(self, to_email: str, subject: str, html: str) -> None:
        api_key = settings.resend_api_key
        if not api_key:
            if settings.is_production_environment:
                raise ConfigurationError("Server configuration error: email provider not configured")
            logger.warning(f"RESEND_API_KEY not set; email to {to_email} not sent (subject: {subject})")
            return

        payload = {
            "from": self.from_address,
            "to": [to_email],
            "subject": subject,
            "html": html,
        }
        headers = {"Authorization": f"Bearer {api_key}", "Content-Type": "application/json"}

        try:
            async with httpx.AsyncClient(timeout=10.0) as client:
                response = await client.post(self.api_url, json=payload, headers=headers)
        except httpx.HTTPError as e:
            logger.error(f"Email request to provider failed for {to_email}: {e}")
            raise UpstreamError("Failed to send email")

        if response.is_error:
            logger.error(f"Email provider rejected message for {to_email}: {response.status_code} {response.text[:200]}")
            raise UpstreamError("Failed to send email")

        logger.info(f"Email queued for {to_email}")

    async def send_login_email(self, to_email: str, code: str, magic_link: str) -> None:
        if not settings.resend_api_key and not settings.is_production_environment:
            # Local development: surface the code in the logs instead
            logger.info(f"Login code for {to_email}: {code} ({magic_link})")
        await self.send_email(to_email, "Your TunedUp sign-in code", login_email_html(code, magic_link))


email_service = EmailService()
