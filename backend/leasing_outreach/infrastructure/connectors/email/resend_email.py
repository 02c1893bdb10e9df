"""
Resend Email Provider
Transactional email through the Resend REST API.
"""
import logging
from typing import Optional

import httpx

from leasing_outreach.core.config import ConfigManager, get_settings
from leasing_outreach.domain.interfaces.channel_provider import DispatchResult, EmailProvider

logger = logging.getLogger(__name__)


class ResendEmailProvider(EmailProvider):
    """POST {base_url}/emails with a bearer API key."""

    DEFAULT_BASE_URL = "https://api.resend.com"

    def __init__(
        self,
        api_key: Optional[str],
        from_address: str,
        base_url: Optional[str] = None,
        timeout_seconds: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._api_key = api_key
        self._from_address = from_address
        self._base_url = (base_url or self.DEFAULT_BASE_URL).rstrip("/")
        self._timeout = timeout_seconds
        self._transport = transport

    @property
    def provider_name(self) -> str:
        return "resend"

    def is_configured(self) -> bool:
        return bool(self._api_key)

    async def send_email(
        self,
        to: str,
        subject: str,
        html: str,
        from_address: Optional[str] = None,
    ) -> DispatchResult:
        if not self.is_configured():
            return DispatchResult.failed(self.provider_name, "Resend API key not configured")

        payload = {
            "from": from_address or self._from_address,
            "to": [to],
            "subject": subject,
            "html": html,
        }

        try:
            async with httpx.AsyncClient(transport=self._transport, timeout=self._timeout) as client:
                response = await client.post(
                    f"{self._base_url}/emails",
                    json=payload,
                    headers={"Authorization": f"Bearer {self._api_key}"},
                )
        except httpx.TimeoutException:
            logger.warning("Resend email timed out")
            return DispatchResult.failed(self.provider_name, "timeout", timed_out=True)
        except httpx.HTTPError as e:
            logger.error(f"Resend request failed: {e}")
            return DispatchResult.failed(self.provider_name, str(e))

        if response.status_code >= 400:
            logger.error(f"Resend API error {response.status_code}: {response.text[:200]}")
            return DispatchResult.failed(self.provider_name, f"HTTP {response.status_code}: {response.text[:200]}")

        email_id = response.json().get("id")
        logger.info(f"Email sent: {email_id}")
        return DispatchResult.ok(self.provider_name, email_id)


def build_resend_provider(config: Optional[ConfigManager] = None) -> ResendEmailProvider:
    """Build the email provider from settings and YAML config."""
    settings = get_settings()
    config = config or ConfigManager()
    email_cfg = config.get_provider_config("email")
    return ResendEmailProvider(
        api_key=settings.resend_api_key,
        from_address=settings.email_from_address,
        base_url=email_cfg.get("base_url"),
        timeout_seconds=float(email_cfg.get("timeout_seconds", 10)),
    )
