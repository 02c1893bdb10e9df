"""
Twilio SMS Provider
SMS implementation using the Twilio Messages REST API.
"""
import logging
from typing import Optional

import httpx

from leasing_outreach.core.config import ConfigManager, get_settings
from leasing_outreach.domain.interfaces.channel_provider import (
    DispatchResult,
    SMSProvider,
    mask_phone,
    normalize_phone,
)

logger = logging.getLogger(__name__)


class TwilioSMSProvider(SMSProvider):
    """
    Twilio SMS provider.

    Uses account credentials:
    - TWILIO_ACCOUNT_SID
    - TWILIO_AUTH_TOKEN
    - TWILIO_PHONE_NUMBER (default sender)
    """

    DEFAULT_BASE_URL = "https://api.twilio.com/2010-04-01"

    def __init__(
        self,
        account_sid: Optional[str],
        auth_token: Optional[str],
        from_number: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout_seconds: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._account_sid = account_sid
        self._auth_token = auth_token
        self._default_from = from_number
        self._base_url = (base_url or self.DEFAULT_BASE_URL).rstrip("/")
        self._timeout = timeout_seconds
        self._transport = transport

    @property
    def provider_name(self) -> str:
        return "twilio"

    def is_configured(self) -> bool:
        return bool(self._account_sid and self._auth_token)

    async def send_message(
        self,
        to_number: str,
        body: str,
        from_number: Optional[str] = None,
    ) -> DispatchResult:
        """
        Send an SMS via Twilio.

        Returns:
            DispatchResult whose provider_ref is the message SID
        """
        if not self.is_configured():
            return DispatchResult.failed(self.provider_name, "Twilio credentials not configured")

        to_number = normalize_phone(to_number)
        from_number = from_number or self._default_from
        if not from_number:
            return DispatchResult.failed(
                self.provider_name,
                "No from_number configured. Set TWILIO_PHONE_NUMBER environment variable.",
            )

        logger.info(f"Sending SMS via Twilio: {mask_phone(from_number)} -> {mask_phone(to_number)}")

        url = f"{self._base_url}/Accounts/{self._account_sid}/Messages.json"
        try:
            async with httpx.AsyncClient(transport=self._transport, timeout=self._timeout) as client:
                response = await client.post(
                    url,
                    data={"To": to_number, "From": from_number, "Body": body},
                    auth=(self._account_sid, self._auth_token),
                )
        except httpx.TimeoutException:
            logger.warning(f"Twilio SMS to {mask_phone(to_number)} timed out")
            return DispatchResult.failed(self.provider_name, "timeout", timed_out=True)
        except httpx.HTTPError as e:
            logger.error(f"Twilio request failed: {e}")
            return DispatchResult.failed(self.provider_name, str(e))

        if response.status_code >= 400:
            logger.error(f"Twilio SMS failed {response.status_code}: {response.text[:200]}")
            return DispatchResult.failed(self.provider_name, f"HTTP {response.status_code}: {response.text[:200]}")

        sid = response.json().get("sid")
        logger.info(f"SMS sent successfully: {sid}")
        return DispatchResult.ok(self.provider_name, sid)


def build_twilio_provider(config: Optional[ConfigManager] = None) -> TwilioSMSProvider:
    """Build the SMS provider from settings and YAML config."""
    settings = get_settings()
    config = config or ConfigManager()
    sms_cfg = config.get_provider_config("sms")
    return TwilioSMSProvider(
        account_sid=settings.twilio_account_sid,
        auth_token=settings.twilio_auth_token,
        from_number=settings.twilio_phone_number,
        base_url=sms_cfg.get("base_url"),
        timeout_seconds=float(sms_cfg.get("timeout_seconds", 10)),
    )
