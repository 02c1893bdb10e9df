"""
Bland.ai Voice Provider
Places scripted AI calls; results arrive later on the call-result webhook
"""
import logging
from typing import Any, Dict, Optional

import httpx

from leasing_outreach.core.config import ConfigManager, get_settings
from leasing_outreach.domain.interfaces.channel_provider import (
    DispatchResult,
    VoiceProvider,
    mask_phone,
    normalize_phone,
)

logger = logging.getLogger(__name__)


class BlandVoiceProvider(VoiceProvider):
    """
    Bland.ai outbound calling.

    POST {base_url}/calls with the conversational task, the result webhook and
    correlation metadata. The provider's call_id is the dispatch reference.
    """

    DEFAULT_BASE_URL = "https://api.bland.ai/v1"

    def __init__(
        self,
        api_key: Optional[str],
        base_url: Optional[str] = None,
        timeout_seconds: float = 15.0,
        record: bool = True,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._api_key = api_key
        self._base_url = (base_url or self.DEFAULT_BASE_URL).rstrip("/")
        self._timeout = timeout_seconds
        self._record = record
        self._transport = transport

    @property
    def provider_name(self) -> str:
        return "bland"

    def is_configured(self) -> bool:
        return bool(self._api_key)

    async def place_call(
        self,
        phone: str,
        script: str,
        metadata: Dict[str, Any],
        webhook_url: str,
        voice: Optional[str] = None,
        max_duration_minutes: Optional[int] = None,
    ) -> DispatchResult:
        if not self.is_configured():
            return DispatchResult.failed(self.provider_name, "Bland.ai API key not configured")

        to_number = normalize_phone(phone)
        payload: Dict[str, Any] = {
            "phone_number": to_number,
            "task": script,
            "voice": voice or "default",
            "webhook": webhook_url,
            "record": self._record,
            "metadata": metadata,
        }
        if max_duration_minutes:
            payload["max_duration"] = max_duration_minutes

        logger.info(f"Placing Bland.ai call to {mask_phone(to_number)}")

        try:
            async with httpx.AsyncClient(transport=self._transport, timeout=self._timeout) as client:
                response = await client.post(
                    f"{self._base_url}/calls",
                    json=payload,
                    headers={"Authorization": self._api_key, "Content-Type": "application/json"},
                )
        except httpx.TimeoutException:
            logger.warning(f"Bland.ai call to {mask_phone(to_number)} timed out after {self._timeout}s")
            return DispatchResult.failed(self.provider_name, "timeout", timed_out=True)
        except httpx.HTTPError as e:
            logger.error(f"Bland.ai request failed: {e}")
            return DispatchResult.failed(self.provider_name, str(e))

        if response.status_code >= 400:
            logger.error(f"Bland.ai API error {response.status_code}: {response.text[:200]}")
            return DispatchResult.failed(self.provider_name, f"HTTP {response.status_code}: {response.text[:200]}")

        data = response.json()
        call_id = data.get("call_id")
        if not call_id:
            return DispatchResult.failed(self.provider_name, data.get("message") or "No call_id in response")

        logger.info(f"Bland.ai call dispatched: {call_id}")
        return DispatchResult.ok(self.provider_name, call_id)


def build_bland_provider(
    api_key: Optional[str] = None,
    config: Optional[ConfigManager] = None,
) -> BlandVoiceProvider:
    """Build the voice provider from settings and YAML config."""
    config = config or ConfigManager()
    voice_cfg = config.get_provider_config("voice")
    return BlandVoiceProvider(
        api_key=api_key or get_settings().bland_api_key,
        base_url=voice_cfg.get("base_url"),
        timeout_seconds=float(voice_cfg.get("timeout_seconds", 15)),
        record=bool(voice_cfg.get("record", True)),
    )
