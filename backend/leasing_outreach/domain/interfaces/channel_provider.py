"""
Channel Provider Interfaces
Abstract base classes for voice, SMS and email providers
"""
from abc import ABC, abstractmethod
from typing import Optional, Dict, Any
from dataclasses import dataclass, field
from datetime import datetime, timezone


@dataclass
class DispatchResult:
    """
    Result of handing a message or call to a provider.

    Providers report failures here instead of raising; a timeout is a failed
    dispatch with timed_out set.
    """
    dispatched: bool
    provider: str = ""
    provider_ref: Optional[str] = None
    error: Optional[str] = None
    timed_out: bool = False
    sent_at: Optional[datetime] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def ok(cls, provider: str, provider_ref: Optional[str], **metadata) -> "DispatchResult":
        return cls(
            dispatched=True,
            provider=provider,
            provider_ref=provider_ref,
            sent_at=datetime.now(timezone.utc),
            metadata=metadata,
        )

    @classmethod
    def failed(cls, provider: str, error: str, timed_out: bool = False) -> "DispatchResult":
        return cls(dispatched=False, provider=provider, error=error, timed_out=timed_out)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "dispatched": self.dispatched,
            "provider": self.provider,
            "provider_ref": self.provider_ref,
            "error": self.error,
            "timed_out": self.timed_out,
            "sent_at": self.sent_at.isoformat() if self.sent_at else None,
        }


def normalize_phone(number: str) -> str:
    """
    Normalize a phone number to E.164.

    10 digits are treated as US numbers, 11 digits starting with 1 get a "+".
    """
    cleaned = number.replace(" ", "").replace("-", "").replace("(", "").replace(")", "").replace(".", "")
    if cleaned.startswith("+"):
        return cleaned
    digits = "".join(ch for ch in cleaned if ch.isdigit())
    if len(digits) == 10:
        return f"+1{digits}"
    if len(digits) == 11 and digits.startswith("1"):
        return f"+{digits}"
    return f"+{digits}" if digits else number


def mask_phone(number: Optional[str]) -> str:
    """Truncate a phone number for log lines."""
    if not number:
        return "<none>"
    return f"{number[:5]}..."


class VoiceProvider(ABC):
    """Voice-AI provider: places a scripted call whose result arrives by webhook."""

    @property
    @abstractmethod
    def provider_name(self) -> str:
        pass

    @abstractmethod
    async def place_call(
        self,
        phone: str,
        script: str,
        metadata: Dict[str, Any],
        webhook_url: str,
        voice: Optional[str] = None,
        max_duration_minutes: Optional[int] = None,
    ) -> DispatchResult:
        """
        Place an outbound call.

        Returns:
            DispatchResult whose provider_ref is the provider's call id
        """
        pass

    @abstractmethod
    def is_configured(self) -> bool:
        pass


class SMSProvider(ABC):
    """Synchronous SMS provider."""

    @property
    @abstractmethod
    def provider_name(self) -> str:
        pass

    @abstractmethod
    async def send_message(
        self,
        to_number: str,
        body: str,
        from_number: Optional[str] = None,
    ) -> DispatchResult:
        pass

    @abstractmethod
    def is_configured(self) -> bool:
        pass


class EmailProvider(ABC):
    """Transactional email provider."""

    @property
    @abstractmethod
    def provider_name(self) -> str:
        pass

    @abstractmethod
    async def send_email(
        self,
        to: str,
        subject: str,
        html: str,
        from_address: Optional[str] = None,
    ) -> DispatchResult:
        pass

    @abstractmethod
    def is_configured(self) -> bool:
        pass
