"""Domain interfaces"""
from .channel_provider import (
    DispatchResult,
    VoiceProvider,
    SMSProvider,
    EmailProvider,
    normalize_phone,
    mask_phone,
)
from .outreach_store import OutreachStore

__all__ = [
    "DispatchResult",
    "VoiceProvider",
    "SMSProvider",
    "EmailProvider",
    "normalize_phone",
    "mask_phone",
    "OutreachStore",
]
