"""
Telephony Package
Voice-AI call placement
"""
from .bland_caller import BlandVoiceProvider, build_bland_provider

__all__ = [
    "BlandVoiceProvider",
    "build_bland_provider",
]
