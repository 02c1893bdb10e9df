"""
SMS Connectors Package
Provides SMS sending via Twilio
"""
from .twilio_sms import TwilioSMSProvider, build_twilio_provider

__all__ = [
    "TwilioSMSProvider",
    "build_twilio_provider",
]
