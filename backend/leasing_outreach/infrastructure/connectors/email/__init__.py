"""
Email Connectors Package
Provides transactional email via Resend
"""
from .resend_email import ResendEmailProvider, build_resend_provider

__all__ = [
    "ResendEmailProvider",
    "build_resend_provider",
]
