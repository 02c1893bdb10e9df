"""
API Dependencies
Shared dependencies for store access and the outreach services
"""
from typing import Optional

from fastapi import Depends

from leasing_outreach.core.config import ConfigManager
from leasing_outreach.domain.interfaces.outreach_store import OutreachStore
from leasing_outreach.infrastructure.storage.supabase_store import get_supabase_store
from leasing_outreach.services.call_results import CallResultProcessor
from leasing_outreach.services.inbound_sms import InboundSMSProcessor
from leasing_outreach.services.outreach_triggers import OutreachTriggers
from leasing_outreach.workers.outreach_dispatcher import OutreachDispatcher, build_dispatcher

_config: Optional[ConfigManager] = None


def get_config() -> ConfigManager:
    """Get or create the ConfigManager singleton."""
    global _config
    if _config is None:
        _config = ConfigManager()
    return _config


def get_store() -> OutreachStore:
    """
    Get the task store.

    Raises:
        RuntimeError: If Supabase URL or SERVICE_KEY is not configured
    """
    return get_supabase_store()


def get_dispatcher(
    store: OutreachStore = Depends(get_store),
    config: ConfigManager = Depends(get_config),
) -> OutreachDispatcher:
    return build_dispatcher(store, config)


def get_triggers(store: OutreachStore = Depends(get_store)) -> OutreachTriggers:
    return OutreachTriggers(store)


def get_call_results(
    store: OutreachStore = Depends(get_store),
    config: ConfigManager = Depends(get_config),
) -> CallResultProcessor:
    return CallResultProcessor(store, config)


def get_inbound_sms(
    store: OutreachStore = Depends(get_store),
    triggers: OutreachTriggers = Depends(get_triggers),
) -> InboundSMSProcessor:
    return InboundSMSProcessor(store, triggers)
