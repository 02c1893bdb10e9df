"""
Shared fixtures for outreach unit tests
"""
import pytest

from leasing_outreach.core.config import ConfigManager
from leasing_outreach.services.channel_executor import ChannelExecutor
from leasing_outreach.services.notification_sink import NotificationSink
from leasing_outreach.services.outreach_triggers import OutreachTriggers
from leasing_outreach.workers.outreach_dispatcher import OutreachDispatcher

from fakes import (
    FakeEmailProvider,
    FakeSMSProvider,
    FakeVoiceProvider,
    FixedClock,
    seeded_store,
)


@pytest.fixture
def clock():
    return FixedClock()


@pytest.fixture
def store():
    return seeded_store()


@pytest.fixture
def voice():
    return FakeVoiceProvider()


@pytest.fixture
def sms():
    return FakeSMSProvider()


@pytest.fixture
def email():
    return FakeEmailProvider()


@pytest.fixture
def config():
    return ConfigManager(env="test")


@pytest.fixture
def executor(store, voice, sms, email, config):
    return ChannelExecutor(store, voice, sms, email, webhook_base_url="https://api.example.com", config=config)


@pytest.fixture
def triggers(store, clock):
    return OutreachTriggers(store, clock=clock)


@pytest.fixture
def dispatcher(store, executor, clock):
    return OutreachDispatcher(store, executor, NotificationSink(store), clock=clock)
