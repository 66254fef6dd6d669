"""Shared fixtures for MedReminder tests."""

from collections.abc import Generator
from typing import Any
from zoneinfo import ZoneInfo

import pytest
from pytest_homeassistant_custom_component.common import MockConfigEntry

from custom_components.medreminder.const import (
    CONF_NOTIFY_SERVICE,
    CONF_OCCURRENCE_COUNT,
    CONF_TIME_ZONE,
    CONF_UPDATE_INTERVAL,
    DOMAIN,
    MEDREMINDER_TITLE,
)
from custom_components.medreminder.utils import dt_utils
from tests.helpers import FakeDispatcher, InMemoryKeyValueStore
from tests.helpers.constants import TEST_ENTRY_ID, TEST_NOTIFY_SERVICE, TEST_TIME_ZONE

# pylint: disable=invalid-name
pytest_plugins = "pytest_homeassistant_custom_component"
# pylint: enable=invalid-name


@pytest.fixture(autouse=True)
def auto_enable_custom_integrations(enable_custom_integrations: Any) -> Any:
    """Enable custom integrations in tests."""
    # pylint: disable=unused-argument
    yield


@pytest.fixture(autouse=True)
def reset_default_timezone() -> Generator[None, None, None]:
    """Run every test with a UTC default zone and restore it afterwards."""
    previous = dt_utils.get_default_timezone()
    dt_utils.set_default_timezone(ZoneInfo("UTC"))
    yield
    dt_utils.set_default_timezone(previous)


@pytest.fixture
def mock_config_entry() -> MockConfigEntry:
    """Return a mock config entry."""
    return MockConfigEntry(
        domain=DOMAIN,
        title=MEDREMINDER_TITLE,
        data={},
        options={
            CONF_NOTIFY_SERVICE: TEST_NOTIFY_SERVICE,
            CONF_TIME_ZONE: TEST_TIME_ZONE,
            CONF_OCCURRENCE_COUNT: 5,
            CONF_UPDATE_INTERVAL: 30,
        },
        entry_id=TEST_ENTRY_ID,
    )


@pytest.fixture
def fake_store() -> InMemoryKeyValueStore:
    """Return an empty in-memory store."""
    return InMemoryKeyValueStore()


@pytest.fixture
def fake_dispatcher() -> FakeDispatcher:
    """Return a dispatcher that records scheduled and cancelled reminders."""
    return FakeDispatcher()
