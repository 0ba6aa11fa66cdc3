"""Shared fixtures for Caregiver Monitor tests."""
from unittest.mock import patch

import pytest


@pytest.fixture
def auto_enable_custom_integrations(enable_custom_integrations):
    yield


@pytest.fixture
def store_callbacks():
    """Replace the database stream with a dict of path -> snapshot callback."""
    callbacks = {}

    def _subscribe(self, path, on_snapshot):
        callbacks[path] = on_snapshot
        return lambda: callbacks.pop(path, None)

    with patch(
        "custom_components.caregiver_monitor.store.RemoteStoreReader.subscribe",
        _subscribe,
    ):
        yield callbacks
