"""Shared test fixtures for the tracker-hub project."""

from typing import Any

import pytest
from django.apps import apps
from rest_framework.test import APIClient

API_KEY = 'test-key'


@pytest.fixture(autouse=True)
def hub_settings(settings: Any) -> Any:
    """Configure a known shared secret and a fresh hub state per test."""
    settings.TRACKER_API_KEY = API_KEY
    settings.TRACKER_DOCUMENT_STORE = 'database'
    settings.TRACKER_REQUIRE_DURABLE_WRITE = False
    settings.TRACKER_STALE_AFTER_SECONDS = 60
    apps.get_app_config('tracker_hub').reset_state()
    return settings


@pytest.fixture
def hub_state(hub_settings: Any) -> Any:
    """The running hub state (store, fix tracker, credential distributor)."""
    return apps.get_app_config('tracker_hub').state


@pytest.fixture
def api_client() -> APIClient:
    """Provide a DRF API client for testing."""
    return APIClient()
