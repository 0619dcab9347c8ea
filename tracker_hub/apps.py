"""App configuration for the tracker_hub application."""

import logging

from django.apps import AppConfig, apps
from django.conf import settings

logger = logging.getLogger(__name__)


class _HubState:
    """Holder for the hub's process-lifetime collaborators.

    Keeps the document store, the latest-fix tracker and the credential
    distributor together so views receive them from the app registry
    instead of module-level globals.
    """

    def __init__(self) -> None:
        from .credentials import CredentialDistributor
        from .store import build_document_store
        from .tracker import FixTracker

        self.store = build_document_store(
            settings.TRACKER_DOCUMENT_STORE,
            settings.TRACKER_DOCUMENT_DIR,
        )
        self.fix_tracker = FixTracker(self.store)
        self.credentials = CredentialDistributor(self.store)


class TrackerHubConfig(AppConfig):
    """Configuration for the tracker_hub app."""

    default_auto_field: str = 'django.db.models.BigAutoField'
    name: str = 'tracker_hub'
    verbose_name: str = 'Tracker Hub'

    state: _HubState

    def ready(self) -> None:
        """Create the hub state and warn about an unusable configuration.

        The persisted fix is loaded lazily on first access; the app
        registry is not the place to touch the database.
        """
        self.reset_state()
        if not settings.TRACKER_API_KEY:
            logger.warning("API_KEY is not set; ingest and credential endpoints will reject every request")
        logger.debug("Document store backend: %s", settings.TRACKER_DOCUMENT_STORE)

    def reset_state(self) -> _HubState:
        """Replace the hub state with a fresh one built from current settings."""
        self.state = _HubState()
        return self.state


def get_hub_state() -> _HubState:
    """Return the running hub state."""
    config = apps.get_app_config('tracker_hub')
    assert isinstance(config, TrackerHubConfig)
    return config.state
