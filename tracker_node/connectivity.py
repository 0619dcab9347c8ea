"""
WiFi connectivity manager for the tracker node.

The manager is stepped once per control-loop cycle. It keeps the node
online by trying learned networks in order and then the built-in
fallback network, backing off when none of them can be joined, and keeps
the learned list in sync with the hub.

States::

    DISCONNECTED -> CONNECTING(candidate) -> CONNECTED
                          |                     |
                          v                     | radio reports link down
                       BACKOFF <----------------+ (via DISCONNECTED)

Push failures never change the state; only the radio decides whether
the link is up.
"""
import enum
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass

from .client import HubClient
from .credentials import LocalCredentialStore, WifiNetwork
from .radio import RadioError, WifiRadio

logger = logging.getLogger(__name__)


class LinkState(enum.Enum):
    DISCONNECTED = 'disconnected'
    CONNECTING = 'connecting'
    CONNECTED = 'connected'
    BACKOFF = 'backoff'


@dataclass(frozen=True)
class Candidate:
    """One network the manager will try."""

    ssid: str
    password: str
    fallback: bool = False


class ConnectivityManager:
    """Owns the node's WiFi link and its learned credential list."""

    def __init__(
        self,
        radio: WifiRadio,
        credentials: LocalCredentialStore,
        hub: HubClient,
        fallback: WifiNetwork | None,
        *,
        connect_timeout: float = 10.0,
        backoff_seconds: float = 30.0,
        sync_interval: float = 3600.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.radio = radio
        self.credentials = credentials
        self.hub = hub
        self.fallback = fallback if fallback and fallback.ssid else None
        self.connect_timeout = connect_timeout
        self.backoff_seconds = backoff_seconds
        self.sync_interval = sync_interval
        self._clock = clock

        self.state = LinkState.DISCONNECTED
        self.current: Candidate | None = None
        self.networks: list[WifiNetwork] = []
        self._backoff_until: float | None = None
        self._last_sync_at: float | None = None

    def boot(self) -> LinkState:
        """Load the cached list, get online, and sync the list once."""
        self.networks = self.credentials.load()
        self.ensure_connected()
        self.maybe_resync()
        return self.state

    def candidates(self) -> list[Candidate]:
        """Networks to try, in order: learned ones first, then the fallback."""
        result = [Candidate(n.ssid, n.password) for n in self.networks]
        if self.fallback is not None:
            result.append(Candidate(self.fallback.ssid, self.fallback.password, fallback=True))
        return result

    def ensure_connected(self) -> LinkState:
        """
        Advance the state machine by one step.

        Blocks for at most ``connect_timeout`` per candidate tried.

        Returns:
            The state after this step
        """
        if self._link_up():
            if self.state is not LinkState.CONNECTED:
                logger.info("WiFi link is up, adopting it")
                self.state = LinkState.CONNECTED
                self._backoff_until = None
            return self.state

        if self.state is LinkState.CONNECTED:
            logger.warning("WiFi link lost (was %s)", self.current.ssid if self.current else 'unknown')
            self.state = LinkState.DISCONNECTED
            self.current = None

        if self.state is LinkState.BACKOFF:
            if self._backoff_until is not None and self._clock() < self._backoff_until:
                return self.state
            # The list may have been refreshed since the last attempt
            self.networks = self.credentials.load()

        return self._connect()

    def sync_credentials(self) -> bool:
        """
        Fetch the credential list from the hub and cache it locally.

        Returns:
            True if a list was fetched
        """
        self._last_sync_at = self._clock()
        networks = self.hub.fetch_credentials()
        if networks is None:
            return False
        self.networks = networks
        self.credentials.save(networks)
        return True

    def maybe_resync(self) -> bool:
        """
        Sync the credential list if connected and a sync is due.

        The first sync after startup is due as soon as the node is online;
        later ones every ``sync_interval`` seconds (0 disables them).

        Returns:
            True if a list was fetched
        """
        if self.state is not LinkState.CONNECTED:
            return False
        if self._last_sync_at is not None:
            if self.sync_interval <= 0:
                return False
            if self._clock() - self._last_sync_at < self.sync_interval:
                return False
        return self.sync_credentials()

    def _link_up(self) -> bool:
        try:
            return self.radio.is_connected()
        except RadioError as e:
            logger.warning("Cannot query WiFi link state: %s", e)
            return False

    def _connect(self) -> LinkState:
        for candidate in self.candidates():
            self.state = LinkState.CONNECTING
            self.current = candidate
            logger.info("Connecting to '%s'%s", candidate.ssid, " (fallback)" if candidate.fallback else "")
            try:
                joined = self.radio.connect(candidate.ssid, candidate.password, self.connect_timeout)
            except RadioError as e:
                logger.warning("Radio error while joining '%s': %s", candidate.ssid, e)
                joined = False

            if joined:
                logger.info("Connected to '%s'", candidate.ssid)
                self.state = LinkState.CONNECTED
                self._backoff_until = None
                if candidate.fallback:
                    self.sync_credentials()
                return self.state
            logger.info("Could not join '%s'", candidate.ssid)

        self.state = LinkState.BACKOFF
        self.current = None
        self._backoff_until = self._clock() + self.backoff_seconds
        logger.warning("No network could be joined, retrying in %.0fs", self.backoff_seconds)
        return self.state
