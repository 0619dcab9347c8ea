"""
HTTP client for the tracker hub.

Every request carries a bounded timeout. Network failures are logged and
reported through the return value; the control loop decides what to do.
"""
import logging
from dataclasses import dataclass

import requests

from .credentials import WifiNetwork, parse_networks

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TelemetryPacket:
    """One report sent to the hub's ingest endpoint."""

    has_fix: bool
    lat: float | None = None
    lng: float | None = None
    speed: float | None = None
    alt: float | None = None
    satellite_count: int | None = None
    horizontal_dilution: float | None = None

    def to_params(self) -> dict[str, str]:
        """Encode as ingest query parameters (without the key)."""
        params = {'hasFix': 'true' if self.has_fix else 'false'}
        if self.has_fix:
            if self.lat is not None:
                params['lat'] = f"{self.lat:.6f}"
            if self.lng is not None:
                params['lng'] = f"{self.lng:.6f}"
            if self.speed is not None:
                params['speed'] = f"{self.speed:.2f}"
            if self.alt is not None:
                params['alt'] = f"{self.alt:.2f}"
        if self.satellite_count is not None:
            params['satelliteCount'] = str(self.satellite_count)
        if self.horizontal_dilution is not None:
            params['horizontalDilution'] = f"{self.horizontal_dilution:.2f}"
        return params


class HubClient:
    """Talks to ``/receivedata`` and ``/wifi`` on the hub."""

    def __init__(
        self,
        base_url: str,
        api_key: str,
        *,
        timeout: float = 5.0,
        session: requests.Session | None = None,
    ) -> None:
        self.base_url = base_url.rstrip('/')
        self.api_key = api_key
        self.timeout = timeout
        self.session = session or requests.Session()

    def push_packet(self, packet: TelemetryPacket) -> bool:
        """
        Send one packet.

        Returns:
            True if the hub acknowledged it with a 2xx response
        """
        params = {'key': self.api_key, **packet.to_params()}
        try:
            response = self.session.get(f"{self.base_url}/receivedata", params=params, timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            logger.warning("Packet push failed: %s", e)
            return False
        logger.debug("Packet pushed (hasFix=%s)", packet.has_fix)
        return True

    def fetch_credentials(self) -> list[WifiNetwork] | None:
        """
        Download the credential list.

        Returns:
            The networks, or None if the hub could not be reached or
            answered with something that is not a credential list
        """
        try:
            response = self.session.get(
                f"{self.base_url}/wifi",
                params={'key': self.api_key},
                timeout=self.timeout,
            )
            response.raise_for_status()
            networks = parse_networks(response.json())
        except requests.RequestException as e:
            logger.warning("Credential fetch failed: %s", e)
            return None
        except ValueError as e:
            logger.error("Hub returned an invalid credential list: %s", e)
            return None
        logger.info("Fetched %d WiFi networks from hub", len(networks))
        return networks
