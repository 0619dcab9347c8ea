"""
The tracker node control loop.

One cycle: keep WiFi up, read the GPS, and push at most one packet. The
loop runs on a fixed period; a cycle that took longer than the period
starts the next one immediately.
"""
import logging
import time
from collections.abc import Callable

from .client import HubClient, TelemetryPacket
from .connectivity import ConnectivityManager, LinkState
from .credentials import LocalCredentialStore, WifiNetwork
from .gps import GpsReading, GpsReceiver
from .radio import NmcliRadio
from .settings import NodeSettings

logger = logging.getLogger(__name__)


class TrackerNode:
    """Drives GPS acquisition, connectivity and reporting."""

    def __init__(
        self,
        gps: GpsReceiver,
        hub: HubClient,
        connectivity: ConnectivityManager,
        *,
        cycle_seconds: float = 2.0,
        max_fix_age: float = 2.0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.gps = gps
        self.hub = hub
        self.connectivity = connectivity
        self.cycle_seconds = cycle_seconds
        self.max_fix_age = max_fix_age
        self._clock = clock
        self._sleep = sleep

    @classmethod
    def from_settings(cls, settings: NodeSettings) -> 'TrackerNode':
        """Wire up the real radio, serial port and HTTP client."""
        hub = HubClient(settings.hub_url, settings.api_key, timeout=settings.http_timeout)
        fallback = WifiNetwork(settings.fallback_ssid, settings.fallback_password)
        connectivity = ConnectivityManager(
            NmcliRadio(settings.wifi_interface),
            LocalCredentialStore(settings.credentials_file),
            hub,
            fallback,
            connect_timeout=settings.connect_timeout,
            backoff_seconds=settings.backoff_seconds,
            sync_interval=settings.credential_sync_interval,
        )
        return cls(
            GpsReceiver(settings.gps_port, settings.gps_baudrate),
            hub,
            connectivity,
            cycle_seconds=settings.cycle_seconds,
            max_fix_age=settings.max_fix_age,
        )

    def build_packet(self, reading: GpsReading) -> TelemetryPacket | None:
        """
        Turn a GPS reading into a packet.

        Returns:
            A fix packet if the position is fresh, a no-fix packet with
            signal quality if the receiver is talking but has no fresh
            position, or None if the receiver is silent
        """
        if reading.has_fresh_fix(self.max_fix_age):
            return TelemetryPacket(
                has_fix=True,
                lat=reading.lat,
                lng=reading.lng,
                speed=reading.speed_kmh if reading.speed_kmh is not None else 0.0,
                alt=reading.altitude_m if reading.altitude_m is not None else 0.0,
                satellite_count=reading.satellites,
                horizontal_dilution=reading.hdop,
            )
        if reading.receiver_alive(self.max_fix_age):
            return TelemetryPacket(
                has_fix=False,
                satellite_count=reading.satellites,
                horizontal_dilution=reading.hdop,
            )
        return None

    def run_cycle(self) -> bool:
        """
        Run one control-loop cycle.

        Returns:
            True if a packet was pushed and acknowledged
        """
        state = self.connectivity.ensure_connected()
        self.connectivity.maybe_resync()

        packet = self.build_packet(self.gps.poll())
        if packet is None:
            logger.debug("No GPS data to report")
            return False
        if state is not LinkState.CONNECTED:
            logger.debug("Not connected (%s), packet dropped", state.value)
            return False
        return self.hub.push_packet(packet)

    def run(self, max_cycles: int | None = None) -> None:
        """Boot and run the loop until ``max_cycles`` cycles have run (forever if None)."""
        logger.info("Tracker node starting (cycle %.1fs)", self.cycle_seconds)
        self.connectivity.boot()
        cycles = 0
        try:
            while max_cycles is None or cycles < max_cycles:
                started = self._clock()
                self.run_cycle()
                cycles += 1
                remaining = self.cycle_seconds - (self._clock() - started)
                if remaining > 0 and (max_cycles is None or cycles < max_cycles):
                    self._sleep(remaining)
        finally:
            self.gps.close()
