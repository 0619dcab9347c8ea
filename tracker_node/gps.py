"""
GPS acquisition from an NMEA receiver on a serial port.

``GpsReceiver.poll()`` drains whatever bytes the serial port already has
buffered, feeds complete sentences to pynmea2, and returns a snapshot.
It never waits for data, so the control loop keeps its fixed cadence.
"""
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

import pynmea2
import serial

logger = logging.getLogger(__name__)

KNOTS_TO_KMH = 1.852

# Drop the line buffer if a receiver spews garbage without newlines
_MAX_LINE_BUFFER = 4096


@dataclass(frozen=True)
class GpsReading:
    """What the receiver has told us so far, with ages in seconds."""

    lat: float | None = None
    lng: float | None = None
    speed_kmh: float | None = None
    altitude_m: float | None = None
    satellites: int | None = None
    hdop: float | None = None
    location_age: float | None = None
    sentence_age: float | None = None

    def has_fresh_fix(self, max_age: float) -> bool:
        """Whether a valid position was received within ``max_age`` seconds."""
        return (
            self.location_age is not None
            and self.location_age < max_age
            and self.lat is not None
            and self.lng is not None
        )

    def receiver_alive(self, max_age: float) -> bool:
        """Whether any sentence arrived within ``max_age`` seconds."""
        return self.sentence_age is not None and self.sentence_age < max_age


def _to_float(value: Any) -> float | None:
    if value in (None, ''):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _to_int(value: Any) -> int | None:
    number = _to_float(value)
    return int(number) if number is not None else None


class GpsReceiver:
    """Incremental NMEA decoder over a non-blocking serial port."""

    def __init__(
        self,
        port: str,
        baudrate: int = 9600,
        *,
        clock: Callable[[], float] = time.monotonic,
        serial_factory: Callable[..., Any] = serial.Serial,
    ) -> None:
        self.port = port
        self.baudrate = baudrate
        self._clock = clock
        self._serial_factory = serial_factory
        self._serial: Any = None
        self._buffer = bytearray()

        self._lat: float | None = None
        self._lng: float | None = None
        self._speed_kmh: float | None = None
        self._altitude_m: float | None = None
        self._satellites: int | None = None
        self._hdop: float | None = None
        self._location_at: float | None = None
        self._sentence_at: float | None = None

    def _ensure_open(self) -> bool:
        if self._serial is not None:
            return True
        try:
            self._serial = self._serial_factory(self.port, self.baudrate, timeout=0)
        except (serial.SerialException, OSError) as e:
            logger.error("Cannot open GPS port %s: %s", self.port, e)
            return False
        logger.info("Opened GPS port %s at %d baud", self.port, self.baudrate)
        return True

    def close(self) -> None:
        """Close the serial port; the next poll reopens it."""
        if self._serial is not None:
            try:
                self._serial.close()
            except (serial.SerialException, OSError) as e:
                logger.debug("Error closing GPS port: %s", e)
            self._serial = None

    def poll(self) -> GpsReading:
        """Read all buffered input without blocking and return a snapshot."""
        if self._ensure_open():
            try:
                waiting = self._serial.in_waiting
                if waiting:
                    self.feed(self._serial.read(waiting))
            except (serial.SerialException, OSError) as e:
                logger.error("GPS read failed, will reopen %s: %s", self.port, e)
                self.close()
        return self.reading()

    def feed(self, data: bytes) -> None:
        """Feed raw bytes; complete lines are parsed as NMEA sentences."""
        self._buffer.extend(data)
        while True:
            newline = self._buffer.find(b'\n')
            if newline < 0:
                break
            raw = bytes(self._buffer[:newline])
            del self._buffer[:newline + 1]
            self.feed_line(raw.decode('ascii', errors='ignore').strip())
        if len(self._buffer) > _MAX_LINE_BUFFER:
            logger.warning("Discarding %d bytes of unterminated GPS input", len(self._buffer))
            self._buffer.clear()

    def feed_line(self, line: str) -> None:
        """Parse one NMEA sentence and fold it into the current reading."""
        if not line.startswith('$'):
            return
        try:
            msg = pynmea2.parse(line)
        except pynmea2.ParseError as e:
            logger.debug("Ignoring unparseable NMEA sentence %r: %s", line, e)
            return

        now = self._clock()
        self._sentence_at = now

        if isinstance(msg, pynmea2.types.talker.RMC):
            # Some receivers flag A before the position fields are filled in
            if msg.status == 'A' and msg.lat and msg.lon:
                self._lat = msg.latitude
                self._lng = msg.longitude
                knots = _to_float(msg.spd_over_grnd)
                if knots is not None:
                    self._speed_kmh = knots * KNOTS_TO_KMH
                self._location_at = now

        elif isinstance(msg, pynmea2.types.talker.GGA):
            satellites = _to_int(msg.num_sats)
            if satellites is not None:
                self._satellites = satellites
            hdop = _to_float(msg.horizontal_dil)
            if hdop is not None:
                self._hdop = hdop
            if (_to_int(msg.gps_qual) or 0) > 0 and msg.lat and msg.lon:
                self._lat = msg.latitude
                self._lng = msg.longitude
                altitude = _to_float(msg.altitude)
                if altitude is not None:
                    self._altitude_m = altitude
                self._location_at = now

        elif isinstance(msg, pynmea2.types.talker.GSA):
            hdop = _to_float(msg.hdop)
            if hdop is not None:
                self._hdop = hdop

    def reading(self) -> GpsReading:
        """Return the current reading with ages relative to now."""
        now = self._clock()
        return GpsReading(
            lat=self._lat,
            lng=self._lng,
            speed_kmh=self._speed_kmh,
            altitude_m=self._altitude_m,
            satellites=self._satellites,
            hdop=self._hdop,
            location_age=now - self._location_at if self._location_at is not None else None,
            sentence_age=now - self._sentence_at if self._sentence_at is not None else None,
        )
