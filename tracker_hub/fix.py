"""
Last-known-position state and the reconciliation rule that updates it.

The tracker reports two kinds of packets: fix packets carrying a valid
position, and no-fix packets that only prove the device is alive (with
optional satellite diagnostics). Position fields only ever change on a
fix packet, so a viewer keeps seeing the last good position while the
device has no satellite lock.
"""
import logging
import math
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any

from .exceptions import InvalidPacket

logger = logging.getLogger(__name__)

POSITION_FIELDS: tuple[str, ...] = ('lat', 'lng', 'speed', 'alt')


@dataclass(frozen=True)
class IncomingPacket:
    """A decoded telemetry packet."""

    has_fix: bool
    lat: float | None = None
    lng: float | None = None
    speed: float | None = None
    alt: float | None = None
    satellite_count: int | None = None
    horizontal_dilution: float | None = None

    def validate(self) -> None:
        """
        Check that a fix packet carries a complete, finite position.

        Raises:
            InvalidPacket: If a required field is missing or not finite
        """
        problems: dict[str, str] = {}
        if self.has_fix:
            for name in POSITION_FIELDS:
                value = getattr(self, name)
                if value is None:
                    problems[name] = "required when hasFix is true"
                elif not math.isfinite(value):
                    problems[name] = f"expected a finite number, got {value}"
        if self.horizontal_dilution is not None and not math.isfinite(self.horizontal_dilution):
            problems['horizontalDilution'] = f"expected a finite number, got {self.horizontal_dilution}"
        if problems:
            raise InvalidPacket("Fix packet is missing or has malformed fields", problems)


@dataclass(frozen=True)
class FixState:
    """
    The single latest-fix record.

    Instances are immutable; every accepted packet produces a new one,
    which lets readers use whichever instance they grabbed without locks.
    """

    lat: float | None = None
    lng: float | None = None
    speed: float | None = None
    alt: float | None = None
    has_fix: bool = False
    satellite_count: int | None = None
    horizontal_dilution: float | None = None
    last_packet_at: datetime | None = None
    last_fix_at: datetime | None = None

    def to_document(self) -> dict[str, Any]:
        """Return the JSON document served to viewers and persisted."""
        return {
            'lat': self.lat,
            'lng': self.lng,
            'speed': self.speed,
            'alt': self.alt,
            'hasFix': self.has_fix,
            'satelliteCount': self.satellite_count,
            'horizontalDilution': self.horizontal_dilution,
            'lastPacketAt': self.last_packet_at.isoformat() if self.last_packet_at else None,
            'lastFixAt': self.last_fix_at.isoformat() if self.last_fix_at else None,
        }

    @classmethod
    def from_document(cls, document: dict[str, Any]) -> 'FixState':
        """
        Rebuild state from a persisted document.

        Also accepts the older ``{lat, lng, speed, alt, timestamp}`` shape,
        which only ever recorded fixes.

        Raises:
            ValueError: If the document is not an object or has bad values
        """
        if not isinstance(document, dict):
            raise ValueError(f"Expected a JSON object, got {type(document).__name__}")

        if 'hasFix' not in document and 'timestamp' in document:
            received_at = _parse_timestamp(document['timestamp'])
            return cls(
                lat=_optional_float(document.get('lat')),
                lng=_optional_float(document.get('lng')),
                speed=_optional_float(document.get('speed')),
                alt=_optional_float(document.get('alt')),
                has_fix=True,
                last_packet_at=received_at,
                last_fix_at=received_at,
            )

        satellite_count = document.get('satelliteCount')
        return cls(
            lat=_optional_float(document.get('lat')),
            lng=_optional_float(document.get('lng')),
            speed=_optional_float(document.get('speed')),
            alt=_optional_float(document.get('alt')),
            has_fix=bool(document.get('hasFix', False)),
            satellite_count=int(satellite_count) if satellite_count is not None else None,
            horizontal_dilution=_optional_float(document.get('horizontalDilution')),
            last_packet_at=_parse_timestamp(document.get('lastPacketAt')),
            last_fix_at=_parse_timestamp(document.get('lastFixAt')),
        )


def reconcile(prior: FixState | None, packet: IncomingPacket, now: datetime) -> FixState:
    """
    Fold one packet into the latest-fix state.

    Args:
        prior: Current state, or None before the first packet ever
        packet: The received packet
        now: Receipt time of the packet

    Returns:
        The new state; ``prior`` is left untouched

    Raises:
        InvalidPacket: If a fix packet lacks a complete, finite position
    """
    packet.validate()
    state = prior if prior is not None else FixState()

    changes: dict[str, Any] = {
        'has_fix': packet.has_fix,
        'last_packet_at': now,
    }
    if packet.has_fix:
        changes.update(
            lat=packet.lat,
            lng=packet.lng,
            speed=packet.speed,
            alt=packet.alt,
            last_fix_at=now,
        )
    # Absent diagnostics carry forward rather than clear
    if packet.satellite_count is not None:
        changes['satellite_count'] = packet.satellite_count
    if packet.horizontal_dilution is not None:
        changes['horizontal_dilution'] = packet.horizontal_dilution

    return replace(state, **changes)


def _optional_float(value: Any) -> float | None:
    if value is None:
        return None
    return float(value)


def _parse_timestamp(value: Any) -> datetime | None:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value).replace('Z', '+00:00'))
