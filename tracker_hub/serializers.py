"""
Serializers for the tracker hub API.

Packets arrive either as query parameters (the firmware issues a plain
GET) or as a JSON body, using the same camelCase field names as the
latest-fix document.
"""
import logging
import math
from typing import Any

from rest_framework import serializers

from .fix import POSITION_FIELDS, IncomingPacket

logger = logging.getLogger(__name__)


class PacketSerializer(serializers.Serializer):
    """
    Decode and validate an incoming telemetry packet.

    ``hasFix`` defaults to true: older firmware only ever reported valid
    fixes and never sent the flag.
    """

    hasFix = serializers.BooleanField(
        required=False,
        default=True,
        help_text="Whether this packet carries a valid GPS fix"
    )
    lat = serializers.FloatField(
        required=False,
        min_value=-90,
        max_value=90,
        help_text="Latitude in decimal degrees"
    )
    lng = serializers.FloatField(
        required=False,
        min_value=-180,
        max_value=180,
        help_text="Longitude in decimal degrees"
    )
    speed = serializers.FloatField(
        required=False,
        help_text="Ground speed in km/h"
    )
    alt = serializers.FloatField(
        required=False,
        help_text="Altitude above sea level in meters"
    )
    satelliteCount = serializers.IntegerField(
        required=False,
        min_value=0,
        help_text="Satellites in use"
    )
    horizontalDilution = serializers.FloatField(
        required=False,
        min_value=0,
        help_text="Horizontal dilution of precision"
    )

    def validate(self, attrs: dict[str, Any]) -> dict[str, Any]:
        """Require a complete, finite position on fix packets."""
        errors: dict[str, str] = {}
        for name in (*POSITION_FIELDS, 'horizontalDilution'):
            value = attrs.get(name)
            if value is not None and not math.isfinite(value):
                errors[name] = f"Expected a finite number, got {value}"

        if attrs.get('hasFix', True):
            for name in POSITION_FIELDS:
                if attrs.get(name) is None and name not in errors:
                    errors[name] = "This field is required when hasFix is true."

        if errors:
            raise serializers.ValidationError(errors)
        return attrs

    def to_packet(self) -> IncomingPacket:
        """Build the domain packet from validated data."""
        data = self.validated_data
        has_fix = bool(data.get('hasFix', True))
        position: dict[str, float | None] = {}
        if has_fix:
            position = {name: data[name] for name in POSITION_FIELDS}
        return IncomingPacket(
            has_fix=has_fix,
            satellite_count=data.get('satelliteCount'),
            horizontal_dilution=data.get('horizontalDilution'),
            **position,
        )


class WifiNetworkSerializer(serializers.Serializer):
    """A WiFi network login pair."""

    ssid = serializers.CharField(max_length=32, trim_whitespace=False, help_text="Network name")
    password = serializers.CharField(
        max_length=128,
        trim_whitespace=False,
        help_text="Network passphrase"
    )
