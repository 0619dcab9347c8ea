"""
Runtime settings for the tracker node.

Values come from the environment or a ``.env`` file next to the working
directory, read with python-decouple like the hub's Django settings.
"""
from dataclasses import dataclass
from pathlib import Path

from decouple import config


@dataclass(frozen=True)
class NodeSettings:
    """Everything the node needs to run its control loop."""

    hub_url: str
    api_key: str
    fallback_ssid: str
    fallback_password: str
    credentials_file: Path = Path('wifi.json')
    gps_port: str = '/dev/ttyS0'
    gps_baudrate: int = 9600
    wifi_interface: str | None = None
    connect_timeout: float = 10.0
    backoff_seconds: float = 30.0
    cycle_seconds: float = 2.0
    max_fix_age: float = 2.0
    http_timeout: float = 5.0
    credential_sync_interval: float = 3600.0

    @classmethod
    def from_env(cls) -> 'NodeSettings':
        """Load settings from environment variables / ``.env``."""
        interface = str(config('WIFI_INTERFACE', default=''))
        return cls(
            hub_url=str(config('HUB_URL', default='http://localhost:8000')),
            api_key=str(config('API_KEY', default='')),
            fallback_ssid=str(config('FALLBACK_SSID', default='')),
            fallback_password=str(config('FALLBACK_PASSWORD', default='')),
            credentials_file=Path(str(config('CREDENTIALS_FILE', default='wifi.json'))),
            gps_port=str(config('GPS_PORT', default='/dev/ttyS0')),
            gps_baudrate=config('GPS_BAUDRATE', default=9600, cast=int),
            wifi_interface=interface or None,
            connect_timeout=config('CONNECT_TIMEOUT', default=10.0, cast=float),
            backoff_seconds=config('BACKOFF_SECONDS', default=30.0, cast=float),
            cycle_seconds=config('CYCLE_SECONDS', default=2.0, cast=float),
            max_fix_age=config('MAX_FIX_AGE', default=2.0, cast=float),
            http_timeout=config('HTTP_TIMEOUT', default=5.0, cast=float),
            credential_sync_interval=config('CREDENTIAL_SYNC_INTERVAL', default=3600.0, cast=float),
        )
