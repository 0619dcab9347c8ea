"""
Local cache of learned WiFi networks.

The node keeps the last credential list it fetched from the hub on its
own storage, so after a power loss it can get back online without first
reaching the hub. Storage trouble never stops the node: an unreadable
cache is treated as "no learned networks".
"""
import json
import logging
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WifiNetwork:
    """A WiFi network login pair."""

    ssid: str
    password: str

    def to_dict(self) -> dict[str, str]:
        return {'ssid': self.ssid, 'password': self.password}


def parse_networks(data: Any) -> list[WifiNetwork]:
    """
    Decode a credential list as served by the hub.

    Entries without an SSID are skipped.

    Raises:
        ValueError: If ``data`` is not a JSON array
    """
    if not isinstance(data, list):
        raise ValueError(f"Expected a JSON array of networks, got {type(data).__name__}")
    networks: list[WifiNetwork] = []
    for entry in data:
        if not isinstance(entry, dict) or not entry.get('ssid'):
            logger.warning("Skipping malformed network entry: %r", entry)
            continue
        networks.append(WifiNetwork(ssid=str(entry['ssid']), password=str(entry.get('password') or '')))
    return networks


class LocalCredentialStore:
    """Credential list persisted as a JSON file."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def load(self) -> list[WifiNetwork]:
        """
        Load the cached list.

        Returns:
            Saved networks in order; empty if there is no usable cache
        """
        try:
            text = self.path.read_text(encoding='utf-8')
        except FileNotFoundError:
            logger.info("No saved WiFi list at %s", self.path)
            return []
        except OSError as e:
            logger.error("Cannot read WiFi list %s: %s", self.path, e)
            return []

        try:
            networks = parse_networks(json.loads(text))
        except ValueError as e:
            logger.error("Failed to parse WiFi list %s: %s", self.path, e)
            return []
        logger.info("Loaded %d WiFi networks from %s", len(networks), self.path)
        return networks

    def save(self, networks: list[WifiNetwork]) -> bool:
        """
        Replace the cached list.

        The file is written next to the target and renamed into place, so
        a power cut mid-write leaves the previous list intact.

        Returns:
            True if the list was written
        """
        text = json.dumps([n.to_dict() for n in networks])
        tmp_name: str | None = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, prefix=f".{self.path.name}.", suffix='.tmp')
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                f.write(text)
            os.replace(tmp_name, self.path)
        except OSError as e:
            logger.error("Failed to save WiFi list to %s: %s", self.path, e)
            if tmp_name is not None:
                Path(tmp_name).unlink(missing_ok=True)
            return False
        logger.info("Saved %d WiFi networks to %s", len(networks), self.path)
        return True
