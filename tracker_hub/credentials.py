"""
WiFi credential list served to the tracker.

The list is the source of truth the device syncs against. Entries are
unique by SSID: upserting an existing SSID replaces its password in
place, a new SSID is appended.
"""
import logging
from typing import Any

from .store import CREDENTIALS_KEY, DocumentStore

logger = logging.getLogger(__name__)

WifiNetwork = dict[str, str]
# The distributor defines a list() method, so its annotations use this alias
WifiNetworkList = list[WifiNetwork]


def normalize_networks(document: Any | None) -> WifiNetworkList:
    """
    Turn a stored document into a clean credential list.

    Non-list documents and entries without an SSID are dropped with a
    warning rather than failing the whole read.
    """
    if document is None:
        return []
    if not isinstance(document, list):
        logger.warning("Credential document is not a list (%s); treating as empty", type(document).__name__)
        return []

    networks: WifiNetworkList = []
    for entry in document:
        if not isinstance(entry, dict) or not entry.get('ssid'):
            logger.warning("Skipping malformed credential entry: %r", entry)
            continue
        networks.append({
            'ssid': str(entry['ssid']),
            'password': str(entry.get('password') or ''),
        })
    return networks


class CredentialDistributor:
    """List, upsert and remove WiFi credentials in the document store."""

    def __init__(self, store: DocumentStore) -> None:
        self._store = store

    def list(self) -> WifiNetworkList:
        """Return the credential list in stored order."""
        return normalize_networks(self._store.read(CREDENTIALS_KEY))

    def upsert(self, ssid: str, password: str) -> WifiNetworkList:
        """
        Add a network or replace the password of an existing one.

        Returns:
            The full updated list
        """
        def apply(document: Any | None) -> WifiNetworkList:
            networks = normalize_networks(document)
            for network in networks:
                if network['ssid'] == ssid:
                    network['password'] = password
                    logger.info("Updated password for WiFi network '%s'", ssid)
                    return networks
            networks.append({'ssid': ssid, 'password': password})
            logger.info("Added WiFi network '%s'", ssid)
            return networks

        return self._store.update(CREDENTIALS_KEY, apply)

    def remove(self, ssid: str) -> WifiNetworkList:
        """
        Remove a network by SSID. Removing an unknown SSID is not an error.

        Returns:
            The full updated list
        """
        def apply(document: Any | None) -> WifiNetworkList:
            networks = normalize_networks(document)
            remaining = [n for n in networks if n['ssid'] != ssid]
            if len(remaining) == len(networks):
                logger.debug("WiFi network '%s' not present; nothing removed", ssid)
            else:
                logger.info("Removed WiFi network '%s'", ssid)
            return remaining

        return self._store.update(CREDENTIALS_KEY, apply)
