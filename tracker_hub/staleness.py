"""Connectivity classification of the tracker from its latest-fix state."""
from datetime import datetime, timedelta
from enum import Enum

from .fix import FixState

DEFAULT_STALE_AFTER = timedelta(seconds=60)


class Connectivity(Enum):
    """What a viewer should show for the tracker."""

    OFFLINE = 'offline'
    NO_SIGNAL = 'no_signal'
    ONLINE = 'online'


def classify(
    fix: FixState | None,
    now: datetime,
    stale_after: timedelta = DEFAULT_STALE_AFTER,
) -> Connectivity:
    """
    Classify the tracker as offline, online without GPS, or online.

    Staleness depends on the last packet of any kind, so a device that
    keeps reporting without satellite lock is NO_SIGNAL, not OFFLINE.

    Args:
        fix: Latest-fix state, or None if nothing was ever received
        now: Current time
        stale_after: Silence after which the device counts as offline

    Returns:
        The connectivity classification
    """
    if fix is None or fix.last_packet_at is None:
        return Connectivity.OFFLINE
    if now - fix.last_packet_at > stale_after:
        return Connectivity.OFFLINE
    if not fix.has_fix:
        return Connectivity.NO_SIGNAL
    return Connectivity.ONLINE
