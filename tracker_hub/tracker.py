"""
Process-lifetime owner of the latest-fix state.

There is a single writer path (ingest) and many readers (the latest-fix
and status endpoints). Writers are serialised by a lock; readers take the
current immutable ``FixState`` reference without locking, so they see
either the state before or after a concurrent ingest, never a mix.
"""
import logging
import threading
from dataclasses import dataclass
from datetime import datetime

from django.utils import timezone

from .exceptions import StorageFailure
from .fix import FixState, IncomingPacket, reconcile
from .store import FIX_KEY, DocumentStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IngestResult:
    """Outcome of folding a packet into the latest-fix state."""

    state: FixState
    persisted: bool


class FixTracker:
    """Holds the latest fix in memory and mirrors it to the document store."""

    def __init__(self, store: DocumentStore) -> None:
        self._store = store
        self._state: FixState | None = None
        self._hydrated = False
        self._write_lock = threading.Lock()

    def snapshot(self) -> FixState | None:
        """
        Return the current state.

        The first call after startup loads the persisted document so a
        restart resumes from the last fix rather than from nothing.

        Returns:
            Latest-fix state, or None if no packet was ever received

        Raises:
            StorageFailure: If the persisted fix could not be loaded
        """
        if not self._hydrated:
            with self._write_lock:
                self._hydrate_locked()
        return self._state

    def ingest(self, packet: IncomingPacket, now: datetime | None = None) -> IngestResult:
        """
        Apply a packet and persist the resulting state.

        A storage failure is logged and reported through
        ``IngestResult.persisted``; the in-memory state is kept either way.

        Raises:
            InvalidPacket: If the packet is rejected by reconciliation
            StorageFailure: If the persisted fix could not be loaded first;
                the packet is not applied
        """
        received_at = now or timezone.now()
        with self._write_lock:
            self._hydrate_locked()
            new_state = reconcile(self._state, packet, received_at)
            self._state = new_state
            try:
                self._store.write(FIX_KEY, new_state.to_document())
                persisted = True
            except StorageFailure:
                logger.exception("Failed to persist latest fix; keeping in-memory state")
                persisted = False

        logger.info(
            "Packet received: hasFix=%s lat=%s lng=%s speed=%s alt=%s sats=%s hdop=%s",
            packet.has_fix, new_state.lat, new_state.lng, new_state.speed, new_state.alt,
            new_state.satellite_count, new_state.horizontal_dilution,
        )
        return IngestResult(state=new_state, persisted=persisted)

    def _hydrate_locked(self) -> None:
        if self._hydrated:
            return
        # A failed read propagates and leaves the tracker unhydrated, so the
        # next access retries instead of overwriting the stored fix
        document = self._store.read(FIX_KEY)
        self._hydrated = True
        if document is None:
            logger.debug("No persisted fix found")
            return
        try:
            self._state = FixState.from_document(document)
        except (ValueError, TypeError) as e:
            logger.error("Ignoring unreadable persisted fix: %s", e)
            return
        logger.info("Restored latest fix received at %s", self._state.last_packet_at)
