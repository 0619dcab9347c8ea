"""
Tests for the latest-fix state and packet reconciliation.
"""
from datetime import datetime, timedelta, timezone
from pathlib import Path
from unittest.mock import patch

import pytest
from hamcrest import (assert_that, calling, equal_to, has_entries, has_key,
                      is_, none, raises)

from tracker_hub.exceptions import InvalidPacket, StorageFailure
from tracker_hub.fix import FixState, IncomingPacket, reconcile
from tracker_hub.store import FIX_KEY, FileDocumentStore
from tracker_hub.tracker import FixTracker

T0 = datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)


def fix_packet(**overrides: object) -> IncomingPacket:
    values: dict = {'has_fix': True, 'lat': 1.0, 'lng': 2.0, 'speed': 3.0, 'alt': 4.0}
    values.update(overrides)
    return IncomingPacket(**values)


class TestReconcile:
    """Tests for folding packets into the latest-fix state."""

    def test_first_fix_packet_sets_everything(self) -> None:
        state = reconcile(None, fix_packet(satellite_count=7, horizontal_dilution=1.2), T0)
        assert_that(state, equal_to(FixState(
            lat=1.0, lng=2.0, speed=3.0, alt=4.0, has_fix=True,
            satellite_count=7, horizontal_dilution=1.2,
            last_packet_at=T0, last_fix_at=T0,
        )))

    def test_first_packet_without_fix(self) -> None:
        """A device that boots without lock still shows up, with no position."""
        state = reconcile(None, IncomingPacket(has_fix=False, satellite_count=2), T0)
        assert_that(state.has_fix, is_(False))
        assert_that(state.lat, is_(none()))
        assert_that(state.last_fix_at, is_(none()))
        assert_that(state.last_packet_at, equal_to(T0))
        assert_that(state.satellite_count, equal_to(2))

    def test_no_fix_packet_keeps_position(self) -> None:
        prior = reconcile(None, fix_packet(), T0)
        later = T0 + timedelta(seconds=5)

        state = reconcile(prior, IncomingPacket(has_fix=False, satellite_count=3, horizontal_dilution=9.9), later)

        assert_that((state.lat, state.lng, state.speed, state.alt), equal_to((1.0, 2.0, 3.0, 4.0)))
        assert_that(state.has_fix, is_(False))
        assert_that(state.last_fix_at, equal_to(T0))
        assert_that(state.last_packet_at, equal_to(later))
        assert_that(state.satellite_count, equal_to(3))
        assert_that(state.horizontal_dilution, equal_to(9.9))

    def test_no_fix_packet_ignores_position_values(self) -> None:
        prior = reconcile(None, fix_packet(), T0)
        state = reconcile(prior, IncomingPacket(has_fix=False, lat=50.0, lng=60.0), T0 + timedelta(seconds=1))
        assert_that((state.lat, state.lng), equal_to((1.0, 2.0)))

    def test_fix_packet_replaces_position_and_advances_last_fix(self) -> None:
        prior = reconcile(None, fix_packet(), T0)
        later = T0 + timedelta(seconds=2)
        state = reconcile(prior, fix_packet(lat=10.0, lng=20.0, speed=0.0, alt=-5.0), later)
        assert_that((state.lat, state.lng, state.speed, state.alt), equal_to((10.0, 20.0, 0.0, -5.0)))
        assert_that(state.last_fix_at, equal_to(later))
        assert_that(state.last_packet_at, equal_to(later))

    def test_absent_diagnostics_carry_forward(self) -> None:
        prior = reconcile(None, fix_packet(satellite_count=9, horizontal_dilution=0.8), T0)
        state = reconcile(prior, fix_packet(), T0 + timedelta(seconds=2))
        assert_that(state.satellite_count, equal_to(9))
        assert_that(state.horizontal_dilution, equal_to(0.8))

    def test_prior_state_is_not_modified(self) -> None:
        prior = reconcile(None, fix_packet(), T0)
        reconcile(prior, fix_packet(lat=-1.0), T0 + timedelta(seconds=1))
        assert_that(prior.lat, equal_to(1.0))

    @pytest.mark.parametrize('field', ['lat', 'lng', 'speed', 'alt'])
    def test_fix_packet_missing_field_is_rejected(self, field: str) -> None:
        packet = fix_packet(**{field: None})
        assert_that(calling(reconcile).with_args(None, packet, T0), raises(InvalidPacket))

    def test_non_finite_position_is_rejected(self) -> None:
        packet = fix_packet(lat=float('nan'))
        with pytest.raises(InvalidPacket) as exc_info:
            reconcile(None, packet, T0)
        assert_that(exc_info.value.fields, has_key('lat'))

    def test_non_finite_hdop_is_rejected_on_no_fix_packet(self) -> None:
        packet = IncomingPacket(has_fix=False, horizontal_dilution=float('inf'))
        assert_that(calling(reconcile).with_args(None, packet, T0), raises(InvalidPacket))


class TestFixDocument:
    """Tests for the persisted / served document form."""

    def test_to_document_uses_wire_names(self) -> None:
        state = reconcile(None, fix_packet(satellite_count=5), T0)
        assert_that(state.to_document(), has_entries({
            'lat': 1.0,
            'lng': 2.0,
            'speed': 3.0,
            'alt': 4.0,
            'hasFix': True,
            'satelliteCount': 5,
            'horizontalDilution': None,
            'lastPacketAt': '2024-05-01T12:00:00+00:00',
            'lastFixAt': '2024-05-01T12:00:00+00:00',
        }))

    def test_document_restores_same_state(self) -> None:
        prior = reconcile(None, fix_packet(satellite_count=5, horizontal_dilution=1.5), T0)
        state = reconcile(prior, IncomingPacket(has_fix=False), T0 + timedelta(seconds=3))
        assert_that(FixState.from_document(state.to_document()), equal_to(state))

    def test_legacy_document_is_read_as_fix(self) -> None:
        state = FixState.from_document({
            'lat': 48.1, 'lng': 11.5, 'speed': 12, 'alt': 500,
            'timestamp': '2024-05-01T12:00:00Z',
        })
        assert_that(state.has_fix, is_(True))
        assert_that(state.speed, equal_to(12.0))
        assert_that(state.last_fix_at, equal_to(T0))
        assert_that(state.last_packet_at, equal_to(T0))

    def test_non_object_document_is_rejected(self) -> None:
        assert_that(calling(FixState.from_document).with_args([1, 2]), raises(ValueError))


class TestFixTracker:
    """Tests for loading and persisting the latest fix."""

    @pytest.fixture
    def store(self, tmp_path: Path) -> FileDocumentStore:
        store = FileDocumentStore(tmp_path)
        store.write(FIX_KEY, reconcile(None, fix_packet(lat=52.1, lng=4.3), T0).to_document())
        return store

    def test_resumes_from_stored_fix(self, store: FileDocumentStore) -> None:
        state = FixTracker(store).snapshot()
        assert_that(state.lat, equal_to(52.1))
        assert_that(state.last_fix_at, equal_to(T0))

    def test_failed_load_is_retried(self, store: FileDocumentStore) -> None:
        tracker = FixTracker(store)
        with patch.object(store, '_read', side_effect=StorageFailure(FIX_KEY, "busy")):
            assert_that(calling(tracker.snapshot), raises(StorageFailure))
        assert_that(tracker.snapshot().lat, equal_to(52.1))

    def test_failed_load_does_not_overwrite_stored_fix(self, store: FileDocumentStore) -> None:
        tracker = FixTracker(store)
        packet = IncomingPacket(has_fix=False, satellite_count=3)
        with patch.object(store, '_read', side_effect=StorageFailure(FIX_KEY, "busy")):
            assert_that(calling(tracker.ingest).with_args(packet, T0 + timedelta(seconds=5)),
                        raises(StorageFailure))
        assert_that(store.read(FIX_KEY), has_entries({'lat': 52.1, 'hasFix': True}))

        result = tracker.ingest(packet, T0 + timedelta(seconds=10))
        assert_that(result.persisted, is_(True))
        assert_that(store.read(FIX_KEY), has_entries({'lat': 52.1, 'hasFix': False, 'satelliteCount': 3}))

    def test_write_failure_keeps_memory_state(self, store: FileDocumentStore) -> None:
        tracker = FixTracker(store)
        with patch.object(store, '_write', side_effect=StorageFailure(FIX_KEY, "disk full")):
            result = tracker.ingest(fix_packet(lat=7.0), T0 + timedelta(seconds=5))
        assert_that(result.persisted, is_(False))
        assert_that(tracker.snapshot().lat, equal_to(7.0))
        assert_that(store.read(FIX_KEY), has_entries({'lat': 52.1}))
