"""
Tests for the ingest, latest-fix and status endpoints.

Covers the fix / no-fix lifecycle through HTTP, shared-secret checks,
packet validation and the durable-write switch.
"""
from datetime import timedelta
from typing import Any
from unittest.mock import patch

import pytest
from django.apps import apps
from django.utils import timezone
from hamcrest import (assert_that, equal_to, has_entries, has_key, is_, none,
                      not_none)
from rest_framework import status
from rest_framework.test import APIClient

from tracker_hub.exceptions import StorageFailure
from tracker_hub.models import Document
from tracker_hub.store import FIX_KEY

API_KEY = 'test-key'
FIX_PARAMS = {'hasFix': 'true', 'lat': '48.117300', 'lng': '11.516667', 'speed': '41.48', 'alt': '545.40'}


def ingest(client: APIClient, key: str | None = API_KEY, **params: Any) -> Any:
    query = dict(params)
    if key is not None:
        query['key'] = key
    return client.get('/receivedata', query)


@pytest.mark.django_db
class TestIngestEndpoint:
    """Tests for GET/POST /receivedata."""

    def test_fix_then_no_fix(self, api_client: APIClient) -> None:
        """The viewer keeps the last position after the device loses lock."""
        response = ingest(api_client, **FIX_PARAMS)
        assert_that(response.status_code, equal_to(status.HTTP_200_OK))
        assert_that(response.json(), equal_to({'status': 'ok', 'hasFix': True}))

        response = ingest(api_client, hasFix='false', satelliteCount='2', horizontalDilution='12.5')
        assert_that(response.status_code, equal_to(status.HTTP_200_OK))
        assert_that(response.json()['hasFix'], is_(False))

        latest = api_client.get('/api/latest-gps').json()
        assert_that(latest, has_entries({
            'lat': 48.1173,
            'lng': 11.516667,
            'speed': 41.48,
            'alt': 545.4,
            'hasFix': False,
            'satelliteCount': 2,
            'horizontalDilution': 12.5,
        }))
        assert_that(latest['lastFixAt'], not_none())
        assert_that(latest['lastPacketAt'] >= latest['lastFixAt'], is_(True))

    def test_fix_is_persisted(self, api_client: APIClient) -> None:
        ingest(api_client, **FIX_PARAMS)
        document = Document.objects.get(key=FIX_KEY)
        assert_that(document.payload, has_entries({'lat': 48.1173, 'hasFix': True}))

    def test_post_json_body(self, api_client: APIClient) -> None:
        response = api_client.post(
            f'/receivedata?key={API_KEY}',
            {'hasFix': True, 'lat': 1.5, 'lng': 2.5, 'speed': 0, 'alt': 10},
            format='json',
        )
        assert_that(response.status_code, equal_to(status.HTTP_200_OK))
        assert_that(api_client.get('/api/latest-gps/').json(), has_entries({'lat': 1.5, 'lng': 2.5}))

    def test_trailing_slash_accepted(self, api_client: APIClient) -> None:
        response = api_client.get('/receivedata/', {'key': API_KEY, **FIX_PARAMS})
        assert_that(response.status_code, equal_to(status.HTTP_200_OK))

    def test_missing_has_fix_means_fix(self, api_client: APIClient) -> None:
        params = {k: v for k, v in FIX_PARAMS.items() if k != 'hasFix'}
        response = ingest(api_client, **params)
        assert_that(response.json(), equal_to({'status': 'ok', 'hasFix': True}))

    def test_wrong_key_is_rejected_and_nothing_changes(self, api_client: APIClient) -> None:
        ingest(api_client, **FIX_PARAMS)
        before = api_client.get('/api/latest-gps').json()

        response = ingest(api_client, key='wrong', hasFix='true', lat='1', lng='1', speed='1', alt='1')

        assert_that(response.status_code, equal_to(status.HTTP_403_FORBIDDEN))
        assert_that(api_client.get('/api/latest-gps').json(), equal_to(before))
        assert_that(Document.objects.get(key=FIX_KEY).payload, equal_to(before))

    def test_wrong_key_before_any_packet_writes_nothing(self, api_client: APIClient) -> None:
        response = ingest(api_client, key='wrong', **FIX_PARAMS)
        assert_that(response.status_code, equal_to(status.HTTP_403_FORBIDDEN))
        assert_that(Document.objects.filter(key=FIX_KEY).exists(), is_(False))

    def test_missing_key_is_rejected(self, api_client: APIClient) -> None:
        response = ingest(api_client, key=None, **FIX_PARAMS)
        assert_that(response.status_code, equal_to(status.HTTP_403_FORBIDDEN))

    def test_unconfigured_secret_rejects_everything(self, api_client: APIClient, hub_settings: Any) -> None:
        hub_settings.TRACKER_API_KEY = ''
        response = ingest(api_client, key='', **FIX_PARAMS)
        assert_that(response.status_code, equal_to(status.HTTP_403_FORBIDDEN))

    @pytest.mark.parametrize('field', ['lat', 'lng', 'speed', 'alt'])
    def test_fix_packet_missing_field(self, api_client: APIClient, field: str) -> None:
        params = {k: v for k, v in FIX_PARAMS.items() if k != field}
        response = ingest(api_client, **params)
        assert_that(response.status_code, equal_to(status.HTTP_400_BAD_REQUEST))
        assert_that(response.json()['fields'], has_key(field))
        assert_that(Document.objects.filter(key=FIX_KEY).exists(), is_(False))

    def test_non_numeric_value(self, api_client: APIClient) -> None:
        response = ingest(api_client, **{**FIX_PARAMS, 'lat': 'north'})
        assert_that(response.status_code, equal_to(status.HTTP_400_BAD_REQUEST))
        assert_that(response.json(), has_entries({'error': 'Invalid packet'}))

    def test_nan_is_rejected(self, api_client: APIClient) -> None:
        response = ingest(api_client, **{**FIX_PARAMS, 'speed': 'nan'})
        assert_that(response.status_code, equal_to(status.HTTP_400_BAD_REQUEST))

    def test_latitude_out_of_range(self, api_client: APIClient) -> None:
        response = ingest(api_client, **{**FIX_PARAMS, 'lat': '91'})
        assert_that(response.status_code, equal_to(status.HTTP_400_BAD_REQUEST))

    def test_no_fix_packet_needs_no_position(self, api_client: APIClient) -> None:
        response = ingest(api_client, hasFix='false')
        assert_that(response.status_code, equal_to(status.HTTP_200_OK))
        latest = api_client.get('/api/latest-gps').json()
        assert_that(latest['lat'], is_(none()))
        assert_that(latest['hasFix'], is_(False))

    def test_storage_failure_is_still_acknowledged(self, api_client: APIClient, hub_state: Any) -> None:
        with patch.object(hub_state.store, 'write', side_effect=StorageFailure(FIX_KEY, "disk full")):
            response = ingest(api_client, **FIX_PARAMS)
        assert_that(response.status_code, equal_to(status.HTTP_200_OK))
        assert_that(api_client.get('/api/latest-gps').json(), has_entries({'lat': 48.1173}))

    def test_storage_failure_with_durable_writes(
        self, api_client: APIClient, hub_state: Any, hub_settings: Any
    ) -> None:
        hub_settings.TRACKER_REQUIRE_DURABLE_WRITE = True
        with patch.object(hub_state.store, 'write', side_effect=StorageFailure(FIX_KEY, "disk full")):
            response = ingest(api_client, **FIX_PARAMS)
        assert_that(response.status_code, equal_to(status.HTTP_503_SERVICE_UNAVAILABLE))

    def test_ingest_broadcasts_fix(self, api_client: APIClient) -> None:
        with patch('tracker_hub.views.broadcast_fix') as broadcast:
            ingest(api_client, **FIX_PARAMS)
        broadcast.assert_called_once()
        state = broadcast.call_args.args[0]
        assert_that(state.lat, equal_to(48.1173))

    def test_unreadable_stored_fix_is_not_overwritten(self, api_client: APIClient, hub_state: Any) -> None:
        hub_state.store.write(FIX_KEY, {
            'lat': 10.0, 'lng': 20.0, 'speed': 0.0, 'alt': 0.0,
            'timestamp': '2024-05-01T12:00:00Z',
        })
        apps.get_app_config('tracker_hub').reset_state()
        state = apps.get_app_config('tracker_hub').state

        with patch.object(state.store, 'read', side_effect=StorageFailure(FIX_KEY, "locked")):
            response = ingest(api_client, hasFix='false', satelliteCount='3')
        assert_that(response.status_code, equal_to(status.HTTP_503_SERVICE_UNAVAILABLE))
        assert_that(Document.objects.get(key=FIX_KEY).payload, has_entries({'lat': 10.0}))

        response = ingest(api_client, hasFix='false', satelliteCount='3')
        assert_that(response.status_code, equal_to(status.HTTP_200_OK))
        assert_that(Document.objects.get(key=FIX_KEY).payload, has_entries({'lat': 10.0, 'hasFix': False}))


@pytest.mark.django_db
class TestLatestFixEndpoint:
    """Tests for GET /api/latest-gps."""

    def test_not_found_before_any_packet(self, api_client: APIClient) -> None:
        response = api_client.get('/api/latest-gps')
        assert_that(response.status_code, equal_to(status.HTTP_404_NOT_FOUND))
        assert_that(response.json(), equal_to({'error': 'No GPS data available'}))

    def test_needs_no_key(self, api_client: APIClient) -> None:
        ingest(api_client, **FIX_PARAMS)
        response = api_client.get('/api/latest-gps')
        assert_that(response.status_code, equal_to(status.HTTP_200_OK))

    def test_restored_from_store_after_restart(self, api_client: APIClient, hub_state: Any) -> None:
        hub_state.store.write(FIX_KEY, {
            'lat': 10.0, 'lng': 20.0, 'speed': 0.0, 'alt': 0.0,
            'timestamp': '2024-05-01T12:00:00Z',
        })
        apps.get_app_config('tracker_hub').reset_state()

        latest = api_client.get('/api/latest-gps').json()
        assert_that(latest, has_entries({'lat': 10.0, 'hasFix': True, 'lastFixAt': '2024-05-01T12:00:00+00:00'}))

    def test_storage_failure_on_load(self, api_client: APIClient, hub_state: Any) -> None:
        with patch.object(hub_state.store, 'read', side_effect=StorageFailure(FIX_KEY, "locked")):
            response = api_client.get('/api/latest-gps')
            status_response = api_client.get('/api/status')
        assert_that(response.status_code, equal_to(status.HTTP_503_SERVICE_UNAVAILABLE))
        assert_that(status_response.status_code, equal_to(status.HTTP_503_SERVICE_UNAVAILABLE))

        ingest(api_client, **FIX_PARAMS)
        assert_that(api_client.get('/api/latest-gps').status_code, equal_to(status.HTTP_200_OK))


@pytest.mark.django_db
class TestStatusEndpoint:
    """Tests for GET /api/status."""

    def test_offline_before_any_packet(self, api_client: APIClient) -> None:
        response = api_client.get('/api/status')
        assert_that(response.status_code, equal_to(status.HTTP_200_OK))
        assert_that(response.json(), equal_to({'connectivity': 'offline', 'lastPacketAt': None, 'lastFixAt': None}))

    def test_online_after_fix(self, api_client: APIClient) -> None:
        ingest(api_client, **FIX_PARAMS)
        assert_that(api_client.get('/api/status').json()['connectivity'], equal_to('online'))

    def test_no_signal_after_no_fix(self, api_client: APIClient) -> None:
        ingest(api_client, **FIX_PARAMS)
        ingest(api_client, hasFix='false')
        assert_that(api_client.get('/api/status').json()['connectivity'], equal_to('no_signal'))

    def test_offline_when_stale(self, api_client: APIClient, hub_state: Any) -> None:
        ingest(api_client, **FIX_PARAMS)
        later = timezone.now() + timedelta(seconds=61)
        with patch('tracker_hub.views.timezone.now', return_value=later):
            document = api_client.get('/api/status').json()
        assert_that(document['connectivity'], equal_to('offline'))
        assert_that(document['lastFixAt'], not_none())

    def test_snapshot_matches_status(self, api_client: APIClient, hub_state: Any) -> None:
        ingest(api_client, **FIX_PARAMS)
        state = hub_state.fix_tracker.snapshot()
        assert_that(state, not_none())
        assert_that(
            api_client.get('/api/status').json()['lastPacketAt'],
            equal_to(state.to_document()['lastPacketAt']),
        )
