"""
API views for the tracker hub.

This module provides the endpoints the tracker reports to, the read
endpoints a map viewer polls, and the credential list the tracker syncs
its WiFi networks from.
"""
import logging
from datetime import timedelta
from typing import Any

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer
from django.conf import settings
from django.utils import timezone
from rest_framework import status
from rest_framework.permissions import AllowAny
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.views import APIView

from .apps import get_hub_state
from .auth import (HasSharedSecret, HasSharedSecretForWrites,
                   SharedSecretAuthentication)
from .consumers import FIX_GROUP
from .exceptions import StorageFailure
from .fix import FixState
from .serializers import PacketSerializer, WifiNetworkSerializer
from .staleness import classify
from .store import CONFIG_KEY, POI_KEY

logger = logging.getLogger(__name__)


def broadcast_fix(state: FixState) -> None:
    """Push the new latest-fix document to connected WebSocket viewers."""
    channel_layer = get_channel_layer()
    if channel_layer is None:
        logger.warning("Fix broadcast skipped: no channel layer configured")
        return
    try:
        async_to_sync(channel_layer.group_send)(
            FIX_GROUP,
            {
                "type": "fix_update",
                "data": state.to_document(),
            }
        )
    except Exception:
        logger.exception("WebSocket broadcast of latest fix failed")


class IngestView(APIView):
    """
    Receive a telemetry packet from the tracker.

    GET carries the packet in the query string (what the firmware sends);
    POST carries it as a JSON body. Both need ``?key=<secret>``.
    """

    authentication_classes = [SharedSecretAuthentication]
    permission_classes = [HasSharedSecret]

    def get(self, request: Request) -> Response:
        # A QueryDict would turn an absent hasFix into False
        return self._ingest(request, request.query_params.dict())

    def post(self, request: Request) -> Response:
        data = request.data if isinstance(request.data, dict) else {}
        return self._ingest(request, data)

    def _ingest(self, request: Request, data: Any) -> Response:
        serializer = PacketSerializer(data=data)
        if not serializer.is_valid():
            logger.warning("Rejected invalid packet: %s", serializer.errors)
            return Response(
                {'error': 'Invalid packet', 'fields': serializer.errors},
                status=status.HTTP_400_BAD_REQUEST
            )

        try:
            result = get_hub_state().fix_tracker.ingest(serializer.to_packet())
        except StorageFailure:
            logger.exception("Could not load persisted fix; packet not applied")
            return _fix_storage_unavailable()
        broadcast_fix(result.state)

        if not result.persisted and settings.TRACKER_REQUIRE_DURABLE_WRITE:
            return Response(
                {'error': 'Fix accepted but could not be stored'},
                status=status.HTTP_503_SERVICE_UNAVAILABLE
            )
        return Response({'status': 'ok', 'hasFix': result.state.has_fix})


class LatestFixView(APIView):
    """Return the latest-fix document, or 404 if nothing was ever received."""

    permission_classes = [AllowAny]

    def get(self, request: Request) -> Response:
        try:
            state = get_hub_state().fix_tracker.snapshot()
        except StorageFailure:
            logger.exception("Error loading latest fix")
            return _fix_storage_unavailable()
        if state is None:
            return Response(
                {'error': 'No GPS data available'},
                status=status.HTTP_404_NOT_FOUND
            )
        return Response(state.to_document())


class StatusView(APIView):
    """Classify the tracker as online, online without GPS signal, or offline."""

    permission_classes = [AllowAny]

    def get(self, request: Request) -> Response:
        try:
            state = get_hub_state().fix_tracker.snapshot()
        except StorageFailure:
            logger.exception("Error loading latest fix")
            return _fix_storage_unavailable()
        connectivity = classify(
            state,
            timezone.now(),
            stale_after=timedelta(seconds=settings.TRACKER_STALE_AFTER_SECONDS),
        )
        document = state.to_document() if state else {}
        return Response({
            'connectivity': connectivity.value,
            'lastPacketAt': document.get('lastPacketAt'),
            'lastFixAt': document.get('lastFixAt'),
        })


class PoiView(APIView):
    """Return the points-of-interest catalog as stored."""

    permission_classes = [AllowAny]

    def get(self, request: Request) -> Response:
        try:
            pois = get_hub_state().store.read(POI_KEY)
        except StorageFailure:
            logger.exception("Error loading POI data")
            pois = None
        return Response(pois if pois is not None else [])


class UiConfigView(APIView):
    """Read (open) or replace (shared secret) the UI configuration document."""

    authentication_classes = [SharedSecretAuthentication]
    permission_classes = [HasSharedSecretForWrites]

    def get(self, request: Request) -> Response:
        try:
            document = get_hub_state().store.read(CONFIG_KEY)
        except StorageFailure:
            logger.exception("Error loading config")
            document = None
        if document is None:
            return Response(
                {'error': 'No configuration found'},
                status=status.HTTP_404_NOT_FOUND
            )
        return Response(document)

    def post(self, request: Request) -> Response:
        document = request.data
        if not isinstance(document, (dict, list)):
            return Response(
                {'error': 'Invalid configuration data'},
                status=status.HTTP_400_BAD_REQUEST
            )
        try:
            get_hub_state().store.write(CONFIG_KEY, document)
        except StorageFailure:
            logger.exception("Error saving config")
            return Response(
                {'error': 'Failed to save configuration'},
                status=status.HTTP_500_INTERNAL_SERVER_ERROR
            )
        logger.info("UI configuration updated")
        return Response({'message': 'Configuration updated successfully'})


class WifiListView(APIView):
    """
    The WiFi credential list.

    - GET: full list
    - PUT: upsert ``{ssid, password}``, returns the full list
    """

    authentication_classes = [SharedSecretAuthentication]
    permission_classes = [HasSharedSecret]

    def get(self, request: Request) -> Response:
        try:
            networks = get_hub_state().credentials.list()
        except StorageFailure:
            logger.exception("Error loading WiFi list")
            return _storage_unavailable()
        return Response(networks)

    def put(self, request: Request) -> Response:
        serializer = WifiNetworkSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(
                {'error': 'Missing ssid or password', 'fields': serializer.errors},
                status=status.HTTP_400_BAD_REQUEST
            )
        try:
            networks = get_hub_state().credentials.upsert(
                serializer.validated_data['ssid'],
                serializer.validated_data['password'],
            )
        except StorageFailure:
            logger.exception("Error saving WiFi list")
            return _storage_unavailable()
        return Response(networks)


class WifiDetailView(APIView):
    """Remove one network by SSID; unknown SSIDs are not an error."""

    authentication_classes = [SharedSecretAuthentication]
    permission_classes = [HasSharedSecret]

    def delete(self, request: Request, ssid: str) -> Response:
        try:
            networks = get_hub_state().credentials.remove(ssid)
        except StorageFailure:
            logger.exception("Error saving WiFi list")
            return _storage_unavailable()
        return Response(networks)


def _storage_unavailable() -> Response:
    return Response(
        {'error': 'WiFi list storage unavailable'},
        status=status.HTTP_503_SERVICE_UNAVAILABLE
    )


def _fix_storage_unavailable() -> Response:
    return Response(
        {'error': 'Latest fix storage unavailable'},
        status=status.HTTP_503_SERVICE_UNAVAILABLE
    )
