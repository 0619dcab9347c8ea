"""
WebSocket URL routing for the tracker hub.

Defines WebSocket URL patterns for live latest-fix updates.
"""
from django.urls import path

from . import consumers

websocket_urlpatterns = [
    path('ws/fix/', consumers.FixConsumer.as_asgi()),
]
