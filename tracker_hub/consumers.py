"""
WebSocket consumer for live latest-fix updates.

Every accepted packet is pushed to connected viewers, so a map can react
immediately instead of waiting for its next poll.
"""
import json
import logging
from typing import Any

from channels.generic.websocket import AsyncWebsocketConsumer

from tracker_hub import STARTUP_TIMESTAMP

logger = logging.getLogger(__name__)

FIX_GROUP = 'fix'


class FixConsumer(AsyncWebsocketConsumer):
    """Relay latest-fix broadcasts to one WebSocket viewer."""

    def get_client_address(self) -> str:
        """Get formatted client address (IP:port) from the scope."""
        headers = dict(self.scope.get('headers', []))
        x_forwarded_for = headers.get(b'x-forwarded-for')
        if x_forwarded_for:
            return x_forwarded_for.decode().split(',')[0].strip()

        client = self.scope.get('client')
        if client:
            return f"{client[0]}:{client[1]}" if len(client) > 1 else str(client[0])
        return 'unknown'

    async def connect(self) -> None:
        """Join the fix group and greet the client."""
        await self.channel_layer.group_add(FIX_GROUP, self.channel_name)
        await self.accept()

        logger.info("WebSocket viewer connected from %s", self.get_client_address())

        # Clients use this to detect backend restarts and refresh the page
        await self.send(text_data=json.dumps({
            'type': 'welcome',
            'server_startup': STARTUP_TIMESTAMP
        }))

    async def disconnect(self, close_code: int) -> None:
        """Leave the fix group."""
        await self.channel_layer.group_discard(FIX_GROUP, self.channel_name)
        logger.info(
            "WebSocket viewer disconnected from %s (code %s)",
            self.get_client_address(), close_code,
        )

    async def fix_update(self, event: dict[str, Any]) -> None:
        """
        Receive a fix broadcast from the channel layer and forward it.

        Args:
            event: Dictionary containing the latest-fix document
        """
        await self.send(text_data=json.dumps({
            'type': 'fix',
            'data': event['data']
        }))
