"""Delivery of DMs and channel messages through the Discord REST API.

Callers treat every send as fire-and-forget: failures are logged here and
reported as ``False``, never raised.
"""

import logging
from typing import Any, Optional

import httpx

logger = logging.getLogger(__name__)

DISCORD_API = "https://discord.com/api/v10"


class Notifier:
    def __init__(self, bot_token: str, client: Optional[httpx.AsyncClient] = None):
        self.bot_token = bot_token
        self._client = client

    def _http(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=DISCORD_API,
                timeout=10.0,
                headers={
                    "Authorization": f"Bot {self.bot_token}",
                    "User-Agent": "moviecat (self-hosted, 0.1)",
                },
            )
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def notify_channel(self, channel_id: str, payload: dict[str, Any]) -> bool:
        if not self.bot_token:
            logger.info("No bot token configured, not posting to channel %s", channel_id)
            return False
        try:
            response = await self._http().post(f"/channels/{channel_id}/messages", json=payload)
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning("Failed to post to channel %s: %s", channel_id, e)
            return False
        return True

    async def notify_user(self, user_id: str, payload: dict[str, Any]) -> bool:
        if not self.bot_token:
            logger.info("No bot token configured, not messaging user %s", user_id)
            return False
        try:
            response = await self._http().post("/users/@me/channels", json={"recipient_id": str(user_id)})
            response.raise_for_status()
            dm_channel_id = response.json()["id"]
            response = await self._http().post(f"/channels/{dm_channel_id}/messages", json=payload)
            response.raise_for_status()
        except (httpx.HTTPError, KeyError, ValueError) as e:
            logger.warning("Could not send DM to user %s: %s", user_id, e)
            return False
        return True
