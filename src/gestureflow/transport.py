"""Persistent WebSocket channel from the recognition loop to the dispatcher.

Delivery is best-effort and at-most-once. A message that cannot be sent is
logged and dropped. Nothing is buffered for later. Reconnects run in the
background while messages are dropped, so a missing or hung dispatcher
never stalls or crashes the recognition loop.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from typing import Optional

import websockets
from websockets.exceptions import WebSocketException

from gestureflow.messages import ActionMessage, encode_message

logger = logging.getLogger("gestureflow.transport")

DEFAULT_URL = "ws://localhost:3001"

_SEND_ERRORS = (OSError, asyncio.TimeoutError, WebSocketException)


class MessageTransport:
    """Sends gesture and pointer messages to the dispatcher in call order."""

    def __init__(
        self,
        url: str = DEFAULT_URL,
        connect_timeout: float = 2.0,
        reconnect_interval: float = 2.0,
    ):
        self.url = url
        self.connect_timeout = connect_timeout
        self.reconnect_interval = reconnect_interval
        self.server_info: dict = {}
        self.sent = 0
        self.dropped = 0
        self._ws = None
        self._last_attempt = float("-inf")
        self._warned = False
        self._reconnecting: Optional[asyncio.Task] = None

    @property
    def connected(self) -> bool:
        return self._ws is not None

    async def connect(self) -> bool:
        """Open the channel. Returns False (and logs) if the dispatcher is unreachable."""
        self._last_attempt = time.monotonic()
        try:
            self._ws = await asyncio.wait_for(
                websockets.connect(self.url), timeout=self.connect_timeout
            )
        except _SEND_ERRORS as e:
            self._ws = None
            self._log_failure("connect to %s failed: %s", self.url, e)
            return False

        self._warned = False
        logger.info("Connected to dispatcher at %s", self.url)

        # The dispatcher greets with its backend bindings; absence is harmless
        try:
            hello = json.loads(await asyncio.wait_for(self._ws.recv(), timeout=self.connect_timeout))
            if isinstance(hello, dict) and hello.get("type") == "connected":
                self.server_info = hello
                logger.debug("Dispatcher bindings: %s", hello.get("bindings"))
        except (ValueError, *_SEND_ERRORS) as e:
            logger.debug("No greeting from dispatcher: %s", e)
        return True

    async def send(self, message: ActionMessage) -> bool:
        """Send one message. Never raises or waits on a reconnect; returns whether it went out."""
        if self._ws is None:
            self._schedule_reconnect()
            self.dropped += 1
            return False

        try:
            await self._ws.send(encode_message(message))
        except _SEND_ERRORS as e:
            self._log_failure("send failed, dropping %s: %s", message, e)
            await self._discard()
            self.dropped += 1
            return False

        self.sent += 1
        return True

    def _schedule_reconnect(self):
        # Messages are dropped while an attempt is pending
        if self._reconnecting is not None and not self._reconnecting.done():
            return
        if time.monotonic() - self._last_attempt < self.reconnect_interval:
            return
        self._last_attempt = time.monotonic()
        self._reconnecting = asyncio.create_task(self.connect())

    async def close(self):
        task, self._reconnecting = self._reconnecting, None
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        await self._discard()

    async def _discard(self):
        ws, self._ws = self._ws, None
        if ws is not None:
            try:
                await ws.close()
            except _SEND_ERRORS as e:
                logger.debug("Error closing transport: %s", e)

    def _log_failure(self, msg: str, *args):
        # Warn once per outage, then stay quiet until a connection succeeds
        if self._warned:
            logger.debug(msg, *args)
        else:
            logger.warning(msg, *args)
            self._warned = True

    async def __aenter__(self):
        await self.connect()
        return self

    async def __aexit__(self, *args):
        await self.close()
