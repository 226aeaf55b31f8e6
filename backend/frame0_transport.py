"""
Frame0 Transport - WebSocket Connection Lifecycle

Owns the WebSocket connection to the Frame0 application: connect, keep-alive,
reconnect with backoff, raw sends, and decoding of incoming frames. Decoded
messages go to a single message listener; connection loss is reported once
per connection to a single disconnect listener.
"""

import asyncio
import json
import logging
from typing import Any, Callable, Dict, Optional

import websockets
from websockets.exceptions import ConnectionClosed

from frame0_errors import TransportUnavailableError

logger = logging.getLogger(__name__)

MessageListener = Callable[[Dict[str, Any]], None]
DisconnectListener = Callable[[str], None]


class WebSocketTransport:
    def __init__(self, url: str, reconnect_delay: float = 1.0, max_reconnect_delay: float = 30.0,
                 keep_alive_interval: float = 30.0, connect=None):
        self.url = url
        self.websocket = None
        self.running = True
        self.initial_reconnect_delay = reconnect_delay
        self.reconnect_delay = reconnect_delay
        self.max_reconnect_delay = max_reconnect_delay
        self.keep_alive_interval = keep_alive_interval
        self._connect = connect or websockets.connect
        self._keep_alive_task: Optional[asyncio.Task] = None
        self._on_message: Optional[MessageListener] = None
        self._on_disconnect: Optional[DisconnectListener] = None

    @property
    def connected(self) -> bool:
        return self.websocket is not None

    def set_message_listener(self, listener: MessageListener) -> None:
        self._on_message = listener

    def set_disconnect_listener(self, listener: DisconnectListener) -> None:
        self._on_disconnect = listener

    async def connect(self) -> bool:
        """Open the connection and start the keep-alive task."""
        try:
            logger.info(f"Connecting to Frame0 at {self.url}")
            websocket = await self._connect(self.url, max_size=None)
        except Exception as e:
            logger.error(f"Failed to connect: {e}")
            self.websocket = None
            return False

        self.websocket = websocket
        if self.keep_alive_interval:
            self._keep_alive_task = asyncio.create_task(self._websocket_keep_alive(websocket))
            logger.debug("💓 Started WebSocket keep-alive mechanism")
        logger.info("🌉 Connected to Frame0")
        return True

    async def send(self, raw: str) -> None:
        """Send a serialized message. Raises TransportUnavailableError when not connected."""
        websocket = self.websocket
        if websocket is None:
            raise TransportUnavailableError("Not connected to Frame0")
        try:
            await websocket.send(raw)
        except ConnectionClosed as e:
            # Report the loss after the caller has handled the failed send
            asyncio.get_running_loop().call_soon(self._mark_disconnected, websocket, f"send failed: {e}")
            raise TransportUnavailableError(f"Connection to Frame0 closed: {e}") from e

    async def listen(self) -> None:
        """Receive messages until the connection closes."""
        websocket = self.websocket
        if websocket is None:
            return

        reason = "connection closed"
        logger.info("🎧 Starting to listen for messages from Frame0")
        try:
            while self.running:
                try:
                    raw_message = await websocket.recv()
                except ConnectionClosed as e:
                    reason = f"connection closed: {e}"
                    break

                if not raw_message:
                    logger.warning("📡 Received empty WebSocket message")
                    continue
                self._dispatch(raw_message)
        except asyncio.CancelledError:
            reason = "listener cancelled"
            logger.info("🛑 Listen loop cancelled")
            raise
        finally:
            self._mark_disconnected(websocket, reason)

    def _dispatch(self, raw_message) -> None:
        if isinstance(raw_message, bytes):
            raw_message = raw_message.decode("utf-8", errors="replace")
        logger.debug(f"📡 Raw WebSocket message received: {raw_message[:200]}...")

        try:
            message = json.loads(raw_message)
        except json.JSONDecodeError as e:
            logger.error(f"❌ Failed to decode message: {e}, Raw: {raw_message[:200]}")
            return

        if not isinstance(message, dict):
            logger.warning(f"❌ Ignoring non-object message: {raw_message[:200]}")
            return

        if self._on_message is None:
            logger.warning("Received message but no listener is registered")
            return
        try:
            self._on_message(message)
        except Exception as e:
            logger.error(f"❌ Error handling message: {e}")

    def _mark_disconnected(self, websocket, reason: str) -> None:
        if websocket is None or self.websocket is not websocket:
            return
        self.websocket = None
        if self._keep_alive_task and not self._keep_alive_task.done():
            self._keep_alive_task.cancel()
        self._keep_alive_task = None

        logger.info(f"Disconnected from Frame0 ({reason})")
        if self._on_disconnect is not None:
            try:
                self._on_disconnect(reason)
            except Exception as e:
                logger.error(f"❌ Error in disconnect listener: {e}")

    async def _websocket_keep_alive(self, websocket) -> None:
        """Keep WebSocket connection alive with periodic pings"""
        try:
            while self.running and self.websocket is websocket:
                await asyncio.sleep(self.keep_alive_interval)
                try:
                    pong_waiter = await websocket.ping()
                    await asyncio.wait_for(pong_waiter, timeout=10)
                    logger.debug("💓 WebSocket keep-alive ping successful")
                except (asyncio.TimeoutError, ConnectionClosed) as e:
                    logger.warning(f"💔 WebSocket keep-alive ping failed: {str(e) or 'timed out'}")
                    # Closing ends the listen loop, which reports the loss
                    await websocket.close()
                    break
        except asyncio.CancelledError:
            logger.debug("💓 WebSocket keep-alive task cancelled")

    async def run_with_reconnect(self) -> None:
        """Main loop with reconnection logic"""
        while self.running:
            try:
                if await self.connect():
                    self.reconnect_delay = self.initial_reconnect_delay
                    await self.listen()
                else:
                    logger.warning("Failed to connect to Frame0")
            except Exception as e:
                logger.error(f"Unexpected transport error: {e}")

            if self.running:
                logger.info(f"Reconnecting in {self.reconnect_delay} seconds...")
                await asyncio.sleep(self.reconnect_delay)

                # Exponential backoff up to max delay
                self.reconnect_delay = min(self.reconnect_delay * 2, self.max_reconnect_delay)

    async def close(self) -> None:
        """Stop reconnecting and close the current connection."""
        logger.info("Closing Frame0 transport")
        self.running = False
        websocket = self.websocket
        if websocket is None:
            return
        try:
            await websocket.close()
        except Exception as e:
            logger.error(f"Error closing websocket: {e}")
        self._mark_disconnected(websocket, "closed by client")
