"""
Frame0 Communicator - RPC Communication Layer

This module provides the command bridge between the MCP tools and the
Frame0 application. A command is sent as a correlated request over the
transport, and the caller awaits the matching response, a failure, or a
timeout.
"""

import asyncio
import json
import logging
from typing import Any, Callable, Dict, Optional

from frame0_correlation import CorrelationTable, MonotonicIdGenerator, PendingRequest
from frame0_errors import (
    ApplicationError,
    CommandError,
    CommandTimeoutError,
    ConnectionLostError,
    DuplicateIdError,
    TransportUnavailableError,
)

logger = logging.getLogger(__name__)

__all__ = [
    "ApplicationError",
    "CommandError",
    "CommandTimeoutError",
    "ConnectionLostError",
    "DuplicateIdError",
    "Frame0Communicator",
    "TransportUnavailableError",
    "encode_request",
]

DEFAULT_TIMEOUT = 10.0
MESSAGE_TYPE_COMMAND = "command"


def encode_request(request_id: str, command: str, params: Dict[str, Any]) -> str:
    """Serialize a command request for the wire."""
    return json.dumps({
        "type": MESSAGE_TYPE_COMMAND,
        "id": request_id,
        "command": command,
        "params": params,
    })


def _retrieve_outcome(future: asyncio.Future) -> None:
    # Marks the exception retrieved for callers that stopped awaiting
    if not future.cancelled():
        future.exception()


class Frame0Communicator:
    """
    Handles RPC communication with the Frame0 application.

    This class manages:
    - Sending command messages through the transport
    - Tracking pending requests with unique IDs
    - Resolving futures when responses arrive, in any order
    - Timeouts and connection loss

    Commands are never retried: each send_command call is delivered at most
    once.
    """

    def __init__(self, transport, timeout: float = DEFAULT_TIMEOUT,
                 id_generator: Optional[Callable[[], str]] = None):
        """
        Initialize the communicator.

        Args:
            transport: Object exposing `send(raw)`, `set_message_listener(cb)`
                and `set_disconnect_listener(cb)` (see WebSocketTransport)
            timeout: Default timeout in seconds for commands (default: 10.0)
            id_generator: Zero-argument callable returning a fresh request ID
        """
        self.transport = transport
        self.timeout = timeout
        self.generate_id = id_generator or MonotonicIdGenerator()
        self.pending = CorrelationTable()

        transport.set_message_listener(self.handle_message)
        transport.set_disconnect_listener(self.handle_connection_lost)

    @property
    def pending_count(self) -> int:
        return len(self.pending)

    async def send_command(self, command: str, params: Optional[Dict[str, Any]] = None,
                           timeout: Optional[float] = None) -> Any:
        """
        Send a command to Frame0 and wait for the response.

        Args:
            command: The command name (e.g., "shape:create-shape")
            params: Optional parameters for the command
            timeout: Per-call timeout in seconds, overriding the default

        Returns:
            The payload Frame0 returned

        Raises:
            TransportUnavailableError: Not connected; the command was not sent
            CommandTimeoutError: No response before the deadline
            ConnectionLostError: The connection dropped while waiting
            ApplicationError: Frame0 reported a failure for the command
            DuplicateIdError: The ID generator produced a pending ID
        """
        params = params or {}
        limit = self.timeout if timeout is None else timeout
        loop = asyncio.get_running_loop()

        request_id = self.generate_id()
        raw = encode_request(request_id, command, params)
        pending = PendingRequest(id=request_id, command=command, params=params, future=loop.create_future())
        self.pending.register(pending)
        pending.future.add_done_callback(_retrieve_outcome)
        pending.timer = loop.call_later(limit, self._expire, request_id, limit)

        logger.info(f"🚀 Sending command: {command} with ID: {request_id}")
        try:
            await self.transport.send(raw)
            logger.debug(f"🚀 Command params: {params}")
        except TransportUnavailableError as e:
            if self.pending.evict(request_id) is not None:
                pending.reject(TransportUnavailableError(
                    f"Command '{command}' not sent: {e.message}",
                    command=command,
                    request_id=request_id,
                ))
        except Exception as e:
            if self.pending.evict(request_id) is not None:
                error = CommandError(f"Sending '{command}' failed: {e}", command=command, request_id=request_id)
                error.__cause__ = e
                pending.reject(error)

        try:
            result = await pending.future
        except CommandError as e:
            logger.error(f"❗ Command {command} (ID: {request_id}) failed after {pending.elapsed:.3f}s: {e}")
            raise
        logger.info(f"✅ Command {command} (ID: {request_id}) completed after {pending.elapsed:.3f}s")
        return result

    def _expire(self, request_id: str, limit: float) -> None:
        pending = self.pending.evict(request_id)
        if pending is None:
            return
        elapsed = pending.elapsed
        logger.error(f"⏰ Command {pending.command} (ID: {request_id}) timed out after {elapsed:.3f}s (limit: {limit}s)")
        pending.reject(CommandTimeoutError(
            f"Command '{pending.command}' timed out after {elapsed:.1f} seconds",
            command=pending.command,
            request_id=request_id,
            timeout=limit,
        ))

    def handle_message(self, message: Dict[str, Any]) -> None:
        """
        Handle a decoded message from the transport.

        Messages carrying an `id` are responses: `{id, ok, payload}`.
        Anything else is a notification and is ignored here.
        """
        if not isinstance(message, dict):
            logger.warning(f"❌ Ignoring non-object message: {message!r}")
            return

        request_id = message.get("id")
        if request_id is not None and not isinstance(request_id, str):
            logger.warning(f"❌ Discarding response with invalid ID: {request_id!r}")
            return
        if not request_id:
            logger.debug(f"Ignoring message without ID (type: {message.get('type')})")
            return

        pending = self.pending.get(request_id)
        if pending is None:
            logger.warning(f"❌ Received response for unknown ID: {request_id}")
            return

        ok = message.get("ok")
        payload = message.get("payload")

        if ok is True:
            logger.debug(f"🎯 Result payload for {request_id}: {payload}")
            self.pending.resolve(request_id, payload)
            return

        if ok is False:
            error = ApplicationError(payload, command=pending.command, request_id=request_id, params=pending.params)
            logger.error(f"❌ Command {pending.command} (ID: {request_id}) rejected: code={error.code}, message={error.message}")
        else:
            error = ApplicationError(
                {"code": "malformed_response", "message": "Response is missing a boolean 'ok' field",
                 "details": {"response": message}},
                command=pending.command,
                request_id=request_id,
                params=pending.params,
            )
            logger.error(f"❌ Malformed response for {request_id}: {message}")
        self.pending.reject(request_id, error)

    def handle_connection_lost(self, reason: str = "connection closed") -> None:
        """Fail every outstanding command after the transport dropped."""
        count = self.pending.drain_all(lambda pending: ConnectionLostError(
            f"Connection to Frame0 lost while waiting for '{pending.command}': {reason}",
            command=pending.command,
            request_id=pending.id,
        ))
        if count:
            logger.warning(f"📡 Connection lost ({reason}); failed {count} pending command(s)")

    def cleanup_pending_requests(self) -> None:
        """Fail all pending requests (called on shutdown)."""
        self.handle_connection_lost("shutdown")
