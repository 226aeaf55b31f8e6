"""
Frame0 Errors - Command Failure Taxonomy

Every failure surfaced by the command bridge is a CommandError subclass.
The `outcome` attribute tells the caller what is known about the command on
the Frame0 side:

- "not_applied": the command never reached Frame0
- "unknown":     the command may or may not have been applied
- "rejected":    Frame0 received the command and refused it
"""

from typing import Any, Dict, Optional

OUTCOME_NOT_APPLIED = "not_applied"
OUTCOME_UNKNOWN = "unknown"
OUTCOME_REJECTED = "rejected"


class CommandError(Exception):
    """Base class for failures of a single command."""

    outcome: str = OUTCOME_UNKNOWN
    code: str = "command_error"

    def __init__(self, message: str, command: Optional[str] = None, request_id: Optional[str] = None):
        self.command = command
        self.request_id = request_id
        self.message = message
        super().__init__(message)


class TransportUnavailableError(CommandError):
    """No connection to Frame0 when the command was sent."""

    outcome = OUTCOME_NOT_APPLIED
    code = "transport_unavailable"


class CommandTimeoutError(CommandError, TimeoutError):
    """The command was sent but Frame0 did not answer before the deadline."""

    outcome = OUTCOME_UNKNOWN
    code = "timeout"

    def __init__(self, message: str, command: Optional[str] = None, request_id: Optional[str] = None,
                 timeout: Optional[float] = None):
        self.timeout = timeout
        super().__init__(message, command=command, request_id=request_id)


class ConnectionLostError(CommandError, ConnectionError):
    """The connection dropped while the command was outstanding."""

    outcome = OUTCOME_UNKNOWN
    code = "connection_lost"


class DuplicateIdError(CommandError):
    """A request ID was registered twice. Indicates a broken ID generator."""

    outcome = OUTCOME_NOT_APPLIED
    code = "duplicate_id"


class ApplicationError(CommandError):
    """
    Frame0 explicitly reported failure for a command.

    Carries a structured payload. Expected payload shape:
    { code?: str, message: str, details?: dict }, or a plain string.
    """

    outcome = OUTCOME_REJECTED

    def __init__(self, payload: Any, command: Optional[str] = None, request_id: Optional[str] = None,
                 params: Optional[Dict[str, Any]] = None):
        self.params = params

        if isinstance(payload, dict):
            code = str(payload.get("code") or "unknown_app_error")
            message = str(payload.get("message") or "")
            self.details: Dict[str, Any] = payload.get("details", {}) or {}
            normalized_payload = payload
        else:
            code = "unknown_app_error"
            message = "" if payload is None else str(payload)
            self.details = {}
            normalized_payload = {"code": code, "message": message, "details": self.details}

        self.payload = normalized_payload
        # Instance attribute shadows the class default
        self.code = code
        super().__init__(message if message else code, command=command, request_id=request_id)
