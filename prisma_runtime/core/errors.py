"""
Error types raised by the engine runtime.

Every failure surfaces as an EngineError subclass so callers can decide
whether to abort, retry or propagate.

License: Mozilla Public License 2.0
"""

from typing import Any, List, Optional


class EngineError(Exception):
    """Base class for all engine runtime errors."""


class ConfigurationError(EngineError):
    """Invalid or missing configuration (never retried)."""


class TransportError(EngineError):
    """Network-level failure talking to a remote host or an engine."""


class DownloadError(TransportError):
    """Engine artifact could not be fetched."""

    def __init__(self, message: str, url: str = "", status_code: Optional[int] = None):
        super().__init__(message)
        self.url = url
        self.status_code = status_code


class ProtocolError(EngineError):
    """Malformed or undecodable data received from a peer."""


class EngineRPCError(ProtocolError):
    """
    Structured error returned inside an engine response envelope.

    Attributes:
        message: The nested human-readable message, verbatim
        errors: Raw error objects as received
    """

    def __init__(self, message: str, errors: Optional[List[Any]] = None, prefix: str = ""):
        super().__init__(f"{prefix}{message}")
        self.message = message
        self.errors = errors or []


class ProcessError(EngineError):
    """Engine subprocess could not be spawned or exited unexpectedly."""


class EngineNotReadyError(ProcessError):
    """Readiness handshake exhausted its retry budget."""

    def __init__(self, message: str, last_error: Optional[BaseException] = None):
        super().__init__(message)
        self.last_error = last_error


class EngineTimeoutError(ProcessError, TimeoutError):
    """Engine did not answer before the deadline."""


class IntrospectionTimeoutError(EngineTimeoutError):
    """Introspection engine did not answer before the deadline."""


class EngineStateError(EngineError):
    """Operation not valid in the engine's current lifecycle state."""


class DisconnectedError(EngineStateError):
    """Engine has been disconnected and must not be used again."""
