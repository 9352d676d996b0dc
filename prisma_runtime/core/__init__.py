"""
Core building blocks shared by the binaries and engine packages

License: Mozilla Public License 2.0
"""

from .engine_kind import EngineKind
from .errors import (
    ConfigurationError,
    DisconnectedError,
    DownloadError,
    EngineError,
    EngineNotReadyError,
    EngineRPCError,
    EngineStateError,
    EngineTimeoutError,
    IntrospectionTimeoutError,
    ProcessError,
    ProtocolError,
    TransportError,
)
from .retry import retry

__all__ = [
    'EngineKind',
    'ConfigurationError',
    'DisconnectedError',
    'DownloadError',
    'EngineError',
    'EngineNotReadyError',
    'EngineRPCError',
    'EngineStateError',
    'EngineTimeoutError',
    'IntrospectionTimeoutError',
    'ProcessError',
    'ProtocolError',
    'TransportError',
    'retry',
]
