"""
Engine channel interface

License: Mozilla Public License 2.0
"""

from abc import ABC, abstractmethod
from typing import Any, Optional


class EngineChannel(ABC):
    """
    One request/response exchange with a running engine.

    Implementations return the result payload or raise EngineRPCError when
    the engine answers with a structured error.
    """

    @abstractmethod
    def call(self, method: str, payload: Any, timeout: Optional[float] = None) -> Any:
        """
        Send one request and return its result.

        Args:
            method: Transport-specific method name
            payload: Request parameters
            timeout: Seconds to wait for this call (None: channel default)

        Returns:
            The result payload of the response envelope
        """

    def close(self):
        """Release transport resources"""

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
