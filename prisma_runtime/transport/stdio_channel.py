"""
Stdio Engine Channel

Line-delimited JSON-RPC over a subprocess's stdin/stdout. Each call writes
one request line and reads one response line; the exchange runs on a
worker thread so the caller can bound it with a timeout.

License: Mozilla Public License 2.0
"""

import itertools
import json
import logging
import subprocess
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import Any, Optional

from ..core.errors import EngineRPCError, EngineTimeoutError, ProcessError, ProtocolError
from ..protocol import RPCRequest, RPCResponse
from .base import EngineChannel

logger = logging.getLogger(__name__)


class StdioChannel(EngineChannel):
    """JSON-RPC channel over the pipes of a running subprocess."""

    def __init__(self, process: subprocess.Popen, timeout: Optional[float] = None):
        """
        Initialize stdio channel.

        Args:
            process: Process started with stdin=PIPE and stdout=PIPE (binary mode)
            timeout: Default per-call timeout in seconds
        """
        if process.stdin is None or process.stdout is None:
            raise ValueError("process must be started with stdin and stdout pipes")

        self.process = process
        self.timeout = timeout
        self._ids = itertools.count(1)
        self.executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="engine-stdio")

    def call(self, method: str, payload: Any, timeout: Optional[float] = None) -> Any:
        """
        Send one JSON-RPC request and wait for its response line.

        Args:
            method: JSON-RPC method name
            payload: Positional parameter list
            timeout: Seconds to wait (default: channel timeout)

        Returns:
            The `result` member of the response

        Raises:
            EngineTimeoutError: If no line arrives in time
            ProcessError: If the engine closes stdout or stdin breaks
            ProtocolError: If the line is not a JSON-RPC response
            EngineRPCError: If the response carries an error
        """
        request = RPCRequest(id=next(self._ids), method=method, params=payload)
        line = (json.dumps(request.to_dict()) + "\n").encode("utf-8")
        wait = self.timeout if timeout is None else timeout

        future = self.executor.submit(self._exchange, line)
        try:
            raw = future.result(timeout=wait)
        except FutureTimeoutError:
            raise EngineTimeoutError(f"no response to {method} within {wait}s") from None

        logger.debug(f"engine response: {raw[:500]!r}")

        try:
            response = RPCResponse.from_dict(json.loads(raw))
        except ValueError as e:
            raise ProtocolError(f"could not decode {method} response: {e}") from e

        if response.error is not None:
            error = response.error
            raise EngineRPCError(error.detail, errors=[error])

        return response.result

    def _exchange(self, line: bytes) -> bytes:
        try:
            self.process.stdin.write(line)
            self.process.stdin.flush()
        except (BrokenPipeError, OSError) as e:
            raise ProcessError(f"could not write to engine stdin: {e}") from e

        raw = self.process.stdout.readline()
        if not raw:
            raise ProcessError(f"engine closed stdout without responding (exit code {self.process.poll()})")
        return raw

    def close(self):
        """Close stdin and stop the worker without waiting on a blocked read"""
        try:
            if self.process.stdin and not self.process.stdin.closed:
                self.process.stdin.close()
        except OSError as e:
            logger.debug(f"closing engine stdin: {e}")
        self.executor.shutdown(wait=False)
