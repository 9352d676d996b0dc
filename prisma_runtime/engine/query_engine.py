"""
Query Engine Process Controller

Spawns a query engine on a free local port, waits until it answers
GET /status and forwards HTTP requests to it until disconnected.

License: Mozilla Public License 2.0
"""

import logging
import os
import signal
import subprocess
import threading
import time
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional, Union

from .. import process_registry
from ..binaries import platform
from ..binaries.acquire import ensure_engine
from ..binaries.cache import global_cache_dir
from ..config import Config
from ..core.engine_kind import EngineKind
from ..core.errors import (
    DisconnectedError,
    EngineNotReadyError,
    EngineStateError,
    ProcessError,
    ProtocolError,
    TransportError,
)
from ..core.retry import retry
from ..transport.http_channel import HttpChannel

logger = logging.getLogger(__name__)


class EngineState(Enum):
    UNINITIALIZED = "uninitialized"
    SPAWNING = "spawning"
    READY = "ready"
    DISCONNECTING = "disconnecting"
    TERMINATED = "terminated"
    FAILED = "failed"


def _not_ready_yet(error: BaseException) -> bool:
    # connection refused, bad status, malformed body and error envelopes
    return isinstance(error, (TransportError, ProtocolError))


class QueryEngine:
    """
    Lifecycle owner of one query engine process.

    Usage:
        engine = QueryEngine(schema)
        engine.connect()
        body = engine.request("POST", "/", {"query": "..."})
        engine.disconnect()
    """

    def __init__(self, schema: str, config: Optional[Config] = None,
                 cache_dir: Optional[Union[str, Path]] = None,
                 session: Optional[Any] = None, host: str = "localhost"):
        """
        Initialize query engine controller.

        Args:
            schema: Prisma schema text passed to the engine as PRISMA_DML
            config: Runtime configuration (default: Config.default())
            cache_dir: Absolute artifact cache directory (default: global cache dir)
            session: requests-compatible session used when the engine must be downloaded
            host: Host name used to build the engine URL
        """
        self.schema = schema
        self.config = config or Config.default()
        self.cache_dir = cache_dir
        self.session = session
        self.host = host

        self.state = EngineState.UNINITIALIZED
        self.disconnected = False
        self.process: Optional[subprocess.Popen] = None
        self.port: Optional[int] = None
        self.url: Optional[str] = None
        self.channel: Optional[HttpChannel] = None
        self._reaper: Optional[threading.Thread] = None
        self._sleep = time.sleep

    def connect(self):
        """
        Ensure the binary, spawn it and wait until it is ready.

        Raises:
            EngineStateError: If called more than once
            ConfigurationError, DownloadError: If the binary cannot be resolved
            ProcessError: If the engine cannot be started or exits early
            EngineNotReadyError: If the readiness check never succeeds
        """
        if self.state is not EngineState.UNINITIALIZED:
            raise EngineStateError(f"cannot connect a query engine in state {self.state.value}")

        logger.debug("ensure query engine binary...")
        start = time.monotonic()
        self.state = EngineState.SPAWNING

        try:
            file = self.ensure()
            self.spawn(file)
        except Exception:
            self.state = EngineState.FAILED
            self._cleanup()
            raise

        self.state = EngineState.READY
        logger.debug(f"connecting took {time.monotonic() - start:.3f}s")
        logger.debug("connected.")

    def ensure(self) -> Path:
        """Resolve the query engine binary (override variable, cache or download)."""
        cache_dir = self.cache_dir or global_cache_dir(self.config.prisma_version)
        return ensure_engine(EngineKind.QUERY, cache_dir, self.config, session=self.session)

    def environment(self) -> Dict[str, str]:
        """Environment of the spawned engine process."""
        env = dict(os.environ)
        env.update({
            "PRISMA_DML": self.schema,
            "RUST_LOG": "error",
            "RUST_LOG_FORMAT": "json",
            "PRISMA_CLIENT_ENGINE_TYPE": "binary",
        })

        if self.config.log_queries:
            env.update({
                "PRISMA_LOG_QUERIES": "y",
                "RUST_LOG": "info",
            })

        return env

    def spawn(self, file: Union[str, Path]):
        """Start the engine on a reserved port and run the readiness check."""
        self.port = process_registry.reserve_port()
        self.url = f"http://{self.host}:{self.port}"

        logger.debug(f"running query-engine on port {self.port}")
        logger.debug("starting engine...")

        try:
            self.process = subprocess.Popen(
                [str(file), "-p", str(self.port), "--enable-raw-queries"],
                env=self.environment(),
            )
        except OSError as e:
            raise ProcessError(f"start command {file}: {e}") from e

        process_registry.register(self.port, self)
        self._reaper = threading.Thread(
            target=self._reap,
            name=f"query-engine-reaper-{self.port}",
            daemon=True,
        )
        self._reaper.start()

        self.channel = HttpChannel(self.url)

        logger.debug("connecting to engine...")
        self.wait_ready()

    def wait_ready(self):
        """
        Poll GET /status until the engine answers cleanly. Each attempt is
        bounded by readiness.request_timeout.

        Raises:
            EngineNotReadyError: Retry budget exhausted, carrying the last error
            ProcessError: The engine exited while starting
        """
        readiness = self.config.readiness

        def check():
            returncode = self.process.poll()
            if returncode is not None:
                raise ProcessError(f"query engine exited with code {returncode} before becoming ready")
            return self.channel.call("GET /status", {}, timeout=readiness.request_timeout)

        try:
            retry(
                check,
                attempts=readiness.attempts,
                delay=readiness.delay,
                backoff=readiness.backoff,
                max_delay=readiness.max_delay,
                retryable=_not_ready_yet,
                sleep=self._sleep,
                description="readiness check",
            )
        except (TransportError, ProtocolError) as e:
            raise EngineNotReadyError(
                f"readiness check failed after {readiness.attempts} attempts: {e}",
                last_error=e,
            ) from e

    def _require_ready(self):
        if self.disconnected:
            raise DisconnectedError("query engine is disconnected")
        if self.state is not EngineState.READY:
            raise EngineStateError(f"query engine is not ready (state: {self.state.value})")

    def request(self, method: str, path: str, payload: Any = None) -> bytes:
        """
        Send an HTTP request to the engine and return the raw body.

        Raises:
            DisconnectedError: After disconnect()
            EngineStateError: Before connect() succeeded
            TransportError: On network failure
        """
        self._require_ready()
        return self.channel.request(method, path, payload)

    def query(self, payload: Dict[str, Any]) -> Any:
        """POST a query body to the engine and return its `data`."""
        self._require_ready()
        return self.channel.call("POST /", payload)

    def disconnect(self):
        """
        Stop the engine: SIGINT (kill on Windows) and wait for exit.

        After a failed connect() the process is already gone; this only marks
        the engine disconnected.

        Raises:
            EngineStateError: If connect() was never called
            ProcessError: If signalling fails or the exit was not the expected one
        """
        if self.disconnected:
            logger.debug("query engine already disconnected")
            return
        if self.state is EngineState.FAILED:
            # connect() already killed and reaped the process
            self.disconnected = True
            self.state = EngineState.TERMINATED
            logger.debug("query engine failed to start, nothing to stop")
            return
        if self.process is None:
            raise EngineStateError("query engine was never connected")

        self.disconnected = True
        self.state = EngineState.DISCONNECTING
        logger.debug("disconnecting...")

        try:
            self._terminate()
        finally:
            self._cleanup()
            self.state = EngineState.TERMINATED

        logger.debug("disconnected.")

    def _terminate(self):
        if platform.name() == "windows":
            try:
                self.process.kill()
            except OSError as e:
                raise ProcessError(f"kill process: {e}") from e
            self.process.wait()
            return

        try:
            self.process.send_signal(signal.SIGINT)
        except OSError as e:
            raise ProcessError(f"send signal: {e}") from e

        returncode = self.process.wait()
        if returncode not in (0, -signal.SIGINT):
            raise ProcessError(f"wait for process: query engine exited with code {returncode}")

    def _reap(self):
        process = self.process
        returncode = process.wait()
        if self.disconnected:
            logger.debug(f"query engine (pid {process.pid}) exited with code {returncode}")
        else:
            logger.warning(f"query engine (pid {process.pid}) exited unexpectedly with code {returncode}")

    def _cleanup(self):
        if self.state is EngineState.FAILED and self.process is not None and self.process.poll() is None:
            try:
                self.process.kill()
            except OSError as e:
                logger.debug(f"kill failed engine: {e}")
            self.process.wait()

        if self.channel is not None:
            self.channel.close()
        if self.port is not None:
            process_registry.release_port(self.port)

    def __enter__(self):
        self.connect()
        return self

    def __exit__(self, exc_type, exc, tb):
        if self.process is not None:
            self.disconnect()

    def __repr__(self):
        return f"QueryEngine(url={self.url}, state={self.state.value})"
