"""
Introspection Engine

Runs the introspection engine once per pull: one JSON-RPC "introspect"
request on stdin, one response line on stdout, bounded by a timeout.

License: Mozilla Public License 2.0
"""

import logging
import subprocess
import threading
import time
from pathlib import Path
from typing import Any, Optional, Union

from ..binaries.acquire import ensure_engine
from ..binaries.cache import global_cache_dir
from ..config import Config
from ..core.engine_kind import EngineKind
from ..core.errors import (
    EngineRPCError,
    EngineTimeoutError,
    IntrospectionTimeoutError,
    ProcessError,
    ProtocolError,
)
from ..transport.stdio_channel import StdioChannel

logger = logging.getLogger(__name__)

INTROSPECT_METHOD = "introspect"

# -1: no limit on composite type depth
COMPOSITE_TYPE_DEPTH_UNBOUNDED = -1

DEFAULT_TIMEOUT = 60.0


class IntrospectEngine:
    """Derives a data model from a schema with a short-lived engine process."""

    def __init__(self, path: Union[str, Path], timeout: float = DEFAULT_TIMEOUT):
        """
        Initialize introspection engine.

        Args:
            path: Introspection engine executable
            timeout: Overall deadline of one pull(), in seconds
        """
        self.path = Path(path)
        self.timeout = timeout

    @classmethod
    def create(cls, cache_dir: Optional[Union[str, Path]] = None,
               config: Optional[Config] = None,
               session: Optional[Any] = None) -> "IntrospectEngine":
        """
        Resolve the introspection engine binary and build an engine for it.

        Raises:
            ConfigurationError: Relative cache dir or dangling override path
            DownloadError, ProtocolError: If the binary has to be downloaded and that fails
        """
        config = config or Config.default()
        start = time.monotonic()

        cache_dir = cache_dir or global_cache_dir(config.prisma_version)
        path = ensure_engine(EngineKind.INTROSPECTION, cache_dir, config, session=session)

        logger.debug(f"using introspection engine at {path}")
        logger.debug(f"ensure introspection engine took {time.monotonic() - start:.3f}s")
        return cls(path, timeout=config.introspection_timeout)

    def pull(self, schema: str) -> str:
        """
        Introspect a schema and return the resulting data model.

        Args:
            schema: Prisma schema text (datasource included)

        Returns:
            str: Data model text

        Raises:
            IntrospectionTimeoutError: No response before the deadline
            EngineRPCError: The engine answered with an error
            ProcessError: The engine could not be started or exited early
            ProtocolError: The response is not a valid envelope
        """
        start = time.monotonic()

        try:
            process = subprocess.Popen(
                [str(self.path)],
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
                stderr=subprocess.DEVNULL,
            )
        except OSError as e:
            raise ProcessError(f"could not start introspection engine {self.path}: {e}") from e

        threading.Thread(
            target=_reap,
            args=(process,),
            name=f"introspection-reaper-{process.pid}",
            daemon=True,
        ).start()

        channel = StdioChannel(process)
        params = [{
            "schema": schema,
            "compositeTypeDepth": COMPOSITE_TYPE_DEPTH_UNBOUNDED,
        }]

        try:
            result = channel.call(INTROSPECT_METHOD, params, timeout=self.timeout)
        except EngineTimeoutError as e:
            logger.error(f"introspection timed out after {self.timeout}s")
            raise IntrospectionTimeoutError(f"introspection timed out after {self.timeout}s") from e
        except EngineRPCError as e:
            raise EngineRPCError(e.message, errors=e.errors, prefix="introspect error: ") from e
        finally:
            _stop(process)
            channel.close()

        data_model = result.get("dataModel") if isinstance(result, dict) else None
        if not isinstance(data_model, str):
            raise ProtocolError("introspect response carries no dataModel")

        logger.debug(f"introspect took {time.monotonic() - start:.3f}s")
        logger.info("introspect successful")
        return data_model


def _stop(process: subprocess.Popen):
    if process.poll() is not None:
        return
    try:
        process.kill()
    except OSError as e:
        logger.debug(f"introspection engine (pid {process.pid}) already gone: {e}")


def _reap(process: subprocess.Popen):
    returncode = process.wait()
    logger.debug(f"introspection engine (pid {process.pid}) exited with code {returncode}")
