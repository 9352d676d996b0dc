"""
Engine acquisition

Guarantees an engine binary is available locally: an operator override
path wins, then the on-disk cache, and only then a download.

License: Mozilla Public License 2.0
"""

import logging
import os
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Union

from ..config import Config
from ..core.engine_kind import EngineKind
from ..core.errors import ConfigurationError
from . import cache
from .download import download
from .platform import arch, binary_platform_name, check_for_extension, name

logger = logging.getLogger(__name__)

STATIC_LINUX_MARKER = "debian-openssl-"


@dataclass
class FetchNativeResult:
    """Paths of the engines fetched by fetch_native_with_version()"""
    query_engine_path: Optional[Path] = None
    schema_engine_path: Optional[Path] = None

    def set_path(self, kind: EngineKind, path: Path):
        if kind is EngineKind.QUERY:
            self.query_engine_path = path
        elif kind is EngineKind.SCHEMA:
            self.schema_engine_path = path


def _validate_cache_dir(cache_dir: Union[str, Path, None]) -> Path:
    if cache_dir is None or str(cache_dir) == "":
        raise ConfigurationError("cache dir must be provided")
    if not os.path.isabs(cache_dir):
        raise ConfigurationError(f"cache dir must be absolute, got {cache_dir}")
    return Path(cache_dir)


def remote_platform_name(kind: EngineKind, platform_name: str, config: Optional[Config] = None) -> str:
    """
    Platform name to request from the download host.

    Debian/OpenSSL hosts get the engine's statically linked build, and a bare
    "linux" maps to linux-musl.
    """
    config = config or Config.default()
    if STATIC_LINUX_MARKER in platform_name:
        return config.get_engine(kind).static_platform
    if platform_name == "linux":
        return "linux-musl"
    return platform_name


def download_url(kind: EngineKind, platform_name: str, config: Optional[Config] = None) -> str:
    """Download URL of an engine for a local platform name."""
    config = config or Config.default()
    spec = config.get_engine(kind)
    url = spec.url.format(
        version=spec.version,
        platform=remote_platform_name(kind, platform_name, config),
        engine=kind.value,
    )
    return check_for_extension(platform_name, url)


def override_path(kind: EngineKind, config: Optional[Config] = None,
                  environ: Optional[Dict[str, str]] = None) -> Optional[Path]:
    """
    Path from the engine's override environment variable, if set.

    Raises:
        ConfigurationError: If the variable is set but nothing exists at that path
    """
    config = config or Config.default()
    env = os.environ if environ is None else environ
    variable = config.get_engine(kind).env
    value = env.get(variable)
    if not value:
        return None

    logger.debug(f"{variable} is defined, using {value}")
    if not os.path.exists(value):
        raise ConfigurationError(f"{variable} was provided, but no {kind.value} was found at {value}")
    return Path(value)


def ensure_engine(kind: EngineKind, cache_dir: Union[str, Path], config: Optional[Config] = None,
                  session: Optional[Any] = None, platform_name: Optional[str] = None,
                  environ: Optional[Dict[str, str]] = None) -> Path:
    """
    Make sure an engine binary is present and return its path.

    Args:
        kind: Engine to ensure
        cache_dir: Absolute cache base directory
        config: Runtime configuration (default: Config.default())
        session: requests-compatible session used for downloads
        platform_name: Platform name override (default: detected host platform)
        environ: Environment for override lookup (default: os.environ)

    Returns:
        Path to the executable

    Raises:
        ConfigurationError: Relative cache dir or dangling override path
        DownloadError, ProtocolError: If the download fails
    """
    cache_dir = _validate_cache_dir(cache_dir)
    config = config or Config.default()

    overridden = override_path(kind, config, environ)
    if overridden is not None:
        return overridden

    platform_name = platform_name or binary_platform_name()
    spec = config.get_engine(kind)
    to = cache.engine_path(cache_dir, kind, spec.version, platform_name)

    logger.debug(f"checking {kind.value}...")
    if cache.exists(to):
        logger.debug(f"{to} is cached")
        return to

    url = download_url(kind, platform_name, config)
    logger.info(f"{kind.value} is missing, downloading {url}...")

    start = time.monotonic()
    download(url, to, session=session, timeout=config.download_timeout)
    logger.debug(f"{kind.value} done, took {time.monotonic() - start:.3f}s")

    return to


def fetch_native(cache_dir: Union[str, Path], config: Optional[Config] = None,
                 session: Optional[Any] = None,
                 platform_name: Optional[str] = None) -> Dict[EngineKind, Path]:
    """Ensure every engine listed in config.native_engines."""
    cache_dir = _validate_cache_dir(cache_dir)
    config = config or Config.default()

    paths = {}
    for kind in config.native_engines:
        paths[kind] = ensure_engine(kind, cache_dir, config, session=session, platform_name=platform_name)
    return paths


def fetch_native_with_version(cache_dir: Union[str, Path], version: str,
                              config: Optional[Config] = None,
                              session: Optional[Any] = None,
                              os_name: Optional[str] = None,
                              arch_name: Optional[str] = None) -> FetchNativeResult:
    """
    Fetch the query and schema engines of a versioned engine bundle.

    Bundle artifacts are named {os}-{arch}-{engine}[.exe] and stored under
    {cache_dir}/{version}/.
    """
    cache_dir = _validate_cache_dir(cache_dir)
    if not version:
        raise ConfigurationError("version must be provided")
    config = config or Config.default()

    os_name = os_name or name()
    arch_name = arch_name or arch()

    result = FetchNativeResult()
    for kind in (EngineKind.QUERY, EngineKind.SCHEMA):
        binary = cache.bundle_binary_name(os_name, arch_name, kind)
        to = cache.bundle_path(cache_dir, version, binary)
        url = config.bundle_url.format(version=version, binary=binary)

        if cache.exists(to):
            logger.debug(f"{to} is cached")
        else:
            logger.info(f"{binary} is missing, downloading {url}...")
            start = time.monotonic()
            download(url, to, session=session, timeout=config.download_timeout)
            logger.debug(f"{binary} done, took {time.monotonic() - start:.3f}s")

        result.set_path(kind, to)

    return result
