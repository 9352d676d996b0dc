"""
Artifact cache layout

License: Mozilla Public License 2.0
"""

import logging
import os
import sys
from pathlib import Path
from typing import Optional, Union

from ..core.engine_kind import EngineKind
from ..core.errors import ConfigurationError
from .platform import check_for_extension

logger = logging.getLogger(__name__)

ENGINE_PREFIX = "prisma"
BASE_DIR_NAME = Path("prisma") / "binaries"

PathLike = Union[str, "os.PathLike[str]"]


def engine_path(cache_dir: PathLike, kind: EngineKind, version: str, platform_name: str) -> Path:
    """
    Local path of a cached engine.

    Layout: {cache_dir}/{version}/prisma-{engine}-{platform}[.exe]
    """
    file_name = check_for_extension(platform_name, f"{ENGINE_PREFIX}-{kind.value}-{platform_name}")
    return Path(cache_dir) / version / file_name


def bundle_binary_name(os_name: str, arch_name: str, kind: EngineKind) -> str:
    """File name used by the versioned engine bundle: {os}-{arch}-{engine}[.exe]"""
    binary = f"{os_name}-{arch_name}-{kind.value}"
    if os_name == "windows":
        return f"{binary}.exe"
    return binary


def bundle_path(cache_dir: PathLike, version: str, binary_name: str) -> Path:
    """Local path of a bundle engine: {cache_dir}/{version}/{binary_name}"""
    return Path(cache_dir) / version / binary_name


def exists(path: PathLike) -> bool:
    return os.path.exists(path)


def user_cache_dir() -> Path:
    """Per-user cache directory for the host OS."""
    if sys.platform in ("win32", "cygwin"):
        local = os.environ.get("LOCALAPPDATA")
        if not local:
            raise ConfigurationError("could not read user cache dir: %LOCALAPPDATA% is not defined")
        return Path(local)

    try:
        home = Path.home()
    except RuntimeError as e:
        raise ConfigurationError(f"could not read user cache dir: {e}") from e

    if sys.platform == "darwin":
        return home / "Library" / "Caches"

    xdg = os.environ.get("XDG_CACHE_HOME")
    if xdg and os.path.isabs(xdg):
        return Path(xdg)
    return home / ".cache"


def global_cache_dir(prisma_version: str, base: Optional[PathLike] = None) -> Path:
    """Shared cache for engine artifacts: {user cache}/prisma/binaries/cli/{prisma_version}"""
    root = Path(base) if base is not None else user_cache_dir()
    cache = root / BASE_DIR_NAME / "cli" / prisma_version
    logger.debug(f"global cache dir: {cache}")
    return cache
