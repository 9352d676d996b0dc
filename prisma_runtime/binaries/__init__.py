"""
Engine binaries: platform detection, cache layout, download and acquisition

License: Mozilla Public License 2.0
"""

from .acquire import (
    FetchNativeResult,
    download_url,
    ensure_engine,
    fetch_native,
    fetch_native_with_version,
    override_path,
    remote_platform_name,
)
from .cache import engine_path, global_cache_dir
from .download import download
from .platform import PlatformInfo, binary_extension, binary_platform_name, detect_platform

__all__ = [
    'FetchNativeResult',
    'PlatformInfo',
    'binary_extension',
    'binary_platform_name',
    'detect_platform',
    'download',
    'download_url',
    'engine_path',
    'ensure_engine',
    'fetch_native',
    'fetch_native_with_version',
    'global_cache_dir',
    'override_path',
    'remote_platform_name',
]
