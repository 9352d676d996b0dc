"""
Prisma Engine Runtime

Acquires, caches and runs Prisma engine binaries, and talks to them over
HTTP (query engine) or stdio JSON-RPC (introspection engine).

License: Mozilla Public License 2.0
"""

__version__ = "1.0.0"

from .config import Config, EngineSpec
from .core import EngineKind
from .binaries import ensure_engine, fetch_native, fetch_native_with_version
from .engine import EngineState, IntrospectEngine, QueryEngine

__all__ = [
    'Config',
    'EngineKind',
    'EngineSpec',
    'EngineState',
    'IntrospectEngine',
    'QueryEngine',
    'ensure_engine',
    'fetch_native',
    'fetch_native_with_version',
    '__version__',
]
