"""
Configuration management for the engine runtime

Loads engine versions, download locations and timing from YAML and applies
environment variable overrides once, at construction time.

License: Mozilla Public License 2.0
"""

import copy
import os
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import yaml

from ..core.engine_kind import EngineKind
from ..core.errors import ConfigurationError

logger = logging.getLogger(__name__)

CONFIG_FILE = "engines.yaml"

ENGINE_URL_ENV = "PRISMA_ENGINE_URL"
BUNDLE_URL_ENV = "PRISMA_ENGINES_BUNDLE_URL"
LOG_QUERIES_ENV = "PRISMA_RUNTIME_LOG"

_FALSE_VALUES = ("", "0", "false", "no", "off")


@dataclass(frozen=True)
class EngineSpec:
    """Download and override settings for one engine kind"""
    kind: EngineKind
    env: str
    version: str
    url: str
    static_platform: str

    @classmethod
    def from_dict(cls, kind: EngineKind, data: Dict[str, Any]) -> "EngineSpec":
        try:
            return cls(
                kind=kind,
                env=str(data['env']),
                version=str(data['version']),
                url=str(data['url']),
                static_platform=str(data.get('static_platform', 'linux-musl')),
            )
        except KeyError as e:
            raise ConfigurationError(f"engine {kind} is missing setting {e}") from e


@dataclass(frozen=True)
class ReadinessSettings:
    """Retry budget for the query engine readiness handshake"""
    attempts: int = 100
    delay: float = 0.05
    backoff: float = 2.0
    max_delay: float = 0.1
    # per GET /status attempt, in seconds
    request_timeout: float = 1.0


def _merge(base: Dict[str, Any], override: Mapping[str, Any]) -> Dict[str, Any]:
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, Mapping) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def _load_yaml(path: Path) -> Dict[str, Any]:
    try:
        with open(path, 'r') as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        logger.error(f"Failed to load engine configuration {path}: {e}")
        raise ConfigurationError(f"could not load {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigurationError(f"{path} must contain a mapping")
    return data


class Config:
    """
    Immutable engine runtime configuration.

    Built once (usually via Config.default()) and passed to every component,
    so tests can substitute other versions or URLs without touching
    shared state.
    """

    _default: Optional["Config"] = None

    def __init__(self, config_dir: Optional[Path] = None,
                 overrides: Optional[Mapping[str, Any]] = None,
                 environ: Optional[Mapping[str, str]] = None):
        """
        Initialize configuration.

        Args:
            config_dir: Directory holding engines.yaml. If None, uses the packaged defaults.
            overrides: Values merged over the file contents
            environ: Environment used for overrides (default: os.environ)
        """
        if config_dir is None:
            config_dir = Path(__file__).parent

        self.config_dir = Path(config_dir)
        data = _load_yaml(self.config_dir / CONFIG_FILE)
        if overrides:
            data = _merge(data, overrides)

        env = os.environ if environ is None else environ
        self._engines = self._load_engines(data, env)
        self._native_engines = self._load_native_engines(data)

        self._prisma_version = str(data.get('prisma_version', '3.13.0'))
        self._bundle_url = env.get(BUNDLE_URL_ENV) or str(
            data.get('bundle_url', 'https://prisma-bin.fireboom.io/{version}/{binary}.gz'))

        readiness = data.get('readiness', {}) or {}
        self._readiness = ReadinessSettings(
            attempts=int(readiness.get('attempts', 100)),
            delay=float(readiness.get('delay', 0.05)),
            backoff=float(readiness.get('backoff', 2.0)),
            max_delay=float(readiness.get('max_delay', 0.1)),
            request_timeout=float(readiness.get('request_timeout', 1.0)),
        )
        if self._readiness.attempts < 1:
            raise ConfigurationError("readiness.attempts must be at least 1")
        if self._readiness.request_timeout <= 0:
            raise ConfigurationError("readiness.request_timeout must be positive")

        self._introspection_timeout = float((data.get('introspection') or {}).get('timeout', 60))
        self._download_timeout = float((data.get('download') or {}).get('timeout', 300))

        log_env = env.get(LOG_QUERIES_ENV)
        if log_env is not None:
            self._log_queries = log_env.strip().lower() not in _FALSE_VALUES
        else:
            self._log_queries = bool(data.get('log_queries', False))

        logger.debug(f"Loaded engine configuration from {self.config_dir}")

    @classmethod
    def from_dict(cls, overrides: Mapping[str, Any],
                  environ: Optional[Mapping[str, str]] = None) -> "Config":
        """Packaged defaults with `overrides` merged on top"""
        return cls(overrides=overrides, environ=environ)

    @classmethod
    def default(cls) -> "Config":
        """Process-wide configuration, built on first use"""
        if cls._default is None:
            cls._default = cls()
        return cls._default

    @staticmethod
    def _load_engines(data: Dict[str, Any], env: Mapping[str, str]) -> Dict[EngineKind, EngineSpec]:
        engines_data = data.get('engines') or {}
        engines: Dict[EngineKind, EngineSpec] = {}

        for name, engine_data in engines_data.items():
            try:
                kind = EngineKind.parse(name)
            except ValueError as e:
                raise ConfigurationError(str(e)) from e
            engine_data = dict(engine_data or {})
            if kind is EngineKind.QUERY and env.get(ENGINE_URL_ENV):
                engine_data['url'] = env[ENGINE_URL_ENV]
                logger.debug(f"{ENGINE_URL_ENV} is defined, using {engine_data['url']}")
            engines[kind] = EngineSpec.from_dict(kind, engine_data)

        return engines

    @staticmethod
    def _load_native_engines(data: Dict[str, Any]) -> List[EngineKind]:
        names = data.get('native_engines') or [EngineKind.QUERY.value, EngineKind.SCHEMA.value]
        try:
            return [EngineKind.parse(name) for name in names]
        except ValueError as e:
            raise ConfigurationError(str(e)) from e

    def get_engine(self, kind: EngineKind) -> EngineSpec:
        """Get the settings of an engine kind"""
        try:
            return self._engines[kind]
        except KeyError:
            raise ConfigurationError(f"engine {kind} is not configured") from None

    @property
    def native_engines(self) -> List[EngineKind]:
        return list(self._native_engines)

    @property
    def prisma_version(self) -> str:
        return self._prisma_version

    @property
    def bundle_url(self) -> str:
        return self._bundle_url

    @property
    def readiness(self) -> ReadinessSettings:
        return self._readiness

    @property
    def introspection_timeout(self) -> float:
        return self._introspection_timeout

    @property
    def download_timeout(self) -> float:
        return self._download_timeout

    @property
    def log_queries(self) -> bool:
        """Whether spawned engines should log queries"""
        return self._log_queries

    def __repr__(self):
        return f"Config(engines={[str(k) for k in self._engines]})"
