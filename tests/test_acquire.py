"""
Tests for engine acquisition.
"""

import time

import pytest

from prisma_runtime.binaries import acquire
from prisma_runtime.binaries.acquire import (
    download_url,
    ensure_engine,
    fetch_native,
    fetch_native_with_version,
    remote_platform_name,
)
from prisma_runtime.config import Config
from prisma_runtime.core import ConfigurationError, EngineKind

VERSION = "58b76d24c10d06ee3aba2c8f1e5cbe75db073d3c"
PLATFORM = "darwin-arm64"


@pytest.fixture
def engine_bytes():
    return b"#!/bin/sh\necho engine\n"


@pytest.fixture
def serving_session(fake_session, fake_response, gzipped, engine_bytes):
    """A session that answers every URL with a gzipped engine."""
    return fake_session(default=fake_response(body=gzipped(engine_bytes)))


def test_query_engine_url(config):
    assert download_url(EngineKind.QUERY, PLATFORM, config) == \
        f"https://binaries.prisma.sh/all_commits/{VERSION}/{PLATFORM}/query-engine.gz"


def test_debian_openssl_is_remapped_per_engine(config):
    assert download_url(EngineKind.QUERY, "debian-openssl-3.2.x", config) == \
        f"https://binaries.prisma.sh/all_commits/{VERSION}/linux-musl/query-engine.gz"
    assert download_url(EngineKind.SCHEMA, "debian-openssl-3.2.x", config) == \
        f"https://prisma-bin.fireboom.io/{VERSION}/linux-static-x64/schema-engine.gz"


def test_remote_platform_name(config):
    assert remote_platform_name(EngineKind.QUERY, "linux", config) == "linux-musl"
    assert remote_platform_name(EngineKind.QUERY, "rhel-openssl-1.0.x", config) == "rhel-openssl-1.0.x"
    assert remote_platform_name(EngineKind.SCHEMA, "debian-openssl-1.1.x", config) == "linux-static-x64"


def test_windows_url_gets_exe(config):
    assert download_url(EngineKind.QUERY, "windows", config) == \
        f"https://binaries.prisma.sh/all_commits/{VERSION}/windows/query-engine.exe.gz"


def test_url_uses_configured_version():
    config = Config.from_dict({"engines": {"query-engine": {"version": "V"}}}, environ={})
    assert download_url(EngineKind.QUERY, "P", config) == \
        "https://binaries.prisma.sh/all_commits/V/P/query-engine.gz"


@pytest.mark.parametrize("cache_dir", [".", "relative/cache", ""])
def test_relative_cache_dir_is_rejected(cache_dir, config, fake_session, monkeypatch):
    session = fake_session()
    monkeypatch.setattr(acquire.cache, "exists", lambda path: pytest.fail("filesystem was touched"))

    with pytest.raises(ConfigurationError):
        ensure_engine(EngineKind.QUERY, cache_dir, config, session=session, platform_name=PLATFORM)

    assert session.calls == []


def test_override_variable_skips_network(tmp_path, config, fake_session, monkeypatch):
    binary = tmp_path / "custom-query-engine"
    binary.write_bytes(b"engine")
    monkeypatch.setenv("PRISMA_QUERY_ENGINE_BINARY", str(binary))
    session = fake_session()

    path = ensure_engine(EngineKind.QUERY, str(tmp_path / "cache"), config, session=session)

    assert path == binary
    assert session.calls == []
    assert not (tmp_path / "cache").exists()


def test_override_variable_pointing_nowhere(tmp_path, config, monkeypatch):
    missing = tmp_path / "missing-engine"
    monkeypatch.setenv("PRISMA_INTROSPECTION_ENGINE_BINARY", str(missing))

    with pytest.raises(ConfigurationError) as exc_info:
        ensure_engine(EngineKind.INTROSPECTION, str(tmp_path), config)

    assert "PRISMA_INTROSPECTION_ENGINE_BINARY" in str(exc_info.value)
    assert str(missing) in str(exc_info.value)


def test_first_call_downloads_once_second_is_cached(tmp_path, config, serving_session, engine_bytes):
    path = ensure_engine(EngineKind.QUERY, str(tmp_path), config,
                         session=serving_session, platform_name=PLATFORM)

    assert path == tmp_path / VERSION / f"prisma-query-engine-{PLATFORM}"
    assert path.read_bytes() == engine_bytes
    assert len(serving_session.calls) == 1

    start = time.monotonic()
    again = ensure_engine(EngineKind.QUERY, str(tmp_path), config,
                          session=serving_session, platform_name=PLATFORM)
    elapsed = time.monotonic() - start

    assert again == path
    assert len(serving_session.calls) == 1
    assert elapsed < 0.02


def test_version_upgrade_downloads_again(tmp_path, serving_session):
    old = Config.from_dict({"engines": {"query-engine": {"version": "v1"}}}, environ={})
    new = Config.from_dict({"engines": {"query-engine": {"version": "v2"}}}, environ={})

    first = ensure_engine(EngineKind.QUERY, str(tmp_path), old, session=serving_session, platform_name=PLATFORM)
    second = ensure_engine(EngineKind.QUERY, str(tmp_path), new, session=serving_session, platform_name=PLATFORM)

    assert first != second
    assert first.exists() and second.exists()
    assert len(serving_session.calls) == 2


def test_engine_url_env_override(tmp_path, serving_session):
    config = Config(environ={"PRISMA_ENGINE_URL": "https://mirror.test/{version}/{platform}/{engine}.gz"})

    ensure_engine(EngineKind.QUERY, str(tmp_path), config, session=serving_session, platform_name=PLATFORM)

    assert serving_session.calls[0][1] == f"https://mirror.test/{VERSION}/{PLATFORM}/query-engine.gz"


def test_fetch_native_ensures_query_and_schema(tmp_path, config, serving_session):
    paths = fetch_native(str(tmp_path), config, session=serving_session, platform_name=PLATFORM)

    assert set(paths) == {EngineKind.QUERY, EngineKind.SCHEMA}
    assert all(p.exists() for p in paths.values())
    assert len(serving_session.calls) == 2


def test_fetch_native_requires_absolute_dir(config):
    with pytest.raises(ConfigurationError, match="absolute"):
        fetch_native(".", config)


def test_fetch_native_with_version(tmp_path, config, serving_session):
    result = fetch_native_with_version(str(tmp_path), "1.4.0", config, session=serving_session,
                                       os_name="linux", arch_name="amd64")

    assert result.query_engine_path == tmp_path / "1.4.0" / "linux-amd64-query-engine"
    assert result.schema_engine_path == tmp_path / "1.4.0" / "linux-amd64-schema-engine"
    assert [url for _, url, _ in serving_session.calls] == [
        "https://prisma-bin.fireboom.io/1.4.0/linux-amd64-query-engine.gz",
        "https://prisma-bin.fireboom.io/1.4.0/linux-amd64-schema-engine.gz",
    ]

    fetch_native_with_version(str(tmp_path), "1.4.0", config, session=serving_session,
                              os_name="linux", arch_name="amd64")
    assert len(serving_session.calls) == 2


def test_fetch_native_with_version_requires_version(tmp_path, config):
    with pytest.raises(ConfigurationError):
        fetch_native_with_version(str(tmp_path), "", config)
