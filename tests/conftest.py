"""
Pytest fixtures for engine runtime tests.
"""

import gzip
import stat
import sys
import textwrap

import pytest
import requests

from prisma_runtime.config import Config

OVERRIDE_VARIABLES = (
    "PRISMA_QUERY_ENGINE_BINARY",
    "PRISMA_SCHEMA_ENGINE_BINARY",
    "PRISMA_INTROSPECTION_ENGINE_BINARY",
    "PRISMA_ENGINE_URL",
    "PRISMA_ENGINES_BUNDLE_URL",
    "PRISMA_RUNTIME_LOG",
)


class FakeResponse:
    """Minimal stand-in for requests.Response."""

    def __init__(self, status_code=200, body=b"", error=None):
        self.status_code = status_code
        self.content = body
        self.error = error
        self.closed = False

    @property
    def text(self):
        return self.content.decode("utf-8", errors="replace")

    def iter_content(self, chunk_size=1):
        for i in range(0, len(self.content), chunk_size):
            yield self.content[i:i + chunk_size]
        if self.error is not None:
            raise self.error

    def close(self):
        self.closed = True


class FakeSession:
    """Records requests and answers from a fixed table (or a default response)."""

    def __init__(self, responses=None, default=None, error=None):
        self.responses = responses or {}
        self.default = default
        self.error = error
        self.calls = []
        self.timeouts = []

    def _respond(self, key):
        if self.error is not None:
            raise self.error
        response = self.responses.get(key, self.default)
        if response is None:
            raise requests.ConnectionError(f"no fake response for {key}")
        return response

    def get(self, url, stream=False, timeout=None):
        self.calls.append(("GET", url, None))
        return self._respond(url)

    def request(self, method, url, data=None, headers=None, timeout=None):
        self.calls.append((method, url, data))
        self.timeouts.append(timeout)
        return self._respond((method, url))

    def close(self):
        pass


@pytest.fixture(autouse=True)
def clean_engine_env(monkeypatch):
    """Tests never see override variables from the developer's shell."""
    for name in OVERRIDE_VARIABLES:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def config():
    """Packaged configuration with fast readiness retries."""
    return Config.from_dict(
        {
            "readiness": {"attempts": 100, "delay": 0.01, "backoff": 2.0, "max_delay": 0.05},
            "introspection": {"timeout": 10},
        },
        environ={},
    )


@pytest.fixture
def gzipped():
    """Compress bytes the way engine artifacts are published."""
    return gzip.compress


@pytest.fixture
def fake_session():
    """Factory for FakeSession objects."""
    return FakeSession


@pytest.fixture
def fake_response():
    """Factory for FakeResponse objects."""
    return FakeResponse


@pytest.fixture
def make_engine(tmp_path):
    """
    Write an executable Python script acting as a fake engine binary.

    Returns a factory taking the script body and a file name.
    """
    def factory(body, name="fake-engine"):
        path = tmp_path / name
        path.write_text(f"#!{sys.executable}\n" + textwrap.dedent(body))
        path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        return path

    return factory


QUERY_ENGINE_SCRIPT = """
import json
import os
import signal
import sys
import time
from http.server import BaseHTTPRequestHandler, HTTPServer

signal.signal(signal.SIGINT, signal.SIG_DFL)

port = int(sys.argv[sys.argv.index("-p") + 1])
startup_delay = float(os.environ.get("FAKE_ENGINE_STARTUP_DELAY", "0"))
status_errors = os.environ.get("FAKE_ENGINE_STATUS_ERRORS")


class Handler(BaseHTTPRequestHandler):
    def _send(self, payload):
        body = json.dumps(payload).encode()
        self.send_response(200)
        self.send_header("Content-Type", "application/json")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def _body(self):
        length = int(self.headers.get("Content-Length") or 0)
        return json.loads(self.rfile.read(length) or b"null")

    def do_GET(self):
        self._body()
        if self.path != "/status":
            self.send_error(404)
        elif status_errors:
            self._send({"errors": [{"error": status_errors}]})
        else:
            self._send({"status": "ok"})

    def do_POST(self):
        payload = self._body()
        self._send({"data": {"echo": payload, "dml": os.environ.get("PRISMA_DML"),
                             "engine_type": os.environ.get("PRISMA_CLIENT_ENGINE_TYPE")}})

    def log_message(self, *args):
        pass


time.sleep(startup_delay)
HTTPServer(("localhost", port), Handler).serve_forever()
"""


@pytest.fixture
def query_engine_binary(make_engine):
    """Fake query engine serving /status and echoing POST bodies."""
    return make_engine(QUERY_ENGINE_SCRIPT, name="fake-query-engine")
