"""
Tests for the HTTP engine channel.
"""

import json

import pytest
import requests

from prisma_runtime.core import EngineRPCError, ProtocolError, TransportError
from prisma_runtime.transport import HttpChannel

BASE = "http://localhost:4466"


def channel_for(fake_session, responses=None, error=None):
    session = fake_session(responses, error=error)
    return HttpChannel(BASE, session=session), session


def test_request_returns_raw_body(fake_session, fake_response):
    channel, session = channel_for(fake_session, {("POST", f"{BASE}/"): fake_response(body=b'{"data": 1}')})

    assert channel.request("post", "/", {"query": "q"}) == b'{"data": 1}'
    method, url, data = session.calls[0]
    assert (method, url) == ("POST", f"{BASE}/")
    assert json.loads(data) == {"query": "q"}


def test_request_non_200(fake_session, fake_response):
    channel, _ = channel_for(fake_session, {("GET", f"{BASE}/status"): fake_response(500, b"boom")})

    with pytest.raises(TransportError, match="500"):
        channel.request("GET", "/status", {})


def test_request_connection_refused(fake_session):
    channel, _ = channel_for(fake_session, error=requests.ConnectionError("refused"))

    with pytest.raises(TransportError, match="refused"):
        channel.request("GET", "/status", {})


def test_call_returns_data(fake_session, fake_response):
    channel, _ = channel_for(fake_session, {("POST", f"{BASE}/"): fake_response(body=b'{"data": {"a": 1}}')})
    assert channel.call("POST /", {"query": "q"}) == {"a": 1}


def test_call_without_data_returns_body(fake_session, fake_response):
    channel, _ = channel_for(fake_session, {("GET", f"{BASE}/status"): fake_response(body=b'{"status": "ok"}')})
    assert channel.call("GET /status", {}) == {"status": "ok"}


def test_call_malformed_body(fake_session, fake_response):
    channel, _ = channel_for(fake_session, {("GET", f"{BASE}/status"): fake_response(body=b"<html>")})

    with pytest.raises(ProtocolError):
        channel.call("GET /status", {})


def test_call_error_envelope(fake_session, fake_response):
    body = json.dumps({"errors": [{"error": "Database does not exist", "user_facing_error": {"error_code": "P1003"}}]})
    channel, _ = channel_for(fake_session, {("POST", f"{BASE}/"): fake_response(body=body.encode())})

    with pytest.raises(EngineRPCError) as exc_info:
        channel.call("POST /", {})

    assert exc_info.value.message == "Database does not exist"
    assert exc_info.value.errors[0].extensions == {"error_code": "P1003"}


def test_call_timeout_overrides_channel_timeout(fake_session, fake_response):
    session = fake_session({("GET", f"{BASE}/status"): fake_response(body=b'{"status": "ok"}')})
    channel = HttpChannel(BASE, timeout=30, session=session)

    channel.call("GET /status", {}, timeout=0.5)
    channel.request("GET", "/status", {})

    assert session.timeouts == [0.5, 30]


def test_request_untimed_by_default(fake_session, fake_response):
    channel, session = channel_for(fake_session, {("POST", f"{BASE}/"): fake_response(body=b"{}")})

    channel.request("POST", "/", {"query": "q"})

    assert session.timeouts == [None]
