"""
HTTP Engine Channel

JSON over HTTP to a query engine listening on a local port.

License: Mozilla Public License 2.0
"""

import json
import logging
from typing import Any, Optional

import requests
from requests.exceptions import RequestException

from ..core.errors import EngineRPCError, ProtocolError, TransportError
from ..protocol import GQLResponse
from .base import EngineChannel

logger = logging.getLogger(__name__)


class HttpChannel(EngineChannel):
    """
    HTTP channel to an engine process.

    `call()` methods take the form "VERB /path", e.g. "GET /status".
    """

    def __init__(self, base_url: str, timeout: Optional[float] = None,
                 session: Optional[requests.Session] = None):
        """
        Initialize HTTP channel.

        Args:
            base_url: Engine URL, e.g. http://localhost:4466
            timeout: Request timeout in seconds (None: wait indefinitely). A timeout
                passed to request() or call() overrides it; the readiness
                check uses that to bound each GET /status attempt
            session: Session to reuse (a new one is created otherwise)
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

        logger.debug(f"HTTP engine channel initialized: {self.base_url}")

    def request(self, method: str, path: str, payload: Any = None,
                timeout: Optional[float] = None) -> bytes:
        """
        Execute a raw HTTP request against the engine.

        Args:
            method: HTTP method
            path: Path relative to the base URL
            payload: JSON-serializable body (omitted if None)
            timeout: Seconds for this request (default: channel timeout)

        Returns:
            Raw response body

        Raises:
            TransportError: On connection failure or non-200 status
        """
        url = f"{self.base_url}{path}"
        body = json.dumps(payload) if payload is not None else None

        logger.debug(f"Request: {method.upper()} {url}")

        try:
            response = self.session.request(
                method.upper(),
                url,
                data=body,
                headers={"Content-Type": "application/json"},
                timeout=self.timeout if timeout is None else timeout,
            )
        except RequestException as e:
            raise TransportError(f"request {method.upper()} {url} failed: {e}") from e

        if response.status_code != 200:
            raise TransportError(f"http status code {response.status_code} with response {response.text}")

        return response.content

    def call(self, method: str, payload: Any, timeout: Optional[float] = None) -> Any:
        """
        Send a request and unwrap the result/errors envelope.

        Returns:
            The `data` field, or the whole body when the engine sends none

        Raises:
            ProtocolError: If the body is not a JSON object
            EngineRPCError: If the body carries a non-empty errors list
        """
        verb, _, path = method.partition(" ")
        body = self.request(verb, path or "/", payload, timeout=timeout)

        try:
            parsed = json.loads(body)
            response = GQLResponse.from_dict(parsed)
        except ValueError as e:
            raise ProtocolError(f"could not decode engine response: {e}") from e

        if response.errors:
            raise EngineRPCError(
                response.errors[0].message,
                errors=response.errors,
                prefix="engine returned errors: ",
            )

        return response.data if response.data is not None else parsed

    def close(self):
        """Close the HTTP session"""
        logger.debug(f"Closing HTTP engine channel {self.base_url}")
        self.session.close()
