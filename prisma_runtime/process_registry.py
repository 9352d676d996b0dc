"""
Engine Process Registry

Tracks the engine processes spawned by this interpreter and the local ports
they own, so two engines never get the same port.

License: Mozilla Public License 2.0
"""

import logging
import socket
import threading
from typing import Dict, List, Set

logger = logging.getLogger(__name__)

# Ports handed out to engines that have not been released yet
_reserved_ports: Set[int] = set()
# Live engines keyed by port
_engines: Dict[int, object] = {}
_lock = threading.Lock()

MAX_PORT_ATTEMPTS = 50


def _free_port(host: str) -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind((host, 0))
        return sock.getsockname()[1]


def reserve_port(host: str = "127.0.0.1") -> int:
    """
    Pick a free local port not already reserved by another engine.

    Returns:
        int: The reserved port

    Raises:
        OSError: If no unreserved port could be found
    """
    for _ in range(MAX_PORT_ATTEMPTS):
        port = _free_port(host)
        with _lock:
            if port not in _reserved_ports:
                _reserved_ports.add(port)
                logger.debug(f"reserved port {port}")
                return port
    raise OSError(f"could not find a free port after {MAX_PORT_ATTEMPTS} attempts")


def release_port(port: int):
    """Free `port` and drop the engine registered on it."""
    with _lock:
        _reserved_ports.discard(port)
        _engines.pop(port, None)


def register(port: int, engine: object):
    """Record a running engine listening on `port`."""
    with _lock:
        _engines[port] = engine


def is_reserved(port: int) -> bool:
    with _lock:
        return port in _reserved_ports


def running_engines() -> List[object]:
    with _lock:
        return list(_engines.values())


def get_info() -> str:
    """
    Summary of running engines.

    Returns:
        str: e.g. "Engines: 2, Ports: 4466, 4467" or "No engines running"
    """
    with _lock:
        ports = sorted(_engines)

    if not ports:
        return "No engines running"

    return f"Engines: {len(ports)}, Ports: {', '.join(str(p) for p in ports)}"
