"""
Engine channels

License: Mozilla Public License 2.0
"""

from .base import EngineChannel
from .http_channel import HttpChannel
from .stdio_channel import StdioChannel

__all__ = ['EngineChannel', 'HttpChannel', 'StdioChannel']
