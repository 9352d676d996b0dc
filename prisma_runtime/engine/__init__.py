"""
Engine process controllers

License: Mozilla Public License 2.0
"""

from .introspection import IntrospectEngine
from .query_engine import EngineState, QueryEngine

__all__ = ['EngineState', 'IntrospectEngine', 'QueryEngine']
