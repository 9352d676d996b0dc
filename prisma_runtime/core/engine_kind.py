"""
Engine kinds.

License: Mozilla Public License 2.0
"""

from enum import Enum


class EngineKind(str, Enum):
    """Role played by an engine binary; the value is its canonical name."""

    QUERY = "query-engine"
    SCHEMA = "schema-engine"
    INTROSPECTION = "introspection-engine"

    @classmethod
    def parse(cls, name: str) -> "EngineKind":
        for kind in cls:
            if kind.value == name:
                return kind
        raise ValueError(f"unknown engine kind: {name}")

    def __str__(self) -> str:
        return self.value
