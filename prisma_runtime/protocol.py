"""
Engine Wire Envelopes

Dataclasses for the two envelope shapes spoken by Prisma engines:
JSON-RPC 2.0 over stdio (introspection engine) and the GraphQL-style
result/errors body returned over HTTP (query engine).

License: Mozilla Public License 2.0
"""

from typing import Dict, Any, List, Optional
from dataclasses import dataclass, field

JSONRPC_VERSION = "2.0"


@dataclass
class RPCRequest:
    """
    A JSON-RPC request line.

    Params are positional: engines expect a list holding one object.
    """
    id: int
    method: str
    params: List[Any]
    jsonrpc: str = JSONRPC_VERSION

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "id": self.id,
            "jsonrpc": self.jsonrpc,
            "method": self.method,
            "params": self.params,
        }


@dataclass
class RPCError:
    """Structured JSON-RPC error; engines put the readable text in data.message."""
    code: Optional[int] = None
    message: str = ""
    data: Dict[str, Any] = field(default_factory=dict)

    @property
    def detail(self) -> str:
        """The nested human-readable message, falling back to the top-level one."""
        nested = self.data.get("message") if isinstance(self.data, dict) else None
        return str(nested) if nested is not None else self.message

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RPCError":
        nested = data.get("data")
        return cls(
            code=data.get("code"),
            message=str(data.get("message", "")),
            data=nested if isinstance(nested, dict) else {},
        )


@dataclass
class RPCResponse:
    """A JSON-RPC response line: either a result or an error."""
    id: Optional[int] = None
    result: Any = None
    error: Optional[RPCError] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RPCResponse":
        if not isinstance(data, dict):
            raise ValueError("response envelope must be a JSON object")
        error = data.get("error")
        return cls(
            id=data.get("id"),
            result=data.get("result"),
            error=RPCError.from_dict(error) if isinstance(error, dict) else None,
        )


@dataclass
class GQLError:
    """One entry of the query engine's error list."""
    message: str
    path: List[Any] = field(default_factory=list)
    extensions: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Any) -> "GQLError":
        if not isinstance(data, dict):
            return cls(message=str(data))
        message = data.get("error") or data.get("message") or ""
        extensions = data.get("user_facing_error") or data.get("extensions") or {}
        return cls(
            message=str(message),
            path=list(data.get("path") or []),
            extensions=extensions if isinstance(extensions, dict) else {},
        )


@dataclass
class GQLResponse:
    """Query engine response body: data, or a non-empty error list."""
    data: Any = None
    errors: List[GQLError] = field(default_factory=list)

    @classmethod
    def from_dict(cls, body: Any) -> "GQLResponse":
        if not isinstance(body, dict):
            raise ValueError("response body must be a JSON object")
        return cls(
            data=body.get("data"),
            errors=[GQLError.from_dict(e) for e in (body.get("errors") or [])],
        )
