"""Namespace and method descriptions from the RPC introspection namespace."""

from __future__ import annotations

from dataclasses import dataclass, field

from ..protocol.framing import kind_name
from ..protocol.marshal import param_type_label


@dataclass
class MethodInfo:
    """Signature of one remotely callable operation."""

    rpc: str
    query_kind: int
    args: list[int] = field(default_factory=list)
    response_kind: int = 0
    response_args: list[int] = field(default_factory=list)

    def signature(self) -> str:
        args = ", ".join(param_type_label(t) for t in self.args)
        resp = ", ".join(param_type_label(t) for t in self.response_args)
        return (
            f"{self.rpc} {kind_name(self.query_kind)}({args}) -> "
            f"{kind_name(self.response_kind)}({resp})"
        )

    def to_dict(self) -> dict:
        return {
            "rpc": self.rpc,
            "query": kind_name(self.query_kind),
            "args": [param_type_label(t) for t in self.args],
            "response": kind_name(self.response_kind),
            "response_args": [param_type_label(t) for t in self.response_args],
        }


@dataclass
class NamespaceInfo:
    """A namespace and the methods it exposes."""

    index: int
    name: str
    methods: list[MethodInfo] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "index": self.index,
            "name": self.name,
            "methods": [m.to_dict() for m in self.methods],
        }
