from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, MutableMapping, Tuple

from .ast import BlockStatement
from .builtins import Builtin
from .exceptions import UndefinedReference

Bindings = MutableMapping[str, Any]


@dataclass
class FunctionValue:
    """A declared function: parameters, body, and a snapshot of the declaring scope."""

    name: str
    params: Tuple[str, ...]
    body: BlockStatement
    captured: Dict[str, Any] = field(default_factory=dict, repr=False)


def is_function(value: Any) -> bool:
    return isinstance(value, (FunctionValue, Builtin)) or callable(value)


class Scope:
    """Two-tier name resolution.

    Reads consult ``locals`` first and fall back to ``globals``. Writes go to
    whichever mapping already holds the name and default to ``globals``, so an
    assignment to an unknown name creates a global. ``locals`` may be the
    caller's own mapping; it is used by reference, never copied here.
    """

    __slots__ = ("locals", "globals")

    def __init__(self, locals: Bindings, globals: Dict[str, Any]):
        self.locals = locals
        self.globals = globals

    def lookup(self, name: str) -> Any:
        if name in self.locals:
            return self.locals[name]
        if name in self.globals:
            return self.globals[name]
        raise UndefinedReference(name)

    def owner(self, name: str) -> Bindings:
        if name in self.locals:
            return self.locals
        return self.globals

    def assign(self, name: str, value: Any) -> None:
        self.owner(name)[name] = value

    def declare(self, name: str, value: Any) -> None:
        self.locals[name] = value

    def child(self, locals: Bindings) -> "Scope":
        return Scope(locals, self.globals)
