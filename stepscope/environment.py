# stepscope/environment.py
# Lexical scope records chained through parent references.

from __future__ import annotations
from typing import Any, Dict, Optional, Set

from .errors import JSReferenceError, JSTypeError
from .state import Variable
from .values import type_tag


class Environment:
    """One scope. `define` is local; `get`/`set` walk outward to the nearest definition."""

    def __init__(self, parent: Optional["Environment"] = None, *, name: str = "block"):
        self.parent = parent
        self.name = name
        self._values: Dict[str, Any] = {}
        self._consts: Set[str] = set()

    def define(self, name: str, value: Any, *, const: bool = False) -> None:
        self._values[name] = value
        if const:
            self._consts.add(name)
        else:
            self._consts.discard(name)

    def _resolve(self, name: str) -> Optional["Environment"]:
        env: Optional[Environment] = self
        while env is not None:
            if name in env._values:
                return env
            env = env.parent
        return None

    def get(self, name: str) -> Any:
        env = self._resolve(name)
        if env is None:
            raise JSReferenceError(f"{name} is not defined")
        return env._values[name]

    def set(self, name: str, value: Any) -> None:
        env = self._resolve(name)
        if env is None:
            raise JSReferenceError(f"{name} is not defined")
        if name in env._consts:
            raise JSTypeError("Assignment to constant variable.")
        env._values[name] = value

    def fork(self) -> "Environment":
        """Sibling copy of this scope; loops use it to give each iteration fresh bindings."""
        twin = Environment(self.parent, name=self.name)
        twin._values = dict(self._values)
        twin._consts = set(self._consts)
        return twin

    def has(self, name: str) -> bool:
        return self._resolve(name) is not None

    def variables(self, scope: str) -> Dict[str, Variable]:
        """Render the local map as Variable records (values are not copied here)."""
        return {
            name: Variable(name=name, value=value, type=type_tag(value), is_new=False, scope=scope)
            for name, value in self._values.items()
        }

    def __repr__(self) -> str:  # pragma: no cover - representation helper
        return f"<Environment {self.name} {sorted(self._values)}>"
