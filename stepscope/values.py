# stepscope/values.py
# Value space of the interpreted language and its coercion rules.
#
#   undefined -> UNDEFINED            null     -> None
#   boolean   -> bool                 number   -> int | float (integral floats become int)
#   string    -> str                  array    -> list
#   object    -> dict (str keys)      function -> JSFunction | NativeFunction
#
# Coercions follow the C-family dynamic-language rules:
#   `+` concatenates when either side is a string (or an array/object, via
#   to_string); every other arithmetic operator goes through to_number.

from __future__ import annotations
import math
from typing import Any, Callable, Dict, List, Optional


class _Undefined:
    _instance: Optional["_Undefined"] = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "undefined"

    def __bool__(self) -> bool:
        return False

    def __copy__(self):
        return self

    def __deepcopy__(self, memo):
        return self

    def __reduce__(self):
        return (_Undefined, ())


UNDEFINED = _Undefined()

NAN = float("nan")
INFINITY = float("inf")
MAX_SAFE_INTEGER = 2 ** 53 - 1


class JSFunction:
    """A function value created by the program; closes over its defining scope."""

    def __init__(self, name: str, params: List[Dict[str, Any]], body: Dict[str, Any], closure, node: Dict[str, Any]):
        self.name = name or "<anonymous>"
        self.params = list(params)
        self.body = body
        self.closure = closure
        self.node = node

    @property
    def expression_body(self) -> bool:
        return self.body.get("type") != "BlockStatement"

    def __copy__(self):
        return self

    def __deepcopy__(self, memo):
        # Functions are immutable from a snapshot's point of view.
        return self

    def __repr__(self) -> str:
        return f"<function {self.name}>"


class NativeFunction:
    """Host-implemented function. `impl(interp, this, args)` returns a value."""

    def __init__(self, name: str, impl: Callable[..., Any], *, props: Optional[Dict[str, Any]] = None,
                 construct: Optional[Callable[..., Any]] = None):
        self.name = name
        self.impl = impl
        self.props: Dict[str, Any] = dict(props or {})
        self.construct = construct

    def __copy__(self):
        return self

    def __deepcopy__(self, memo):
        return self

    def __repr__(self) -> str:
        return f"<native {self.name}>"


def is_callable(v: Any) -> bool:
    return isinstance(v, (JSFunction, NativeFunction))


def is_number(v: Any) -> bool:
    return isinstance(v, (int, float)) and not isinstance(v, bool)


def normalize_number(x: Any) -> Any:
    """Integral floats become int; ints past the safe-integer range become float."""
    if isinstance(x, bool):
        return int(x)
    if isinstance(x, int):
        if abs(x) <= MAX_SAFE_INTEGER:
            return x
        try:
            return float(x)
        except OverflowError:
            return INFINITY if x > 0 else -INFINITY
    if math.isfinite(x) and x.is_integer() and abs(x) <= MAX_SAFE_INTEGER and not (x == 0 and math.copysign(1, x) < 0):
        return int(x)
    return x


def type_tag(v: Any) -> str:
    """Variable type tag: arrays are reported apart from plain objects."""
    if v is UNDEFINED:
        return "undefined"
    if v is None:
        return "null"
    if isinstance(v, bool):
        return "boolean"
    if is_number(v):
        return "number"
    if isinstance(v, str):
        return "string"
    if isinstance(v, list):
        return "array"
    if is_callable(v):
        return "function"
    return "object"


def typeof(v: Any) -> str:
    tag = type_tag(v)
    if tag in ("null", "array"):
        return "object"
    return tag


def format_number(n: Any) -> str:
    if isinstance(n, float):
        if math.isnan(n):
            return "NaN"
        if math.isinf(n):
            return "Infinity" if n > 0 else "-Infinity"
        if n.is_integer() and abs(n) < 1e21:
            return str(int(n))
        return repr(n)
    return str(n)


def to_string(v: Any) -> str:
    if v is UNDEFINED:
        return "undefined"
    if v is None:
        return "null"
    if isinstance(v, bool):
        return "true" if v else "false"
    if is_number(v):
        return format_number(v)
    if isinstance(v, str):
        return v
    if isinstance(v, list):
        return ",".join("" if (e is None or e is UNDEFINED) else to_string(e) for e in v)
    if isinstance(v, JSFunction):
        return f"function {v.name}() {{ [code] }}"
    if isinstance(v, NativeFunction):
        return f"function {v.name}() {{ [native code] }}"
    if isinstance(v, dict):
        if "name" in v and "message" in v:
            msg = to_string(v.get("message"))
            return f"{to_string(v.get('name'))}: {msg}" if msg else to_string(v.get("name"))
        return "[object Object]"
    return str(v)


def to_number(v: Any) -> Any:
    if v is UNDEFINED:
        return NAN
    if v is None:
        return 0
    if isinstance(v, bool):
        return 1 if v else 0
    if is_number(v):
        return v
    if isinstance(v, str):
        s = v.strip()
        if s == "":
            return 0
        if s in ("Infinity", "+Infinity"):
            return INFINITY
        if s == "-Infinity":
            return -INFINITY
        if "_" in s:
            return NAN
        try:
            if s.lower().startswith(("0x", "0b", "0o")):
                return int(s, 0)
            if s.lower() in ("inf", "+inf", "-inf", "nan", "infinity", "+infinity", "-infinity"):
                return NAN
            return normalize_number(float(s))
        except ValueError:
            return NAN
    if isinstance(v, list):
        return to_number(to_string(v))
    return NAN


def to_boolean(v: Any) -> bool:
    if v is UNDEFINED or v is None:
        return False
    if isinstance(v, bool):
        return v
    if is_number(v):
        return not (v == 0 or (isinstance(v, float) and math.isnan(v)))
    if isinstance(v, str):
        return v != ""
    return True


def to_int32(v: Any) -> int:
    n = to_number(v)
    if isinstance(n, float) and (math.isnan(n) or math.isinf(n)):
        return 0
    n = int(n) & 0xFFFFFFFF
    return n - 0x100000000 if n >= 0x80000000 else n


def to_uint32(v: Any) -> int:
    return to_int32(v) & 0xFFFFFFFF


def to_property_key(v: Any) -> str:
    return to_string(v)


def to_primitive(v: Any) -> Any:
    if isinstance(v, (list, dict)) or is_callable(v):
        return to_string(v)
    return v


def strict_equals(a: Any, b: Any) -> bool:
    if is_number(a) and is_number(b):
        return a == b
    if isinstance(a, bool) or isinstance(b, bool):
        return isinstance(a, bool) and isinstance(b, bool) and a == b
    if isinstance(a, str) and isinstance(b, str):
        return a == b
    if isinstance(a, (list, dict)) or is_callable(a):
        return a is b
    return a is b


def loose_equals(a: Any, b: Any) -> bool:
    if (a is None or a is UNDEFINED) and (b is None or b is UNDEFINED):
        return True
    if a is None or a is UNDEFINED or b is None or b is UNDEFINED:
        return False
    if type_tag(a) == type_tag(b) or (is_number(a) and is_number(b)):
        return strict_equals(a, b)
    if isinstance(a, bool):
        return loose_equals(to_number(a), b)
    if isinstance(b, bool):
        return loose_equals(a, to_number(b))
    if is_number(a) and isinstance(b, str):
        return a == to_number(b)
    if isinstance(a, str) and is_number(b):
        return to_number(a) == b
    if isinstance(a, (list, dict)) or is_callable(a):
        return loose_equals(to_primitive(a), b)
    if isinstance(b, (list, dict)) or is_callable(b):
        return loose_equals(a, to_primitive(b))
    return False


def display(v: Any) -> str:
    """console-style rendering: strings bare at top level, quoted when nested."""
    return _display(v, top=True, seen=set())


def _display(v: Any, *, top: bool, seen: set) -> str:
    if isinstance(v, str):
        return v if top else repr(v)
    if isinstance(v, list):
        if id(v) in seen:
            return "[Circular]"
        seen = seen | {id(v)}
        return "[ " + ", ".join(_display(e, top=False, seen=seen) for e in v) + " ]" if v else "[]"
    if isinstance(v, dict):
        if id(v) in seen:
            return "[Circular]"
        seen = seen | {id(v)}
        if not v:
            return "{}"
        parts = [f"{k}: {_display(val, top=False, seen=seen)}" for k, val in v.items()]
        return "{ " + ", ".join(parts) + " }"
    if is_callable(v):
        return f"[Function: {v.name}]"
    return to_string(v)
