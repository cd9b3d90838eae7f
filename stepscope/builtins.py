# stepscope/builtins.py
# Global library and property access for the interpreted language.
#
#   install_globals(env, interp)   -> defines console, Math, JSON, Array, ...
#   get_member(interp, obj, key)   -> property read (arrays, strings, numbers, objects)
#   set_member(obj, key, value)    -> property write
#
# Native functions receive (interp, this, args); callbacks into program
# functions go through interp.call_function(fn, args).

from __future__ import annotations
import functools
import json
import math
import random
import re
from typing import Any, Callable, Dict, List

from .errors import JSThrow, JSTypeError, make_error_object, is_error_object
from .values import (
    INFINITY,
    NAN,
    UNDEFINED,
    JSFunction,
    NativeFunction,
    display,
    format_number,
    is_callable,
    is_number,
    normalize_number,
    strict_equals,
    to_boolean,
    to_number,
    to_property_key,
    to_string,
)

Impl = Callable[[Any, Any, List[Any]], Any]

# Arrays are dense Python lists, so their ceiling is far below 2**32 - 1.
MAX_STRING_LENGTH = 2 ** 29 - 24
MAX_ARRAY_LENGTH = 2 ** 24


def _arg(args: List[Any], i: int, default: Any = UNDEFINED) -> Any:
    return args[i] if i < len(args) else default


def _check_string_length(n: int) -> None:
    if n > MAX_STRING_LENGTH:
        raise JSThrow(make_error_object("RangeError", "Invalid string length"))


def _check_array_length(n: int) -> None:
    if n > MAX_ARRAY_LENGTH:
        raise JSThrow(make_error_object("RangeError", "Invalid array length"))


def _to_integer(v: Any, default: int = 0) -> int:
    if v is UNDEFINED:
        return default
    n = to_number(v)
    if isinstance(n, float):
        if math.isnan(n):
            return 0
        if math.isinf(n):
            return 10 ** 12 if n > 0 else -10 ** 12
    return int(n)


def _rel_index(v: Any, length: int, default: int) -> int:
    """Relative index as used by slice/splice: negatives count from the end."""
    i = _to_integer(v, default)
    if i < 0:
        return max(length + i, 0)
    return min(i, length)


def _same_value_zero(a: Any, b: Any) -> bool:
    if isinstance(a, float) and isinstance(b, float) and math.isnan(a) and math.isnan(b):
        return True
    return strict_equals(a, b)


def _index_key(key: Any):
    """Array index for `key`, or None when it is not a canonical index."""
    if is_number(key):
        if isinstance(key, float) and not key.is_integer():
            return None
        return int(key) if key >= 0 else None
    if isinstance(key, str) and key.isdigit() and (key == "0" or not key.startswith("0")):
        return int(key)
    return None


# ---------- console

def _make_console(interp) -> Dict[str, Any]:
    def writer(kind: str) -> NativeFunction:
        return NativeFunction(kind, lambda it, this, args: it.emit_console(kind, args))
    return {kind: writer(kind) for kind in ("log", "warn", "error", "info")}


# ---------- Math

def _math_unary(name: str, fn: Callable[[float], Any]) -> NativeFunction:
    def impl(interp, this, args):
        x = to_number(_arg(args, 0))
        try:
            return normalize_number(fn(x))
        except (ValueError, OverflowError):
            return NAN
    return NativeFunction(name, impl)


def _js_round(x: Any) -> Any:
    if isinstance(x, float) and (math.isnan(x) or math.isinf(x)):
        return x
    return math.floor(x + 0.5)


def _js_sign(x: Any) -> Any:
    if isinstance(x, float) and math.isnan(x):
        return NAN
    return (x > 0) - (x < 0)


def _finite_only(fn: Callable[[float], Any]) -> Callable[[float], Any]:
    def inner(x):
        if isinstance(x, float) and (math.isnan(x) or math.isinf(x)):
            return x
        return fn(x)
    return inner


def _js_sqrt(x: Any) -> Any:
    if isinstance(x, float) and math.isnan(x):
        return NAN
    if x < 0:
        return NAN
    return math.sqrt(x)


def _js_log(x: Any) -> Any:
    if isinstance(x, float) and math.isnan(x):
        return NAN
    if x < 0:
        return NAN
    if x == 0:
        return -INFINITY
    return math.log(x)


def js_pow(a: Any, b: Any) -> Any:
    a, b = to_number(a), to_number(b)
    if isinstance(b, float) and math.isnan(b):
        return NAN
    if b == 0:
        return 1
    try:
        return normalize_number(math.pow(a, b))
    except OverflowError:
        negative = a < 0 and float(b).is_integer() and int(b) % 2 == 1
        return -INFINITY if negative else INFINITY
    except ValueError:
        if a == 0 and b < 0:
            return INFINITY
        return NAN


def _math_extreme(name: str, pick: Callable[..., Any], empty: Any) -> NativeFunction:
    def impl(interp, this, args):
        nums = [to_number(a) for a in args]
        if any(isinstance(n, float) and math.isnan(n) for n in nums):
            return NAN
        return pick(nums) if nums else empty
    return NativeFunction(name, impl)


def _make_math() -> Dict[str, Any]:
    return {
        "PI": math.pi,
        "E": math.e,
        "abs": _math_unary("abs", abs),
        "floor": _math_unary("floor", _finite_only(math.floor)),
        "ceil": _math_unary("ceil", _finite_only(math.ceil)),
        "round": _math_unary("round", _js_round),
        "trunc": _math_unary("trunc", _finite_only(math.trunc)),
        "sign": _math_unary("sign", _js_sign),
        "sqrt": _math_unary("sqrt", _js_sqrt),
        "log": _math_unary("log", _js_log),
        "pow": NativeFunction("pow", lambda it, this, args: js_pow(_arg(args, 0), _arg(args, 1))),
        "min": _math_extreme("min", min, INFINITY),
        "max": _math_extreme("max", max, -INFINITY),
        "random": NativeFunction("random", lambda it, this, args: random.random()),
    }


# ---------- number parsing

_FLOAT_PREFIX = re.compile(r"[+-]?(?:Infinity|(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)")
_DIGITS = "0123456789abcdefghijklmnopqrstuvwxyz"


def parse_int(text: Any, radix: Any = UNDEFINED) -> Any:
    s = to_string(text).strip()
    sign = 1
    if s[:1] in ("+", "-"):
        sign = -1 if s[0] == "-" else 1
        s = s[1:]
    base = _to_integer(radix, 0)
    if base == 0:
        base = 10
        if s[:2].lower() == "0x":
            base, s = 16, s[2:]
    elif base == 16 and s[:2].lower() == "0x":
        s = s[2:]
    if not 2 <= base <= 36:
        return NAN
    valid = _DIGITS[:base]
    end = 0
    while end < len(s) and s[end].lower() in valid:
        end += 1
    if end == 0:
        return NAN
    return normalize_number(sign * int(s[:end], base))


def parse_float(text: Any) -> Any:
    m = _FLOAT_PREFIX.match(to_string(text).strip())
    if not m:
        return NAN
    raw = m.group(0)
    if raw.lstrip("+-") == "Infinity":
        return -INFINITY if raw.startswith("-") else INFINITY
    return normalize_number(float(raw))


def _is_nan(interp, this, args):
    n = to_number(_arg(args, 0))
    return isinstance(n, float) and math.isnan(n)


def _is_finite(interp, this, args):
    n = to_number(_arg(args, 0))
    return not (isinstance(n, float) and (math.isnan(n) or math.isinf(n)))


# ---------- JSON

def _to_json_ready(v: Any, seen: set) -> Any:
    if v is UNDEFINED or is_callable(v):
        return UNDEFINED
    if isinstance(v, float) and (math.isnan(v) or math.isinf(v)):
        return None
    if isinstance(v, (list, dict)):
        if id(v) in seen:
            raise JSTypeError("Converting circular structure to JSON")
        seen = seen | {id(v)}
        if isinstance(v, list):
            out = [_to_json_ready(e, seen) for e in v]
            return [None if e is UNDEFINED else e for e in out]
        res = {}
        for k, val in v.items():
            conv = _to_json_ready(val, seen)
            if conv is not UNDEFINED:
                res[k] = conv
        return res
    return v


def json_stringify(value: Any, indent: Any = UNDEFINED) -> Any:
    ready = _to_json_ready(value, set())
    if ready is UNDEFINED:
        return UNDEFINED
    width = None
    if is_number(indent) and indent > 0:
        width = min(int(indent), 10)
    elif isinstance(indent, str) and indent:
        width = indent[:10]
    if width is None:
        return json.dumps(ready, ensure_ascii=False, separators=(",", ":"), default=str)
    return json.dumps(ready, ensure_ascii=False, indent=width, default=str)


def _from_json(v: Any) -> Any:
    if isinstance(v, float):
        return normalize_number(v)
    if isinstance(v, list):
        return [_from_json(e) for e in v]
    if isinstance(v, dict):
        return {k: _from_json(val) for k, val in v.items()}
    return v


def json_parse(text: Any) -> Any:
    try:
        return _from_json(json.loads(to_string(text)))
    except ValueError as exc:
        raise JSThrow(make_error_object("SyntaxError", f"Unexpected token in JSON: {exc.msg}"))


# ---------- constructors

def _error_ctor(name: str) -> NativeFunction:
    def impl(interp, this, args):
        msg = _arg(args, 0)
        return make_error_object(name, "" if msg is UNDEFINED else to_string(msg))
    return NativeFunction(name, impl, construct=impl)


def _array_ctor(interp, this, args):
    if len(args) == 1 and is_number(args[0]):
        n = args[0]
        if isinstance(n, float) or n < 0:
            raise JSThrow(make_error_object("RangeError", "Invalid array length"))
        _check_array_length(n)
        return [UNDEFINED] * n
    return list(args)


def _array_from(interp, this, args):
    src = _arg(args, 0)
    fn = _arg(args, 1)
    if isinstance(src, str):
        items = list(src)
    elif isinstance(src, list):
        items = list(src)
    elif isinstance(src, dict) and "length" in src:
        n = max(_to_integer(src["length"]), 0)
        _check_array_length(n)
        items = [src.get(str(i), UNDEFINED) for i in range(n)]
    else:
        items = []
    if is_callable(fn):
        return [interp.call_function(fn, [v, i]) for i, v in enumerate(items)]
    return items


def _own_keys(obj: Any) -> List[str]:
    if isinstance(obj, dict):
        return list(obj.keys())
    if isinstance(obj, (list, str)):
        return [str(i) for i in range(len(obj))]
    return []


def _object_keys(interp, this, args):
    return _own_keys(_arg(args, 0))


def _object_values(interp, this, args):
    obj = _arg(args, 0)
    return [get_member(interp, obj, k) for k in _own_keys(obj)]


def _object_entries(interp, this, args):
    obj = _arg(args, 0)
    return [[k, get_member(interp, obj, k)] for k in _own_keys(obj)]


def _object_assign(interp, this, args):
    target = _arg(args, 0)
    if not isinstance(target, (dict, list)):
        raise JSTypeError("Cannot convert undefined or null to object")
    for src in args[1:]:
        for k in _own_keys(src):
            set_member(target, k, get_member(interp, src, k))
    return target


def _object_ctor(interp, this, args):
    v = _arg(args, 0)
    if isinstance(v, (dict, list)) or is_callable(v):
        return v
    return {}


def _primitive_ctor(name: str, convert: Callable[[Any], Any], empty: Any) -> NativeFunction:
    def impl(interp, this, args):
        return convert(args[0]) if args else empty
    return NativeFunction(name, impl, construct=impl)


def install_globals(env, interp) -> None:
    """Define the builtin library into `env` (the scope above the program's globals)."""
    env.define("undefined", UNDEFINED, const=True)
    env.define("NaN", NAN, const=True)
    env.define("Infinity", INFINITY, const=True)
    env.define("console", _make_console(interp), const=True)
    env.define("Math", _make_math(), const=True)
    env.define("parseInt", NativeFunction("parseInt", lambda it, this, a: parse_int(_arg(a, 0), _arg(a, 1))))
    env.define("parseFloat", NativeFunction("parseFloat", lambda it, this, a: parse_float(_arg(a, 0))))
    env.define("isNaN", NativeFunction("isNaN", _is_nan))
    env.define("isFinite", NativeFunction("isFinite", _is_finite))
    env.define("Array", NativeFunction("Array", _array_ctor, construct=_array_ctor, props={
        "isArray": NativeFunction("isArray", lambda it, this, a: isinstance(_arg(a, 0), list)),
        "from": NativeFunction("from", _array_from),
    }))
    env.define("Object", NativeFunction("Object", _object_ctor, construct=_object_ctor, props={
        "keys": NativeFunction("keys", _object_keys),
        "values": NativeFunction("values", _object_values),
        "entries": NativeFunction("entries", _object_entries),
        "assign": NativeFunction("assign", _object_assign),
    }))
    env.define("String", _primitive_ctor("String", to_string, ""))
    env.define("Number", _primitive_ctor("Number", to_number, 0))
    env.define("Boolean", _primitive_ctor("Boolean", to_boolean, False))
    env.define("JSON", {
        "stringify": NativeFunction("stringify", lambda it, this, a: json_stringify(_arg(a, 0), _arg(a, 2))),
        "parse": NativeFunction("parse", lambda it, this, a: json_parse(_arg(a, 0))),
    })
    for name in ("Error", "TypeError", "RangeError", "ReferenceError", "SyntaxError"):
        env.define(name, _error_ctor(name))


def instance_of(value: Any, ctor: Any) -> bool:
    if not is_callable(ctor):
        raise JSTypeError("Right-hand side of 'instanceof' is not callable")
    if isinstance(ctor, JSFunction):
        return False
    name = ctor.name
    if name == "Array":
        return isinstance(value, list)
    if name == "Object":
        return isinstance(value, (list, dict)) or is_callable(value)
    if name == "Error":
        return is_error_object(value)
    if name.endswith("Error"):
        return is_error_object(value) and value.get("name") == name
    return False


# ---------- array methods

def _callback(args: List[Any]) -> Any:
    fn = _arg(args, 0)
    if not is_callable(fn):
        raise JSTypeError(f"{display(fn)} is not a function")
    return fn


def _a_push(interp, arr, args):
    arr.extend(args)
    return len(arr)


def _a_pop(interp, arr, args):
    return arr.pop() if arr else UNDEFINED


def _a_shift(interp, arr, args):
    return arr.pop(0) if arr else UNDEFINED


def _a_unshift(interp, arr, args):
    arr[0:0] = args
    return len(arr)


def _a_slice(interp, arr, args):
    n = len(arr)
    start = _rel_index(_arg(args, 0), n, 0)
    end = _rel_index(_arg(args, 1), n, n)
    return arr[start:end]


def _a_splice(interp, arr, args):
    n = len(arr)
    start = _rel_index(_arg(args, 0), n, 0)
    if len(args) < 2:
        count = n - start
    else:
        count = min(max(_to_integer(args[1]), 0), n - start)
    removed = arr[start:start + count]
    arr[start:start + count] = args[2:]
    return removed


def _a_concat(interp, arr, args):
    out = list(arr)
    for a in args:
        if isinstance(a, list):
            out.extend(a)
        else:
            out.append(a)
    return out


def _a_join(interp, arr, args):
    sep = _arg(args, 0)
    sep = "," if sep is UNDEFINED else to_string(sep)
    return sep.join("" if (e is None or e is UNDEFINED) else to_string(e) for e in arr)


def _a_index_of(interp, arr, args):
    target = _arg(args, 0)
    start = _rel_index(_arg(args, 1), len(arr), 0)
    for i in range(start, len(arr)):
        if strict_equals(arr[i], target):
            return i
    return -1


def _a_includes(interp, arr, args):
    target = _arg(args, 0)
    return any(_same_value_zero(e, target) for e in arr)


def _a_reverse(interp, arr, args):
    arr.reverse()
    return arr


def _a_map(interp, arr, args):
    fn = _callback(args)
    return [interp.call_function(fn, [v, i, arr]) for i, v in enumerate(list(arr))]


def _a_filter(interp, arr, args):
    fn = _callback(args)
    return [v for i, v in enumerate(list(arr)) if to_boolean(interp.call_function(fn, [v, i, arr]))]


def _a_for_each(interp, arr, args):
    fn = _callback(args)
    for i, v in enumerate(list(arr)):
        interp.call_function(fn, [v, i, arr])
    return UNDEFINED


def _a_find(interp, arr, args):
    fn = _callback(args)
    for i, v in enumerate(list(arr)):
        if to_boolean(interp.call_function(fn, [v, i, arr])):
            return v
    return UNDEFINED


def _a_some(interp, arr, args):
    fn = _callback(args)
    return any(to_boolean(interp.call_function(fn, [v, i, arr])) for i, v in enumerate(list(arr)))


def _a_every(interp, arr, args):
    fn = _callback(args)
    return all(to_boolean(interp.call_function(fn, [v, i, arr])) for i, v in enumerate(list(arr)))


def _a_reduce(interp, arr, args):
    fn = _callback(args)
    items = list(arr)
    if len(args) >= 2:
        acc, start = args[1], 0
    elif items:
        acc, start = items[0], 1
    else:
        raise JSTypeError("Reduce of empty array with no initial value")
    for i in range(start, len(items)):
        acc = interp.call_function(fn, [acc, items[i], i, arr])
    return acc


def _a_sort(interp, arr, args):
    fn = _arg(args, 0)
    defined = [v for v in arr if v is not UNDEFINED]
    missing = len(arr) - len(defined)
    if is_callable(fn):
        def compare(a, b):
            r = to_number(interp.call_function(fn, [a, b]))
            if isinstance(r, float) and math.isnan(r):
                return 0
            return (r > 0) - (r < 0)
        defined.sort(key=functools.cmp_to_key(compare))
    else:
        defined.sort(key=to_string)
    arr[:] = defined + [UNDEFINED] * missing
    return arr


ARRAY_METHODS: Dict[str, Impl] = {
    "push": _a_push, "pop": _a_pop, "shift": _a_shift, "unshift": _a_unshift,
    "slice": _a_slice, "splice": _a_splice, "concat": _a_concat, "join": _a_join,
    "indexOf": _a_index_of, "includes": _a_includes, "reverse": _a_reverse,
    "map": _a_map, "filter": _a_filter, "forEach": _a_for_each, "reduce": _a_reduce,
    "find": _a_find, "some": _a_some, "every": _a_every, "sort": _a_sort,
}


# ---------- string methods

def _s_char_at(interp, s, args):
    i = _to_integer(_arg(args, 0))
    return s[i] if 0 <= i < len(s) else ""


def _s_index_of(interp, s, args):
    return s.find(to_string(_arg(args, 0)), max(_to_integer(_arg(args, 1)), 0))


def _s_slice(interp, s, args):
    n = len(s)
    return s[_rel_index(_arg(args, 0), n, 0):_rel_index(_arg(args, 1), n, n)]


def _s_substring(interp, s, args):
    n = len(s)
    a = min(max(_to_integer(_arg(args, 0)), 0), n)
    b = min(max(_to_integer(_arg(args, 1), n), 0), n)
    if a > b:
        a, b = b, a
    return s[a:b]


def _s_split(interp, s, args):
    sep = _arg(args, 0)
    limit = _arg(args, 1)
    if sep is UNDEFINED:
        parts = [s]
    elif to_string(sep) == "":
        parts = list(s)
    else:
        parts = s.split(to_string(sep))
    if limit is not UNDEFINED:
        parts = parts[:max(_to_integer(limit), 0)]
    return parts


def _s_repeat(interp, s, args):
    n = to_number(_arg(args, 0))
    count = _to_integer(n)
    if count < 0 or isinstance(n, float) and math.isinf(n):
        raise JSThrow(make_error_object("RangeError", f"Invalid count value: {to_string(n)}"))
    if not s or not count:
        return ""
    _check_string_length(len(s) * count)
    return s * count


def _s_pad_start(interp, s, args):
    width = _to_integer(_arg(args, 0))
    fill = _arg(args, 1)
    fill = " " if fill is UNDEFINED else to_string(fill)
    if width <= len(s) or not fill:
        return s
    _check_string_length(width)
    need = width - len(s)
    return (fill * (need // len(fill) + 1))[:need] + s


STRING_METHODS: Dict[str, Impl] = {
    "toUpperCase": lambda it, s, a: s.upper(),
    "toLowerCase": lambda it, s, a: s.lower(),
    "charAt": _s_char_at,
    "indexOf": _s_index_of,
    "includes": lambda it, s, a: to_string(_arg(a, 0)) in s,
    "slice": _s_slice,
    "substring": _s_substring,
    "split": _s_split,
    "trim": lambda it, s, a: s.strip(),
    "startsWith": lambda it, s, a: s.startswith(to_string(_arg(a, 0))),
    "endsWith": lambda it, s, a: s.endswith(to_string(_arg(a, 0))),
    "repeat": _s_repeat,
    "padStart": _s_pad_start,
}


# ---------- number methods

def _n_to_fixed(interp, n, args):
    digits = _to_integer(_arg(args, 0))
    if not 0 <= digits <= 100:
        raise JSThrow(make_error_object("RangeError", "toFixed() digits argument must be between 0 and 100"))
    if isinstance(n, float) and (math.isnan(n) or math.isinf(n)):
        return format_number(n)
    return f"{n:.{digits}f}"


def _n_to_string(interp, n, args):
    radix = _to_integer(_arg(args, 0), 10)
    if radix == 10 or not (is_number(n) and float(n).is_integer()):
        return format_number(n)
    if not 2 <= radix <= 36:
        raise JSThrow(make_error_object("RangeError", "toString() radix must be between 2 and 36"))
    value = int(n)
    digits = []
    neg = value < 0
    value = abs(value)
    while True:
        value, rem = divmod(value, radix)
        digits.append(_DIGITS[rem])
        if value == 0:
            break
    return ("-" if neg else "") + "".join(reversed(digits))


NUMBER_METHODS: Dict[str, Impl] = {
    "toFixed": _n_to_fixed,
    "toString": _n_to_string,
}

_METHOD_CACHE: Dict[tuple, NativeFunction] = {}


def _method(kind: str, name: str, impl: Impl) -> NativeFunction:
    key = (kind, name)
    fn = _METHOD_CACHE.get(key)
    if fn is None:
        fn = _METHOD_CACHE[key] = NativeFunction(name, impl)
    return fn


def _describe(v: Any) -> str:
    return "undefined" if v is UNDEFINED else "null"


# ---------- property access

def get_member(interp, obj: Any, key: Any) -> Any:
    if obj is UNDEFINED or obj is None:
        raise JSTypeError(f"Cannot read properties of {_describe(obj)} (reading '{to_property_key(key)}')")
    if isinstance(obj, list):
        idx = _index_key(key)
        if idx is not None:
            return obj[idx] if idx < len(obj) else UNDEFINED
        name = to_property_key(key)
        if name == "length":
            return len(obj)
        if name in ARRAY_METHODS:
            return _method("array", name, ARRAY_METHODS[name])
        return UNDEFINED
    if isinstance(obj, str):
        idx = _index_key(key)
        if idx is not None:
            return obj[idx] if idx < len(obj) else UNDEFINED
        name = to_property_key(key)
        if name == "length":
            return len(obj)
        if name in STRING_METHODS:
            return _method("string", name, STRING_METHODS[name])
        return UNDEFINED
    if isinstance(obj, dict):
        return obj.get(to_property_key(key), UNDEFINED)
    if isinstance(obj, NativeFunction):
        name = to_property_key(key)
        if name == "name":
            return obj.name
        return obj.props.get(name, UNDEFINED)
    if isinstance(obj, JSFunction):
        name = to_property_key(key)
        if name == "name":
            return obj.name
        if name == "length":
            return len(obj.params)
        return UNDEFINED
    if is_number(obj):
        name = to_property_key(key)
        if name in NUMBER_METHODS:
            return _method("number", name, NUMBER_METHODS[name])
        return UNDEFINED
    if isinstance(obj, bool) and to_property_key(key) == "toString":
        return NativeFunction("toString", lambda it, this, a: to_string(this))
    return UNDEFINED


def set_member(obj: Any, key: Any, value: Any) -> None:
    if obj is UNDEFINED or obj is None:
        raise JSTypeError(f"Cannot set properties of {_describe(obj)} (setting '{to_property_key(key)}')")
    if isinstance(obj, list):
        idx = _index_key(key)
        if idx is not None:
            if idx >= len(obj):
                _check_array_length(idx + 1)
                obj.extend([UNDEFINED] * (idx + 1 - len(obj)))
            obj[idx] = value
            return
        if to_property_key(key) == "length":
            n = to_number(value)
            if not is_number(n) or isinstance(n, float) and not n.is_integer() or n < 0:
                raise JSThrow(make_error_object("RangeError", "Invalid array length"))
            n = int(n)
            _check_array_length(n)
            if n < len(obj):
                del obj[n:]
            else:
                obj.extend([UNDEFINED] * (n - len(obj)))
        return
    if isinstance(obj, dict):
        obj[to_property_key(key)] = value
        return
    if isinstance(obj, NativeFunction):
        obj.props[to_property_key(key)] = value


def has_property(obj: Any, key: Any) -> bool:
    """The `in` operator."""
    if isinstance(obj, dict):
        return to_property_key(key) in obj
    if isinstance(obj, list):
        idx = _index_key(key)
        if idx is not None:
            return idx < len(obj)
        name = to_property_key(key)
        return name == "length" or name in ARRAY_METHODS
    if isinstance(obj, NativeFunction):
        return to_property_key(key) in obj.props
    raise JSTypeError(f"Cannot use 'in' operator to search for '{to_property_key(key)}' in {to_string(obj)}")
