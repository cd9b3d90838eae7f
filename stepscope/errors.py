# stepscope/errors.py
# Exception taxonomy shared by the parser and the interpreter.

from __future__ import annotations
from typing import Any, Dict, Optional

from .values import to_string


class StepscopeError(Exception):
    pass


class InterpreterError(StepscopeError):
    """Misuse of the interpreter API (e.g. run() before parse())."""


class JSSyntaxError(StepscopeError):
    def __init__(self, message: str, line: Optional[int] = None, column: Optional[int] = None):
        self.line = line
        self.column = column
        where = f" ({line}:{column})" if line is not None else ""
        super().__init__(f"{message}{where}")
        self.message = message


class JSRuntimeError(StepscopeError):
    """Base for errors raised while a program runs; catchable by try/catch."""

    js_name = "Error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_value(self) -> Any:
        return make_error_object(self.js_name, self.message)


class JSReferenceError(JSRuntimeError):
    js_name = "ReferenceError"


class JSTypeError(JSRuntimeError):
    js_name = "TypeError"


class JSRangeError(JSRuntimeError):
    js_name = "RangeError"


class JSThrow(JSRuntimeError):
    """A value thrown by the program itself via `throw`."""

    def __init__(self, value: Any):
        self.value = value
        if is_error_object(value):
            self.js_name = str(value.get("name") or "Error")
            message = str(value.get("message", ""))
        else:
            message = to_string(value)
        super().__init__(message)

    def to_value(self) -> Any:
        return self.value


class StepLimitExceeded(JSRuntimeError):
    js_name = "RangeError"

    def __init__(self, limit: int):
        self.limit = limit
        super().__init__("Maximum execution steps exceeded (possible infinite loop)")


def make_error_object(name: str, message: str) -> Dict[str, Any]:
    return {"name": name, "message": message}


def is_error_object(value: Any) -> bool:
    return isinstance(value, dict) and "message" in value and "name" in value
