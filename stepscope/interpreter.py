"""Step-recording interpreter for the stepscope script subset.

- parse(source) builds the syntax tree (JSSyntaxError on malformed input) and resets state.
- run() walks the tree and returns the full list of ExecutionState snapshots.
- Snapshots are taken after declarations, expression statements, update
  expressions, if/loop conditions, function declarations, and on function
  entry/return; one more is appended when a runtime error escapes.
- Runtime errors never leave run(); they land in the last snapshot's error_state.
"""

from __future__ import annotations
import copy
import logging
import math
import sys
import time
from typing import Any, Dict, List, Optional, Set

from . import builtins
from .environment import Environment
from .errors import (
    InterpreterError,
    JSRangeError,
    JSRuntimeError,
    JSThrow,
    JSTypeError,
    StepLimitExceeded,
)
from .parser import parse as parse_source
from .signals import (
    BREAK,
    BREAK_COMPLETION,
    CONTINUE_COMPLETION,
    RETURN,
    Completion,
    normal,
    returned,
)
from .state import ConsoleOutput, ErrorInfo, ExecutionState, SourceLocation, StackFrame, Variable
from .values import (
    INFINITY,
    NAN,
    UNDEFINED,
    JSFunction,
    NativeFunction,
    display,
    is_callable,
    loose_equals,
    normalize_number,
    strict_equals,
    to_boolean,
    to_int32,
    to_number,
    to_primitive,
    to_string,
    to_uint32,
    type_tag,
    typeof,
)

log = logging.getLogger(__name__)

MAX_STEPS = 50_000
MAX_CALL_DEPTH = 500
RECURSION_LIMIT = 10_000

MUTATING_METHODS = {"push", "pop", "shift", "unshift", "splice", "reverse", "sort"}


def _node_text(node: Dict[str, Any]) -> str:
    typ = node.get("type")
    if typ == "Identifier":
        return node["name"]
    if typ == "MemberExpression":
        obj = _node_text(node["object"])
        if node.get("computed"):
            return f"{obj}[...]"
        return f"{obj}.{node['property']['name']}"
    if typ == "CallExpression":
        return f"{_node_text(node['callee'])}(...)"
    return "expression"


def _root_name(node: Dict[str, Any]) -> Optional[str]:
    while node.get("type") == "MemberExpression":
        node = node["object"]
    return node.get("name") if node.get("type") == "Identifier" else None


# ---------- operators

def _arith(op: str, a: Any, b: Any) -> Any:
    a, b = to_number(a), to_number(b)
    if op == "-":
        return normalize_number(a - b)
    if op == "*":
        try:
            return normalize_number(a * b)
        except OverflowError:
            return INFINITY if (a > 0) == (b > 0) else -INFINITY
    if op == "/":
        if b == 0:
            if a == 0 or (isinstance(a, float) and a != a):
                return NAN
            return INFINITY if (a > 0) == (math.copysign(1, b) > 0) else -INFINITY
        return normalize_number(a / b)
    if op == "%":
        if b == 0 or (isinstance(a, float) and (a != a or a in (INFINITY, -INFINITY))):
            return NAN
        if isinstance(b, float) and b in (INFINITY, -INFINITY):
            return a
        if isinstance(a, int) and isinstance(b, int):
            r = abs(a) % abs(b)
            return -r if a < 0 else r
        return normalize_number(math.fmod(a, b))
    if op == "**":
        return builtins.js_pow(a, b)
    raise JSRuntimeError(f"Unsupported arithmetic operator: {op}")


def _compare(op: str, a: Any, b: Any) -> bool:
    a, b = to_primitive(a), to_primitive(b)
    if not (isinstance(a, str) and isinstance(b, str)):
        a, b = to_number(a), to_number(b)
        if a != a or b != b:  # NaN
            return False
    if op == "<":
        return a < b
    if op == ">":
        return a > b
    if op == "<=":
        return a <= b
    return a >= b


def binary_op(op: str, a: Any, b: Any) -> Any:
    if op == "+":
        a, b = to_primitive(a), to_primitive(b)
        if isinstance(a, str) or isinstance(b, str):
            return to_string(a) + to_string(b)
        return normalize_number(to_number(a) + to_number(b))
    if op in ("-", "*", "/", "%", "**"):
        return _arith(op, a, b)
    if op == "===":
        return strict_equals(a, b)
    if op == "!==":
        return not strict_equals(a, b)
    if op == "==":
        return loose_equals(a, b)
    if op == "!=":
        return not loose_equals(a, b)
    if op in ("<", ">", "<=", ">="):
        return _compare(op, a, b)
    if op == "&":
        return to_int32(to_int32(a) & to_int32(b))
    if op == "|":
        return to_int32(to_int32(a) | to_int32(b))
    if op == "^":
        return to_int32(to_int32(a) ^ to_int32(b))
    if op == "<<":
        return to_int32(to_int32(a) << (to_uint32(b) & 31))
    if op == ">>":
        return to_int32(a) >> (to_uint32(b) & 31)
    if op == ">>>":
        return to_uint32(a) >> (to_uint32(b) & 31)
    if op == "instanceof":
        return builtins.instance_of(a, b)
    if op == "in":
        return builtins.has_property(b, a)
    raise JSRuntimeError(f"Unsupported binary operator: {op}")


class _Frame:
    """Live record of one invocation; rendered into a StackFrame at each snapshot."""

    __slots__ = ("name", "env", "arguments", "location", "return_value", "cursor", "call_id")

    def __init__(self, name: str, env: Environment, arguments: List[Variable], location: SourceLocation,
                 call_id: int):
        self.call_id = call_id
        self.name = name
        self.env = env
        self.arguments = arguments
        self.location = location
        self.return_value: Any = UNDEFINED
        self.cursor: Optional[Environment] = None  # innermost scope while a callee runs


class Interpreter:
    def __init__(self, *, max_steps: int = MAX_STEPS, max_call_depth: int = MAX_CALL_DEPTH):
        self.max_steps = max_steps
        self.max_call_depth = max_call_depth
        self.ast: Optional[Dict[str, Any]] = None
        self.snapshots: List[ExecutionState] = []
        self._reset()

    def _reset(self) -> None:
        self.builtins_env = Environment(name="builtins")
        builtins.install_globals(self.builtins_env, self)
        self.global_env = Environment(self.builtins_env, name="global")
        self._env = self.global_env
        self._frames: List[_Frame] = []
        self._calls = 0
        self._changed: Set[str] = set()
        self.output: List[ConsoleOutput] = []
        self.error_state: Optional[ErrorInfo] = None
        self.step = 0
        self.current_line = 0
        self.current_column = 0

    # ---------- public API
    def parse(self, source: str) -> None:
        """Parse `source` for the next run(); the tree is kept on `self.ast`."""
        self.ast = parse_source(source)
        self.snapshots = []
        self._reset()

    def run(self) -> List[ExecutionState]:
        if self.ast is None:
            raise InterpreterError("No code parsed")
        self._reset()
        self.snapshots = []
        self._capture()

        limit = sys.getrecursionlimit()
        if limit < RECURSION_LIMIT:
            sys.setrecursionlimit(RECURSION_LIMIT)
        try:
            self._exec_statements(self.ast["body"], self.global_env)
        except JSRuntimeError as exc:
            self._record_error(exc)
        except RecursionError:
            self._record_error(JSRangeError("Maximum call stack size exceeded"))
        except (OverflowError, MemoryError):
            self._record_error(JSRangeError("Allocation size exceeded"))
        finally:
            sys.setrecursionlimit(limit)

        log.debug("run finished: %d snapshots, %d console lines", len(self.snapshots), len(self.output))
        return self.snapshots

    def call_function(self, fn: Any, args: List[Any], this: Any = UNDEFINED) -> Any:
        """Invoke a program or native function; builtins use this for callbacks."""
        if isinstance(fn, NativeFunction):
            return fn.impl(self, this, list(args))
        if isinstance(fn, JSFunction):
            return self._invoke(fn, list(args))
        raise JSTypeError(f"{display(fn)} is not a function")

    def emit_console(self, kind: str, args: List[Any]) -> Any:
        self.output.append(ConsoleOutput(type=kind, args=copy.deepcopy(list(args)), timestamp=time.time()))
        log.debug("console.%s %s", kind, " ".join(display(a) for a in args))
        return UNDEFINED

    # ---------- snapshots
    def _record_error(self, exc: JSRuntimeError) -> None:
        self._frames.clear()
        self._env = self.global_env
        self.error_state = ErrorInfo(
            message=exc.message,
            line=self.current_line,
            column=self.current_column,
            stack=f"{exc.js_name}: {exc.message}",
        )
        log.info("runtime error at %d:%d: %s", self.current_line, self.current_column, exc.message)
        self._capture()

    def _frame_locals(self, frame: _Frame, cursor: Optional[Environment]) -> Dict[str, Variable]:
        chain: List[Environment] = []
        env = cursor
        while env is not None:
            chain.append(env)
            if env is frame.env:
                break
            env = env.parent
        else:
            chain = [frame.env]
        local: Dict[str, Variable] = {}
        for scope in reversed(chain):
            local.update(scope.variables("local"))
        for name, var in local.items():
            var.is_new = name in self._changed
        return local

    def _capture(self) -> None:
        global_vars = self.global_env.variables("global")
        for name in self._changed:
            if name in global_vars:
                global_vars[name].is_new = True

        frames = []
        last = len(self._frames) - 1
        for i, frame in enumerate(self._frames):
            cursor = self._env if i == last else frame.cursor
            frames.append(StackFrame(
                function_name=frame.name,
                arguments=frame.arguments,
                local_variables=self._frame_locals(frame, cursor),
                return_value=frame.return_value,
                source_location=frame.location,
                call_id=frame.call_id,
            ))

        global_vars, frames = copy.deepcopy((global_vars, frames))
        self.snapshots.append(ExecutionState(
            step=self.step,
            current_line=self.current_line,
            current_column=self.current_column,
            call_stack=frames,
            output=list(self.output),
            error_state=copy.copy(self.error_state),
            global_variables=global_vars,
        ))
        self._changed.clear()
        self.step += 1

    def _enter(self, node: Dict[str, Any], env: Environment) -> None:
        if self.step > self.max_steps:
            raise StepLimitExceeded(self.max_steps)
        loc = node.get("loc")
        if loc:
            self.current_line = loc["line"]
            self.current_column = loc["column"]
        self._env = env

    # ---------- statements
    def _exec_statements(self, body: List[Dict[str, Any]], env: Environment) -> Completion:
        for stmt in body:
            completion = self._exec(stmt, env)
            if completion.abrupt:
                return completion
        return normal()

    def _run_scoped(self, body: List[Dict[str, Any]], scope: Environment, outer: Environment) -> Completion:
        try:
            return self._exec_statements(body, scope)
        finally:
            self._env = outer

    def _exec(self, node: Dict[str, Any], env: Environment) -> Completion:
        self._enter(node, env)
        typ = node["type"]

        if typ == "ExpressionStatement":
            value = self._eval(node["expression"], env)
            self._capture()
            return normal(value)

        if typ == "VariableDeclaration":
            const = node["kind"] == "const"
            for decl in node["declarations"]:
                name = decl["id"]["name"]
                init = decl.get("init")
                value = self._eval(init, env, name_hint=name) if init is not None else UNDEFINED
                env.define(name, value, const=const)
                self._changed.add(name)
            self._capture()
            return normal()

        if typ == "FunctionDeclaration":
            name = node["id"]["name"]
            env.define(name, self._make_function(node, env, name))
            self._changed.add(name)
            self._capture()
            return normal()

        if typ == "BlockStatement":
            return self._run_scoped(node["body"], Environment(env), env)

        if typ == "EmptyStatement":
            return normal()

        if typ == "IfStatement":
            test = to_boolean(self._eval(node["test"], env))
            self._capture()
            if test:
                return self._exec(node["consequent"], env)
            if node.get("alternate") is not None:
                return self._exec(node["alternate"], env)
            return normal()

        if typ == "WhileStatement":
            while True:
                test = to_boolean(self._eval(node["test"], env))
                self._capture()
                if not test:
                    break
                completion = self._exec(node["body"], env)
                if completion.kind == BREAK:
                    break
                if completion.kind == RETURN:
                    return completion
            return normal()

        if typ == "DoWhileStatement":
            while True:
                completion = self._exec(node["body"], env)
                if completion.kind == BREAK:
                    break
                if completion.kind == RETURN:
                    return completion
                test = to_boolean(self._eval(node["test"], env))
                self._capture()
                if not test:
                    break
            return normal()

        if typ == "ForStatement":
            return self._exec_for(node, env)

        if typ == "ReturnStatement":
            arg = node.get("argument")
            return returned(self._eval(arg, env) if arg is not None else UNDEFINED)

        if typ == "BreakStatement":
            return BREAK_COMPLETION

        if typ == "ContinueStatement":
            return CONTINUE_COMPLETION

        if typ == "ThrowStatement":
            raise JSThrow(self._eval(node["argument"], env))

        if typ == "TryStatement":
            return self._exec_try(node, env)

        if typ == "SwitchStatement":
            return self._exec_switch(node, env)

        raise JSRuntimeError(f"Unsupported node type: {typ}")

    def _exec_for(self, node: Dict[str, Any], env: Environment) -> Completion:
        scope = Environment(env, name="for")
        try:
            init = node.get("init")
            if init is not None:
                if init["type"] == "VariableDeclaration":
                    self._exec(init, scope)
                else:
                    self._eval(init, scope)
            while True:
                test = node.get("test")
                # a missing test counts as an always-true condition
                ok = to_boolean(self._eval(test, scope)) if test is not None else True
                self._capture()
                if not ok:
                    break
                completion = self._exec(node["body"], scope)
                if completion.kind == BREAK:
                    break
                if completion.kind == RETURN:
                    return completion
                scope = scope.fork()
                if node.get("update") is not None:
                    self._eval(node["update"], scope)
        finally:
            self._env = env
        return normal()

    def _exec_try(self, node: Dict[str, Any], env: Environment) -> Completion:
        handler = node.get("handler")
        finalizer = node.get("finalizer")
        pending: Optional[JSRuntimeError] = None
        completion = normal()
        try:
            completion = self._run_scoped(node["block"]["body"], Environment(env), env)
        except JSRuntimeError as exc:
            if handler is None or isinstance(exc, StepLimitExceeded):
                pending = exc
            else:
                catch_env = Environment(env, name="catch")
                if handler.get("param") is not None:
                    pname = handler["param"]["name"]
                    catch_env.define(pname, exc.to_value())
                    self._changed.add(pname)
                try:
                    completion = self._run_scoped(handler["body"]["body"], catch_env, env)
                except JSRuntimeError as inner:
                    pending = inner

        if finalizer is not None:
            after = self._run_scoped(finalizer["body"], Environment(env), env)
            if after.abrupt and not isinstance(pending, StepLimitExceeded):
                return after
        if pending is not None:
            raise pending
        return completion

    def _exec_switch(self, node: Dict[str, Any], env: Environment) -> Completion:
        disc = self._eval(node["discriminant"], env)
        scope = Environment(env, name="switch")
        cases = node["cases"]
        start = None
        try:
            for i, case in enumerate(cases):
                if case["test"] is not None and strict_equals(self._eval(case["test"], scope), disc):
                    start = i
                    break
            if start is None:
                start = next((i for i, case in enumerate(cases) if case["test"] is None), None)
            if start is None:
                return normal()
            for case in cases[start:]:
                completion = self._exec_statements(case["consequent"], scope)
                if completion.kind == BREAK:
                    return normal()
                if completion.abrupt:
                    return completion
        finally:
            self._env = env
        return normal()

    # ---------- functions
    def _make_function(self, node: Dict[str, Any], env: Environment, name: Optional[str] = None) -> JSFunction:
        fid = node.get("id")
        fname = fid["name"] if fid else (name or "<anonymous>")
        return JSFunction(fname, node["params"], node["body"], env, node)

    def _invoke(self, fn: JSFunction, args: List[Any]) -> Any:
        if len(self._frames) >= self.max_call_depth:
            raise JSRangeError("Maximum call stack size exceeded")
        caller_env = self._env
        fn_env = Environment(fn.closure, name=fn.name)
        arg_vars: List[Variable] = []
        for i, param in enumerate(fn.params):
            value = args[i] if i < len(args) else UNDEFINED
            if param["type"] == "AssignmentPattern":
                if value is UNDEFINED:
                    value = self._eval(param["right"], fn_env)
                pname = param["left"]["name"]
            else:
                pname = param["name"]
            fn_env.define(pname, value)
            arg_vars.append(Variable(name=pname, value=value, type=type_tag(value), is_new=True, scope="local"))

        loc = fn.node.get("loc") or {}
        self._calls += 1
        frame = _Frame(fn.name, fn_env, arg_vars, SourceLocation(loc.get("line", 0), loc.get("column", 0)),
                       self._calls)
        if self._frames:
            self._frames[-1].cursor = caller_env
        self._frames.append(frame)
        self._env = fn_env
        self._capture()
        try:
            if fn.expression_body:
                result = self._eval(fn.body, fn_env)
                frame.return_value = result
                self._capture()
                return result
            completion = self._exec_statements(fn.body["body"], fn_env)
            if completion.kind == RETURN:
                frame.return_value = completion.value
                self._capture()
                return completion.value
            return UNDEFINED
        except RecursionError:
            raise JSRangeError("Maximum call stack size exceeded")
        finally:
            self._frames.pop()
            self._env = caller_env

    # ---------- expressions
    def _eval(self, node: Dict[str, Any], env: Environment, name_hint: Optional[str] = None) -> Any:
        self._enter(node, env)
        typ = node["type"]

        if typ == "Literal":
            return node["value"]
        if typ == "Identifier":
            return env.get(node["name"])
        if typ == "TemplateLiteral":
            parts = []
            exprs = node["expressions"]
            for i, quasi in enumerate(node["quasis"]):
                parts.append(quasi["value"]["cooked"])
                if i < len(exprs):
                    parts.append(to_string(self._eval(exprs[i], env)))
            return "".join(parts)
        if typ == "BinaryExpression":
            left = self._eval(node["left"], env)
            right = self._eval(node["right"], env)
            return binary_op(node["operator"], left, right)
        if typ == "LogicalExpression":
            left = self._eval(node["left"], env)
            op = node["operator"]
            if op == "&&":
                return self._eval(node["right"], env) if to_boolean(left) else left
            if op == "||":
                return left if to_boolean(left) else self._eval(node["right"], env)
            return self._eval(node["right"], env) if left is None or left is UNDEFINED else left
        if typ == "UnaryExpression":
            return self._eval_unary(node, env)
        if typ == "UpdateExpression":
            return self._eval_update(node, env)
        if typ == "AssignmentExpression":
            return self._eval_assign(node, env)
        if typ == "ConditionalExpression":
            if to_boolean(self._eval(node["test"], env)):
                return self._eval(node["consequent"], env)
            return self._eval(node["alternate"], env)
        if typ == "CallExpression":
            return self._eval_call(node, env)
        if typ == "MemberExpression":
            obj = self._eval(node["object"], env)
            return builtins.get_member(self, obj, self._member_key(node, env))
        if typ == "ArrayExpression":
            out: List[Any] = []
            for el in node["elements"]:
                if el is None:
                    out.append(UNDEFINED)
                elif el["type"] == "SpreadElement":
                    out.extend(self._spread(el, env))
                else:
                    out.append(self._eval(el, env))
            return out
        if typ == "ObjectExpression":
            return self._eval_object(node, env)
        if typ in ("FunctionExpression", "ArrowFunctionExpression"):
            return self._make_function(node, env, name_hint)
        if typ == "NewExpression":
            ctor = self._eval(node["callee"], env)
            args = self._eval_arguments(node["arguments"], env)
            if isinstance(ctor, NativeFunction) and ctor.construct is not None:
                return ctor.construct(self, UNDEFINED, args)
            raise JSTypeError(f"{_node_text(node['callee'])} is not a constructor")
        if typ == "SequenceExpression":
            value: Any = UNDEFINED
            for expr in node["expressions"]:
                value = self._eval(expr, env)
            return value
        raise JSRuntimeError(f"Unsupported node type: {typ}")

    def _member_key(self, node: Dict[str, Any], env: Environment) -> Any:
        if node.get("computed"):
            return self._eval(node["property"], env)
        return node["property"]["name"]

    def _spread(self, node: Dict[str, Any], env: Environment) -> List[Any]:
        value = self._eval(node["argument"], env)
        if isinstance(value, (list, str)):
            return list(value)
        raise JSTypeError(f"{_node_text(node['argument'])} is not iterable")

    def _eval_arguments(self, nodes: List[Dict[str, Any]], env: Environment) -> List[Any]:
        args: List[Any] = []
        for arg in nodes:
            if arg["type"] == "SpreadElement":
                args.extend(self._spread(arg, env))
            else:
                args.append(self._eval(arg, env))
        return args

    def _eval_call(self, node: Dict[str, Any], env: Environment) -> Any:
        callee = node["callee"]
        this: Any = UNDEFINED
        if callee["type"] == "MemberExpression":
            this = self._eval(callee["object"], env)
            key = self._member_key(callee, env)
            fn = builtins.get_member(self, this, key)
            if isinstance(this, list) and isinstance(key, str) and key in MUTATING_METHODS:
                root = _root_name(callee)
                if root:
                    self._changed.add(root)
        else:
            fn = self._eval(callee, env)
        args = self._eval_arguments(node["arguments"], env)
        if not is_callable(fn):
            raise JSTypeError(f"{_node_text(callee)} is not a function")
        return self.call_function(fn, args, this)

    def _eval_object(self, node: Dict[str, Any], env: Environment) -> Dict[str, Any]:
        obj: Dict[str, Any] = {}
        for prop in node["properties"]:
            if prop["type"] == "SpreadElement":
                src = self._eval(prop["argument"], env)
                if isinstance(src, dict):
                    obj.update(src)
                elif isinstance(src, (list, str)):
                    for i, v in enumerate(src):
                        obj[str(i)] = v
                continue
            key_node = prop["key"]
            if prop.get("computed"):
                key = to_string(self._eval(key_node, env))
            elif key_node["type"] == "Identifier":
                key = key_node["name"]
            else:
                key = to_string(key_node["value"])
            obj[key] = self._eval(prop["value"], env, name_hint=key)
        return obj

    def _eval_unary(self, node: Dict[str, Any], env: Environment) -> Any:
        op = node["operator"]
        arg = node["argument"]
        if op == "typeof" and arg["type"] == "Identifier" and not env.has(arg["name"]):
            return "undefined"
        value = self._eval(arg, env)
        if op == "-":
            n = to_number(value)
            if isinstance(n, int) and n == 0:
                return 0
            return normalize_number(-n)
        if op == "+":
            return to_number(value)
        if op == "!":
            return not to_boolean(value)
        if op == "~":
            return to_int32(~to_int32(value))
        if op == "typeof":
            return typeof(value)
        if op == "void":
            return UNDEFINED
        raise JSRuntimeError(f"Unsupported unary operator: {op}")

    def _eval_update(self, node: Dict[str, Any], env: Environment) -> Any:
        arg = node["argument"]
        delta = 1 if node["operator"] == "++" else -1
        if arg["type"] == "Identifier":
            name = arg["name"]
            old = to_number(env.get(name))
            new = normalize_number(old + delta)
            env.set(name, new)
            self._changed.add(name)
        else:
            obj = self._eval(arg["object"], env)
            key = self._member_key(arg, env)
            old = to_number(builtins.get_member(self, obj, key))
            new = normalize_number(old + delta)
            builtins.set_member(obj, key, new)
            root = _root_name(arg)
            if root:
                self._changed.add(root)
        self._capture()
        return new if node["prefix"] else old

    def _eval_assign(self, node: Dict[str, Any], env: Environment) -> Any:
        op = node["operator"]
        left = node["left"]
        if left["type"] == "Identifier":
            name = left["name"]
            if op == "=":
                value = self._eval(node["right"], env, name_hint=name)
            else:
                current = env.get(name)
                value = binary_op(op[:-1], current, self._eval(node["right"], env))
            env.set(name, value)
            self._changed.add(name)
            return value

        obj = self._eval(left["object"], env)
        key = self._member_key(left, env)
        if op == "=":
            value = self._eval(node["right"], env)
        else:
            current = builtins.get_member(self, obj, key)
            value = binary_op(op[:-1], current, self._eval(node["right"], env))
        builtins.set_member(obj, key, value)
        root = _root_name(left)
        if root:
            self._changed.add(root)
        return value


def run_source(source: str, *, max_steps: int = MAX_STEPS) -> List[ExecutionState]:
    """Parse and run `source` in a fresh interpreter; returns the snapshot list."""
    interp = Interpreter(max_steps=max_steps)
    interp.parse(source)
    return interp.run()
