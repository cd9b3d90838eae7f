# tests/test_interpreter.py
from textwrap import dedent

import pytest

from stepscope import interpreter
from stepscope.errors import InterpreterError
from stepscope.interpreter import Interpreter, run_source
from stepscope.values import UNDEFINED


def _final(source, **kwargs):
    return run_source(dedent(source), **kwargs)[-1]


def _value(source, name, **kwargs):
    last = _final(source, **kwargs)
    assert last.error_state is None, last.error_state
    return last.value_of(name)


# ---------- snapshots

def test_steps_are_contiguous_from_zero():
    snaps = run_source("let a = 1;\nlet b = a + 1;\nconsole.log(b);")
    assert [s.step for s in snaps] == list(range(len(snaps)))
    assert snaps[0].global_variables == {}
    assert snaps[0].current_line == 0


def test_declaration_snapshot_marks_new_variable():
    snaps = run_source("let x = 5;")
    assert len(snaps) == 2
    x = snaps[-1].variable("x")
    assert x.value == 5
    assert x.type == "number"
    assert x.is_new is True
    assert x.scope == "global"
    assert snaps[-1].current_line == 1


def test_is_new_only_for_variables_touched_by_the_step():
    last = _final("let a = 1;\nlet b = 2;")
    assert last.variable("a").is_new is False
    assert last.variable("b").is_new is True


def test_builtins_are_not_reported_as_globals():
    last = _final("let x = 1;")
    assert set(last.global_variables) == {"x"}


def test_snapshots_do_not_share_mutable_values():
    snaps = run_source("let arr = [1];\narr.push(2);")
    assert snaps[1].value_of("arr") == [1]
    assert snaps[2].value_of("arr") == [1, 2]
    assert snaps[2].variable("arr").is_new is True
    snaps[1].value_of("arr").append(99)
    assert snaps[2].value_of("arr") == [1, 2]


def test_run_without_parse_raises():
    with pytest.raises(InterpreterError):
        Interpreter().run()


def test_interpreter_can_run_twice():
    interp = Interpreter()
    assert interp.parse("let n = 1;\nn++;") is None
    assert interp.ast["type"] == "Program"
    first = interp.run()
    second = interp.run()
    assert len(first) == len(second)
    assert second[-1].value_of("n") == 2


# ---------- expressions

def test_arithmetic_and_precedence():
    src = """\
    let a = 2 + 3 * 4;
    let b = 7 / 2;
    let c = 10 % 3;
    let d = 1 + 2 * 3 ** 2;
    let e = 2 ** 3 ** 2;
    let f = (1 + 2) * 3;
    let g = "a" + 1;
    """
    last = _final(src)
    assert last.value_of("a") == 14
    assert last.value_of("b") == 3.5
    assert last.value_of("c") == 1
    assert last.value_of("d") == 19
    assert last.value_of("e") == 512
    assert last.value_of("f") == 9
    assert last.value_of("g") == "a1"


def test_division_by_zero_yields_infinity():
    assert _value("let z = 1 / 0;", "z") == float("inf")
    nan = _value("let n = 0 / 0;", "n")
    assert nan != nan


def test_logical_and_conditional_operators():
    src = """\
    let l = true || false && false;
    let n = null ?? "d";
    let t = 5 > 3 ? "y" : "n";
    let s = "1" == 1;
    let q = "1" === 1;
    """
    last = _final(src)
    assert last.value_of("l") is True
    assert last.value_of("n") == "d"
    assert last.value_of("t") == "y"
    assert last.value_of("s") is True
    assert last.value_of("q") is False


def test_template_literal_and_typeof():
    src = """\
    let name = 'x';
    let s = `hi ${name}!`;
    let t = typeof nope;
    let u = typeof [];
    """
    last = _final(src)
    assert last.value_of("s") == "hi x!"
    assert last.value_of("t") == "undefined"
    assert last.value_of("u") == "object"


def test_update_expression_prefix_and_postfix():
    src = """\
    let i = 1;
    let a = i++;
    let b = ++i;
    """
    last = _final(src)
    assert last.value_of("a") == 1
    assert last.value_of("b") == 3
    assert last.value_of("i") == 3


# ---------- functions

def test_function_call_pushes_and_pops_frame():
    snaps = run_source(dedent("""\
    function add(a, b) {
      return a + b;
    }
    let r = add(2, 3);
    """))
    in_call = [s for s in snaps if s.call_stack]
    assert in_call
    frame = in_call[0].call_stack[0]
    assert frame.function_name == "add"
    assert [a.name for a in frame.arguments] == ["a", "b"]
    assert [a.value for a in frame.arguments] == [2, 3]
    assert frame.local_variables["a"].scope == "local"
    assert any(s.call_stack and s.call_stack[-1].return_value == 5 for s in snaps)
    assert snaps[-1].call_stack == []
    assert snaps[-1].value_of("r") == 5
    assert snaps[-1].variable("add").type == "function"


def test_recursive_factorial():
    src = """\
    function factorial(n) {
      if (n <= 1) return 1;
      return n * factorial(n - 1);
    }
    let result = factorial(5);
    """
    snaps = run_source(dedent(src))
    assert snaps[-1].value_of("result") == 120
    assert max(len(s.call_stack) for s in snaps) == 5


def test_default_parameters():
    assert _value("function g(a, b = 10) { return a + b; }\nlet d = g(1);", "d") == 11


def test_closure_keeps_its_scope():
    src = """\
    function makeCounter() {
      let count = 0;
      return function () {
        count++;
        return count;
      };
    }
    let counter = makeCounter();
    counter();
    let v = counter();
    """
    assert _value(src, "v") == 2


def test_each_loop_iteration_gets_its_own_binding():
    src = """\
    let fns = [];
    for (let i = 0; i < 3; i++) {
      fns.push(() => i);
    }
    let r = fns[0]() * 100 + fns[1]() * 10 + fns[2]();
    """
    assert _value(src, "r") == 12


def test_frame_locals_include_block_scopes():
    snaps = run_source(dedent("""\
    function f() {
      let a = 1;
      if (a) {
        let b = 2;
      }
      return a;
    }
    f();
    """))
    seen = [s.call_stack[-1].local_variables for s in snaps if s.call_stack]
    assert any("b" in locs and "a" in locs for locs in seen)


def test_deep_recursion_is_a_range_error():
    interp = Interpreter(max_call_depth=50)
    interp.parse("function r(n) { return r(n + 1); }\nr(0);")
    last = interp.run()[-1]
    assert last.error_state is not None
    assert last.error_state.message == "Maximum call stack size exceeded"
    assert last.call_stack == []


def test_new_on_program_function_is_a_type_error():
    last = _final("function Foo() {}\nlet f = new Foo();")
    assert last.error_state.message == "Foo is not a constructor"


# ---------- control flow

def test_for_loop_sums_and_keeps_counter_out_of_globals():
    src = """\
    let sum = 0;
    for (let i = 1; i <= 3; i++) {
      sum += i;
    }
    """
    last = _final(src)
    assert last.value_of("sum") == 6
    assert "i" not in last.global_variables


def test_while_and_do_while():
    assert _value("let i = 0;\nwhile (i < 3) { i++; }", "i") == 3
    assert _value("let k = 0;\ndo { k++; } while (k < 3);", "k") == 3
    assert _value("let m = 10;\ndo { m++; } while (false);", "m") == 11


def test_break_and_continue():
    src = """\
    let total = 0;
    for (let i = 0; i < 10; i++) {
      if (i === 5) break;
      if (i % 2 === 0) continue;
      total += i;
    }
    """
    assert _value(src, "total") == 4


def test_switch_falls_through_until_break():
    src = """\
    let out = "";
    switch (2) {
      case 1: out = "one"; break;
      case 2: out = "two";
      case 3: out += "!"; break;
      default: out = "none";
    }
    """
    assert _value(src, "out") == "two!"


def test_switch_default_branch():
    assert _value('let o = "";\nswitch (9) { case 1: o = "a"; break; default: o = "z"; }', "o") == "z"


@pytest.mark.parametrize("source", ["while (true) {}", "for (;;) {}", "let i = 0;\nwhile (i >= 0) { i++; }"])
def test_infinite_loop_is_stopped(source):
    snaps = run_source(source, max_steps=100)
    err = snaps[-1].error_state
    assert err is not None
    assert err.message == "Maximum execution steps exceeded (possible infinite loop)"
    assert len(snaps) <= 110


# ---------- exceptions

def test_catch_receives_thrown_error_object():
    src = """\
    let msg = "";
    try {
      throw new Error("boom");
    } catch (e) {
      msg = e.message;
    }
    """
    assert _value(src, "msg") == "boom"


def test_catch_receives_internal_errors_as_objects():
    src = """\
    let kind = "";
    try {
      missing;
    } catch (e) {
      kind = e.name;
    }
    """
    assert _value(src, "kind") == "ReferenceError"


def test_finally_runs_after_try():
    src = """\
    let steps = [];
    try {
      steps.push(1);
    } finally {
      steps.push(2);
    }
    """
    assert _value(src, "steps") == [1, 2]


def test_finally_runs_when_error_escapes():
    last = _final('let done = false;\ntry {\n  throw "x";\n} finally {\n  done = true;\n}')
    assert last.error_state.message == "x"
    assert last.value_of("done") is True


def test_step_limit_cannot_be_caught():
    src = """\
    let caught = false;
    try {
      while (true) {}
    } catch (e) {
      caught = true;
    }
    """
    last = _final(src, max_steps=50)
    assert last.error_state is not None
    assert last.value_of("caught") is False


# ---------- runtime errors

def test_reference_error_is_recorded():
    last = _final("let x = y + 1;")
    assert last.error_state.message == "y is not defined"
    assert last.error_state.line == 1
    assert last.error_state.stack == "ReferenceError: y is not defined"


def test_type_error_reading_property_of_null():
    last = _final("let o = null;\no.x;")
    assert last.error_state.message == "Cannot read properties of null (reading 'x')"
    assert last.error_state.line == 2


def test_assignment_to_constant():
    last = _final("const c = 1;\nc = 2;")
    assert last.error_state.message == "Assignment to constant variable."
    assert last.value_of("c") == 1


def test_calling_a_non_function():
    last = _final("let n = 5;\nn();")
    assert last.error_state.message == "n is not a function"


def test_output_before_an_error_is_kept():
    last = _final('console.log("before");\nnope();')
    assert [o.args for o in last.output] == [["before"]]
    assert last.error_state is not None


# ---------- builtins

def test_console_output_records_kind_and_args():
    last = _final('console.log("hi", 1 + 1);\nconsole.warn("careful");')
    assert [(o.type, o.args) for o in last.output] == [("log", ["hi", 2]), ("warn", ["careful"])]


def test_array_methods():
    src = """\
    let xs = [3, 1, 2].map(x => x * 2).filter(x => x > 2);
    let sorted = [3, 1, 2].sort();
    let total = [1, 2, 3].reduce((a, b) => a + b, 0);
    let joined = ["a", "b"].join("-");
    let found = [5, 6, 7].indexOf(6);
    """
    last = _final(src)
    assert last.value_of("xs") == [6, 4]
    assert last.value_of("sorted") == [1, 2, 3]
    assert last.value_of("total") == 6
    assert last.value_of("joined") == "a-b"
    assert last.value_of("found") == 1


def test_objects_and_library_calls():
    src = """\
    let o = {a: 1, b: {c: 2}};
    o.b.c = 5;
    let k = Object.keys(o);
    let j = JSON.stringify({a: [1, 2]});
    let m = Math.max(1, 5, 3);
    let f = Math.floor(3.7);
    let p = parseInt("42px");
    let u = "abc".toUpperCase();
    let parts = "a,b".split(",");
    let fixed = (3.14159).toFixed(2);
    """
    last = _final(src)
    assert last.value_of("o") == {"a": 1, "b": {"c": 5}}
    assert last.value_of("k") == ["a", "b"]
    assert last.value_of("j") == '{"a":[1,2]}'
    assert last.value_of("m") == 5
    assert last.value_of("f") == 3
    assert last.value_of("p") == 42
    assert last.value_of("u") == "ABC"
    assert last.value_of("parts") == ["a", "b"]
    assert last.value_of("fixed") == "3.14"


def test_return_without_value_across_newline():
    src = """\
    function f() {
      return
      42;
    }
    let r = f();
    """
    assert _value(src, "r") is UNDEFINED


# ---------- snapshot sequence

def test_loop_and_branch_snapshot_sequence():
    src = """\
    let count = 0;
    while (count < 3) count++;
    if (count === 3) {
      count = 10;
    }
    """
    snaps = run_source(dedent(src))
    # initial, declaration, 3 x (test, update, statement), final test, if test, assignment
    assert len(snaps) == 14
    assert [s.current_line for s in snaps] == [0, 1] + [2] * 10 + [3, 4]
    assert [s.value_of("count") for s in snaps] == [
        UNDEFINED, 0, 0, 1, 1, 1, 2, 2, 2, 3, 3, 3, 3, 10,
    ]


def test_error_in_nested_call_unwinds_to_the_catching_frame():
    src = """\
    function inner() {
      throw new Error("boom");
    }
    function middle() {
      inner();
    }
    function outer() {
      try {
        middle();
      } catch (e) {
        console.log(e.message);
      }
      return 1;
    }
    let r = outer();
    """
    snaps = run_source(dedent(src))
    assert max(len(s.call_stack) for s in snaps) == 3
    caught = next(s for s in snaps if s.output)
    assert [f.function_name for f in caught.call_stack] == ["outer"]
    assert caught.output[0].args == ["boom"]
    assert snaps[-1].error_state is None
    assert snaps[-1].call_stack == []
    assert snaps[-1].value_of("r") == 1


def test_finally_runs_once_when_catch_rethrows():
    src = """\
    let log = [];
    function f() {
      try {
        throw new Error("first");
      } catch (e) {
        log.push("catch");
        throw e;
      } finally {
        log.push("finally");
      }
    }
    try {
      f();
    } catch (err) {
      log.push(err.message);
    }
    """
    assert _value(src, "log") == ["catch", "finally", "first"]


def test_rethrow_after_finally_keeps_original_error():
    src = """\
    let seen = 0;
    try {
      throw new Error("original");
    } catch (e) {
      throw e;
    } finally {
      seen++;
    }
    """
    last = _final(src)
    assert last.error_state.message == "original"
    assert last.error_state.stack == "Error: original"
    assert last.value_of("seen") == 1


# ---------- oversized strings and arrays

@pytest.mark.parametrize("source, message", [
    ('let s = "a".repeat(1e300);', "Invalid string length"),
    ('let s = "ab".padStart(1e300);', "Invalid string length"),
    ('let s = "a".repeat(Infinity);', "Invalid count value: Infinity"),
    ("let a = [1];\na.length = 1e300;", "Invalid array length"),
    ("let a = new Array(1099511627776);", "Invalid array length"),
    ("let a = [];\na[1e9] = 1;", "Invalid array length"),
])
def test_oversized_values_are_range_errors(source, message):
    last = _final(source)
    assert last.error_state is not None
    assert last.error_state.message == message
    assert last.error_state.stack == f"RangeError: {message}"


def test_oversized_string_error_can_be_caught():
    src = """\
    let kind = "";
    try {
      "ab".padStart(1e300);
    } catch (e) {
      kind = e.name;
    }
    """
    assert _value(src, "kind") == "RangeError"


def test_empty_string_repeat_is_empty():
    assert _value('let s = "".repeat(1e300);', "s") == ""


def test_host_overflow_is_recorded(monkeypatch):
    def explode(op, left, right):
        raise OverflowError("cannot fit 'int' into an index-sized integer")

    monkeypatch.setattr(interpreter, "binary_op", explode)
    snaps = run_source("let a = 1;\nlet b = a + 1;")
    assert snaps[-1].error_state.message == "Allocation size exceeded"
    assert snaps[-1].error_state.line == 2
    assert snaps[-1].value_of("a") == 1
