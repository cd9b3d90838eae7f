# tests/test_trees.py
from textwrap import dedent

from stepscope.interpreter import run_source
from stepscope.trees import build_call_tree, mark_executing_nodes, parse_ast

FACTORIAL = dedent("""\
function factorial(n) {
  if (n <= 1) return 1;
  return n * factorial(n - 1);
}
let result = factorial(5);
""")


def test_parse_ast_preorder_ids_and_labels():
    tree = parse_ast("let x = 5;")
    assert (tree.id, tree.type, tree.label, tree.node_category) == ("ast-0", "Program", "Program", "program")
    decl = tree.children[0]
    assert (decl.id, decl.label, decl.node_category) == ("ast-1", "let", "declaration")
    declarator = decl.children[0]
    assert declarator.label == "x"
    ident, literal = declarator.children
    assert (ident.id, ident.label) == ("ast-3", "x")
    assert (literal.id, literal.label, literal.node_category) == ("ast-4", "5", "literal")
    assert literal.depth == 3
    assert [n.id for n in tree.walk()] == [f"ast-{i}" for i in range(5)]


def test_parse_ast_is_deterministic():
    src = "for (let i = 0; i < 2; i++) { console.log(i); }"
    assert parse_ast(src) == parse_ast(src)


def test_labels_for_calls_and_control():
    tree = parse_ast("if (a) { console.log(1); }\nwhile (b) {}")
    labels = [n.label for n in tree.walk()]
    assert "if" in labels
    assert "while" in labels
    assert "console.log()" in labels
    categories = {n.label: n.node_category for n in tree.walk()}
    assert categories["if"] == "control"
    assert categories["console.log()"] == "expression"


def test_mark_executing_nodes_returns_a_marked_copy():
    tree = parse_ast("let a = 1;\nlet b = 2;")
    marked = mark_executing_nodes(tree, 2)
    second = marked.children[1]
    assert second.is_executing is True
    assert all(n.is_executing for n in second.walk())
    assert marked.children[0].is_executing is False
    assert all(n.is_executing is None for n in tree.walk())


def test_call_tree_for_recursion():
    root = build_call_tree(run_source(FACTORIAL))
    assert root.function_name == "<program>"
    assert root.id == "call-root"
    assert len(root.children) == 1
    top = root.children[0]
    assert top.function_name == "factorial"
    assert top.args == [5]
    assert top.return_value == 120
    assert root.max_depth == 5

    chain = list(top.walk())
    assert [n.args for n in chain] == [[5], [4], [3], [2], [1]]
    leaf = chain[-1]
    assert leaf.is_base_case is True
    assert leaf.return_value == 1
    assert not any(n.is_base_case for n in chain[:-1])
    assert root.is_base_case is False


def test_sibling_calls_stay_separate():
    src = dedent("""\
    function fib(n) {
      if (n < 2) return n;
      return fib(n - 1) + fib(n - 2);
    }
    let f = fib(3);
    """)
    root = build_call_tree(run_source(src))
    top = root.children[0]
    assert top.args == [3]
    assert [c.args for c in top.children] == [[2], [1]]
    assert [c.args for c in top.children[0].children] == [[1], [0]]
    assert top.return_value == 2


def test_repeated_calls_are_flagged_as_duplicates():
    root = build_call_tree(run_source("function f(x) { return x; }\nf(1);\nf(1);\nf(2);"))
    assert [c.is_duplicate for c in root.children] == [False, True, False]
    assert all(c.is_base_case for c in root.children)
    assert [c.call_index for c in root.children] == [1, 2, 3]


def test_call_tree_without_calls_and_without_snapshots():
    root = build_call_tree(run_source("let x = 1;"))
    assert root.children == []
    assert build_call_tree([]) is None
