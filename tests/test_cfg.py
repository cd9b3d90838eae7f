# tests/test_cfg.py
from textwrap import dedent

import networkx as nx
import pytest

from stepscope.cfg import (
    LAYER_SPACING_Y,
    ControlFlowGraph,
    _Builder,
    back_edges,
    build_cfg,
    layout_cfg,
    mark_executed_cfg_nodes,
)
from stepscope.errors import JSSyntaxError
from stepscope.interpreter import run_source
from stepscope.parser import parse

IF_ELSE = dedent("""\
let x = 1;
if (x > 0) {
  x = 2;
} else {
  x = 3;
}
""")

LOOP = dedent("""\
let i = 0;
while (i < 3) {
  i++;
}
""")


def _by_label(graph, label):
    return next(n for n in graph.nodes if n.label == label)


def test_start_and_end_come_first():
    graph = build_cfg("")
    assert [(n.id, n.type) for n in graph.nodes] == [("cfg-0", "start"), ("cfg-1", "end")]
    assert [(e.source, e.target) for e in graph.edges] == [("cfg-0", "cfg-1")]


def test_linear_statements_chain_from_start_to_end():
    graph = build_cfg("let a = 1;\nlet b = 2;")
    a = _by_label(graph, "L1: let a")
    b = _by_label(graph, "L2: let b")
    assert [(e.source, e.target) for e in graph.edges] == [
        (graph.start.id, a.id), (a.id, b.id), (b.id, graph.end.id),
    ]
    assert all(e.type == "normal" for e in graph.edges)


def test_if_has_true_and_false_branches():
    graph = build_cfg(IF_ELSE)
    cond = graph.nodes_of_type("condition")[0]
    assert cond.label == "L2: if (...)"
    out = {e.type: e for e in graph.edges_from(cond.id)}
    assert set(out) == {"true", "false"}
    assert graph.node(out["true"].target).label == "L3: x = ..."
    assert graph.node(out["false"].target).label == "L5: x = ..."
    merge = _by_label(graph, "merge")
    assert {e.source for e in graph.edges_to(merge.id)} == {out["true"].target, out["false"].target}


def test_if_without_else_falls_through_on_false():
    graph = build_cfg("if (a) {\n  b();\n}\n")
    cond = graph.nodes_of_type("condition")[0]
    merge = _by_label(graph, "merge")
    false_edges = [e for e in graph.edges_from(cond.id) if e.type == "false"]
    assert [(e.target, e.label) for e in false_edges] == [(merge.id, "false")]


def test_loop_has_back_edge_and_exit():
    graph = build_cfg(LOOP)
    loop = graph.nodes_of_type("loop")[0]
    assert loop.label == "L2: while (...)"
    backs = back_edges(graph)
    assert len(backs) == 1
    assert backs[0].target == loop.id
    assert graph.node(backs[0].source).label == "L3: i++"
    exits = [e for e in graph.edges_from(loop.id) if e.type == "false"]
    assert graph.node(exits[0].target).label == "end loop"


def test_for_and_do_while_are_loops():
    graph = build_cfg("for (let i = 0; i < 2; i++) {\n  f(i);\n}\ndo {\n  g();\n} while (h());")
    assert [n.label for n in graph.nodes_of_type("loop")] == ["L1: for (...)", "L4: do ... while (...)"]
    assert len(back_edges(graph)) == 2


def test_try_catch_has_exception_edge():
    graph = build_cfg("try {\n  risky();\n} catch (e) {\n  handle();\n} finally {\n  done();\n}\n")
    try_node, catch_node = graph.nodes_of_type("trycatch")
    assert try_node.label == "L1: try"
    assert catch_node.label == "L3: catch"
    exc = [e for e in graph.edges if e.type == "exception"]
    assert [(e.source, e.target, e.label) for e in exc] == [(try_node.id, catch_node.id, "error")]
    assert _by_label(graph, "finally").line_number == 5


def test_return_flows_only_to_end():
    fn = parse("function f(x) {\n  if (x) {\n    return 1;\n  }\n  x = 2;\n}")["body"][0]
    b = _Builder()
    start = b.add_node("start", "Start")
    end = b.add_node("end", "End")
    b.join(b.statements(fn["body"]["body"], start.id, end.id), end.id)
    graph = ControlFlowGraph(nodes=b.nodes, edges=b.edges)
    ret = graph.nodes_of_type("return")[0]
    assert ret.line_number == 3
    assert [e.target for e in graph.edges_from(ret.id)] == [graph.end.id]
    cond = graph.nodes_of_type("condition")[0]
    assert _by_label(graph, "merge").id in {e.target for e in graph.edges_from(cond.id)}


def test_top_level_return_is_a_syntax_error():
    with pytest.raises(JSSyntaxError):
        build_cfg("if (x) {\n  return 1;\n} else {\n  return 2;\n}\nlet y = 3;")


def test_every_node_reachable_from_start():
    src = dedent("""\
    function f(n) {
      if (n) return 1;
      return 2;
    }
    let i = 0;
    while (i < 3) {
      if (i === 1) continue;
      i++;
    }
    try {
      f(i);
    } catch (e) {
      i = 0;
    } finally {
      i = 1;
    }
    """)
    graph = build_cfg(src)
    forward = graph.to_networkx(include_back_edges=False)
    reachable = nx.descendants(forward, graph.start.id) | {graph.start.id}
    assert reachable == {n.id for n in graph.nodes}


def test_function_declaration_is_one_node():
    graph = build_cfg("function f(a) {\n  if (a) return 1;\n  return 2;\n}\nf(1);")
    assert [n.label for n in graph.nodes_of_type("functionCall")] == ["L1: function f"]
    assert graph.nodes_of_type("return") == []
    assert _by_label(graph, "L5: f()").type == "statement"


def test_build_is_deterministic():
    assert build_cfg(IF_ELSE) == build_cfg(IF_ELSE)
    ids = [n.id for n in build_cfg(IF_ELSE).nodes]
    assert ids == [f"cfg-{i}" for i in range(len(ids))]


def test_layout_layers_by_distance_and_centers():
    graph = build_cfg(IF_ELSE)
    laid = layout_cfg(graph)
    assert all(n.layer is None for n in graph.nodes)
    start = laid.start
    assert (start.layer, start.x, start.y) == (0, 0, 0)
    branch_a = _by_label(laid, "L3: x = ...")
    branch_b = _by_label(laid, "L5: x = ...")
    assert branch_a.layer == branch_b.layer == 3
    assert branch_a.y == 3 * LAYER_SPACING_Y
    assert branch_a.x == -branch_b.x != 0
    assert _by_label(laid, "merge").layer == 4


def test_layout_ignores_back_edges():
    laid = layout_cfg(build_cfg(LOOP))
    loop = laid.nodes_of_type("loop")[0]
    body = _by_label(laid, "L3: i++")
    assert body.layer == loop.layer + 1


def test_mark_executed_is_pure_and_line_based():
    src = "let x = 1;\nif (x > 5) {\n  x = 2;\n}\n"
    graph = build_cfg(src)
    marked = mark_executed_cfg_nodes(graph, run_source(src))
    assert all(n.was_executed is None for n in graph.nodes)
    assert _by_label(marked, "L1: let x").was_executed is True
    assert marked.nodes_of_type("condition")[0].was_executed is True
    assert _by_label(marked, "L3: x = ...").was_executed is False
    assert marked.start.was_executed is True
    first = marked.edges_from(marked.start.id)[0]
    assert first.was_executed is True


def test_mark_executed_with_no_snapshots():
    marked = mark_executed_cfg_nodes(build_cfg("let a = 1;"), [])
    assert not any(n.was_executed for n in marked.nodes)
