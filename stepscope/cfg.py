# stepscope/cfg.py
# Control-flow graph built from syntax alone (no execution):
#   build_cfg(source)                          -> ControlFlowGraph (ids cfg-0, cfg-1, ...)
#   layout_cfg(graph)                          -> copy with layer/x/y per node
#   mark_executed_cfg_nodes(graph, snapshots)  -> copy with was_executed flags
#
# Node types: start, end, statement, condition, loop, functionCall, return, trycatch
# Edge types: normal, true, false, loop-back, exception
#
# Execution marking is line-based: two nodes that share a source line are
# marked together.

from __future__ import annotations
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Iterable, List, Optional

import networkx as nx

from .parser import parse
from .state import ExecutionState

NODE_SPACING_X = 180
LAYER_SPACING_Y = 100

LOOP_TYPES = ("WhileStatement", "ForStatement", "DoWhileStatement")


@dataclass
class CFGNode:
    id: str
    type: str
    label: str
    line_number: Optional[int] = None
    was_executed: Optional[bool] = None
    layer: Optional[int] = None
    x: Optional[float] = None
    y: Optional[float] = None


@dataclass
class CFGEdge:
    source: str
    target: str
    type: str = "normal"
    label: Optional[str] = None
    was_executed: Optional[bool] = None


@dataclass
class ControlFlowGraph:
    nodes: List[CFGNode] = field(default_factory=list)
    edges: List[CFGEdge] = field(default_factory=list)

    def node(self, node_id: str) -> Optional[CFGNode]:
        for n in self.nodes:
            if n.id == node_id:
                return n
        return None

    def nodes_of_type(self, typ: str) -> List[CFGNode]:
        return [n for n in self.nodes if n.type == typ]

    def edges_from(self, node_id: str) -> List[CFGEdge]:
        return [e for e in self.edges if e.source == node_id]

    def edges_to(self, node_id: str) -> List[CFGEdge]:
        return [e for e in self.edges if e.target == node_id]

    @property
    def start(self) -> CFGNode:
        return self.nodes_of_type("start")[0]

    @property
    def end(self) -> CFGNode:
        return self.nodes_of_type("end")[0]

    def to_networkx(self, *, include_back_edges: bool = True) -> nx.DiGraph:
        graph = nx.DiGraph()
        for n in self.nodes:
            graph.add_node(n.id, type=n.type, label=n.label)
        for e in self.edges:
            if e.type == "loop-back" and not include_back_edges:
                continue
            graph.add_edge(e.source, e.target, type=e.type, label=e.label)
        return graph


# ---------- labels

def _call_label(expr: Dict[str, Any]) -> str:
    callee = expr["callee"]
    if callee["type"] == "Identifier":
        return f"{callee['name']}()"
    if callee["type"] == "MemberExpression" and not callee.get("computed"):
        obj, prop = callee["object"], callee["property"]
        if obj["type"] == "Identifier":
            return f"{obj['name']}.{prop['name']}()"
    return "call()"


def cfg_label(node: Dict[str, Any]) -> str:
    loc = node.get("loc")
    prefix = f"L{loc['line']}: " if loc else ""
    typ = node["type"]
    if typ == "VariableDeclaration":
        names = ", ".join(d["id"]["name"] for d in node["declarations"])
        return f"{prefix}{node['kind']} {names}"
    if typ == "ExpressionStatement":
        expr = node["expression"]
        if expr["type"] == "CallExpression":
            return f"{prefix}{_call_label(expr)}"
        if expr["type"] == "AssignmentExpression" and expr["left"]["type"] == "Identifier":
            return f"{prefix}{expr['left']['name']} {expr['operator']} ..."
        if expr["type"] == "UpdateExpression" and expr["argument"]["type"] == "Identifier":
            name, op = expr["argument"]["name"], expr["operator"]
            return f"{prefix}{op}{name}" if expr["prefix"] else f"{prefix}{name}{op}"
        return f"{prefix}expression"
    if typ == "FunctionDeclaration":
        return f"{prefix}function {node['id']['name']}"
    simple = {
        "IfStatement": "if (...)", "WhileStatement": "while (...)", "ForStatement": "for (...)",
        "DoWhileStatement": "do ... while (...)", "ReturnStatement": "return", "TryStatement": "try",
        "SwitchStatement": "switch (...)", "ThrowStatement": "throw", "BreakStatement": "break",
        "ContinueStatement": "continue",
    }
    return f"{prefix}{simple.get(typ, typ)}"


# ---------- builder

class _Builder:
    def __init__(self):
        self.nodes: List[CFGNode] = []
        self.edges: List[CFGEdge] = []
        self._next = 0
        self.returns: set = set()

    def add_node(self, typ: str, label: str, line: Optional[int] = None) -> CFGNode:
        node = CFGNode(id=f"cfg-{self._next}", type=typ, label=label, line_number=line)
        self._next += 1
        self.nodes.append(node)
        return node

    def add_edge(self, source: str, target: str, typ: str = "normal", label: Optional[str] = None) -> CFGEdge:
        edge = CFGEdge(source=source, target=target, type=typ, label=label)
        self.edges.append(edge)
        return edge

    def join(self, tail: str, target: str) -> None:
        """Fall-through edge; a branch that ended in `return` already flows to the end node."""
        if tail not in self.returns:
            self.add_edge(tail, target)

    def branch(self, stmts: List[Dict[str, Any]], origin: str, end_id: str, typ: str) -> Optional[str]:
        """Walk `stmts` from `origin`; the entering edge gets type/label `typ`. None if empty."""
        if not stmts:
            return None
        first = len(self.edges)
        tail = self.statements(stmts, origin, end_id)
        entry = self.edges[first]
        entry.type = typ
        entry.label = typ
        return tail

    def statements(self, stmts: Iterable[Dict[str, Any]], prev: str, end_id: str) -> str:
        for stmt in stmts:
            prev = self.statement(stmt, prev, end_id)
        return prev

    def statement(self, node: Dict[str, Any], prev: str, end_id: str) -> str:
        typ = node["type"]
        line = (node.get("loc") or {}).get("line")

        if typ == "IfStatement":
            cond = self.add_node("condition", cfg_label(node), line)
            self.add_edge(prev, cond.id)
            merge = self.add_node("statement", "merge", line)
            for key, kind in (("consequent", "true"), ("alternate", "false")):
                tail = self.branch(_body_of(node.get(key)), cond.id, end_id, kind)
                if tail is None:
                    self.add_edge(cond.id, merge.id, kind, kind)
                else:
                    self.join(tail, merge.id)
            return merge.id

        if typ in LOOP_TYPES:
            loop = self.add_node("loop", cfg_label(node), line)
            self.add_edge(prev, loop.id)
            after = self.add_node("statement", "end loop", line)
            tail = self.branch(_body_of(node["body"]), loop.id, end_id, "true")
            if tail is not None and tail not in self.returns:
                self.add_edge(tail, loop.id, "loop-back")
            self.add_edge(loop.id, after.id, "false", "false")
            return after.id

        if typ == "ReturnStatement":
            ret = self.add_node("return", cfg_label(node), line)
            self.returns.add(ret.id)
            self.add_edge(prev, ret.id)
            self.add_edge(ret.id, end_id)
            return ret.id

        if typ == "FunctionDeclaration":
            fn = self.add_node("functionCall", cfg_label(node), line)
            self.add_edge(prev, fn.id)
            return fn.id

        if typ == "TryStatement":
            return self._try(node, prev, end_id, line)

        stmt = self.add_node("statement", cfg_label(node), line)
        self.add_edge(prev, stmt.id)
        return stmt.id

    def _try(self, node: Dict[str, Any], prev: str, end_id: str, line: Optional[int]) -> str:
        try_node = self.add_node("trycatch", cfg_label(node), line)
        self.add_edge(prev, try_node.id)
        merge = self.add_node("statement", "end try", line)

        tail = self.statements(node["block"]["body"], try_node.id, end_id)
        self.join(tail, merge.id)

        handler = node.get("handler")
        if handler is not None:
            h_line = (handler.get("loc") or {}).get("line")
            catch = self.add_node("trycatch", f"L{h_line}: catch", h_line)
            self.add_edge(try_node.id, catch.id, "exception", "error")
            tail = self.statements(handler["body"]["body"], catch.id, end_id)
            self.join(tail, merge.id)

        finalizer = node.get("finalizer")
        if finalizer is not None:
            f_line = (finalizer.get("loc") or {}).get("line")
            fin = self.add_node("statement", "finally", f_line)
            self.add_edge(merge.id, fin.id)
            return fin.id
        return merge.id


def _body_of(node: Optional[Dict[str, Any]]) -> List[Dict[str, Any]]:
    if node is None:
        return []
    if node["type"] == "BlockStatement":
        return node["body"]
    return [node]


def build_cfg(source: str) -> ControlFlowGraph:
    """Build the control-flow graph of the top-level program in `source`."""
    program = parse(source)
    b = _Builder()
    start = b.add_node("start", "Start")
    end = b.add_node("end", "End")
    last = b.statements(program["body"], start.id, end.id)
    b.join(last, end.id)
    return ControlFlowGraph(nodes=b.nodes, edges=b.edges)


# ---------- layout

def layout_cfg(graph: ControlFlowGraph) -> ControlFlowGraph:
    """Assign layers by BFS distance from start (back-edges ignored) and center each layer."""
    forward = graph.to_networkx(include_back_edges=False)
    starts = graph.nodes_of_type("start")
    distance: Dict[str, int] = {}
    if starts:
        distance = nx.single_source_shortest_path_length(forward, starts[0].id)
    trailing = (max(distance.values()) + 1) if distance else 0

    layers: Dict[int, List[str]] = {}
    for n in graph.nodes:
        layers.setdefault(distance.get(n.id, trailing), []).append(n.id)

    placed: Dict[str, Dict[str, Any]] = {}
    for layer, ids in layers.items():
        width = len(ids)
        for i, node_id in enumerate(ids):
            placed[node_id] = {
                "layer": layer,
                "x": (i - (width - 1) / 2) * NODE_SPACING_X,
                "y": layer * LAYER_SPACING_Y,
            }
    return ControlFlowGraph(
        nodes=[replace(n, **placed[n.id]) for n in graph.nodes],
        edges=[replace(e) for e in graph.edges],
    )


def back_edges(graph: ControlFlowGraph) -> List[CFGEdge]:
    return [e for e in graph.edges if e.type == "loop-back"]


# ---------- execution marking

def mark_executed_cfg_nodes(graph: ControlFlowGraph, snapshots: List[ExecutionState]) -> ControlFlowGraph:
    lines = {s.current_line for s in snapshots if s.current_line > 0}
    ran = bool(snapshots)

    nodes = []
    flags: Dict[str, bool] = {}
    for n in graph.nodes:
        if n.line_number:
            flag = n.line_number in lines
        else:
            flag = ran and n.type in ("start", "end")
        nodes.append(replace(n, was_executed=flag))
        flags[n.id] = flag

    edges = [
        replace(e, was_executed=flags.get(e.source, False) and flags.get(e.target, False))
        for e in graph.edges
    ]
    return ControlFlowGraph(nodes=nodes, edges=edges)
