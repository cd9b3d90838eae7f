# stepscope/export.py
# JSON-ready rendering of snapshots, graphs and trees (camelCase keys, like the
# documents described by stepscope/schemas/*.schema.json), plus Graphviz DOT
# output for control-flow graphs.

from __future__ import annotations
import json
import math
from pathlib import Path
from typing import Any, Dict, List, Optional

from .cfg import ControlFlowGraph
from .state import ExecutionState, StackFrame, Variable
from .trees import CallTreeNode, TreeNode
from .values import UNDEFINED, display, is_callable


def value_to_json(v: Any, _seen: Optional[set] = None) -> Any:
    """Plain-JSON form of a program value. undefined/NaN/Infinity become null
    (the accompanying `type`/`display` fields keep them distinguishable)."""
    seen = _seen or set()
    if v is UNDEFINED:
        return None
    if isinstance(v, float) and (math.isnan(v) or math.isinf(v)):
        return None
    if is_callable(v):
        return display(v)
    if isinstance(v, (list, dict)):
        if id(v) in seen:
            return "[Circular]"
        seen = seen | {id(v)}
        if isinstance(v, list):
            return [value_to_json(e, seen) for e in v]
        return {k: value_to_json(val, seen) for k, val in v.items()}
    return v


def variable_to_dict(var: Variable) -> Dict[str, Any]:
    return {
        "name": var.name,
        "value": value_to_json(var.value),
        "display": display(var.value),
        "type": var.type,
        "isNew": var.is_new,
        "scope": var.scope,
    }


def frame_to_dict(frame: StackFrame) -> Dict[str, Any]:
    out = {
        "functionName": frame.function_name,
        "arguments": [variable_to_dict(a) for a in frame.arguments],
        "localVariables": {k: variable_to_dict(v) for k, v in frame.local_variables.items()},
        "sourceLocation": {"line": frame.source_location.line, "column": frame.source_location.column},
        "callId": frame.call_id,
    }
    if frame.has_return_value:
        out["returnValue"] = value_to_json(frame.return_value)
    return out


def snapshot_to_dict(state: ExecutionState) -> Dict[str, Any]:
    err = state.error_state
    return {
        "step": state.step,
        "currentLine": state.current_line,
        "currentColumn": state.current_column,
        "callStack": [frame_to_dict(f) for f in state.call_stack],
        "output": [
            {"type": o.type, "args": [value_to_json(a) for a in o.args],
             "text": " ".join(display(a) for a in o.args), "timestamp": o.timestamp}
            for o in state.output
        ],
        "errorState": None if err is None else {
            "message": err.message, "line": err.line, "column": err.column, "stack": err.stack,
        },
        "globalVariables": {k: variable_to_dict(v) for k, v in state.global_variables.items()},
    }


def snapshots_to_list(states: List[ExecutionState]) -> List[Dict[str, Any]]:
    return [snapshot_to_dict(s) for s in states]


def _drop_none(d: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in d.items() if v is not None}


def cfg_to_dict(graph: ControlFlowGraph) -> Dict[str, Any]:
    nodes = [
        _drop_none({
            "id": n.id, "type": n.type, "label": n.label, "lineNumber": n.line_number,
            "wasExecuted": n.was_executed, "layer": n.layer, "x": n.x, "y": n.y,
        })
        for n in graph.nodes
    ]
    edges = [
        _drop_none({
            "source": e.source, "target": e.target, "type": e.type, "label": e.label,
            "wasExecuted": e.was_executed,
        })
        for e in graph.edges
    ]
    return {"nodes": nodes, "edges": edges}


def tree_to_dict(node: TreeNode) -> Dict[str, Any]:
    return {
        "id": node.id,
        "type": node.type,
        "label": node.label,
        "children": [tree_to_dict(c) for c in node.children],
        "metadata": _drop_none({
            "lineNumber": node.line_number,
            "column": node.column,
            "depth": node.depth,
            "nodeCategory": node.node_category,
            "isExecuting": node.is_executing,
        }),
    }


def call_tree_to_dict(node: CallTreeNode) -> Dict[str, Any]:
    out = {
        "id": node.id,
        "functionName": node.function_name,
        "args": [value_to_json(a) for a in node.args],
        "children": [call_tree_to_dict(c) for c in node.children],
        "depth": node.depth,
        "callIndex": node.call_index,
        "isBaseCase": node.is_base_case,
        "isDuplicate": node.is_duplicate,
    }
    if node.line_number is not None:
        out["lineNumber"] = node.line_number
    if node.return_value is not UNDEFINED:
        out["returnValue"] = value_to_json(node.return_value)
    return out


_EDGE_STYLE = {
    "true": "color=darkgreen",
    "false": "color=firebrick",
    "loop-back": "style=dashed",
    "exception": "color=orange, style=dotted",
}
_NODE_SHAPE = {
    "start": "oval", "end": "oval", "condition": "diamond", "loop": "hexagon",
    "functionCall": "box, peripheries=2", "return": "box, style=rounded", "trycatch": "parallelogram",
}


def cfg_to_dot(graph: ControlFlowGraph) -> str:
    lines = ["digraph cfg {"]
    for n in graph.nodes:
        attrs = [f"label={json.dumps(n.label)}", f"shape={_NODE_SHAPE.get(n.type, 'box')}"]
        if n.was_executed:
            attrs.append("penwidth=2")
        lines.append(f"  {json.dumps(n.id)} [{', '.join(attrs)}];")
    for e in graph.edges:
        a = json.dumps(e.source)
        b = json.dumps(e.target)
        attrs = []
        if e.label:
            attrs.append(f"label={json.dumps(e.label)}")
        if e.type in _EDGE_STYLE:
            attrs.append(_EDGE_STYLE[e.type])
        if attrs:
            lines.append(f"  {a} -> {b} [{', '.join(attrs)}];")
        else:
            lines.append(f"  {a} -> {b};")
    lines.append("}")
    return "\n".join(lines)


def write_cfg_dot(path: Path, graph: ControlFlowGraph) -> None:
    path.write_text(cfg_to_dot(graph), encoding="utf-8")
