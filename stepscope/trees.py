# stepscope/trees.py
# Tree views derived from source and snapshots:
#   parse_ast(source)               -> TreeNode hierarchy for a syntax-tree viewer
#   mark_executing_nodes(tree, ln)  -> copy with is_executing flags for line `ln`
#   build_call_tree(snapshots)      -> CallTreeNode rooted at "<program>", or None

from __future__ import annotations
import json
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional

from .parser import parse
from .state import ExecutionState
from .values import UNDEFINED, is_callable, to_string

DECLARATIONS = {"VariableDeclaration", "VariableDeclarator", "FunctionDeclaration"}
CONTROL = {"IfStatement", "WhileStatement", "ForStatement", "DoWhileStatement",
           "BreakStatement", "ContinueStatement"}
OPERATORS = {"BinaryExpression", "LogicalExpression", "UnaryExpression", "UpdateExpression"}
EXPRESSIONS = {"CallExpression", "MemberExpression", "AssignmentExpression", "ConditionalExpression",
               "ArrowFunctionExpression", "FunctionExpression", "NewExpression", "ArrayExpression",
               "ObjectExpression", "TemplateLiteral", "SpreadElement", "SequenceExpression"}

CHILD_KEYS: Dict[str, List[str]] = {
    "Program": ["body"],
    "VariableDeclaration": ["declarations"],
    "VariableDeclarator": ["id", "init"],
    "FunctionDeclaration": ["id", "params", "body"],
    "FunctionExpression": ["id", "params", "body"],
    "ArrowFunctionExpression": ["params", "body"],
    "AssignmentPattern": ["left", "right"],
    "ExpressionStatement": ["expression"],
    "CallExpression": ["callee", "arguments"],
    "MemberExpression": ["object", "property"],
    "BinaryExpression": ["left", "right"],
    "LogicalExpression": ["left", "right"],
    "UnaryExpression": ["argument"],
    "UpdateExpression": ["argument"],
    "AssignmentExpression": ["left", "right"],
    "IfStatement": ["test", "consequent", "alternate"],
    "WhileStatement": ["test", "body"],
    "DoWhileStatement": ["body", "test"],
    "ForStatement": ["init", "test", "update", "body"],
    "ReturnStatement": ["argument"],
    "BlockStatement": ["body"],
    "ArrayExpression": ["elements"],
    "ObjectExpression": ["properties"],
    "Property": ["key", "value"],
    "ConditionalExpression": ["test", "consequent", "alternate"],
    "TemplateLiteral": ["quasis", "expressions"],
    "ThrowStatement": ["argument"],
    "TryStatement": ["block", "handler", "finalizer"],
    "CatchClause": ["param", "body"],
    "SwitchStatement": ["discriminant", "cases"],
    "SwitchCase": ["test", "consequent"],
    "NewExpression": ["callee", "arguments"],
    "SpreadElement": ["argument"],
    "SequenceExpression": ["expressions"],
}


@dataclass
class TreeNode:
    id: str
    type: str
    label: str
    children: List["TreeNode"] = field(default_factory=list)
    line_number: Optional[int] = None
    column: Optional[int] = None
    depth: int = 0
    node_category: str = "statement"
    is_executing: Optional[bool] = None

    def walk(self):
        yield self
        for child in self.children:
            yield from child.walk()


@dataclass
class CallTreeNode:
    id: str
    function_name: str
    args: List[Any] = field(default_factory=list)
    return_value: Any = UNDEFINED
    children: List["CallTreeNode"] = field(default_factory=list)
    depth: int = 0
    call_index: int = 0
    line_number: Optional[int] = None
    is_base_case: bool = False
    is_duplicate: bool = False

    def walk(self):
        yield self
        for child in self.children:
            yield from child.walk()

    @property
    def max_depth(self) -> int:
        return max(n.depth for n in self.walk())


def node_category(typ: str) -> str:
    if typ == "Program":
        return "program"
    if typ in DECLARATIONS:
        return "declaration"
    if typ in CONTROL:
        return "control"
    if typ in OPERATORS:
        return "operator"
    if typ == "Literal":
        return "literal"
    if typ in EXPRESSIONS:
        return "expression"
    return "statement"


def _simple_member(node: Dict[str, Any]) -> Optional[str]:
    obj, prop = node["object"], node["property"]
    if obj["type"] == "Identifier" and prop["type"] == "Identifier" and not node.get("computed"):
        return f"{obj['name']}.{prop['name']}"
    return None


def node_label(node: Dict[str, Any]) -> str:
    typ = node["type"]
    if typ == "Program":
        return "Program"
    if typ == "VariableDeclaration":
        return node["kind"]
    if typ == "VariableDeclarator":
        return node["id"]["name"]
    if typ == "FunctionDeclaration":
        return f"function {node['id']['name'] if node.get('id') else '<anon>'}"
    if typ == "Identifier":
        return node["name"]
    if typ == "Literal":
        return to_string(node["value"])
    if typ in ("BinaryExpression", "LogicalExpression", "AssignmentExpression",
               "UnaryExpression", "UpdateExpression"):
        return node["operator"]
    if typ == "CallExpression":
        callee = node["callee"]
        if callee["type"] == "Identifier":
            return f"{callee['name']}()"
        if callee["type"] == "MemberExpression" and _simple_member(callee):
            return f"{_simple_member(callee)}()"
        return "call()"
    if typ == "MemberExpression":
        return _simple_member(node) or "member"
    simple = {
        "IfStatement": "if", "WhileStatement": "while", "DoWhileStatement": "do-while",
        "ForStatement": "for", "ReturnStatement": "return", "BlockStatement": "block",
        "ExpressionStatement": "expr", "ArrowFunctionExpression": "=>", "ArrayExpression": "[]",
        "ObjectExpression": "{}", "ConditionalExpression": "? :", "TemplateLiteral": "``",
        "ThrowStatement": "throw", "TryStatement": "try/catch", "SwitchStatement": "switch",
        "BreakStatement": "break", "ContinueStatement": "continue",
    }
    return simple.get(typ, typ)


def _build(node: Dict[str, Any], depth: int, counter: List[int]) -> TreeNode:
    ident = f"ast-{counter[0]}"
    counter[0] += 1
    children: List[TreeNode] = []
    for key in CHILD_KEYS.get(node["type"], []):
        child = node.get(key)
        if not child:
            continue
        items = child if isinstance(child, list) else [child]
        for item in items:
            if isinstance(item, dict) and "type" in item:
                children.append(_build(item, depth + 1, counter))
    loc = node.get("loc") or {}
    return TreeNode(
        id=ident,
        type=node["type"],
        label=node_label(node),
        children=children,
        line_number=loc.get("line"),
        column=loc.get("column"),
        depth=depth,
        node_category=node_category(node["type"]),
    )


def parse_ast(source: str) -> TreeNode:
    """Parse `source` and return the syntax tree as TreeNodes (ids ast-0, ast-1, ... in pre-order)."""
    return _build(parse(source), 0, [0])


def mark_executing_nodes(tree: TreeNode, current_line: int) -> TreeNode:
    return replace(
        tree,
        children=[mark_executing_nodes(c, current_line) for c in tree.children],
        is_executing=tree.line_number == current_line,
    )


# ---------- call tree

def _args_key(args: List[Any]) -> str:
    def plain(v):
        if v is UNDEFINED:
            return "undefined"
        if is_callable(v):
            return f"function {v.name}"
        if isinstance(v, float) and v != v:
            return "NaN"
        return v
    try:
        return json.dumps([plain(a) for a in args], sort_keys=True, default=str)
    except ValueError:  # circular structure
        return repr(args)


def _mark_call_tree(node: CallTreeNode) -> None:
    if not node.children and node.function_name != "<program>":
        node.is_base_case = True
    seen = set()
    for child in node.children:
        key = f"{child.function_name}({_args_key(child.args)})"
        if key in seen:
            child.is_duplicate = True
        seen.add(key)
        _mark_call_tree(child)


def build_call_tree(snapshots: List[ExecutionState]) -> Optional[CallTreeNode]:
    """Rebuild call nesting by diffing consecutive call stacks (frames matched by call_id)."""
    if not snapshots:
        return None
    call_index = 0
    root = CallTreeNode(id="call-root", function_name="<program>", depth=0, call_index=call_index)
    call_index += 1
    parents = [root]
    prev_ids: List[int] = []

    for snap in snapshots:
        ids = [f.call_id for f in snap.call_stack]
        depth = len(ids)
        # frames shared with the previous snapshot are the same invocations
        common = 0
        while common < min(depth, len(prev_ids)) and ids[common] == prev_ids[common]:
            common += 1
        del parents[common + 1:]
        if depth > common:
            for d in range(common, depth):
                frame = snap.call_stack[d]
                node = CallTreeNode(
                    id=f"call-{call_index}",
                    function_name=frame.function_name,
                    args=[a.value for a in frame.arguments],
                    depth=d + 1,
                    call_index=call_index,
                    line_number=frame.source_location.line,
                )
                call_index += 1
                parents[-1].children.append(node)
                parents.append(node)

        if depth > 0:
            top = snap.call_stack[-1]
            if top.has_return_value:
                parents[-1].return_value = top.return_value
        prev_ids = ids

    _mark_call_tree(root)
    return root
