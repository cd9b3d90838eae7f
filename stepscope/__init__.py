"""stepscope: step-through interpreter and program visualizer data for a JavaScript subset."""

from .cfg import CFGEdge, CFGNode, ControlFlowGraph, build_cfg, layout_cfg, mark_executed_cfg_nodes
from .errors import (
    InterpreterError,
    JSRangeError,
    JSReferenceError,
    JSRuntimeError,
    JSSyntaxError,
    JSThrow,
    JSTypeError,
    StepLimitExceeded,
    StepscopeError,
)
from .export import (
    call_tree_to_dict,
    cfg_to_dict,
    cfg_to_dot,
    snapshot_to_dict,
    snapshots_to_list,
    tree_to_dict,
)
from .interpreter import MAX_STEPS, Interpreter, run_source
from .parser import parse
from .state import ConsoleOutput, ErrorInfo, ExecutionState, SourceLocation, StackFrame, Variable
from .trees import CallTreeNode, TreeNode, build_call_tree, mark_executing_nodes, parse_ast
from .values import UNDEFINED

__version__ = "0.1.0"
