# stepscope/state.py
# Snapshot records produced by the interpreter and consumed by the visualizers.

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .values import UNDEFINED


@dataclass
class SourceLocation:
    line: int = 0
    column: int = 0


@dataclass
class Variable:
    name: str
    value: Any
    type: str
    is_new: bool = False
    scope: str = "global"   # "local" | "closure" | "global"


@dataclass
class StackFrame:
    function_name: str
    arguments: List[Variable] = field(default_factory=list)
    local_variables: Dict[str, Variable] = field(default_factory=dict)
    return_value: Any = UNDEFINED
    source_location: SourceLocation = field(default_factory=SourceLocation)
    call_id: int = 0        # invocation serial; tells sibling calls apart

    @property
    def has_return_value(self) -> bool:
        return self.return_value is not UNDEFINED


@dataclass
class ConsoleOutput:
    type: str               # "log" | "warn" | "error" | "info"
    args: List[Any]
    timestamp: float


@dataclass
class ErrorInfo:
    message: str
    line: int
    column: int
    stack: Optional[str] = None


@dataclass
class ExecutionState:
    step: int
    current_line: int
    current_column: int
    call_stack: List[StackFrame]
    output: List[ConsoleOutput]
    error_state: Optional[ErrorInfo]
    global_variables: Dict[str, Variable]

    def variable(self, name: str) -> Optional[Variable]:
        return self.global_variables.get(name)

    def value_of(self, name: str, default: Any = UNDEFINED) -> Any:
        var = self.global_variables.get(name)
        return default if var is None else var.value
