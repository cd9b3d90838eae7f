# stepscope/signals.py
# Statement completions: how a statement finished, threaded back up the tree walk.

from __future__ import annotations
from typing import Any, NamedTuple

from .values import UNDEFINED

NORMAL = "normal"
RETURN = "return"
BREAK = "break"
CONTINUE = "continue"


class Completion(NamedTuple):
    kind: str
    value: Any = UNDEFINED

    @property
    def abrupt(self) -> bool:
        return self.kind != NORMAL


def normal(value: Any = UNDEFINED) -> Completion:
    return Completion(NORMAL, value)


def returned(value: Any) -> Completion:
    return Completion(RETURN, value)


BREAK_COMPLETION = Completion(BREAK)
CONTINUE_COMPLETION = Completion(CONTINUE)
