"""Compile and run user-supplied step scripts.

Scripts are plain Python statements. They run with a fixed allow-list of
builtins and only the names the calling step passes in, never the step or
the session. This keeps honest scripts away from the engine; it is not a
security boundary against hostile ones.
"""

from __future__ import annotations

import builtins
import math
import re
from types import CodeType
from typing import Any

from ..core.errors import ParameterError

_ALLOWED_BUILTINS = (
    "abs", "all", "any", "bool", "dict", "enumerate", "filter", "float",
    "int", "isinstance", "len", "list", "map", "max", "min", "print",
    "range", "reversed", "round", "set", "sorted", "str", "sum", "tuple",
    "zip", "Exception", "KeyError", "TypeError", "ValueError",
)

SAFE_BUILTINS = {name: getattr(builtins, name) for name in _ALLOWED_BUILTINS}


def compile_script(source: Any, filename: str) -> CodeType:
    """Compile a script, reporting syntax errors as a parameter problem."""
    if not isinstance(source, str) or not source.strip():
        raise ParameterError("Parameter 'script' must be a non-empty string")
    try:
        return compile(source, filename, "exec")
    except SyntaxError as e:
        raise ParameterError(f"Script Error: {e.msg} (line {e.lineno})") from e


def run_script(code: CodeType, names: dict[str, Any]) -> None:
    """Execute compiled script code with the given names in scope."""
    namespace = {"__builtins__": SAFE_BUILTINS, "math": math, "re": re, **names}
    try:
        exec(code, namespace)
    except Exception as e:
        raise ParameterError(f"Script Error: {type(e).__name__}: {e}") from e
