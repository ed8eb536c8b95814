"""Run-scoped shared context."""

from __future__ import annotations

import copy
from collections.abc import Iterator, Mapping
from enum import Enum
from types import MappingProxyType
from typing import Any

from .errors import ContextError


class OutputMode(Enum):
    """Controls what steps print to console."""
    QUIET = 0   # Nothing (for tests, scripts, piped output)
    NORMAL = 1  # Step-chosen output only (default)
    DEBUG = 2   # Everything + internal details


class WorkflowContext(Mapping):
    """
    Append-only mapping from step id to that step's exposed output.

    The engine publishes a step's output once the step has completed. An id
    is never removed or replaced for the remainder of the run, so every
    step declared after the writer sees the same value.
    """

    def __init__(self) -> None:
        self._entries: dict[str, Mapping[str, Any]] = {}

    def __getitem__(self, key: str) -> Mapping[str, Any]:
        return self._entries[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def publish(self, step_id: str, output: Mapping[str, Any]) -> None:
        """Store a deep copy of a step's output under its id."""
        if step_id in self._entries:
            raise ContextError(
                f"Context '{step_id}' is already published",
                context_id=step_id,
            )
        self._entries[step_id] = MappingProxyType(copy.deepcopy(dict(output)))

    def view(self, bindings: Mapping[str, str]) -> Mapping[str, Any]:
        """Build a read-only {alias: output} view for the given bindings."""
        local: dict[str, Any] = {}
        for alias, external_id in bindings.items():
            if external_id not in self._entries:
                raise ContextError(
                    f"Required context '{external_id}' is unavailable",
                    context_id=external_id,
                )
            local[alias] = MappingProxyType(copy.deepcopy(dict(self._entries[external_id])))
        return MappingProxyType(local)

    def snapshot(self) -> dict[str, dict[str, Any]]:
        """Plain-dict copy of all published outputs (for reports)."""
        return {key: copy.deepcopy(dict(value)) for key, value in self._entries.items()}
