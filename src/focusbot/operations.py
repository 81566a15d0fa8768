"""
Operations the reasoning engine may invoke during a turn.

Domain logic lives outside this package. A domain module (named by
agent.operations_module) exposes get_operations() returning Operation objects
and, optionally, get_reminder_sources() for the reminder loop.
"""
from __future__ import annotations

import importlib
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple

from .error_handler import ConfigurationError
from .logging_utils import setup_logger

logger = setup_logger("focusbot.operations", "logs/focusbot.log")


@dataclass
class Operation:
    name: str
    description: str
    handler: Callable[..., str]
    parameters: Dict[str, Any] = field(default_factory=lambda: {"type": "object", "properties": {}})

    def describe(self) -> Dict[str, Any]:
        return {"name": self.name, "description": self.description, "parameters": self.parameters}


class OperationRegistry:
    """Named operations plus failure-tolerant dispatch."""

    def __init__(self, operations: Optional[List[Operation]] = None):
        self._ops: Dict[str, Operation] = {}
        self._lock = threading.Lock()
        for op in operations or []:
            self.register(op)

    def register(self, operation: Operation) -> None:
        with self._lock:
            if operation.name in self._ops:
                raise ValueError(f"Operation already registered: {operation.name}")
            self._ops[operation.name] = operation

    def get(self, name: str) -> Optional[Operation]:
        with self._lock:
            return self._ops.get(name)

    def names(self) -> List[str]:
        with self._lock:
            return sorted(self._ops)

    def __len__(self) -> int:
        return len(self._ops)

    def describe(self) -> List[Dict[str, Any]]:
        with self._lock:
            return [op.describe() for op in self._ops.values()]

    def invoke(self, name: str, arguments: Optional[Dict[str, Any]] = None) -> str:
        """Run an operation; failures become a short message for the engine, never an exception."""
        op = self.get(name)
        if op is None:
            logger.warning(f"Engine requested unknown operation: {name}")
            return f"Unknown operation: {name}"

        try:
            result = op.handler(**(arguments or {}))
        except TypeError as e:
            logger.error(f"{name} called with bad arguments {arguments}: {e}")
            return f"Invalid arguments for {name}: {e}"
        except Exception as e:
            logger.error(f"{name} failed: {e}")
            return f"{name.replace('_', ' ').capitalize()} failed: {e}"

        logger.debug(f"{name} -> {str(result)[:120]}")
        return "" if result is None else str(result)


def load_operations_module(module_name: Optional[str]) -> Tuple[OperationRegistry, List[Any]]:
    """Import the domain module and collect its operations and reminder sources."""
    if not module_name:
        logger.info("No operations module configured; the engine will run without operations")
        return OperationRegistry(), []

    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise ConfigurationError(
            f"Cannot import operations module '{module_name}': {e}",
            component="operations",
            operation="load",
        ) from e

    get_operations = getattr(module, "get_operations", None)
    if not callable(get_operations):
        raise ConfigurationError(
            f"Operations module '{module_name}' does not define get_operations()",
            component="operations",
            operation="load",
        )

    registry = OperationRegistry(list(get_operations()))
    get_sources = getattr(module, "get_reminder_sources", None)
    sources = list(get_sources()) if callable(get_sources) else []
    logger.info(f"Loaded {len(registry)} operations and {len(sources)} reminder sources from {module_name}")
    return registry, sources
