"""Execution context classes."""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

import structlog

from relayflow.config import settings
from .errors import ExecutionError

logger = structlog.get_logger()

REDACTED = "[REDACTED]"


@dataclass
class LoopFrame:
    """Iteration state for one active loop."""

    items: List[Any]
    loop_variable: str = "item"
    source_expression: str = ""
    current_index: int = 0
    current_item: Any = None

    def __post_init__(self):
        if self.items and self.current_item is None:
            self.current_item = self.items[self.current_index]

    @property
    def count(self) -> int:
        return len(self.items)

    def advance_to(self, index: int) -> None:
        """Point the frame at ``items[index]``."""
        self.current_index = index
        self.current_item = self.items[index]


class ExecutionContext:
    """Mutable state threaded through a single workflow run.

    One context belongs to exactly one run and is discarded when the run
    ends. Node outputs are write-once; the executor clears a loop body's
    outputs between iterations with ``clear_node_outputs``.
    """

    def __init__(
        self,
        user_id: str,
        trigger: Any = None,
        variables: Optional[Dict[str, Any]] = None,
        execution_id: Optional[str] = None,
    ):
        self.user_id = user_id
        self.trigger = trigger if trigger is not None else {}
        self.variables: Dict[str, Any] = dict(variables or {})
        self.execution_id = execution_id
        self.node_outputs: Dict[str, Any] = {}
        self.loop_stack: List[LoopFrame] = []

    @property
    def current_loop(self) -> Optional[LoopFrame]:
        """Top of the loop stack, or None outside any loop."""
        return self.loop_stack[-1] if self.loop_stack else None

    def has_node_output(self, node_id: str) -> bool:
        return node_id in self.node_outputs

    def get_node_output(self, node_id: str, default: Any = None) -> Any:
        return self.node_outputs.get(node_id, default)

    def set_node_output(self, node_id: str, output: Any) -> None:
        """Record a node's output; each node writes at most once."""
        if node_id in self.node_outputs:
            raise ExecutionError(
                f"Output for node '{node_id}' is already recorded",
                error_code="OUTPUT_ALREADY_SET",
                details={"node_id": node_id},
                execution_id=self.execution_id,
            )
        self.node_outputs[node_id] = output

    def clear_node_outputs(self, node_ids: Iterable[str]) -> None:
        for node_id in node_ids:
            self.node_outputs.pop(node_id, None)

    def push_loop(self, frame: LoopFrame) -> None:
        self.loop_stack.append(frame)

    def pop_loop(self) -> Optional[LoopFrame]:
        return self.loop_stack.pop() if self.loop_stack else None

    def set_variable(self, key: str, value: Any) -> None:
        self.variables[key] = value

    def snapshot(self, redact_keys: Optional[Iterable[str]] = None) -> Dict[str, Any]:
        """Sanitized copy of the context for persistence in error payloads."""
        fragments = [fragment.lower() for fragment in (redact_keys or settings.redact_keys)]
        return {
            "variables": sanitize(self.variables, fragments),
            "node_outputs": sanitize(self.node_outputs, fragments),
            "trigger": sanitize(self.trigger, fragments),
            "loop_depth": len(self.loop_stack),
        }


def sanitize(value: Any, fragments: List[str]) -> Any:
    """Replace values under credential-shaped keys with a placeholder."""
    if isinstance(value, dict):
        cleaned = {}
        for key, item in value.items():
            if any(fragment in str(key).lower() for fragment in fragments):
                cleaned[key] = REDACTED
            else:
                cleaned[key] = sanitize(item, fragments)
        return cleaned
    if isinstance(value, (list, tuple)):
        return [sanitize(item, fragments) for item in value]
    return value
