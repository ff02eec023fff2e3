"""Template resolution of ``{{path}}`` references against a run context."""

import json
import re
from typing import Any, List, Optional

from .context import ExecutionContext, LoopFrame

TEMPLATE_PATTERN = re.compile(r"{{([^}]+)}}")
SINGLE_REFERENCE_PATTERN = re.compile(r"^\s*{{([^}]+)}}\s*$")

VARIABLE_ROOTS = ("variables", "variable")


class _NotFound:
    """Marker for a path that does not resolve to a value."""

    def __repr__(self) -> str:
        return "NOT_FOUND"


NOT_FOUND = _NotFound()


def resolve(template: str, context: ExecutionContext) -> str:
    """Replace every ``{{path}}`` in ``template`` with its resolved value.

    References that resolve to nothing are left in place verbatim. An
    explicit ``None`` is rendered as ``null``.
    """
    if not isinstance(template, str) or "{{" not in template:
        return template

    def _replace(match: "re.Match[str]") -> str:
        value = resolve_path(match.group(1).strip(), context)
        if value is NOT_FOUND:
            return match.group(0)
        return stringify(value)

    return TEMPLATE_PATTERN.sub(_replace, template)


def resolve_deep(value: Any, context: ExecutionContext) -> Any:
    """Resolve templates throughout nested dicts and lists.

    A string consisting of exactly one reference resolves to the native
    value so numbers, lists and objects keep their type.
    """
    if isinstance(value, str):
        match = SINGLE_REFERENCE_PATTERN.match(value)
        if match:
            resolved = resolve_path(match.group(1).strip(), context)
            return value if resolved is NOT_FOUND else resolved
        return resolve(value, context)
    if isinstance(value, dict):
        return {key: resolve_deep(item, context) for key, item in value.items()}
    if isinstance(value, list):
        return [resolve_deep(item, context) for item in value]
    if isinstance(value, tuple):
        return tuple(resolve_deep(item, context) for item in value)
    return value


def stringify(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list)):
        return json.dumps(value, separators=(",", ":"), default=str)
    return str(value)


def resolve_path(path: str, context: ExecutionContext) -> Any:
    """Resolve a dotted path, returning ``NOT_FOUND`` when it has no value."""
    root, *rest = path.split(".")
    if not root:
        return NOT_FOUND

    if root in VARIABLE_ROOTS:
        return traverse(context.variables, rest)

    if root == "trigger":
        return traverse(context.trigger, rest)

    if root == "loop":
        return _resolve_loop(context.current_loop, rest)

    if not context.has_node_output(root):
        return NOT_FOUND
    output = context.get_node_output(root)
    # "<node>.output.x" addresses the output itself unless it has an "output" key
    if rest and rest[0] == "output" and not (isinstance(output, dict) and "output" in output):
        rest = rest[1:]
    return traverse(output, rest)


def _resolve_loop(frame: Optional[LoopFrame], segments: List[str]) -> Any:
    if frame is None:
        return NOT_FOUND
    if not segments:
        return {
            "item": frame.current_item,
            "index": frame.current_index,
            "count": frame.count,
        }

    first, remaining = segments[0], segments[1:]
    if first == "item" or first == frame.loop_variable:
        value = frame.current_item
    elif first == "index":
        value = frame.current_index
    elif first == "count":
        value = frame.count
    elif first == "items":
        value = frame.items
    else:
        return NOT_FOUND
    return traverse(value, remaining)


def traverse(value: Any, segments: List[str]) -> Any:
    """Walk ``segments`` into nested dicts/lists; stops at missing or null."""
    current = value
    for segment in segments:
        if current is None:
            return NOT_FOUND
        if isinstance(current, dict):
            if segment not in current:
                return NOT_FOUND
            current = current[segment]
        elif isinstance(current, (list, tuple)):
            try:
                current = current[int(segment)]
            except (ValueError, IndexError):
                return NOT_FOUND
        else:
            return NOT_FOUND
    return current
