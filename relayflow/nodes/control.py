"""Control flow node handlers."""

import asyncio
import json
from typing import Any, Awaitable, Callable, List, Optional, Union

from pydantic import Field, field_validator

from relayflow.config import settings
from relayflow.executor.context import ExecutionContext, LoopFrame
from relayflow.executor.resolver import NOT_FOUND, resolve_path
from .base import NodeConfig, NodeHandler, NodeResult
from .expression import ExpressionError, compare, evaluate_expression, parse_operand


class TriggerHandler(NodeHandler):
    """Entry node; exposes the trigger payload as its output."""

    node_type = "trigger"

    async def run(self, config: NodeConfig, context: ExecutionContext) -> NodeResult:
        return NodeResult.ok(context.trigger if context.trigger is not None else {})


class ConditionConfig(NodeConfig):
    expression: Optional[str] = None
    condition: Any = None
    operator: str = "=="
    value: Any = None


class ConditionHandler(NodeHandler):
    """Evaluate a comparison and choose the ``true`` or ``false`` branch.

    Accepts either a full ``expression`` string or the structured editor
    form ``condition`` / ``operator`` / ``value``.
    """

    node_type = "condition"
    config_model = ConditionConfig

    async def run(self, config: ConditionConfig, context: ExecutionContext) -> NodeResult:
        try:
            if config.expression is not None and str(config.expression).strip():
                expression = config.expression
                result = evaluate_expression(expression)
            elif config.condition is not None and config.condition != "":
                operator = (config.operator or "==").strip() or "=="
                expression = f"{config.condition} {operator} {config.value}"
                result = compare(
                    parse_operand(config.condition),
                    operator,
                    parse_operand(config.value),
                )
            else:
                return NodeResult.fail(
                    "Condition expression is required",
                    error_code="INVALID_EXPRESSION",
                    output={"condition": False},
                )
        except ExpressionError as e:
            self.logger.debug("Condition evaluation failed", error=str(e))
            return NodeResult.fail(
                "Invalid expression",
                error_code="INVALID_EXPRESSION",
                output={"condition": False},
            )

        return NodeResult.ok({
            "condition": result,
            "branch": "true" if result else "false",
            "expression": expression,
        })


class LoopConfig(NodeConfig):
    array_source: Union[str, List[Any], None] = Field(default=None, alias="arraySource")
    loop_variable: str = Field(default="item", alias="loopVariable")

    @field_validator("loop_variable", mode="before")
    @classmethod
    def default_loop_variable(cls, value):
        return value or "item"


class LoopHandler(NodeHandler):
    """Start iteration over an array by pushing a loop frame.

    The executor runs the loop body once per item; this handler only
    resolves the source and seeds the frame.
    """

    node_type = "loop"
    config_model = LoopConfig

    async def run(self, config: LoopConfig, context: ExecutionContext) -> NodeResult:
        source = config.array_source
        if source is None or (isinstance(source, str) and not source.strip()):
            return NodeResult.fail(
                "Array source not configured", error_code="INVALID_LOOP_SOURCE", output={}
            )

        items = self._resolve_items(source, context)
        if not isinstance(items, list):
            return NodeResult.fail(
                "Array source is not an array", error_code="INVALID_LOOP_SOURCE", output={}
            )

        source_expression = source.strip() if isinstance(source, str) else "inline"

        if not items:
            return NodeResult.ok({
                "itemCount": 0,
                "loopInitiated": False,
                "arraySource": source_expression,
                "message": "No items to loop over",
            })

        context.push_loop(LoopFrame(
            items=items,
            loop_variable=config.loop_variable,
            source_expression=source_expression,
        ))
        self.logger.debug("Loop initiated", item_count=len(items), source=source_expression)

        return NodeResult.ok({
            "itemCount": len(items),
            "loopInitiated": True,
            "arraySource": source_expression,
        })

    def _resolve_items(self, source: Any, context: ExecutionContext) -> Any:
        if isinstance(source, list):
            return source

        text = source.strip()
        if text.startswith("["):
            return _parse_json_array(text)

        if "." in text:
            value = resolve_path(text, context)
        elif text in context.variables:
            value = context.variables[text]
        elif context.has_node_output(text):
            value = context.get_node_output(text)
        else:
            value = NOT_FOUND

        if isinstance(value, str):
            return _parse_json_array(value)
        return value


def _parse_json_array(text: str) -> Any:
    try:
        return json.loads(text)
    except ValueError:
        return None


class VariableConfig(NodeConfig):
    key: str
    value: Any = Field(...)

    @field_validator("key")
    @classmethod
    def key_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Key is required for variable node")
        return value


class VariableHandler(NodeHandler):
    """Set a run-wide variable."""

    node_type = "variable"
    config_model = VariableConfig

    async def run(self, config: VariableConfig, context: ExecutionContext) -> NodeResult:
        context.set_variable(config.key, config.value)
        return NodeResult.ok({"key": config.key, "value": config.value})


class DelayConfig(NodeConfig):
    duration: Any = None
    delay_seconds: Any = Field(default=None, alias="delaySeconds")


class DelayHandler(NodeHandler):
    """Pause the run for a number of seconds."""

    node_type = "delay"
    config_model = DelayConfig

    def __init__(self, sleep: Optional[Callable[[float], Awaitable[Any]]] = None):
        super().__init__()
        self._sleep = sleep or asyncio.sleep

    async def run(self, config: DelayConfig, context: ExecutionContext) -> NodeResult:
        raw = config.duration if config.duration is not None else config.delay_seconds
        try:
            duration = float(raw)
        except (TypeError, ValueError):
            duration = 0.0

        if not duration > 0 or duration == float("inf"):
            self.logger.warning(
                "Invalid delay duration, using default",
                requested=raw,
                default=settings.delay_default_seconds,
            )
            duration = settings.delay_default_seconds

        await self._sleep(duration)
        return NodeResult.ok({"delayed": True, "duration": duration})
