"""Base node handler classes."""

from abc import ABC, abstractmethod
from typing import Any, ClassVar, Dict, Optional, Type

import structlog
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from relayflow.executor.context import ExecutionContext

logger = structlog.get_logger()


class NodeResult(BaseModel):
    """Outcome of one handler invocation."""

    success: bool = Field(..., description="Whether the node succeeded")
    output: Any = Field(default=None, description="Value recorded as the node output")
    error: Optional[str] = Field(default=None, description="Failure message")
    error_code: Optional[str] = Field(default=None, description="Machine readable failure kind")
    continue_on_error: bool = Field(
        default=False, description="Handler asks the run to proceed past this failure"
    )

    @classmethod
    def ok(cls, output: Any = None) -> "NodeResult":
        return cls(success=True, output=output)

    @classmethod
    def fail(
        cls,
        error: str,
        error_code: Optional[str] = None,
        output: Any = None,
        continue_on_error: bool = False,
    ) -> "NodeResult":
        return cls(
            success=False,
            output=output,
            error=error,
            error_code=error_code,
            continue_on_error=continue_on_error,
        )


class NodeConfig(BaseModel):
    """Base for per-type node configuration.

    Every handler validates its resolved config into a subclass right
    before running, so handlers work with typed fields only.
    """

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    continue_on_error: bool = Field(default=False, alias="continueOnError")


class NodeHandler(ABC):
    """Base class for all node handlers.

    Handlers are stateless; one instance serves every run in the process.
    """

    node_type: ClassVar[str] = ""
    config_model: ClassVar[Type[NodeConfig]] = NodeConfig

    def __init__(self):
        self.logger = logger.bind(component="node", node_type=self.node_type)

    async def execute(self, config: Dict[str, Any], context: ExecutionContext) -> NodeResult:
        """Validate the resolved config and run the handler."""
        try:
            parsed = self.config_model.model_validate(config or {})
        except ValidationError as e:
            return NodeResult.fail(
                f"Invalid {self.node_type} configuration: {_format_errors(e)}",
                error_code="INVALID_CONFIG",
            )
        return await self.run(parsed, context)

    @abstractmethod
    async def run(self, config: NodeConfig, context: ExecutionContext) -> NodeResult:
        """Execute the node with its typed configuration."""
        pass


def _format_errors(error: ValidationError) -> str:
    parts = []
    for item in error.errors():
        location = ".".join(str(part) for part in item.get("loc", ()))
        parts.append(f"{location}: {item.get('msg')}" if location else item.get("msg", ""))
    return "; ".join(parts)
