"""Execution engine error classes."""

from typing import Any, Dict, List, Optional


class ExecutionError(Exception):
    """Base class for all execution errors."""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        execution_id: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        self.execution_id = execution_id

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary."""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "error_code": self.error_code,
            "details": self.details,
        }


class WorkflowExecutionError(ExecutionError):
    """Raised when a run cannot proceed at the workflow level."""

    def __init__(
        self,
        message: str,
        workflow_id: Optional[str] = None,
        **kwargs
    ):
        super().__init__(message, **kwargs)
        self.workflow_id = workflow_id
        self.details["workflow_id"] = workflow_id


class CycleError(ExecutionError):
    """Raised when the graph cannot be ordered because it contains a cycle."""

    def __init__(
        self,
        message: str = "Circular dependency detected in workflow",
        cycle_path: Optional[List[str]] = None,
        **kwargs
    ):
        super().__init__(message, error_code="CIRCULAR_DEPENDENCY", **kwargs)
        self.cycle_path = cycle_path or []
        self.details["cycle_path"] = self.cycle_path


class MissingHandlerError(ExecutionError):
    """Raised when no handler is registered for a node type."""

    def __init__(self, node_type: str, node_id: Optional[str] = None, **kwargs):
        super().__init__(
            f"No handler registered for node type '{node_type}'",
            error_code="MISSING_HANDLER",
            **kwargs
        )
        self.node_type = node_type
        self.node_id = node_id
        self.details.update({"node_type": node_type, "node_id": node_id})


class NodeExecutionError(ExecutionError):
    """Raised when a node fails and the run cannot continue past it."""

    default_error_code = "NODE_EXECUTION_FAILED"

    def __init__(
        self,
        message: str,
        node_id: str,
        node_type: str,
        **kwargs
    ):
        kwargs.setdefault("error_code", self.default_error_code)
        super().__init__(message, **kwargs)
        self.node_id = node_id
        self.node_type = node_type
        self.details.update({
            "node_id": node_id,
            "node_type": node_type,
        })


class InvalidLoopSourceError(NodeExecutionError):
    """Raised when a loop node's source does not resolve to an array."""

    default_error_code = "INVALID_LOOP_SOURCE"


class InvalidExpressionError(NodeExecutionError):
    """Raised when a condition expression cannot be parsed."""

    default_error_code = "INVALID_EXPRESSION"


class MissingCredentialsError(ExecutionError):
    """Raised when required credentials are missing."""

    def __init__(
        self,
        message: str,
        service: str,
        **kwargs
    ):
        super().__init__(message, error_code="MISSING_CREDENTIALS", **kwargs)
        self.service = service
        self.details["service"] = service


NODE_ERROR_TYPES = {
    InvalidLoopSourceError.default_error_code: InvalidLoopSourceError,
    InvalidExpressionError.default_error_code: InvalidExpressionError,
}


def node_error_for(
    error_code: Optional[str],
    message: str,
    node_id: str,
    node_type: str,
) -> NodeExecutionError:
    """Build the NodeExecutionError subclass matching a handler's error code."""
    error_class = NODE_ERROR_TYPES.get(error_code, NodeExecutionError)
    kwargs = {"error_code": error_code} if error_code and error_class is NodeExecutionError else {}
    return error_class(message, node_id=node_id, node_type=node_type, **kwargs)
