"""Execution record exceptions."""

from relayflow.exceptions import NotFoundError, RelayFlowException


class ExecutionNotFoundError(NotFoundError):
    """Raised when an execution record is not found."""

    def __init__(self, execution_id: str):
        self.execution_id = execution_id
        super().__init__(f"Execution {execution_id} not found")


class InvalidStatusTransitionError(RelayFlowException):
    """Raised when a record would move backwards in its status machine."""

    def __init__(self, execution_id: str, current: str, requested: str):
        self.execution_id = execution_id
        self.current = current
        self.requested = requested
        super().__init__(
            f"Execution {execution_id} cannot move from {current} to {requested}"
        )
