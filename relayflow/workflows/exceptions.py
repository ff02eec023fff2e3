"""Workflow exceptions."""

from typing import List, Optional

from relayflow.exceptions import NotFoundError, ValidationError


class WorkflowNotFoundError(NotFoundError):
    """Raised when a workflow is not found."""

    def __init__(self, workflow_id: str, user_id: Optional[str] = None):
        self.workflow_id = workflow_id
        self.user_id = user_id
        super().__init__(f"Workflow {workflow_id} not found")


class WorkflowValidationError(ValidationError):
    """Raised when a workflow graph is structurally invalid."""

    def __init__(self, message: str, errors: Optional[List[str]] = None):
        self.errors = errors or []
        super().__init__(message)
