"""Base exceptions for RelayFlow."""


class RelayFlowException(Exception):
    """Base exception for all RelayFlow errors."""
    pass


class ConfigurationError(RelayFlowException):
    """Raised when there's a configuration error."""
    pass


class ValidationError(RelayFlowException):
    """Raised when validation fails."""
    pass


class NotFoundError(RelayFlowException):
    """Raised when a resource is not found."""
    pass
