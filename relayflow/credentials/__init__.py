"""Third-party connection lookup for integration handlers."""

from .schemas import Connection
from .store import CredentialStore, InMemoryCredentialStore, get_valid_connection

__all__ = [
    "Connection",
    "CredentialStore",
    "InMemoryCredentialStore",
    "get_valid_connection",
]
