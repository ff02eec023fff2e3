"""Integration node handlers."""

from .base import CredentialedHandler, HttpActionHandler
from .email import EmailHandler
from .http import HttpRequestHandler
from .sheets import SheetsHandler
from .slack import SlackHandler
from .webhook import WebhookHandler

__all__ = [
    "CredentialedHandler",
    "EmailHandler",
    "HttpActionHandler",
    "HttpRequestHandler",
    "SheetsHandler",
    "SlackHandler",
    "WebhookHandler",
]
