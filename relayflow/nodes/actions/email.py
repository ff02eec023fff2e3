"""Email node sending through the Gmail API."""

import base64
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Any, List, Optional, Union

import httpx
from pydantic import Field, field_validator

from relayflow.config import settings
from relayflow.executor.context import ExecutionContext
from relayflow.nodes.base import NodeConfig, NodeResult
from .base import CredentialedHandler


def _split_addresses(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [part.strip() for part in value.split(",") if part.strip()]
    return [str(part).strip() for part in value if str(part).strip()]


class EmailConfig(NodeConfig):
    to: Union[str, List[str]]
    subject: str = ""
    body: str = ""
    cc: Union[str, List[str], None] = None
    body_type: str = Field(default="text", alias="bodyType")

    @field_validator("to")
    @classmethod
    def recipients_present(cls, value):
        if not _split_addresses(value):
            raise ValueError("At least one recipient is required")
        return value

    @field_validator("body_type", mode="before")
    @classmethod
    def normalize_body_type(cls, value: Any) -> str:
        return "html" if str(value or "").lower() == "html" else "text"

    @property
    def recipients(self) -> List[str]:
        return _split_addresses(self.to)

    @property
    def cc_recipients(self) -> List[str]:
        return _split_addresses(self.cc)


def build_message(config: EmailConfig, sender: Optional[str] = None) -> MIMEMultipart:
    """Build the MIME message for an email node."""
    message = MIMEMultipart()
    message["To"] = ", ".join(config.recipients)
    if config.cc_recipients:
        message["Cc"] = ", ".join(config.cc_recipients)
    if sender:
        message["From"] = sender
    message["Subject"] = config.subject
    subtype = "html" if config.body_type == "html" else "plain"
    message.attach(MIMEText(config.body, subtype, "utf-8"))
    return message


class EmailHandler(CredentialedHandler):
    """Send an email as the run owner with their Google connection."""

    node_type = "email"
    service = "google"
    config_model = EmailConfig

    async def run(self, config: EmailConfig, context: ExecutionContext) -> NodeResult:
        token = await self.access_token(context)

        message = build_message(config, settings.email_from)
        raw = base64.urlsafe_b64encode(message.as_bytes()).decode("ascii")

        try:
            async with self.client() as client:
                response = await client.post(
                    f"{settings.gmail_api_url}/users/me/messages/send",
                    headers={"Authorization": f"Bearer {token}"},
                    json={"raw": raw},
                )
                response.raise_for_status()
                data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            self.logger.error("Email send failed", recipients=config.recipients, error=str(e))
            return NodeResult.fail(f"Failed to send email: {e}")

        self.logger.info("Email sent", recipients=config.recipients, message_id=data.get("id"))
        return NodeResult.ok({"sent": True, "messageId": data.get("id")})
