"""Slack message node."""

import httpx
from pydantic import field_validator

from relayflow.config import settings
from relayflow.executor.context import ExecutionContext
from relayflow.nodes.base import NodeConfig, NodeResult
from .base import CredentialedHandler


class SlackConfig(NodeConfig):
    channel: str
    message: str

    @field_validator("channel", "message")
    @classmethod
    def not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must be a non-empty string")
        return value


class SlackHandler(CredentialedHandler):
    """Post a message with ``chat.postMessage`` as the run owner."""

    node_type = "slack"
    service = "slack"
    config_model = SlackConfig

    async def run(self, config: SlackConfig, context: ExecutionContext) -> NodeResult:
        token = await self.access_token(context)

        try:
            async with self.client() as client:
                response = await client.post(
                    f"{settings.slack_api_url}/chat.postMessage",
                    headers={"Authorization": f"Bearer {token}"},
                    json={"channel": config.channel, "text": config.message},
                )
                response.raise_for_status()
                data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            self.logger.error("Slack request failed", channel=config.channel, error=str(e))
            return NodeResult.fail(f"Slack request failed: {e}")

        if not data.get("ok"):
            error = data.get("error", "unknown_error")
            self.logger.warning("Slack rejected message", channel=config.channel, error=error)
            return NodeResult.fail(f"Slack API error: {error}", error_code="SLACK_API_ERROR")

        self.logger.info("Slack message sent", channel=data.get("channel", config.channel))
        return NodeResult.ok({
            "sent": True,
            "channel": data.get("channel", config.channel),
            "ts": data.get("ts"),
        })
