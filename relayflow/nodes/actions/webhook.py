"""Outbound webhook node."""

from typing import Any, Optional

import httpx
from pydantic import Field, field_validator

from relayflow.executor.context import ExecutionContext
from relayflow.nodes.base import NodeConfig, NodeResult
from .base import HttpActionHandler, response_body


class WebhookConfig(NodeConfig):
    url: str
    method: Optional[str] = "POST"
    payload: Any = Field(...)

    @field_validator("url")
    @classmethod
    def url_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError('Webhook "url" must be a non-empty string.')
        return value.strip()

    @field_validator("method", mode="before")
    @classmethod
    def normalize_method(cls, value: Any) -> str:
        if isinstance(value, str) and value.strip():
            return value.strip().upper()
        return "POST"


class WebhookHandler(HttpActionHandler):
    """Send a JSON payload to an external URL."""

    node_type = "webhook"
    config_model = WebhookConfig

    async def run(self, config: WebhookConfig, context: ExecutionContext) -> NodeResult:
        try:
            async with self.client() as client:
                response = await client.request(
                    config.method,
                    config.url,
                    json=config.payload,
                    headers={"Content-Type": "application/json"},
                )
                response.raise_for_status()
        except httpx.HTTPError as e:
            self.logger.error("Webhook request failed", url=config.url, error=str(e))
            return NodeResult.fail(str(e) or "Webhook request failed.")

        self.logger.info("Webhook request succeeded", url=config.url)
        return NodeResult.ok({"sent": True, "response": response_body(response)})
