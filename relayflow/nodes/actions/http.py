"""HTTP request node."""

from typing import Any, Dict

import httpx
from pydantic import Field, field_validator

from relayflow.executor.context import ExecutionContext
from relayflow.nodes.base import NodeConfig, NodeResult
from .base import HttpActionHandler, response_body

ALLOWED_METHODS = ("GET", "POST", "PUT", "DELETE", "PATCH")


class HttpRequestConfig(NodeConfig):
    method: str = "GET"
    url: str
    headers: Dict[str, Any] = Field(default_factory=dict)
    body: Any = None

    @field_validator("method", mode="before")
    @classmethod
    def normalize_method(cls, value: Any) -> str:
        method = str(value or "GET").strip().upper()
        return method if method in ALLOWED_METHODS else "GET"

    @field_validator("url")
    @classmethod
    def url_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("URL is required for HTTP request")
        return value.strip()

    @field_validator("headers", mode="before")
    @classmethod
    def headers_default(cls, value: Any) -> Any:
        return value or {}


class HttpRequestHandler(HttpActionHandler):
    """Make an HTTP request and record the response body as output."""

    node_type = "http"
    config_model = HttpRequestConfig

    async def run(self, config: HttpRequestConfig, context: ExecutionContext) -> NodeResult:
        headers = {key: str(value) for key, value in config.headers.items()}
        request_kwargs = _body_kwargs(config.method, config.body)

        try:
            async with self.client() as client:
                response = await client.request(
                    config.method, config.url, headers=headers, **request_kwargs
                )
        except httpx.HTTPError as e:
            self.logger.error("HTTP request failed", url=config.url, error=str(e))
            return NodeResult.fail(str(e) or "HTTP request failed")

        if response.status_code >= 400:
            self.logger.warning(
                "HTTP request returned error status",
                url=config.url,
                status_code=response.status_code,
            )
            return NodeResult.fail(
                f"Request failed with status code {response.status_code}",
                error_code="HTTP_STATUS",
                output={"status_code": response.status_code, "body": response_body(response)},
            )

        return NodeResult.ok(response_body(response))


def _body_kwargs(method: str, body: Any) -> Dict[str, Any]:
    if method == "GET" or body is None or body == {} or body == "":
        return {}
    if isinstance(body, (str, bytes)):
        return {"content": body}
    return {"json": body}
